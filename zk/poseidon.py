"""Poseidon-style sponge over the BN254 scalar field.

Width 4 with rate 3 and capacity 1: words are absorbed three at a time into
``state[0..2]``, ``state[3]`` starts as the message length.  The permutation
runs 8 full and 56 partial rounds of ``x**5``.  Round constants come from
SHA-256 and the MDS matrix is the Cauchy matrix ``1 / (i + 4 + j)``.  The
digest is the pair ``(state[0], state[1])`` after the last permutation.

The same rounds are available as constraints so a circuit can recompute a
commitment at a cost of three constraints per S-box.
"""
from __future__ import annotations

import hashlib
from typing import Callable, List, Sequence, Tuple, TypeVar

from zk.field import R, inv
from zk.r1cs import LC, ConstraintSystem, product

CONSTANT_DOMAIN = b"battleship.poseidon"
WIDTH = 4
RATE = 3
FULL_ROUNDS = 8
PARTIAL_ROUNDS = 56
ROUNDS = FULL_ROUNDS + PARTIAL_ROUNDS

ROUND_CONSTANTS = [
    [
        int.from_bytes(
            hashlib.sha256(CONSTANT_DOMAIN + bytes([r, i])).digest(), "big"
        ) % R
        for i in range(WIDTH)
    ]
    for r in range(ROUNDS)
]
MDS = [[inv(i + WIDTH + j) for j in range(WIDTH)] for i in range(WIDTH)]

T = TypeVar("T")


def _is_full(r: int) -> bool:
    return r < FULL_ROUNDS // 2 or r >= FULL_ROUNDS // 2 + PARTIAL_ROUNDS


def _rounds(state: List[T], sbox: Callable[[T, str], T], mix: Callable[[List[int], List[T]], T]) -> List[T]:
    for r in range(ROUNDS):
        state = [s + c for s, c in zip(state, ROUND_CONSTANTS[r])]
        if _is_full(r):
            state = [sbox(s, f"round {r} sbox {i}") for i, s in enumerate(state)]
        else:
            state = [sbox(state[0], f"round {r} sbox 0")] + state[1:]
        state = [mix(row, state) for row in MDS]
    return state


def permute(state: Sequence[int]) -> List[int]:
    if len(state) != WIDTH:
        raise ValueError(f"state must have {WIDTH} elements")
    return _rounds(
        [s % R for s in state],
        lambda s, _: pow(s, 5, R),
        lambda row, st: sum(m * s for m, s in zip(row, st)) % R,
    )


def _absorb(message: Sequence[T], state: List[T], permutation) -> List[T]:
    for start in range(0, len(message), RATE):
        for i, word in enumerate(message[start:start + RATE]):
            state[i] = state[i] + word
        state = permutation(state)
    return state


def sponge(words: Sequence[int]) -> Tuple[int, int]:
    """Two-element digest of ``words``."""
    if not words:
        raise ValueError("cannot hash an empty message")
    state = _absorb([w % R for w in words], [0, 0, 0, len(words)], permute)
    return state[0], state[1]


def sponge_gadget(cs: ConstraintSystem, words: Sequence[LC]) -> Tuple[LC, LC]:
    """Constrain the digest of ``words`` and return it as two linear combinations."""

    def sbox(x: LC, label: str) -> LC:
        x2 = product(cs, f"poseidon {label} x^2", x, x)
        x4 = product(cs, f"poseidon {label} x^4", x2, x2)
        return product(cs, f"poseidon {label} x^5", x4, x)

    def permutation(state: List[LC]) -> List[LC]:
        return _rounds(state, sbox, lambda row, st: LC.sum(m * s for m, s in zip(row, st)))

    if not words:
        raise ValueError("cannot hash an empty message")
    initial = [LC(), LC(), LC(), LC.constant(len(words))]
    state = _absorb(list(words), initial, permutation)
    return state[0], state[1]
