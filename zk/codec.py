"""Conversion between native proofs and verifier call data.

The verifier entry points take ``(pA, pB, pC, pubSignals)``: one G1 point, one
G2 point written as two coordinate pairs, another G1 point and the public
signals in circuit order.  Public signals are positional, so this module is
the only place that knows the order.  Everything past this boundary works with
``CommitmentSignals`` and ``PositionSignals``.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Sequence, Tuple

from zk.field import R

BN254_P = 21888242871839275222246405745257275088696311157297823662689037894645226208583
PROTOCOL = "groth16"
CURVE = "bn128"

COMMITMENT_SIGNALS = ("commitment_0", "commitment_1")
POSITION_SIGNALS = ("occupied", "commitment_0", "commitment_1", "x", "y")


class CodecError(ValueError):
    """Raised for proofs or signal vectors that do not have the expected shape."""


def _word(value: int) -> str:
    return "0x" + format(value, "064x")


def _int(value: Any, modulus: int, what: str) -> int:
    if isinstance(value, bool):
        raise CodecError(f"{what}: boolean is not a field element")
    try:
        if isinstance(value, int):
            number = value
        elif isinstance(value, str):
            text = value.strip()
            number = int(text, 16) if text.lower().startswith("0x") else int(text)
        else:
            raise TypeError(type(value).__name__)
    except (TypeError, ValueError) as exc:
        raise CodecError(f"{what}: cannot read {value!r}") from exc
    if not 0 <= number < modulus:
        raise CodecError(f"{what}: {number} is outside the field")
    return number


def _signals(values: Sequence[Any], names: Sequence[str]) -> List[int]:
    if len(values) != len(names):
        raise CodecError(
            f"expected {len(names)} public signals ({', '.join(names)}), got {len(values)}"
        )
    return [_int(v, R, name) for v, name in zip(values, names)]


@dataclass(frozen=True)
class CommitmentSignals:
    commitment: Tuple[int, int]

    def as_vector(self) -> List[int]:
        return [self.commitment[0], self.commitment[1]]

    @classmethod
    def from_vector(cls, values: Sequence[Any]) -> 'CommitmentSignals':
        c0, c1 = _signals(values, COMMITMENT_SIGNALS)
        return cls(commitment=(c0, c1))


@dataclass(frozen=True)
class PositionSignals:
    occupied: int
    commitment: Tuple[int, int]
    x: int
    y: int

    def as_vector(self) -> List[int]:
        return [self.occupied, self.commitment[0], self.commitment[1], self.x, self.y]

    @classmethod
    def from_vector(cls, values: Sequence[Any]) -> 'PositionSignals':
        occupied, c0, c1, x, y = _signals(values, POSITION_SIGNALS)
        if occupied not in (0, 1):
            raise CodecError(f"occupied: expected a bit, got {occupied}")
        return cls(occupied=occupied, commitment=(c0, c1), x=x, y=y)


@dataclass(frozen=True)
class CallData:
    p_a: Tuple[str, str]
    p_b: Tuple[Tuple[str, str], Tuple[str, str]]
    p_c: Tuple[str, str]
    pub_signals: Tuple[str, ...]

    def args(self) -> tuple:
        return (
            list(self.p_a),
            [list(self.p_b[0]), list(self.p_b[1])],
            list(self.p_c),
            list(self.pub_signals),
        )

    def to_payload(self) -> dict:
        p_a, p_b, p_c, pub = self.args()
        return {"pA": p_a, "pB": p_b, "pC": p_c, "pubSignals": pub}

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> 'CallData':
        try:
            p_a = payload["pA"]
            p_b = payload["pB"]
            p_c = payload["pC"]
            pub = payload["pubSignals"]
        except (KeyError, TypeError) as exc:
            raise CodecError(f"missing call data field: {exc}") from exc
        try:
            if (
                len(p_a) != 2
                or len(p_c) != 2
                or len(p_b) != 2
                or any(len(pair) != 2 for pair in p_b)
            ):
                raise CodecError("call data points have the wrong shape")
            words = [*p_a, *p_b[0], *p_b[1], *p_c, *pub]
        except TypeError as exc:
            raise CodecError("call data points have the wrong shape") from exc
        return cls.from_words(words)

    @classmethod
    def from_words(cls, words: Sequence[Any]) -> 'CallData':
        if len(words) < 8:
            raise CodecError(f"call data needs at least 8 words, got {len(words)}")
        norm = [_word(_int(w, BN254_P, f"word {i}")) for i, w in enumerate(words[:8])]
        pub = tuple(_word(_int(w, R, f"signal {i}")) for i, w in enumerate(words[8:]))
        return cls(
            p_a=(norm[0], norm[1]),
            p_b=((norm[2], norm[3]), (norm[4], norm[5])),
            p_c=(norm[6], norm[7]),
            pub_signals=pub,
        )

    def signals(self) -> List[int]:
        return [int(s, 16) for s in self.pub_signals]


def encode(proof: Mapping[str, Any], public_signals: Sequence[Any]) -> CallData:
    """Turn a snarkjs-shaped proof and its public signals into call data.

    G2 coordinates are stored ``[c0, c1]`` in the proof and passed
    ``[c1, c0]`` to the verifier.
    """
    try:
        a = proof["pi_a"]
        b = proof["pi_b"]
        c = proof["pi_c"]
    except (KeyError, TypeError) as exc:
        raise CodecError(f"proof is missing {exc}") from exc
    if proof.get("curve", CURVE) != CURVE:
        raise CodecError(f"unsupported curve {proof.get('curve')!r}")
    if len(a) < 2 or len(c) < 2 or len(b) < 2 or len(b[0]) != 2 or len(b[1]) != 2:
        raise CodecError("proof points have the wrong shape")
    words = [a[0], a[1], b[0][1], b[0][0], b[1][1], b[1][0], c[0], c[1]]
    return CallData.from_words(list(words) + list(public_signals))


def decode(call: CallData) -> Tuple[dict, List[str]]:
    """Inverse of :func:`encode`; returns ``(proof, public_signals)``."""
    def dec(word: str) -> str:
        return str(int(word, 16))

    proof = {
        "pi_a": [dec(call.p_a[0]), dec(call.p_a[1]), "1"],
        "pi_b": [
            [dec(call.p_b[0][1]), dec(call.p_b[0][0])],
            [dec(call.p_b[1][1]), dec(call.p_b[1][0])],
            ["1", "0"],
        ],
        "pi_c": [dec(call.p_c[0]), dec(call.p_c[1]), "1"],
        "protocol": PROTOCOL,
        "curve": CURVE,
    }
    return proof, [dec(s) for s in call.pub_signals]


def to_calldata_string(call: CallData) -> str:
    p_a, p_b, p_c, pub = call.args()

    def q(words):
        return "[" + ",".join(f'"{w}"' for w in words) + "]"

    return f"{q(p_a)},[{q(p_b[0])},{q(p_b[1])}],{q(p_c)},{q(pub)}"


def parse_calldata(text: str) -> CallData:
    """Parse the flat ``["a0","a1"],[[..],[..]],[..],[..]`` form."""
    words = [w for w in re.sub(r'["\[\]\s]', "", text).split(",") if w]
    return CallData.from_words(words)


def commitment_signals(call: CallData) -> CommitmentSignals:
    return CommitmentSignals.from_vector(call.pub_signals)


def position_signals(call: CallData) -> PositionSignals:
    return PositionSignals.from_vector(call.pub_signals)
