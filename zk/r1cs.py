"""Rank-1 constraint systems over the BN254 scalar field.

A circuit allocates variables, each with its witness value, and enforces
constraints ``<a, w> * <b, w> = <c, w>`` between linear combinations of them.
Variable 0 is the constant one; public signals follow it and every private
variable comes after the last public one, which is the order Groth16 expects.
"""
from __future__ import annotations

import hashlib
from typing import Dict, Iterable, List, Optional, Tuple, Union

from zk.field import R


class WitnessError(Exception):
    """No satisfying assignment exists for the given inputs."""

    def __init__(self, circuit: str, constraint: str) -> None:
        super().__init__(f"{circuit}: constraint failed: {constraint}")
        self.circuit = circuit
        self.constraint = constraint


class LC:
    """Sparse linear combination ``sum(coeff * w[index])``."""

    __slots__ = ("terms",)

    def __init__(self, terms: Optional[Dict[int, int]] = None) -> None:
        self.terms: Dict[int, int] = dict(terms or {})

    @classmethod
    def constant(cls, value: int) -> 'LC':
        value %= R
        return cls({0: value} if value else {})

    @classmethod
    def sum(cls, items: Iterable[Union['LC', int]]) -> 'LC':
        terms: Dict[int, int] = {}
        for item in items:
            for index, coeff in _lc(item).terms.items():
                terms[index] = (terms.get(index, 0) + coeff) % R
        return cls({i: c for i, c in terms.items() if c})

    def __add__(self, other: Union['LC', int]) -> 'LC':
        return LC.sum((self, other))

    __radd__ = __add__

    def __neg__(self) -> 'LC':
        return LC({i: (-c) % R for i, c in self.terms.items()})

    def __sub__(self, other: Union['LC', int]) -> 'LC':
        return LC.sum((self, -_lc(other)))

    def __rsub__(self, other: int) -> 'LC':
        return LC.sum((other, -self))

    def __mul__(self, scalar: int) -> 'LC':
        if isinstance(scalar, LC):
            raise TypeError("linear combinations multiply only through constraints")
        scalar %= R
        if not scalar:
            return LC()
        return LC({i: c * scalar % R for i, c in self.terms.items()})

    __rmul__ = __mul__

    def __repr__(self) -> str:
        return f"LC({self.terms!r})"


def _lc(value: Union[LC, int]) -> LC:
    if isinstance(value, LC):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return LC.constant(value)
    raise TypeError(f"cannot use {type(value).__name__} in a constraint")


Constraint = Tuple[LC, LC, LC, str]


class ConstraintSystem:
    """Constraints of one circuit together with one assignment to them."""

    def __init__(self, circuit: str) -> None:
        self.circuit = circuit
        self.values: List[Optional[int]] = [1]
        self.names: List[str] = ["one"]
        self.n_public = 0
        self.constraints: List[Constraint] = []

    @property
    def n_vars(self) -> int:
        return len(self.values)

    def require(self, condition: bool, label: str) -> None:
        """Reject inputs that cannot even be read into the circuit."""
        if not condition:
            raise WitnessError(self.circuit, label)

    def _alloc(self, name: str, value: Optional[int]) -> LC:
        index = len(self.values)
        self.values.append(None if value is None else value % R)
        self.names.append(name)
        return LC({index: 1})

    def public(self, name: str, value: Optional[int] = None) -> LC:
        if len(self.values) != self.n_public + 1:
            raise RuntimeError(f"public signal {name} allocated after private ones")
        self.n_public += 1
        return self._alloc(name, value)

    def private(self, name: str, value: int) -> LC:
        return self._alloc(name, value)

    def enforce(self, a, b, c, label: str) -> None:
        self.constraints.append((_lc(a), _lc(b), _lc(c), label))

    def value(self, lc: Union[LC, int]) -> int:
        total = 0
        for index, coeff in _lc(lc).terms.items():
            total += coeff * self.values[index]
        return total % R

    def assign(self, var: LC, value: int) -> None:
        """Fill in a public signal that was allocated before it was known."""
        (index, _), = var.terms.items()
        self.values[index] = value % R

    def bind(self, var: LC, lc: LC, label: str) -> None:
        self.assign(var, self.value(lc))
        self.enforce(lc, 1, var, label)

    def check(self) -> None:
        """Raise :class:`WitnessError` naming the first unsatisfied constraint."""
        if any(v is None for v in self.values):
            missing = self.names[self.values.index(None)]
            raise WitnessError(self.circuit, f"{missing} is assigned")
        for a, b, c, label in self.constraints:
            if self.value(a) * self.value(b) % R != self.value(c):
                raise WitnessError(self.circuit, label)

    def public_signals(self) -> List[int]:
        return list(self.values[1:self.n_public + 1])

    def digest(self) -> str:
        """Fingerprint of the constraint structure, independent of the witness."""
        h = hashlib.sha256(f"{self.circuit}:{self.n_vars}:{self.n_public}".encode())
        for a, b, c, _ in self.constraints:
            for lc in (a, b, c):
                h.update(repr(sorted(lc.terms.items())).encode())
                h.update(b";")
        return h.hexdigest()


def boolean(cs: ConstraintSystem, name: str, value: int) -> LC:
    bit = cs.private(name, value)
    cs.enforce(bit, bit - 1, 0, f"{name} is a bit")
    return bit


def one_hot(cs: ConstraintSystem, name: str, target: LC, size: int) -> List[LC]:
    """Flags ``f[k] = (target == k)`` for ``k`` in ``range(size)``.

    The constraints also force ``target`` into ``[0, size)``.
    """
    current = cs.value(target)
    flags = [boolean(cs, f"{name}=={k}", int(current == k)) for k in range(size)]
    cs.enforce(LC.sum(flags), 1, 1, f"{name} selects one of {size}")
    cs.enforce(LC.sum(k * f for k, f in enumerate(flags)), 1, target, f"{name} lies in [0, {size})")
    return flags


def product(cs: ConstraintSystem, name: str, a: LC, b: LC) -> LC:
    out = cs.private(name, cs.value(a) * cs.value(b))
    cs.enforce(a, b, out, name)
    return out
