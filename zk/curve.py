"""BN254 group arithmetic on plain integers.

Setup and proving spend nearly all their time in scalar multiplications, so
points here are Jacobian tuples of ints (G2 coordinates are ``(c0, c1)``
pairs in ``F_p[u]/(u^2 + 1)``).  Pairings and point validation go through
``py_ecc``; :func:`g1_to_py` and :func:`g2_to_py` convert between the two.
"""
from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from py_ecc.optimized_bn128 import (
    FQ,
    FQ2,
    G1 as PY_G1,
    G2 as PY_G2,
    curve_order,
    field_modulus,
    normalize,
)

P = field_modulus
ORDER = curve_order


def _int(value) -> int:
    return value.n if hasattr(value, "n") else int(value)


class _Fp:
    zero = 0
    one = 1

    @staticmethod
    def add(a, b):
        return (a + b) % P

    @staticmethod
    def sub(a, b):
        return (a - b) % P

    @staticmethod
    def mul(a, b):
        return a * b % P

    @staticmethod
    def sqr(a):
        return a * a % P

    @staticmethod
    def scale(a, k):
        return a * k % P

    @staticmethod
    def inv(a):
        return pow(a, P - 2, P)


class _Fp2:
    zero = (0, 0)
    one = (1, 0)

    @staticmethod
    def add(a, b):
        return ((a[0] + b[0]) % P, (a[1] + b[1]) % P)

    @staticmethod
    def sub(a, b):
        return ((a[0] - b[0]) % P, (a[1] - b[1]) % P)

    @staticmethod
    def mul(a, b):
        t0 = a[0] * b[0]
        t1 = a[1] * b[1]
        return ((t0 - t1) % P, ((a[0] + a[1]) * (b[0] + b[1]) - t0 - t1) % P)

    @staticmethod
    def sqr(a):
        return ((a[0] + a[1]) * (a[0] - a[1]) % P, 2 * a[0] * a[1] % P)

    @staticmethod
    def scale(a, k):
        return (a[0] * k % P, a[1] * k % P)

    @staticmethod
    def inv(a):
        t = pow((a[0] * a[0] + a[1] * a[1]) % P, P - 2, P)
        return (a[0] * t % P, -a[1] * t % P)


class Group:
    """Short Weierstrass group ``y^2 = x^3 + b`` in Jacobian coordinates.

    Affine points are ``(x, y)`` tuples and ``None`` stands for infinity.
    """

    def __init__(self, name: str, field, generator) -> None:
        self.name = name
        self.f = field
        self.generator = generator
        self.infinity = (field.one, field.one, field.zero)

    def is_inf(self, p) -> bool:
        return p[2] == self.f.zero

    def from_affine(self, point):
        if point is None:
            return self.infinity
        return (point[0], point[1], self.f.one)

    def to_affine(self, p):
        if self.is_inf(p):
            return None
        f = self.f
        z_inv = f.inv(p[2])
        z_inv2 = f.sqr(z_inv)
        return (f.mul(p[0], z_inv2), f.mul(f.mul(p[1], z_inv2), z_inv))

    def neg(self, p):
        return (p[0], self.f.sub(self.f.zero, p[1]), p[2])

    def double(self, p):
        f = self.f
        x, y, z = p
        if z == f.zero or y == f.zero:
            return self.infinity
        a = f.sqr(x)
        b = f.sqr(y)
        c = f.sqr(b)
        d = f.scale(f.sub(f.sub(f.sqr(f.add(x, b)), a), c), 2)
        e = f.scale(a, 3)
        x3 = f.sub(f.sqr(e), f.scale(d, 2))
        y3 = f.sub(f.mul(e, f.sub(d, x3)), f.scale(c, 8))
        z3 = f.scale(f.mul(y, z), 2)
        return (x3, y3, z3)

    def add(self, p, q):
        f = self.f
        if p[2] == f.zero:
            return q
        if q[2] == f.zero:
            return p
        x1, y1, z1 = p
        x2, y2, z2 = q
        z1z1 = f.sqr(z1)
        z2z2 = f.sqr(z2)
        u1 = f.mul(x1, z2z2)
        u2 = f.mul(x2, z1z1)
        s1 = f.mul(f.mul(y1, z2), z2z2)
        s2 = f.mul(f.mul(y2, z1), z1z1)
        h = f.sub(u2, u1)
        r = f.sub(s2, s1)
        if h == f.zero:
            return self.double(p) if r == f.zero else self.infinity
        i = f.sqr(f.scale(h, 2))
        j = f.mul(h, i)
        r = f.scale(r, 2)
        v = f.mul(u1, i)
        x3 = f.sub(f.sub(f.sqr(r), j), f.scale(v, 2))
        y3 = f.sub(f.mul(r, f.sub(v, x3)), f.scale(f.mul(s1, j), 2))
        z3 = f.mul(f.sub(f.sub(f.sqr(f.add(z1, z2)), z1z1), z2z2), h)
        return (x3, y3, z3)

    def mul(self, p, scalar: int):
        scalar %= ORDER
        result = self.infinity
        addend = p
        while scalar:
            if scalar & 1:
                result = self.add(result, addend)
            addend = self.double(addend)
            scalar >>= 1
        return result

    def msm(self, points: Sequence[Optional[tuple]], scalars: Sequence[int]):
        """``sum(s * P)`` over affine points with a bucket (Pippenger) method."""
        unit = self.infinity
        pairs: List[Tuple[tuple, int]] = []
        for point, scalar in zip(points, scalars):
            scalar %= ORDER
            if point is None or not scalar:
                continue
            if scalar == 1:
                unit = self.add(unit, self.from_affine(point))
            else:
                pairs.append((self.from_affine(point), scalar))
        if not pairs:
            return unit

        c = max(2, min(16, len(pairs).bit_length() - 4))
        mask = (1 << c) - 1
        windows = (ORDER.bit_length() + c - 1) // c
        result = self.infinity
        for w in reversed(range(windows)):
            for _ in range(c):
                result = self.double(result)
            buckets = [self.infinity] * (mask + 1)
            shift = w * c
            for point, scalar in pairs:
                digit = (scalar >> shift) & mask
                if digit:
                    buckets[digit] = self.add(buckets[digit], point)
            running = self.infinity
            window_sum = self.infinity
            for digit in range(mask, 0, -1):
                running = self.add(running, buckets[digit])
                window_sum = self.add(window_sum, running)
            result = self.add(result, window_sum)
        return self.add(result, unit)


class FixedBase:
    """Precomputed multiples of one point for repeated multiplication."""

    WINDOW = 4

    def __init__(self, group: Group, point) -> None:
        self.group = group
        base = group.from_affine(point)
        self.rows = []
        for _ in range((ORDER.bit_length() + self.WINDOW - 1) // self.WINDOW):
            row = [group.infinity]
            for _ in range((1 << self.WINDOW) - 1):
                row.append(group.add(row[-1], base))
            self.rows.append(row)
            base = group.add(row[-1], base)

    def mul(self, scalar: int):
        scalar %= ORDER
        acc = self.group.infinity
        mask = (1 << self.WINDOW) - 1
        w = 0
        while scalar:
            digit = scalar & mask
            if digit:
                acc = self.group.add(acc, self.rows[w][digit])
            scalar >>= self.WINDOW
            w += 1
        return acc

    def mul_affine(self, scalar: int):
        return self.group.to_affine(self.mul(scalar))


def _g1_generator():
    x, y = normalize(PY_G1)
    return (_int(x), _int(y))


def _g2_generator():
    x, y = normalize(PY_G2)
    return (
        (_int(x.coeffs[0]), _int(x.coeffs[1])),
        (_int(y.coeffs[0]), _int(y.coeffs[1])),
    )


G1 = Group("G1", _Fp, _g1_generator())
G2 = Group("G2", _Fp2, _g2_generator())


def g1_to_py(point):
    if point is None:
        return (FQ.one(), FQ.one(), FQ.zero())
    return (FQ(point[0]), FQ(point[1]), FQ.one())


def g2_to_py(point):
    if point is None:
        return (FQ2.one(), FQ2.one(), FQ2.zero())
    (x0, x1), (y0, y1) = point
    return (FQ2([x0, x1]), FQ2([y0, y1]), FQ2.one())
