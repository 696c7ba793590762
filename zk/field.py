"""Arithmetic in the BN254 scalar field and its radix-2 evaluation domains.

All circuit values, public signals and Groth16 scalars live in ``R``.
"""
from __future__ import annotations

from typing import List, Sequence

R = 21888242871839275222246405745257275088548364400416034343698204186575808495617

# R - 1 = 2**TWO_ADICITY * odd; 5 generates the multiplicative group
TWO_ADICITY = 28
GENERATOR = 5


def fe(value: int) -> int:
    """Reduce ``value`` into the scalar field."""
    return value % R


def inv(value: int) -> int:
    value %= R
    if value == 0:
        raise ZeroDivisionError("inverse of zero in the scalar field")
    return pow(value, R - 2, R)


def is_field_element(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and 0 <= value < R


def root_of_unity(size: int) -> int:
    """Primitive ``size``-th root of unity; ``size`` must be a power of two."""
    if size < 1 or size & (size - 1) or size.bit_length() - 1 > TWO_ADICITY:
        raise ValueError(f"no evaluation domain of size {size}")
    return pow(GENERATOR, (R - 1) // size, R)


def fft(values: Sequence[int], omega: int) -> List[int]:
    """Evaluate the polynomial with coefficients ``values`` at ``omega**j``."""
    n = len(values)
    a = [v % R for v in values]
    j = 0
    for i in range(1, n):
        bit = n >> 1
        while j & bit:
            j ^= bit
            bit >>= 1
        j |= bit
        if i < j:
            a[i], a[j] = a[j], a[i]

    length = 2
    while length <= n:
        half = length // 2
        step = pow(omega, n // length, R)
        twiddles = [1] * half
        for k in range(1, half):
            twiddles[k] = twiddles[k - 1] * step % R
        for start in range(0, n, length):
            for k in range(half):
                u = a[start + k]
                v = a[start + k + half] * twiddles[k] % R
                a[start + k] = (u + v) % R
                a[start + k + half] = (u - v) % R
        length <<= 1
    return a


def ifft(values: Sequence[int], omega: int) -> List[int]:
    """Interpolate coefficients from evaluations at ``omega**j``."""
    n = len(values)
    coeffs = fft(values, inv(omega))
    n_inv = inv(n)
    return [c * n_inv % R for c in coeffs]
