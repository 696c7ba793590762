"""Groth16 proving and verification on BN254.

``setup`` compiles a circuit, samples the trapdoor ``(tau, alpha, beta,
gamma, delta)`` and returns a proving key and a verifying key built from
group elements only; the trapdoor is dropped when ``setup`` returns.  Without
it a valid proof can only come from an assignment that satisfies every
constraint.  A ``seed`` makes the keys reproducible, which is only fit for
tests and local development since anyone with the seed can rebuild the
trapdoor.

Proofs and verifying keys use the snarkjs JSON shapes.
"""
from __future__ import annotations

import hashlib
import logging
import secrets
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

from py_ecc.optimized_bn128 import (
    FQ12,
    b,
    b2,
    curve_order,
    final_exponentiate,
    is_inf,
    is_on_curve,
    multiply,
    neg,
    pairing,
)

from zk.circuits import CIRCUITS, WitnessError
from zk.codec import CURVE, PROTOCOL, CallData, CodecError, decode, encode
from zk.curve import G1, G2, FixedBase, g1_to_py, g2_to_py
from zk.field import GENERATOR, R, fft, ifft, inv, root_of_unity
from zk.r1cs import LC, Constraint, ConstraintSystem

logger = logging.getLogger(__name__)

SETUP_DOMAIN = b"battleship.setup"

G1Point = Optional[Tuple[int, int]]
G2Point = Optional[Tuple[Tuple[int, int], Tuple[int, int]]]


def _rows(system: ConstraintSystem) -> List[Constraint]:
    # w[i] * 0 = 0 for the constant and every public signal keeps their
    # polynomials independent.
    inputs = [
        (LC({i: 1}), LC(), LC(), "input")
        for i in range(system.n_public + 1)
    ]
    return system.constraints + inputs


def _domain_size(rows: int) -> int:
    size = 1
    while size < rows:
        size <<= 1
    return size


def _g1_words(point: G1Point) -> List[str]:
    if point is None:
        return ["0", "1", "0"]
    return [str(point[0]), str(point[1]), "1"]


def _g2_words(point: G2Point) -> List[List[str]]:
    if point is None:
        return [["0", "0"], ["1", "0"], ["0", "0"]]
    (x0, x1), (y0, y1) = point
    return [[str(x0), str(x1)], [str(y0), str(y1)], ["1", "0"]]


def _g1_read(words: Sequence[Any]) -> G1Point:
    if len(words) > 2 and int(words[2]) == 0:
        return None
    return (int(words[0]), int(words[1]))


def _g2_read(words: Sequence[Sequence[Any]]) -> G2Point:
    if len(words) > 2 and int(words[2][0]) == 0 and int(words[2][1]) == 0:
        return None
    return (
        (int(words[0][0]), int(words[0][1])),
        (int(words[1][0]), int(words[1][1])),
    )


def _g1_checked(words: Sequence[Any]):
    point = g1_to_py(_g1_read(words))
    if not is_on_curve(point, b):
        raise CodecError("proof point is not on G1")
    return point


def _g2_checked(words: Sequence[Sequence[Any]]):
    point = g2_to_py(_g2_read(words))
    if not is_on_curve(point, b2):
        raise CodecError("pi_b is not on G2")
    if not is_inf(multiply(point, curve_order)):
        raise CodecError("pi_b is not in the G2 subgroup")
    return point


@dataclass(frozen=True)
class VerifyingKey:
    circuit: str
    alpha_1: G1Point
    beta_2: G2Point
    gamma_2: G2Point
    delta_2: G2Point
    ic: Tuple[G1Point, ...]

    @property
    def n_public(self) -> int:
        return len(self.ic) - 1

    def to_json(self) -> dict:
        return {
            "protocol": PROTOCOL,
            "curve": CURVE,
            "circuit": self.circuit,
            "nPublic": self.n_public,
            "vk_alpha_1": _g1_words(self.alpha_1),
            "vk_beta_2": _g2_words(self.beta_2),
            "vk_gamma_2": _g2_words(self.gamma_2),
            "vk_delta_2": _g2_words(self.delta_2),
            "IC": [_g1_words(p) for p in self.ic],
        }

    @classmethod
    def from_json(cls, data: Mapping[str, Any]) -> 'VerifyingKey':
        if data.get("protocol", PROTOCOL) != PROTOCOL:
            raise ValueError(f"unsupported protocol {data.get('protocol')!r}")
        ic = tuple(_g1_read(p) for p in data["IC"])
        if len(ic) != int(data["nPublic"]) + 1:
            raise ValueError("IC does not match nPublic")
        return cls(
            circuit=data["circuit"],
            alpha_1=_g1_read(data["vk_alpha_1"]),
            beta_2=_g2_read(data["vk_beta_2"]),
            gamma_2=_g2_read(data["vk_gamma_2"]),
            delta_2=_g2_read(data["vk_delta_2"]),
            ic=ic,
        )


@dataclass(frozen=True)
class ProvingKey:
    """Group elements a prover needs; holds nothing that could forge a proof."""

    circuit: str
    digest: str
    domain_size: int
    n_public: int
    alpha_1: G1Point
    beta_1: G1Point
    beta_2: G2Point
    delta_1: G1Point
    delta_2: G2Point
    a_query: Tuple[G1Point, ...]
    b1_query: Tuple[G1Point, ...]
    b2_query: Tuple[G2Point, ...]
    l_query: Tuple[G1Point, ...]
    h_query: Tuple[G1Point, ...]


def _trapdoor(circuit: str, seed: Optional[bytes]) -> Dict[str, int]:
    names = ("tau", "alpha", "beta", "gamma", "delta")
    if seed is None:
        return {name: secrets.randbelow(R - 1) + 1 for name in names}
    values = {}
    for name in names:
        digest = hashlib.sha256(
            SETUP_DOMAIN + circuit.encode() + b"/" + name.encode() + b"/" + seed
        ).digest()
        values[name] = int.from_bytes(digest, "big") % (R - 1) + 1
    return values


def _lagrange_at(tau: int, size: int, omega: int) -> List[int]:
    """``L_j(tau)`` for the domain of ``size``-th roots of unity."""
    z_tau = (pow(tau, size, R) - 1) % R
    if z_tau == 0:
        raise ValueError("tau lies in the evaluation domain")
    scale = z_tau * inv(size) % R
    values = []
    point = 1
    for _ in range(size):
        values.append(scale * point % R * inv(tau - point) % R)
        point = point * omega % R
    return values


def setup(circuit: str, seed: Optional[bytes] = None) -> Tuple[ProvingKey, VerifyingKey]:
    """Compile ``circuit`` and create its key pair."""
    if circuit not in CIRCUITS:
        raise ValueError(f"unknown circuit {circuit!r}")
    spec = CIRCUITS[circuit]
    system = spec.synthesize(spec.reference_inputs())
    rows = _rows(system)
    size = _domain_size(len(rows))
    omega = root_of_unity(size)
    t = _trapdoor(circuit, seed)
    tau, alpha, beta, gamma, delta = t["tau"], t["alpha"], t["beta"], t["gamma"], t["delta"]

    lagrange = _lagrange_at(tau, size, omega)
    m = system.n_vars
    u, v, w = [0] * m, [0] * m, [0] * m
    for j, (a, bb, c, _) in enumerate(rows):
        for target, lc in ((u, a), (v, bb), (w, c)):
            for i, coeff in lc.terms.items():
                target[i] = (target[i] + coeff * lagrange[j]) % R

    gamma_inv = inv(gamma)
    delta_inv = inv(delta)
    g1 = FixedBase(G1, G1.generator)
    g2 = FixedBase(G2, G2.generator)
    n_public = system.n_public

    def combined(i: int) -> int:
        return (beta * u[i] + alpha * v[i] + w[i]) % R

    z_tau = (pow(tau, size, R) - 1) % R
    h_query = []
    power = z_tau * delta_inv % R
    for _ in range(size - 1):
        h_query.append(g1.mul_affine(power))
        power = power * tau % R

    pk = ProvingKey(
        circuit=circuit,
        digest=system.digest(),
        domain_size=size,
        n_public=n_public,
        alpha_1=g1.mul_affine(alpha),
        beta_1=g1.mul_affine(beta),
        beta_2=g2.mul_affine(beta),
        delta_1=g1.mul_affine(delta),
        delta_2=g2.mul_affine(delta),
        a_query=tuple(g1.mul_affine(x) for x in u),
        b1_query=tuple(g1.mul_affine(x) for x in v),
        b2_query=tuple(g2.mul_affine(x) for x in v),
        l_query=tuple(
            g1.mul_affine(combined(i) * delta_inv) for i in range(n_public + 1, m)
        ),
        h_query=tuple(h_query),
    )
    vk = VerifyingKey(
        circuit=circuit,
        alpha_1=pk.alpha_1,
        beta_2=pk.beta_2,
        gamma_2=g2.mul_affine(gamma),
        delta_2=pk.delta_2,
        ic=tuple(g1.mul_affine(combined(i) * gamma_inv) for i in range(n_public + 1)),
    )
    logger.info(
        "GROTH16_SETUP | circuit=%s constraints=%d variables=%d domain=%d",
        circuit, len(system.constraints), m, size,
    )
    return pk, vk


def _quotient(a: List[int], bb: List[int], c: List[int], omega: int) -> List[int]:
    """Coefficients of ``(a*b - c) / Z`` computed on the coset ``GENERATOR * H``."""
    size = len(a)
    shift = [1] * size
    for k in range(1, size):
        shift[k] = shift[k - 1] * GENERATOR % R

    def on_coset(evals: List[int]) -> List[int]:
        coeffs = ifft(evals, omega)
        return fft([x * s % R for x, s in zip(coeffs, shift)], omega)

    a_s, b_s, c_s = on_coset(a), on_coset(bb), on_coset(c)
    z_inv = inv(pow(GENERATOR, size, R) - 1)
    h_s = [(x * y - z) * z_inv % R for x, y, z in zip(a_s, b_s, c_s)]
    coeffs = ifft(h_s, omega)
    g_inv = inv(GENERATOR)
    scale = 1
    for k in range(size):
        coeffs[k] = coeffs[k] * scale % R
        scale = scale * g_inv % R
    return coeffs


def prove(key: ProvingKey, system: ConstraintSystem, *, check: bool = True) -> dict:
    """Prove the assignment held by ``system``.

    With ``check`` the assignment is validated first and an unsatisfied
    constraint raises :class:`WitnessError`; a proof over an unsatisfied
    assignment is still produced without it, and fails verification.
    """
    if system.circuit != key.circuit:
        raise ValueError(f"key for {key.circuit!r} cannot prove {system.circuit!r}")
    if system.digest() != key.digest:
        raise ValueError(f"{system.circuit}: constraint system does not match the proving key")
    if check:
        system.check()

    witness = [v % R for v in system.values]
    size = key.domain_size
    rows = _rows(system)
    evals = [[0] * size for _ in range(3)]
    for j, row in enumerate(rows):
        for k in range(3):
            evals[k][j] = system.value(row[k])
    h = _quotient(evals[0], evals[1], evals[2], root_of_unity(size))

    r = secrets.randbelow(R)
    s = secrets.randbelow(R)
    delta_1 = G1.from_affine(key.delta_1)

    pi_a = G1.add(G1.from_affine(key.alpha_1), G1.msm(key.a_query, witness))
    pi_a = G1.add(pi_a, G1.mul(delta_1, r))

    pi_b = G2.add(G2.from_affine(key.beta_2), G2.msm(key.b2_query, witness))
    pi_b = G2.add(pi_b, G2.mul(G2.from_affine(key.delta_2), s))

    b_1 = G1.add(G1.from_affine(key.beta_1), G1.msm(key.b1_query, witness))
    b_1 = G1.add(b_1, G1.mul(delta_1, s))

    pi_c = G1.msm(key.l_query, witness[key.n_public + 1:])
    pi_c = G1.add(pi_c, G1.msm(key.h_query, h[:size - 1]))
    pi_c = G1.add(pi_c, G1.mul(pi_a, s))
    pi_c = G1.add(pi_c, G1.mul(b_1, r))
    pi_c = G1.add(pi_c, G1.neg(G1.mul(delta_1, r * s)))

    return {
        "pi_a": _g1_words(G1.to_affine(pi_a)),
        "pi_b": _g2_words(G2.to_affine(pi_b)),
        "pi_c": _g1_words(G1.to_affine(pi_c)),
        "protocol": PROTOCOL,
        "curve": CURVE,
    }


def full_prove(
    circuit: str, inputs: Mapping[str, Any], key: ProvingKey
) -> Tuple[dict, List[str]]:
    """Generate the witness for ``inputs`` and prove it.

    Raises :class:`WitnessError` when the inputs do not satisfy the circuit.
    """
    if key.circuit != circuit:
        raise ValueError(f"key for {key.circuit!r} cannot prove {circuit!r}")
    witness = CIRCUITS[circuit].calculate_witness(inputs)
    proof = prove(key, witness.system, check=False)
    logger.info("PROOF_GENERATED | circuit=%s signals=%d", circuit, len(witness.public_signals))
    return proof, [str(s) for s in witness.public_signals]


def verify(vk: VerifyingKey, proof: Mapping[str, Any], public_signals: Sequence[Any]) -> bool:
    if len(public_signals) != vk.n_public:
        return False
    try:
        signals = [int(s) for s in public_signals]
        pi_a = _g1_checked(proof["pi_a"])
        pi_b = _g2_checked(proof["pi_b"])
        pi_c = _g1_checked(proof["pi_c"])
    except (CodecError, KeyError, IndexError, TypeError, ValueError):
        return False
    if any(not 0 <= s < R for s in signals):
        return False

    ic = G1.to_affine(G1.msm(vk.ic, [1] + signals))
    acc = (
        pairing(pi_b, neg(pi_a), final_exponentiate=False)
        * pairing(g2_to_py(vk.beta_2), g1_to_py(vk.alpha_1), final_exponentiate=False)
        * pairing(g2_to_py(vk.gamma_2), g1_to_py(ic), final_exponentiate=False)
        * pairing(g2_to_py(vk.delta_2), pi_c, final_exponentiate=False)
    )
    return final_exponentiate(acc) == FQ12.one()


@dataclass(frozen=True)
class Keyring:
    """Key pairs for both board circuits."""

    commitment: Tuple[ProvingKey, VerifyingKey]
    position: Tuple[ProvingKey, VerifyingKey]

    @classmethod
    def generate(cls, seed: Optional[bytes] = None) -> 'Keyring':
        return cls(
            commitment=setup("commitment", seed),
            position=setup("position", seed),
        )

    def proving_key(self, circuit: str) -> ProvingKey:
        return getattr(self, circuit)[0]

    def verifying_key(self, circuit: str) -> VerifyingKey:
        return getattr(self, circuit)[1]

    def verifier(self) -> 'Verifier':
        return Verifier(self.commitment[1], self.position[1])


class Verifier:
    """Verification entry points fed with codec call data."""

    def __init__(self, commitment_key: VerifyingKey, position_key: VerifyingKey) -> None:
        self.commitment_key = commitment_key
        self.position_key = position_key

    def _check(self, vk: VerifyingKey, call: CallData) -> bool:
        proof, signals = decode(call)
        ok = verify(vk, proof, signals)
        if not ok:
            logger.warning("PROOF_REJECTED | circuit=%s", vk.circuit)
        return ok

    def verify_commitment(self, call: CallData) -> bool:
        return self._check(self.commitment_key, call)

    def verify_position(self, call: CallData) -> bool:
        return self._check(self.position_key, call)


def prove_call(circuit: str, inputs: Mapping[str, Any], key: ProvingKey) -> CallData:
    """``full_prove`` followed by encoding into verifier call data."""
    proof, signals = full_prove(circuit, inputs, key)
    return encode(proof, signals)


__all__ = [
    "Keyring",
    "ProvingKey",
    "Verifier",
    "VerifyingKey",
    "WitnessError",
    "full_prove",
    "prove",
    "prove_call",
    "setup",
    "verify",
]
