"""Board circuits, proof codec and the BN254 prover/verifier."""

from .circuits import CommitmentCircuit, PositionProofCircuit, WitnessError
from .codec import CallData, CodecError, CommitmentSignals, PositionSignals
from .prover import Keyring, Verifier, full_prove, prove_call

__all__ = [
    "CallData",
    "CodecError",
    "CommitmentCircuit",
    "CommitmentSignals",
    "Keyring",
    "PositionProofCircuit",
    "PositionSignals",
    "Verifier",
    "WitnessError",
    "full_prove",
    "prove_call",
]
