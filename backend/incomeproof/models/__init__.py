"""Income Proof - Data Models"""
from .witness import Witness, GeneratedWitness, StoredWitness, WITNESS_FIELDS
from .proof import (
    # Enums
    CircuitType, ProofStatus,
    # Prover output
    PublicOutputs, ZKProof,
    # Submission tracking
    SubmissionReceipt, ProofSubmissionView, PendingProof,
    # Indexer read model
    ProofRecord, ProofValidation, ProofFilters,
    parse_circuit, parse_threshold, validate_nullifier,
)

__all__ = [
    "Witness", "GeneratedWitness", "StoredWitness", "WITNESS_FIELDS",
    "CircuitType", "ProofStatus",
    "PublicOutputs", "ZKProof",
    "SubmissionReceipt", "ProofSubmissionView", "PendingProof",
    "ProofRecord", "ProofValidation", "ProofFilters",
    "parse_circuit", "parse_threshold", "validate_nullifier",
]
