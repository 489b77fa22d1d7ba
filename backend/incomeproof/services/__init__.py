"""
Income Proof Services

Witness side:
- hashing: canonical witness hash, employer hash
- witness_builder: concurrent fetch from the data sources into one Witness
- encryption / witness_store: encrypted on-device witness storage

Proof side:
- proof_server: external prover client
- pipeline: client generate -> sign -> submit
- proof_submission / ledger: backend persistence and ledger broadcast
- status_poller / status_tracker: pending -> confirmed | failed
- client: the on-device components wired from Settings
"""

from .hashing import hash_witness, hash_employer, verify_witness_hash, canonical_witness_json
from .witness_builder import WitnessBuilder
from .witness_store import LocalWitnessStore, InMemoryKeyValueStore, SqlAlchemyKeyValueStore
from .proof_server import ProverClient
from .ledger import LedgerNodeClient, TransactionStatus
from .proof_submission import ProofSubmissionService, SubmitProofRequest
from .pipeline import ProofSubmissionPipeline, PendingProofStaging
from .status_poller import ProofStatusPoller
from .status_tracker import ProofStatusTracker, TrackingResult, TrackingHandle
from .client import IncomeProofClient

__all__ = [
    "hash_witness",
    "hash_employer",
    "verify_witness_hash",
    "canonical_witness_json",
    "WitnessBuilder",
    "LocalWitnessStore",
    "InMemoryKeyValueStore",
    "SqlAlchemyKeyValueStore",
    "ProverClient",
    "LedgerNodeClient",
    "TransactionStatus",
    "ProofSubmissionService",
    "SubmitProofRequest",
    "ProofSubmissionPipeline",
    "PendingProofStaging",
    "ProofStatusPoller",
    "ProofStatusTracker",
    "TrackingResult",
    "TrackingHandle",
    "IncomeProofClient",
]
