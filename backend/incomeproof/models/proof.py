"""
Income Proof - Proof Models

ZKProof is produced by the external prover (a black box) and consumed here.
ProofSubmissionView is the backend's tracked state of an in-flight proof.
ProofRecord / ProofValidation are the indexer read model used by verifiers.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from ..errors import InvalidNullifierError, MalformedProofResponseError, ProofValidationError


NULLIFIER_PATTERN = re.compile(r"^[0-9a-fA-F]{64}$")
INTEGER_PATTERN = re.compile(r"^-?[0-9]+$")

# Largest integer both sides of the wire represent exactly (2**53 - 1)
MAX_THRESHOLD = 9_007_199_254_740_991


class CircuitType(str, Enum):
    """Circuits the prover accepts."""
    VERIFY_INCOME = "verifyIncome"
    VERIFY_ASSETS = "verifyAssets"
    VERIFY_CREDITWORTHINESS = "verifyCreditworthiness"


class ProofStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ProofStatus.CONFIRMED, ProofStatus.FAILED)


def parse_circuit(circuit: Any) -> CircuitType:
    try:
        return CircuitType(circuit)
    except ValueError:
        valid = ", ".join(c.value for c in CircuitType)
        raise ProofValidationError(f"Invalid circuit type. Must be one of: {valid}")


def validate_nullifier(nullifier: Any) -> str:
    if not isinstance(nullifier, str) or not NULLIFIER_PATTERN.match(nullifier):
        raise InvalidNullifierError("Nullifier must be 64 hex characters")
    return nullifier


def _is_finite_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def parse_threshold(raw: Any) -> int:
    """
    Threshold carried as publicInputs[0].

    Must be a finite whole number; "5000" and "5000.0" both give 5000,
    while "5000.5", "nan", "inf" and "1e400" are rejected.
    """
    text = str(raw).strip()
    if INTEGER_PATTERN.match(text):
        return int(text)
    if "_" in text:
        raise MalformedProofResponseError("publicInputs[0] must be the numeric threshold")
    try:
        value = float(text)
    except ValueError:
        raise MalformedProofResponseError("publicInputs[0] must be the numeric threshold")
    if not math.isfinite(value) or not value.is_integer():
        raise MalformedProofResponseError("publicInputs[0] must be a finite whole number")
    return int(value)


@dataclass(frozen=True)
class PublicOutputs:
    nullifier: str
    timestamp: int  # Unix seconds
    expires_at: int  # Unix seconds, strictly after timestamp

    @classmethod
    def from_dict(cls, data: Any) -> "PublicOutputs":
        if not isinstance(data, Mapping):
            raise MalformedProofResponseError("publicOutputs must be an object")
        nullifier = data.get("nullifier")
        timestamp = data.get("timestamp")
        expires_at = data.get("expiresAt")
        if not isinstance(nullifier, str) or not NULLIFIER_PATTERN.match(nullifier):
            raise MalformedProofResponseError("publicOutputs.nullifier must be 64 hex characters")
        if not _is_finite_number(timestamp):
            raise MalformedProofResponseError("publicOutputs.timestamp must be a number")
        if not _is_finite_number(expires_at):
            raise MalformedProofResponseError("publicOutputs.expiresAt must be a number")
        if expires_at <= timestamp:
            raise MalformedProofResponseError("publicOutputs.expiresAt must be after timestamp")
        return cls(nullifier=nullifier, timestamp=int(timestamp), expires_at=int(expires_at))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nullifier": self.nullifier,
            "timestamp": self.timestamp,
            "expiresAt": self.expires_at,
        }


@dataclass(frozen=True)
class ZKProof:
    proof: str  # Opaque encoded proof blob
    public_inputs: List[str]  # First element is the threshold
    public_outputs: PublicOutputs

    @property
    def threshold(self) -> int:
        return parse_threshold(self.public_inputs[0])

    @property
    def nullifier(self) -> str:
        return self.public_outputs.nullifier

    @classmethod
    def from_prover_response(cls, body: Any, threshold: int) -> "ZKProof":
        """
        Strictly validate the prover's answer.

        A malformed proof must never reach the ledger, so anything other than
        {proof: str, publicOutputs: {nullifier, timestamp, expiresAt}} is rejected.
        """
        if not isinstance(body, Mapping):
            raise MalformedProofResponseError("Prover response must be an object")
        proof = body.get("proof")
        if not isinstance(proof, str) or not proof:
            raise MalformedProofResponseError("Prover response is missing the proof blob")
        outputs = PublicOutputs.from_dict(body.get("publicOutputs"))
        return cls(proof=proof, public_inputs=[str(threshold)], public_outputs=outputs)

    @classmethod
    def from_dict(cls, data: Any) -> "ZKProof":
        if not isinstance(data, Mapping):
            raise MalformedProofResponseError("Proof must be an object")
        proof = data.get("proof")
        inputs = data.get("publicInputs")
        if not isinstance(proof, str) or not proof:
            raise MalformedProofResponseError("Proof blob must be a non-empty string")
        if not isinstance(inputs, list) or not inputs or not all(isinstance(i, str) for i in inputs):
            raise MalformedProofResponseError("publicInputs must be a non-empty list of strings")
        if not 0 <= parse_threshold(inputs[0]) <= MAX_THRESHOLD:
            raise MalformedProofResponseError("publicInputs[0] must be a non-negative threshold")
        return cls(
            proof=proof,
            public_inputs=list(inputs),
            public_outputs=PublicOutputs.from_dict(data.get("publicOutputs")),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proof": self.proof,
            "publicInputs": list(self.public_inputs),
            "publicOutputs": self.public_outputs.to_dict(),
        }


@dataclass(frozen=True)
class SubmissionReceipt:
    proof_id: str
    tx_hash: Optional[str]
    status: ProofStatus


@dataclass(frozen=True)
class ProofSubmissionView:
    proof_id: str
    nullifier: str
    tx_hash: Optional[str]
    threshold: int
    status: ProofStatus
    submitted_at: int
    expires_at: int
    confirmed_at: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Any) -> "ProofSubmissionView":
        if not isinstance(data, Mapping):
            raise ValueError("Proof submission must be an object")
        try:
            return cls(
                proof_id=data["proofId"],
                nullifier=data["nullifier"],
                tx_hash=data.get("txHash"),
                threshold=int(data["threshold"]),
                status=ProofStatus(data["status"]),
                submitted_at=int(data["submittedAt"]),
                expires_at=int(data["expiresAt"]),
                confirmed_at=int(data["confirmedAt"]) if data.get("confirmedAt") is not None else None,
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed proof submission: {e}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "proofId": self.proof_id,
            "nullifier": self.nullifier,
            "txHash": self.tx_hash,
            "threshold": self.threshold,
            "status": self.status.value,
            "submittedAt": self.submitted_at,
            "confirmedAt": self.confirmed_at,
            "expiresAt": self.expires_at,
        }


@dataclass(frozen=True)
class ProofRecord:
    """Indexer read model. is_valid here is the indexer's (possibly stale) flag."""
    nullifier: str
    threshold: int
    timestamp: int
    expires_at: int
    user_did: str
    is_valid: bool
    is_expired: bool

    @classmethod
    def from_dict(cls, data: Any) -> "ProofRecord":
        if not isinstance(data, Mapping):
            raise ValueError("Proof record must be an object")
        try:
            return cls(
                nullifier=str(data["nullifier"]),
                threshold=int(data["threshold"]),
                timestamp=int(data["timestamp"]),
                expires_at=int(data["expiresAt"]),
                user_did=str(data["userDID"]),
                is_valid=bool(data["isValid"]),
                is_expired=bool(data.get("isExpired", False)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed proof record: {e}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "nullifier": self.nullifier,
            "threshold": self.threshold,
            "timestamp": self.timestamp,
            "expiresAt": self.expires_at,
            "userDID": self.user_did,
            "isValid": self.is_valid,
            "isExpired": self.is_expired,
        }


@dataclass(frozen=True)
class ProofValidation:
    """Verifier answer; is_valid is recomputed at query time."""
    is_valid: bool
    threshold: int
    timestamp: int
    expires_at: int
    user_did: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isValid": self.is_valid,
            "threshold": self.threshold,
            "timestamp": self.timestamp,
            "expiresAt": self.expires_at,
            "userDID": self.user_did,
        }


@dataclass
class ProofFilters:
    """Conjunctive indexer filters; None means 'not filtered'."""
    user_did: Optional[str] = None
    min_threshold: Optional[int] = None
    is_valid: Optional[bool] = None

    def to_variables(self) -> Dict[str, Any]:
        variables: Dict[str, Any] = {}
        if self.user_did is not None:
            variables["userDID"] = self.user_did
        if self.min_threshold is not None:
            variables["minThreshold"] = self.min_threshold
        if self.is_valid is not None:
            variables["isValid"] = self.is_valid
        return variables

    def matches(self, record: ProofRecord) -> bool:
        if self.user_did is not None and record.user_did != self.user_did:
            return False
        if self.min_threshold is not None and record.threshold < self.min_threshold:
            return False
        if self.is_valid is not None and record.is_valid != self.is_valid:
            return False
        return True


@dataclass
class PendingProof:
    """Client-side staging entry for a proof awaiting submission."""
    circuit: CircuitType
    threshold: int
    witness_hash: str
    proof: Optional[ZKProof] = None
