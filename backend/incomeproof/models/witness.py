"""
Income Proof - Witness Models

The Witness is the canonical private record a user proves facts about.
It is built fresh from live sources, hashed, and never mutated afterwards;
a newer witness supersedes it with a newer timestamp.

Wire format uses camelCase keys (shared with the client-side hasher);
Python attributes are snake_case.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping

from ..errors import WitnessValidationError


HEX64_PATTERN = re.compile(r"^[0-9a-f]{64}$")

# attribute name -> wire name
WITNESS_FIELDS: Dict[str, str] = {
    "income": "income",
    "employment_months": "employmentMonths",
    "employer_hash": "employerHash",
    "assets": "assets",
    "liabilities": "liabilities",
    "credit_score": "creditScore",
    "ssn_verified": "ssnVerified",
    "selfie_verified": "selfieVerified",
    "document_verified": "documentVerified",
    "timestamp": "timestamp",
}

NUMERIC_FIELDS = ("income", "assets", "liabilities", "credit_score")
INTEGER_FIELDS = ("employment_months", "timestamp")
BOOLEAN_FIELDS = ("ssn_verified", "selfie_verified", "document_verified")


def _is_number(value: Any) -> bool:
    # bool is an int subclass; a boolean is never a valid amount
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _check_number(name: str, value: Any) -> None:
    if not _is_number(value):
        raise WitnessValidationError(f"Witness field '{name}' must be a number")
    if not math.isfinite(value):
        raise WitnessValidationError(f"Witness field '{name}' must be finite")
    if value < 0:
        raise WitnessValidationError(f"Witness field '{name}' must be non-negative")


def _check_integer(name: str, value: Any) -> None:
    _check_number(name, value)
    if isinstance(value, float) and not value.is_integer():
        raise WitnessValidationError(f"Witness field '{name}' must be an integer")


@dataclass(frozen=True)
class Witness:
    income: float
    employment_months: int
    employer_hash: str
    assets: float
    liabilities: float
    credit_score: float
    ssn_verified: bool
    selfie_verified: bool
    document_verified: bool
    timestamp: int  # Unix milliseconds

    def __post_init__(self):
        self.validate()

    def validate(self) -> None:
        """Raise WitnessValidationError unless every field is present and well-typed."""
        for name in NUMERIC_FIELDS:
            _check_number(name, getattr(self, name))
        for name in INTEGER_FIELDS:
            _check_integer(name, getattr(self, name))
        for name in BOOLEAN_FIELDS:
            if not isinstance(getattr(self, name), bool):
                raise WitnessValidationError(f"Witness field '{name}' must be a boolean")
        if not isinstance(self.employer_hash, str) or not HEX64_PATTERN.match(self.employer_hash):
            raise WitnessValidationError(
                "Witness field 'employer_hash' must be 64 lowercase hex characters"
            )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Witness":
        """
        Build a witness from its wire form.

        Every field is required; a missing key is a validation error and is
        never defaulted.
        """
        if not isinstance(data, Mapping):
            raise WitnessValidationError("Witness must be an object")
        missing = [wire for wire in WITNESS_FIELDS.values() if wire not in data]
        if missing:
            raise WitnessValidationError(f"Witness is missing fields: {', '.join(missing)}")
        unknown = sorted(set(data) - set(WITNESS_FIELDS.values()))
        if unknown:
            raise WitnessValidationError(f"Witness has unknown fields: {', '.join(unknown)}")
        values = {attr: data[wire] for attr, wire in WITNESS_FIELDS.items()}
        if isinstance(values["employment_months"], float) and values["employment_months"].is_integer():
            values["employment_months"] = int(values["employment_months"])
        if isinstance(values["timestamp"], float) and values["timestamp"].is_integer():
            values["timestamp"] = int(values["timestamp"])
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        """Wire form (camelCase keys)."""
        return {wire: getattr(self, attr) for attr, wire in WITNESS_FIELDS.items()}


@dataclass(frozen=True)
class GeneratedWitness:
    """A freshly constructed witness together with its content hash."""
    witness: Witness
    witness_hash: str


@dataclass
class StoredWitness:
    """
    Persisted, encrypted-at-rest form of a witness.

    iv and salt are not secret; they are required to decrypt.
    scheme_version and kdf_iterations pin the derivation used at write time
    so older records stay decryptable.
    """
    id: str
    user_id: str
    encrypted_payload: str
    iv: str
    salt: str
    timestamp: int
    hash: str
    scheme_version: int = 1
    kdf_iterations: int = 100_000

    def to_record(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "encrypted_payload": self.encrypted_payload,
            "iv": self.iv,
            "salt": self.salt,
            "timestamp": self.timestamp,
            "hash": self.hash,
            "scheme_version": self.scheme_version,
            "kdf_iterations": self.kdf_iterations,
        }

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> "StoredWitness":
        return cls(
            id=record["id"],
            user_id=record["user_id"],
            encrypted_payload=record["encrypted_payload"],
            iv=record["iv"],
            salt=record["salt"],
            timestamp=int(record["timestamp"]),
            hash=record["hash"],
            scheme_version=int(record.get("scheme_version", 1)),
            kdf_iterations=int(record.get("kdf_iterations", 100_000)),
        )
