"""
Income Proof - Error Taxonomy

Every failure the witness/proof core can produce is one of these classes.
Callers branch on the class (or its ``code``), never on message text.

Families:
- ValidationError: detected before any network or storage side effect
- NotFoundError: something is absent (not broken)
- AuthorizationError: the caller may not see the record
- ExternalServiceError: a collaborator is down, slow or unreachable
- IntegrityViolationError: replay, tampering, hash mismatch
- SubmissionError: the submission pipeline refused or was refused
"""
from typing import Optional


class IncomeProofError(Exception):
    """Base class for all domain errors."""

    code = "INCOME_PROOF_ERROR"

    def __init__(self, message: str = "", *, code: Optional[str] = None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        if code is not None:
            self.code = code


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationError(IncomeProofError):
    code = "VALIDATION_ERROR"


class WitnessValidationError(ValidationError):
    code = "INVALID_WITNESS"


class ProofValidationError(ValidationError):
    code = "INVALID_PROOF"


class MalformedProofResponseError(ProofValidationError):
    code = "MALFORMED_PROOF_RESPONSE"


class InvalidNullifierError(ProofValidationError):
    code = "INVALID_NULLIFIER"


# =============================================================================
# NOT FOUND
# =============================================================================

class NotFoundError(IncomeProofError):
    code = "NOT_FOUND"


class DataSourceNotLinkedError(NotFoundError):
    """The user has never linked the data source (business condition, not a fault)."""
    code = "DATA_SOURCE_NOT_LINKED"

    def __init__(self, source: str, message: str = ""):
        super().__init__(message or f"No linked {source} source for this user")
        self.source = source


class WitnessNotFoundError(NotFoundError):
    code = "WITNESS_NOT_FOUND"


class ProofNotFoundError(NotFoundError):
    code = "PROOF_NOT_FOUND"


# =============================================================================
# AUTHORIZATION
# =============================================================================

class AuthorizationError(IncomeProofError):
    code = "FORBIDDEN"


class WitnessAccessDeniedError(AuthorizationError):
    code = "WITNESS_ACCESS_DENIED"


# =============================================================================
# EXTERNAL DEPENDENCIES
# =============================================================================

class ExternalServiceError(IncomeProofError):
    code = "EXTERNAL_SERVICE_ERROR"


class DataSourceUnavailableError(ExternalServiceError):
    code = "DATA_SOURCE_UNAVAILABLE"

    def __init__(self, source: str, message: str = ""):
        super().__init__(message or f"Could not reach {source} source")
        self.source = source


class ProverUnreachableError(ExternalServiceError):
    code = "PROVER_UNREACHABLE"


class ProverTimeoutError(ExternalServiceError):
    code = "PROVER_TIMEOUT"


class ProverServiceError(ExternalServiceError):
    """The prover answered with an error status."""
    code = "PROVER_ERROR"

    def __init__(self, message: str = "", *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class LedgerUnavailableError(ExternalServiceError):
    code = "LEDGER_UNAVAILABLE"


class IndexerError(ExternalServiceError):
    code = "INDEXER_ERROR"


class NetworkError(ExternalServiceError):
    code = "NETWORK_ERROR"


class MalformedApiResponseError(NetworkError):
    """A 2xx answer whose body could not be read."""
    code = "MALFORMED_API_RESPONSE"


# =============================================================================
# INTEGRITY
# =============================================================================

class IntegrityViolationError(IncomeProofError):
    code = "INTEGRITY_VIOLATION"


class TamperedCiphertextError(IntegrityViolationError):
    code = "TAMPERED_CIPHERTEXT"


class WitnessIntegrityError(IntegrityViolationError):
    code = "WITNESS_HASH_MISMATCH"


# =============================================================================
# SUBMISSION
# =============================================================================

class SubmissionError(IncomeProofError):
    code = "SUBMISSION_ERROR"


class WalletNotConnectedError(SubmissionError):
    code = "WALLET_NOT_CONNECTED"


class SignatureFailedError(SubmissionError):
    code = "SIGNATURE_FAILED"


class SubmissionRejectedError(SubmissionError):
    code = "SUBMISSION_REJECTED"

    def __init__(self, message: str = "", *, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class ReplayDetectedError(SubmissionRejectedError, IntegrityViolationError):
    """A proof with this nullifier was already submitted."""
    code = "NULLIFIER_ALREADY_USED"

    def __init__(self, nullifier: str = "", message: str = ""):
        super().__init__(message or "Proof with this nullifier already exists", status_code=409)
        self.nullifier = nullifier


class InvalidStatusTransitionError(IncomeProofError):
    code = "INVALID_STATUS_TRANSITION"
