"""
Proof Submission Service (backend)

Persists a ProofSubmission keyed by the proof's nullifier and broadcasts the
proof to the ledger node.

Order of operations inside one transaction:
1. Insert the pending row and flush. The UNIQUE constraint on nullifier
   rejects a replay atomically (no check-then-insert race).
2. Broadcast to the ledger node.
3. Record the tx hash and commit.

Any failure rolls the transaction back: no partial row survives.
"""
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import PROOF_VALIDITY_SECONDS
from ..errors import ProofNotFoundError, ProofValidationError, ReplayDetectedError
from ..models.db_models import ProofSubmissionDB
from ..models.proof import ProofStatus, ProofSubmissionView, SubmissionReceipt, ZKProof
from .ledger import LedgerNodeClient, TransactionStatus
from .proof_status import to_view, transition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SubmitProofRequest:
    proof: ZKProof
    wallet_signature: str
    wallet_address: str
    circuit: Optional[str] = None


class ProofSubmissionService:
    """Backend side of proof submission and status reads."""

    def __init__(
        self,
        db: Session,
        ledger: LedgerNodeClient,
        validity_seconds: int = PROOF_VALIDITY_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.db = db
        self.ledger = ledger
        self.validity_seconds = validity_seconds
        self.clock = clock

    def _new_proof_id(self) -> str:
        return f"proof_{uuid4().hex}"

    async def submit(self, user_id: str, request: SubmitProofRequest) -> SubmissionReceipt:
        """
        Register and broadcast a proof.

        Raises:
            ProofValidationError: missing signature / wallet address, bad threshold
            ReplayDetectedError: the nullifier was already submitted
            LedgerUnavailableError / NetworkError: broadcast failed
        """
        if not request.wallet_signature:
            raise ProofValidationError("Missing wallet signature")
        if not request.wallet_address:
            raise ProofValidationError("Missing wallet address")
        proof = request.proof
        threshold = proof.threshold
        if threshold < 0:
            raise ProofValidationError("Threshold must be a non-negative number")

        now = int(self.clock())
        submission = ProofSubmissionDB(
            id=str(uuid4()),
            user_id=user_id,
            proof_id=self._new_proof_id(),
            nullifier=proof.nullifier,
            circuit=request.circuit,
            threshold=threshold,
            wallet_address=request.wallet_address,
            status=ProofStatus.PENDING,
            submitted_at=now,
            expires_at=proof.public_outputs.expires_at,
        )
        self.db.add(submission)
        try:
            self.db.flush()
        except IntegrityError:
            self.db.rollback()
            logger.warning(f"Proof submission rejected - nullifier already used: {proof.nullifier}")
            raise ReplayDetectedError(proof.nullifier)

        try:
            tx_hash = await self.ledger.broadcast_proof(request.wallet_signature, proof, request.wallet_address)
        except Exception:
            self.db.rollback()
            logger.error(f"Broadcast failed for nullifier {proof.nullifier}; submission rolled back")
            raise

        submission.tx_hash = tx_hash
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            logger.warning(f"Concurrent submission won the race for nullifier {proof.nullifier}")
            raise ReplayDetectedError(proof.nullifier)

        logger.info(f"Proof submitted successfully: {submission.proof_id} (tx {tx_hash})")
        return SubmissionReceipt(proof_id=submission.proof_id, tx_hash=tx_hash, status=ProofStatus.PENDING)

    def get_submission(self, proof_id: str, user_id: Optional[str] = None) -> ProofSubmissionDB:
        query = self.db.query(ProofSubmissionDB).filter(ProofSubmissionDB.proof_id == proof_id)
        if user_id is not None:
            query = query.filter(ProofSubmissionDB.user_id == user_id)
        submission = query.first()
        if submission is None:
            raise ProofNotFoundError(f"Proof {proof_id} not found")
        return submission

    def get_status(self, proof_id: str, user_id: Optional[str] = None) -> ProofSubmissionView:
        return to_view(self.get_submission(proof_id, user_id))

    def list_for_user(self, user_id: str) -> List[ProofSubmissionView]:
        rows = (
            self.db.query(ProofSubmissionDB)
            .filter(ProofSubmissionDB.user_id == user_id)
            .order_by(ProofSubmissionDB.submitted_at.desc())
            .all()
        )
        return [to_view(r) for r in rows]

    # =========================================================================
    # LEDGER STATUS
    # =========================================================================

    def apply_ledger_status(self, submission: ProofSubmissionDB, tx_status: Optional[TransactionStatus]) -> bool:
        """Apply a ledger observation to a row. Returns True if the row changed."""
        if tx_status is None or ProofStatus(submission.status).is_terminal:
            return False
        now = int(self.clock())
        if tx_status.confirmed:
            changed = transition(submission, ProofStatus.CONFIRMED, now, self.validity_seconds)
            if changed:
                logger.info(f"Proof {submission.proof_id} confirmed at height {tx_status.height}")
            return changed
        if tx_status.failed:
            changed = transition(
                submission, ProofStatus.FAILED, now, self.validity_seconds, reason=tx_status.log
            )
            if changed:
                logger.warning(f"Proof {submission.proof_id} failed on ledger: {tx_status.log}")
            return changed
        return False

    async def refresh(self, submission: ProofSubmissionDB) -> bool:
        """Query the ledger once for a pending row and persist any transition."""
        if ProofStatus(submission.status) != ProofStatus.PENDING or not submission.tx_hash:
            return False
        tx_status = await self.ledger.get_transaction_status(submission.tx_hash)
        changed = self.apply_ledger_status(submission, tx_status)
        if changed:
            self.db.commit()
        return changed
