"""
Proof Status Poller (backend)

Single background task that moves pending submissions to a terminal state
once the ledger node reports on their transaction.

AUTHORITY: SYSTEM - runs automatically; per-row failures are recorded and
the row is retried on the next cycle.
"""
import asyncio
import logging
import time
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session, sessionmaker

from ..config import PROOF_VALIDITY_SECONDS, PollerSettings
from ..errors import ProofNotFoundError
from ..models.db_models import ProofSubmissionDB
from ..models.proof import ProofStatus, ProofSubmissionView
from .ledger import LedgerNodeClient
from .proof_status import to_view
from .proof_submission import ProofSubmissionService

logger = logging.getLogger(__name__)


class ProofStatusPoller:
    """Polls the ledger node for pending proof submissions."""

    def __init__(
        self,
        session_factory: sessionmaker,
        ledger: LedgerNodeClient,
        settings: Optional[PollerSettings] = None,
        validity_seconds: int = PROOF_VALIDITY_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.session_factory = session_factory
        self.ledger = ledger
        self.settings = settings or PollerSettings()
        self.validity_seconds = validity_seconds
        self.clock = clock
        self._task: Optional[asyncio.Task] = None

    def _service(self, db: Session) -> ProofSubmissionService:
        return ProofSubmissionService(db, self.ledger, self.validity_seconds, self.clock)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # =========================================================================
    # POLLING
    # =========================================================================

    async def poll_once(self) -> Dict[str, Any]:
        """
        One cycle over up to `batch_size` pending rows, oldest first.

        Rows without a tx hash are skipped; a ledger error on one row does
        not stop the others.
        """
        confirmed = 0
        failed = 0
        errors = []

        db = self.session_factory()
        try:
            service = self._service(db)
            pending = (
                db.query(ProofSubmissionDB)
                .filter(ProofSubmissionDB.status == ProofStatus.PENDING)
                .filter(ProofSubmissionDB.tx_hash.isnot(None))
                .order_by(ProofSubmissionDB.submitted_at.asc())
                .limit(self.settings.batch_size)
                .all()
            )

            for submission in pending:
                try:
                    if await service.refresh(submission):
                        if submission.status == ProofStatus.CONFIRMED:
                            confirmed += 1
                        else:
                            failed += 1
                except Exception as e:
                    db.rollback()
                    logger.error(f"Error checking status for proof {submission.proof_id}: {e}")
                    errors.append({"proof_id": submission.proof_id, "error": str(e)})
        finally:
            db.close()

        if confirmed or failed:
            logger.info(f"Poll cycle: {confirmed} confirmed, {failed} failed, {len(pending)} checked")

        return {
            "checked": len(pending),
            "confirmed": confirmed,
            "failed": failed,
            "errors": len(errors),
            "details": errors,
        }

    async def poll_specific(self, proof_id: str) -> ProofSubmissionView:
        """Refresh one submission immediately and return its current view."""
        db = self.session_factory()
        try:
            submission = db.query(ProofSubmissionDB).filter(ProofSubmissionDB.proof_id == proof_id).first()
            if submission is None:
                raise ProofNotFoundError(f"Proof {proof_id} not found")
            await self._service(db).refresh(submission)
            return to_view(submission)
        finally:
            db.close()

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def _run(self) -> None:
        logger.info(f"Proof status poller started (interval {self.settings.interval}s)")
        while True:
            try:
                await self.poll_once()
            except Exception as e:
                logger.error(f"Poll cycle failed: {e}")
            await asyncio.sleep(self.settings.interval)

    def start(self) -> None:
        """Start the polling task. Calling start() on a running poller is a no-op."""
        if self.running:
            logger.warning("Proof status poller already running")
            return
        self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Cancel the polling task and wait for it to finish. Idempotent."""
        if self._task is None:
            return
        task, self._task = self._task, None
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Proof status poller stopped")
