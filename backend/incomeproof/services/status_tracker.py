"""
Proof Status Tracker (client)

Polls the status endpoint immediately, then every `interval` seconds, until
the submission reaches a terminal state or `window` seconds have elapsed.
Running out of time is reported as "still pending", never as a failure;
the caller can track the same proof id again later.

The interval and the deadline belong to one task, so cancelling the
handle stops both.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Protocol

from ..config import TrackerSettings
from ..errors import NetworkError
from ..models.proof import ProofStatus, ProofSubmissionView
from .proof_status import SECONDS_PER_DAY, days_until_expiry, is_expiring_soon, remaining_validity

logger = logging.getLogger(__name__)


class StatusSource(Protocol):
    async def get_status(self, proof_id: str) -> ProofSubmissionView: ...


@dataclass(frozen=True)
class TrackingResult:
    proof_id: str
    status: ProofStatus
    view: Optional[ProofSubmissionView]
    timed_out: bool
    polls: int

    @property
    def still_pending(self) -> bool:
        return self.status == ProofStatus.PENDING


class TrackingHandle:
    """Cancellation handle for one tracking task."""

    def __init__(self, proof_id: str, task: asyncio.Task):
        self.proof_id = proof_id
        self._task = task

    @property
    def done(self) -> bool:
        return self._task.done()

    def cancel(self) -> None:
        self._task.cancel()

    async def result(self) -> TrackingResult:
        return await self._task


class ProofStatusTracker:
    def __init__(
        self,
        source: StatusSource,
        settings: Optional[TrackerSettings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ):
        self.source = source
        self.settings = settings or TrackerSettings()
        self.sleep = sleep
        self.clock = clock
        self.wall_clock = wall_clock

    async def track(self, proof_id: str) -> TrackingResult:
        """
        Poll until terminal or the window elapses.

        A NetworkError on one poll is logged and the next poll still happens.
        ProofNotFoundError propagates: an unknown proof id will not appear later.
        """
        deadline = self.clock() + self.settings.window
        view: Optional[ProofSubmissionView] = None
        polls = 0

        while True:
            polls += 1
            try:
                view = await self.source.get_status(proof_id)
            except NetworkError as e:
                logger.warning(f"Status poll {polls} for {proof_id} failed: {e}")

            if view is not None and view.status.is_terminal:
                logger.info(f"Proof {proof_id} reached {view.status.value} after {polls} polls")
                return TrackingResult(proof_id, view.status, view, timed_out=False, polls=polls)

            remaining = deadline - self.clock()
            if remaining <= 0:
                logger.info(f"Proof {proof_id} still pending after {self.settings.window:.0f}s")
                status = view.status if view is not None else ProofStatus.PENDING
                return TrackingResult(proof_id, status, view, timed_out=True, polls=polls)

            await self.sleep(min(self.settings.interval, remaining))

    def start(self, proof_id: str) -> TrackingHandle:
        return TrackingHandle(proof_id, asyncio.create_task(self.track(proof_id)))

    # =========================================================================
    # EXPIRY
    # =========================================================================

    def remaining_validity(self, view: ProofSubmissionView) -> int:
        return remaining_validity(view.expires_at, self.wall_clock())

    def is_expiring_soon(self, view: ProofSubmissionView) -> bool:
        horizon = self.settings.expiring_soon_days * SECONDS_PER_DAY
        return is_expiring_soon(view.expires_at, horizon, self.wall_clock())

    def days_until_expiry(self, view: ProofSubmissionView) -> int:
        return days_until_expiry(view.expires_at, self.wall_clock())
