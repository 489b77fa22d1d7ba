"""
Proof Status State Machine

pending -> confirmed | pending -> failed

Terminal states are final. Re-applying the current status is a no-op so
repeated polling stays side-effect free. confirmed_at is set only when a
proof becomes confirmed, and the validity window starts at that moment.
"""
import math
import time
from typing import Optional

from ..errors import InvalidStatusTransitionError
from ..models.db_models import ProofSubmissionDB
from ..models.proof import ProofStatus, ProofSubmissionView


# =============================================================================
# TRANSITIONS
# =============================================================================

ALLOWED_TRANSITIONS = {
    ProofStatus.PENDING: {ProofStatus.CONFIRMED, ProofStatus.FAILED},
    ProofStatus.CONFIRMED: set(),  # Terminal state
    ProofStatus.FAILED: set(),  # Terminal state
}


def can_transition(current: ProofStatus, target: ProofStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[ProofStatus(current)]


def transition(
    submission: ProofSubmissionDB,
    target: ProofStatus,
    now: int,
    validity_seconds: int,
    reason: Optional[str] = None,
) -> bool:
    """
    Move a submission to `target`.

    Returns True if the row changed, False if it already had that status.
    Raises InvalidStatusTransitionError for backward or post-terminal moves.
    """
    current = ProofStatus(submission.status)
    target = ProofStatus(target)
    if current == target:
        return False
    if not can_transition(current, target):
        raise InvalidStatusTransitionError(
            f"Cannot move proof {submission.proof_id} from {current.value} to {target.value}"
        )

    submission.status = target
    if target == ProofStatus.CONFIRMED:
        submission.confirmed_at = now
        submission.expires_at = now + validity_seconds
    elif target == ProofStatus.FAILED:
        submission.failure_reason = (reason or "")[:500] or None
    return True


def to_view(submission: ProofSubmissionDB) -> ProofSubmissionView:
    return ProofSubmissionView(
        proof_id=submission.proof_id,
        nullifier=submission.nullifier,
        tx_hash=submission.tx_hash,
        threshold=submission.threshold,
        status=ProofStatus(submission.status),
        submitted_at=submission.submitted_at,
        confirmed_at=submission.confirmed_at,
        expires_at=submission.expires_at,
    )


# =============================================================================
# EXPIRY
# =============================================================================

SECONDS_PER_DAY = 24 * 60 * 60


def remaining_validity(expires_at: int, now: Optional[float] = None) -> int:
    """Seconds until expiry; 0 once expired."""
    now = time.time() if now is None else now
    return max(0, int(expires_at - now))


def is_expired(expires_at: int, now: Optional[float] = None) -> bool:
    now = time.time() if now is None else now
    return now >= expires_at


def is_expiring_soon(expires_at: int, horizon_seconds: int, now: Optional[float] = None) -> bool:
    """True if still valid but within `horizon_seconds` of expiry."""
    now = time.time() if now is None else now
    return not is_expired(expires_at, now) and expires_at - now <= horizon_seconds


def days_until_expiry(expires_at: int, now: Optional[float] = None) -> int:
    now = time.time() if now is None else now
    return math.ceil((expires_at - now) / SECONDS_PER_DAY)
