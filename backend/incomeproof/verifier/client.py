"""
Verifier Client

Stand-alone, read-only client for third-party verifiers (lenders, rental
platforms). It only ever talks to the indexer: no witnesses, no private data.

Validity is recomputed at call time from expiresAt; the indexer's own
isValid flag may be stale and is never enough on its own.

Only is_proof_valid downgrades errors (to False). get_valid_proof_count
propagates them: an undercount must never look like "verified zero".
"""
import logging
import time
from typing import Callable, List, Optional

from ..errors import IncomeProofError, ProofNotFoundError
from ..models.proof import ProofFilters, ProofRecord, ProofValidation
from .indexer import IndexerQuery

logger = logging.getLogger(__name__)


class VerifierClient:
    def __init__(self, indexer: IndexerQuery, clock: Callable[[], float] = time.time):
        self.indexer = indexer
        self.clock = clock

    def _is_live(self, record: ProofRecord) -> bool:
        return record.is_valid and self.clock() < record.expires_at

    async def verify_proof(self, nullifier: str) -> ProofValidation:
        """
        Check a proof by nullifier.

        Raises:
            ProofNotFoundError: the indexer has no proof with this nullifier
            IndexerError: the query failed
        """
        record = await self.indexer.proof_by_nullifier(nullifier)
        if record is None:
            raise ProofNotFoundError(f"Proof with nullifier {nullifier} not found")
        return ProofValidation(
            is_valid=self._is_live(record),
            threshold=record.threshold,
            timestamp=record.timestamp,
            expires_at=record.expires_at,
            user_did=record.user_did,
        )

    async def get_user_proofs(self, user_did: str) -> List[ProofRecord]:
        """Full history of a DID, valid or not."""
        return await self.indexer.proofs_by_user(user_did)

    async def get_proofs_with_filters(self, filters: Optional[ProofFilters] = None) -> List[ProofRecord]:
        return await self.indexer.proofs_with_filters(filters or ProofFilters())

    async def is_proof_valid(self, nullifier: str) -> bool:
        try:
            return (await self.verify_proof(nullifier)).is_valid
        except IncomeProofError as e:
            logger.info(f"Proof {nullifier} treated as invalid: {e}")
            return False

    async def get_valid_proof_count(self, user_did: str) -> int:
        proofs = await self.get_user_proofs(user_did)
        return sum(1 for p in proofs if self._is_live(p))
