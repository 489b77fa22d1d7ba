"""
Witness Builder

Aggregates income, assets, liabilities, credit signal and identity status
into one canonical Witness.

All five reads run concurrently. Construction is all-or-nothing: the first
failing source cancels the others and the whole build fails. A partial
witness with silently zeroed fields would misrepresent financial standing.
"""
import asyncio
import logging
import time
from typing import Any, Callable, Dict

from ..errors import DataSourceUnavailableError, IncomeProofError
from ..models.witness import GeneratedWitness, Witness
from .data_sources import (
    AssetsSource,
    IdentitySource,
    IncomeSource,
    LiabilitiesSource,
    SignalSource,
    VerificationStatus,
)
from .hashing import hash_employer, hash_witness

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class WitnessBuilder:
    """Builds witnesses from injected data-source clients."""

    def __init__(
        self,
        income: IncomeSource,
        assets: AssetsSource,
        liabilities: LiabilitiesSource,
        signal: SignalSource,
        identity: IdentitySource,
        clock_ms: Callable[[], int] = _now_ms,
    ):
        self.income = income
        self.assets = assets
        self.liabilities = liabilities
        self.signal = signal
        self.identity = identity
        self.clock_ms = clock_ms

    async def _fetch_all(self, user_id: str) -> Dict[str, Any]:
        tasks = {
            "income": asyncio.ensure_future(self.income.get_income(user_id)),
            "assets": asyncio.ensure_future(self.assets.get_assets(user_id)),
            "liabilities": asyncio.ensure_future(self.liabilities.get_liabilities(user_id)),
            "signal": asyncio.ensure_future(self.signal.get_signal(user_id)),
            "identity": asyncio.ensure_future(self.identity.get_verification_status(user_id)),
        }
        try:
            done, pending = await asyncio.wait(tasks.values(), return_when=asyncio.FIRST_EXCEPTION)
        except asyncio.CancelledError:
            for task in tasks.values():
                task.cancel()
            raise

        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        # Report the first failure in declaration order for a stable error
        for source, task in tasks.items():
            if task in done and not task.cancelled() and task.exception() is not None:
                error = task.exception()
                if isinstance(error, IncomeProofError):
                    raise error
                logger.error(f"Witness source '{source}' failed: {error!r}")
                raise DataSourceUnavailableError(source, f"{source} source failed: {error}") from error

        return {source: task.result() for source, task in tasks.items()}

    async def construct_witness(self, user_id: str) -> Witness:
        """
        Build a fresh witness for the user.

        Raises:
            DataSourceNotLinkedError: the user never linked a source
            DataSourceUnavailableError: a source could not be reached
            WitnessValidationError: a source returned an out-of-domain value
        """
        results = await self._fetch_all(user_id)
        income = results["income"]
        status = results["identity"] or VerificationStatus()

        witness = Witness(
            income=income.monthly_income,
            employment_months=income.employment_months,
            employer_hash=hash_employer(income.employer_name),
            assets=results["assets"].total_assets,
            liabilities=results["liabilities"].total_liabilities,
            credit_score=results["signal"].credit_score,
            # Unconfirmed sub-checks are False, never None
            ssn_verified=bool(status.ssn_verified),
            selfie_verified=bool(status.selfie_verified),
            document_verified=bool(status.document_verified),
            timestamp=self.clock_ms(),
        )
        logger.info(f"Constructed witness for user {user_id} at {witness.timestamp}")
        return witness

    async def generate(self, user_id: str) -> GeneratedWitness:
        witness = await self.construct_witness(user_id)
        return GeneratedWitness(witness=witness, witness_hash=hash_witness(witness))
