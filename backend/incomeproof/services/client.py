"""
Client-side wiring

Builds the on-device half of the system from one Settings object: the
encrypted witness store, the prover client, the submission pipeline and the
status tracker. The wallet and the bearer token come from the running
session, not from settings.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from ..config import Settings
from .pipeline import PendingProofStaging, ProofSubmissionPipeline
from .proof_server import ProverClient
from .signing import WalletSigner
from .status_tracker import ProofStatusTracker
from .submission_api import SubmissionApiClient
from .witness_store import KeyValueStore, LocalWitnessStore, SqlAlchemyKeyValueStore

logger = logging.getLogger(__name__)


@dataclass
class IncomeProofClient:
    store: LocalWitnessStore
    prover: ProverClient
    api: SubmissionApiClient
    pipeline: ProofSubmissionPipeline
    tracker: ProofStatusTracker

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        token: str,
        signer: WalletSigner,
        kv: Optional[KeyValueStore] = None,
    ) -> "IncomeProofClient":
        """
        Wire every client component from `settings`.

        `kv` overrides the store backend; by default it is the SQL database
        at settings.store.url.
        """
        store = LocalWitnessStore(
            kv if kv is not None else SqlAlchemyKeyValueStore.from_url(settings.store.url),
            kdf_iterations=settings.store.kdf_iterations,
        )
        prover = ProverClient(settings.prover)
        api = SubmissionApiClient(settings.client.api_url, token, timeout=settings.client.api_timeout)
        pipeline = ProofSubmissionPipeline(prover, signer, api, PendingProofStaging())
        tracker = ProofStatusTracker(api, settings.tracker)
        logger.info(f"Client wired against {settings.client.api_url} (prover {settings.prover.url})")
        return cls(store=store, prover=prover, api=api, pipeline=pipeline, tracker=tracker)

    @classmethod
    def from_env(cls, token: str, signer: WalletSigner) -> "IncomeProofClient":
        return cls.from_settings(Settings.from_env(), token, signer)

    async def close(self) -> None:
        await self.prover.close()
        await self.api.close()
