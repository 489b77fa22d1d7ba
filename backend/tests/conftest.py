"""
Shared fixtures: a canonical witness, an in-memory database and fake
ledger / prover / indexer collaborators.
"""
import time
from typing import Dict, List, Optional
from uuid import uuid4

import pytest

from incomeproof.config import DatabaseSettings, Settings
from incomeproof.database import build_engine, build_session_factory, init_db
from incomeproof.models.db_models import UserDB
from incomeproof.models.proof import ProofFilters, ProofRecord, PublicOutputs, ZKProof
from incomeproof.models.witness import Witness
from incomeproof.services.hashing import hash_employer
from incomeproof.services.ledger import TransactionStatus


EMPLOYER_HASH = hash_employer("Acme Corp")


def make_witness(**overrides) -> Witness:
    values = dict(
        income=5000,
        employment_months=12,
        employer_hash=EMPLOYER_HASH,
        assets=50000,
        liabilities=10000,
        credit_score=720,
        ssn_verified=True,
        selfie_verified=True,
        document_verified=True,
        timestamp=1234567890000,
    )
    values.update(overrides)
    return Witness(**values)


def make_proof(nullifier: str = "b" * 64, threshold: int = 5000, timestamp: int = 1_700_000_000) -> ZKProof:
    return ZKProof(
        proof="0xproofblob",
        public_inputs=[str(threshold)],
        public_outputs=PublicOutputs(nullifier=nullifier, timestamp=timestamp, expires_at=timestamp + 2_592_000),
    )


# =============================================================================
# FAKE COLLABORATORS
# =============================================================================

class FakeLedger:
    """In-memory ledger node: broadcasts are recorded, statuses set by the test."""

    def __init__(self):
        self.broadcasts: List[Dict] = []
        self.commits: List[Dict] = []
        self.statuses: Dict[str, Optional[TransactionStatus]] = {}
        self.fail_broadcast: Optional[Exception] = None

    async def broadcast_proof(self, signed_tx, proof, wallet_address):
        if self.fail_broadcast is not None:
            raise self.fail_broadcast
        tx_hash = f"tx_{len(self.broadcasts):04d}_{proof.nullifier[:8]}"
        self.broadcasts.append({"tx": signed_tx, "nullifier": proof.nullifier, "sender": wallet_address})
        return tx_hash

    async def commit_hash(self, witness_hash, user_id):
        self.commits.append({"witness_hash": witness_hash, "user_id": user_id})
        return f"commit_{len(self.commits):04d}"

    async def get_transaction_status(self, tx_hash):
        return self.statuses.get(tx_hash)

    def confirm(self, tx_hash, height=10):
        self.statuses[tx_hash] = TransactionStatus(hash=tx_hash, confirmed=True, failed=False, height=height)

    def fail(self, tx_hash, log="out of gas"):
        self.statuses[tx_hash] = TransactionStatus(hash=tx_hash, confirmed=False, failed=True, log=log)


class FakeIndexer:
    """Indexer query layer backed by a list of records."""

    def __init__(self, records: Optional[List[ProofRecord]] = None, error: Optional[Exception] = None):
        self.records = list(records or [])
        self.error = error
        self.filter_calls: List[ProofFilters] = []

    def _check(self):
        if self.error is not None:
            raise self.error

    async def proof_by_nullifier(self, nullifier):
        self._check()
        return next((r for r in self.records if r.nullifier == nullifier), None)

    async def proofs_by_user(self, user_did):
        self._check()
        return [r for r in self.records if r.user_did == user_did]

    async def proofs_with_filters(self, filters):
        self._check()
        self.filter_calls.append(filters)
        return [r for r in self.records if filters.matches(r)]

    async def all_proofs(self, limit=50, offset=0):
        self._check()
        return self.records[offset:offset + limit]

    async def health_check(self):
        return self.error is None


def make_record(nullifier="a" * 64, user_did="did:example:alice", threshold=5000,
                expires_in=86_400, is_valid=True, now=None) -> ProofRecord:
    now = int(time.time()) if now is None else now
    return ProofRecord(
        nullifier=nullifier,
        threshold=threshold,
        timestamp=now - 60,
        expires_at=now + expires_in,
        user_did=user_did,
        is_valid=is_valid,
        is_expired=expires_in <= 0,
    )


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def sample_witness():
    return make_witness()


@pytest.fixture
def settings():
    return Settings(database=DatabaseSettings(url="sqlite:///:memory:"))


@pytest.fixture
def engine(settings):
    engine = build_engine(settings.database)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def user(db):
    user = UserDB(id=str(uuid4()), email="alice@example.com", password_hash="x", did="did:example:alice")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def fake_ledger():
    return FakeLedger()
