"""
Local Encrypted Witness Store

Keeps witnesses on the user's device, encrypted at rest, keyed by owner.

Rules:
- Records are insert-only; a new witness is a new record.
- retrieve() checks ownership BEFORE attempting decryption.
- An ownership mismatch is an authorization error, never a not-found.
- The stored hash is re-checked after decryption.

The persistence substrate is any KeyValueStore (put / get / query_by_index /
delete). A SQLAlchemy-backed store is used on disk; an in-memory map in tests.
Single writer at a time is assumed; there is no cross-process locking.
"""
import json
import logging
from typing import Any, Dict, List, Optional, Protocol
from uuid import uuid4

from sqlalchemy import Column, String, Integer, BigInteger, Text, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from ..errors import (
    WitnessAccessDeniedError,
    WitnessIntegrityError,
    WitnessNotFoundError,
)
from ..models.witness import StoredWitness, Witness
from .encryption import (
    DEFAULT_ITERATIONS,
    SCHEME_VERSION,
    EncryptedPayload,
    OwnerIdentity,
    decrypt_payload,
    derive_owner_secret,
    encrypt_payload,
)
from .hashing import hash_witness

logger = logging.getLogger(__name__)

INDEXED_FIELDS = ("user_id", "timestamp")


# =============================================================================
# KEY-VALUE SUBSTRATE
# =============================================================================

class KeyValueStore(Protocol):
    def put(self, key: str, record: Dict[str, Any]) -> None: ...

    def get(self, key: str) -> Optional[Dict[str, Any]]: ...

    def query_by_index(self, field: str, value: Any) -> List[Dict[str, Any]]: ...

    def delete(self, key: str) -> None: ...


class InMemoryKeyValueStore:
    """Dict-backed store."""

    def __init__(self):
        self._records: Dict[str, Dict[str, Any]] = {}

    def put(self, key: str, record: Dict[str, Any]) -> None:
        self._records[key] = dict(record)

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        record = self._records.get(key)
        return dict(record) if record is not None else None

    def query_by_index(self, field: str, value: Any) -> List[Dict[str, Any]]:
        if field not in INDEXED_FIELDS:
            raise ValueError(f"No index on field '{field}'")
        return [dict(r) for r in self._records.values() if r.get(field) == value]

    def delete(self, key: str) -> None:
        self._records.pop(key, None)


LocalBase = declarative_base()


class LocalWitnessDB(LocalBase):
    """On-device table; kept apart from the backend schema."""
    __tablename__ = "local_witnesses"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), nullable=False, index=True)
    encrypted_payload = Column(Text, nullable=False)
    iv = Column(String(32), nullable=False)
    salt = Column(String(32), nullable=False)
    timestamp = Column(BigInteger, nullable=False, index=True)
    hash = Column(String(64), nullable=False)
    scheme_version = Column(Integer, nullable=False, default=SCHEME_VERSION)
    kdf_iterations = Column(Integer, nullable=False, default=DEFAULT_ITERATIONS)


def _row_to_record(row: LocalWitnessDB) -> Dict[str, Any]:
    return {
        "id": row.id,
        "user_id": row.user_id,
        "encrypted_payload": row.encrypted_payload,
        "iv": row.iv,
        "salt": row.salt,
        "timestamp": row.timestamp,
        "hash": row.hash,
        "scheme_version": row.scheme_version,
        "kdf_iterations": row.kdf_iterations,
    }


class SqlAlchemyKeyValueStore:
    """KeyValueStore over an embedded SQL database (SQLite file by default)."""

    def __init__(self, engine: Engine):
        self.engine = engine
        LocalBase.metadata.create_all(bind=engine)
        self._sessions = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    @classmethod
    def from_url(cls, url: str) -> "SqlAlchemyKeyValueStore":
        if url.startswith("sqlite") and ":memory:" in url:
            return cls(create_engine(url, connect_args={"check_same_thread": False}, poolclass=StaticPool))
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        return cls(create_engine(url, connect_args=connect_args))

    def put(self, key: str, record: Dict[str, Any]) -> None:
        with self._sessions() as db:
            fields = {k: v for k, v in record.items() if k != "id"}
            db.merge(LocalWitnessDB(id=key, **fields))
            db.commit()

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        with self._sessions() as db:
            row = db.get(LocalWitnessDB, key)
            return _row_to_record(row) if row is not None else None

    def query_by_index(self, field: str, value: Any) -> List[Dict[str, Any]]:
        if field not in INDEXED_FIELDS:
            raise ValueError(f"No index on field '{field}'")
        with self._sessions() as db:
            rows = db.query(LocalWitnessDB).filter(getattr(LocalWitnessDB, field) == value).all()
            return [_row_to_record(r) for r in rows]

    def delete(self, key: str) -> None:
        with self._sessions() as db:
            db.query(LocalWitnessDB).filter(LocalWitnessDB.id == key).delete(synchronize_session=False)
            db.commit()


# =============================================================================
# WITNESS STORE
# =============================================================================

class LocalWitnessStore:
    """Encrypted witness persistence over a KeyValueStore."""

    def __init__(self, kv: KeyValueStore, kdf_iterations: int = DEFAULT_ITERATIONS):
        self.kv = kv
        self.kdf_iterations = kdf_iterations

    def store(self, witness: Witness, owner: OwnerIdentity) -> str:
        """Encrypt and insert a new record. Returns its storage id."""
        witness.validate()
        plaintext = json.dumps(witness.to_dict(), sort_keys=True, separators=(",", ":"))
        payload = encrypt_payload(plaintext, derive_owner_secret(owner), self.kdf_iterations)
        stored = StoredWitness(
            id=str(uuid4()),
            user_id=owner.user_id,
            encrypted_payload=payload.ciphertext,
            iv=payload.iv,
            salt=payload.salt,
            timestamp=witness.timestamp,
            hash=hash_witness(witness),
            scheme_version=SCHEME_VERSION,
            kdf_iterations=self.kdf_iterations,
        )
        self.kv.put(stored.id, stored.to_record())
        logger.info(f"Stored encrypted witness {stored.id} for user {owner.user_id}")
        return stored.id

    def _decrypt(self, stored: StoredWitness, owner: OwnerIdentity) -> Witness:
        payload = EncryptedPayload(ciphertext=stored.encrypted_payload, iv=stored.iv, salt=stored.salt)
        plaintext = decrypt_payload(payload, derive_owner_secret(owner), stored.kdf_iterations)
        witness = Witness.from_dict(json.loads(plaintext))
        if hash_witness(witness) != stored.hash:
            raise WitnessIntegrityError(f"Witness {stored.id} does not match its stored hash")
        return witness

    def retrieve(self, storage_id: str, owner: OwnerIdentity) -> Witness:
        """
        Decrypt a stored witness for its owner.

        Raises:
            WitnessNotFoundError: no record with this id
            WitnessAccessDeniedError: the record belongs to someone else
            TamperedCiphertextError: authentication failed
            WitnessIntegrityError: plaintext does not match the stored hash
        """
        record = self.kv.get(storage_id)
        if record is None:
            raise WitnessNotFoundError(f"Witness {storage_id} not found")
        stored = StoredWitness.from_record(record)
        if stored.user_id != owner.user_id:
            logger.warning(f"Denied witness access for user {owner.user_id}")
            raise WitnessAccessDeniedError("Not authorized to access this witness")
        return self._decrypt(stored, owner)

    def list_for_owner(self, owner: OwnerIdentity) -> List[StoredWitness]:
        """Encrypted records of an owner, newest first."""
        records = [StoredWitness.from_record(r) for r in self.kv.query_by_index("user_id", owner.user_id)]
        return sorted(records, key=lambda s: s.timestamp, reverse=True)

    def get_latest(self, owner: OwnerIdentity) -> Witness:
        """The owner's witness with the greatest timestamp."""
        records = self.list_for_owner(owner)
        if not records:
            raise WitnessNotFoundError("No stored witness for this user")
        return self._decrypt(records[0], owner)

    def delete(self, storage_id: str) -> None:
        self.kv.delete(storage_id)

    def delete_all(self, owner: OwnerIdentity) -> int:
        records = self.kv.query_by_index("user_id", owner.user_id)
        for record in records:
            self.kv.delete(record["id"])
        logger.info(f"Deleted {len(records)} stored witnesses for user {owner.user_id}")
        return len(records)

    def has_any(self, owner: OwnerIdentity) -> bool:
        return len(self.kv.query_by_index("user_id", owner.user_id)) > 0
