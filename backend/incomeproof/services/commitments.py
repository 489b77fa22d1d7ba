"""
Witness Commitment Service

Records a witness hash for a user after committing it on the ledger. Only
the hash is ever sent; the witness stays on the user's device.
"""
import logging
import re
from typing import List
from uuid import uuid4

from sqlalchemy.orm import Session

from ..errors import WitnessValidationError
from ..models.db_models import WitnessCommitmentDB
from .ledger import LedgerNodeClient

logger = logging.getLogger(__name__)

WITNESS_HASH_PATTERN = re.compile(r"^[a-fA-F0-9]{64}$")


def validate_witness_hash(witness_hash: str) -> str:
    if not isinstance(witness_hash, str) or not WITNESS_HASH_PATTERN.match(witness_hash):
        raise WitnessValidationError("Invalid witness hash format")
    return witness_hash.lower()


class WitnessCommitmentService:
    def __init__(self, db: Session, ledger: LedgerNodeClient):
        self.db = db
        self.ledger = ledger

    async def commit_hash(self, user_id: str, witness_hash: str) -> WitnessCommitmentDB:
        """Commit on-chain first; the row is written only once the ledger accepted it."""
        witness_hash = validate_witness_hash(witness_hash)
        tx_hash = await self.ledger.commit_hash(witness_hash, user_id)

        commitment = WitnessCommitmentDB(
            id=str(uuid4()),
            user_id=user_id,
            witness_hash=witness_hash,
            on_chain_tx_hash=tx_hash,
        )
        self.db.add(commitment)
        self.db.commit()
        self.db.refresh(commitment)

        logger.info(f"Witness hash committed for user {user_id} (tx {tx_hash})")
        return commitment

    def list_for_user(self, user_id: str) -> List[WitnessCommitmentDB]:
        return (
            self.db.query(WitnessCommitmentDB)
            .filter(WitnessCommitmentDB.user_id == user_id)
            .order_by(WitnessCommitmentDB.committed_at.desc())
            .all()
        )

    def is_committed(self, user_id: str, witness_hash: str) -> bool:
        witness_hash = validate_witness_hash(witness_hash)
        return (
            self.db.query(WitnessCommitmentDB)
            .filter(WitnessCommitmentDB.user_id == user_id)
            .filter(WitnessCommitmentDB.witness_hash == witness_hash)
            .first()
            is not None
        )
