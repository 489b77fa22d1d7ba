"""
Witness API Routes

The backend assembles the witness from the user's linked sources and returns
it to the device, which stores it encrypted locally. Only the witness hash is
ever committed server-side.
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..auth import get_current_user
from ..dependencies import get_commitment_service, get_witness_builder
from ..models.db_models import UserDB, WitnessCommitmentDB
from ..services.commitments import WitnessCommitmentService
from ..services.witness_builder import WitnessBuilder

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/witness", tags=["witness"])


# =============================================================================
# REQUEST / RESPONSE MODELS
# =============================================================================

class WitnessHashRequest(BaseModel):
    witness_hash: str = Field(alias="witnessHash")


class CommitmentResponse(BaseModel):
    commitmentId: str
    witnessHash: str
    committedAt: Optional[datetime] = None
    onChainTxHash: Optional[str] = None


class CommitmentListResponse(BaseModel):
    commitments: List[CommitmentResponse]
    count: int


class VerifyCommitmentResponse(BaseModel):
    valid: bool
    witnessHash: str


def _commitment_response(commitment: WitnessCommitmentDB) -> CommitmentResponse:
    return CommitmentResponse(
        commitmentId=commitment.id,
        witnessHash=commitment.witness_hash,
        committedAt=commitment.committed_at,
        onChainTxHash=commitment.on_chain_tx_hash,
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/generate", response_model=dict)
async def generate_witness(
    current_user: UserDB = Depends(get_current_user),
    builder: WitnessBuilder = Depends(get_witness_builder),
):
    """
    Build a fresh witness from the caller's linked sources.

    404 when a source was never linked, 502 when a source is unreachable.
    """
    generated = await builder.generate(current_user.id)
    logger.info(f"Witness generated for user {current_user.id}: {generated.witness_hash}")
    return {"witness": generated.witness.to_dict(), "witnessHash": generated.witness_hash}


@router.post("/commit-hash", response_model=CommitmentResponse)
async def commit_hash(
    request: WitnessHashRequest,
    current_user: UserDB = Depends(get_current_user),
    service: WitnessCommitmentService = Depends(get_commitment_service),
):
    commitment = await service.commit_hash(current_user.id, request.witness_hash)
    return _commitment_response(commitment)


@router.get("/commitments", response_model=CommitmentListResponse)
async def list_commitments(
    current_user: UserDB = Depends(get_current_user),
    service: WitnessCommitmentService = Depends(get_commitment_service),
):
    commitments = [_commitment_response(c) for c in service.list_for_user(current_user.id)]
    return CommitmentListResponse(commitments=commitments, count=len(commitments))


@router.post("/verify", response_model=VerifyCommitmentResponse)
async def verify_commitment(
    request: WitnessHashRequest,
    current_user: UserDB = Depends(get_current_user),
    service: WitnessCommitmentService = Depends(get_commitment_service),
):
    """Whether the caller has committed this witness hash."""
    valid = service.is_committed(current_user.id, request.witness_hash)
    return VerifyCommitmentResponse(valid=valid, witnessHash=request.witness_hash)
