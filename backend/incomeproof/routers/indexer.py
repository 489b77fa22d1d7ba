"""
Indexer API Routes

Read-only proof lookups for verifiers (lenders, rental platforms). No
authentication: everything here is already public on the ledger.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from ..dependencies import get_indexer, get_verifier
from ..models.proof import ProofFilters, validate_nullifier
from ..verifier import GraphQLIndexerClient, VerifierClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/indexer", tags=["indexer"])


class VerifyRequest(BaseModel):
    nullifier: str


@router.get("/health", response_model=dict)
async def indexer_health(indexer: GraphQLIndexerClient = Depends(get_indexer)):
    healthy = await indexer.health_check()
    return {"status": "healthy" if healthy else "unavailable", "indexer": healthy}


@router.get("/proof/{nullifier}", response_model=dict)
async def get_proof_by_nullifier(nullifier: str, verifier: VerifierClient = Depends(get_verifier)):
    """404 when the indexer has no proof with this nullifier."""
    validation = await verifier.verify_proof(validate_nullifier(nullifier))
    return {"success": True, "data": validation.to_dict()}


@router.get("/proofs/user/{user_did}", response_model=dict)
async def get_proofs_by_user(user_did: str, verifier: VerifierClient = Depends(get_verifier)):
    proofs = await verifier.get_user_proofs(user_did)
    return {"success": True, "data": [p.to_dict() for p in proofs], "count": len(proofs)}


@router.get("/proofs", response_model=dict)
async def list_proofs(
    userDID: Optional[str] = None,
    minThreshold: Optional[int] = Query(None, ge=0),
    isValid: Optional[bool] = None,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    verifier: VerifierClient = Depends(get_verifier),
    indexer: GraphQLIndexerClient = Depends(get_indexer),
):
    """Filtered listing when any filter is given, otherwise a paginated listing."""
    filters = ProofFilters(user_did=userDID, min_threshold=minThreshold, is_valid=isValid)
    if filters.to_variables():
        proofs = await verifier.get_proofs_with_filters(filters)
        return {"success": True, "data": [p.to_dict() for p in proofs], "count": len(proofs)}

    proofs = await indexer.all_proofs(limit, offset)
    return {
        "success": True,
        "data": [p.to_dict() for p in proofs],
        "count": len(proofs),
        "pagination": {"limit": limit, "offset": offset},
    }


@router.post("/verify", response_model=dict)
async def verify_proof(request: VerifyRequest, verifier: VerifierClient = Depends(get_verifier)):
    validation = await verifier.verify_proof(validate_nullifier(request.nullifier))
    logger.info(f"Proof verified: {request.nullifier} valid={validation.is_valid}")
    return {"success": True, "data": validation.to_dict()}
