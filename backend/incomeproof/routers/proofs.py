"""
Proof API Routes

- generate: server-side proving through the prover client
- submit: register a signed proof and broadcast it to the ledger
- status: current state of a submission (pending rows are refreshed once)
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from ..auth import get_current_user
from ..dependencies import get_prover, get_submission_service
from ..errors import ExternalServiceError
from ..models.db_models import UserDB
from ..models.proof import ProofStatus, ZKProof, parse_circuit
from ..models.witness import Witness
from ..services.proof_server import ProverClient
from ..services.proof_status import to_view
from ..services.proof_submission import ProofSubmissionService, SubmitProofRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/proofs", tags=["proofs"])


# =============================================================================
# REQUEST MODELS
# =============================================================================

class GenerateProofRequest(BaseModel):
    circuit: str
    witness: Dict[str, Any]
    threshold: int = Field(ge=0)


class SubmitProofBody(BaseModel):
    proof: str
    publicInputs: List[str]
    publicOutputs: Dict[str, Any]
    walletSignature: str = ""
    walletAddress: str = ""
    circuit: Optional[str] = None


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.post("/generate", response_model=dict)
async def generate_proof(
    request: GenerateProofRequest,
    current_user: UserDB = Depends(get_current_user),
    prover: ProverClient = Depends(get_prover),
):
    circuit = parse_circuit(request.circuit)
    witness = Witness.from_dict(request.witness)
    proof = await prover.generate_proof(circuit, witness, request.threshold)
    logger.info(f"Proof generated for user {current_user.id} on {circuit.value}")
    return proof.to_dict()


@router.post("/submit", response_model=dict, status_code=status.HTTP_201_CREATED)
async def submit_proof(
    body: SubmitProofBody,
    current_user: UserDB = Depends(get_current_user),
    service: ProofSubmissionService = Depends(get_submission_service),
):
    """
    Register a proof and broadcast it.

    409 when the nullifier has already been submitted.
    """
    proof = ZKProof.from_dict(
        {"proof": body.proof, "publicInputs": body.publicInputs, "publicOutputs": body.publicOutputs}
    )
    circuit = parse_circuit(body.circuit).value if body.circuit is not None else None
    receipt = await service.submit(
        current_user.id,
        SubmitProofRequest(
            proof=proof,
            wallet_signature=body.walletSignature,
            wallet_address=body.walletAddress,
            circuit=circuit,
        ),
    )
    return {"proofId": receipt.proof_id, "txHash": receipt.tx_hash, "status": receipt.status.value}


@router.get("/status/{proof_id}", response_model=dict)
async def get_proof_status(
    proof_id: str,
    current_user: UserDB = Depends(get_current_user),
    service: ProofSubmissionService = Depends(get_submission_service),
):
    submission = service.get_submission(proof_id, current_user.id)
    if submission.status == ProofStatus.PENDING:
        try:
            await service.refresh(submission)
        except ExternalServiceError as e:
            # Serve the stored state
            logger.warning(f"Could not refresh status of {proof_id}: {e}")
    return to_view(submission).to_dict()


@router.get("", response_model=dict)
async def list_proofs(
    current_user: UserDB = Depends(get_current_user),
    service: ProofSubmissionService = Depends(get_submission_service),
):
    proofs = [v.to_dict() for v in service.list_for_user(current_user.id)]
    return {"proofs": proofs, "count": len(proofs)}


@router.get("/health", response_model=dict)
async def proof_server_health(prover: ProverClient = Depends(get_prover)):
    healthy = await prover.health_check()
    return {"status": "healthy" if healthy else "unavailable", "proofServer": healthy}
