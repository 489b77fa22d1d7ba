"""
Income Proof - FastAPI dependencies

Collaborators are built once in create_app() and kept on app.state; these
helpers hand them (or per-request services wrapping the db session) to routes.
"""
from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .config import Settings
from .database import get_db
from .services.commitments import WitnessCommitmentService
from .services.data_sources import DatabaseIdentitySource
from .services.ledger import LedgerNodeClient
from .services.proof_server import ProverClient
from .services.proof_submission import ProofSubmissionService
from .services.status_poller import ProofStatusPoller
from .services.witness_builder import WitnessBuilder
from .verifier import GraphQLIndexerClient, VerifierClient


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_prover(request: Request) -> ProverClient:
    return request.app.state.prover


def get_ledger(request: Request) -> LedgerNodeClient:
    return request.app.state.ledger


def get_poller(request: Request) -> ProofStatusPoller:
    return request.app.state.poller


def get_indexer(request: Request) -> GraphQLIndexerClient:
    return request.app.state.indexer


def get_verifier(request: Request) -> VerifierClient:
    return request.app.state.verifier


def get_witness_builder(request: Request, db: Session = Depends(get_db)) -> WitnessBuilder:
    sources = request.app.state.data_sources
    return WitnessBuilder(
        income=sources,
        assets=sources,
        liabilities=sources,
        signal=sources,
        identity=DatabaseIdentitySource(db),
    )


def get_submission_service(
    db: Session = Depends(get_db),
    ledger: LedgerNodeClient = Depends(get_ledger),
    settings: Settings = Depends(get_settings),
) -> ProofSubmissionService:
    return ProofSubmissionService(db, ledger, settings.ledger.validity_seconds)


def get_commitment_service(
    db: Session = Depends(get_db),
    ledger: LedgerNodeClient = Depends(get_ledger),
) -> WitnessCommitmentService:
    return WitnessCommitmentService(db, ledger)
