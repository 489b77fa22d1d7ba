"""
Income Proof - FastAPI Application

Main entry point for the Income Proof backend.

Pipeline:
- Data sources → WitnessBuilder → Witness (+ hash, committed server-side)
- Witness → Prover → ZKProof → wallet signature → ProofSubmission (pending)
- Ledger node → ProofStatusPoller → confirmed | failed
- Indexer → VerifierClient → ProofValidation (third-party verifiers)
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings
from .database import build_engine, build_session_factory, init_db
from .errors import (
    AuthorizationError,
    ExternalServiceError,
    IncomeProofError,
    IntegrityViolationError,
    InvalidStatusTransitionError,
    NotFoundError,
    ProverTimeoutError,
    ProverUnreachableError,
    ReplayDetectedError,
    SubmissionError,
    ValidationError,
)
from .routers import auth_router, witness_router, proofs_router, indexer_router
from .services.data_sources import AggregatorClient
from .services.ledger import LedgerNodeClient
from .services.proof_server import ProverClient
from .services.status_poller import ProofStatusPoller
from .verifier import GraphQLIndexerClient, VerifierClient

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


# =============================================================================
# ERROR MAPPING
# =============================================================================

def status_code_for(error: IncomeProofError) -> int:
    """HTTP status for a domain error. Most specific class first."""
    if isinstance(error, ReplayDetectedError):
        return 409
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, AuthorizationError):
        return 403
    if isinstance(error, InvalidStatusTransitionError):
        return 409
    if isinstance(error, ProverTimeoutError):
        return 504
    if isinstance(error, ProverUnreachableError):
        return 503
    if isinstance(error, ExternalServiceError):
        return 502
    if isinstance(error, IntegrityViolationError):
        return 422
    if isinstance(error, SubmissionError):
        return getattr(error, "status_code", None) or 400
    return 500


async def income_proof_error_handler(request: Request, exc: IncomeProofError) -> JSONResponse:
    status_code = status_code_for(exc)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed ({exc.code}): {exc.message}")
    return JSONResponse(status_code=status_code, content={"error": exc.message, "code": exc.code})


# =============================================================================
# APPLICATION FACTORY
# =============================================================================

def create_app(
    settings: Optional[Settings] = None,
    *,
    prover: Optional[ProverClient] = None,
    ledger: Optional[LedgerNodeClient] = None,
    indexer: Optional[GraphQLIndexerClient] = None,
    data_sources: Optional[Any] = None,
    start_poller: Optional[bool] = None,
) -> FastAPI:
    """
    Build the application. Collaborators default to real clients built from
    `settings`; tests pass fakes.
    """
    settings = settings or Settings.from_env()

    engine = build_engine(settings.database)
    session_factory = build_session_factory(engine)
    prover = prover or ProverClient(settings.prover)
    ledger = ledger or LedgerNodeClient(settings.ledger)
    indexer = indexer or GraphQLIndexerClient(settings.indexer)
    data_sources = data_sources or AggregatorClient(settings.data_sources)
    poller = ProofStatusPoller(
        session_factory, ledger, settings.poller, validity_seconds=settings.ledger.validity_seconds
    )
    run_poller = settings.poller.enabled if start_poller is None else start_poller

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize database and background polling on startup."""
        init_db(engine)
        if run_poller:
            poller.start()
        yield
        await poller.stop()
        for client in (prover, ledger, indexer, data_sources):
            close = getattr(client, "close", None)
            if close is not None:
                await close()
        engine.dispose()

    app = FastAPI(
        lifespan=lifespan,
        title="Income Proof",
        description="""
        Income Proof - Privacy-Preserving Income Verification

        Users prove facts about their income and assets (e.g. "income >= threshold")
        without revealing the underlying data.

        ## Pipeline
        1. **Witness**: linked data sources → canonical witness (stays on device)
        2. **Proof**: witness + threshold → zero-knowledge proof (external prover)
        3. **Submission**: signed proof → ledger, keyed by its nullifier
        4. **Verification**: third parties query the indexer by nullifier or DID
        """,
        version=VERSION,
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.state.settings = settings
    app.state.engine = engine
    app.state.session_factory = session_factory
    app.state.prover = prover
    app.state.ledger = ledger
    app.state.indexer = indexer
    app.state.verifier = VerifierClient(indexer)
    app.state.data_sources = data_sources
    app.state.poller = poller

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(IncomeProofError, income_proof_error_handler)

    app.include_router(auth_router)
    app.include_router(witness_router)
    app.include_router(proofs_router)
    app.include_router(indexer_router)

    @app.get("/")
    async def root():
        """Root endpoint - API information."""
        return {
            "name": "Income Proof",
            "version": VERSION,
            "description": "Privacy-preserving income verification",
            "docs": "/docs",
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "version": VERSION, "poller": poller.running}

    return app


# For running with: uvicorn incomeproof.main:create_app_from_env --factory
def create_app_from_env() -> FastAPI:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    return create_app(settings)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("incomeproof.main:create_app_from_env", factory=True, host="0.0.0.0", port=8001)
