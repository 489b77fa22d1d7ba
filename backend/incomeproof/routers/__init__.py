"""Income Proof - API Routers"""
from .auth import router as auth_router
from .witness import router as witness_router
from .proofs import router as proofs_router
from .indexer import router as indexer_router

__all__ = [
    "auth_router",
    "witness_router",
    "proofs_router",
    "indexer_router",
]
