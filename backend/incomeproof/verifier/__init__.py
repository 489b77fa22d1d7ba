"""Income Proof - Verifier Client"""
from .client import VerifierClient
from .indexer import GraphQLIndexerClient, IndexerQuery

__all__ = [
    "VerifierClient",
    "GraphQLIndexerClient",
    "IndexerQuery",
]
