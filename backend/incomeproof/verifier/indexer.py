"""
Proof Indexer Adapter

Read-only GraphQL access to the indexer that records proof submissions from
the ledger. Any transport failure, GraphQL error or malformed record is an
IndexerError; an unknown nullifier is simply None.
"""
import logging
from typing import Any, Dict, List, Optional, Protocol

import httpx

from ..config import IndexerSettings
from ..errors import IndexerError
from ..models.proof import ProofFilters, ProofRecord
from .queries import (
    GET_ALL_PROOFS,
    GET_PROOF_BY_NULLIFIER,
    GET_PROOFS_BY_USER,
    GET_PROOFS_WITH_FILTERS,
)

logger = logging.getLogger(__name__)


class IndexerQuery(Protocol):
    async def proof_by_nullifier(self, nullifier: str) -> Optional[ProofRecord]: ...

    async def proofs_by_user(self, user_did: str) -> List[ProofRecord]: ...

    async def proofs_with_filters(self, filters: ProofFilters) -> List[ProofRecord]: ...


class GraphQLIndexerClient:
    def __init__(self, settings: IndexerSettings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"Content-Type": "application/json"},
                timeout=self.settings.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, query: str, variables: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await self._get_client().post(
                self.settings.url, json={"query": query, "variables": variables}
            )
            response.raise_for_status()
            body = response.json()
        except httpx.HTTPError as e:
            logger.error(f"Indexer request failed: {e}")
            raise IndexerError(f"Failed to query indexer: {e}")
        except ValueError:
            raise IndexerError("Indexer returned a non-JSON body")

        if not isinstance(body, dict):
            raise IndexerError("Indexer returned an unexpected body")
        errors = body.get("errors")
        if errors:
            messages = "; ".join(str(e.get("message", e)) if isinstance(e, dict) else str(e) for e in errors)
            logger.error(f"Indexer GraphQL errors: {messages}")
            raise IndexerError(f"Indexer query failed: {messages}")
        return body.get("data") or {}

    def _records(self, data: Dict[str, Any]) -> List[ProofRecord]:
        raw = data.get("proofRecords") or []
        if not isinstance(raw, list):
            raise IndexerError("proofRecords must be a list")
        try:
            return [ProofRecord.from_dict(r) for r in raw]
        except ValueError as e:
            raise IndexerError(str(e))

    async def proof_by_nullifier(self, nullifier: str) -> Optional[ProofRecord]:
        data = await self._request(GET_PROOF_BY_NULLIFIER, {"nullifier": nullifier})
        raw = data.get("proofRecord")
        if raw is None:
            return None
        try:
            return ProofRecord.from_dict(raw)
        except ValueError as e:
            raise IndexerError(str(e))

    async def proofs_by_user(self, user_did: str) -> List[ProofRecord]:
        return self._records(await self._request(GET_PROOFS_BY_USER, {"userDID": user_did}))

    async def proofs_with_filters(self, filters: ProofFilters) -> List[ProofRecord]:
        return self._records(await self._request(GET_PROOFS_WITH_FILTERS, filters.to_variables()))

    async def all_proofs(self, limit: int = 50, offset: int = 0) -> List[ProofRecord]:
        return self._records(await self._request(GET_ALL_PROOFS, {"limit": limit, "offset": offset}))

    async def health_check(self) -> bool:
        try:
            await self._request("{ __typename }", {})
        except IndexerError:
            return False
        return True
