"""
Submission API Client

Client-side adapter for the backend's /proofs endpoints, authenticated with
the user's bearer token.
"""
import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import (
    MalformedApiResponseError,
    NetworkError,
    ProofNotFoundError,
    ReplayDetectedError,
    SubmissionRejectedError,
)
from ..models.proof import ProofStatus, ProofSubmissionView, SubmissionReceipt, ZKProof

logger = logging.getLogger(__name__)


def _error_message(response: httpx.Response, fallback: str) -> str:
    try:
        body = response.json()
    except ValueError:
        return fallback
    if isinstance(body, dict):
        return str(body.get("error") or body.get("detail") or fallback)
    return fallback


class SubmissionApiClient:
    def __init__(
        self,
        base_url: str,
        token: str,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.token = token
        self.timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _request(self, method: str, path: str, json: Optional[Dict[str, Any]] = None) -> httpx.Response:
        try:
            return await self._get_client().request(method, path, json=json)
        except httpx.HTTPError as e:
            logger.error(f"Submission API {method} {path} failed: {e}")
            raise NetworkError(f"Could not reach submission API: {e}")

    def _read_body(self, response: httpx.Response, path: str) -> Any:
        try:
            return response.json()
        except ValueError:
            logger.error(f"Submission API {path} returned a non-JSON body (status {response.status_code})")
            raise MalformedApiResponseError(f"Submission API {path} returned a non-JSON body")

    async def submit(
        self,
        proof: ZKProof,
        signature: str,
        wallet_address: str,
        circuit: Optional[str] = None,
    ) -> SubmissionReceipt:
        """
        POST /proofs/submit.

        Raises:
            ReplayDetectedError: 409, the nullifier was already used
            SubmissionRejectedError: any other 4xx/5xx
            MalformedApiResponseError: 2xx with an unreadable body
            NetworkError: transport failure
        """
        payload = {
            **proof.to_dict(),
            "walletSignature": signature,
            "walletAddress": wallet_address,
        }
        if circuit is not None:
            payload["circuit"] = circuit
        response = await self._request("POST", "/proofs/submit", json=payload)

        if response.status_code == 409:
            raise ReplayDetectedError(proof.nullifier, _error_message(response, ""))
        if response.status_code >= 400:
            raise SubmissionRejectedError(
                _error_message(response, f"Submission failed with status {response.status_code}"),
                status_code=response.status_code,
            )

        body = self._read_body(response, "/proofs/submit")
        proof_id = body.get("proofId") if isinstance(body, dict) else None
        if not isinstance(proof_id, str) or not proof_id:
            raise MalformedApiResponseError("Submission response is missing proofId")
        try:
            status = ProofStatus(body.get("status", ProofStatus.PENDING.value))
        except ValueError:
            raise MalformedApiResponseError(f"Submission response has unknown status {body.get('status')!r}")
        return SubmissionReceipt(proof_id=proof_id, tx_hash=body.get("txHash"), status=status)

    async def get_status(self, proof_id: str) -> ProofSubmissionView:
        """GET /proofs/status/{proof_id}."""
        path = f"/proofs/status/{proof_id}"
        response = await self._request("GET", path)
        if response.status_code == 404:
            raise ProofNotFoundError(f"Proof {proof_id} not found")
        if response.status_code >= 400:
            raise NetworkError(_error_message(response, f"Status request failed with status {response.status_code}"))
        try:
            return ProofSubmissionView.from_dict(self._read_body(response, path))
        except ValueError as e:
            raise MalformedApiResponseError(str(e))
