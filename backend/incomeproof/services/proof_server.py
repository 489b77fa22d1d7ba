"""
Proof Server Client

Talks to the external proving service (a black box):
POST /prove {circuit, witness, publicInputs: {threshold}}
  -> {proof, publicOutputs: {nullifier, timestamp, expiresAt}}

Proving is slow, so every call is bounded by a timeout. Failures are mapped
to distinct categories because operators alert on them separately:
- ProverTimeoutError: no answer within the timeout
- ProverUnreachableError: connection refused / host down
- NetworkError: any other transport failure
- ProverServiceError: the prover answered with an error status
- MalformedProofResponseError: the answer has the wrong shape

Calls are never retried here; the caller decides.
"""
import logging
import time
from typing import Any, Dict, Optional

import httpx

from ..config import ProverSettings
from ..errors import (
    MalformedProofResponseError,
    NetworkError,
    ProverServiceError,
    ProverTimeoutError,
    ProverUnreachableError,
)
from ..models.proof import CircuitType, ZKProof, parse_circuit
from ..models.witness import Witness

logger = logging.getLogger(__name__)


class ProverClient:
    """HTTP client for the proving service."""

    def __init__(self, settings: ProverSettings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.settings.url,
                headers={"Content-Type": "application/json"},
                timeout=self.settings.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _translate(self, error: httpx.HTTPError) -> Exception:
        if isinstance(error, httpx.TimeoutException):
            return ProverTimeoutError(f"Proof server timeout after {self.settings.timeout}s")
        if isinstance(error, httpx.ConnectError):
            return ProverUnreachableError(
                f"Proof server is not available at {self.settings.url}. Ensure the proving service is running."
            )
        return NetworkError(f"Network error connecting to proof server at {self.settings.url}: {error}")

    async def generate_proof(self, circuit: CircuitType, witness: Witness, threshold: int) -> ZKProof:
        """
        Generate a proof for `witness` against `circuit` with public input `threshold`.

        The witness is validated before any network call.
        """
        circuit = parse_circuit(circuit)
        witness.validate()
        request = {
            "circuit": circuit.value,
            "witness": witness.to_dict(),
            "publicInputs": {"threshold": threshold},
        }

        logger.info(f"Requesting proof for circuit {circuit.value} with threshold {threshold}")
        start = time.monotonic()
        try:
            response = await self._get_client().post("/prove", json=request)
        except httpx.HTTPError as e:
            error = self._translate(e)
            logger.error(f"Proof generation failed ({error.code}): {error}")
            raise error

        if response.status_code >= 400:
            message = f"Proof server returned error status: {response.status_code}"
            try:
                detail = response.json().get("error") or {}
                if isinstance(detail, dict) and detail.get("message"):
                    message = f"Proof server error ({response.status_code}): {detail['message']} [{detail.get('code')}]"
            except (ValueError, AttributeError):
                pass
            logger.error(message)
            raise ProverServiceError(message, status_code=response.status_code)

        try:
            body = response.json()
        except ValueError:
            raise MalformedProofResponseError("Proof server returned a non-JSON body")

        try:
            proof = ZKProof.from_prover_response(body, threshold)
        except MalformedProofResponseError as e:
            logger.warning(f"Rejected malformed proof response: {e}")
            raise

        duration = time.monotonic() - start
        logger.info(f"Proof generated in {duration:.2f}s. Nullifier: {proof.nullifier}")
        return proof

    async def health_check(self) -> bool:
        """True when GET /health answers 200 within the health timeout."""
        try:
            response = await self._get_client().get("/health", timeout=self.settings.health_timeout)
        except httpx.HTTPError as e:
            logger.warning(f"Proof server health check failed: {e}")
            return False
        return response.status_code == 200

    async def server_info(self) -> Dict[str, Any]:
        """Circuits available, version, etc."""
        try:
            response = await self._get_client().get("/info", timeout=self.settings.health_timeout)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise ProverServiceError(
                "Could not retrieve proof server information", status_code=e.response.status_code
            )
        except httpx.HTTPError as e:
            raise self._translate(e)
        except ValueError:
            raise MalformedProofResponseError("Proof server info is not JSON")
