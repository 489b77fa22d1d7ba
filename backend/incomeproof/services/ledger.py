"""
Ledger Node Client

JSON-RPC client for the ledger node the backend broadcasts proofs to.

- broadcast_proof: broadcast_tx_async, returns the transaction hash at once;
  confirmation is observed later by the status poller
- commit_hash: broadcast_tx_commit of a witness-hash commitment
- get_transaction_status: None while the node has not seen the transaction
"""
import base64
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from ..config import LedgerSettings
from ..errors import LedgerUnavailableError, NetworkError
from ..models.proof import ZKProof

logger = logging.getLogger(__name__)


def _rpc_error_text(error: Any) -> str:
    """JSON-RPC error as text; nodes send either {message, data} or a bare string."""
    if isinstance(error, dict):
        return str(error.get("message", "")) + str(error.get("data", ""))
    return str(error)


@dataclass(frozen=True)
class TransactionStatus:
    hash: str
    confirmed: bool
    failed: bool
    height: Optional[int] = None
    log: Optional[str] = None


class LedgerNodeClient:
    """Async JSON-RPC client over httpx."""

    def __init__(self, settings: LedgerSettings, transport: Optional[httpx.AsyncBaseTransport] = None):
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

    async def _call(self, method: str, params: Dict[str, Any], timeout: Optional[float] = None) -> Dict[str, Any]:
        payload = {
            "jsonrpc": "2.0",
            "id": int(time.time() * 1000),
            "method": method,
            "params": params,
        }
        try:
            response = await self._get_client().post(
                self.settings.node_url, json=payload, timeout=timeout or self.settings.timeout
            )
        except (httpx.ConnectError, httpx.TimeoutException) as e:
            logger.error(f"Ledger node unavailable for {method}: {e}")
            raise LedgerUnavailableError("Ledger node is unavailable. Please ensure the node is running.")
        except httpx.HTTPError as e:
            logger.error(f"Ledger node request {method} failed: {e}")
            raise NetworkError(f"Network error talking to ledger node: {e}")

        try:
            body = response.json()
        except ValueError:
            raise LedgerUnavailableError(f"Ledger node returned a non-JSON body (status {response.status_code})")
        if not isinstance(body, dict):
            raise LedgerUnavailableError("Ledger node returned an unexpected body")
        return body

    async def broadcast_proof(self, signed_tx: str, proof: ZKProof, wallet_address: str) -> str:
        """Broadcast a signed proof transaction; returns the tx hash."""
        body = await self._call(
            "broadcast_tx_async",
            {"tx": signed_tx, "proof": proof.to_dict(), "sender": wallet_address},
        )
        result = body.get("result") or {}
        tx_hash = result.get("hash") if isinstance(result, dict) else None
        if not tx_hash:
            error = body.get("error")
            reason = _rpc_error_text(error) if error else "no hash returned"
            raise LedgerUnavailableError(f"Transaction submission failed: {reason}")
        return tx_hash

    async def commit_hash(self, witness_hash: str, user_id: str) -> str:
        """Commit a witness hash on-chain; returns the tx hash."""
        tx = base64.b64encode(
            json.dumps(
                {
                    "type": "witness_commitment",
                    "witnessHash": witness_hash,
                    "userId": user_id,
                    "timestamp": int(time.time() * 1000),
                },
                separators=(",", ":"),
            ).encode("utf-8")
        ).decode("ascii")
        body = await self._call("broadcast_tx_commit", {"tx": tx})
        result = body.get("result") or {}
        tx_hash = result.get("hash") if isinstance(result, dict) else None
        if not tx_hash:
            raise LedgerUnavailableError("Commitment broadcast returned no transaction hash")
        return tx_hash

    async def get_transaction_status(self, tx_hash: str) -> Optional[TransactionStatus]:
        """Current status of a transaction, or None if the node has not seen it yet."""
        body = await self._call("tx", {"hash": tx_hash, "prove": False}, timeout=self.settings.status_timeout)

        error = body.get("error")
        if error:
            message = _rpc_error_text(error)
            if "not found" in message.lower():
                return None
            raise LedgerUnavailableError(f"Failed to fetch transaction status: {message}")

        result = body.get("result")
        if not result:
            return None
        if not isinstance(result, dict):
            raise LedgerUnavailableError("Ledger node returned an unexpected transaction result")
        tx_result = result.get("tx_result") or {}
        if not isinstance(tx_result, dict):
            raise LedgerUnavailableError("Ledger node returned an unexpected tx_result")
        code = tx_result.get("code")
        return TransactionStatus(
            hash=result.get("hash", tx_hash),
            height=int(result["height"]) if result.get("height") is not None else None,
            confirmed=code == 0,
            failed=code is not None and code != 0,
            log=tx_result.get("log"),
        )
