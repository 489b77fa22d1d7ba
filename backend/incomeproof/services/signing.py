"""
Wallet signing contract and the payload a wallet signs for a proof.
"""
import json
from typing import Protocol

from ..models.proof import ZKProof


class WalletSigner(Protocol):
    """User wallet. sign_message returns the signature as a string."""

    @property
    def connected(self) -> bool: ...

    @property
    def address(self) -> str: ...

    async def sign_message(self, message: str) -> str: ...


def signing_payload(proof: ZKProof, threshold: int) -> str:
    """Canonical JSON of {nullifier, threshold, timestamp}."""
    return json.dumps(
        {
            "nullifier": proof.nullifier,
            "threshold": threshold,
            "timestamp": proof.public_outputs.timestamp,
        },
        sort_keys=True,
        separators=(",", ":"),
    )
