"""
Proof Submission Pipeline (client)

generate_and_submit(circuit, witness, threshold):
1. Prover generates the proof (bounded by the prover timeout).
2. The response shape is validated strictly before anything else happens.
3. The wallet signs signing_payload(proof, threshold).
4. The proof, signature and wallet address go to the submission API.

The staged witness/proof is discarded only after a successful submission.
Any failure leaves staging untouched. Nothing is retried here.
"""
import logging
from typing import Optional

from ..errors import IncomeProofError, SignatureFailedError, WalletNotConnectedError
from ..models.proof import CircuitType, PendingProof, SubmissionReceipt, ZKProof, parse_circuit
from ..models.witness import Witness
from .hashing import hash_witness
from .proof_server import ProverClient
from .signing import WalletSigner, signing_payload
from .submission_api import SubmissionApiClient

logger = logging.getLogger(__name__)


class PendingProofStaging:
    """Client-held slot for the witness reference and proof being submitted."""

    def __init__(self):
        self._pending: Optional[PendingProof] = None

    @property
    def current(self) -> Optional[PendingProof]:
        return self._pending

    def has_pending(self) -> bool:
        return self._pending is not None

    def stage(self, pending: PendingProof) -> None:
        self._pending = pending

    def clear(self) -> None:
        self._pending = None


class ProofSubmissionPipeline:
    def __init__(
        self,
        prover: ProverClient,
        signer: WalletSigner,
        api: SubmissionApiClient,
        staging: Optional[PendingProofStaging] = None,
    ):
        self.prover = prover
        self.signer = signer
        self.api = api
        self.staging = staging or PendingProofStaging()

    async def generate(self, circuit: CircuitType, witness: Witness, threshold: int) -> ZKProof:
        """
        Steps 1-2: prove and validate. Only a valid proof is staged; a failed
        attempt leaves any earlier staged proof in place.
        """
        circuit = parse_circuit(circuit)
        witness.validate()
        proof = await self.prover.generate_proof(circuit, witness, threshold)
        self.staging.stage(
            PendingProof(circuit=circuit, threshold=threshold, witness_hash=hash_witness(witness), proof=proof)
        )
        return proof

    async def _sign(self, proof: ZKProof, threshold: int) -> str:
        if not self.signer.connected or not self.signer.address:
            raise WalletNotConnectedError("Wallet not connected")
        try:
            signature = await self.signer.sign_message(signing_payload(proof, threshold))
        except IncomeProofError:
            raise
        except Exception as e:
            logger.warning(f"Wallet refused to sign proof {proof.nullifier}: {e}")
            raise SignatureFailedError(f"Wallet signing failed: {e}")
        if not signature:
            raise SignatureFailedError("Wallet returned an empty signature")
        return signature

    async def submit(self, proof: ZKProof, threshold: int) -> SubmissionReceipt:
        """Steps 3-4: sign and submit. Clears staging on success only."""
        signature = await self._sign(proof, threshold)
        pending = self.staging.current
        circuit = pending.circuit.value if pending is not None else None
        receipt = await self.api.submit(proof, signature, self.signer.address, circuit=circuit)
        self.staging.clear()
        logger.info(f"Proof submitted: {receipt.proof_id} (tx {receipt.tx_hash})")
        return receipt

    async def generate_and_submit(self, circuit: CircuitType, witness: Witness, threshold: int) -> SubmissionReceipt:
        proof = await self.generate(circuit, witness, threshold)
        return await self.submit(proof, threshold)
