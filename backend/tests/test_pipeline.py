"""
Tests for the client-side generate -> sign -> submit pipeline and the
submission API adapter.
"""
import json

import httpx
import pytest

from incomeproof.errors import (
    LedgerUnavailableError,
    MalformedApiResponseError,
    MalformedProofResponseError,
    NetworkError,
    ProofNotFoundError,
    ReplayDetectedError,
    SignatureFailedError,
    SubmissionRejectedError,
    WalletNotConnectedError,
)
from incomeproof.models.proof import CircuitType, ProofStatus, SubmissionReceipt
from incomeproof.services.pipeline import PendingProofStaging, ProofSubmissionPipeline
from incomeproof.services.signing import signing_payload
from incomeproof.services.submission_api import SubmissionApiClient

from conftest import make_proof


# =============================================================================
# FAKES
# =============================================================================

class FakeProver:
    def __init__(self, proof=None, error=None):
        self.proof = proof or make_proof()
        self.error = error
        self.calls = []

    async def generate_proof(self, circuit, witness, threshold):
        self.calls.append((circuit, threshold))
        if self.error is not None:
            raise self.error
        return self.proof


class FakeSigner:
    def __init__(self, connected=True, address="wallet-1", signature="0xsig", error=None):
        self.connected = connected
        self.address = address
        self.signature = signature
        self.error = error
        self.messages = []

    async def sign_message(self, message):
        self.messages.append(message)
        if self.error is not None:
            raise self.error
        return self.signature


class FakeApi:
    def __init__(self, error=None):
        self.error = error
        self.submissions = []

    async def submit(self, proof, signature, wallet_address, circuit=None):
        self.submissions.append({"nullifier": proof.nullifier, "signature": signature,
                                 "wallet": wallet_address, "circuit": circuit})
        if self.error is not None:
            raise self.error
        return SubmissionReceipt(proof_id="proof_1", tx_hash="tx_1", status=ProofStatus.PENDING)


def pipeline_for(prover=None, signer=None, api=None):
    return ProofSubmissionPipeline(prover or FakeProver(), signer or FakeSigner(), api or FakeApi(),
                                   PendingProofStaging())


# =============================================================================
# TEST: PIPELINE
# =============================================================================

class TestPipeline:

    @pytest.mark.asyncio
    async def test_generate_and_submit(self, sample_witness):
        api = FakeApi()
        signer = FakeSigner()
        pipeline = pipeline_for(signer=signer, api=api)

        receipt = await pipeline.generate_and_submit(CircuitType.VERIFY_INCOME, sample_witness, 5000)

        assert receipt.status == ProofStatus.PENDING
        assert api.submissions == [{"nullifier": "b" * 64, "signature": "0xsig",
                                    "wallet": "wallet-1", "circuit": "verifyIncome"}]
        assert signer.messages == [signing_payload(make_proof(), 5000)]
        assert not pipeline.staging.has_pending()

    def test_signing_payload_is_canonical(self):
        payload = signing_payload(make_proof(timestamp=1_700_000_000), 5000)
        assert payload == '{"nullifier":"' + "b" * 64 + '","threshold":5000,"timestamp":1700000000}'
        assert json.loads(payload)["threshold"] == 5000

    @pytest.mark.asyncio
    async def test_generate_stages_proof(self, sample_witness):
        pipeline = pipeline_for()
        proof = await pipeline.generate(CircuitType.VERIFY_ASSETS, sample_witness, 100)
        pending = pipeline.staging.current
        assert pending.circuit == CircuitType.VERIFY_ASSETS
        assert pending.threshold == 100
        assert pending.proof == proof
        assert len(pending.witness_hash) == 64

    @pytest.mark.asyncio
    async def test_wallet_not_connected(self, sample_witness):
        api = FakeApi()
        pipeline = pipeline_for(signer=FakeSigner(connected=False), api=api)
        with pytest.raises(WalletNotConnectedError):
            await pipeline.generate_and_submit(CircuitType.VERIFY_INCOME, sample_witness, 5000)
        assert api.submissions == []
        assert pipeline.staging.has_pending()

    @pytest.mark.asyncio
    async def test_missing_wallet_address(self, sample_witness):
        pipeline = pipeline_for(signer=FakeSigner(address=""))
        with pytest.raises(WalletNotConnectedError):
            await pipeline.generate_and_submit(CircuitType.VERIFY_INCOME, sample_witness, 5000)

    @pytest.mark.asyncio
    async def test_empty_signature(self, sample_witness):
        api = FakeApi()
        pipeline = pipeline_for(signer=FakeSigner(signature=""), api=api)
        with pytest.raises(SignatureFailedError):
            await pipeline.generate_and_submit(CircuitType.VERIFY_INCOME, sample_witness, 5000)
        assert api.submissions == []

    @pytest.mark.asyncio
    async def test_signer_refusal_is_signature_failure(self, sample_witness):
        pipeline = pipeline_for(signer=FakeSigner(error=RuntimeError("user rejected")))
        with pytest.raises(SignatureFailedError, match="user rejected"):
            await pipeline.generate_and_submit(CircuitType.VERIFY_INCOME, sample_witness, 5000)

    @pytest.mark.asyncio
    async def test_submission_failure_keeps_staging(self, sample_witness):
        pipeline = pipeline_for(api=FakeApi(error=LedgerUnavailableError("node down")))
        with pytest.raises(LedgerUnavailableError):
            await pipeline.generate_and_submit(CircuitType.VERIFY_INCOME, sample_witness, 5000)
        assert pipeline.staging.has_pending()
        assert pipeline.staging.current.proof is not None

    @pytest.mark.asyncio
    async def test_malformed_proof_never_signed(self, sample_witness):
        signer = FakeSigner()
        pipeline = pipeline_for(prover=FakeProver(error=MalformedProofResponseError("bad")), signer=signer)
        with pytest.raises(MalformedProofResponseError):
            await pipeline.generate_and_submit(CircuitType.VERIFY_INCOME, sample_witness, 5000)
        assert signer.messages == []
        assert not pipeline.staging.has_pending()

    @pytest.mark.asyncio
    async def test_failed_proving_keeps_earlier_staged_proof(self, sample_witness):
        prover = FakeProver()
        pipeline = pipeline_for(prover=prover)
        earlier = await pipeline.generate(CircuitType.VERIFY_INCOME, sample_witness, 5000)

        prover.error = MalformedProofResponseError("bad")
        with pytest.raises(MalformedProofResponseError):
            await pipeline.generate(CircuitType.VERIFY_ASSETS, sample_witness, 100)

        pending = pipeline.staging.current
        assert pending.proof == earlier
        assert pending.circuit == CircuitType.VERIFY_INCOME
        assert pending.threshold == 5000


# =============================================================================
# TEST: SUBMISSION API CLIENT
# =============================================================================

def api_for(handler):
    return SubmissionApiClient("http://backend.test", "token-123", transport=httpx.MockTransport(handler))


class TestSubmissionApiClient:

    @pytest.mark.asyncio
    async def test_submit_sends_flat_payload(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"proofId": "proof_1", "txHash": "tx_1", "status": "pending"})

        receipt = await api_for(handler).submit(make_proof(), "0xsig", "wallet-1", circuit="verifyIncome")

        assert receipt == SubmissionReceipt("proof_1", "tx_1", ProofStatus.PENDING)
        assert seen["auth"] == "Bearer token-123"
        assert seen["path"] == "/proofs/submit"
        assert seen["body"]["walletSignature"] == "0xsig"
        assert seen["body"]["walletAddress"] == "wallet-1"
        assert seen["body"]["circuit"] == "verifyIncome"
        assert seen["body"]["publicOutputs"]["nullifier"] == "b" * 64

    @pytest.mark.asyncio
    async def test_conflict_is_replay(self):
        client = api_for(lambda request: httpx.Response(409, json={"error": "Proof with this nullifier already exists",
                                                                   "code": "NULLIFIER_ALREADY_USED"}))
        with pytest.raises(ReplayDetectedError) as exc_info:
            await client.submit(make_proof(), "0xsig", "wallet-1")
        assert exc_info.value.nullifier == "b" * 64

    @pytest.mark.asyncio
    async def test_other_error_is_rejection(self):
        client = api_for(lambda request: httpx.Response(400, json={"error": "Missing wallet signature"}))
        with pytest.raises(SubmissionRejectedError) as exc_info:
            await client.submit(make_proof(), "0xsig", "wallet-1")
        assert exc_info.value.status_code == 400
        assert not isinstance(exc_info.value, ReplayDetectedError)

    @pytest.mark.asyncio
    async def test_transport_failure(self):
        def handler(request):
            raise httpx.ConnectError("offline", request=request)

        with pytest.raises(NetworkError):
            await api_for(handler).submit(make_proof(), "0xsig", "wallet-1")

    @pytest.mark.asyncio
    async def test_get_status(self):
        body = {"proofId": "proof_1", "nullifier": "b" * 64, "txHash": "tx_1", "threshold": 5000,
                "status": "confirmed", "submittedAt": 10, "confirmedAt": 20, "expiresAt": 2_592_020}
        view = await api_for(lambda request: httpx.Response(200, json=body)).get_status("proof_1")
        assert view.status == ProofStatus.CONFIRMED
        assert view.confirmed_at == 20

    @pytest.mark.asyncio
    async def test_get_status_not_found(self):
        client = api_for(lambda request: httpx.Response(404, json={"error": "Proof not found"}))
        with pytest.raises(ProofNotFoundError):
            await client.get_status("proof_1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(201, json={"ok": True}),
        httpx.Response(201, json=["proof_1"]),
        httpx.Response(201, json={"proofId": "proof_1", "status": "settled"}),
        httpx.Response(201, text="<html>gateway</html>"),
    ])
    async def test_unreadable_submit_response(self, response):
        client = api_for(lambda request: response)
        with pytest.raises(MalformedApiResponseError):
            await client.submit(make_proof(), "0xsig", "wallet-1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("response", [
        httpx.Response(200, text="<html>gateway</html>"),
        httpx.Response(200, json={"proofId": "proof_1"}),
        httpx.Response(200, json=None),
    ])
    async def test_unreadable_status_response(self, response):
        client = api_for(lambda request: response)
        with pytest.raises(MalformedApiResponseError) as exc_info:
            await client.get_status("proof_1")
        assert isinstance(exc_info.value, NetworkError)
