"""
Tests for the prover client and proof response validation.

Failure categories must stay distinct: timeout, unreachable, other network
error, prover error status, malformed response.
"""
import json

import httpx
import pytest

from incomeproof.config import ProverSettings
from incomeproof.errors import (
    MalformedProofResponseError,
    NetworkError,
    ProofValidationError,
    ProverServiceError,
    ProverTimeoutError,
    ProverUnreachableError,
    WitnessValidationError,
)
from incomeproof.models.proof import CircuitType, ZKProof
from incomeproof.services.proof_server import ProverClient


NULLIFIER = "b" * 64


def prover_response(**overrides):
    body = {
        "proof": "0xproofblob",
        "publicOutputs": {"nullifier": NULLIFIER, "timestamp": 1_700_000_000, "expiresAt": 1_702_592_000},
    }
    body.update(overrides)
    return body


def client_for(handler):
    return ProverClient(ProverSettings(url="http://prover.test", timeout=1.0),
                        transport=httpx.MockTransport(handler))


class TestGenerateProof:

    @pytest.mark.asyncio
    async def test_posts_circuit_witness_and_threshold(self, sample_witness):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=prover_response())

        proof = await client_for(handler).generate_proof(CircuitType.VERIFY_INCOME, sample_witness, 4000)

        assert seen["path"] == "/prove"
        assert seen["body"]["circuit"] == "verifyIncome"
        assert seen["body"]["witness"] == sample_witness.to_dict()
        assert seen["body"]["publicInputs"] == {"threshold": 4000}
        assert proof.nullifier == NULLIFIER
        assert proof.threshold == 4000
        assert proof.public_outputs.expires_at == 1_702_592_000

    @pytest.mark.asyncio
    async def test_accepts_circuit_name(self, sample_witness):
        client = client_for(lambda request: httpx.Response(200, json=prover_response()))
        proof = await client.generate_proof("verifyAssets", sample_witness, 1)
        assert isinstance(proof, ZKProof)

    @pytest.mark.asyncio
    async def test_unknown_circuit_rejected_before_network(self, sample_witness):
        def handler(request):
            raise AssertionError("prover must not be called")

        with pytest.raises(ProofValidationError):
            await client_for(handler).generate_proof("verifyEverything", sample_witness, 1)

    @pytest.mark.asyncio
    async def test_timeout(self, sample_witness):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(ProverTimeoutError):
            await client_for(handler).generate_proof(CircuitType.VERIFY_INCOME, sample_witness, 1)

    @pytest.mark.asyncio
    async def test_connection_refused(self, sample_witness):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ProverUnreachableError):
            await client_for(handler).generate_proof(CircuitType.VERIFY_INCOME, sample_witness, 1)

    @pytest.mark.asyncio
    async def test_other_transport_error(self, sample_witness):
        def handler(request):
            raise httpx.RemoteProtocolError("bad frame", request=request)

        with pytest.raises(NetworkError):
            await client_for(handler).generate_proof(CircuitType.VERIFY_INCOME, sample_witness, 1)

    @pytest.mark.asyncio
    async def test_error_status(self, sample_witness):
        client = client_for(lambda request: httpx.Response(
            500, json={"error": {"code": "PROOF_FAILED", "message": "constraint unsatisfied"}}))
        with pytest.raises(ProverServiceError) as exc_info:
            await client.generate_proof(CircuitType.VERIFY_INCOME, sample_witness, 1)
        assert exc_info.value.status_code == 500
        assert "constraint unsatisfied" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_non_json_body(self, sample_witness):
        client = client_for(lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(MalformedProofResponseError):
            await client.generate_proof(CircuitType.VERIFY_INCOME, sample_witness, 1)


class TestProofResponseValidation:

    @pytest.mark.parametrize("body", [
        [],
        prover_response(proof=""),
        prover_response(proof=None),
        prover_response(publicOutputs=None),
        prover_response(publicOutputs={"nullifier": "xyz", "timestamp": 1, "expiresAt": 2}),
        prover_response(publicOutputs={"nullifier": NULLIFIER, "timestamp": "1", "expiresAt": 2}),
        prover_response(publicOutputs={"nullifier": NULLIFIER, "timestamp": 1, "expiresAt": None}),
        prover_response(publicOutputs={"nullifier": NULLIFIER, "timestamp": 5, "expiresAt": 5}),
        prover_response(publicOutputs={"nullifier": NULLIFIER, "timestamp": True, "expiresAt": 5}),
    ])
    def test_malformed_responses_rejected(self, body):
        with pytest.raises(MalformedProofResponseError):
            ZKProof.from_prover_response(body, 1000)

    @pytest.mark.parametrize("threshold", ["nan", "inf", "-inf", "1e400", "5000.5", "-1", "1_000", "",
                                           "9007199254740992"])
    def test_submitted_threshold_must_be_whole_and_bounded(self, threshold):
        data = {**prover_response(), "publicInputs": [threshold]}
        with pytest.raises(MalformedProofResponseError):
            ZKProof.from_dict(data)

    @pytest.mark.parametrize("threshold,expected", [("5000", 5000), ("5000.0", 5000), ("0", 0), ("5e3", 5000)])
    def test_submitted_threshold_accepted(self, threshold, expected):
        proof = ZKProof.from_dict({**prover_response(), "publicInputs": [threshold]})
        assert proof.threshold == expected
        assert proof.public_inputs == [threshold]

    @pytest.mark.asyncio
    async def test_malformed_response_surfaces_from_client(self, sample_witness):
        client = client_for(lambda request: httpx.Response(200, json=prover_response(proof="")))
        with pytest.raises(MalformedProofResponseError):
            await client.generate_proof(CircuitType.VERIFY_INCOME, sample_witness, 1)

    @pytest.mark.asyncio
    async def test_invalid_witness_rejected_before_network(self, sample_witness):
        def handler(request):
            raise AssertionError("prover must not be called")

        # Bypass the constructor check to simulate a corrupted witness object
        object.__setattr__(sample_witness, "income", -5)
        with pytest.raises(WitnessValidationError):
            await client_for(handler).generate_proof(CircuitType.VERIFY_INCOME, sample_witness, 1)


class TestHealth:

    @pytest.mark.asyncio
    async def test_healthy(self):
        assert await client_for(lambda request: httpx.Response(200, json={"status": "ok"})).health_check()

    @pytest.mark.asyncio
    async def test_down(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert await client_for(handler).health_check() is False

    @pytest.mark.asyncio
    async def test_server_info(self):
        info = {"version": "1.2.0", "circuits": ["verifyIncome", "verifyAssets"]}
        client = client_for(lambda request: httpx.Response(200, json=info))
        assert await client.server_info() == info

    @pytest.mark.asyncio
    async def test_server_info_error_status(self):
        client = client_for(lambda request: httpx.Response(503))
        with pytest.raises(ProverServiceError) as exc_info:
            await client.server_info()
        assert exc_info.value.status_code == 503
