"""Tests for the verifier sidecar clients."""

import json

import httpx
import pytest

from app.attest.exceptions import VerificationTimeout, VerifierError
from app.attest.verifiers import (
    SelfVerificationResult,
    SelfVerifierClient,
    ZKPassportClient,
    ZKPassportResult,
)

from conftest import TEST_USER_ID, self_payload


def _mount(client, handler):
    """Route a sidecar client's requests through an in-process handler."""
    client._client = httpx.AsyncClient(
        base_url=client.base_url, transport=httpx.MockTransport(handler)
    )
    return client


class TestPayloadParsing:

    def test_self_result(self):
        result = SelfVerificationResult.from_payload(self_payload())
        assert result.is_valid is True
        assert result.user_identifier == TEST_USER_ID
        assert result.disclose_output["issuingState"] == "USA"
        assert result.user_defined_data

    def test_self_result_requires_literal_true(self):
        result = SelfVerificationResult.from_payload({"isValidDetails": {"isValid": "true"}})
        assert result.is_valid is False
        assert result.user_identifier is None
        assert result.disclose_output == {}

    def test_zkpassport_result(self):
        result = ZKPassportResult.from_payload(
            {"verified": True, "uniqueIdentifier": "abc", "queryResultErrors": {}}
        )
        assert (result.verified, result.unique_identifier, result.query_result_errors) == (True, "abc", {})

    def test_zkpassport_result_empty(self):
        result = ZKPassportResult.from_payload({})
        assert result.verified is False
        assert result.unique_identifier is None


class TestSelfVerifierClient:

    @pytest.mark.asyncio
    async def test_request_contract(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json=self_payload())

        client = _mount(
            SelfVerifierClient(base_url="http://self-verifier", scope="test-scope",
                               endpoint="https://gw.example/api/verify", mock_passport=True),
            handler,
        )
        result = await client.verify(1, {"a": 1}, ["1", "2"], "ctx")
        await client.close()

        assert result.is_valid is True
        assert seen["path"] == "/verify"
        body = seen["body"]
        assert body["attestationId"] == 1
        assert body["publicSignals"] == ["1", "2"]
        assert body["scope"] == "test-scope"
        assert body["mockPassport"] is True
        assert body["userIdentifierType"] == "uuid"
        assert "excludedCountries" in body["config"]
        assert "ofac" in body["config"]

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        client = _mount(
            SelfVerifierClient(base_url="http://self-verifier"),
            lambda request: httpx.Response(500, text="boom"),
        )
        with pytest.raises(VerifierError) as exc_info:
            await client.verify(1, {}, ["1"], "ctx")
        assert exc_info.value.status_code == 502

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        client = _mount(
            SelfVerifierClient(base_url="http://self-verifier"),
            lambda request: httpx.Response(200, text="<html>"),
        )
        with pytest.raises(VerifierError, match="invalid JSON"):
            await client.verify(1, {}, ["1"], "ctx")

    @pytest.mark.asyncio
    async def test_non_object_json(self):
        client = _mount(
            SelfVerifierClient(base_url="http://self-verifier"),
            lambda request: httpx.Response(200, json=[1, 2]),
        )
        with pytest.raises(VerifierError):
            await client.verify(1, {}, ["1"], "ctx")

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        client = _mount(SelfVerifierClient(base_url="http://self-verifier", timeout=1.0), handler)
        with pytest.raises(VerificationTimeout):
            await client.verify(1, {}, ["1"], "ctx")

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = _mount(SelfVerifierClient(base_url="http://self-verifier"), handler)
        with pytest.raises(VerifierError, match="unreachable"):
            await client.verify(1, {}, ["1"], "ctx")

    def test_ready_requires_url(self):
        assert SelfVerifierClient(base_url="http://self-verifier").ready is True
        assert SelfVerifierClient(base_url="").ready is False


class TestZKPassportClient:

    @pytest.mark.asyncio
    async def test_request_contract(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"verified": True, "uniqueIdentifier": "uid-9"})

        client = _mount(ZKPassportClient(base_url="http://zkpassport-verifier"), handler)
        result = await client.verify([{"proof": "0x1"}], {"age": {}}, "scope-x", False)
        await client.close()

        assert result.verified is True
        assert result.unique_identifier == "uid-9"
        assert seen["body"] == {
            "proofs": [{"proof": "0x1"}],
            "queryResult": {"age": {}},
            "scope": "scope-x",
            "devMode": False,
        }
