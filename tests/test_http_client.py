"""Tests for meeting_transcriber.transport.http_client module."""

import asyncio
import json

import httpx
import pytest

from meeting_transcriber.config import StaticCredentialProvider
from meeting_transcriber.transport.http_client import (
    TransportClient,
    TransportRequest,
    TransportResponse,
    decode_json,
    raise_for_status,
)
from meeting_transcriber.utils.errors import (
    DecodeFailureError,
    MissingCredentialError,
    NetworkFailureError,
    ServerFailureError,
)


def _client(handler, api_key="sk-test", **kwargs) -> TransportClient:
    return TransportClient(
        StaticCredentialProvider(api_key),
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        **kwargs,
    )


class TestTransportClientSend:
    async def test_adds_bearer_authorization(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["Authorization"]
            return httpx.Response(200, json={"ok": True})

        async with _client(handler) as client:
            response = await client.send(
                TransportRequest(method="GET", url="https://api.example.com/ping")
            )

        assert seen["auth"] == "Bearer sk-test"
        assert response.status_code == 200
        assert response.json() == {"ok": True}

    async def test_error_status_returned_not_raised(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="upstream exploded")

        async with _client(handler) as client:
            response = await client.send(
                TransportRequest(method="POST", url="https://api.example.com/x")
            )

        assert response.status_code == 500
        assert response.text == "upstream exploded"
        assert not response.is_success

    async def test_connection_error_becomes_network_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("name resolution failed", request=request)

        async with _client(handler) as client:
            with pytest.raises(NetworkFailureError) as exc_info:
                await client.send(
                    TransportRequest(method="GET", url="https://api.example.com/")
                )

        assert isinstance(exc_info.value.cause, httpx.ConnectError)

    async def test_undecodable_content_encoding_becomes_decode_failure(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200, headers={"Content-Encoding": "gzip"}, content=b"plain bytes"
            )

        async with _client(handler) as client:
            with pytest.raises(DecodeFailureError, match="undecodable body"):
                await client.send(
                    TransportRequest(method="GET", url="https://api.example.com/x")
                )

    async def test_resource_timeout_becomes_network_failure(self):
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(5)
            return httpx.Response(200)

        async with _client(handler) as client:
            with pytest.raises(NetworkFailureError, match="resource timeout"):
                await client.send(
                    TransportRequest(
                        method="GET",
                        url="https://api.example.com/slow",
                        resource_timeout=0.05,
                    )
                )

    async def test_missing_key_fails_before_request(self):
        calls = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200)

        async with _client(handler, api_key=None) as client:
            with pytest.raises(MissingCredentialError):
                await client.send(
                    TransportRequest(method="GET", url="https://api.example.com/")
                )

        assert calls == []

    async def test_json_body_sent(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={})

        async with _client(handler) as client:
            await client.send(
                TransportRequest(
                    method="POST",
                    url="https://api.example.com/chat",
                    json={"model": "gpt-4o"},
                )
            )

        assert seen["body"] == {"model": "gpt-4o"}

    def test_default_timeouts(self):
        client = TransportClient(StaticCredentialProvider("k"))
        assert client.request_timeout == 120.0
        assert client.resource_timeout == 600.0


class TestRaiseForStatus:
    def test_success_does_not_raise(self):
        raise_for_status(TransportResponse(body=b"{}", status_code=200))

    def test_decodes_error_envelope(self):
        body = json.dumps(
            {
                "error": {
                    "message": "Invalid file format.",
                    "type": "invalid_request_error",
                    "code": "invalid_file",
                }
            }
        ).encode()

        with pytest.raises(ServerFailureError) as exc_info:
            raise_for_status(TransportResponse(body=body, status_code=400), "openai")

        error = exc_info.value
        assert error.status_code == 400
        assert error.api_message == "Invalid file format."
        assert error.error_type == "invalid_request_error"
        assert error.error_code == "invalid_file"
        assert "openai HTTP 400" in str(error)

    def test_plain_text_body_kept_as_snippet(self):
        body = ("x" * 2000).encode()

        with pytest.raises(ServerFailureError) as exc_info:
            raise_for_status(TransportResponse(body=body, status_code=502))

        assert exc_info.value.api_message is None
        assert len(exc_info.value.body) == 500


class TestDecodeJson:
    def test_returns_object(self):
        response = TransportResponse(body=b'{"text": "hi"}', status_code=200)
        assert decode_json(response) == {"text": "hi"}

    def test_invalid_json_raises_decode_failure(self):
        response = TransportResponse(body=b"<html>", status_code=200)
        with pytest.raises(DecodeFailureError):
            decode_json(response)

    def test_non_object_raises_decode_failure(self):
        response = TransportResponse(body=b"[1, 2]", status_code=200)
        with pytest.raises(DecodeFailureError, match="JSON object"):
            decode_json(response)
