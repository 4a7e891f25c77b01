"""Bearer-authenticated HTTP transport.

TransportClient sends one request and returns the raw body and status code.
It raises only for transport-level failures; HTTP status interpretation is
left to callers via raise_for_status() and decode_json().
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from meeting_transcriber.config import CredentialProvider
from meeting_transcriber.utils.errors import (
    DecodeFailureError,
    MissingCredentialError,
    NetworkFailureError,
    ServerFailureError,
)

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT_SECONDS = 120.0
DEFAULT_RESOURCE_TIMEOUT_SECONDS = 600.0


@dataclass
class TransportRequest:
    """A single outbound HTTP request.

    request_timeout bounds each phase of the exchange (connect, send, wait
    for bytes); resource_timeout bounds the whole transfer. None means use
    the client's defaults.
    """

    method: str
    url: str
    headers: dict[str, str] = field(default_factory=dict)
    json: Any = None
    data: dict[str, str] | None = None
    files: dict[str, tuple[str, bytes, str]] | None = None
    request_timeout: float | None = None
    resource_timeout: float | None = None


@dataclass
class TransportResponse:
    """Raw response body and status code."""

    body: bytes
    status_code: int
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        return json.loads(self.body)


class TransportClient:
    """Async HTTP client adding bearer auth and a two-level timeout.

    Args:
        credentials: Provider of the bearer token.
        request_timeout: Default per-phase timeout in seconds (120).
        resource_timeout: Default whole-exchange timeout in seconds (600).
        client: Optional preconfigured httpx.AsyncClient (e.g. with a
            MockTransport in tests).
    """

    def __init__(
        self,
        credentials: CredentialProvider,
        request_timeout: float = DEFAULT_REQUEST_TIMEOUT_SECONDS,
        resource_timeout: float = DEFAULT_RESOURCE_TIMEOUT_SECONDS,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.credentials = credentials
        self.request_timeout = request_timeout
        self.resource_timeout = resource_timeout
        self._client = client or httpx.AsyncClient()

    async def __aenter__(self) -> TransportClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the shared HTTP client and release connection pool."""
        await self._client.aclose()

    def require_api_key(self) -> str:
        """Return the configured API key or raise MissingCredentialError."""
        api_key = self.credentials.get_api_key()
        if not api_key:
            raise MissingCredentialError("No API key configured")
        return api_key

    async def send(self, request: TransportRequest) -> TransportResponse:
        """Send a request and return its body and status.

        Args:
            request: The request to send.

        Returns:
            TransportResponse for any HTTP status, including 4xx/5xx.

        Raises:
            MissingCredentialError: If no API key is available.
            NetworkFailureError: On DNS, connection, or timeout failures.
            DecodeFailureError: If the body cannot be decoded per its
                Content-Encoding.
        """
        api_key = self.require_api_key()
        headers = {"Authorization": f"Bearer {api_key}", **request.headers}

        request_timeout = request.request_timeout or self.request_timeout
        resource_timeout = request.resource_timeout or self.resource_timeout

        try:
            response = await asyncio.wait_for(
                self._client.request(
                    request.method,
                    request.url,
                    headers=headers,
                    json=request.json,
                    data=request.data,
                    files=request.files,
                    timeout=httpx.Timeout(request_timeout),
                ),
                timeout=resource_timeout,
            )
        except TimeoutError as exc:
            raise NetworkFailureError(
                f"{request.method} {request.url} exceeded resource timeout "
                f"of {resource_timeout:g}s",
                cause=exc,
            ) from exc
        except httpx.DecodingError as exc:
            raise DecodeFailureError(
                f"{request.method} {request.url} returned an undecodable body: {exc}"
            ) from exc
        except httpx.RequestError as exc:
            raise NetworkFailureError(
                f"{request.method} {request.url} failed: "
                f"{type(exc).__name__}: {exc}",
                cause=exc,
            ) from exc

        logger.debug(
            "%s %s -> %d (%d bytes)",
            request.method,
            request.url,
            response.status_code,
            len(response.content),
        )
        return TransportResponse(
            body=response.content,
            status_code=response.status_code,
            headers=dict(response.headers),
        )


def raise_for_status(response: TransportResponse, provider: str = "") -> None:
    """Raise ServerFailureError for a non-2xx response.

    Decodes the `{"error": {"message", "type", "code"}}` envelope when the
    body carries one.
    """
    if response.is_success:
        return

    api_message = error_type = error_code = None
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
        error = payload["error"]
        api_message = error.get("message")
        error_type = error.get("type")
        error_code = error.get("code")

    prefix = f"{provider} " if provider else ""
    detail = api_message or response.text[:200]
    raise ServerFailureError(
        f"{prefix}HTTP {response.status_code}: {detail}",
        status_code=response.status_code,
        body=response.text,
        api_message=api_message,
        error_type=error_type,
        error_code=None if error_code is None else str(error_code),
    )


def decode_json(response: TransportResponse) -> dict[str, Any]:
    """Decode a JSON object body or raise DecodeFailureError."""
    try:
        payload = response.json()
    except ValueError as exc:
        raise DecodeFailureError(
            f"Response is not valid JSON: {response.text[:200]}",
            body=response.text,
        ) from exc
    if not isinstance(payload, dict):
        raise DecodeFailureError(
            f"Expected a JSON object, got {type(payload).__name__}",
            body=response.text,
        )
    return payload
