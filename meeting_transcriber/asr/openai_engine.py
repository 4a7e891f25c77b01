"""OpenAI audio transcription client.

Implements OpenAITranscriptionEngine against the /audio/transcriptions
endpoint: one multipart upload per call, `{"text": ...}` on success and an
`{"error": {...}}` envelope with a non-2xx status on failure.
"""

import logging

from meeting_transcriber.asr.interface import ASREngine
from meeting_transcriber.config import DEFAULT_OPENAI_BASE_URL, DEFAULT_TRANSCRIPTION_MODEL
from meeting_transcriber.transport.http_client import (
    TransportClient,
    TransportRequest,
    decode_json,
    raise_for_status,
)
from meeting_transcriber.utils.errors import DecodeFailureError

logger = logging.getLogger(__name__)

UPLOAD_FILENAME = "audio.m4a"
UPLOAD_CONTENT_TYPE = "audio/m4a"


class OpenAITranscriptionEngine(ASREngine):
    """Speech-to-text via the OpenAI transcription endpoint.

    Args:
        transport: Authenticated transport client.
        base_url: API base URL (default production endpoint).
        model: Transcription model name.
    """

    name = "openai"

    def __init__(
        self,
        transport: TransportClient,
        base_url: str = DEFAULT_OPENAI_BASE_URL,
        model: str = DEFAULT_TRANSCRIPTION_MODEL,
    ) -> None:
        self._transport = transport
        self._base_url = base_url.rstrip("/")
        self._model = model

    def ensure_ready(self) -> None:
        self._transport.require_api_key()

    async def transcribe(
        self,
        audio: bytes,
        *,
        request_timeout: float | None = None,
        resource_timeout: float | None = None,
    ) -> str:
        """Upload audio and return the transcript text.

        Raises:
            MissingCredentialError: If no API key is configured.
            NetworkFailureError: On transport-level failures.
            ServerFailureError: On a non-2xx response.
            DecodeFailureError: If the response has no string `text` field.
        """
        request = TransportRequest(
            method="POST",
            url=f"{self._base_url}/audio/transcriptions",
            files={"file": (UPLOAD_FILENAME, audio, UPLOAD_CONTENT_TYPE)},
            data={"model": self._model},
            request_timeout=request_timeout,
            resource_timeout=resource_timeout,
        )
        response = await self._transport.send(request)
        raise_for_status(response, provider=self.name)

        payload = decode_json(response)
        text = payload.get("text")
        if not isinstance(text, str):
            raise DecodeFailureError(
                f"Unexpected transcription response: {response.text[:200]}",
                body=response.text,
            )

        logger.info(
            "Transcribed %d bytes of audio into %d characters",
            len(audio),
            len(text),
        )
        return text
