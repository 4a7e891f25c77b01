"""Chat completion helpers for transcript post-processing.

ChatClient wraps /chat/completions and /responses calls with the generic
retry policy. summarize_text() and generate_title() carry the prompts used
to turn a finished transcript into notes.
"""

import logging
from typing import Any

from meeting_transcriber.config import DEFAULT_CHAT_MODEL, DEFAULT_OPENAI_BASE_URL
from meeting_transcriber.llm.responses import combined_output_text, decode_output
from meeting_transcriber.transport.http_client import (
    TransportClient,
    TransportRequest,
    decode_json,
    raise_for_status,
)
from meeting_transcriber.utils.errors import DecodeFailureError
from meeting_transcriber.utils.retry import (
    GENERIC_POLICY,
    RetryPolicy,
    execute_with_retry,
    is_retryable_error,
)

logger = logging.getLogger(__name__)

SUMMARY_MAX_TOKENS = 500
TITLE_MAX_TOKENS = 20
DEFAULT_TITLE = "Untitled Note"

SUMMARY_SYSTEM_PROMPT = (
    "You are a helpful assistant that summarizes spoken notes into "
    "actionable insights."
)
SUMMARY_PROMPT = """Please analyze the following transcript and provide:
1. Key points and insights
2. Actionable items or tasks mentioned
3. Important decisions or conclusions

Keep the summary concise but comprehensive. Format as bullet points.

Transcript: {text}"""

TITLE_SYSTEM_PROMPT = (
    "You generate concise, descriptive titles for notes. Always respond with "
    "exactly 2-3 words, properly capitalized."
)
TITLE_PROMPT = """Generate an appropriate title for this note transcript in exactly 2-3 words. The title should be concise, descriptive, and capture the main topic or purpose.

Examples:
- "Meeting Notes Summary"
- "Weekly Project Update"
- "Shopping List Items"
- "Travel Planning Ideas"

Transcript: {text}"""


class ChatClient:
    """Chat completions over the authenticated transport.

    Args:
        transport: Authenticated transport client.
        base_url: API base URL.
        model: Chat model name.
        retry_policy: Attempt cap and backoff for each call.
    """

    def __init__(
        self,
        transport: TransportClient,
        base_url: str = DEFAULT_OPENAI_BASE_URL,
        model: str = DEFAULT_CHAT_MODEL,
        retry_policy: RetryPolicy = GENERIC_POLICY,
    ) -> None:
        self._transport = transport
        self._base_url = base_url.rstrip("/")
        self._model = model
        self._retry_policy = retry_policy

    async def _post_json(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        request = TransportRequest(
            method="POST",
            url=f"{self._base_url}{path}",
            headers={"Content-Type": "application/json"},
            json=body,
        )

        async def attempt() -> dict[str, Any]:
            response = await self._transport.send(request)
            raise_for_status(response, provider="openai")
            return decode_json(response)

        return await execute_with_retry(
            attempt,
            max_attempts=self._retry_policy.max_attempts,
            initial_delay=self._retry_policy.initial_delay,
            multiplier=self._retry_policy.multiplier,
            is_retryable=is_retryable_error,
            description=f"POST {path}",
        )

    async def complete(self, messages: list[dict[str, str]], max_tokens: int) -> str:
        """Return the first choice's message content.

        Raises:
            MissingCredentialError: If no API key is configured.
            MaxRetriesExceededError: If transient failures persist.
            ServerFailureError: On a non-retryable HTTP error.
            DecodeFailureError: If the response carries no message content.
        """
        self._transport.require_api_key()
        payload = await self._post_json(
            "/chat/completions",
            {"model": self._model, "messages": messages, "max_tokens": max_tokens},
        )
        choices = payload.get("choices")
        try:
            content = choices[0]["message"]["content"]
        except (TypeError, IndexError, KeyError) as exc:
            raise DecodeFailureError(
                "Chat completion response has no message content"
            ) from exc
        if not isinstance(content, str):
            raise DecodeFailureError("Chat completion content is not a string")
        return content

    async def summarize_text(self, text: str) -> str:
        """Bullet-point summary of key points, actions, and decisions."""
        summary = await self.complete(
            [
                {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                {"role": "user", "content": SUMMARY_PROMPT.format(text=text)},
            ],
            max_tokens=SUMMARY_MAX_TOKENS,
        )
        logger.info("Generated summary of %d characters", len(summary))
        return summary

    async def generate_title(self, text: str) -> str:
        """Two-to-three word title; DEFAULT_TITLE if the model returns nothing."""
        title = await self.complete(
            [
                {"role": "system", "content": TITLE_SYSTEM_PROMPT},
                {"role": "user", "content": TITLE_PROMPT.format(text=text)},
            ],
            max_tokens=TITLE_MAX_TOKENS,
        )
        return title.strip() or DEFAULT_TITLE

    async def respond(self, input_text: str) -> str:
        """Single-turn call to the Responses API returning its combined text.

        Raises:
            DecodeFailureError: If no message item carries text.
        """
        self._transport.require_api_key()
        payload = await self._post_json(
            "/responses", {"model": self._model, "input": input_text}
        )
        text = combined_output_text(decode_output(payload))
        if text is None:
            raise DecodeFailureError("Response contained no output text")
        return text
