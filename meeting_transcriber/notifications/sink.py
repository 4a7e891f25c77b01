"""Progress notification sinks.

The orchestrator reports milestones (halfway, completion) through a
NotificationSink. Delivery is fire-and-forget: notify_safely() logs and
swallows any failure so a notification problem never changes a job outcome.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any

import httpx

from meeting_transcriber.utils.errors import NetworkFailureError, ServerFailureError
from meeting_transcriber.utils.retry import GENERIC_POLICY, retry_with_backoff

logger = logging.getLogger(__name__)

UNTITLED_MEETING = "Untitled Meeting"
PROGRESS_TITLE = "Processing Update"
WEBHOOK_TIMEOUT_SECONDS = 10.0


def build_progress_message(job_name: str, percent: int) -> tuple[str, str]:
    """Return the (title, body) pair shown for a progress milestone."""
    name = job_name or UNTITLED_MEETING
    return PROGRESS_TITLE, f"'{name}' is {percent}% complete"


class NotificationSink(ABC):
    """Receiver of job progress milestones."""

    @abstractmethod
    async def send_progress_notification(
        self, job_id: str, job_name: str, percent: int
    ) -> None:
        """Deliver one progress notification."""


class LoggingNotificationSink(NotificationSink):
    """Writes notifications to the log instead of delivering them."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, int]] = []

    async def send_progress_notification(
        self, job_id: str, job_name: str, percent: int
    ) -> None:
        title, body = build_progress_message(job_name, percent)
        self.sent.append((job_id, job_name, percent))
        logger.info("%s: %s", title, body, extra={"job_id": job_id})


class WebhookNotificationSink(NotificationSink):
    """POSTs notifications as JSON to a webhook URL.

    Args:
        url: Webhook endpoint.
        client: Optional preconfigured httpx.AsyncClient.
    """

    def __init__(self, url: str, client: httpx.AsyncClient | None = None) -> None:
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=WEBHOOK_TIMEOUT_SECONDS)

    async def close(self) -> None:
        await self._client.aclose()

    def _payload(self, job_id: str, job_name: str, percent: int) -> dict[str, Any]:
        title, body = build_progress_message(job_name, percent)
        return {
            "job_id": job_id,
            "job_name": job_name,
            "percent": percent,
            "title": title,
            "body": body,
            "sent_at": datetime.now(UTC).isoformat(),
        }

    @retry_with_backoff(policy=GENERIC_POLICY)
    async def _post(self, payload: dict[str, Any]) -> None:
        try:
            response = await self._client.post(self.url, json=payload)
        except httpx.RequestError as exc:
            raise NetworkFailureError(
                f"Webhook POST failed: {exc}", cause=exc
            ) from exc

        if response.status_code >= 400:
            raise ServerFailureError(
                f"Webhook POST failed: HTTP {response.status_code}",
                status_code=response.status_code,
                body=response.text,
            )

    async def send_progress_notification(
        self, job_id: str, job_name: str, percent: int
    ) -> None:
        """POST the notification, retrying transient failures.

        Raises:
            ServerFailureError: On a non-retryable error status.
            MaxRetriesExceededError: If every attempt failed transiently.
        """
        await self._post(self._payload(job_id, job_name, percent))
        logger.info(
            "Progress notification sent: %d%%", percent, extra={"job_id": job_id}
        )


async def notify_safely(
    sink: NotificationSink | None, job_id: str | None, job_name: str, percent: int
) -> bool:
    """Send a notification, logging instead of raising on failure.

    Returns:
        True if the sink accepted the notification.
    """
    if sink is None or not job_id:
        return False
    try:
        await sink.send_progress_notification(job_id, job_name, percent)
    except Exception:
        logger.warning(
            "Progress notification (%d%%) failed, continuing",
            percent,
            exc_info=True,
            extra={"job_id": job_id},
        )
        return False
    return True
