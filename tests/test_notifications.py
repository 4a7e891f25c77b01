"""Tests for progress notification sinks."""

import json
from unittest.mock import patch

import pytest

from meeting_transcriber.notifications import (
    LoggingNotificationSink,
    NotificationSink,
    WebhookNotificationSink,
    notify_safely,
)
from meeting_transcriber.notifications.sink import build_progress_message
from meeting_transcriber.utils.errors import MaxRetriesExceededError, ServerFailureError

WEBHOOK_URL = "https://hooks.example.com/progress"


async def _no_sleep(delay: float) -> None:
    return None


class ExplodingSink(NotificationSink):
    def __init__(self) -> None:
        self.calls = 0

    async def send_progress_notification(self, job_id, job_name, percent):
        self.calls += 1
        raise RuntimeError("no route to host")


class TestProgressMessage:
    def test_named_job(self):
        assert build_progress_message("Weekly sync", 50) == (
            "Processing Update",
            "'Weekly sync' is 50% complete",
        )

    def test_unnamed_job(self):
        _, body = build_progress_message("", 100)
        assert body == "'Untitled Meeting' is 100% complete"


class TestLoggingNotificationSink:
    async def test_records_and_logs(self, caplog):
        sink = LoggingNotificationSink()

        with caplog.at_level("INFO"):
            await sink.send_progress_notification("job-1", "Standup", 50)

        assert sink.sent == [("job-1", "Standup", 50)]
        assert "'Standup' is 50% complete" in caplog.text


class TestWebhookNotificationSink:
    async def test_posts_payload(self, httpx_mock):
        httpx_mock.add_response(url=WEBHOOK_URL, method="POST", status_code=204)
        sink = WebhookNotificationSink(WEBHOOK_URL)

        await sink.send_progress_notification("job-1", "Standup", 100)
        await sink.close()

        body = json.loads(httpx_mock.get_request().content)
        assert body["job_id"] == "job-1"
        assert body["job_name"] == "Standup"
        assert body["percent"] == 100
        assert body["title"] == "Processing Update"
        assert body["body"] == "'Standup' is 100% complete"
        assert "sent_at" in body

    async def test_client_error_status_raises_without_retry(self, httpx_mock):
        httpx_mock.add_response(url=WEBHOOK_URL, status_code=404)
        sink = WebhookNotificationSink(WEBHOOK_URL)

        with pytest.raises(ServerFailureError) as exc_info:
            await sink.send_progress_notification("job-1", "Standup", 50)

        assert exc_info.value.status_code == 404
        assert len(httpx_mock.get_requests()) == 1

    async def test_retries_transient_status_then_succeeds(self, httpx_mock):
        httpx_mock.add_response(url=WEBHOOK_URL, status_code=503)
        httpx_mock.add_response(url=WEBHOOK_URL, status_code=204)
        sink = WebhookNotificationSink(WEBHOOK_URL)

        with patch("meeting_transcriber.utils.retry.asyncio.sleep", side_effect=_no_sleep):
            await sink.send_progress_notification("job-1", "Standup", 50)

        assert len(httpx_mock.get_requests()) == 2

    async def test_persistent_server_error_exhausts_retries(self, httpx_mock):
        for _ in range(3):
            httpx_mock.add_response(url=WEBHOOK_URL, status_code=500)
        sink = WebhookNotificationSink(WEBHOOK_URL)

        with patch("meeting_transcriber.utils.retry.asyncio.sleep", side_effect=_no_sleep):
            with pytest.raises(MaxRetriesExceededError):
                await sink.send_progress_notification("job-1", "Standup", 50)

        assert len(httpx_mock.get_requests()) == 3


class TestNotifySafely:
    async def test_swallows_failure(self):
        sink = ExplodingSink()

        assert await notify_safely(sink, "job-1", "Standup", 50) is False
        assert sink.calls == 1

    async def test_skips_without_job_id(self):
        sink = ExplodingSink()

        assert await notify_safely(sink, None, "Standup", 50) is False
        assert sink.calls == 0

    async def test_skips_without_sink(self):
        assert await notify_safely(None, "job-1", "Standup", 50) is False

    async def test_reports_success(self):
        sink = LoggingNotificationSink()
        assert await notify_safely(sink, "job-1", "", 100) is True
