"""Tests for the meeting-transcriber command line."""

from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from meeting_transcriber.main import main
from meeting_transcriber.observability.metrics import JobMetrics
from meeting_transcriber.pipeline import JobFailure, JobState, TranscriptionResult
from meeting_transcriber.utils.errors import ServerFailureError


def _result(status="done", transcript="Hello team.", error=None):
    return TranscriptionResult(
        status=status,
        job_id="job-1",
        transcript=transcript,
        state=JobState.DONE if status == "done" else JobState.FAILED,
        state_history=[],
        metrics=JobMetrics(job_id="job-1", status=status, path="meeting.m4a"),
        error=error,
    )


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("meeting_transcriber.main.configure_logging"):
        yield


class TestTranscribeCommand:
    def test_help(self):
        result = CliRunner().invoke(main, ["transcribe", "--help"])

        assert result.exit_code == 0
        assert "--no-speedup" in result.output
        assert "--long-running" in result.output

    def test_prints_transcript(self, audio_file):
        run = AsyncMock(return_value=_result())
        with patch("meeting_transcriber.main._run_transcription", run):
            result = CliRunner().invoke(
                main,
                ["transcribe", str(audio_file), "--job-id", "job-1", "--job-name", "Sync"],
            )

        assert result.exit_code == 0
        assert "Hello team." in result.output
        kwargs = run.await_args.kwargs
        assert kwargs["job_id"] == "job-1"
        assert kwargs["job_name"] == "Sync"
        assert kwargs["speedup"] is True
        assert kwargs["long_running"] is False

    def test_flags_forwarded(self, audio_file):
        run = AsyncMock(return_value=_result())
        with patch("meeting_transcriber.main._run_transcription", run):
            CliRunner().invoke(
                main, ["transcribe", str(audio_file), "--no-speedup", "--long-running"]
            )

        kwargs = run.await_args.kwargs
        assert kwargs["speedup"] is False
        assert kwargs["long_running"] is True
        assert kwargs["job_id"]

    def test_writes_output_file(self, audio_file, tmp_path):
        out = tmp_path / "transcript.txt"
        run = AsyncMock(return_value=_result(transcript="Saved text."))
        with patch("meeting_transcriber.main._run_transcription", run):
            result = CliRunner().invoke(
                main, ["transcribe", str(audio_file), "--output", str(out)]
            )

        assert result.exit_code == 0
        assert out.read_text() == "Saved text.\n"

    def test_failure_exits_non_zero(self, audio_file):
        failure = JobFailure(
            stage="transcribing_chunks",
            message="Chunk 2 of 3 failed",
            exception_type="ChunkFailedPermanentlyError",
        )
        run = AsyncMock(return_value=_result(status="failed", transcript="", error=failure))
        with patch("meeting_transcriber.main._run_transcription", run):
            result = CliRunner().invoke(main, ["transcribe", str(audio_file)])

        assert result.exit_code == 1
        assert "ChunkFailedPermanentlyError" in result.output

    def test_missing_api_key_fails(self, audio_file, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        monkeypatch.setattr(
            "meeting_transcriber.audio.source.probe_duration", lambda path: 60.0
        )

        result = CliRunner().invoke(main, ["transcribe", str(audio_file)])

        assert result.exit_code == 1
        assert "MissingCredentialError" in result.output

    def test_bad_numeric_setting_reported(self, audio_file, monkeypatch):
        monkeypatch.setenv("CHUNK_WINDOW_SECONDS", "four minutes")

        result = CliRunner().invoke(main, ["transcribe", str(audio_file)])

        assert result.exit_code != 0
        assert "CHUNK_WINDOW_SECONDS" in result.output


class TestSummarizeCommand:
    def test_prints_summary(self, tmp_path):
        transcript = tmp_path / "t.txt"
        transcript.write_text("We agreed to ship on Friday.")
        run = AsyncMock(return_value="- Ship on Friday")
        with patch("meeting_transcriber.main._run_summary", run):
            result = CliRunner().invoke(main, ["summarize", str(transcript), "--title"])

        assert result.exit_code == 0
        assert "- Ship on Friday" in result.output
        assert run.await_args.kwargs["with_title"] is True

    def test_empty_transcript_rejected(self, tmp_path):
        transcript = tmp_path / "t.txt"
        transcript.write_text("   ")

        result = CliRunner().invoke(main, ["summarize", str(transcript)])

        assert result.exit_code != 0
        assert "Transcript is empty" in result.output

    def test_api_failure_exits_non_zero(self, tmp_path):
        transcript = tmp_path / "t.txt"
        transcript.write_text("text")
        run = AsyncMock(side_effect=ServerFailureError("HTTP 401", status_code=401))
        with patch("meeting_transcriber.main._run_summary", run):
            result = CliRunner().invoke(main, ["summarize", str(transcript)])

        assert result.exit_code == 1
        assert "Summary failed" in result.output
