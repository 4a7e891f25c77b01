"""Shared fakes for pipeline-level tests."""

from __future__ import annotations

import pytest

from meeting_transcriber.asr.interface import ASREngine
from meeting_transcriber.audio.source import AudioSource
from meeting_transcriber.utils.errors import MissingCredentialError


class ScriptedEngine(ASREngine):
    """ASR engine that replays a fixed list of outcomes in call order.

    Each outcome is either the transcript text to return or an exception
    instance to raise.
    """

    name = "scripted"

    def __init__(self, outcomes: list, has_credentials: bool = True) -> None:
        self._outcomes = list(outcomes)
        self.has_credentials = has_credentials
        self.calls: list[tuple[bytes, float | None]] = []

    def ensure_ready(self) -> None:
        if not self.has_credentials:
            raise MissingCredentialError("No API key configured")

    async def transcribe(self, audio, *, request_timeout=None, resource_timeout=None):
        self.calls.append((audio, request_timeout))
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeExtractor:
    """Segment extractor returning a label of the requested range."""

    def __init__(self) -> None:
        self.requests: list[tuple[float, float]] = []

    def extract(self, input_path, start_seconds, duration_seconds):
        self.requests.append((start_seconds, duration_seconds))
        return f"chunk@{start_seconds:.0f}".encode()


@pytest.fixture
def audio_file(tmp_path):
    path = tmp_path / "meeting.m4a"
    path.write_bytes(b"\x00\x00\x00\x20ftypM4A fake audio payload")
    return path


@pytest.fixture
def make_source(audio_file):
    def _make(duration_seconds: float | None, size_bytes: int | None = None):
        return AudioSource(
            path=str(audio_file),
            duration_seconds=duration_seconds,
            size_bytes=size_bytes if size_bytes is not None else audio_file.stat().st_size,
        )

    return _make
