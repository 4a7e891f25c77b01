"""Transcription orchestrator.

Drives one job through its states:
validate -> (direct transcribe | chunk -> transcribe chunks -> merge) -> done.
Each network attempt runs under the retry engine with a duration-aware
timeout; any failure moves the job to FAILED and is reported on the result.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import tempfile
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, TextIO

from meeting_transcriber.asr.interface import ASREngine
from meeting_transcriber.asr.postprocess import merge_transcripts
from meeting_transcriber.audio.chunker import AudioChunk, AudioChunker
from meeting_transcriber.audio.source import AudioSource
from meeting_transcriber.audio.speedup import speed_up_audio
from meeting_transcriber.notifications.sink import NotificationSink, notify_safely
from meeting_transcriber.observability.metrics import JobMetrics, log_job_metrics
from meeting_transcriber.progress import ProgressCallback, TranscriptionProgress
from meeting_transcriber.utils.errors import (
    ChunkFailedPermanentlyError,
    EmptyResultError,
    InsufficientStorageError,
    TranscriptionError,
)
from meeting_transcriber.utils.retry import (
    TRANSCRIPTION_POLICY,
    RetryPolicy,
    execute_with_retry,
    is_retryable_error,
)
from meeting_transcriber.utils.timeout import timeout_for_audio

logger = logging.getLogger(__name__)

CHUNKING_PROGRESS_SHARE = 30.0
HALFWAY_PERCENT = 50
COMPLETE_PERCENT = 100

# Free space needed beyond the source copy and per-chunk scratch files
DISK_BUFFER_BYTES = 100 * 1024 * 1024
PER_CHUNK_SCRATCH_BYTES = 2 * 1024 * 1024

SpeedUp = Callable[[bytes], bytes]


class JobState(str, Enum):
    NOT_STARTED = "not_started"
    VALIDATING = "validating"
    DIRECT_TRANSCRIBE = "direct_transcribe"
    CHUNKING = "chunking"
    TRANSCRIBING_CHUNKS = "transcribing_chunks"
    MERGING = "merging"
    DONE = "done"
    FAILED = "failed"


@dataclass
class JobFailure:
    """Details about a job failure."""

    stage: str
    message: str
    exception_type: str


@dataclass
class TranscriptionResult:
    """Outcome of one orchestrator run."""

    status: Literal["done", "failed"]
    job_id: str
    transcript: str
    state: JobState
    state_history: list[JobState]
    metrics: JobMetrics
    error: JobFailure | None = None
    exception: Exception | None = None


class _StageTimer:
    """Context manager for recording stage timings."""

    def __init__(self, stage_name: str, timings: dict[str, float]) -> None:
        self._stage_name = stage_name
        self._timings = timings
        self._start: float = 0.0

    def __enter__(self) -> _StageTimer:
        self._start = time.monotonic()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        elapsed = time.monotonic() - self._start
        if exc_type is not None:
            self._timings[f"_{self._stage_name}_failed"] = elapsed
        else:
            self._timings[self._stage_name] = elapsed


class _JobRun:
    """Mutable state scoped to a single run (never shared across runs)."""

    def __init__(
        self,
        job_id: str,
        job_name: str,
        source: AudioSource,
        on_progress: ProgressCallback | None,
    ) -> None:
        self.job_id = job_id
        self.job_name = job_name
        self.source = source
        self.on_progress = on_progress
        self.state = JobState.NOT_STARTED
        self.history: list[JobState] = [JobState.NOT_STARTED]
        self.halfway_notified = False
        self.last_percent = 0.0
        self.metrics = JobMetrics(
            job_id=job_id,
            status="running",
            path=source.path,
            source_duration_seconds=source.duration_seconds or 0.0,
            source_size_bytes=source.size_bytes,
        )

    def transition(self, state: JobState) -> None:
        logger.info(
            "Job state %s -> %s",
            self.state.value,
            state.value,
            extra={"job_id": self.job_id, "stage": state.value},
        )
        self.state = state
        self.history.append(state)

    def report(
        self,
        current_chunk: int,
        total_chunks: int,
        stage: str,
        percent: float,
        partial_transcript: str | None = None,
    ) -> None:
        # Clamp so percent never moves backwards within a run
        percent = max(self.last_percent, min(100.0, percent))
        self.last_percent = percent
        if self.on_progress is None:
            return
        self.on_progress(
            TranscriptionProgress(
                current_chunk=current_chunk,
                total_chunks=total_chunks,
                stage=stage,
                percent_complete=percent,
                partial_transcript=partial_transcript,
            )
        )


class TranscriptionOrchestrator:
    """Runs transcription jobs against an ASR engine.

    Args:
        engine: Speech-to-text engine.
        chunker: Validator and splitter for long sources.
        notifier: Optional sink for halfway/completion milestones.
        retry_policy: Attempt cap and backoff for each transcription call.
        speed_up: Best-effort audio transform applied before upload, or None
            to send audio unchanged.
        metrics_stream: Where job metrics are written (stdout by default).
    """

    def __init__(
        self,
        engine: ASREngine,
        chunker: AudioChunker | None = None,
        notifier: NotificationSink | None = None,
        retry_policy: RetryPolicy = TRANSCRIPTION_POLICY,
        speed_up: SpeedUp | None = speed_up_audio,
        metrics_stream: TextIO | None = None,
    ) -> None:
        self.engine = engine
        self.chunker = chunker or AudioChunker()
        self.notifier = notifier
        self.retry_policy = retry_policy
        self.speed_up = speed_up
        self.metrics_stream = metrics_stream

    async def run(
        self,
        source: AudioSource,
        on_progress: ProgressCallback | None = None,
        job_id: str | None = None,
        job_name: str = "",
    ) -> TranscriptionResult:
        """Transcribe one audio source.

        Never raises for job failures; they are returned on the result with
        status "failed", state FAILED, and the originating exception.

        Args:
            source: Audio file to transcribe.
            on_progress: Called synchronously with monotonically
                non-decreasing progress snapshots.
            job_id: Identifier used for notifications and logs. Without it
                no notifications are sent.
            job_name: Display name used in notification text.
        """
        run = _JobRun(job_id or "", job_name, source, on_progress)
        wall_start = time.monotonic()

        try:
            transcript = await self._execute(run)
        except Exception as exc:
            return self._fail(run, exc, wall_start)

        run.transition(JobState.DONE)
        run.metrics.status = "done"
        run.metrics.transcript_characters = len(transcript)
        run.metrics.processing_wall_time_seconds = time.monotonic() - wall_start
        log_job_metrics(run.metrics, self.metrics_stream)
        logger.info(
            "Transcription finished: %d characters",
            len(transcript),
            extra={
                "job_id": run.job_id,
                "duration_seconds": run.metrics.processing_wall_time_seconds,
            },
        )
        return TranscriptionResult(
            status="done",
            job_id=run.job_id,
            transcript=transcript,
            state=run.state,
            state_history=run.history,
            metrics=run.metrics,
        )

    def _fail(
        self, run: _JobRun, exc: Exception, wall_start: float
    ) -> TranscriptionResult:
        failed_stage = run.state.value
        if isinstance(exc, TranscriptionError) and exc.job_id is None and run.job_id:
            exc.job_id = run.job_id
        logger.error(
            "Transcription failed at stage '%s': %s",
            failed_stage,
            exc,
            exc_info=True,
            extra={"job_id": run.job_id, "stage": failed_stage},
        )
        run.transition(JobState.FAILED)

        run.metrics.status = "failed"
        run.metrics.error_stage = failed_stage
        run.metrics.error_message = str(exc)
        run.metrics.processing_wall_time_seconds = time.monotonic() - wall_start
        log_job_metrics(run.metrics, self.metrics_stream)

        return TranscriptionResult(
            status="failed",
            job_id=run.job_id,
            transcript="",
            state=run.state,
            state_history=run.history,
            metrics=run.metrics,
            error=JobFailure(
                stage=failed_stage,
                message=str(exc),
                exception_type=type(exc).__name__,
            ),
            exception=exc,
        )

    async def _execute(self, run: _JobRun) -> str:
        """Run the job to a transcript. Raises on failure."""
        timings = run.metrics.stage_timings

        # Credentials are checked before any audio work or network call
        self.engine.ensure_ready()

        run.transition(JobState.VALIDATING)
        with _StageTimer("validate", timings):
            self.chunker.validate(run.source)
            self._check_disk_space(run)

        if not self.chunker.needs_chunking(run.source):
            run.metrics.transcription_mode = "direct"
            run.transition(JobState.DIRECT_TRANSCRIBE)
            with _StageTimer("transcribe", timings):
                return await self._transcribe_direct(run)

        run.metrics.transcription_mode = "chunked"
        run.transition(JobState.CHUNKING)
        with _StageTimer("chunk", timings):
            chunks = self._create_chunks(run)
        run.metrics.chunk_count = len(chunks)

        run.transition(JobState.TRANSCRIBING_CHUNKS)
        with _StageTimer("transcribe", timings):
            parts = await self._transcribe_chunks(run, chunks)

        run.transition(JobState.MERGING)
        with _StageTimer("merge", timings):
            transcript = merge_transcripts(parts)
        if not transcript:
            raise EmptyResultError("Merged transcript is empty")

        await notify_safely(self.notifier, run.job_id, run.job_name, COMPLETE_PERCENT)
        return transcript

    def _check_disk_space(self, run: _JobRun) -> None:
        """Require room for a source copy, chunk scratch files and a buffer.

        Proceeds when free space cannot be determined.
        """
        chunk_count = self.chunker.estimate_chunk_count(run.source)
        required = (
            run.source.size_bytes * 2
            + chunk_count * PER_CHUNK_SCRATCH_BYTES
            + DISK_BUFFER_BYTES
        )
        scratch_dir = tempfile.gettempdir()
        try:
            available = shutil.disk_usage(scratch_dir).free
        except OSError as exc:
            logger.warning(
                "Could not read free space of %s, continuing: %s",
                scratch_dir,
                exc,
                extra={"job_id": run.job_id},
            )
            return

        if available < required:
            raise InsufficientStorageError(
                f"Insufficient disk space: need {required / 1_048_576:.0f} MB, "
                f"have {available / 1_048_576:.0f} MB free",
                required_bytes=required,
                available_bytes=available,
            )

    async def _transcribe_direct(self, run: _JobRun) -> str:
        run.metrics.chunk_count = 1
        run.report(1, 1, "Transcribing audio", CHUNKING_PROGRESS_SHARE)

        audio = await self._prepare_audio(run, run.source.read_bytes(), None)
        text = await self._transcribe_with_retry(
            audio,
            timeout=timeout_for_audio(run.source.duration_seconds),
            description="transcription",
        )
        transcript = text.strip()
        if not transcript:
            raise EmptyResultError("Transcription returned no text")

        run.report(1, 1, "Transcription complete", 100.0, partial_transcript=transcript)
        return transcript

    def _create_chunks(self, run: _JobRun) -> list[AudioChunk]:
        def scaled(progress: TranscriptionProgress) -> None:
            run.report(
                progress.current_chunk,
                progress.total_chunks,
                progress.stage,
                progress.percent_complete * (CHUNKING_PROGRESS_SHARE / 100.0),
            )

        return self.chunker.create_chunks(run.source, on_progress=scaled)

    async def _transcribe_chunks(
        self, run: _JobRun, chunks: list[AudioChunk]
    ) -> list[str]:
        total = len(chunks)
        share = 100.0 - CHUNKING_PROGRESS_SHARE
        parts: list[str] = []

        for chunk in chunks:
            number = chunk.index + 1
            run.report(
                number,
                total,
                f"Transcribing chunk {number} of {total}",
                CHUNKING_PROGRESS_SHARE + (chunk.index / total) * share,
            )

            try:
                audio = await self._prepare_audio(run, chunk.data, chunk.index)
                text = await self._transcribe_with_retry(
                    audio,
                    timeout=timeout_for_audio(chunk.duration_seconds),
                    description=f"chunk {number}/{total}",
                )
            except TranscriptionError as exc:
                logger.error(
                    "Chunk %d/%d failed after all retries: %s",
                    number,
                    total,
                    exc,
                    extra={"job_id": run.job_id, "chunk_index": chunk.index},
                )
                raise ChunkFailedPermanentlyError(
                    f"Chunk {number} of {total} failed: {exc}",
                    chunk_index=chunk.index,
                    total_chunks=total,
                    cause=exc,
                ) from exc

            parts.append(text)
            percent = CHUNKING_PROGRESS_SHARE + (number / total) * share

            if percent >= HALFWAY_PERCENT and not run.halfway_notified:
                run.halfway_notified = True
                await notify_safely(
                    self.notifier, run.job_id, run.job_name, HALFWAY_PERCENT
                )

            run.report(
                number,
                total,
                f"Chunk {number} completed",
                percent,
                partial_transcript=text,
            )

        run.report(total, total, "Combining transcripts", 100.0)
        return parts

    async def _prepare_audio(
        self, run: _JobRun, data: bytes, chunk_index: int | None
    ) -> bytes:
        """Apply the speed-up transform, falling back to the original bytes."""
        if self.speed_up is None:
            return data
        try:
            result = await asyncio.to_thread(self.speed_up, data)
        except Exception:
            run.metrics.speedup_fallbacks += 1
            logger.warning(
                "Speed-up failed, sending original audio",
                exc_info=True,
                extra={"job_id": run.job_id, "chunk_index": chunk_index},
            )
            return data
        run.metrics.speedup_applied += 1
        return result

    async def _transcribe_with_retry(
        self, audio: bytes, timeout: float, description: str
    ) -> str:
        return await execute_with_retry(
            lambda: self.engine.transcribe(
                audio, request_timeout=timeout, resource_timeout=timeout
            ),
            max_attempts=self.retry_policy.max_attempts,
            initial_delay=self.retry_policy.initial_delay,
            multiplier=self.retry_policy.multiplier,
            is_retryable=is_retryable_error,
            description=description,
            attempt_timeout=timeout,
        )
