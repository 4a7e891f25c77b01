"""Audio validation and time-window chunking.

Long recordings are split into ordered, contiguous time windows so that each
upload stays within the transcription endpoint's size limit and can be
retried independently. Window boundaries depend only on the source duration,
size, and ChunkerConfig, so the same input always yields the same chunks.
"""

from __future__ import annotations

import logging
import math
import os
import subprocess
import tempfile
from dataclasses import dataclass
from typing import Protocol

from meeting_transcriber.audio.probe import check_ffmpeg_available
from meeting_transcriber.audio.source import AudioSource
from meeting_transcriber.progress import ProgressCallback, TranscriptionProgress
from meeting_transcriber.utils.errors import AudioProcessingError, InvalidInputError

logger = logging.getLogger(__name__)

FFMPEG_SEGMENT_TIMEOUT_SECONDS = 120
# Guards against float noise producing a sliver-sized trailing window
_WINDOW_EPSILON = 1e-6


@dataclass(frozen=True)
class ChunkerConfig:
    """Chunking thresholds.

    Attributes:
        threshold_seconds: Sources longer than this are chunked; a source
            exactly at the threshold is transcribed directly.
        window_seconds: Nominal chunk length.
        max_chunk_size_bytes: Sources larger than this are chunked, with
            windows shrunk so each chunk stays under the cap.
        min_window_seconds: Lower bound for size-derived windows.
        overlap_seconds: Trailing audio appended to each extracted chunk so
            words cut at a boundary are heard in full; not counted in the
            chunk's duration.
    """

    threshold_seconds: float = 300.0
    window_seconds: float = 240.0
    max_chunk_size_bytes: int = 24 * 1024 * 1024
    min_window_seconds: float = 60.0
    overlap_seconds: float = 2.0


@dataclass
class AudioChunk:
    """One contiguous slice of the source, ready for upload."""

    index: int
    data: bytes
    duration_seconds: float
    start_seconds: float = 0.0
    total_chunks: int = 1


@dataclass(frozen=True)
class ChunkWindow:
    """Planned [start, start + duration) interval of the source."""

    index: int
    start_seconds: float
    duration_seconds: float


class SegmentExtractor(Protocol):
    """Cuts a time range out of an audio file and returns encoded bytes."""

    def extract(
        self, input_path: str, start_seconds: float, duration_seconds: float
    ) -> bytes: ...


class FfmpegSegmentExtractor:
    """Extracts segments as AAC/m4a with ffmpeg."""

    def extract(
        self, input_path: str, start_seconds: float, duration_seconds: float
    ) -> bytes:
        """Encode [start, start + duration) of input_path to m4a bytes.

        Raises:
            AudioProcessingError: If ffmpeg is missing, fails, or times out.
        """
        ffmpeg_path = check_ffmpeg_available()

        with tempfile.TemporaryDirectory() as tmp_dir:
            output_path = os.path.join(tmp_dir, "segment.m4a")
            cmd = [
                ffmpeg_path,
                "-y",
                "-ss",
                f"{start_seconds:.3f}",
                "-t",
                f"{duration_seconds:.3f}",
                "-i",
                input_path,
                "-vn",
                "-c:a",
                "aac",
                "-b:a",
                "64k",
                output_path,
            ]
            try:
                subprocess.run(
                    cmd,
                    check=True,
                    capture_output=True,
                    text=True,
                    timeout=FFMPEG_SEGMENT_TIMEOUT_SECONDS,
                )
            except subprocess.CalledProcessError as exc:
                raise AudioProcessingError(
                    f"ffmpeg segment extraction failed: {exc.stderr.strip()}",
                    input_path=input_path,
                ) from exc
            except subprocess.TimeoutExpired as exc:
                raise AudioProcessingError(
                    "ffmpeg segment extraction timed out after "
                    f"{FFMPEG_SEGMENT_TIMEOUT_SECONDS} seconds",
                    input_path=input_path,
                ) from exc

            with open(output_path, "rb") as f:
                return f.read()


class AudioChunker:
    """Validates sources and splits them into ordered AudioChunks.

    Args:
        config: Chunking thresholds.
        extractor: Segment extractor (defaults to ffmpeg).
    """

    def __init__(
        self,
        config: ChunkerConfig | None = None,
        extractor: SegmentExtractor | None = None,
    ) -> None:
        self.config = config or ChunkerConfig()
        self._extractor = extractor or FfmpegSegmentExtractor()

    def validate(self, source: AudioSource) -> None:
        """Reject sources that cannot be transcribed.

        Raises:
            InvalidInputError: If the file is missing, empty, unreadable as
                audio, or has zero duration.
        """
        if not os.path.isfile(source.path):
            raise InvalidInputError("Audio file not found", path=source.path)
        if source.size_bytes <= 0:
            raise InvalidInputError("Audio file is empty", path=source.path)
        if not os.access(source.path, os.R_OK):
            raise InvalidInputError("Audio file is not readable", path=source.path)
        if source.duration_seconds is None:
            raise InvalidInputError(
                "Invalid audio file format: duration unknown", path=source.path
            )
        if source.duration_seconds <= 0:
            raise InvalidInputError("Audio has zero duration", path=source.path)

    def chunk_required(
        self, duration_seconds: float, size_bytes: int | None = None
    ) -> bool:
        """True when the duration or size exceeds the configured thresholds."""
        if duration_seconds > self.config.threshold_seconds:
            return True
        return size_bytes is not None and size_bytes > self.config.max_chunk_size_bytes

    def needs_chunking(self, source: AudioSource) -> bool:
        return self.chunk_required(source.duration_seconds or 0.0, source.size_bytes)

    def _window_length(self, source: AudioSource) -> float:
        window = self.config.window_seconds
        duration = source.duration_seconds or 0.0
        if duration > 0 and source.size_bytes > self.config.max_chunk_size_bytes:
            bytes_per_second = source.size_bytes / duration
            size_window = self.config.max_chunk_size_bytes / bytes_per_second
            window = min(window, max(size_window, self.config.min_window_seconds))
            if window >= duration:
                # Floor would leave the whole over-cap file as one upload
                window = size_window
        return window

    def plan_windows(self, source: AudioSource) -> list[ChunkWindow]:
        """Compute the deterministic chunk boundaries for a source.

        Windows are contiguous, non-overlapping, in temporal order, and
        their durations sum to the source duration.
        """
        duration = source.duration_seconds or 0.0
        if duration <= 0:
            return []
        if not self.needs_chunking(source):
            return [ChunkWindow(index=0, start_seconds=0.0, duration_seconds=duration)]

        window = self._window_length(source)
        count = max(1, math.ceil(duration / window - _WINDOW_EPSILON))
        windows: list[ChunkWindow] = []
        for index in range(count):
            start = index * window
            end = duration if index == count - 1 else (index + 1) * window
            windows.append(
                ChunkWindow(
                    index=index, start_seconds=start, duration_seconds=end - start
                )
            )
        return windows

    def estimate_chunk_count(self, source: AudioSource) -> int:
        return max(1, len(self.plan_windows(source)))

    def create_chunks(
        self,
        source: AudioSource,
        on_progress: ProgressCallback | None = None,
    ) -> list[AudioChunk]:
        """Split a validated source into AudioChunks.

        Progress is reported on a local 0-100 scale proportional to the
        number of chunks produced so far.

        Raises:
            InvalidInputError: If a segment cannot be extracted.
        """
        windows = self.plan_windows(source)
        total = len(windows)
        duration = source.duration_seconds or 0.0
        chunks: list[AudioChunk] = []

        for window in windows:
            if on_progress is not None:
                on_progress(
                    TranscriptionProgress(
                        current_chunk=window.index + 1,
                        total_chunks=total,
                        stage=f"Creating audio chunk {window.index + 1}",
                        percent_complete=(window.index / total) * 100.0,
                    )
                )

            if total == 1:
                data = source.read_bytes()
            else:
                extract_end = min(
                    window.start_seconds
                    + window.duration_seconds
                    + self.config.overlap_seconds,
                    duration,
                )
                try:
                    data = self._extractor.extract(
                        source.path,
                        window.start_seconds,
                        extract_end - window.start_seconds,
                    )
                except AudioProcessingError as exc:
                    raise InvalidInputError(
                        f"Failed to split audio file at chunk {window.index + 1}: {exc}",
                        path=source.path,
                    ) from exc

            logger.info(
                "Chunk %d/%d created: %.1f KB, %.1fs",
                window.index + 1,
                total,
                len(data) / 1024,
                window.duration_seconds,
                extra={"chunk_index": window.index},
            )
            chunks.append(
                AudioChunk(
                    index=window.index,
                    data=data,
                    duration_seconds=window.duration_seconds,
                    start_seconds=window.start_seconds,
                    total_chunks=total,
                )
            )

        if on_progress is not None:
            on_progress(
                TranscriptionProgress(
                    current_chunk=total,
                    total_chunks=total,
                    stage="Audio chunks ready",
                    percent_complete=100.0,
                )
            )
        return chunks
