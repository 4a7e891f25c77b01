"""Progress value type emitted to callers during a transcription run."""

from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class TranscriptionProgress:
    """Snapshot of job progress.

    percent_complete is on a 0-100 scale and never decreases within one run.
    partial_transcript carries the text of a chunk that just finished.
    """

    current_chunk: int
    total_chunks: int
    stage: str
    percent_complete: float
    partial_transcript: str | None = None


ProgressCallback = Callable[[TranscriptionProgress], None]
