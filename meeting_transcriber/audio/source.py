"""Caller-owned audio source handed to the transcription pipeline."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from meeting_transcriber.audio.probe import probe_duration
from meeting_transcriber.utils.errors import AudioProcessingError, InvalidInputError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AudioSource:
    """An audio file plus its known or probed duration.

    Immutable; the pipeline only reads from it.
    """

    path: str
    duration_seconds: float | None
    size_bytes: int

    @classmethod
    def from_path(
        cls, path: str, duration_seconds: float | None = None
    ) -> AudioSource:
        """Describe a file on disk, probing its duration when not supplied.

        A missing file yields size 0; an unprobeable file yields a None
        duration. Neither raises here; AudioChunker.validate() rejects them.
        """
        size = os.path.getsize(path) if os.path.isfile(path) else 0
        if duration_seconds is None and size > 0:
            try:
                duration_seconds = probe_duration(path)
            except AudioProcessingError as exc:
                logger.warning("Could not probe duration of %s: %s", path, exc)
        return cls(path=path, duration_seconds=duration_seconds, size_bytes=size)

    def read_bytes(self) -> bytes:
        """Read the whole file into memory.

        Raises:
            InvalidInputError: If the file can no longer be read.
        """
        try:
            with open(self.path, "rb") as f:
                return f.read()
        except OSError as exc:
            raise InvalidInputError(
                f"Cannot read audio file: {exc}", path=self.path
            ) from exc
