"""Abstract ASR engine interface.

Concrete implementations (e.g., the OpenAI transcription endpoint) subclass
ASREngine and turn one audio payload into plain text.
"""

from abc import ABC, abstractmethod


class ASREngine(ABC):
    """Abstract base class for ASR engine implementations.

    Subclasses must implement the transcribe() method.
    """

    name = "base"

    def ensure_ready(self) -> None:
        """Fail fast before any network call if the engine cannot run.

        Raises:
            MissingCredentialError: If the engine has no credentials.
        """

    @abstractmethod
    async def transcribe(
        self,
        audio: bytes,
        *,
        request_timeout: float | None = None,
        resource_timeout: float | None = None,
    ) -> str:
        """Transcribe an audio payload and return the recognized text.

        Args:
            audio: Encoded audio bytes (m4a/AAC).
            request_timeout: Optional per-phase HTTP timeout override.
            resource_timeout: Optional whole-exchange timeout override.

        Returns:
            Transcript text (may be empty if the audio contains no speech).
        """
