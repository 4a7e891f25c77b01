"""Custom exception hierarchy for the transcription pipeline.

All exceptions inherit from TranscriptionError, enabling targeted handling
at job boundaries while preserving specific failure context.
"""

BODY_SNIPPET_LENGTH = 500


class TranscriptionError(Exception):
    """Base exception for all transcription job errors."""

    def __init__(self, message: str, job_id: str | None = None) -> None:
        self.job_id = job_id
        super().__init__(message)

    def __str__(self) -> str:
        if self.job_id:
            return f"[job={self.job_id}] {super().__str__()}"
        return super().__str__()


class MissingCredentialError(TranscriptionError):
    """Raised when no API key is available for an outbound call."""

    def __init__(
        self,
        message: str = "No API key configured",
        job_id: str | None = None,
        provider: str | None = None,
    ) -> None:
        self.provider = provider
        super().__init__(message, job_id)


class InvalidInputError(TranscriptionError):
    """Raised when the audio source is missing, unreadable, or empty."""

    def __init__(
        self, message: str, job_id: str | None = None, path: str | None = None
    ) -> None:
        self.path = path
        super().__init__(message, job_id)


class NetworkFailureError(TranscriptionError):
    """Raised on transport-level failures (DNS, connection reset, timeout)."""

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        self.cause = cause
        super().__init__(message, job_id)


class ServerFailureError(TranscriptionError):
    """Raised when the remote service answers with a non-2xx status."""

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        status_code: int = 0,
        body: str = "",
        api_message: str | None = None,
        error_type: str | None = None,
        error_code: str | None = None,
    ) -> None:
        self.status_code = status_code
        self.body = body[:BODY_SNIPPET_LENGTH]
        self.api_message = api_message
        self.error_type = error_type
        self.error_code = error_code
        super().__init__(message, job_id)


class DecodeFailureError(TranscriptionError):
    """Raised when a 2xx response body does not have the expected shape."""

    def __init__(
        self, message: str, job_id: str | None = None, body: str = ""
    ) -> None:
        self.body = body[:BODY_SNIPPET_LENGTH]
        super().__init__(message, job_id)


class TimeoutExceededError(TranscriptionError):
    """Raised when an attempt loses the race against its timer."""

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(message, job_id)


class MaxRetriesExceededError(TranscriptionError):
    """Raised when every attempt of a retryable operation failed."""

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        description: str = "",
        attempts: int = 0,
        last_error: BaseException | None = None,
    ) -> None:
        self.description = description
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(message, job_id)


class ChunkFailedPermanentlyError(TranscriptionError):
    """Raised when one chunk cannot be transcribed; the whole job is aborted."""

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        chunk_index: int = 0,
        total_chunks: int = 0,
        cause: BaseException | None = None,
    ) -> None:
        self.chunk_index = chunk_index
        self.total_chunks = total_chunks
        self.cause = cause
        super().__init__(message, job_id)


class InsufficientStorageError(TranscriptionError):
    """Raised when the temp directory lacks room for intermediate audio."""

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        required_bytes: int = 0,
        available_bytes: int = 0,
    ) -> None:
        self.required_bytes = required_bytes
        self.available_bytes = available_bytes
        super().__init__(message, job_id)


class EmptyResultError(TranscriptionError):
    """Raised when the merged transcript is blank."""


class AudioProcessingError(TranscriptionError):
    """Raised when the ffmpeg re-encode (speed-up) pipeline fails."""

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        input_path: str | None = None,
    ) -> None:
        self.input_path = input_path
        super().__init__(message, job_id)


class BillingError(TranscriptionError):
    """Raised when minutes-balance or transaction bookkeeping fails."""

    def __init__(
        self,
        message: str,
        job_id: str | None = None,
        operation: str | None = None,
    ) -> None:
        self.operation = operation
        super().__init__(message, job_id)
