"""Custom exceptions for the recording pipeline."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from aligned_pipeline.domain.models import MeetingAnalysis


class ProviderError(Exception):
    """Raised when a transcription or analysis provider rejects a request."""

    def __init__(
        self,
        provider: str,
        message: str,
        status_code: int | None = None,
        vendor_code: str | int | None = None,
        cause: Exception | None = None,
    ):
        self.provider = provider
        self.status_code = status_code
        self.vendor_code = vendor_code
        self.cause = cause
        super().__init__(f"{provider} error {status_code or ''}: {message}".strip())


class ChunkTranscriptionError(Exception):
    """Raised when one chunk of a multi-chunk capture permanently fails."""

    def __init__(self, index: int, total: int, cause: Exception | None = None):
        self.index = index
        self.total = total
        self.cause = cause
        super().__init__(f"Chunk {index + 1}/{total} failed to transcribe: {cause}")


class TranscriptionFailed(Exception):
    """Raised when every transcription engine in the chain has failed."""

    def __init__(self, engine: str, cause: Exception | None = None):
        self.engine = engine
        self.cause = cause
        super().__init__(f"Transcription failed on engine '{engine}': {cause}")


class AnalysisFailed(Exception):
    """
    Raised when transcript analysis fails irrecoverably.

    Carries the degraded analysis (raw transcript as summary, no action
    points) so callers never lose the transcript.
    """

    def __init__(
        self, degraded_analysis: MeetingAnalysis, cause: Exception | None = None
    ):
        self.degraded_analysis = degraded_analysis
        self.cause = cause
        super().__init__(f"Transcript analysis failed: {cause}")


class SessionPersistenceError(Exception):
    """Raised when saving session data to the store fails."""

    def __init__(self, session_id: str, cause: Exception | None = None):
        self.session_id = session_id
        self.cause = cause
        super().__init__(f"Failed to persist session '{session_id}'")


class SessionNotFoundError(Exception):
    """Raised when a requested session does not exist for the owner."""

    def __init__(self, session_id: str):
        self.session_id = session_id
        super().__init__(f"Session {session_id} not found")


class InvalidTransitionError(Exception):
    """Raised when a state machine is asked for a transition it does not allow."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition from '{current}' to '{target}'")


class CaptureDeviceError(Exception):
    """Raised when the microphone or display capture cannot be opened."""

    def __init__(self, device: str, cause: Exception | None = None):
        self.device = device
        self.cause = cause
        super().__init__(f"Failed to open capture device '{device}': {cause}")


class StorageDownloadError(Exception):
    """Raised when downloading a file from storage fails."""

    def __init__(self, object_name: str, cause: Exception | None = None):
        self.object_name = object_name
        self.cause = cause
        super().__init__(f"Failed to download '{object_name}' from storage")


class StorageUploadError(Exception):
    """Raised when uploading a file to storage fails."""

    def __init__(self, object_name: str, cause: Exception | None = None):
        self.object_name = object_name
        self.cause = cause
        super().__init__(f"Failed to upload '{object_name}' to storage")


class CacheServiceError(Exception):
    """Raised when cache operations fail."""

    def __init__(self, key: str, operation: str, cause: Exception | None = None):
        self.key = key
        self.operation = operation
        self.cause = cause
        super().__init__(f"Cache {operation} failed for key '{key}'")


class EventPublishError(Exception):
    """Raised when publishing an event to the message broker fails."""

    def __init__(self, routing_key: str, cause: Exception | None = None):
        self.routing_key = routing_key
        self.cause = cause
        super().__init__(f"Failed to publish event with routing key '{routing_key}'")
