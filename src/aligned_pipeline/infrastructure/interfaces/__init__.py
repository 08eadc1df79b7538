"""Infrastructure interface exports."""

from .cache_service import CacheService
from .capture_device import CaptureDevice, CaptureStream
from .llm_service import LLMService
from .message_broker import MessageBroker
from .session_store import SessionStore
from .storage_client import StorageClient
from .streaming_service import StreamingSession, StreamingTranscriptionService
from .transcription_service import TranscriptionService

__all__ = [
    "CacheService",
    "CaptureDevice",
    "CaptureStream",
    "LLMService",
    "MessageBroker",
    "SessionStore",
    "StorageClient",
    "StreamingSession",
    "StreamingTranscriptionService",
    "TranscriptionService",
]
