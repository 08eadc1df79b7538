from aligned_pipeline.config import AppConfig, load_config
from aligned_pipeline.exceptions import (
    AnalysisFailed,
    CaptureDeviceError,
    ChunkTranscriptionError,
    InvalidTransitionError,
    ProviderError,
    SessionNotFoundError,
    SessionPersistenceError,
    TranscriptionFailed,
)
from aligned_pipeline.logging import setup_logging

__all__ = [
    "setup_logging",
    "AppConfig",
    "load_config",
    "AnalysisFailed",
    "CaptureDeviceError",
    "ChunkTranscriptionError",
    "InvalidTransitionError",
    "ProviderError",
    "SessionNotFoundError",
    "SessionPersistenceError",
    "TranscriptionFailed",
]
