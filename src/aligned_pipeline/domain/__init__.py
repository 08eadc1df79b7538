"""Domain layer exports."""

from aligned_pipeline.domain.analysis_parser import parse_analysis, split_sections
from aligned_pipeline.domain.audio_chunker import (
    AudioChunker,
    format_for_mime,
    mime_for_format,
)
from aligned_pipeline.domain.models import (
    ActionItem,
    AnalysisMode,
    AudioCapture,
    AudioChunk,
    GenerationConfig,
    GenerationResult,
    MeetingAnalysis,
    ProcessingStep,
    RecordingMessage,
    RecordingSession,
    RecordingSource,
    SessionStatus,
    StreamingMessage,
    TranscriptionLimits,
)
from aligned_pipeline.domain.retry import RetryExecutor, is_transient

__all__ = [
    "ActionItem",
    "AnalysisMode",
    "AudioCapture",
    "AudioChunk",
    "AudioChunker",
    "GenerationConfig",
    "GenerationResult",
    "MeetingAnalysis",
    "ProcessingStep",
    "RecordingMessage",
    "RecordingSession",
    "RecordingSource",
    "RetryExecutor",
    "SessionStatus",
    "StreamingMessage",
    "TranscriptionLimits",
    "format_for_mime",
    "mime_for_format",
    "is_transient",
    "parse_analysis",
    "split_sections",
]
