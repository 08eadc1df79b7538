"""Handler layer exports."""

from aligned_pipeline.handlers.analysis_stage import AnalysisStage
from aligned_pipeline.handlers.batch_recorder import BatchRecorder, RecorderState
from aligned_pipeline.handlers.live_dictation import DictationState, LiveDictationSession
from aligned_pipeline.handlers.recording_message_handler import RecordingMessageHandler
from aligned_pipeline.handlers.session_controller import SessionController
from aligned_pipeline.handlers.transcription_orchestrator import TranscriptionOrchestrator

__all__ = [
    "AnalysisStage",
    "BatchRecorder",
    "DictationState",
    "LiveDictationSession",
    "RecorderState",
    "RecordingMessageHandler",
    "SessionController",
    "TranscriptionOrchestrator",
]
