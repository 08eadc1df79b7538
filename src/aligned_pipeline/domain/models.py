"""Domain models for the recording pipeline."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field, field_serializer
from pydantic.alias_generators import to_camel


class RecordingSource(str, Enum):
    IN_PERSON = "in-person"
    VIRTUAL_MEETING = "virtual-meeting"
    PHONE_CALL = "phone-call"
    DICTATION = "dictation"


class SessionStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class ProcessingStep(str, Enum):
    TRANSCRIBING = "transcribing"
    ANALYZING = "analyzing"
    FINALIZING = "finalizing"


class AnalysisMode(str, Enum):
    MEETING = "meeting"
    DICTATION = "dictation"


class MeetingAnalysis(BaseModel):
    """Structured result of a recording: transcript, notes, and action items."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    transcript: str
    summary: str = ""
    action_points: list[str] = Field(default_factory=list)
    detected_languages: list[str] | None = None
    is_truncated: bool | None = None
    meeting_type: str | None = None


class RecordingSession(BaseModel):
    """
    The unit of work and the only entity persisted long-term.

    Created in `processing` state before any provider call and updated in
    place at each phase transition; `id` never changes.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        validate_assignment=True,
    )

    id: str = Field(default_factory=lambda: str(uuid4()), frozen=True)
    owner_id: str
    title: str
    date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    duration: float = 0.0
    source: RecordingSource = RecordingSource.IN_PERSON
    status: SessionStatus = SessionStatus.PROCESSING
    processing_step: ProcessingStep | None = None
    analysis: MeetingAnalysis | None = None
    error_message: str | None = None

    @field_serializer("date")
    def _serialize_date(self, value: datetime) -> int:
        return int(value.timestamp() * 1000)

    def to_record(self) -> dict[str, Any]:
        """Returns the wire-compatible record, omitting unset optional fields."""
        record = self.model_dump(mode="json", by_alias=True, exclude={"owner_id"})
        for key in ("processingStep", "errorMessage"):
            if record.get(key) is None:
                record.pop(key, None)
        if record["analysis"] is not None:
            record["analysis"] = {
                k: v for k, v in record["analysis"].items() if v is not None
            }
        return record


class AudioCapture(BaseModel, frozen=True):
    """An encoded audio capture handed to the pipeline when recording stops."""

    data: bytes
    mime_type: str = "audio/webm"
    duration_seconds: float = 0.0
    source: RecordingSource = RecordingSource.IN_PERSON
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class AudioChunk(BaseModel, frozen=True):
    """An independently decodable, bounded-duration slice of a capture."""

    index: int
    data: bytes
    mime_type: str
    duration_ms: int


class TranscriptionLimits(BaseModel, frozen=True):
    """Per-request duration limits of a single-shot transcription provider."""

    request_limit_ms: int
    chunk_duration_ms: int


class GenerationConfig(BaseModel, frozen=True):
    max_output_tokens: int
    temperature: float


class GenerationResult(BaseModel, frozen=True):
    """Text returned by a structured-generation provider."""

    text: str
    finish_reason: str = "stop"

    @property
    def is_length_limited(self) -> bool:
        return self.finish_reason == "length-limited"


class StreamingMessage(BaseModel, frozen=True):
    """A partial transcript segment received from a duplex streaming session."""

    text: str
    is_final: bool = False


class ActionItem(BaseModel, frozen=True):
    """An action point of a session together with its completion state."""

    session_id: str
    index: int
    text: str
    done: bool = False


class RecordingMessage(BaseModel, frozen=True):
    """Incoming event announcing an uploaded capture ready for processing."""

    session_id: str | None = None
    owner_id: str
    object_name: str
    bucket_name: str
    mime_type: str = "audio/webm"
    duration_seconds: float = 0.0
    source: RecordingSource = RecordingSource.IN_PERSON
    title: str | None = None
