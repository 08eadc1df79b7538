"""Lifecycle of a recording session from capture to insight."""

import asyncio
from datetime import datetime

from aligned_pipeline.domain.audio_chunker import format_for_mime, mime_for_format
from aligned_pipeline.domain.models import (
    AnalysisMode,
    AudioCapture,
    MeetingAnalysis,
    ProcessingStep,
    RecordingSession,
    RecordingSource,
    SessionStatus,
)
from aligned_pipeline.exceptions import (
    AnalysisFailed,
    SessionNotFoundError,
    StorageDownloadError,
    StorageUploadError,
    TranscriptionFailed,
)
from aligned_pipeline.handlers.analysis_stage import AnalysisStage
from aligned_pipeline.handlers.transcription_orchestrator import TranscriptionOrchestrator
from aligned_pipeline.infrastructure.interfaces import SessionStore, StorageClient
from aligned_pipeline.logging import setup_logging

logger = setup_logging()


def default_title(started_at: datetime) -> str:
    return f"Recording {started_at:%Y-%m-%d %H:%M}"


def capture_prefix(session: RecordingSession) -> str:
    """Object prefix under which a session's raw capture is archived."""
    return f"{session.date:%Y/%m/%d}/{session.id}/audio/"


class SessionController:
    """
    Drives a session through transcription and analysis.

    The session row is written before any provider call and after every
    phase, so a crash at any point leaves a queryable record. Failures end
    in `status=error` with a readable message; whatever transcript was
    obtained is kept.

    Store write failures (SessionPersistenceError) propagate: with the store
    unavailable there is nowhere to record the error.
    """

    def __init__(
        self,
        store: SessionStore,
        orchestrator: TranscriptionOrchestrator,
        analysis_stage: AnalysisStage,
        capture_storage: StorageClient | None = None,
        bucket_name: str = "recordings",
    ):
        self._store = store
        self._orchestrator = orchestrator
        self._analysis_stage = analysis_stage
        self._capture_storage = capture_storage
        self._bucket_name = bucket_name

    async def process_capture(
        self,
        capture: AudioCapture,
        owner_id: str,
        title: str | None = None,
        session_id: str | None = None,
    ) -> RecordingSession:
        """
        Runs the batch path for a finished capture.

        Args:
            capture: The encoded capture handed over when recording stopped.
            owner_id: The owning user.
            title: Session title; defaults to "Recording <start time>".
            session_id: Reuse an existing session id (retry, or a session
                created upstream). A new id is assigned when omitted.

        Returns:
            The session in its terminal state (completed or error).

        Raises:
            SessionPersistenceError: If a checkpoint cannot be written.
        """
        session = await self._open_session(
            owner_id,
            session_id,
            title=title or default_title(capture.started_at),
            date=capture.started_at,
            duration=capture.duration_seconds,
            source=capture.source,
        )
        session.status = SessionStatus.PROCESSING
        session.processing_step = ProcessingStep.TRANSCRIBING
        session.error_message = None
        await self._checkpoint(session)

        await self._archive(session, capture)

        async def reset_to_transcribing() -> None:
            session.processing_step = ProcessingStep.TRANSCRIBING
            await self._checkpoint(session)

        try:
            transcript = await self._orchestrator.transcribe(capture, on_fallback=reset_to_transcribing)
        except TranscriptionFailed as e:
            return await self._fail(session, f"Transcription failed: {e.cause or e}")

        if not transcript.strip():
            return await self._fail(session, "No speech was detected in the recording")

        return await self._analyze(session, transcript)

    async def submit_transcript(
        self,
        transcript: str,
        owner_id: str,
        source: RecordingSource = RecordingSource.IN_PERSON,
        title: str | None = None,
        duration: float = 0.0,
        session_id: str | None = None,
    ) -> RecordingSession:
        """
        Enters the pipeline at `analyzing` with a transcript that already exists
        (manual entry, live dictation).

        Raises:
            SessionPersistenceError: If a checkpoint cannot be written.
        """
        session = await self._open_session(
            owner_id,
            session_id,
            title=title,
            duration=duration,
            source=source,
        )
        session.status = SessionStatus.PROCESSING
        session.error_message = None
        return await self._analyze(session, transcript)

    async def retry(self, session_id: str, owner_id: str) -> RecordingSession:
        """
        Re-runs the pipeline on an existing session id.

        Sessions that already hold a transcript are re-analyzed; otherwise the
        archived capture is transcribed again.

        Raises:
            SessionNotFoundError: If the owner has no such session.
            SessionPersistenceError: If a checkpoint cannot be written.
        """
        session = await asyncio.to_thread(self._store.get, session_id, owner_id)
        logger.info(
            "Retrying session",
            extra={"session_id": session_id, "previous_status": session.status.value},
        )

        if session.analysis is not None and session.analysis.transcript.strip():
            session.status = SessionStatus.PROCESSING
            session.error_message = None
            return await self._analyze(session, session.analysis.transcript)

        capture = await self._load_archived_capture(session)
        if capture is None:
            return await self._fail(session, "The original recording is no longer available")
        return await self.process_capture(capture, owner_id, title=session.title, session_id=session.id)

    async def _analyze(self, session: RecordingSession, transcript: str) -> RecordingSession:
        # Transcript becomes visible before analysis starts
        session.processing_step = ProcessingStep.ANALYZING
        session.analysis = MeetingAnalysis(transcript=transcript)
        await self._checkpoint(session)

        mode = AnalysisMode.DICTATION if session.source == RecordingSource.DICTATION else AnalysisMode.MEETING
        try:
            analysis = await self._analysis_stage.analyze(transcript, mode)
        except AnalysisFailed as e:
            session.analysis = e.degraded_analysis
            return await self._fail(session, f"Analysis failed: {e.cause or e}")

        session.analysis = analysis
        session.status = SessionStatus.COMPLETED
        session.processing_step = None
        await self._checkpoint(session)

        logger.info(
            "Session completed",
            extra={
                "session_id": session.id,
                "action_points": len(analysis.action_points),
                "is_truncated": bool(analysis.is_truncated),
            },
        )
        return session

    async def _fail(self, session: RecordingSession, message: str) -> RecordingSession:
        session.status = SessionStatus.ERROR
        session.processing_step = None
        session.error_message = message
        await self._checkpoint(session)
        logger.error(
            "Session failed",
            extra={"session_id": session.id, "error_message": message},
        )
        return session

    async def _checkpoint(self, session: RecordingSession) -> None:
        await asyncio.to_thread(self._store.save, session.model_copy(deep=True))

    async def _open_session(
        self, owner_id: str, session_id: str | None, **fields
    ) -> RecordingSession:
        fields = {key: value for key, value in fields.items() if value is not None}
        if session_id is None:
            fields.setdefault("title", default_title(datetime.now().astimezone()))
            return RecordingSession(owner_id=owner_id, **fields)

        try:
            session = await asyncio.to_thread(self._store.get, session_id, owner_id)
        except SessionNotFoundError:
            fields.setdefault("title", default_title(datetime.now().astimezone()))
            return RecordingSession(id=session_id, owner_id=owner_id, **fields)

        for key in ("duration", "source"):
            if key in fields:
                setattr(session, key, fields[key])
        return session

    async def _archive(self, session: RecordingSession, capture: AudioCapture) -> None:
        if self._capture_storage is None:
            return
        extension = format_for_mime(capture.mime_type) or "bin"
        object_name = f"{capture_prefix(session)}capture.{extension}"
        try:
            await asyncio.to_thread(
                self._capture_storage.upload,
                self._bucket_name,
                object_name,
                capture.data,
                capture.mime_type,
            )
        except StorageUploadError as e:
            logger.warning(
                "Capture archive failed, continuing without it",
                extra={"session_id": session.id, "error": str(e)},
            )

    async def _load_archived_capture(self, session: RecordingSession) -> AudioCapture | None:
        if self._capture_storage is None:
            return None
        object_name = await asyncio.to_thread(
            self._capture_storage.find, self._bucket_name, capture_prefix(session)
        )
        if object_name is None:
            return None
        try:
            data = await asyncio.to_thread(self._capture_storage.download, self._bucket_name, object_name)
        except StorageDownloadError as e:
            logger.warning(
                "Archived capture could not be downloaded",
                extra={"session_id": session.id, "error": str(e)},
            )
            return None
        return AudioCapture(
            data=data,
            mime_type=mime_for_format(object_name.rsplit(".", 1)[-1]),
            duration_seconds=session.duration,
            source=session.source,
            started_at=session.date,
        )
