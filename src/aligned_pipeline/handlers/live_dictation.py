"""Low-latency dictation over a duplex streaming transcription session."""

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from enum import Enum

from aligned_pipeline.config import LiveConfig
from aligned_pipeline.domain.models import AudioCapture, RecordingSession, RecordingSource, SessionStatus
from aligned_pipeline.domain.pcm import downmix, resample, to_pcm16
from aligned_pipeline.exceptions import InvalidTransitionError
from aligned_pipeline.handlers.session_controller import SessionController
from aligned_pipeline.infrastructure.interfaces import (
    CaptureDevice,
    CaptureStream,
    StreamingSession,
    StreamingTranscriptionService,
)
from aligned_pipeline.logging import setup_logging

logger = setup_logging()


class DictationState(str, Enum):
    IDLE = "idle"
    CONNECTING = "connecting"
    LISTENING = "listening"
    STOPPING = "stopping"
    COMPLETE = "complete"
    ERROR = "error"
    CANCELLED = "cancelled"


_TRANSITIONS = {
    DictationState.IDLE: {DictationState.CONNECTING, DictationState.CANCELLED},
    DictationState.CONNECTING: {
        DictationState.LISTENING,
        DictationState.ERROR,
        DictationState.CANCELLED,
    },
    DictationState.LISTENING: {DictationState.STOPPING, DictationState.CANCELLED},
    DictationState.STOPPING: {DictationState.COMPLETE, DictationState.ERROR},
    DictationState.COMPLETE: set(),
    DictationState.ERROR: {DictationState.CONNECTING, DictationState.CANCELLED},
    DictationState.CANCELLED: set(),
}


class LiveDictationSession:
    """
    Streams microphone audio to a transcription provider while recording it
    locally.

    Partial results are accumulated as they arrive and mirrored to
    `on_transcript`. `stop` finalizes: it flushes and closes the stream,
    releases the microphone and submits the accumulated transcript (or, if
    nothing was streamed back, the local recording) to SessionController.
    `cancel` releases everything and never analyzes or persists.

    Every state change goes through `_transition`; stop and cancel requests
    that are not valid from the current state are ignored.
    """

    def __init__(
        self,
        streaming_service: StreamingTranscriptionService,
        capture_device: CaptureDevice,
        controller: SessionController,
        config: LiveConfig,
        owner_id: str,
        on_transcript: Callable[[str], None] | None = None,
        title: str | None = None,
    ):
        self._streaming = streaming_service
        self._device = capture_device
        self._controller = controller
        self._config = config
        self._owner_id = owner_id
        self._on_transcript = on_transcript
        self._title = title

        self._state = DictationState.IDLE
        self._session: StreamingSession | None = None
        self._capture: CaptureStream | None = None
        self._pump_task: asyncio.Task | None = None
        self._receive_task: asyncio.Task | None = None
        self._transcript = ""
        self._captured_samples = 0
        self._dropped_frames = 0
        self._started_at = datetime.now(timezone.utc)
        self.error_message: str | None = None

    @property
    def state(self) -> DictationState:
        return self._state

    @property
    def transcript(self) -> str:
        return self._transcript

    async def start(self) -> None:
        """
        Connects to the streaming provider, then opens the microphone.

        Valid from idle, and from error as a retry.

        Raises:
            InvalidTransitionError: If called from any other state.
            ProviderError: If the streaming connection is refused.
            CaptureDeviceError: If the microphone cannot be opened.
        """
        if not self._transition(DictationState.CONNECTING):
            raise InvalidTransitionError(self._state.value, DictationState.CONNECTING.value)

        self._transcript = ""
        self._captured_samples = 0
        self._dropped_frames = 0
        self.error_message = None

        try:
            self._session = await self._streaming.connect()
            if self._state is not DictationState.CONNECTING:
                await self._release()
                return
            self._capture = await self._device.open(
                self._config.capture_sample_rate_hz,
                self._config.capture_channels,
                self._config.frame_interval_ms,
            )
            if self._state is not DictationState.CONNECTING:
                await self._release()
                return
        except Exception as e:
            logger.exception("Live dictation failed to start")
            await self._release()
            self.error_message = str(e)
            self._transition(DictationState.ERROR)
            raise

        self._started_at = datetime.now(timezone.utc)
        self._pump_task = asyncio.create_task(self._pump(self._capture, self._session))
        self._receive_task = asyncio.create_task(self._receive(self._session))
        self._transition(DictationState.LISTENING)
        logger.info("Live dictation listening", extra={"engine": self._streaming.name})

    async def stop(self) -> RecordingSession | None:
        """
        Finalizes the dictation.

        Returns:
            The persisted session in its terminal state, or None when the
            request was ignored or nothing was captured.
        """
        if not self._transition(DictationState.STOPPING):
            logger.info("Stop ignored", extra={"state": self._state.value})
            return None

        try:
            fallback_audio = await self._finish_streaming()
            duration = round(self._captured_samples / self._config.capture_sample_rate_hz, 2)
            transcript = self._transcript.strip()

            if transcript:
                session = await self._controller.submit_transcript(
                    transcript,
                    self._owner_id,
                    source=RecordingSource.DICTATION,
                    title=self._title,
                    duration=duration,
                )
            elif self._captured_samples > 0:
                logger.warning(
                    "Streamed transcript empty, submitting local recording",
                    extra={"seconds": duration},
                )
                session = await self._controller.process_capture(
                    AudioCapture(
                        data=fallback_audio,
                        mime_type="audio/wav",
                        duration_seconds=duration,
                        source=RecordingSource.DICTATION,
                        started_at=self._started_at,
                    ),
                    self._owner_id,
                    title=self._title,
                )
            else:
                self.error_message = "No audio was captured"
                self._transition(DictationState.ERROR)
                return None
        except Exception as e:
            logger.exception("Live dictation failed to finalize")
            self.error_message = str(e)
            self._transition(DictationState.ERROR)
            raise

        if session.status == SessionStatus.COMPLETED:
            self._transition(DictationState.COMPLETE)
        else:
            self.error_message = session.error_message
            self._transition(DictationState.ERROR)
        return session

    async def cancel(self) -> None:
        """Releases the stream and microphone; nothing is analyzed or saved."""
        if not self._transition(DictationState.CANCELLED):
            logger.info("Cancel ignored", extra={"state": self._state.value})
            return
        await self._release()
        logger.info("Live dictation cancelled")

    def _transition(self, target: DictationState) -> bool:
        if target not in _TRANSITIONS[self._state]:
            return False
        logger.debug(
            "Dictation state change",
            extra={"from_state": self._state.value, "to_state": target.value},
        )
        self._state = target
        return True

    async def _finish_streaming(self) -> bytes:
        """Stops the microphone, drains trailing results, and closes the stream."""
        capture, self._capture = self._capture, None
        session, self._session = self._session, None

        try:
            fallback_audio = await capture.stop()
            await self._pump_task

            try:
                await session.flush()
            except Exception as e:
                logger.warning("Flush failed", extra={"error": str(e)})
            await asyncio.wait({self._receive_task}, timeout=self._config.flush_grace_ms / 1000)
        finally:
            await session.close()
            if not self._receive_task.done():
                self._receive_task.cancel()
            await asyncio.gather(self._receive_task, return_exceptions=True)

        return fallback_audio

    async def _pump(self, capture: CaptureStream, session: StreamingSession) -> None:
        async for block in capture.frames():
            self._captured_samples += len(block)
            mono = downmix(block)
            frame = to_pcm16(resample(mono, capture.sample_rate_hz, self._streaming.sample_rate_hz))
            try:
                await session.send(frame)
            except Exception as e:
                self._dropped_frames += 1
                logger.warning(
                    "Dropped audio frame",
                    extra={"dropped_frames": self._dropped_frames, "error": str(e)},
                )

    async def _receive(self, session: StreamingSession) -> None:
        try:
            async for message in session.messages():
                self._transcript += message.text
                self._notify()
        except Exception as e:
            # The local recording still covers the rest of the dictation
            logger.warning("Streaming session ended abnormally", extra={"error": str(e)})

    def _notify(self) -> None:
        if self._on_transcript is None:
            return
        try:
            self._on_transcript(self._transcript)
        except Exception:
            # Display problems never stop accumulation
            logger.exception("Transcript callback failed")

    async def _release(self) -> None:
        for task in (self._pump_task, self._receive_task):
            if task is not None and not task.done():
                task.cancel()
        tasks = [task for task in (self._pump_task, self._receive_task) if task is not None]
        await asyncio.gather(*tasks, return_exceptions=True)
        self._pump_task = None
        self._receive_task = None

        session, self._session = self._session, None
        capture, self._capture = self._capture, None
        try:
            if session is not None:
                await session.close()
        finally:
            if capture is not None:
                await capture.stop()
