"""Recording front end of the batch path."""

import asyncio
from datetime import datetime, timezone
from enum import Enum

from aligned_pipeline.config import CaptureConfig
from aligned_pipeline.domain.models import AudioCapture, RecordingSession, RecordingSource
from aligned_pipeline.exceptions import InvalidTransitionError
from aligned_pipeline.handlers.session_controller import SessionController
from aligned_pipeline.infrastructure.interfaces import CaptureDevice, CaptureStream
from aligned_pipeline.logging import setup_logging

logger = setup_logging()

FRAME_INTERVAL_MS = 100


class RecorderState(str, Enum):
    IDLE = "idle"
    RECORDING = "recording"
    PROCESSING = "processing"


_TRANSITIONS = {
    RecorderState.IDLE: {RecorderState.RECORDING},
    RecorderState.RECORDING: {RecorderState.PROCESSING, RecorderState.IDLE},
    RecorderState.PROCESSING: {RecorderState.IDLE},
}


class BatchRecorder:
    """
    Owns the capture device while a batch recording is running.

    `stop` releases the device and hands the capture to SessionController;
    `discard` releases it and drops the audio. Recordings that reach the
    configured maximum duration are stopped automatically; the outcome of
    that stop (session or exception) is delivered by `wait`, or by a `stop`
    call that arrives after the cap fired.
    """

    def __init__(
        self,
        capture_device: CaptureDevice,
        controller: SessionController,
        config: CaptureConfig,
    ):
        self._device = capture_device
        self._controller = controller
        self._config = config
        self._state = RecorderState.IDLE
        self._stream: CaptureStream | None = None
        self._drain_task: asyncio.Task | None = None
        self._cap_task: asyncio.Task | None = None
        self._auto_stop: asyncio.Task | None = None
        self._samples = 0
        self._owner_id = ""
        self._source = RecordingSource.IN_PERSON
        self._title: str | None = None
        self._started_at = datetime.now(timezone.utc)
        self.last_session: RecordingSession | None = None

    @property
    def state(self) -> RecorderState:
        return self._state

    async def start(
        self,
        owner_id: str,
        source: RecordingSource = RecordingSource.IN_PERSON,
        title: str | None = None,
    ) -> None:
        """
        Opens the capture device and starts recording.

        Raises:
            InvalidTransitionError: If a recording is already running.
            CaptureDeviceError: If the device cannot be opened.
        """
        self._transition(RecorderState.RECORDING)
        self._discard_auto_stop()
        try:
            self._stream = await self._device.open(
                self._config.sample_rate_hz, self._config.channels, FRAME_INTERVAL_MS
            )
        except Exception:
            self._state = RecorderState.IDLE
            raise

        self._owner_id = owner_id
        self._source = source
        self._title = title
        self._started_at = datetime.now(timezone.utc)
        self._samples = 0
        self._drain_task = asyncio.create_task(self._drain(self._stream))
        self._cap_task = asyncio.create_task(self._enforce_cap())
        logger.info(
            "Recording started",
            extra={"source": source.value, "max_seconds": self._config.max_duration_seconds},
        )

    async def stop(self) -> RecordingSession:
        """
        Stops recording and runs the batch pipeline on the capture.

        If the duration cap already stopped the recording, returns (or
        raises) the outcome of that automatic stop instead.

        Returns:
            The session in its terminal state.

        Raises:
            InvalidTransitionError: If no recording is running.
        """
        if self._state is not RecorderState.RECORDING and self._auto_stop is not None:
            return await self.wait()
        self._transition(RecorderState.PROCESSING)
        try:
            data = await self._release()
            capture = AudioCapture(
                data=data,
                mime_type="audio/wav",
                duration_seconds=round(self._samples / self._config.sample_rate_hz, 2),
                source=self._source,
                started_at=self._started_at,
            )
            logger.info(
                "Recording stopped",
                extra={"seconds": capture.duration_seconds, "bytes": len(data)},
            )
            self.last_session = await self._controller.process_capture(
                capture, self._owner_id, title=self._title
            )
            return self.last_session
        finally:
            self._state = RecorderState.IDLE

    async def wait(self) -> RecordingSession | None:
        """
        Waits for a stop triggered by the duration cap.

        Returns:
            The session of the automatic stop, or `last_session` when the
            cap has not fired.

        Raises:
            Whatever the automatic stop raised, e.g. SessionPersistenceError.
        """
        task, self._auto_stop = self._auto_stop, None
        if task is None:
            return self.last_session
        return await task

    async def discard(self) -> None:
        """
        Stops recording and drops the audio without creating a session.

        Raises:
            InvalidTransitionError: If no recording is running.
        """
        self._transition(RecorderState.IDLE)
        await self._release()
        logger.info("Recording discarded")

    def _transition(self, target: RecorderState) -> None:
        if target not in _TRANSITIONS[self._state]:
            raise InvalidTransitionError(self._state.value, target.value)
        self._state = target

    async def _release(self) -> bytes:
        if self._cap_task is not None and self._cap_task is not asyncio.current_task():
            self._cap_task.cancel()
        self._cap_task = None

        stream, self._stream = self._stream, None
        data = await stream.stop()
        if self._drain_task is not None:
            await self._drain_task
            self._drain_task = None
        return data

    async def _drain(self, stream: CaptureStream) -> None:
        async for block in stream.frames():
            self._samples += len(block)

    def _discard_auto_stop(self) -> None:
        task, self._auto_stop = self._auto_stop, None
        if task is not None and task.done() and not task.cancelled() and task.exception():
            logger.error(
                "Unclaimed automatic stop failed",
                extra={"error": str(task.exception())},
            )

    async def _enforce_cap(self) -> RecordingSession:
        await asyncio.sleep(self._config.max_duration_seconds)
        self._auto_stop = asyncio.current_task()
        logger.warning(
            "Maximum recording duration reached, stopping",
            extra={"max_seconds": self._config.max_duration_seconds},
        )
        return await self.stop()
