"""Microphone capture backed by sounddevice (PortAudio)."""

import asyncio
from collections.abc import AsyncIterator

import numpy as np
import sounddevice as sd

from aligned_pipeline.domain.pcm import encode_wav, to_pcm16
from aligned_pipeline.exceptions import CaptureDeviceError
from aligned_pipeline.logging import setup_logging

from .interfaces import CaptureDevice, CaptureStream

logger = setup_logging()


class SoundDeviceStream(CaptureStream):
    """
    An open PortAudio input stream.

    The PortAudio callback runs on its own thread; blocks are handed to the
    event loop through `call_soon_threadsafe` and also kept for the final
    WAV recording.
    """

    def __init__(self, device: str | int | None, sample_rate_hz: int, channels: int, blocksize: int):
        self.sample_rate_hz = sample_rate_hz
        self.channels = channels
        self._loop = asyncio.get_running_loop()
        self._queue: asyncio.Queue[np.ndarray | None] = asyncio.Queue()
        self._blocks: list[np.ndarray] = []
        self._recording: bytes | None = None
        self._stream = sd.InputStream(
            samplerate=sample_rate_hz,
            channels=channels,
            dtype="float32",
            blocksize=blocksize,
            device=device,
            callback=self._callback,
        )
        self._stream.start()

    def _callback(self, indata, _frames, _time, status):
        if status:
            logger.warning("Capture status", extra={"status": str(status)})
        block = indata.copy()
        self._blocks.append(block)
        self._loop.call_soon_threadsafe(self._queue.put_nowait, block)

    async def frames(self) -> AsyncIterator[np.ndarray]:
        while True:
            block = await self._queue.get()
            if block is None:
                return
            yield block

    async def stop(self) -> bytes:
        if self._recording is not None:
            return self._recording
        try:
            await asyncio.to_thread(self._close_stream)
        finally:
            self._queue.put_nowait(None)

        samples = np.concatenate(self._blocks) if self._blocks else np.zeros((0, self.channels), dtype=np.float32)
        self._recording = encode_wav(to_pcm16(samples.reshape(-1)), self.sample_rate_hz, self.channels)
        logger.info(
            "Capture stopped",
            extra={"seconds": round(len(samples) / self.sample_rate_hz, 2)},
        )
        return self._recording

    def _close_stream(self) -> None:
        self._stream.stop()
        self._stream.close()


class SoundDeviceCapture(CaptureDevice):
    """Opens the default (or a named) input device."""

    def __init__(self, device: str | int | None = None):
        self._device = device

    async def open(
        self, sample_rate_hz: int, channels: int, frame_interval_ms: int
    ) -> SoundDeviceStream:
        blocksize = int(sample_rate_hz * frame_interval_ms / 1000)
        try:
            stream = SoundDeviceStream(self._device, sample_rate_hz, channels, blocksize)
        except sd.PortAudioError as e:
            raise CaptureDeviceError(str(self._device or "default"), cause=e) from e
        logger.info(
            "Capture started",
            extra={"sample_rate_hz": sample_rate_hz, "channels": channels},
        )
        return stream
