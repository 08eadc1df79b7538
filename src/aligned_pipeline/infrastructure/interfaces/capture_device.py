"""Abstract interfaces for audio capture devices."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

import numpy as np


class CaptureStream(ABC):
    """
    An open capture. Frames are available as they arrive and the whole
    recording is kept locally until `stop`.
    """

    sample_rate_hz: int
    channels: int

    @abstractmethod
    def frames(self) -> AsyncIterator[np.ndarray]:
        """Yields float32 blocks shaped (samples, channels); ends after `stop`."""

    @abstractmethod
    async def stop(self) -> bytes:
        """
        Stops capturing, releases the device, and returns the full recording
        as WAV bytes. Idempotent: later calls return the same recording.
        """


class CaptureDevice(ABC):
    """Abstract base class for microphone / system-audio sources."""

    @abstractmethod
    async def open(
        self, sample_rate_hz: int, channels: int, frame_interval_ms: int
    ) -> CaptureStream:
        """
        Acquires the device exclusively and starts capturing.

        Raises:
            CaptureDeviceError: If the device cannot be opened.
        """
