"""Abstract interfaces for duplex streaming transcription."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from aligned_pipeline.domain.models import StreamingMessage


class StreamingSession(ABC):
    """An open duplex session: audio goes in, partial transcripts come out."""

    @abstractmethod
    async def send(self, frame: bytes) -> None:
        """
        Sends one frame of 16-bit mono PCM at the provider's sample rate.

        Raises:
            ProviderError: If the frame could not be sent.
        """

    @abstractmethod
    def messages(self) -> AsyncIterator[StreamingMessage]:
        """Yields partial transcript messages until the session closes."""

    async def flush(self) -> None:
        """Asks the provider to emit results for audio it is still buffering."""

    @abstractmethod
    async def close(self) -> None:
        """Closes the session. Safe to call more than once."""


class StreamingTranscriptionService(ABC):
    """Abstract base class for streaming transcription backends."""

    name: str = "streaming"
    sample_rate_hz: int = 16_000

    @abstractmethod
    async def connect(self) -> StreamingSession:
        """
        Opens a new duplex session.

        Raises:
            ProviderError: If the connection is refused.
        """
