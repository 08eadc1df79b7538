"""Abstract interface for single-shot transcription providers."""

from abc import ABC, abstractmethod

from aligned_pipeline.domain.models import TranscriptionLimits


class TranscriptionService(ABC):
    """Abstract base class for batch audio transcription backends."""

    name: str = "transcriber"
    limits: TranscriptionLimits | None = None

    @abstractmethod
    async def transcribe(self, audio_data: bytes, mime_type: str) -> str:
        """
        Transcribes one encoded audio file and returns its text.

        Args:
            audio_data: Encoded audio bytes (a whole capture or one chunk).
            mime_type: MIME type of the audio container.

        Returns:
            The transcript text, possibly empty for silent audio.

        Raises:
            ProviderError: If the provider rejects the request.
        """
        pass
