"""AssemblyAI implementation of the TranscriptionService interface."""

import asyncio
import tempfile

import assemblyai as aai

from aligned_pipeline.domain.audio_chunker import format_for_mime
from aligned_pipeline.exceptions import ProviderError
from aligned_pipeline.logging import setup_logging

from .interfaces import TranscriptionService

logger = setup_logging()


class AssemblyAITranscriber(TranscriptionService):
    """Handles audio transcription using AssemblyAI."""

    name = "assemblyai"
    limits = None

    def __init__(self, transcriber: aai.Transcriber):
        self._transcriber = transcriber

    async def transcribe(self, audio_data: bytes, mime_type: str) -> str:
        """
        Transcribes audio data using AssemblyAI.

        The SDK call blocks until the job completes, so it runs on a worker
        thread. Speaker-labeled utterances are rendered as "Speaker X: text"
        lines.
        """
        return await asyncio.to_thread(self._transcribe_blocking, audio_data, mime_type)

    def _transcribe_blocking(self, audio_data: bytes, mime_type: str) -> str:
        suffix = f".{format_for_mime(mime_type) or 'wav'}"
        with tempfile.NamedTemporaryFile(suffix=suffix, delete=True) as temp_file:
            temp_file.write(audio_data)
            temp_file.flush()

            transcription = self._transcriber.transcribe(temp_file.name)

        if transcription.status == aai.TranscriptStatus.error:
            raise ProviderError(self.name, str(transcription.error))

        if transcription.text is None:
            raise ProviderError(self.name, "Transcription returned no text")

        if transcription.utterances:
            text = "\n".join(
                f"Speaker {u.speaker}: {u.text}" for u in transcription.utterances
            )
        else:
            text = transcription.text

        logger.info(
            "Audio transcription successful",
            extra={
                "engine": self.name,
                "utterance_count": len(transcription.utterances or []),
            },
        )
        return text
