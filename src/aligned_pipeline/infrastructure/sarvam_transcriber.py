"""Sarvam REST implementation of the TranscriptionService interface."""

import httpx

from aligned_pipeline.config import SarvamConfig
from aligned_pipeline.domain.audio_chunker import format_for_mime
from aligned_pipeline.domain.models import TranscriptionLimits
from aligned_pipeline.exceptions import ProviderError
from aligned_pipeline.logging import setup_logging

from .interfaces import TranscriptionService

logger = setup_logging()


class SarvamTranscriber(TranscriptionService):
    """
    Transcribes audio through Sarvam's speech-to-text REST endpoint.

    The endpoint rejects requests longer than 30 seconds of audio, so
    captures are chunked to 25 seconds before they reach this client.
    """

    name = "sarvam"

    def __init__(
        self,
        client: httpx.AsyncClient,
        config: SarvamConfig,
        limits: TranscriptionLimits,
    ):
        self._client = client
        self._config = config
        self.limits = limits

    async def transcribe(self, audio_data: bytes, mime_type: str) -> str:
        """
        Posts one audio file as multipart form data.

        Raises:
            ProviderError: On any non-2xx response, carrying its status code.
        """
        filename = f"audio.{format_for_mime(mime_type) or 'webm'}"
        response = await self._client.post(
            self._config.rest_url,
            headers={"api-subscription-key": self._config.api_key},
            files={"file": (filename, audio_data, mime_type)},
            data={
                "model": self._config.model,
                "language_code": self._config.language_code,
            },
            timeout=self._config.request_timeout_seconds,
        )

        if response.status_code >= 400:
            logger.warning(
                "Sarvam request rejected",
                extra={"status_code": response.status_code},
            )
            raise ProviderError(
                self.name, response.text or "Unknown error", status_code=response.status_code
            )

        transcript = response.json().get("transcript") or ""
        logger.info(
            "Audio transcription successful",
            extra={"engine": self.name, "chars": len(transcript)},
        )
        return transcript
