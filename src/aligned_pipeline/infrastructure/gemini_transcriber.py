"""Gemini implementation of the TranscriptionService interface."""

from google import genai
from google.genai import errors, types

from aligned_pipeline.exceptions import ProviderError
from aligned_pipeline.logging import setup_logging

from .gemini_llm import provider_error_from_api
from .interfaces import TranscriptionService

logger = setup_logging()


class GeminiTranscriber(TranscriptionService):
    """
    Transcribes audio by sending it inline to a multimodal Gemini model.

    Gemini accepts whole recordings, so it declares no per-request limit and
    is never chunked.
    """

    name = "gemini"
    limits = None

    def __init__(self, client: genai.Client, model_name: str, prompt: str):
        self._client = client
        self._model_name = model_name
        self._prompt = prompt

    async def transcribe(self, audio_data: bytes, mime_type: str) -> str:
        try:
            response = await self._client.aio.models.generate_content(
                model=self._model_name,
                contents=[
                    types.Part.from_bytes(data=audio_data, mime_type=mime_type),
                    self._prompt,
                ],
            )
        except errors.APIError as e:
            logger.warning(
                "Gemini transcription failed",
                extra={"status_code": e.code, "status": e.status},
            )
            raise provider_error_from_api(self.name, e) from e

        text = response.text
        if text is None:
            raise ProviderError(self.name, "Transcription returned no text")

        logger.info("Audio transcription successful", extra={"engine": self.name, "chars": len(text)})
        return text.strip()
