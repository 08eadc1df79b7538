"""Gemini LLM service implementation."""

from google import genai
from google.genai import errors, types

from aligned_pipeline.domain.models import GenerationConfig, GenerationResult
from aligned_pipeline.exceptions import ProviderError
from aligned_pipeline.logging import setup_logging

from .interfaces import LLMService

logger = setup_logging()


def provider_error_from_api(provider: str, error: errors.APIError) -> ProviderError:
    """Maps a google-genai APIError onto a ProviderError keeping code and status."""
    return ProviderError(
        provider,
        error.message or str(error),
        status_code=error.code,
        vendor_code=error.status,
        cause=error,
    )


class GeminiLLMService(LLMService):
    """LLM service implementation using Google Gemini."""

    def __init__(self, client: genai.Client, model_name: str):
        self._client = client
        self._model_name = model_name

    async def generate(self, prompt: str, config: GenerationConfig) -> GenerationResult:
        """
        Generates text with Gemini.

        Args:
            prompt: The full prompt text.
            config: Output ceiling and temperature.

        Returns:
            GenerationResult; finish_reason is "length-limited" when Gemini
            stopped at MAX_TOKENS.

        Raises:
            ProviderError: If the Gemini API call fails.
        """
        try:
            response = await self._client.aio.models.generate_content(
                model=self._model_name,
                contents=prompt,
                config=types.GenerateContentConfig(
                    max_output_tokens=config.max_output_tokens,
                    temperature=config.temperature,
                ),
            )
        except errors.APIError as e:
            logger.warning(
                "Gemini generation failed",
                extra={"status_code": e.code, "status": e.status},
            )
            raise provider_error_from_api("gemini", e) from e

        finish_reason = "stop"
        if response.candidates and response.candidates[0].finish_reason == types.FinishReason.MAX_TOKENS:
            finish_reason = "length-limited"

        text = response.text or ""
        logger.info(
            "LLM generation completed",
            extra={"chars": len(text), "finish_reason": finish_reason},
        )
        return GenerationResult(text=text, finish_reason=finish_reason)
