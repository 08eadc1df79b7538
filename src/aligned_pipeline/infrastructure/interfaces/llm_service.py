"""Abstract interface for structured-generation providers."""

from abc import ABC, abstractmethod

from aligned_pipeline.domain.models import GenerationConfig, GenerationResult


class LLMService(ABC):
    """Abstract base class for LLM backends."""

    @abstractmethod
    async def generate(self, prompt: str, config: GenerationConfig) -> GenerationResult:
        """
        Generates text for a prompt.

        Args:
            prompt: The full prompt, transcript included.
            config: Output length ceiling and sampling temperature.

        Returns:
            GenerationResult with the text and a normalized finish reason
            ("length-limited" when the output ceiling was hit).

        Raises:
            ProviderError: If the LLM call fails.
        """
        pass
