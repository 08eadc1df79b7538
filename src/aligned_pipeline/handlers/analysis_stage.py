"""Transcript analysis through a structured-generation provider."""

import asyncio
import hashlib

from aligned_pipeline.config import AnalysisConfig
from aligned_pipeline.domain.analysis_parser import parse_analysis
from aligned_pipeline.domain.models import AnalysisMode, GenerationConfig, MeetingAnalysis
from aligned_pipeline.domain.retry import RetryExecutor
from aligned_pipeline.exceptions import AnalysisFailed, CacheServiceError, ProviderError
from aligned_pipeline.infrastructure.interfaces import CacheService, LLMService
from aligned_pipeline.logging import setup_logging

logger = setup_logging()


def degraded(transcript: str) -> MeetingAnalysis:
    """The transcript-only analysis used when structuring fails."""
    return MeetingAnalysis(transcript=transcript, summary=transcript, action_points=[])


class AnalysisStage:
    """Analyzes transcripts with an LLM, using cache when available."""

    def __init__(
        self,
        llm_service: LLMService,
        retry: RetryExecutor,
        config: AnalysisConfig,
        prompts: dict[AnalysisMode, str],
        cache_service: CacheService | None = None,
    ):
        self._llm = llm_service
        self._retry = retry
        self._config = config
        self._prompts = prompts
        self._cache = cache_service

    async def analyze(
        self, transcript: str, mode: AnalysisMode = AnalysisMode.MEETING
    ) -> MeetingAnalysis:
        """
        Analyzes a transcript and parses the response into a MeetingAnalysis.

        Args:
            transcript: The full transcript text.
            mode: Meeting notes or dictation enhancement.

        Returns:
            MeetingAnalysis; `is_truncated` is set when the provider hit its
            output ceiling.

        Raises:
            AnalysisFailed: If the provider call failed after retries. The
                exception carries a degraded, transcript-only analysis.
        """
        cache_key = f"analysis:{mode.value}:{hashlib.sha256(transcript.encode('utf-8')).hexdigest()}"

        cached = await self._cache_get(cache_key)
        if cached:
            logger.info("Analysis retrieved from cache", extra={"mode": mode.value})
            return MeetingAnalysis.model_validate_json(cached)

        prompt = self._prompts[mode].replace("{transcript}", transcript)
        generation_config = GenerationConfig(
            max_output_tokens=self._config.max_output_tokens,
            temperature=self._config.temperature,
        )

        try:
            result = await self._retry.run(
                lambda: self._llm.generate(prompt, generation_config),
                max_retries=self._config.max_retries,
                initial_delay_ms=self._config.initial_delay_ms,
                label=f"{mode.value} analysis",
            )
            if not result.text.strip():
                raise ProviderError("analysis", "Empty analysis response")
        except Exception as e:
            logger.error(
                "Analysis failed, keeping transcript only",
                extra={"mode": mode.value, "error": str(e)},
            )
            raise AnalysisFailed(degraded(transcript), cause=e) from e

        analysis = parse_analysis(result.text, transcript, is_truncated=result.is_length_limited)
        if analysis.is_truncated:
            logger.warning("Analysis output was truncated", extra={"mode": mode.value})

        await self._cache_set(cache_key, analysis.model_dump_json(by_alias=True))
        logger.info(
            "Analysis completed",
            extra={"mode": mode.value, "action_points": len(analysis.action_points)},
        )
        return analysis

    async def _cache_get(self, key: str) -> str | None:
        if self._cache is None:
            return None
        try:
            return await asyncio.to_thread(self._cache.get, key)
        except CacheServiceError as e:
            logger.warning("Cache lookup failed", extra={"key": key, "error": str(e)})
            return None

    async def _cache_set(self, key: str, value: str) -> None:
        if self._cache is None:
            return
        try:
            await asyncio.to_thread(self._cache.set, key, value)
        except CacheServiceError as e:
            logger.warning("Cache write failed", extra={"key": key, "error": str(e)})
