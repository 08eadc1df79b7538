"""Batch transcription across chunks and a primary/fallback engine chain."""

import asyncio
from collections.abc import Awaitable, Callable

from aligned_pipeline.config import TranscriptionConfig
from aligned_pipeline.domain.audio_chunker import AudioChunker
from aligned_pipeline.domain.models import AudioCapture, AudioChunk
from aligned_pipeline.domain.retry import RetryExecutor
from aligned_pipeline.exceptions import ChunkTranscriptionError, TranscriptionFailed
from aligned_pipeline.infrastructure.interfaces import TranscriptionService
from aligned_pipeline.logging import setup_logging

logger = setup_logging()


class TranscriptionOrchestrator:
    """
    Turns a capture into transcript text.

    Captures longer than an engine's per-request limit are split into
    chunks and dispatched in fixed-size batches, each batch awaited as a
    whole before the next starts. Results are placed by chunk index so
    out-of-order completion never changes the transcript. If the primary
    engine fails for any reason, the whole operation is re-run on the
    fallback engine.
    """

    def __init__(
        self,
        chunker: AudioChunker,
        retry: RetryExecutor,
        primary: TranscriptionService,
        fallback: TranscriptionService | None,
        config: TranscriptionConfig,
    ):
        self._chunker = chunker
        self._retry = retry
        self._primary = primary
        self._fallback = fallback
        self._config = config

    async def transcribe(
        self,
        capture: AudioCapture,
        on_fallback: Callable[[], Awaitable[None]] | None = None,
    ) -> str:
        """
        Transcribes a capture with the engine chain.

        Args:
            capture: The encoded capture.
            on_fallback: Awaited after the primary engine fails and before the
                fallback engine starts.

        Returns:
            The full transcript text.

        Raises:
            TranscriptionFailed: If every engine in the chain failed.
        """
        try:
            return await self._transcribe_with(self._primary, capture)
        except Exception as e:
            if self._fallback is None:
                logger.error(
                    "Transcription failed, no fallback engine configured",
                    extra={"engine": self._primary.name, "error": str(e)},
                )
                raise TranscriptionFailed(self._primary.name, cause=e) from e
            logger.warning(
                "Primary engine failed, switching to fallback",
                extra={
                    "engine": self._primary.name,
                    "fallback_engine": self._fallback.name,
                    "error": str(e),
                },
            )

        if on_fallback is not None:
            await on_fallback()

        try:
            return await self._transcribe_with(self._fallback, capture)
        except Exception as e:
            logger.error(
                "Fallback engine failed",
                extra={"engine": self._fallback.name, "error": str(e)},
            )
            raise TranscriptionFailed(self._fallback.name, cause=e) from e

    async def _transcribe_with(self, engine: TranscriptionService, capture: AudioCapture) -> str:
        chunks = await self._split(engine, capture)

        if len(chunks) == 1:
            chunk = chunks[0]
            text = await self._retry.run(
                lambda: engine.transcribe(chunk.data, chunk.mime_type),
                max_retries=self._config.max_retries,
                initial_delay_ms=self._config.initial_delay_ms,
                label=f"{engine.name} transcription",
            )
            logger.info(
                "Transcription complete",
                extra={"engine": engine.name, "chunk_count": 1, "chars": len(text)},
            )
            return text.strip()

        results: list[str] = [""] * len(chunks)
        batch_size = max(1, self._config.batch_size)

        for start in range(0, len(chunks), batch_size):
            batch = chunks[start:start + batch_size]
            outcomes = await asyncio.gather(
                *(self._transcribe_chunk(engine, chunk, len(chunks)) for chunk in batch),
                return_exceptions=True,
            )
            for chunk, outcome in zip(batch, outcomes):
                if isinstance(outcome, BaseException):
                    raise ChunkTranscriptionError(chunk.index, len(chunks), cause=outcome) from outcome
                results[chunk.index] = outcome

        transcript = " ".join(text.strip() for text in results if text.strip())
        logger.info(
            "Transcription complete",
            extra={"engine": engine.name, "chunk_count": len(chunks), "chars": len(transcript)},
        )
        return transcript

    async def _transcribe_chunk(self, engine: TranscriptionService, chunk: AudioChunk, total: int) -> str:
        return await self._retry.run(
            lambda: engine.transcribe(chunk.data, chunk.mime_type),
            max_retries=self._config.max_retries,
            initial_delay_ms=self._config.initial_delay_ms,
            label=f"{engine.name} chunk {chunk.index + 1}/{total}",
        )

    async def _split(self, engine: TranscriptionService, capture: AudioCapture) -> list[AudioChunk]:
        if engine.limits is None:
            return [
                AudioChunk(
                    index=0,
                    data=capture.data,
                    mime_type=capture.mime_type,
                    duration_ms=int(capture.duration_seconds * 1000),
                )
            ]
        return await self._chunker.split_async(
            capture,
            engine.limits.chunk_duration_ms,
            engine.limits.request_limit_ms,
        )
