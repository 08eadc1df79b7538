"""Splits long captures into independently submittable chunks."""

import asyncio
import io

from pydub import AudioSegment

from aligned_pipeline.domain.models import AudioCapture, AudioChunk
from aligned_pipeline.logging import setup_logging

logger = setup_logging()

_MIME_FORMATS = {
    "audio/wav": "wav",
    "audio/wave": "wav",
    "audio/x-wav": "wav",
    "audio/webm": "webm",
    "audio/ogg": "ogg",
    "audio/mpeg": "mp3",
    "audio/mp4": "mp4",
    "audio/x-m4a": "m4a",
}


def format_for_mime(mime_type: str) -> str | None:
    """Maps a MIME type (codec parameters ignored) to a pydub/ffmpeg format name."""
    base = mime_type.split(";", 1)[0].strip().lower()
    return _MIME_FORMATS.get(base)


def mime_for_format(audio_format: str) -> str:
    """Inverse of `format_for_mime`; unknown formats map to a generic binary type."""
    for mime_type, known_format in _MIME_FORMATS.items():
        if known_format == audio_format:
            return mime_type
    return "application/octet-stream"


class AudioChunker:
    """
    Splits captures that exceed a provider's per-request duration limit.

    Short captures are passed through untouched. Long captures are decoded
    to PCM, sliced by sample count, and re-encoded as standalone WAV files.
    Chunking is an optimization: any decoding failure falls back to a single
    chunk containing the original bytes.
    """

    def __init__(self, assumed_bitrate_bps: int = 16_000):
        self._assumed_bitrate_bps = assumed_bitrate_bps

    def estimate_duration_ms(self, capture: AudioCapture) -> int:
        """Conservative duration estimate from byte size at a low assumed bitrate."""
        return len(capture.data) * 8 * 1000 // self._assumed_bitrate_bps

    def split(
        self,
        capture: AudioCapture,
        max_chunk_duration_ms: int,
        request_limit_ms: int | None = None,
    ) -> list[AudioChunk]:
        """
        Splits a capture into ordered chunks of at most `max_chunk_duration_ms`.

        Args:
            capture: The encoded capture.
            max_chunk_duration_ms: Target duration of each re-encoded chunk.
            request_limit_ms: The provider's single-request limit; captures
                within it are never split. Defaults to max_chunk_duration_ms.

        Returns:
            Chunks ordered by index. Never empty for a non-empty capture.
        """
        limit_ms = request_limit_ms or max_chunk_duration_ms
        estimate_ms = self.estimate_duration_ms(capture)
        if estimate_ms <= limit_ms:
            return [self._whole(capture)]

        try:
            segment = AudioSegment.from_file(
                io.BytesIO(capture.data), format=format_for_mime(capture.mime_type)
            )
        except Exception as e:
            logger.warning(
                "Could not decode capture for chunking, sending as single request",
                extra={"mime_type": capture.mime_type, "error": str(e)},
            )
            return [self._whole(capture)]

        if len(segment) <= limit_ms:
            return [self._whole(capture, duration_ms=len(segment))]

        total_samples = int(segment.frame_count())
        chunk_samples = max(1, int(segment.frame_rate * max_chunk_duration_ms / 1000))
        chunks: list[AudioChunk] = []

        for start in range(0, total_samples, chunk_samples):
            end = min(start + chunk_samples, total_samples)
            piece = segment.get_sample_slice(start, end)
            if end == total_samples and (end - start == 0 or piece.max == 0):
                logger.info(
                    "Dropping silent trailing chunk",
                    extra={"samples": end - start},
                )
                continue
            chunks.append(
                AudioChunk(
                    index=len(chunks),
                    data=self._encode_wav(piece),
                    mime_type="audio/wav",
                    duration_ms=round((end - start) * 1000 / segment.frame_rate),
                )
            )

        logger.info(
            "Capture split into chunks",
            extra={
                "chunk_count": len(chunks),
                "duration_ms": len(segment),
                "chunk_duration_ms": max_chunk_duration_ms,
            },
        )
        return chunks or [self._whole(capture, duration_ms=len(segment))]

    async def split_async(
        self,
        capture: AudioCapture,
        max_chunk_duration_ms: int,
        request_limit_ms: int | None = None,
    ) -> list[AudioChunk]:
        """Runs `split` on a worker thread so decoding never blocks the event loop."""
        return await asyncio.to_thread(
            self.split, capture, max_chunk_duration_ms, request_limit_ms
        )

    def _whole(self, capture: AudioCapture, duration_ms: int | None = None) -> AudioChunk:
        if duration_ms is None:
            duration_ms = int(capture.duration_seconds * 1000)
        return AudioChunk(
            index=0,
            data=capture.data,
            mime_type=capture.mime_type,
            duration_ms=duration_ms,
        )

    def _encode_wav(self, piece: AudioSegment) -> bytes:
        buffer = io.BytesIO()
        piece.set_sample_width(2).export(buffer, format="wav")
        return buffer.getvalue()
