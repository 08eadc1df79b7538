"""Sarvam WebSocket implementation of streaming transcription."""

import base64
import json
from collections.abc import AsyncIterator
from urllib.parse import urlencode

import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed, InvalidStatus

from aligned_pipeline.config import SarvamConfig
from aligned_pipeline.domain.models import StreamingMessage
from aligned_pipeline.exceptions import ProviderError
from aligned_pipeline.logging import setup_logging

from .interfaces import StreamingSession, StreamingTranscriptionService

logger = setup_logging()


class SarvamStreamingSession(StreamingSession):
    """One open Sarvam speech-to-text WebSocket."""

    def __init__(self, connection: ClientConnection, sample_rate_hz: int):
        self._connection = connection
        self._sample_rate_hz = sample_rate_hz
        self._closed = False

    async def send(self, frame: bytes) -> None:
        payload = {
            "audio": {
                "data": base64.b64encode(frame).decode("ascii"),
                "sample_rate": self._sample_rate_hz,
                "encoding": "pcm_s16le",
            }
        }
        try:
            await self._connection.send(json.dumps(payload))
        except ConnectionClosed as e:
            raise ProviderError("sarvam", "Streaming connection closed", cause=e) from e

    async def messages(self) -> AsyncIterator[StreamingMessage]:
        try:
            async for raw in self._connection:
                text = self._extract_text(raw)
                if text:
                    # Segments arrive without separators
                    yield StreamingMessage(text=text + " ", is_final=True)
        except ConnectionClosed:
            if not self._closed:
                raise

    async def flush(self) -> None:
        try:
            await self._connection.send(json.dumps({"type": "flush"}))
        except ConnectionClosed:
            logger.warning("Flush skipped, streaming connection already closed")

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._connection.close()
        logger.info("Sarvam streaming session closed")

    def _extract_text(self, raw: str | bytes) -> str | None:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("Failed to parse streaming message")
            return None
        if not isinstance(data, dict):
            return None
        if data.get("type") in ("transcript", "translation") and data.get("text"):
            return data["text"]
        if data.get("transcript"):
            return data["transcript"]
        nested = data.get("data")
        if isinstance(nested, dict) and nested.get("transcript"):
            return nested["transcript"]
        return None


class SarvamStreamingService(StreamingTranscriptionService):
    """Opens Sarvam streaming sessions configured for 16-bit PCM input."""

    name = "sarvam"

    def __init__(self, config: SarvamConfig, sample_rate_hz: int = 16_000):
        self._config = config
        self.sample_rate_hz = sample_rate_hz

    async def connect(self) -> SarvamStreamingSession:
        params = urlencode(
            {
                "language-code": self._config.language_code,
                "model": self._config.model,
                "input_audio_codec": "pcm_s16le",
                "sample_rate": str(self.sample_rate_hz),
                "high_vad_sensitivity": "true",
                "vad_signals": "true",
            }
        )
        try:
            connection = await websockets.connect(
                f"{self._config.streaming_url}?{params}",
                additional_headers={"api-subscription-key": self._config.api_key},
            )
        except InvalidStatus as e:
            status_code = e.response.status_code
            raise ProviderError(
                self.name, "Streaming handshake rejected", status_code=status_code, cause=e
            ) from e

        logger.info("Sarvam streaming session opened", extra={"sample_rate_hz": self.sample_rate_hz})
        return SarvamStreamingSession(connection, self.sample_rate_hz)
