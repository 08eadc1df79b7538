"""Gemini Live implementation of streaming transcription."""

from collections.abc import AsyncIterator
from contextlib import AsyncExitStack

from google import genai
from google.genai import errors, types
from websockets.exceptions import ConnectionClosed

from aligned_pipeline.domain.models import StreamingMessage
from aligned_pipeline.logging import setup_logging

from .gemini_llm import provider_error_from_api
from .interfaces import StreamingSession, StreamingTranscriptionService

logger = setup_logging()


class GeminiLiveSession(StreamingSession):
    """
    A Gemini Live session used only for its input-audio transcription.

    Transcription fragments arrive without separators and are passed on
    verbatim.
    """

    def __init__(self, session, stack: AsyncExitStack, sample_rate_hz: int):
        self._session = session
        self._stack = stack
        self._sample_rate_hz = sample_rate_hz
        self._closed = False

    async def send(self, frame: bytes) -> None:
        await self._session.send_realtime_input(
            audio=types.Blob(data=frame, mime_type=f"audio/pcm;rate={self._sample_rate_hz}")
        )

    async def messages(self) -> AsyncIterator[StreamingMessage]:
        try:
            # receive() ends at each turn boundary
            while not self._closed:
                async for message in self._session.receive():
                    content = message.server_content
                    if content and content.input_transcription and content.input_transcription.text:
                        yield StreamingMessage(
                            text=content.input_transcription.text,
                            is_final=bool(content.input_transcription.finished),
                        )
        except errors.APIError as e:
            # The SDK reports the socket closing as an APIError
            if not self._closed:
                raise provider_error_from_api("gemini", e) from e
        except ConnectionClosed:
            if not self._closed:
                raise

    async def flush(self) -> None:
        await self._session.send_realtime_input(audio_stream_end=True)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._stack.aclose()
        logger.info("Gemini live session closed")


class GeminiLiveService(StreamingTranscriptionService):
    """Opens Gemini Live sessions with input transcription enabled."""

    name = "gemini"

    def __init__(self, client: genai.Client, model_name: str, sample_rate_hz: int = 16_000):
        self._client = client
        self._model_name = model_name
        self.sample_rate_hz = sample_rate_hz

    async def connect(self) -> GeminiLiveSession:
        config = types.LiveConnectConfig(
            response_modalities=[types.Modality.TEXT],
            input_audio_transcription=types.AudioTranscriptionConfig(),
        )
        stack = AsyncExitStack()
        try:
            session = await stack.enter_async_context(
                self._client.aio.live.connect(model=self._model_name, config=config)
            )
        except errors.APIError as e:
            await stack.aclose()
            raise provider_error_from_api(self.name, e) from e

        logger.info("Gemini live session opened", extra={"model": self._model_name})
        return GeminiLiveSession(session, stack, self.sample_rate_hz)
