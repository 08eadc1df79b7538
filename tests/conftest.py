import asyncio
import io
import wave
from contextlib import contextmanager

import numpy as np
import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from aligned_pipeline.config import AnalysisConfig, LiveConfig, TranscriptionConfig
from aligned_pipeline.domain.audio_chunker import AudioChunker
from aligned_pipeline.domain.models import (
    AnalysisMode,
    AudioChunk,
    GenerationResult,
    StreamingMessage,
    TranscriptionLimits,
)
from aligned_pipeline.domain.pcm import encode_wav, to_pcm16
from aligned_pipeline.domain.retry import RetryExecutor
from aligned_pipeline.exceptions import CacheServiceError
from aligned_pipeline.handlers import AnalysisStage, SessionController, TranscriptionOrchestrator
from aligned_pipeline.infrastructure.interfaces import (
    CacheService,
    CaptureDevice,
    CaptureStream,
    LLMService,
    StorageClient,
    StreamingSession,
    StreamingTranscriptionService,
    TranscriptionService,
)
from aligned_pipeline.repositories import SqlSessionStore

ANALYSIS_RESPONSE = """📋 Meeting Overview
**Date:** 2026-03-02
**Meeting Type:** planning

📝 Summary
The team planned the release.

✅ Action Items
- [ ] Ship the beta
- [ ] Email the customer

❓ Open Questions
- Who owns QA?

detectedLanguages: English, Hindi
meetingType: planning
"""


def make_wav(seconds: float, sample_rate_hz: int = 8000, silent_tail_seconds: float = 0.0) -> bytes:
    """A mono 16-bit WAV with a 440 Hz tone, optionally followed by silence."""
    t = np.arange(int(seconds * sample_rate_hz)) / sample_rate_hz
    tone = 0.5 * np.sin(2 * np.pi * 440 * t)
    silence = np.zeros(int(silent_tail_seconds * sample_rate_hz))
    return encode_wav(to_pcm16(np.concatenate([tone, silence])), sample_rate_hz)


def wav_frame_count(data: bytes) -> int:
    with wave.open(io.BytesIO(data), "rb") as wav:
        return wav.getnframes()


class FakeSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class ScriptedTranscriber(TranscriptionService):
    """
    Returns scripted outcomes per audio payload. An outcome that is an
    exception is raised; anything else is returned as text. The last outcome
    of a script repeats.
    """

    def __init__(self, name="primary", limits=None, scripts=None, default="", latency=None):
        self.name = name
        self.limits = limits
        self._scripts = scripts or {}
        self._default = default
        self._latency = latency
        self.calls: list[bytes] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.started: list[bytes] = []
        self.finished: list[bytes] = []
        self.events: list[tuple[str, bytes]] = []

    async def transcribe(self, audio_data: bytes, mime_type: str) -> str:
        self.calls.append(audio_data)
        self.started.append(audio_data)
        self.events.append(("start", audio_data))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self._latency is not None:
                await asyncio.sleep(self._latency(audio_data))
            script = self._scripts.get(audio_data)
            if script is None:
                outcome = self._default
            else:
                attempt = sum(1 for call in self.calls if call == audio_data) - 1
                outcome = script[min(attempt, len(script) - 1)]
            if isinstance(outcome, BaseException):
                raise outcome
            return outcome
        finally:
            self.in_flight -= 1
            self.finished.append(audio_data)
            self.events.append(("end", audio_data))


class StubChunker(AudioChunker):
    def __init__(self, chunks: list[AudioChunk]):
        super().__init__()
        self._chunks = chunks
        self.split_calls = 0

    def split(self, capture, max_chunk_duration_ms, request_limit_ms=None):
        self.split_calls += 1
        return list(self._chunks)


def make_chunks(*payloads: bytes) -> list[AudioChunk]:
    return [
        AudioChunk(index=i, data=payload, mime_type="audio/wav", duration_ms=25_000)
        for i, payload in enumerate(payloads)
    ]


class FakeLLM(LLMService):
    def __init__(self, outcomes=None):
        self.outcomes = list(outcomes or [GenerationResult(text=ANALYSIS_RESPONSE)])
        self.prompts: list[str] = []
        self.configs = []

    async def generate(self, prompt, config):
        self.prompts.append(prompt)
        self.configs.append(config)
        outcome = self.outcomes[min(len(self.prompts) - 1, len(self.outcomes) - 1)]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


class FakeCache(CacheService):
    def __init__(self, fail: bool = False):
        self.values: dict[str, str] = {}
        self._fail = fail

    def get(self, key):
        if self._fail:
            raise CacheServiceError(key, "get")
        return self.values.get(key)

    def set(self, key, value):
        if self._fail:
            raise CacheServiceError(key, "set")
        self.values[key] = value


class FakeStorage(StorageClient):
    def __init__(self):
        self.objects: dict[tuple[str, str], bytes] = {}

    def download(self, bucket_name, object_name):
        return self.objects[(bucket_name, object_name)]

    def upload(self, bucket_name, object_name, data, content_type):
        self.objects[(bucket_name, object_name)] = data

    def find(self, bucket_name, prefix):
        for bucket, name in self.objects:
            if bucket == bucket_name and name.startswith(prefix):
                return name
        return None

    def ensure_bucket_exists(self, bucket_name):
        pass


class RecordingStore(SqlSessionStore):
    """SqlSessionStore that also keeps a snapshot of every checkpoint."""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.saves = []

    def save(self, session):
        self.saves.append(session.model_copy(deep=True))
        super().save(session)


class FakeStreamingSession(StreamingSession):
    def __init__(self, fail_send: bool = False, flush_messages=()):
        self.sent: list[bytes] = []
        self.flushed = False
        self.closed = 0
        self._fail_send = fail_send
        self._flush_messages = list(flush_messages)
        self._queue: asyncio.Queue = asyncio.Queue()

    def push(self, text: str) -> None:
        self._queue.put_nowait(StreamingMessage(text=text))

    def fail(self, error: Exception) -> None:
        self._queue.put_nowait(error)

    async def send(self, frame):
        if self._fail_send:
            raise ConnectionResetError("socket gone")
        self.sent.append(frame)

    async def messages(self):
        while True:
            item = await self._queue.get()
            if item is None:
                return
            if isinstance(item, Exception):
                raise item
            yield item

    async def flush(self):
        self.flushed = True
        for text in self._flush_messages:
            self.push(text)

    async def close(self):
        self.closed += 1
        self._queue.put_nowait(None)


class FakeStreamingService(StreamingTranscriptionService):
    name = "fake-stream"
    sample_rate_hz = 16_000

    def __init__(self, session: FakeStreamingSession | None = None, error: Exception | None = None, gate=None):
        self.session = session
        self.error = error
        self._gate = gate
        self.connects = 0

    async def connect(self):
        self.connects += 1
        if self._gate is not None:
            await self._gate.wait()
        if self.error is not None:
            raise self.error
        return self.session


class FakeCaptureStream(CaptureStream):
    def __init__(self, sample_rate_hz: int, channels: int):
        self.sample_rate_hz = sample_rate_hz
        self.channels = channels
        self.stop_calls = 0
        self._blocks: list[np.ndarray] = []
        self._queue: asyncio.Queue = asyncio.Queue()
        self._recording: bytes | None = None

    def feed(self, block: np.ndarray) -> None:
        self._blocks.append(block)
        self._queue.put_nowait(block)

    async def frames(self):
        while True:
            block = await self._queue.get()
            if block is None:
                return
            yield block

    async def stop(self):
        self.stop_calls += 1
        if self._recording is None:
            self._queue.put_nowait(None)
            samples = np.concatenate(self._blocks) if self._blocks else np.zeros((0, self.channels))
            self._recording = encode_wav(to_pcm16(samples.reshape(-1)), self.sample_rate_hz, self.channels)
        return self._recording


class FakeCaptureDevice(CaptureDevice):
    def __init__(self, error: Exception | None = None):
        self.streams: list[FakeCaptureStream] = []
        self._error = error

    async def open(self, sample_rate_hz, channels, frame_interval_ms):
        if self._error is not None:
            raise self._error
        stream = FakeCaptureStream(sample_rate_hz, channels)
        self.streams.append(stream)
        return stream

    @property
    def stream(self) -> FakeCaptureStream:
        return self.streams[-1]


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def retry(fake_sleep):
    return RetryExecutor(sleep=fake_sleep, jitter=lambda: 1.0)


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def store(db_engine):
    @contextmanager
    def session_factory():
        with Session(db_engine) as session:
            yield session

    return RecordingStore(session_factory)


@pytest.fixture
def transcription_config():
    return TranscriptionConfig(batch_size=3, max_retries=2, initial_delay_ms=1000)


@pytest.fixture
def prompts():
    return {
        AnalysisMode.MEETING: "Meeting notes please.\n{transcript}",
        AnalysisMode.DICTATION: "Polish this dictation.\n{transcript}",
    }


@pytest.fixture
def live_config():
    return LiveConfig(capture_sample_rate_hz=48_000, flush_grace_ms=50)


@pytest.fixture
def build_controller(store, retry, transcription_config, prompts):
    """Builds a SessionController around the given fakes."""

    def build(
        primary: TranscriptionService,
        fallback: TranscriptionService | None = None,
        llm: LLMService | None = None,
        chunker: AudioChunker | None = None,
        storage: StorageClient | None = None,
    ) -> SessionController:
        orchestrator = TranscriptionOrchestrator(
            chunker or AudioChunker(),
            retry,
            primary,
            fallback,
            transcription_config,
        )
        stage = AnalysisStage(llm or FakeLLM(), retry, AnalysisConfig(), prompts)
        return SessionController(store, orchestrator, stage, storage)

    return build


@pytest.fixture
def sarvam_limits():
    return TranscriptionLimits(request_limit_ms=30_000, chunk_duration_ms=25_000)
