"""Dependency injection configuration for the recording pipeline."""

from contextlib import contextmanager
from pathlib import Path

import assemblyai as aai
import httpx
import pika
import redis
from google import genai
from minio import Minio
from sqlmodel import Session, SQLModel, create_engine

from aligned_pipeline.config import load_config
from aligned_pipeline.domain.audio_chunker import AudioChunker
from aligned_pipeline.domain.models import AnalysisMode, TranscriptionLimits
from aligned_pipeline.domain.retry import RetryExecutor
from aligned_pipeline.handlers import (
    AnalysisStage,
    BatchRecorder,
    LiveDictationSession,
    RecordingMessageHandler,
    SessionController,
    TranscriptionOrchestrator,
)
from aligned_pipeline.infrastructure import (
    AssemblyAITranscriber,
    GeminiLiveService,
    GeminiLLMService,
    GeminiTranscriber,
    MinioStorageClient,
    RabbitMQBroker,
    RedisCacheService,
    SarvamStreamingService,
    SarvamTranscriber,
)
from aligned_pipeline.infrastructure.interfaces import (
    StreamingTranscriptionService,
    TranscriptionService,
)
from aligned_pipeline.logging import setup_logging
from aligned_pipeline.repositories import SqlSessionStore
from aligned_pipeline.worker import Worker

logger = setup_logging()

_config = load_config()
_prompts_dir = Path(__file__).parent / "prompts"

# MinIO capture archive
_minio_client = Minio(
    endpoint=_config.minio.endpoint,
    access_key=_config.minio.user,
    secret_key=_config.minio.password,
    secure=False,
)
_storage = MinioStorageClient(_minio_client)
_storage.ensure_bucket_exists(_config.minio.bucket_name)

# Redis analysis cache
_redis_client = redis.Redis(
    host=_config.redis.host,
    decode_responses=True,
)
if not _redis_client.ping():
    logger.error("Redis connection failed", extra={"host": _config.redis.host})
    raise ConnectionError("Redis connection failed")
_cache = RedisCacheService(
    _redis_client, _config.redis.cache_ttl_seconds, _config.redis.key_prefix
)

# PostgreSQL session store
_db_engine = create_engine(_config.postgres.url)
SQLModel.metadata.create_all(_db_engine)
logger.info("Database initialized", extra={"host": _config.postgres.host})


@contextmanager
def _session_factory():
    """Creates a database session context manager."""
    with Session(_db_engine) as session:
        yield session


_store = SqlSessionStore(_session_factory)

# Providers
_gemini_client = genai.Client(api_key=_config.gemini.api_key)
_http_client = httpx.AsyncClient()

aai.settings.api_key = _config.assemblyai.api_key
_aai_transcriber = aai.Transcriber(
    config=aai.TranscriptionConfig(speaker_labels=_config.assemblyai.speaker_labels)
)


def _build_transcriber(engine: str) -> TranscriptionService:
    if engine == "sarvam":
        return SarvamTranscriber(
            _http_client,
            _config.sarvam,
            TranscriptionLimits(
                request_limit_ms=_config.transcription.request_limit_ms,
                chunk_duration_ms=_config.transcription.chunk_duration_ms,
            ),
        )
    if engine == "gemini":
        return GeminiTranscriber(
            _gemini_client,
            _config.gemini.transcription_model,
            (_prompts_dir / "transcription.txt").read_text(encoding="utf-8"),
        )
    return AssemblyAITranscriber(_aai_transcriber)


def _build_streaming_service() -> StreamingTranscriptionService:
    if _config.live.engine == "gemini":
        return GeminiLiveService(
            _gemini_client, _config.gemini.live_model, _config.live.provider_sample_rate_hz
        )
    return SarvamStreamingService(_config.sarvam, _config.live.provider_sample_rate_hz)


# Service composition
_retry = RetryExecutor()
_orchestrator = TranscriptionOrchestrator(
    AudioChunker(_config.transcription.assumed_bitrate_bps),
    _retry,
    _build_transcriber(_config.transcription.primary_engine),
    (
        _build_transcriber(_config.transcription.fallback_engine)
        if _config.transcription.fallback_engine
        else None
    ),
    _config.transcription,
)
_analysis_stage = AnalysisStage(
    GeminiLLMService(_gemini_client, _config.gemini.analysis_model),
    _retry,
    _config.analysis,
    {
        AnalysisMode.MEETING: (_prompts_dir / "meeting_analysis.txt").read_text(encoding="utf-8"),
        AnalysisMode.DICTATION: (_prompts_dir / "dictation_enhancement.txt").read_text(encoding="utf-8"),
    },
    _cache,
)
_controller = SessionController(
    _store,
    _orchestrator,
    _analysis_stage,
    _storage,
    _config.minio.bucket_name,
)


def get_store() -> SqlSessionStore:
    """Returns the configured session store."""
    return _store


def get_controller() -> SessionController:
    """Returns the configured session controller."""
    return _controller


def get_batch_recorder() -> BatchRecorder:
    """Returns a recorder bound to the default input device."""
    from aligned_pipeline.infrastructure.sounddevice_capture import SoundDeviceCapture

    return BatchRecorder(SoundDeviceCapture(), _controller, _config.capture)


def create_live_dictation(owner_id: str, on_transcript=None) -> LiveDictationSession:
    """Returns a new live dictation session on the default input device."""
    from aligned_pipeline.infrastructure.sounddevice_capture import SoundDeviceCapture

    return LiveDictationSession(
        _build_streaming_service(),
        SoundDeviceCapture(),
        _controller,
        _config.live,
        owner_id,
        on_transcript=on_transcript,
    )


def get_worker() -> Worker:
    """Returns the configured worker, connected to RabbitMQ."""
    credentials = pika.PlainCredentials(_config.rabbitmq.user, _config.rabbitmq.password)
    parameters = pika.ConnectionParameters(
        host=_config.rabbitmq.host,
        credentials=credentials,
        heartbeat=0,
    )
    channel = pika.BlockingConnection(parameters).channel()
    broker = RabbitMQBroker(channel, _config.rabbitmq)
    broker.setup()
    return Worker(broker, RecordingMessageHandler(_storage, _controller), _config.rabbitmq)
