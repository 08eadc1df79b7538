"""Application configuration loaded from environment variables."""

import os
from typing import Literal

from pydantic import BaseModel, computed_field

EngineName = Literal["sarvam", "gemini", "assemblyai"]


class GeminiConfig(BaseModel, frozen=True):
    """Gemini API configuration."""

    api_key: str
    analysis_model: str = "gemini-2.5-flash"
    transcription_model: str = "gemini-2.5-flash"
    live_model: str = "gemini-live-2.5-flash-preview"


class SarvamConfig(BaseModel, frozen=True):
    """Sarvam speech-to-text configuration."""

    api_key: str
    model: str = "saaras:v3"
    language_code: str = "unknown"
    rest_url: str = "https://api.sarvam.ai/speech-to-text"
    streaming_url: str = "wss://api.sarvam.ai/speech-to-text/ws"
    request_timeout_seconds: float = 60.0


class AssemblyAIConfig(BaseModel, frozen=True):
    """AssemblyAI API configuration."""

    api_key: str
    speaker_labels: bool = True


class TranscriptionConfig(BaseModel, frozen=True):
    """Engine chain, chunking, and retry settings for batch transcription."""

    primary_engine: EngineName = "sarvam"
    fallback_engine: EngineName | None = "gemini"
    chunk_duration_ms: int = 25_000
    request_limit_ms: int = 30_000
    batch_size: int = 3
    assumed_bitrate_bps: int = 16_000
    max_retries: int = 2
    initial_delay_ms: int = 1_000


class AnalysisConfig(BaseModel, frozen=True):
    """Structured-generation settings for transcript analysis."""

    max_output_tokens: int = 65_536
    temperature: float = 0.1
    max_retries: int = 3
    initial_delay_ms: int = 1_000


class LiveConfig(BaseModel, frozen=True):
    """Live dictation settings."""

    engine: Literal["sarvam", "gemini"] = "sarvam"
    provider_sample_rate_hz: int = 16_000
    capture_sample_rate_hz: int = 48_000
    capture_channels: int = 1
    frame_interval_ms: int = 256
    flush_grace_ms: int = 500


class CaptureConfig(BaseModel, frozen=True):
    """Batch recording settings."""

    sample_rate_hz: int = 16_000
    channels: int = 1
    max_duration_seconds: int = 7_200


class PostgresConfig(BaseModel, frozen=True):
    """PostgreSQL connection configuration."""

    host: str
    user: str
    password: str
    port: int
    database: str

    @computed_field
    @property
    def url(self) -> str:
        """Returns the full PostgreSQL connection URL."""
        return (
            f"postgresql+psycopg://{self.user}:{self.password}"
            f"@{self.host}:{self.port}/{self.database}"
        )


class RedisConfig(BaseModel, frozen=True):
    """Redis connection configuration."""

    host: str
    cache_ttl_seconds: int = 86400
    key_prefix: str = "aligned"


class MinioConfig(BaseModel, frozen=True):
    """MinIO connection configuration."""

    endpoint: str
    user: str
    password: str
    bucket_name: str = "recordings"


class QueueConfig(BaseModel, frozen=True):
    """RabbitMQ queue configuration."""

    name: str
    queue_type: str = "quorum"
    max_delivery_count: int = 3
    expected_routing_key: str
    success_routing_key: str
    failure_routing_key: str
    dlq_name: str
    dlq_exchange_name: str = "dead_letter_exchange"
    dlq_routing_key: str
    outcome_queue_name: str = "recording_outcomes"


class RabbitMQConfig(BaseModel, frozen=True):
    """RabbitMQ connection configuration."""

    host: str
    user: str
    password: str
    exchange_name: str = "events"
    queue_config: QueueConfig = QueueConfig(
        name="recording_processing_queue",
        expected_routing_key="recording.capture.uploaded",
        success_routing_key="recording.processing.completed",
        failure_routing_key="recording.processing.failed",
        dlq_name="dlq_recording_processing",
        dlq_routing_key="recording.capture.rejected",
    )


class AppConfig(BaseModel, frozen=True):
    """Root application configuration."""

    gemini: GeminiConfig
    sarvam: SarvamConfig
    assemblyai: AssemblyAIConfig
    transcription: TranscriptionConfig
    analysis: AnalysisConfig
    live: LiveConfig
    capture: CaptureConfig
    postgres: PostgresConfig
    redis: RedisConfig
    minio: MinioConfig
    rabbitmq: RabbitMQConfig


def load_config() -> AppConfig:
    """Loads configuration from environment variables."""
    fallback_engine = os.getenv("TRANSCRIPTION_FALLBACK_ENGINE", "gemini")
    return AppConfig(
        gemini=GeminiConfig(
            api_key=os.getenv("GEMINI_API_KEY", ""),
        ),
        sarvam=SarvamConfig(
            api_key=os.getenv("SARVAM_API_KEY", ""),
        ),
        assemblyai=AssemblyAIConfig(
            api_key=os.getenv("ASSEMBLYAI_API_KEY", ""),
        ),
        transcription=TranscriptionConfig(
            primary_engine=os.getenv("TRANSCRIPTION_PRIMARY_ENGINE", "sarvam"),
            fallback_engine=fallback_engine or None,
            batch_size=int(os.getenv("TRANSCRIPTION_BATCH_SIZE", "3")),
        ),
        analysis=AnalysisConfig(),
        live=LiveConfig(
            engine=os.getenv("LIVE_ENGINE", "sarvam"),
        ),
        capture=CaptureConfig(
            max_duration_seconds=int(os.getenv("CAPTURE_MAX_SECONDS", "7200")),
        ),
        postgres=PostgresConfig(
            host=os.getenv("POSTGRES_HOST", "postgres"),
            user=os.getenv("POSTGRES_USER", ""),
            password=os.getenv("POSTGRES_PASSWORD", ""),
            port=int(os.getenv("POSTGRES_PORT", "5432")),
            database=os.getenv("POSTGRES_DB", "aligned"),
        ),
        redis=RedisConfig(
            host=os.getenv("REDIS_HOST", "redis"),
            cache_ttl_seconds=int(os.getenv("REDIS_CACHE_TTL_SECONDS", "86400")),
        ),
        minio=MinioConfig(
            endpoint=os.getenv("MINIO_ENDPOINT", "minio:9000"),
            user=os.getenv("MINIO_USER", ""),
            password=os.getenv("MINIO_PASSWORD", ""),
        ),
        rabbitmq=RabbitMQConfig(
            host=os.getenv("RABBITMQ_HOST", "rabbitmq"),
            user=os.getenv("RABBITMQ_USER", ""),
            password=os.getenv("RABBITMQ_PASSWORD", ""),
        ),
    )
