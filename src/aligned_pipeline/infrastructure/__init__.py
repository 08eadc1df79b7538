"""Infrastructure layer exports.

SoundDeviceCapture is imported from its module directly; PortAudio is only
needed on machines that record.
"""

from .assemblyai_transcriber import AssemblyAITranscriber
from .gemini_live import GeminiLiveService
from .gemini_llm import GeminiLLMService
from .gemini_transcriber import GeminiTranscriber
from .minio_storage import MinioStorageClient
from .rabbitmq_broker import RabbitMQBroker
from .redis_cache import RedisCacheService
from .sarvam_streaming import SarvamStreamingService
from .sarvam_transcriber import SarvamTranscriber

__all__ = [
    "AssemblyAITranscriber",
    "GeminiLiveService",
    "GeminiLLMService",
    "GeminiTranscriber",
    "MinioStorageClient",
    "RabbitMQBroker",
    "RedisCacheService",
    "SarvamStreamingService",
    "SarvamTranscriber",
]
