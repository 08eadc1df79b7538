"""Handler for processing uploaded capture messages."""

import asyncio

from aligned_pipeline.domain.models import AudioCapture, RecordingMessage, RecordingSession
from aligned_pipeline.handlers.session_controller import SessionController
from aligned_pipeline.infrastructure.interfaces import StorageClient
from aligned_pipeline.logging import setup_logging

logger = setup_logging()


class RecordingMessageHandler:
    """Runs the batch pipeline for captures uploaded to object storage."""

    def __init__(self, storage: StorageClient, controller: SessionController):
        self._storage = storage
        self._controller = controller

    async def process(self, message: RecordingMessage) -> RecordingSession:
        """
        Downloads the capture and runs it through SessionController.

        Args:
            message: The uploaded-capture event.

        Returns:
            The session in its terminal state.

        Raises:
            StorageDownloadError: If the capture download fails.
            SessionPersistenceError: If a checkpoint cannot be written.
        """
        logger.info(
            "Processing capture",
            extra={"object_name": message.object_name, "bucket_name": message.bucket_name},
        )

        data = await asyncio.to_thread(
            self._storage.download, message.bucket_name, message.object_name
        )

        capture = AudioCapture(
            data=data,
            mime_type=message.mime_type,
            duration_seconds=message.duration_seconds,
            source=message.source,
        )
        return await self._controller.process_capture(
            capture,
            message.owner_id,
            title=message.title,
            session_id=message.session_id,
        )
