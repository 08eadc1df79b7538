"""Worker that handles queue message consumption and orchestration."""

import asyncio
import json
from typing import Any

from pydantic import ValidationError

from aligned_pipeline.config import RabbitMQConfig
from aligned_pipeline.domain.models import RecordingMessage, SessionStatus
from aligned_pipeline.exceptions import EventPublishError
from aligned_pipeline.handlers import RecordingMessageHandler
from aligned_pipeline.infrastructure.interfaces import MessageBroker
from aligned_pipeline.logging import setup_logging

logger = setup_logging()


class Worker:
    """
    Consumes uploaded-capture messages and runs the batch pipeline.

    pika delivers messages on a blocking consumer, so each message is run
    to completion on a long-lived event loop before the next is taken.
    """

    def __init__(
        self,
        broker: MessageBroker,
        handler: RecordingMessageHandler,
        config: RabbitMQConfig,
    ):
        self._broker = broker
        self._handler = handler
        self._config = config
        self._runner = asyncio.Runner()

    def start(self) -> None:
        """Starts consuming messages from the queue."""
        logger.info("Worker initialized, starting message consumption")
        try:
            self._broker.consume(self._on_message)
        finally:
            self._runner.close()

    def _on_message(
        self, body: bytes, delivery_tag: int, headers: dict[str, Any] | None
    ) -> None:
        """Callback for each received message."""
        delivery_count = headers.get("x-delivery-count", 1) if headers else 1

        logger.info(
            "Message received",
            extra={
                "attempt": delivery_count,
                "max_attempts": self._config.queue_config.max_delivery_count,
            },
        )

        try:
            message = RecordingMessage.model_validate(json.loads(body))
        except (ValidationError, ValueError) as e:
            logger.exception("Invalid message format", extra={"error": str(e)})
            # Redelivery cannot fix a malformed body
            self._broker.reject(delivery_tag, requeue=False)
            return

        try:
            session = self._runner.run(self._handler.process(message))
        except Exception:
            logger.exception(
                "Message processing failed",
                extra={"object_name": message.object_name},
            )
            self._broker.reject(delivery_tag)
            return

        self._broker.acknowledge(delivery_tag)

        queue_config = self._config.queue_config
        routing_key = (
            queue_config.success_routing_key
            if session.status == SessionStatus.COMPLETED
            else queue_config.failure_routing_key
        )
        try:
            self._broker.publish(
                routing_key=routing_key,
                payload={
                    "session_id": session.id,
                    "owner_id": session.owner_id,
                    "status": session.status.value,
                    "error_message": session.error_message,
                },
            )
        except EventPublishError:
            # The session is persisted and the delivery acked; readers still see it.
            logger.exception(
                "Outcome event lost",
                extra={"session_id": session.id, "routing_key": routing_key},
            )

        logger.info(
            "Message processed",
            extra={
                "object_name": message.object_name,
                "session_id": session.id,
                "status": session.status.value,
            },
        )
