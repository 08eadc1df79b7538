"""RabbitMQ transport for capture-uploaded events and session outcomes."""

import json
from collections.abc import Callable
from typing import Any

import pika
from pika.channel import Channel
from pika.exceptions import AMQPError

from aligned_pipeline.config import RabbitMQConfig
from aligned_pipeline.exceptions import EventPublishError
from aligned_pipeline.logging import setup_logging

from .interfaces import MessageBroker

logger = setup_logging()

_JSON_PERSISTENT = pika.BasicProperties(
    content_type="application/json",
    delivery_mode=pika.DeliveryMode.Persistent,
)


class RabbitMQBroker(MessageBroker):
    """
    Consumes `recording.capture.uploaded` events and publishes the outcome of
    each processed session.

    Topology (declared by `setup`):
        events (topic) --capture.uploaded--> work queue (quorum, delivery limit)
        events (topic) --completed/failed--> outcome queue
        work queue --dead-letter--> dead_letter_exchange --> DLQ
    """

    def __init__(self, channel: Channel, config: RabbitMQConfig):
        self._channel = channel
        self._config = config

    def publish(self, routing_key: str, payload: dict) -> None:
        """
        Publishes a persistent JSON event on the topic exchange.

        Raises:
            EventPublishError: If the channel refuses the publish.
        """
        try:
            self._channel.basic_publish(
                exchange=self._config.exchange_name,
                routing_key=routing_key,
                body=json.dumps(payload).encode("utf-8"),
                properties=_JSON_PERSISTENT,
            )
        except AMQPError as e:
            raise EventPublishError(routing_key, cause=e) from e
        logger.info(
            "Session outcome published",
            extra={"routing_key": routing_key, "session_id": payload.get("session_id")},
        )

    def acknowledge(self, delivery_tag: int) -> None:
        self._channel.basic_ack(delivery_tag=delivery_tag)

    def reject(self, delivery_tag: int, requeue: bool = True) -> None:
        """
        Negatively acknowledges a delivery.

        With `requeue` the message is redelivered until the quorum queue's
        delivery limit dead-letters it; without it, it is dead-lettered now.
        """
        self._channel.basic_nack(delivery_tag=delivery_tag, requeue=requeue)
        if not requeue:
            logger.warning("Message dead-lettered", extra={"delivery_tag": delivery_tag})

    def consume(
        self, callback: Callable[[bytes, int, dict[str, Any] | None], None]
    ) -> None:
        """
        Blocks, handing each capture event to `callback` one at a time.

        Args:
            callback: Called with (body, delivery_tag, headers).
        """
        queue_name = self._config.queue_config.name

        def on_message(_channel, method, properties, body):
            callback(body, method.delivery_tag, properties.headers if properties else None)

        # Processing a capture takes minutes; never hold more than one.
        self._channel.basic_qos(prefetch_count=1)
        self._channel.basic_consume(queue=queue_name, on_message_callback=on_message)
        logger.info("Waiting for capture events", extra={"queue": queue_name})
        self._channel.start_consuming()

    def setup(self) -> None:
        """Declares the exchanges, the work and outcome queues, and the DLQ."""
        queues = self._config.queue_config
        exchange = self._config.exchange_name

        self._channel.exchange_declare(
            exchange=queues.dlq_exchange_name, exchange_type="direct", durable=True
        )
        self._declare_bound_queue(queues.dlq_name, queues.dlq_exchange_name, [queues.dlq_routing_key])

        self._channel.exchange_declare(exchange=exchange, exchange_type="topic", durable=True)
        self._declare_bound_queue(
            queues.name,
            exchange,
            [queues.expected_routing_key],
            arguments={
                "x-queue-type": queues.queue_type,
                "x-delivery-limit": queues.max_delivery_count,
                "x-dead-letter-exchange": queues.dlq_exchange_name,
                "x-dead-letter-routing-key": queues.dlq_routing_key,
            },
        )
        # Outcomes survive until a consumer (API, notifier) binds its own queue.
        self._declare_bound_queue(
            queues.outcome_queue_name,
            exchange,
            [queues.success_routing_key, queues.failure_routing_key],
        )

        logger.info(
            "Broker topology declared",
            extra={"queue": queues.name, "outcome_queue": queues.outcome_queue_name},
        )

    def _declare_bound_queue(
        self,
        queue: str,
        exchange: str,
        routing_keys: list[str],
        arguments: dict[str, Any] | None = None,
    ) -> None:
        self._channel.queue_declare(queue=queue, durable=True, arguments=arguments)
        for routing_key in routing_keys:
            self._channel.queue_bind(queue=queue, exchange=exchange, routing_key=routing_key)
