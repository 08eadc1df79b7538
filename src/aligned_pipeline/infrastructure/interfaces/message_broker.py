"""Abstract interface for message broker operations."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any


class MessageBroker(ABC):
    """Abstract base class for publish + consume broker operations."""

    @abstractmethod
    def publish(self, routing_key: str, payload: dict) -> None:
        """
        Publishes a message to the broker.

        Raises:
            EventPublishError: If publishing fails.
        """

    @abstractmethod
    def acknowledge(self, delivery_tag: int) -> None:
        """Acknowledges successful processing of a message."""

    @abstractmethod
    def reject(self, delivery_tag: int, requeue: bool = True) -> None:
        """Rejects a message; redelivered when `requeue`, dead-lettered otherwise."""

    @abstractmethod
    def consume(
        self, callback: Callable[[bytes, int, dict[str, Any] | None], None]
    ) -> None:
        """Starts consuming messages from the configured queue."""

    @abstractmethod
    def setup(self) -> None:
        """Sets up exchanges, queues, and bindings."""
