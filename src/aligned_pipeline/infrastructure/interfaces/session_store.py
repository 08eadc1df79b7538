"""Abstract interface for recording session persistence."""

from abc import ABC, abstractmethod

from aligned_pipeline.domain.models import ActionItem, RecordingSession


class SessionStore(ABC):
    """Durable store for recording sessions and action-item completion."""

    @abstractmethod
    def save(self, session: RecordingSession) -> None:
        """
        Idempotent upsert keyed by session id.

        Raises:
            SessionPersistenceError: If the write is not accepted.
        """

    @abstractmethod
    def get(self, session_id: str, owner_id: str) -> RecordingSession:
        """
        Raises:
            SessionNotFoundError: If the owner has no such session.
        """

    @abstractmethod
    def fetch_all(self, owner_id: str) -> list[RecordingSession]:
        """Returns the owner's sessions, newest first."""

    @abstractmethod
    def delete(self, session_id: str, owner_id: str) -> None:
        """Deletes a session together with its action-item states."""

    @abstractmethod
    def rename(self, session_id: str, owner_id: str, title: str) -> None:
        """Updates the title column only."""

    @abstractmethod
    def set_action_item_done(
        self, owner_id: str, session_id: str, index: int, done: bool
    ) -> None:
        """Marks one action point of a session as done or pending."""

    @abstractmethod
    def fetch_done_action_items(self, owner_id: str) -> set[tuple[str, int]]:
        """Returns the (session_id, index) pairs marked done for the owner."""

    @abstractmethod
    def list_action_items(self, owner_id: str) -> list[ActionItem]:
        """Returns every action point of the owner's sessions with its state."""
