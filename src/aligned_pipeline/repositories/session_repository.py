"""Repository for recording session persistence."""

from datetime import timezone

from sqlmodel import Session, select

from aligned_pipeline.db_models import ActionItemState, RecordingRow
from aligned_pipeline.domain.models import ActionItem, MeetingAnalysis, RecordingSession
from aligned_pipeline.exceptions import SessionNotFoundError, SessionPersistenceError
from aligned_pipeline.infrastructure.interfaces import SessionStore
from aligned_pipeline.logging import setup_logging

logger = setup_logging()

# Columns written by the pipeline on every checkpoint; title belongs to the user.
PIPELINE_COLUMNS = ("duration", "source", "status", "processing_step", "analysis", "error_message")


class SqlSessionStore(SessionStore):
    """
    Handles database operations for recording sessions.

    Encapsulates SQL queries and transaction management, keeping the
    handler layer free of database concerns. Every method opens its own
    short-lived database session, so the store is safe to call from worker
    threads.
    """

    def __init__(self, session_factory):
        """
        Initializes the repository.

        Args:
            session_factory: Callable that returns a SQLModel Session context manager.
        """
        self._session_factory = session_factory

    def save(self, session: RecordingSession) -> None:
        """
        Upserts the session row keyed by id.

        A new row is written in full. An existing row only receives the
        pipeline-owned columns, so user edits such as a rename made while the
        pipeline runs are kept.

        Raises:
            SessionPersistenceError: If persistence fails.
        """
        try:
            with self._session_factory() as db_session:
                row = db_session.get(RecordingRow, session.id)
                if row is None:
                    db_session.add(self._to_row(session))
                else:
                    self._apply_pipeline_fields(row, session)
                    db_session.add(row)
                db_session.commit()
        except Exception as e:
            logger.exception("Failed to persist session", extra={"session_id": session.id})
            raise SessionPersistenceError(session.id, cause=e) from e

        logger.info(
            "Session persisted",
            extra={
                "session_id": session.id,
                "status": session.status.value,
                "processing_step": session.processing_step.value if session.processing_step else None,
            },
        )

    def get(self, session_id: str, owner_id: str) -> RecordingSession:
        """
        Raises:
            SessionNotFoundError: If the owner has no such session.
        """
        with self._session_factory() as db_session:
            row = self._find(db_session, session_id, owner_id)
            if row is None:
                raise SessionNotFoundError(session_id)
            return self._to_domain(row)

    def fetch_all(self, owner_id: str) -> list[RecordingSession]:
        with self._session_factory() as db_session:
            statement = (
                select(RecordingRow)
                .where(RecordingRow.owner_id == owner_id)
                .order_by(RecordingRow.date.desc())
            )
            return [self._to_domain(row) for row in db_session.exec(statement).all()]

    def delete(self, session_id: str, owner_id: str) -> None:
        """
        Raises:
            SessionNotFoundError: If the owner has no such session.
            SessionPersistenceError: If the delete fails.
        """
        try:
            with self._session_factory() as db_session:
                row = self._find(db_session, session_id, owner_id)
                if row is None:
                    raise SessionNotFoundError(session_id)
                states = db_session.exec(
                    select(ActionItemState).where(
                        ActionItemState.owner_id == owner_id,
                        ActionItemState.session_id == session_id,
                    )
                ).all()
                for state in states:
                    db_session.delete(state)
                db_session.delete(row)
                db_session.commit()
        except SessionNotFoundError:
            raise
        except Exception as e:
            logger.exception("Failed to delete session", extra={"session_id": session_id})
            raise SessionPersistenceError(session_id, cause=e) from e

        logger.info("Session deleted", extra={"session_id": session_id})

    def rename(self, session_id: str, owner_id: str, title: str) -> None:
        """
        Raises:
            SessionNotFoundError: If the owner has no such session.
            SessionPersistenceError: If the update fails.
        """
        try:
            with self._session_factory() as db_session:
                row = self._find(db_session, session_id, owner_id)
                if row is None:
                    raise SessionNotFoundError(session_id)
                row.title = title
                db_session.add(row)
                db_session.commit()
        except SessionNotFoundError:
            raise
        except Exception as e:
            logger.exception("Failed to rename session", extra={"session_id": session_id})
            raise SessionPersistenceError(session_id, cause=e) from e

    def set_action_item_done(
        self, owner_id: str, session_id: str, index: int, done: bool
    ) -> None:
        """
        Raises:
            SessionPersistenceError: If the write fails.
        """
        try:
            with self._session_factory() as db_session:
                db_session.merge(
                    ActionItemState(
                        owner_id=owner_id,
                        session_id=session_id,
                        item_index=index,
                        done=done,
                    )
                )
                db_session.commit()
        except Exception as e:
            logger.exception(
                "Failed to update action item",
                extra={"session_id": session_id, "index": index},
            )
            raise SessionPersistenceError(session_id, cause=e) from e

    def fetch_done_action_items(self, owner_id: str) -> set[tuple[str, int]]:
        with self._session_factory() as db_session:
            statement = select(ActionItemState).where(
                ActionItemState.owner_id == owner_id,
                ActionItemState.done == True,  # noqa: E712
            )
            return {
                (state.session_id, state.item_index)
                for state in db_session.exec(statement).all()
            }

    def list_action_items(self, owner_id: str) -> list[ActionItem]:
        done = self.fetch_done_action_items(owner_id)
        return [
            ActionItem(
                session_id=session.id,
                index=index,
                text=text,
                done=(session.id, index) in done,
            )
            for session in self.fetch_all(owner_id)
            if session.analysis is not None
            for index, text in enumerate(session.analysis.action_points)
        ]

    def _find(self, db_session: Session, session_id: str, owner_id: str) -> RecordingRow | None:
        statement = select(RecordingRow).where(
            RecordingRow.id == session_id,
            RecordingRow.owner_id == owner_id,
        )
        return db_session.exec(statement).first()

    def _to_row(self, session: RecordingSession) -> RecordingRow:
        return RecordingRow(
            id=session.id,
            owner_id=session.owner_id,
            title=session.title,
            date=session.date,
            duration=session.duration,
            source=session.source.value,
            status=session.status.value,
            processing_step=session.processing_step.value if session.processing_step else None,
            analysis=session.analysis.model_dump(by_alias=True) if session.analysis else None,
            error_message=session.error_message,
        )

    def _apply_pipeline_fields(self, row: RecordingRow, session: RecordingSession) -> None:
        fresh = self._to_row(session)
        for column in PIPELINE_COLUMNS:
            setattr(row, column, getattr(fresh, column))

    def _to_domain(self, row: RecordingRow) -> RecordingSession:
        # SQLite drops the offset on timezone-aware columns
        date = row.date if row.date.tzinfo else row.date.replace(tzinfo=timezone.utc)
        return RecordingSession(
            id=row.id,
            owner_id=row.owner_id,
            title=row.title,
            date=date,
            duration=row.duration,
            source=row.source,
            status=row.status,
            processing_step=row.processing_step,
            analysis=MeetingAnalysis.model_validate(row.analysis) if row.analysis else None,
            error_message=row.error_message,
        )
