"""Repository layer exports."""

from aligned_pipeline.repositories.session_repository import SqlSessionStore

__all__ = ["SqlSessionStore"]
