from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel


class RecordingRow(SQLModel, table=True):
    __tablename__ = "recordings"

    id: str = Field(primary_key=True, max_length=36)
    owner_id: str = Field(index=True, max_length=255)
    title: str
    date: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    duration: float = 0.0
    source: str = Field(max_length=32)
    status: str = Field(max_length=32)
    processing_step: Optional[str] = Field(default=None, max_length=32)
    analysis: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON))
    error_message: Optional[str] = None


class ActionItemState(SQLModel, table=True):
    __tablename__ = "action_item_states"

    owner_id: str = Field(primary_key=True, max_length=255)
    session_id: str = Field(primary_key=True, max_length=36)
    item_index: int = Field(primary_key=True)
    done: bool = False
