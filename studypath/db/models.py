"""
Learning Session Storage Model.

Sessions are stored as whole JSON documents: the engine only ever reads and
writes full snapshots, so the table carries the document plus a few columns
used for listing.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    pass


class LearningSessionRecord(Base):
    """One stored learning session snapshot."""

    __tablename__ = "learning_sessions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    topic: Mapped[str] = mapped_column(Text, nullable=False)

    # camelCase JSON form of studypath.path.models.Session
    document: Mapped[str] = mapped_column(Text, nullable=False)

    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_accessed: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    def __repr__(self) -> str:
        return f"<LearningSessionRecord {self.id} rev={self.revision}>"
