"""SQLAlchemy model for stored thread documents."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from carethread.database import Base


class ThreadDocument(Base):
    """One thread (admission plus message log) stored as a JSON document.

    ``status`` and ``revision`` are lifted out of the document for indexed
    listing and optimistic concurrency; ``data`` stays the source of truth.
    """

    __tablename__ = "thread_documents"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    revision: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
    )

    __table_args__ = (Index("idx_thread_status_updated", "status", "updated_at"),)

    def __repr__(self) -> str:
        return f"<ThreadDocument(id={self.id}, revision={self.revision}, status={self.status})>"
