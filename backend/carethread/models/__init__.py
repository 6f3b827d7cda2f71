"""SQLAlchemy models."""

from carethread.models.thread_document import ThreadDocument

__all__ = [
    "ThreadDocument",
]
