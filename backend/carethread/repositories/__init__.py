"""Thread document stores."""

from carethread.repositories.base import InMemoryThreadStore, ThreadStore
from carethread.repositories.document import SqlThreadStore

__all__ = ["InMemoryThreadStore", "SqlThreadStore", "ThreadStore"]
