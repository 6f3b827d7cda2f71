"""Document store boundary.

The thread engine persists whole ThreadSnapshot documents through a
ThreadStore. A commit either fully succeeds or raises; the engine only
publishes a change after its commit returns.
"""

from __future__ import annotations

from typing import Protocol

from carethread.errors import StorageUnavailable
from carethread.schemas.thread import ThreadSnapshot


class ThreadStore(Protocol):
    """Persistence contract for thread documents."""

    async def load_all(self) -> list[ThreadSnapshot]: ...

    async def get(self, thread_id: str) -> ThreadSnapshot | None: ...

    async def commit(self, snapshot: ThreadSnapshot) -> None:
        """Persist ``snapshot``.

        Raises:
            StorageUnavailable: The stored revision is not ``snapshot.revision - 1``.
        """
        ...


def check_revision(thread_id: str, stored_revision: int, incoming_revision: int) -> None:
    """Reject commits that do not build on the stored revision."""
    if incoming_revision != stored_revision + 1:
        raise StorageUnavailable(
            f"Revision conflict: stored {stored_revision}, got {incoming_revision}",
            thread_id=thread_id,
        )


class InMemoryThreadStore:
    """Process-local store keeping serialized copies of each document.

    Documents are stored as JSON-mode dicts so callers never share
    mutable state with the store.
    """

    def __init__(self) -> None:
        self._documents: dict[str, dict] = {}

    async def load_all(self) -> list[ThreadSnapshot]:
        return [ThreadSnapshot.model_validate(doc) for doc in self._documents.values()]

    async def get(self, thread_id: str) -> ThreadSnapshot | None:
        doc = self._documents.get(thread_id)
        return ThreadSnapshot.model_validate(doc) if doc is not None else None

    async def commit(self, snapshot: ThreadSnapshot) -> None:
        stored = self._documents.get(snapshot.id)
        check_revision(snapshot.id, stored["revision"] if stored else 0, snapshot.revision)
        self._documents[snapshot.id] = snapshot.model_dump(mode="json")
