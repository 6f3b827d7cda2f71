"""SQL-backed thread document store.

Each thread is one row in ``thread_documents``. Commits run in their own
transaction and check the stored revision under a row read, so two
writers building on the same revision cannot both succeed.
"""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from carethread.database import session_scope
from carethread.errors import StorageUnavailable
from carethread.models.thread_document import ThreadDocument
from carethread.repositories.base import check_revision
from carethread.schemas.thread import ThreadSnapshot

logger = logging.getLogger(__name__)


class SqlThreadStore:
    """ThreadStore implementation over an async SQLAlchemy session maker."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        """Initialize store with a session factory.

        Args:
            session_maker: Factory producing AsyncSession instances.
        """
        self._session_maker = session_maker

    async def load_all(self) -> list[ThreadSnapshot]:
        """Load every stored thread document."""
        async with session_scope(self._session_maker) as session:
            result = await session.execute(select(ThreadDocument).order_by(ThreadDocument.id))
            return [ThreadSnapshot.model_validate(row.data) for row in result.scalars()]

    async def get(self, thread_id: str) -> ThreadSnapshot | None:
        """Get one thread document by id.

        Returns:
            ThreadSnapshot if stored, None otherwise.
        """
        async with session_scope(self._session_maker) as session:
            row = await session.get(ThreadDocument, thread_id)
            return ThreadSnapshot.model_validate(row.data) if row is not None else None

    async def commit(self, snapshot: ThreadSnapshot) -> None:
        """Insert or replace the document for ``snapshot``.

        Raises:
            StorageUnavailable: Revision conflict or database failure.
        """
        try:
            async with session_scope(self._session_maker) as session:
                result = await session.execute(
                    select(ThreadDocument)
                    .where(ThreadDocument.id == snapshot.id)
                    .with_for_update()
                )
                row = result.scalar_one_or_none()
                check_revision(snapshot.id, row.revision if row else 0, snapshot.revision)

                data = snapshot.model_dump(mode="json")
                if row is None:
                    session.add(
                        ThreadDocument(
                            id=snapshot.id,
                            revision=snapshot.revision,
                            status=snapshot.admission.status.value,
                            data=data,
                        )
                    )
                else:
                    row.revision = snapshot.revision
                    row.status = snapshot.admission.status.value
                    row.data = data
        except SQLAlchemyError as e:
            logger.warning("Thread document commit failed for %s: %s", snapshot.id, e)
            raise StorageUnavailable("Document store unavailable", thread_id=snapshot.id) from e
