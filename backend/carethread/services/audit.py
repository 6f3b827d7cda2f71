"""Audit hook.

The engine hands one AuditEvent to its hook after each committed
mutation. Where the trail is persisted is up to the hook; the in-memory
trail here backs tests and the single-process deployment, and supports
the date-range filtering used by the compliance audit screen.
"""

import logging
from datetime import date
from typing import Protocol

from carethread.schemas.audit import AuditAction, AuditEvent

logger = logging.getLogger(__name__)


class AuditHook(Protocol):
    def record(self, event: AuditEvent) -> None: ...


class InMemoryAuditTrail:
    """Append-only list of audit events."""

    def __init__(self) -> None:
        self._events: list[AuditEvent] = []

    def record(self, event: AuditEvent) -> None:
        self._events.append(event)

    @property
    def events(self) -> list[AuditEvent]:
        return list(self._events)

    def query(
        self,
        *,
        start: date | None = None,
        end: date | None = None,
        action: AuditAction | None = None,
        user_id: str | None = None,
        target_id: str | None = None,
    ) -> list[AuditEvent]:
        """Filter events; ``start`` and ``end`` are inclusive calendar dates."""
        results = []
        for event in self._events:
            day = event.timestamp.date()
            if start is not None and day < start:
                continue
            if end is not None and day > end:
                continue
            if action is not None and event.action != action:
                continue
            if user_id is not None and event.user_id != user_id:
                continue
            if target_id is not None and event.target_id != target_id:
                continue
            results.append(event)
        return results

    def __len__(self) -> int:
        return len(self._events)
