"""Unread counter.

Pure derivation over a thread's messages; nothing is stored.
"""

from collections.abc import Iterable

from carethread.schemas.thread import ThreadSnapshot


def unread_count(thread: ThreadSnapshot, user_id: str) -> int:
    """Count non-system messages the user has not read.

    Tombstones are included: a message deleted before the user read it
    stays unread, since read receipts on deleted messages are frozen.
    """
    return sum(1 for m in thread.messages if not m.is_system and user_id not in m.read_by)


def total_unread(threads: Iterable[ThreadSnapshot], user_id: str) -> int:
    """Sum unread counts over the active threads the user belongs to."""
    return sum(
        unread_count(t, user_id)
        for t in threads
        if t.admission.is_active and user_id in t.admission.members
    )
