"""Reconcile thread snapshots arriving from other sessions.

Merging is by ``seq``: messages missing locally are taken from the remote
side, read sets are unioned, and a tombstone on either side wins. The
admission record and reactions come from whichever side has the higher
revision. Merging is commutative for the parts that converge (messages,
receipts, tombstones), so the order snapshots arrive in does not matter.
"""

import logging

from carethread.schemas.message import Message
from carethread.schemas.thread import ThreadSnapshot
from carethread.services.read_receipts import merge_read_by

logger = logging.getLogger(__name__)


def _merge_tombstone(target: Message, source: Message) -> bool:
    if not source.deleted or target.deleted:
        return False
    target.content = ""
    target.attachment_ref = None
    target.deleted = True
    target.deleted_at = source.deleted_at
    target.deleted_by = source.deleted_by
    return True


def merge_snapshots(local: ThreadSnapshot, remote: ThreadSnapshot) -> ThreadSnapshot:
    """Combine two views of the same thread into a new snapshot."""
    if remote.id != local.id:
        raise ValueError(f"Cannot merge thread {remote.id} into {local.id}")

    base, other = (remote, local) if remote.revision > local.revision else (local, remote)
    merged = base.model_copy(deep=True)
    by_seq = {m.seq: m for m in merged.messages}

    for message in other.messages:
        mine = by_seq.get(message.seq)
        if mine is None:
            copy = message.model_copy(deep=True)
            merged.messages.append(copy)
            by_seq[copy.seq] = copy
            continue
        if mine.deleted or message.deleted:
            # Frozen read set: keep the union as of the tombstone on either side.
            _merge_tombstone(mine, message)
        merge_read_by(mine, message.read_by)

    merged.messages.sort(key=lambda m: m.seq)
    merged.revision = max(local.revision, remote.revision)
    return merged


class ThreadSync:
    """Applies remote snapshots to an engine's local state."""

    def __init__(self, engine):
        self.engine = engine

    def apply(self, remote: ThreadSnapshot) -> bool:
        """Merge ``remote`` into local state and notify subscribers on change.

        Returns:
            True if local state changed.
        """
        local = self.engine.local_snapshot(remote.id)
        if local is None:
            merged = remote.model_copy(deep=True)
        else:
            merged = merge_snapshots(local, remote)
            if merged == local:
                return False

        self.engine.publish(merged)
        logger.debug("Applied remote snapshot for thread %s at revision %d", merged.id, merged.revision)
        return True
