"""Read-receipt tracker and acknowledgement reactions.

``read_by`` only ever grows by set union, so receipts from concurrent
sessions converge to the same result in any arrival order. Repeating a
receipt is a silent no-op.
"""

import logging

from carethread.errors import InvalidMessage
from carethread.schemas.message import Message, Reaction
from carethread.schemas.thread import ThreadSnapshot
from carethread.schemas.user import CareTeamMember
from carethread.services.membership import can_access, ensure_can_write
from carethread.services.message_log import get_message

logger = logging.getLogger(__name__)


def mark_read(thread: ThreadSnapshot, message_id: str, user: CareTeamMember) -> bool:
    """Record that ``user`` has seen a message.

    No-op for non-members, for users already in the read set, for system
    messages, and for tombstones (whose read set is frozen).

    Returns:
        True only when the read set grew.

    Raises:
        MessageNotFound: No such message in this thread (members only;
            non-members get the silent no-op).
    """
    if not can_access(user, thread.admission):
        return False
    message = get_message(thread, message_id)
    if message.is_system or message.deleted:
        return False
    if user.id in message.read_by:
        return False
    message.read_by.add(user.id)
    logger.debug("Message seq=%d in thread %s read by %s", message.seq, thread.id, user.id)
    return True


def merge_read_by(message: Message, read_by: set[str]) -> bool:
    """Union a remote read set into a local message; True if it grew."""
    missing = read_by - message.read_by
    if not missing or message.is_system:
        return False
    message.read_by |= missing
    return True


def is_read_by_others(message: Message) -> bool:
    """Delivery indicator: someone besides the sender has read the message.

    Any read set larger than the sender alone counts, not "read by every
    member".
    """
    return len(message.read_by) > 1


def toggle_reaction(
    thread: ThreadSnapshot,
    message_id: str,
    user: CareTeamMember,
    reaction: Reaction,
) -> bool:
    """Add or remove the user's acknowledgement on a message.

    Choosing one reaction clears the other. Returns True if the user now
    holds ``reaction``, False if it was removed.

    Raises:
        PermissionDenied, ThreadClosed: User cannot write to the thread.
        MessageNotFound: No such message.
        InvalidMessage: Target is a system message or a tombstone.
    """
    ensure_can_write(user, thread.admission)
    message = get_message(thread, message_id)
    if message.is_system or message.deleted:
        raise InvalidMessage("Cannot react to this message", message_id=message_id)

    holders = message.reactions.holders(reaction)
    if user.id in holders:
        holders.discard(user.id)
        return False

    other = Reaction.CROSS if reaction == Reaction.CHECK else Reaction.CHECK
    message.reactions.holders(other).discard(user.id)
    holders.add(user.id)
    return True
