"""Message log: the append-only, per-thread ordered sequence of messages.

Each append assigns ``seq`` = last seq + 1, which is the authoritative sort
key. Timestamps come from the caller's clock and are clamped so they never
run backwards within a thread, but ordering never depends on them.
"""

import bisect
import logging
import uuid
from collections.abc import Iterator
from datetime import datetime

from carethread.errors import (
    InvalidAttachment,
    InvalidMessage,
    MessageNotFound,
    PermissionDenied,
)
from carethread.schemas.message import MEDIA_KINDS, Message, MessageDraft, MessageKind
from carethread.schemas.thread import ThreadSnapshot
from carethread.schemas.user import CareTeamMember
from carethread.services.membership import ensure_can_write

logger = logging.getLogger(__name__)


def validate_draft(thread: ThreadSnapshot, draft: MessageDraft, *, max_length: int) -> None:
    """Check a user draft against the message rules.

    Raises:
        PermissionDenied: Draft claims to be a system message.
        InvalidAttachment: Media kind without a reference, or text with one.
        InvalidMessage: Empty or oversized text, or a reply to an unknown message.
    """
    if draft.kind == MessageKind.SYSTEM:
        raise PermissionDenied("System messages cannot be sent by users", thread_id=thread.id)

    has_attachment = bool(draft.attachment_ref and draft.attachment_ref.strip())
    if draft.kind in MEDIA_KINDS and not has_attachment:
        raise InvalidAttachment(
            f"{draft.kind.value} messages require an attachment reference",
            thread_id=thread.id,
        )
    if draft.kind == MessageKind.TEXT:
        if has_attachment:
            raise InvalidAttachment("Text messages cannot carry an attachment", thread_id=thread.id)
        if not draft.content.strip():
            raise InvalidMessage("Message content is empty", thread_id=thread.id)

    if len(draft.content) > max_length:
        raise InvalidMessage(
            f"Message content exceeds {max_length} characters",
            thread_id=thread.id,
        )

    if draft.reply_to_id is not None and thread.find_message(draft.reply_to_id) is None:
        raise InvalidMessage(
            "Reply target is not part of this thread",
            thread_id=thread.id,
            message_id=draft.reply_to_id,
        )


def _next_timestamp(thread: ThreadSnapshot, now: datetime) -> datetime:
    if thread.messages and thread.messages[-1].timestamp > now:
        return thread.messages[-1].timestamp
    return now


def _append_entry(thread: ThreadSnapshot, message: Message) -> Message:
    thread.messages.append(message)
    logger.debug("Appended message seq=%d kind=%s to thread %s", message.seq, message.kind.value, thread.id)
    return message


def append(
    thread: ThreadSnapshot,
    author: CareTeamMember,
    draft: MessageDraft,
    *,
    now: datetime,
    max_length: int,
) -> Message:
    """Append a user-authored message.

    The author has implicitly read their own message.

    Raises:
        PermissionDenied: Author is not a member.
        ThreadClosed: Admission is discharged.
        InvalidAttachment, InvalidMessage: Draft fails validation.
    """
    ensure_can_write(author, thread.admission)
    validate_draft(thread, draft, max_length=max_length)

    message = Message(
        id=str(uuid.uuid4()),
        thread_id=thread.id,
        seq=thread.last_seq + 1,
        sender_id=author.id,
        timestamp=_next_timestamp(thread, now),
        kind=draft.kind,
        content=draft.content,
        attachment_ref=draft.attachment_ref.strip() if draft.attachment_ref else None,
        reply_to_id=draft.reply_to_id,
        read_by={author.id},
    )
    return _append_entry(thread, message)


def append_system(thread: ThreadSnapshot, actor_id: str, content: str, *, now: datetime) -> Message:
    """Append a system message recording a lifecycle or membership event.

    Bypasses the write gate: callers are the lifecycle controller and the
    membership operations, which do their own authorization.
    """
    message = Message(
        id=str(uuid.uuid4()),
        thread_id=thread.id,
        seq=thread.last_seq + 1,
        sender_id=actor_id,
        timestamp=_next_timestamp(thread, now),
        kind=MessageKind.SYSTEM,
        content=content,
        read_by={actor_id},
    )
    return _append_entry(thread, message)


def list_from(thread: ThreadSnapshot, after_seq: int | None = None) -> Iterator[Message]:
    """Yield messages in seq order, starting after ``after_seq``.

    Restartable: pass the last seq seen to resume.
    """
    start = 0
    if after_seq is not None:
        start = bisect.bisect_right(thread.messages, after_seq, key=lambda m: m.seq)
    for message in thread.messages[start:]:
        yield message


def get_message(thread: ThreadSnapshot, message_id: str) -> Message:
    message = thread.find_message(message_id)
    if message is None:
        raise MessageNotFound("Message not found", thread_id=thread.id, message_id=message_id)
    return message


def delete_message(
    thread: ThreadSnapshot,
    message_id: str,
    requestor: CareTeamMember,
    *,
    now: datetime,
) -> bool:
    """Tombstone a message in place.

    The slot, seq, kind, and read set stay; content and attachment are
    cleared.

    Returns:
        True if the message was tombstoned, False if it already was.

    Raises:
        MessageNotFound: No such message in this thread.
        PermissionDenied: Requestor is neither the sender nor an admin, or
            the message is a system record.
    """
    message = get_message(thread, message_id)
    if message.is_system:
        raise PermissionDenied("System messages cannot be deleted", message_id=message_id)
    if requestor.id != message.sender_id and not requestor.is_admin:
        raise PermissionDenied(
            "Only the sender or an admin may delete a message",
            user_id=requestor.id,
            message_id=message_id,
        )
    if message.deleted:
        return False

    message.content = ""
    message.attachment_ref = None
    message.deleted = True
    message.deleted_at = now
    message.deleted_by = requestor.id
    return True
