"""Thread engine: the operations the UI layer calls.

Every mutation follows the same path:

1. Resolve the caller's identity and take the thread's local lock.
2. Apply the change to a deep copy of the thread via the component
   services (membership guard, lifecycle, message log, read receipts).
3. Bump the revision and commit the copy to the document store.
4. Only after the commit succeeds: publish the copy as current state,
   hand one audit event to the audit hook, and notify subscribers.

Any exception in steps 2-3 leaves state untouched and emits nothing.
Reads are synchronous and derive everything from current state.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from carethread.config import Settings, settings
from carethread.errors import StorageUnavailable, ThreadError, ThreadNotFound
from carethread.repositories.base import InMemoryThreadStore, ThreadStore
from carethread.schemas.admission import (
    AdmissionCreate,
    AdmissionRecord,
    AdmissionStatus,
    AdmissionUpdate,
)
from carethread.schemas.audit import AuditAction, AuditEvent
from carethread.schemas.message import Message, MessageDraft, Reaction
from carethread.schemas.thread import Census, ThreadSnapshot, ThreadSummary
from carethread.services import lifecycle, membership, message_log, read_receipts, unread
from carethread.services.audit import AuditHook, InMemoryAuditTrail
from carethread.services.membership import UserDirectory

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
Subscriber = Callable[[str], None]

ADMIT_TEXT = "Patient admitted by {actor}."
MEMBER_ADDED_TEXT = "{actor} added {user} to the care team."
MEMBER_REMOVED_TEXT = "{actor} removed {user} from the care team."
MEMBER_LEFT_TEXT = "{user} left the care team."
OWNER_TRANSFERRED_TEXT = "{actor} transferred main care ownership from {old} to {new}."


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ThreadEngine:
    """In-memory thread state kept consistent with a document store."""

    def __init__(
        self,
        store: ThreadStore | None = None,
        audit: AuditHook | None = None,
        directory: UserDirectory | None = None,
        *,
        clock: Clock = utc_now,
        config: Settings | None = None,
    ):
        """Initialize engine.

        Args:
            store: Document store; defaults to a process-local store.
            audit: Audit hook; defaults to an in-memory trail.
            directory: Role lookup for user ids.
            clock: Time source for message timestamps and lifecycle dates.
            config: Settings override; defaults to the module settings.
        """
        self.store = store if store is not None else InMemoryThreadStore()
        self.audit = audit if audit is not None else InMemoryAuditTrail()
        self.directory = directory if directory is not None else UserDirectory()
        self.settings = config or settings
        self._clock = clock
        self._threads: dict[str, ThreadSnapshot] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._subscribers: list[Subscriber] = []

    async def hydrate(self) -> int:
        """Replace local state with everything in the store.

        Returns:
            Number of threads loaded.
        """
        snapshots = await self.store.load_all()
        self._threads = {s.id: s for s in snapshots}
        logger.info("Hydrated %d threads from document store", len(snapshots))
        return len(snapshots)

    # =========================================================================
    # Subscriptions
    # =========================================================================

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register a callback invoked with a thread id after each change.

        Returns:
            A function that removes the subscription.
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def _notify(self, thread_id: str) -> None:
        for callback in list(self._subscribers):
            try:
                callback(thread_id)
            except Exception as e:
                logger.warning("Subscriber failed for thread %s: %s", thread_id, e)

    def local_snapshot(self, thread_id: str) -> ThreadSnapshot | None:
        """Current local state for a thread, without copying."""
        return self._threads.get(thread_id)

    def publish(self, snapshot: ThreadSnapshot) -> None:
        """Install externally synchronized state and notify subscribers."""
        self._threads[snapshot.id] = snapshot
        self._notify(snapshot.id)

    # =========================================================================
    # Internals
    # =========================================================================

    def _thread(self, thread_id: str) -> ThreadSnapshot:
        thread = self._threads.get(thread_id)
        if thread is None:
            raise ThreadNotFound("Thread not found", thread_id=thread_id)
        return thread

    def _lock(self, thread_id: str) -> asyncio.Lock:
        return self._locks.setdefault(thread_id, asyncio.Lock())

    @asynccontextmanager
    async def _mutating(self, thread_id: str, operation: str) -> AsyncIterator[ThreadSnapshot]:
        """Hold the thread lock and yield a deep copy to mutate and commit.

        Locks are only created for threads that exist.
        """
        try:
            self._thread(thread_id)
            async with self._lock(thread_id):
                yield self._thread(thread_id).model_copy(deep=True)
        except ThreadError as e:
            logger.warning("%s rejected on thread %s: %s", operation, thread_id, e.code)
            raise

    def _event(
        self,
        actor_id: str,
        action: AuditAction,
        target_id: str,
        now: datetime,
        **details: Any,
    ) -> AuditEvent:
        return AuditEvent(user_id=actor_id, action=action, target_id=target_id, timestamp=now, details=details)

    async def _commit(self, working: ThreadSnapshot, event: AuditEvent) -> None:
        working.revision += 1
        try:
            await self.store.commit(working)
        except ThreadError:
            raise
        except Exception as e:
            logger.warning("Commit failed for thread %s: %s", working.id, e)
            raise StorageUnavailable("Document store unavailable", thread_id=working.id) from e

        self._threads[working.id] = working
        try:
            self.audit.record(event)
        except Exception as e:
            logger.warning("Audit hook failed for %s on %s: %s", event.action.value, event.target_id, e)
        self._notify(working.id)

    # =========================================================================
    # Admission
    # =========================================================================

    async def create_admission(self, owner_id: str, attributes: AdmissionCreate) -> AdmissionRecord:
        """Admit a patient and open its thread with the owner as sole member."""
        now = self._clock()
        admission = AdmissionRecord(
            id=str(uuid.uuid4()),
            main_care_owner_id=owner_id,
            members={owner_id},
            status=AdmissionStatus.ACTIVE,
            date_admitted=now,
            **attributes.model_dump(),
        )
        working = ThreadSnapshot(admission=admission)
        message_log.append_system(working, owner_id, ADMIT_TEXT.format(actor=owner_id), now=now)

        await self._commit(working, self._event(owner_id, AuditAction.CREATE, admission.id, now))
        logger.info("Admission %s created by %s", admission.id, owner_id)
        return admission.model_copy(deep=True)

    async def edit_admission(self, thread_id: str, actor_id: str, changes: AdmissionUpdate) -> AdmissionRecord:
        """Update editable admission attributes, last writer wins."""
        actor = self.directory.resolve(actor_id)
        updates = changes.model_dump(exclude_unset=True)
        async with self._mutating(thread_id, "edit_admission") as working:
            membership.ensure_can_write(actor, working.admission)
            if not updates:
                return working.admission
            for field, value in updates.items():
                setattr(working.admission, field, value)

            now = self._clock()
            await self._commit(
                working,
                self._event(actor_id, AuditAction.EDIT, thread_id, now, fields=sorted(updates)),
            )
        return working.admission.model_copy(deep=True)

    def get_admission(self, thread_id: str, user_id: str) -> AdmissionRecord:
        """Full admission record, for care-team members and membership managers.

        Raises:
            PermissionDenied: The user is neither.
        """
        admission = self._thread(thread_id).admission
        user = self.directory.resolve(user_id)
        if not membership.can_manage_membership(user, admission):
            membership.ensure_can_access(user, admission)
        return admission.model_copy(deep=True)

    # =========================================================================
    # Messages
    # =========================================================================

    async def send_message(self, thread_id: str, author_id: str, draft: MessageDraft) -> Message:
        """Append a user-authored message to the thread."""
        author = self.directory.resolve(author_id)
        async with self._mutating(thread_id, "send_message") as working:
            now = self._clock()
            message = message_log.append(
                working,
                author,
                draft,
                now=now,
                max_length=self.settings.max_message_length,
            )
            await self._commit(
                working,
                self._event(
                    author_id,
                    AuditAction.SEND,
                    message.id,
                    now,
                    thread_id=thread_id,
                    seq=message.seq,
                    kind=message.kind.value,
                ),
            )
        return message.model_copy(deep=True)

    def list_messages(self, thread_id: str, user_id: str, after_seq: int | None = None) -> list[Message]:
        """Copies of the thread's messages in seq order, after ``after_seq`` if given.

        Raises:
            PermissionDenied: The user is not a member.
        """
        thread = self._thread(thread_id)
        membership.ensure_can_access(self.directory.resolve(user_id), thread.admission)
        return [m.model_copy(deep=True) for m in message_log.list_from(thread, after_seq)]

    async def mark_message_read(self, thread_id: str, message_id: str, user_id: str) -> None:
        """Record a read receipt; silently does nothing when there is nothing to record."""
        user = self.directory.resolve(user_id)
        async with self._mutating(thread_id, "mark_message_read") as working:
            if not read_receipts.mark_read(working, message_id, user):
                return
            now = self._clock()
            await self._commit(
                working,
                self._event(user_id, AuditAction.READ, message_id, now, thread_id=thread_id),
            )

    async def delete_message(self, thread_id: str, message_id: str, requestor_id: str) -> None:
        """Tombstone a message; allowed for its sender and for admins."""
        requestor = self.directory.resolve(requestor_id)
        async with self._mutating(thread_id, "delete_message") as working:
            now = self._clock()
            if not message_log.delete_message(working, message_id, requestor, now=now):
                return
            await self._commit(
                working,
                self._event(requestor_id, AuditAction.DELETE, message_id, now, thread_id=thread_id),
            )
        logger.info("Message %s in thread %s deleted by %s", message_id, thread_id, requestor_id)

    async def toggle_reaction(self, thread_id: str, message_id: str, user_id: str, reaction: Reaction) -> bool:
        """Toggle an acknowledgement reaction; True if the user now holds it."""
        user = self.directory.resolve(user_id)
        async with self._mutating(thread_id, "toggle_reaction") as working:
            held = read_receipts.toggle_reaction(working, message_id, user, reaction)
            now = self._clock()
            await self._commit(
                working,
                self._event(
                    user_id,
                    AuditAction.REACT,
                    message_id,
                    now,
                    thread_id=thread_id,
                    reaction=reaction.value,
                    held=held,
                ),
            )
        return held

    # =========================================================================
    # Membership
    # =========================================================================

    async def add_member(self, thread_id: str, actor_id: str, new_user_id: str) -> None:
        actor = self.directory.resolve(actor_id)
        async with self._mutating(thread_id, "add_member") as working:
            if not membership.add_member(
                working.admission, actor, new_user_id, max_members=self.settings.max_members
            ):
                return
            now = self._clock()
            message_log.append_system(
                working, actor_id, MEMBER_ADDED_TEXT.format(actor=actor_id, user=new_user_id), now=now
            )
            await self._commit(
                working,
                self._event(actor_id, AuditAction.ADD_MEMBER, thread_id, now, member_id=new_user_id),
            )
        logger.info("User %s added to thread %s by %s", new_user_id, thread_id, actor_id)

    async def remove_member(self, thread_id: str, actor_id: str, target_user_id: str) -> None:
        actor = self.directory.resolve(actor_id)
        async with self._mutating(thread_id, "remove_member") as working:
            if not membership.remove_member(working.admission, actor, target_user_id):
                return
            now = self._clock()
            text = (
                MEMBER_LEFT_TEXT.format(user=target_user_id)
                if actor_id == target_user_id
                else MEMBER_REMOVED_TEXT.format(actor=actor_id, user=target_user_id)
            )
            message_log.append_system(working, actor_id, text, now=now)
            await self._commit(
                working,
                self._event(actor_id, AuditAction.REMOVE_MEMBER, thread_id, now, member_id=target_user_id),
            )
        logger.info("User %s removed from thread %s by %s", target_user_id, thread_id, actor_id)

    async def leave_thread(self, thread_id: str, user_id: str) -> None:
        """Self-removal; the owner must transfer ownership first."""
        await self.remove_member(thread_id, user_id, user_id)

    async def transfer_ownership(self, thread_id: str, actor_id: str, new_owner_id: str) -> None:
        actor = self.directory.resolve(actor_id)
        async with self._mutating(thread_id, "transfer_ownership") as working:
            old_owner_id = working.admission.main_care_owner_id
            if not membership.transfer_ownership(working.admission, actor, new_owner_id):
                return
            now = self._clock()
            message_log.append_system(
                working,
                actor_id,
                OWNER_TRANSFERRED_TEXT.format(actor=actor_id, old=old_owner_id, new=new_owner_id),
                now=now,
            )
            await self._commit(
                working,
                self._event(
                    actor_id,
                    AuditAction.TRANSFER_OWNER,
                    thread_id,
                    now,
                    previous_owner_id=old_owner_id,
                    new_owner_id=new_owner_id,
                ),
            )
        logger.info("Thread %s ownership moved from %s to %s", thread_id, old_owner_id, new_owner_id)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def discharge(self, thread_id: str, actor_id: str) -> None:
        """Discharge the patient and archive the thread; repeat calls are no-ops."""
        actor = self.directory.resolve(actor_id)
        async with self._mutating(thread_id, "discharge") as working:
            now = self._clock()
            if lifecycle.discharge(working, actor, now=now) is None:
                return
            await self._commit(working, self._event(actor_id, AuditAction.ARCHIVE, thread_id, now))
        logger.info("Thread %s discharged by %s", thread_id, actor_id)

    async def readmit(self, thread_id: str, actor_id: str) -> None:
        """Readmit the patient and reopen the thread; repeat calls are no-ops."""
        actor = self.directory.resolve(actor_id)
        async with self._mutating(thread_id, "readmit") as working:
            now = self._clock()
            if lifecycle.readmit(working, actor, now=now) is None:
                return
            await self._commit(working, self._event(actor_id, AuditAction.READMIT, thread_id, now))
        logger.info("Thread %s readmitted by %s", thread_id, actor_id)

    # =========================================================================
    # Derived views
    # =========================================================================

    def unread_count(self, thread_id: str, user_id: str) -> int:
        return unread.unread_count(self._thread(thread_id), user_id)

    def total_unread(self, user_id: str) -> int:
        return unread.total_unread(self._threads.values(), user_id)

    def census(self) -> Census:
        active = sum(1 for t in self._threads.values() if t.admission.is_active)
        return Census(active=active, discharged=len(self._threads) - active)

    def list_threads(
        self,
        user_id: str,
        status: AdmissionStatus | None = AdmissionStatus.ACTIVE,
        search: str | None = None,
    ) -> list[ThreadSummary]:
        """Thread list rows, most recent activity first.

        Every admission in the status tab is listed; unread counts and
        previews are only filled in for threads the user belongs to. A
        message deleted before the user read it keeps counting as unread.
        """
        needle = (search or "").strip().lower()
        rows = []
        for thread in self._threads.values():
            admission = thread.admission
            if status is not None and admission.status != status:
                continue
            if needle and needle not in admission.surname.lower() and needle not in admission.first_name.lower():
                continue
            rows.append(self._summarize(thread, user_id))

        rows.sort(key=lambda r: (r.last_activity_at, r.id), reverse=True)
        return rows

    def _summarize(self, thread: ThreadSnapshot, user_id: str) -> ThreadSummary:
        admission = thread.admission
        is_member = user_id in admission.members
        last = thread.messages[-1] if thread.messages else None

        preview = None
        if is_member and last is not None:
            preview = self.settings.tombstone_text if last.deleted else last.content

        return ThreadSummary(
            id=admission.id,
            display_name=admission.display_name,
            ward=admission.ward,
            room=admission.room,
            status=admission.status,
            is_member=is_member,
            unread_count=unread.unread_count(thread, user_id) if is_member else 0,
            last_seq=thread.last_seq,
            last_activity_at=last.timestamp if last is not None else admission.date_admitted,
            last_message_preview=preview,
            avatar_color=admission.avatar_color,
        )
