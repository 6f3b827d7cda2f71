"""Failure taxonomy for thread operations.

Every expected failure is a ``ThreadError`` with a stable ``code``; callers
branch on the code rather than on message text. A failed operation never
leaves partial state behind and never emits an audit event.
"""

from __future__ import annotations


class ThreadError(Exception):
    """Base class for all thread engine failures."""

    code = "thread_error"

    def __init__(self, message: str, **context: str | int | None):
        super().__init__(message)
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(code={self.code!r}, message={self.message!r})>"


class PermissionDenied(ThreadError):
    """Membership, role, or ownership check failed."""

    code = "permission_denied"


class ThreadClosed(ThreadError):
    """Write attempted on a discharged thread."""

    code = "thread_closed"


class InvalidAttachment(ThreadError):
    """Image or video message without an attachment reference."""

    code = "invalid_attachment"


class CannotRemoveOwner(ThreadError):
    """The main care owner cannot be removed from the thread."""

    code = "cannot_remove_owner"


class InvalidTransition(ThreadError):
    """Lifecycle transition not permitted from the current status."""

    code = "invalid_transition"


class InvalidMessage(ThreadError):
    """Draft content is empty, too long, or references a foreign message."""

    code = "invalid_message"


class MembershipLimitReached(ThreadError):
    """The care team is already at its configured size bound."""

    code = "membership_limit_reached"


class ThreadNotFound(ThreadError):
    code = "thread_not_found"


class MessageNotFound(ThreadError):
    code = "message_not_found"


class StorageUnavailable(ThreadError):
    """The document store did not commit the change.

    Covers transport failures and revision conflicts alike; either way the
    caller should retry against fresh state.
    """

    code = "storage_unavailable"
