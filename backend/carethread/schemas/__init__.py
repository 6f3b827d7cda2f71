"""Pydantic schemas."""

from carethread.schemas.admission import (
    AdmissionCreate,
    AdmissionRecord,
    AdmissionStatus,
    AdmissionUpdate,
    Sex,
)
from carethread.schemas.audit import AuditAction, AuditEvent
from carethread.schemas.message import (
    Message,
    MessageDraft,
    MessageKind,
    Reaction,
    Reactions,
)
from carethread.schemas.thread import (
    Census,
    MemberAdd,
    MessageListResponse,
    OwnerTransfer,
    ReactionToggle,
    ThreadListResponse,
    ThreadSnapshot,
    ThreadSummary,
    UnreadResponse,
)
from carethread.schemas.user import CareTeamMember, UserRole

__all__ = [
    # Admission schemas
    "AdmissionCreate",
    "AdmissionRecord",
    "AdmissionStatus",
    "AdmissionUpdate",
    "Sex",
    # Audit schemas
    "AuditAction",
    "AuditEvent",
    # Message schemas
    "Message",
    "MessageDraft",
    "MessageKind",
    "Reaction",
    "Reactions",
    # Thread schemas
    "Census",
    "MemberAdd",
    "MessageListResponse",
    "OwnerTransfer",
    "ReactionToggle",
    "ThreadListResponse",
    "ThreadSnapshot",
    "ThreadSummary",
    "UnreadResponse",
    # User schemas
    "CareTeamMember",
    "UserRole",
]
