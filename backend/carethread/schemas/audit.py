"""Audit event schema emitted after every committed mutation."""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class AuditAction(str, Enum):
    """Audit action vocabulary."""

    CREATE = "CREATE"
    EDIT = "EDIT"
    SEND = "SEND"
    READ = "READ"
    DELETE = "DELETE"
    REACT = "REACT"
    ADD_MEMBER = "ADD_MEMBER"
    REMOVE_MEMBER = "REMOVE_MEMBER"
    TRANSFER_OWNER = "TRANSFER_OWNER"
    ARCHIVE = "ARCHIVE"
    READMIT = "READMIT"


class AuditEvent(BaseModel):
    """One audit record: who did what to which entity, and when."""

    user_id: str
    action: AuditAction
    target_id: str
    timestamp: datetime
    details: dict[str, Any] = Field(default_factory=dict)
