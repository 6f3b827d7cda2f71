"""Thread aggregate and API request/response schemas."""

from datetime import datetime

from pydantic import BaseModel, Field

from carethread.schemas.admission import AdmissionRecord, AdmissionStatus
from carethread.schemas.message import Message, Reaction


# === Aggregate ===


class ThreadSnapshot(BaseModel):
    """An admission record together with its message log.

    This is the unit the document store commits. ``revision`` increases by
    exactly one per committed change.
    """

    admission: AdmissionRecord
    messages: list[Message] = Field(default_factory=list)
    revision: int = Field(default=0, ge=0)

    @property
    def id(self) -> str:
        return self.admission.id

    @property
    def last_seq(self) -> int:
        return self.messages[-1].seq if self.messages else 0

    def find_message(self, message_id: str) -> Message | None:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None


# === Read models ===


class ThreadSummary(BaseModel):
    """One row of the thread list."""

    id: str
    display_name: str
    ward: str
    room: str
    status: AdmissionStatus
    is_member: bool
    unread_count: int = 0
    last_seq: int = 0
    last_activity_at: datetime
    last_message_preview: str | None = None
    avatar_color: str | None = None


class ThreadListResponse(BaseModel):
    items: list[ThreadSummary]
    total: int


class MessageListResponse(BaseModel):
    items: list[Message]
    last_seq: int = Field(description="Cursor to pass as after_seq on the next call")


class Census(BaseModel):
    """Admission counts by status."""

    active: int
    discharged: int


class UnreadResponse(BaseModel):
    unread_count: int


# === Request bodies ===


class MemberAdd(BaseModel):
    user_id: str = Field(min_length=1)


class OwnerTransfer(BaseModel):
    new_owner_id: str = Field(min_length=1)


class ReactionToggle(BaseModel):
    reaction: Reaction
