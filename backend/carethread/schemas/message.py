"""Pydantic schemas for thread messages."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class MessageKind(str, Enum):
    """Tagged message variants."""

    TEXT = "text"
    IMAGE = "image"
    VIDEO = "video"
    SYSTEM = "system"


MEDIA_KINDS = frozenset({MessageKind.IMAGE, MessageKind.VIDEO})


class Reaction(str, Enum):
    """Acknowledgement reactions a care-team member can leave."""

    CHECK = "check"
    CROSS = "cross"


class Reactions(BaseModel):
    """User ids per reaction; a user holds at most one of the two."""

    check: set[str] = Field(default_factory=set)
    cross: set[str] = Field(default_factory=set)

    def holders(self, reaction: Reaction) -> set[str]:
        return self.check if reaction == Reaction.CHECK else self.cross


class Message(BaseModel):
    """A single entry in a thread's append-only log.

    Only ``read_by`` and ``reactions`` change after creation, except for
    tombstoning, which clears the payload but keeps the slot and ``seq``.
    """

    # === Identity ===
    id: str
    thread_id: str
    seq: int = Field(ge=1, description="Gap-free position within the thread")
    sender_id: str
    timestamp: datetime

    # === Payload ===
    kind: MessageKind = MessageKind.TEXT
    content: str = ""
    attachment_ref: str | None = Field(default=None, description="Opaque object-store reference")
    reply_to_id: str | None = None

    # === Receipts ===
    read_by: set[str] = Field(default_factory=set)
    reactions: Reactions = Field(default_factory=Reactions)

    # === Tombstone ===
    deleted: bool = False
    deleted_at: datetime | None = None
    deleted_by: str | None = None

    @property
    def is_system(self) -> bool:
        return self.kind == MessageKind.SYSTEM


class MessageDraft(BaseModel):
    """What a user submits when sending a message."""

    kind: MessageKind = MessageKind.TEXT
    content: str = ""
    attachment_ref: str | None = None
    reply_to_id: str | None = None
