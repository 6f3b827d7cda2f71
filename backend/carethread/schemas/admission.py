"""Pydantic schemas for admission records.

An admission record is the patient-side half of a thread: clinical
identity for one episode of care, the care-team membership set, and the
active/discharged status that gates messaging.
"""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class AdmissionStatus(str, Enum):
    """Admission lifecycle states."""

    ACTIVE = "active"
    DISCHARGED = "discharged"


class Sex(str, Enum):
    MALE = "Male"
    FEMALE = "Female"


class AdmissionRecord(BaseModel):
    """One admission episode and its care-team membership.

    ``members`` always contains ``main_care_owner_id``. Records are never
    deleted; discharge is a status change that freezes membership.
    """

    # === Identity ===
    id: str
    main_care_owner_id: str

    # === Clinical attributes ===
    surname: str
    first_name: str
    age: int | None = Field(default=None, ge=0, le=150)
    sex: Sex | None = None
    diagnosis: str = ""
    patient_identifier: str = Field(default="", description="External hospital patient number")
    ward: str = ""
    room: str = ""

    # === Care team ===
    members: set[str] = Field(default_factory=set)

    # === Lifecycle ===
    status: AdmissionStatus = AdmissionStatus.ACTIVE
    date_admitted: datetime
    date_discharged: datetime | None = None

    # === Presentation ===
    avatar_color: str | None = None
    chat_bg: str | None = None

    @property
    def display_name(self) -> str:
        return f"{self.surname}, {self.first_name}"

    @property
    def is_active(self) -> bool:
        return self.status == AdmissionStatus.ACTIVE


class AdmissionCreate(BaseModel):
    """Attributes supplied when a patient is admitted."""

    surname: str = Field(min_length=1, max_length=200)
    first_name: str = Field(min_length=1, max_length=200)
    age: int | None = Field(default=None, ge=0, le=150)
    sex: Sex | None = None
    diagnosis: str = Field(default="", max_length=2000)
    patient_identifier: str = Field(default="", max_length=100)
    ward: str = Field(default="", max_length=100)
    room: str = Field(default="", max_length=50)
    avatar_color: str | None = None
    chat_bg: str | None = None


NON_NULLABLE_FIELDS = frozenset(
    {"surname", "first_name", "diagnosis", "patient_identifier", "ward", "room"}
)


class AdmissionUpdate(BaseModel):
    """Editable admission attributes (last writer wins).

    Identity, ownership, membership, status and dates are
    absent; those change only through their dedicated operations.
    """

    surname: str | None = Field(default=None, min_length=1, max_length=200)
    first_name: str | None = Field(default=None, min_length=1, max_length=200)
    age: int | None = Field(default=None, ge=0, le=150)
    sex: Sex | None = None
    diagnosis: str | None = Field(default=None, max_length=2000)
    patient_identifier: str | None = Field(default=None, max_length=100)
    ward: str | None = Field(default=None, max_length=100)
    room: str | None = Field(default=None, max_length=50)
    avatar_color: str | None = None
    chat_bg: str | None = None

    @model_validator(mode="after")
    def reject_null_required_fields(self) -> "AdmissionUpdate":
        """Fields that are strings on the record may be omitted but not nulled."""
        nulled = sorted(f for f in self.model_fields_set & NON_NULLABLE_FIELDS if getattr(self, f) is None)
        if nulled:
            raise ValueError(f"{', '.join(nulled)} cannot be null")
        return self
