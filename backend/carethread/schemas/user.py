"""Care-team member identity as seen by the thread engine.

Users are owned by the external identity provider. The engine only needs
an opaque id and a role for authorization decisions.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class UserRole(str, Enum):
    """Roles issued by the identity provider."""

    ADMIN = "ADMIN"
    HCW_MD = "HCW-MD"
    HCW_RN = "HCW-RN"
    SYSCLERK = "SYSCLERK"


# Roles allowed to manage any thread's membership
MANAGEMENT_ROLES = frozenset({UserRole.ADMIN, UserRole.SYSCLERK})


class CareTeamMember(BaseModel):
    """A user id plus the role used by the membership guard.

    ``role`` is None for ids the engine has never been told about; such
    users get no role-based privileges.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(min_length=1)
    role: UserRole | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_healthcare_worker(self) -> bool:
        return self.role in (UserRole.HCW_MD, UserRole.HCW_RN)
