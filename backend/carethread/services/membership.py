"""Membership guard.

Decides whether a care-team member may read, write, or manage the
membership of a thread, and applies membership changes to an admission
record. Every check depends only on the record's membership set, its
status, its owner, and the caller's role.
"""

import logging

from carethread.errors import (
    CannotRemoveOwner,
    InvalidTransition,
    MembershipLimitReached,
    PermissionDenied,
    ThreadClosed,
)
from carethread.schemas.admission import AdmissionRecord
from carethread.schemas.user import MANAGEMENT_ROLES, CareTeamMember

logger = logging.getLogger(__name__)


class UserDirectory:
    """Role lookup for user ids issued by the identity provider.

    Unknown ids resolve to a member with no role, which still allows
    membership-based access but no role-based privileges.
    """

    def __init__(self, members: list[CareTeamMember] | None = None):
        self._members: dict[str, CareTeamMember] = {}
        for member in members or []:
            self.register(member)

    def register(self, member: CareTeamMember) -> None:
        self._members[member.id] = member

    def resolve(self, user_id: str) -> CareTeamMember:
        return self._members.get(user_id) or CareTeamMember(id=user_id)

    def __contains__(self, user_id: str) -> bool:
        return user_id in self._members


# === Checks ===


def can_access(user: CareTeamMember, admission: AdmissionRecord) -> bool:
    """True iff the user is on the care team."""
    return user.id in admission.members


def can_write(user: CareTeamMember, admission: AdmissionRecord) -> bool:
    """True iff the user is on the care team and the admission is active."""
    return can_access(user, admission) and admission.is_active


def can_manage_membership(user: CareTeamMember, admission: AdmissionRecord) -> bool:
    """Admins, system clerks, and the thread's main care owner manage membership."""
    return user.role in MANAGEMENT_ROLES or user.id == admission.main_care_owner_id


def ensure_can_access(user: CareTeamMember, admission: AdmissionRecord) -> None:
    if not can_access(user, admission):
        raise PermissionDenied(
            "User is not a member of this thread",
            user_id=user.id,
            thread_id=admission.id,
        )


def ensure_can_write(user: CareTeamMember, admission: AdmissionRecord) -> None:
    """Raise PermissionDenied for non-members and ThreadClosed after discharge."""
    ensure_can_access(user, admission)
    if not admission.is_active:
        raise ThreadClosed("Thread is closed: patient discharged", thread_id=admission.id)


def _ensure_can_manage(actor: CareTeamMember, admission: AdmissionRecord) -> None:
    if not can_manage_membership(actor, admission):
        raise PermissionDenied(
            "User may not manage this thread's membership",
            user_id=actor.id,
            thread_id=admission.id,
        )
    if not admission.is_active:
        raise ThreadClosed("Membership is frozen after discharge", thread_id=admission.id)


# === Mutations ===


def add_member(
    admission: AdmissionRecord,
    actor: CareTeamMember,
    new_user_id: str,
    *,
    max_members: int,
) -> bool:
    """Add a user to the care team.

    Returns:
        True if the membership changed, False if the user was already a member.

    Raises:
        PermissionDenied: Actor lacks management rights.
        ThreadClosed: Admission is discharged.
        MembershipLimitReached: Care team is full.
    """
    _ensure_can_manage(actor, admission)
    if new_user_id in admission.members:
        return False
    if len(admission.members) >= max_members:
        raise MembershipLimitReached(
            f"Care team already has {max_members} members",
            thread_id=admission.id,
        )
    admission.members.add(new_user_id)
    return True


def remove_member(
    admission: AdmissionRecord,
    actor: CareTeamMember,
    target_user_id: str,
) -> bool:
    """Remove a user from the care team.

    The owner check runs first: removing the main care owner fails the
    same way for every actor, including admins. Members may always remove
    themselves.

    Returns:
        True if the membership changed, False if the target was not a member.

    Raises:
        CannotRemoveOwner: Target is the main care owner.
        PermissionDenied: Actor is neither the target nor a membership manager.
        ThreadClosed: Admission is discharged.
    """
    if target_user_id == admission.main_care_owner_id:
        raise CannotRemoveOwner(
            "The main care owner cannot be removed; transfer ownership first",
            user_id=target_user_id,
            thread_id=admission.id,
        )

    if actor.id == target_user_id and can_access(actor, admission):
        if not admission.is_active:
            raise ThreadClosed("Membership is frozen after discharge", thread_id=admission.id)
    else:
        _ensure_can_manage(actor, admission)

    if target_user_id not in admission.members:
        return False
    admission.members.discard(target_user_id)
    return True


def transfer_ownership(
    admission: AdmissionRecord,
    actor: CareTeamMember,
    new_owner_id: str,
) -> bool:
    """Hand main care ownership to another current member.

    Returns:
        True if ownership changed, False if ``new_owner_id`` already owns it.

    Raises:
        PermissionDenied: Actor lacks management rights.
        ThreadClosed: Admission is discharged.
        InvalidTransition: New owner is not on the care team.
    """
    _ensure_can_manage(actor, admission)
    if new_owner_id == admission.main_care_owner_id:
        return False
    if new_owner_id not in admission.members:
        raise InvalidTransition(
            "Ownership can only pass to a current member",
            user_id=new_owner_id,
            thread_id=admission.id,
        )
    admission.main_care_owner_id = new_owner_id
    return True
