"""Admission lifecycle controller.

Two states, two transitions:

    active --discharge--> discharged --readmit--> active

``transition`` is the strict primitive and rejects anything else with
InvalidTransition. ``discharge`` and ``readmit`` are the exposed actions:
repeating one when the admission is already in the target state is a
no-op that appends nothing.
"""

import logging
from datetime import datetime

from carethread.errors import InvalidTransition, PermissionDenied
from carethread.schemas.admission import AdmissionRecord, AdmissionStatus
from carethread.schemas.message import Message
from carethread.schemas.thread import ThreadSnapshot
from carethread.schemas.user import CareTeamMember
from carethread.services.membership import can_access, can_manage_membership, ensure_can_write
from carethread.services.message_log import append_system

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[AdmissionStatus, frozenset[AdmissionStatus]] = {
    AdmissionStatus.ACTIVE: frozenset({AdmissionStatus.DISCHARGED}),
    AdmissionStatus.DISCHARGED: frozenset({AdmissionStatus.ACTIVE}),
}

DISCHARGE_TEXT = "Patient discharged by {actor}. Thread archived."
READMIT_TEXT = "Patient readmitted by {actor}. Thread reopened."


def transition(admission: AdmissionRecord, target: AdmissionStatus, *, now: datetime) -> None:
    """Move the admission to ``target``, stamping or clearing the discharge date.

    Raises:
        InvalidTransition: ``target`` is not reachable from the current status.
    """
    if target not in ALLOWED_TRANSITIONS[admission.status]:
        raise InvalidTransition(
            f"Cannot move admission from {admission.status.value} to {target.value}",
            thread_id=admission.id,
        )
    admission.status = target
    admission.date_discharged = now if target == AdmissionStatus.DISCHARGED else None


def can_readmit(user: CareTeamMember, admission: AdmissionRecord) -> bool:
    """Members frozen at discharge, or anyone with management rights."""
    return can_access(user, admission) or can_manage_membership(user, admission)


def discharge(thread: ThreadSnapshot, actor: CareTeamMember, *, now: datetime) -> Message | None:
    """Discharge the patient and archive the thread.

    Returns:
        The system message recording the discharge, or None if the
        admission was already discharged.

    Raises:
        PermissionDenied: Actor is not a member.
    """
    admission = thread.admission
    if not admission.is_active:
        if not can_access(actor, admission):
            raise PermissionDenied("User is not a member of this thread", user_id=actor.id)
        return None

    ensure_can_write(actor, admission)
    transition(admission, AdmissionStatus.DISCHARGED, now=now)
    return append_system(thread, actor.id, DISCHARGE_TEXT.format(actor=actor.id), now=now)


def readmit(thread: ThreadSnapshot, actor: CareTeamMember, *, now: datetime) -> Message | None:
    """Readmit a discharged patient and reopen the thread.

    Returns:
        The system message recording the readmission, or None if the
        admission was already active.

    Raises:
        PermissionDenied: Actor was not a member at discharge and has no
            management rights.
    """
    admission = thread.admission
    if not can_readmit(actor, admission):
        raise PermissionDenied(
            "Only the discharged care team or a manager may readmit",
            user_id=actor.id,
            thread_id=admission.id,
        )
    if admission.is_active:
        return None

    transition(admission, AdmissionStatus.ACTIVE, now=now)
    return append_system(thread, actor.id, READMIT_TEXT.format(actor=actor.id), now=now)
