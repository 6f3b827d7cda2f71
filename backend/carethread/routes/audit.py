"""Audit trail routes for the compliance screen."""

from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status

from carethread.dependencies import get_current_user, get_engine
from carethread.schemas.audit import AuditAction, AuditEvent
from carethread.schemas.user import CareTeamMember
from carethread.services.audit import InMemoryAuditTrail
from carethread.services.engine import ThreadEngine

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("", response_model=list[AuditEvent])
async def query_audit_trail(
    engine: ThreadEngine = Depends(get_engine),
    user: CareTeamMember = Depends(get_current_user),
    start: date | None = None,
    end: date | None = None,
    action: AuditAction | None = None,
    user_id: str | None = None,
    target_id: str | None = None,
) -> list[AuditEvent]:
    """Query recorded audit events. Admins only.

    Args:
        start: First calendar day to include.
        end: Last calendar day to include.
        action: Restrict to one action.
        user_id: Restrict to events performed by this user.
        target_id: Restrict to events on this thread or message.

    Raises:
        HTTPException: 403 for non-admins, 501 if the configured hook
            keeps no queryable trail.
    """
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Audit trail is restricted to admins",
        )
    if not isinstance(engine.audit, InMemoryAuditTrail):
        raise HTTPException(
            status_code=status.HTTP_501_NOT_IMPLEMENTED,
            detail="Audit hook does not support queries",
        )
    if start is not None and end is not None and start > end:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
            detail="start must not be after end",
        )

    return engine.audit.query(
        start=start,
        end=end,
        action=action,
        user_id=user_id,
        target_id=target_id,
    )
