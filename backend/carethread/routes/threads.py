"""Thread API routes.

Admission threads, their message logs, receipts, membership and
lifecycle. Engine failures propagate as ThreadError and are mapped to
HTTP responses by the application's exception handler.
"""

from fastapi import APIRouter, Depends, Query, Response, status

from carethread.dependencies import get_current_user, get_engine
from carethread.schemas.admission import (
    AdmissionCreate,
    AdmissionRecord,
    AdmissionStatus,
    AdmissionUpdate,
)
from carethread.schemas.message import Message, MessageDraft
from carethread.schemas.thread import (
    Census,
    MemberAdd,
    MessageListResponse,
    OwnerTransfer,
    ReactionToggle,
    ThreadListResponse,
    UnreadResponse,
)
from carethread.schemas.user import CareTeamMember
from carethread.services.engine import ThreadEngine

router = APIRouter(prefix="/threads", tags=["threads"])


# =============================================================================
# Threads
# =============================================================================


@router.get("", response_model=ThreadListResponse)
async def list_threads(
    engine: ThreadEngine = Depends(get_engine),
    user: CareTeamMember = Depends(get_current_user),
    thread_status: AdmissionStatus | None = Query(AdmissionStatus.ACTIVE, alias="status"),
    search: str | None = Query(None, max_length=200),
) -> ThreadListResponse:
    """List threads for the active or discharged tab.

    Args:
        thread_status: Admission status to list; omit for the active tab.
        search: Case-insensitive match on surname or first name.

    Returns:
        Rows ordered by most recent activity.
    """
    items = engine.list_threads(user.id, status=thread_status, search=search)
    return ThreadListResponse(items=items, total=len(items))


@router.post("", response_model=AdmissionRecord, status_code=status.HTTP_201_CREATED)
async def create_admission(
    attributes: AdmissionCreate,
    engine: ThreadEngine = Depends(get_engine),
    user: CareTeamMember = Depends(get_current_user),
) -> AdmissionRecord:
    """Admit a patient; the caller becomes main care owner."""
    return await engine.create_admission(user.id, attributes)


@router.get("/census", response_model=Census)
async def get_census(
    engine: ThreadEngine = Depends(get_engine),
    _user: CareTeamMember = Depends(get_current_user),
) -> Census:
    return engine.census()


@router.get("/unread", response_model=UnreadResponse)
async def get_total_unread(
    engine: ThreadEngine = Depends(get_engine),
    user: CareTeamMember = Depends(get_current_user),
) -> UnreadResponse:
    """Unread messages across the caller's active threads."""
    return UnreadResponse(unread_count=engine.total_unread(user.id))


@router.get("/{thread_id}", response_model=AdmissionRecord)
async def get_admission(
    thread_id: str,
    engine: ThreadEngine = Depends(get_engine),
    user: CareTeamMember = Depends(get_current_user),
) -> AdmissionRecord:
    return engine.get_admission(thread_id, user.id)


@router.patch("/{thread_id}", response_model=AdmissionRecord)
async def edit_admission(
    thread_id: str,
    changes: AdmissionUpdate,
    engine: ThreadEngine = Depends(get_engine),
    user: CareTeamMember = Depends(get_current_user),
) -> AdmissionRecord:
    """Update admission attributes. Only provided fields change."""
    return await engine.edit_admission(thread_id, user.id, changes)


@router.get("/{thread_id}/unread", response_model=UnreadResponse)
async def get_unread(
    thread_id: str,
    engine: ThreadEngine = Depends(get_engine),
    user: CareTeamMember = Depends(get_current_user),
) -> UnreadResponse:
    return UnreadResponse(unread_count=engine.unread_count(thread_id, user.id))


# =============================================================================
# Messages
# =============================================================================


@router.get("/{thread_id}/messages", response_model=MessageListResponse)
async def list_messages(
    thread_id: str,
    engine: ThreadEngine = Depends(get_engine),
    user: CareTeamMember = Depends(get_current_user),
    after_seq: int | None = Query(None, ge=0),
) -> MessageListResponse:
    """List messages in seq order.

    Args:
        after_seq: Return only messages after this seq (the previous
            response's ``last_seq``).
    """
    items = engine.list_messages(thread_id, user.id, after_seq)
    last_seq = items[-1].seq if items else (after_seq or 0)
    return MessageListResponse(items=items, last_seq=last_seq)


@router.post(
    "/{thread_id}/messages",
    response_model=Message,
    status_code=status.HTTP_201_CREATED,
)
async def send_message(
    thread_id: str,
    draft: MessageDraft,
    engine: ThreadEngine = Depends(get_engine),
    user: CareTeamMember = Depends(get_current_user),
) -> Message:
    return await engine.send_message(thread_id, user.id, draft)


@router.post("/{thread_id}/messages/{message_id}/read", status_code=status.HTTP_204_NO_CONTENT)
async def mark_message_read(
    thread_id: str,
    message_id: str,
    engine: ThreadEngine = Depends(get_engine),
    user: CareTeamMember = Depends(get_current_user),
) -> Response:
    await engine.mark_message_read(thread_id, message_id, user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{thread_id}/messages/{message_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_message(
    thread_id: str,
    message_id: str,
    engine: ThreadEngine = Depends(get_engine),
    user: CareTeamMember = Depends(get_current_user),
) -> Response:
    """Tombstone a message. Sender or admin only."""
    await engine.delete_message(thread_id, message_id, user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{thread_id}/messages/{message_id}/reactions")
async def toggle_reaction(
    thread_id: str,
    message_id: str,
    body: ReactionToggle,
    engine: ThreadEngine = Depends(get_engine),
    user: CareTeamMember = Depends(get_current_user),
) -> dict:
    """Toggle a check or cross acknowledgement on a message."""
    held = await engine.toggle_reaction(thread_id, message_id, user.id, body.reaction)
    return {"reaction": body.reaction.value, "held": held}


# =============================================================================
# Membership and lifecycle
# =============================================================================


@router.post("/{thread_id}/members", response_model=AdmissionRecord)
async def add_member(
    thread_id: str,
    body: MemberAdd,
    engine: ThreadEngine = Depends(get_engine),
    user: CareTeamMember = Depends(get_current_user),
) -> AdmissionRecord:
    await engine.add_member(thread_id, user.id, body.user_id)
    return engine.get_admission(thread_id, user.id)


@router.delete("/{thread_id}/members/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    thread_id: str,
    member_id: str,
    engine: ThreadEngine = Depends(get_engine),
    user: CareTeamMember = Depends(get_current_user),
) -> Response:
    await engine.remove_member(thread_id, user.id, member_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{thread_id}/leave", status_code=status.HTTP_204_NO_CONTENT)
async def leave_thread(
    thread_id: str,
    engine: ThreadEngine = Depends(get_engine),
    user: CareTeamMember = Depends(get_current_user),
) -> Response:
    await engine.leave_thread(thread_id, user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{thread_id}/owner", response_model=AdmissionRecord)
async def transfer_ownership(
    thread_id: str,
    body: OwnerTransfer,
    engine: ThreadEngine = Depends(get_engine),
    user: CareTeamMember = Depends(get_current_user),
) -> AdmissionRecord:
    """Hand main care ownership to another member of the care team."""
    await engine.transfer_ownership(thread_id, user.id, body.new_owner_id)
    return engine.get_admission(thread_id, user.id)


@router.post("/{thread_id}/discharge", response_model=AdmissionRecord)
async def discharge(
    thread_id: str,
    engine: ThreadEngine = Depends(get_engine),
    user: CareTeamMember = Depends(get_current_user),
) -> AdmissionRecord:
    """Discharge the patient. The thread becomes read-only."""
    await engine.discharge(thread_id, user.id)
    return engine.get_admission(thread_id, user.id)


@router.post("/{thread_id}/readmit", response_model=AdmissionRecord)
async def readmit(
    thread_id: str,
    engine: ThreadEngine = Depends(get_engine),
    user: CareTeamMember = Depends(get_current_user),
) -> AdmissionRecord:
    await engine.readmit(thread_id, user.id)
    return engine.get_admission(thread_id, user.id)
