"""FastAPI dependencies: the thread engine and the calling user.

Identity is issued by the upstream identity provider; the gateway
forwards the authenticated user id and role as headers.
"""

from fastapi import Depends, Header, HTTPException, Request, status

from carethread.schemas.user import CareTeamMember, UserRole
from carethread.services.engine import ThreadEngine


def get_engine(request: Request) -> ThreadEngine:
    """Return the engine built at application startup."""
    return request.app.state.engine


async def get_current_user(
    engine: ThreadEngine = Depends(get_engine),
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> CareTeamMember:
    """Resolve the caller from gateway headers and record their role.

    Raises:
        HTTPException: 401 if the user id is missing or the role is unknown.
    """
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )

    if x_user_role is None:
        return engine.directory.resolve(x_user_id)

    try:
        role = UserRole(x_user_role)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Unknown role: {x_user_role}",
        )

    member = CareTeamMember(id=x_user_id, role=role)
    engine.directory.register(member)
    return member
