"""FastAPI dependencies for authentication and authorization.

Dependencies:
  get_current_user          → resolve principal (Bearer JWT or API key), return User
  require_system_admin      → restrict to system admins
  require_project_member    → user must be a member of {project_id}
  require_project_permission(perm) → user must hold perm in {project_id}

Both credential channels resolve to a User and then go through exactly the
same guards; the API-key channel gets no authorization shortcuts.
"""

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from punt.auth.api_keys import hash_api_key
from punt.auth.guards import require_membership, require_permission
from punt.auth.jwt import decode_token
from punt.config import settings
from punt.database import get_db
from punt.middleware.exceptions import (
    AccountDisabledError,
    ForbiddenError,
    UnauthenticatedError,
)
from punt.models.user import User

bearer_scheme = HTTPBearer(auto_error=False)


# ── Core user dependency ────────────────────────────────────

async def _user_from_token(db: AsyncSession, token: str) -> User | None:
    payload = decode_token(token)
    user_id: str | None = payload.get("sub")
    if not user_id or payload.get("type") != "access":
        return None
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def _user_from_api_key(db: AsyncSession, api_key: str) -> User | None:
    result = await db.execute(
        select(User).where(User.api_key_hash == hash_api_key(api_key))
    )
    return result.scalar_one_or_none()


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Resolve the principal for this request.

    A session token wins when both are present. Raises UnauthenticatedError
    when nothing resolves and AccountDisabledError for inactive accounts.
    """
    user: User | None = None
    if credentials is not None:
        user = await _user_from_token(db, credentials.credentials)
    else:
        api_key = request.headers.get(settings.api_key_header)
        if api_key:
            user = await _user_from_api_key(db, api_key)

    if user is None:
        raise UnauthenticatedError()
    if not user.is_active:
        raise AccountDisabledError()
    return user


# Alias matching the guard vocabulary used by route handlers
require_auth = get_current_user


async def require_system_admin(
    user: User = Depends(get_current_user),
) -> User:
    """Restrict endpoint to system admins only."""
    if not user.is_system_admin:
        raise ForbiddenError("Forbidden: System admin access required")
    return user


# ── Project-scoped access control ───────────────────────────

async def require_project_member(
    project_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> User:
    await require_membership(db, user.id, project_id)
    return user


def require_project_permission(permission: str):
    """Dependency factory: the caller must hold `permission` in {project_id}.

    Usage:
        @router.post("/{project_id}/roles")
        async def create_role(
            project_id: str,
            user: User = Depends(require_project_permission(MEMBERS_ADMIN)),
        ):
            ...
    """
    async def _check(
        project_id: str,
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ) -> User:
        await require_permission(db, user.id, project_id, permission)
        return user

    return _check
