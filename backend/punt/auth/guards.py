"""Request-time authorization guards.

Each guard either returns (with the resolved EffectivePermissions where
one was computed) or raises a typed ForbiddenError on the first failing
condition. Guards never degrade silently.

Route order: resolve principal → guard → existence check → mutation.
Running the guard before any lookup keeps resources of projects the caller
cannot access indistinguishable from missing ones.
"""

from __future__ import annotations

from typing import Literal

from sqlalchemy.ext.asyncio import AsyncSession

from punt.auth.permissions import (
    ATTACHMENTS_MANAGE_ANY,
    COMMENTS_MANAGE_ANY,
    TICKETS_MANAGE_ANY,
    TICKETS_MANAGE_OWN,
)
from punt.auth.resolver import EffectivePermissions, get_effective_permissions
from punt.middleware.exceptions import (
    MissingPermissionError,
    NotAProjectMemberError,
    ResourcePermissionDeniedError,
)

TicketAction = Literal["edit", "delete"]
CommentAction = Literal["edit", "delete"]
AttachmentAction = Literal["delete"]


async def require_membership(
    db: AsyncSession, user_id: str, project_id: str
) -> EffectivePermissions:
    effective = await get_effective_permissions(db, user_id, project_id)
    if not (effective.is_system_admin or effective.membership is not None):
        raise NotAProjectMemberError()
    return effective


async def require_permission(
    db: AsyncSession, user_id: str, project_id: str, permission: str
) -> EffectivePermissions:
    effective = await get_effective_permissions(db, user_id, project_id)
    if not effective.has(permission):
        raise MissingPermissionError(permission)
    return effective


async def require_any_permission(
    db: AsyncSession, user_id: str, project_id: str, permissions: list[str]
) -> EffectivePermissions:
    effective = await get_effective_permissions(db, user_id, project_id)
    if not any(effective.has(p) for p in permissions):
        raise MissingPermissionError(*permissions)
    return effective


async def require_resource_permission(
    db: AsyncSession,
    user_id: str,
    project_id: str,
    resource_owner_id: str | None,
    own_permission: str,
    any_permission: str,
) -> EffectivePermissions:
    """Ownership-aware check.

    Allowed, in order, for: a system admin; a holder of `any_permission`;
    the resource owner holding `own_permission`. A None owner (legacy or
    orphaned rows) belongs to nobody, so only the "any" path can pass.
    """
    effective = await get_effective_permissions(db, user_id, project_id)

    if effective.is_system_admin:
        return effective
    if any_permission in effective.permissions:
        return effective
    if (
        resource_owner_id is not None
        and resource_owner_id == user_id
        and own_permission in effective.permissions
    ):
        return effective

    raise ResourcePermissionDeniedError()


async def require_ticket_permission(
    db: AsyncSession,
    user_id: str,
    project_id: str,
    ticket_creator_id: str | None,
    action: TicketAction,
) -> EffectivePermissions:
    """Edit/delete a ticket: manage_any, or creator with manage_own."""
    try:
        return await require_resource_permission(
            db,
            user_id,
            project_id,
            ticket_creator_id,
            TICKETS_MANAGE_OWN,
            TICKETS_MANAGE_ANY,
        )
    except ResourcePermissionDeniedError:
        raise ResourcePermissionDeniedError(
            f"Forbidden: Missing permission to {action} this ticket"
        ) from None


async def _require_author_or_moderator(
    db: AsyncSession,
    user_id: str,
    project_id: str,
    author_id: str | None,
    moderate_permission: str,
    message: str,
) -> EffectivePermissions | None:
    # Authors can always touch their own lightweight content; no lookup.
    if author_id is not None and author_id == user_id:
        return None

    effective = await get_effective_permissions(db, user_id, project_id)
    if not effective.has(moderate_permission):
        raise ResourcePermissionDeniedError(message)
    return effective


async def require_comment_permission(
    db: AsyncSession,
    user_id: str,
    project_id: str,
    author_id: str | None,
    action: CommentAction,
) -> EffectivePermissions | None:
    return await _require_author_or_moderator(
        db,
        user_id,
        project_id,
        author_id,
        COMMENTS_MANAGE_ANY,
        f"Forbidden: Missing permission to {action} this comment",
    )


async def require_attachment_permission(
    db: AsyncSession,
    user_id: str,
    project_id: str,
    uploader_id: str | None,
    action: AttachmentAction = "delete",
) -> EffectivePermissions | None:
    return await _require_author_or_moderator(
        db,
        user_id,
        project_id,
        uploader_id,
        ATTACHMENTS_MANAGE_ANY,
        f"Forbidden: Missing permission to {action} this attachment",
    )
