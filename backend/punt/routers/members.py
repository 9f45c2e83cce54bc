"""Project membership routes.

Rank rules: a member may only manage members ranked strictly below them and
only hand out roles ranked strictly below their own. Members may leave or
demote themselves. The last holder of the Owner role can do neither.
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from punt.auth.deps import get_current_user, require_project_member
from punt.auth.guards import require_membership, require_permission
from punt.auth.permissions import (
    MEMBERS_ADMIN,
    MEMBERS_INVITE,
    MEMBERS_MANAGE,
    is_valid_permission,
    parse_permissions,
)
from punt.auth.resolver import can_assign_role, can_manage_member
from punt.database import get_db
from punt.middleware.exceptions import (
    ForbiddenError,
    InvalidRequestError,
    ResourceNotFoundError,
)
from punt.models.role import ProjectMember, Role
from punt.models.user import User
from punt.schemas.members import (
    MemberCreate,
    MemberDetail,
    MemberOut,
    MemberUpdate,
    MemberUser,
)
from punt.schemas.permissions import SYSTEM_ADMIN_ROLE, RoleSummary
from punt.services.roles import get_member_role_for_project, get_owner_role_for_project

logger = logging.getLogger(__name__)

router = APIRouter()

# ── Helpers ──────────────────────────────────────────────────

def _member_out(member: ProjectMember) -> MemberOut:
    return MemberOut(
        id=member.id,
        user_id=member.user_id,
        project_id=member.project_id,
        role_id=member.role_id,
        overrides=parse_permissions(member.overrides),
        user=MemberUser.model_validate(member.user),
        role=RoleSummary.model_validate(member.role),
        created_at=member.created_at,
        updated_at=member.updated_at,
    )


def _member_detail(member: ProjectMember) -> MemberDetail:
    role_permissions = parse_permissions(member.role.permissions)
    overrides = parse_permissions(member.overrides)
    return MemberDetail(
        **_member_out(member).model_dump(),
        role_permissions=role_permissions,
        effective_permissions=list(dict.fromkeys(role_permissions + overrides)),
    )


async def _get_member(db: AsyncSession, project_id: str, member_id: str) -> ProjectMember:
    result = await db.execute(
        select(ProjectMember)
        .options(joinedload(ProjectMember.user), joinedload(ProjectMember.role))
        .where(ProjectMember.id == member_id, ProjectMember.project_id == project_id)
    )
    member = result.scalar_one_or_none()
    if not member:
        raise ResourceNotFoundError("Member", member_id)
    return member


async def _project_role(db: AsyncSession, project_id: str, role_id: str) -> Role:
    result = await db.execute(
        select(Role).where(Role.id == role_id, Role.project_id == project_id)
    )
    role = result.scalar_one_or_none()
    if not role:
        raise InvalidRequestError("Invalid role for this project", error_code="INVALID_ROLE")
    return role


async def _ensure_not_last_owner(
    db: AsyncSession, project_id: str, member: ProjectMember, message: str
) -> None:
    owner_role_id = await get_owner_role_for_project(db, project_id)
    if member.role_id != owner_role_id:
        return
    result = await db.execute(
        select(func.count(ProjectMember.id)).where(
            ProjectMember.project_id == project_id,
            ProjectMember.role_id == owner_role_id,
        )
    )
    if result.scalar_one() <= 1:
        raise InvalidRequestError(message, error_code="LAST_OWNER")


# ── Routes ───────────────────────────────────────────────────

@router.get("/{project_id}/members", response_model=list[MemberOut])
async def list_members(
    project_id: str,
    _user: User = Depends(require_project_member),
    db: AsyncSession = Depends(get_db),
):
    """Members by rank, then name; active system admins follow as virtual members."""
    result = await db.execute(
        select(ProjectMember)
        .join(ProjectMember.role)
        .join(ProjectMember.user)
        .options(joinedload(ProjectMember.user), joinedload(ProjectMember.role))
        .where(ProjectMember.project_id == project_id)
        .order_by(Role.position, User.name)
    )
    members = list(result.scalars().unique().all())
    out = [_member_out(m) for m in members]

    member_user_ids = {m.user_id for m in members}
    admins_result = await db.execute(
        select(User)
        .where(User.is_system_admin.is_(True), User.is_active.is_(True))
        .order_by(User.name)
    )
    now = datetime.utcnow()
    for admin in admins_result.scalars().all():
        if admin.id in member_user_ids:
            continue
        out.append(
            MemberOut(
                id=f"sysadmin-{admin.id}",
                user_id=admin.id,
                project_id=project_id,
                role_id=None,
                overrides=[],
                user=MemberUser.model_validate(admin),
                role=SYSTEM_ADMIN_ROLE,
                created_at=now,
                updated_at=now,
            )
        )
    return out


@router.post(
    "/{project_id}/members", response_model=MemberOut, status_code=status.HTTP_201_CREATED
)
async def add_member(
    project_id: str,
    body: MemberCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Add a user to the project, with the Member role unless one is given."""
    await require_permission(db, user.id, project_id, MEMBERS_INVITE)

    target_result = await db.execute(select(User).where(User.id == body.user_id))
    target_user = target_result.scalar_one_or_none()
    if not target_user:
        raise ResourceNotFoundError("User", body.user_id)

    existing = await db.execute(
        select(ProjectMember.id).where(
            ProjectMember.user_id == body.user_id,
            ProjectMember.project_id == project_id,
        )
    )
    if existing.scalar_one_or_none():
        raise InvalidRequestError(
            "User is already a member of this project", error_code="ALREADY_MEMBER"
        )

    if body.role_id:
        role = await _project_role(db, project_id, body.role_id)
        if not await can_assign_role(db, user.id, project_id, role.id):
            raise ForbiddenError(
                "Forbidden: Cannot assign roles equal to or higher than your own",
                error_code="ROLE_RANK_VIOLATION",
            )
        role_id = role.id
    else:
        role_id = await get_member_role_for_project(db, project_id)

    member = ProjectMember(user_id=target_user.id, project_id=project_id, role_id=role_id)
    db.add(member)
    await db.flush()

    logger.info(f"User {target_user.id} added to project {project_id} by {user.id}")
    return _member_out(await _get_member(db, project_id, member.id))


@router.get("/{project_id}/members/{member_id}", response_model=MemberDetail)
async def get_member(
    project_id: str,
    member_id: str,
    _user: User = Depends(require_project_member),
    db: AsyncSession = Depends(get_db),
):
    return _member_detail(await _get_member(db, project_id, member_id))


@router.patch("/{project_id}/members/{member_id}", response_model=MemberDetail)
async def update_member(
    project_id: str,
    member_id: str,
    body: MemberUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Change a member's role and/or permission overrides.

    Role changes follow the rank rules; override changes need members.admin.
    """
    await require_membership(db, user.id, project_id)
    member = await _get_member(db, project_id, member_id)
    changes = body.model_dump(exclude_unset=True)

    new_role: Role | None = None
    if changes.get("role_id") and changes["role_id"] != member.role_id:
        new_role = await _project_role(db, project_id, changes["role_id"])

        if member.user_id == user.id:
            if not user.is_system_admin and new_role.position <= member.role.position:
                raise InvalidRequestError(
                    "Cannot promote yourself to a higher or equal rank",
                    error_code="SELF_PROMOTION",
                )
        else:
            await require_permission(db, user.id, project_id, MEMBERS_MANAGE)
            if not await can_manage_member(db, user.id, member.user_id, project_id):
                raise ForbiddenError(
                    "Forbidden: Cannot modify members with equal or higher rank",
                    error_code="MEMBER_RANK_VIOLATION",
                )
            if not await can_assign_role(db, user.id, project_id, new_role.id):
                raise ForbiddenError(
                    "Forbidden: Cannot assign roles equal to or higher than your own",
                    error_code="ROLE_RANK_VIOLATION",
                )

        await _ensure_not_last_owner(
            db, project_id, member, "Cannot remove the last Owner. Transfer ownership first."
        )

    if "overrides" in changes:
        await require_permission(db, user.id, project_id, MEMBERS_ADMIN)
        overrides = changes["overrides"]
        if overrides is not None:
            invalid = [p for p in overrides if not is_valid_permission(p)]
            if invalid:
                raise InvalidRequestError(
                    "Invalid permissions provided",
                    error_code="INVALID_PERMISSIONS",
                    details={"invalid": invalid},
                )
            overrides = list(dict.fromkeys(overrides))
        member.overrides = overrides

    if new_role is not None:
        previous = member.role.name
        member.role = new_role
        logger.info(
            f"Member {member.id} moved from {previous} to {new_role.name} by {user.id}"
        )

    await db.flush()
    return _member_detail(member)


@router.delete("/{project_id}/members/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    project_id: str,
    member_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Remove a member, or leave the project when the member is the caller."""
    await require_membership(db, user.id, project_id)
    member = await _get_member(db, project_id, member_id)

    leaving = member.user_id == user.id
    if not leaving:
        await require_permission(db, user.id, project_id, MEMBERS_MANAGE)
        if not await can_manage_member(db, user.id, member.user_id, project_id):
            raise ForbiddenError(
                "Forbidden: Cannot remove members with equal or higher rank",
                error_code="MEMBER_RANK_VIOLATION",
            )

    await _ensure_not_last_owner(
        db,
        project_id,
        member,
        "Cannot leave as the last Owner. Transfer ownership first."
        if leaving
        else "Cannot remove the last Owner. Transfer ownership first.",
    )

    await db.delete(member)
    await db.flush()
    logger.info(f"Member {member.user_id} removed from project {project_id} by {user.id}")
