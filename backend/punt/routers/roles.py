"""Project role routes: list, CRUD, and reorder.

Reading roles needs project membership; every mutation needs members.admin.
"""

import logging

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from punt.auth.deps import require_project_member, require_project_permission
from punt.auth.permissions import MEMBERS_ADMIN, is_valid_permission, parse_permissions
from punt.database import get_db
from punt.middleware.exceptions import InvalidRequestError, ResourceNotFoundError
from punt.models.role import ProjectMember, Role
from punt.models.user import User
from punt.schemas.roles import RoleCreate, RoleOut, RoleReorder, RoleUpdate

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Helpers ──────────────────────────────────────────────────

def _role_out(role: Role, member_count: int) -> RoleOut:
    return RoleOut(
        id=role.id,
        name=role.name,
        color=role.color,
        description=role.description,
        permissions=parse_permissions(role.permissions),
        is_default=role.is_default,
        position=role.position,
        member_count=member_count,
        created_at=role.created_at,
        updated_at=role.updated_at,
    )


def _validate_permissions(permissions: list[str]) -> list[str]:
    invalid = [p for p in permissions if not is_valid_permission(p)]
    if invalid:
        raise InvalidRequestError(
            "Invalid permissions provided",
            error_code="INVALID_PERMISSIONS",
            details={"invalid": invalid},
        )
    return list(dict.fromkeys(permissions))


async def _get_role(db: AsyncSession, project_id: str, role_id: str) -> Role:
    result = await db.execute(
        select(Role).where(Role.id == role_id, Role.project_id == project_id)
    )
    role = result.scalar_one_or_none()
    if not role:
        raise ResourceNotFoundError("Role", role_id)
    return role


async def _member_count(db: AsyncSession, role_id: str) -> int:
    result = await db.execute(
        select(func.count(ProjectMember.id)).where(ProjectMember.role_id == role_id)
    )
    return result.scalar_one()


async def _list_roles(db: AsyncSession, project_id: str) -> list[RoleOut]:
    counts_result = await db.execute(
        select(ProjectMember.role_id, func.count(ProjectMember.id))
        .where(ProjectMember.project_id == project_id)
        .group_by(ProjectMember.role_id)
    )
    counts = dict(counts_result.all())

    result = await db.execute(
        select(Role).where(Role.project_id == project_id).order_by(Role.position, Role.name)
    )
    return [_role_out(r, counts.get(r.id, 0)) for r in result.scalars().all()]


async def _ensure_name_free(
    db: AsyncSession, project_id: str, name: str, exclude_id: str | None = None
) -> None:
    stmt = select(Role.id).where(Role.project_id == project_id, Role.name == name)
    if exclude_id:
        stmt = stmt.where(Role.id != exclude_id)
    result = await db.execute(stmt)
    if result.first() is not None:
        raise InvalidRequestError(
            "A role with this name already exists", error_code="DUPLICATE_ROLE_NAME"
        )


async def _default_roles(db: AsyncSession, project_id: str) -> list[Role]:
    result = await db.execute(
        select(Role)
        .where(Role.project_id == project_id, Role.is_default.is_(True))
        .order_by(Role.position)
    )
    return list(result.scalars().all())


def _default_rank_error() -> InvalidRequestError:
    return InvalidRequestError(
        "Default roles must keep their rank order",
        error_code="DEFAULT_ROLE_ORDER",
    )


# ── Routes ───────────────────────────────────────────────────

@router.get("/{project_id}/roles", response_model=list[RoleOut])
async def list_roles(
    project_id: str,
    _user: User = Depends(require_project_member),
    db: AsyncSession = Depends(get_db),
):
    return await _list_roles(db, project_id)


@router.post(
    "/{project_id}/roles", response_model=RoleOut, status_code=status.HTTP_201_CREATED
)
async def create_role(
    project_id: str,
    body: RoleCreate,
    user: User = Depends(require_project_permission(MEMBERS_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Create a custom role, placed after every existing role."""
    await _ensure_name_free(db, project_id, body.name)
    permissions = _validate_permissions(body.permissions)

    result = await db.execute(
        select(func.max(Role.position)).where(Role.project_id == project_id)
    )
    max_position = result.scalar_one_or_none()

    role = Role(
        project_id=project_id,
        name=body.name,
        color=body.color,
        description=body.description,
        permissions=permissions,
        is_default=False,
        position=(max_position if max_position is not None else -1) + 1,
    )
    db.add(role)
    await db.flush()
    await db.refresh(role)

    logger.info(f"Role {role.name} created in project {project_id} by {user.id}")
    return _role_out(role, 0)


@router.post("/{project_id}/roles/reorder", response_model=list[RoleOut])
async def reorder_roles(
    project_id: str,
    body: RoleReorder,
    _user: User = Depends(require_project_permission(MEMBERS_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Set role positions from the submitted order (index = new position).

    The body must list every role of the project exactly once, and default
    roles must keep their relative order. Custom roles may go anywhere.
    """
    result = await db.execute(select(Role).where(Role.project_id == project_id))
    roles = {r.id: r for r in result.scalars().all()}

    if len(set(body.role_ids)) != len(body.role_ids) or set(body.role_ids) != set(roles):
        raise InvalidRequestError(
            "Role IDs must list every role of this project exactly once",
            error_code="INVALID_ROLE_ORDER",
        )

    current = [r.id for r in sorted(roles.values(), key=lambda r: r.position) if r.is_default]
    requested = [role_id for role_id in body.role_ids if roles[role_id].is_default]
    if requested != current:
        raise _default_rank_error()

    # Two passes: parking every row on a distinct negative position first
    # keeps the unique default-rank index satisfied at each statement.
    for index, role_id in enumerate(body.role_ids):
        roles[role_id].position = -(index + 1)
    await db.flush()
    for index, role_id in enumerate(body.role_ids):
        roles[role_id].position = index
    await db.flush()

    logger.info(f"Roles reordered in project {project_id}")
    return await _list_roles(db, project_id)


@router.get("/{project_id}/roles/{role_id}", response_model=RoleOut)
async def get_role(
    project_id: str,
    role_id: str,
    _user: User = Depends(require_project_member),
    db: AsyncSession = Depends(get_db),
):
    role = await _get_role(db, project_id, role_id)
    return _role_out(role, await _member_count(db, role.id))


@router.patch("/{project_id}/roles/{role_id}", response_model=RoleOut)
async def update_role(
    project_id: str,
    role_id: str,
    body: RoleUpdate,
    _user: User = Depends(require_project_permission(MEMBERS_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    role = await _get_role(db, project_id, role_id)
    updates = body.model_dump(exclude_unset=True)

    if updates.get("name") is not None and updates["name"] != role.name:
        await _ensure_name_free(db, project_id, updates["name"], exclude_id=role.id)
    if updates.get("permissions") is not None:
        updates["permissions"] = _validate_permissions(updates["permissions"])

    position = updates.get("position")
    if role.is_default and position is not None and position != role.position:
        defaults = await _default_roles(db, project_id)
        others = [r for r in defaults if r.id != role.id]
        if any(r.position == position for r in others):
            raise InvalidRequestError(
                "Another default role already holds this position",
                error_code="POSITION_TAKEN",
            )
        # The role must stay between the same default neighbours.
        above = [r.position for r in others if r.position < role.position]
        below = [r.position for r in others if r.position > role.position]
        if (above and position < max(above)) or (below and position > min(below)):
            raise _default_rank_error()

    # Non-nullable columns ignore an explicit null
    for key, value in updates.items():
        if value is None and key != "description":
            continue
        setattr(role, key, value)

    await db.flush()
    await db.refresh(role)
    return _role_out(role, await _member_count(db, role.id))


@router.delete("/{project_id}/roles/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    project_id: str,
    role_id: str,
    reassign_to: str | None = Query(None, description="Role that receives this role's members"),
    user: User = Depends(require_project_permission(MEMBERS_ADMIN)),
    db: AsyncSession = Depends(get_db),
):
    """Delete a custom role.

    Default roles cannot be deleted. A role that still has members can only
    be deleted when `reassign_to` names another role of the same project;
    its members move there first.
    """
    role = await _get_role(db, project_id, role_id)
    if role.is_default:
        raise InvalidRequestError(
            "Cannot delete default roles", error_code="DEFAULT_ROLE_UNDELETABLE"
        )

    member_count = await _member_count(db, role.id)
    if member_count:
        if not reassign_to:
            raise InvalidRequestError(
                "Cannot delete role with members. Reassign members first.",
                error_code="ROLE_HAS_MEMBERS",
                details={"member_count": member_count},
            )
        if reassign_to == role.id:
            raise InvalidRequestError(
                "Cannot reassign members to the role being deleted",
                error_code="INVALID_REASSIGN_TARGET",
            )
        target_result = await db.execute(
            select(Role).where(Role.id == reassign_to, Role.project_id == project_id)
        )
        target = target_result.scalar_one_or_none()
        if target is None:
            raise InvalidRequestError(
                "Invalid role for this project", error_code="INVALID_REASSIGN_TARGET"
            )
        moved = await db.execute(
            select(ProjectMember).where(ProjectMember.role_id == role.id)
        )
        for moved_member in moved.scalars().all():
            moved_member.role = target
        await db.flush()
        logger.info(f"Moved {member_count} members from role {role.id} to {reassign_to}")

    await db.delete(role)
    await db.flush()
    logger.info(f"Role {role.name} deleted from project {project_id} by {user.id}")
