"""Effective permission resolution for a (user, project) pair.

    effective = ALL_PERMISSIONS                  if user.is_system_admin
              = role.permissions ∪ overrides     if a membership row exists
              = ∅                                otherwise

Every helper here is built on get_effective_permissions(); there is no
second code path. Nothing is cached across calls, so a role or override
change is visible on the very next request.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload

from punt.auth.permissions import ALL_PERMISSIONS, MEMBERS_MANAGE, parse_permissions
from punt.models.role import ProjectMember, Role
from punt.models.user import User


@dataclass
class EffectivePermissions:
    permissions: frozenset[str] = field(default_factory=frozenset)
    membership: ProjectMember | None = None
    is_system_admin: bool = False

    def has(self, permission: str) -> bool:
        return self.is_system_admin or permission in self.permissions


async def _load_membership(
    db: AsyncSession, user_id: str, project_id: str
) -> ProjectMember | None:
    result = await db.execute(
        select(ProjectMember)
        .options(joinedload(ProjectMember.role))
        .where(
            ProjectMember.user_id == user_id,
            ProjectMember.project_id == project_id,
        )
    )
    return result.scalar_one_or_none()


async def get_effective_permissions(
    db: AsyncSession, user_id: str, project_id: str
) -> EffectivePermissions:
    """Compute a user's permission set in a project.

    System admins short-circuit to the full catalog without touching
    membership (reported as None). Disabled accounts resolve to nothing.
    A missing membership is a normal state and yields an empty set.
    """
    result = await db.execute(
        select(User.is_system_admin, User.is_active).where(User.id == user_id)
    )
    row = result.one_or_none()
    if row is not None:
        is_system_admin, is_active = row
        if not is_active:
            return EffectivePermissions()
        if is_system_admin:
            return EffectivePermissions(
                permissions=frozenset(ALL_PERMISSIONS),
                membership=None,
                is_system_admin=True,
            )

    membership = await _load_membership(db, user_id, project_id)
    if membership is None:
        return EffectivePermissions()

    role_permissions = parse_permissions(membership.role.permissions)
    override_permissions = parse_permissions(membership.overrides)

    return EffectivePermissions(
        permissions=frozenset(role_permissions) | frozenset(override_permissions),
        membership=membership,
        is_system_admin=False,
    )


async def has_permission(
    db: AsyncSession, user_id: str, project_id: str, permission: str
) -> bool:
    effective = await get_effective_permissions(db, user_id, project_id)
    return effective.has(permission)


async def has_any_permission(
    db: AsyncSession, user_id: str, project_id: str, permissions: list[str]
) -> bool:
    """True if any listed permission is held. An empty list is never satisfied."""
    effective = await get_effective_permissions(db, user_id, project_id)
    return any(effective.has(p) for p in permissions)


async def has_all_permissions(
    db: AsyncSession, user_id: str, project_id: str, permissions: list[str]
) -> bool:
    effective = await get_effective_permissions(db, user_id, project_id)
    return all(effective.has(p) for p in permissions)


async def is_member(db: AsyncSession, user_id: str, project_id: str) -> bool:
    """Membership for gating purposes. System admins are virtual members."""
    effective = await get_effective_permissions(db, user_id, project_id)
    return effective.is_system_admin or effective.membership is not None


async def get_role_permissions(db: AsyncSession, role_id: str) -> list[str]:
    result = await db.execute(select(Role.permissions).where(Role.id == role_id))
    row = result.one_or_none()
    if row is None:
        return []
    return parse_permissions(row[0])


# ── Rank checks ─────────────────────────────────────────────
# Return booleans rather than raising; the caller decides between a 403
# and hiding the action. Missing rows on either side fail closed.

async def can_manage_member(
    db: AsyncSession, actor_id: str, target_id: str, project_id: str
) -> bool:
    """Whether actor may change the role of / remove target.

    Requires members.manage and a strictly higher rank (lower position).
    Self-management is never allowed here; leaving and self-demotion use
    their own flows.
    """
    if actor_id == target_id:
        return False

    actor = await get_effective_permissions(db, actor_id, project_id)
    if MEMBERS_MANAGE not in actor.permissions:
        return False
    if actor.is_system_admin:
        return True

    target = await _load_membership(db, target_id, project_id)
    if actor.membership is None or target is None:
        return False

    return actor.membership.role.position < target.role.position


async def can_assign_role(
    db: AsyncSession, actor_id: str, project_id: str, target_role_id: str
) -> bool:
    """Whether actor may hand out target role (only roles ranked below their own)."""
    actor = await get_effective_permissions(db, actor_id, project_id)
    if MEMBERS_MANAGE not in actor.permissions:
        return False
    if actor.is_system_admin:
        return True

    result = await db.execute(
        select(Role.position).where(
            Role.id == target_role_id,
            Role.project_id == project_id,
        )
    )
    target_position = result.scalar_one_or_none()
    if actor.membership is None or target_position is None:
        return False

    return actor.membership.role.position < target_position
