"""Role provisioning: default and admin-configured roles for projects.

Flow for a new project:
  1. Resolve the three default role configs: built-in preset, overlaid
     with whatever system admins configured in SystemSettings.
  2. Insert them with is_default=True, then any "custom default roles"
     (is_default=False) admins want in every project.

Lookups of structural roles (Owner / Member) go by rank among default
roles, not by name, so renaming a default role breaks nothing. A lookup
that finds no default roles provisions them on the spot.

Concurrency: two first requests for a fresh project may both try to
provision. The partial unique index on (project_id, position) WHERE
is_default makes the loser's insert fail; it rolls back its savepoint and
returns the winner's roles. No application-level lock is involved, since
requests may run in separate processes.
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from punt.auth.permissions import ALL_PERMISSIONS, is_valid_permission
from punt.auth.presets import (
    DEFAULT_ROLE_NAMES,
    MEMBER,
    OWNER,
    ROLE_COLORS,
    RoleConfig,
    get_default_role_configs,
)
from punt.middleware.exceptions import RoleProvisioningError
from punt.models.role import Role
from punt.models.system_settings import SYSTEM_SETTINGS_ID, SystemSettings

logger = logging.getLogger(__name__)


# ── System-wide settings ────────────────────────────────────

def _load_json(value, expected: type):
    """Accept a structured value or its JSON-encoded string; None if unusable."""
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except ValueError:
            logger.warning(f"Ignoring unparsable role settings: {value[:80]!r}")
            return None
    if not isinstance(value, expected):
        logger.warning(f"Ignoring role settings of type {type(value).__name__}")
        return None
    return value


def _valid_permissions(values) -> tuple[str, ...]:
    return tuple(dict.fromkeys(p for p in values if is_valid_permission(p)))


def _apply_override(config: RoleConfig, value) -> RoleConfig:
    # Old format: {"Owner": ["perm", ...]}
    if isinstance(value, list):
        return replace(config, permissions=_valid_permissions(value))
    if not isinstance(value, dict):
        return config

    # New format: {"Owner": {"name": ..., "permissions": [...], ...}}
    changes: dict = {}
    name = value.get("name")
    if isinstance(name, str) and name.strip():
        changes["name"] = name.strip()
    if isinstance(value.get("permissions"), list):
        changes["permissions"] = _valid_permissions(value["permissions"])
    if isinstance(value.get("color"), str):
        changes["color"] = value["color"]
    if isinstance(value.get("description"), str):
        changes["description"] = value["description"]
    position = value.get("position")
    if isinstance(position, int) and not isinstance(position, bool):
        changes["position"] = position
    return replace(config, **changes)


def _custom_role_config(value, fallback_position: int) -> RoleConfig | None:
    if not isinstance(value, dict):
        return None
    name = value.get("name")
    if not isinstance(name, str) or not name.strip():
        return None
    position = value.get("position")
    if not isinstance(position, int) or isinstance(position, bool):
        position = fallback_position
    permissions = value.get("permissions")
    description = value.get("description")
    color = value.get("color")
    return RoleConfig(
        name=name.strip(),
        color=color if isinstance(color, str) else ROLE_COLORS[MEMBER],
        description=description if isinstance(description, str) else None,
        permissions=_valid_permissions(permissions) if isinstance(permissions, list) else (),
        position=position,
        is_default=False,
    )


def is_rank_ordered(positions: list[int]) -> bool:
    """True when positions strictly increase, i.e. each role outranks the next."""
    return all(a < b for a, b in zip(positions, positions[1:]))


async def get_system_settings(db: AsyncSession) -> SystemSettings | None:
    result = await db.execute(
        select(SystemSettings).where(SystemSettings.id == SYSTEM_SETTINGS_ID)
    )
    return result.scalar_one_or_none()


async def resolve_role_configs(
    db: AsyncSession,
) -> tuple[list[RoleConfig], list[RoleConfig]]:
    """Return (default role configs, extra custom role configs).

    Any field not overridden in system settings falls back to the preset.
    Position overrides that break the Owner < Admin < Member rank order are
    ignored, so Owner stays the highest-ranked default role.
    """
    defaults = get_default_role_configs()
    row = await get_system_settings(db)
    if row is None:
        return defaults, []

    overrides = _load_json(row.default_role_permissions, dict) or {}
    configured = [_apply_override(c, overrides.get(c.name)) for c in defaults]

    if not is_rank_ordered([c.position for c in configured]):
        logger.warning(
            "Default role positions in system settings break rank order, using presets"
        )
        configured = [replace(c, position=d.position) for c, d in zip(configured, defaults)]

    extras: list[RoleConfig] = []
    next_position = max(c.position for c in configured) + 1
    for value in _load_json(row.custom_default_roles, list) or []:
        extra = _custom_role_config(value, next_position)
        if extra is None:
            logger.warning(f"Skipping invalid custom default role: {str(value)[:80]!r}")
            continue
        extras.append(extra)
        next_position = max(next_position, extra.position) + 1

    return configured, extras


async def save_role_settings(
    db: AsyncSession,
    default_roles: dict,
    custom_default_roles: list[dict] | None = None,
) -> SystemSettings:
    """Persist default role overrides. Owner always keeps the full catalog."""
    default_roles = dict(default_roles)
    owner = dict(default_roles.get(OWNER) or {})
    owner["permissions"] = list(ALL_PERMISSIONS)
    default_roles[OWNER] = owner

    row = await get_system_settings(db)
    if row is None:
        row = SystemSettings(id=SYSTEM_SETTINGS_ID)
        db.add(row)
    row.default_role_permissions = default_roles
    if custom_default_roles is not None:
        row.custom_default_roles = custom_default_roles
    await db.flush()
    return row


# ── Provisioning ────────────────────────────────────────────

async def _default_roles(db: AsyncSession, project_id: str) -> list[Role]:
    result = await db.execute(
        select(Role)
        .where(Role.project_id == project_id, Role.is_default.is_(True))
        .order_by(Role.position)
    )
    return list(result.scalars().all())


def _role_map(roles: list[Role]) -> dict[str, str]:
    """Map preset names to ids by rank, independent of current display names."""
    return {name: role.id for name, role in zip(DEFAULT_ROLE_NAMES, roles)}


async def create_default_roles_for_project(
    db: AsyncSession, project_id: str
) -> dict[str, str]:
    """Create the default (and configured custom default) roles for a project.

    Returns {preset name: role id} for the default roles. Calling this for a
    project that already has its default set returns the existing ids.
    """
    configs, extras = await resolve_role_configs(db)

    roles = [
        Role(
            project_id=project_id,
            name=c.name,
            color=c.color,
            description=c.description,
            permissions=list(c.permissions),
            is_default=True,
            position=c.position,
        )
        for c in configs
    ]

    try:
        async with db.begin_nested():
            db.add_all(roles)
            await db.flush()
            for c in extras:
                db.add(
                    Role(
                        project_id=project_id,
                        name=c.name,
                        color=c.color,
                        description=c.description,
                        permissions=list(c.permissions),
                        is_default=False,
                        position=c.position,
                    )
                )
            await db.flush()
    except IntegrityError:
        logger.info(f"Default roles for project {project_id} already provisioned")
        existing = await _default_roles(db, project_id)
        if len(existing) < len(DEFAULT_ROLE_NAMES):
            raise RoleProvisioningError(
                f"Default roles for project {project_id} are incomplete"
            )
        return _role_map(existing)

    logger.info(
        f"Provisioned {len(roles)} default and {len(extras)} custom roles "
        f"for project {project_id}"
    )
    return _role_map(sorted(roles, key=lambda r: r.position))


async def _structural_role(db: AsyncSession, project_id: str, highest: bool) -> str:
    roles = await _default_roles(db, project_id)
    if roles:
        return roles[0].id if highest else roles[-1].id

    role_map = await create_default_roles_for_project(db, project_id)
    name = OWNER if highest else MEMBER
    role_id = role_map.get(name)
    if not role_id:
        raise RoleProvisioningError(f"Failed to create {name} role")
    return role_id


async def get_owner_role_for_project(db: AsyncSession, project_id: str) -> str:
    """The highest-ranked default role, provisioning defaults if missing."""
    return await _structural_role(db, project_id, highest=True)


async def get_member_role_for_project(db: AsyncSession, project_id: str) -> str:
    """The lowest-ranked default role (assigned to invitees by default)."""
    return await _structural_role(db, project_id, highest=False)


async def get_role_by_name(
    db: AsyncSession, project_id: str, role_name: str
) -> Role | None:
    result = await db.execute(
        select(Role).where(Role.project_id == project_id, Role.name == role_name)
    )
    return result.scalars().first()
