"""Built-in role presets.

Every project gets three default roles (`is_default=True`, never deletable).
Rank is carried by `position`: lower number = higher authority.
"""

from __future__ import annotations

from dataclasses import dataclass

from punt.auth.permissions import (
    ALL_PERMISSIONS,
    ATTACHMENTS_MANAGE_ANY,
    BOARD_MANAGE,
    COMMENTS_MANAGE_ANY,
    LABELS_MANAGE,
    MEMBERS_INVITE,
    MEMBERS_MANAGE,
    PROJECT_SETTINGS,
    SPRINTS_MANAGE,
    TICKETS_CREATE,
    TICKETS_MANAGE_ANY,
    TICKETS_MANAGE_OWN,
)

OWNER = "Owner"
ADMIN = "Admin"
MEMBER = "Member"

# Highest authority first
DEFAULT_ROLE_NAMES: tuple[str, ...] = (OWNER, ADMIN, MEMBER)

ROLE_COLORS: dict[str, str] = {
    OWNER: "#f59e0b",
    ADMIN: "#3b82f6",
    MEMBER: "#6b7280",
}

ROLE_DESCRIPTIONS: dict[str, str] = {
    OWNER: "Full control over the project including deletion and permission management",
    ADMIN: "Can manage most project settings, members, and content",
    MEMBER: "Can create tickets and manage their own content",
}

ROLE_PRESETS: dict[str, tuple[str, ...]] = {
    OWNER: ALL_PERMISSIONS,
    # Everything except project.delete and members.admin
    ADMIN: (
        PROJECT_SETTINGS,
        MEMBERS_INVITE,
        MEMBERS_MANAGE,
        BOARD_MANAGE,
        TICKETS_CREATE,
        TICKETS_MANAGE_OWN,
        TICKETS_MANAGE_ANY,
        SPRINTS_MANAGE,
        LABELS_MANAGE,
        COMMENTS_MANAGE_ANY,
        ATTACHMENTS_MANAGE_ANY,
    ),
    MEMBER: (TICKETS_CREATE, TICKETS_MANAGE_OWN),
}

ROLE_POSITIONS: dict[str, int] = {
    OWNER: 0,
    ADMIN: 1,
    MEMBER: 2,
}


@dataclass(frozen=True)
class RoleConfig:
    name: str
    color: str
    description: str | None
    permissions: tuple[str, ...]
    position: int
    is_default: bool = True


def get_default_role_configs() -> list[RoleConfig]:
    return [
        RoleConfig(
            name=name,
            color=ROLE_COLORS[name],
            description=ROLE_DESCRIPTIONS[name],
            permissions=ROLE_PRESETS[name],
            position=ROLE_POSITIONS[name],
        )
        for name in DEFAULT_ROLE_NAMES
    ]


def get_default_role_permissions(role_name: str) -> list[str]:
    """Preset permissions for a default role name; unknown names get none."""
    return list(ROLE_PRESETS.get(role_name, ()))


def is_default_role_name(name: str) -> bool:
    return name in ROLE_PRESETS
