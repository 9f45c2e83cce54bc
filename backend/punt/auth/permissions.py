"""Permission catalog for Punt project RBAC.

Design:
  - Every permission is a `<category>.<action>` string defined here and
    nowhere else. Anything outside ALL_PERMISSIONS is invalid and is
    filtered out, never trusted.
  - Roles and member overrides store permission lists as JSON. Legacy rows
    hold the list as a JSON-encoded string. `parse_permissions()` accepts
    both and never raises: a corrupted record degrades to "no permissions"
    with a warning instead of failing the request.
  - PERMISSION_METADATA / CATEGORY_METADATA are presentation data for the
    role editor and carry no authorization weight.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass

from punt.config import settings

logger = logging.getLogger(__name__)


# ── Categories ──────────────────────────────────────────────

CATEGORY_PROJECT = "project"
CATEGORY_MEMBERS = "members"
CATEGORY_BOARD = "board"
CATEGORY_TICKETS = "tickets"
CATEGORY_SPRINTS = "sprints"
CATEGORY_LABELS = "labels"
CATEGORY_MODERATION = "moderation"


# ── All known permissions ───────────────────────────────────

PROJECT_SETTINGS = "project.settings"        # edit name, description, color
PROJECT_DELETE = "project.delete"            # delete the project and its data

MEMBERS_INVITE = "members.invite"            # add new members
MEMBERS_MANAGE = "members.manage"            # remove members, change their roles
MEMBERS_ADMIN = "members.admin"              # custom roles, per-member overrides

BOARD_MANAGE = "board.manage"                # columns

TICKETS_CREATE = "tickets.create"
TICKETS_MANAGE_OWN = "tickets.manage_own"    # edit/delete tickets you created
TICKETS_MANAGE_ANY = "tickets.manage_any"    # edit/delete/assign any ticket

SPRINTS_MANAGE = "sprints.manage"

LABELS_MANAGE = "labels.manage"

COMMENTS_MANAGE_ANY = "comments.manage_any"
ATTACHMENTS_MANAGE_ANY = "attachments.manage_any"

# Declaration order is the display order inside a category.
ALL_PERMISSIONS: tuple[str, ...] = (
    PROJECT_SETTINGS,
    PROJECT_DELETE,
    MEMBERS_INVITE,
    MEMBERS_MANAGE,
    MEMBERS_ADMIN,
    BOARD_MANAGE,
    TICKETS_CREATE,
    TICKETS_MANAGE_OWN,
    TICKETS_MANAGE_ANY,
    SPRINTS_MANAGE,
    LABELS_MANAGE,
    COMMENTS_MANAGE_ANY,
    ATTACHMENTS_MANAGE_ANY,
)

_VALID = frozenset(ALL_PERMISSIONS)


# ── Metadata (UI only) ──────────────────────────────────────

@dataclass(frozen=True)
class PermissionMeta:
    key: str
    label: str
    description: str
    category: str


@dataclass(frozen=True)
class CategoryMeta:
    key: str
    label: str
    description: str
    order: int


PERMISSION_METADATA: dict[str, PermissionMeta] = {
    meta.key: meta
    for meta in (
        PermissionMeta(PROJECT_SETTINGS, "Edit project settings",
                       "Modify project name, description, and color", CATEGORY_PROJECT),
        PermissionMeta(PROJECT_DELETE, "Delete project",
                       "Permanently delete the project and all its data", CATEGORY_PROJECT),
        PermissionMeta(MEMBERS_INVITE, "Invite members",
                       "Send invitations to new project members", CATEGORY_MEMBERS),
        PermissionMeta(MEMBERS_MANAGE, "Manage members",
                       "Remove members and change their roles", CATEGORY_MEMBERS),
        PermissionMeta(MEMBERS_ADMIN, "Administer permissions",
                       "Create and edit custom roles, manage member permissions",
                       CATEGORY_MEMBERS),
        PermissionMeta(BOARD_MANAGE, "Manage columns",
                       "Create, edit, delete, and reorder board columns", CATEGORY_BOARD),
        PermissionMeta(TICKETS_CREATE, "Create tickets",
                       "Create new tickets in the project", CATEGORY_TICKETS),
        PermissionMeta(TICKETS_MANAGE_OWN, "Manage own tickets",
                       "Edit and delete tickets you created", CATEGORY_TICKETS),
        PermissionMeta(TICKETS_MANAGE_ANY, "Manage any ticket",
                       "Edit and delete any ticket, assign tickets, bulk operations",
                       CATEGORY_TICKETS),
        PermissionMeta(SPRINTS_MANAGE, "Manage sprints",
                       "Create, start, complete, edit, and delete sprints", CATEGORY_SPRINTS),
        PermissionMeta(LABELS_MANAGE, "Manage labels",
                       "Create, edit, and delete project labels", CATEGORY_LABELS),
        PermissionMeta(COMMENTS_MANAGE_ANY, "Moderate comments",
                       "Edit and delete any comment", CATEGORY_MODERATION),
        PermissionMeta(ATTACHMENTS_MANAGE_ANY, "Moderate attachments",
                       "Delete any attachment", CATEGORY_MODERATION),
    )
}

CATEGORY_METADATA: dict[str, CategoryMeta] = {
    meta.key: meta
    for meta in (
        CategoryMeta(CATEGORY_PROJECT, "Project", "Project-level settings and management", 1),
        CategoryMeta(CATEGORY_MEMBERS, "Members", "Member and role management", 2),
        CategoryMeta(CATEGORY_BOARD, "Board", "Kanban board and column management", 3),
        CategoryMeta(CATEGORY_TICKETS, "Tickets", "Ticket creation and management", 4),
        CategoryMeta(CATEGORY_SPRINTS, "Sprints", "Sprint planning and execution", 5),
        CategoryMeta(CATEGORY_LABELS, "Labels", "Project label management", 6),
        CategoryMeta(CATEGORY_MODERATION, "Moderation",
                     "Content moderation for comments and attachments", 7),
    )
}


def get_permissions_by_category() -> dict[str, list[PermissionMeta]]:
    """Group permission metadata by category key (every category present)."""
    grouped: dict[str, list[PermissionMeta]] = {key: [] for key in CATEGORY_METADATA}
    for meta in PERMISSION_METADATA.values():
        grouped[meta.category].append(meta)
    return grouped


def get_sorted_categories_with_permissions() -> list[tuple[CategoryMeta, list[PermissionMeta]]]:
    """Categories in display order, each paired with its permissions."""
    grouped = get_permissions_by_category()
    return [
        (category, grouped[category.key])
        for category in sorted(CATEGORY_METADATA.values(), key=lambda c: c.order)
    ]


# ── Validation / parsing ────────────────────────────────────

def is_valid_permission(value: object) -> bool:
    return isinstance(value, str) and value in _VALID


def parse_permissions(raw: object) -> list[str]:
    """Parse a stored permission list into valid catalog permissions.

    Accepts an already-structured list or the legacy JSON-encoded string.
    Unknown entries are dropped; duplicates collapse (first occurrence wins).
    Malformed input returns [] and logs a warning. This never raises.
    """
    if raw is None or raw == "":
        return []

    value = raw
    if isinstance(raw, (str, bytes, bytearray)):
        if len(raw) > settings.max_permissions_json_size:
            logger.warning(
                f"Permission list exceeds {settings.max_permissions_json_size} bytes, ignoring"
            )
            return []
        try:
            value = json.loads(raw)
        except (ValueError, TypeError, RecursionError):
            logger.warning(f"Ignoring unparsable permission list: {raw[:80]!r}")
            return []

    if not isinstance(value, (list, tuple, set, frozenset)):
        logger.warning(f"Ignoring permission list of type {type(value).__name__}")
        return []

    return list(dict.fromkeys(p for p in value if is_valid_permission(p)))


def serialize_permissions(permissions) -> list[str]:
    """Normalize a permission collection for storage (valid, de-duplicated)."""
    return list(dict.fromkeys(p for p in permissions if is_valid_permission(p)))
