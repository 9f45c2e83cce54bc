"""System-admin settings: the role set provisioned into new projects."""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from punt.auth.deps import require_system_admin
from punt.auth.permissions import ALL_PERMISSIONS, is_valid_permission
from punt.auth.presets import DEFAULT_ROLE_NAMES, OWNER, ROLE_POSITIONS
from punt.database import get_db
from punt.middleware.exceptions import InvalidRequestError
from punt.models.user import User
from punt.schemas.admin import (
    CustomDefaultRole,
    DefaultRoleSettings,
    RoleSettingsOut,
    RoleSettingsUpdate,
)
from punt.services.roles import is_rank_ordered, resolve_role_configs, save_role_settings

logger = logging.getLogger(__name__)

router = APIRouter()


async def _current_settings(db: AsyncSession) -> RoleSettingsOut:
    configs, extras = await resolve_role_configs(db)
    return RoleSettingsOut(
        default_roles={
            preset: DefaultRoleSettings(
                name=c.name,
                color=c.color,
                description=c.description,
                permissions=list(c.permissions),
                position=c.position,
            )
            for preset, c in zip(DEFAULT_ROLE_NAMES, configs)
        },
        custom_default_roles=[
            CustomDefaultRole(
                name=c.name,
                color=c.color,
                description=c.description,
                permissions=list(c.permissions),
                position=c.position,
            )
            for c in extras
        ],
        available_permissions=list(ALL_PERMISSIONS),
        role_names=list(DEFAULT_ROLE_NAMES),
    )


@router.get("/settings/roles", response_model=RoleSettingsOut)
async def get_role_settings(
    _user: User = Depends(require_system_admin),
    db: AsyncSession = Depends(get_db),
):
    return await _current_settings(db)


@router.patch("/settings/roles", response_model=RoleSettingsOut)
async def update_role_settings(
    body: RoleSettingsUpdate,
    user: User = Depends(require_system_admin),
    db: AsyncSession = Depends(get_db),
):
    """Replace the default-role overrides applied to newly created projects.

    Existing projects keep their roles. Owner always keeps every permission.
    """
    unknown = [name for name in body.default_roles if name not in DEFAULT_ROLE_NAMES]
    if unknown:
        raise InvalidRequestError(
            "Unknown default role", error_code="UNKNOWN_DEFAULT_ROLE", details={"roles": unknown}
        )

    requested = [
        p
        for role in [*body.default_roles.values(), *(body.custom_default_roles or [])]
        for p in (role.permissions or [])
    ]
    invalid = sorted({p for p in requested if not is_valid_permission(p)})
    if invalid:
        raise InvalidRequestError(
            "Invalid permissions provided",
            error_code="INVALID_PERMISSIONS",
            details={"invalid": invalid},
        )

    positions = [
        ROLE_POSITIONS[name]
        if body.default_roles.get(name) is None or body.default_roles[name].position is None
        else body.default_roles[name].position
        for name in DEFAULT_ROLE_NAMES
    ]
    if not is_rank_ordered(positions):
        raise InvalidRequestError(
            f"Default roles must keep their rank order ({', '.join(DEFAULT_ROLE_NAMES)})",
            error_code="INVALID_ROLE_ORDER",
            details={"positions": dict(zip(DEFAULT_ROLE_NAMES, positions))},
        )

    await save_role_settings(
        db,
        {
            name: role.model_dump(exclude_none=True)
            for name, role in body.default_roles.items()
        },
        None
        if body.custom_default_roles is None
        else [role.model_dump(exclude_none=True) for role in body.custom_default_roles],
    )
    logger.info(
        f"Default role settings updated by {user.id} "
        f"({OWNER} permissions pinned to the full catalog)"
    )
    return await _current_settings(db)
