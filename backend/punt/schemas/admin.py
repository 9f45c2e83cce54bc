"""Pydantic schemas for system-admin settings."""

from pydantic import BaseModel, Field

from punt.schemas.roles import HEX_COLOR


class DefaultRoleSettings(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=50)
    color: str | None = Field(default=None, pattern=HEX_COLOR)
    description: str | None = Field(default=None, max_length=200)
    permissions: list[str] | None = None
    position: int | None = Field(default=None, ge=0)


class CustomDefaultRole(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    color: str = Field(default="#6b7280", pattern=HEX_COLOR)
    description: str | None = Field(default=None, max_length=200)
    permissions: list[str] = []
    position: int | None = Field(default=None, ge=0)


class RoleSettingsOut(BaseModel):
    default_roles: dict[str, DefaultRoleSettings]
    custom_default_roles: list[CustomDefaultRole]
    available_permissions: list[str]
    role_names: list[str]


class RoleSettingsUpdate(BaseModel):
    default_roles: dict[str, DefaultRoleSettings] = {}
    custom_default_roles: list[CustomDefaultRole] | None = None
