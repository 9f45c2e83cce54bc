"""Pydantic schemas for the permission catalog and effective permissions."""

from pydantic import BaseModel


class PermissionMetaOut(BaseModel):
    key: str
    label: str
    description: str
    category: str

    model_config = {"from_attributes": True}


class CategoryOut(BaseModel):
    key: str
    label: str
    description: str
    order: int
    permissions: list[PermissionMetaOut]


class PermissionCatalog(BaseModel):
    permissions: list[str]
    categories: list[CategoryOut]


class RoleSummary(BaseModel):
    id: str
    name: str
    color: str
    description: str | None = None
    is_default: bool
    position: int

    model_config = {"from_attributes": True}


class MyPermissionsResponse(BaseModel):
    permissions: list[str]
    role: RoleSummary
    overrides: list[str]
    is_system_admin: bool


# Virtual role reported for system admins who hold no membership row
SYSTEM_ADMIN_ROLE = RoleSummary(
    id="system-admin",
    name="System Admin",
    color="#ef4444",
    description="System administrator with full access",
    is_default=False,
    position=-1,
)
