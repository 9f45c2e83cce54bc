"""Pydantic schemas for project membership."""

from datetime import datetime

from pydantic import BaseModel

from punt.schemas.permissions import RoleSummary


class MemberUser(BaseModel):
    id: str
    name: str
    email: str

    model_config = {"from_attributes": True}


class MemberOut(BaseModel):
    id: str
    user_id: str
    project_id: str
    role_id: str | None = None
    overrides: list[str]
    user: MemberUser
    role: RoleSummary
    created_at: datetime | None = None
    updated_at: datetime | None = None


class MemberDetail(MemberOut):
    role_permissions: list[str]
    effective_permissions: list[str]


class MemberCreate(BaseModel):
    user_id: str
    role_id: str | None = None


class MemberUpdate(BaseModel):
    role_id: str | None = None
    # Omitted = unchanged, null = clear, list = replace
    overrides: list[str] | None = None
