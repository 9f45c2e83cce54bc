"""Pydantic schemas for project roles."""

from datetime import datetime

from pydantic import BaseModel, Field

HEX_COLOR = r"^#[0-9A-Fa-f]{6}$"


class RoleOut(BaseModel):
    id: str
    name: str
    color: str
    description: str | None = None
    permissions: list[str]
    is_default: bool
    position: int
    member_count: int = 0
    created_at: datetime
    updated_at: datetime


class RoleCreate(BaseModel):
    name: str = Field(min_length=1, max_length=50)
    color: str = Field(pattern=HEX_COLOR)
    description: str | None = Field(default=None, max_length=200)
    permissions: list[str] = []


class RoleUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=50)
    color: str | None = Field(default=None, pattern=HEX_COLOR)
    description: str | None = Field(default=None, max_length=200)
    permissions: list[str] | None = None
    position: int | None = Field(default=None, ge=0)


class RoleReorder(BaseModel):
    role_ids: list[str] = Field(min_length=1)
