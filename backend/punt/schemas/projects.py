from datetime import datetime

from pydantic import BaseModel, Field


class ProjectCreate(BaseModel):
    key: str = Field(min_length=2, max_length=10, pattern=r"^[A-Z][A-Z0-9]*$")
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None


class ProjectOut(BaseModel):
    id: str
    key: str
    name: str
    description: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
