from pydantic import BaseModel


class UserOut(BaseModel):
    id: str
    email: str
    name: str
    is_system_admin: bool
    is_active: bool

    model_config = {"from_attributes": True}


class ApiKeyOut(BaseModel):
    api_key: str
    key_hint: str
