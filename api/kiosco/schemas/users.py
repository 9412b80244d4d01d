from datetime import datetime

from pydantic import BaseModel, Field

from kiosco.schemas.auth import Role


class UserCreateRequest(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=6)
    full_name: str = Field(min_length=1, max_length=250)
    role: Role = Role.SELLER


class UserUpdateRequest(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    full_name: str = Field(min_length=1, max_length=250)
    role: Role


class BootstrapRequest(BaseModel):
    username: str = Field(min_length=1, max_length=100)
    password: str = Field(min_length=6)
    full_name: str = "Admin"


class UserOut(BaseModel):
    id: str
    username: str
    email: str
    full_name: str
    role: Role
    is_active: bool
    created_at: datetime
    last_login_at: datetime | None
