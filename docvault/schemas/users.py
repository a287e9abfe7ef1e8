from datetime import datetime

from pydantic import BaseModel, EmailStr, Field

from docvault.core.auth import Role
from docvault.schemas.base import CamelModel, NewPassword


class UserOut(CamelModel):
    id: str
    email: str
    first_name: str
    last_name: str
    role: Role
    is_active: bool
    created_at: datetime
    updated_at: datetime


class UserCreateRequest(CamelModel):
    email: EmailStr
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    password: NewPassword
    role: Role = Role.VIEWER
    is_active: bool = True


class UserUpdateRequest(CamelModel):
    email: EmailStr | None = None
    first_name: str | None = Field(default=None, min_length=1, max_length=100)
    last_name: str | None = Field(default=None, min_length=1, max_length=100)
    password: NewPassword | None = None
    role: Role | None = None
    is_active: bool | None = None


class UserDeleted(BaseModel):
    id: str
    deleted: bool


class UserEnvelope(BaseModel):
    success: bool = True
    message: str
    data: UserOut


class UserListEnvelope(BaseModel):
    success: bool = True
    message: str
    data: list[UserOut]
    total: int


class UserDeleteEnvelope(BaseModel):
    success: bool = True
    message: str
    data: UserDeleted
