from pydantic import BaseModel, EmailStr, Field

from docvault.core.auth import Role
from docvault.schemas.base import CamelModel, NewPassword


class LoginRequest(CamelModel):
    email: EmailStr
    password: str = Field(min_length=1)


class SignupRequest(CamelModel):
    email: EmailStr
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    password: NewPassword


class MessageOut(BaseModel):
    message: str


class IdentityOut(CamelModel):
    role: Role
    first_name: str
    last_name: str


class IdentityEnvelope(BaseModel):
    data: IdentityOut | None = None
