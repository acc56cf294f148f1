"""Auth-related Pydantic schemas."""

from pydantic import BaseModel, EmailStr, Field

from billing.constants import TOKEN_TYPE
from billing.schemas.common import CamelModel


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    name: str | None = Field(None, max_length=128)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = TOKEN_TYPE


class RegisterResponse(BaseModel):
    id: str


class UserInfo(CamelModel):
    id: str
    email: str
    name: str | None = None
