from datetime import datetime
from typing import Literal, Optional

from pydantic import EmailStr, Field

from .base import CamelModel


Role = Literal["client", "owner", "admin", "technician"]


class RegisterRequest(CamelModel):
    username: str = Field(min_length=3)
    password: str = Field(min_length=6)
    name: str = Field(min_length=1)
    email: EmailStr
    phone: str = Field(min_length=1)


class LoginRequest(CamelModel):
    username: str
    password: str


class ChangePasswordRequest(CamelModel):
    current_password: str
    new_password: str = Field(min_length=6)


class ResetPasswordRequest(CamelModel):
    user_id: int
    new_password: str = Field(min_length=6)


class UserResponse(CamelModel):
    id: int
    username: str
    name: str
    email: str
    phone: str
    role: str
    is_active: bool = True
    created_at: Optional[datetime] = None


class UserUpdate(CamelModel):
    name: Optional[str] = None
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    role: Optional[Role] = None
    is_active: Optional[bool] = None


class TokenResponse(CamelModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse
