"""Pydantic schemas for ps_gateway: customer accounts and tokens.

All responses are wrapped in ApiResponse at the router layer.
"""

import re

from pydantic import BaseModel, EmailStr, Field, field_validator

from src.ps_gateway.user.db_models import UserModel


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=64, pattern=r"^[a-zA-Z0-9_]+$")
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    full_name: str | None = Field(None, max_length=120)
    # Couriers (InPost / DPD) need a reachable number for delivery notices
    phone: str | None = Field(None, pattern=r"^\+?[0-9 ]{7,20}$")

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("password")
    @classmethod
    def password_complexity(cls, v: str) -> str:
        if not (re.search(r"[A-Z]", v) and re.search(r"[a-z]", v) and re.search(r"\d", v)):
            raise ValueError("Password needs an uppercase letter, a lowercase letter and a digit")
        return v


class LoginRequest(BaseModel):
    username: str
    password: str


class RefreshRequest(BaseModel):
    refresh_token: str


class UserInfo(BaseModel):
    user_id: str
    username: str
    email: str
    role: str
    full_name: str | None = None
    phone: str | None = None

    @classmethod
    def from_model(cls, user: UserModel) -> "UserInfo":
        return cls(
            user_id=str(user.id),
            username=user.username,
            email=user.email,
            role=user.role,
            full_name=user.full_name,
            phone=user.phone,
        )


class RegisterResponse(UserInfo):
    created_at: str


class LoginResponse(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "Bearer"
    expires_in: int
    user: UserInfo


class RefreshResponse(BaseModel):
    access_token: str
    expires_in: int
