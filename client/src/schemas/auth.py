"""Pydantic schemas for authentication endpoints."""
from pydantic import BaseModel, field_validator

from schemas.user import User
from schemas.validation import (
    validate_email,
    validate_full_name,
    validate_password,
    validate_username,
)


class SignInRequest(BaseModel):
    """Schema for POST /auth/login."""

    email: str
    password: str

    @field_validator("email")
    @classmethod
    def check_email(cls, v: str) -> str:
        """Validate email format."""
        return validate_email(v)

    @field_validator("password")
    @classmethod
    def check_password(cls, v: str) -> str:
        """Validate password length."""
        return validate_password(v)


class SignUpRequest(SignInRequest):
    """Schema for POST /auth/register."""

    full_name: str | None = None
    username: str | None = None

    @field_validator("full_name")
    @classmethod
    def check_full_name(cls, v: str | None) -> str | None:
        """Validate full name if provided."""
        return validate_full_name(v)

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str | None) -> str | None:
        """Validate username if provided."""
        return validate_username(v)


class SessionTokens(BaseModel):
    """Tokens issued on login."""

    access_token: str
    refresh_token: str | None = None


class LoginResponse(BaseModel):
    """Schema for the POST /auth/login response body."""

    user: User
    session: SessionTokens
