"""Pydantic schemas for users, profiles and profile edits."""
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, HttpUrl, field_validator

from schemas.validation import blank_to_none, validate_full_name, validate_username

Role = Literal["user", "admin"]


def normalize_role(role: str | None) -> str:
    """Lowercase and trim a role, treating anything unknown as 'user'."""
    normalized = (role or "").strip().lower()
    return normalized if normalized in ("user", "admin") else "user"


class UserSummary(BaseModel):
    """Partial user embedded in projects and comments as the author."""

    id: str
    full_name: str | None = None
    username: str | None = None
    avatar_url: str | None = None

    @property
    def display_name(self) -> str:
        """Best available human-readable name."""
        return self.full_name or self.username or "Anonymous"


class User(UserSummary):
    """Full user record as returned by the API."""

    email: str = ""  # Public profiles do not expose the email
    bio: str | None = None
    website: str | None = None
    github_url: str | None = None
    linkedin_url: str | None = None
    role: Role = "user"
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @field_validator("role", mode="before")
    @classmethod
    def check_role(cls, v: str | None) -> str:
        """Normalize role casing and whitespace."""
        return normalize_role(v)

    @property
    def is_admin(self) -> bool:
        """True when the user has the admin role."""
        return self.role == "admin"


class ProfileUpdate(BaseModel):
    """Schema for a user editing their own profile."""

    # See ProjectCreate for HttpUrl normalization behavior
    full_name: str | None = None
    username: str | None = None
    avatar_url: HttpUrl | None = None
    bio: str | None = None
    website: HttpUrl | None = None
    github_url: HttpUrl | None = None
    linkedin_url: HttpUrl | None = None

    @field_validator(
        "avatar_url", "website", "github_url", "linkedin_url", mode="before",
    )
    @classmethod
    def empty_url_is_none(cls, v: str | None) -> str | None:
        """Treat empty form fields as unset."""
        return blank_to_none(v)

    @field_validator("full_name")
    @classmethod
    def check_full_name(cls, v: str | None) -> str | None:
        """Validate full name length."""
        return validate_full_name(v)

    @field_validator("username")
    @classmethod
    def check_username(cls, v: str | None) -> str | None:
        """Validate username format."""
        return validate_username(v)


class AdminUserUpdate(ProfileUpdate):
    """Schema for an admin editing any user, including email and role."""

    email: str | None = None
    role: Role | None = None

    @field_validator("role", mode="before")
    @classmethod
    def check_role(cls, v: str | None) -> str | None:
        """Normalize role if provided."""
        if v is None:
            return None
        normalized = v.strip().lower()
        if normalized not in ("user", "admin"):
            raise ValueError(f"Invalid role: '{v}'. Use 'user' or 'admin'.")
        return normalized
