"""Pydantic schemas for project endpoints."""
from datetime import datetime

from pydantic import BaseModel, HttpUrl, field_validator

from schemas.user import UserSummary
from schemas.validation import (
    PROJECT_DESCRIPTION_MIN_LENGTH,
    PROJECT_TITLE_MIN_LENGTH,
    blank_to_none,
    normalize_tech_stack,
)


def validate_title(title: str) -> str:
    """Validate and trim a project title."""
    title = title.strip()
    if len(title) < PROJECT_TITLE_MIN_LENGTH:
        raise ValueError(f"Title must be at least {PROJECT_TITLE_MIN_LENGTH} characters")
    return title


def validate_description(description: str) -> str:
    """Validate and trim a project description."""
    description = description.strip()
    if len(description) < PROJECT_DESCRIPTION_MIN_LENGTH:
        raise ValueError(
            f"Description must be at least {PROJECT_DESCRIPTION_MIN_LENGTH} characters",
        )
    return description


def validate_tech_stack(tech_stack: list[str]) -> list[str]:
    """Normalize the tech stack and require at least one technology."""
    normalized = normalize_tech_stack(tech_stack)
    if not normalized:
        raise ValueError("Add at least one technology")
    return normalized


class Project(BaseModel):
    """Project as returned by the API."""

    id: str
    user_id: str
    title: str
    description: str
    demo_url: str | None = None
    github_url: str | None = None
    tech_stack: list[str] = []
    image_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    author: UserSummary | None = None


class ProjectCreate(BaseModel):
    """Schema for creating a new project."""

    title: str
    description: str
    # HttpUrl normalizes root domains with trailing slash (example.com -> example.com/)
    # but preserves paths as-is (example.com/page stays example.com/page)
    demo_url: HttpUrl | None = None
    github_url: HttpUrl | None = None
    tech_stack: list[str]
    image_url: HttpUrl | None = None

    @field_validator("demo_url", "github_url", "image_url", mode="before")
    @classmethod
    def empty_url_is_none(cls, v: str | None) -> str | None:
        """Treat empty form fields as unset."""
        return blank_to_none(v)

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str) -> str:
        """Validate title length."""
        return validate_title(v)

    @field_validator("description")
    @classmethod
    def check_description(cls, v: str) -> str:
        """Validate description length."""
        return validate_description(v)

    @field_validator("tech_stack")
    @classmethod
    def check_tech_stack(cls, v: list[str]) -> list[str]:
        """Normalize and require the tech stack."""
        return validate_tech_stack(v)


class ProjectUpdate(BaseModel):
    """Schema for updating an existing project; unset fields are left untouched."""

    # See ProjectCreate for HttpUrl normalization behavior
    title: str | None = None
    description: str | None = None
    demo_url: HttpUrl | None = None
    github_url: HttpUrl | None = None
    tech_stack: list[str] | None = None
    image_url: HttpUrl | None = None

    @field_validator("demo_url", "github_url", "image_url", mode="before")
    @classmethod
    def empty_url_is_none(cls, v: str | None) -> str | None:
        """Treat empty form fields as unset."""
        return blank_to_none(v)

    @field_validator("title")
    @classmethod
    def check_title(cls, v: str | None) -> str | None:
        """Validate title length if provided."""
        if v is None:
            return None
        return validate_title(v)

    @field_validator("description")
    @classmethod
    def check_description(cls, v: str | None) -> str | None:
        """Validate description length if provided."""
        if v is None:
            return None
        return validate_description(v)

    @field_validator("tech_stack")
    @classmethod
    def check_tech_stack(cls, v: list[str] | None) -> list[str] | None:
        """Normalize and require the tech stack if provided."""
        if v is None:
            return None
        return validate_tech_stack(v)
