"""Pydantic schemas for comment endpoints."""
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, field_validator

from schemas.user import UserSummary
from schemas.validation import COMMENT_MAX_LENGTH, COMMENT_MIN_LENGTH


class CommentSort(Enum):
    """Server-side ordering of a project's comments."""

    NEWEST = "newest"
    OLDEST = "oldest"
    POPULAR = "popular"


class Comment(BaseModel):
    """Comment as returned by the API."""

    id: str
    content: str
    author: UserSummary | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    replies_count: int = 0
    likes_count: int = 0
    is_liked: bool = False


class CommentCreate(BaseModel):
    """Schema for posting a comment; content is trimmed before the length check."""

    content: str

    @field_validator("content")
    @classmethod
    def check_content(cls, v: str) -> str:
        """Validate trimmed content length."""
        v = v.strip()
        if len(v) < COMMENT_MIN_LENGTH:
            raise ValueError("Comment cannot be empty")
        if len(v) > COMMENT_MAX_LENGTH:
            raise ValueError(
                f"Comment exceeds maximum length of {COMMENT_MAX_LENGTH:,} characters "
                f"(got {len(v):,} characters)",
            )
        return v


class CommentListResponse(BaseModel):
    """Schema for one page of comments from GET /comments/project/:id."""

    comments: list[Comment] = []
    has_more: bool = False
    total: int | None = None
