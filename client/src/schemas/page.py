"""Page contracts shared by every list fetch function."""
from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class PageResult(BaseModel, Generic[T]):
    """
    One numbered page of a listing.

    Fetch functions report failures in-band (success=False plus error)
    or by raising; PagedCollection handles both the same way.
    """

    items: list[T] = []
    total: int = 0  # Total count matching the query (before pagination)
    success: bool = True
    error: str | None = None

    @classmethod
    def failure(cls, error: str) -> "PageResult[T]":
        """Build a failed result with no items."""
        return cls(items=[], total=0, success=False, error=error)


class CursorPageResult(BaseModel, Generic[T]):
    """One page of an append-only feed."""

    data: list[T] = []
    has_more: bool = False
    total: int | None = None  # Only the first page's total is used
