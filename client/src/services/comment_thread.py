"""Comment feed of one project, with posting and likes."""
import asyncio
import logging
from collections.abc import Sequence
from urllib.parse import quote, urlencode

from core.http_client import HttpClient, HttpError, unwrap_data, unwrap_item
from core.retry_config import DEFAULT_RETRY_POLICY, RetryPolicy
from schemas.comment import Comment, CommentCreate, CommentListResponse, CommentSort
from schemas.page import CursorPageResult
from schemas.validation import is_valid_identifier
from services.infinite_collection import InfiniteCollection, Sleep

logger = logging.getLogger(__name__)

DEFAULT_COMMENTS_PER_PAGE = 10


class InvalidProjectIdError(ValueError):
    """Raised when a comment thread is opened without a usable project id."""

    pass


class CommentThread:
    """
    Comments of one project, newest/oldest/popular first.

    Mutations are not applied locally: after the server accepts a new
    comment or a like, the whole feed is refetched.
    """

    def __init__(
        self,
        http: HttpClient,
        project_id: str,
        sort: CommentSort = CommentSort.NEWEST,
        *,
        page_size: int = DEFAULT_COMMENTS_PER_PAGE,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        initial_comments: Sequence[Comment] | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if not is_valid_identifier(project_id):
            raise InvalidProjectIdError(
                f"A valid project id is required (got {project_id!r})",
            )
        self._http = http
        self._page_size = page_size
        self.project_id = project_id
        self.sort = sort
        self.is_creating_comment = False
        self.mutation_error: str | None = None
        self.collection: InfiniteCollection[Comment] = InfiniteCollection(
            self._fetch_page,
            query_key=self.query_key,
            retry_policy=retry_policy,
            initial_items=initial_comments,
            sleep=sleep,
        )

    @property
    def query_key(self) -> tuple[str, str, str]:
        """Identity of the feed: project and sort order."""
        return ("comments", self.project_id, self.sort.value)

    @property
    def items(self) -> list[Comment]:
        """Loaded comments in server order."""
        return self.collection.items

    @property
    def total(self) -> int:
        """Total number of comments on the project."""
        return self.collection.total

    @property
    def has_more(self) -> bool:
        """Whether more comments can be loaded."""
        return self.collection.has_more

    @property
    def error(self) -> str | None:
        """Error of the last feed fetch, if it failed."""
        return self.collection.error

    async def load(self) -> None:
        """Load the first page of comments."""
        await self.collection.load()

    async def fetch_next_page(self) -> None:
        """Load the next page of comments, if any."""
        await self.collection.fetch_next_page()

    async def refresh(self) -> None:
        """Refetch every loaded page."""
        await self.collection.refetch()

    async def set_sort(self, sort: CommentSort) -> None:
        """Switch sort order; pagination restarts from the first page."""
        if sort == self.sort:
            return
        self.sort = sort
        await self.collection.set_query(self.query_key)

    async def create_comment(self, content: str) -> Comment | None:
        """
        Post a comment, then refetch the feed.

        Raises:
            pydantic.ValidationError: If content is empty or too long (no request made).

        Returns:
            The created comment, or None if the API rejected it (see mutation_error).
        """
        form = CommentCreate(content=content)
        self.is_creating_comment = True
        self.mutation_error = None
        try:
            response = await self._http.post(
                f"/comments/project/{quote(self.project_id)}", form.model_dump(),
            )
        except HttpError as e:
            logger.warning(
                "comment_create_failed",
                extra={"project_id": self.project_id, "status": e.status, "error": str(e)},
            )
            self.mutation_error = str(e)
            return None
        finally:
            self.is_creating_comment = False

        await self.refresh()
        return _parse_created_comment(response.data)

    async def toggle_like(self, comment_id: str) -> bool:
        """
        Like or unlike a comment, then refetch the feed.

        Returns:
            True if the API accepted the toggle.
        """
        self.mutation_error = None
        try:
            await self._http.post(f"/comments/{quote(comment_id)}/like")
        except HttpError as e:
            logger.warning(
                "comment_like_failed",
                extra={"comment_id": comment_id, "status": e.status, "error": str(e)},
            )
            self.mutation_error = str(e)
            return False
        await self.refresh()
        return True

    async def _fetch_page(self, page_index: int) -> CursorPageResult[Comment]:
        # The API counts pages from 1
        params = urlencode({
            "page": page_index + 1,
            "limit": self._page_size,
            "sort": self.sort.value,
        })
        response = await self._http.get(f"/comments/project/{quote(self.project_id)}?{params}")
        body = CommentListResponse.model_validate(unwrap_data(response.data))
        return CursorPageResult(data=body.comments, has_more=body.has_more, total=body.total)


def _parse_created_comment(data: object) -> Comment | None:
    try:
        return Comment.model_validate(unwrap_item(data, "comment"))
    except ValueError:
        # Creation succeeded; the refetched feed holds the comment either way
        return None
