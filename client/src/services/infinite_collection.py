"""Append-only feed controller for scroll-to-load lists."""
import asyncio
import logging
from collections.abc import Awaitable, Callable, Hashable, Sequence
from typing import Generic, TypeVar

from tenacity import AsyncRetrying, RetryCallState

from core.retry_config import DEFAULT_RETRY_POLICY, RetryPolicy
from schemas.page import CursorPageResult
from services.paged_collection import DEFAULT_ERROR_MESSAGE, CollectionState

logger = logging.getLogger(__name__)

T = TypeVar("T")

Sleep = Callable[[float], Awaitable[None]]


class InfiniteCollection(Generic[T]):
    """
    Accumulates zero-based pages of one query into a single ordered list.

    The query identity (query_key) scopes the accumulated pages: changing
    it discards them and starts again from page 0. Results that arrive for
    a superseded identity or load are dropped. Failed requests are retried
    according to the retry policy; exhausted failures set `error` instead
    of raising.
    """

    def __init__(
        self,
        fetch_function: Callable[[int], Awaitable[CursorPageResult[T]]],
        *,
        query_key: Hashable,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        initial_items: Sequence[T] | None = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._fetch_function = fetch_function
        self._retry_policy = retry_policy
        self._sleep = sleep
        self._generation = 0
        self._in_flight_generation: int | None = None

        self.query_key = query_key
        self.pages: list[CursorPageResult[T]] = []
        self.error: str | None = None
        self.state = CollectionState.IDLE
        self.is_fetching_next_page = False

        if initial_items:
            self.pages = [
                CursorPageResult(data=list(initial_items), has_more=False, total=len(initial_items)),
            ]
            self.state = CollectionState.READY

    @property
    def items(self) -> list[T]:
        """Every loaded item, in server order."""
        return [item for page in self.pages for item in page.data]

    @property
    def total(self) -> int:
        """Total reported by the first page (later pages are ignored)."""
        if not self.pages:
            return 0
        return self.pages[0].total or 0

    @property
    def has_more(self) -> bool:
        """Whether the most recently fetched page reported more data."""
        return bool(self.pages) and self.pages[-1].has_more

    @property
    def is_loading(self) -> bool:
        """True during a load with nothing to show yet."""
        return self.state == CollectionState.LOADING and not self.pages

    @property
    def is_fetching(self) -> bool:
        """True while any request for the current query is in flight."""
        return self._in_flight_generation == self._generation

    async def load(self) -> None:
        """Fetch page 0, replacing whatever was loaded."""
        generation = self._begin()
        try:
            page = await self._fetch_with_retry(0)
        except Exception as e:
            self._finish_with_error(generation, e, page_index=0)
            return
        finally:
            self._end(generation)
        if generation == self._generation:
            self.pages = [page]
            self.state = CollectionState.READY

    async def fetch_next_page(self) -> None:
        """Append the next page; no-op while a request is in flight or nothing is left."""
        if self.is_fetching or not self.has_more:
            return
        page_index = len(self.pages)
        generation = self._generation
        self._in_flight_generation = generation
        self.is_fetching_next_page = True
        self.error = None
        try:
            page = await self._fetch_with_retry(page_index)
        except Exception as e:
            self._finish_with_error(generation, e, page_index=page_index)
            return
        finally:
            if self._in_flight_generation == generation:
                self._in_flight_generation = None
                self.is_fetching_next_page = False
        if generation == self._generation:
            self.pages.append(page)
            self.state = CollectionState.READY

    async def refetch(self) -> None:
        """
        Re-fetch every loaded page in order and replace the list.

        Stops early if a page no longer reports more data. On failure the
        previously loaded pages are kept.
        """
        page_count = max(len(self.pages), 1)
        generation = self._begin()
        refreshed: list[CursorPageResult[T]] = []
        try:
            for page_index in range(page_count):
                page = await self._fetch_with_retry(page_index)
                refreshed.append(page)
                if not page.has_more:
                    break
        except Exception as e:
            self._finish_with_error(generation, e, page_index=len(refreshed))
            return
        finally:
            self._end(generation)
        if generation == self._generation:
            self.pages = refreshed
            self.state = CollectionState.READY

    async def set_query(
        self,
        query_key: Hashable,
        fetch_function: Callable[[int], Awaitable[CursorPageResult[T]]] | None = None,
    ) -> None:
        """
        Switch to another query identity and load its first page.

        Accumulated pages of the previous identity are discarded.
        """
        if query_key == self.query_key and fetch_function is None:
            return
        self.query_key = query_key
        if fetch_function is not None:
            self._fetch_function = fetch_function
        self.pages = []
        self.state = CollectionState.IDLE
        await self.load()

    def cancel_pending(self) -> None:
        """Drop the result of any request in flight for the current query."""
        self._generation += 1
        self._in_flight_generation = None
        self.is_fetching_next_page = False
        if self.state == CollectionState.LOADING:
            self.state = CollectionState.READY if self.pages else CollectionState.IDLE

    def snapshot(self) -> list[CursorPageResult[T]]:
        """Copy of the loaded pages, for restoring after a failed local edit."""
        return [page.model_copy(update={"data": list(page.data)}) for page in self.pages]

    def restore(self, pages: list[CursorPageResult[T]]) -> None:
        """Replace loaded pages with a previous snapshot."""
        self.pages = pages

    def map_items(self, update: Callable[[T], T]) -> None:
        """Apply a local edit to every loaded item."""
        self.pages = [
            page.model_copy(update={"data": [update(item) for item in page.data]})
            for page in self.pages
        ]

    def _begin(self) -> int:
        self._generation += 1
        self._in_flight_generation = self._generation
        self.state = CollectionState.LOADING
        self.is_fetching_next_page = False
        self.error = None
        return self._generation

    def _end(self, generation: int) -> None:
        if self._in_flight_generation == generation:
            self._in_flight_generation = None

    def _finish_with_error(self, generation: int, error: Exception, page_index: int) -> None:
        if generation != self._generation:
            return
        logger.warning(
            "feed_fetch_failed",
            extra={"query_key": repr(self.query_key), "page_index": page_index, "error": str(error)},
        )
        self.error = str(error) or DEFAULT_ERROR_MESSAGE
        self.state = CollectionState.ERRORED

    async def _fetch_with_retry(self, page_index: int) -> CursorPageResult[T]:
        policy = self._retry_policy

        def should_retry(retry_state: RetryCallState) -> bool:
            error = retry_state.outcome.exception() if retry_state.outcome else None
            return isinstance(error, Exception) and policy.should_retry(
                error, retry_state.attempt_number,
            )

        def log_retry(retry_state: RetryCallState) -> None:
            logger.info(
                "feed_fetch_retry",
                extra={
                    "page_index": page_index,
                    "attempt": retry_state.attempt_number,
                    "delay": retry_state.upcoming_sleep,
                },
            )

        retrying = AsyncRetrying(
            retry=should_retry,
            wait=lambda retry_state: policy.delay(retry_state.attempt_number - 1),
            before_sleep=log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        return await retrying(self._fetch_function, page_index)
