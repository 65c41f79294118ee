"""
Numbered-page list controllers.

PagedCollection drives its own fetch function; ControlledPagedCollection
only mirrors state pushed by its owner and reports page/search changes
back through callbacks. Both share the pagination math and the search
debounce.
"""
import asyncio
import inspect
import logging
import math
from collections.abc import Awaitable, Callable, Coroutine, Sequence
from enum import Enum
from typing import Any, Generic, TypeVar

from core.cache import KeyValueCache
from core.events import Event, EventBus, EventType
from schemas.page import PageResult

logger = logging.getLogger(__name__)

T = TypeVar("T")

ELLIPSIS = "..."
MAX_VISIBLE_PAGES = 5
DEFAULT_PAGE_SIZE = 10
DEFAULT_DEBOUNCE_SECONDS = 0.5
DEFAULT_ERROR_MESSAGE = "Failed to load data"


class CollectionState(Enum):
    """Load state of a list controller."""

    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERRORED = "errored"


def calculate_total_pages(total: int, page_size: int) -> int:
    """Number of pages needed for total items."""
    if page_size <= 0:
        return 0
    return math.ceil(total / page_size)


def page_numbers(current_page: int, total_pages: int) -> list[int | str]:
    """
    Page links to display, collapsed with ellipses beyond five pages.

    Near the start: 1 2 3 4 ... N. Near the end: 1 ... N-3 N-2 N-1 N.
    Elsewhere: 1 ... c-1 c c+1 ... N.
    """
    if total_pages <= MAX_VISIBLE_PAGES:
        return list(range(1, total_pages + 1))
    if current_page <= 3:
        return [1, 2, 3, 4, ELLIPSIS, total_pages]
    if current_page >= total_pages - 2:
        return [1, ELLIPSIS, *range(total_pages - 3, total_pages + 1)]
    return [
        1,
        ELLIPSIS,
        current_page - 1,
        current_page,
        current_page + 1,
        ELLIPSIS,
        total_pages,
    ]


class _Debouncer:
    """Runs the latest scheduled callback after a quiet period."""

    def __init__(self, delay: float) -> None:
        self._delay = delay
        self._pending: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()

    @property
    def is_pending(self) -> bool:
        """True while a callback is still waiting out the delay."""
        return self._pending is not None

    def schedule(self, callback: Callable[[], Coroutine[Any, Any, None]]) -> None:
        """Run callback after the delay unless rescheduled in the meantime."""
        self.cancel()
        self._pending = self._spawn(self._wait_then_run(callback))

    def run_now(self, callback: Callable[[], Coroutine[Any, Any, None]]) -> None:
        """Drop any pending callback and run this one immediately."""
        self.cancel()
        self._spawn(callback())

    def cancel(self) -> None:
        """Cancel the pending callback, if it is still waiting."""
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    async def wait(self) -> None:
        """Wait until no callback is waiting or running."""
        while True:
            # Finished tasks can linger until their done-callback runs
            pending = [task for task in self._tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def _wait_then_run(self, callback: Callable[[], Coroutine[Any, Any, None]]) -> None:
        await asyncio.sleep(self._delay)
        # Past this point the callback is committed and no longer cancellable
        self._pending = None
        await callback()

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task


class _PaginationMixin:
    """Derived pagination values over page, page_size and total."""

    page: int
    page_size: int
    total: int

    @property
    def total_pages(self) -> int:
        """ceil(total / page_size)."""
        return calculate_total_pages(self.total, self.page_size)

    @property
    def has_next(self) -> bool:
        """True if a later page exists."""
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        """True if an earlier page exists."""
        return self.page > 1

    @property
    def visible_range(self) -> tuple[int, int]:
        """One-based positions of the first and last item on the current page."""
        if self.total == 0:
            return (0, 0)
        start = (self.page - 1) * self.page_size + 1
        return (start, min(self.page * self.page_size, self.total))

    def page_numbers(self) -> list[int | str]:
        """Page links to display for the current page."""
        return page_numbers(self.page, self.total_pages)


class PagedCollection(_PaginationMixin, Generic[T]):
    """
    Self-fetching paginated list with debounced search.

    Every trigger (page, page size, search, refetch) issues a new fetch
    tagged with a generation number. Only the latest generation's result
    is applied; earlier fetches still complete but their results are
    dropped. Exceptions from the fetch function never escape: they become
    the ERRORED state.

    When a cache and namespace are supplied, unfiltered first pages are
    served from and mirrored into the cache.
    """

    def __init__(
        self,
        fetch_function: Callable[[int, int, str | None], Awaitable[PageResult[T]]],
        *,
        page_size: int = DEFAULT_PAGE_SIZE,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        cache: KeyValueCache | None = None,
        cache_namespace: str | None = None,
        cache_ttl: float | None = None,
        transform: Callable[[list[T]], list[T]] | None = None,
        page_size_options: Sequence[int] | None = None,
    ) -> None:
        self._fetch_function = fetch_function
        self.page_size_options = list(page_size_options) if page_size_options else None
        self._transform = transform
        self._cache = cache
        self._cache_namespace = cache_namespace
        self._cache_ttl = cache_ttl
        self._debouncer = _Debouncer(debounce_seconds)
        self._generation = 0
        self._unsubscribers: list[Callable[[], None]] = []

        self.page = 1
        self.page_size = page_size
        self.search = ""
        self.search_input = ""
        self.refetch_key: Any = None
        self.items: list[T] = []
        self.total = 0
        self.error: str | None = None
        self.state = CollectionState.IDLE

    @property
    def is_loading(self) -> bool:
        """True while the latest fetch is in flight."""
        return self.state == CollectionState.LOADING

    @property
    def is_empty(self) -> bool:
        """True once loaded with no items."""
        return self.state == CollectionState.READY and not self.items

    async def load(self) -> None:
        """Fetch the current page."""
        await self._fetch()

    async def set_page(self, page: int) -> None:
        """Navigate to a page (one-based)."""
        if page < 1:
            raise ValueError(f"Page must be >= 1 (got {page})")
        self.page = page
        await self._fetch()

    async def next_page(self) -> None:
        """Navigate forward, if possible."""
        if self.has_next:
            await self.set_page(self.page + 1)

    async def previous_page(self) -> None:
        """Navigate back, if possible."""
        if self.has_prev:
            await self.set_page(self.page - 1)

    async def set_page_size(self, page_size: int) -> None:
        """Change the page size and go back to the first page."""
        if page_size < 1:
            raise ValueError(f"Page size must be >= 1 (got {page_size})")
        if self.page_size_options and page_size not in self.page_size_options:
            raise ValueError(
                f"Page size must be one of {self.page_size_options} (got {page_size})",
            )
        self.page_size = page_size
        self.page = 1
        await self._fetch()

    def set_search(self, text: str) -> None:
        """
        Update the search text.

        Non-empty text is applied after the debounce delay with no further
        input, resetting to page 1. Clearing the text applies immediately.
        Must be called from a running event loop; use wait_until_settled()
        to await the resulting fetch.
        """
        self.search_input = text
        query = text.strip()
        if not query:
            self._debouncer.run_now(self._apply_search_factory(""))
            return
        self._debouncer.schedule(self._apply_search_factory(query))

    async def clear_search(self) -> None:
        """Clear the search text and refetch the first page."""
        self.set_search("")
        await self.wait_until_settled()

    async def refetch(self, refetch_key: Any = None) -> None:
        """
        Refetch the current page from the API, bypassing the cache.

        Used after create/update/delete elsewhere; refetch_key records what
        triggered it.
        """
        self.refetch_key = refetch_key
        await self._fetch(use_cache=False)

    async def retry(self) -> None:
        """Retry after an error."""
        await self.refetch(self.refetch_key)

    async def wait_until_settled(self) -> None:
        """Wait for pending debounced searches and the fetches they started."""
        await self._debouncer.wait()

    def refetch_on(self, bus: EventBus, *event_types: EventType) -> Callable[[], None]:
        """
        Refetch whenever one of the given events is published.

        Returns:
            A callable removing every subscription made here.
        """
        async def handler(event: Event) -> None:
            await self.refetch(event.type.value)

        unsubscribers = [bus.subscribe(event_type, handler) for event_type in event_types]

        def unsubscribe() -> None:
            for unsubscribe_one in unsubscribers:
                unsubscribe_one()

        self._unsubscribers.append(unsubscribe)
        return unsubscribe

    def close(self) -> None:
        """Drop every event subscription and any pending debounced search."""
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers.clear()
        self._debouncer.cancel()

    def _apply_search_factory(self, query: str) -> Callable[[], Coroutine[Any, Any, None]]:
        async def apply() -> None:
            self.search = query
            self.page = 1
            await self._fetch()

        return apply

    def _cache_key(self, page: int, limit: int, search: str | None) -> str | None:
        # Searches and later pages are never cached
        if self._cache is None or self._cache_namespace is None:
            return None
        if search or page != 1:
            return None
        return f"{self._cache_namespace}-page={page}&limit={limit}"

    async def _fetch(self, use_cache: bool = True) -> None:
        self._generation += 1
        generation = self._generation
        page, limit, search = self.page, self.page_size, self.search or None

        cache_key = self._cache_key(page, limit, search)
        if cache_key is not None and use_cache:
            cached = self._cache.get(cache_key)
            if cached is not None:
                self._set_ready(list(cached["items"]), cached["total"])
                return

        self.state = CollectionState.LOADING
        self.error = None
        try:
            result = await self._fetch_function(page, limit, search)
        except Exception as e:
            if generation != self._generation:
                return
            logger.warning(
                "paged_fetch_failed",
                extra={"page": page, "limit": limit, "search": search, "error": str(e)},
            )
            self._set_error(str(e) or DEFAULT_ERROR_MESSAGE)
            return

        if generation != self._generation:
            logger.debug("paged_fetch_discarded", extra={"page": page, "generation": generation})
            return

        if not result.success:
            logger.warning(
                "paged_fetch_failed",
                extra={"page": page, "limit": limit, "search": search, "error": result.error},
            )
            self._set_error(result.error or DEFAULT_ERROR_MESSAGE)
            return

        items = self._transform(result.items) if self._transform else list(result.items)
        self._set_ready(items, result.total)
        if cache_key is not None:
            self._cache.set(
                cache_key, {"items": list(items), "total": result.total}, self._cache_ttl,
            )

    def _set_ready(self, items: list[T], total: int) -> None:
        self.items = items
        self.total = total
        self.error = None
        self.state = CollectionState.READY

    def _set_error(self, message: str) -> None:
        self.items = []
        self.total = 0
        self.error = message
        self.state = CollectionState.ERRORED


PageChangeCallback = Callable[[int, int], Awaitable[None] | None]
SearchCallback = Callable[[str], Awaitable[None] | None]


class ControlledPagedCollection(_PaginationMixin, Generic[T]):
    """
    Paginated list whose data is owned by the caller.

    The owner pushes items/total/page/loading/error with update() and is
    told about navigation and (debounced) search through callbacks.
    """

    def __init__(
        self,
        *,
        on_page_change: PageChangeCallback | None = None,
        on_search: SearchCallback | None = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
    ) -> None:
        self._on_page_change = on_page_change
        self._on_search = on_search
        self._debouncer = _Debouncer(debounce_seconds)

        self.page = 1
        self.page_size = page_size
        self.total = 0
        self.items: list[T] = []
        self.loading = False
        self.error: str | None = None
        self.search = ""  # Last search reported to the owner
        self.search_input = ""

    def update(
        self,
        *,
        items: Sequence[T] | None = None,
        total: int | None = None,
        page: int | None = None,
        loading: bool | None = None,
        error: str | None = None,
    ) -> None:
        """Mirror state owned by the caller; omitted values are kept, error is always replaced."""
        if items is not None:
            self.items = list(items)
        if total is not None:
            self.total = total
        if page is not None:
            self.page = page
        if loading is not None:
            self.loading = loading
        self.error = error

    async def set_page(self, page: int) -> None:
        """Ask the owner to show another page."""
        await _maybe_await(self._on_page_change, page, self.page_size)

    async def next_page(self) -> None:
        """Ask for the next page, if any."""
        if self.has_next:
            await self.set_page(self.page + 1)

    async def previous_page(self) -> None:
        """Ask for the previous page, if any."""
        if self.has_prev:
            await self.set_page(self.page - 1)

    async def set_page_size(self, page_size: int) -> None:
        """Ask the owner for page 1 at a new page size."""
        if page_size < 1:
            raise ValueError(f"Page size must be >= 1 (got {page_size})")
        self.page_size = page_size
        await _maybe_await(self._on_page_change, 1, page_size)

    def set_search(self, text: str) -> None:
        """Report trimmed search text to the owner after the debounce; clearing reports at once."""
        self.search_input = text
        query = text.strip()
        if not query:
            self._debouncer.run_now(self._notify_search_factory(""))
            return
        self._debouncer.schedule(self._notify_search_factory(query))

    async def retry_search(self) -> None:
        """Report the current search text again, e.g. after an error."""
        query = self.search_input.strip()
        if query:
            self._debouncer.cancel()
            await self._notify_search_factory(query, force=True)()

    async def wait_until_settled(self) -> None:
        """Wait for pending debounced search notifications."""
        await self._debouncer.wait()

    def _notify_search_factory(
        self, query: str, force: bool = False,
    ) -> Callable[[], Coroutine[Any, Any, None]]:
        async def notify() -> None:
            if query == self.search and not force:
                return
            self.search = query
            await _maybe_await(self._on_search, query)

        return notify


async def _maybe_await(callback: Callable[..., Any] | None, *args: Any) -> None:
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result
