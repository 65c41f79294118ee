"""Wiring of settings, storage, HTTP, session and services into one client."""
import logging
from dataclasses import dataclass

import httpx

from core.cache import KeyValueCache
from core.config import Settings, get_settings
from core.events import EventBus, EventType
from core.http_client import HttpClient
from core.session import FileTokenStorage, SessionStore, TokenStorage
from schemas.comment import CommentSort
from schemas.project import Project
from schemas.user import User
from services.comment_thread import CommentThread
from services.paged_collection import PagedCollection
from services.project_service import CACHE_NAMESPACE, ProjectService
from services.user_service import UserService

logger = logging.getLogger(__name__)

PROJECT_EVENTS = (
    EventType.PROJECT_CREATED,
    EventType.PROJECT_UPDATED,
    EventType.PROJECT_DELETED,
)
USER_EVENTS = (EventType.USER_UPDATED, EventType.USER_DELETED)


@dataclass
class DevConnectClient:
    """Every long-lived component of one client instance."""

    settings: Settings
    cache: KeyValueCache
    bus: EventBus
    http: HttpClient
    session: SessionStore
    projects: ProjectService
    users: UserService

    def project_list(self) -> PagedCollection[Project]:
        """
        Project listing that caches its unfiltered first page and follows project events.

        Call close() on the listing once it is no longer shown.
        """
        collection = PagedCollection(
            self.projects.list_page,
            page_size=self.settings.default_page_size,
            debounce_seconds=self.settings.search_debounce_seconds,
            cache=self.cache,
            cache_namespace=CACHE_NAMESPACE,
            cache_ttl=self.settings.cache_ttl_seconds,
            page_size_options=self.settings.page_size_options,
        )
        collection.refetch_on(self.bus, *PROJECT_EVENTS)
        return collection

    def community_list(self) -> PagedCollection[User]:
        """User listing that follows user events; close() it once it is no longer shown."""
        collection = PagedCollection(
            self.users.list_page,
            page_size=self.settings.default_page_size,
            debounce_seconds=self.settings.search_debounce_seconds,
            page_size_options=self.settings.page_size_options,
        )
        collection.refetch_on(self.bus, *USER_EVENTS)
        return collection

    def comment_thread(
        self, project_id: str, sort: CommentSort = CommentSort.NEWEST,
    ) -> CommentThread:
        """Comment feed of one project."""
        return CommentThread(
            self.http, project_id, sort, page_size=self.settings.comments_per_page,
        )

    async def close(self) -> None:
        """Release the HTTP connection pool."""
        await self.http.close()


def build_client(
    settings: Settings | None = None,
    storage: TokenStorage | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> DevConnectClient:
    """
    Construct a client.

    Args:
        settings:
            Defaults to the cached environment settings.
        storage:
            Token storage; defaults to a JSON file at settings.token_storage_path.
        transport:
            Optional httpx transport (e.g. ASGITransport in tests).

    Returns:
        A client whose HTTP layer reads the bearer token from its session.
        Call `await client.session.initialize()` to restore a stored session.
    """
    settings = settings or get_settings()
    storage = storage or FileTokenStorage(settings.token_storage_path)
    cache = KeyValueCache(max_size=settings.cache_max_size, ttl=settings.cache_ttl_seconds)
    bus = EventBus()
    http = HttpClient(settings.api_base_url, transport=transport)
    session = SessionStore(http, storage)
    http.set_token_provider(session.get_access_token)
    logger.debug("client_built", extra={"api_base_url": settings.api_base_url})
    return DevConnectClient(
        settings=settings,
        cache=cache,
        bus=bus,
        http=http,
        session=session,
        projects=ProjectService(http, cache, bus),
        users=UserService(http, session, bus),
    )
