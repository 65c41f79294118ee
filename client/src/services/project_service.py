"""Service layer for project listing and CRUD against the remote API."""
import logging
from typing import Any
from urllib.parse import quote, urlencode

from core.cache import KeyValueCache
from core.events import EventBus, EventType
from core.http_client import HttpClient, HttpError, unwrap_item, unwrap_list
from schemas.page import PageResult
from schemas.project import Project, ProjectCreate, ProjectUpdate

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "projects"


class ProjectNotFoundError(Exception):
    """Raised when the API has no project with the requested id."""

    pass


class ProjectService:
    """
    Project endpoints plus the cross-view side effects of mutating them.

    Every successful create/update/delete drops the cached project pages
    and publishes an event so open listings can refetch.
    """

    def __init__(self, http: HttpClient, cache: KeyValueCache, bus: EventBus) -> None:
        self._http = http
        self._cache = cache
        self._bus = bus

    async def list_page(self, page: int, limit: int, search: str | None) -> PageResult[Project]:
        """
        Fetch one page of projects.

        Matches the PagedCollection fetch-function signature. HTTP failures
        are returned in-band as a failed PageResult.
        """
        params: dict[str, Any] = {"page": page, "limit": limit}
        if search:
            params["search"] = search
        try:
            response = await self._http.get(f"/projects?{urlencode(params)}")
        except HttpError as e:
            return PageResult.failure(str(e))
        items, total = unwrap_list(response.data, "projects")
        return PageResult(items=[Project.model_validate(item) for item in items], total=total)

    async def get(self, project_id: str) -> Project:
        """
        Fetch one project.

        Raises:
            ProjectNotFoundError: If the API answers 404.
        """
        try:
            response = await self._http.get(f"/projects/{quote(project_id)}")
        except HttpError as e:
            if e.status == 404:
                raise ProjectNotFoundError(f"Project {project_id} not found") from e
            raise
        return Project.model_validate(unwrap_item(response.data, "project"))

    async def create(self, data: ProjectCreate) -> Project:
        """Create a project owned by the signed-in user."""
        response = await self._http.post(
            "/projects", data.model_dump(mode="json", exclude_none=True),
        )
        project = Project.model_validate(unwrap_item(response.data, "project"))
        await self._after_mutation(EventType.PROJECT_CREATED, project_id=project.id)
        return project

    async def update(self, project_id: str, data: ProjectUpdate) -> Project:
        """Update the fields that were explicitly set on data."""
        response = await self._http.put(
            f"/projects/{quote(project_id)}",
            data.model_dump(mode="json", exclude_unset=True),
        )
        project = Project.model_validate(unwrap_item(response.data, "project"))
        await self._after_mutation(EventType.PROJECT_UPDATED, project_id=project.id)
        return project

    async def delete(self, project_id: str) -> None:
        """Delete a project."""
        await self._http.delete(f"/projects/{quote(project_id)}")
        await self._after_mutation(EventType.PROJECT_DELETED, project_id=project_id)

    async def list_by_user(self, user_id: str) -> list[Project]:
        """Every project of one user."""
        response = await self._http.get(f"/users/{quote(user_id)}/projects")
        items, _ = unwrap_list(response.data, "projects")
        return [Project.model_validate(item) for item in items]

    async def request_new_project_form(self) -> None:
        """Ask whichever view hosts the project form to open it."""
        await self._bus.publish(EventType.OPEN_NEW_PROJECT_FORM)

    async def _after_mutation(self, event_type: EventType, **data: Any) -> None:
        removed = self._cache.invalidate_pattern(f"^{CACHE_NAMESPACE}-")
        logger.info(
            "project_mutated",
            extra={"event": event_type.value, "cache_entries_removed": removed, **data},
        )
        await self._bus.publish(event_type, **data)

