"""Service layer for profiles and admin user management."""
import logging
from typing import Any
from urllib.parse import quote, urlencode

from core.events import EventBus, EventType
from core.http_client import HttpClient, HttpError, unwrap_item, unwrap_list
from core.session import SessionStore
from schemas.page import PageResult
from schemas.user import AdminUserUpdate, ProfileUpdate, User

logger = logging.getLogger(__name__)


class UserService:
    """
    Profile and user endpoints.

    Listing picks its endpoint from the signed-in role: admins get the
    full user records (with email), everyone else the public profiles.
    """

    def __init__(self, http: HttpClient, session: SessionStore, bus: EventBus) -> None:
        self._http = http
        self._session = session
        self._bus = bus

    async def get_profile(self) -> User:
        """Profile of the signed-in user."""
        response = await self._http.get("/profile")
        return User.model_validate(unwrap_item(response.data, "profile"))

    async def update_profile(self, data: ProfileUpdate) -> User:
        """Update the signed-in user's own profile."""
        response = await self._http.put(
            "/profile", data.model_dump(mode="json", exclude_unset=True),
        )
        user = User.model_validate(unwrap_item(response.data, "profile"))
        await self._bus.publish(EventType.USER_UPDATED, user_id=user.id)
        return user

    async def get_user(self, user_id: str) -> User:
        """Any user's full record (admin only)."""
        response = await self._http.get(f"/users/{quote(user_id)}")
        return User.model_validate(unwrap_item(response.data, "user"))

    async def update_user(self, user_id: str, data: AdminUserUpdate) -> User:
        """Edit any user, including email and role (admin only)."""
        response = await self._http.put(
            f"/users/{quote(user_id)}",
            data.model_dump(mode="json", exclude_unset=True),
        )
        user = User.model_validate(unwrap_item(response.data, "user"))
        logger.info("user_updated_by_admin", extra={"user_id": user_id})
        await self._bus.publish(EventType.USER_UPDATED, user_id=user.id)
        return user

    async def delete_user(self, user_id: str) -> None:
        """Delete a user (admin only)."""
        await self._http.delete(f"/users/{quote(user_id)}")
        logger.info("user_deleted_by_admin", extra={"user_id": user_id})
        await self._bus.publish(EventType.USER_DELETED, user_id=user_id)

    async def list_page(self, page: int, limit: int, search: str | None) -> PageResult[User]:
        """
        Fetch one page of the community listing.

        Matches the PagedCollection fetch-function signature. The API pages
        by offset, so page is translated to (page - 1) * limit. HTTP
        failures are returned in-band as a failed PageResult.
        """
        params: dict[str, Any] = {"limit": limit, "offset": (page - 1) * limit}
        if search:
            params["search"] = search
        endpoint = "/users" if self._session.is_admin else "/profiles"
        try:
            response = await self._http.get(f"{endpoint}?{urlencode(params)}")
        except HttpError as e:
            return PageResult.failure(str(e))
        items, total = unwrap_list(response.data, "data")
        # Public profiles carry no email and may omit the role
        users = [User.model_validate({**item, "email": item.get("email") or ""}) for item in items]
        return PageResult(items=users, total=total)
