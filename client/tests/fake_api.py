"""
In-memory fake of the DevConnect REST API.

The app is served to HttpClient through httpx.ASGITransport, so tests go
through real HTTP request/response handling without a network. Every
request is recorded, and failures can be queued per (method, path).
"""
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse

BASE_URL = "http://testserver/api"
BASE_TIME = datetime(2024, 1, 1, tzinfo=UTC)

ALICE_ID = "u-alice"
ALICE_EMAIL = "alice@example.com"
ALICE_PASSWORD = "alice-secret"
ADMIN_ID = "u-admin"
ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-secret"
BOB_ID = "u-bob"


@dataclass
class RecordedRequest:
    """One request as seen by the fake API."""

    method: str
    path: str
    params: dict[str, str]
    authorization: str | None
    body: Any = None


@dataclass
class FakeApiState:
    """Mutable backing store of the fake API."""

    users: dict[str, dict[str, Any]] = field(default_factory=dict)
    passwords: dict[str, str] = field(default_factory=dict)  # email -> password
    tokens: dict[str, str] = field(default_factory=dict)  # token -> user id
    projects: dict[str, dict[str, Any]] = field(default_factory=dict)
    comments: dict[str, list[dict[str, Any]]] = field(default_factory=dict)  # project id -> comments
    likes: set[tuple[str, str]] = field(default_factory=set)  # (user id, comment id)
    failures: dict[tuple[str, str], list[int]] = field(default_factory=dict)
    requests: list[RecordedRequest] = field(default_factory=list)
    issue_refresh_tokens: bool = True

    def fail(self, method: str, path: str, *statuses: int) -> None:
        """Queue failure statuses for the next requests to method + path."""
        self.failures.setdefault((method, path), []).extend(statuses)

    def requests_to(self, method: str, path: str) -> list[RecordedRequest]:
        """Recorded requests matching method and path."""
        return [r for r in self.requests if r.method == method and r.path == path]

    def add_user(
        self, user_id: str, email: str, password: str, role: str = "user", **fields: Any,
    ) -> dict[str, Any]:
        """Register a user directly in the store."""
        user = {
            "id": user_id,
            "email": email,
            "full_name": fields.get("full_name", user_id.removeprefix("u-").title()),
            "username": fields.get("username", user_id.removeprefix("u-")),
            "avatar_url": None,
            "bio": fields.get("bio"),
            "website": None,
            "github_url": None,
            "linkedin_url": None,
            "role": role,
            "created_at": BASE_TIME.isoformat(),
            "updated_at": BASE_TIME.isoformat(),
        }
        self.users[user_id] = user
        self.passwords[email] = password
        return user

    def issue_token(self, user_id: str) -> str:
        """Create a valid access token for a user."""
        token = f"token-{user_id}-{len(self.tokens) + 1}"
        self.tokens[token] = user_id
        return token

    def add_project(self, project_id: str, title: str, user_id: str = ALICE_ID) -> dict[str, Any]:
        """Store a project owned by user_id."""
        project = {
            "id": project_id,
            "user_id": user_id,
            "title": title,
            "description": f"Description of {title}",
            "demo_url": None,
            "github_url": None,
            "tech_stack": ["Python"],
            "image_url": None,
            "created_at": BASE_TIME.isoformat(),
            "updated_at": BASE_TIME.isoformat(),
        }
        self.projects[project_id] = project
        return project

    def add_comments(self, project_id: str, count: int, author_id: str = BOB_ID) -> None:
        """Store count comments on a project, one minute apart, oldest first."""
        thread = self.comments.setdefault(project_id, [])
        for _ in range(count):
            number = len(thread) + 1
            thread.append({
                "id": f"{project_id}-c{number}",
                "content": f"Comment {number}",
                "author_id": author_id,
                "created_at": (BASE_TIME + timedelta(minutes=number)).isoformat(),
                "likes_count": 0,
            })

    @classmethod
    def seeded(cls) -> "FakeApiState":
        """Three users, 25 projects and a 25-comment thread on p1."""
        state = cls()
        state.add_user(ALICE_ID, ALICE_EMAIL, ALICE_PASSWORD, full_name="Alice Liddell")
        state.add_user(ADMIN_ID, ADMIN_EMAIL, ADMIN_PASSWORD, role="admin")
        state.add_user(BOB_ID, "bob@example.com", "bob-secret", bio="Rust and Go")
        for number in range(1, 26):
            owner = ALICE_ID if number % 2 else BOB_ID
            state.add_project(f"p{number}", f"Project {number:02d}", owner)
        state.add_comments("p1", 25)
        return state


def _summary(user: dict[str, Any] | None) -> dict[str, Any] | None:
    if user is None:
        return None
    return {key: user[key] for key in ("id", "full_name", "username", "avatar_url")}


def _public_profile(user: dict[str, Any]) -> dict[str, Any]:
    # Public profiles expose neither email nor role
    return {key: value for key, value in user.items() if key not in ("email", "role")}


def _error(message: str, status: int) -> JSONResponse:
    return JSONResponse({"success": False, "error": message}, status_code=status)


def _slice(items: list[Any], page: int, limit: int) -> tuple[list[Any], bool]:
    start = (page - 1) * limit
    return items[start:start + limit], start + limit < len(items)


def _matches(search: str | None, *values: str | None) -> bool:
    if not search:
        return True
    needle = search.lower()
    return any(value and needle in value.lower() for value in values)


def create_app(state: FakeApiState) -> FastAPI:
    """Build the fake API over state."""
    app = FastAPI()
    router = APIRouter(prefix="/api")

    @app.middleware("http")
    async def record_and_inject(request: Request, call_next):  # noqa: ANN001, ANN202
        body = await request.body()
        state.requests.append(RecordedRequest(
            method=request.method,
            path=request.url.path,
            params=dict(request.query_params),
            authorization=request.headers.get("authorization"),
            body=body.decode() if body else None,
        ))
        pending = state.failures.get((request.method, request.url.path))
        if pending:
            return JSONResponse({"success": False}, status_code=pending.pop(0))
        return await call_next(request)

    def current_user(request: Request) -> dict[str, Any] | None:
        header = request.headers.get("authorization", "")
        if not header.startswith("Bearer "):
            return None
        user_id = state.tokens.get(header.removeprefix("Bearer "))
        return state.users.get(user_id) if user_id else None

    def serialize_project(project: dict[str, Any]) -> dict[str, Any]:
        return {**project, "author": _summary(state.users.get(project["user_id"]))}

    def serialize_comment(comment: dict[str, Any], viewer: dict[str, Any] | None) -> dict[str, Any]:
        return {
            "id": comment["id"],
            "content": comment["content"],
            "author": _summary(state.users.get(comment["author_id"])),
            "created_at": comment["created_at"],
            "likes_count": comment["likes_count"],
            "replies_count": 0,
            "is_liked": viewer is not None and (viewer["id"], comment["id"]) in state.likes,
        }

    # Auth

    @router.post("/auth/login")
    async def login(request: Request) -> JSONResponse:
        payload = await request.json()
        email = payload.get("email")
        if state.passwords.get(email) != payload.get("password"):
            return _error("Invalid credentials", 401)
        user = next(u for u in state.users.values() if u["email"] == email)
        token = state.issue_token(user["id"])
        session: dict[str, Any] = {"access_token": token}
        if state.issue_refresh_tokens:
            session["refresh_token"] = f"refresh-{token}"
        return JSONResponse({"success": True, "user": user, "session": session})

    @router.post("/auth/register")
    async def register(request: Request) -> JSONResponse:
        payload = await request.json()
        if payload["email"] in state.passwords:
            return _error("Email already registered", 400)
        user_id = f"u-{len(state.users) + 1}"
        user = state.add_user(
            user_id,
            payload["email"],
            payload["password"],
            full_name=payload.get("full_name"),
            username=payload.get("username"),
        )
        return JSONResponse({"success": True, "user": user}, status_code=201)

    @router.get("/auth/me")
    async def me(request: Request) -> JSONResponse:
        user = current_user(request)
        if user is None:
            return _error("Invalid token", 401)
        return JSONResponse({"success": True, "user": user})

    @router.post("/auth/logout")
    async def logout(request: Request) -> JSONResponse:
        header = request.headers.get("authorization", "")
        state.tokens.pop(header.removeprefix("Bearer "), None)
        return JSONResponse({"success": True})

    # Projects

    @router.get("/projects")
    async def list_projects(
        page: int = 1, limit: int = 10, search: str | None = None,
    ) -> JSONResponse:
        matching = [
            p for p in state.projects.values()
            if _matches(search, p["title"], p["description"])
        ]
        items, _ = _slice(matching, page, limit)
        return JSONResponse({
            "success": True,
            "projects": [serialize_project(p) for p in items],
            "total": len(matching),
        })

    @router.get("/projects/{project_id}")
    async def get_project(project_id: str) -> JSONResponse:
        project = state.projects.get(project_id)
        if project is None:
            return _error("Project not found", 404)
        return JSONResponse({"success": True, "project": serialize_project(project)})

    @router.post("/projects")
    async def create_project(request: Request) -> JSONResponse:
        user = current_user(request)
        if user is None:
            return _error("Unauthorized", 401)
        payload = await request.json()
        project_id = f"p{len(state.projects) + 1}"
        project = state.add_project(project_id, payload["title"], user["id"])
        project.update({k: v for k, v in payload.items() if k != "title"})
        return JSONResponse(
            {"success": True, "project": serialize_project(project)}, status_code=201,
        )

    @router.put("/projects/{project_id}")
    async def update_project(project_id: str, request: Request) -> JSONResponse:
        user = current_user(request)
        if user is None:
            return _error("Unauthorized", 401)
        project = state.projects.get(project_id)
        if project is None:
            return _error("Project not found", 404)
        if project["user_id"] != user["id"] and user["role"] != "admin":
            return _error("Forbidden", 403)
        project.update(await request.json())
        return JSONResponse({"success": True, "project": serialize_project(project)})

    @router.delete("/projects/{project_id}")
    async def delete_project(project_id: str, request: Request) -> JSONResponse:
        user = current_user(request)
        if user is None:
            return _error("Unauthorized", 401)
        if state.projects.pop(project_id, None) is None:
            return _error("Project not found", 404)
        return JSONResponse({"success": True})

    @router.get("/users/{user_id}/projects")
    async def user_projects(user_id: str) -> JSONResponse:
        projects = [serialize_project(p) for p in state.projects.values() if p["user_id"] == user_id]
        return JSONResponse({"success": True, "projects": projects})

    # Comments

    @router.get("/comments/project/{project_id}")
    async def list_comments(
        project_id: str, request: Request, page: int = 1, limit: int = 10, sort: str = "newest",
    ) -> JSONResponse:
        thread = list(state.comments.get(project_id, []))
        if sort == "newest":
            thread.sort(key=lambda c: c["created_at"], reverse=True)
        elif sort == "popular":
            thread.sort(key=lambda c: c["likes_count"], reverse=True)
        items, has_more = _slice(thread, page, limit)
        viewer = current_user(request)
        return JSONResponse({
            "comments": [serialize_comment(c, viewer) for c in items],
            "has_more": has_more,
            "total": len(thread),
        })

    @router.post("/comments/project/{project_id}")
    async def create_comment(project_id: str, request: Request) -> JSONResponse:
        user = current_user(request)
        if user is None:
            return _error("Unauthorized", 401)
        payload = await request.json()
        thread = state.comments.setdefault(project_id, [])
        comment = {
            "id": f"{project_id}-c{len(thread) + 1}",
            "content": payload["content"],
            "author_id": user["id"],
            "created_at": (BASE_TIME + timedelta(days=1, minutes=len(thread))).isoformat(),
            "likes_count": 0,
        }
        thread.append(comment)
        return JSONResponse(
            {"success": True, "comment": serialize_comment(comment, user)}, status_code=201,
        )

    @router.post("/comments/{comment_id}/like")
    async def toggle_like(comment_id: str, request: Request) -> JSONResponse:
        user = current_user(request)
        if user is None:
            return _error("Unauthorized", 401)
        comment = next(
            (c for thread in state.comments.values() for c in thread if c["id"] == comment_id),
            None,
        )
        if comment is None:
            return _error("Comment not found", 404)
        key = (user["id"], comment_id)
        if key in state.likes:
            state.likes.discard(key)
            comment["likes_count"] -= 1
        else:
            state.likes.add(key)
            comment["likes_count"] += 1
        return JSONResponse({"success": True, "liked": key in state.likes})

    # Profiles and users

    @router.get("/profile")
    async def get_profile(request: Request) -> JSONResponse:
        user = current_user(request)
        if user is None:
            return _error("Unauthorized", 401)
        return JSONResponse({"success": True, "profile": user})

    @router.put("/profile")
    async def update_profile(request: Request) -> JSONResponse:
        user = current_user(request)
        if user is None:
            return _error("Unauthorized", 401)
        user.update(await request.json())
        return JSONResponse({"success": True, "profile": user})

    @router.get("/profiles")
    async def list_profiles(
        limit: int = 10, offset: int = 0, search: str | None = None,
    ) -> JSONResponse:
        matching = [
            u for u in state.users.values() if _matches(search, u["full_name"], u["username"])
        ]
        return JSONResponse({
            "success": True,
            "data": [_public_profile(u) for u in matching[offset:offset + limit]],
            "total": len(matching),
        })

    @router.get("/users")
    async def list_users(
        request: Request, limit: int = 10, offset: int = 0, search: str | None = None,
    ) -> JSONResponse:
        user = current_user(request)
        if user is None or user["role"] != "admin":
            return _error("Admin access required", 403)
        matching = [
            u for u in state.users.values()
            if _matches(search, u["full_name"], u["username"], u["email"])
        ]
        return JSONResponse({
            "success": True,
            "data": matching[offset:offset + limit],
            "total": len(matching),
        })

    @router.get("/users/{user_id}")
    async def get_user(user_id: str, request: Request) -> JSONResponse:
        admin = current_user(request)
        if admin is None or admin["role"] != "admin":
            return _error("Admin access required", 403)
        user = state.users.get(user_id)
        if user is None:
            return _error("User not found", 404)
        return JSONResponse({"success": True, "data": user})

    @router.put("/users/{user_id}")
    async def update_user(user_id: str, request: Request) -> JSONResponse:
        admin = current_user(request)
        if admin is None or admin["role"] != "admin":
            return _error("Admin access required", 403)
        user = state.users.get(user_id)
        if user is None:
            return _error("User not found", 404)
        user.update(await request.json())
        return JSONResponse({"success": True, "data": user})

    @router.delete("/users/{user_id}")
    async def delete_user(user_id: str, request: Request) -> JSONResponse:
        admin = current_user(request)
        if admin is None or admin["role"] != "admin":
            return _error("Admin access required", 403)
        if state.users.pop(user_id, None) is None:
            return _error("User not found", 404)
        return JSONResponse({"success": True})

    app.include_router(router)
    return app
