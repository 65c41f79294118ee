"""Session state: current user and tokens, persisted to durable storage."""
import json
import logging
from enum import Enum
from pathlib import Path
from typing import Protocol

from core.http_client import HttpClient, HttpError, unwrap_data, unwrap_item
from schemas.auth import LoginResponse, SignInRequest, SignUpRequest
from schemas.user import User

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"


class TokenStorage(Protocol):
    """Durable key/value storage for session tokens."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


class MemoryTokenStorage:
    """Non-durable storage, for tests and short-lived scripts."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._data: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class FileTokenStorage:
    """
    Token storage backed by a JSON file.

    The file is rewritten on every change and deleted once empty, so a
    signed-out client leaves no token on disk.
    """

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        """Location of the backing file."""
        return self._path

    def get(self, key: str) -> str | None:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)

    def _read(self) -> dict[str, str]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("token_storage_corrupt", extra={"path": str(self._path)})
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict[str, str]) -> None:
        if not data:
            self._path.unlink(missing_ok=True)
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data), encoding="utf-8")


class SessionState(Enum):
    """Lifecycle of the session store; a new store starts LOADING."""

    LOADING = "loading"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


class SessionStore:
    """
    Holds the signed-in user and tokens.

    Only this class mutates session state; every other component reads
    `access_token` / `user`. The user and access token are always set
    together or cleared together.
    """

    def __init__(self, http: HttpClient, storage: TokenStorage) -> None:
        self._http = http
        self._storage = storage
        self._state = SessionState.LOADING
        self._user: User | None = None
        self._access_token: str | None = None
        self._refresh_token: str | None = None

    @property
    def state(self) -> SessionState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_loading(self) -> bool:
        """True until initialize() has settled the state."""
        return self._state == SessionState.LOADING

    @property
    def is_authenticated(self) -> bool:
        """True when a validated user and token are held."""
        return self._state == SessionState.AUTHENTICATED

    @property
    def is_admin(self) -> bool:
        """True when the signed-in user is an admin."""
        return self._user is not None and self._user.is_admin

    @property
    def user(self) -> User | None:
        """Signed-in user, if any."""
        return self._user

    @property
    def access_token(self) -> str | None:
        """Bearer token of the current session, if any."""
        return self._access_token

    @property
    def refresh_token(self) -> str | None:
        """Refresh token issued with the current session, if any."""
        return self._refresh_token

    def get_access_token(self) -> str | None:
        """Token provider for HttpClient."""
        return self._access_token

    async def initialize(self) -> SessionState:
        """
        Restore a persisted session.

        A stored access token is validated against GET /auth/me. Any failure
        (rejected token or network error) clears durable storage.

        Returns:
            The settled state (AUTHENTICATED or ANONYMOUS).
        """
        self._state = SessionState.LOADING
        token = self._storage.get(ACCESS_TOKEN_KEY)
        if not token:
            self._set_anonymous()
            return self._state

        try:
            response = await self._http.get("/auth/me", token=token)
            user = User.model_validate(unwrap_item(response.data, "user"))
        except (HttpError, ValueError) as e:
            logger.info("session_restore_failed", extra={"error": str(e)})
            self._clear_storage()
            self._set_anonymous()
            return self._state

        self._set_authenticated(user, token, self._storage.get(REFRESH_TOKEN_KEY))
        logger.info("session_restored", extra={"user_id": user.id})
        return self._state

    async def sign_in(self, email: str, password: str) -> User:
        """
        Log in and persist the issued tokens.

        Raises:
            pydantic.ValidationError: If the form is invalid (no request made).
            HttpError: If the API rejects the credentials.
        """
        form = SignInRequest(email=email, password=password)
        response = await self._http.post("/auth/login", form.model_dump())
        login = LoginResponse.model_validate(unwrap_data(response.data))

        self._storage.set(ACCESS_TOKEN_KEY, login.session.access_token)
        if login.session.refresh_token:
            self._storage.set(REFRESH_TOKEN_KEY, login.session.refresh_token)
        else:
            self._storage.remove(REFRESH_TOKEN_KEY)

        self._set_authenticated(login.user, login.session.access_token, login.session.refresh_token)
        logger.info("signed_in", extra={"user_id": login.user.id})
        return login.user

    async def sign_up(
        self,
        email: str,
        password: str,
        full_name: str | None = None,
        username: str | None = None,
    ) -> User:
        """
        Register, then sign in with the same credentials.

        Registration alone does not establish a session.
        """
        form = SignUpRequest(
            email=email, password=password, full_name=full_name, username=username,
        )
        await self._http.post("/auth/register", form.model_dump(exclude_none=True))
        logger.info("signed_up", extra={"email": form.email})
        return await self.sign_in(form.email, form.password)

    async def sign_out(self) -> None:
        """
        End the session.

        The logout call is best effort: its failure is logged and local state
        is cleared regardless.
        """
        token = self._access_token or self._storage.get(ACCESS_TOKEN_KEY)
        try:
            if token:
                await self._http.post("/auth/logout", token=token)
        except HttpError as e:
            logger.warning("logout_failed", extra={"error": str(e), "status": e.status})
        finally:
            self._clear_storage()
            self._set_anonymous()

    def _set_authenticated(self, user: User, access_token: str, refresh_token: str | None) -> None:
        self._user = user
        self._access_token = access_token
        self._refresh_token = refresh_token
        self._state = SessionState.AUTHENTICATED

    def _set_anonymous(self) -> None:
        self._user = None
        self._access_token = None
        self._refresh_token = None
        self._state = SessionState.ANONYMOUS

    def _clear_storage(self) -> None:
        self._storage.remove(ACCESS_TOKEN_KEY)
        self._storage.remove(REFRESH_TOKEN_KEY)

