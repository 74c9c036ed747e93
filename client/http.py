"""
client/http.py -- Client request layer for the portal API.

ApiClient is an explicitly constructed object: base URL, token store, HTTP
session and timeout are all injected, so tests and scripts can run several
independent clients side by side.

One call = one trip through request():
  1. attach Authorization: Bearer <token> if the token store has one
  2. serialize the body as JSON
  3. send through the requests.Session
  4. decode_body() -- the only place the body is read, exactly once, after
     the content-type has been inspected
  5. 2xx -> parsed JSON, or None for empty / non-JSON bodies
     non-2xx -> ApiError with an ErrorKind, the status and a best-effort message
     transport failure -> ApiError(kind=NETWORK, status=None)

Usage:
    client = ApiClient("http://localhost:8000", FileTokenStore(path))
    client.login("demo@lukamath.com", "Secret123!")
    me = client.me()
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional, Protocol, Union

import requests

from core.errors import ErrorKind

logger = logging.getLogger("lukamath.client")


class TokenStore(Protocol):
    def get(self) -> Optional[str]: ...

    def set(self, token: str) -> None: ...

    def clear(self) -> None: ...


# ---------------------------------------------------------------------------
# Decoded body -- tagged union
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class JsonBody:
    value: Any


@dataclass(frozen=True)
class TextBody:
    text: str


@dataclass(frozen=True)
class EmptyBody:
    pass


Body = Union[JsonBody, TextBody, EmptyBody]


def decode_body(resp: requests.Response) -> Body:
    """Consume the response body once and tag what it was.

    The content-type decides how the bytes are interpreted; a body that
    claims JSON but does not parse falls back to TextBody.
    """
    is_json = "application/json" in resp.headers.get("Content-Type", "").lower()
    raw = resp.content
    if not raw:
        return EmptyBody()
    text = raw.decode(resp.encoding or "utf-8", errors="replace")
    if is_json:
        try:
            return JsonBody(json.loads(text))
        except ValueError:
            logger.debug("Body labelled JSON did not parse (%d bytes)", len(raw))
    return TextBody(text)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ApiError(Exception):
    """A failed API call.

    kind is always set. status is None only for NETWORK errors, where no
    response arrived at all. Only NETWORK failures are worth retrying.
    """

    def __init__(self, kind: ErrorKind, message: str, status: Optional[int] = None, body: Body = EmptyBody()):
        self.kind = kind
        self.status = status
        self.message = message
        self.body = body
        super().__init__(f"{status}: {message}" if status is not None else message)

    @property
    def retryable(self) -> bool:
        return self.kind is ErrorKind.NETWORK


def error_message(body: Body, reason: str) -> str:
    """Best-effort human message: JSON message field, else text body, else reason phrase."""
    if isinstance(body, JsonBody) and isinstance(body.value, dict):
        message = body.value.get("message")
        if not message and isinstance(body.value.get("error"), dict):
            message = body.value["error"].get("message")
        if not message and isinstance(body.value.get("detail"), str):
            message = body.value["detail"]
        if isinstance(message, str) and message:
            return message
    elif isinstance(body, TextBody) and body.text.strip():
        return body.text.strip()
    return reason or "Request failed"


def classify(status: int, body: Body) -> ErrorKind:
    """Map a non-2xx response onto an ErrorKind.

    The server's code field wins when it names a known kind; otherwise the
    status decides.
    """
    if isinstance(body, JsonBody) and isinstance(body.value, dict):
        code = body.value.get("code")
        try:
            kind = ErrorKind(code)
        except ValueError:
            kind = None
        if kind is not None and kind is not ErrorKind.NETWORK:
            return kind
    if status == 401:
        return ErrorKind.INVALID_TOKEN
    if status == 403:
        return ErrorKind.FORBIDDEN
    if status == 404:
        return ErrorKind.NOT_FOUND
    if status == 429:
        return ErrorKind.RATE_LIMITED
    if status >= 500:
        return ErrorKind.SERVER
    return ErrorKind.VALIDATION


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class ApiClient:
    def __init__(
        self,
        base_url: str,
        token_store: TokenStore,
        session: Optional[requests.Session] = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token_store = token_store
        self.timeout = timeout
        self.session = session or requests.Session()
        # Known API host; a handful of hops is plenty.
        self.session.max_redirects = 3

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def request(self, method: str, path: str, body: Any = None) -> Any:
        headers = {"Accept": "application/json"}
        data = None
        if body is not None:
            headers["Content-Type"] = "application/json"
            data = json.dumps(body)
        token = self.token_store.get()
        if token:
            headers["Authorization"] = f"Bearer {token}"

        try:
            with self.session.request(
                method, self._url(path), data=data, headers=headers, timeout=self.timeout, stream=True
            ) as resp:
                status = resp.status_code
                reason = resp.reason or ""
                decoded = decode_body(resp)
        except requests.RequestException as e:
            logger.warning("%s %s failed before a response arrived: %s", method, path, e)
            raise ApiError(ErrorKind.NETWORK, f"Network error: {e}") from e

        logger.debug("%s %s -> %d", method, path, status)
        if not 200 <= status < 300:
            raise ApiError(classify(status, decoded), error_message(decoded, reason), status, decoded)
        if isinstance(decoded, JsonBody):
            return decoded.value
        return None

    def get(self, path: str) -> Any:
        return self.request("GET", path)

    def post(self, path: str, body: Any = None) -> Any:
        return self.request("POST", path, body)

    def patch(self, path: str, body: Any = None) -> Any:
        return self.request("PATCH", path, body)

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    # ------------------------------------------------------------------
    # Session helpers
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> dict:
        """Log in and persist the token. A 401 here is always bad credentials."""
        try:
            data = self.post("/api/auth/login", {"email": email, "password": password})
        except ApiError as e:
            if e.status == 401:
                raise ApiError(ErrorKind.INVALID_CREDENTIALS, e.message, e.status, e.body) from e
            raise
        self.token_store.set(data["token"])
        return data

    def register(self, email: str, password: str, first_name: str, last_name: str, language: str = "en") -> dict:
        data = self.post(
            "/api/auth/register",
            {
                "email": email,
                "password": password,
                "firstName": first_name,
                "lastName": last_name,
                "language": language,
            },
        )
        if data and data.get("token"):
            self.token_store.set(data["token"])
        return data

    def logout(self) -> None:
        """Tell the server, then drop the token whatever the server said."""
        try:
            if self.token_store.get():
                self.post("/api/auth/logout")
        except ApiError as e:
            logger.info("Server-side logout failed (%s); discarding token anyway", e.kind.value)
        finally:
            self.token_store.clear()

    def me(self) -> dict:
        return self.get("/api/auth/me")["user"]

    def close(self) -> None:
        self.session.close()
