"""Mattermost-Status-Client: Identität abfragen und Presence setzen.

Nutzt Mattermost REST API v4:
  - GET  /api/v4/users/me          → {id, username, ...}
  - PUT  /api/v4/users/me/status   ← {user_id, status, dnd_end_time}

Jeder Request trägt ``Authorization: Bearer <token>`` und
``Content-Type: application/json``. Der Client hält außer URL, Token und
dem httpx-Connection-Pool keinen Zustand und darf parallel benutzt werden.
Fehlgeschlagene Requests werden nicht wiederholt.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from mmstatus.errors import AuthError, DecodeError, HttpError, TransportError
from mmstatus.models import Status, UserIdentity
from mmstatus.utils.logging import get_logger

if TYPE_CHECKING:
    from types import TracebackType

    from mmstatus.config import AppConfig

log = get_logger(__name__)

DEFAULT_TIMEOUT = 30.0


class StatusClient:
    """Dünner async Wrapper um die Mattermost Users-API."""

    def __init__(
        self,
        url: str,
        token: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url.rstrip("/")
        self._token = token
        self._http_client = httpx.AsyncClient(
            timeout=timeout,
            headers=self._headers(),
            transport=transport,
        )

    @classmethod
    def from_config(
        cls,
        config: AppConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> StatusClient:
        return cls(
            config.mattermost_url,
            config.access_token,
            timeout=config.request_timeout,
            transport=transport,
        )

    @property
    def api_url(self) -> str:
        return f"{self._url}/api/v4"

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._token}",
            "Content-Type": "application/json",
        }

    async def fetch_current_user(self) -> UserIdentity:
        """Ermittelt den User, dem das Token gehört.

        Returns:
            UserIdentity mit id und username.

        Raises:
            TransportError: Netzwerkfehler.
            AuthError: 401/403.
            HttpError: Jeder andere Status außer 200.
            DecodeError: Body ist kein JSON-Objekt mit ``id``.
        """
        resp = await self._request("GET", "users/me")
        data = self._decode_json(resp)
        try:
            user = UserIdentity.model_validate(data)
        except ValidationError as exc:
            raise DecodeError(
                f"unexpected users/me response: {exc.error_count()} validation error(s)",
                details={"body": _snippet(resp)},
            ) from exc

        log.debug("current_user_fetched", user_id=user.id, username=user.username)
        return user

    async def set_status(self, user_id: str, status: Status) -> None:
        """Setzt den Presence-Status des aktuellen Users.

        Args:
            user_id: ID aus ``fetch_current_user``.
            status: Ziel-Status.

        Raises:
            TransportError: Netzwerkfehler.
            AuthError: 401/403.
            HttpError: Jeder andere Status außer 200.
        """
        body = build_status_body(user_id, status)
        await self._request("PUT", "users/me/status", json=body)

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self.api_url}/{path}"
        try:
            resp = await self._http_client.request(method, url, **kwargs)
        except httpx.RequestError as exc:
            raise TransportError(
                f"{method} {url} failed: {exc!r}",
                details={"method": method, "url": url},
            ) from exc

        if resp.status_code == httpx.codes.OK:
            return resp

        message = f"non-ok status code received: {resp.status_code} {resp.reason_phrase}"
        details = {"method": method, "url": url, "body": _snippet(resp)}
        if resp.status_code in (httpx.codes.UNAUTHORIZED, httpx.codes.FORBIDDEN):
            raise AuthError(message, status_code=resp.status_code, details=details)
        raise HttpError(message, status_code=resp.status_code, details=details)

    @staticmethod
    def _decode_json(resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as exc:
            raise DecodeError(
                f"response is not valid JSON: {exc}",
                details={"body": _snippet(resp)},
            ) from exc

    async def aclose(self) -> None:
        await self._http_client.aclose()

    async def __aenter__(self) -> StatusClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()


def build_status_body(user_id: str, status: Status) -> dict[str, Any]:
    """Request-Body für ``PUT users/me/status``. dnd_end_time bleibt immer 0."""
    return {
        "user_id": user_id,
        "status": Status(status).value,
        "dnd_end_time": 0,
    }


def _snippet(resp: httpx.Response, limit: int = 200) -> str:
    return resp.text[:limit]
