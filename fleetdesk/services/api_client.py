from __future__ import annotations

import logging
from typing import Any

import httpx

from .. import config
from ..security import TOKEN_HEADER
from ..storage import StorageError

logger = logging.getLogger(__name__)


class PersistenceClient:
    """Browser-side access to the per-user store.

    Each call is a single request: no retries, no cancellation. Failures are
    raised as :class:`StorageError` with the server's message.
    """

    def __init__(self, http: httpx.Client | None = None, token: str | None = None) -> None:
        self.http = http or httpx.Client(base_url=config.API_BASE_URL, timeout=config.API_TIMEOUT)
        self.token = token

    def _headers(self) -> dict[str, str]:
        return {TOKEN_HEADER: self.token} if self.token else {}

    def _request(self, method: str, path: str, payload: Any = None) -> Any:
        try:
            if method == "GET":
                response = self.http.get(path, headers=self._headers())
            else:
                response = self.http.post(path, json=payload, headers=self._headers())
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise StorageError(f"Network error: {exc}") from exc
        if response.is_error:
            detail = _error_detail(response)
            logger.warning("%s %s returned %s: %s", method, path, response.status_code, detail)
            raise StorageError(detail)
        return response.json()

    def login(self, username: str) -> str:
        self.token = self._request("POST", "/api/login", {"username": username})["token"]
        return self.token

    def load_ships(self) -> Any:
        return self._request("GET", "/api/ships")

    def save_ships(self, units: list[dict[str, Any]]) -> str:
        return self._request("POST", "/api/ships", units)["message"]

    def load_decks(self) -> Any:
        return self._request("GET", "/api/decks")

    def save_decks(self, payload: dict[str, Any]) -> str:
        return self._request("POST", "/api/decks", payload)["message"]

    def load_bonus(self) -> Any:
        return self._request("GET", "/api/bonus")

    def save_bonus(self, payload: list[dict[str, Any]]) -> str:
        return self._request("POST", "/api/bonus", payload)["message"]

    def load_master(self) -> Any:
        return self._request("GET", "/api/master")

    def save_master(self, data: Any) -> str:
        return self._request("POST", "/api/master", {"data": data})["message"]

    def load_category_config(self) -> Any:
        return self._request("GET", "/api/stype_config")

    def save_category_config(self, payload: list[dict[str, Any]]) -> str:
        return self._request("POST", "/api/stype_config", payload)["message"]


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(body, dict) and body.get("detail"):
        return str(body["detail"])
    return f"HTTP {response.status_code}"
