"""Remote profile store backed by the Appwrite Databases REST API."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from articlecast.config import StoreConfig
from articlecast.models import UserProfile

logger = logging.getLogger(__name__)

BOOKMARKS_FIELD = "articlesBookmarked"


class StoreError(RuntimeError):
    """Raised when the profile store rejects or cannot complete a request."""

    def __init__(self, message: str, http_status: int | None = None) -> None:
        super().__init__(message)
        self.http_status = http_status


class ProfileStore(Protocol):
    async def get_profile(self, user_id: str) -> UserProfile:
        ...

    async def update_bookmark_list(self, user_id: str, ids: list[str]) -> UserProfile:
        ...


class AppwriteProfileStore:
    """Reads and updates user profile documents in one Appwrite collection."""

    def __init__(self, config: StoreConfig, client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(config.timeout_seconds))

    async def __aenter__(self) -> "AppwriteProfileStore":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def close(self) -> None:
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    def _document_url(self, document_id: str) -> str:
        return (
            f"{self._config.endpoint}/databases/{self._config.database_id}"
            f"/collections/{self._config.user_collection_id}/documents/{document_id}"
        )

    def _headers(self) -> dict[str, str]:
        headers = {
            "X-Appwrite-Project": self._config.project_id,
            "Content-Type": "application/json",
        }
        if self._config.api_key:
            headers["X-Appwrite-Key"] = self._config.api_key
        return headers

    async def _request(self, method: str, url: str, payload: dict[str, Any] | None = None) -> UserProfile:
        try:
            response = await self._client.request(method, url, headers=self._headers(), json=payload)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            raise StoreError(f"{method} {url} failed: {exc}") from exc

        if response.status_code >= 400:
            try:
                body = response.json()
            except ValueError:
                body = None
            detail = body.get("message", "") if isinstance(body, dict) else response.text
            raise StoreError(
                f"{method} {url} returned {response.status_code}: {detail}".rstrip(": "),
                http_status=response.status_code,
            )

        try:
            return UserProfile.model_validate(response.json())
        except ValueError as exc:
            raise StoreError(f"Unexpected profile document from {url}: {exc}") from exc

    async def get_profile(self, user_id: str) -> UserProfile:
        return await self._request("GET", self._document_url(user_id))

    async def update_bookmark_list(self, user_id: str, ids: list[str]) -> UserProfile:
        logger.debug("Writing %d bookmark id(s) for user %s", len(ids), user_id)
        return await self._request("PATCH", self._document_url(user_id), {"data": {BOOKMARKS_FIELD: ids}})
