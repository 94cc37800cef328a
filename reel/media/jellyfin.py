"""
Jellyfin API client.

Only what the notifier needs: the poster for a freshly added item, plus
recent-items and search listings for the user-facing commands.
Every failure surfaces as MediaError.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, model_validator

from reel.core.errors import MediaError

logger = logging.getLogger(__name__)

_ITEM_FIELDS = "Overview,CommunityRating,OfficialRating,ProductionYear"


class MediaItem(BaseModel):
    """A movie or episode as listed by /Items."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    item_id: str = Field("", alias="Id")
    name: str = Field("", alias="Name")
    type: str = Field("", alias="Type")
    overview: str = Field("", alias="Overview")
    community_rating: float = Field(0.0, alias="CommunityRating")
    official_rating: str = Field("", alias="OfficialRating")
    production_year: int = Field(0, alias="ProductionYear")
    series_name: str = Field("", alias="SeriesName")
    season_number: int = Field(0, alias="ParentIndexNumber")
    episode_number: int = Field(0, alias="IndexNumber")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data

    @property
    def display_title(self) -> str:
        if self.type == "Episode" and self.series_name:
            return self.series_name
        return self.name

    @property
    def rating_display(self) -> str:
        if self.community_rating > 0:
            return self.official_rating
        return "N/A"


class JellyfinClient:
    """
    Usage:
        client = JellyfinClient("http://jellyfin:8096", api_key)
        poster = await client.fetch_poster(item_id)
        items = await client.recent_items(limit=5)
        await client.close()
    """

    def __init__(
        self,
        server_url: str,
        api_key: str,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._server_url = server_url.rstrip("/")
        self._api_key = api_key
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def _get(self, path: str, params: dict[str, Any] | None = None) -> httpx.Response:
        try:
            resp = await self._client.get(
                f"{self._server_url}{path}",
                params=params,
                headers={"X-Emby-Token": self._api_key, "Accept": "application/json"},
            )
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise MediaError(f"Request to {path} failed: {e}") from e

        if resp.status_code == 401:
            raise MediaError("Authentication failed: invalid API key", status_code=401)
        if resp.status_code == 404:
            raise MediaError(f"Resource not found: {path}", status_code=404)
        if resp.status_code >= 400:
            raise MediaError(
                f"HTTP error: {resp.status_code} {resp.reason_phrase}",
                status_code=resp.status_code,
            )
        return resp

    async def fetch_poster(self, item_id: str) -> bytes:
        """Primary image bytes for an item."""
        resp = await self._get(f"/Items/{item_id}/Images/Primary")
        if not resp.content:
            raise MediaError(f"Empty poster for item {item_id}")
        return resp.content

    async def recent_items(self, limit: int = 10) -> list[MediaItem]:
        """Most recently added movies and episodes, newest first."""
        return await self._list_items(
            {
                "Filters": "IsNotFolder",
                "Recursive": "true",
                "SortBy": "DateCreated",
                "SortOrder": "Descending",
                "IncludeItemTypes": "Movie,Episode",
                "Limit": str(limit),
                "Fields": _ITEM_FIELDS,
            }
        )

    async def search(self, query: str, limit: int = 10) -> list[MediaItem]:
        """Movies and episodes matching a search term."""
        return await self._list_items(
            {
                "SearchTerm": query,
                "Recursive": "true",
                "IncludeItemTypes": "Movie,Episode",
                "Limit": str(limit),
                "Fields": _ITEM_FIELDS,
            }
        )

    async def _list_items(self, params: dict[str, str]) -> list[MediaItem]:
        resp = await self._get("/Items", params)
        try:
            data = resp.json()
            return [MediaItem.model_validate(item) for item in data.get("Items", [])]
        except Exception as e:
            raise MediaError(f"Failed to decode items response: {e}") from e

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
