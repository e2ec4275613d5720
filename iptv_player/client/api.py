from __future__ import annotations

import asyncio
import json
import logging
from urllib.error import HTTPError, URLError
from urllib.parse import quote
from urllib.request import Request as UrlReq
from urllib.request import urlopen

logger = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, status: int, message: str):
        super().__init__(message)
        self.status = status
        self.message = message


class CatalogApi:
    """Async client for the catalog endpoints. Blocking I/O runs off the event loop."""

    def __init__(self, base_url: str = "http://localhost:3000", timeout: float = 30):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _get_json(self, path: str) -> dict:
        req = UrlReq(f"{self.base_url}{path}", headers={"Accept": "application/json"})
        try:
            with urlopen(req, timeout=self.timeout) as r:
                return json.loads(r.read().decode("utf-8", errors="replace"))
        except HTTPError as e:
            try:
                body = json.loads(e.read().decode("utf-8", errors="replace"))
                message = body.get("error") or str(e)
            except ValueError:
                message = str(e)
            raise ApiError(e.code, message) from e
        except URLError as e:
            raise ApiError(0, f"Server unreachable: {e.reason}") from e

    async def get(self, path: str) -> dict:
        logger.debug("GET %s", path)
        return await asyncio.to_thread(self._get_json, path)

    async def grouped_categories(self) -> dict:
        return await self.get("/api/grouped-categories")

    async def categories(self, type_name: str) -> dict:
        return await self.get(f"/api/categories/{quote(type_name, safe='')}")

    async def channels(self, category: str) -> dict:
        return await self.get(f"/api/channels/{quote(category, safe='')}")

    async def all_channels(self, type_name: str) -> dict:
        return await self.get(f"/api/all-channels/{quote(type_name, safe='')}")

    async def status(self) -> dict:
        return await self.get("/api/status")
