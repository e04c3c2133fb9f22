from __future__ import annotations

import logging
import os
from typing import Optional

import httpx

from gazette_tracker.errors import RemoteCallError

logger = logging.getLogger(__name__)

GAZETTE_API_URL = os.getenv("GAZETTE_API_URL", "http://localhost:8000").strip()


class GazetteRemote:
    """Client for the service's remote ingestion entry point (POST /gazette/refresh)."""

    def __init__(self, base_url: str = GAZETTE_API_URL, client: Optional[httpx.AsyncClient] = None):
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=60.0)

    async def fetch_gazette_data(self) -> int:
        url = f"{self.base_url}/gazette/refresh"
        try:
            resp = await self._client.post(url)
            resp.raise_for_status()
            return int(resp.json()["newEntries"])
        except httpx.HTTPStatusError as e:
            raise RemoteCallError(f"Ingestion call failed with HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, KeyError, ValueError) as e:
            raise RemoteCallError(f"Ingestion call failed: {e}") from e

    async def aclose(self) -> None:
        await self._client.aclose()
