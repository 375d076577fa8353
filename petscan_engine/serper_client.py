"""
Async client for the Serper.dev Google search API.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

import httpx

from .errors import DecodingError, NetworkError, RequestTimeout, error_for_status

SOURCE = "serper"


@dataclass(frozen=True)
class OrganicResult:
    title: str
    link: str
    snippet: Optional[str] = None


class SerperClient:
    BASE_URL = "https://google.serper.dev/search"

    def __init__(
        self,
        api_key: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 15.0,
        base_url: Optional[str] = None,
    ):
        self.api_key = api_key
        self.client = client
        self.timeout = timeout
        self.base_url = base_url or self.BASE_URL
        self.log = logging.getLogger(self.__class__.__name__)

    async def search(self, query: str, num: int = 5) -> List[OrganicResult]:
        self.log.debug("Searching: %s", query)
        if self.client is not None:
            return await self._search(self.client, query, num)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._search(client, query, num)

    async def _search(self, client: httpx.AsyncClient, query: str, num: int) -> List[OrganicResult]:
        try:
            response = await client.post(
                self.base_url,
                json={"q": query, "num": num},
                headers={"X-API-KEY": self.api_key, "Content-Type": "application/json"},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise RequestTimeout(str(exc) or "search timed out", SOURCE) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(str(exc), SOURCE) from exc

        error = error_for_status(response.status_code, SOURCE)
        if error is not None:
            raise error

        try:
            organic = response.json()["organic"]
            return [
                OrganicResult(
                    title=str(item.get("title") or ""),
                    link=str(item["link"]),
                    snippet=item.get("snippet"),
                )
                for item in organic
            ]
        except (ValueError, KeyError, TypeError, AttributeError) as exc:
            raise DecodingError("malformed search response", SOURCE) from exc
