"""
UPCitemdb barcode lookup. Products missing from the pet food database are
usually still known here by title and brand, which seeds the web search.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import httpx
import requests

from .errors import DecodingError, NetworkError, RequestTimeout, error_for_status

SOURCE = "upcitemdb"


@dataclass(frozen=True)
class UPCItem:
    ean: Optional[str] = None
    upc: Optional[str] = None
    title: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    description: Optional[str] = None
    images: Tuple[str, ...] = ()

    @property
    def display_name(self) -> Optional[str]:
        return self.title or self.model

    @property
    def search_query(self) -> Optional[str]:
        """"brand title", or whichever of the two exists."""
        name = self.display_name
        if self.brand and name:
            return f"{self.brand} {name}"
        return name or self.brand


def is_valid_barcode(barcode: str) -> bool:
    return barcode.isdigit() and 8 <= len(barcode) <= 14


class UPCItemDBClient:
    """
    `lookup` blocks on requests; `alookup` is the httpx coroutine used by
    the scan service so cancellation reaches the socket.
    """

    BASE_URL = "https://api.upcitemdb.com/prod/v1/lookup"

    def __init__(
        self,
        api_key: str,
        session: Optional[requests.Session] = None,
        timeout: float = 15.0,
        base_url: Optional[str] = None,
        async_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.async_client = async_client
        self.timeout = timeout
        self.base_url = base_url or self.BASE_URL
        self.log = logging.getLogger(self.__class__.__name__)

    @property
    def headers(self) -> Dict[str, str]:
        return {
            "User-Agent": "PetScanEngine/1.0",
            "Accept": "application/json",
            "user_key": self.api_key,
            "key_type": "3scale",
        }

    def _clean(self, barcode: str) -> Optional[str]:
        cleaned = (barcode or "").strip()
        if not is_valid_barcode(cleaned):
            self.log.warning("Skipping UPC lookup for invalid barcode %r", barcode)
            return None
        return cleaned

    def lookup(self, barcode: str) -> Optional[UPCItem]:
        cleaned = self._clean(barcode)
        if cleaned is None:
            return None

        try:
            response = self.session.get(
                self.base_url,
                params={"upc": cleaned},
                headers=self.headers,
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise RequestTimeout(str(exc), SOURCE) from exc
        except requests.RequestException as exc:
            raise NetworkError(str(exc), SOURCE) from exc
        return self._to_item(cleaned, response)

    async def alookup(self, barcode: str) -> Optional[UPCItem]:
        cleaned = self._clean(barcode)
        if cleaned is None:
            return None
        if self.async_client is not None:
            return await self._aget(self.async_client, cleaned)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._aget(client, cleaned)

    async def _aget(self, client: httpx.AsyncClient, cleaned: str) -> Optional[UPCItem]:
        try:
            response = await client.get(
                self.base_url,
                params={"upc": cleaned},
                headers=self.headers,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise RequestTimeout(str(exc) or "request timed out", SOURCE) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(str(exc), SOURCE) from exc
        return self._to_item(cleaned, response)

    def _to_item(self, cleaned: str, response) -> Optional[UPCItem]:
        if response.status_code == 404:
            self.log.info("Barcode %s not found on UPCitemdb", cleaned)
            return None
        error = error_for_status(response.status_code, SOURCE)
        if error is not None:
            raise error

        try:
            items = response.json().get("items") or []
        except (ValueError, AttributeError) as exc:
            raise DecodingError("invalid JSON body", SOURCE) from exc

        if not items:
            self.log.info("Barcode %s not found on UPCitemdb", cleaned)
            return None

        first = items[0]
        return UPCItem(
            ean=first.get("ean"),
            upc=first.get("upc"),
            title=first.get("title") or None,
            brand=first.get("brand") or None,
            model=first.get("model") or None,
            description=first.get("description"),
            images=tuple(first.get("images") or ()),
        )
