"""
Data source implementation for Open Pet Food Facts.
Fetches product JSON by barcode and exposes a ProductInfo for the resolver.

The blocking methods use requests (catalog sync, scripts); the `a`-prefixed
coroutines use httpx so a cancelled scan aborts the request in flight.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx
import requests

from .errors import DecodingError, NetworkError, RequestTimeout, error_for_status
from .models import ProductInfo

SOURCE = "openpetfoodfacts"
USER_AGENT = "PetScanEngine/1.0 (https://github.com/petscan-engine)"
HEADERS = {"User-Agent": USER_AGENT, "Accept": "application/json"}


class ProductDataSource:
    """
    Base interface for any product data source (DB, API, cache).
    """

    def get_product(self, barcode: str) -> Optional[ProductInfo]:
        raise NotImplementedError

    async def aget_product(self, barcode: str) -> Optional[ProductInfo]:
        # Sources without a native async path run in a worker thread.
        return await asyncio.to_thread(self.get_product, barcode)


def product_from_payload(product_data: Dict[str, Any], barcode: Optional[str] = None) -> ProductInfo:
    """Map an Open Pet Food Facts product object to ProductInfo."""
    brand = (product_data.get("brands") or "").split(",")[0].strip() or None
    last_modified = product_data.get("last_modified_t")
    return ProductInfo(
        barcode=barcode or str(product_data.get("code") or ""),
        name=product_data.get("product_name") or None,
        brand=brand,
        ingredients_text=product_data.get("ingredients_text") or None,
        image_url=product_data.get("image_front_url") or product_data.get("image_url") or None,
        source=SOURCE,
        last_modified=int(last_modified) if last_modified else None,
    )


def _decode(response) -> Optional[Dict[str, Any]]:
    """Shared status and body handling for requests and httpx responses."""
    if response.status_code == 404:
        return None
    error = error_for_status(response.status_code, SOURCE)
    if error is not None:
        raise error

    try:
        data = response.json()
    except ValueError as exc:
        raise DecodingError("invalid JSON body", SOURCE) from exc
    if not isinstance(data, dict):
        raise DecodingError("unexpected JSON shape", SOURCE)
    return data


class OpenPetFoodFactsClient(ProductDataSource):
    """
    Thin wrapper around the Open Pet Food Facts public API.

    Returns None when the product is unknown (404, status != 1, no product
    object); raises from errors.py for every other failure so the resolver
    can log it and move on to the next barcode variant.
    """

    BASE_URL = "https://world.openpetfoodfacts.org"
    PRODUCT_PATH = "/api/v2/product/{barcode}"

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = 15.0,
        base_url: Optional[str] = None,
        async_client: Optional[httpx.AsyncClient] = None,
    ):
        self.session = session or requests.Session()
        self.async_client = async_client
        self.timeout = timeout
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.log = logging.getLogger(self.__class__.__name__)

    def get_product(self, barcode: str) -> Optional[ProductInfo]:
        return self._product(barcode, self.get_json(self.PRODUCT_PATH.format(barcode=barcode)))

    async def aget_product(self, barcode: str) -> Optional[ProductInfo]:
        return self._product(barcode, await self.aget_json(self.PRODUCT_PATH.format(barcode=barcode)))

    def _product(self, barcode: str, data: Optional[Dict[str, Any]]) -> Optional[ProductInfo]:
        product_data = data.get("product") if data is not None else None
        if data is None or data.get("status") != 1 or not isinstance(product_data, dict):
            self.log.info("Product %s not found on Open Pet Food Facts", barcode)
            return None
        return product_from_payload(product_data, barcode)

    def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        """GET a JSON document; None on 404."""
        try:
            response = self.session.get(
                f"{self.base_url}{path}",
                params=params,
                headers=HEADERS,
                timeout=self.timeout,
            )
        except requests.Timeout as exc:
            raise RequestTimeout(str(exc), SOURCE) from exc
        except requests.RequestException as exc:
            raise NetworkError(str(exc), SOURCE) from exc
        return _decode(response)

    async def aget_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Optional[Dict[str, Any]]:
        if self.async_client is not None:
            return await self._aget(self.async_client, path, params)
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await self._aget(client, path, params)

    async def _aget(
        self, client: httpx.AsyncClient, path: str, params: Optional[Dict[str, Any]]
    ) -> Optional[Dict[str, Any]]:
        try:
            response = await client.get(
                f"{self.base_url}{path}",
                params=params,
                headers=HEADERS,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise RequestTimeout(str(exc) or "request timed out", SOURCE) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(str(exc), SOURCE) from exc
        return _decode(response)
