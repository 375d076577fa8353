"""
Async client for the Firecrawl scrape endpoint with LLM extraction.

The page is rendered remotely and the product fields are pulled out with a
JSON schema, which handles JavaScript-heavy retailer pages that the plain
HTML scraper cannot read.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .errors import (
    DecodingError,
    ExtractionFailed,
    InvalidCredentials,
    NetworkError,
    RateLimited,
    RequestTimeout,
)
from .models import ScrapeConfidence, ScrapedProduct, SearchResult

SOURCE = "firecrawl"

EXTRACT_PROMPT = (
    "Extract the pet food product details from this page.\n"
    "- name: The full product name\n"
    "- brand: The brand name (e.g., Friskies, Blue Buffalo, Royal Canin)\n"
    "- ingredients: The complete ingredients list, split into individual items\n"
    "- price: The current price as a number\n"
    "- imageURL: The main product image URL"
)

EXTRACT_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string", "description": "Full product name"},
        "brand": {"type": "string", "description": "Brand name"},
        "ingredients": {
            "type": "array",
            "items": {"type": "string"},
            "description": "List of ingredients, each as a separate string",
        },
        "price": {"type": "number", "description": "Current price"},
        "imageURL": {"type": "string", "description": "Main product image URL"},
    },
    "required": ["name", "ingredients"],
}


def _error_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict) and body.get("error"):
        return str(body["error"])
    return None


def _optional_float(value) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None


class FirecrawlClient:
    BASE_URL = "https://api.firecrawl.dev/v1/scrape"

    def __init__(
        self,
        api_key: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 120.0,
        base_url: Optional[str] = None,
    ):
        self.api_key = api_key
        self.client = client
        self.timeout = timeout
        self.base_url = base_url or self.BASE_URL
        self.log = logging.getLogger(self.__class__.__name__)

    async def scrape(self, result: SearchResult) -> ScrapedProduct:
        self.log.debug("Extracting %s (%s)", result.url, result.source_name)
        if self.client is not None:
            payload = await self._post(self.client, result.url)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                payload = await self._post(client, result.url)
        return self._to_product(payload, result)

    async def _post(self, client: httpx.AsyncClient, url: str) -> dict:
        body = {
            "url": url,
            "formats": ["extract"],
            "extract": {"prompt": EXTRACT_PROMPT, "schema": EXTRACT_SCHEMA},
        }
        try:
            response = await client.post(
                self.base_url,
                json=body,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise RequestTimeout(str(exc) or "extraction timed out", SOURCE) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(str(exc), SOURCE) from exc

        status = response.status_code
        if status in (401, 403):
            raise InvalidCredentials("invalid Firecrawl API key", SOURCE, status)
        if status == 429:
            raise RateLimited("Firecrawl rate limit reached", SOURCE, status)
        if 400 <= status < 500:
            raise ExtractionFailed(_error_message(response) or f"request rejected ({status})", SOURCE, status)
        if status >= 500:
            raise NetworkError(f"server error {status}", SOURCE, status)

        try:
            payload = response.json()
        except ValueError as exc:
            raise DecodingError("malformed extraction response", SOURCE) from exc
        if not isinstance(payload, dict):
            raise DecodingError("malformed extraction response", SOURCE)
        return payload

    def _to_product(self, payload: dict, result: SearchResult) -> ScrapedProduct:
        if not payload.get("success"):
            raise ExtractionFailed(f"extraction unsuccessful for {result.url}", SOURCE)

        data = payload.get("data") or {}
        extracted = data.get("extract") if isinstance(data, dict) else None
        if not isinstance(extracted, dict):
            raise ExtractionFailed(f"no extracted data for {result.url}", SOURCE)

        raw = extracted.get("ingredients") or []
        if not isinstance(raw, list):
            raise DecodingError("ingredients is not a list", SOURCE)
        ingredients = tuple(str(item).strip() for item in raw if str(item).strip())
        if not ingredients:
            raise ExtractionFailed(f"empty ingredient list for {result.url}", SOURCE)

        return ScrapedProduct(
            ingredients_text=", ".join(ingredients),
            source_url=result.url,
            source_name=result.source_name,
            confidence=ScrapeConfidence.HIGH,
            product_name=extracted.get("name") or None,
            brand=extracted.get("brand") or None,
            ingredients=ingredients,
            price=_optional_float(extracted.get("price")),
            image_url=extracted.get("imageURL") or None,
        )
