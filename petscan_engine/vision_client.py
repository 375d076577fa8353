"""
Async client that identifies a pet food product from a packaging photo.

The photo goes to an OpenAI vision model as a base64 data URL. The model
answers with a JSON object (brand, product name, species, main protein and
carbohydrate, confidence) that seeds the web search when there is no
barcode to resolve.
"""

from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, Optional

import httpx

from .errors import (
    DecodingError,
    ExtractionFailed,
    InvalidCredentials,
    NetworkError,
    ProductNotFound,
    RateLimited,
    RequestTimeout,
)
from .models import ProductIdentification, Species

SOURCE = "vision"
MODEL = "gpt-4o"
MAX_TOKENS = 500

IDENTIFY_PROMPT = """Analyze this pet food product packaging image.

Extract the following information:
- brand: The brand name (e.g., "Blue Buffalo", "Purina", "Royal Canin", "Hill's Science Diet")
- productName: The full product name or line (e.g., "Wilderness Chicken Recipe", "Pro Plan Adult")
- species: The target animal - must be "dog", "cat", or "unknown"
- primaryProtein: The main protein source visible on packaging (e.g., "Chicken", "Salmon", "Beef")
- primaryCarb: The main carbohydrate source if visible (e.g., "Rice", "Sweet Potato") or "Grain-Free" if indicated
- confidence: Your confidence level from 0.0 to 1.0

Important guidelines:
- If multiple products are visible, focus on the most prominent one
- Return null for fields you cannot determine with reasonable certainty
- Only return confidence > 0.7 if brand AND product name are clearly visible

Respond ONLY with valid JSON in this exact format:
{"brand": "Brand Name", "productName": "Product Name", "species": "dog",
 "primaryProtein": "Chicken", "primaryCarb": "Rice", "confidence": 0.85}"""


def _text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _species(value: Any) -> Optional[Species]:
    try:
        return Species(str(value).strip().lower())
    except ValueError:
        return None


def _confidence(value: Any) -> float:
    try:
        return min(max(float(value), 0.0), 1.0)
    except (TypeError, ValueError):
        return 0.0


def identification_from_content(content: Dict[str, Any]) -> ProductIdentification:
    return ProductIdentification(
        brand=_text(content.get("brand")),
        product_name=_text(content.get("productName")),
        species=_species(content.get("species")),
        confidence=_confidence(content.get("confidence")),
        primary_protein=_text(content.get("primaryProtein")),
        primary_carb=_text(content.get("primaryCarb")),
    )


class ProductVisionClient:
    BASE_URL = "https://api.openai.com/v1/chat/completions"

    def __init__(
        self,
        api_key: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
        base_url: Optional[str] = None,
        model: str = MODEL,
    ):
        self.api_key = api_key
        self.client = client
        self.timeout = timeout
        self.base_url = base_url or self.BASE_URL
        self.model = model
        self.log = logging.getLogger(self.__class__.__name__)

    async def identify(self, image: bytes, content_type: str = "image/jpeg") -> ProductIdentification:
        """
        Raises ProductNotFound when the model cannot name both brand and
        product; confidence is left for the caller to judge.
        """
        if not image:
            raise DecodingError("empty image", SOURCE)
        body = self._request_body(image, content_type)
        self.log.debug("Identifying product from %d byte image", len(image))
        if self.client is not None:
            payload = await self._post(self.client, body)
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                payload = await self._post(client, body)

        identification = identification_from_content(self._content(payload))
        self.log.info(
            "Identified %s - %s (confidence %.2f)",
            identification.brand,
            identification.product_name,
            identification.confidence,
        )
        if identification.search_query is None:
            raise ProductNotFound("could not identify product", SOURCE)
        return identification

    def _request_body(self, image: bytes, content_type: str) -> Dict[str, Any]:
        encoded = base64.b64encode(image).decode("ascii")
        return {
            "model": self.model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": IDENTIFY_PROMPT},
                        {"type": "image_url", "image_url": {"url": f"data:{content_type};base64,{encoded}"}},
                    ],
                }
            ],
            "max_tokens": MAX_TOKENS,
            "response_format": {"type": "json_object"},
        }

    async def _post(self, client: httpx.AsyncClient, body: Dict[str, Any]) -> Dict[str, Any]:
        try:
            response = await client.post(
                self.base_url,
                json=body,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as exc:
            raise RequestTimeout(str(exc) or "identification timed out", SOURCE) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(str(exc), SOURCE) from exc

        status = response.status_code
        if status in (401, 403):
            raise InvalidCredentials("invalid OpenAI API key", SOURCE, status)
        if status == 429:
            raise RateLimited("vision rate limit reached", SOURCE, status)
        if 400 <= status < 500:
            raise ExtractionFailed(f"request rejected ({status})", SOURCE, status)
        if status >= 500:
            raise NetworkError(f"server error {status}", SOURCE, status)

        try:
            payload = response.json()
        except ValueError as exc:
            raise DecodingError("malformed vision response", SOURCE) from exc
        if not isinstance(payload, dict):
            raise DecodingError("malformed vision response", SOURCE)
        return payload

    def _content(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            raw = payload["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise DecodingError("no message in vision response", SOURCE) from exc
        if not raw:
            raise DecodingError("empty message in vision response", SOURCE)
        try:
            content = json.loads(raw)
        except ValueError as exc:
            raise DecodingError("identification is not JSON", SOURCE) from exc
        if not isinstance(content, dict):
            raise DecodingError("identification is not a JSON object", SOURCE)
        return content
