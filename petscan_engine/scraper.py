"""
Ingredient extraction from product pages.

Strategies run in order and every candidate is cleaned and validated before
it is accepted; a page that yields nothing valid is reported as
ExtractionFailed rather than returning scraped boilerplate.
"""

from __future__ import annotations

import html as html_lib
import itertools
import json
import logging
import re
from typing import Iterable, Iterator, Optional

import httpx
from bs4 import BeautifulSoup

from .errors import ExtractionFailed, NetworkError, NoResultsFound, RequestTimeout, error_for_status
from .models import ScrapeConfidence, ScrapedProduct, SearchResult
from .sources import ProductSource, source_for_url

MIN_LENGTH = 50
MAX_LENGTH = 2000
MIN_ALPHA_RATIO = 0.5
MIN_COMMAS = 3
MIN_COMMA_DENSITY = 0.015

UI_PHRASES = (
    "add to cart", "buy now", "shop now", "sign in", "create account",
    "customer review", "write a review", "see all", "load more",
    "subscribe", "save today", "free shipping", "in stock", "out of stock",
    "add to wishlist", "compare", "share this", "print this",
)

COMMON_FIRST_INGREDIENTS = (
    "chicken", "beef", "salmon", "turkey", "lamb", "duck", "fish", "pork",
    "water", "meat", "poultry", "corn", "rice", "wheat", "barley", "oat",
    "brewers", "pea", "sweet potato", "potato", "tapioca", "animal",
    "deboned", "fresh", "dried", "whole",
)

USER_AGENTS = (
    "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 "
    "(KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
)

_FLAGS = re.IGNORECASE | re.DOTALL
HEADING_BLOCK_PATTERNS = (
    re.compile(
        r"Ingredients\s*:?\s*</(?:h\d|strong|b|span|p|dt)>\s*<(?:p|div|ul|span|dd)[^>]*>"
        r"([\s\S]{20,2000}?)</(?:p|div|ul|span|dd)>",
        _FLAGS,
    ),
    re.compile(r">Ingredients\s*:?\s*([A-Z][^<]{20,1500})", _FLAGS),
)
STRICT_PATTERNS = (
    re.compile(
        r"Ingredients\s*:?\s*([A-Z][^<]{20,1500}?)"
        r"(?=\s*(?:Guaranteed|Calorie|Feeding|Nutritional|</div>|</section>|<h\d))",
        _FLAGS,
    ),
    re.compile(r">Ingredients\s*:?\s*</[^>]+>\s*<p[^>]*>([^<]{20,1500})</p>", _FLAGS),
)
_TAG_RE = re.compile(r"<[^>]+>")
_TITLE_RE = re.compile(r"<title[^>]*>([^<|]+)", re.IGNORECASE)
_H1_RE = re.compile(r"<h1[^>]*>([^<]+)</h1>", re.IGNORECASE)
_HEADING_RE = re.compile(r"^\s*ingredients\s*:?\s*", re.IGNORECASE)


def clean_ingredients_text(text: str) -> str:
    cleaned = html_lib.unescape(text)
    cleaned = _TAG_RE.sub(" ", cleaned)
    cleaned = " ".join(cleaned.split())
    return _HEADING_RE.sub("", cleaned).strip()


def is_valid_ingredients_text(text: str) -> bool:
    if not (MIN_LENGTH <= len(text) <= MAX_LENGTH):
        return False

    alpha = sum(1 for ch in text if ch.isalpha())
    if alpha / len(text) <= MIN_ALPHA_RATIO:
        return False

    commas = text.count(",")
    if commas < MIN_COMMAS:
        return False

    lowered = text.lower()
    if any(phrase in lowered for phrase in UI_PHRASES):
        return False

    start = lowered[:50]
    if not any(word in start for word in COMMON_FIRST_INGREDIENTS):
        if commas / len(text) <= MIN_COMMA_DENSITY:
            return False
    return True


def _ingredients_from_description(description: str) -> Optional[str]:
    idx = description.lower().find("ingredients")
    if idx < 0:
        return None
    remaining = description[idx + len("ingredients"):].strip(":; \n\t")
    first_line = remaining.split("\n", 1)[0].strip()
    return first_line or None


def _walk_json(node) -> Iterator[dict]:
    if isinstance(node, dict):
        yield node
        for value in node.values():
            yield from _walk_json(value)
    elif isinstance(node, list):
        for value in node:
            yield from _walk_json(value)


def _json_ld_candidates(soup: BeautifulSoup) -> Iterator[str]:
    for script in soup.find_all("script", type="application/ld+json"):
        raw = script.string or script.get_text()
        if not raw:
            continue
        try:
            data = json.loads(raw)
        except ValueError:
            continue
        for node in _walk_json(data):
            ingredients = node.get("ingredients")
            if isinstance(ingredients, list):
                ingredients = ", ".join(str(i) for i in ingredients)
            if isinstance(ingredients, str) and ingredients.strip():
                yield ingredients
            description = node.get("description")
            if isinstance(description, str) and "ingredients" in description.lower():
                extracted = _ingredients_from_description(description)
                if extracted:
                    yield extracted


def _mentions_ingredient(value) -> bool:
    if not value:
        return False
    if isinstance(value, (list, tuple)):
        value = " ".join(value)
    return "ingredient" in str(value).lower()


def _container_candidates(soup: BeautifulSoup) -> Iterator[str]:
    for tag in soup.find_all(["div", "section", "dd", "p", "ul"]):
        if not any(
            _mentions_ingredient(tag.get(attr))
            for attr in ("class", "id", "data-tab", "data-section")
        ):
            continue
        text = tag.get_text(" ", strip=True)
        if 20 <= len(text) <= MAX_LENGTH * 2:
            yield text


def _pattern_candidates(html: str, patterns: Iterable[re.Pattern]) -> Iterator[str]:
    for pattern in patterns:
        match = pattern.search(html)
        if match:
            yield match.group(1)


def extract_ingredients(html: str) -> Optional[str]:
    """First candidate that survives cleaning and validation, else None."""
    if not html:
        return None
    soup = BeautifulSoup(html, "html.parser")
    candidates = itertools.chain(
        _json_ld_candidates(soup),
        _container_candidates(soup),
        _pattern_candidates(html, HEADING_BLOCK_PATTERNS),
        _pattern_candidates(html, STRICT_PATTERNS),
    )
    for candidate in candidates:
        cleaned = clean_ingredients_text(candidate)
        if is_valid_ingredients_text(cleaned):
            return cleaned
    return None


def extract_product_name(html: str) -> Optional[str]:
    for pattern in (_TITLE_RE, _H1_RE):
        match = pattern.search(html or "")
        if not match:
            continue
        name = html_lib.unescape(match.group(1)).strip()
        if name and len(name) < 200:
            return name
    return None


class HtmlPageScraper:
    """
    Direct page fetcher. Rotates User-Agents and treats 403/429 as an
    anti-bot block for the site rather than a credential problem.
    """

    def __init__(self, client: Optional[httpx.AsyncClient] = None, timeout: float = 20.0):
        self.client = client
        self.timeout = timeout
        self._agents = itertools.cycle(USER_AGENTS)
        self.log = logging.getLogger(self.__class__.__name__)

    def _headers(self) -> dict:
        return {
            "User-Agent": next(self._agents),
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        }

    async def fetch_page(self, url: str) -> str:
        if self.client is not None:
            return await self._fetch(self.client, url)
        async with httpx.AsyncClient(timeout=self.timeout, follow_redirects=True) as client:
            return await self._fetch(client, url)

    async def _fetch(self, client: httpx.AsyncClient, url: str) -> str:
        source = source_for_url(url).key
        try:
            response = await client.get(url, headers=self._headers(), timeout=self.timeout)
        except httpx.TimeoutException as exc:
            raise RequestTimeout(str(exc) or "page fetch timed out", source) from exc
        except httpx.HTTPError as exc:
            raise NetworkError(str(exc), source) from exc

        if response.status_code != 200:
            error = error_for_status(response.status_code, source, scraped_site=True)
            raise error or NetworkError(f"unexpected status {response.status_code}", source)
        return response.text

    async def scrape(self, result: SearchResult) -> ScrapedProduct:
        self.log.debug("Scraping %s (%s)", result.url, result.source_name)
        html = await self.fetch_page(result.url)
        ingredients = extract_ingredients(html)
        if not ingredients:
            raise ExtractionFailed(f"no ingredient list on {result.url}", result.source_key)
        return ScrapedProduct(
            ingredients_text=ingredients,
            source_url=result.url,
            source_name=result.source_name,
            confidence=ScrapeConfidence.MEDIUM,
            product_name=extract_product_name(html),
        )

    async def search_site(self, source: ProductSource, query: str) -> ScrapedProduct:
        """Use the site's own search page and scrape the first product link."""
        search_url = source.search_url(query)
        if not search_url or not source.product_link_pattern:
            raise NoResultsFound(f"{source.display_name} has no site search", source.key)

        search_html = await self.fetch_page(search_url)
        match = re.search(source.product_link_pattern, search_html)
        if not match:
            raise NoResultsFound(f"no product link for {query!r}", source.key)

        product_url = source.absolute_url(html_lib.unescape(match.group(1)))
        return await self.scrape(
            SearchResult(url=product_url, source_key=source.key, source_name=source.display_name)
        )
