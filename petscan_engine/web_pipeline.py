"""
Search-then-scrape pipeline used when no product database knows a barcode.

Contains:
- WebSearchAndScrapePipeline: URL search, extraction race, and the
  sequential direct site-search fallback
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence

from .concurrency import first_successful
from .errors import (
    AllSourcesExhausted,
    ExtractionFailed,
    NoResultsFound,
    NotFoundError,
    PetScanError,
)
from .models import ScrapedProduct, SearchResult
from .scraper import HtmlPageScraper, is_valid_ingredients_text
from .sources import CHEWY, PETCO, ProductSource, manufacturer_for_brand
from .web_search import WebSearcher

FALLBACK_RETAILERS = (CHEWY, PETCO)


def is_usable(product: ScrapedProduct) -> bool:
    text = (product.ingredients_text or "").strip()
    if not text:
        return False
    # Structured extraction returns a clean list; only raw page text needs the heuristics.
    if product.ingredients:
        return True
    return is_valid_ingredients_text(text)


class WebSearchAndScrapePipeline:
    """
    Finds candidate product pages and returns the first one that yields a
    usable ingredient list. Extractors are tried per URL in order, so the
    structured extract API (when configured) goes before plain HTML.
    """

    def __init__(
        self,
        searcher: Optional[WebSearcher] = None,
        extractors: Sequence = (),
        html_scraper: Optional[HtmlPageScraper] = None,
        retry_delay: float = 0.5,
    ):
        self.searcher = searcher
        self.html_scraper = html_scraper or HtmlPageScraper()
        self.extractors = list(extractors) or [self.html_scraper]
        self.retry_delay = retry_delay
        self.log = logging.getLogger(self.__class__.__name__)

    async def search_and_scrape(self, query: str, brand: Optional[str] = None) -> ScrapedProduct:
        urls = await self._find_urls(query, brand)

        if urls:
            try:
                return await first_successful(
                    [self._url_factory(result) for result in urls],
                    accept=is_usable,
                )
            except AllSourcesExhausted as exc:
                self.log.warning("No extractable page among %d URLs for %r: %s", len(urls), query, exc.__cause__ or exc)

        try:
            return await self.direct_search(query, brand)
        except (NoResultsFound, AllSourcesExhausted):
            if urls:
                raise ExtractionFailed(f"no ingredients could be extracted for {query!r}", "pipeline")
            raise

    async def _find_urls(self, query: str, brand: Optional[str]) -> List[SearchResult]:
        if self.searcher is None:
            self.log.debug("Web search not configured; using direct site search")
            return []
        try:
            return await self.searcher.search_product_urls(query, brand)
        except NoResultsFound:
            self.log.info("Web search found no product URLs for %r", query)
        except PetScanError as exc:
            self.log.warning("Web search failed for %r: %s", query, exc)
        return []

    def _url_factory(self, result: SearchResult):
        return lambda: self.extract(result)

    async def extract(self, result: SearchResult) -> ScrapedProduct:
        """Run the extractors against one URL until one yields usable text."""
        last_error: Optional[PetScanError] = None
        for extractor in self.extractors:
            try:
                product = await extractor.scrape(result)
            except PetScanError as exc:
                self.log.warning("[%s] %s failed on %s: %s", result.source_name, extractor.__class__.__name__, result.url, exc)
                last_error = exc
                continue
            if is_usable(product):
                self.log.info("Extracted ingredients from %s via %s", result.url, extractor.__class__.__name__)
                return product
            last_error = ExtractionFailed(f"unusable ingredient text on {result.url}", result.source_key)
        raise last_error or ExtractionFailed(f"no extractor for {result.url}", result.source_key)

    def fallback_sources(self, brand: Optional[str]) -> List[ProductSource]:
        sources: List[ProductSource] = []
        manufacturer = manufacturer_for_brand(brand)
        if manufacturer is not None and manufacturer.search_url_pattern:
            sources.append(manufacturer)
        sources.extend(FALLBACK_RETAILERS)
        return sources

    async def direct_search(self, query: str, brand: Optional[str] = None) -> ScrapedProduct:
        """Search each site's own search page in turn, pausing between sites."""
        full_query = f"{brand} {query}" if brand and brand.lower() not in query.lower() else query
        errors: List[PetScanError] = []
        for index, source in enumerate(self.fallback_sources(brand)):
            if index > 0 and self.retry_delay > 0:
                await asyncio.sleep(self.retry_delay)
            try:
                product = await self.html_scraper.search_site(source, full_query)
            except PetScanError as exc:
                self.log.warning("[%s] direct search failed: %s", source.display_name, exc)
                errors.append(exc)
                continue
            if is_usable(product):
                return product
            errors.append(ExtractionFailed(f"unusable text from {source.display_name}", source.key))

        if errors and all(isinstance(e, NotFoundError) for e in errors):
            raise NoResultsFound(f"no product found for {query!r}", "pipeline")
        raise AllSourcesExhausted(f"every source failed for {query!r}", "pipeline") from (errors[-1] if errors else None)
