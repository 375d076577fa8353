"""
Parallel product-URL search across retailer, manufacturer and discovered
brand sites.
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence

from .concurrency import gather_settled
from .errors import NoResultsFound, PetScanError
from .models import SearchResult
from .query_builder import ProductKeywords, extract_product_keywords, generate_query_variations, result_matches_product
from .serper_client import SerperClient
from .sources import RETAILERS, ProductSource, domain_of, dynamic_source, is_excluded_domain, manufacturer_for_brand

# Variations from this index on are broad; an empty response ends the walk.
EARLY_EXIT_INDEX = 2


class WebSearcher:
    """
    One search task per source, run concurrently. Each source walks the
    query variations in order and keeps the first validated URL.
    """

    def __init__(self, client: SerperClient, retry_delay: float = 0.5):
        self.client = client
        self.retry_delay = retry_delay
        self.log = logging.getLogger(self.__class__.__name__)

    async def search_product_urls(
        self,
        query: str,
        brand: Optional[str] = None,
        retailers: Sequence[ProductSource] = RETAILERS,
    ) -> List[SearchResult]:
        sources: List[ProductSource] = list(retailers)
        manufacturer = manufacturer_for_brand(brand)
        if manufacturer is not None:
            self.log.debug("Manufacturer source for %r: %s", brand, manufacturer.display_name)
            sources.append(manufacturer)
        elif brand:
            discovered = await self.discover_brand_site(brand)
            if discovered is not None:
                sources.append(discovered)

        variations = generate_query_variations(query, brand)
        keywords = extract_product_keywords(query, brand)
        self.log.debug("Searching %d sources for %r with %d variations", len(sources), query, len(variations))

        results, errors = await gather_settled(
            [self._source_factory(source, variations, keywords) for source in sources]
        )
        for error in errors:
            self.log.warning("Source search failed: %s", error)

        found = [r for r in results if r is not None]
        if not found:
            raise NoResultsFound(f"no product URLs for {query!r}", "search")
        self.log.info("Found %d product URLs for %r", len(found), query)
        return found

    def _source_factory(self, source, variations, keywords):
        return lambda: self.search_source(source, variations, keywords)

    async def search_source(
        self,
        source: ProductSource,
        variations: Sequence[str],
        keywords: ProductKeywords,
        use_fallback: bool = False,
    ) -> Optional[SearchResult]:
        site_query = source.site_query
        if use_fallback:
            site_query = source.fallback_site_query or source.site_query

        for index, variation in enumerate(variations):
            if index > 0 and self.retry_delay > 0:
                await asyncio.sleep(self.retry_delay)

            organic = await self.client.search(f"{variation} {site_query}")
            for item in organic:
                if not source.is_valid_product_url(item.link):
                    continue
                if not result_matches_product(item.title, item.link, keywords):
                    continue
                self.log.debug("[%s] matched %s", source.display_name, item.link)
                return SearchResult(
                    url=item.link,
                    source_key=source.key,
                    source_name=source.display_name,
                    title=item.title,
                )

            if not organic and index >= EARLY_EXIT_INDEX:
                self.log.debug("[%s] no results on variation %d, skipping rest", source.display_name, index + 1)
                break

        if source.is_retailer and not use_fallback and source.fallback_site_query:
            if self.retry_delay > 0:
                await asyncio.sleep(self.retry_delay)
            return await self.search_source(source, variations, keywords, use_fallback=True)

        self.log.info("[%s] no matching product page", source.display_name)
        return None

    async def discover_brand_site(self, brand: str) -> Optional[ProductSource]:
        try:
            organic = await self.client.search(f"{brand} pet food official site")
        except PetScanError as exc:
            self.log.warning("Brand site discovery failed for %r: %s", brand, exc)
            return None

        for item in organic:
            domain = domain_of(item.link)
            if not domain or is_excluded_domain(domain):
                continue
            self.log.info("Discovered site for %r: %s", brand, domain)
            return dynamic_source(domain)
        return None


async def search_product_urls(
    client: SerperClient,
    query: str,
    brand: Optional[str] = None,
    retailers: Sequence[ProductSource] = RETAILERS,
    retry_delay: float = 0.5,
) -> List[SearchResult]:
    return await WebSearcher(client, retry_delay).search_product_urls(query, brand, retailers)
