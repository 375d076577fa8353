"""
Bulk download of the Open Pet Food Facts catalog into the local cache.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from .models import ProductInfo
from .openpetfoodfacts_client import OpenPetFoodFactsClient, product_from_payload
from .product_cache import ProductCache

SEARCH_PATH = "/api/v2/search"
SEARCH_FIELDS = "code,product_name,brands,ingredients_text,image_url,image_front_url,last_modified_t"


class CatalogSync:
    """
    Pages through the pet-food category and upserts every page. The public
    API asks bulk clients to stay well under 10 requests per minute, hence
    the default pause between pages.
    """

    def __init__(
        self,
        client: OpenPetFoodFactsClient,
        page_size: int = 100,
        page_delay: float = 6.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.page_size = page_size
        self.page_delay = page_delay
        self.sleep = sleep
        self.log = logging.getLogger(self.__class__.__name__)

    def fetch_page(self, page: int):
        data = self.client.get_json(
            SEARCH_PATH,
            params={
                "categories_tags_en": "pet-food",
                "page_size": self.page_size,
                "page": page,
                "fields": SEARCH_FIELDS,
            },
        ) or {}
        products: List[ProductInfo] = [
            product_from_payload(item)
            for item in data.get("products") or []
            if item.get("code")
        ]
        page_count = int(data.get("page_count") or 0)
        if not page_count:
            total = int(data.get("count") or 0)
            page_count = max(1, -(-total // self.page_size)) if total else 1
        return products, page_count

    def full_sync(self, cache: ProductCache, max_pages: Optional[int] = None) -> int:
        products, total_pages = self.fetch_page(1)
        if max_pages is not None:
            total_pages = min(total_pages, max_pages)
        stored = cache.upsert_many(products)
        self.log.info("Synced page 1/%d (%d products)", total_pages, len(products))

        for page in range(2, total_pages + 1):
            self.sleep(self.page_delay)
            products, _ = self.fetch_page(page)
            stored += cache.upsert_many(products)
            self.log.info("Synced page %d/%d (%d products)", page, total_pages, len(products))

        mark_synced = getattr(cache, "mark_synced", None)
        if mark_synced is not None:
            mark_synced()
        self.log.info("Full sync complete: %d products stored", stored)
        return stored
