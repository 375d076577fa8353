"""
Barcode to product resolution: local cache first, then the product API.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import replace
from threading import Lock
from typing import List, Optional, Set, Tuple

from .errors import InvalidCredentials, PetScanError, ProductNotFound, RateLimited
from .models import ProductInfo
from .openpetfoodfacts_client import ProductDataSource
from .product_cache import ProductCache


def barcode_variants(code: str) -> List[str]:
    """
    UPC-A and EAN-13 describe the same product with or without a leading
    zero. The code as given is always tried first.
    """
    code = code.strip()
    variants = [code]
    if len(code) == 12 and code.isdigit():
        variants.append("0" + code)
    elif len(code) == 13 and code.isdigit() and code.startswith("0"):
        variants.append(code[1:])
    seen: Set[str] = set()
    return [v for v in variants if not (v in seen or seen.add(v))]


class ProductResolver:
    """
    Sequential per call; independent calls may run concurrently against the
    shared cache. A product fetched from the API is written back to the
    cache in the background and never delays the caller.
    """

    def __init__(
        self,
        cache: Optional[ProductCache],
        api: ProductDataSource,
        write_executor: Optional[ThreadPoolExecutor] = None,
    ):
        self.cache = cache
        self.api = api
        self._executor = write_executor or ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="cache-writer"
        )
        self._pending: Set[Future] = set()
        self._pending_lock = Lock()
        self.log = logging.getLogger(self.__class__.__name__)

    def resolve(self, barcode: str) -> ProductInfo:
        code, variants = self._prepare(barcode)

        for variant in variants:
            product = self._lookup_cache(variant)
            if product is not None:
                self.log.debug("Cache hit for %s (variant %s)", code, variant)
                return replace(product, barcode=code)

        for variant in variants:
            try:
                product = self.api.get_product(variant)
            except PetScanError as exc:
                if self._stop_after(variant, exc):
                    break
                continue
            if product is not None:
                return self._fetched(code, product)

        raise self._not_found(code)

    async def resolve_async(self, barcode: str) -> ProductInfo:
        """
        Same order as `resolve`. The API call is awaited directly, so a
        cancelled caller aborts the request; only the local cache read runs
        in a worker thread.
        """
        code, variants = self._prepare(barcode)

        for variant in variants:
            product = await asyncio.to_thread(self._lookup_cache, variant)
            if product is not None:
                self.log.debug("Cache hit for %s (variant %s)", code, variant)
                return replace(product, barcode=code)

        for variant in variants:
            try:
                product = await self.api.aget_product(variant)
            except PetScanError as exc:
                if self._stop_after(variant, exc):
                    break
                continue
            if product is not None:
                return self._fetched(code, product)

        raise self._not_found(code)

    def _prepare(self, barcode: str) -> Tuple[str, List[str]]:
        code = (barcode or "").strip()
        if not code:
            raise ProductNotFound("empty barcode", "resolver")
        return code, barcode_variants(code)

    def _stop_after(self, variant: str, exc: PetScanError) -> bool:
        """Rate limits and bad credentials end API lookups for this call."""
        if isinstance(exc, (RateLimited, InvalidCredentials)):
            self.log.warning("Product API unavailable (%s); skipping remaining variants", exc)
            return True
        self.log.warning("Product API lookup failed for %s: %s", variant, exc)
        return False

    def _fetched(self, code: str, product: ProductInfo) -> ProductInfo:
        product = replace(product, barcode=code)
        self.cache_in_background(product)
        return product

    def _not_found(self, code: str) -> ProductNotFound:
        self.log.info("Product %s not found in cache or API", code)
        return ProductNotFound(f"no product for barcode {code}", "resolver")

    def _lookup_cache(self, barcode: str) -> Optional[ProductInfo]:
        if self.cache is None:
            return None
        try:
            return self.cache.lookup(barcode)
        except Exception as exc:  # treated as a miss
            self.log.warning("Cache lookup failed for %s: %s", barcode, exc)
            return None

    def cache_in_background(self, product: ProductInfo) -> Optional[Future]:
        if self.cache is None:
            return None
        future = self._executor.submit(self._write, product)
        with self._pending_lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def _write(self, product: ProductInfo) -> None:
        try:
            self.cache.upsert(product)
        except Exception as exc:
            self.log.warning("Failed to cache product %s: %s", product.barcode, exc)

    def _forget(self, future: Future) -> None:
        with self._pending_lock:
            self._pending.discard(future)

    def wait_for_pending_writes(self, timeout: Optional[float] = None) -> None:
        with self._pending_lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def close(self) -> None:
        self.wait_for_pending_writes()
        self._executor.shutdown(wait=True)
