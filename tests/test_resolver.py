import asyncio
import threading

import pytest

from petscan_engine.errors import InvalidCredentials, NetworkError, ProductNotFound, RateLimited
from petscan_engine.models import ProductInfo
from petscan_engine.openpetfoodfacts_client import ProductDataSource
from petscan_engine.product_cache import InMemoryProductCache
from petscan_engine.resolver import ProductResolver, barcode_variants


class FakeAPI(ProductDataSource):
    def __init__(self, products=None, error_for=(), error=NetworkError):
        self.products = dict(products or {})
        self.error_for = set(error_for)
        self.error = error
        self.calls = []

    def get_product(self, barcode):
        self.calls.append(barcode)
        if barcode in self.error_for:
            raise self.error("boom", "fake")
        return self.products.get(barcode)


class BrokenCache(InMemoryProductCache):
    def lookup(self, barcode):
        raise RuntimeError("disk on fire")


class BlockingCache(InMemoryProductCache):
    def __init__(self):
        super().__init__()
        self.release = threading.Event()

    def upsert(self, product):
        self.release.wait(5)
        super().upsert(product)


def test_barcode_variants():
    assert barcode_variants("012345678905") == ["012345678905", "0012345678905"]
    assert barcode_variants("0012345678905") == ["0012345678905", "012345678905"]
    assert barcode_variants("5012345678900") == ["5012345678900"]
    assert barcode_variants(" 12345678 ") == ["12345678"]


def test_empty_barcode_is_not_found():
    resolver = ProductResolver(InMemoryProductCache(), FakeAPI())
    with pytest.raises(ProductNotFound):
        resolver.resolve("  ")


def test_cache_hit_skips_api():
    cache = InMemoryProductCache([ProductInfo(barcode="0012345678905", name="Kibble")])
    api = FakeAPI()
    product = ProductResolver(cache, api).resolve("012345678905")
    assert product.name == "Kibble"
    assert product.barcode == "012345678905"
    assert api.calls == []


def test_api_hit_is_cached_in_background():
    cache = InMemoryProductCache()
    api = FakeAPI({"0012345678905": ProductInfo(barcode="0012345678905", name="Kibble")})
    resolver = ProductResolver(cache, api)
    product = resolver.resolve("012345678905")
    assert product.barcode == "012345678905"
    assert api.calls == ["012345678905", "0012345678905"]
    resolver.wait_for_pending_writes(timeout=5)
    assert cache.lookup("012345678905").name == "Kibble"
    resolver.close()


def test_cache_write_does_not_block_caller():
    cache = BlockingCache()
    api = FakeAPI({"12345678": ProductInfo(barcode="12345678", name="Treats")})
    resolver = ProductResolver(cache, api)
    product = resolver.resolve("12345678")
    assert product.name == "Treats"
    assert cache.count() == 0
    cache.release.set()
    resolver.wait_for_pending_writes(timeout=5)
    assert cache.count() == 1
    resolver.close()


def test_api_errors_fall_through_to_next_variant():
    api = FakeAPI(
        {"0012345678905": ProductInfo(barcode="0012345678905", name="Kibble")},
        error_for={"012345678905"},
    )
    product = ProductResolver(None, api).resolve("012345678905")
    assert product.name == "Kibble"


def test_broken_cache_counts_as_miss():
    api = FakeAPI({"12345678": ProductInfo(barcode="12345678", name="Treats")})
    assert ProductResolver(BrokenCache(), api).resolve("12345678").name == "Treats"


def test_exhausted_resolver_raises_not_found():
    api = FakeAPI(error_for={"12345678"})
    with pytest.raises(ProductNotFound):
        ProductResolver(InMemoryProductCache(), api).resolve("12345678")


@pytest.mark.parametrize("error", [RateLimited, InvalidCredentials])
def test_rate_limit_and_bad_credentials_stop_api_lookups(error):
    api = FakeAPI(error_for={"012345678905", "0012345678905"}, error=error)
    with pytest.raises(ProductNotFound):
        ProductResolver(None, api).resolve("012345678905")
    assert api.calls == ["012345678905"]


def test_async_resolve_uses_cache_then_api():
    cache = InMemoryProductCache([ProductInfo(barcode="12345678", name="Cached")])
    api = FakeAPI({"0012345678905": ProductInfo(barcode="0012345678905", name="Kibble")})
    resolver = ProductResolver(cache, api)

    assert asyncio.run(resolver.resolve_async("12345678")).name == "Cached"
    product = asyncio.run(resolver.resolve_async("012345678905"))
    assert product.barcode == "012345678905"
    assert api.calls == ["012345678905", "0012345678905"]
    resolver.close()
    assert cache.lookup("012345678905").name == "Kibble"


def test_async_resolve_stops_after_rate_limit():
    api = FakeAPI(error_for={"012345678905", "0012345678905"}, error=RateLimited)
    with pytest.raises(ProductNotFound):
        asyncio.run(ProductResolver(None, api).resolve_async("012345678905"))
    assert api.calls == ["012345678905"]
