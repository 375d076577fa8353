import threading

import pytest

from petscan_engine import db_repository
from petscan_engine.cache_sync import CatalogSync
from petscan_engine.db_repository import PostgresProductCache
from petscan_engine.models import ProductInfo
from petscan_engine.product_cache import InMemoryProductCache, SQLiteProductCache


def _product(code="12345678", **kwargs):
    defaults = {"name": "Kibble", "brand": "Acme", "ingredients_text": "Chicken, Rice", "last_modified": 100}
    defaults.update(kwargs)
    return ProductInfo(barcode=code, **defaults)


def test_sqlite_round_trip(tmp_path):
    cache = SQLiteProductCache(tmp_path / "cache.db")
    assert cache.lookup("12345678") is None
    cache.upsert(_product(image_url="http://img", source="web:chewy"))
    product = cache.lookup("12345678")
    assert product.name == "Kibble"
    assert product.image_url == "http://img"
    assert product.source == "web:chewy"
    assert product.last_modified == 100


def test_sqlite_upsert_replaces_and_counts(tmp_path):
    cache = SQLiteProductCache(tmp_path / "cache.db")
    assert cache.upsert_many([_product("1"), _product("2")]) == 2
    cache.upsert(_product("1", name="New Kibble"))
    assert cache.count() == 2
    assert cache.lookup("1").name == "New Kibble"
    cache.clear()
    assert cache.count() == 0


def test_sqlite_sync_metadata(tmp_path):
    cache = SQLiteProductCache(tmp_path / "cache.db")
    assert cache.last_sync_timestamp is None
    cache.mark_synced(1700000000)
    assert cache.last_sync_timestamp == 1700000000
    assert SQLiteProductCache(tmp_path / "cache.db").last_sync_timestamp == 1700000000


def test_sqlite_in_memory_keeps_one_database():
    cache = SQLiteProductCache(":memory:")
    cache.upsert(_product())
    assert cache.lookup("12345678").name == "Kibble"

    writer = threading.Thread(target=cache.upsert, args=(_product("87654321"),))
    writer.start()
    writer.join(5)
    assert cache.count() == 2
    cache.mark_synced(42)
    assert cache.last_sync_timestamp == 42
    cache.close()


class FakeSearchClient:
    def __init__(self, pages):
        self.pages = pages
        self.requested = []

    def get_json(self, path, params=None):
        self.requested.append((path, params["page"]))
        return self.pages[params["page"] - 1]


def test_full_sync_pages_through_catalog(tmp_path):
    pages = [
        {"page_count": 2, "products": [{"code": "1", "product_name": "A", "brands": "Acme, Other"}, {"product_name": "no code"}]},
        {"page_count": 2, "products": [{"code": "2", "product_name": "B", "last_modified_t": 5}]},
    ]
    client = FakeSearchClient(pages)
    sleeps = []
    cache = SQLiteProductCache(tmp_path / "cache.db")
    stored = CatalogSync(client, page_size=2, sleep=sleeps.append).full_sync(cache)
    assert stored == 2
    assert sleeps == [6.0]
    assert cache.lookup("1").brand == "Acme"
    assert cache.lookup("2").last_modified == 5
    assert cache.last_sync_timestamp is not None
    assert [p for _, p in client.requested] == [1, 2]


def test_full_sync_respects_max_pages():
    client = FakeSearchClient([{"count": 10, "products": [{"code": "1"}]}] * 5)
    cache = InMemoryProductCache()
    stored = CatalogSync(client, page_size=2, sleep=lambda _: None).full_sync(cache, max_pages=3)
    assert stored == 3
    assert len(client.requested) == 3


class FakeCursor:
    def __init__(self, db):
        self.db = db
        self._result = None

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, sql, params=None):
        if "COUNT" in sql:
            self._result = (len(self.db),)
        else:
            self._result = self.db.get(params[0])

    def fetchone(self):
        return self._result


class FakeConnection:
    def __init__(self, db):
        self.db = db

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def cursor(self):
        return FakeCursor(self.db)


class FakePsycopg2:
    def __init__(self):
        self.db = {}

    def connect(self, dsn, cursor_factory=None):
        return FakeConnection(self.db)


def test_postgres_cache_with_fake_driver(monkeypatch):
    fake = FakePsycopg2()

    def fake_execute_values(cur, sql, rows):
        assert "ON CONFLICT (code)" in sql
        for row in rows:
            fake.db[row[0]] = {
                "code": row[0],
                "product_name": row[1],
                "brands": row[2],
                "ingredients_text": row[3],
                "image_url": row[4],
                "image_front_url": row[5],
                "last_modified_t": row[6],
                "source": row[7],
            }

    monkeypatch.setattr(db_repository, "psycopg2", fake)
    monkeypatch.setattr(db_repository, "RealDictCursor", object)
    monkeypatch.setattr(db_repository, "execute_values", fake_execute_values)

    cache = PostgresProductCache("postgresql://test")
    assert cache.upsert_many([_product("1"), _product("2", source="web:petco")]) == 2
    assert cache.count() == 2
    assert cache.lookup("2").source == "web:petco"
    assert cache.lookup("3") is None


def test_postgres_cache_requires_driver(monkeypatch):
    monkeypatch.setattr(db_repository, "psycopg2", None)
    with pytest.raises(ModuleNotFoundError):
        PostgresProductCache("postgresql://test")
