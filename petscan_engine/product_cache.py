"""
Local product cache keyed by barcode.

- ProductCache: interface (lookup / upsert / count), idempotent by barcode.
- InMemoryProductCache: dict behind a lock; used in tests and as a fallback.
- SQLiteProductCache: stdlib sqlite3 file cache. Reads open their own
  connection and run concurrently; writes are serialized by one lock and
  resolve as last-write-wins on the primary key. ":memory:" shares one
  connection instead.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Iterable, Iterator, Optional, Union

from .models import ProductInfo


class ProductCache:
    """
    Base interface for a barcode-keyed product store.
    """

    def lookup(self, barcode: str) -> Optional[ProductInfo]:
        raise NotImplementedError

    def upsert(self, product: ProductInfo) -> None:
        raise NotImplementedError

    def count(self) -> int:
        raise NotImplementedError

    def upsert_many(self, products: Iterable[ProductInfo]) -> int:
        stored = 0
        for product in products:
            self.upsert(product)
            stored += 1
        return stored


class InMemoryProductCache(ProductCache):
    def __init__(self, products: Optional[Iterable[ProductInfo]] = None):
        self._lock = threading.Lock()
        self._products: Dict[str, ProductInfo] = {}
        for product in products or ():
            self._products[product.barcode] = product

    def lookup(self, barcode: str) -> Optional[ProductInfo]:
        with self._lock:
            return self._products.get(barcode)

    def upsert(self, product: ProductInfo) -> None:
        with self._lock:
            self._products[product.barcode] = product

    def count(self) -> int:
        with self._lock:
            return len(self._products)

    def clear(self) -> None:
        with self._lock:
            self._products.clear()


class SQLiteProductCache(ProductCache):
    """
    File-backed cache with the same `products` layout as the Open Pet Food
    Facts export, plus a `metadata` table for sync bookkeeping.

    ":memory:" keeps a single shared connection for the life of the object;
    every new in-memory connection would otherwise be a fresh, empty database.
    """

    MEMORY = ":memory:"
    LAST_SYNC_KEY = "last_sync_timestamp"

    _SCHEMA = (
        """
        CREATE TABLE IF NOT EXISTS products (
            code TEXT PRIMARY KEY,
            product_name TEXT,
            brands TEXT,
            ingredients_text TEXT,
            image_url TEXT,
            image_front_url TEXT,
            last_modified_t INTEGER,
            source TEXT,
            cached_at INTEGER NOT NULL
        )
        """,
        "CREATE INDEX IF NOT EXISTS idx_last_modified ON products (last_modified_t)",
        """
        CREATE TABLE IF NOT EXISTS metadata (
            key TEXT PRIMARY KEY,
            value TEXT
        )
        """,
    )

    # One writer per process regardless of how many cache objects share a file.
    _write_lock = threading.Lock()

    def __init__(self, path: Union[str, Path] = "petscan_cache.db", timeout: float = 15.0):
        self.path = str(path)
        self.timeout = timeout
        self.log = logging.getLogger(self.__class__.__name__)
        self._shared: Optional[sqlite3.Connection] = None
        self._shared_lock = threading.Lock()
        if self.path == self.MEMORY:
            self._shared = self._open(check_same_thread=False)
        else:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        with self._write_lock, self._connection() as conn:
            with conn:
                for statement in self._SCHEMA:
                    conn.execute(statement)

    def _open(self, check_same_thread: bool = True) -> sqlite3.Connection:
        conn = sqlite3.connect(self.path, timeout=self.timeout, check_same_thread=check_same_thread)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        if self._shared is not None:
            with self._shared_lock:
                yield self._shared
            return
        conn = self._open()
        try:
            yield conn
        finally:
            conn.close()

    def lookup(self, barcode: str) -> Optional[ProductInfo]:
        with self._connection() as conn:
            row = conn.execute(
                """
                SELECT code, product_name, brands, ingredients_text,
                       image_url, image_front_url, last_modified_t, source
                FROM products
                WHERE code = ?
                """,
                (barcode,),
            ).fetchone()

        if row is None:
            return None
        return ProductInfo(
            barcode=row["code"],
            name=row["product_name"],
            brand=row["brands"],
            ingredients_text=row["ingredients_text"],
            image_url=row["image_front_url"] or row["image_url"],
            source=row["source"] or "cache",
            last_modified=row["last_modified_t"],
        )

    def upsert(self, product: ProductInfo) -> None:
        self.upsert_many([product])

    def upsert_many(self, products: Iterable[ProductInfo]) -> int:
        now = int(time.time())
        rows = [
            (
                p.barcode,
                p.name,
                p.brand,
                p.ingredients_text,
                p.image_url,
                p.image_url,
                p.last_modified,
                p.source,
                now,
            )
            for p in products
        ]
        if not rows:
            return 0
        with self._write_lock, self._connection() as conn:
            with conn:
                conn.executemany(
                    """
                    INSERT OR REPLACE INTO products (
                        code, product_name, brands, ingredients_text, image_url,
                        image_front_url, last_modified_t, source, cached_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    rows,
                )
        return len(rows)

    def count(self) -> int:
        with self._connection() as conn:
            return int(conn.execute("SELECT COUNT(*) FROM products").fetchone()[0])

    def clear(self) -> None:
        with self._write_lock, self._connection() as conn:
            with conn:
                conn.execute("DELETE FROM products")
                conn.execute("DELETE FROM metadata")
        self.log.info("Product cache cleared")

    def get_metadata(self, key: str) -> Optional[str]:
        with self._connection() as conn:
            row = conn.execute("SELECT value FROM metadata WHERE key = ?", (key,)).fetchone()
        return row["value"] if row else None

    def set_metadata(self, key: str, value: str) -> None:
        with self._write_lock, self._connection() as conn:
            with conn:
                conn.execute(
                    "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
                    (key, value),
                )

    @property
    def last_sync_timestamp(self) -> Optional[int]:
        value = self.get_metadata(self.LAST_SYNC_KEY)
        return int(value) if value else None

    def mark_synced(self, timestamp: Optional[int] = None) -> None:
        self.set_metadata(self.LAST_SYNC_KEY, str(int(timestamp if timestamp is not None else time.time())))

    def close(self) -> None:
        if self._shared is not None:
            with self._shared_lock:
                self._shared.close()
