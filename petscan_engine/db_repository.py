"""
PostgreSQL-backed product cache, for deployments that share one cache
between several workers. psycopg2 is optional; without it only the SQLite
cache is available.
"""

from __future__ import annotations

import time
from typing import Iterable, Optional

try:
    import psycopg2
    from psycopg2.extras import RealDictCursor, execute_values
except ModuleNotFoundError:  # pragma: no cover - optional dependency
    psycopg2 = None  # type: ignore
    RealDictCursor = None  # type: ignore
    execute_values = None  # type: ignore

from .models import ProductInfo
from .product_cache import ProductCache

_UPSERT_SQL = """
    INSERT INTO products (
        code, product_name, brands, ingredients_text, image_url,
        image_front_url, last_modified_t, source, cached_at
    ) VALUES %s
    ON CONFLICT (code) DO UPDATE SET
        product_name = EXCLUDED.product_name,
        brands = EXCLUDED.brands,
        ingredients_text = EXCLUDED.ingredients_text,
        image_url = EXCLUDED.image_url,
        image_front_url = EXCLUDED.image_front_url,
        last_modified_t = EXCLUDED.last_modified_t,
        source = EXCLUDED.source,
        cached_at = EXCLUDED.cached_at
"""


class PostgresProductCache(ProductCache):
    """
    PostgreSQL-backed product cache over the same `products` table layout as
    the SQLite cache. The table is expected to exist.
    """

    def __init__(self, dsn: str):
        if psycopg2 is None:
            raise ModuleNotFoundError(
                "psycopg2 is required for PostgresProductCache. Install via "
                "'pip install psycopg2-binary'."
            )
        self.dsn = dsn

    def lookup(self, barcode: str) -> Optional[ProductInfo]:
        with psycopg2.connect(self.dsn, cursor_factory=RealDictCursor) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    """
                    SELECT code, product_name, brands, ingredients_text,
                           image_url, image_front_url, last_modified_t, source
                    FROM products
                    WHERE code = %s
                    """,
                    (barcode,),
                )
                row = cur.fetchone()

        if not row:
            return None

        return ProductInfo(
            barcode=row["code"],
            name=row.get("product_name"),
            brand=row.get("brands"),
            ingredients_text=row.get("ingredients_text"),
            image_url=row.get("image_front_url") or row.get("image_url"),
            source=row.get("source") or "db",
            last_modified=row.get("last_modified_t"),
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
        with psycopg2.connect(self.dsn) as conn:
            with conn.cursor() as cur:
                execute_values(cur, _UPSERT_SQL, rows)
        return len(rows)

    def count(self) -> int:
        with psycopg2.connect(self.dsn) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT COUNT(*) FROM products")
                (total,) = cur.fetchone()
        return int(total)
