"""
Runtime settings read from the environment.

API keys are optional; a missing key leaves its component unconfigured
instead of failing startup.
"""

import os
from dataclasses import dataclass
from typing import Optional


def _optional(name: str) -> Optional[str]:
    value = os.environ.get(name, "").strip()
    return value or None


def _float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    return float(raw) if raw else default


@dataclass(frozen=True)
class Settings:
    serper_api_key: Optional[str] = None
    firecrawl_api_key: Optional[str] = None
    upcitemdb_api_key: Optional[str] = None
    openai_api_key: Optional[str] = None
    data_dir: Optional[str] = None
    cache_path: str = "petscan_cache.db"
    cache_dsn: Optional[str] = None
    product_api_timeout: float = 15.0
    search_timeout: float = 15.0
    scrape_timeout: float = 20.0
    extract_timeout: float = 120.0
    vision_timeout: float = 30.0
    retry_delay: float = 0.5
    log_level: str = "INFO"

    @staticmethod
    def from_env() -> "Settings":
        # Missing keys leave the matching component unconfigured.
        return Settings(
            serper_api_key=_optional("SERPER_API_KEY"),
            firecrawl_api_key=_optional("FIRECRAWL_API_KEY"),
            upcitemdb_api_key=_optional("UPCITEMDB_API_KEY"),
            openai_api_key=_optional("OPENAI_API_KEY"),
            data_dir=_optional("PETSCAN_DATA_DIR"),
            cache_path=_optional("PETSCAN_CACHE_PATH") or "petscan_cache.db",
            cache_dsn=_optional("PETSCAN_CACHE_DSN"),
            product_api_timeout=_float("PETSCAN_PRODUCT_API_TIMEOUT", 15.0),
            search_timeout=_float("PETSCAN_SEARCH_TIMEOUT", 15.0),
            scrape_timeout=_float("PETSCAN_SCRAPE_TIMEOUT", 20.0),
            extract_timeout=_float("PETSCAN_EXTRACT_TIMEOUT", 120.0),
            vision_timeout=_float("PETSCAN_VISION_TIMEOUT", 30.0),
            retry_delay=_float("PETSCAN_RETRY_DELAY", 0.5),
            log_level=(_optional("LOG_LEVEL") or "INFO").upper(),
        )
