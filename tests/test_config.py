import importlib
import pkgutil

import petscan_engine
from petscan_engine.config import Settings


def test_defaults(monkeypatch):
    for name in (
        "SERPER_API_KEY",
        "FIRECRAWL_API_KEY",
        "UPCITEMDB_API_KEY",
        "OPENAI_API_KEY",
        "PETSCAN_CACHE_PATH",
        "PETSCAN_VISION_TIMEOUT",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    settings = Settings.from_env()
    assert settings.serper_api_key is None
    assert settings.openai_api_key is None
    assert settings.cache_path == "petscan_cache.db"
    assert settings.extract_timeout == 120.0
    assert settings.vision_timeout == 30.0
    assert settings.retry_delay == 0.5
    assert settings.log_level == "INFO"


def test_reads_environment(monkeypatch):
    monkeypatch.setenv("SERPER_API_KEY", " serper ")
    monkeypatch.setenv("FIRECRAWL_API_KEY", "")
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")
    monkeypatch.setenv("PETSCAN_CACHE_DSN", "postgresql://db")
    monkeypatch.setenv("PETSCAN_RETRY_DELAY", "0")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    settings = Settings.from_env()
    assert settings.serper_api_key == "serper"
    assert settings.firecrawl_api_key is None
    assert settings.openai_api_key == "sk-test"
    assert settings.cache_dsn == "postgresql://db"
    assert settings.retry_delay == 0.0
    assert settings.log_level == "DEBUG"


def test_every_module_is_documented():
    undocumented = []
    for info in pkgutil.iter_modules(petscan_engine.__path__):
        module = importlib.import_module(f"petscan_engine.{info.name}")
        if not (module.__doc__ or "").strip():
            undocumented.append(info.name)
    assert undocumented == []
