"""
Bundled ingredient reference data.

Loads the ingredient list, risk rules and synonym map from JSON, indexes
them by id/normalized phrase, and exposes read-only views. A missing or
corrupt file degrades to an empty table so startup never fails.
"""

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from .models import Category, IngredientRecord, RiskRule, Species

log = logging.getLogger(__name__)

DEFAULT_DATA_DIR = Path(__file__).resolve().parent / "data"


class IngredientCatalog:
    """
    Immutable view over ingredients, rules and synonyms. Construct once and
    share across threads; nothing mutates after __init__.
    """

    def __init__(
        self,
        ingredients: Iterable[IngredientRecord] = (),
        rules: Iterable[RiskRule] = (),
        synonyms: Optional[Mapping[str, str]] = None,
    ):
        by_id: Dict[str, IngredientRecord] = {}
        for record in ingredients:
            if record.id in by_id:
                log.warning("Duplicate ingredient id %s ignored", record.id)
                continue
            by_id[record.id] = record
        self.ingredients: Mapping[str, IngredientRecord] = MappingProxyType(by_id)
        self.rules: Tuple[RiskRule, ...] = tuple(rules)
        normalized = {
            str(key).strip().lower(): str(value)
            for key, value in (synonyms or {}).items()
            if str(key).strip()
        }
        self.synonyms: Mapping[str, str] = MappingProxyType(normalized)
        # Longest first so greedy run-on parsing prefers "chicken meal" over "chicken".
        self.multi_word_synonyms: Tuple[str, ...] = tuple(
            sorted((k for k in normalized if " " in k), key=lambda k: (-len(k), k))
        )

    @classmethod
    def empty(cls) -> "IngredientCatalog":
        return cls()

    @classmethod
    def from_data(
        cls,
        ingredients: Iterable[Dict] = (),
        rules: Iterable[Dict] = (),
        synonyms: Optional[Mapping[str, str]] = None,
    ) -> "IngredientCatalog":
        return cls(
            ingredients=_parse_rows(ingredients, IngredientRecord.from_dict, "ingredient"),
            rules=_parse_rows(rules, RiskRule.from_dict, "rule"),
            synonyms=synonyms,
        )

    @classmethod
    def from_directory(cls, directory: Optional[Path] = None) -> "IngredientCatalog":
        base = Path(directory) if directory else DEFAULT_DATA_DIR
        ingredients = _load_json(base / "ingredients.json", list)
        rules = _load_json(base / "rules.json", list)
        synonyms = _load_json(base / "synonyms.json", dict)
        catalog = cls.from_data(ingredients, rules, synonyms)
        log.info(
            "IngredientCatalog loaded: %d ingredients, %d rules, %d synonyms",
            len(catalog.ingredients),
            len(catalog.rules),
            len(catalog.synonyms),
        )
        return catalog

    def get(self, ingredient_id: Optional[str]) -> Optional[IngredientRecord]:
        if ingredient_id is None:
            return None
        return self.ingredients.get(ingredient_id)

    @property
    def synonym_keys(self) -> Iterable[str]:
        return self.synonyms.keys()

    def rules_for(self, species: Species, category: Category) -> List[RiskRule]:
        return [rule for rule in self.rules if rule.applies_to(species, category)]

    def rules_for_ingredient(
        self, ingredient_id: str, species: Species, category: Category
    ) -> List[RiskRule]:
        return [
            rule
            for rule in self.rules
            if rule.ingredient_id == ingredient_id and rule.applies_to(species, category)
        ]


class CatalogLoader:
    """
    Single-fire, process-wide catalog initialization. Readers call wait()
    and block until the background load has published the catalog.
    """

    def __init__(self, directory: Optional[Path] = None):
        self.directory = directory
        self._loaded = threading.Event()
        self._start_lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._catalog: Optional[IngredientCatalog] = None

    @property
    def ready(self) -> bool:
        return self._loaded.is_set()

    def start(self) -> "CatalogLoader":
        with self._start_lock:
            if self._thread is None and not self.ready:
                self._thread = threading.Thread(
                    target=self._load, name="catalog-loader", daemon=True
                )
                self._thread.start()
        return self

    def wait(self, timeout: Optional[float] = None) -> IngredientCatalog:
        self.start()
        if not self._loaded.wait(timeout):
            raise TimeoutError("ingredient catalog did not finish loading")
        assert self._catalog is not None
        return self._catalog

    def _load(self) -> None:
        try:
            self._catalog = IngredientCatalog.from_directory(self.directory)
        except Exception as exc:  # degrade rather than leave readers blocked
            log.warning("Catalog load failed, using empty catalog: %s", exc)
            self._catalog = IngredientCatalog.empty()
        finally:
            self._loaded.set()


_default_loader: Optional[CatalogLoader] = None
_default_lock = threading.Lock()


def default_catalog(timeout: Optional[float] = None) -> IngredientCatalog:
    """Process-wide catalog over the bundled data, loaded once."""
    global _default_loader
    with _default_lock:
        if _default_loader is None:
            _default_loader = CatalogLoader().start()
    return _default_loader.wait(timeout)


def _load_json(path: Path, expected_type: type):
    if not path.exists():
        log.warning("Catalog file missing: %s", path)
        return expected_type()
    try:
        with path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, ValueError) as exc:
        log.warning("Failed to decode %s: %s", path.name, exc)
        return expected_type()
    if not isinstance(data, expected_type):
        log.warning("Unexpected top-level type in %s", path.name)
        return expected_type()
    return data


def _parse_rows(rows: Iterable[Dict], factory, kind: str) -> list:
    parsed = []
    for row in rows or ():
        try:
            parsed.append(factory(row))
        except (KeyError, ValueError, TypeError) as exc:
            log.warning("Skipping malformed %s row %r: %s", kind, row, exc)
    return parsed
