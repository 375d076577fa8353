"""
Maps each token of a comma-separated ingredient list to a canonical
ingredient id.

Resolution order per token:
1) exact synonym lookup on the normalized token
2) exact lookup after descriptor stripping ("dried", "organic", "meal", ...)
3) bidirectional containment against every synonym key
"""

from __future__ import annotations

import re
from typing import List, Mapping, Optional, Sequence

from .catalog import IngredientCatalog
from .models import MatchedIngredient

DESCRIPTORS = (
    "dried", "dry", "powder", "powdered", "extract", "natural", "artificial",
    "fresh", "deboned", "meal", "concentrate", "concentrated", "organic",
    "raw", "cooked", "ground", "whole", "minced", "shredded", "flaked",
    "dehydrated", "freeze-dried", "frozen", "canned", "prepared",
    "hydrolyzed", "isolated", "pure", "refined", "enriched", "fortified",
)

# "freeze-dried" must go before "dried" or the hyphenated prefix is left behind.
_DESCRIPTOR_RE = re.compile(
    r"(?<![\w-])(?:"
    + "|".join(re.escape(d) for d in sorted(DESCRIPTORS, key=len, reverse=True))
    + r")(?![\w-])"
)
_NUMBER_RE = re.compile(r"\b\d+(?:\.\d+)?%?(?!\w)")
_BYPRODUCT_RE = re.compile(r"\s*by-?\s?products?\s*")
_PARENTHETICAL_RE = re.compile(r"\(.*?\)")
_DISALLOWED_RE = re.compile(r"[^\w\s'/-]|_")
_SEPARATOR_RE = re.compile(r"[,;]")

MIN_CONTAINMENT_LENGTH = 3


def split_ingredient_list(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    return [piece.strip() for piece in _SEPARATOR_RE.split(raw) if piece.strip()]


def normalize_token(token: str) -> str:
    result = token.lower()
    result = result.replace("‘", "'").replace("’", "'")
    result = result.replace("“", '"').replace("”", '"')
    result = _PARENTHETICAL_RE.sub(" ", result)
    result = _DISALLOWED_RE.sub("", result)
    return " ".join(result.split())


def strip_descriptors(normalized: str) -> str:
    stripped = _DESCRIPTOR_RE.sub(" ", normalized)
    stripped = _NUMBER_RE.sub(" ", stripped)
    stripped = _BYPRODUCT_RE.sub(" ", stripped)
    return " ".join(stripped.split())


def containment_match(stripped: str, synonyms: Mapping[str, str]) -> Optional[str]:
    """
    Longest synonym key that contains, or is contained in, the token.
    Ties go to the alphabetically first key so the result never depends
    on table order.
    """
    best_key: Optional[str] = None
    for key in synonyms:
        if len(key) > MIN_CONTAINMENT_LENGTH and key in stripped:
            hit = True
        elif len(stripped) > MIN_CONTAINMENT_LENGTH and stripped in key:
            hit = True
        else:
            hit = False
        if not hit:
            continue
        if best_key is None or (-len(key), key) < (-len(best_key), best_key):
            best_key = key
    return synonyms[best_key] if best_key is not None else None


class IngredientMatcher:
    """Stateless; safe to share between threads."""

    def __init__(self, catalog: IngredientCatalog):
        self.catalog = catalog

    def match(self, raw_ingredients: Optional[str]) -> List[MatchedIngredient]:
        matched = []
        for rank, label in enumerate(split_ingredient_list(raw_ingredients), start=1):
            ingredient_id = self.resolve(label)
            record = self.catalog.get(ingredient_id)
            matched.append(
                MatchedIngredient(
                    label_name=label,
                    rank=rank,
                    ingredient_id=ingredient_id,
                    processing_level=record.processing_level if record else None,
                )
            )
        return matched

    def resolve(self, label: str) -> Optional[str]:
        synonyms = self.catalog.synonyms
        normalized = normalize_token(label)
        if not normalized:
            return None

        ingredient_id = synonyms.get(normalized)
        if ingredient_id is not None:
            return ingredient_id

        stripped = strip_descriptors(normalized)
        if not stripped:
            return None
        ingredient_id = synonyms.get(stripped)
        if ingredient_id is not None:
            return ingredient_id

        return containment_match(stripped, synonyms)


def match_rate(matched: Sequence[MatchedIngredient]) -> float:
    if not matched:
        return 0.0
    return sum(1 for m in matched if m.is_matched) / len(matched)
