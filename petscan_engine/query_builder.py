"""
Search query preparation and result matching for the web search stage.

- normalize_product_name / remove_size_specs: clean UPC-database titles
- generate_query_variations: most specific first
- extract_product_keywords / result_matches_product: reject off-target hits
- string_similarity / fuzzy_contains: Levenshtein-based tolerance for typos
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from rapidfuzz.distance import Levenshtein

from .sources import BRAND_ALIASES, KNOWN_MULTI_WORD_BRANDS, MANUFACTURER_PREFIXES

BRAND_FUZZY_THRESHOLD = 0.80
PRODUCT_FUZZY_THRESHOLD = 0.85
MAX_CORE_TERMS = 5
SHORT_QUERY_WORDS = 6
MAX_PRODUCT_KEYWORDS = 3

_ABBREVIATIONS: Tuple[Tuple[re.Pattern, str], ...] = (
    (re.compile(r"\bw/\s*"), "with "),
    (re.compile(r"\s*&\s*"), " and "),
    (re.compile(r"\bdr\.?\s+", re.IGNORECASE), "Doctor "),
    (re.compile(r"\blrg\b\.?\s*", re.IGNORECASE), "large "),
    (re.compile(r"\bsm\b\.?\s*", re.IGNORECASE), "small "),
    (re.compile(r"\bmed\b\.?\s*", re.IGNORECASE), "medium "),
)
_PAREN_SIZE_RE = re.compile(r"\s*\([^)]*\d+\s*(?:oz|lb|kg|ct|count|pack)[^)]*\)", re.IGNORECASE)
_SIZE_PATTERNS = (
    re.compile(
        r"\s+\d+(?:\.\d+)?\s*-?\s*(?:oz|ounce|ounces|lb|lbs|pound|pounds|kg|g|gram|grams"
        r"|ct|count|pk|pack|can|cans|pouch|pouches)\b\.?\s*",
        re.IGNORECASE,
    ),
    re.compile(r"\s*\(\s*\d+[^)]*\)\s*"),
    re.compile(r"\s+x\d+\s*", re.IGNORECASE),
)

GENERIC_TERMS = frozenset(
    {
        "food", "foods", "dog", "cat", "puppy", "kitten", "adult", "senior",
        "dry", "wet", "canned", "recipe", "formula", "complete", "balanced",
        "natural", "organic", "premium", "grain-free", "holistic",
        "nutrition", "health", "healthy", "breed", "small", "large", "medium",
        "indoor", "outdoor", "active", "weight", "management", "sensitive",
        "digestive", "original", "classic", "traditional", "real", "made",
        "high", "protein", "low", "fat", "fiber", "calorie",
    }
)

SKIP_WORDS = frozenset(
    {
        "pet", "pets", "treatery",
        "dog", "dogs", "cat", "cats", "puppy", "puppies", "kitten", "kittens", "adult", "senior",
        "food", "foods", "treat", "treats", "kibble", "dry", "wet", "canned", "freeze-dried",
        "raw", "frozen", "dehydrated",
        "natural", "organic", "premium", "grain-free", "holistic", "limited", "ingredient",
        "recipe", "formula", "blend", "bites", "chunks", "mix", "nutrition", "diet",
        "breed", "health", "complete", "balanced", "high-protein", "real", "made",
        "small", "medium", "large", "mini", "giant", "toy",
        "for", "and", "the", "with", "in", "of", "&", "a", "an",
    }
)


@dataclass(frozen=True)
class ProductKeywords:
    brand: Tuple[str, ...]
    product: Tuple[str, ...]
    original: str = ""

    @property
    def is_empty(self) -> bool:
        return not self.brand and not self.product


def _collapse(text: str) -> str:
    return " ".join(text.split())


def normalize_product_name(query: str) -> str:
    result = query
    for pattern, replacement in _ABBREVIATIONS:
        result = pattern.sub(replacement, result)
    for mark in ("®", "™", "©"):
        result = result.replace(mark, "")
    result = result.replace("‘", "'").replace("’", "'")
    result = result.replace("“", '"').replace("”", '"')
    result = _PAREN_SIZE_RE.sub("", result)
    result = result.replace("–", "-").replace("—", "-")
    return _collapse(result)


def remove_size_specs(query: str) -> str:
    result = query
    for pattern in _SIZE_PATTERNS:
        result = pattern.sub(" ", result)
    return _collapse(result)


def strip_manufacturer_prefix(query: str) -> str:
    lowered = query.lower()
    for prefix in MANUFACTURER_PREFIXES:
        if lowered.startswith(prefix.lower() + " "):
            return query[len(prefix) + 1:]
    return query


def detect_brand(words: Sequence[str]) -> Optional[str]:
    start = " ".join(words[:5]).lower()
    for brand in KNOWN_MULTI_WORD_BRANDS:
        if start.startswith(brand.lower()):
            return brand
    return None


def brand_variations(brand: str) -> List[str]:
    """The brand itself first, then aliases in table order, deduplicated."""
    normalized = brand.strip().lower()
    variations = [brand]
    variations.extend(BRAND_ALIASES.get(normalized, ()))
    for key, aliases in BRAND_ALIASES.items():
        if normalized in (a.lower() for a in aliases):
            variations.append(key)
            variations.extend(aliases)
    seen = set()
    unique = []
    for v in variations:
        if v.lower() not in seen:
            seen.add(v.lower())
            unique.append(v)
    return unique


def _replace_ci(text: str, old: str, new: str) -> str:
    return re.sub(re.escape(old), lambda _m: new, text, flags=re.IGNORECASE)


def extract_core_terms(query: str) -> str:
    kept: List[str] = []
    for index, word in enumerate(query.split()):
        if index < 2:
            kept.append(word)
        elif word.lower() not in GENERIC_TERMS and len(word) > 2:
            kept.append(word)
        if len(kept) >= MAX_CORE_TERMS:
            break
    return " ".join(kept)


def generate_query_variations(query: str, brand: Optional[str] = None) -> List[str]:
    base = remove_size_specs(normalize_product_name(query))
    variations: List[str] = []

    def add(candidate: str) -> None:
        candidate = candidate.strip()
        if candidate and candidate not in variations:
            variations.append(candidate)

    add(base)

    words = base.split()
    detected = brand or detect_brand(words)
    if detected and " " in detected:
        remainder = _collapse(_replace_ci(base, detected, ""))
        add(f'"{detected}" {remainder}'.strip())

    no_manufacturer = strip_manufacturer_prefix(base)
    if no_manufacturer != base:
        add(no_manufacturer)

    add(extract_core_terms(no_manufacturer))

    cleaned_words = no_manufacturer.split()
    if len(cleaned_words) > SHORT_QUERY_WORDS:
        add(" ".join(cleaned_words[:SHORT_QUERY_WORDS]))

    if detected:
        alias = next((a for a in brand_variations(detected) if a.lower() != detected.lower()), None)
        if alias:
            alias_query = _replace_ci(base, detected, alias)
            if alias_query != base:
                add(alias_query)

    return variations


def extract_product_keywords(query: str, brand: Optional[str] = None) -> ProductKeywords:
    cleaned = strip_manufacturer_prefix(remove_size_specs(normalize_product_name(query)))
    words = cleaned.split()

    detected = brand or detect_brand(words)
    brand_word_count = len(detected.split()) if detected else min(2, len(words))
    brand_keywords = tuple(words[:brand_word_count])

    product: List[str] = []
    for word in words[brand_word_count:]:
        if word.lower() not in SKIP_WORDS and len(word) > 2:
            product.append(word)
            if len(product) >= MAX_PRODUCT_KEYWORDS:
                break

    return ProductKeywords(brand=brand_keywords, product=tuple(product), original=cleaned)


def levenshtein(a: str, b: str) -> int:
    return Levenshtein.distance(a, b)


def string_similarity(s1: str, s2: str) -> float:
    a, b = s1.lower(), s2.lower()
    if a == b:
        return 1.0
    if not a or not b:
        return 0.0
    return Levenshtein.normalized_similarity(a, b)


_WORD_SPLIT_RE = re.compile(r"[^0-9a-z]+")


def fuzzy_contains(text: str, keyword: str, threshold: float) -> bool:
    keyword = keyword.lower()
    for word in _WORD_SPLIT_RE.split(text.lower()):
        if not word or abs(len(word) - len(keyword)) > 2:
            continue
        if string_similarity(word, keyword) >= threshold:
            return True
    return False


def _keyword_hit(combined: str, keyword: str, threshold: float) -> bool:
    keyword = keyword.lower()
    return keyword in combined or fuzzy_contains(combined, keyword, threshold)


def result_matches_product(title: str, link: str, keywords: ProductKeywords) -> bool:
    if keywords.is_empty:
        return True
    combined = f"{title.lower()} {link.lower()}"

    if not any(_keyword_hit(combined, k, BRAND_FUZZY_THRESHOLD) for k in keywords.brand):
        return False
    if keywords.product and not any(
        _keyword_hit(combined, k, PRODUCT_FUZZY_THRESHOLD) for k in keywords.product
    ):
        return False
    return True
