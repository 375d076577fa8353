"""
Turns raw label text (often OCR output) into a comma-separated ingredient
list the matcher can split.
"""

from __future__ import annotations

import re
import string
from typing import Iterable, List, Optional, Set, Tuple

from .catalog import IngredientCatalog

PREAMBLE_RE = re.compile(r"^.*?\b(?:ingredients?|contains)\s*:?\s*", re.IGNORECASE | re.DOTALL)
SEPARATOR_RE = re.compile(r"[,;]")

# At least one separator per ~7 words means the label kept its commas.
DELIMITED_DENSITY = 0.15


class IngredientTextNormalizer:
    """
    Best-effort heuristic, not a parser. Text that already carries separators
    is only tidied; run-on text is split greedily against the synonym table.
    """

    def __init__(self, catalog: Optional[IngredientCatalog] = None, synonyms: Optional[Iterable[str]] = None):
        if synonyms is None and catalog is not None:
            self.known: Set[str] = set(catalog.synonym_keys)
            self.multi_word: Tuple[str, ...] = catalog.multi_word_synonyms
            return
        self.known = {s.strip().lower() for s in synonyms or () if s and s.strip()}
        self.multi_word = tuple(sorted((s for s in self.known if " " in s), key=lambda s: (-len(s), s)))

    def normalize(self, raw_text: Optional[str]) -> str:
        if not raw_text or not raw_text.strip():
            return ""

        text = strip_preamble(raw_text)
        if has_existing_separators(text):
            return ", ".join(split_on_separators(text))

        return ", ".join(self._split_run_on(text))

    __call__ = normalize

    def _split_run_on(self, text: str) -> List[str]:
        remaining = text.lower()
        entries: List[str] = []

        while True:
            remaining = remaining.lstrip(" \t\r\n,;")
            if not remaining:
                break

            phrase = self._match_multi_word(remaining)
            if phrase is not None:
                entries.append(phrase)
                remaining = remaining[len(phrase):]
                continue

            first, _, rest = _split_first_word(remaining)
            cleaned = first.strip(string.punctuation)
            if cleaned in self.known:
                entries.append(cleaned)
            else:
                entries.append(first.rstrip(",;"))
            remaining = rest

        return [e for e in entries if e]

    def _match_multi_word(self, text: str) -> Optional[str]:
        for phrase in self.multi_word:
            if not text.startswith(phrase):
                continue
            tail = text[len(phrase):]
            # word boundary: whitespace, comma or end of input
            if not tail or tail[0].isspace() or tail[0] == ",":
                return phrase
        return None


def strip_preamble(text: str) -> str:
    return PREAMBLE_RE.sub("", text, count=1).strip()


def has_existing_separators(text: str) -> bool:
    separators = len(SEPARATOR_RE.findall(text))
    if separators == 0:
        return False
    words = len(text.split())
    return separators / max(1, words) > DELIMITED_DENSITY


def split_on_separators(text: str) -> List[str]:
    return [piece.strip() for piece in SEPARATOR_RE.split(text) if piece.strip()]


def _split_first_word(text: str) -> Tuple[str, str, str]:
    parts = text.split(None, 1)
    if len(parts) == 1:
        return parts[0], "", ""
    return parts[0], " ", parts[1]
