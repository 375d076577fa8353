"""
Shared domain models used across the catalog, matcher, scorer and resolver.

- Species/Category/RuleSeverity/ProcessingLevel: fixed vocabularies from the
  bundled catalog.
- IngredientRecord/RiskRule: immutable catalog rows.
- MatchedIngredient: one ingredient-list token resolved (or not) to the catalog.
- PetAllergenProfile: what the caller's pet must avoid.
- WarningFlag/ExplanationFactor/ScoreExplanation/ScoreBreakdown: scored output.
- ProductInfo: normalized product representation independent of source.
- SearchResult/ScrapedProduct: transient DTOs of the web resolution pipeline.
- ProductIdentification: brand and name recognised from a packaging photo.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Sequence, Tuple

# Below this a photo identification is not trusted to drive a web search.
MIN_IDENTIFICATION_CONFIDENCE = 0.5


class Species(str, Enum):
    DOG = "dog"
    CAT = "cat"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class Category(str, Enum):
    FOOD = "food"
    TREAT = "treat"
    COSMETIC = "cosmetic"


class RuleSeverity(str, Enum):
    INFO = "info"
    WARN = "warn"
    HIGH = "high"
    CRITICAL = "critical"


class ProcessingLevel(int, Enum):
    """Pet-adapted NOVA groups. Informational only; never affects scores."""

    UNPROCESSED = 1
    CULINARY_INGREDIENT = 2
    PROCESSED = 3
    ULTRA_PROCESSED = 4

    @property
    def display_name(self) -> str:
        return {
            ProcessingLevel.UNPROCESSED: "Minimally Processed",
            ProcessingLevel.CULINARY_INGREDIENT: "Culinary Ingredient",
            ProcessingLevel.PROCESSED: "Processed",
            ProcessingLevel.ULTRA_PROCESSED: "Ultra-Processed",
        }[self]


class WarningType(str, Enum):
    ALLERGEN = "allergen"
    SAFETY = "safety"
    GENERAL = "general"


class Impact(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"


class ScoreSource(str, Enum):
    DATABASE_VERIFIED = "database_verified"
    OCR_ESTIMATED = "ocr_estimated"
    MANUAL_ENTRY = "manual_entry"


class RatingLabel(str, Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    CAUTION = "Caution"
    AVOID = "Avoid"

    @classmethod
    def from_score(cls, score: float) -> "RatingLabel":
        if score >= 75:
            return cls.EXCELLENT
        if score >= 50:
            return cls.GOOD
        if score >= 25:
            return cls.CAUTION
        return cls.AVOID


class ScrapeConfidence(str, Enum):
    HIGH = "high"  # structured extraction of an exact product page
    MEDIUM = "medium"  # parsed from the DOM
    LOW = "low"


@dataclass(frozen=True)
class IngredientRecord:
    """A canonical ingredient concept. Keyed by id within the catalog."""

    id: str
    common_name: str
    species: FrozenSet[Species] = frozenset()
    categories: FrozenSet[Category] = frozenset()
    origin: str = "natural"
    risk_level: str = "safe"
    scientific_name: Optional[str] = None
    allergen_risk: Optional[str] = None
    typical_function: Optional[str] = None
    processing_level: Optional[ProcessingLevel] = None
    notes: str = ""
    toxicity_symptoms: Tuple[str, ...] = ()
    toxic_dose: Dict[str, str] = field(default_factory=dict, hash=False, compare=False)
    sources: Tuple[str, ...] = ()

    @classmethod
    def from_dict(cls, data: Dict) -> "IngredientRecord":
        level = data.get("processingLevel")
        return cls(
            id=str(data["id"]),
            common_name=str(data["commonName"]),
            species=frozenset(Species(s) for s in data.get("species", [])),
            categories=frozenset(Category(c) for c in data.get("categories", [])),
            origin=data.get("origin") or "natural",
            risk_level=data.get("riskLevel") or "safe",
            scientific_name=data.get("scientificName"),
            allergen_risk=data.get("allergenOrSensitizationRisk"),
            typical_function=data.get("typicalFunction"),
            processing_level=ProcessingLevel(level) if level else None,
            notes=data.get("notes") or "",
            toxicity_symptoms=tuple(data.get("toxicitySymptoms") or ()),
            toxic_dose=dict(data.get("toxicDose") or {}),
            sources=tuple(_as_list(data.get("source"))),
        )


@dataclass(frozen=True)
class RiskRule:
    id: str
    ingredient_id: str
    species: FrozenSet[Species]
    categories: FrozenSet[Category]
    severity: RuleSeverity
    explain: str
    score_impact: float
    source: Optional[str] = None

    def applies_to(self, species: Species, category: Category) -> bool:
        return species in self.species and category in self.categories

    @classmethod
    def from_dict(cls, data: Dict) -> "RiskRule":
        applies = data.get("appliesTo") or {}
        return cls(
            id=str(data["id"]),
            ingredient_id=str(data["ingredientId"]),
            species=frozenset(Species(s) for s in applies.get("species", [])),
            categories=frozenset(Category(c) for c in applies.get("categories", [])),
            severity=RuleSeverity(data.get("severity", "info")),
            explain=data.get("explain") or "",
            score_impact=float(data.get("scoreImpact", 0)),
            source=data.get("evidence") or data.get("source"),
        )


@dataclass(frozen=True)
class MatchedIngredient:
    label_name: str
    rank: int
    ingredient_id: Optional[str] = None
    processing_level: Optional[ProcessingLevel] = None

    @property
    def is_matched(self) -> bool:
        return self.ingredient_id is not None


@dataclass
class PetAllergenProfile:
    """Supplied by the caller per score request."""

    allergens: List[str] = field(default_factory=list)
    species: Species = Species.DOG
    pet_name: Optional[str] = None

    def normalized_allergens(self) -> List[str]:
        return [a.strip().lower() for a in self.allergens]


@dataclass(frozen=True)
class WarningFlag:
    severity: RuleSeverity
    title: str
    explain: str
    type: WarningType = WarningType.GENERAL
    ingredient_id: Optional[str] = None
    source: Optional[str] = None

    @property
    def id(self) -> str:
        return f"{self.severity.value}-{self.type.value}-{self.ingredient_id or self.title}"


@dataclass(frozen=True)
class ExplanationFactor:
    id: str
    description: str
    impact: Impact
    ingredient_name: Optional[str] = None


@dataclass(frozen=True)
class ScoreExplanation:
    factors: Tuple[ExplanationFactor, ...]
    summary: str


@dataclass(frozen=True)
class ScoreBreakdown:
    total: float
    safety: float
    nutrition: Optional[float]
    suitability: float
    flags: Tuple[WarningFlag, ...] = ()
    unmatched: Tuple[str, ...] = ()
    matched_count: int = 0
    total_count: int = 0
    safety_explanation: Optional[ScoreExplanation] = None
    suitability_explanation: Optional[ScoreExplanation] = None
    score_source: ScoreSource = ScoreSource.DATABASE_VERIFIED
    ocr_confidence: Optional[float] = None

    @property
    def match_rate(self) -> float:
        if self.total_count <= 0:
            return 0.0
        return self.matched_count / self.total_count

    @property
    def match_percentage(self) -> int:
        return int(self.match_rate * 100)

    @property
    def has_critical_flags(self) -> bool:
        return any(flag.severity == RuleSeverity.CRITICAL for flag in self.flags)

    @property
    def allergen_flags(self) -> List[WarningFlag]:
        return [flag for flag in self.flags if flag.type == WarningType.ALLERGEN]

    @property
    def other_flags(self) -> List[WarningFlag]:
        return [flag for flag in self.flags if flag.type != WarningType.ALLERGEN]

    @property
    def rating_label(self) -> RatingLabel:
        return RatingLabel.from_score(self.total)

    def needs_confirmation(self, threshold: float = 0.6) -> bool:
        """
        True when the result was found but is low confidence: the OCR read was
        weak or too few label tokens resolved to the catalog. Drives the
        confirm/retry affordance of the calling UI.
        """
        if self.ocr_confidence is not None and self.ocr_confidence < threshold:
            return True
        return self.total_count > 0 and self.match_rate < threshold

    def share_text(self, product_name: Optional[str] = None) -> str:
        lines = []
        if product_name:
            lines.append(product_name)
        lines.append(f"Score: {self.total:.0f}/100 ({self.rating_label.value})")
        lines.append(f"Safety: {self.safety:.0f}")
        if self.nutrition is not None:
            lines.append(f"Nutrition: {self.nutrition:.0f}")
        lines.append(f"Suitability: {self.suitability:.0f}")
        if self.flags:
            lines.append("Warnings:")
            for flag in self.flags:
                lines.append(f"- {flag.title}: {flag.explain}")
        lines.append(
            f"Matched {self.matched_count} of {self.total_count} ingredients"
        )
        return "\n".join(lines)

    def to_dict(self) -> Dict:
        payload = asdict(self)
        payload["rating_label"] = self.rating_label.value
        payload["match_rate"] = round(self.match_rate, 3)
        return payload


@dataclass
class ProductInfo:
    """
    Standardized product model independent of the provider (cache, API, web).
    """

    barcode: str
    name: Optional[str] = None
    brand: Optional[str] = None
    ingredients_text: Optional[str] = None
    image_url: Optional[str] = None
    source: str = "openpetfoodfacts"
    last_modified: Optional[int] = None

    @property
    def has_ingredients(self) -> bool:
        return bool(self.ingredients_text and self.ingredients_text.strip())


@dataclass(frozen=True)
class SearchResult:
    url: str
    source_key: str
    source_name: str
    title: str = ""


@dataclass(frozen=True)
class ScrapedProduct:
    ingredients_text: str
    source_url: str
    source_name: str
    confidence: ScrapeConfidence = ScrapeConfidence.MEDIUM
    product_name: Optional[str] = None
    brand: Optional[str] = None
    ingredients: Tuple[str, ...] = ()
    price: Optional[float] = None
    image_url: Optional[str] = None


@dataclass(frozen=True)
class ProductIdentification:
    """Brand and product line read off a packaging photo."""

    brand: Optional[str] = None
    product_name: Optional[str] = None
    species: Optional[Species] = None
    confidence: float = 0.0
    primary_protein: Optional[str] = None
    primary_carb: Optional[str] = None

    @property
    def search_query(self) -> Optional[str]:
        """"brand name protein carb"; None unless both brand and name are known."""
        if not self.brand or not self.product_name:
            return None
        parts = (self.brand, self.product_name, self.primary_protein, self.primary_carb)
        return " ".join(p for p in parts if p)

    @property
    def is_usable(self) -> bool:
        return self.search_query is not None and self.confidence >= MIN_IDENTIFICATION_CONFIDENCE


def _as_list(value) -> Sequence[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]
