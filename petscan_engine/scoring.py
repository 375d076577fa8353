"""
Safety / nutrition / suitability scoring over matched ingredients.

Each ingredient's influence decays with its list position,
weight(rank) = exp(-0.22 * (rank - 1)), since labels list ingredients by
descending proportion. A critical risk rule caps the total at 10.
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence, Tuple

import numpy as np

from .catalog import IngredientCatalog
from .models import (
    Category,
    ExplanationFactor,
    Impact,
    IngredientRecord,
    MatchedIngredient,
    PetAllergenProfile,
    RuleSeverity,
    ScoreBreakdown,
    ScoreExplanation,
    ScoreSource,
    Species,
    WarningFlag,
    WarningType,
)

RANK_DECAY_K = 0.22
CRITICAL_CAP = 10.0

WEIGHTS_FOOD_TREAT = (0.45, 0.40, 0.15)  # safety, nutrition, suitability
WEIGHTS_COSMETIC = (0.70, 0.30)  # safety, suitability

# Checked in order; the risk level string is matched by substring.
BASE_PENALTIES = (
    ("toxic", 40.0),
    ("caution", 15.0),
    ("moderation", 6.0),
    ("safe_for_most", 2.0),
)

UNKNOWN_PENALTY_TOP5 = 3.0
UNKNOWN_PENALTY_OTHERS = 1.5
ALLERGEN_PENALTY_TOP5 = 30.0
ALLERGEN_PENALTY_OTHERS = 15.0

PROTEIN_BONUS_TOP3 = 4.0
ARTIFICIAL_COLORS_PENALTY = 6.0
PRESERVATIVE_PENALTY = 5.0

PROTEIN_SOURCES = (
    "chicken", "beef", "turkey", "lamb", "pork", "salmon",
    "tuna", "whitefish", "egg", "liver", "heart",
)
HARMFUL_PRESERVATIVES = ("bha", "bht", "ethoxyquin")

MAX_SAFETY_FACTORS = 5
DEFAULT_PET_NAME = "your pet"


def rank_weights(ranks: Sequence[int]) -> np.ndarray:
    ranks_arr = np.asarray(ranks, dtype=float)
    return np.exp(-RANK_DECAY_K * (ranks_arr - 1.0))


def base_penalty(risk_level: Optional[str]) -> float:
    level = (risk_level or "").lower()
    for marker, penalty in BASE_PENALTIES:
        if marker in level:
            return penalty
    return 0.0


def _clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return float(max(low, min(high, value)))


def _round1(value: float) -> float:
    return round(float(value), 1)


class ScoreEngine:
    """
    Pure function over (matched ingredients, allergen profile, species,
    category) plus the immutable catalog. No state is kept between calls.
    """

    def __init__(self, catalog: IngredientCatalog):
        self.catalog = catalog
        self.log = logging.getLogger(self.__class__.__name__)

    def calculate(
        self,
        matched: Sequence[MatchedIngredient],
        allergens: Iterable[str] = (),
        species: Species = Species.DOG,
        category: Category = Category.FOOD,
        pet_name: Optional[str] = None,
        score_source: ScoreSource = ScoreSource.DATABASE_VERIFIED,
        ocr_confidence: Optional[float] = None,
    ) -> ScoreBreakdown:
        matched = list(matched)
        normalized_allergens = [a.strip().lower() for a in allergens]
        weights = rank_weights([m.rank for m in matched]) if matched else np.zeros(0)

        safety_penalty, unmatched, safety_factors = self._safety(matched, weights, species)
        suitability, allergen_flags, suitability_factors = self._suitability(
            matched, normalized_allergens, pet_name
        )
        nutrition = self._nutrition(matched, category)
        rule_penalty, rule_flags, saw_critical, rule_factors = self._rules(
            matched, weights, species, category
        )

        safety = _clamp(100.0 - (safety_penalty + rule_penalty))
        suitability = _clamp(suitability)
        nutrition = _clamp(nutrition)

        if category == Category.COSMETIC:
            w_safety, w_suit = WEIGHTS_COSMETIC
            total = w_safety * safety + w_suit * suitability
            final_nutrition: Optional[float] = None
        else:
            w_safety, w_nutrition, w_suit = WEIGHTS_FOOD_TREAT
            total = w_safety * safety + w_nutrition * nutrition + w_suit * suitability
            final_nutrition = _round1(nutrition)

        # Hard override for every category, cosmetics included.
        if saw_critical:
            total = min(total, CRITICAL_CAP)

        return ScoreBreakdown(
            total=_round1(total),
            safety=_round1(safety),
            nutrition=final_nutrition,
            suitability=_round1(suitability),
            flags=tuple(allergen_flags + rule_flags),
            unmatched=tuple(unmatched),
            matched_count=len(matched) - len(unmatched),
            total_count=len(matched),
            safety_explanation=safety_explanation(safety_factors + rule_factors),
            suitability_explanation=suitability_explanation(suitability_factors, pet_name),
            score_source=score_source,
            ocr_confidence=ocr_confidence,
        )

    def calculate_for_profile(
        self,
        matched: Sequence[MatchedIngredient],
        profile: Optional[PetAllergenProfile],
        category: Category = Category.FOOD,
        species: Optional[Species] = None,
        score_source: ScoreSource = ScoreSource.DATABASE_VERIFIED,
        ocr_confidence: Optional[float] = None,
    ) -> ScoreBreakdown:
        profile = profile or PetAllergenProfile()
        return self.calculate(
            matched,
            allergens=profile.allergens,
            species=species or profile.species,
            category=category,
            pet_name=profile.pet_name,
            score_source=score_source,
            ocr_confidence=ocr_confidence,
        )

    def _record(self, item: MatchedIngredient) -> Optional[IngredientRecord]:
        return self.catalog.get(item.ingredient_id)

    def _safety(
        self, matched: List[MatchedIngredient], weights: np.ndarray, species: Species
    ) -> Tuple[float, List[str], List[ExplanationFactor]]:
        unmatched: List[str] = []
        factors: List[ExplanationFactor] = []
        penalties = np.zeros(len(matched))

        for i, item in enumerate(matched):
            record = self._record(item)
            if record is None:
                unmatched.append(item.label_name)
                penalties[i] = UNKNOWN_PENALTY_TOP5 if item.rank <= 5 else UNKNOWN_PENALTY_OTHERS
                factors.append(
                    ExplanationFactor(
                        id=f"unknown-{item.label_name}",
                        description="Unknown ingredient - not in database",
                        impact=Impact.NEGATIVE,
                        ingredient_name=item.label_name,
                    )
                )
                continue

            penalties[i] = base_penalty(record.risk_level)
            level = record.risk_level.lower()
            if "toxic" in level:
                factors.append(
                    ExplanationFactor(record.id, f"Toxic to {species.display_name}s", Impact.NEGATIVE, record.common_name)
                )
            elif "caution" in level:
                factors.append(
                    ExplanationFactor(record.id, "Use with caution", Impact.NEGATIVE, record.common_name)
                )
            elif "safe" in level and item.rank <= 3:
                factors.append(
                    ExplanationFactor(record.id, "Safe ingredient", Impact.POSITIVE, record.common_name)
                )

        total = float(np.dot(penalties, weights)) if len(matched) else 0.0
        return total, unmatched, factors

    def _suitability(
        self,
        matched: List[MatchedIngredient],
        allergens: List[str],
        pet_name: Optional[str],
    ) -> Tuple[float, List[WarningFlag], List[ExplanationFactor]]:
        suitability = 100.0
        flags: List[WarningFlag] = []
        factors: List[ExplanationFactor] = []
        pet = pet_name or DEFAULT_PET_NAME

        for item in matched:
            record = self._record(item)
            if record is None:
                continue
            name = record.common_name.lower()
            for allergen in allergens:
                if not allergen or allergen not in name:
                    continue
                suitability -= ALLERGEN_PENALTY_TOP5 if item.rank <= 5 else ALLERGEN_PENALTY_OTHERS
                flags.append(
                    WarningFlag(
                        severity=RuleSeverity.HIGH,
                        title="Possible allergen",
                        explain=f"{record.common_name} may conflict with {pet}'s allergen profile.",
                        type=WarningType.ALLERGEN,
                        ingredient_id=record.id,
                    )
                )
                factors.append(
                    ExplanationFactor(
                        id=f"allergen-{record.id}",
                        description=f"Matches {pet}'s allergen profile",
                        impact=Impact.NEGATIVE,
                        ingredient_name=record.common_name,
                    )
                )

        if not factors and any(allergens):
            factors.append(
                ExplanationFactor("no-allergens", f"No known allergens for {pet}", Impact.POSITIVE)
            )
        return suitability, flags, factors

    def _nutrition(self, matched: List[MatchedIngredient], category: Category) -> float:
        if category not in (Category.FOOD, Category.TREAT):
            return 100.0

        nutrition = 100.0
        for item in matched:
            record = self._record(item)
            if record is None:
                continue
            name = record.common_name.lower()
            function = (record.typical_function or "").lower()

            is_protein = "protein" in function or any(p in name for p in PROTEIN_SOURCES)
            if is_protein and item.rank <= 3:
                nutrition += PROTEIN_BONUS_TOP3
            if "artificial colors" in name:
                nutrition -= ARTIFICIAL_COLORS_PENALTY
            if any(p in name for p in HARMFUL_PRESERVATIVES):
                nutrition -= PRESERVATIVE_PENALTY
        return nutrition

    def _rules(
        self,
        matched: List[MatchedIngredient],
        weights: np.ndarray,
        species: Species,
        category: Category,
    ) -> Tuple[float, List[WarningFlag], bool, List[ExplanationFactor]]:
        penalty = 0.0
        flags: List[WarningFlag] = []
        factors: List[ExplanationFactor] = []
        saw_critical = False

        for i, item in enumerate(matched):
            record = self._record(item)
            if record is None:
                continue
            for rule in self.catalog.rules_for_ingredient(record.id, species, category):
                if rule.severity == RuleSeverity.CRITICAL:
                    saw_critical = True
                flags.append(
                    WarningFlag(
                        severity=rule.severity,
                        title="Critical warning" if rule.severity == RuleSeverity.CRITICAL else "Ingredient warning",
                        explain=rule.explain,
                        type=WarningType.SAFETY,
                        ingredient_id=record.id,
                        source=rule.source,
                    )
                )
                factors.append(
                    ExplanationFactor(f"rule-{rule.id}", rule.explain, Impact.NEGATIVE, record.common_name)
                )
                penalty += abs(rule.score_impact) * float(weights[i])

        if saw_critical:
            self.log.info("Critical rule fired for %s/%s; capping total", species.value, category.value)
        return penalty, flags, saw_critical, factors


def safety_explanation(factors: Sequence[ExplanationFactor]) -> ScoreExplanation:
    negatives = sum(1 for f in factors if f.impact == Impact.NEGATIVE)
    if negatives == 0:
        summary = "All ingredients appear safe."
    elif negatives == 1:
        summary = "One ingredient requires attention."
    else:
        summary = f"{negatives} ingredients require attention."
    # negative factors first, stable within each group
    ordered = sorted(factors, key=lambda f: f.impact != Impact.NEGATIVE)
    return ScoreExplanation(factors=tuple(ordered[:MAX_SAFETY_FACTORS]), summary=summary)


def suitability_explanation(
    factors: Sequence[ExplanationFactor], pet_name: Optional[str] = None
) -> ScoreExplanation:
    pet = pet_name or DEFAULT_PET_NAME
    count = sum(1 for f in factors if f.impact == Impact.NEGATIVE)
    if count == 0:
        summary = f"No known allergens detected for {pet}."
    elif count == 1:
        summary = f"Contains 1 potential allergen for {pet}."
    else:
        summary = f"Contains {count} potential allergens for {pet}."
    return ScoreExplanation(factors=tuple(factors), summary=summary)
