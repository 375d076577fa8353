import math

import pytest

from petscan_engine.matcher import IngredientMatcher
from petscan_engine.models import (
    Category,
    Impact,
    PetAllergenProfile,
    RatingLabel,
    RuleSeverity,
    ScoreSource,
    Species,
    WarningType,
)
from petscan_engine.scoring import CRITICAL_CAP, ScoreEngine, base_penalty, rank_weights


def _score(catalog, text, **kwargs):
    matched = IngredientMatcher(catalog).match(text)
    return ScoreEngine(catalog).calculate(matched, **kwargs)


def test_rank_weights_decay():
    weights = rank_weights([1, 2, 5])
    assert weights[0] == pytest.approx(1.0)
    assert weights[1] == pytest.approx(math.exp(-0.22))
    assert weights[2] == pytest.approx(math.exp(-0.88))


def test_base_penalty_by_risk_level():
    assert base_penalty("toxic") == 40.0
    assert base_penalty("Caution - high doses") == 15.0
    assert base_penalty("safe") == 0.0
    assert base_penalty(None) == 0.0


def test_all_safe_food_scores_full_marks(catalog):
    breakdown = _score(catalog, "Chicken, Brown Rice, Peas")
    assert breakdown.total == 100.0
    assert breakdown.safety == 100.0
    assert breakdown.nutrition == 100.0
    assert breakdown.suitability == 100.0
    assert breakdown.flags == ()
    assert breakdown.rating_label == RatingLabel.EXCELLENT
    assert breakdown.match_rate == 1.0


def test_allergen_in_profile_lowers_suitability(catalog):
    breakdown = _score(catalog, "Chicken, Brown Rice", allergens=["Chicken"], pet_name="Rex")
    assert breakdown.suitability == 70.0
    assert len(breakdown.allergen_flags) == 1
    assert breakdown.allergen_flags[0].type == WarningType.ALLERGEN
    assert "Rex" in breakdown.allergen_flags[0].explain
    assert breakdown.total == pytest.approx(95.5)


def test_allergen_below_top_five_costs_less(catalog):
    breakdown = _score(
        catalog,
        "Brown Rice, Peas, Barley, Oatmeal, Carrots, Chicken Fat",
        allergens=["chicken"],
    )
    assert breakdown.suitability == 85.0


def test_critical_rule_caps_food_total(catalog):
    breakdown = _score(catalog, "Chicken, Brown Rice, Xylitol", species=Species.DOG)
    assert breakdown.has_critical_flags
    assert breakdown.total <= CRITICAL_CAP
    assert breakdown.rating_label == RatingLabel.AVOID


def test_critical_rule_caps_cosmetic_total(small_catalog):
    breakdown = _score(small_catalog, "Xylitol", species=Species.DOG, category=Category.COSMETIC)
    assert breakdown.nutrition is None
    assert breakdown.has_critical_flags
    assert breakdown.total <= CRITICAL_CAP


def test_species_scoped_rule_does_not_fire_for_other_species(small_catalog):
    breakdown = _score(small_catalog, "Chicken, Xylitol", species=Species.CAT)
    assert not breakdown.has_critical_flags
    assert breakdown.safety == pytest.approx(100 - 40 * math.exp(-0.22), abs=0.05)
    assert breakdown.total > CRITICAL_CAP


def test_unknown_ingredients_are_reported(catalog):
    breakdown = _score(catalog, "Chicken, Qwzx")
    assert breakdown.unmatched == ("Qwzx",)
    assert breakdown.matched_count == 1
    assert breakdown.total_count == 2
    assert breakdown.safety < 100.0
    assert breakdown.needs_confirmation()


def test_empty_list_scores_neutral(catalog):
    breakdown = ScoreEngine(catalog).calculate([])
    assert breakdown.total_count == 0
    assert breakdown.safety == 100.0
    assert breakdown.match_rate == 0.0


def test_safety_explanation_lists_negatives_first(catalog):
    breakdown = _score(catalog, "Chicken, Garlic, Onion, BHA, BHT, Ethoxyquin, Qwzx")
    factors = breakdown.safety_explanation.factors
    assert len(factors) <= 5
    assert all(f.impact == Impact.NEGATIVE for f in factors)
    assert "require attention" in breakdown.safety_explanation.summary


def test_profile_and_ocr_metadata_pass_through(catalog):
    matched = IngredientMatcher(catalog).match("Chicken, Brown Rice")
    profile = PetAllergenProfile(allergens=["wheat"], species=Species.CAT, pet_name="Mittens")
    breakdown = ScoreEngine(catalog).calculate_for_profile(
        matched, profile, score_source=ScoreSource.OCR_ESTIMATED, ocr_confidence=0.4
    )
    assert breakdown.score_source == ScoreSource.OCR_ESTIMATED
    assert breakdown.needs_confirmation()
    assert breakdown.suitability_explanation.factors[0].description == "No known allergens for Mittens"


def test_rule_flags_carry_severity(catalog):
    breakdown = _score(catalog, "Chicken, Garlic")
    severities = {flag.severity for flag in breakdown.other_flags}
    assert RuleSeverity.HIGH in severities


def test_to_dict_is_serializable(catalog):
    payload = _score(catalog, "Chicken, Brown Rice").to_dict()
    assert payload["rating_label"] == "Excellent"
    assert payload["match_rate"] == 1.0
