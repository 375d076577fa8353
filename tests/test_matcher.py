from petscan_engine.matcher import (
    IngredientMatcher,
    containment_match,
    match_rate,
    normalize_token,
    split_ingredient_list,
    strip_descriptors,
)
from petscan_engine.normalizer import IngredientTextNormalizer


def test_rank_follows_label_order(catalog):
    matched = IngredientMatcher(catalog).match("Deboned Chicken, Brown Rice, Peas")
    assert [(m.rank, m.ingredient_id) for m in matched] == [
        (1, "chicken"),
        (2, "brown_rice"),
        (3, "peas"),
    ]
    assert matched[0].label_name == "Deboned Chicken"


def test_unmatched_tokens_keep_their_rank(catalog):
    matched = IngredientMatcher(catalog).match("Chicken, Qwzx, Peas")
    assert matched[1].rank == 2
    assert matched[1].ingredient_id is None
    assert not matched[1].is_matched
    assert match_rate(matched) == 2 / 3


def test_descriptors_are_stripped(catalog):
    matcher = IngredientMatcher(catalog)
    assert matcher.resolve("Dried Chicken Liver") == "chicken_liver"
    assert matcher.resolve("Freeze-Dried Salmon") == "salmon"
    assert matcher.resolve("Organic Brown Rice (12%)") == "brown_rice"


def test_strip_descriptors_handles_hyphenated_words():
    assert strip_descriptors("freeze-dried salmon") == "salmon"
    assert strip_descriptors("chicken by-product meal") == "chicken"
    assert strip_descriptors("beef 25%") == "beef"


def test_normalize_token():
    assert normalize_token("  Chicken  Fat (preserved with Mixed Tocopherols)") == "chicken fat"
    assert normalize_token("Stella’s Beef!") == "stella's beef"


def test_containment_prefers_longest_key():
    synonyms = {"chicken": "chicken", "chicken liver": "chicken_liver", "liver": "liver"}
    assert containment_match("roasted chicken liver pieces", synonyms) == "chicken_liver"


def test_containment_ties_are_alphabetical():
    synonyms = {"beef": "beef", "lamb": "lamb"}
    assert containment_match("lamb and beef stew", synonyms) == "beef"


def test_containment_ignores_short_fragments():
    assert containment_match("pea", {"peanut butter": "peanut"}) is None
    assert containment_match("oat", {"oat": "oats"}) is None


def test_matching_is_idempotent(catalog):
    matcher = IngredientMatcher(catalog)
    normalizer = IngredientTextNormalizer(catalog)
    text = "Ingredients: chicken meal brown rice peas salt"
    first = matcher.match(normalizer.normalize(text))
    second = matcher.match(normalizer.normalize(normalizer.normalize(text)))
    assert first == second


def test_split_ingredient_list():
    assert split_ingredient_list("a, b;c,, ") == ["a", "b", "c"]
    assert split_ingredient_list(None) == []
