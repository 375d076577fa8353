from petscan_engine.normalizer import (
    IngredientTextNormalizer,
    has_existing_separators,
    strip_preamble,
)


def test_empty_input_returns_empty_string(catalog):
    normalizer = IngredientTextNormalizer(catalog)
    assert normalizer.normalize(None) == ""
    assert normalizer.normalize("   ") == ""


def test_preamble_is_removed():
    assert strip_preamble("Dog Food. Ingredients: Chicken, Rice") == "Chicken, Rice"
    assert strip_preamble("CONTAINS chicken, rice") == "chicken, rice"


def test_delimited_text_keeps_its_separators(catalog):
    normalizer = IngredientTextNormalizer(catalog)
    text = "Ingredients: Chicken, Brown Rice;  Peas , Salt"
    assert normalizer.normalize(text) == "Chicken, Brown Rice, Peas, Salt"


def test_already_normalized_text_is_stable(catalog):
    normalizer = IngredientTextNormalizer(catalog)
    once = normalizer.normalize("Chicken, Brown Rice, Peas")
    assert normalizer.normalize(once) == once


def test_run_on_text_is_split_on_known_phrases(catalog):
    normalizer = IngredientTextNormalizer(catalog)
    text = "INGREDIENTS chicken meal brown rice peas salt"
    assert normalizer.normalize(text) == "chicken meal, brown rice, peas, salt"


def test_run_on_keeps_unknown_words(catalog):
    normalizer = IngredientTextNormalizer(catalog)
    assert normalizer.normalize("chicken meal zorbleberry peas") == "chicken meal, zorbleberry, peas"


def test_multi_word_phrase_needs_word_boundary():
    normalizer = IngredientTextNormalizer(synonyms=["pea", "pea protein", "protein"])
    assert normalizer("pea proteins pea protein") == "pea, proteins, pea protein"


def test_sparse_commas_count_as_run_on():
    assert not has_existing_separators("chicken meal brown rice peas salt barley, oats")
    assert has_existing_separators("chicken, rice, peas")


def test_catalog_phrases_are_shared(small_catalog):
    normalizer = IngredientTextNormalizer(small_catalog)
    assert normalizer.multi_word is small_catalog.multi_word_synonyms
    assert normalizer.known == set(small_catalog.synonym_keys)
