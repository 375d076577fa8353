import pytest

from petscan_engine.query_builder import (
    ProductKeywords,
    brand_variations,
    extract_core_terms,
    extract_product_keywords,
    generate_query_variations,
    levenshtein,
    normalize_product_name,
    remove_size_specs,
    result_matches_product,
    string_similarity,
    strip_manufacturer_prefix,
)


def test_normalize_product_name_expands_abbreviations():
    assert (
        normalize_product_name("Blue Buffalo Life Protection w/ Chicken & Rice (30 lb)")
        == "Blue Buffalo Life Protection with Chicken and Rice"
    )
    assert normalize_product_name("Dr. Marty Nature's Blend™") == "Doctor Marty Nature's Blend"


def test_normalize_leaves_whole_words_alone():
    assert normalize_product_name("Small Breed Medium Bites") == "Small Breed Medium Bites"
    assert normalize_product_name("Sm Breed Lrg Bites") == "small Breed large Bites"


def test_remove_size_specs():
    assert remove_size_specs("Purina ONE Chicken 16.5 lb bag") == "Purina ONE Chicken bag"
    assert remove_size_specs("Fancy Feast Pate 3 oz x24") == "Fancy Feast Pate"


def test_strip_manufacturer_prefix():
    assert strip_manufacturer_prefix("Purina Pro Plan Adult") == "Pro Plan Adult"
    assert strip_manufacturer_prefix("Purinax Chow") == "Purinax Chow"


def test_query_variations_most_specific_first():
    query = "Blue Buffalo Life Protection Formula Adult Chicken & Brown Rice Recipe 30 lb"
    assert generate_query_variations(query) == [
        "Blue Buffalo Life Protection Formula Adult Chicken and Brown Rice Recipe",
        '"Blue Buffalo" Life Protection Formula Adult Chicken and Brown Rice Recipe',
        "Blue Buffalo Life Protection Chicken",
        "Blue Buffalo Life Protection Formula Adult",
        "blue Life Protection Formula Adult Chicken and Brown Rice Recipe",
    ]


def test_query_variations_are_unique():
    variations = generate_query_variations("Iams Adult")
    assert len(variations) == len(set(variations))
    assert variations[0] == "Iams Adult"


def test_extract_core_terms_skips_generic_words():
    assert extract_core_terms("Acme Pet Adult Dry Dog Food Lamb") == "Acme Pet Lamb"


def test_brand_variations_are_deterministic():
    assert brand_variations("Hills") == ["Hills", "hill's", "hills science diet", "hill's science diet"]
    assert brand_variations("Acme") == ["Acme"]


def test_extract_product_keywords():
    keywords = extract_product_keywords("Blue Buffalo Life Protection Formula Adult Chicken")
    assert keywords.brand == ("Blue", "Buffalo")
    assert keywords.product == ("Life", "Protection", "Chicken")


def test_result_matching_requires_brand_and_product():
    keywords = extract_product_keywords("Blue Buffalo Life Protection Formula Adult Chicken")
    link = "https://www.chewy.com/blue-buffalo-life/dp/123"
    assert result_matches_product("Blue Buffalo Life Protection Chicken | Chewy", link, keywords)
    assert not result_matches_product("Royal Canin Adult | Chewy", "https://www.chewy.com/royal/dp/9", keywords)


def test_result_matching_tolerates_typos():
    keywords = ProductKeywords(brand=("Buffalo",), product=("Protection",))
    assert result_matches_product("Blu Bufalo Life Protecton", "https://x.com/p", keywords)


def test_empty_keywords_accept_everything():
    assert result_matches_product("anything", "https://x.com", ProductKeywords(brand=(), product=()))


@pytest.mark.parametrize(
    "a,b,distance",
    [("kitten", "sitting", 3), ("", "abc", 3), ("flaw", "lawn", 2), ("same", "same", 0)],
)
def test_levenshtein(a, b, distance):
    assert levenshtein(a, b) == distance


def test_string_similarity():
    assert string_similarity("Chicken", "chicken") == 1.0
    assert string_similarity("", "x") == 0.0
    assert string_similarity("buffalo", "bufalo") == pytest.approx(1 - 1 / 7)
