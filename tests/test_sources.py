from petscan_engine.sources import (
    BLUEBUFFALO,
    CHEWY,
    HILLSPET,
    MERRICK,
    PETCO,
    PETSMART,
    PURINA,
    domain_of,
    dynamic_source,
    is_excluded_domain,
    manufacturer_for_brand,
    source_for_url,
)


def test_retailer_product_url_validation():
    assert CHEWY.is_valid_product_url("https://www.chewy.com/blue-buffalo-life/dp/12345")
    assert not CHEWY.is_valid_product_url("https://www.chewy.com/b/dog-food-288")
    assert PETCO.is_valid_product_url("https://www.petco.com/shop/en/petcostore/product/acme-kibble")
    assert PETSMART.is_valid_product_url("https://www.petsmart.ca/dog/food/kibble-123.html")
    assert not PETSMART.is_valid_product_url("https://www.petsmart.ca/dog/food/kibble.html")
    assert not CHEWY.is_valid_product_url("not a url")


def test_manufacturer_lookup():
    assert manufacturer_for_brand("Hill's") is HILLSPET
    assert manufacturer_for_brand("Purina Pro Plan Sport") is PURINA
    assert manufacturer_for_brand("BLUE Wilderness") is BLUEBUFFALO
    assert manufacturer_for_brand("Merrick") is MERRICK
    assert manufacturer_for_brand(None) is None
    assert manufacturer_for_brand("  ") is None


def test_short_brand_keys_match_whole_words_only():
    assert manufacturer_for_brand("Bone Appetit") is None
    assert manufacturer_for_brand("Acme One") is PURINA


def test_site_search_urls():
    assert CHEWY.search_url("blue buffalo") == "https://www.chewy.com/s?query=blue+buffalo"
    assert CHEWY.absolute_url("/dp/1") == "https://www.chewy.com/dp/1"
    assert CHEWY.absolute_url("https://other/x") == "https://other/x"
    assert MERRICK.search_url("x") is None


def test_domains():
    assert domain_of("https://www.acme-pet.com/food") == "acme-pet.com"
    assert domain_of("nonsense") is None
    assert is_excluded_domain("chewy.com")
    assert is_excluded_domain("petmd.com")
    assert not is_excluded_domain("acme-pet.com")


def test_dynamic_and_known_sources():
    source = dynamic_source("acme-pet.com")
    assert source.key == "web:acme-pet.com"
    assert source.is_valid_product_url("https://acme-pet.com/anything")
    assert source_for_url("https://www.chewy.com/dp/1") is CHEWY
    assert source_for_url("https://www.purina.com/dogs/food") is PURINA
    assert source_for_url("https://acme-pet.com/p").key == "web:acme-pet.com"
