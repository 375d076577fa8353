"""
Search sources (retailers and manufacturer sites) and the brand lookup tables
used to prioritise them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Tuple
from urllib.parse import quote_plus, urlparse


@dataclass(frozen=True)
class ProductSource:
    key: str
    display_name: str
    site_query: str
    is_retailer: bool = False
    fallback_site_query: Optional[str] = None
    host: str = ""
    path_contains: str = ""
    path_suffix: str = ""
    path_requires_digit: bool = False
    base_url: str = ""
    search_url_pattern: str = ""
    product_link_pattern: str = ""
    is_dynamic: bool = False

    def is_valid_product_url(self, url: str) -> bool:
        parsed = urlparse(url)
        host = (parsed.hostname or "").lower()
        if not host:
            return False
        if self.is_dynamic:
            return True
        if self.host and self.host not in host:
            return False
        path = parsed.path
        if self.path_contains and self.path_contains not in path:
            return False
        if self.path_suffix and not path.endswith(self.path_suffix):
            return False
        if self.path_requires_digit and not any(ch.isdigit() for ch in path):
            return False
        return True

    def search_url(self, query: str) -> Optional[str]:
        if not self.search_url_pattern:
            return None
        return self.search_url_pattern.format(query=quote_plus(query))

    def absolute_url(self, href: str) -> str:
        if href.startswith("http"):
            return href
        return f"{self.base_url}{href}"


def _manufacturer(key: str, name: str, domain: str, **kwargs) -> ProductSource:
    return ProductSource(
        key=key,
        display_name=name,
        site_query=f"site:{domain}",
        host=domain,
        base_url=kwargs.pop("base_url", f"https://www.{domain}"),
        **kwargs,
    )


CHEWY = ProductSource(
    key="chewy",
    display_name="Chewy",
    site_query="site:chewy.com/dp",
    is_retailer=True,
    fallback_site_query="site:chewy.com",
    host="chewy.com",
    path_contains="/dp/",
    base_url="https://www.chewy.com",
    search_url_pattern="https://www.chewy.com/s?query={query}",
    product_link_pattern=r'href="(/dp/\d+[^"]*)"',
)
PETCO = ProductSource(
    key="petco",
    display_name="Petco",
    site_query="site:petco.com/shop/en/petcostore/product",
    is_retailer=True,
    fallback_site_query="site:petco.com",
    host="petco.com",
    path_contains="/shop/en/petcostore/product/",
    base_url="https://www.petco.com",
    search_url_pattern="https://www.petco.com/shop/en/petcostore/search?query={query}",
    product_link_pattern=r'href="(/shop/en/petcostore/product[^"]*)"',
)
PETSMART = ProductSource(
    key="petsmart",
    display_name="PetSmart",
    site_query="site:petsmart.ca .html",
    is_retailer=True,
    fallback_site_query="site:petsmart.ca",
    host="petsmart.ca",
    path_suffix=".html",
    path_requires_digit=True,
    base_url="https://www.petsmart.ca",
    search_url_pattern="https://www.petsmart.ca/search/?q={query}",
    product_link_pattern=r'href="(/[^"]*-\d+\.html)"',
)

RETAILERS: Tuple[ProductSource, ...] = (CHEWY, PETCO, PETSMART)

PURINA = _manufacturer(
    "purina", "Purina", "purina.com",
    search_url_pattern="https://www.purina.com/search?query={query}",
    product_link_pattern=r'href="(/(?:dogs?|cats?)/[^"]*-food[^"]*)"',
)
HILLSPET = _manufacturer(
    "hillspet", "Hill's", "hillspet.com",
    search_url_pattern="https://www.hillspet.com/search?text={query}",
    product_link_pattern=r'href="(/(?:dog|cat)-food/[^"]*)"',
)
ROYALCANIN = _manufacturer(
    "royalcanin", "Royal Canin", "royalcanin.com",
    search_url_pattern="https://www.royalcanin.com/us/search?text={query}",
    product_link_pattern=r'href="(/us/(?:dogs?|cats?)/products/[^"]*)"',
)
BLUEBUFFALO = _manufacturer(
    "bluebuffalo", "Blue Buffalo", "bluebuffalo.com",
    base_url="https://bluebuffalo.com",
    search_url_pattern="https://bluebuffalo.com/search/?q={query}",
    product_link_pattern=r'href="(/natural-(?:dog|cat)-food/[^"]*)"',
)
IAMS = _manufacturer(
    "iams", "Iams", "iams.com",
    search_url_pattern="https://www.iams.com/search?q={query}",
    product_link_pattern=r'href="(/(?:dog|cat)/[^"]*product[^"]*)"',
)
NUTRO = _manufacturer(
    "nutro", "Nutro", "nutro.com",
    search_url_pattern="https://www.nutro.com/search?q={query}",
    product_link_pattern=r'href="(/products/(?:dog|cat)[^"]*)"',
)
MERRICK = _manufacturer("merrick", "Merrick", "merrickpetcare.com")
WELLNESS = _manufacturer("wellness", "Wellness", "wellnesspetfood.com")
ORIJEN = _manufacturer("orijen", "Orijen", "orijenpetfoods.com")
ACANA = _manufacturer("acana", "Acana", "acana.com")
CANIDAE = _manufacturer("canidae", "Canidae", "canidae.com")
FROMM = _manufacturer("fromm", "Fromm", "frommfamily.com")
TASTE_OF_THE_WILD = _manufacturer("taste_of_the_wild", "Taste of the Wild", "tasteofthewildpetfood.com")
ZIGNATURE = _manufacturer("zignature", "Zignature", "zignature.com")
NULO = _manufacturer("nulo", "Nulo", "nulo.com")
SOLID_GOLD = _manufacturer("solid_gold", "Solid Gold", "solidgoldpet.com")
VICTOR = _manufacturer("victor", "Victor", "victorpetfood.com")
STELLA_CHEWY = _manufacturer("stella_chewy", "Stella & Chewy's", "stellaandchewys.com")
OPEN_FARM = _manufacturer("open_farm", "Open Farm", "openfarmpet.com")
HONEST_KITCHEN = _manufacturer("honest_kitchen", "The Honest Kitchen", "thehonestkitchen.com")
INSTINCT = _manufacturer("instinct", "Instinct", "instinctpetfood.com")
NATURAL_BALANCE = _manufacturer("natural_balance", "Natural Balance", "naturalbalanceinc.com")
RACHAEL_RAY = _manufacturer("rachael_ray", "Rachael Ray Nutrish", "nutrish.com")
EARTHBORN = _manufacturer("earthborn", "Earthborn", "earthbornholisticpetfood.com")
DIAMOND = _manufacturer("diamond", "Diamond", "diamondpet.com")

MANUFACTURER_PREFIXES: Tuple[str, ...] = ("Cardinal", "Mars", "Nestle", "Purina", "Spectrum")

KNOWN_MULTI_WORD_BRANDS: Tuple[str, ...] = (
    "Blue Buffalo", "Royal Canin", "Taste of the Wild", "Natural Balance",
    "Science Diet", "Pro Plan", "Purina ONE", "Purina Pro",
    "Wellness Core", "Instinct Raw", "Solid Gold", "Whole Earth",
    "Diamond Naturals", "American Journey", "Open Farm", "Stella Chewy",
    "Stella & Chewy's", "Nulo Freestyle", "Fromm Family", "Zignature",
    "Nutro Ultra", "Nutro Wholesome", "Merrick Grain", "Merrick Backcountry",
    "Canidae Pure", "Hill's Science", "Hills Science",
)

BRAND_ALIASES: Dict[str, Tuple[str, ...]] = {
    "hills": ("hill's", "hills science diet", "hill's science diet"),
    "hill's": ("hills", "hills science diet", "hill's science diet"),
    "royal canin": ("royalcanin", "royal-canin"),
    "blue buffalo": ("blue", "blue wilderness"),
    "purina one": ("purina 1",),
    "purina pro plan": ("pro plan", "proplan"),
    "wellness": ("wellness core", "wellness complete"),
    "orijen": ("acana",),
    "taste of the wild": ("totw",),
    "natural balance": ("naturalbalance",),
    "canidae": ("canidae pure",),
    "instinct": ("instinct raw", "nature's variety"),
    "stella & chewy's": ("stella chewy", "stella and chewy"),
    "nulo": ("nulo freestyle",),
    "nutro": ("nutro ultra", "nutro wholesome"),
    "merrick": ("merrick grain free", "merrick backcountry"),
    "fromm": ("fromm family",),
}

BRAND_TO_MANUFACTURER: Dict[str, ProductSource] = {
    "purina": PURINA, "pro plan": PURINA, "purina pro plan": PURINA,
    "friskies": PURINA, "fancy feast": PURINA, "beneful": PURINA,
    "purina one": PURINA, "one": PURINA, "beyond": PURINA,
    "dog chow": PURINA, "cat chow": PURINA, "alpo": PURINA, "moist & meaty": PURINA,
    "hill's": HILLSPET, "hills": HILLSPET, "science diet": HILLSPET,
    "hill's science diet": HILLSPET, "hills science diet": HILLSPET,
    "prescription diet": HILLSPET, "healthy advantage": HILLSPET,
    "royal canin": ROYALCANIN, "royalcanin": ROYALCANIN,
    "blue buffalo": BLUEBUFFALO, "blue": BLUEBUFFALO, "blue wilderness": BLUEBUFFALO,
    "blue basics": BLUEBUFFALO, "blue freedom": BLUEBUFFALO, "blue life protection": BLUEBUFFALO,
    "iams": IAMS, "iams proactive": IAMS,
    "nutro": NUTRO, "nutro ultra": NUTRO, "nutro wholesome": NUTRO, "wholesome essentials": NUTRO,
    "merrick": MERRICK, "merrick grain free": MERRICK, "merrick backcountry": MERRICK,
    "wellness": WELLNESS, "wellness core": WELLNESS, "wellness complete": WELLNESS,
    "wellness simple": WELLNESS,
    "orijen": ORIJEN, "acana": ACANA,
    "canidae": CANIDAE, "canidae pure": CANIDAE, "canidae all life stages": CANIDAE,
    "fromm": FROMM, "fromm family": FROMM, "fromm gold": FROMM, "fromm four star": FROMM,
    "taste of the wild": TASTE_OF_THE_WILD, "totw": TASTE_OF_THE_WILD,
    "zignature": ZIGNATURE,
    "nulo": NULO, "nulo freestyle": NULO, "nulo medal series": NULO,
    "solid gold": SOLID_GOLD,
    "victor": VICTOR, "victor dog food": VICTOR,
    "stella & chewy's": STELLA_CHEWY, "stella chewy": STELLA_CHEWY, "stella and chewy": STELLA_CHEWY,
    "open farm": OPEN_FARM,
    "honest kitchen": HONEST_KITCHEN, "the honest kitchen": HONEST_KITCHEN,
    "instinct": INSTINCT, "instinct raw": INSTINCT, "nature's variety": INSTINCT,
    "natural balance": NATURAL_BALANCE, "naturalbalance": NATURAL_BALANCE,
    "rachael ray": RACHAEL_RAY, "nutrish": RACHAEL_RAY, "rachael ray nutrish": RACHAEL_RAY,
    "earthborn": EARTHBORN, "earthborn holistic": EARTHBORN,
    "diamond": DIAMOND, "diamond naturals": DIAMOND, "diamond pro": DIAMOND,
}

RETAILER_DOMAINS: FrozenSet[str] = frozenset(
    {
        "chewy.com", "petco.com", "petsmart.com", "petsmart.ca",
        "amazon.com", "walmart.com", "target.com", "costco.com",
        "petflow.com", "petfooddirect.com", "1800petmeds.com",
        "entirelypets.com", "petmountain.com", "pets.com",
        "rover.com", "wag.com", "bark.com",
    }
)

BLOG_DOMAINS: FrozenSet[str] = frozenset(
    {
        "dogfoodadvisor.com", "catfooddb.com", "petfoodreviewer.com",
        "allaboutpetfood.com", "pawdiet.com", "petmd.com",
        "akc.org", "aspca.org", "wikipedia.org",
    }
)

# Longest first so "purina pro plan sport" resolves through "purina pro plan".
_KEYS_BY_LENGTH: List[str] = sorted(BRAND_TO_MANUFACTURER, key=lambda k: (-len(k), k))


def manufacturer_for_brand(brand: Optional[str]) -> Optional[ProductSource]:
    if not brand:
        return None
    normalized = brand.strip().lower()
    if not normalized:
        return None
    direct = BRAND_TO_MANUFACTURER.get(normalized)
    if direct is not None:
        return direct
    for key in _KEYS_BY_LENGTH:
        if normalized.startswith(key + " ") or _contains_word(normalized, key):
            return BRAND_TO_MANUFACTURER[key]
    return None


def _contains_word(text: str, phrase: str) -> bool:
    padded = f" {text} "
    return f" {phrase} " in padded


def domain_of(url: str) -> Optional[str]:
    host = (urlparse(url).hostname or "").lower()
    if not host:
        return None
    return host[4:] if host.startswith("www.") else host


def is_excluded_domain(domain: str) -> bool:
    return any(d in domain for d in RETAILER_DOMAINS) or any(d in domain for d in BLOG_DOMAINS)


def dynamic_source(domain: str) -> ProductSource:
    return ProductSource(
        key=f"web:{domain}",
        display_name=domain,
        site_query=f"site:{domain}",
        host=domain,
        base_url=f"https://{domain}",
        is_dynamic=True,
    )


def source_for_url(url: str) -> ProductSource:
    """Best known source for a URL, else a dynamic one for its domain."""
    domain = domain_of(url) or ""
    for source in RETAILERS + tuple({s.key: s for s in BRAND_TO_MANUFACTURER.values()}.values()):
        if source.host and source.host in domain:
            return source
    return dynamic_source(domain)
