"""
End-to-end scan orchestration.

Key stages:
- identify a product by barcode (cache, product API, then UPC lookup plus
  web search and scrape) or by packaging photo (vision model, then web
  search and scrape)
- normalize the ingredient text (run-on OCR output included)
- match each label ingredient to the catalog, keeping label order
- score against the pet's allergen profile, species and category
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional

from .catalog import IngredientCatalog
from .config import Settings
from .errors import AllSourcesExhausted, ExtractionFailed, NotFoundError, PetScanError, ProductNotFound
from .matcher import IngredientMatcher
from .models import (
    Category,
    MatchedIngredient,
    PetAllergenProfile,
    ProductInfo,
    ScoreBreakdown,
    ScoreSource,
    ScrapedProduct,
    Species,
)
from .normalizer import IngredientTextNormalizer
from .resolver import ProductResolver
from .scoring import ScoreEngine
from .upcitemdb_client import UPCItemDBClient
from .vision_client import ProductVisionClient
from .web_pipeline import WebSearchAndScrapePipeline

WEB_SOURCE_PREFIX = "web:"


def web_product(
    scraped: ScrapedProduct,
    barcode: str,
    name: Optional[str] = None,
    brand: Optional[str] = None,
    image_url: Optional[str] = None,
) -> ProductInfo:
    """Scraped fields win over the hints that seeded the search."""
    source_key = scraped.source_name.lower().replace(" ", "_")
    return ProductInfo(
        barcode=barcode,
        name=scraped.product_name or name,
        brand=scraped.brand or brand,
        ingredients_text=scraped.ingredients_text,
        image_url=scraped.image_url or image_url,
        source=f"{WEB_SOURCE_PREFIX}{source_key}",
    )


@dataclass
class ScanResult:
    product: Optional[ProductInfo]
    matched: List[MatchedIngredient]
    breakdown: ScoreBreakdown
    normalized_text: str

    def to_dict(self) -> dict:
        product = None
        if self.product is not None:
            product = {
                "barcode": self.product.barcode,
                "name": self.product.name,
                "brand": self.product.brand,
                "source": self.product.source,
                "image_url": self.product.image_url,
            }
        return {
            "product": product,
            "ingredients": [
                {
                    "label_name": m.label_name,
                    "rank": m.rank,
                    "ingredient_id": m.ingredient_id,
                }
                for m in self.matched
            ],
            "normalized_text": self.normalized_text,
            "score": self.breakdown.to_dict(),
        }


class ScanService:
    """
    Wires identification and analysis together. Only the resolver is
    required. The barcode web fallback needs the UPC client and the web
    pipeline; photo identification needs the vision client and the web
    pipeline.
    """

    def __init__(
        self,
        catalog: IngredientCatalog,
        resolver: ProductResolver,
        upc_client: Optional[UPCItemDBClient] = None,
        web_pipeline: Optional[WebSearchAndScrapePipeline] = None,
        vision_client: Optional[ProductVisionClient] = None,
    ):
        self.catalog = catalog
        self.resolver = resolver
        self.upc_client = upc_client
        self.web_pipeline = web_pipeline
        self.vision_client = vision_client
        self.normalizer = IngredientTextNormalizer(catalog)
        self.matcher = IngredientMatcher(catalog)
        self.engine = ScoreEngine(catalog)
        self.log = logging.getLogger(self.__class__.__name__)

    async def identify_barcode(self, barcode: str) -> ProductInfo:
        try:
            return await self.resolver.resolve_async(barcode)
        except ProductNotFound:
            if self.upc_client is None or self.web_pipeline is None:
                raise
            self.log.info("Falling back to web search for %s", barcode)

        try:
            item = await self.upc_client.alookup(barcode)
        except PetScanError as exc:
            self.log.warning("UPC lookup failed for %s: %s", barcode, exc)
            raise AllSourcesExhausted(f"could not identify barcode {barcode}", "upcitemdb") from exc
        if item is None or not item.search_query:
            raise ProductNotFound(f"no UPC record for barcode {barcode}", "upcitemdb")

        scraped = await self.web_pipeline.search_and_scrape(item.display_name or item.search_query, item.brand)
        product = web_product(
            scraped,
            barcode=barcode.strip(),
            name=item.display_name,
            brand=item.brand,
            image_url=item.images[0] if item.images else None,
        )
        self.resolver.cache_in_background(product)
        return product

    async def identify_photo(self, image: bytes, content_type: str = "image/jpeg") -> ProductInfo:
        """
        Packaging photo to product: the vision model names brand and product,
        which feed the web pipeline. The result has no barcode and is not cached.
        """
        if self.vision_client is None or self.web_pipeline is None:
            raise ProductNotFound("photo identification is not configured", "vision")

        try:
            identification = await self.vision_client.identify(image, content_type)
        except NotFoundError:
            raise
        except PetScanError as exc:
            self.log.warning("Photo identification failed: %s", exc)
            raise AllSourcesExhausted("could not identify product from photo", "vision") from exc
        if not identification.is_usable:
            raise ProductNotFound(
                f"low confidence identification ({int(identification.confidence * 100)}%)", "vision"
            )

        scraped = await self.web_pipeline.search_and_scrape(identification.search_query, identification.brand)
        return web_product(
            scraped,
            barcode="",
            name=identification.product_name,
            brand=identification.brand,
        )

    def analyze(
        self,
        ingredients_text: str,
        profile: Optional[PetAllergenProfile] = None,
        species: Optional[Species] = None,
        category: Category = Category.FOOD,
        score_source: ScoreSource = ScoreSource.DATABASE_VERIFIED,
        ocr_confidence: Optional[float] = None,
        product: Optional[ProductInfo] = None,
    ) -> ScanResult:
        normalized = self.normalizer.normalize(ingredients_text)
        matched = self.matcher.match(normalized)
        breakdown = self.engine.calculate_for_profile(
            matched,
            profile,
            category=category,
            species=species,
            score_source=score_source,
            ocr_confidence=ocr_confidence,
        )
        self.log.debug(
            "Scored %d ingredients (%d matched): %.1f", breakdown.total_count, breakdown.matched_count, breakdown.total
        )
        return ScanResult(product=product, matched=matched, breakdown=breakdown, normalized_text=normalized)

    async def scan_barcode(
        self,
        barcode: str,
        profile: Optional[PetAllergenProfile] = None,
        species: Optional[Species] = None,
        category: Category = Category.FOOD,
    ) -> ScanResult:
        product = await self.identify_barcode(barcode)
        if not product.has_ingredients:
            raise ExtractionFailed(f"product {barcode} has no ingredient list", product.source)
        return self.analyze(product.ingredients_text, profile, species, category, product=product)

    async def scan_photo(
        self,
        image: bytes,
        profile: Optional[PetAllergenProfile] = None,
        species: Optional[Species] = None,
        category: Category = Category.FOOD,
        content_type: str = "image/jpeg",
    ) -> ScanResult:
        product = await self.identify_photo(image, content_type)
        return self.analyze(product.ingredients_text, profile, species, category, product=product)

    def analyze_ocr_text(
        self,
        text: str,
        confidence: Optional[float],
        profile: Optional[PetAllergenProfile] = None,
        species: Optional[Species] = None,
        category: Category = Category.FOOD,
    ) -> ScanResult:
        return self.analyze(
            text,
            profile,
            species,
            category,
            score_source=ScoreSource.OCR_ESTIMATED,
            ocr_confidence=confidence,
        )

    def close(self) -> None:
        self.resolver.close()


def build_product_cache(settings: Settings):
    if settings.cache_dsn:
        from .db_repository import PostgresProductCache

        return PostgresProductCache(settings.cache_dsn)
    from .product_cache import SQLiteProductCache

    return SQLiteProductCache(settings.cache_path, timeout=settings.product_api_timeout)


def build_scan_service(settings: Optional[Settings] = None, catalog: Optional[IngredientCatalog] = None) -> ScanService:
    """Build every component from settings; unconfigured keys disable their component."""
    from pathlib import Path

    from .catalog import default_catalog
    from .firecrawl_client import FirecrawlClient
    from .openpetfoodfacts_client import OpenPetFoodFactsClient
    from .scraper import HtmlPageScraper
    from .serper_client import SerperClient
    from .web_search import WebSearcher

    settings = settings or Settings.from_env()
    if catalog is None:
        catalog = IngredientCatalog.from_directory(Path(settings.data_dir)) if settings.data_dir else default_catalog()

    resolver = ProductResolver(
        build_product_cache(settings),
        OpenPetFoodFactsClient(timeout=settings.product_api_timeout),
    )

    upc_client = None
    if settings.upcitemdb_api_key:
        upc_client = UPCItemDBClient(settings.upcitemdb_api_key, timeout=settings.product_api_timeout)

    html_scraper = HtmlPageScraper(timeout=settings.scrape_timeout)
    extractors = []
    if settings.firecrawl_api_key:
        extractors.append(FirecrawlClient(settings.firecrawl_api_key, timeout=settings.extract_timeout))
    extractors.append(html_scraper)

    searcher = None
    if settings.serper_api_key:
        searcher = WebSearcher(
            SerperClient(settings.serper_api_key, timeout=settings.search_timeout),
            retry_delay=settings.retry_delay,
        )

    pipeline = WebSearchAndScrapePipeline(
        searcher=searcher,
        extractors=extractors,
        html_scraper=html_scraper,
        retry_delay=settings.retry_delay,
    )

    vision_client = None
    if settings.openai_api_key:
        vision_client = ProductVisionClient(settings.openai_api_key, timeout=settings.vision_timeout)

    return ScanService(catalog, resolver, upc_client=upc_client, web_pipeline=pipeline, vision_client=vision_client)
