"""
Pet food identification and ingredient scoring engine: resolves a barcode to
a product, normalizes and matches its ingredient list, and scores it for a
given pet.

Expose the main classes so consumers can import directly from the package.
"""

from .catalog import CatalogLoader, IngredientCatalog, default_catalog
from .config import Settings
from .errors import (
    AllSourcesExhausted,
    AllSourcesFailed,
    ExtractionFailed,
    NoResultsFound,
    PetScanError,
    ProductNotFound,
)
from .matcher import IngredientMatcher
from .models import (
    Category,
    MatchedIngredient,
    PetAllergenProfile,
    ProductIdentification,
    ProductInfo,
    ScoreBreakdown,
    ScoreSource,
    ScrapedProduct,
    SearchResult,
    Species,
)
from .normalizer import IngredientTextNormalizer
from .openpetfoodfacts_client import OpenPetFoodFactsClient
from .product_cache import InMemoryProductCache, SQLiteProductCache
from .resolver import ProductResolver
from .scan_service import ScanResult, ScanService, build_scan_service
from .scoring import ScoreEngine
from .vision_client import ProductVisionClient
from .web_pipeline import WebSearchAndScrapePipeline

__all__ = [
    "AllSourcesExhausted",
    "AllSourcesFailed",
    "CatalogLoader",
    "Category",
    "ExtractionFailed",
    "IngredientCatalog",
    "IngredientMatcher",
    "IngredientTextNormalizer",
    "InMemoryProductCache",
    "MatchedIngredient",
    "NoResultsFound",
    "OpenPetFoodFactsClient",
    "PetAllergenProfile",
    "PetScanError",
    "ProductIdentification",
    "ProductInfo",
    "ProductNotFound",
    "ProductResolver",
    "ProductVisionClient",
    "SQLiteProductCache",
    "ScanResult",
    "ScanService",
    "ScoreBreakdown",
    "ScoreEngine",
    "ScoreSource",
    "ScrapedProduct",
    "SearchResult",
    "Settings",
    "Species",
    "WebSearchAndScrapePipeline",
    "build_scan_service",
    "default_catalog",
]
