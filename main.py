"""
CLI entrypoint to score a pet food product for a given pet.

Flow:
- Parse the subcommand (scan a barcode or a packaging photo, analyze raw
  ingredient text, or sync the local product cache) and the pet profile
  options.
- Build the ScanService from environment settings.
- Identify the product, normalize and match its ingredients, and score it.
- Render either a text dashboard or JSON payload.
"""

import argparse
import asyncio
import json
import logging
import mimetypes
import sys
from pathlib import Path
from typing import List

from petscan_engine import (
    Category,
    PetAllergenProfile,
    PetScanError,
    ProductNotFound,
    Settings,
    Species,
    build_scan_service,
)
from petscan_engine.cache_sync import CatalogSync
from petscan_engine.openpetfoodfacts_client import OpenPetFoodFactsClient
from petscan_engine.scan_service import build_product_cache


def parse_args(argv=None) -> argparse.Namespace:
    """Configure and parse CLI arguments."""
    parser = argparse.ArgumentParser(description="Score pet food ingredients for your pet")
    sub = parser.add_subparsers(dest="command", required=True)

    scan = sub.add_parser("scan", help="Look up a product by barcode and score it")
    scan.add_argument("--barcode", required=True, help="UPC/EAN barcode")

    photo = sub.add_parser("scan-photo", help="Identify a product from a packaging photo and score it")
    photo.add_argument("--image", required=True, type=Path, help="Path to a front-of-pack photo")

    analyze = sub.add_parser("analyze", help="Score a raw ingredient list")
    analyze.add_argument("--ingredients", required=True, help="Ingredient text as printed on the label")
    analyze.add_argument(
        "--ocr-confidence",
        type=float,
        default=None,
        help="Mark the text as OCR output with this confidence (0-1)",
    )

    for cmd in (scan, photo, analyze):
        cmd.add_argument(
            "--allergens",
            default="",
            help="Comma-separated allergens of the pet (e.g. chicken,wheat)",
        )
        cmd.add_argument("--species", choices=[s.value for s in Species], default=Species.DOG.value)
        cmd.add_argument("--category", choices=[c.value for c in Category], default=Category.FOOD.value)
        cmd.add_argument("--pet-name", default=None, help="Used in explanations")
        cmd.add_argument(
            "--format",
            choices=["text", "json"],
            default="text",
            help="Output format (default: text)",
        )

    sync = sub.add_parser("sync", help="Download the pet food catalog into the local cache")
    sync.add_argument("--max-pages", type=int, default=None)
    return parser.parse_args(argv)


def render_bar(score: float, width: int = 30) -> str:
    """ASCII bar to visualize a 0-100 score."""
    filled = int((score / 100.0) * width)
    return f"[{'#' * filled}{'.' * (width - filled)}]"


def render_text_result(result) -> str:
    """Pretty-print the score in a text-first dashboard layout."""
    breakdown = result.breakdown
    lines: List[str] = ["=== Quick view ==="]
    if result.product is not None:
        headline = result.product.name or "Unknown product"
        if result.product.barcode:
            headline += f" ({result.product.barcode})"
        if result.product.brand:
            headline += f" · {result.product.brand}"
        lines.append(headline)
        lines.append(f"Source: {result.product.source}")

    lines.append(
        f"Total: {breakdown.total:.1f}/100 ({breakdown.rating_label.value}) {render_bar(breakdown.total)}"
    )
    lines.append(f"  Safety:      {breakdown.safety:5.1f} {render_bar(breakdown.safety)}")
    if breakdown.nutrition is not None:
        lines.append(f"  Nutrition:   {breakdown.nutrition:5.1f} {render_bar(breakdown.nutrition)}")
    lines.append(f"  Suitability: {breakdown.suitability:5.1f} {render_bar(breakdown.suitability)}")
    if breakdown.needs_confirmation():
        lines.append("Low confidence: please double-check the ingredient list.")

    if breakdown.flags:
        lines.append("\nWarnings:")
        for flag in breakdown.flags:
            lines.append(f"  - [{flag.severity.value}] {flag.title}: {flag.explain}")

    lines.append("\n=== Details ===")
    lines.append(f"Matched {breakdown.matched_count} of {breakdown.total_count} ingredients ({breakdown.match_percentage}%)")
    for item in result.matched:
        marker = item.ingredient_id or "?"
        lines.append(f"  {item.rank:>2}. {item.label_name} -> {marker}")
    for explanation in (breakdown.safety_explanation, breakdown.suitability_explanation):
        if explanation is not None:
            lines.append(f"\n{explanation.summary}")
            for factor in explanation.factors:
                lines.append(f"  ({factor.impact.value}) {factor.description}")
    return "\n".join(lines)


def _profile(args: argparse.Namespace) -> PetAllergenProfile:
    allergens = [a.strip() for a in args.allergens.split(",") if a.strip()]
    return PetAllergenProfile(allergens=allergens, species=Species(args.species), pet_name=args.pet_name)


def run_sync(settings: Settings, max_pages) -> int:
    client = OpenPetFoodFactsClient(timeout=settings.product_api_timeout)
    stored = CatalogSync(client).full_sync(build_product_cache(settings), max_pages=max_pages)
    print(f"Stored {stored} products")
    return 0


def main(argv=None) -> int:
    """Entrypoint: build the service, run the command, render output."""
    args = parse_args(argv)
    settings = Settings.from_env()
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "sync":
        return run_sync(settings, args.max_pages)

    service = build_scan_service(settings)
    profile = _profile(args)
    category = Category(args.category)
    try:
        if args.command == "scan":
            result = asyncio.run(service.scan_barcode(args.barcode, profile, category=category))
        elif args.command == "scan-photo":
            content_type = mimetypes.guess_type(str(args.image))[0] or "image/jpeg"
            image = args.image.read_bytes()
            result = asyncio.run(service.scan_photo(image, profile, category=category, content_type=content_type))
        elif args.ocr_confidence is not None:
            result = service.analyze_ocr_text(args.ingredients, args.ocr_confidence, profile, category=category)
        else:
            result = service.analyze(args.ingredients, profile, category=category)
    except ProductNotFound:
        print("Product not found.")
        return 1
    except PetScanError as exc:
        print(f"Could not score product: {exc}")
        return 2
    finally:
        service.close()

    if args.format == "json":
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print(render_text_result(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
