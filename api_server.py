"""
FastAPI wrapper for the pet food scoring engine.

Endpoints:
- GET /health       : readiness check
- POST /analyze     : score a raw ingredient list for a pet
- POST /scan        : identify a product by barcode and score it
- POST /scan/photo  : identify a product from a packaging photo and score it

Run locally:
    uvicorn api_server:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import base64
import binascii
import logging
from typing import Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, validator

from petscan_engine import (
    AllSourcesExhausted,
    Category,
    PetAllergenProfile,
    PetScanError,
    ScanService,
    Settings,
    Species,
    build_scan_service,
)
from petscan_engine.errors import NotFoundError

settings = Settings.from_env()
logging.basicConfig(level=getattr(logging, settings.log_level, logging.INFO))

app = FastAPI(
    title="PetScan API",
    description="REST API for pet food identification and ingredient scoring.",
    version="1.0.0",
)

# CORS for broad consumption; tighten in production by setting allowed origins.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class PetRequest(BaseModel):
    allergens: List[str] = Field(default_factory=list, description="Pet allergens (e.g., chicken, wheat)")
    species: Species = Field(Species.DOG, description="dog or cat")
    category: Category = Field(Category.FOOD, description="food, treat or cosmetic")
    pet_name: Optional[str] = Field(None, description="Used in explanation text")

    @validator("allergens")
    def _normalize_allergens(cls, v: List[str]) -> List[str]:
        return [a.strip().lower() for a in v if a.strip()]

    def profile(self) -> PetAllergenProfile:
        return PetAllergenProfile(allergens=self.allergens, species=self.species, pet_name=self.pet_name)


class AnalyzeRequest(PetRequest):
    ingredients_text: str = Field(..., description="Ingredient list as printed on the label")
    ocr_confidence: Optional[float] = Field(
        None,
        ge=0.0,
        le=1.0,
        description="Set when the text came from OCR; marks the score as estimated.",
    )


class ScanRequest(PetRequest):
    barcode: str = Field(..., description="Product UPC/EAN barcode")


class PhotoScanRequest(PetRequest):
    image_base64: str = Field(..., description="Front-of-pack photo, base64 encoded")
    content_type: str = Field("image/jpeg", description="MIME type of the photo")

    @validator("image_base64")
    def _check_image(cls, v: str) -> str:
        try:
            decoded = base64.b64decode(v, validate=True)
        except binascii.Error as exc:
            raise ValueError("image_base64 is not valid base64") from exc
        if not decoded:
            raise ValueError("image_base64 is empty")
        return v

    def image(self) -> bytes:
        return base64.b64decode(self.image_base64)


class ScanResponse(BaseModel):
    product: Optional[Dict]
    ingredients: List[Dict]
    normalized_text: str
    score: Dict


_service: Optional[ScanService] = None


def get_service() -> ScanService:
    global _service
    if _service is None:
        _service = build_scan_service(settings)
    return _service


@app.get("/health")
def health() -> Dict[str, str]:
    return {"status": "ok"}


@app.post("/analyze", response_model=ScanResponse)
def analyze(request: AnalyzeRequest, service: ScanService = Depends(get_service)):
    if request.ocr_confidence is not None:
        result = service.analyze_ocr_text(
            request.ingredients_text,
            request.ocr_confidence,
            request.profile(),
            category=request.category,
        )
    else:
        result = service.analyze(request.ingredients_text, request.profile(), category=request.category)
    return result.to_dict()


def _http_error(exc: PetScanError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, AllSourcesExhausted):
        return HTTPException(status_code=502, detail=str(exc))
    return HTTPException(status_code=422, detail=str(exc))


@app.post("/scan", response_model=ScanResponse)
async def scan(request: ScanRequest, service: ScanService = Depends(get_service)):
    try:
        result = await service.scan_barcode(request.barcode, request.profile(), category=request.category)
    except PetScanError as exc:
        raise _http_error(exc) from exc
    return result.to_dict()


@app.post("/scan/photo", response_model=ScanResponse)
async def scan_photo(request: PhotoScanRequest, service: ScanService = Depends(get_service)):
    try:
        result = await service.scan_photo(
            request.image(),
            request.profile(),
            category=request.category,
            content_type=request.content_type,
        )
    except PetScanError as exc:
        raise _http_error(exc) from exc
    return result.to_dict()


if __name__ == "__main__":
    uvicorn.run("api_server:app", host="0.0.0.0", port=8000, reload=False)
