from __future__ import annotations

import os
from pathlib import Path
from typing import List

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------
# Paths
# ---------------------------

PROJECT_ROOT = Path(__file__).resolve().parents[1]

DATA_DIR = PROJECT_ROOT / "data"
CATALOG_RAW_DIR = DATA_DIR / "catalog_raw"
CATALOG_SNAPSHOT_PATH = Path(
    os.getenv("CATALOG_SNAPSHOT_PATH", str(DATA_DIR / "catalog_snapshot.parquet"))
)


# ---------------------------
# Reasoning service (OpenAI-compatible chat completions gateway)
# ---------------------------

REASONING_BASE_URL = os.getenv("REASONING_BASE_URL", "https://ai.gateway.lovable.dev/v1")
REASONING_MODEL = os.getenv("REASONING_MODEL", "google/gemini-2.5-flash")
REASONING_API_KEY_ENV = "REASONING_API_KEY"


def get_reasoning_api_key() -> str | None:
    """
    Read the gateway key at call time so tests and deployments can set it late.
    """
    key = os.getenv(REASONING_API_KEY_ENV, "").strip()
    return key or None


# ---------------------------
# HTTP hardening
# ---------------------------

HTTP_CONNECT_TIMEOUT = float(os.getenv("HTTP_CONNECT_TIMEOUT", "5.0"))
HTTP_READ_TIMEOUT = float(os.getenv("HTTP_READ_TIMEOUT", "60.0"))

HTTP_USER_AGENT = "similar-products/1.0"


# ---------------------------
# Fan-out
# ---------------------------

# In-flight comparator calls per request; <= 0 disables the cap.
DEFAULT_MAX_CONCURRENT_COMPARISONS = 8
MAX_CONCURRENT_COMPARISONS = int(
    os.getenv("MAX_CONCURRENT_COMPARISONS", str(DEFAULT_MAX_CONCURRENT_COMPARISONS))
)


# ---------------------------
# Result policy
# ---------------------------

SIMILARITY_MIN = 0
SIMILARITY_MAX = 100
SIMILARITY_THRESHOLD = 10  # strictly greater than this to be returned
RESULT_MAX = 20


# ---------------------------
# Input limits
# ---------------------------

MAX_UPLOAD_MB = 10
MAX_UPLOAD_BYTES = MAX_UPLOAD_MB * 1024 * 1024

# product fields are clamped before being placed into a prompt
MAX_FIELD_CHARS = 2_000


# ---------------------------
# CORS
# ---------------------------

CORS_ALLOW_ORIGINS: List[str] = ["*"]
CORS_ALLOW_HEADERS: List[str] = ["authorization", "x-client-info", "apikey", "content-type"]


# ---------------------------
# Logging / observability
# ---------------------------

LOG_DIR = PROJECT_ROOT / "logs"


# ---------------------------
# Pydantic models shared around the app
# ---------------------------

class Product(BaseModel):
    """
    One catalog record, exactly as the catalog store hands it out.
    Frozen: the ranking pipeline never mutates catalog data.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    category: str = ""
    description: str = ""
    image_url: str = ""
    price: float = Field(0.0, ge=0)


class ScoredProduct(Product):
    """
    A product plus its similarity to the uploaded image (0-100).
    """

    similarity: int = Field(ge=SIMILARITY_MIN, le=SIMILARITY_MAX)

    @classmethod
    def from_product(cls, product: Product, similarity: int) -> "ScoredProduct":
        fields = product.model_dump(exclude={"similarity"})
        return cls(**fields, similarity=similarity)


class FindSimilarRequest(BaseModel):
    """
    Request body for POST /find-similar-products.

    `imageUrl` is optional at the schema level so a missing value is reported
    as a 400 with an `error` body instead of FastAPI's 422.
    """

    imageUrl: str | None = None


class FindSimilarResponse(BaseModel):
    """
    Response body for POST /find-similar-products.
    """

    products: List[ScoredProduct]


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    """
    Response body for GET /health.
    """

    status: str
