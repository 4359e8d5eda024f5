from __future__ import annotations

"""
FastAPI application for image-to-catalog similarity search.

- POST /find-similar-products: {"imageUrl": ...} -> {"products": [...]}
- Result policy: similarity > SIMILARITY_THRESHOLD, at most RESULT_MAX items,
  descending similarity
- Only validation and image extraction can fail a request; comparator
  failures are scored 0 and filtered out like any low score
"""

from typing import List, Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from .config import (
    CORS_ALLOW_HEADERS,
    CORS_ALLOW_ORIGINS,
    LOG_DIR,
    RESULT_MAX,
    SIMILARITY_THRESHOLD,
    ErrorResponse,
    FindSimilarRequest,
    FindSimilarResponse,
    HealthResponse,
    ScoredProduct,
)
from .describe import describe_image, validate_image_ref
from .errors import SimilaritySearchError
from .fanout import score_catalog
from .pipeline_types import RequestStage
from .ranking import rank_products
from .reasoning import ReasoningClient
from . import _singletons


# -----------------------
# Pipeline
# -----------------------

def _transition(stage: RequestStage) -> RequestStage:
    logger.info("Request -> {}", stage.value)
    return stage


async def find_similar_products(
    image_ref: Optional[str],
    catalog,
    client_factory,
    max_concurrency: Optional[int] = None,
) -> List[ScoredProduct]:
    """
    Full ranking request: validate -> load catalog -> extract -> compare -> filter.

    `catalog` is anything with `list() -> list[Product]`; `client_factory`
    returns an object with `async complete(messages) -> str` and is only
    called once the request has passed validation. Every stage change is logged.
    """
    stage = RequestStage.IDLE
    try:
        stage = _transition(RequestStage.VALIDATING)
        image_ref = validate_image_ref(image_ref)

        products = catalog.list()
        if not products:
            logger.info("Catalog is empty; nothing to compare")
            stage = _transition(RequestStage.DONE)
            return []

        client = client_factory()

        stage = _transition(RequestStage.EXTRACTING)
        description = await describe_image(client, image_ref)

        stage = _transition(RequestStage.COMPARING)
        scored = await score_catalog(client, description, products, max_concurrency)

        stage = _transition(RequestStage.FILTERING)
        ranked = rank_products(scored, threshold=SIMILARITY_THRESHOLD, top_k=RESULT_MAX)

        stage = _transition(RequestStage.DONE)
        logger.info("Found similar products: {}", len(ranked))
        return ranked
    except SimilaritySearchError as e:
        logger.warning(
            "Request {} -> {}: {} ({})",
            stage.value,
            RequestStage.FAILED.value,
            type(e).__name__,
            e.message,
        )
        raise


# -----------------------
# FastAPI app + startup
# -----------------------

app = FastAPI(title="similar-products")
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOW_ORIGINS,
    allow_methods=["POST", "GET", "OPTIONS"],
    allow_headers=CORS_ALLOW_HEADERS,
)


@app.exception_handler(SimilaritySearchError)
async def similarity_error_handler(request, exc: SimilaritySearchError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=ErrorResponse(error=exc.message).model_dump())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("Rejected request body: {}", exc.errors())
    return JSONResponse(status_code=400, content=ErrorResponse(error="Invalid request body").model_dump())


_log_sink_id: Optional[int] = None


@app.on_event("startup")
def startup_event() -> None:
    global _log_sink_id
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    if _log_sink_id is None:
        _log_sink_id = logger.add(LOG_DIR / "api.log", rotation="10 MB", retention=5, enqueue=True)
    logger.info("Starting app warmup...")
    try:
        store = _singletons.get_catalog_store()
        logger.info("Loaded catalog snapshot with {} products", len(store))
    except SimilaritySearchError as e:
        # the request path reports this as a 500; keep serving /health
        logger.warning("Warmup partial failure: {}", e.message)
    logger.info("Warmup complete.")


@app.on_event("shutdown")
async def shutdown_event() -> None:
    global _log_sink_id
    if _singletons.get_http_client.cache_info().currsize:
        await _singletons.get_http_client().aclose()
        _singletons.get_http_client.cache_clear()
    if _log_sink_id is not None:
        logger.remove(_log_sink_id)
        _log_sink_id = None


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="healthy")


def _reasoning_client() -> ReasoningClient:
    return ReasoningClient.from_env(_singletons.get_http_client())


def _catalog():
    # lru_cache does not cache exceptions, so a failed load is retried next request
    return _singletons.get_catalog_store()


class _LazyCatalog:
    """Defers the snapshot load until the request has passed validation."""

    def list(self):
        return _catalog().list()


@app.post(
    "/find-similar-products",
    response_model=FindSimilarResponse,
    responses={400: {"model": ErrorResponse}, 402: {"model": ErrorResponse},
               429: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def find_similar(req: FindSimilarRequest) -> FindSimilarResponse:
    try:
        products = await find_similar_products(req.imageUrl, _LazyCatalog(), _reasoning_client)
    except SimilaritySearchError:
        raise
    except Exception as e:
        logger.exception("Error in find-similar-products: {}", e)
        raise SimilaritySearchError(str(e) or "Unknown error") from e
    return FindSimilarResponse(products=products)


# -----------------------
# CLI convenience
# -----------------------

async def search_single_image(image_ref: str, catalog=None, max_concurrency: Optional[int] = None) -> List[ScoredProduct]:
    if catalog is None:
        catalog = _singletons.get_catalog_store()
    http_client = _singletons.get_http_client()
    try:
        return await find_similar_products(
            image_ref,
            catalog,
            lambda: ReasoningClient.from_env(http_client),
            max_concurrency=max_concurrency,
        )
    finally:
        await http_client.aclose()
        _singletons.get_http_client.cache_clear()
