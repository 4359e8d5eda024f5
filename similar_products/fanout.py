from __future__ import annotations

import asyncio
import time
from typing import List, Sequence

from loguru import logger

from . import config
from .compare import score_product
from .config import Product, ScoredProduct
from .pipeline_types import ComparisonOutcome


async def score_catalog_outcomes(
    client,
    description: str,
    products: Sequence[Product],
    max_concurrency: int | None = None,
) -> List[ComparisonOutcome]:
    """
    Run one comparator call per product and wait for all of them.

    Calls are scheduled together; at most `max_concurrency` are in flight at
    once (<= 0 means no cap). The join is a full barrier: every product
    reaches a terminal state (score or recovered 0) before this returns.
    Output order follows `products`, not completion order. If the caller is
    cancelled, gather cancels every outstanding call.
    """
    if not products:
        return []

    if max_concurrency is None:
        max_concurrency = config.MAX_CONCURRENT_COMPARISONS
    semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency > 0 else None

    async def _score_limited(product: Product) -> ComparisonOutcome:
        if semaphore is None:
            return await score_product(client, description, product)
        async with semaphore:
            return await score_product(client, description, product)

    width = max_concurrency if max_concurrency > 0 else len(products)
    logger.info(
        "Comparing {} products (concurrency={})",
        len(products),
        min(width, len(products)),
    )
    started = time.perf_counter()

    outcomes = await asyncio.gather(*[_score_limited(p) for p in products])

    failed = sum(1 for o in outcomes if o.failed)
    if failed:
        logger.warning(
            "Comparator fallbacks: {} of {} products scored 0 after a failed call",
            failed,
            len(outcomes),
        )
    logger.info("Compared {} products in {:.2f}s", len(outcomes), time.perf_counter() - started)
    return list(outcomes)


async def score_catalog(
    client,
    description: str,
    products: Sequence[Product],
    max_concurrency: int | None = None,
) -> List[ScoredProduct]:
    outcomes = await score_catalog_outcomes(client, description, products, max_concurrency)
    return [ScoredProduct.from_product(o.product, o.similarity) for o in outcomes]
