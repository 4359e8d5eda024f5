from __future__ import annotations

import asyncio
import re

from loguru import logger

from .config import SIMILARITY_MAX, SIMILARITY_MIN, Product
from .pipeline_types import ComparisonOutcome
from .prompts import build_similarity_messages

_INT_RE = re.compile(r"-?\d+")


def clamp_similarity(value: int) -> int:
    return max(SIMILARITY_MIN, min(SIMILARITY_MAX, int(value)))


def parse_similarity(text, fallback: int = 0) -> int:
    """
    Read a similarity score out of free-form model output.

    Takes the first integer in the text ("Score: 85/100" -> 85, "87.5" -> 87)
    and clamps it into [0, 100]. Returns the clamped fallback when the input
    is not a string or holds no integer.
    """
    if not isinstance(text, str):
        return clamp_similarity(fallback)
    m = _INT_RE.search(text)
    if not m:
        return clamp_similarity(fallback)
    return clamp_similarity(int(m.group(0)))


async def score_product(client, description: str, product: Product) -> ComparisonOutcome:
    """
    Score one product against the image description.

    Never raises for upstream trouble: a failed call or an answer without a
    number is logged and recorded as a 0 score with `failed=True`.
    Cancellation is not a failure and propagates.
    """
    messages = build_similarity_messages(description, product)
    try:
        text = await client.complete(messages)
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.warning("Comparison failed for product {} ({}): {}", product.name, product.id, e)
        return ComparisonOutcome(product=product, similarity=SIMILARITY_MIN, failed=True)

    if not isinstance(text, str) or _INT_RE.search(text) is None:
        logger.warning("Unparseable similarity for product {}: {!r}", product.id, str(text)[:80])
        return ComparisonOutcome(product=product, similarity=SIMILARITY_MIN, failed=True)

    return ComparisonOutcome(product=product, similarity=parse_similarity(text))


async def compare_product(client, description: str, product: Product) -> int:
    outcome = await score_product(client, description, product)
    return outcome.similarity
