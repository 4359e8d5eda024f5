from __future__ import annotations

from typing import Iterable, List

from loguru import logger

from . import config
from .config import ScoredProduct


def dedupe_by_id(scored: Iterable[ScoredProduct]) -> List[ScoredProduct]:
    """Keep the first entry per product id, preserving order."""
    seen = set()
    deduped: List[ScoredProduct] = []
    for item in scored:
        if item.id in seen:
            continue
        seen.add(item.id)
        deduped.append(item)
    return deduped


def rank_products(
    scored: Iterable[ScoredProduct],
    threshold: int = config.SIMILARITY_THRESHOLD,
    top_k: int = config.RESULT_MAX,
) -> List[ScoredProduct]:
    """
    Final ordering of scored products:
      1) one entry per product id (first wins)
      2) sort by similarity descending; sorted() is stable, so ties keep input order
      3) drop everything with similarity <= threshold
      4) keep the first top_k
    """
    items = dedupe_by_id(scored)
    ranked = sorted(items, key=lambda p: -p.similarity)
    kept = [p for p in ranked if p.similarity > threshold]
    result = kept[: max(top_k, 0)]

    logger.info(
        "Ranking: {} scored -> {} above threshold {} -> {} returned",
        len(items),
        len(kept),
        threshold,
        len(result),
    )
    return result
