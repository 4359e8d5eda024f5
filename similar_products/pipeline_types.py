"""Typed containers shared across pipeline modules."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .config import Product


class RequestStage(str, Enum):
    """Lifecycle of one ranking request; FAILED is reachable from VALIDATING and EXTRACTING."""

    IDLE = "idle"
    VALIDATING = "validating"
    EXTRACTING = "extracting"
    COMPARING = "comparing"
    FILTERING = "filtering"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ComparisonOutcome:
    """Terminal state of one comparator call: a score, or a recovered 0."""

    product: Product
    similarity: int
    failed: bool = False
