from __future__ import annotations

"""
Abort kinds for one similarity-search request.

Each carries the HTTP status and the short user-facing message the API
renders as `{"error": message}`. Comparator failures are deliberately not
represented here: they are recovered as a 0 score inside the fan-out.
"""


class SimilaritySearchError(Exception):
    status_code: int = 500
    default_message: str = "Internal error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InputError(SimilaritySearchError):
    status_code = 400
    default_message = "Image URL is required"


class UpstreamError(SimilaritySearchError):
    status_code = 500
    default_message = "Failed to analyze image"


class UpstreamRateLimited(UpstreamError):
    status_code = 429
    default_message = "Rate limit exceeded. Please try again later."


class UpstreamQuotaExhausted(UpstreamError):
    status_code = 402
    default_message = "AI credits exhausted. Please add credits to your workspace."


class CatalogUnavailable(SimilaritySearchError):
    status_code = 500
    default_message = "Failed to fetch products"


class ServiceNotConfigured(SimilaritySearchError):
    status_code = 500
    default_message = "AI service not configured"
