from __future__ import annotations

"""
Client for the external reasoning service.

Both the image extractor and the product comparator go through
`ReasoningClient.complete(messages) -> str`; only the prompt differs. The
gateway speaks the OpenAI chat-completions wire format.

Status mapping:
  - 429 -> UpstreamRateLimited
  - 402 -> UpstreamQuotaExhausted
  - any other non-2xx, transport error or malformed body -> UpstreamError
"""

from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from . import config
from .errors import (
    ServiceNotConfigured,
    UpstreamError,
    UpstreamQuotaExhausted,
    UpstreamRateLimited,
)

# upstream error bodies are logged, but only this much of them
_MAX_LOGGED_BODY = 500


def build_http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.HTTP_READ_TIMEOUT, connect=config.HTTP_CONNECT_TIMEOUT),
        headers={"User-Agent": config.HTTP_USER_AGENT},
    )


def extract_message_content(payload: Any) -> str:
    """Pull `choices[0].message.content` out of a chat-completions body."""
    try:
        content = payload["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError) as e:
        raise UpstreamError(f"Malformed response from reasoning service: {e!r}") from e

    if isinstance(content, list):
        # some gateways return content parts instead of a plain string
        content = "".join(
            part.get("text", "") for part in content if isinstance(part, dict)
        )
    if not isinstance(content, str):
        raise UpstreamError("Malformed response from reasoning service: content is not text")
    return content


class ReasoningClient:
    def __init__(
        self,
        http_client: httpx.AsyncClient,
        api_key: Optional[str] = None,
        base_url: str = config.REASONING_BASE_URL,
        model: str = config.REASONING_MODEL,
    ):
        if not api_key:
            raise ServiceNotConfigured()
        self.http_client = http_client
        self.api_key = api_key
        self.url = base_url.rstrip("/") + "/chat/completions"
        self.model = model

    @classmethod
    def from_env(cls, http_client: httpx.AsyncClient) -> "ReasoningClient":
        return cls(http_client, api_key=config.get_reasoning_api_key())

    async def complete(self, messages: List[Dict[str, Any]]) -> str:
        body = {"model": self.model, "messages": messages}
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            r = await self.http_client.post(self.url, json=body, headers=headers)
        except httpx.TimeoutException as e:
            logger.warning("Reasoning service timeout: {}", e)
            raise UpstreamError(f"Reasoning service timed out: {e}") from e
        except httpx.HTTPError as e:
            logger.warning("Reasoning service transport error: {}", e)
            raise UpstreamError(f"Reasoning service unreachable: {e}") from e

        if r.status_code >= 400:
            logger.error(
                "Reasoning service error: HTTP {} {}",
                r.status_code,
                r.text[:_MAX_LOGGED_BODY],
            )
            if r.status_code == 429:
                raise UpstreamRateLimited()
            if r.status_code == 402:
                raise UpstreamQuotaExhausted()
            raise UpstreamError(f"Reasoning service returned HTTP {r.status_code}")

        try:
            payload = r.json()
        except ValueError as e:
            raise UpstreamError("Reasoning service returned a non-JSON body") from e

        return extract_message_content(payload)
