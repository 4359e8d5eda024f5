from __future__ import annotations

import base64
import binascii
import re

from loguru import logger

from .config import MAX_UPLOAD_BYTES, MAX_UPLOAD_MB
from .errors import InputError, UpstreamError, UpstreamQuotaExhausted, UpstreamRateLimited
from .prompts import build_image_analysis_messages

_DATA_URI_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(?:;[^,;]*)*),(?P<payload>.*)$", re.S)
_HTTP_RE = re.compile(r"^https?://\S+$", re.I)


def validate_image_ref(image_ref) -> str:
    """
    Check that an image reference is usable before anything is sent upstream.

    Accepts an http(s) URL or a base64 `data:image/...` URI no larger than
    MAX_UPLOAD_MB once decoded. Returns the stripped reference.
    """
    if not isinstance(image_ref, str) or not image_ref.strip():
        raise InputError()
    ref = image_ref.strip()

    if _HTTP_RE.match(ref):
        return ref

    m = _DATA_URI_RE.match(ref)
    if not m:
        raise InputError("Image must be an http(s) URL or a data URI")

    mime = (m.group("mime") or "").lower()
    if not mime.startswith("image/"):
        raise InputError("Please upload an image file")
    if ";base64" not in m.group("params").lower():
        raise InputError("Image data URI must be base64-encoded")

    payload = re.sub(r"\s+", "", m.group("payload"))
    # decoded size is ~3/4 of the encoded length; check before decoding
    if len(payload) * 3 // 4 > MAX_UPLOAD_BYTES:
        raise InputError(f"Image size should be less than {MAX_UPLOAD_MB}MB")
    try:
        base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InputError("Image data URI is not valid base64") from e

    # line-wrapped payloads are forwarded unwrapped
    return ref[: m.start("payload")] + payload


def _log_ref(image_ref: str) -> str:
    return image_ref if image_ref.startswith("http") else image_ref[:40] + "..."


async def describe_image(client, image_ref: str) -> str:
    """
    Turn one image into a short product description.

    Any failure here aborts the whole request: upstream limit kinds pass
    through unchanged, everything else becomes a generic UpstreamError.
    """
    logger.info("Finding similar products for image: {}", _log_ref(image_ref))
    messages = build_image_analysis_messages(image_ref)

    try:
        text = await client.complete(messages)
    except (UpstreamRateLimited, UpstreamQuotaExhausted):
        raise
    except UpstreamError as e:
        logger.error("AI analysis error: {}", e)
        raise UpstreamError() from e
    except Exception as e:
        logger.exception("AI analysis failed unexpectedly: {}", e)
        raise UpstreamError() from e

    description = (text or "").strip()
    if not description:
        logger.error("AI analysis returned an empty description")
        raise UpstreamError()

    logger.info("Image analysis: {}", description)
    return description
