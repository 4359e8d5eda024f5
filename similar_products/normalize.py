from __future__ import annotations

"""
Text normalisation helpers shared across catalog building and prompting.

Catalog exports carry HTML fragments, typographic quotes and stray
whitespace; prompts want short, plain text. This module is the single
place that turns the former into the latter.

Public helpers:

* basic_clean(text) -> str
    Light-weight clean used when building the catalog snapshot.

* clamp_text_length(text, limit) -> str
    Hard cap on characters.

* prompt_field(value) -> str
    basic_clean + clamp, used for every product field placed into a prompt.
"""

import re
import unicodedata

from bs4 import BeautifulSoup

from . import config

MAX_FIELD_CHARS: int = config.MAX_FIELD_CHARS

# Raw catalog cells are capped before HTML parsing.
MAX_INPUT_CHARS: int = 20_000


# ---------------------------------------------------------------------------
# Low-level helpers
# ---------------------------------------------------------------------------


def strip_html(text: str) -> str:
    if not text:
        return ""
    if "<" not in text:
        return text
    soup = BeautifulSoup(text, "html.parser")
    return soup.get_text("", strip=False)


def _normalise_unicode(text: str) -> str:
    text = unicodedata.normalize("NFKC", text)
    text = text.replace("\u2018", "'").replace("\u2019", "'")
    text = text.replace("\u201c", '"').replace("\u201d", '"')
    text = text.replace("\u2013", "-").replace("\u2014", "-")
    return text


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def basic_clean(text) -> str:
    """Light-weight clean for catalog fields.

    * strips HTML
    * normalises unicode and whitespace
    * truncates excessively long inputs
    """
    if text is None:
        return ""
    if isinstance(text, float) and text != text:  # NaN from pandas
        return ""
    if not isinstance(text, str):
        text = str(text)

    if len(text) > MAX_INPUT_CHARS:
        text = text[:MAX_INPUT_CHARS]

    text = strip_html(text)
    text = _normalise_unicode(text)

    text = text.replace("\r", " ").replace("\n", " ").replace("\t", " ")
    text = re.sub(r"\s+", " ", text).strip()
    return text


def clamp_text_length(text: str, limit: int = MAX_FIELD_CHARS) -> str:
    if not text:
        return ""
    return text if len(text) <= limit else text[:limit]


def prompt_field(value) -> str:
    """Clean a product field and cap it so one odd row cannot blow up a prompt."""
    return clamp_text_length(basic_clean(value))
