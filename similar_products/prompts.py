from __future__ import annotations

"""Prompt text and chat-message builders for the extractor and comparator."""

from typing import Any, Dict, List

from .config import Product
from .normalize import prompt_field

Message = Dict[str, Any]


IMAGE_ANALYSIS_INSTRUCTION = (
    "Analyze this image and describe the product in detail. Focus on: category "
    "(electronics, fashion, home, kitchen, sports), color, style, type of product, "
    "and key visual features. Be specific and concise."
)

SIMILARITY_SYSTEM_PROMPT = (
    "You are a product similarity expert. Compare two products and return ONLY a "
    "similarity score from 0-100 as a number. Consider category match, visual "
    "similarity, style, and use case. Return just the number, nothing else."
)


def build_image_analysis_messages(image_ref: str) -> List[Message]:
    return [
        {
            "role": "user",
            "content": [
                {"type": "text", "text": IMAGE_ANALYSIS_INSTRUCTION},
                {"type": "image_url", "image_url": {"url": image_ref}},
            ],
        }
    ]


def build_similarity_messages(description: str, product: Product) -> List[Message]:
    user = (
        f"Uploaded image description: {description}\n\n"
        f"Product to compare:\n"
        f"Name: {prompt_field(product.name)}\n"
        f"Category: {prompt_field(product.category)}\n"
        f"Description: {prompt_field(product.description)}\n\n"
        f"Similarity score (0-100):"
    )
    return [
        {"role": "system", "content": SIMILARITY_SYSTEM_PROMPT},
        {"role": "user", "content": user},
    ]
