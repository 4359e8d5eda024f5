"""Shared fixtures: fake reasoning clients and small catalogs."""

import pytest

from similar_products.config import Product
from similar_products.errors import UpstreamError
from similar_products.prompts import IMAGE_ANALYSIS_INSTRUCTION


class FakeReasoningClient:
    """
    Same interface as ReasoningClient.complete.

    Answers the image-analysis prompt with `description`, and each comparison
    prompt with `scores[product name]`. A value that is an Exception instance
    is raised instead of returned.
    """

    def __init__(self, description="red leather handbag", scores=None, default="0"):
        self.description = description
        self.scores = scores or {}
        self.default = default
        self.calls = []

    async def complete(self, messages):
        self.calls.append(messages)
        first = messages[0]
        if first["role"] == "user" and isinstance(first["content"], list):
            if first["content"][0]["text"] != IMAGE_ANALYSIS_INSTRUCTION:
                raise AssertionError("unexpected analysis prompt")
            answer = self.description
        else:
            user = messages[1]["content"]
            name = user.split("Name: ", 1)[1].split("\n", 1)[0]
            answer = self.scores.get(name, self.default)
        if isinstance(answer, Exception):
            raise answer
        return answer

    @property
    def comparison_calls(self):
        return [m for m in self.calls if m[0]["role"] == "system"]


class StaticCatalog:
    def __init__(self, products):
        self.products = list(products)

    def list(self):
        return list(self.products)


def make_products(n, category="fashion"):
    return [
        Product(
            id=f"p{i}",
            name=f"Product {i}",
            category=category,
            description=f"Description {i}",
            image_url=f"https://img.example.com/{i}.jpg",
            price=10.0 + i,
        )
        for i in range(n)
    ]


@pytest.fixture
def products():
    return make_products(5)


@pytest.fixture
def fake_client():
    return FakeReasoningClient(
        scores={
            "Product 0": "40",
            "Product 1": "95",
            "Product 2": "not sure",
            "Product 3": UpstreamError("boom"),
            "Product 4": "95",
        }
    )
