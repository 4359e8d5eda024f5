import asyncio

import pytest

from conftest import FakeReasoningClient, make_products
from similar_products.fanout import score_catalog, score_catalog_outcomes


class SlowClient:
    """Tracks how many calls are in flight at once; later products finish first."""

    def __init__(self, n):
        self.n = n
        self.in_flight = 0
        self.peak = 0

    async def complete(self, messages):
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        name = messages[1]["content"].split("Name: ", 1)[1].split("\n", 1)[0]
        idx = int(name.rsplit(" ", 1)[1])
        await asyncio.sleep(0.001 * (self.n - idx))
        self.in_flight -= 1
        return str(idx * 10)


def test_one_outcome_per_product_in_input_order(products, fake_client):
    scored = asyncio.run(score_catalog(fake_client, "bag", products))
    assert [p.id for p in scored] == [p.id for p in products]
    assert [p.similarity for p in scored] == [40, 95, 0, 0, 95]


def test_single_failure_does_not_taint_others(products, fake_client):
    outcomes = asyncio.run(score_catalog_outcomes(fake_client, "bag", products))
    failed = [o.product.id for o in outcomes if o.failed]
    assert failed == ["p2", "p3"]
    assert len(fake_client.comparison_calls) == len(products)


def test_order_is_input_order_not_completion_order():
    products = make_products(6)
    client = SlowClient(len(products))
    scored = asyncio.run(score_catalog(client, "bag", products, max_concurrency=0))
    assert [p.similarity for p in scored] == [0, 10, 20, 30, 40, 50]


def test_concurrency_is_bounded():
    products = make_products(12)
    client = SlowClient(len(products))
    asyncio.run(score_catalog(client, "bag", products, max_concurrency=3))
    assert client.peak <= 3


def test_zero_concurrency_means_unbounded():
    products = make_products(12)
    client = SlowClient(len(products))
    asyncio.run(score_catalog(client, "bag", products, max_concurrency=0))
    assert client.peak == len(products)


def test_empty_catalog_makes_no_calls():
    client = FakeReasoningClient()
    assert asyncio.run(score_catalog(client, "bag", [])) == []
    assert client.calls == []


def test_products_are_not_mutated(products, fake_client):
    before = [p.model_dump() for p in products]
    asyncio.run(score_catalog(fake_client, "bag", products))
    assert [p.model_dump() for p in products] == before


def test_cancellation_reaches_outstanding_calls():
    started = []
    cancelled = []

    class HangingClient:
        async def complete(self, messages):
            started.append(1)
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.append(1)
                raise
            return "50"

    async def run():
        task = asyncio.create_task(score_catalog(HangingClient(), "bag", make_products(4), max_concurrency=0))
        while len(started) < 4:
            await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    asyncio.run(run())
    assert len(cancelled) == 4
