import asyncio
import random

import pytest
from loguru import logger

from conftest import FakeReasoningClient, StaticCatalog, make_products
from similar_products.api import find_similar_products
from similar_products.errors import InputError, UpstreamError, UpstreamRateLimited

IMAGE = "https://example.com/query.jpg"


def _run(client, products, image=IMAGE, max_concurrency=4):
    return asyncio.run(
        find_similar_products(image, StaticCatalog(products), lambda: client, max_concurrency=max_concurrency)
    )


def _random_scores(products, seed):
    rng = random.Random(seed)
    answers = ["{}".format(rng.randint(-20, 130)), "about {}".format(rng.randint(0, 100)), "no idea"]
    return {p.name: rng.choice(answers) for p in products}


@pytest.mark.parametrize("seed", range(5))
def test_result_contract_holds(seed):
    products = make_products(40)
    client = FakeReasoningClient(scores=_random_scores(products, seed))

    ranked = _run(client, products)

    assert len(ranked) <= 20
    assert all(0 <= p.similarity <= 100 for p in ranked)
    assert all(p.similarity > 10 for p in ranked)
    for a, b in zip(ranked, ranked[1:]):
        assert a.similarity >= b.similarity
    assert len({p.id for p in ranked}) == len(ranked)


def test_empty_catalog_returns_empty_list_without_upstream_calls():
    client = FakeReasoningClient(description=UpstreamRateLimited())
    assert _run(client, []) == []
    assert client.calls == []


def test_one_failed_comparison_keeps_the_rest():
    products = make_products(5)
    scores = {p.name: str(50 + i) for i, p in enumerate(products)}
    scores["Product 2"] = UpstreamError("boom")
    client = FakeReasoningClient(scores=scores)

    ranked = _run(client, products)

    assert [p.id for p in ranked] == ["p4", "p3", "p1", "p0"]
    assert all(p.similarity != 0 for p in ranked)


def test_deterministic_across_runs():
    products = make_products(30)
    scores = {p.name: str((i * 37) % 101) for i, p in enumerate(products)}

    first = _run(FakeReasoningClient(scores=scores), products)
    second = _run(FakeReasoningClient(scores=scores), products, max_concurrency=0)

    assert [(p.id, p.similarity) for p in first] == [(p.id, p.similarity) for p in second]


def test_non_numeric_comparison_is_excluded_not_fatal():
    products = make_products(2)
    client = FakeReasoningClient(scores={"Product 0": "very similar!", "Product 1": "77"})
    ranked = _run(client, products)
    assert [p.id for p in ranked] == ["p1"]


def test_rate_limited_extraction_aborts_without_comparisons():
    client = FakeReasoningClient(description=UpstreamRateLimited())
    with pytest.raises(UpstreamRateLimited):
        _run(client, make_products(3))
    assert client.comparison_calls == []


def _stage_messages(run):
    messages = []
    sink_id = logger.add(lambda m: messages.append(m.record["message"]), format="{message}")
    try:
        run()
    except Exception:
        pass
    finally:
        logger.remove(sink_id)
    return [m for m in messages if m.startswith("Request ")]


def test_stage_transitions_are_logged():
    products = make_products(3)
    client = FakeReasoningClient(scores={p.name: "60" for p in products})

    stages = _stage_messages(lambda: _run(client, products))

    assert stages == [
        "Request -> validating",
        "Request -> extracting",
        "Request -> comparing",
        "Request -> filtering",
        "Request -> done",
    ]


def test_failed_stage_is_logged():
    client = FakeReasoningClient(description=UpstreamRateLimited())

    stages = _stage_messages(lambda: _run(client, make_products(2)))

    assert stages[-1] == "Request extracting -> failed: UpstreamRateLimited (Rate limit exceeded. Please try again later.)"


def test_invalid_input_never_builds_a_client():
    def factory():
        raise AssertionError("client must not be built for invalid input")

    with pytest.raises(InputError):
        asyncio.run(find_similar_products("", StaticCatalog(make_products(1)), factory))
