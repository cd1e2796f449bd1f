"""Tests for the skip-existing planner."""

from __future__ import annotations

import pytest

from src.services.sync.planner import SyncPlanner


@pytest.fixture()
def products(product_factory):
    return [product_factory(index) for index in range(1, 6)]


@pytest.mark.asyncio
async def test_plan_excludes_products_with_embeddings(vector_store, products):
    vector_store.seed("p2")
    vector_store.seed("p4")
    planner = SyncPlanner(vector_store=vector_store)

    plan = await planner.plan(products)

    assert [product.id for product in plan.to_process] == ["p1", "p3", "p5"]
    assert [product.id for product in plan.already_have] == ["p2", "p4"]
    assert plan.summary.total == 5
    assert plan.summary.existing == 2
    assert plan.summary.to_process == 3


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "flags",
    [{"force_regenerate": True}, {"skip_existing": False}],
)
async def test_plan_processes_all_when_not_skipping(vector_store, products, flags):
    vector_store.seed("p1")
    planner = SyncPlanner(vector_store=vector_store)

    plan = await planner.plan(products, **flags)

    assert len(plan.to_process) == 5
    assert plan.already_have == []
    assert plan.summary.existing == 0


@pytest.mark.asyncio
async def test_plan_falls_back_to_all_on_store_failure(vector_store, products):
    vector_store.fail_existing_ids = True
    planner = SyncPlanner(vector_store=vector_store)

    plan = await planner.plan(products)

    assert plan.summary.to_process == 5
    assert plan.summary.existing == 0
