"""Optimistic versioning, scoped transactions and deadlines on real sessions."""

import asyncio
from decimal import Decimal

import pytest
from libs.common.deadline import OperationTimeoutError
from services.catalog_service.exceptions import ConcurrencyConflictError
from services.catalog_service.models import Product
from services.catalog_service.schemas import CategoryUpdate, UpdateProductRequest
from services.catalog_service.services import category_service, product_service
from services.catalog_service.services._helpers import write_transaction
from tests.factories import CategoryFactory, ProductFactory, persist

ACTOR = "tester"


async def _product(db, **overrides):
    category = await persist(db, CategoryFactory.create())
    return await persist(db, ProductFactory.create(category.id, **overrides))


@pytest.mark.asyncio
@pytest.mark.integration
async def test_stale_writer_gets_concurrency_conflict(session_factory):
    async with session_factory() as setup:
        product = await _product(setup, name="Original")

    async with session_factory() as first, session_factory() as second:
        # Both writers edit the version 1 representation
        seen_by_first = await product_service.get_product_by_id(first, product.id)
        seen_by_second = await product_service.get_product_by_id(second, product.id)
        assert seen_by_first.version == seen_by_second.version == 1

        await product_service.update_product(
            first,
            product.id,
            UpdateProductRequest(name="First"),
            actor="alice",
            expected_version=seen_by_first.version,
        )

        with pytest.raises(ConcurrencyConflictError) as exc_info:
            await product_service.update_product(
                second,
                product.id,
                UpdateProductRequest(name="Second"),
                actor="bob",
                expected_version=seen_by_second.version,
            )
        assert exc_info.value.current_version == 2

    async with session_factory() as check:
        stored = await product_service.get_product_by_id(check, product.id)
        assert stored.name == "First"
        assert stored.version == 2
        assert stored.last_modified_by == "alice"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_write_to_outdated_row_is_rejected_at_flush(session_factory):
    async with session_factory() as setup:
        product = await _product(setup, name="Original")
        product_id = product.id

    async with session_factory() as first, session_factory() as second:
        outdated = await second.get(Product, product_id)

        await product_service.update_product(
            first, product_id, UpdateProductRequest(name="First"), actor="alice"
        )

        # The UPDATE still targets version 1 and matches no row
        with pytest.raises(ConcurrencyConflictError):
            async with write_transaction(second, "Product", product_id):
                outdated.name = "Second"

    async with session_factory() as check:
        stored = await check.get(Product, product_id)
        assert stored.name == "First"
        assert stored.version == 2


@pytest.mark.asyncio
@pytest.mark.integration
async def test_reads_do_not_trust_session_cache(session_factory):
    async with session_factory() as first, session_factory() as second:
        product = await _product(first, name="Original")
        await product_service.get_product_by_id(second, product.id)

        await product_service.update_product(
            first, product.id, UpdateProductRequest(name="Renamed"), actor="alice"
        )

        fresh = await product_service.get_product_by_id(second, product.id)
        assert fresh.name == "Renamed"
        assert fresh.version == 2


@pytest.mark.asyncio
@pytest.mark.integration
async def test_product_added_in_session_reports_its_category(session_factory):
    async with session_factory() as setup:
        category = await persist(setup, CategoryFactory.create(name="Garden"))
        category_id = category.id

    async with session_factory() as db:
        product = await persist(db, ProductFactory.create(category_id, name="Hoe"))

        fetched = await product_service.get_product_by_id(db, product.id)
        assert fetched.category_name == "Garden"

        updated = await product_service.update_product(
            db, product.id, UpdateProductRequest(name="Rake"), actor=ACTOR
        )
        assert updated.category_name == "Garden"

        deactivated = await product_service.deactivate_product(
            db, product.id, actor=ACTOR
        )
        assert deactivated.category_name == "Garden"

        by_sku = await product_service.get_product_by_sku(db, product.sku)
        assert by_sku.category_name == "Garden"

        listed = await product_service.list_products(db)
        assert [p.category_name for p in listed.items] == ["Garden"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_expected_version_mismatch_fails_before_writing(db_session):
    product = await _product(db_session, price=Decimal("10.00"))
    await product_service.update_product(
        db_session, product.id, UpdateProductRequest(name="v2"), actor=ACTOR
    )

    with pytest.raises(ConcurrencyConflictError) as exc_info:
        await product_service.update_product(
            db_session,
            product.id,
            UpdateProductRequest(price=Decimal("99.00")),
            actor=ACTOR,
            expected_version=1,
        )

    assert exc_info.value.expected_version == 1
    assert exc_info.value.current_version == 2
    stored = await product_service.get_product_by_id(db_session, product.id)
    assert stored.price == Decimal("10.00")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_matching_expected_version_is_accepted(db_session):
    product = await _product(db_session)

    updated = await product_service.deactivate_product(
        db_session, product.id, actor=ACTOR, expected_version=1
    )

    assert updated.active is False
    assert updated.version == 2


@pytest.mark.asyncio
@pytest.mark.integration
async def test_category_update_with_stale_version(db_session):
    category = await persist(db_session, CategoryFactory.create(name="Before"))

    with pytest.raises(ConcurrencyConflictError):
        await category_service.update_category(
            db_session,
            category.id,
            CategoryUpdate(name="After"),
            actor=ACTOR,
            expected_version=7,
        )


@pytest.mark.asyncio
@pytest.mark.integration
async def test_write_transaction_rolls_back_on_error(session_factory):
    async with session_factory() as db:
        product = await _product(db, stock_quantity=4)
        product_id = product.id

        with pytest.raises(RuntimeError):
            async with write_transaction(db, "Product", product_id):
                product.stock_quantity = 0
                await db.flush()
                raise RuntimeError("boom")

    async with session_factory() as check:
        stored = await check.get(Product, product_id)
        assert stored.stock_quantity == 4


@pytest.mark.asyncio
@pytest.mark.integration
async def test_operation_deadline_is_enforced(db_session, monkeypatch):
    product = await _product(db_session)
    original = product_service.review_stats

    async def slow_stats(*args, **kwargs):
        await asyncio.sleep(1)
        return await original(*args, **kwargs)

    monkeypatch.setattr(product_service, "review_stats", slow_stats)

    with pytest.raises(OperationTimeoutError):
        await product_service.get_product_by_id(db_session, product.id, timeout=0.05)

    fetched = await product_service.get_product_by_id(db_session, product.id, timeout=5)
    assert fetched.id == product.id
