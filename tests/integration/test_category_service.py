"""Integration tests for the category hierarchy."""

from decimal import Decimal

import pytest
from services.catalog_service.exceptions import (
    CategoryCycleError,
    CategoryHasChildrenError,
    CategoryInUseError,
    CategoryNotFoundError,
    DuplicateCategoryNameError,
)
from services.catalog_service.schemas import CategoryCreate, CategoryUpdate
from services.catalog_service.services import category_service
from tests.factories import CategoryFactory, ProductFactory, persist

ACTOR = "tester"


async def _tree(db):
    """electronics -> computers -> laptops, plus a separate garden root."""
    electronics = await persist(db, CategoryFactory.create(name="Electronics"))
    computers = await persist(
        db, CategoryFactory.create(name="Computers", parent_id=electronics.id)
    )
    laptops = await persist(
        db, CategoryFactory.create(name="Laptops", parent_id=computers.id)
    )
    garden = await persist(db, CategoryFactory.create(name="Garden"))
    return electronics, computers, laptops, garden


# ---------------------------------------------------------------------------
# create / update
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_root_and_child_categories(db_session):
    root = await category_service.create_category(
        db_session, CategoryCreate(name="Books"), actor=ACTOR
    )
    child = await category_service.create_category(
        db_session, CategoryCreate(name="Novels", parent_id=root.id), actor=ACTOR
    )

    assert root.parent_id is None
    assert child.parent_id == root.id
    assert child.created_by == ACTOR
    assert child.version == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_category_rejects_duplicate_name(db_session):
    await persist(db_session, CategoryFactory.create(name="Toys"))

    with pytest.raises(DuplicateCategoryNameError):
        await category_service.create_category(
            db_session, CategoryCreate(name="Toys"), actor=ACTOR
        )


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_category_requires_existing_parent(db_session):
    with pytest.raises(CategoryNotFoundError):
        await category_service.create_category(
            db_session, CategoryCreate(name="Orphan", parent_id=999), actor=ACTOR
        )


@pytest.mark.asyncio
@pytest.mark.integration
async def test_update_category_renames(db_session):
    category = await persist(db_session, CategoryFactory.create(name="Old"))

    updated = await category_service.update_category(
        db_session, category.id, CategoryUpdate(name="New"), actor="editor"
    )

    assert updated.name == "New"
    assert updated.version == 2
    assert updated.last_modified_by == "editor"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_update_category_rejects_taken_name(db_session):
    await persist(db_session, CategoryFactory.create(name="Taken"))
    category = await persist(db_session, CategoryFactory.create(name="Mine"))

    with pytest.raises(DuplicateCategoryNameError):
        await category_service.update_category(
            db_session, category.id, CategoryUpdate(name="Taken"), actor=ACTOR
        )


# ---------------------------------------------------------------------------
# lookups
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_get_category_by_name_and_missing(db_session):
    await persist(db_session, CategoryFactory.create(name="Music"))

    found = await category_service.get_category_by_name(db_session, "Music")
    assert found.name == "Music"

    with pytest.raises(CategoryNotFoundError):
        await category_service.get_category_by_name(db_session, "Nope")
    with pytest.raises(CategoryNotFoundError):
        await category_service.get_category(db_session, 4040)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_search_categories_is_case_insensitive(db_session):
    await _tree(db_session)

    found = await category_service.search_categories(db_session, "COMP")

    assert [c.name for c in found] == ["Computers"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_search_categories_matches_wildcards_literally(db_session):
    for name in ("100% Cotton", "1000 Threads", "Snake_Case", "SnakeXCase"):
        await persist(db_session, CategoryFactory.create(name=name))

    by_percent = await category_service.search_categories(db_session, "100%")
    by_underscore = await category_service.search_categories(db_session, "e_c")

    assert [c.name for c in by_percent] == ["100% Cotton"]
    assert [c.name for c in by_underscore] == ["Snake_Case"]


# ---------------------------------------------------------------------------
# hierarchy
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_root_categories_and_children(db_session):
    electronics, computers, laptops, garden = await _tree(db_session)

    roots = await category_service.root_categories(db_session)
    kids = await category_service.children(db_session, electronics.id)

    assert [c.name for c in roots] == ["Electronics", "Garden"]
    assert [c.id for c in kids] == [computers.id]
    assert await category_service.child_count(db_session, electronics.id) == 1
    assert await category_service.has_children(db_session, computers.id)
    assert not await category_service.has_children(db_session, laptops.id)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_breadcrumb_runs_from_root_to_category(db_session):
    electronics, computers, laptops, _ = await _tree(db_session)

    chain = await category_service.breadcrumb(db_session, laptops.id)

    assert [c.id for c in chain] == [electronics.id, computers.id, laptops.id]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_breadcrumb_of_root_is_itself(db_session):
    _, _, _, garden = await _tree(db_session)

    chain = await category_service.breadcrumb(db_session, garden.id)

    assert [c.name for c in chain] == ["Garden"]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_is_descendant_or_self(db_session):
    electronics, computers, laptops, garden = await _tree(db_session)

    assert await category_service.is_descendant_or_self(
        db_session, laptops.id, electronics.id
    )
    assert await category_service.is_descendant_or_self(
        db_session, electronics.id, electronics.id
    )
    assert not await category_service.is_descendant_or_self(
        db_session, electronics.id, laptops.id
    )
    assert not await category_service.is_descendant_or_self(
        db_session, garden.id, electronics.id
    )


@pytest.mark.asyncio
@pytest.mark.integration
async def test_category_tree_nests_children(db_session):
    await _tree(db_session)

    tree = await category_service.category_tree(db_session)

    assert [node.name for node in tree] == ["Electronics", "Garden"]
    computers = tree[0].children[0]
    assert computers.name == "Computers"
    assert [node.name for node in computers.children] == ["Laptops"]
    assert tree[1].children == []


@pytest.mark.asyncio
@pytest.mark.integration
async def test_stored_parent_cycle_is_reported_by_tree_and_breadcrumb(db_session):
    await persist(db_session, CategoryFactory.create(name="Garden"))
    first = await persist(db_session, CategoryFactory.create(name="First"))
    second = await persist(
        db_session, CategoryFactory.create(name="Second", parent_id=first.id)
    )
    # Written directly, bypassing move_category's check
    first.parent_id = second.id
    await db_session.commit()

    with pytest.raises(CategoryCycleError) as exc_info:
        await category_service.category_tree(db_session)
    assert exc_info.value.category_id in {first.id, second.id}

    with pytest.raises(CategoryCycleError):
        await category_service.breadcrumb(db_session, second.id)


# ---------------------------------------------------------------------------
# move
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_move_category_under_another_root(db_session):
    _, computers, _, garden = await _tree(db_session)

    moved = await category_service.move_category(
        db_session, computers.id, garden.id, actor=ACTOR
    )

    assert moved.parent_id == garden.id
    assert moved.version == 2


@pytest.mark.asyncio
@pytest.mark.integration
async def test_move_category_to_root(db_session):
    _, computers, _, _ = await _tree(db_session)

    moved = await category_service.move_category(
        db_session, computers.id, None, actor=ACTOR
    )

    assert moved.parent_id is None


@pytest.mark.asyncio
@pytest.mark.integration
async def test_move_category_under_itself_is_rejected(db_session):
    electronics, _, _, _ = await _tree(db_session)

    with pytest.raises(CategoryCycleError):
        await category_service.move_category(
            db_session, electronics.id, electronics.id, actor=ACTOR
        )


@pytest.mark.asyncio
@pytest.mark.integration
async def test_move_category_under_descendant_is_rejected(db_session):
    electronics, _, laptops, _ = await _tree(db_session)

    with pytest.raises(CategoryCycleError):
        await category_service.move_category(
            db_session, electronics.id, laptops.id, actor=ACTOR
        )

    unchanged = await category_service.get_category(db_session, electronics.id)
    assert unchanged.parent_id is None
    assert unchanged.version == 1


# ---------------------------------------------------------------------------
# delete
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_delete_category_with_children_is_rejected(db_session):
    electronics, _, _, _ = await _tree(db_session)

    with pytest.raises(CategoryHasChildrenError):
        await category_service.delete_category(db_session, electronics.id, actor=ACTOR)


@pytest.mark.asyncio
@pytest.mark.integration
async def test_delete_category_with_products_is_rejected(db_session):
    _, _, laptops, _ = await _tree(db_session)
    await persist(db_session, ProductFactory.create(laptops.id))

    with pytest.raises(CategoryInUseError) as exc_info:
        await category_service.delete_category(db_session, laptops.id, actor=ACTOR)

    assert exc_info.value.product_count == 1


@pytest.mark.asyncio
@pytest.mark.integration
async def test_delete_empty_leaf_category(db_session):
    _, _, _, garden = await _tree(db_session)

    await category_service.delete_category(db_session, garden.id, actor=ACTOR)

    with pytest.raises(CategoryNotFoundError):
        await category_service.get_category(db_session, garden.id)


# ---------------------------------------------------------------------------
# counts and statistics
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_with_product_count(db_session):
    _, computers, laptops, _ = await _tree(db_session)
    await persist(
        db_session,
        ProductFactory.create(laptops.id),
        ProductFactory.create(laptops.id),
    )

    laptop_count = await category_service.with_product_count(db_session, laptops.id)
    computer_count = await category_service.with_product_count(db_session, computers.id)

    assert laptop_count.category.name == "Laptops"
    assert laptop_count.product_count == 2
    # Only directly assigned products are counted
    assert computer_count.product_count == 0


@pytest.mark.asyncio
@pytest.mark.integration
async def test_category_statistics(db_session):
    _, _, laptops, garden = await _tree(db_session)
    await persist(
        db_session,
        ProductFactory.create(laptops.id, price=Decimal("100.00"), stock_quantity=3),
        ProductFactory.create(laptops.id, price=Decimal("200.00"), stock_quantity=4),
        ProductFactory.create(garden.id, price=Decimal("10.00"), stock_quantity=1),
    )

    stats = await category_service.category_statistics(db_session)
    by_name = {s.category_name: s for s in stats}

    assert stats[0].category_name == "Laptops"
    assert by_name["Laptops"].product_count == 2
    assert by_name["Laptops"].average_price == Decimal("150.00")
    assert by_name["Laptops"].total_stock == 7
    assert by_name["Garden"].product_count == 1
    assert by_name["Electronics"].product_count == 0
    assert by_name["Electronics"].average_price is None
    assert by_name["Electronics"].total_stock == 0
