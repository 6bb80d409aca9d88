"""Category hierarchy: navigation, validated re-parenting and statistics.

Categories reference their parent only. Children, product counts and
ancestor chains are resolved with explicit queries keyed by id.
"""

from typing import Optional

from libs.common.deadline import with_deadline
from libs.common.logging import get_logger
from services.catalog_service.exceptions import (
    CategoryCycleError,
    CategoryHasChildrenError,
    CategoryInUseError,
    CategoryNotFoundError,
    DuplicateCategoryNameError,
)
from services.catalog_service.models import Category, Product
from services.catalog_service.schemas import (
    CategoryCreate,
    CategoryResponse,
    CategoryStatistics,
    CategoryUpdate,
    CategoryWithChildren,
    CategoryWithProductCount,
)
from services.catalog_service.services._helpers import (
    check_version,
    fetch_category,
    to_money,
    write_transaction,
)
from services.catalog_service.specifications import escape_like
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


async def _name_taken(
    db: AsyncSession, name: str, exclude_id: Optional[int] = None
) -> bool:
    query = select(Category.id).where(Category.name == name)
    if exclude_id is not None:
        query = query.where(Category.id != exclude_id)
    result = await db.execute(query.limit(1))
    return result.scalar_one_or_none() is not None


async def _parent_of(db: AsyncSession, category_id: int) -> Optional[int]:
    result = await db.execute(
        select(Category.parent_id).where(Category.id == category_id)
    )
    return result.scalar_one_or_none()


async def _count_products(db: AsyncSession, category_id: int) -> int:
    result = await db.execute(
        select(func.count(Product.id)).where(Product.category_id == category_id)
    )
    return result.scalar() or 0


# ---------------------------------------------------------------------------
# Create / update / move / delete
# ---------------------------------------------------------------------------


@with_deadline
async def create_category(
    db: AsyncSession, request: CategoryCreate, *, actor: str
) -> CategoryResponse:
    """Create a category, as a root or under an existing parent."""
    logger.info("Creating category: %s", request.name)

    if await _name_taken(db, request.name):
        raise DuplicateCategoryNameError(request.name)
    if request.parent_id is not None:
        await fetch_category(db, request.parent_id)

    category = Category(
        name=request.name,
        description=request.description,
        parent_id=request.parent_id,
    )
    category.stamp_created(actor)

    try:
        async with write_transaction(db, "Category", request.name):
            db.add(category)
    except IntegrityError as exc:
        raise DuplicateCategoryNameError(request.name) from exc

    logger.info("Category created with ID: %s", category.id)
    return CategoryResponse.model_validate(category)


@with_deadline
async def update_category(
    db: AsyncSession,
    category_id: int,
    request: CategoryUpdate,
    *,
    actor: str,
    expected_version: Optional[int] = None,
) -> CategoryResponse:
    """Rename or re-describe a category. Re-parenting goes through ``move_category``."""
    category = await fetch_category(db, category_id)
    check_version("Category", category_id, category.version, expected_version)

    changes = request.model_dump(exclude_unset=True, exclude_none=True)
    changes = {k: v for k, v in changes.items() if getattr(category, k) != v}
    if "name" in changes and await _name_taken(db, changes["name"], category_id):
        raise DuplicateCategoryNameError(changes["name"])

    if not changes:
        logger.info("No changes detected for category ID: %s", category_id)
        return CategoryResponse.model_validate(category)

    async with write_transaction(db, "Category", category_id):
        for field, value in changes.items():
            setattr(category, field, value)
        category.stamp_modified(actor)

    logger.info("Category %s updated (%s)", category_id, ", ".join(sorted(changes)))
    return CategoryResponse.model_validate(category)


@with_deadline
async def move_category(
    db: AsyncSession,
    category_id: int,
    new_parent_id: Optional[int],
    *,
    actor: str,
    expected_version: Optional[int] = None,
) -> CategoryResponse:
    """Re-parent a category; ``None`` makes it a root.

    Rejects the category itself or any of its descendants as the new parent.
    """
    category = await fetch_category(db, category_id)
    check_version("Category", category_id, category.version, expected_version)

    if new_parent_id is not None:
        await fetch_category(db, new_parent_id)
        if await is_descendant_or_self(db, new_parent_id, category_id):
            logger.warning(
                "Rejected move of category %s under %s: cycle", category_id, new_parent_id
            )
            raise CategoryCycleError(category_id, new_parent_id)

    if category.parent_id == new_parent_id:
        return CategoryResponse.model_validate(category)

    async with write_transaction(db, "Category", category_id):
        category.parent_id = new_parent_id
        category.stamp_modified(actor)

    logger.info("Category %s moved under %s", category_id, new_parent_id)
    return CategoryResponse.model_validate(category)


@with_deadline
async def delete_category(db: AsyncSession, category_id: int, *, actor: str) -> None:
    """Delete a leaf category that no product references.

    Products are never cascaded away with their category.
    """
    category = await fetch_category(db, category_id)

    children = await child_count(db, category_id)
    if children:
        raise CategoryHasChildrenError(category_id, children)

    products = await _count_products(db, category_id)
    if products:
        raise CategoryInUseError(category_id, products)

    async with write_transaction(db, "Category", category_id):
        await db.delete(category)

    logger.info("Category %s deleted by %s", category_id, actor)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


@with_deadline
async def get_category(db: AsyncSession, category_id: int) -> CategoryResponse:
    return CategoryResponse.model_validate(await fetch_category(db, category_id))


@with_deadline
async def get_category_by_name(db: AsyncSession, name: str) -> CategoryResponse:
    result = await db.execute(select(Category).where(Category.name == name))
    category = result.scalar_one_or_none()
    if not category:
        raise CategoryNotFoundError(name, field="name")
    return CategoryResponse.model_validate(category)


@with_deadline
async def search_categories(db: AsyncSession, keyword: str) -> list[CategoryResponse]:
    """Case-insensitive name search; ``%`` and ``_`` in ``keyword`` match literally."""
    result = await db.execute(
        select(Category)
        .where(Category.name.ilike(f"%{escape_like(keyword)}%", escape="\\"))
        .order_by(Category.name)
    )
    return [CategoryResponse.model_validate(c) for c in result.scalars().all()]


# ---------------------------------------------------------------------------
# Hierarchy
# ---------------------------------------------------------------------------


@with_deadline
async def root_categories(db: AsyncSession) -> list[CategoryResponse]:
    """Categories without a parent."""
    result = await db.execute(
        select(Category).where(Category.parent_id.is_(None)).order_by(Category.name)
    )
    return [CategoryResponse.model_validate(c) for c in result.scalars().all()]


@with_deadline
async def children(db: AsyncSession, category_id: int) -> list[CategoryResponse]:
    """Direct subcategories only."""
    result = await db.execute(
        select(Category)
        .where(Category.parent_id == category_id)
        .order_by(Category.name)
    )
    return [CategoryResponse.model_validate(c) for c in result.scalars().all()]


@with_deadline
async def child_count(db: AsyncSession, category_id: int) -> int:
    result = await db.execute(
        select(func.count(Category.id)).where(Category.parent_id == category_id)
    )
    return result.scalar() or 0


@with_deadline
async def has_children(db: AsyncSession, category_id: int) -> bool:
    """Whether deleting the category must be refused."""
    return await child_count(db, category_id) > 0


@with_deadline
async def is_descendant_or_self(
    db: AsyncSession, candidate_id: int, ancestor_id: int
) -> bool:
    """Walk up from ``candidate_id``; True if ``ancestor_id`` is on the path."""
    seen: set[int] = set()
    current: Optional[int] = candidate_id
    while current is not None and current not in seen:
        if current == ancestor_id:
            return True
        seen.add(current)
        current = await _parent_of(db, current)
    return False


@with_deadline
async def breadcrumb(db: AsyncSession, category_id: int) -> list[CategoryResponse]:
    """Ancestor chain ordered root -> ... -> the category itself."""
    chain: list[Category] = []
    seen: set[int] = set()
    current: Optional[Category] = await fetch_category(db, category_id)
    while current is not None:
        if current.id in seen:
            # Stored data already holds a loop; move_category never creates one
            raise CategoryCycleError(current.id, current.parent_id)
        seen.add(current.id)
        chain.append(current)
        current = (
            await db.get(Category, current.parent_id)
            if current.parent_id is not None
            else None
        )
    return [CategoryResponse.model_validate(c) for c in reversed(chain)]


@with_deadline
async def with_product_count(
    db: AsyncSession, category_id: int
) -> CategoryWithProductCount:
    """The category plus the number of products directly assigned to it."""
    category = await fetch_category(db, category_id)
    return CategoryWithProductCount(
        category=CategoryResponse.model_validate(category),
        product_count=await _count_products(db, category_id),
    )


@with_deadline
async def category_tree(db: AsyncSession) -> list[CategoryWithChildren]:
    """The whole forest, built from a single query.

    Raises ``CategoryCycleError`` when stored parent links form a loop, as
    ``breadcrumb`` does, rather than leaving those categories out.
    """
    result = await db.execute(select(Category).order_by(Category.name))
    categories = result.scalars().all()

    nodes = {
        c.id: CategoryWithChildren(**CategoryResponse.model_validate(c).model_dump())
        for c in categories
    }
    roots: list[CategoryWithChildren] = []
    for c in categories:
        node = nodes[c.id]
        parent = nodes.get(c.parent_id) if c.parent_id is not None else None
        if parent is None:
            roots.append(node)
        else:
            parent.children.append(node)

    reached: set[int] = set()
    pending = list(roots)
    while pending:
        node = pending.pop()
        reached.add(node.id)
        pending.extend(node.children)
    for c in categories:
        if c.id not in reached:
            logger.error("Category %s is part of a parent cycle", c.id)
            raise CategoryCycleError(c.id, c.parent_id)
    return roots


@with_deadline
async def category_statistics(db: AsyncSession) -> list[CategoryStatistics]:
    """Per category: product count, average price and total stock."""
    product_count = func.count(Product.id).label("product_count")
    result = await db.execute(
        select(
            Category.id,
            Category.name,
            product_count,
            func.avg(Product.price),
            func.coalesce(func.sum(Product.stock_quantity), 0),
        )
        .select_from(Category)
        .outerjoin(Product, Product.category_id == Category.id)
        .group_by(Category.id, Category.name)
        .order_by(product_count.desc(), Category.name)
    )
    return [
        CategoryStatistics(
            category_id=cid,
            category_name=name,
            product_count=count,
            average_price=to_money(avg) if avg is not None else None,
            total_stock=int(stock),
        )
        for cid, name, count, avg, stock in result.all()
    ]
