"""Shared helpers for catalog services: transactions, lookups and paging."""

from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, AsyncIterator, Optional, Sequence

from libs.common.logging import get_logger
from services.catalog_service.exceptions import (
    CategoryNotFoundError,
    ConcurrencyConflictError,
    InvalidArgumentError,
    ProductNotFoundError,
)
from services.catalog_service.models import Category, Product
from services.catalog_service.schemas import PageRequest
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import joinedload
from sqlalchemy.orm.exc import StaleDataError

logger = get_logger(__name__)

CENT = Decimal("0.01")


@asynccontextmanager
async def write_transaction(
    db: AsyncSession, entity: str, identifier: Any = None
) -> AsyncIterator[AsyncSession]:
    """Commit the block's changes atomically, or roll all of them back.

    A stale optimistic version detected at flush time surfaces as
    ``ConcurrencyConflictError``. Cancellation (deadline expiry) also rolls
    back before propagating.
    """
    try:
        yield db
        await db.commit()
    except StaleDataError as exc:
        await db.rollback()
        logger.warning("Stale version for %s %s, rolled back", entity, identifier)
        raise ConcurrencyConflictError(entity, identifier) from exc
    except BaseException:
        await db.rollback()
        raise


def check_version(
    entity: str, identifier: Any, current: int, expected: Optional[int]
) -> None:
    """Fail fast when the caller's snapshot is older than the stored row."""
    if expected is not None and expected != current:
        raise ConcurrencyConflictError(entity, identifier, expected, current)


def product_query() -> Select:
    """``select(Product)`` with its category loaded and rows re-read from the database.

    Objects already in the identity map are overwritten with the stored state,
    so versions and relationships never come from an earlier read.
    """
    return (
        select(Product)
        .options(joinedload(Product.category))
        .execution_options(populate_existing=True)
    )


async def fetch_product(db: AsyncSession, product_id: int) -> Product:
    result = await db.execute(product_query().where(Product.id == product_id))
    product = result.scalar_one_or_none()
    if not product:
        logger.error("Product not found with ID: %s", product_id)
        raise ProductNotFoundError(product_id)
    return product


async def fetch_category(db: AsyncSession, category_id: int) -> Category:
    result = await db.execute(
        select(Category)
        .where(Category.id == category_id)
        .execution_options(populate_existing=True)
    )
    category = result.scalar_one_or_none()
    if not category:
        logger.error("Category not found with ID: %s", category_id)
        raise CategoryNotFoundError(category_id)
    return category


async def category_exists(db: AsyncSession, category_id: int) -> bool:
    result = await db.execute(
        select(Category.id).where(Category.id == category_id).limit(1)
    )
    return result.scalar_one_or_none() is not None


def apply_sort(query: Select, model, page: PageRequest, sortable: set[str]) -> Select:
    """Order by ``page.sort`` entries, then by primary key for stable paging."""
    order_by = []
    for entry in page.sort:
        descending = entry.startswith("-")
        name = entry.lstrip("-+")
        if name not in sortable:
            raise InvalidArgumentError(
                f"Cannot sort by '{name}'; allowed: {', '.join(sorted(sortable))}",
                field="sort",
            )
        column = getattr(model, name)
        order_by.append(column.desc() if descending else column.asc())
    order_by.append(model.id.asc())
    return query.order_by(*order_by)


async def paginate(db: AsyncSession, query: Select, page: PageRequest) -> tuple[Sequence, int]:
    """Run ``query`` for one page; return the rows and the unpaged total."""
    count_query = select(func.count()).select_from(query.order_by(None).subquery())
    total_result = await db.execute(count_query)
    total = total_result.scalar() or 0

    result = await db.execute(query.offset(page.offset).limit(page.page_size))
    return result.scalars().unique().all(), total


def to_money(value: Any) -> Decimal:
    """Normalize a driver aggregate (None, float, Decimal) to 2dp Decimal."""
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(CENT)
