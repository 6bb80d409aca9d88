"""Product catalog operations: validated writes and paginated, filterable reads.

All business rules on products live here. Writes validate every field before
touching the row, run in a single scoped transaction, and are guarded by the
product's optimistic version.
"""

from decimal import Decimal
from typing import Optional, Sequence

from libs.common.config import get_settings
from libs.common.datetime_utils import utc_now
from libs.common.deadline import with_deadline
from libs.common.logging import get_logger
from services.catalog_service.exceptions import (
    CategoryNotFoundError,
    DuplicateSkuError,
    InvalidArgumentError,
    ProductNotFoundError,
)
from services.catalog_service.models import Product, Review
from services.catalog_service.schemas import (
    CreateProductRequest,
    Page,
    PageRequest,
    ProductResponse,
    ProductSearchCriteria,
    UpdateProductRequest,
)
from services.catalog_service.services._helpers import (
    apply_sort,
    category_exists,
    check_version,
    fetch_category,
    fetch_product,
    paginate,
    product_query,
    write_transaction,
)
from services.catalog_service.services.analytics import review_stats
from services.catalog_service.specifications import build_product_predicate, to_clause
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

SORTABLE_FIELDS = {
    "id",
    "sku",
    "name",
    "price",
    "stock_quantity",
    "created_at",
    "updated_at",
}


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _default_page(page: Optional[PageRequest]) -> PageRequest:
    return page or PageRequest(page_size=get_settings().DEFAULT_PAGE_SIZE)


async def _with_stats(db: AsyncSession, product: Product) -> ProductResponse:
    stats = await review_stats(db, [product.id])
    average, count = stats.get(product.id, (0.0, 0))
    return ProductResponse.from_product(product, average, count)


async def _to_responses(
    db: AsyncSession, products: Sequence[Product]
) -> list[ProductResponse]:
    stats = await review_stats(db, [p.id for p in products])
    return [
        ProductResponse.from_product(p, *stats.get(p.id, (0.0, 0))) for p in products
    ]


async def _page_of(
    db: AsyncSession, query, page: PageRequest
) -> Page[ProductResponse]:
    query = apply_sort(query, Product, page, SORTABLE_FIELDS)
    products, total = await paginate(db, query, page)
    items = await _to_responses(db, products)
    return Page[ProductResponse].build(items, total, page)


def _validate_price(price: Decimal) -> None:
    if price <= 0:
        raise InvalidArgumentError("Price must be greater than 0", field="price")


def _validate_stock(stock_quantity: int) -> None:
    if stock_quantity < 0:
        raise InvalidArgumentError(
            "Stock quantity cannot be negative", field="stock_quantity"
        )


def _validate_discount(discount_price: Optional[Decimal], price: Decimal) -> None:
    if discount_price is None:
        return
    if discount_price < 0:
        raise InvalidArgumentError(
            "Discount price cannot be negative", field="discount_price"
        )
    if discount_price > price:
        logger.warning("Discount price %s exceeds price %s", discount_price, price)
        raise InvalidArgumentError(
            "Discount price cannot be greater than regular price",
            field="discount_price",
        )


# ---------------------------------------------------------------------------
# Create
# ---------------------------------------------------------------------------


@with_deadline
async def create_product(
    db: AsyncSession, request: CreateProductRequest, *, actor: str
) -> ProductResponse:
    """Create an active product.

    Checks, in order: SKU uniqueness, category existence, then price, stock
    and discount rules.
    """
    logger.info("Creating product with SKU: %s", request.sku)

    if await exists_by_sku(db, request.sku):
        logger.warning("Attempted to create product with duplicate SKU: %s", request.sku)
        raise DuplicateSkuError(request.sku)

    category = await fetch_category(db, request.category_id)

    _validate_price(request.price)
    _validate_stock(request.stock_quantity)
    _validate_discount(request.discount_price, request.price)

    product = Product(
        sku=request.sku,
        name=request.name,
        description=request.description,
        price=request.price,
        discount_price=request.discount_price,
        stock_quantity=request.stock_quantity,
        active=True,
        category_id=category.id,
        category=category,
    )
    product.stamp_created(actor)

    try:
        async with write_transaction(db, "Product", request.sku):
            db.add(product)
    except IntegrityError as exc:
        # Lost a race against a concurrent insert of the same SKU
        raise DuplicateSkuError(request.sku) from exc

    logger.info(
        "Product created successfully with ID: %s and SKU: %s", product.id, product.sku
    )
    return ProductResponse.from_product(product)


# ---------------------------------------------------------------------------
# Read
# ---------------------------------------------------------------------------


@with_deadline
async def get_product_by_id(db: AsyncSession, product_id: int) -> ProductResponse:
    """Fetch one product with its rating stats."""
    logger.info("Fetching product with ID: %s", product_id)
    product = await fetch_product(db, product_id)
    return await _with_stats(db, product)


@with_deadline
async def get_product_by_sku(db: AsyncSession, sku: str) -> ProductResponse:
    logger.info("Fetching product with SKU: %s", sku)
    result = await db.execute(product_query().where(Product.sku == sku))
    product = result.scalar_one_or_none()
    if not product:
        logger.error("Product not found with SKU: %s", sku)
        raise ProductNotFoundError(sku, field="SKU")
    return await _with_stats(db, product)


@with_deadline
async def exists_by_sku(db: AsyncSession, sku: str) -> bool:
    result = await db.execute(select(Product.id).where(Product.sku == sku).limit(1))
    return result.scalar_one_or_none() is not None


@with_deadline
async def list_products(
    db: AsyncSession, page: Optional[PageRequest] = None
) -> Page[ProductResponse]:
    """All products, active or not."""
    page = _default_page(page)
    logger.info(
        "Fetching all products - Page: %s, Size: %s", page.page_number, page.page_size
    )
    return await _page_of(db, product_query(), page)


@with_deadline
async def list_active_products(
    db: AsyncSession, page: Optional[PageRequest] = None
) -> Page[ProductResponse]:
    page = _default_page(page)
    logger.info(
        "Fetching active products - Page: %s, Size: %s",
        page.page_number,
        page.page_size,
    )
    return await _page_of(db, product_query().where(Product.active.is_(True)), page)


@with_deadline
async def search_products(
    db: AsyncSession,
    criteria: ProductSearchCriteria,
    page: Optional[PageRequest] = None,
) -> Page[ProductResponse]:
    """Filter products by any combination of search criteria.

    An unknown ``category_id`` is not an error here; it just matches nothing.
    """
    page = _default_page(page)
    logger.info("Searching products with criteria: %s", criteria.model_dump(exclude_none=True))

    predicate = build_product_predicate(criteria)
    query = product_query().where(to_clause(predicate, Product))
    return await _page_of(db, query, page)


@with_deadline
async def list_products_by_category(
    db: AsyncSession, category_id: int, page: Optional[PageRequest] = None
) -> Page[ProductResponse]:
    """Active products of one category; the category must exist."""
    page = _default_page(page)
    logger.info("Fetching products for category ID: %s", category_id)

    if not await category_exists(db, category_id):
        raise CategoryNotFoundError(category_id)

    query = product_query().where(
        Product.category_id == category_id, Product.active.is_(True)
    )
    return await _page_of(db, query, page)


@with_deadline
async def list_available_products_by_category(
    db: AsyncSession, category_id: int
) -> list[ProductResponse]:
    """Active, in-stock products of a category, newest first."""
    result = await db.execute(
        product_query()
        .where(
            Product.category_id == category_id,
            Product.active.is_(True),
            Product.stock_quantity > 0,
        )
        .order_by(Product.created_at.desc(), Product.id.desc())
    )
    return await _to_responses(db, result.scalars().unique().all())


@with_deadline
async def list_low_stock_products(
    db: AsyncSession, threshold: Optional[int] = None
) -> list[ProductResponse]:
    """Active products with stock at or below ``threshold``, lowest first."""
    if threshold is None:
        threshold = get_settings().LOW_STOCK_THRESHOLD
    result = await db.execute(
        product_query()
        .where(Product.active.is_(True), Product.stock_quantity <= threshold)
        .order_by(Product.stock_quantity.asc(), Product.id)
    )
    return await _to_responses(db, result.scalars().unique().all())


@with_deadline
async def list_products_by_min_rating(
    db: AsyncSession, min_rating: float
) -> list[ProductResponse]:
    """Active products whose average rating is at least ``min_rating``."""
    rated = (
        select(Review.product_id)
        .group_by(Review.product_id)
        .having(func.avg(Review.rating) >= min_rating)
    )
    result = await db.execute(
        product_query()
        .where(Product.active.is_(True), Product.id.in_(rated))
        .order_by(Product.id)
    )
    return await _to_responses(db, result.scalars().unique().all())


# ---------------------------------------------------------------------------
# Update
# ---------------------------------------------------------------------------


@with_deadline
async def update_product(
    db: AsyncSession,
    product_id: int,
    request: UpdateProductRequest,
    *,
    actor: str,
    expected_version: Optional[int] = None,
) -> ProductResponse:
    """Apply the non-null fields of ``request``.

    Every supplied field is validated before anything is written. A discount
    is checked against the price in effect after this update. When nothing
    differs from the stored row, no write happens and the current state is
    returned.

    ``expected_version`` is the ``version`` of the representation the caller
    edited. Pass it to reject the update when someone else wrote in between;
    without it the update applies to whatever is stored now (last writer wins).
    The row is always re-read here, and its version also guards the gap
    between that read and the write.
    """
    logger.info("Updating product with ID: %s", product_id)

    product = await fetch_product(db, product_id)
    check_version("Product", product_id, product.version, expected_version)

    changes: dict = {}

    if request.name is not None and request.name != product.name:
        changes["name"] = request.name

    if request.description is not None and request.description != product.description:
        changes["description"] = request.description

    if request.price is not None and request.price != product.price:
        _validate_price(request.price)
        changes["price"] = request.price

    price_after = changes.get("price", product.price)
    if request.discount_price is not None:
        _validate_discount(request.discount_price, price_after)
        if request.discount_price != product.discount_price:
            changes["discount_price"] = request.discount_price
    elif "price" in changes:
        # Lowering the price must not leave the stored discount above it
        _validate_discount(product.discount_price, price_after)

    if (
        request.stock_quantity is not None
        and request.stock_quantity != product.stock_quantity
    ):
        _validate_stock(request.stock_quantity)
        changes["stock_quantity"] = request.stock_quantity

    if request.category_id is not None and request.category_id != product.category_id:
        changes["category"] = await fetch_category(db, request.category_id)

    if not changes:
        logger.info("No changes detected for product ID: %s", product_id)
        return await _with_stats(db, product)

    async with write_transaction(db, "Product", product_id):
        for field, value in changes.items():
            setattr(product, field, value)
        if "category" in changes:
            product.category_id = changes["category"].id
        product.stamp_modified(actor)

    logger.info(
        "Product updated successfully with ID: %s (fields: %s, version: %s)",
        product_id,
        ", ".join(sorted(changes)),
        product.version,
    )
    return await _with_stats(db, product)


async def _set_active(
    db: AsyncSession,
    product_id: int,
    active: bool,
    *,
    actor: str,
    expected_version: Optional[int],
) -> Product:
    product = await fetch_product(db, product_id)
    check_version("Product", product_id, product.version, expected_version)

    if product.active == active:
        logger.info(
            "Product ID: %s is already %s", product_id, "active" if active else "inactive"
        )
        return product

    async with write_transaction(db, "Product", product_id):
        product.active = active
        product.stamp_modified(actor)
    return product


@with_deadline
async def activate_product(
    db: AsyncSession,
    product_id: int,
    *,
    actor: str,
    expected_version: Optional[int] = None,
) -> ProductResponse:
    logger.info("Activating product with ID: %s", product_id)
    product = await _set_active(
        db, product_id, True, actor=actor, expected_version=expected_version
    )
    return await _with_stats(db, product)


@with_deadline
async def deactivate_product(
    db: AsyncSession,
    product_id: int,
    *,
    actor: str,
    expected_version: Optional[int] = None,
) -> ProductResponse:
    """Idempotent: deactivating an inactive product succeeds without a write."""
    logger.info("Deactivating product with ID: %s", product_id)
    product = await _set_active(
        db, product_id, False, actor=actor, expected_version=expected_version
    )
    return await _with_stats(db, product)


@with_deadline
async def decrement_stock(
    db: AsyncSession, product_id: int, quantity: int, *, actor: str
) -> bool:
    """Take ``quantity`` units out of stock if enough are available.

    Runs as one conditional UPDATE, so concurrent callers can never drive
    stock below zero. Returns whether the decrement was applied.
    """
    if quantity <= 0:
        raise InvalidArgumentError("Quantity must be greater than 0", field="quantity")
    product = await fetch_product(db, product_id)

    async with write_transaction(db, "Product", product_id):
        result = await db.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock_quantity >= quantity)
            .values(
                stock_quantity=Product.stock_quantity - quantity,
                version=Product.version + 1,
                last_modified_by=actor,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )

    applied = result.rowcount == 1
    await db.refresh(product)
    if applied:
        logger.info("Decremented stock of product %s by %s", product_id, quantity)
    else:
        logger.warning(
            "Insufficient stock to decrement product %s by %s", product_id, quantity
        )
    return applied


# ---------------------------------------------------------------------------
# Delete (soft)
# ---------------------------------------------------------------------------


@with_deadline
async def delete_product(
    db: AsyncSession,
    product_id: int,
    *,
    actor: str,
    expected_version: Optional[int] = None,
) -> None:
    """Soft delete: the row stays, ``active`` becomes False."""
    logger.info("Soft deleting product with ID: %s", product_id)
    await _set_active(
        db, product_id, False, actor=actor, expected_version=expected_version
    )
    logger.info("Product soft deleted (deactivated) with ID: %s", product_id)
