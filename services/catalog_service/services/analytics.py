"""Read-only aggregation queries over reviews, orders and payments.

Nothing here is cached; each call recomputes from the current rows. Missing
data yields zero or an empty result, never an error.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional

from libs.common.deadline import with_deadline
from services.catalog_service.models import (
    Order,
    OrderItem,
    OrderStatus,
    Payment,
    PaymentStatus,
    Product,
    Review,
)
from services.catalog_service.schemas import (
    CoPurchase,
    DailySales,
    PaymentMethodRevenue,
    ProductSales,
)
from services.catalog_service.services._helpers import to_money
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

# Orders that count towards a customer's lifetime value
LIFETIME_VALUE_STATUSES = (OrderStatus.DELIVERED, OrderStatus.SHIPPED)


# ---------------------------------------------------------------------------
# Ratings
# ---------------------------------------------------------------------------


@with_deadline
async def average_rating(db: AsyncSession, product_id: int) -> float:
    """Mean review rating for a product, 0.0 when it has no reviews."""
    result = await db.execute(
        select(func.avg(Review.rating)).where(Review.product_id == product_id)
    )
    value = result.scalar()
    return float(value) if value is not None else 0.0


@with_deadline
async def review_count(db: AsyncSession, product_id: int) -> int:
    result = await db.execute(
        select(func.count(Review.id)).where(Review.product_id == product_id)
    )
    return result.scalar() or 0


@with_deadline
async def rating_distribution(db: AsyncSession, product_id: int) -> dict[int, int]:
    """Review count per rating, highest rating first.

    Ratings nobody gave are omitted rather than reported as zero.
    """
    result = await db.execute(
        select(Review.rating, func.count(Review.id))
        .where(Review.product_id == product_id)
        .group_by(Review.rating)
        .order_by(Review.rating.desc())
    )
    return {rating: count for rating, count in result.all()}


async def review_stats(
    db: AsyncSession, product_ids: Iterable[int]
) -> dict[int, tuple[float, int]]:
    """``{product_id: (average_rating, review_count)}`` in one grouped query.

    Products without reviews are absent from the mapping.
    """
    ids = list(product_ids)
    if not ids:
        return {}
    result = await db.execute(
        select(Review.product_id, func.avg(Review.rating), func.count(Review.id))
        .where(Review.product_id.in_(ids))
        .group_by(Review.product_id)
    )
    return {
        product_id: (float(avg) if avg is not None else 0.0, count)
        for product_id, avg, count in result.all()
    }


# ---------------------------------------------------------------------------
# Sales
# ---------------------------------------------------------------------------


def _sales_query():
    total_sold = func.sum(OrderItem.quantity).label("total_sold")
    query = (
        select(OrderItem.product_id, Product.name, total_sold)
        .select_from(OrderItem)
        .join(Order, OrderItem.order_id == Order.id)
        .join(Product, OrderItem.product_id == Product.id)
        .where(Order.status == OrderStatus.DELIVERED)
        .group_by(OrderItem.product_id, Product.name)
        .order_by(total_sold.desc(), OrderItem.product_id)
    )
    return query


def _to_sales(rows) -> list[ProductSales]:
    return [
        ProductSales(product_id=product_id, product_name=name, total_sold=int(total))
        for product_id, name, total in rows
    ]


@with_deadline
async def best_selling_products(
    db: AsyncSession, limit: Optional[int] = None
) -> list[ProductSales]:
    """Units sold per product across delivered orders, best sellers first."""
    query = _sales_query()
    if limit is not None:
        query = query.limit(limit)
    result = await db.execute(query)
    return _to_sales(result.all())


@with_deadline
async def top_selling_products(
    db: AsyncSession, since: datetime, limit: int = 10
) -> list[ProductSales]:
    """Like ``best_selling_products`` but only for orders placed since ``since``."""
    query = _sales_query().where(Order.order_date >= since).limit(limit)
    result = await db.execute(query)
    return _to_sales(result.all())


@with_deadline
async def frequently_bought_together(
    db: AsyncSession, product_id: int, limit: Optional[int] = None
) -> list[CoPurchase]:
    """Other products sharing an order with ``product_id``, most frequent first.

    Frequency is the number of distinct orders containing both products.
    """
    reference = aliased(OrderItem)
    other = aliased(OrderItem)
    frequency = func.count(func.distinct(other.order_id)).label("frequency")

    query = (
        select(other.product_id, Product.name, frequency)
        .select_from(reference)
        .join(other, reference.order_id == other.order_id)
        .join(Product, other.product_id == Product.id)
        .where(reference.product_id == product_id)
        .where(other.product_id != product_id)
        .group_by(other.product_id, Product.name)
        .order_by(frequency.desc(), other.product_id)
    )
    if limit is not None:
        query = query.limit(limit)

    result = await db.execute(query)
    return [
        CoPurchase(product_id=pid, product_name=name, frequency=int(count))
        for pid, name, count in result.all()
    ]


@with_deadline
async def product_revenue(db: AsyncSession, product_id: int) -> Decimal:
    """Σ unit_price × quantity over the product's delivered order items."""
    result = await db.execute(
        select(func.sum(OrderItem.unit_price * OrderItem.quantity))
        .select_from(OrderItem)
        .join(Order, OrderItem.order_id == Order.id)
        .where(OrderItem.product_id == product_id)
        .where(Order.status == OrderStatus.DELIVERED)
    )
    return to_money(result.scalar())


@with_deadline
async def sales_report(
    db: AsyncSession, start: datetime, end: datetime
) -> list[DailySales]:
    """Per-day order count and sales between ``start`` and ``end``, newest first.

    Cancelled orders are excluded.
    """
    day = func.date(Order.order_date).label("day")
    result = await db.execute(
        select(day, func.count(Order.id), func.sum(Order.total_amount))
        .where(Order.order_date.between(start, end))
        .where(Order.status != OrderStatus.CANCELLED)
        .group_by(day)
        .order_by(day.desc())
    )
    report = []
    for raw_day, count, total in result.all():
        # SQLite returns DATE() as text
        if isinstance(raw_day, str):
            raw_day = date.fromisoformat(raw_day)
        report.append(
            DailySales(day=raw_day, order_count=count, total_sales=to_money(total))
        )
    return report


@with_deadline
async def user_lifetime_value(db: AsyncSession, user_id: int) -> Decimal:
    result = await db.execute(
        select(func.sum(Order.total_amount))
        .where(Order.user_id == user_id)
        .where(Order.status.in_(LIFETIME_VALUE_STATUSES))
    )
    return to_money(result.scalar())


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------


@with_deadline
async def revenue_in_range(db: AsyncSession, start: datetime, end: datetime) -> Decimal:
    """Completed payment amounts with ``start <= payment_date <= end``."""
    result = await db.execute(
        select(func.sum(Payment.amount))
        .where(Payment.status == PaymentStatus.COMPLETED)
        .where(Payment.payment_date.between(start, end))
    )
    return to_money(result.scalar())


@with_deadline
async def revenue_by_payment_method(db: AsyncSession) -> list[PaymentMethodRevenue]:
    """Completed payment totals per payment method, largest first."""
    total = func.sum(Payment.amount).label("total")
    result = await db.execute(
        select(Payment.payment_method, total)
        .where(Payment.status == PaymentStatus.COMPLETED)
        .group_by(Payment.payment_method)
        .order_by(total.desc())
    )
    return [
        PaymentMethodRevenue(payment_method=method, total=to_money(amount))
        for method, amount in result.all()
    ]
