"""Commerce models: orders, order items and payments."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import AuditMixin, Base
from services.catalog_service.models.enums import (
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    enum_values,
)
from sqlalchemy import CheckConstraint, DateTime
from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

ZERO = Decimal("0.00")


class Order(AuditMixin, Base):
    """Customer orders."""

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    order_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    status: Mapped[OrderStatus] = mapped_column(
        SAEnum(OrderStatus, values_callable=enum_values, name="order_status_enum"),
        default=OrderStatus.PENDING,
        nullable=False,
    )

    total_amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=ZERO
    )
    shipping_fee: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2), nullable=True
    )
    tax_amount: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2), nullable=True
    )

    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    shipping_address_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("addresses.id", ondelete="SET NULL"), nullable=True
    )

    __table_args__ = (
        Index("ix_orders_user_id", "user_id"),
        Index("ix_orders_order_date", "order_date"),
    )

    # Relationships
    items = relationship(
        "OrderItem", cascade="all, delete-orphan", passive_deletes=True
    )
    payment = relationship(
        "Payment", uselist=False, cascade="all, delete-orphan", passive_deletes=True
    )

    def calculate_total_amount(self) -> Decimal:
        """Recompute ``total_amount`` from the item price snapshots."""
        items_total = sum((item.subtotal for item in self.items), ZERO)
        self.total_amount = (
            items_total + (self.shipping_fee or ZERO) + (self.tax_amount or ZERO)
        )
        return self.total_amount

    def __repr__(self):
        return f"<Order {self.order_number} status={self.status}>"


class OrderItem(Base):
    """Order line items.

    ``unit_price`` is captured at purchase time and never recomputed from the
    product's current price.
    """

    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False
    )
    product_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("products.id"), nullable=False
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    __table_args__ = (
        CheckConstraint("quantity > 0", name="quantity_positive"),
        Index("ix_order_items_order_id", "order_id"),
        Index("ix_order_items_product_id", "product_id"),
    )

    @property
    def subtotal(self) -> Decimal:
        return self.unit_price * self.quantity

    def __repr__(self):
        return f"<OrderItem order={self.order_id} product={self.product_id}>"


class Payment(AuditMixin, Base):
    """Payment attached to exactly one order."""

    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("orders.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SAEnum(
            PaymentMethod, values_callable=enum_values, name="payment_method_enum"
        ),
        nullable=False,
    )
    status: Mapped[PaymentStatus] = mapped_column(
        SAEnum(
            PaymentStatus, values_callable=enum_values, name="payment_status_enum"
        ),
        default=PaymentStatus.PENDING,
        nullable=False,
    )
    transaction_id: Mapped[Optional[str]] = mapped_column(
        String(100), unique=True, nullable=True
    )
    payment_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self):
        return f"<Payment order={self.order_id} status={self.status}>"
