"""Catalog models: categories, products and product images.

Relationships point one way only (product -> category, product -> owned
images). Reverse lookups such as "children of a category" or "products in a
category" are explicit queries in the service layer.
"""

from decimal import Decimal
from typing import Optional

from libs.db.base import AuditMixin, Base
from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, Integer, Numeric
from sqlalchemy import String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship


class Category(AuditMixin, Base):
    """Product categories forming a forest (parent_id NULL means root)."""

    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # No ON DELETE action: a category with children must be emptied first.
    parent_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("categories.id"), index=True, nullable=True
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def is_root(self) -> bool:
        return self.parent_id is None

    def __repr__(self):
        return f"<Category {self.name}>"


class Product(AuditMixin, Base):
    """Sellable products, soft-deleted by clearing ``active``."""

    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    sku: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    discount_price: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(10, 2), nullable=True
    )
    stock_quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=True, server_default="1"
    )

    category_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("categories.id"), nullable=False
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("price > 0", name="price_positive"),
        CheckConstraint("stock_quantity >= 0", name="stock_non_negative"),
        CheckConstraint(
            "discount_price IS NULL OR discount_price <= price",
            name="discount_not_above_price",
        ),
        Index("ix_products_category_active", "category_id", "active"),
    )

    # Relationships
    category = relationship("Category", lazy="joined", innerjoin=True)
    images = relationship(
        "ProductImage",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ProductImage.sort_order",
    )
    reviews = relationship(
        "Review", cascade="all, delete-orphan", passive_deletes=True
    )

    @property
    def effective_price(self) -> Decimal:
        """Discount price when one is set, otherwise the list price."""
        return self.discount_price if self.discount_price is not None else self.price

    def __repr__(self):
        return f"<Product {self.sku}>"


class ProductImage(Base):
    """Product images."""

    __tablename__ = "product_images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    url: Mapped[str] = mapped_column(String(512), nullable=False)
    alt_text: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0, server_default="0")
    is_primary: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="0"
    )

    def __repr__(self):
        return f"<ProductImage {self.id}>"
