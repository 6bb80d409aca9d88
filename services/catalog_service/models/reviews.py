"""Product reviews."""

from typing import Optional

from libs.db.base import AuditMixin, Base
from sqlalchemy import Boolean, CheckConstraint, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column


class Review(AuditMixin, Base):
    """A user's 1-5 star review of a product.

    One review per (product, user) is enforced by the review service.
    """

    __tablename__ = "reviews"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    product_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False
    )
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    verified_purchase: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default="0"
    )

    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="rating_range"),
        Index("ix_reviews_product_rating", "product_id", "rating"),
        Index("ix_reviews_product_user", "product_id", "user_id"),
    )

    def __repr__(self):
        return f"<Review product={self.product_id} rating={self.rating}>"
