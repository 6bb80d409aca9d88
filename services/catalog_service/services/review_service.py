"""Product reviews: one per (product, user), rated 1 to 5."""

from typing import Optional

from libs.common.config import get_settings
from libs.common.deadline import with_deadline
from libs.common.logging import get_logger
from services.catalog_service.exceptions import (
    DuplicateReviewError,
    InvalidArgumentError,
    UserNotFoundError,
)
from services.catalog_service.models import Review, User
from services.catalog_service.schemas import (
    Page,
    PageRequest,
    ReviewCreate,
    ReviewResponse,
)
from services.catalog_service.services import analytics
from services.catalog_service.services._helpers import (
    fetch_product,
    paginate,
    write_transaction,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def _validate_rating(rating: int) -> None:
    if not MIN_RATING <= rating <= MAX_RATING:
        raise InvalidArgumentError(
            f"Rating must be between {MIN_RATING} and {MAX_RATING}", field="rating"
        )


@with_deadline
async def has_reviewed(db: AsyncSession, product_id: int, user_id: int) -> bool:
    result = await db.execute(
        select(Review.id)
        .where(Review.product_id == product_id, Review.user_id == user_id)
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


@with_deadline
async def create_review(
    db: AsyncSession, request: ReviewCreate, *, actor: str
) -> ReviewResponse:
    """Record a review after checking product, user, rating and uniqueness."""
    logger.info(
        "Creating review for product %s by user %s", request.product_id, request.user_id
    )

    await fetch_product(db, request.product_id)
    if await db.get(User, request.user_id) is None:
        raise UserNotFoundError(request.user_id)

    _validate_rating(request.rating)

    if await has_reviewed(db, request.product_id, request.user_id):
        logger.warning(
            "User %s already reviewed product %s", request.user_id, request.product_id
        )
        raise DuplicateReviewError(request.product_id, request.user_id)

    review = Review(
        product_id=request.product_id,
        user_id=request.user_id,
        rating=request.rating,
        comment=request.comment,
        verified_purchase=request.verified_purchase,
    )
    review.stamp_created(actor)

    async with write_transaction(db, "Review", request.product_id):
        db.add(review)

    logger.info("Review %s created for product %s", review.id, request.product_id)
    return ReviewResponse.model_validate(review)


@with_deadline
async def list_reviews(
    db: AsyncSession,
    product_id: int,
    page: Optional[PageRequest] = None,
    verified_only: bool = False,
    min_rating: Optional[int] = None,
) -> Page[ReviewResponse]:
    """A product's reviews, newest first."""
    page = page or PageRequest(page_size=get_settings().DEFAULT_PAGE_SIZE)
    await fetch_product(db, product_id)

    query = select(Review).where(Review.product_id == product_id)
    if verified_only:
        query = query.where(Review.verified_purchase.is_(True))
    if min_rating is not None:
        query = query.where(Review.rating >= min_rating)
    query = query.order_by(Review.created_at.desc(), Review.id.desc())

    reviews, total = await paginate(db, query, page)
    items = [ReviewResponse.model_validate(r) for r in reviews]
    return Page[ReviewResponse].build(items, total, page)


@with_deadline
async def review_count(db: AsyncSession, product_id: int) -> int:
    return await analytics.review_count(db, product_id)


@with_deadline
async def average_rating(db: AsyncSession, product_id: int) -> float:
    return await analytics.average_rating(db, product_id)
