"""Product image galleries: ordered images, one primary, a per-product cap."""

from typing import Optional

from libs.common.config import get_settings
from libs.common.deadline import with_deadline
from libs.common.logging import get_logger
from services.catalog_service.exceptions import (
    ProductImageLimitError,
    ProductImageNotFoundError,
)
from services.catalog_service.models import ProductImage
from services.catalog_service.schemas import ProductImageCreate, ProductImageResponse
from services.catalog_service.services._helpers import fetch_product, write_transaction
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

logger = get_logger(__name__)


def _gallery_query(product_id: int):
    return (
        select(ProductImage)
        .where(ProductImage.product_id == product_id)
        .order_by(ProductImage.sort_order, ProductImage.id)
        .execution_options(populate_existing=True)
    )


@with_deadline
async def image_count(db: AsyncSession, product_id: int) -> int:
    result = await db.execute(
        select(func.count(ProductImage.id)).where(ProductImage.product_id == product_id)
    )
    return result.scalar() or 0


@with_deadline
async def list_product_images(
    db: AsyncSession, product_id: int
) -> list[ProductImageResponse]:
    """A product's images by ``sort_order``; the product must exist."""
    await fetch_product(db, product_id)
    result = await db.execute(_gallery_query(product_id))
    return [ProductImageResponse.model_validate(i) for i in result.scalars().all()]


@with_deadline
async def primary_image(
    db: AsyncSession, product_id: int
) -> Optional[ProductImageResponse]:
    """The thumbnail image, or None when the product has no images."""
    await fetch_product(db, product_id)
    result = await db.execute(
        select(ProductImage)
        .where(
            ProductImage.product_id == product_id,
            ProductImage.is_primary.is_(True),
        )
        .order_by(ProductImage.id)
        .limit(1)
    )
    image = result.scalar_one_or_none()
    return ProductImageResponse.model_validate(image) if image else None


@with_deadline
async def add_product_image(
    db: AsyncSession, product_id: int, request: ProductImageCreate, *, actor: str
) -> ProductImageResponse:
    """Append an image to the product's gallery.

    Without ``sort_order`` the image goes last. The first image of a product
    becomes primary; marking a later one primary demotes the previous one.
    """
    logger.info("Adding image to product %s by %s", product_id, actor)
    await fetch_product(db, product_id)

    limit = get_settings().MAX_PRODUCT_IMAGES
    gallery = list((await db.execute(_gallery_query(product_id))).scalars().all())
    if len(gallery) >= limit:
        logger.warning("Product %s already has %s images", product_id, len(gallery))
        raise ProductImageLimitError(product_id, limit)

    sort_order = request.sort_order
    if sort_order is None:
        sort_order = max((i.sort_order for i in gallery), default=-1) + 1
    make_primary = request.is_primary or not any(i.is_primary for i in gallery)

    image = ProductImage(
        product_id=product_id,
        url=request.url,
        alt_text=request.alt_text,
        sort_order=sort_order,
        is_primary=make_primary,
    )

    async with write_transaction(db, "ProductImage", product_id):
        if make_primary:
            for existing in gallery:
                existing.is_primary = False
        db.add(image)

    logger.info("Image %s added to product %s", image.id, product_id)
    return ProductImageResponse.model_validate(image)


@with_deadline
async def remove_product_image(
    db: AsyncSession, product_id: int, image_id: int, *, actor: str
) -> None:
    """Delete one image; if it was primary, the next image in order takes over."""
    logger.info("Removing image %s from product %s by %s", image_id, product_id, actor)
    gallery = list((await db.execute(_gallery_query(product_id))).scalars().all())
    image = next((i for i in gallery if i.id == image_id), None)
    if image is None:
        raise ProductImageNotFoundError(image_id)

    remaining = [i for i in gallery if i.id != image_id]
    async with write_transaction(db, "ProductImage", product_id):
        await db.delete(image)
        if image.is_primary and remaining:
            remaining[0].is_primary = True
