"""Pydantic schemas for catalog service."""

from datetime import date, datetime
from decimal import Decimal
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field
from services.catalog_service.models import PaymentMethod

T = TypeVar("T")

# ============================================================================
# PAGING
# ============================================================================


class PageRequest(BaseModel):
    """1-based page request.

    ``sort`` entries name a sortable field, prefixed with ``-`` for
    descending order (e.g. ``["-price", "name"]``).
    """

    page_number: int = Field(1, ge=1)
    page_size: int = Field(20, ge=1, le=100)
    sort: list[str] = Field(default_factory=list)

    @property
    def offset(self) -> int:
        return (self.page_number - 1) * self.page_size


class Page(BaseModel, Generic[T]):
    items: list[T]
    total_elements: int
    total_pages: int
    page_number: int
    page_size: int

    @computed_field
    @property
    def has_next(self) -> bool:
        return self.page_number < self.total_pages

    @classmethod
    def build(cls, items: list[T], total: int, page: PageRequest) -> "Page[T]":
        return cls(
            items=items,
            total_elements=total,
            total_pages=(total + page.page_size - 1) // page.page_size,
            page_number=page.page_number,
            page_size=page.page_size,
        )


# ============================================================================
# PRODUCT SCHEMAS
# ============================================================================


class CreateProductRequest(BaseModel):
    sku: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    price: Decimal = Field(..., max_digits=10, decimal_places=2)
    discount_price: Optional[Decimal] = Field(None, max_digits=10, decimal_places=2)
    stock_quantity: int
    category_id: int


class UpdateProductRequest(BaseModel):
    """Sparse update: fields left as ``None`` are not touched."""

    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    price: Optional[Decimal] = Field(None, max_digits=10, decimal_places=2)
    discount_price: Optional[Decimal] = Field(None, max_digits=10, decimal_places=2)
    stock_quantity: Optional[int] = None
    category_id: Optional[int] = None


class ProductSearchCriteria(BaseModel):
    keyword: Optional[str] = None  # name, description or SKU
    name: Optional[str] = None  # name only
    category_id: Optional[int] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None
    min_stock: Optional[int] = None  # strictly greater than
    active_only: Optional[bool] = None


class ProductResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    sku: str
    name: str
    description: Optional[str] = None
    price: Decimal
    discount_price: Optional[Decimal] = None
    effective_price: Decimal
    stock_quantity: int
    active: bool
    category_id: int
    category_name: Optional[str] = None
    average_rating: float = 0.0
    review_count: int = 0
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by: Optional[str] = None
    last_modified_by: Optional[str] = None

    @classmethod
    def from_product(
        cls, product, average_rating: float = 0.0, review_count: int = 0
    ) -> "ProductResponse":
        return cls(
            id=product.id,
            sku=product.sku,
            name=product.name,
            description=product.description,
            price=product.price,
            discount_price=product.discount_price,
            effective_price=product.effective_price,
            stock_quantity=product.stock_quantity,
            active=product.active,
            category_id=product.category_id,
            category_name=product.category.name if product.category else None,
            average_rating=average_rating,
            review_count=review_count,
            version=product.version,
            created_at=product.created_at,
            updated_at=product.updated_at,
            created_by=product.created_by,
            last_modified_by=product.last_modified_by,
        )


# ============================================================================
# PRODUCT IMAGE SCHEMAS
# ============================================================================


class ProductImageCreate(BaseModel):
    url: str = Field(..., min_length=1, max_length=512)
    alt_text: Optional[str] = Field(None, max_length=255)
    sort_order: Optional[int] = Field(None, ge=0)
    is_primary: bool = False


class ProductImageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    url: str
    alt_text: Optional[str] = None
    sort_order: int
    is_primary: bool


# ============================================================================
# CATEGORY SCHEMAS
# ============================================================================


class CategoryCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    parent_id: Optional[int] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None


class CategoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    parent_id: Optional[int] = None
    version: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_by: Optional[str] = None
    last_modified_by: Optional[str] = None


class CategoryWithChildren(CategoryResponse):
    children: list["CategoryWithChildren"] = []


class CategoryWithProductCount(BaseModel):
    category: CategoryResponse
    product_count: int


class CategoryStatistics(BaseModel):
    category_id: int
    category_name: str
    product_count: int
    average_price: Optional[Decimal] = None
    total_stock: int


# ============================================================================
# REVIEW SCHEMAS
# ============================================================================


class ReviewCreate(BaseModel):
    product_id: int
    user_id: int
    rating: int
    comment: Optional[str] = None
    verified_purchase: bool = False


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    user_id: int
    rating: int
    comment: Optional[str] = None
    verified_purchase: bool
    created_at: Optional[datetime] = None
    created_by: Optional[str] = None


# ============================================================================
# ANALYTICS SCHEMAS
# ============================================================================


class ProductSales(BaseModel):
    product_id: int
    product_name: str
    total_sold: int


class CoPurchase(BaseModel):
    product_id: int
    product_name: str
    frequency: int


class PaymentMethodRevenue(BaseModel):
    payment_method: PaymentMethod
    total: Decimal


class DailySales(BaseModel):
    day: date
    order_count: int
    total_sales: Decimal
