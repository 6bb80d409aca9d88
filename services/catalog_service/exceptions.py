"""Typed failures raised by the catalog services.

Every failure is raised before any row is modified, so callers can retry or
report without cleaning up partial writes.
"""

from typing import Any, Optional


class CatalogError(Exception):
    """Base exception for catalog business-rule failures."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


# ---------------------------------------------------------------------------
# Not found
# ---------------------------------------------------------------------------


class NotFoundError(CatalogError):
    entity = "Entity"

    def __init__(self, identifier: Any, field: str = "ID"):
        self.identifier = identifier
        self.field = field
        super().__init__(f"{self.entity} not found with {field}: {identifier}")


class ProductNotFoundError(NotFoundError):
    entity = "Product"


class CategoryNotFoundError(NotFoundError):
    entity = "Category"


class UserNotFoundError(NotFoundError):
    entity = "User"


class ProductImageNotFoundError(NotFoundError):
    entity = "Product image"


# ---------------------------------------------------------------------------
# Conflicts
# ---------------------------------------------------------------------------


class ConflictError(CatalogError):
    """The request collides with existing state."""


class DuplicateSkuError(ConflictError):
    def __init__(self, sku: str):
        self.sku = sku
        super().__init__(f"Product with SKU '{sku}' already exists")


class DuplicateCategoryNameError(ConflictError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Category with name '{name}' already exists")


class DuplicateReviewError(ConflictError):
    def __init__(self, product_id: int, user_id: int):
        self.product_id = product_id
        self.user_id = user_id
        super().__init__(
            f"User {user_id} has already reviewed product {product_id}"
        )


class ProductImageLimitError(ConflictError):
    def __init__(self, product_id: int, limit: int):
        self.product_id = product_id
        self.limit = limit
        super().__init__(f"Product {product_id} already has {limit} images")


class CategoryHasChildrenError(ConflictError):
    def __init__(self, category_id: int, child_count: int):
        self.category_id = category_id
        self.child_count = child_count
        super().__init__(
            f"Category {category_id} has {child_count} subcategories and cannot be deleted"
        )


class CategoryInUseError(ConflictError):
    def __init__(self, category_id: int, product_count: int):
        self.category_id = category_id
        self.product_count = product_count
        super().__init__(
            f"Category {category_id} still holds {product_count} products and cannot be deleted"
        )


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class InvalidArgumentError(CatalogError, ValueError):
    """A request value breaks a business rule (price, stock, rating, ...)."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class CategoryCycleError(InvalidArgumentError):
    def __init__(self, category_id: int, parent_id: int):
        self.category_id = category_id
        self.parent_id = parent_id
        super().__init__(
            f"Category {parent_id} cannot become the parent of category "
            f"{category_id}: the hierarchy would contain a cycle",
            field="parent_id",
        )


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------


class ConcurrencyConflictError(CatalogError):
    """The row changed since it was read; re-fetch and retry."""

    def __init__(
        self,
        entity: str,
        identifier: Any,
        expected_version: Optional[int] = None,
        current_version: Optional[int] = None,
    ):
        self.entity = entity
        self.identifier = identifier
        self.expected_version = expected_version
        self.current_version = current_version
        detail = ""
        if expected_version is not None and current_version is not None:
            detail = f" (expected version {expected_version}, found {current_version})"
        super().__init__(
            f"{entity} {identifier} was modified concurrently{detail}"
        )
