"""Catalog Service models package."""

from services.catalog_service.models.accounts import Address, Role, User, user_roles
from services.catalog_service.models.catalog import Category, Product, ProductImage
from services.catalog_service.models.commerce import Order, OrderItem, Payment
from services.catalog_service.models.enums import (
    AddressType,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
    RoleType,
    UserStatus,
)
from services.catalog_service.models.reviews import Review

__all__ = [
    "Address",
    "AddressType",
    "Category",
    "Order",
    "OrderItem",
    "OrderStatus",
    "Payment",
    "PaymentMethod",
    "PaymentStatus",
    "Product",
    "ProductImage",
    "Review",
    "Role",
    "RoleType",
    "User",
    "UserStatus",
    "user_roles",
]
