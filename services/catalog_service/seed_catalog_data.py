"""Seed script for catalog demo data.

Creates the schema, a small category forest and a handful of products so
listing, search and statistics have something to show.

Usage:
    python -m services.catalog_service.seed_catalog_data
"""

import asyncio
from decimal import Decimal

from libs.common.logging import configure_logging
from libs.db.config import AsyncSessionLocal
from libs.db.session import create_schema
from services.catalog_service.models import Category
from services.catalog_service.schemas import CategoryCreate, CreateProductRequest
from services.catalog_service.services import category_service, product_service
from sqlalchemy import func, select

SEED_ACTOR = "seed"

CATEGORY_FOREST = {
    "Electronics": {
        "description": "Devices and gadgets",
        "children": {
            "Laptops": "Portable computers",
            "Phones": "Smartphones and accessories",
        },
    },
    "Home": {
        "description": "Furniture and kitchen",
        "children": {
            "Kitchen": "Cookware and appliances",
        },
    },
}

PRODUCTS = [
    # sku, name, price, discount, stock, category
    ("LAP-001", "Ultrabook 13", "1299.00", "1149.00", 12, "Laptops"),
    ("LAP-002", "Workstation 16", "2499.00", None, 4, "Laptops"),
    ("PHN-001", "Phone Mini", "599.00", None, 40, "Phones"),
    ("PHN-002", "Phone Max", "999.00", "899.00", 7, "Phones"),
    ("KIT-001", "Chef Knife", "89.90", None, 25, "Kitchen"),
    ("KIT-002", "Cast Iron Skillet", "54.50", "49.00", 0, "Kitchen"),
]


async def seed_catalog_data():
    await create_schema()

    async with AsyncSessionLocal() as db:
        print("Seeding catalog data...")

        existing = await db.execute(select(func.count(Category.id)))
        count = existing.scalar()
        if count and count > 0:
            print(f"Catalog data already exists ({count} categories). Skipping seed.")
            return

        # =========================================================================
        # 1. CATEGORIES
        # =========================================================================
        category_ids: dict[str, int] = {}
        for root_name, root in CATEGORY_FOREST.items():
            parent = await category_service.create_category(
                db,
                CategoryCreate(name=root_name, description=root["description"]),
                actor=SEED_ACTOR,
            )
            category_ids[root_name] = parent.id
            for child_name, description in root["children"].items():
                child = await category_service.create_category(
                    db,
                    CategoryCreate(
                        name=child_name, description=description, parent_id=parent.id
                    ),
                    actor=SEED_ACTOR,
                )
                category_ids[child_name] = child.id

        # =========================================================================
        # 2. PRODUCTS
        # =========================================================================
        for sku, name, price, discount, stock, category in PRODUCTS:
            await product_service.create_product(
                db,
                CreateProductRequest(
                    sku=sku,
                    name=name,
                    price=Decimal(price),
                    discount_price=Decimal(discount) if discount else None,
                    stock_quantity=stock,
                    category_id=category_ids[category],
                ),
                actor=SEED_ACTOR,
            )

        print(
            f"Seeded {len(category_ids)} categories and {len(PRODUCTS)} products."
        )


if __name__ == "__main__":
    configure_logging()
    asyncio.run(seed_catalog_data())
