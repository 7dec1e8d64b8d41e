"""
Seed the database from a product catalog JSON file and rebuild the indices.

The file uses the dummyjson layout: ``{"products": [{"sku", "title",
"category", "brand", "tags", "reviews": [...], ...}]}``. Categories, brands,
tags and reviewers are found or created by name/email, products already
present (by SKU) are skipped and a review is skipped when the same reviewer
already left the same comment on the product, so the command can be re-run.

    python -m marketbase.seed products.json
"""

import asyncio
import json
from datetime import datetime
from typing import Any, Dict

from sqlalchemy.ext.asyncio import AsyncSession

from . import crud, models
from .config import get_settings
from .database import init_db, make_engine, make_session_factory
from .log import get_logger, setup_logging
from .search_index import SearchIndex
from .services import ReindexService

logger = get_logger(__name__)

DEMO_USERS = [
    {"email": "john.doe@example.com", "name": "John Doe"},
    {"email": "jane.smith@example.com", "name": "Jane Smith"},
]

DEMO_ARTICLES = [
    {
        "title": "Getting Started with TypeScript",
        "content": "TypeScript is a powerful superset of JavaScript that adds static typing...",
        "summary": "A comprehensive guide to TypeScript basics",
        "published": True,
        "author": "john.doe@example.com",
    },
    {
        "title": "React Best Practices",
        "content": "React is a popular library for building user interfaces...",
        "summary": "Essential patterns and practices for React development",
        "published": True,
        "author": "jane.smith@example.com",
    },
    {
        "title": "Draft Article",
        "content": "This is a draft article that is not yet published...",
        "summary": "A draft article for testing purposes",
        "published": False,
        "author": "john.doe@example.com",
    },
]


def _parse_date(value):
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


def product_fields(raw: Dict[str, Any]) -> Dict[str, Any]:
    """Map a dummyjson product onto Product columns."""
    meta = raw.get("meta") or {}
    return {
        "sku": raw["sku"],
        "title": raw["title"],
        "description": raw.get("description") or "",
        "price": float(raw["price"]),
        "discount_percentage": float(raw.get("discountPercentage") or 0),
        "rating": float(raw.get("rating") or 0),
        "stock": int(raw.get("stock") or 0),
        "minimum_order_quantity": int(raw.get("minimumOrderQuantity") or 1),
        "weight": raw.get("weight"),
        "dimensions": raw.get("dimensions"),
        "warranty_information": raw.get("warrantyInformation"),
        "shipping_information": raw.get("shippingInformation"),
        "availability_status": raw.get("availabilityStatus") or "In Stock",
        "return_policy": raw.get("returnPolicy"),
        "barcode": meta.get("barcode"),
        "qr_code": meta.get("qrCode"),
        "images": raw.get("images"),
        "thumbnail": raw.get("thumbnail"),
    }


async def _reviewer(db: AsyncSession, review: Dict[str, Any]) -> models.User:
    email = review["reviewerEmail"]
    user = await crud.get_user_by_email(db, email)
    if user is None:
        user = await crud.create_user(db, email, review.get("reviewerName") or email)
    return user


async def seed_products(db: AsyncSession, products) -> Dict[str, int]:
    counts = {"products": 0, "skipped": 0, "reviews": 0}
    for raw in products:
        if await crud.get_product_by_sku(db, raw["sku"]):
            counts["skipped"] += 1
            continue

        fields = product_fields(raw)
        fields["category_id"] = (await crud.find_or_create(db, models.Category, raw.get("category") or "uncategorized")).id
        fields["brand_id"] = (await crud.find_or_create(db, models.Brand, raw.get("brand") or "Generic")).id
        tags = [await crud.find_or_create(db, models.Tag, name) for name in dict.fromkeys(raw.get("tags") or [])]
        product = await crud.create_product(db, fields, tags)
        counts["products"] += 1

        for review in raw.get("reviews") or []:
            reviewer = await _reviewer(db, review)
            comment = review.get("comment") or ""
            if await crud.find_review(db, product.id, reviewer.id, comment):
                continue
            data = {
                "product_id": product.id,
                "reviewer_id": reviewer.id,
                "rating": int(review.get("rating") or 0),
                "comment": comment,
            }
            date = _parse_date(review.get("date"))
            if date is not None:
                data["date"] = date
            await crud.create_review(db, data, commit=False)
            counts["reviews"] += 1
        await db.commit()
    return counts


async def seed_content(db: AsyncSession) -> Dict[str, int]:
    counts = {"users": 0, "articles": 0}
    authors = {}
    for user in DEMO_USERS:
        existing = await crud.get_user_by_email(db, user["email"])
        if existing is None:
            existing = await crud.create_user(db, user["email"], user["name"])
            counts["users"] += 1
        authors[user["email"]] = existing

    for article in DEMO_ARTICLES:
        author = authors[article["author"]]
        items, _ = await crud.list_articles_by_author(db, author.id, limit=100)
        if any(a.title == article["title"] for a in items):
            continue
        data = {k: v for k, v in article.items() if k != "author"}
        await crud.create_article(db, {**data, "author_id": author.id})
        counts["articles"] += 1
    return counts


async def run(path, demo_content: bool = False, reindex: bool = True):
    settings = get_settings()
    engine = make_engine(settings)
    index = SearchIndex.from_settings(settings)
    try:
        await init_db(engine)
        async with make_session_factory(engine)() as db:
            if path:
                with open(path, "r", encoding="utf-8") as f:
                    catalog = json.load(f)
                counts = await seed_products(db, catalog.get("products", []))
                logger.info("Seeded %(products)d products (%(skipped)d skipped), %(reviews)d reviews", counts)
            if demo_content:
                counts = await seed_content(db)
                logger.info("Seeded %(users)d users, %(articles)d articles", counts)
            if reindex:
                for report in await ReindexService(db, index, settings).reindex_all():
                    logger.info("Indexed %s: %d ok, %d failed", report.index, report.indexed, report.failed)
    finally:
        await index.close()
        await engine.dispose()


def main():
    import argparse

    parser = argparse.ArgumentParser(description="Seed the MarketBase database and search indices")
    parser.add_argument("catalog", nargs="?", help="Path to a products JSON file")
    parser.add_argument("--demo-content", action="store_true", help="Also create the demo users and articles")
    parser.add_argument("--skip-index", action="store_true", help="Do not rebuild the search indices")
    args = parser.parse_args()

    setup_logging()
    asyncio.run(run(args.catalog, demo_content=args.demo_content, reindex=not args.skip_index))


if __name__ == "__main__":
    main()
