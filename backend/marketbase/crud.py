# marketbase/crud.py
from typing import AsyncIterator, List, Optional, Sequence, Tuple, Type

from sqlalchemy import delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from . import models
from .documents import AggregationBucket
from .schemas import ProductFilters

NamedModel = Type[models.Category] | Type[models.Brand] | Type[models.Tag]


async def _count(db: AsyncSession, stmt) -> int:
    return (await db.execute(select(func.count()).select_from(stmt.order_by(None).subquery()))).scalar_one()


async def _iter_pages(db: AsyncSession, stmt, model, page_size: int) -> AsyncIterator[list]:
    # keyset pagination on the primary key so concurrent inserts can't shift pages
    last_id = 0
    while True:
        page_stmt = stmt.where(model.id > last_id).order_by(model.id).limit(page_size)
        rows = (await db.execute(page_stmt)).scalars().all()
        if not rows:
            return
        yield list(rows)
        last_id = rows[-1].id


# -------------------- PRODUCTS --------------------
def _product_options():
    return (
        selectinload(models.Product.category),
        selectinload(models.Product.brand),
        selectinload(models.Product.tags),
        selectinload(models.Product.reviews).selectinload(models.Review.reviewer),
    )


def _product_query():
    return select(models.Product).options(*_product_options())


async def get_product(db: AsyncSession, product_id: int, refresh: bool = False):
    stmt = _product_query().where(models.Product.id == product_id)
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_product_by_sku(db: AsyncSession, sku: str):
    sku_norm = sku.lower()
    stmt = select(models.Product).where(models.Product.sku_normalized == sku_norm)
    return (await db.execute(stmt)).scalar_one_or_none()


async def list_products_by_category(db: AsyncSession, category_name: str, skip: int = 0, limit: int = 20):
    q = _product_query().join(models.Product.category).where(models.Category.name == category_name)
    total = await _count(db, q)
    items = (await db.execute(q.order_by(models.Product.created_at.desc()).offset(skip).limit(limit))).scalars().all()
    return items, total


async def list_products_by_owner(db: AsyncSession, column, owner_id: int, skip: int = 0, limit: int = 20):
    """Products of one category or brand; ``column`` is Product.category_id or Product.brand_id."""
    q = _product_query().where(column == owner_id)
    total = await _count(db, q)
    items = (await db.execute(q.order_by(models.Product.created_at.desc()).offset(skip).limit(limit))).scalars().all()
    return items, total


async def list_product_ids_by_tag(db: AsyncSession, tag_id: int) -> List[int]:
    stmt = select(models.product_tags.c.product_id).where(models.product_tags.c.tag_id == tag_id)
    return list((await db.execute(stmt)).scalars().all())


def iter_product_pages(db: AsyncSession, page_size: int) -> AsyncIterator[list]:
    return _iter_pages(db, _product_query(), models.Product, page_size)


FALLBACK_SORT_COLUMNS = {
    "createdAt": models.Product.created_at,
    "created_at": models.Product.created_at,
    "updatedAt": models.Product.updated_at,
    "updated_at": models.Product.updated_at,
    "discountPercentage": models.Product.discount_percentage,
    "discount_percentage": models.Product.discount_percentage,
    "price": models.Product.price,
    "rating": models.Product.rating,
    "stock": models.Product.stock,
    "title": models.Product.title,
    "id": models.Product.id,
}


async def search_products(db: AsyncSession, filters: ProductFilters, sort_field: Optional[str] = None):
    """Database rendition of the faceted search: substring text match, exact facets, ranges."""
    q = _product_query().join(models.Product.category).join(models.Product.brand)

    if filters.query:
        pattern = f"%{filters.query}%"
        q = q.where(
            or_(
                models.Product.title.ilike(pattern),
                models.Product.description.ilike(pattern),
                models.Category.name.ilike(pattern),
                models.Brand.name.ilike(pattern),
                models.Product.tags.any(models.Tag.name.ilike(pattern)),
            )
        )
    if filters.categories:
        q = q.where(models.Category.name.in_(filters.categories))
    if filters.brands:
        q = q.where(models.Brand.name.in_(filters.brands))
    if filters.tags:
        q = q.where(models.Product.tags.any(models.Tag.name.in_(filters.tags)))
    if filters.min_price is not None:
        q = q.where(models.Product.price >= filters.min_price)
    if filters.max_price is not None:
        q = q.where(models.Product.price <= filters.max_price)
    if filters.min_rating is not None:
        q = q.where(models.Product.rating >= filters.min_rating)
    if filters.min_discount is not None:
        q = q.where(models.Product.discount_percentage >= filters.min_discount)
    if filters.max_discount is not None:
        q = q.where(models.Product.discount_percentage <= filters.max_discount)
    if filters.in_stock:
        q = q.where(models.Product.stock > 0)

    total = await _count(db, q)

    column = FALLBACK_SORT_COLUMNS.get(sort_field) if sort_field else None
    if column is None:
        # no relevance score without the index: newest first
        order_by = (models.Product.created_at.desc(), models.Product.id.desc())
    elif filters.order == "asc":
        order_by = (column.asc(), models.Product.id.asc())
    else:
        order_by = (column.desc(), models.Product.id.desc())

    items = (await db.execute(q.order_by(*order_by).offset(filters.offset).limit(filters.limit))).scalars().all()
    return items, total


async def create_product(db: AsyncSession, data: dict, tags: Sequence[models.Tag] = ()):
    obj = models.Product(**data)
    obj.sku_normalized = obj.sku.lower()
    obj.tags = list(tags)
    db.add(obj)
    await db.commit()
    return await get_product(db, obj.id, refresh=True)


async def update_product(db: AsyncSession, product: models.Product, changes: dict, tags: Optional[Sequence[models.Tag]] = None):
    for field, value in changes.items():
        setattr(product, field, value)
    if "sku" in changes:
        product.sku_normalized = product.sku.lower()
    if tags is not None:
        product.tags = list(tags)
    await db.commit()
    return await get_product(db, product.id, refresh=True)


async def delete_product(db: AsyncSession, product_id: int) -> bool:
    await db.execute(delete(models.product_tags).where(models.product_tags.c.product_id == product_id))
    await db.execute(delete(models.Review).where(models.Review.product_id == product_id))
    res = await db.execute(delete(models.Product).where(models.Product.id == product_id))
    await db.commit()
    return res.rowcount > 0


# -------------------- CATEGORIES / BRANDS / TAGS --------------------
async def get_named(db: AsyncSession, model: NamedModel, item_id: int):
    return await db.get(model, item_id)


async def get_named_by_name(db: AsyncSession, model: NamedModel, name: str):
    return (await db.execute(select(model).where(model.name == name))).scalar_one_or_none()


async def list_named(db: AsyncSession, model: NamedModel, skip: int = 0, limit: Optional[int] = None):
    q = select(model).order_by(model.name.asc()).offset(skip)
    if limit is not None:
        q = q.limit(limit)
    return (await db.execute(q)).scalars().all()


async def count_named(db: AsyncSession, model: NamedModel) -> int:
    return (await db.execute(select(func.count()).select_from(model))).scalar_one()


async def create_named(db: AsyncSession, model: NamedModel, name: str):
    obj = model(name=name)
    db.add(obj)
    await db.commit()
    return obj


async def find_or_create(db: AsyncSession, model: NamedModel, name: str):
    name = name.strip()
    existing = await get_named_by_name(db, model, name)
    if existing:
        return existing
    try:
        return await create_named(db, model, name)
    except IntegrityError:
        # lost the race against a concurrent insert of the same name
        await db.rollback()
        existing = await get_named_by_name(db, model, name)
        if existing is None:
            raise
        return existing


def _product_count_join(model: NamedModel):
    if model is models.Tag:
        link = models.product_tags.c.tag_id
        return models.product_tags, link == model.id, func.count(models.product_tags.c.product_id)
    fk = models.Product.category_id if model is models.Category else models.Product.brand_id
    return models.Product, fk == model.id, func.count(models.Product.id)


async def named_with_counts(db: AsyncSession, model: NamedModel, name_like: Optional[str] = None, limit: Optional[int] = None):
    """(name-ordered or count-ordered) rows of (entity, product_count)."""
    target, on, count = _product_count_join(model)
    q = select(model, count.label("product_count")).outerjoin(target, on).group_by(model.id)
    if name_like:
        q = q.where(model.name.ilike(f"%{name_like}%")).order_by(count.desc(), model.name.asc())
    else:
        q = q.order_by(model.name.asc())
    if limit is not None:
        q = q.limit(limit)
    return (await db.execute(q)).all()


async def suggest_named(db: AsyncSession, model: NamedModel, query: str, limit: int) -> List[AggregationBucket]:
    rows = await named_with_counts(db, model, name_like=query, limit=limit)
    return [AggregationBucket(key=row[0].name, count=row[1]) for row in rows]


async def rename_named(db: AsyncSession, obj, name: str):
    obj.name = name
    await db.commit()
    return obj


async def delete_tag(db: AsyncSession, tag_id: int) -> bool:
    await db.execute(delete(models.product_tags).where(models.product_tags.c.tag_id == tag_id))
    res = await db.execute(delete(models.Tag).where(models.Tag.id == tag_id))
    await db.commit()
    return res.rowcount > 0


# -------------------- USERS --------------------
async def get_user(db: AsyncSession, user_id: int):
    return await db.get(models.User, user_id)


async def get_user_by_email(db: AsyncSession, email: str):
    return (await db.execute(select(models.User).where(models.User.email == email))).scalar_one_or_none()


async def list_users(db: AsyncSession, skip: int = 0, limit: int = 10) -> Tuple[list, int]:
    q = select(models.User)
    total = await _count(db, q)
    items = (await db.execute(q.order_by(models.User.created_at.desc(), models.User.id.desc()).offset(skip).limit(limit))).scalars().all()
    return items, total


async def search_users(db: AsyncSession, query: str, skip: int = 0, limit: int = 10) -> Tuple[list, int]:
    pattern = f"%{query}%"
    q = select(models.User).where(or_(models.User.name.ilike(pattern), models.User.email.ilike(pattern)))
    total = await _count(db, q)
    items = (await db.execute(q.order_by(models.User.created_at.desc(), models.User.id.desc()).offset(skip).limit(limit))).scalars().all()
    return items, total


def iter_user_pages(db: AsyncSession, page_size: int) -> AsyncIterator[list]:
    return _iter_pages(db, select(models.User), models.User, page_size)


async def create_user(db: AsyncSession, email: str, name: str):
    obj = models.User(email=email, name=name)
    db.add(obj)
    await db.commit()
    return obj


async def update_user(db: AsyncSession, user: models.User, changes: dict):
    for field, value in changes.items():
        setattr(user, field, value)
    await db.commit()
    await db.refresh(user)
    return user


async def delete_user(db: AsyncSession, user_id: int) -> List[int]:
    """Delete a user with their articles and reviews; returns the deleted article ids."""
    article_ids = list((await db.execute(select(models.Article.id).where(models.Article.author_id == user_id))).scalars().all())
    await db.execute(delete(models.Article).where(models.Article.author_id == user_id))
    await db.execute(delete(models.Review).where(models.Review.reviewer_id == user_id))
    await db.execute(delete(models.User).where(models.User.id == user_id))
    await db.commit()
    return article_ids


# -------------------- ARTICLES --------------------
def _article_query(published_only: bool = False):
    q = select(models.Article).options(selectinload(models.Article.author))
    if published_only:
        q = q.where(models.Article.published.is_(True))
    return q


def _newest_articles(q):
    return q.order_by(models.Article.created_at.desc(), models.Article.id.desc())


async def get_article(db: AsyncSession, article_id: int, refresh: bool = False):
    stmt = _article_query().where(models.Article.id == article_id)
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    return (await db.execute(stmt)).scalar_one_or_none()


async def list_articles(db: AsyncSession, skip: int = 0, limit: int = 10, published_only: bool = False):
    q = _article_query(published_only)
    total = await _count(db, q)
    items = (await db.execute(_newest_articles(q).offset(skip).limit(limit))).scalars().all()
    return items, total


async def list_articles_by_author(db: AsyncSession, author_id: int, skip: int = 0, limit: int = 10):
    q = _article_query().where(models.Article.author_id == author_id)
    total = await _count(db, q)
    items = (await db.execute(_newest_articles(q).offset(skip).limit(limit))).scalars().all()
    return items, total


async def search_articles(db: AsyncSession, query: str, skip: int = 0, limit: int = 10, published_only: bool = True):
    pattern = f"%{query}%"
    q = _article_query(published_only).where(
        or_(
            models.Article.title.ilike(pattern),
            models.Article.content.ilike(pattern),
            models.Article.summary.ilike(pattern),
        )
    )
    total = await _count(db, q)
    items = (await db.execute(_newest_articles(q).offset(skip).limit(limit))).scalars().all()
    return items, total


def iter_article_pages(db: AsyncSession, page_size: int) -> AsyncIterator[list]:
    return _iter_pages(db, _article_query(), models.Article, page_size)


async def create_article(db: AsyncSession, data: dict):
    obj = models.Article(**data)
    db.add(obj)
    await db.commit()
    return await get_article(db, obj.id, refresh=True)


async def update_article(db: AsyncSession, article: models.Article, changes: dict):
    for field, value in changes.items():
        setattr(article, field, value)
    await db.commit()
    return await get_article(db, article.id, refresh=True)


async def delete_article(db: AsyncSession, article_id: int) -> bool:
    res = await db.execute(delete(models.Article).where(models.Article.id == article_id))
    await db.commit()
    return res.rowcount > 0


# -------------------- REVIEWS --------------------
async def find_review(db: AsyncSession, product_id: int, reviewer_id: int, comment: str):
    stmt = select(models.Review).where(
        models.Review.product_id == product_id,
        models.Review.reviewer_id == reviewer_id,
        models.Review.comment == comment,
    )
    return (await db.execute(stmt)).scalars().first()


async def create_review(db: AsyncSession, data: dict, commit: bool = True):
    obj = models.Review(**data)
    db.add(obj)
    if commit:
        await db.commit()
    return obj
