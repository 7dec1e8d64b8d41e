"""
Service layer.

Every mutation follows the same order: check referenced entities (NotFound
short-circuits before any write), write the primary store, hand the committed
entity to the sync sink, return the primary entity. Reads that need the
search index go through the FallbackCoordinator and return its SearchOutcome.
"""

from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from . import crud, models
from .config import Settings
from .documents import AggregationBucket, ArticleDocument, ProductDocument, SearchResult, UserDocument
from .errors import ConflictError, NotFoundError, ValidationError
from .fallback import FallbackCoordinator, SearchOutcome
from .log import get_logger
from .mappings import index_definitions
from .query_builder import (
    build_article_search,
    build_autosuggest,
    build_product_search,
    build_user_search,
    resolve_sort_field,
    to_buckets,
    to_result,
)
from .schemas import (
    ArticleCreate,
    ArticleUpdate,
    ProductCreate,
    ProductFilters,
    ProductUpdate,
    ReindexReport,
    UserCreate,
    UserUpdate,
)
from .search_index import SearchIndex
from .sync import (
    IndexSynchronizer,
    ProgressCallback,
    SyncSink,
    SyncSinks,
    article_to_document,
    product_to_document,
    user_to_document,
)
from .utils import MIN_SUGGEST_QUERY_LENGTH, suggestion_size

logger = get_logger(__name__)

FACET_MODELS = {
    "brand": models.Brand,
    "category": models.Category,
    "tags": models.Tag,
}

OWNER_COLUMNS = {
    models.Category: models.Product.category_id,
    models.Brand: models.Product.brand_id,
}


def _unique_names(names) -> List[str]:
    seen: Dict[str, None] = {}
    for name in names or []:
        name = name.strip()
        if name:
            seen.setdefault(name, None)
    return list(seen)


class ProductService:
    def __init__(
        self,
        db: AsyncSession,
        index: SearchIndex,
        sink: SyncSink,
        coordinator: FallbackCoordinator,
        index_name: str,
    ):
        self.db = db
        self.index = index
        self.sink = sink
        self.coordinator = coordinator
        self.index_name = index_name

    async def search(self, filters: ProductFilters) -> SearchOutcome[SearchResult[ProductDocument]]:
        async def from_index():
            response = await self.index.search(self.index_name, build_product_search(filters))
            return to_result(response, ProductDocument)

        async def from_database():
            sort_field = resolve_sort_field(filters.sort) if filters.sort else None
            items, total = await crud.search_products(self.db, filters, sort_field)
            return SearchResult[ProductDocument](total=total, documents=[product_to_document(p) for p in items])

        return await self.coordinator.run("product search", from_index, from_database)

    async def get(self, product_id: int) -> models.Product:
        product = await crud.get_product(self.db, product_id)
        if not product:
            raise NotFoundError("Product", product_id)
        return product

    async def list_by_category(self, category_name: str, limit: int, offset: int):
        return await crud.list_products_by_category(self.db, category_name, skip=offset, limit=limit)

    async def _resolve_refs(self, category_id: Optional[int], brand_id: Optional[int]):
        if category_id is not None and not await crud.get_named(self.db, models.Category, category_id):
            raise NotFoundError("Category", category_id)
        if brand_id is not None and not await crud.get_named(self.db, models.Brand, brand_id):
            raise NotFoundError("Brand", brand_id)

    async def _ensure_sku_free(self, sku: str, product_id: Optional[int] = None):
        existing = await crud.get_product_by_sku(self.db, sku)
        if existing and existing.id != product_id:
            raise ConflictError("Product", "sku", sku)

    async def _resolve_tags(self, names) -> List[models.Tag]:
        return [await crud.find_or_create(self.db, models.Tag, name) for name in _unique_names(names)]

    async def create(self, data: ProductCreate) -> models.Product:
        await self._resolve_refs(data.category_id, data.brand_id)
        await self._ensure_sku_free(data.sku)

        fields = data.model_dump(exclude={"tags"})
        tags = await self._resolve_tags(data.tags)
        try:
            product = await crud.create_product(self.db, fields, tags)
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Product", "sku", data.sku)

        await self.sink.on_create(product)
        return product

    async def update(self, product_id: int, data: ProductUpdate) -> models.Product:
        product = await self.get(product_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        tag_names = changes.pop("tags", None)

        await self._resolve_refs(changes.get("category_id"), changes.get("brand_id"))
        if "sku" in changes:
            await self._ensure_sku_free(changes["sku"], product_id)

        tags = await self._resolve_tags(tag_names) if tag_names is not None else None
        try:
            product = await crud.update_product(self.db, product, changes, tags)
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Product", "sku", changes.get("sku"))

        await self.sink.on_update(product)
        return product

    async def delete(self, product_id: int) -> None:
        if not await crud.delete_product(self.db, product_id):
            raise NotFoundError("Product", product_id)
        await self.sink.on_delete(product_id)


class CatalogService:
    """Categories, brands and tags, plus facet autosuggest."""

    def __init__(
        self,
        db: AsyncSession,
        index: SearchIndex,
        product_sink: SyncSink,
        coordinator: FallbackCoordinator,
        products_index: str,
    ):
        self.db = db
        self.index = index
        self.product_sink = product_sink
        self.coordinator = coordinator
        self.products_index = products_index

    async def list(self, model, limit: int, offset: int) -> Tuple[list, int]:
        items = await crud.list_named(self.db, model, skip=offset, limit=limit)
        return items, await crud.count_named(self.db, model)

    async def get(self, model, item_id: int):
        obj = await crud.get_named(self.db, model, item_id)
        if not obj:
            raise NotFoundError(model.__name__, item_id)
        return obj

    async def products_of(self, model, item_id: int, limit: int, offset: int):
        await self.get(model, item_id)
        return await crud.list_products_by_owner(self.db, OWNER_COLUMNS[model], item_id, skip=offset, limit=limit)

    async def suggest(self, facet: str, query: Optional[str], size: Optional[int] = None) -> SearchOutcome[List[AggregationBucket]]:
        if not query or len(query) < MIN_SUGGEST_QUERY_LENGTH:
            raise ValidationError(
                f'Query parameter "q" is required and must be at least {MIN_SUGGEST_QUERY_LENGTH} characters long'
            )
        limit = suggestion_size(size)

        async def from_index():
            response = await self.index.search(self.products_index, build_autosuggest(facet, query, limit))
            return to_buckets(response, facet)

        async def from_database():
            return await crud.suggest_named(self.db, FACET_MODELS[facet], query, limit)

        return await self.coordinator.run(f"{facet} suggest", from_index, from_database)

    # tags are the only catalog entity with their own write endpoints
    async def list_tags(self, with_count: bool = False):
        if with_count:
            return [(tag, count) for tag, count in await crud.named_with_counts(self.db, models.Tag)]
        return await crud.list_named(self.db, models.Tag)

    async def create_tag(self, name: str) -> models.Tag:
        if await crud.get_named_by_name(self.db, models.Tag, name):
            raise ConflictError("Tag", "name", name)
        try:
            return await crud.create_named(self.db, models.Tag, name)
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Tag", "name", name)

    async def update_tag(self, tag_id: int, name: str) -> models.Tag:
        tag = await self.get(models.Tag, tag_id)
        existing = await crud.get_named_by_name(self.db, models.Tag, name)
        if existing and existing.id != tag_id:
            raise ConflictError("Tag", "name", name)
        try:
            tag = await crud.rename_named(self.db, tag, name)
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("Tag", "name", name)
        await self._resync_products(await crud.list_product_ids_by_tag(self.db, tag_id))
        return tag

    async def delete_tag(self, tag_id: int) -> None:
        product_ids = await crud.list_product_ids_by_tag(self.db, tag_id)
        if not await crud.delete_tag(self.db, tag_id):
            raise NotFoundError("Tag", tag_id)
        await self._resync_products(product_ids)

    async def _resync_products(self, product_ids: List[int]) -> None:
        # tag names are denormalized into product documents
        for product_id in product_ids:
            product = await crud.get_product(self.db, product_id, refresh=True)
            if product:
                await self.product_sink.on_update(product)


class UserService:
    def __init__(
        self,
        db: AsyncSession,
        index: SearchIndex,
        sinks: SyncSinks,
        coordinator: FallbackCoordinator,
        index_name: str,
    ):
        self.db = db
        self.index = index
        self.sinks = sinks
        self.coordinator = coordinator
        self.index_name = index_name

    async def list(self, page: int, limit: int):
        return await crud.list_users(self.db, skip=(page - 1) * limit, limit=limit)

    async def get(self, user_id: int) -> models.User:
        user = await crud.get_user(self.db, user_id)
        if not user:
            raise NotFoundError("User", user_id)
        return user

    async def create(self, data: UserCreate) -> models.User:
        if await crud.get_user_by_email(self.db, data.email):
            raise ConflictError("User", "email", data.email)
        try:
            user = await crud.create_user(self.db, data.email, data.name)
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError("User", "email", data.email)
        await self.sinks.users.on_create(user)
        return user

    async def update(self, user_id: int, data: UserUpdate) -> models.User:
        user = await self.get(user_id)
        user = await crud.update_user(self.db, user, data.model_dump(exclude_unset=True, exclude_none=True))
        await self.sinks.users.on_update(user)
        return user

    async def delete(self, user_id: int) -> None:
        await self.get(user_id)
        article_ids = await crud.delete_user(self.db, user_id)
        await self.sinks.users.on_delete(user_id)
        for article_id in article_ids:
            await self.sinks.articles.on_delete(article_id)

    async def search(self, query: str, limit: int, offset: int) -> SearchOutcome[SearchResult[UserDocument]]:
        async def from_index():
            response = await self.index.search(self.index_name, build_user_search(query, limit, offset))
            return to_result(response, UserDocument)

        async def from_database():
            items, total = await crud.search_users(self.db, query, skip=offset, limit=limit)
            return SearchResult[UserDocument](total=total, documents=[user_to_document(u) for u in items])

        return await self.coordinator.run("user search", from_index, from_database)


class ArticleService:
    def __init__(
        self,
        db: AsyncSession,
        index: SearchIndex,
        sink: SyncSink,
        coordinator: FallbackCoordinator,
        index_name: str,
    ):
        self.db = db
        self.index = index
        self.sink = sink
        self.coordinator = coordinator
        self.index_name = index_name

    async def list(self, page: int, limit: int, published_only: bool = False):
        return await crud.list_articles(self.db, skip=(page - 1) * limit, limit=limit, published_only=published_only)

    async def get(self, article_id: int) -> models.Article:
        article = await crud.get_article(self.db, article_id)
        if not article:
            raise NotFoundError("Article", article_id)
        return article

    async def _require_author(self, author_id: int) -> models.User:
        author = await crud.get_user(self.db, author_id)
        if not author:
            raise NotFoundError("Author", author_id)
        return author

    async def list_by_author(self, author_id: int, page: int, limit: int):
        await self._require_author(author_id)
        return await crud.list_articles_by_author(self.db, author_id, skip=(page - 1) * limit, limit=limit)

    async def create(self, data: ArticleCreate) -> models.Article:
        await self._require_author(data.author_id)
        article = await crud.create_article(self.db, data.model_dump())
        await self.sink.on_create(article)
        return article

    async def update(self, article_id: int, data: ArticleUpdate) -> models.Article:
        article = await self.get(article_id)
        article = await crud.update_article(self.db, article, data.model_dump(exclude_unset=True, exclude_none=True))
        await self.sink.on_update(article)
        return article

    async def delete(self, article_id: int) -> None:
        if not await crud.delete_article(self.db, article_id):
            raise NotFoundError("Article", article_id)
        await self.sink.on_delete(article_id)

    async def search(self, query: str, limit: int, offset: int) -> SearchOutcome[SearchResult[ArticleDocument]]:
        async def from_index():
            response = await self.index.search(self.index_name, build_article_search(query, limit, offset))
            return to_result(response, ArticleDocument)

        async def from_database():
            items, total = await crud.search_articles(self.db, query, skip=offset, limit=limit)
            return SearchResult[ArticleDocument](total=total, documents=[article_to_document(a) for a in items])

        return await self.coordinator.run("article search", from_index, from_database)


class ReindexService:
    """Rebuilds one or all indices from the primary store."""

    ENTITIES = ("products", "users", "articles")

    def __init__(self, db: AsyncSession, index: SearchIndex, settings: Settings):
        self.db = db
        self.index = index
        self.settings = settings

    def _plan(self, entity: str):
        s = self.settings
        batch = s.REINDEX_BATCH_SIZE
        if entity == "products":
            return s.PRODUCTS_INDEX, product_to_document, crud.iter_product_pages(self.db, batch)
        if entity == "users":
            return s.USERS_INDEX, user_to_document, crud.iter_user_pages(self.db, batch)
        if entity == "articles":
            return s.ARTICLES_INDEX, article_to_document, crud.iter_article_pages(self.db, batch)
        raise ValidationError(f"Unknown entity type: {entity}")

    async def reindex(self, entity: str, progress: Optional[ProgressCallback] = None) -> ReindexReport:
        index_name, to_document, pages = self._plan(entity)
        definition = index_definitions(self.settings)[index_name]
        synchronizer = IndexSynchronizer(self.index, index_name, to_document)
        return await synchronizer.reindex(pages, definition=definition, progress=progress)

    async def reindex_all(self, progress: Optional[ProgressCallback] = None) -> List[ReindexReport]:
        return [await self.reindex(entity, progress) for entity in self.ENTITIES]
