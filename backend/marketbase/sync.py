"""
Primary store -> search index propagation.

The Service Layer calls a ``SyncSink`` after every committed mutation. The
shipped sink, ``IndexSynchronizer``, writes to the search index inline and on
failure logs an ``IndexSyncError`` and returns; the primary write is never
undone and nothing is retried. Documents that miss a write stay stale until
the next ``reindex``.
"""

from abc import ABC, abstractmethod
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, Iterable, List, Optional

from . import models
from .documents import ArticleDocument, IndexDocument, ProductDocument, UserDocument
from .errors import IndexSyncError
from .log import get_logger
from .schemas import ReindexReport
from .search_index import SearchIndex

logger = get_logger(__name__)

ProgressCallback = Callable[[ReindexReport], Any]


def product_to_document(product: models.Product) -> ProductDocument:
    return ProductDocument(
        id=product.id,
        title=product.title,
        description=product.description or "",
        category=product.category.name if product.category else "",
        brand=product.brand.name if product.brand else "",
        tags=product.tag_names,
        price=product.price,
        stock=product.stock,
        rating=product.rating,
        discount_percentage=product.discount_percentage or 0,
        availability_status=product.availability_status,
        review_count=product.review_count,
        thumbnail=product.thumbnail,
        created_at=product.created_at,
        updated_at=product.updated_at,
    )


def user_to_document(user: models.User) -> UserDocument:
    return UserDocument(
        id=user.id,
        email=user.email,
        name=user.name,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def article_to_document(article: models.Article) -> ArticleDocument:
    return ArticleDocument(
        id=article.id,
        title=article.title,
        content=article.content,
        summary=article.summary,
        published=article.published,
        author_id=article.author_id,
        created_at=article.created_at,
        updated_at=article.updated_at,
    )


class SyncSink(ABC):
    """Where committed primary-store mutations are sent. Implementations must not raise."""

    @abstractmethod
    async def on_create(self, entity) -> bool:
        ...

    @abstractmethod
    async def on_update(self, entity) -> bool:
        ...

    @abstractmethod
    async def on_delete(self, entity_id) -> bool:
        ...


class IndexSynchronizer(SyncSink):
    """Best-effort inline dual write for one index.

    ``partial_fields`` switches updates from a full re-index to a partial
    ``update`` carrying only those (aliased) document fields.
    """

    def __init__(
        self,
        index: SearchIndex,
        index_name: str,
        to_document: Callable[[Any], IndexDocument],
        partial_fields: Optional[Iterable[str]] = None,
    ):
        self.index = index
        self.index_name = index_name
        self.to_document = to_document
        self.partial_fields = tuple(partial_fields) if partial_fields else None

    async def _attempt(self, operation: str, entity_id, call: Callable[[], Awaitable[Any]]) -> bool:
        try:
            await call()
            return True
        except Exception as exc:
            err = IndexSyncError(operation, self.index_name, entity_id, exc)
            logger.error(
                "Index sync failed: %s",
                err,
                extra={"operation": operation, "index": self.index_name, "entity_id": entity_id},
            )
            return False

    async def on_create(self, entity) -> bool:
        async def write():
            doc = self.to_document(entity)
            await self.index.index(self.index_name, doc.doc_id, doc.to_source())

        return await self._attempt("index", entity.id, write)

    async def on_update(self, entity) -> bool:
        async def write():
            doc = self.to_document(entity)
            if self.partial_fields is None:
                await self.index.index(self.index_name, doc.doc_id, doc.to_source())
                return
            source = doc.to_source()
            partial = {k: source[k] for k in self.partial_fields if k in source}
            await self.index.update(self.index_name, doc.doc_id, partial)

        return await self._attempt("index" if self.partial_fields is None else "update", entity.id, write)

    async def on_delete(self, entity_id) -> bool:
        return await self._attempt("delete", entity_id, lambda: self.index.delete(self.index_name, str(entity_id)))

    async def reindex(
        self,
        pages: AsyncIterator[List[Any]],
        definition: Optional[Dict[str, Any]] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> ReindexReport:
        """Rebuild the index from the primary store, one bulk request per page.

        A failed page or failed items are logged and counted; the remaining
        pages are still submitted. Documents are written with the ``index``
        op under the entity id, so running this twice leaves the same set of
        documents as running it once.
        """
        report = ReindexReport(index=self.index_name)
        if definition is not None:
            await self.index.ensure_index(self.index_name, definition)

        async for page in pages:
            operations: List[Dict[str, Any]] = []
            for entity in page:
                doc = self.to_document(entity)
                operations.append({"index": {"_index": self.index_name, "_id": doc.doc_id}})
                operations.append(doc.to_source())

            report.batches += 1
            try:
                result = await self.index.bulk(operations)
            except Exception as exc:
                logger.error("Reindex batch %d of %s failed: %s", report.batches, self.index_name, exc)
                report.failed += len(page)
                report.failures.append({"batch": report.batches, "error": str(exc)})
            else:
                report.indexed += result.succeeded
                report.failed += len(result.failures)
                for failure in result.failures:
                    logger.error(
                        "Reindex of %s/%s failed: %s", self.index_name, failure.get("id"), failure.get("error")
                    )
                report.failures.extend(result.failures)

            if progress is not None:
                progress(report)

        logger.info(
            "Reindexed %s: %d indexed, %d failed in %d batches",
            self.index_name,
            report.indexed,
            report.failed,
            report.batches,
        )
        return report


class SyncSinks:
    """The sinks of every indexed entity type, created once per process."""

    def __init__(self, products: SyncSink, users: SyncSink, articles: SyncSink):
        self.products = products
        self.users = users
        self.articles = articles

    @classmethod
    def inline(cls, index: SearchIndex, settings) -> "SyncSinks":
        return cls(
            products=IndexSynchronizer(index, settings.PRODUCTS_INDEX, product_to_document),
            users=IndexSynchronizer(index, settings.USERS_INDEX, user_to_document, partial_fields=("name", "updatedAt")),
            articles=IndexSynchronizer(
                index,
                settings.ARTICLES_INDEX,
                article_to_document,
                partial_fields=("title", "content", "summary", "published", "updatedAt"),
            ),
        )

