"""Elasticsearch search index adapter.

Thin async wrapper over ``AsyncElasticsearch`` with the operations the
synchronizer, the query builder consumers and the health endpoint need.
Every client or transport failure is re-raised as ``SearchIndexError`` so the
callers deal with exactly one exception type.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any

from elasticsearch import ApiError, AsyncElasticsearch, TransportError

from .config import Settings
from .documents import AggregationBucket, BulkResult, SearchHit, SearchResponse
from .errors import SearchIndexError
from .log import get_logger

logger = get_logger(__name__)

_CLIENT_ERRORS = (ApiError, TransportError)


@contextmanager
def _translate(operation: str):
    try:
        yield
    except _CLIENT_ERRORS as exc:
        raise SearchIndexError(operation, str(exc)) from exc


def _body(response: Any) -> dict[str, Any]:
    return getattr(response, "body", response) or {}


def parse_search_response(raw: dict[str, Any]) -> SearchResponse:
    """Normalize a raw ``_search`` body into hits and ``{key, count}`` buckets."""
    hits_block = raw.get("hits", {}) or {}
    total = hits_block.get("total", 0)
    total_count = total.get("value", 0) if isinstance(total, dict) else int(total or 0)

    hits = [
        SearchHit(
            id=str(hit.get("_id", "")),
            score=hit.get("_score"),
            source=hit.get("_source", {}) or {},
            highlight=hit.get("highlight"),
        )
        for hit in hits_block.get("hits", [])
    ]

    aggregations: dict[str, list[AggregationBucket]] = {}
    for name, agg in (raw.get("aggregations") or {}).items():
        aggregations[name] = [
            AggregationBucket(key=str(bucket["key"]), count=int(bucket.get("doc_count", 0)))
            for bucket in agg.get("buckets", [])
        ]

    return SearchResponse(total=total_count, hits=hits, aggregations=aggregations)


def parse_bulk_response(raw: dict[str, Any]) -> BulkResult:
    succeeded = 0
    failures: list[dict[str, Any]] = []
    for item in raw.get("items", []):
        # each item is {"<op>": {...}}
        action, result = next(iter(item.items()))
        if result.get("error"):
            failures.append(
                {
                    "action": action,
                    "id": result.get("_id"),
                    "status": result.get("status"),
                    "error": result["error"],
                }
            )
        else:
            succeeded += 1
    return BulkResult(succeeded=succeeded, failures=failures)


class SearchIndex:
    """Async search index client shared by the whole process."""

    def __init__(self, client: AsyncElasticsearch, refresh: bool | str = False) -> None:
        self._client = client
        self._refresh = refresh

    @classmethod
    def from_settings(cls, settings: Settings) -> "SearchIndex":
        client = AsyncElasticsearch(
            settings.ELASTICSEARCH_NODE,
            request_timeout=settings.ELASTICSEARCH_REQUEST_TIMEOUT,
        )
        return cls(client)

    async def close(self) -> None:
        await self._client.close()
        logger.info("Elasticsearch client closed")

    async def ping(self) -> bool:
        try:
            return bool(await self._client.ping())
        except Exception as e:
            logger.warning(f"Elasticsearch ping failed: {e}")
            return False

    async def health(self) -> dict[str, Any]:
        with _translate("cluster health"):
            return _body(await self._client.cluster.health())

    async def index_exists(self, name: str) -> bool:
        with _translate(f"exists {name}"):
            return bool(await self._client.indices.exists(index=name))

    async def create_index(self, name: str, definition: dict[str, Any]) -> None:
        with _translate(f"create index {name}"):
            await self._client.indices.create(index=name, **definition)
        logger.info("Created index: %s", name)

    async def ensure_index(self, name: str, definition: dict[str, Any]) -> bool:
        """Create the index if missing; returns True when it was created."""
        if await self.index_exists(name):
            return False
        await self.create_index(name, definition)
        return True

    async def index(self, index_name: str, doc_id: str, document: dict[str, Any]) -> None:
        with _translate(f"index {index_name}/{doc_id}"):
            await self._client.index(index=index_name, id=doc_id, document=document, refresh=self._refresh)

    async def update(self, index_name: str, doc_id: str, partial: dict[str, Any]) -> None:
        with _translate(f"update {index_name}/{doc_id}"):
            await self._client.update(index=index_name, id=doc_id, doc=partial, refresh=self._refresh)

    async def delete(self, index_name: str, doc_id: str) -> None:
        with _translate(f"delete {index_name}/{doc_id}"):
            await self._client.delete(index=index_name, id=doc_id, refresh=self._refresh)

    async def search(self, index_name: str, body: dict[str, Any]) -> SearchResponse:
        params = dict(body)
        # the python client spells the pagination offset from_
        if "from" in params:
            params["from_"] = params.pop("from")
        with _translate(f"search {index_name}"):
            response = await self._client.search(index=index_name, **params)
        return parse_search_response(_body(response))

    async def bulk(self, operations: list[dict[str, Any]]) -> BulkResult:
        if not operations:
            return BulkResult()
        with _translate("bulk"):
            response = await self._client.bulk(operations=operations, refresh=self._refresh)
        result = parse_bulk_response(_body(response))
        logger.info("Bulk indexed %d documents (%d errors)", result.succeeded, len(result.failures))
        return result
