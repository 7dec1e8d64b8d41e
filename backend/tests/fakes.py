"""Search index doubles.

``InMemorySearchIndex`` keeps documents in dicts and evaluates the part of the
query DSL the query builder emits; responses go through the real
``parse_search_response``/``parse_bulk_response``. ``FailingSearchIndex``
raises ``SearchIndexError`` from every call, like an unreachable cluster.
``FakeRedis`` stands in for the progress store.
"""

import json
from typing import Any, Dict, List

from marketbase.errors import SearchIndexError
from marketbase.search_index import parse_bulk_response, parse_search_response


def _field(name: str) -> str:
    # "title^3" -> "title", "brand.keyword" -> "brand"
    return name.split("^")[0].split(".")[0]


def _values(doc: Dict[str, Any], field: str) -> List[Any]:
    value = doc.get(field)
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def _text_match(doc, query: str, fields) -> bool:
    needle = query.lower()
    return any(needle in str(v).lower() for f in fields for v in _values(doc, _field(f)))


def _range_match(doc, field: str, bounds: Dict[str, Any]) -> bool:
    value = doc.get(field)
    if value is None:
        return False
    checks = {
        "gte": lambda b: value >= b,
        "gt": lambda b: value > b,
        "lte": lambda b: value <= b,
        "lt": lambda b: value < b,
    }
    return all(checks[op](bound) for op, bound in bounds.items())


def _matches(doc, clause: Dict[str, Any]) -> bool:
    (kind, body), = clause.items()
    if kind == "match_all":
        return True
    if kind == "multi_match":
        return _text_match(doc, body["query"], body["fields"])
    if kind == "match":
        (field, params), = body.items()
        # suggest sub-field: whole value, lower-cased, edge n-grams
        prefix = params["query"].lower()
        return any(str(v).lower().startswith(prefix) for v in _values(doc, _field(field)))
    if kind == "terms":
        (field, wanted), = body.items()
        return bool(set(_values(doc, _field(field))) & set(wanted))
    if kind == "term":
        (field, wanted), = body.items()
        return wanted in _values(doc, _field(field))
    if kind == "range":
        (field, bounds), = body.items()
        return _range_match(doc, field, bounds)
    if kind == "bool":
        return all(_matches(doc, c) for c in body.get("must", [])) and all(
            _matches(doc, c) for c in body.get("filter", [])
        )
    raise AssertionError(f"query clause not supported by the fake: {kind}")


class InMemorySearchIndex:
    def __init__(self):
        self.indices: Dict[str, Dict[str, Any]] = {}
        self.docs: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.calls: List[tuple] = []
        self.fail_ids: set = set()
        self.bodies: List[Dict[str, Any]] = []

    # -- admin --
    async def ping(self) -> bool:
        return True

    async def health(self):
        return {"status": "green"}

    async def close(self):
        pass

    async def index_exists(self, name: str) -> bool:
        return name in self.indices

    async def create_index(self, name: str, definition: Dict[str, Any]) -> None:
        self.calls.append(("create_index", name))
        self.indices[name] = definition
        self.docs.setdefault(name, {})

    async def ensure_index(self, name: str, definition: Dict[str, Any]) -> bool:
        if await self.index_exists(name):
            return False
        await self.create_index(name, definition)
        return True

    # -- documents --
    async def index(self, index_name: str, doc_id: str, document: Dict[str, Any]) -> None:
        self.calls.append(("index", index_name, doc_id))
        self.docs.setdefault(index_name, {})[doc_id] = dict(document)

    async def update(self, index_name: str, doc_id: str, partial: Dict[str, Any]) -> None:
        self.calls.append(("update", index_name, doc_id))
        docs = self.docs.setdefault(index_name, {})
        if doc_id not in docs:
            raise SearchIndexError(f"update {index_name}/{doc_id}", "document_missing_exception")
        docs[doc_id].update(partial)

    async def delete(self, index_name: str, doc_id: str) -> None:
        self.calls.append(("delete", index_name, doc_id))
        docs = self.docs.setdefault(index_name, {})
        if doc_id not in docs:
            raise SearchIndexError(f"delete {index_name}/{doc_id}", "not_found")
        del docs[doc_id]

    def get(self, index_name: str, doc_id) -> Dict[str, Any]:
        return self.docs.get(index_name, {}).get(str(doc_id))

    def ids(self, index_name: str) -> set:
        return set(self.docs.get(index_name, {}))

    async def bulk(self, operations: List[Dict[str, Any]]):
        self.calls.append(("bulk", len(operations) // 2))
        items = []
        for action, source in zip(operations[::2], operations[1::2]):
            (op, meta), = action.items()
            doc_id = meta["_id"]
            if doc_id in self.fail_ids:
                items.append({op: {"_id": doc_id, "status": 400, "error": {"type": "mapper_parsing_exception"}}})
                continue
            self.docs.setdefault(meta["_index"], {})[doc_id] = dict(source)
            items.append({op: {"_id": doc_id, "status": 201}})
        return parse_bulk_response({"errors": any("error" in next(iter(i.values())) for i in items), "items": items})

    # -- search --
    async def search(self, index_name: str, body: Dict[str, Any]):
        self.calls.append(("search", index_name))
        self.bodies.append(body)
        docs = list(self.docs.get(index_name, {}).items())
        hits = [(doc_id, doc) for doc_id, doc in docs if _matches(doc, body.get("query", {"match_all": {}}))]

        for sort in reversed(body.get("sort", [])):
            (field, params), = sort.items()
            if field == "_score":
                continue
            hits.sort(key=lambda h: h[1].get(field) or 0, reverse=params.get("order") == "desc")

        raw: Dict[str, Any] = {"hits": {"total": {"value": len(hits), "relation": "eq"}, "hits": []}}
        start = body.get("from", 0)
        size = body.get("size", 10)
        raw["hits"]["hits"] = [
            {"_id": doc_id, "_score": 1.0, "_source": doc} for doc_id, doc in hits[start:start + size]
        ]

        aggregations = {}
        for name, agg in (body.get("aggs") or {}).items():
            terms = agg["terms"]
            counts: Dict[str, int] = {}
            for _, doc in hits:
                for value in _values(doc, _field(terms["field"])):
                    counts[value] = counts.get(value, 0) + 1
            buckets = sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))[: terms["size"]]
            aggregations[name] = {"buckets": [{"key": k, "doc_count": c} for k, c in buckets]}
        if aggregations:
            raw["aggregations"] = aggregations

        return parse_search_response(raw)


class FailingSearchIndex:
    """Every call fails the way the adapter reports an unreachable cluster."""

    def __init__(self):
        self.calls: List[tuple] = []

    async def ping(self) -> bool:
        return False

    async def close(self):
        pass

    def _fail(self, operation: str):
        self.calls.append((operation,))
        raise SearchIndexError(operation, "ConnectionError(Connection refused)")

    async def health(self):
        self._fail("cluster health")

    async def index_exists(self, name):
        self._fail(f"exists {name}")

    async def create_index(self, name, definition):
        self._fail(f"create index {name}")

    async def ensure_index(self, name, definition):
        self._fail(f"exists {name}")

    async def index(self, index_name, doc_id, document):
        self._fail(f"index {index_name}/{doc_id}")

    async def update(self, index_name, doc_id, partial):
        self._fail(f"update {index_name}/{doc_id}")

    async def delete(self, index_name, doc_id):
        self._fail(f"delete {index_name}/{doc_id}")

    async def search(self, index_name, body):
        self._fail(f"search {index_name}")

    async def bulk(self, operations):
        self._fail("bulk")


class FakeRedis:
    """The slice of ``redis.Redis`` progress reporting touches.

    ``reads`` queues values for successive ``get`` calls; once drained, ``get``
    returns what was last ``set``.
    """

    def __init__(self, reads=None):
        self.store: Dict[str, str] = {}
        self.ttl: Dict[str, int] = {}
        self.history: List[Dict[str, Any]] = []
        self.reads = list(reads or [])

    def set(self, key, value):
        self.store[key] = value
        self.history.append(json.loads(value))

    def expire(self, key, seconds):
        self.ttl[key] = seconds

    def get(self, key):
        if self.reads:
            return self.reads.pop(0)
        return self.store.get(key)

    def close(self):
        pass
