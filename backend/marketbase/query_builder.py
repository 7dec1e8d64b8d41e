"""
Search and facet query construction.

Turns a ``ProductFilters`` object into an Elasticsearch request body and
reads search responses back into typed documents and buckets. Nothing here
performs I/O.
"""

from typing import Any, Dict, List, Optional, Type

from .documents import AggregationBucket, ArticleDocument, D, SearchResponse, SearchResult
from .mappings import FACET_FIELDS
from .schemas import ProductFilters
from .utils import suggestion_size

PRODUCT_TEXT_FIELDS = ["title^3", "description^2", "brand", "category", "tags"]
ARTICLE_TEXT_FIELDS = ["title^3", "content", "summary^2"]
USER_TEXT_FIELDS = ["name^2", "email"]

SORT_ALIASES = {
    "newest": "createdAt",
    "discount": "discountPercentage",
}


def resolve_sort_field(sort: str) -> str:
    return SORT_ALIASES.get(sort, sort)


def _range(field: str, gte=None, lte=None) -> Optional[Dict[str, Any]]:
    bounds = {}
    if gte is not None:
        bounds["gte"] = gte
    if lte is not None:
        bounds["lte"] = lte
    if not bounds:
        return None
    return {"range": {field: bounds}}


def _fuzzy_multi_match(query: str, fields: List[str]) -> Dict[str, Any]:
    return {"multi_match": {"query": query, "fields": list(fields), "fuzziness": "AUTO"}}


def build_product_filters(filters: ProductFilters) -> List[Dict[str, Any]]:
    clauses: List[Dict[str, Any]] = []

    # exact facets: OR within a facet, AND across facets
    for field, values in (("brand", filters.brands), ("category", filters.categories), ("tags", filters.tags)):
        if values:
            clauses.append({"terms": {f"{field}.keyword": list(values)}})

    for clause in (
        _range("price", filters.min_price, filters.max_price),
        _range("rating", filters.min_rating),
        _range("discountPercentage", filters.min_discount, filters.max_discount),
    ):
        if clause:
            clauses.append(clause)

    if filters.in_stock:
        clauses.append({"range": {"stock": {"gt": 0}}})

    return clauses


def build_product_sort(filters: ProductFilters) -> List[Dict[str, Any]]:
    if not filters.sort:
        return [{"_score": {"order": "desc"}}]
    order = "asc" if filters.order == "asc" else "desc"
    return [{resolve_sort_field(filters.sort): {"order": order}}]


def build_product_search(filters: ProductFilters) -> Dict[str, Any]:
    """Full faceted listing query: text relevance, filters, sort and window."""
    if filters.query:
        must = [_fuzzy_multi_match(filters.query, PRODUCT_TEXT_FIELDS)]
    else:
        must = [{"match_all": {}}]

    bool_query: Dict[str, Any] = {"must": must}
    filter_clauses = build_product_filters(filters)
    if filter_clauses:
        bool_query["filter"] = filter_clauses

    return {
        "query": {"bool": bool_query},
        "sort": build_product_sort(filters),
        "from": filters.offset,
        "size": filters.limit,
        "track_total_hits": True,
    }


def suggestion_agg_name(facet: str) -> str:
    return f"{facet}_suggestions"


def build_autosuggest(facet: str, query: str, size: Optional[int] = None) -> Dict[str, Any]:
    """Zero-hit search returning only the facet values matching ``query`` with counts."""
    if facet not in FACET_FIELDS:
        raise ValueError(f"unknown facet: {facet}")
    return {
        "size": 0,
        "query": {"match": {f"{facet}.suggest": {"query": query, "operator": "and"}}},
        "aggs": {
            suggestion_agg_name(facet): {
                "terms": {
                    "field": f"{facet}.keyword",
                    "size": suggestion_size(size),
                    "order": {"_count": "desc"},
                }
            }
        },
    }


def build_article_search(query: str, limit: int, offset: int) -> Dict[str, Any]:
    return {
        "query": {
            "bool": {
                "must": [_fuzzy_multi_match(query, ARTICLE_TEXT_FIELDS)],
                "filter": [{"term": {"published": True}}],
            }
        },
        "from": offset,
        "size": limit,
        "highlight": {
            "fields": {
                "title": {},
                "content": {"fragment_size": 150},
                "summary": {},
            }
        },
        "track_total_hits": True,
    }


def build_user_search(query: str, limit: int, offset: int) -> Dict[str, Any]:
    return {
        "query": _fuzzy_multi_match(query, USER_TEXT_FIELDS),
        "from": offset,
        "size": limit,
        "track_total_hits": True,
    }


def to_result(response: SearchResponse, document_type: Type[D]) -> SearchResult[D]:
    documents = []
    for hit in response.hits:
        doc = document_type.from_source(hit.source)
        if isinstance(doc, ArticleDocument) and hit.highlight:
            doc.highlight = hit.highlight
        documents.append(doc)
    return SearchResult[document_type](total=response.total, documents=documents)


def to_buckets(response: SearchResponse, facet: str) -> List[AggregationBucket]:
    return response.aggregations.get(suggestion_agg_name(facet), [])

