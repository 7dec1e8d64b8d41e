"""
Index settings and mappings.

The product mapping is what the query builder relies on: every facet
(category, brand, tags) is a text field with a ``keyword`` sub-field for exact
filters/aggregations and a ``suggest`` sub-field (whole value lowercased and
edge-n-grammed 1-20) for autosuggest.
"""

FACET_FIELDS = ("brand", "category", "tags")

_SUGGEST_SUBFIELD = {
    "type": "text",
    "analyzer": "suggest_analyzer",
    "search_analyzer": "search_analyzer",
}


def _facet_field():
    return {
        "type": "text",
        "fields": {
            "keyword": {"type": "keyword"},
            "suggest": dict(_SUGGEST_SUBFIELD),
        },
    }


PRODUCT_INDEX_SETTINGS = {
    "analysis": {
        "analyzer": {
            "suggest_analyzer": {
                "tokenizer": "keyword",
                "filter": ["lowercase", "edge_ngram_filter"],
            },
            "search_analyzer": {
                "tokenizer": "keyword",
                "filter": ["lowercase"],
            },
        },
        "filter": {
            "edge_ngram_filter": {
                "type": "edge_ngram",
                "min_gram": 1,
                "max_gram": 20,
            }
        },
    }
}

PRODUCT_INDEX_MAPPINGS = {
    "properties": {
        "id": {"type": "integer"},
        "title": {
            "type": "text",
            "analyzer": "standard",
            "fields": {"suggest": dict(_SUGGEST_SUBFIELD)},
        },
        "description": {"type": "text", "analyzer": "standard"},
        "category": _facet_field(),
        "brand": _facet_field(),
        "tags": _facet_field(),
        "price": {"type": "float"},
        "stock": {"type": "integer"},
        "rating": {"type": "float"},
        "availabilityStatus": {"type": "keyword"},
        "review_count": {"type": "integer"},
        "discountPercentage": {"type": "float"},
        "thumbnail": {"type": "keyword"},
        "createdAt": {"type": "date"},
        "updatedAt": {"type": "date"},
    }
}

USER_INDEX_MAPPINGS = {
    "properties": {
        "id": {"type": "keyword"},
        "email": {"type": "keyword"},
        "name": {"type": "text", "analyzer": "standard"},
        "createdAt": {"type": "date"},
        "updatedAt": {"type": "date"},
    }
}

ARTICLE_INDEX_MAPPINGS = {
    "properties": {
        "id": {"type": "keyword"},
        "title": {"type": "text", "analyzer": "standard"},
        "content": {"type": "text", "analyzer": "standard"},
        "summary": {"type": "text", "analyzer": "standard"},
        "published": {"type": "boolean"},
        "authorId": {"type": "keyword"},
        "createdAt": {"type": "date"},
        "updatedAt": {"type": "date"},
    }
}


def index_definitions(settings):
    """Map of index name -> create-index body for every index the app owns."""
    return {
        settings.PRODUCTS_INDEX: {
            "settings": PRODUCT_INDEX_SETTINGS,
            "mappings": PRODUCT_INDEX_MAPPINGS,
        },
        settings.USERS_INDEX: {"mappings": USER_INDEX_MAPPINGS},
        settings.ARTICLES_INDEX: {"mappings": ARTICLE_INDEX_MAPPINGS},
    }
