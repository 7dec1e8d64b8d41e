from factories import CATALOG


def _ids(client, name, path):
    body = client.get(f"/api/{path}").json()
    return {item["name"]: item["id"] for item in body[name]}


def _new_product(client, **overrides):
    categories = _ids(client, "categories", "categories")
    brands = _ids(client, "brands", "brands")
    payload = {
        "sku": "NEW-1",
        "title": "Pixel 9",
        "description": "Google phone",
        "price": 100.0,
        "discount_percentage": 20.0,
        "stock": 5,
        "category_id": categories["smartphones"],
        "brand_id": brands["Samsung"],
        "tags": ["mobile"],
    }
    payload.update(overrides)
    return client.post("/api/products", json=payload)


# -------------------- HEALTH --------------------
def test_health_reports_both_backends(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["data"]["services"] == {"database": "healthy", "elasticsearch": "healthy"}


def test_health_stays_up_without_the_index(degraded_client):
    body = degraded_client.get("/api/health").json()
    assert body["data"]["status"] == "healthy"
    assert body["data"]["services"]["elasticsearch"] == "unhealthy"


# -------------------- PRODUCTS --------------------
def test_listing_envelope(seeded_client):
    response = seeded_client.get("/api/products", params={"brand": ["Apple"], "page": 1, "limit": 1})
    assert response.status_code == 200
    body = response.json()
    assert body["meta"] == {"page_no": 1, "page_size": 1, "total": 2}
    assert body["filters"] == {"brands": ["Apple"], "categories": [], "tags": []}
    assert len(body["products"]) == 1
    assert body["products"][0]["brand"] == "Apple"


def test_listing_clamps_page_size(seeded_client):
    body = seeded_client.get("/api/products", params={"limit": 1000}).json()
    assert body["meta"]["page_size"] == 100
    assert body["meta"]["total"] == len(CATALOG)


def test_listing_falls_back_to_database(degraded_client):
    response = degraded_client.get("/api/products", params={"q": "phone", "in_stock": "true"})
    assert response.status_code == 200
    products = response.json()["products"]
    assert [p["title"] for p in products] == ["Galaxy Phone"]


def test_discount_filters_over_http(seeded_client):
    with_mascara = seeded_client.get("/api/products", params={"min_discount": 10}).json()["products"]
    without = seeded_client.get("/api/products", params={"min_discount": 25}).json()["products"]
    assert "Essence Mascara" in {p["title"] for p in with_mascara}
    assert without == []


def test_product_crud(seeded_client):
    created = _new_product(seeded_client)
    assert created.status_code == 201
    product = created.json()["data"]
    assert product["discounted_price"] == 80.0
    assert product["tags"] == ["mobile"]

    fetched = seeded_client.get(f"/api/products/{product['id']}")
    assert fetched.json()["data"]["sku"] == "NEW-1"

    updated = seeded_client.put(f"/api/products/{product['id']}", json={"price": 50.0})
    assert updated.status_code == 200
    assert updated.json()["data"]["discounted_price"] == 40.0

    assert seeded_client.delete(f"/api/products/{product['id']}").status_code == 200
    missing = seeded_client.get(f"/api/products/{product['id']}")
    assert missing.status_code == 404
    assert missing.json() == {
        "success": False,
        "error": "Not Found",
        "message": f"Product with ID {product['id']} not found",
    }


def test_duplicate_sku_conflicts(seeded_client):
    response = _new_product(seeded_client, sku="phn-1")
    assert response.status_code == 409
    assert response.json()["error"] == "Conflict"


def test_unknown_category_is_not_found(seeded_client):
    response = _new_product(seeded_client, category_id=9999)
    assert response.status_code == 404


def test_invalid_payload_is_a_400(seeded_client):
    response = seeded_client.post("/api/products", json={"sku": "X"})
    assert response.status_code == 400
    assert response.json()["success"] is False


def test_products_by_category_name(seeded_client):
    body = seeded_client.get("/api/products/category/smartphones").json()
    assert body["meta"]["total"] == 2
    assert {p["sku"] for p in body["products"]} == {"PHN-1", "PHN-2"}


# -------------------- CATALOG --------------------
def test_category_listing_and_products(seeded_client):
    categories = _ids(seeded_client, "categories", "categories")
    body = seeded_client.get(f"/api/categories/{categories['laptops']}/products").json()
    assert [p["sku"] for p in body["products"]] == ["LAP-1"]
    assert seeded_client.get("/api/categories/9999").status_code == 404


def test_suggest_requires_three_characters(seeded_client):
    response = seeded_client.get("/api/brands/suggest", params={"q": "ap"})
    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Bad Request"
    assert "at least 3 characters" in body["message"]


def test_suggest_returns_counts(seeded_client):
    body = seeded_client.get("/api/brands/suggest", params={"q": "app"}).json()
    assert body == {"query": "app", "suggestions": [{"text": "Apple", "count": 2}]}


def test_suggest_size_is_capped(seeded_client, search_index):
    response = seeded_client.get("/api/tags/suggest", params={"q": "mob", "size": 1000})
    assert response.status_code == 200
    assert search_index.bodies[-1]["aggs"]["tags_suggestions"]["terms"]["size"] == 50


def test_suggest_degrades_to_database(degraded_client):
    body = degraded_client.get("/api/categories/suggest", params={"q": "smart", "size": 1000}).json()
    assert body["suggestions"] == [{"text": "smartphones", "count": 2}]


def test_tag_crud_resyncs_products(seeded_client, search_index, settings):
    tags = {t["name"]: t["id"] for t in seeded_client.get("/api/tags").json()["data"]}

    assert seeded_client.post("/api/tags", json={"name": "ios"}).status_code == 409
    assert seeded_client.put(f"/api/tags/{tags['ios']}", json={"name": "mobile"}).status_code == 409

    renamed = seeded_client.put(f"/api/tags/{tags['ios']}", json={"name": "apple-os"})
    assert renamed.json()["data"]["name"] == "apple-os"
    indexed_tags = [doc["tags"] for doc in search_index.docs[settings.PRODUCTS_INDEX].values()]
    assert sum("apple-os" in t for t in indexed_tags) == 2
    assert not any("ios" in t for t in indexed_tags)

    counted = seeded_client.get("/api/tags", params={"withCount": "true"}).json()["data"]
    assert {t["name"]: t["product_count"] for t in counted}["apple-os"] == 2

    assert seeded_client.delete(f"/api/tags/{tags['ios']}").status_code == 200
    assert seeded_client.get(f"/api/tags/{tags['ios']}").status_code == 404


# -------------------- USERS / ARTICLES / SEARCH --------------------
def test_user_and_article_flow(client):
    user = client.post("/api/users", json={"email": "jane@example.com", "name": "Jane"})
    assert user.status_code == 201
    user_id = user.json()["data"]["id"]
    assert client.post("/api/users", json={"email": "jane@example.com", "name": "Other"}).status_code == 409

    article = client.post(
        "/api/articles",
        json={"title": "Async Python", "content": "Event loops", "published": True, "author_id": user_id},
    )
    assert article.status_code == 201
    draft = client.post(
        "/api/articles",
        json={"title": "Async drafts", "content": "Not yet", "published": False, "author_id": user_id},
    )
    assert draft.status_code == 201

    assert client.post("/api/articles", json={"title": "x", "content": "y", "author_id": 999}).status_code == 404
    assert client.get("/api/articles/author/999").status_code == 404

    by_author = client.get(f"/api/articles/author/{user_id}").json()["data"]
    assert by_author["total"] == 2
    published = client.get("/api/articles", params={"published": "true"}).json()["data"]
    assert [a["title"] for a in published["articles"]] == ["Async Python"]

    found = client.get("/api/search", params={"q": "async", "type": "articles"}).json()["data"]
    assert [a["title"] for a in found["data"]] == ["Async Python"]

    both = client.get("/api/search", params={"q": "jane", "limit": 5}).json()["data"]
    assert both["users"]["limit"] == 2
    assert both["articles"]["limit"] == 3
    assert both["users"]["data"][0]["email"] == "jane@example.com"

    assert client.delete(f"/api/users/{user_id}").status_code == 200
    assert client.get(f"/api/articles/{article.json()['data']['id']}").status_code == 404


def test_search_requires_query(client):
    response = client.get("/api/search")
    assert response.status_code == 400
    assert response.json()["message"] == "Search query is required"


def test_inline_reindex_reports(seeded_client):
    response = seeded_client.post("/api/admin/reindex", params={"entity": "products", "wait": "true"})
    assert response.status_code == 200
    report = response.json()["data"][0]
    assert report["index"] == "products"
    assert report["indexed"] == len(CATALOG)
    assert report["failed"] == 0


def test_health_includes_cluster_status(client):
    assert client.get("/api/health").json()["data"]["elasticsearch_cluster"] == "green"


def test_search_clamps_negative_limit(degraded_client):
    response = degraded_client.get("/api/search", params={"q": "x", "type": "users", "limit": -5})
    assert response.status_code == 200
    assert response.json()["data"]["limit"] == 1


# -------------------- INDEX OUTAGE --------------------
def test_content_writes_and_search_without_the_index(degraded_client):
    client = degraded_client
    user = client.post("/api/users", json={"email": "ada@example.com", "name": "Ada Lovelace"})
    assert user.status_code == 201
    user_id = user.json()["data"]["id"]

    renamed = client.put(f"/api/users/{user_id}", json={"name": "Ada King"})
    assert renamed.status_code == 200
    assert renamed.json()["data"]["name"] == "Ada King"

    published = client.post(
        "/api/articles",
        json={"title": "Analytical Engines", "content": "Notes on the engine", "published": True, "author_id": user_id},
    )
    draft = client.post("/api/articles", json={"title": "Engine drafts", "content": "Unfinished", "author_id": user_id})
    assert published.status_code == 201
    assert draft.status_code == 201
    article_id = published.json()["data"]["id"]

    edited = client.put(f"/api/articles/{article_id}", json={"summary": "Bernoulli numbers"})
    assert edited.status_code == 200
    assert edited.json()["data"]["summary"] == "Bernoulli numbers"

    articles = client.get("/api/search", params={"q": "ENGINE", "type": "articles"}).json()["data"]
    assert articles["total"] == 1
    assert [a["title"] for a in articles["data"]] == ["Analytical Engines"]
    by_summary = client.get("/api/search", params={"q": "bernoulli", "type": "articles"}).json()["data"]
    assert by_summary["total"] == 1

    users = client.get("/api/search", params={"q": "ada k", "type": "users"}).json()["data"]
    assert [u["email"] for u in users["data"]] == ["ada@example.com"]

    assert client.delete(f"/api/articles/{article_id}").status_code == 200
    assert client.get("/api/search", params={"q": "engine", "type": "articles"}).json()["data"]["total"] == 0

    assert client.delete(f"/api/users/{user_id}").status_code == 200
    assert client.get(f"/api/users/{user_id}").status_code == 404
    assert client.get("/api/search", params={"q": "ada", "type": "users"}).json()["data"]["total"] == 0


def test_deleted_product_drops_out_of_degraded_listing(degraded_client):
    before = degraded_client.get("/api/products", params={"q": "Galaxy Phone"}).json()["products"]
    assert [p["title"] for p in before] == ["Galaxy Phone"]

    assert degraded_client.delete(f"/api/products/{before[0]['id']}").status_code == 200

    after = degraded_client.get("/api/products", params={"q": "Galaxy Phone"}).json()
    assert after["products"] == []
    assert after["meta"]["total"] == 0
