import json

from cache import FEATURED_PRODUCTS_KEY
from conftest import add_product


def test_admin_lists_all_products(client, admin, mongo):
    add_product(mongo, "Mug")
    add_product(mongo, "Lamp", category="home")
    response = client.get("/products")
    assert response.status_code == 200
    names = sorted(p["name"] for p in response.json()["products"])
    assert names == ["Lamp", "Mug"]


def test_products_by_category_is_public(client, mongo):
    add_product(mongo, "Mug", category="kitchen")
    add_product(mongo, "Lamp", category="home")
    response = client.get("/products/category/home")
    assert response.status_code == 200
    assert [p["name"] for p in response.json()["products"]] == ["Lamp"]


def test_create_product_uploads_image(client, admin, media, mongo):
    response = client.post("/products", json={
        "name": "Kettle",
        "description": "Boils water",
        "price": 25.5,
        "category": "kitchen",
        "image": "data:image/png;base64,AAAA",
    })
    assert response.status_code == 201
    product = response.json()["product"]
    assert product["image"] == "https://cdn.test/products/img1.jpg"
    assert product["is_featured"] is False
    assert mongo["product"].count_documents({"name": "Kettle"}) == 1


def test_create_product_rejects_negative_price(client, admin):
    response = client.post("/products", json={
        "name": "Broken", "description": "x", "price": -1, "category": "kitchen",
    })
    assert response.status_code == 400


def test_featured_is_read_through_cached(client, mongo, redis_cache):
    add_product(mongo, "Mug", is_featured=True)
    add_product(mongo, "Lamp")

    first = client.get("/products/featured").json()
    assert [p["name"] for p in first] == ["Mug"]
    assert json.loads(redis_cache.get(FEATURED_PRODUCTS_KEY))[0]["name"] == "Mug"

    # the cache has no TTL, so direct database edits stay invisible
    add_product(mongo, "Chair", is_featured=True)
    second = client.get("/products/featured").json()
    assert [p["name"] for p in second] == ["Mug"]


def test_toggle_featured_repopulates_cache(client, admin, mongo, redis_cache):
    mug = add_product(mongo, "Mug", is_featured=True)
    lamp = add_product(mongo, "Lamp")
    client.get("/products/featured")

    response = client.patch(f"/products/{lamp}")
    assert response.status_code == 200
    assert response.json()["is_featured"] is True

    cached = sorted(p["name"] for p in json.loads(redis_cache.get(FEATURED_PRODUCTS_KEY)))
    assert cached == ["Lamp", "Mug"]

    client.patch(f"/products/{mug}")
    featured = client.get("/products/featured").json()
    assert [p["name"] for p in featured] == ["Lamp"]


def test_toggle_missing_product(client, admin):
    response = client.patch("/products/64b7f0000000000000000000")
    assert response.status_code == 404
    assert response.json()["message"] == "Product not found"


def test_delete_product_destroys_image(client, admin, media, mongo):
    pid = add_product(mongo, "Mug", image="https://cdn.test/products/abc123.jpg")
    response = client.delete(f"/products/{pid}")
    assert response.status_code == 200
    assert media.destroyed == ["abc123"]
    assert mongo["product"].count_documents({}) == 0


def test_delete_product_survives_image_failure(client, admin, media, mongo):
    media.fail_destroy = True
    pid = add_product(mongo, "Mug", image="https://cdn.test/products/abc123.jpg")
    response = client.delete(f"/products/{pid}")
    assert response.status_code == 200
    assert mongo["product"].count_documents({}) == 0


def test_delete_missing_product(client, admin):
    assert client.delete("/products/not-an-id").status_code == 404


def test_recommended_sample(client, mongo):
    for i in range(6):
        add_product(mongo, f"Item {i}")
    response = client.get("/products/recommended")
    assert response.status_code == 200
    items = response.json()
    assert len(items) == 4
    assert set(items[0]) == {"id", "name", "description", "price", "image"}
