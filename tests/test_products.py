import pytest


NEW_PRODUCT = {
    "name": "Midnight Tee",
    "description": "Dark blue tee",
    "price": 21.5,
    "category": "Classic",
    "sizes": ["S", "M", "L"],
    "colors": ["Navy", "Black"],
    "stock": 12,
    "image": "🌙",
}


def test_public_catalog_lists_seeded_products(client):
    res = client.get("/api/products")
    assert res.status_code == 200
    products = {p["name"]: p for p in res.json()}
    assert sorted(products) == ["Classic White", "Color Bold", "Premium Comfort", "Signature Edition"]
    assert products["Classic White"]["sizes"] == ["XS", "S", "M", "L", "XL"]


def test_create_and_fetch_product(client, admin):
    res = client.post("/api/admin/products", json=NEW_PRODUCT, headers=admin["headers"])
    assert res.status_code == 201
    product_id = res.json()["productId"]

    product = client.get(f"/api/products/{product_id}").json()
    assert product["name"] == "Midnight Tee"
    assert product["colors"] == ["Navy", "Black"]
    assert product["is_active"] is True


def test_sizes_accept_json_encoded_lists(client, admin):
    body = {**NEW_PRODUCT, "sizes": '["XL", "S"]', "colors": "Red, Blue"}
    product_id = client.post("/api/admin/products", json=body, headers=admin["headers"]).json()["productId"]
    product = client.get(f"/api/products/{product_id}").json()
    assert product["sizes"] == ["XL", "S"]
    assert product["colors"] == ["Red", "Blue"]


@pytest.mark.parametrize("body", [
    {**NEW_PRODUCT, "name": ""},
    {k: v for k, v in NEW_PRODUCT.items() if k != "name"},
    {k: v for k, v in NEW_PRODUCT.items() if k != "price"},
    {**NEW_PRODUCT, "price": 0},
    {**NEW_PRODUCT, "stock": -1},
])
def test_invalid_product_leaves_catalog_unchanged(client, db, admin, body):
    before = db["product"].count_documents({})
    res = client.post("/api/admin/products", json=body, headers=admin["headers"])
    assert res.status_code == 400
    assert "message" in res.json()
    assert db["product"].count_documents({}) == before


def test_duplicate_product_name(client, db, admin):
    before = db["product"].count_documents({})
    res = client.post("/api/admin/products", json={**NEW_PRODUCT, "name": "Classic White"},
                      headers=admin["headers"])
    assert res.status_code == 400
    assert res.json() == {"message": "Product name already exists"}
    assert db["product"].count_documents({}) == before


def test_inactive_products_hidden_from_public(client, admin):
    product_id = client.post("/api/admin/products", json={**NEW_PRODUCT, "is_active": False},
                             headers=admin["headers"]).json()["productId"]

    assert "Midnight Tee" not in [p["name"] for p in client.get("/api/products").json()]
    assert client.get(f"/api/products/{product_id}").status_code == 404

    admin_names = [p["name"] for p in client.get("/api/admin/products", headers=admin["headers"]).json()]
    assert "Midnight Tee" in admin_names


def test_partial_update(client, admin):
    product_id = client.post("/api/admin/products", json=NEW_PRODUCT, headers=admin["headers"]).json()["productId"]
    res = client.put(f"/api/admin/products/{product_id}", json={"price": 25, "stock": 3},
                     headers=admin["headers"])
    assert res.status_code == 200
    product = client.get(f"/api/products/{product_id}").json()
    assert product["price"] == 25
    assert product["stock"] == 3
    assert product["name"] == "Midnight Tee"


def test_update_missing_product(client, admin):
    res = client.put("/api/admin/products/64b000000000000000000001", json={"price": 10},
                     headers=admin["headers"])
    assert res.status_code == 404
    res = client.put("/api/admin/products/not-an-id", json={"price": 10}, headers=admin["headers"])
    assert res.status_code == 404


def test_delete_product(client, admin):
    product_id = client.post("/api/admin/products", json=NEW_PRODUCT, headers=admin["headers"]).json()["productId"]
    assert client.delete(f"/api/admin/products/{product_id}", headers=admin["headers"]).status_code == 200
    assert client.get(f"/api/products/{product_id}").status_code == 404
    assert client.delete(f"/api/admin/products/{product_id}", headers=admin["headers"]).status_code == 404


def test_unknown_product_id(client):
    assert client.get("/api/products/64b000000000000000000001").status_code == 404
    assert client.get("/api/products/garbage").json() == {"message": "Product not found"}


def test_public_site_settings(client):
    settings = client.get("/api/site-settings").json()
    assert settings["hero_emoji"] == "👕"
    assert settings["shipping_icon"] == "🚚"
    assert len(settings) == 8
