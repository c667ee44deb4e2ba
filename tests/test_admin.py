import pytest

ADMIN_ROUTES = [
    ("get", "/api/admin/products", None),
    ("post", "/api/admin/products", {"name": "X", "price": 1}),
    ("put", "/api/admin/products/64b000000000000000000001", {"price": 2}),
    ("delete", "/api/admin/products/64b000000000000000000001", None),
    ("get", "/api/admin/stats", None),
    ("get", "/api/admin/users", None),
    ("delete", "/api/admin/users/64b000000000000000000001", None),
    ("get", "/api/admin/orders", None),
    ("put", "/api/admin/orders/64b000000000000000000001", {"status": "shipped"}),
    ("post", "/api/admin/make-admin/64b000000000000000000001", None),
    ("delete", "/api/admin/remove-admin/64b000000000000000000001", None),
    ("get", "/api/admin/site-settings", None),
    ("put", "/api/admin/site-settings/hero_emoji", {"value": "🔥"}),
]


@pytest.mark.parametrize("method,path,body", ADMIN_ROUTES)
def test_admin_routes_reject_customers(client, db, customer, method, path, body):
    products_before = db["product"].count_documents({})
    kwargs = {"headers": customer["headers"]}
    if body is not None:
        kwargs["json"] = body
    res = client.request(method.upper(), path, **kwargs)
    assert res.status_code == 403
    assert res.json() == {"message": "Admin access required"}
    assert db["product"].count_documents({}) == products_before


@pytest.mark.parametrize("method,path,body", ADMIN_ROUTES)
def test_admin_routes_require_token(client, method, path, body):
    kwargs = {"json": body} if body is not None else {}
    assert client.request(method.upper(), path, **kwargs).status_code == 401


def test_stats(client, admin, customer):
    client.post("/api/orders", headers=customer["headers"],
                json={"items": [{"product_name": "Color Bold", "quantity": 2, "price": 22.99}]})
    stats = client.get("/api/admin/stats", headers=admin["headers"]).json()
    assert stats == {"users": 2, "products": 4, "orders": 1, "revenue": 45.98}


def test_stats_without_orders(client, admin):
    stats = client.get("/api/admin/stats", headers=admin["headers"]).json()
    assert stats["orders"] == 0
    assert stats["revenue"] == 0


def test_list_users_hides_hashes(client, admin, customer):
    users = client.get("/api/admin/users", headers=admin["headers"]).json()
    assert {u["email"] for u in users} == {"a@x.com", "boss@shop.com"}
    assert all("password_hash" not in u for u in users)


def test_grant_and_revoke(client, admin, customer):
    res = client.post(f"/api/admin/make-admin/{customer['id']}", headers=admin["headers"])
    assert res.status_code == 201
    assert client.get("/api/admin/stats", headers=customer["headers"]).status_code == 200

    res = client.post(f"/api/admin/make-admin/{customer['id']}", headers=admin["headers"])
    assert res.status_code == 400
    assert res.json() == {"message": "User is already an admin"}

    res = client.delete(f"/api/admin/remove-admin/{customer['id']}", headers=admin["headers"])
    assert res.status_code == 200
    # the same token stops working at once
    assert client.get("/api/admin/stats", headers=customer["headers"]).status_code == 403

    res = client.delete(f"/api/admin/remove-admin/{customer['id']}", headers=admin["headers"])
    assert res.status_code == 404


def test_grant_unknown_user(client, db, admin):
    res = client.post("/api/admin/make-admin/64b000000000000000000001", headers=admin["headers"])
    assert res.status_code == 404
    assert db["admin"].count_documents({}) == 1


def test_cannot_revoke_self(client, admin):
    res = client.delete(f"/api/admin/remove-admin/{admin['id']}", headers=admin["headers"])
    assert res.status_code == 400
    assert res.json() == {"message": "Cannot remove your own admin privileges"}
    assert client.get("/api/admin/stats", headers=admin["headers"]).status_code == 200


def test_cannot_delete_self(client, db, admin):
    res = client.delete(f"/api/admin/users/{admin['id']}", headers=admin["headers"])
    assert res.status_code == 400
    assert res.json() == {"message": "Cannot delete your own account"}
    assert db["user"].count_documents({}) == 1


def test_delete_user_removes_grant_and_wishlist(client, db, admin, customer):
    client.post("/api/wishlist", json={"product_name": "Color Bold"}, headers=customer["headers"])
    client.post(f"/api/admin/make-admin/{customer['id']}", headers=admin["headers"])

    res = client.delete(f"/api/admin/users/{customer['id']}", headers=admin["headers"])
    assert res.status_code == 200
    assert db["admin"].count_documents({"user_id": customer["id"]}) == 0
    assert db["wishlist"].count_documents({}) == 0
    assert client.delete(f"/api/admin/users/{customer['id']}", headers=admin["headers"]).status_code == 404


def test_site_settings(client, admin):
    settings = client.get("/api/admin/site-settings", headers=admin["headers"]).json()
    keys = [s["key"] for s in settings]
    assert keys == sorted(keys)
    assert all(s["description"] for s in settings)

    res = client.put("/api/admin/site-settings/hero_emoji", json={"value": "https://cdn.example.org/hero.png"},
                     headers=admin["headers"])
    assert res.status_code == 200
    assert client.get("/api/site-settings").json()["hero_emoji"] == "https://cdn.example.org/hero.png"


def test_site_setting_errors(client, db, admin):
    res = client.put("/api/admin/site-settings/hero_emoji", json={}, headers=admin["headers"])
    assert res.status_code == 400
    assert res.json() == {"message": "Value is required"}

    res = client.put("/api/admin/site-settings/not_a_setting", json={"value": "x"}, headers=admin["headers"])
    assert res.status_code == 404
    assert db["sitesetting"].count_documents({"key": "not_a_setting"}) == 0
