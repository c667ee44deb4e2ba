def test_health(client):
    assert client.get("/api/health").json() == {"status": "Server is running"}


def test_database_diagnostics(client):
    body = client.get("/test").json()
    assert body["database"] == "✅ Connected"
    assert "sitesetting" in body["collections"]


def test_unknown_route_uses_message_shape(client):
    res = client.get("/api/nothing-here")
    assert res.status_code == 404
    assert res.json() == {"message": "Not Found"}
