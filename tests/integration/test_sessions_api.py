import re

STOREFRONT = {"Origin": "https://rthree.io"}


def test_create_session_returns_tokens(client):
    r = client.post("/api/checkout/session", json={"cartToken": "cart-abc", "cartTotal": 60}, headers=STOREFRONT)
    assert r.status_code == 200
    data = r.json()
    assert data["success"] is True
    assert re.match(r"^[a-f0-9]{64}$", data["sessionToken"])
    assert re.match(r"^[a-f0-9]{32}$", data["csrfToken"])
    assert data["expiresIn"] == 1800
    assert r.headers["Cache-Control"].startswith("no-store")


def test_create_session_requires_cart_token(client):
    r = client.post("/api/checkout/session", json={"cartTotal": 10}, headers=STOREFRONT)
    assert r.status_code == 400
    assert r.json() == {"error": "Missing cart token"}


def test_create_session_rejects_non_json_body(client):
    r = client.post("/api/checkout/session", content="cartToken=abc", headers={**STOREFRONT, "Content-Type": "text/plain"})
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid JSON body"}


def test_create_session_rejects_negative_total(client):
    r = client.post("/api/checkout/session", json={"cartToken": "c", "cartTotal": -5}, headers=STOREFRONT)
    assert r.status_code == 400
    assert r.json() == {"error": "Invalid cart total"}


def test_create_session_rejects_unknown_origin(client):
    r = client.post("/api/checkout/session", json={"cartToken": "c"}, headers={"Origin": "https://evil.example.com"})
    assert r.status_code == 403
    assert r.json() == {"error": "Unauthorized domain"}


def test_create_session_falls_back_to_referer(client):
    r = client.post("/api/checkout/session", json={"cartToken": "c"}, headers={"Referer": "https://www.rthree.io/cart"})
    assert r.status_code == 200


def test_csrf_endpoint_requires_session(client, open_session):
    data, headers = open_session(client)
    r = client.get("/api/checkout/csrf", headers={"Authorization": headers["Authorization"]})
    assert r.status_code == 200
    assert r.json() == {"csrfToken": data["csrfToken"]}

    r = client.get("/api/checkout/csrf")
    assert r.status_code == 401
    assert r.json() == {"error": "No session found"}

    r = client.get("/api/checkout/csrf", headers={"Authorization": "Bearer " + "0" * 64})
    assert r.status_code == 401
    assert r.json() == {"error": "Invalid or expired session"}


def test_logout_requires_csrf_then_destroys_session(client, open_session):
    _, headers = open_session(client)
    without_csrf = {k: v for k, v in headers.items() if k != "X-CSRF-Token"}

    r = client.post("/api/checkout/logout", headers=without_csrf)
    assert r.status_code == 403

    r = client.post("/api/checkout/logout", headers=headers)
    assert r.status_code == 200
    assert r.json() == {"success": True}

    r = client.get("/api/checkout/csrf", headers=headers)
    assert r.status_code == 401


def test_cors_preflight_for_storefront(client):
    r = client.options(
        "/api/checkout/session",
        headers={"Origin": "https://rthree.io", "Access-Control-Request-Method": "POST"},
    )
    assert r.headers.get("access-control-allow-origin") == "https://rthree.io"

    r = client.options(
        "/api/checkout/session",
        headers={"Origin": "https://evil.example.com", "Access-Control-Request-Method": "POST"},
    )
    assert "access-control-allow-origin" not in r.headers
