from uuid import uuid4


def test_health(client):
    resp = client.get("/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["data"] == {"status": "ok", "database": "up"}
    assert resp.headers["X-Trace-Id"]


def test_error_envelope_echoes_trace_id(client, admin_headers):
    resp = client.get(f"/orders/{uuid4()}", headers={**admin_headers, "X-Trace-Id": "trace-abc"})
    assert resp.status_code == 404
    assert resp.headers["X-Trace-Id"] == "trace-abc"
    assert resp.json() == {
        "success": False,
        "message": "Order not found",
        "type": "NotFound",
        "traceId": "trace-abc",
    }


def test_missing_token_is_authentication_error(client):
    resp = client.get("/orders/")
    assert resp.status_code == 401
    assert resp.json()["type"] == "Authentication"


def test_bad_credentials_rejected(client):
    resp = client.post("/auth/login", data={"username": "nobody@inventory-erp.com", "password": "wrong"})
    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_viewer_cannot_list_orders(client, make_user):
    headers = make_user("viewer")
    resp = client.get("/orders/", headers=headers)
    assert resp.status_code == 403
    body = resp.json()
    assert body["type"] == "Authorization"
    assert body["details"] == {"required": ["view_orders"]}

    # lookups are part of every role
    assert client.get("/lookups/warehouses", headers=headers).status_code == 200


def test_session_me(client, admin_headers, make_user):
    me = client.get("/session/me", headers=admin_headers).json()["data"]
    assert me["isRoot"] is True
    assert me["permissions"][0] == "root_access"

    sales = client.get("/session/me", headers=make_user("sales")).json()["data"]
    assert sales["isRoot"] is False
    assert sales["roleName"] == "sales"
    assert "create_orders" in sales["permissions"]


def test_duplicate_user_conflict(client, admin_headers, make_user):
    make_user("qa")
    resp = client.post(
        "/users/",
        json={"email": "qa.user@inventory-erp.com", "password": "Passw0rd!x", "role_name": "qa"},
        headers=admin_headers,
    )
    assert resp.status_code == 409


def test_unknown_role_rejected(client, admin_headers):
    resp = client.post(
        "/users/",
        json={"email": "ghost@inventory-erp.com", "password": "Passw0rd!x", "role_name": "ghost"},
        headers=admin_headers,
    )
    assert resp.status_code in (400, 404)
    assert resp.json()["success"] is False


def test_batch_registry_visibility(client, make_user):
    qa = make_user("qa")
    resp = client.get("/batch-registry/", params={"limit": 100}, headers=qa)
    assert resp.status_code == 200, resp.text
    types = {r["type"] for r in resp.json()["data"]}
    assert types == {"product", "packaging_material"}

    resp = client.get("/batch-registry/", params={"batchType": "packaging_material"}, headers=qa)
    assert {r["type"] for r in resp.json()["data"]} == {"packaging_material"}
    assert all("skuId" not in r for r in resp.json()["data"])

    resp = client.get("/batch-registry/", params={"batchType": "mystery"}, headers=qa)
    assert resp.status_code == 400

    resp = client.get("/batch-registry/", headers=make_user("sales"))
    assert resp.status_code == 403


def test_paginated_list_shape(client, admin_headers):
    resp = client.get(
        "/warehouse-inventory/",
        params={"page": 1, "limit": 2, "sortBy": "warehouseQuantity", "sortOrder": "desc"},
        headers=admin_headers,
    )
    assert resp.status_code == 200, resp.text
    body = resp.json()
    assert len(body["data"]) == 2
    assert body["pagination"]["page"] == 1
    assert body["pagination"]["limit"] == 2
    assert body["pagination"]["totalRecords"] >= 7
    quantities = [r["warehouseQuantity"] for r in body["data"]]
    assert quantities == sorted(quantities, reverse=True)

    resp = client.get("/warehouse-inventory/", params={"limit": 0}, headers=admin_headers)
    assert resp.status_code == 400


def test_pricing_window_needs_both_bounds(client, admin_headers):
    resp = client.get("/pricing/", params={"validFrom": "2024-01-01T00:00:00"}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["type"] == "Validation"

    resp = client.get("/pricing/", params={"currentlyValid": "true", "brand": "Aurora"}, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]
    assert all(r["brand"] == "Aurora" for r in resp.json()["data"])


def test_pricing_export(client, admin_headers):
    resp = client.get("/pricing/export", params={"format": "csv"}, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    assert resp.headers["content-type"].startswith("text/csv")
    assert "attachment" in resp.headers["content-disposition"]


def test_lookup_has_more(client, admin_headers):
    first = client.get("/lookups/skus", params={"limit": 2}, headers=admin_headers).json()["data"]
    assert len(first["items"]) == 2
    assert first["hasMore"] is True

    rest = client.get("/lookups/skus", params={"limit": 2, "offset": 2}, headers=admin_headers).json()["data"]
    assert rest["hasMore"] is False
    assert {i["id"] for i in first["items"]}.isdisjoint(i["id"] for i in rest["items"])

    resp = client.get("/lookups/skus", params={"offset": -1}, headers=admin_headers)
    assert resp.status_code == 400


def test_lookup_batches_labels(client, admin_headers):
    resp = client.get("/lookups/batches", params={"batchType": "packaging_material"}, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    items = resp.json()["data"]["items"]
    assert items
    assert all(" - " in i["label"] for i in items)
