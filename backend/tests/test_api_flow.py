"""Order lifecycle against the seeded demo data: create, allocate, fulfill, ship."""


def _sku_id(client, headers, code):
    resp = client.get("/lookups/skus", params={"keyword": code}, headers=headers)
    assert resp.status_code == 200, resp.text
    items = [i for i in resp.json()["data"]["items"] if i["sku"] == code]
    assert items, f"seeded SKU {code} missing"
    return items[0]["id"]


def _lot(client, headers, lot_number):
    resp = client.get("/warehouse-inventory/", params={"keyword": lot_number}, headers=headers)
    assert resp.status_code == 200, resp.text
    rows = [r for r in resp.json()["data"] if r["lotNumber"] == lot_number]
    assert len(rows) == 1
    return rows[0]


def _confirmed_order(client, headers, sku_id, quantity):
    resp = client.post(
        "/orders/",
        json={"order_category": "sales", "items": [{"sku_id": sku_id, "quantity_ordered": quantity}]},
        headers=headers,
    )
    assert resp.status_code == 201, resp.text
    order = resp.json()["data"]
    assert order["status"] == "ORDER_PENDING"
    assert order["orderNumber"].startswith("SALES-")

    resp = client.patch(f"/orders/{order['id']}/status", json={"status": "ORDER_CONFIRMED"}, headers=headers)
    assert resp.status_code == 200, resp.text
    return order["id"]


def test_order_ships_from_earliest_expiring_lot(client, admin_headers):
    sku_id = _sku_id(client, admin_headers, "AUR-HS-30-CA")
    before = _lot(client, admin_headers, "HS30-2401")
    later_lot = _lot(client, admin_headers, "HS30-2405")
    order_id = _confirmed_order(client, admin_headers, sku_id, 10)

    resp = client.post(f"/orders/{order_id}/allocate", json={"strategy": "fefo"}, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    allocated = resp.json()["data"]
    assert allocated["status"] == "ORDER_ALLOCATED"
    assert allocated["items"][0]["allocated"] == 10

    reserved = _lot(client, admin_headers, "HS30-2401")
    assert reserved["reservedQuantity"] == before["reservedQuantity"] + 10
    assert _lot(client, admin_headers, "HS30-2405")["reservedQuantity"] == later_lot["reservedQuantity"]

    review = client.get(f"/orders/{order_id}/allocation-review", headers=admin_headers)
    assert review.status_code == 200, review.text

    resp = client.post(f"/orders/{order_id}/fulfill", json={}, headers=admin_headers)
    assert resp.status_code == 201, resp.text
    shipment = resp.json()["data"]
    shipment_id = shipment["shipment"]["id"]
    assert shipment["fulfillments"][0]["quantityFulfilled"] == 10
    assert shipment["batches"][0]["lotNumber"] == "HS30-2401"

    # completing before packing is rejected
    resp = client.post(f"/outbound-shipments/{shipment_id}/complete", json={"delivered": True}, headers=admin_headers)
    assert resp.status_code == 400

    resp = client.post(f"/outbound-shipments/{shipment_id}/confirm", headers=admin_headers)
    assert resp.status_code == 200, resp.text

    after = _lot(client, admin_headers, "HS30-2401")
    assert after["warehouseQuantity"] == before["warehouseQuantity"] - 10
    assert after["reservedQuantity"] == before["reservedQuantity"]

    resp = client.post(f"/outbound-shipments/{shipment_id}/complete", json={"delivered": True}, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["shipment"]["status"] == "SHIPMENT_DELIVERED"

    order = client.get(f"/orders/{order_id}", headers=admin_headers).json()["data"]
    assert order["status"] == "ORDER_DELIVERED"

    logs = client.get(
        "/reports/inventory-activity",
        params={"actionTypes": "fulfilled", "batchIds": after["batchId"]},
        headers=admin_headers,
    )
    assert logs.status_code == 200, logs.text
    entries = logs.json()["data"]
    assert entries
    assert entries[0]["quantityChange"] == -10
    assert entries[0]["orderNumber"] == order["orderNumber"]


def test_allocation_requires_confirmed_order(client, admin_headers):
    sku_id = _sku_id(client, admin_headers, "AUR-HS-50-CA")
    resp = client.post(
        "/orders/",
        json={"items": [{"sku_id": sku_id, "quantity_ordered": 1}]},
        headers=admin_headers,
    )
    order_id = resp.json()["data"]["id"]
    resp = client.post(f"/orders/{order_id}/allocate", json={}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["type"] == "Validation"


def test_partial_allocation_then_cancel_releases_stock(client, admin_headers):
    sku_id = _sku_id(client, admin_headers, "AUR-NRC-50-CN")
    before = _lot(client, admin_headers, "NRC-2403")
    order_id = _confirmed_order(client, admin_headers, sku_id, before["availableQuantity"] + 5)

    resp = client.post(f"/orders/{order_id}/allocate", json={"strategy": "fifo"}, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]
    assert data["status"] == "ORDER_PARTIALLY_ALLOCATED"
    assert data["items"][0]["remaining"] == 5
    assert _lot(client, admin_headers, "NRC-2403")["availableQuantity"] == 0

    # fulfillment needs a fully allocated order
    resp = client.post(f"/orders/{order_id}/fulfill", json={}, headers=admin_headers)
    assert resp.status_code == 400

    resp = client.patch(f"/orders/{order_id}/status", json={"status": "ORDER_CANCELLED"}, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    assert _lot(client, admin_headers, "NRC-2403")["reservedQuantity"] == before["reservedQuantity"]


def test_adjust_cannot_go_below_reserved(client, admin_headers):
    sku_id = _sku_id(client, admin_headers, "VN-OMG-60-CA")
    order_id = _confirmed_order(client, admin_headers, sku_id, 5)
    resp = client.post(f"/orders/{order_id}/allocate", json={}, headers=admin_headers)
    assert resp.status_code == 200, resp.text

    lot = _lot(client, admin_headers, "OMG-2404")
    resp = client.patch(
        "/warehouse-inventory/adjust",
        json={"items": [{"warehouse_inventory_id": lot["id"], "new_quantity": lot["reservedQuantity"] - 1}]},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["details"]["reservedQuantity"] == lot["reservedQuantity"]

    resp = client.patch(
        "/warehouse-inventory/adjust",
        json={"items": [{"warehouse_inventory_id": lot["id"], "new_quantity": lot["warehouseQuantity"] - 3,
                         "adjustment_type": "damaged", "comments": "crushed carton"}]},
        headers=admin_headers,
    )
    assert resp.status_code == 200, resp.text
    result = resp.json()["data"][0]
    assert result["quantityChange"] == -3
    assert len(result["checksum"]) == 64


def test_workflow_statuses_cannot_be_patched(client, admin_headers):
    sku_id = _sku_id(client, admin_headers, "AUR-HS-50-CA")
    before = _lot(client, admin_headers, "HS50-2402")
    order_id = _confirmed_order(client, admin_headers, sku_id, before["availableQuantity"] + 5)

    resp = client.post(f"/orders/{order_id}/allocate", json={}, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["status"] == "ORDER_PARTIALLY_ALLOCATED"

    for target in ("ORDER_ALLOCATED", "order_processing", "ORDER_SHIPPED", "ORDER_DELIVERED"):
        resp = client.patch(f"/orders/{order_id}/status", json={"status": target}, headers=admin_headers)
        assert resp.status_code == 400, target
        body = resp.json()
        assert body["type"] == "Validation"
        assert body["details"] == {"allowed": ["ORDER_CONFIRMED", "ORDER_CANCELLED"]}

    order = client.get(f"/orders/{order_id}", headers=admin_headers).json()["data"]
    assert order["status"] == "ORDER_PARTIALLY_ALLOCATED"
    resp = client.post(f"/orders/{order_id}/fulfill", json={}, headers=admin_headers)
    assert resp.status_code == 400

    resp = client.patch(f"/orders/{order_id}/status", json={"status": "ORDER_CANCELLED"}, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    assert _lot(client, admin_headers, "HS50-2402")["reservedQuantity"] == before["reservedQuantity"]


def test_order_with_shipment_cannot_be_cancelled(client, admin_headers):
    sku_id = _sku_id(client, admin_headers, "AUR-HS-30-CA")
    order_id = _confirmed_order(client, admin_headers, sku_id, 4)
    resp = client.post(f"/orders/{order_id}/allocate", json={"strategy": "fefo"}, headers=admin_headers)
    assert resp.status_code == 200, resp.text
    picked = _lot(client, admin_headers, "HS30-2401")

    resp = client.post(f"/orders/{order_id}/fulfill", json={}, headers=admin_headers)
    assert resp.status_code == 201, resp.text
    shipment_id = resp.json()["data"]["shipment"]["id"]

    resp = client.patch(f"/orders/{order_id}/status", json={"status": "ORDER_CANCELLED"}, headers=admin_headers)
    assert resp.status_code == 400, resp.text
    assert resp.json()["type"] == "Validation"
    assert resp.json()["details"]["shipmentId"] == shipment_id
    assert _lot(client, admin_headers, "HS30-2401")["reservedQuantity"] == picked["reservedQuantity"]

    resp = client.post(f"/outbound-shipments/{shipment_id}/confirm", headers=admin_headers)
    assert resp.status_code == 200, resp.text
    shipped = _lot(client, admin_headers, "HS30-2401")
    assert shipped["warehouseQuantity"] == picked["warehouseQuantity"] - 4

    resp = client.patch(f"/orders/{order_id}/status", json={"status": "ORDER_CANCELLED"}, headers=admin_headers)
    assert resp.status_code == 400
    order = client.get(f"/orders/{order_id}", headers=admin_headers).json()["data"]
    assert order["status"] == "ORDER_PROCESSING"
    assert _lot(client, admin_headers, "HS30-2401") == shipped
