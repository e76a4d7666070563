"""BOMs and customers against the seeded demo data."""

from uuid import uuid4

import pytest


def _seeded_bom(client, headers):
    resp = client.get("/boms/", params={"keyword": "AUR-HS-30"}, headers=headers)
    assert resp.status_code == 200, resp.text
    rows = resp.json()["data"]
    assert len(rows) == 1
    return rows[0]


def test_bom_list_and_filters(client, admin_headers):
    row = _seeded_bom(client, admin_headers)
    assert row["bom"]["code"] == "BOM-AUR-HS-30-CA-R1"
    assert row["bom"]["isDefault"] is True
    assert row["sku"]["code"] == "AUR-HS-30-CA"
    assert row["product"]["brand"] == "Aurora"

    resp = client.get("/boms/", params={"isDefault": "false"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["data"] == []

    resp = client.get("/boms/", params={"revisionMin": 3, "revisionMax": 1}, headers=admin_headers)
    assert resp.status_code == 400
    assert resp.json()["type"] == "Validation"


def test_bom_details_cost_summary(client, admin_headers):
    bom_id = _seeded_bom(client, admin_headers)["bom"]["id"]
    resp = client.get(f"/boms/{bom_id}/details", headers=admin_headers)
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]

    assert data["header"]["bom"]["id"] == bom_id
    assert sorted(d["part"]["code"] for d in data["details"]) == ["PRT-BOX-S", "PRT-LBL-A"]
    summary = data["summary"]
    assert summary["itemCount"] == 2
    assert summary["currency"] == "CAD"
    assert summary["totalEstimatedCost"] == pytest.approx(0.585)
    # the box has a received batch cost, the label is costed at its estimate
    assert summary["totalActualCost"] == pytest.approx(0.635)

    assert client.get(f"/boms/{uuid4()}/details", headers=admin_headers).status_code == 404


def test_bom_production_summary(client, admin_headers):
    bom_id = _seeded_bom(client, admin_headers)["bom"]["id"]
    resp = client.get(f"/boms/{bom_id}/production-summary", headers=admin_headers)
    assert resp.status_code == 200, resp.text
    data = resp.json()["data"]

    assert data["bomId"] == bom_id
    meta = data["metadata"]
    assert meta["maxProducibleUnits"] == 500
    assert meta["isReadyForProduction"] is True
    assert meta["stockHealth"] == {"usable": 2000, "inactive": 0}
    assert [b["partName"] for b in meta["bottleneckParts"]] == ["Front Label"]
    assert meta["generatedAt"]

    parts = {p["partName"]: p for p in data["parts"]}
    assert parts["Retail Box (Small)"]["maxProducibleUnits"] == 1000
    assert parts["Front Label"]["materials"] == [{"materialName": "Front Label A", "availableQuantity": 1000}]


def test_bom_permissions(client, make_user):
    qa = make_user("qa")
    bom_id = _seeded_bom(client, qa)["bom"]["id"]
    assert client.get(f"/boms/{bom_id}/production-summary", headers=qa).status_code == 200
    resp = client.get(f"/boms/{bom_id}/details", headers=qa)
    assert resp.status_code == 403
    assert resp.json()["details"] == {"required": ["view_bom_details"]}
    assert client.get("/boms/", headers=make_user("sales")).status_code == 403


def test_customer_create_and_list(client, make_user):
    sales = make_user("sales")
    resp = client.post(
        "/customers/",
        json={"customers": [
            {"firstname": "Liam", "lastname": "Park", "email": "liam.park@example.com", "region": "Quebec"},
            {"firstname": "Ana", "lastname": "Silva", "phone_number": "+1-514-555-0100"},
        ]},
        headers=sales,
    )
    assert resp.status_code == 201, resp.text
    created = resp.json()["data"]
    assert [c["fullName"] for c in created] == ["Liam Park", "Ana Silva"]
    assert all(c["status"] == "active" for c in created)

    resp = client.post(
        "/customers/",
        json={"customers": [{"firstname": "Liam", "lastname": "Again", "email": "LIAM.PARK@example.com"}]},
        headers=sales,
    )
    assert resp.status_code == 409

    resp = client.post("/customers/", json={"customers": [{"firstname": " ", "lastname": "X"}]}, headers=sales)
    assert resp.status_code == 400

    resp = client.get("/customers/", params={"keyword": "park"}, headers=sales)
    assert resp.status_code == 200, resp.text
    assert [c["email"] for c in resp.json()["data"]] == ["liam.park@example.com"]

    resp = client.patch(f"/customers/{created[1]['id']}", json={"status": "inactive"}, headers=sales)
    assert resp.status_code == 200, resp.text
    listed = client.get("/customers/", params={"keyword": "silva"}, headers=sales).json()["data"]
    assert listed == []
    listed = client.get("/customers/", params={"keyword": "silva", "status": "all"}, headers=sales).json()["data"]
    assert [c["status"] for c in listed] == ["inactive"]

    assert client.get("/customers/", headers=make_user("viewer")).status_code == 403


def test_addresses_are_deduplicated(client, make_user):
    sales = make_user("sales")
    resp = client.post(
        "/customers/", json={"customers": [{"firstname": "Noor", "lastname": "Haddad"}]}, headers=sales,
    )
    customer_id = resp.json()["data"][0]["id"]
    address = {
        "customer_id": customer_id, "label": "Office", "address_line1": "1 Rue Peel",
        "city": "Montreal", "state": "QC", "postal_code": "H3C 0A1", "country": "Canada",
    }

    resp = client.post("/addresses/", json={"addresses": [address]}, headers=sales)
    assert resp.status_code == 201, resp.text
    first = resp.json()["data"][0]
    assert first["displayAddress"] == "1 Rue Peel, Montreal, QC, H3C 0A1, Canada"
    assert first["customer"]["fullName"] == "Noor Haddad"

    same = {**address, "address_line1": "1  rue peel", "label": "Work"}
    resp = client.post("/addresses/", json={"addresses": [same]}, headers=sales)
    assert resp.status_code == 201, resp.text
    assert resp.json()["data"][0]["id"] == first["id"]

    resp = client.get(f"/customers/{customer_id}/addresses", headers=sales)
    assert len(resp.json()["data"]) == 1

    resp = client.patch(f"/addresses/{first['id']}", json={"address_line2": "Suite 200"}, headers=sales)
    assert resp.status_code == 200, resp.text
    assert resp.json()["data"]["displayAddress"] == "1 Rue Peel, Suite 200, Montreal, QC, H3C 0A1, Canada"

    resp = client.post(
        "/addresses/", json={"addresses": [{**address, "customer_id": str(uuid4())}]}, headers=sales,
    )
    assert resp.status_code == 400
    assert resp.json()["type"] == "Validation"
