"""Frais de livraison (arrêts PSV) via l'API HTTP."""
import pytest

from storefront.utils.security import get_current_user, require_admin


def _seed(db):
    db.tables["psv_stages"] += [
        {"id": "stage-2", "name": "Githurai 45", "delivery_fee": 150},
        {"id": "stage-3", "name": "Kencom Annex", "delivery_fee": 250},
        {"id": "stage-4", "name": "Ruiru", "delivery_fee": 300},
    ]


@pytest.mark.asyncio
async def test_list_is_paginated_and_filtered(api, db):
    _seed(db)

    res = await api.get("/api/v1/shipping-fees", params={"page": 2, "limit": 2})
    assert res.status_code == 200
    body = res.json()
    assert (body["status"], body["page"], body["limit"], body["totalCount"]) == ("success", 2, 2, 4)
    assert [f["name"] for f in body["data"]] == ["Kencom Annex", "Ruiru"]

    body = (await api.get("/api/v1/shipping-fees", params={"location": "kencom"})).json()
    assert [f["id"] for f in body["data"]] == ["stage-1", "stage-3"]
    assert body["totalCount"] == 2


@pytest.mark.asyncio
async def test_get_single_fee(api, db):
    res = await api.get("/api/v1/shipping-fees/stage-1")
    assert res.json() == {"status": "success", "data": {"id": "stage-1", "name": "Kencom", "delivery_fee": 200}}

    res = await api.get("/api/v1/shipping-fees/nowhere")
    assert res.status_code == 404
    assert res.json() == {"status": "fail", "message": "Shipping fee not found"}


@pytest.mark.asyncio
async def test_admin_create_update_delete(api, db):
    res = await api.post("/api/v1/shipping-fees", json={"name": "Thika Road Mall", "delivery_fee": 180})
    assert res.status_code == 201, res.text
    fee = res.json()["data"]
    assert (fee["name"], fee["delivery_fee"]) == ("Thika Road Mall", 180)

    res = await api.patch(f"/api/v1/shipping-fees/{fee['id']}", json={"delivery_fee": 220})
    assert res.status_code == 200
    assert res.json()["data"] == {"id": fee["id"], "name": "Thika Road Mall", "delivery_fee": 220}

    # le checkout PSV lit le nouveau tarif: un montant calculé sur l'ancien est refusé
    db.add_cart_line("user-1", "A", 1)
    res = await api.post("/api/v1/order", json={"deliveryType": "PSV", "stageId": fee["id"], "amount": 680})
    assert res.status_code == 400
    assert res.json()["message"] == "Amount does not match cart total"

    res = await api.delete(f"/api/v1/shipping-fees/{fee['id']}")
    assert res.json() == {"status": "success", "data": None}
    assert [s["id"] for s in db.rows("psv_stages")] == ["stage-1"]

    assert (await api.delete(f"/api/v1/shipping-fees/{fee['id']}")).status_code == 404
    assert (await api.patch("/api/v1/shipping-fees/nowhere", json={"name": "X"})).status_code == 404


@pytest.mark.asyncio
async def test_create_requires_name_and_fee(api, db):
    for body in ({"name": "Ruiru"}, {"delivery_fee": 100}, {"name": "  ", "delivery_fee": 100}):
        res = await api.post("/api/v1/shipping-fees", json=body)
        assert res.status_code == 400
        assert res.json()["message"] == "Location name and delivery fees are required"

    res = await api.post("/api/v1/shipping-fees", json={"name": "Ruiru", "delivery_fee": -1})
    assert res.status_code == 400
    assert len(db.rows("psv_stages")) == 1


@pytest.mark.asyncio
async def test_writes_are_admin_only(app, api, db, user):
    app.dependency_overrides.pop(require_admin)
    app.dependency_overrides[get_current_user] = lambda: user

    res = await api.post("/api/v1/shipping-fees", json={"name": "Ruiru", "delivery_fee": 100})
    assert res.status_code == 403
    assert res.json() == {"status": "fail", "message": "Admin access required"}
    assert (await api.delete("/api/v1/shipping-fees/stage-1")).status_code == 403
    assert len(db.rows("psv_stages")) == 1

    # lecture toujours permise
    assert (await api.get("/api/v1/shipping-fees")).status_code == 200
