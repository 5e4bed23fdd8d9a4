import pytest

import inventory
from errors import ValidationFailure


@pytest.mark.parametrize("quantity,threshold,managed,current,expected", [
    (10, 5, True, None, "in_stock"),
    (5, 5, True, None, "low_stock"),
    (1, 5, True, "in_stock", "low_stock"),
    (0, 5, True, "low_stock", "out_of_stock"),
    (-3, 5, True, None, "out_of_stock"),
    (50, 5, True, "discontinued", "discontinued"),
    (0, 5, False, "in_stock", "in_stock"),
    (0, 5, False, None, "in_stock"),
])
def test_determine_status(quantity, threshold, managed, current, expected):
    assert inventory.determine_status(quantity, threshold, managed, current) == expected


def test_set_quantity_rejects_negative(db, make_product):
    make_product()
    with pytest.raises(ValidationFailure):
        inventory.set_quantity(db, "product", db["product"].find_one(), -1, "manual")


def test_adjust_endpoint(admin_client, db, make_product):
    pid = make_product(quantity=10)
    r = admin_client.post(f"/admin/inventory/{pid}/adjust",
                          json={"quantity": 4, "reason": "return", "details": "damaged box"})
    assert r.status_code == 200
    assert r.json()["product"]["inventory"]["quantity"] == 4
    assert r.json()["product"]["inventory"]["status"] == "low_stock"

    log = db["inventory_log"].find_one({"product_id": pid})
    assert log["reason"] == "return"
    assert log["details"] == "damaged box"
    assert (log["previous_quantity"], log["new_quantity"]) == (10, 4)
    assert log["admin_name"] == "admin"


def test_adjust_variant(admin_client, db, make_product, make_variant):
    pid = make_product()
    vid = make_variant(pid, "TEE-L", quantity=1)
    r = admin_client.post(f"/admin/inventory/{pid}/adjust", json={"quantity": 8, "variantId": vid})
    assert r.status_code == 200
    assert r.json()["product"]["variants"][0]["inventory"]["quantity"] == 8

    log = db["inventory_log"].find_one({"variant_id": vid})
    assert log["product_id"] == pid
    assert log["reason"] == "manual"


def test_adjust_rejects_bad_input(admin_client, make_product):
    pid = make_product()
    assert admin_client.post(f"/admin/inventory/{pid}/adjust", json={"quantity": -1}).status_code == 400
    assert admin_client.post(f"/admin/inventory/{pid}/adjust",
                             json={"quantity": 1, "reason": "theft"}).status_code == 400
    r = admin_client.post(f"/admin/inventory/{pid}/adjust",
                          json={"quantity": 1, "variantId": "0123456789abcdef01234567"})
    assert r.status_code == 404
    assert r.json()["error"] == "Variant not found"


def test_adjust_unknown_product(admin_client):
    r = admin_client.post("/admin/inventory/0123456789abcdef01234567/adjust", json={"quantity": 1})
    assert r.status_code == 404


def test_logs_endpoint_filters(admin_client, make_product):
    a, b = make_product(name="A"), make_product(name="B")
    admin_client.post(f"/admin/inventory/{a}/adjust", json={"quantity": 1})
    admin_client.post(f"/admin/inventory/{a}/adjust", json={"quantity": 2, "reason": "return"})
    admin_client.post(f"/admin/inventory/{b}/adjust", json={"quantity": 3})

    body = admin_client.get("/admin/inventory/logs").json()
    assert body["pagination"]["total"] == 3
    assert body["logs"][0]["productId"] == b

    body = admin_client.get("/admin/inventory/logs", params={"productId": a}).json()
    assert [log["newQuantity"] for log in body["logs"]] == [2, 1]

    body = admin_client.get("/admin/inventory/logs", params={"reason": "return"}).json()
    assert [log["productName"] for log in body["logs"]] == ["A"]


def test_decrement_treats_missing_inventory_as_empty(db):
    product_id = str(db["product"].insert_one({"name": "Legacy", "sku": "LEG-1"}).inserted_id)
    results = inventory.decrement_for_order(db, "o1", [{"product_id": product_id, "quantity": 2}])
    assert results == [{"productId": product_id, "success": True}]
    assert db["product"].find_one()["inventory"]["quantity"] == 0
