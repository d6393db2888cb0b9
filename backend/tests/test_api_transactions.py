"""HTTP layer for posting and looking up transactions."""

import re
from decimal import Decimal

from storepos.services import inventory_service, receipt_service


def _sale_body(store, register, product, quantity=3, **extra):
    body = {
        "storeId": str(store.id),
        "registerId": str(register.id),
        "paymentMethod": "CASH",
        "items": [{"productId": str(product.id), "quantity": quantity}],
    }
    body.update(extra)
    return body


def test_post_sale(client, cashier_headers, store, register, milk):
    res = client.post("/api/transactions", json=_sale_body(store, register, milk), headers=cashier_headers)
    assert res.status_code == 201

    data = res.get_json()
    tx = data["transaction"]
    assert tx["kind"] == "SALE"
    assert isinstance(tx["id"], str)
    assert Decimal(tx["subtotal"]) == Decimal("8.97")
    assert Decimal(tx["tax_total"]) == Decimal("0.4485")
    assert Decimal(tx["total"]) == Decimal("9.4185")
    assert re.match(r"^\d{8}-001-R1-\d{4}-\d{6}$", tx["code"])
    assert tx["cashier_name"] == "cashier"

    assert len(data["items"]) == 1
    assert data["items"][0]["product_name"] == "Whole Milk 1L"
    assert "TC#: " + tx["code"] in data["receipt_text"]


def test_post_sale_requires_auth(client, store, register, milk):
    res = client.post("/api/transactions", json=_sale_body(store, register, milk))
    assert res.status_code == 401


def test_post_sale_rejects_bad_token(client, store, register, milk):
    res = client.post(
        "/api/transactions",
        json=_sale_body(store, register, milk),
        headers={"Authorization": "Bearer nope"},
    )
    assert res.status_code == 401


def test_empty_cart_error_shape(client, cashier_headers, store, register):
    res = client.post("/api/transactions", json={
        "storeId": str(store.id),
        "registerId": str(register.id),
        "paymentMethod": "CASH",
        "items": [],
    }, headers=cashier_headers)

    assert res.status_code == 400
    data = res.get_json()
    assert data["kind"] == "EmptyCart"
    assert "error" in data
    assert data["details"] == {}


def test_invalid_product_reference(client, cashier_headers, store, register, milk):
    body = _sale_body(store, register, milk)
    body["items"] = [{"productId": "9999", "quantity": 1}]
    res = client.post("/api/transactions", json=body, headers=cashier_headers)

    assert res.status_code == 400
    assert res.get_json()["kind"] == "InvalidReference"
    assert inventory_service.get_quantity(store.id, milk.id) == Decimal("100")


def test_bad_payment_method(client, cashier_headers, store, register, milk):
    res = client.post(
        "/api/transactions",
        json=_sale_body(store, register, milk, paymentMethod="GOLD"),
        headers=cashier_headers,
    )
    assert res.status_code == 400
    assert res.get_json()["kind"] == "ValidationError"


def test_insufficient_stock_is_conflict(app, client, cashier_headers, store, register, milk):
    app.config["ALLOW_NEGATIVE_INVENTORY"] = False
    res = client.post(
        "/api/transactions",
        json=_sale_body(store, register, milk, quantity=101),
        headers=cashier_headers,
    )
    assert res.status_code == 409
    assert res.get_json()["kind"] == "InsufficientStock"


def test_refund_flow(client, cashier_headers, store, register, milk):
    sale = client.post("/api/transactions", json=_sale_body(store, register, milk), headers=cashier_headers).get_json()
    sale_id = sale["transaction"]["id"]
    line_id = sale["items"][0]["id"]

    res = client.post(
        f"/api/transactions/{sale_id}/refund",
        json={"items": [{"transactionItemId": line_id, "quantity": 1}]},
        headers=cashier_headers,
    )
    assert res.status_code == 201
    refund = res.get_json()
    assert refund["transaction"]["kind"] == "REFUND"
    assert refund["transaction"]["reference_transaction_id"] == sale_id
    assert Decimal(refund["transaction"]["total"]) == Decimal("-3.1395")
    assert refund["items"][0]["refunded_line_id"] == line_id
    assert "*** REFUND ***" in refund["receipt_text"]

    detail = client.get(f"/api/transactions/{sale_id}", headers=cashier_headers).get_json()
    assert [r["id"] for r in detail["refunds"]] == [refund["transaction"]["id"]]

    assert inventory_service.get_quantity(store.id, milk.id) == Decimal("98")


def test_refund_exceeding_quantity(client, cashier_headers, store, register, milk):
    sale = client.post("/api/transactions", json=_sale_body(store, register, milk), headers=cashier_headers).get_json()
    res = client.post(
        f"/api/transactions/{sale['transaction']['id']}/refund",
        json={"items": [{"originalLineId": sale["items"][0]["id"], "quantity": 5}]},
        headers=cashier_headers,
    )
    assert res.status_code == 400
    data = res.get_json()
    assert data["kind"] == "QuantityExceeded"
    assert data["details"]["original_line_id"] == sale["items"][0]["id"]


def test_refund_unknown_transaction(client, cashier_headers):
    res = client.post(
        "/api/transactions/424242/refund",
        json={"items": [{"transactionItemId": "1", "quantity": 1}]},
        headers=cashier_headers,
    )
    assert res.status_code == 404
    assert res.get_json()["kind"] == "NotFound"


def test_lookup_by_code_and_receipt(client, cashier_headers, store, register, milk):
    sale = client.post("/api/transactions", json=_sale_body(store, register, milk), headers=cashier_headers).get_json()
    code = sale["transaction"]["code"]

    res = client.get(f"/api/transactions/by-code/{code}", headers=cashier_headers)
    assert res.status_code == 200
    found = res.get_json()
    assert found["transaction"]["id"] == sale["transaction"]["id"]
    assert [i["id"] for i in found["items"]] == [i["id"] for i in sale["items"]]

    res = client.get(f"/api/transactions/{sale['transaction']['id']}/receipt", headers=cashier_headers)
    assert res.status_code == 200
    assert res.get_json()["receipt_text"] == sale["receipt_text"]


def test_lookup_unknown_code(client, cashier_headers):
    res = client.get("/api/transactions/by-code/20240101-001-R1-0000-000999", headers=cashier_headers)
    assert res.status_code == 404


def test_refund_with_original_id_in_body(client, cashier_headers, store, register, milk):
    sale = client.post("/api/transactions", json=_sale_body(store, register, milk), headers=cashier_headers).get_json()
    res = client.post(
        "/api/transactions/refund",
        json={
            "originalTransactionId": sale["transaction"]["id"],
            "items": [{"transactionItemId": sale["items"][0]["id"], "quantity": 2}],
        },
        headers=cashier_headers,
    )
    assert res.status_code == 201
    assert res.get_json()["transaction"]["reference_transaction_id"] == sale["transaction"]["id"]
    assert inventory_service.get_quantity(store.id, milk.id) == Decimal("99")


def test_huge_quantity_is_rejected_not_crashed(client, cashier_headers, store, register, milk):
    res = client.post("/api/transactions", json=_sale_body(store, register, milk, quantity="1e30"),
                      headers=cashier_headers)
    assert res.status_code == 400
    assert res.get_json()["kind"] == "InvalidReference"


def test_receipt_failure_still_returns_created(client, cashier_headers, store, register, milk, monkeypatch):
    def broken_render(tx, lines=None):
        raise RuntimeError("renderer down")

    monkeypatch.setattr(receipt_service, "render_receipt", broken_render)
    res = client.post("/api/transactions", json=_sale_body(store, register, milk), headers=cashier_headers)

    assert res.status_code == 201
    data = res.get_json()
    assert data["receipt_text"] == ""
    assert data["transaction"]["code"]
    assert inventory_service.get_quantity(store.id, milk.id) == Decimal("97")
