"""Receipt rendering and template management."""

from storepos.services import receipt_service
from storepos.services.transaction_service import post_refund, post_sale


def _sale(store, register, cashier, product, quantity=3):
    return post_sale(
        store_id=store.id,
        register_id=register.id,
        cashier=cashier,
        payment_method="CASH",
        items=[{"product_id": product.id, "quantity": quantity}],
    )


def test_apply_template_unknown_keys_render_empty():
    text = receipt_service.apply_template("Hi {{name}} {{missing}}!", {"name": "Ann"})
    assert text == "Hi Ann !"


def test_sale_receipt_layout(store, register, milk, cashier):
    result = _sale(store, register, cashier, milk)
    lines = result.receipt_text.split("\n")

    assert lines[0] == "Demo Superstore"
    assert "*** REFUND ***" not in lines
    assert f"TC#: {result.transaction.code}" in lines
    assert "Cashier: cashier" in lines
    assert "Store: Demo Superstore (001)" in lines
    assert "Register: R1" in lines
    assert "Payment: CASH" in lines
    assert "- Whole Milk 1L x3 @ 2.99 = 8.97" in lines
    assert "Subtotal: 8.97" in lines
    assert "Tax:      0.45" in lines
    assert "Total:    9.42" in lines
    assert "Thank you for shopping with us!" in lines
    assert "Type: SALE" in lines


def test_refund_receipt_layout(store, register, milk, cashier):
    sale = _sale(store, register, cashier, milk)
    refund = post_refund(
        original_transaction_id=sale.transaction.id,
        items=[{"original_line_id": sale.lines[0].id, "quantity": 1}],
        cashier=cashier,
    )
    lines = refund.receipt_text.split("\n")

    assert "*** REFUND ***" in lines
    assert "- Whole Milk 1L x1 @ 2.99 = -2.99" in lines
    assert "Subtotal: -2.99" in lines
    assert "Tax:      -0.15" in lines
    assert "Total:    -3.14" in lines
    assert "Type: REFUND" in lines


def test_receipt_date_uses_store_timezone(db_session, store, register, milk, cashier):
    store.timezone = "Asia/Tokyo"
    db_session.commit()

    result = _sale(store, register, cashier, milk)
    ctx = receipt_service.build_context(result.transaction)
    assert ctx["date"][:10].replace("-", "") == result.transaction.code[:8]


def test_template_update_via_api(client, manager_headers, cashier_headers, store, register, milk):
    res = client.get(f"/api/stores/{store.id}/receipt-template", headers=cashier_headers)
    assert res.status_code == 200
    assert res.get_json()["template"]["options"]["show_tax_breakdown"] is True

    res = client.put(f"/api/stores/{store.id}/receipt-template", json={
        "header": "WELCOME TO {{store_code}}",
        "footer": "Served by {{cashier_name}}",
        "options": {"show_tax_breakdown": False},
    }, headers=manager_headers)
    assert res.status_code == 200

    sale = client.post("/api/transactions", json={
        "storeId": str(store.id), "registerId": str(register.id), "paymentMethod": "CARD",
        "items": [{"productId": str(milk.id), "quantity": 1}],
    }, headers=cashier_headers).get_json()

    lines = sale["receipt_text"].split("\n")
    assert lines[0] == "WELCOME TO 001"
    assert lines[-1] == "Served by cashier"
    assert not any(line.startswith("Tax:") for line in lines)


def test_template_update_requires_permission(client, cashier_headers, store):
    res = client.put(f"/api/stores/{store.id}/receipt-template",
                     json={"header": "x", "footer": "y"}, headers=cashier_headers)
    assert res.status_code == 403


def test_template_update_validation(client, manager_headers, store):
    res = client.put(f"/api/stores/{store.id}/receipt-template", json={"header": "x"},
                     headers=manager_headers)
    assert res.status_code == 400

    res = client.put("/api/stores/999/receipt-template", json={"header": "x", "footer": "y"},
                     headers=manager_headers)
    assert res.status_code == 404

