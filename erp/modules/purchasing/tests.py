"""
Tests para compras: proveedores, órdenes de compra, recepciones y devoluciones
"""

import pytest
from decimal import Decimal


@pytest.fixture
def vendor(client, auth_headers):
    response = client.post("/api/vendors", json={
        "name": "Kenya Paper Mills",
        "contact_person": "Otieno",
        "phone": "0722000111",
        "tax_id": "p000111222q",
        "payment_terms": 45
    }, headers=auth_headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def purchase_order(client, auth_headers, vendor, warehouse, product):
    response = client.post("/api/purchase-orders", json={
        "vendor_id": vendor["id"],
        "items": [{"product_id": product["id"], "quantity": "20"}]
    }, headers=auth_headers)
    assert response.status_code == 201, response.text
    order = response.json()
    sent = client.post(f"/api/purchase-orders/{order['id']}/send", headers=auth_headers)
    assert sent.status_code == 200
    return sent.json()


def stock_of(client, auth_headers, product_id):
    summary = client.get(f"/api/stock/product/{product_id}/summary", headers=auth_headers).json()
    return Decimal(summary["total_quantity"])


class TestVendorAPI:

    def test_create_vendor_assigns_number(self, client, auth_headers, vendor):
        assert vendor["vendor_number"] == "VEN-003000"
        assert vendor["phone"] == "+254722000111"
        assert vendor["tax_id"] == "P000111222Q"
        assert vendor["country"] == "Kenya"
        assert vendor["preferred_currency"] == "KES"

        second = client.post("/api/vendors", json={"name": "Mombasa Inks"}, headers=auth_headers).json()
        assert second["vendor_number"] == "VEN-003001"

    def test_vendor_requires_name(self, client, auth_headers):
        response = client.post("/api/vendors", json={"contact_person": "Sin nombre"}, headers=auth_headers)
        assert response.status_code == 400

    def test_soft_delete_vendor(self, client, auth_headers, vendor, product):
        assert client.delete(f"/api/vendors/{vendor['id']}", headers=auth_headers).status_code == 200
        assert client.get(f"/api/vendors/{vendor['id']}", headers=auth_headers).status_code == 404
        listed = client.get("/api/vendors", params={"include_inactive": "true"}, headers=auth_headers).json()
        assert listed["items"][0]["status"] == "inactive"

        order = client.post("/api/purchase-orders", json={
            "vendor_id": vendor["id"],
            "items": [{"product_id": product["id"], "quantity": "1"}]
        }, headers=auth_headers)
        assert order.status_code == 400

        restored = client.post(f"/api/vendors/{vendor['id']}/restore", headers=auth_headers)
        assert restored.json()["status"] == "active"


class TestPurchaseOrderAPI:

    def test_purchase_order_uses_cost_price(self, client, auth_headers, purchase_order):
        assert purchase_order["po_number"] == "PO-002000"
        assert purchase_order["status"] == "sent"
        item = purchase_order["items"][0]
        assert Decimal(item["unit_price"]) == Decimal("450")
        assert Decimal(purchase_order["subtotal"]) == Decimal("9000")
        assert Decimal(purchase_order["tax_amount"]) == Decimal("1440")
        assert Decimal(purchase_order["total_amount"]) == Decimal("10440")

    def test_sent_order_is_locked(self, client, auth_headers, purchase_order):
        response = client.put(f"/api/purchase-orders/{purchase_order['id']}", json={"notes": "x"},
                              headers=auth_headers)
        assert response.status_code == 400
        assert client.delete(f"/api/purchase-orders/{purchase_order['id']}", headers=auth_headers).status_code == 400
        assert client.post(f"/api/purchase-orders/{purchase_order['id']}/send", headers=auth_headers).status_code == 400

        confirmed = client.post(f"/api/purchase-orders/{purchase_order['id']}/confirm", headers=auth_headers)
        assert confirmed.json()["status"] == "confirmed"

    def test_draft_order_cannot_be_received(self, client, auth_headers, vendor, warehouse, product):
        order = client.post("/api/purchase-orders", json={
            "vendor_id": vendor["id"],
            "items": [{"product_id": product["id"], "quantity": "5"}]
        }, headers=auth_headers).json()
        response = client.post("/api/goods-receiving", json={"purchase_order_id": order["id"]},
                               headers=auth_headers)
        assert response.status_code == 400


class TestGoodsReceivingAPI:

    def test_partial_then_full_receipt(self, client, auth_headers, purchase_order, product):
        line_id = purchase_order["items"][0]["id"]

        first = client.post("/api/goods-receiving", json={
            "purchase_order_id": purchase_order["id"],
            "delivery_note_number": "KPM-5521",
            "items": [{
                "purchase_order_item_id": line_id,
                "received_quantity": "12",
                "rejected_quantity": "2",
                "rejection_reason": "Cajas mojadas"
            }]
        }, headers=auth_headers)
        assert first.status_code == 201
        grn = first.json()
        assert grn["grn_number"] == "GRV-004000"
        assert Decimal(grn["items"][0]["accepted_quantity"]) == Decimal("10")
        assert Decimal(grn["total_value"]) == Decimal("4500")
        assert stock_of(client, auth_headers, product["id"]) == Decimal("10")

        order = client.get(f"/api/purchase-orders/{purchase_order['id']}", headers=auth_headers).json()
        assert order["status"] == "partially_received"
        assert Decimal(order["items"][0]["received_quantity"]) == Decimal("10")

        over = client.post("/api/goods-receiving", json={
            "purchase_order_id": purchase_order["id"],
            "items": [{"purchase_order_item_id": line_id, "received_quantity": "15"}]
        }, headers=auth_headers)
        assert over.status_code == 400

        rest = client.post("/api/goods-receiving", json={"purchase_order_id": purchase_order["id"]},
                           headers=auth_headers)
        assert rest.status_code == 201
        assert rest.json()["grn_number"] == "GRV-004001"
        assert stock_of(client, auth_headers, product["id"]) == Decimal("20")

        order = client.get(f"/api/purchase-orders/{purchase_order['id']}", headers=auth_headers).json()
        assert order["status"] == "received"
        assert client.post(f"/api/purchase-orders/{purchase_order['id']}/cancel",
                           headers=auth_headers).status_code == 400

    def test_rejected_cannot_exceed_received(self, client, auth_headers, purchase_order):
        response = client.post("/api/goods-receiving", json={
            "purchase_order_id": purchase_order["id"],
            "items": [{
                "purchase_order_item_id": purchase_order["items"][0]["id"],
                "received_quantity": "2",
                "rejected_quantity": "3"
            }]
        }, headers=auth_headers)
        assert response.status_code == 400

    def test_repeated_order_line_cannot_over_receive(self, client, auth_headers, purchase_order, product):
        line_id = purchase_order["items"][0]["id"]
        response = client.post("/api/goods-receiving", json={
            "purchase_order_id": purchase_order["id"],
            "items": [
                {"purchase_order_item_id": line_id, "received_quantity": "15"},
                {"purchase_order_item_id": line_id, "received_quantity": "15"}
            ]
        }, headers=auth_headers)
        assert response.status_code == 400
        assert stock_of(client, auth_headers, product["id"]) == Decimal("0")

        order = client.get(f"/api/purchase-orders/{purchase_order['id']}", headers=auth_headers).json()
        assert Decimal(order["items"][0]["received_quantity"]) == Decimal("0")
        assert order["status"] == "sent"


class TestPurchaseReturnAPI:

    def test_return_against_grn(self, client, auth_headers, vendor, purchase_order, product):
        grn = client.post("/api/goods-receiving", json={
            "purchase_order_id": purchase_order["id"],
            "items": [{"purchase_order_item_id": purchase_order["items"][0]["id"], "received_quantity": "10"}]
        }, headers=auth_headers).json()

        response = client.post("/api/purchase-returns", json={
            "vendor_id": vendor["id"],
            "grn_id": grn["id"],
            "reason": "Gramaje incorrecto",
            "items": [{"product_id": product["id"], "quantity": "3"}]
        }, headers=auth_headers)
        assert response.status_code == 201
        data = response.json()
        assert data["return_number"] == "PR-013000"
        assert data["warehouse_id"] == grn["warehouse_id"]
        assert Decimal(data["total_value"]) == Decimal("1350")
        assert stock_of(client, auth_headers, product["id"]) == Decimal("7")

        over = client.post("/api/purchase-returns", json={
            "vendor_id": vendor["id"],
            "grn_id": grn["id"],
            "reason": "Otra vez",
            "items": [{"product_id": product["id"], "quantity": "8"}]
        }, headers=auth_headers)
        assert over.status_code == 400

    def test_return_without_stock_fails(self, client, auth_headers, vendor, warehouse, product):
        response = client.post("/api/purchase-returns", json={
            "vendor_id": vendor["id"],
            "reason": "Defectuoso",
            "items": [{"product_id": product["id"], "quantity": "1"}]
        }, headers=auth_headers)
        assert response.status_code == 400
        assert "Stock insuficiente" in response.json()["detail"]

    def test_repeated_return_lines_cannot_exceed_accepted(self, client, auth_headers, vendor, purchase_order, product):
        grn = client.post("/api/goods-receiving", json={
            "purchase_order_id": purchase_order["id"],
            "items": [{"purchase_order_item_id": purchase_order["items"][0]["id"], "received_quantity": "5"}]
        }, headers=auth_headers).json()

        response = client.post("/api/purchase-returns", json={
            "vendor_id": vendor["id"],
            "grn_id": grn["id"],
            "reason": "Gramaje incorrecto",
            "items": [
                {"product_id": product["id"], "quantity": "4"},
                {"product_id": product["id"], "quantity": "4"}
            ]
        }, headers=auth_headers)
        assert response.status_code == 400
        assert stock_of(client, auth_headers, product["id"]) == Decimal("5")
