"""
Tests para documentos de venta

- Totales de línea calculados en el servidor
- Cotización → orden de venta → factura
- Notas de entrega (descuentan stock) y devoluciones (reingresan stock)
"""

import pytest
from decimal import Decimal
from datetime import date, timedelta


@pytest.fixture
def customer(client, auth_headers):
    response = client.post("/api/customers", json={
        "customer_type": "business",
        "company_name": "Mombasa Traders",
        "email": "info@mombasatraders.co.ke"
    }, headers=auth_headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def sales_order(client, auth_headers, customer, stocked_product):
    response = client.post("/api/sales-orders", json={
        "customer_id": customer["id"],
        "items": [{"product_id": stocked_product["id"], "quantity": "10"}]
    }, headers=auth_headers)
    assert response.status_code == 201, response.text
    order = response.json()
    confirmed = client.post(f"/api/sales-orders/{order['id']}/confirm", headers=auth_headers)
    assert confirmed.status_code == 200
    return confirmed.json()


def stock_of(client, auth_headers, product_id):
    summary = client.get(f"/api/stock/product/{product_id}/summary", headers=auth_headers).json()
    return Decimal(summary["total_quantity"])


class TestQuotationAPI:

    def test_quotation_totals_and_number(self, client, auth_headers, customer, product):
        response = client.post("/api/quotations", json={
            "customer_id": customer["id"],
            "items": [
                {"product_id": product["id"], "quantity": "10"},
                {"description": "Diseño gráfico", "quantity": "1", "unit_price": "1000", "discount_percentage": "10"}
            ]
        }, headers=auth_headers)
        assert response.status_code == 201
        data = response.json()
        assert data["quotation_number"] == "QUO-006000"
        assert data["status"] == "draft"

        first, second = data["items"]
        assert first["line_number"] == 1
        assert first["description"] == "Resma papel A4"
        assert Decimal(first["line_subtotal"]) == Decimal("6000")
        assert Decimal(first["tax_amount"]) == Decimal("960")
        assert Decimal(first["line_total"]) == Decimal("6960")
        assert Decimal(second["discount_amount"]) == Decimal("100")
        assert Decimal(second["line_total"]) == Decimal("900")

        assert Decimal(data["subtotal"]) == Decimal("7000")
        assert Decimal(data["discount_amount"]) == Decimal("100")
        assert Decimal(data["tax_amount"]) == Decimal("960")
        assert Decimal(data["total_amount"]) == Decimal("7860")

    def test_quotation_requires_items_and_known_customer(self, client, auth_headers, customer, product):
        empty = client.post("/api/quotations", json={"customer_id": customer["id"], "items": []}, headers=auth_headers)
        assert empty.status_code == 400

        unknown = client.post("/api/quotations", json={
            "customer_id": "00000000-0000-0000-0000-000000000000",
            "items": [{"product_id": product["id"], "quantity": "1"}]
        }, headers=auth_headers)
        assert unknown.status_code == 400

    def test_convert_quotation_to_order_and_invoice(self, client, auth_headers, customer, product):
        quotation = client.post("/api/quotations", json={
            "customer_id": customer["id"],
            "items": [{"product_id": product["id"], "quantity": "10"}]
        }, headers=auth_headers).json()

        converted = client.post(f"/api/quotations/{quotation['id']}/convert", headers=auth_headers)
        assert converted.status_code == 201
        order = converted.json()
        assert order["order_number"] == "SO-005000"
        assert order["status"] == "confirmed"
        assert order["quotation_id"] == quotation["id"]
        assert Decimal(order["total_amount"]) == Decimal("6960")

        again = client.post(f"/api/quotations/{quotation['id']}/convert", headers=auth_headers)
        assert again.status_code == 409

        refreshed = client.get(f"/api/quotations/{quotation['id']}", headers=auth_headers).json()
        assert refreshed["status"] == "converted"
        assert refreshed["sales_order_id"] == order["id"]

        invoiced = client.post(f"/api/sales-orders/{order['id']}/invoice", headers=auth_headers)
        assert invoiced.status_code == 201
        invoice = invoiced.json()
        assert invoice["invoice_number"] == "INV-007000"
        assert invoice["currency"] == "KES"
        assert invoice["sales_order_id"] == order["id"]
        assert Decimal(invoice["balance_due"]) == Decimal("6960")

        second_invoice = client.post(f"/api/sales-orders/{order['id']}/invoice", headers=auth_headers)
        assert second_invoice.status_code == 409

    def test_rejected_quotation_cannot_convert(self, client, auth_headers, customer, product):
        quotation = client.post("/api/quotations", json={
            "customer_id": customer["id"],
            "items": [{"product_id": product["id"], "quantity": "1"}]
        }, headers=auth_headers).json()

        rejected = client.patch(f"/api/quotations/{quotation['id']}/status", json={"status": "rejected"},
                                headers=auth_headers)
        assert rejected.status_code == 200

        response = client.post(f"/api/quotations/{quotation['id']}/convert", headers=auth_headers)
        assert response.status_code == 400

        manual = client.patch(f"/api/quotations/{quotation['id']}/status", json={"status": "converted"},
                              headers=auth_headers)
        assert manual.status_code == 400


class TestSalesOrderAPI:

    def test_draft_order_cannot_be_invoiced(self, client, auth_headers, customer, product):
        order = client.post("/api/sales-orders", json={
            "customer_id": customer["id"],
            "items": [{"product_id": product["id"], "quantity": "2"}]
        }, headers=auth_headers).json()
        assert order["status"] == "draft"

        response = client.post(f"/api/sales-orders/{order['id']}/invoice", headers=auth_headers)
        assert response.status_code == 400

    def test_update_only_in_draft(self, client, auth_headers, customer, product):
        order = client.post("/api/sales-orders", json={
            "customer_id": customer["id"],
            "items": [{"product_id": product["id"], "quantity": "2"}]
        }, headers=auth_headers).json()

        updated = client.put(f"/api/sales-orders/{order['id']}", json={
            "items": [{"product_id": product["id"], "quantity": "3", "unit_price": "500"}]
        }, headers=auth_headers)
        assert updated.status_code == 200
        assert Decimal(updated.json()["subtotal"]) == Decimal("1500")

        client.post(f"/api/sales-orders/{order['id']}/confirm", headers=auth_headers)
        locked = client.put(f"/api/sales-orders/{order['id']}", json={"notes": "x"}, headers=auth_headers)
        assert locked.status_code == 400

    def test_cancel_invoiced_order_fails(self, client, auth_headers, sales_order):
        client.post(f"/api/sales-orders/{sales_order['id']}/invoice", headers=auth_headers)
        response = client.post(f"/api/sales-orders/{sales_order['id']}/cancel", headers=auth_headers)
        assert response.status_code == 400

    def test_order_stats(self, client, auth_headers, customer, product, sales_order):
        today = date.today()

        def order(quantity, **extra):
            return client.post("/api/sales-orders", json={
                "customer_id": customer["id"],
                "items": [{"product_id": product["id"], "quantity": quantity}],
                **extra
            }, headers=auth_headers).json()

        due = order("1", expected_delivery_date=(today + timedelta(days=3)).isoformat())
        client.post(f"/api/sales-orders/{due['id']}/confirm", headers=auth_headers)
        late = order("1", expected_delivery_date=(today - timedelta(days=1)).isoformat())
        client.post(f"/api/sales-orders/{late['id']}/confirm", headers=auth_headers)
        cancelled = order("2")
        client.post(f"/api/sales-orders/{cancelled['id']}/cancel", headers=auth_headers)
        order("1", order_date=(today - timedelta(days=30)).isoformat())

        stats = client.get("/api/sales-orders/stats", headers=auth_headers).json()
        assert stats["total_orders"] == 5
        assert stats["by_status"] == {
            "draft": 1, "confirmed": 3, "partially_delivered": 0, "delivered": 0, "cancelled": 1
        }
        # 10 + 1 + 1 + 1 unidades a 600 con IVA 16%
        assert Decimal(stats["total_value"]) == Decimal("9048.00")
        assert stats["pending_delivery"] == 3
        assert stats["overdue_deliveries"] == 1
        assert stats["due_soon"] == 1
        assert stats["recent_orders"] == 4


class TestInvoiceAPI:

    def test_invoice_lifecycle(self, client, auth_headers, customer, product):
        created = client.post("/api/invoices", json={
            "customer_id": customer["id"],
            "invoice_date": "2024-01-10",
            "due_date": "2024-02-10",
            "items": [{"product_id": product["id"], "quantity": "1"}]
        }, headers=auth_headers)
        assert created.status_code == 201
        invoice = created.json()
        assert invoice["status"] == "draft"
        assert Decimal(invoice["total_amount"]) == Decimal("696")

        sent = client.post(f"/api/invoices/{invoice['id']}/send", headers=auth_headers)
        assert sent.json()["status"] == "sent"

        assert client.post(f"/api/invoices/{invoice['id']}/send", headers=auth_headers).status_code == 400
        assert client.put(f"/api/invoices/{invoice['id']}", json={"notes": "x"}, headers=auth_headers).status_code == 400
        assert client.delete(f"/api/invoices/{invoice['id']}", headers=auth_headers).status_code == 400

        overdue = client.get("/api/invoices", params={"overdue": "true"}, headers=auth_headers).json()
        assert overdue["total"] == 1

        cancelled = client.post(f"/api/invoices/{invoice['id']}/cancel", headers=auth_headers)
        assert cancelled.json()["status"] == "cancelled"

    def test_due_date_before_invoice_date(self, client, auth_headers, customer, product):
        response = client.post("/api/invoices", json={
            "customer_id": customer["id"],
            "invoice_date": "2026-03-10",
            "due_date": "2026-03-01",
            "items": [{"product_id": product["id"], "quantity": "1"}]
        }, headers=auth_headers)
        assert response.status_code == 400

    def test_deleting_draft_invoice_releases_order(self, client, auth_headers, sales_order):
        invoice = client.post(f"/api/sales-orders/{sales_order['id']}/invoice", headers=auth_headers).json()
        assert client.delete(f"/api/invoices/{invoice['id']}", headers=auth_headers).status_code == 200

        order = client.get(f"/api/sales-orders/{sales_order['id']}", headers=auth_headers).json()
        assert order["invoice_id"] is None
        second = client.post(f"/api/sales-orders/{sales_order['id']}/invoice", headers=auth_headers)
        assert second.json()["invoice_number"] == "INV-007001"


class TestDeliveryAndReturnAPI:

    def test_delivery_note_for_whole_order(self, client, auth_headers, warehouse, sales_order, stocked_product):
        response = client.post("/api/delivery-notes", json={"sales_order_id": sales_order["id"]},
                               headers=auth_headers)
        assert response.status_code == 201
        note = response.json()
        assert note["delivery_number"] == "DN-010000"
        assert note["warehouse_id"] == warehouse["id"]
        assert Decimal(note["items"][0]["quantity"]) == Decimal("10")

        assert stock_of(client, auth_headers, stocked_product["id"]) == Decimal("90")
        order = client.get(f"/api/sales-orders/{sales_order['id']}", headers=auth_headers).json()
        assert order["status"] == "delivered"

        movements = client.get("/api/stock/movements", params={"reference": "DN-010000"},
                               headers=auth_headers).json()
        assert len(movements) == 1
        assert movements[0]["movement_type"] == "OUT"

        nothing_left = client.post("/api/delivery-notes", json={"sales_order_id": sales_order["id"]},
                                   headers=auth_headers)
        assert nothing_left.status_code == 400

    def test_partial_delivery_and_cancel(self, client, auth_headers, sales_order, stocked_product):
        note = client.post("/api/delivery-notes", json={
            "sales_order_id": sales_order["id"],
            "items": [{"product_id": stocked_product["id"], "quantity": "4"}]
        }, headers=auth_headers).json()

        order = client.get(f"/api/sales-orders/{sales_order['id']}", headers=auth_headers).json()
        assert order["status"] == "partially_delivered"
        assert Decimal(order["items"][0]["delivered_quantity"]) == Decimal("4")

        too_much = client.post("/api/delivery-notes", json={
            "sales_order_id": sales_order["id"],
            "items": [{"product_id": stocked_product["id"], "quantity": "7"}]
        }, headers=auth_headers)
        assert too_much.status_code == 400

        cancelled = client.post(f"/api/delivery-notes/{note['id']}/cancel", headers=auth_headers)
        assert cancelled.json()["status"] == "cancelled"
        assert stock_of(client, auth_headers, stocked_product["id"]) == Decimal("100")
        order = client.get(f"/api/sales-orders/{sales_order['id']}", headers=auth_headers).json()
        assert order["status"] == "confirmed"

    def test_delivery_with_insufficient_stock(self, client, auth_headers, customer, stocked_product):
        response = client.post("/api/delivery-notes", json={
            "customer_id": customer["id"],
            "items": [{"product_id": stocked_product["id"], "quantity": "150"}]
        }, headers=auth_headers)
        assert response.status_code == 400
        assert "Stock insuficiente" in response.json()["detail"]
        assert stock_of(client, auth_headers, stocked_product["id"]) == Decimal("100")

        # the failed note did not leave rows behind
        notes = client.get("/api/delivery-notes", headers=auth_headers).json()
        assert notes == []

    def test_customer_return_restocks(self, client, auth_headers, customer, stocked_product):
        invoice = client.post("/api/invoices", json={
            "customer_id": customer["id"],
            "items": [{"product_id": stocked_product["id"], "quantity": "5", "unit_price": "550"}]
        }, headers=auth_headers).json()

        returned = client.post("/api/customer-returns", json={
            "customer_id": customer["id"],
            "invoice_id": invoice["id"],
            "reason": "Papel húmedo",
            "items": [{"product_id": stocked_product["id"], "quantity": "3"}]
        }, headers=auth_headers)
        assert returned.status_code == 201
        data = returned.json()
        assert data["return_number"] == "CR-001000"
        assert Decimal(data["items"][0]["unit_price"]) == Decimal("550")
        assert Decimal(data["total_amount"]) == Decimal("1650")
        assert stock_of(client, auth_headers, stocked_product["id"]) == Decimal("103")

        over = client.post("/api/customer-returns", json={
            "customer_id": customer["id"],
            "invoice_id": invoice["id"],
            "items": [{"product_id": stocked_product["id"], "quantity": "3"}]
        }, headers=auth_headers)
        assert over.status_code == 400

    def test_repeated_lines_cannot_exceed_order(self, client, auth_headers, sales_order, stocked_product):
        response = client.post("/api/delivery-notes", json={
            "sales_order_id": sales_order["id"],
            "items": [
                {"product_id": stocked_product["id"], "quantity": "6"},
                {"product_id": stocked_product["id"], "quantity": "6"}
            ]
        }, headers=auth_headers)
        assert response.status_code == 400
        assert stock_of(client, auth_headers, stocked_product["id"]) == Decimal("100")
        order = client.get(f"/api/sales-orders/{sales_order['id']}", headers=auth_headers).json()
        assert Decimal(order["items"][0]["delivered_quantity"]) == Decimal("0")

        split = client.post("/api/delivery-notes", json={
            "sales_order_id": sales_order["id"],
            "items": [
                {"product_id": stocked_product["id"], "quantity": "6"},
                {"product_id": stocked_product["id"], "quantity": "4"}
            ]
        }, headers=auth_headers)
        assert split.status_code == 201
        order = client.get(f"/api/sales-orders/{sales_order['id']}", headers=auth_headers).json()
        assert order["status"] == "delivered"

    def test_repeated_return_lines_cannot_exceed_invoice(self, client, auth_headers, customer, stocked_product):
        invoice = client.post("/api/invoices", json={
            "customer_id": customer["id"],
            "items": [{"product_id": stocked_product["id"], "quantity": "5"}]
        }, headers=auth_headers).json()

        response = client.post("/api/customer-returns", json={
            "customer_id": customer["id"],
            "invoice_id": invoice["id"],
            "items": [
                {"product_id": stocked_product["id"], "quantity": "4"},
                {"product_id": stocked_product["id"], "quantity": "4"}
            ]
        }, headers=auth_headers)
        assert response.status_code == 400
        assert stock_of(client, auth_headers, stocked_product["id"]) == Decimal("100")
