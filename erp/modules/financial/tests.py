"""
Tests para finanzas: plan de cuentas, asientos, pagos y bancos
"""

import pytest
from decimal import Decimal


@pytest.fixture
def accounts(client, auth_headers):
    cash = client.post("/api/accounts", json={
        "account_code": "1000", "account_name": "Caja", "account_type": "asset"
    }, headers=auth_headers)
    sales = client.post("/api/accounts", json={
        "account_code": "4000", "account_name": "Ventas", "account_type": "revenue"
    }, headers=auth_headers)
    assert cash.status_code == 201 and sales.status_code == 201
    return {"cash": cash.json(), "sales": sales.json()}


@pytest.fixture
def sent_invoice(client, auth_headers, product):
    customer = client.post("/api/customers", json={"first_name": "Amina", "last_name": "Odhiambo"},
                           headers=auth_headers).json()
    invoice = client.post("/api/invoices", json={
        "customer_id": customer["id"],
        "items": [{"product_id": product["id"], "quantity": "1"}]
    }, headers=auth_headers).json()
    sent = client.post(f"/api/invoices/{invoice['id']}/send", headers=auth_headers)
    assert sent.status_code == 200
    return sent.json()


@pytest.fixture
def bank_account(client, auth_headers):
    response = client.post("/api/bank/accounts", json={
        "account_name": "Operaciones",
        "bank_name": "KCB",
        "account_number": "1102334455",
        "opening_balance": "1000"
    }, headers=auth_headers)
    assert response.status_code == 201, response.text
    return response.json()


def balance_of(client, auth_headers, account_id):
    return Decimal(client.get(f"/api/accounts/{account_id}", headers=auth_headers).json()["balance"])


class TestAccountAPI:

    def test_account_code_unique_per_company(self, client, auth_headers, accounts):
        duplicate = client.post("/api/accounts", json={
            "account_code": "1000", "account_name": "Otra caja", "account_type": "asset"
        }, headers=auth_headers)
        assert duplicate.status_code == 409

        listed = client.get("/api/accounts", params={"account_type": "asset"}, headers=auth_headers).json()
        assert [a["account_code"] for a in listed] == ["1000"]

    def test_viewer_cannot_read_accounts(self, client, auth_headers, owner, register_user):
        viewer = register_user(email="viewer@printsoft.co.ke")
        client.post(f"/api/company/{owner['company_id']}/users",
                    json={"email": "viewer@printsoft.co.ke", "role": "viewer"}, headers=auth_headers)
        headers = {"Authorization": f"Bearer {viewer['access_token']}", "X-Company-ID": owner["company_id"]}
        assert client.get("/api/accounts", headers=headers).status_code == 403


class TestJournalAPI:

    def test_unbalanced_entry_rejected(self, client, auth_headers, accounts):
        response = client.post("/api/journal-entries", json={
            "description": "Venta al contado",
            "lines": [
                {"account_id": accounts["cash"]["id"], "debit_amount": "5000"},
                {"account_id": accounts["sales"]["id"], "credit_amount": "4000"}
            ]
        }, headers=auth_headers)
        assert response.status_code == 400

        both_sides = client.post("/api/journal-entries", json={
            "description": "Línea inválida",
            "lines": [
                {"account_id": accounts["cash"]["id"], "debit_amount": "10", "credit_amount": "10"},
                {"account_id": accounts["sales"]["id"], "credit_amount": "0"}
            ]
        }, headers=auth_headers)
        assert both_sides.status_code == 400

    def test_post_and_reverse(self, client, auth_headers, accounts):
        created = client.post("/api/journal-entries", json={
            "description": "Venta al contado",
            "reference": "INV-007000",
            "lines": [
                {"account_id": accounts["cash"]["id"], "debit_amount": "5000"},
                {"account_id": accounts["sales"]["id"], "credit_amount": "5000"}
            ]
        }, headers=auth_headers)
        assert created.status_code == 201
        entry = created.json()
        assert entry["entry_number"] == "JE-020000"
        assert entry["status"] == "draft"
        assert balance_of(client, auth_headers, accounts["cash"]["id"]) == Decimal("0")

        posted = client.post(f"/api/journal-entries/{entry['id']}/post", headers=auth_headers)
        assert posted.json()["status"] == "posted"
        assert balance_of(client, auth_headers, accounts["cash"]["id"]) == Decimal("5000")
        assert balance_of(client, auth_headers, accounts["sales"]["id"]) == Decimal("5000")
        assert client.post(f"/api/journal-entries/{entry['id']}/post", headers=auth_headers).status_code == 400
        assert client.delete(f"/api/journal-entries/{entry['id']}", headers=auth_headers).status_code == 400

        reversed_response = client.post(f"/api/journal-entries/{entry['id']}/reverse",
                                        json={"reason": "Venta anulada"}, headers=auth_headers)
        assert reversed_response.status_code == 201
        reversal = reversed_response.json()
        assert reversal["entry_number"] == "JE-020001"
        assert reversal["reversal_of_id"] == entry["id"]
        assert Decimal(reversal["lines"][0]["credit_amount"]) == Decimal("5000")
        assert balance_of(client, auth_headers, accounts["cash"]["id"]) == Decimal("0")
        assert balance_of(client, auth_headers, accounts["sales"]["id"]) == Decimal("0")

        original = client.get(f"/api/journal-entries/{entry['id']}", headers=auth_headers).json()
        assert original["status"] == "reversed"
        again = client.post(f"/api/journal-entries/{entry['id']}/reverse", json={"reason": "x"},
                            headers=auth_headers)
        assert again.status_code == 409


class TestPaymentAPI:

    def test_partial_then_full_payment(self, client, auth_headers, sent_invoice):
        first = client.post("/api/payments", json={
            "invoice_id": sent_invoice["id"],
            "amount": "300",
            "payment_method": "mpesa",
            "reference": "QGH7TX12AB"
        }, headers=auth_headers)
        assert first.status_code == 201
        payment = first.json()
        assert payment["payment_number"] == "PAY-009000"
        assert payment["customer_id"] == sent_invoice["customer_id"]

        invoice = client.get(f"/api/invoices/{sent_invoice['id']}", headers=auth_headers).json()
        assert invoice["status"] == "partially_paid"
        assert Decimal(invoice["balance_due"]) == Decimal("396")

        too_much = client.post("/api/payments", json={
            "invoice_id": sent_invoice["id"], "amount": "500", "payment_method": "cash"
        }, headers=auth_headers)
        assert too_much.status_code == 400

        rest = client.post("/api/payments", json={
            "invoice_id": sent_invoice["id"], "amount": "396", "payment_method": "cash"
        }, headers=auth_headers)
        assert rest.json()["payment_number"] == "PAY-009001"
        invoice = client.get(f"/api/invoices/{sent_invoice['id']}", headers=auth_headers).json()
        assert invoice["status"] == "paid"

        voided = client.post(f"/api/payments/{payment['id']}/void", headers=auth_headers)
        assert voided.json()["status"] == "void"
        invoice = client.get(f"/api/invoices/{sent_invoice['id']}", headers=auth_headers).json()
        assert invoice["status"] == "partially_paid"
        assert Decimal(invoice["amount_paid"]) == Decimal("396")

    def test_draft_invoice_cannot_be_paid(self, client, auth_headers, sent_invoice, product):
        draft = client.post("/api/invoices", json={
            "customer_id": sent_invoice["customer_id"],
            "items": [{"product_id": product["id"], "quantity": "1"}]
        }, headers=auth_headers).json()
        response = client.post("/api/payments", json={
            "invoice_id": draft["id"], "amount": "10", "payment_method": "cash"
        }, headers=auth_headers)
        assert response.status_code == 400

    def test_received_payment_needs_customer(self, client, auth_headers):
        response = client.post("/api/payments", json={"amount": "10", "payment_method": "cash"},
                               headers=auth_headers)
        assert response.status_code == 400


class TestBankAPI:

    def test_reconciliation_completes_only_without_difference(self, client, auth_headers, bank_account,
                                                             sent_invoice):
        assert bank_account["is_default"] is True
        assert Decimal(bank_account["current_balance"]) == Decimal("1000")

        client.post("/api/payments", json={
            "invoice_id": sent_invoice["id"],
            "amount": "300",
            "payment_method": "bank_transfer",
            "bank_account_id": bank_account["id"]
        }, headers=auth_headers)
        fee = client.post(f"/api/bank/accounts/{bank_account['id']}/transactions", json={
            "description": "Comisión bancaria", "amount": "100", "transaction_type": "debit"
        }, headers=auth_headers)
        assert fee.status_code == 201
        assert Decimal(fee.json()["balance_after"]) == Decimal("1200")

        transactions = client.get(f"/api/bank/accounts/{bank_account['id']}/transactions",
                                  headers=auth_headers).json()
        assert len(transactions) == 2

        started = client.post("/api/bank/reconciliations", json={
            "bank_account_id": bank_account["id"],
            "period_start": "2020-01-01",
            "period_end": "2099-12-31",
            "statement_balance": "1200"
        }, headers=auth_headers)
        assert started.status_code == 201
        reconciliation = started.json()
        assert Decimal(reconciliation["difference"]) == Decimal("200")

        second = client.post("/api/bank/reconciliations", json={
            "bank_account_id": bank_account["id"],
            "period_start": "2020-01-01",
            "period_end": "2099-12-31",
            "statement_balance": "1200"
        }, headers=auth_headers)
        assert second.status_code == 409

        early = client.post(f"/api/bank/reconciliations/{reconciliation['id']}/complete", headers=auth_headers)
        assert early.status_code == 400

        marked = client.post(f"/api/bank/reconciliations/{reconciliation['id']}/transactions",
                             json={"transaction_ids": [t["id"] for t in transactions]}, headers=auth_headers)
        assert Decimal(marked.json()["book_balance"]) == Decimal("1200")
        assert Decimal(marked.json()["difference"]) == Decimal("0")

        completed = client.post(f"/api/bank/reconciliations/{reconciliation['id']}/complete", headers=auth_headers)
        assert completed.json()["status"] == "completed"
        account = client.get(f"/api/bank/accounts/{bank_account['id']}", headers=auth_headers).json()
        assert account["last_reconciled_date"] == "2099-12-31"
        assert Decimal(account["last_reconciled_balance"]) == Decimal("1200")

    def test_duplicate_account_number(self, client, auth_headers, bank_account):
        response = client.post("/api/bank/accounts", json={
            "account_name": "Otra", "bank_name": "KCB", "account_number": "1102334455"
        }, headers=auth_headers)
        assert response.status_code == 409


class TestLedgerAPI:

    def _post(self, client, auth_headers, entry_date, debit_id, credit_id, amount):
        entry = client.post("/api/journal-entries", json={
            "entry_date": entry_date,
            "description": "Movimiento",
            "lines": [
                {"account_id": debit_id, "debit_amount": amount},
                {"account_id": credit_id, "credit_amount": amount}
            ]
        }, headers=auth_headers).json()
        client.post(f"/api/journal-entries/{entry['id']}/post", headers=auth_headers)
        return entry

    def test_running_balance_and_opening(self, client, auth_headers, accounts):
        cash, sales = accounts["cash"]["id"], accounts["sales"]["id"]
        self._post(client, auth_headers, "2025-01-10", cash, sales, "5000")
        self._post(client, auth_headers, "2025-02-05", sales, cash, "1200")
        client.post("/api/journal-entries", json={
            "entry_date": "2025-02-10", "description": "Borrador",
            "lines": [{"account_id": cash, "debit_amount": "999"}, {"account_id": sales, "credit_amount": "999"}]
        }, headers=auth_headers)

        ledger = client.get(f"/api/accounts/{cash}/ledger", headers=auth_headers).json()
        assert [Decimal(line["running_balance"]) for line in ledger["lines"]] == [Decimal("5000"), Decimal("3800")]
        assert Decimal(ledger["closing_balance"]) == balance_of(client, auth_headers, cash)
        assert Decimal(ledger["total_debit"]) == Decimal("5000")

        revenue = client.get(f"/api/accounts/{sales}/ledger", headers=auth_headers).json()
        assert Decimal(revenue["closing_balance"]) == Decimal("3800")

        february = client.get(f"/api/accounts/{cash}/ledger", params={"date_from": "2025-02-01"},
                              headers=auth_headers).json()
        assert Decimal(february["opening_balance"]) == Decimal("5000")
        assert len(february["lines"]) == 1
        assert Decimal(february["closing_balance"]) == Decimal("3800")

        backwards = client.get(f"/api/accounts/{cash}/ledger",
                               params={"date_from": "2025-03-01", "date_to": "2025-02-01"}, headers=auth_headers)
        assert backwards.status_code == 400

    def test_reversal_shows_both_entries(self, client, auth_headers, accounts):
        cash, sales = accounts["cash"]["id"], accounts["sales"]["id"]
        entry = self._post(client, auth_headers, "2025-01-10", cash, sales, "5000")
        client.post(f"/api/journal-entries/{entry['id']}/reverse", json={"reason": "Error"}, headers=auth_headers)

        ledger = client.get(f"/api/accounts/{cash}/ledger", headers=auth_headers).json()
        assert len(ledger["lines"]) == 2
        assert Decimal(ledger["closing_balance"]) == Decimal("0")


class TestReceivablesAndPayablesAPI:

    def test_accounts_receivable(self, client, auth_headers, sent_invoice, product):
        client.post("/api/payments", json={
            "invoice_id": sent_invoice["id"], "amount": "300", "payment_method": "cash"
        }, headers=auth_headers)
        late = client.post("/api/invoices", json={
            "customer_id": sent_invoice["customer_id"],
            "invoice_date": "2025-01-01",
            "due_date": "2025-01-31",
            "items": [{"product_id": product["id"], "quantity": "1"}]
        }, headers=auth_headers).json()
        client.post(f"/api/invoices/{late['id']}/send", headers=auth_headers)
        client.post("/api/invoices", json={
            "customer_id": sent_invoice["customer_id"],
            "items": [{"product_id": product["id"], "quantity": "5"}]
        }, headers=auth_headers)

        report = client.get("/api/financial/accounts-receivable", params={"as_of": "2025-03-02"},
                            headers=auth_headers).json()
        assert [item["invoice_number"] for item in report["items"]] == [late["invoice_number"], sent_invoice["invoice_number"]]
        assert report["items"][0]["days_overdue"] == 30
        assert report["items"][0]["customer_name"] == "Amina Odhiambo"
        assert Decimal(report["items"][1]["balance_due"]) == Decimal("396")
        assert Decimal(report["total_outstanding"]) == Decimal("1092")
        assert Decimal(report["total_overdue"]) == Decimal("696")

    def test_accounts_payable(self, client, auth_headers, warehouse, product):
        vendor = client.post("/api/vendors", json={"name": "Kenya Paper Mills"}, headers=auth_headers).json()
        order = client.post("/api/purchase-orders", json={
            "vendor_id": vendor["id"], "items": [{"product_id": product["id"], "quantity": "10"}]
        }, headers=auth_headers).json()
        client.post(f"/api/purchase-orders/{order['id']}/send", headers=auth_headers)
        grn = client.post("/api/goods-receiving", json={"purchase_order_id": order["id"]}, headers=auth_headers).json()
        assert Decimal(grn["total_value"]) == Decimal("4500")

        client.post("/api/purchase-returns", json={
            "vendor_id": vendor["id"], "grn_id": grn["id"], "reason": "Húmedo",
            "items": [{"product_id": product["id"], "quantity": "2"}]
        }, headers=auth_headers)
        paid = client.post("/api/payments", json={
            "payment_type": "made", "vendor_id": vendor["id"], "amount": "1000", "payment_method": "bank_transfer"
        }, headers=auth_headers).json()
        voided = client.post("/api/payments", json={
            "payment_type": "made", "vendor_id": vendor["id"], "amount": "50", "payment_method": "cash"
        }, headers=auth_headers).json()
        client.post(f"/api/payments/{voided['id']}/void", headers=auth_headers)
        assert paid["status"] == "completed"

        report = client.get("/api/financial/accounts-payable", headers=auth_headers).json()
        assert len(report["items"]) == 1
        row = report["items"][0]
        assert row["vendor_name"] == "Kenya Paper Mills"
        assert Decimal(row["received_value"]) == Decimal("4500")
        assert Decimal(row["returned_value"]) == Decimal("900")
        assert Decimal(row["paid_amount"]) == Decimal("1000")
        assert Decimal(row["balance"]) == Decimal("2600")
        assert Decimal(report["total_outstanding"]) == Decimal("2600")
