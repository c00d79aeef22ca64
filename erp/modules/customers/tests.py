"""
Tests para Clientes y Prospectos

- Número de cliente asignado automáticamente o enviado por el cliente
- Soft delete y restore
- Contactos y notas
- Conversión de prospecto a cliente
"""

import pytest
from decimal import Decimal

from erp.core.config import settings


@pytest.fixture
def sample_customer_data():
    return {
        "customer_type": "business",
        "company_name": "Nairobi Prints Ltd",
        "email": "compras@nairobiprints.co.ke",
        "phone": "0712345678",
        "tax_id": "p051234567x",
        "credit_limit": "50000.00",
        "payment_terms": 30
    }


class TestCustomerAPI:

    def test_create_customer_assigns_number(self, client, auth_headers, sample_customer_data):
        response = client.post("/api/customers", json=sample_customer_data, headers=auth_headers)
        assert response.status_code == 201
        data = response.json()
        assert data["customer_number"] == "CUST-001000"
        assert data["display_name"] == "Nairobi Prints Ltd"
        assert data["phone"] == "+254712345678"
        assert data["tax_id"] == "P051234567X"
        assert data["country"] == "Kenya"
        assert data["currency"] == "KES"
        assert Decimal(data["credit_limit"]) == Decimal("50000")

        second = client.post("/api/customers", json={"first_name": "Achieng"}, headers=auth_headers)
        assert second.json()["customer_number"] == "CUST-001001"

    def test_explicit_number_is_used_and_unique(self, client, auth_headers):
        first = client.post("/api/customers", json={"first_name": "Otieno", "customer_number": "VIP-1"},
                            headers=auth_headers)
        assert first.status_code == 201
        assert first.json()["customer_number"] == "VIP-1"

        duplicate = client.post("/api/customers", json={"first_name": "Otro", "customer_number": "VIP-1"},
                                headers=auth_headers)
        assert duplicate.status_code == 409

        # el número explícito no consume el contador
        auto = client.post("/api/customers", json={"first_name": "Mwangi"}, headers=auth_headers)
        assert auto.json()["customer_number"] == "CUST-001000"

    def test_missing_name_is_400(self, client, auth_headers):
        response = client.post("/api/customers", json={"email": "x@y.co.ke"}, headers=auth_headers)
        assert response.status_code == 400

    def test_get_update_and_list(self, client, auth_headers, sample_customer_data):
        created = client.post("/api/customers", json=sample_customer_data, headers=auth_headers).json()

        fetched = client.get(f"/api/customers/{created['id']}", headers=auth_headers)
        assert fetched.status_code == 200
        assert fetched.json()["contacts"] == []

        updated = client.put(f"/api/customers/{created['id']}", json={"city": "Mombasa"}, headers=auth_headers)
        assert updated.status_code == 200
        assert updated.json()["city"] == "Mombasa"

        listing = client.get("/api/customers", params={"search": "Nairobi"}, headers=auth_headers).json()
        assert listing["total"] == 1
        assert listing["items"][0]["id"] == created["id"]
        assert listing["limit"] == settings.DEFAULT_PAGE_SIZE

        too_many = client.get("/api/customers", params={"limit": settings.MAX_PAGE_SIZE + 1}, headers=auth_headers)
        assert too_many.status_code == 400

    def test_soft_delete_and_restore(self, client, auth_headers, sample_customer_data):
        created = client.post("/api/customers", json=sample_customer_data, headers=auth_headers).json()

        assert client.delete(f"/api/customers/{created['id']}", headers=auth_headers).status_code == 200
        assert client.get(f"/api/customers/{created['id']}", headers=auth_headers).status_code == 404
        assert client.get("/api/customers", headers=auth_headers).json()["total"] == 0

        inactive = client.get("/api/customers", params={"include_inactive": "true"}, headers=auth_headers).json()
        assert inactive["items"][0]["status"] == "inactive"

        restored = client.post(f"/api/customers/{created['id']}/restore", headers=auth_headers)
        assert restored.status_code == 200
        assert restored.json()["status"] == "active"

    def test_unknown_customer_is_404(self, client, auth_headers):
        response = client.get("/api/customers/00000000-0000-0000-0000-000000000000", headers=auth_headers)
        assert response.status_code == 404

    def test_contacts_and_notes(self, client, auth_headers, sample_customer_data):
        created = client.post("/api/customers", json=sample_customer_data, headers=auth_headers).json()
        base = f"/api/customers/{created['id']}"

        first = client.post(f"{base}/contacts", json={"first_name": "Jane", "last_name": "Njeri", "is_primary": True},
                            headers=auth_headers)
        assert first.status_code == 201
        client.post(f"{base}/contacts", json={"first_name": "Tom", "last_name": "Mboya", "is_primary": True},
                    headers=auth_headers)

        contacts = client.get(f"{base}/contacts", headers=auth_headers).json()
        assert len(contacts) == 2
        assert [c["is_primary"] for c in contacts].count(True) == 1

        note = client.post(f"{base}/notes", json={"note": "Paga a 30 días", "is_important": True}, headers=auth_headers)
        assert note.status_code == 201
        assert len(client.get(f"{base}/notes", headers=auth_headers).json()) == 1

    def test_customers_are_scoped_by_company(self, client, auth_headers, register_user, sample_customer_data):
        client.post("/api/customers", json=sample_customer_data, headers=auth_headers)
        other = register_user(email="otra@empresa.co.ke", company_name="Otra Empresa")
        other_headers = {
            "Authorization": f"Bearer {other['access_token']}",
            "X-Company-ID": other["companies"][0]["company_id"]
        }
        assert client.get("/api/customers", headers=other_headers).json()["total"] == 0
        created = client.post("/api/customers", json=sample_customer_data, headers=other_headers).json()
        assert created["customer_number"] == "CUST-001000"


class TestLeadAPI:

    def test_create_and_convert_lead(self, client, auth_headers):
        lead = client.post("/api/leads", json={
            "first_name": "Kevin",
            "last_name": "Odhiambo",
            "company_name": "Kisumu Media",
            "source": "website",
            "estimated_value": "120000"
        }, headers=auth_headers)
        assert lead.status_code == 201
        lead = lead.json()
        assert lead["lead_number"] == "LEAD-001000"
        assert lead["status"] == "new"

        converted = client.post(f"/api/leads/{lead['id']}/convert", headers=auth_headers)
        assert converted.status_code == 200
        data = converted.json()
        assert data["lead"]["status"] == "converted"
        assert data["customer"]["customer_number"] == "CUST-001000"
        assert data["customer"]["customer_type"] == "business"
        assert data["lead"]["converted_customer_id"] == data["customer"]["id"]

        again = client.post(f"/api/leads/{lead['id']}/convert", headers=auth_headers)
        assert again.status_code == 409

    def test_update_and_filter_leads(self, client, auth_headers):
        lead = client.post("/api/leads", json={"first_name": "Amina"}, headers=auth_headers).json()
        updated = client.put(f"/api/leads/{lead['id']}", json={"status": "qualified", "priority": "high"},
                             headers=auth_headers)
        assert updated.status_code == 200
        assert updated.json()["priority"] == "high"

        qualified = client.get("/api/leads", params={"status": "qualified"}, headers=auth_headers).json()
        assert qualified["total"] == 1
        assert client.get("/api/leads", params={"status": "new"}, headers=auth_headers).json()["total"] == 0

    def test_manual_conversion_status_is_rejected(self, client, auth_headers):
        lead = client.post("/api/leads", json={"first_name": "Amina"}, headers=auth_headers).json()
        response = client.put(f"/api/leads/{lead['id']}", json={"status": "converted"}, headers=auth_headers)
        assert response.status_code == 400

    def test_lost_lead_cannot_convert(self, client, auth_headers):
        lead = client.post("/api/leads", json={"first_name": "Baraka"}, headers=auth_headers).json()
        client.put(f"/api/leads/{lead['id']}", json={"status": "lost"}, headers=auth_headers)
        response = client.post(f"/api/leads/{lead['id']}/convert", headers=auth_headers)
        assert response.status_code == 400
