"""
Tests para recursos humanos: departamentos, empleados, permisos y nómina
"""

import pytest
from decimal import Decimal


@pytest.fixture
def department(client, auth_headers):
    response = client.post("/api/departments", json={"name": "Producción"}, headers=auth_headers)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def employee(client, auth_headers, department):
    response = client.post("/api/employees", json={
        "first_name": "Wanjiru",
        "last_name": "Kamau",
        "email": "wanjiru@printsoft.co.ke",
        "phone": "0711222333",
        "tax_number": "a123456789b",
        "position": "Operaria de prensa",
        "department_id": department["id"],
        "hire_date": "2023-05-02",
        "salary": "80000"
    }, headers=auth_headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestDepartmentAPI:

    def test_department_name_unique(self, client, auth_headers, department):
        duplicate = client.post("/api/departments", json={"name": "Producción"}, headers=auth_headers)
        assert duplicate.status_code == 409

    def test_department_with_employees_cannot_be_removed(self, client, auth_headers, employee, department):
        response = client.delete(f"/api/departments/{department['id']}", headers=auth_headers)
        assert response.status_code == 400

        client.delete(f"/api/employees/{employee['id']}", headers=auth_headers)
        response = client.delete(f"/api/departments/{department['id']}", headers=auth_headers)
        assert response.status_code == 200
        assert client.get("/api/departments", headers=auth_headers).json() == []


class TestEmployeeAPI:

    def test_create_employee_assigns_number(self, client, auth_headers, employee):
        assert employee["employee_number"] == "EMP-001000"
        assert employee["full_name"] == "Wanjiru Kamau"
        assert employee["phone"] == "+254711222333"
        assert employee["tax_number"] == "A123456789B"
        assert employee["country"] == "Kenya"

        second = client.post("/api/employees", json={"first_name": "Brian", "last_name": "Mutua"},
                             headers=auth_headers).json()
        assert second["employee_number"] == "EMP-001001"

    def test_duplicate_email_conflict(self, client, auth_headers, employee):
        response = client.post("/api/employees", json={
            "first_name": "Otra", "last_name": "Persona", "email": "wanjiru@printsoft.co.ke"
        }, headers=auth_headers)
        assert response.status_code == 409

    def test_invalid_kra_pin(self, client, auth_headers):
        response = client.post("/api/employees", json={
            "first_name": "Brian", "last_name": "Mutua", "tax_number": "12345"
        }, headers=auth_headers)
        assert response.status_code == 400

    def test_soft_delete_and_restore(self, client, auth_headers, employee):
        assert client.delete(f"/api/employees/{employee['id']}", headers=auth_headers).status_code == 200
        assert client.get(f"/api/employees/{employee['id']}", headers=auth_headers).status_code == 404
        assert client.get("/api/employees", headers=auth_headers).json()["total"] == 0

        restored = client.post(f"/api/employees/{employee['id']}/restore", headers=auth_headers)
        assert restored.json()["status"] == "active"

    def test_seller_cannot_create_employees(self, client, auth_headers, owner, register_user):
        seller = register_user(email="seller@printsoft.co.ke")
        client.post(f"/api/company/{owner['company_id']}/users",
                    json={"email": "seller@printsoft.co.ke", "role": "seller"}, headers=auth_headers)
        headers = {"Authorization": f"Bearer {seller['access_token']}", "X-Company-ID": owner["company_id"]}
        response = client.post("/api/employees", json={"first_name": "X", "last_name": "Y"}, headers=headers)
        assert response.status_code == 403


class TestLeaveAPI:

    def test_days_are_inclusive_and_overlaps_rejected(self, client, auth_headers, employee):
        created = client.post("/api/leave-requests", json={
            "employee_id": employee["id"],
            "leave_type": "annual",
            "start_date": "2030-03-02",
            "end_date": "2030-03-06"
        }, headers=auth_headers)
        assert created.status_code == 201
        leave = created.json()
        assert leave["days_requested"] == 5
        assert leave["status"] == "pending"

        overlap = client.post("/api/leave-requests", json={
            "employee_id": employee["id"],
            "leave_type": "sick",
            "start_date": "2030-03-05",
            "end_date": "2030-03-08"
        }, headers=auth_headers)
        assert overlap.status_code == 409

        rejected = client.post(f"/api/leave-requests/{leave['id']}/reject",
                               json={"rejection_reason": "Temporada alta"}, headers=auth_headers)
        assert rejected.json()["status"] == "rejected"
        assert rejected.json()["rejection_reason"] == "Temporada alta"

        retry = client.post("/api/leave-requests", json={
            "employee_id": employee["id"],
            "leave_type": "sick",
            "start_date": "2030-03-05",
            "end_date": "2030-03-05"
        }, headers=auth_headers)
        assert retry.status_code == 201
        assert retry.json()["days_requested"] == 1

    def test_review_only_pending(self, client, auth_headers, employee):
        leave = client.post("/api/leave-requests", json={
            "employee_id": employee["id"],
            "leave_type": "annual",
            "start_date": "2030-06-01",
            "end_date": "2030-06-10"
        }, headers=auth_headers).json()

        approved = client.post(f"/api/leave-requests/{leave['id']}/approve", headers=auth_headers)
        assert approved.json()["status"] == "approved"
        assert approved.json()["reviewed_by"] is not None

        again = client.post(f"/api/leave-requests/{leave['id']}/reject",
                            json={"rejection_reason": "x"}, headers=auth_headers)
        assert again.status_code == 400

        cancelled = client.post(f"/api/leave-requests/{leave['id']}/cancel", headers=auth_headers)
        assert cancelled.json()["status"] == "cancelled"

    def test_end_before_start(self, client, auth_headers, employee):
        response = client.post("/api/leave-requests", json={
            "employee_id": employee["id"],
            "leave_type": "annual",
            "start_date": "2030-03-10",
            "end_date": "2030-03-01"
        }, headers=auth_headers)
        assert response.status_code == 400

    def test_inactive_employee(self, client, auth_headers, employee):
        client.delete(f"/api/employees/{employee['id']}", headers=auth_headers)
        response = client.post("/api/leave-requests", json={
            "employee_id": employee["id"],
            "leave_type": "annual",
            "start_date": "2030-03-02",
            "end_date": "2030-03-03"
        }, headers=auth_headers)
        assert response.status_code == 400


class TestPayrollAPI:

    def test_gross_and_net_pay(self, client, auth_headers, employee):
        created = client.post("/api/payroll", json={
            "employee_id": employee["id"],
            "pay_period_start": "2024-01-01",
            "pay_period_end": "2024-01-31",
            "overtime_hours": "10",
            "overtime_rate": "500",
            "bonuses": "2000",
            "deductions": "3000",
            "tax_deductions": "15000"
        }, headers=auth_headers)
        assert created.status_code == 201, created.text
        record = created.json()
        assert Decimal(record["base_salary"]) == Decimal("80000")
        assert Decimal(record["gross_pay"]) == Decimal("87000")
        assert Decimal(record["net_pay"]) == Decimal("69000")

        duplicate = client.post("/api/payroll", json={
            "employee_id": employee["id"],
            "pay_period_start": "2024-01-01",
            "pay_period_end": "2024-01-31"
        }, headers=auth_headers)
        assert duplicate.status_code == 409

        updated = client.put(f"/api/payroll/{record['id']}", json={"bonuses": "0"}, headers=auth_headers)
        assert Decimal(updated.json()["net_pay"]) == Decimal("67000")

    def test_negative_net_pay_rejected(self, client, auth_headers, employee):
        response = client.post("/api/payroll", json={
            "employee_id": employee["id"],
            "pay_period_start": "2024-02-01",
            "pay_period_end": "2024-02-29",
            "deductions": "100000"
        }, headers=auth_headers)
        assert response.status_code == 400

    def test_status_flow(self, client, auth_headers, employee):
        record = client.post("/api/payroll", json={
            "employee_id": employee["id"],
            "pay_period_start": "2024-03-01",
            "pay_period_end": "2024-03-31"
        }, headers=auth_headers).json()

        assert client.post(f"/api/payroll/{record['id']}/pay", headers=auth_headers).status_code == 400
        approved = client.post(f"/api/payroll/{record['id']}/approve", headers=auth_headers)
        assert approved.json()["status"] == "approved"
        assert client.put(f"/api/payroll/{record['id']}", json={"bonuses": "10"},
                          headers=auth_headers).status_code == 400
        assert client.delete(f"/api/payroll/{record['id']}", headers=auth_headers).status_code == 400

        paid = client.post(f"/api/payroll/{record['id']}/pay", headers=auth_headers)
        assert paid.json()["status"] == "paid"
        assert paid.json()["paid_at"] is not None
