"""
Tests para autenticación y empresas

- Registro (con y sin empresa), login, refresh y /me
- Membresías: agregar usuarios con rol, listar, aislamiento entre empresas
"""

from erp.modules.auth.utils import verify_password, hash_password


class TestPasswordHashing:

    def test_hash_and_verify(self):
        hashed = hash_password("Secreta123")
        assert hashed != "Secreta123"
        assert verify_password("Secreta123", hashed)
        assert not verify_password("otra", hashed)


class TestAuthAPI:

    def test_register_with_company_makes_owner(self, client, register_user):
        data = register_user(email="founder@printsoft.co.ke", company_name="Nairobi Prints")
        assert data["user"]["email"] == "founder@printsoft.co.ke"
        assert data["refresh_token"]
        assert len(data["companies"]) == 1
        assert data["companies"][0]["role"] == "owner"
        assert data["companies"][0]["company_name"] == "Nairobi Prints"

    def test_register_duplicate_email(self, client, register_user):
        register_user(email="dup@printsoft.co.ke")
        response = client.post("/api/auth/register", json={
            "email": "dup@printsoft.co.ke", "password": "Secreta123",
            "first_name": "Otra", "last_name": "Persona"
        })
        assert response.status_code == 409

    def test_register_short_password_is_400(self, client):
        response = client.post("/api/auth/register", json={
            "email": "short@printsoft.co.ke", "password": "123",
            "first_name": "Ana", "last_name": "Njeri"
        })
        assert response.status_code == 400

    def test_login(self, client, owner):
        ok = client.post("/api/auth/login", json={"email": "owner@printsoft.co.ke", "password": "Secreta123"})
        assert ok.status_code == 200
        assert ok.json()["companies"][0]["company_id"] == owner["company_id"]

        wrong = client.post("/api/auth/login", json={"email": "owner@printsoft.co.ke", "password": "incorrecta"})
        assert wrong.status_code == 401

    def test_me_and_refresh(self, client, register_user):
        data = register_user(email="me@printsoft.co.ke")
        me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['access_token']}"})
        assert me.json()["email"] == "me@printsoft.co.ke"

        refreshed = client.post("/api/auth/refresh", json={"refresh_token": data["refresh_token"]})
        assert refreshed.status_code == 200
        assert refreshed.json()["user"]["id"] == data["user"]["id"]

        access_as_refresh = client.post("/api/auth/refresh", json={"refresh_token": data["access_token"]})
        assert access_as_refresh.status_code == 401

    def test_refresh_token_is_not_an_access_token(self, client, register_user):
        data = register_user()
        response = client.get("/api/auth/me", headers={"Authorization": f"Bearer {data['refresh_token']}"})
        assert response.status_code == 401

    def test_select_company_requires_membership(self, client, owner, register_user):
        stranger = register_user(email="stranger@printsoft.co.ke")
        response = client.post("/api/auth/select-company", json={"company_id": owner["company_id"]},
                               headers={"Authorization": f"Bearer {stranger['access_token']}"})
        assert response.status_code == 403


class TestCompanyAPI:

    def test_create_company_seeds_numbering(self, client, register_user):
        data = register_user(email="second@printsoft.co.ke")
        headers = {"Authorization": f"Bearer {data['access_token']}"}
        response = client.post("/api/company", json={"name": "Kisumu Print House", "tax_pin": "p051234567x"},
                               headers=headers)
        assert response.status_code == 201
        company = response.json()
        assert company["country"] == "Kenya"
        assert company["currency"] == "KES"
        assert company["tax_pin"] == "P051234567X"
        assert company["numbering_settings_created"] > 0

        mine = client.get("/api/company/mine", headers=headers).json()
        assert [(c["name"], c["role"]) for c in mine] == [("Kisumu Print House", "owner")]

    def test_company_name_unique(self, client, auth_headers):
        response = client.post("/api/company", json={"name": "PrintSoft Ltd"}, headers=auth_headers)
        assert response.status_code == 409

    def test_add_and_list_users(self, client, auth_headers, owner, register_user):
        register_user(email="accountant@printsoft.co.ke")
        added = client.post(f"/api/company/{owner['company_id']}/users",
                            json={"email": "accountant@printsoft.co.ke", "role": "accountant"},
                            headers=auth_headers)
        assert added.status_code == 201
        assert added.json()["role"] == "accountant"

        again = client.post(f"/api/company/{owner['company_id']}/users",
                            json={"email": "accountant@printsoft.co.ke", "role": "viewer"},
                            headers=auth_headers)
        assert again.status_code == 409

        unknown = client.post(f"/api/company/{owner['company_id']}/users",
                              json={"email": "nadie@printsoft.co.ke"}, headers=auth_headers)
        assert unknown.status_code == 404

        listed = client.get(f"/api/company/{owner['company_id']}/users", headers=auth_headers).json()
        assert listed["total"] == 2

    def test_non_admin_cannot_add_users(self, client, auth_headers, owner, register_user):
        seller = register_user(email="seller@printsoft.co.ke")
        register_user(email="friend@printsoft.co.ke")
        client.post(f"/api/company/{owner['company_id']}/users",
                    json={"email": "seller@printsoft.co.ke", "role": "seller"}, headers=auth_headers)
        response = client.post(f"/api/company/{owner['company_id']}/users",
                               json={"email": "friend@printsoft.co.ke", "role": "viewer"},
                               headers={"Authorization": f"Bearer {seller['access_token']}"})
        assert response.status_code == 403

    def test_company_hidden_from_non_members(self, client, owner, register_user):
        stranger = register_user(email="stranger@printsoft.co.ke")
        response = client.get(f"/api/company/{owner['company_id']}",
                              headers={"Authorization": f"Bearer {stranger['access_token']}"})
        assert response.status_code == 404
