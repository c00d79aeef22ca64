"""
Tests para los parámetros generales de la empresa
"""


class TestSystemSettingsAPI:

    def test_update_creates_then_replaces(self, client, auth_headers):
        created = client.put("/api/system-settings", json={
            "key": "invoice_footer", "value": "Gracias por su compra", "is_public": True
        }, headers=auth_headers)
        assert created.status_code == 200
        assert created.json()["key"] == "invoice_footer"
        assert created.json()["setting_type"] == "string"

        replaced = client.put("/api/system-settings", json={
            "key": "invoice_footer", "value": "Asante sana", "is_public": True
        }, headers=auth_headers)
        assert replaced.json()["id"] == created.json()["id"]
        assert replaced.json()["value"] == "Asante sana"

        listed = client.get("/api/system-settings", headers=auth_headers).json()
        assert [s["key"] for s in listed] == ["invoice_footer"]
        assert client.get("/api/system-settings/invoice_footer", headers=auth_headers).json()["value"] == "Asante sana"

    def test_value_must_match_type(self, client, auth_headers):
        bad_number = client.put("/api/system-settings", json={
            "key": "tax_rate", "value": "dieciséis", "setting_type": "number"
        }, headers=auth_headers)
        assert bad_number.status_code == 400

        bad_bool = client.put("/api/system-settings", json={
            "key": "sms_notifications", "value": "quizás", "setting_type": "boolean"
        }, headers=auth_headers)
        assert bad_bool.status_code == 400

        ok = client.put("/api/system-settings", json={
            "key": "sms_notifications", "value": True, "setting_type": "boolean"
        }, headers=auth_headers)
        assert ok.status_code == 200
        assert ok.json()["value"] == "true"

    def test_reset_restores_defaults(self, client, auth_headers):
        client.put("/api/system-settings", json={"key": "tax_rate", "value": "8", "setting_type": "number"},
                   headers=auth_headers)
        client.put("/api/system-settings", json={"key": "legacy.flag", "value": "x"}, headers=auth_headers)

        response = client.post("/api/system-settings/reset", headers=auth_headers)
        assert response.status_code == 200
        restored = {s["key"]: s["value"] for s in response.json()["settings"]}
        assert "legacy.flag" not in restored
        assert restored["tax_rate"] == "16"
        assert restored["currency"] == "KES"
        assert restored["company_name"] == "PrintSoft Ltd"
        assert restored["timezone"] == "Africa/Nairobi"

        public = client.get("/api/system-settings", params={"public_only": "true"}, headers=auth_headers).json()
        assert "email_notifications" not in [s["key"] for s in public]

    def test_delete_and_missing_key(self, client, auth_headers):
        client.put("/api/system-settings", json={"key": "banner", "value": "Hola"}, headers=auth_headers)
        assert client.delete("/api/system-settings/banner", headers=auth_headers).status_code == 200
        assert client.get("/api/system-settings/banner", headers=auth_headers).status_code == 404

    def test_settings_are_per_company_and_admin_only(self, client, auth_headers, owner, register_user):
        client.put("/api/system-settings", json={"key": "banner", "value": "Hola"}, headers=auth_headers)
        other = register_user(email="otra@empresa.co.ke", company_name="Otra Empresa")
        other_headers = {
            "Authorization": f"Bearer {other['access_token']}",
            "X-Company-ID": other["companies"][0]["company_id"]
        }
        assert client.get("/api/system-settings", headers=other_headers).json() == []

        viewer = register_user(email="viewer@printsoft.co.ke")
        client.post(f"/api/company/{owner['company_id']}/users",
                    json={"email": "viewer@printsoft.co.ke", "role": "viewer"}, headers=auth_headers)
        viewer_headers = {"Authorization": f"Bearer {viewer['access_token']}", "X-Company-ID": owner["company_id"]}
        assert client.get("/api/system-settings", headers=viewer_headers).status_code == 200
        denied = client.put("/api/system-settings", json={"key": "banner", "value": "Adiós"}, headers=viewer_headers)
        assert denied.status_code == 403
