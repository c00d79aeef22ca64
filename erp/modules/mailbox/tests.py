"""
Tests para el buzón interno
"""

import pytest


@pytest.fixture
def colleague(client, auth_headers, owner, register_user):
    data = register_user(email="kevin@printsoft.co.ke")
    added = client.post(f"/api/company/{owner['company_id']}/users",
                        json={"email": "kevin@printsoft.co.ke", "role": "seller"}, headers=auth_headers)
    assert added.status_code in (200, 201), added.text
    return {
        "user_id": data["user"]["id"],
        "headers": {"Authorization": f"Bearer {data['access_token']}", "X-Company-ID": owner["company_id"]},
    }


@pytest.fixture
def sent_message(client, auth_headers, colleague):
    response = client.post("/api/mailbox/messages", json={
        "recipient_ids": [colleague["user_id"]],
        "subject": "Pedido urgente",
        "body": "Revisa el pedido de Mombasa Traders",
        "priority": "high"
    }, headers=auth_headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestMailboxAPI:

    def test_send_and_read(self, client, auth_headers, colleague, sent_message):
        assert sent_message["is_draft"] is False
        assert sent_message["sent_at"] is not None
        assert sent_message["recipients"][0]["recipient_email"] == "kevin@printsoft.co.ke"

        inbox = client.get("/api/mailbox/inbox", headers=colleague["headers"]).json()
        assert inbox["total"] == 1
        assert inbox["items"][0]["is_read"] is False
        assert inbox["items"][0]["sender_email"] == "owner@printsoft.co.ke"

        stats = client.get("/api/mailbox/stats", headers=colleague["headers"]).json()
        assert stats["unread"] == 1 and stats["inbox"] == 1

        opened = client.get(f"/api/mailbox/messages/{sent_message['id']}", headers=colleague["headers"]).json()
        assert opened["is_read"] is True
        assert opened["recipients"][0]["read_at"] is not None
        stats = client.get("/api/mailbox/stats", headers=colleague["headers"]).json()
        assert stats["unread"] == 0

        sent = client.get("/api/mailbox/sent", headers=auth_headers).json()
        assert [m["id"] for m in sent["items"]] == [sent_message["id"]]

    def test_send_requires_recipients(self, client, auth_headers):
        response = client.post("/api/mailbox/messages", json={"subject": "Sin destino"}, headers=auth_headers)
        assert response.status_code == 400

    def test_recipient_must_belong_to_company(self, client, auth_headers, register_user):
        outsider = register_user(email="outsider@example.com")
        response = client.post("/api/mailbox/messages", json={
            "recipient_ids": [outsider["user"]["id"]], "subject": "Hola"
        }, headers=auth_headers)
        assert response.status_code == 400

    def test_draft_lifecycle(self, client, auth_headers, colleague):
        draft = client.post("/api/mailbox/messages", json={"subject": "Borrador", "is_draft": True},
                            headers=auth_headers).json()
        assert draft["is_draft"] is True
        drafts = client.get("/api/mailbox/drafts", headers=auth_headers).json()
        assert drafts["total"] == 1

        no_recipients = client.put(f"/api/mailbox/messages/{draft['id']}", json={"send": True},
                                   headers=auth_headers)
        assert no_recipients.status_code == 400

        sent = client.put(f"/api/mailbox/messages/{draft['id']}", json={
            "recipient_ids": [colleague["user_id"]], "body": "Listo", "send": True
        }, headers=auth_headers)
        assert sent.status_code == 200
        assert sent.json()["is_draft"] is False
        assert client.get("/api/mailbox/drafts", headers=auth_headers).json()["total"] == 0
        assert client.get("/api/mailbox/inbox", headers=colleague["headers"]).json()["total"] == 1

        edit_sent = client.put(f"/api/mailbox/messages/{draft['id']}", json={"body": "cambio"},
                               headers=auth_headers)
        assert edit_sent.status_code == 400

    def test_draft_not_visible_to_recipient(self, client, auth_headers, colleague):
        draft = client.post("/api/mailbox/messages", json={
            "recipient_ids": [colleague["user_id"]], "subject": "Aún no", "is_draft": True
        }, headers=auth_headers).json()
        assert client.get("/api/mailbox/inbox", headers=colleague["headers"]).json()["total"] == 0
        response = client.get(f"/api/mailbox/messages/{draft['id']}", headers=colleague["headers"])
        assert response.status_code == 404

    def test_star_and_delete_per_side(self, client, auth_headers, colleague, sent_message):
        starred = client.post(f"/api/mailbox/messages/{sent_message['id']}/star", headers=colleague["headers"])
        assert starred.json()["is_starred"] is True
        assert client.get("/api/mailbox/starred", headers=colleague["headers"]).json()["total"] == 1
        assert client.get("/api/mailbox/starred", headers=auth_headers).json()["total"] == 0

        deleted = client.delete(f"/api/mailbox/messages/{sent_message['id']}", headers=colleague["headers"])
        assert deleted.status_code == 200
        assert client.get("/api/mailbox/inbox", headers=colleague["headers"]).json()["total"] == 0
        assert client.get("/api/mailbox/sent", headers=auth_headers).json()["total"] == 1

        client.delete(f"/api/mailbox/messages/{sent_message['id']}", headers=auth_headers)
        assert client.get("/api/mailbox/sent", headers=auth_headers).json()["total"] == 0
        response = client.get(f"/api/mailbox/messages/{sent_message['id']}", headers=auth_headers)
        assert response.status_code == 404

    def test_users_lookup(self, client, auth_headers, colleague):
        users = client.get("/api/mailbox/users", headers=auth_headers).json()
        assert [u["email"] for u in users] == ["kevin@printsoft.co.ke"]
        assert users[0]["role"] == "seller"
