"""
Tests des routes /api/v1/api-keys.
"""

BASE_URL = "/api/v1/api-keys"


class TestApiKeysRoutes:

    def test_plain_key_shown_once(self, admin_client):
        response = admin_client.post(BASE_URL, json={"name": "ERP Yparéo"})

        assert response.status_code == 201
        created = response.json()
        assert created["plain_key"].startswith("cfa_live_")
        assert created["prefix"] == "cfa_live_"

        [listed] = admin_client.get(BASE_URL).json()
        assert listed["id"] == created["id"]
        assert "plain_key" not in listed

    def test_revoke(self, admin_client):
        key_id = admin_client.post(BASE_URL, json={"name": "ERP"}).json()["id"]

        assert admin_client.delete(f"{BASE_URL}/{key_id}").status_code == 204
        assert admin_client.get(BASE_URL).json() == []

    def test_unknown_key(self, admin_client):
        assert admin_client.delete(f"{BASE_URL}/9999").status_code == 404

    def test_admin_only(self, formateur_client):
        assert formateur_client.get(BASE_URL).status_code == 403
        assert formateur_client.post(BASE_URL, json={"name": "ERP"}).status_code == 403
