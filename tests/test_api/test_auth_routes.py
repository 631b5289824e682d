"""
Tests des routes /api/v1/auth (connexion JWT de bout en bout, inscription, impersonation).

Ces tests n'overrident pas get_current_user : le jeton est vérifié réellement.
"""

import pytest
from fastapi.testclient import TestClient

import app.core.impersonation as impersonation_module

BASE_URL = "/api/v1/auth"
PASSWORD = "MotDePasse123!"


@pytest.fixture
def client(make_client) -> TestClient:
    return make_client()


@pytest.fixture
def redis_double(monkeypatch, fake_redis):
    monkeypatch.setattr(impersonation_module, "get_redis", lambda: fake_redis)
    return fake_redis


def _login(client: TestClient, email: str, password: str = PASSWORD):
    return client.post(f"{BASE_URL}/login", json={"email": email, "password": password})


def _bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class TestLogin:

    def test_login_then_me(self, client, admin):
        response = _login(client, admin.email)

        assert response.status_code == 200
        body = response.json()
        assert body["user"]["email"] == admin.email
        assert body["user"]["role"] == "ADMIN"

        me = client.get(f"{BASE_URL}/me", headers=_bearer(body["tokens"]["access_token"]))
        assert me.status_code == 200
        assert me.json()["id"] == admin.id

    def test_bad_password(self, client, admin):
        assert _login(client, admin.email, "mauvais").status_code == 401

    def test_inactive_account(self, client, db_session, admin):
        admin.is_active = False
        db_session.flush()

        assert _login(client, admin.email).status_code == 403

    def test_me_requires_token(self, client):
        assert client.get(f"{BASE_URL}/me").status_code == 401
        assert client.get(f"{BASE_URL}/me", headers=_bearer("pas-un-jwt")).status_code == 401

    def test_refresh(self, client, admin):
        tokens = _login(client, admin.email).json()["tokens"]

        response = client.post(f"{BASE_URL}/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 200

        rejected = client.post(f"{BASE_URL}/refresh", json={"refresh_token": tokens["access_token"]})
        assert rejected.status_code == 401

    def test_access_token_updates_activity(self, client, admin):
        token = _login(client, admin.email).json()["tokens"]["access_token"]
        assert admin.last_activity_at is None

        client.get(f"{BASE_URL}/me", headers=_bearer(token))

        assert admin.last_activity_at is not None


class TestRegister:

    def test_register_tenant(self, client):
        response = client.post(f"{BASE_URL}/register-tenant", json={
            "cfa_name": "CFA du Bâtiment",
            "admin_email": "direction@cfa-batiment.fr",
            "password": "secret123",
            "first_name": "Lucie",
            "last_name": "Bernard",
        })

        assert response.status_code == 201
        assert response.json()["slug"] == "cfa-du-batiment"
        assert _login(client, "direction@cfa-batiment.fr", "secret123").status_code == 200

    def test_register_duplicate_email(self, client, admin):
        response = client.post(f"{BASE_URL}/register-tenant", json={
            "cfa_name": "Doublon",
            "admin_email": admin.email,
            "password": "secret123",
            "first_name": "A",
            "last_name": "B",
        })
        assert response.status_code == 409


class TestImpersonation:

    def test_impersonation_lifecycle(self, client, redis_double, super_admin, formateur):
        admin_token = _login(client, super_admin.email).json()["tokens"]["access_token"]

        started = client.post(f"{BASE_URL}/impersonation/{formateur.id}", headers=_bearer(admin_token))
        assert started.status_code == 200
        assert started.json()["target_user"]["id"] == formateur.id
        impersonation_token = started.json()["access_token"]

        me = client.get(f"{BASE_URL}/me", headers=_bearer(impersonation_token))
        assert me.json()["id"] == formateur.id

        stopped = client.delete(f"{BASE_URL}/impersonation", headers=_bearer(admin_token))
        assert stopped.status_code == 204

        expired = client.get(f"{BASE_URL}/me", headers=_bearer(impersonation_token))
        assert expired.status_code == 401

    def test_only_super_admin(self, client, redis_double, admin, formateur):
        token = _login(client, admin.email).json()["tokens"]["access_token"]

        response = client.post(f"{BASE_URL}/impersonation/{formateur.id}", headers=_bearer(token))
        assert response.status_code == 403

    def test_stop_without_session(self, client, redis_double, super_admin):
        token = _login(client, super_admin.email).json()["tokens"]["access_token"]

        assert client.delete(f"{BASE_URL}/impersonation", headers=_bearer(token)).status_code == 404
