"""
Tests des routes /api/v1/external (authentification par clé d'API).
"""

import pytest
from sqlalchemy import select

from app.api.v1.api_keys.services import ApiKeyService
from app.models import ApiKey

BASE_URL = "/api/v1/external"


@pytest.fixture
def api_key(db_session, tenant, admin) -> str:
    _, plain_key = ApiKeyService(db_session, tenant.id).create_key("CRM", admin.id)
    return plain_key


@pytest.fixture
def client(make_client):
    return make_client()


def _sync_body(**overrides):
    body = {
        "email": "crm.apprenti@cfa-test.fr",
        "first_name": "Noé",
        "last_name": "Lambert",
        "contract": {
            "external_id": "CTR-77",
            "start_date": "2025-09-01",
            "end_date": "2027-09-01",
            "rncp_code": "RNCP35475",
        },
    }
    body.update(overrides)
    return body


class TestApiKeyAuthentication:

    def test_missing_key(self, client):
        assert client.get(f"{BASE_URL}/analytics/export").status_code == 401

    def test_malformed_key(self, client):
        response = client.get(f"{BASE_URL}/analytics/export", headers={"x-api-key": "sk_test_123"})
        assert response.status_code == 403

    def test_revoked_key(self, client, db_session, tenant, admin):
        service = ApiKeyService(db_session, tenant.id)
        api_key, plain_key = service.create_key("Ancien", admin.id)
        service.revoke_key(api_key.id)

        response = client.get(f"{BASE_URL}/analytics/export", headers={"x-api-key": plain_key})
        assert response.status_code == 403

    def test_valid_key_is_touched(self, client, db_session, api_key):
        response = client.get(f"{BASE_URL}/analytics/export", headers={"x-api-key": api_key})

        assert response.status_code == 200
        assert db_session.execute(select(ApiKey)).scalar_one().last_used_at is not None


class TestSync:

    def test_sync_apprentice(self, client, api_key, referentiel):
        response = client.post(f"{BASE_URL}/sync/apprentice", json=_sync_body(), headers={"x-api-key": api_key})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["contract_id"] is not None
        assert body["tsf_generated"] is True

    def test_cross_tenant_conflict(self, client, api_key, other_apprentice):
        response = client.post(
            f"{BASE_URL}/sync/apprentice",
            json=_sync_body(email=other_apprentice.email),
            headers={"x-api-key": api_key},
        )
        assert response.status_code == 409

    def test_invalid_dates(self, client, api_key):
        body = _sync_body()
        body["contract"]["end_date"] = "2024-01-01"

        response = client.post(f"{BASE_URL}/sync/apprentice", json=body, headers={"x-api-key": api_key})
        assert response.status_code == 400


class TestExportAndMobile:

    def test_export_contracts(self, client, api_key, contract):
        response = client.get(
            f"{BASE_URL}/analytics/export", params={"type": "contracts"}, headers={"x-api-key": api_key},
        )

        assert response.status_code == 200
        assert response.json()["count"] == 1
        assert response.json()["data"][0]["id"] == contract.id

    def test_export_invalid_type(self, client, api_key):
        response = client.get(
            f"{BASE_URL}/analytics/export", params={"type": "factures"}, headers={"x-api-key": api_key},
        )
        assert response.status_code == 400

    def test_export_limit_capped(self, client, api_key):
        response = client.get(
            f"{BASE_URL}/analytics/export", params={"limit": 1000}, headers={"x-api-key": api_key},
        )
        assert response.status_code == 422

    def test_mobile_proof(self, client, api_key, apprentice, referentiel):
        response = client.post(
            f"{BASE_URL}/mobile/proof",
            data={"apprentice_email": apprentice.email, "competence_id": str(referentiel.competences[0].id)},
            files={"file": ("chantier.jpg", b"\xff\xd8\xff", "image/jpeg")},
            headers={"x-api-key": api_key},
        )

        assert response.status_code == 200
        assert response.json()["url"].endswith(".jpg")

    def test_mobile_proof_missing_fields(self, client, api_key, apprentice):
        response = client.post(
            f"{BASE_URL}/mobile/proof",
            data={"apprentice_email": apprentice.email},
            headers={"x-api-key": api_key},
        )
        assert response.status_code == 400
