"""
Tests des routes /api/v1/contracts.
"""

from sqlalchemy.orm import Session

from app.models import Contract, TsfStatus, UserRole

BASE_URL = "/api/v1/contracts"


def _payload(apprentice, **overrides):
    data = {
        "apprentice_id": apprentice.id,
        "start_date": "2025-09-01",
        "end_date": "2027-09-01",
    }
    data.update(overrides)
    return data


class TestListAndGet:

    def test_admin_lists_tenant_contracts(self, admin_client, contract: Contract):
        response = admin_client.get(BASE_URL)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["pages"] == 1
        assert body["items"][0]["id"] == contract.id

    def test_apprentice_only_sees_own_contracts(
            self, make_client, db_session: Session, tenant, contract, user_factory,
    ):
        stranger = user_factory("autre@cfa-test.fr", UserRole.APPRENTICE, tenant)
        client = make_client(stranger)

        assert client.get(BASE_URL).json()["total"] == 0
        assert client.get(f"{BASE_URL}/{contract.id}").status_code == 403

    def test_get_contract(self, apprentice_client, contract: Contract):
        response = apprentice_client.get(f"{BASE_URL}/{contract.id}")

        assert response.status_code == 200
        assert response.json()["tsf_status"] == TsfStatus.DRAFT.value

    def test_get_unknown_contract(self, admin_client):
        assert admin_client.get(f"{BASE_URL}/9999").status_code == 404


class TestCreate:

    def test_create_contract(self, admin_client, apprentice, referentiel):
        response = admin_client.post(BASE_URL, json=_payload(apprentice, referentiel_id=referentiel.id))

        assert response.status_code == 201
        body = response.json()
        assert body["apprentice_id"] == apprentice.id
        assert body["version_id"] == "v1"

    def test_invalid_dates(self, admin_client, apprentice):
        response = admin_client.post(BASE_URL, json=_payload(apprentice, end_date="2025-01-01"))
        assert response.status_code == 422

    def test_duplicate_external_id(self, admin_client, apprentice):
        admin_client.post(BASE_URL, json=_payload(apprentice, external_id="ERP-42"))
        response = admin_client.post(BASE_URL, json=_payload(apprentice, external_id="ERP-42"))
        assert response.status_code == 409

    def test_unknown_apprentice(self, admin_client, other_apprentice):
        response = admin_client.post(BASE_URL, json=_payload(other_apprentice))
        assert response.status_code == 404

    def test_formateur_cannot_create(self, formateur_client, apprentice):
        response = formateur_client.post(BASE_URL, json=_payload(apprentice))
        assert response.status_code == 403


class TestUpdateDeleteLock:

    def test_patch_rejects_inverted_dates(self, admin_client, contract: Contract):
        response = admin_client.patch(f"{BASE_URL}/{contract.id}", json={"end_date": "2025-01-01"})
        assert response.status_code == 400

    def test_delete(self, admin_client, contract: Contract):
        assert admin_client.delete(f"{BASE_URL}/{contract.id}").status_code == 204
        assert admin_client.get(f"{BASE_URL}/{contract.id}").status_code == 404

    def test_apprentice_cannot_lock(self, apprentice_client, contract: Contract):
        response = apprentice_client.post(f"{BASE_URL}/{contract.id}/lock", json={"signature": "sig"})
        assert response.status_code == 403

    def test_formateur_locks(self, formateur_client, contract: Contract):
        response = formateur_client.post(f"{BASE_URL}/{contract.id}/lock", json={"signature": "sig"})

        assert response.status_code == 200
        assert response.json()["is_locked"] is True
        assert response.json()["tsf_status"] == TsfStatus.VALIDATED.value

    def test_initialize_journey_by_trimester(self, admin_client, contract: Contract):
        response = admin_client.post(f"{BASE_URL}/{contract.id}/journey", json={"period_type": "TRIMESTER"})

        assert response.status_code == 200
        assert response.json() == {"num_periods": 8, "version_id": "v1"}
