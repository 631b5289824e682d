"""
Tests des routes /api/v1/livrets.
"""

from datetime import date

import pytest
from sqlalchemy.orm import Session

from app.models import Contract, LivretStatus, UserRole

BASE_URL = "/api/v1/livrets"


@pytest.fixture
def livret_id(formateur_client, contract: Contract) -> int:
    response = formateur_client.post(f"{BASE_URL}/contracts/{contract.id}")
    assert response.status_code == 201
    return response.json()["id"]


class TestCreateAndRead:

    def test_create_freezes_snapshot(self, formateur_client, contract: Contract):
        response = formateur_client.post(f"{BASE_URL}/contracts/{contract.id}")

        assert response.status_code == 201
        body = response.json()
        assert body["status"] == LivretStatus.DRAFT.value
        assert body["snapshot"] is not None
        listed = formateur_client.get(f"{BASE_URL}/contracts/{contract.id}").json()
        assert [item["id"] for item in listed] == [body["id"]]

    def test_contract_without_referentiel(self, admin_client, db_session: Session, tenant, apprentice):
        contract = Contract(
            tenant_id=tenant.id,
            apprentice_id=apprentice.id,
            start_date=date(2025, 9, 1),
            end_date=date(2027, 9, 1),
        )
        db_session.add(contract)
        db_session.commit()

        assert admin_client.post(f"{BASE_URL}/contracts/{contract.id}").status_code == 400

    def test_stranger_cannot_read(self, make_client, tenant, livret_id, user_factory):
        stranger = user_factory("inconnu@cfa-test.fr", UserRole.APPRENTICE, tenant)
        assert make_client(stranger).get(f"{BASE_URL}/{livret_id}").status_code == 403

    def test_progress_report(self, apprentice_client, contract: Contract):
        report = apprentice_client.get(f"{BASE_URL}/contracts/{contract.id}/report").json()

        assert report["contract_id"] == contract.id
        assert len(report["blocks"]) == 3
        assert len(report["verification_hash"]) == 12


class TestTripartiteSignature:

    def test_full_flow(self, make_client, livret_id, apprentice, tutor, formateur):
        response = make_client(apprentice).post(f"{BASE_URL}/{livret_id}/sign", json={"signature_data": "sig-a"})
        assert response.status_code == 200
        assert response.json()["status"] == LivretStatus.PARTIALLY_SIGNED.value

        assert make_client(tutor).post(
            f"{BASE_URL}/{livret_id}/sign", json={"signature_data": "sig-t"}
        ).status_code == 200

        client = make_client(formateur)
        response = client.post(f"{BASE_URL}/{livret_id}/sign", json={"signature_data": "sig-c"})
        assert response.json()["status"] == LivretStatus.FULLY_SIGNED.value
        assert response.json()["signed_at"] is not None

        status_body = client.get(f"{BASE_URL}/{livret_id}/signature-status").json()
        assert status_body["is_fully_signed"] is True
        assert status_body["apprentice"]["name"] == "David Leroy"

    def test_cannot_sign_twice(self, make_client, livret_id, apprentice):
        client = make_client(apprentice)
        client.post(f"{BASE_URL}/{livret_id}/sign", json={"signature_data": "sig"})

        assert client.post(f"{BASE_URL}/{livret_id}/sign", json={"signature_data": "sig"}).status_code == 409

    def test_other_apprentice_cannot_sign(self, make_client, tenant, livret_id, user_factory):
        stranger = user_factory("inconnu@cfa-test.fr", UserRole.APPRENTICE, tenant)
        response = make_client(stranger).post(f"{BASE_URL}/{livret_id}/sign", json={"signature_data": "sig"})
        assert response.status_code == 403

    def test_invalid_magic_token(self, make_client, livret_id):
        client = make_client(None)

        assert client.get(f"{BASE_URL}/magic/{'x' * 32}").status_code == 401
        response = client.post(
            f"{BASE_URL}/{livret_id}/sign/magic",
            json={"signature_data": "sig", "token": "x" * 32},
        )
        assert response.status_code == 401


class TestTutorInvite:

    def test_invite_external_tutor(self, formateur_client, contract: Contract):
        response = formateur_client.post(
            f"{BASE_URL}/contracts/{contract.id}/invite-tutor",
            json={"tutor_email": "maitre@societe.fr", "tutor_name": "Paul Girard"},
        )

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert response.json()["email_sent"] is False

    def test_apprentice_cannot_invite(self, apprentice_client, contract: Contract):
        response = apprentice_client.post(
            f"{BASE_URL}/contracts/{contract.id}/invite-tutor",
            json={"tutor_email": "maitre@societe.fr"},
        )
        assert response.status_code == 403

    def test_email_of_other_account(self, formateur_client, contract: Contract, other_apprentice):
        response = formateur_client.post(
            f"{BASE_URL}/contracts/{contract.id}/invite-tutor",
            json={"tutor_email": other_apprentice.email},
        )
        assert response.status_code == 409
