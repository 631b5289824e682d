"""
Tests des routes /api/v1/tsf et de la tâche planifiée /api/v1/cron/daily.
"""

from app.api.v1.monitoring.services import sync_milestones
from app.api.v1.tsf.services import TSFService
from app.models import Contract, PeriodType, TSFMapping
from sqlalchemy import select

BASE_URL = "/api/v1/tsf"


class TestTsfTree:

    def test_apprentice_reads_own_tsf(self, apprentice_client, db_session, tenant, contract: Contract):
        TSFService(db_session, tenant.id).initialize_journey(contract.id, PeriodType.SEMESTER)

        response = apprentice_client.get(f"{BASE_URL}/contracts/{contract.id}")

        assert response.status_code == 200
        body = response.json()
        assert len(body["periods"]) == 4
        assert len(body["blocs"]) == 3
        assert body["progress"] == 0

    def test_other_tenant_gets_404(self, make_client, other_apprentice, contract: Contract):
        response = make_client(other_apprentice).get(f"{BASE_URL}/contracts/{contract.id}")
        assert response.status_code == 404

    def test_progress_by_bloc(self, formateur_client, contract: Contract):
        response = formateur_client.get(f"{BASE_URL}/contracts/{contract.id}/progress")

        assert response.status_code == 200
        assert [b["percentage"] for b in response.json()] == [0, 0, 0]

    def test_generate_requires_staff(self, apprentice_client, formateur_client, contract: Contract):
        assert apprentice_client.post(f"{BASE_URL}/contracts/{contract.id}/generate").status_code == 403

        response = formateur_client.post(f"{BASE_URL}/contracts/{contract.id}/generate")
        assert response.status_code == 200
        assert response.json()["success"] is True


class TestMappingsAndIndicators:

    def test_locked_contract_conflict(self, formateur_client, db_session, tenant, contract: Contract, referentiel):
        TSFService(db_session, tenant.id).initialize_journey(contract.id, PeriodType.SEMESTER)
        mapping = db_session.execute(select(TSFMapping)).scalars().first()
        contract.is_locked = True
        db_session.commit()

        response = formateur_client.put(f"{BASE_URL}/contracts/{contract.id}/mappings", json={
            "competence_id": referentiel.competences[0].id,
            "period_id": mapping.period_id,
            "flag_cfa": True,
        })
        assert response.status_code == 409

    def test_validate_mapping(self, make_client, tutor, db_session, tenant, contract: Contract):
        TSFService(db_session, tenant.id).initialize_journey(contract.id, PeriodType.SEMESTER)
        mapping = db_session.execute(select(TSFMapping)).scalars().first()

        response = make_client(tutor).patch(f"{BASE_URL}/mappings/{mapping.id}", json={"status": "ACQUIS"})

        assert response.status_code == 200
        assert response.json()["status"] == "ACQUIS"

    def test_toggle_indicator(self, formateur_client, contract: Contract, referentiel, formateur):
        indicateur = referentiel.competences[0].indicateurs[0]
        url = f"{BASE_URL}/contracts/{contract.id}/indicateurs/{indicateur.id}"

        response = formateur_client.post(url, json={"status": "ACQUIS"})
        assert response.status_code == 200
        assert response.json()["status"] == "ACQUIS"

        response = formateur_client.post(url, json={"status": "PENDING"})
        assert response.status_code == 200
        assert response.json() is None

    def test_apprentice_cannot_toggle(self, apprentice_client, contract: Contract, referentiel):
        indicateur = referentiel.competences[0].indicateurs[0]
        response = apprentice_client.post(
            f"{BASE_URL}/contracts/{contract.id}/indicateurs/{indicateur.id}", json={"status": "ACQUIS"},
        )
        assert response.status_code == 403

    def test_invalid_status(self, formateur_client, contract: Contract, referentiel):
        indicateur = referentiel.competences[0].indicateurs[0]
        response = formateur_client.post(
            f"{BASE_URL}/contracts/{contract.id}/indicateurs/{indicateur.id}", json={"status": "PEUT-ÊTRE"},
        )
        assert response.status_code == 422


class TestDailyCron:

    def test_requires_secret(self, make_client):
        client = make_client()
        assert client.post("/api/v1/cron/daily").status_code == 401
        assert client.post("/api/v1/cron/daily", headers={"Authorization": "Bearer faux"}).status_code == 401

    def test_runs_alerts(self, make_client, db_session, contract: Contract):
        sync_milestones(db_session, contract)
        db_session.commit()

        response = make_client().post(
            "/api/v1/cron/daily", headers={"Authorization": "Bearer test-cron-secret"},
        )

        assert response.status_code == 200
        assert set(response.json()["results"]) == {"reminders", "urgent", "escalations", "emails_sent"}
