"""
Tests des tableaux de bord de pilotage (inactivité, santé, parcours, KPIs, export).
"""

from datetime import date, datetime, timedelta, timezone

import pytest
from sqlalchemy.orm import Session

from app.api.v1.monitoring.services import sync_milestones
from app.api.v1.supervision.services import (
    CSV_HEADER,
    NEVER_ACTIVE,
    SupervisionService,
    inactivity_status_for,
)
from app.models import Contract, HealthStatus, Proof, TsfStatus, UserRole

NOW = datetime(2025, 10, 1, 12, tzinfo=timezone.utc)


@pytest.fixture
def second_contract(db_session: Session, tenant, referentiel, user_factory) -> Contract:
    """Contrat suivi par un autre formateur."""
    other_formateur = user_factory("formateur2@cfa-test.fr", UserRole.FORMATEUR, tenant)
    other_apprentice = user_factory(
        "apprenti2@cfa-test.fr", UserRole.APPRENTICE, tenant, first_name="Hugo", last_name="Faure",
    )
    contract = Contract(
        tenant_id=tenant.id,
        apprentice_id=other_apprentice.id,
        formateur_id=other_formateur.id,
        referentiel_id=referentiel.id,
        start_date=date(2025, 9, 1),
        end_date=date(2027, 9, 1),
    )
    db_session.add(contract)
    db_session.commit()
    return contract


class TestInactivity:
    """Tests pour apprentice_inactivity."""

    @pytest.mark.parametrize("days, expected", [
        (NEVER_ACTIVE, HealthStatus.DANGER),
        (0, HealthStatus.GOOD),
        (2, HealthStatus.GOOD),
        (3, HealthStatus.WARNING),
        (7, HealthStatus.WARNING),
        (8, HealthStatus.DANGER),
    ])
    def test_thresholds(self, days, expected):
        assert inactivity_status_for(days) == expected

    def test_never_active_first(self, db_session: Session, tenant, admin, contract, second_contract):
        db_session.add(Proof(
            tenant_id=tenant.id,
            apprentice_id=contract.apprentice_id,
            title="Semaine 1",
            created_at=NOW - timedelta(days=4),
        ))
        db_session.commit()

        stats = SupervisionService(db_session, tenant.id, admin).apprentice_inactivity(now=NOW)

        assert [s["days_inactive"] for s in stats] == [NEVER_ACTIVE, 4]
        assert stats[0]["full_name"] == "Hugo Faure"
        assert stats[1]["status"] == HealthStatus.WARNING

    def test_last_activity_counts(self, db_session: Session, tenant, admin, apprentice):
        apprentice.last_activity_at = NOW - timedelta(hours=30)
        db_session.commit()

        [stat] = SupervisionService(db_session, tenant.id, admin).apprentice_inactivity(now=NOW)

        assert stat["days_inactive"] == 2
        assert stat["status"] == HealthStatus.GOOD

    def test_formateur_scope(self, db_session: Session, tenant, formateur, contract, second_contract):
        stats = SupervisionService(db_session, tenant.id, formateur).apprentice_inactivity(now=NOW)

        assert [s["user_id"] for s in stats] == [contract.apprentice_id]


class TestHealthAndWorkflow:
    """Tests pour contracts_health_overview et workflow."""

    def test_overview_sorted_by_risk(self, db_session: Session, tenant, admin, contract, second_contract):
        sync_milestones(db_session, second_contract)
        db_session.commit()

        overview = SupervisionService(db_session, tenant.id, admin).contracts_health_overview(
            today=date(2025, 11, 1)
        )

        assert [o["contract_id"] for o in overview] == [second_contract.id, contract.id]
        assert overview[0]["health_status"] == HealthStatus.DANGER
        assert overview[1]["health_score"] == 80

    def test_formateur_filter(self, db_session: Session, tenant, admin, formateur, contract, second_contract):
        overview = SupervisionService(db_session, tenant.id, admin).contracts_health_overview(
            formateur_id=formateur.id, today=date(2025, 11, 1)
        )
        assert [o["contract_id"] for o in overview] == [contract.id]

    def test_workflow_blocked_at_first_missing_step(self, db_session: Session, tenant, admin, contract):
        [row] = SupervisionService(db_session, tenant.id, admin).workflow()

        assert row["blocked_at"] == 1
        assert set(row["steps"].values()) == {"PENDING"}

        contract.tsf_status = TsfStatus.VALIDATED
        db_session.commit()
        [row] = SupervisionService(db_session, tenant.id, admin).workflow()
        assert row["steps"]["tsf"] == "DONE"
        assert row["blocked_at"] == 1

    def test_workflow_empty(self, db_session: Session, tenant, admin):
        assert SupervisionService(db_session, tenant.id, admin).workflow() == []


class TestKpisAndExport:
    """Tests pour governance_kpis et export_non_compliant_csv."""

    def test_kpis(self, db_session: Session, tenant, admin, contract):
        sync_milestones(db_session, contract)
        db_session.commit()

        kpis = SupervisionService(db_session, tenant.id, admin).governance_kpis(today=date(2025, 11, 1))

        assert kpis["active_apprentices"] == 1
        assert kpis["j7_completion_rate"] == 0
        assert kpis["j45_alerts"] == 1
        assert kpis["global_risk_score"] == 20
        assert kpis["funnel"] == {"contracts": 1, "assessments": 0, "tsfs": 0}

    def test_kpis_without_contracts(self, db_session: Session, tenant, admin):
        kpis = SupervisionService(db_session, tenant.id, admin).governance_kpis(today=date(2025, 11, 1))

        assert kpis["active_apprentices"] == 0
        assert kpis["global_risk_score"] == 100

    def test_export_only_non_compliant(self, db_session: Session, tenant, admin, contract, second_contract):
        sync_milestones(db_session, second_contract)
        db_session.commit()

        content = SupervisionService(db_session, tenant.id, admin).export_non_compliant_csv()
        lines = content.strip().split("\n")

        assert lines[0] == ";".join(CSV_HEADER)
        assert len(lines) == 2
        assert lines[1].startswith("Hugo Faure;0%;DANGER;")
