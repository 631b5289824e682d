"""
Tests des plans de remédiation.
"""

from datetime import date

import pytest
from sqlalchemy.orm import Session

from app.api.v1.monitoring.services import sync_milestones
from app.api.v1.remediation.services import (
    ContractNotFoundError,
    InvalidActionIndexError,
    PlanResolvedError,
    RemediationPlanNotFoundError,
    RemediationService,
)
from app.models import HealthStatus, RemediationStatus


@pytest.fixture
def plan(db_session: Session, tenant, contract, formateur):
    return RemediationService(db_session, tenant.id).create_plan(
        contract.id, "Rattrapage du bloc 1", "Suivi hebdomadaire", formateur.id,
    )


class TestRemediationPlan:

    def test_create_plan(self, plan, contract, formateur):
        assert plan.status == RemediationStatus.DRAFT
        assert plan.actions == []
        assert plan.contract_id == contract.id
        assert plan.created_by == formateur.id

    def test_create_for_foreign_contract(self, db_session: Session, other_tenant, contract, formateur):
        with pytest.raises(ContractNotFoundError):
            RemediationService(db_session, other_tenant.id).create_plan(contract.id, "Plan", None, formateur.id)

    def test_add_and_complete_actions(self, db_session: Session, tenant, plan):
        service = RemediationService(db_session, tenant.id)

        service.add_action(plan.id, "Entretien tripartite", date(2025, 10, 15))
        updated = service.add_action(plan.id, "Exercices de rattrapage")

        assert updated.status == RemediationStatus.IN_PROGRESS
        assert [a["due_date"] for a in updated.actions] == ["2025-10-15", None]

        completed = service.complete_action(plan.id, 1)
        assert completed.actions[1]["completed"] is True
        assert completed.actions[1]["completed_at"] is not None
        assert completed.actions[0]["completed"] is False

    def test_invalid_action_index(self, db_session: Session, tenant, plan):
        with pytest.raises(InvalidActionIndexError):
            RemediationService(db_session, tenant.id).complete_action(plan.id, 0)

    def test_resolved_plan_is_frozen(self, db_session: Session, tenant, plan):
        service = RemediationService(db_session, tenant.id)
        resolved = service.resolve(plan.id)

        assert resolved.status == RemediationStatus.RESOLVED
        assert resolved.resolved_at is not None
        with pytest.raises(PlanResolvedError):
            service.add_action(plan.id, "Trop tard")

    def test_tenant_isolation(self, db_session: Session, other_tenant, plan):
        with pytest.raises(RemediationPlanNotFoundError):
            RemediationService(db_session, other_tenant.id).get_plan(plan.id)
        assert RemediationService(db_session, other_tenant.id).list_plans() == []

    def test_list_by_status(self, db_session: Session, tenant, plan):
        service = RemediationService(db_session, tenant.id)

        assert [p.id for p in service.list_plans(RemediationStatus.DRAFT)] == [plan.id]
        assert service.list_plans(RemediationStatus.RESOLVED) == []


class TestContractsNeedingRemediation:

    def test_only_unhealthy_contracts(self, db_session: Session, tenant, contract):
        service = RemediationService(db_session, tenant.id)
        assert service.contracts_needing_remediation(today=date(2025, 9, 5)) == []

        sync_milestones(db_session, contract)
        db_session.commit()

        [row] = service.contracts_needing_remediation(today=date(2025, 11, 1))
        assert row["contract_id"] == contract.id
        assert row["health_status"] == HealthStatus.DANGER
        assert row["has_active_plan"] is False

    def test_flags_active_plan(self, db_session: Session, tenant, contract, plan):
        sync_milestones(db_session, contract)
        db_session.commit()

        [row] = RemediationService(db_session, tenant.id).contracts_needing_remediation(today=date(2025, 11, 1))
        assert row["has_active_plan"] is True
