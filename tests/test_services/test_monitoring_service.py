"""
Tests du suivi des contrats : jalons réglementaires, score de santé, relances quotidiennes.
"""

from datetime import date, datetime, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.v1.monitoring.services import (
    MonitoringService,
    NotificationNotFoundError,
    compute_contract_health,
    health_status_for,
    run_daily_alerts,
    sync_milestones,
)
from app.models import (
    AttendanceStatus,
    Contract,
    HealthStatus,
    MilestoneStatus,
    NotificationLog,
    NotificationType,
    Proof,
)


@pytest.fixture
def milestones(db_session: Session, contract: Contract):
    created = sync_milestones(db_session, contract)
    db_session.commit()
    return created


def _add_proof(db: Session, contract: Contract, created_at: datetime) -> Proof:
    proof = Proof(
        tenant_id=contract.tenant_id,
        apprentice_id=contract.apprentice_id,
        title="Journal de la semaine",
        created_at=created_at,
    )
    db.add(proof)
    db.commit()
    return proof


class TestSyncMilestones:
    """Tests pour sync_milestones."""

    def test_regulatory_milestones(self, milestones):
        by_type = {m.type: m.due_date for m in milestones}
        assert by_type == {
            "START_INTERVIEW": date(2025, 9, 8),
            "PROBATION_REVIEW": date(2025, 10, 16),
            "SEMESTER_REVIEW_6": date(2026, 3, 1),
            "SEMESTER_REVIEW_12": date(2026, 9, 1),
            "SEMESTER_REVIEW_18": date(2027, 3, 1),
        }

    def test_idempotent(self, db_session: Session, contract: Contract, milestones):
        assert sync_milestones(db_session, contract) == []

    def test_short_contract_has_no_semester_review(self, db_session: Session, contract: Contract):
        contract.end_date = date(2026, 3, 1)
        created = sync_milestones(db_session, contract)
        assert {m.type for m in created} == {"START_INTERVIEW", "PROBATION_REVIEW"}


class TestContractHealth:
    """Tests pour compute_contract_health."""

    @pytest.mark.parametrize("score, expected", [
        (100, HealthStatus.GOOD),
        (71, HealthStatus.GOOD),
        (70, HealthStatus.WARNING),
        (41, HealthStatus.WARNING),
        (40, HealthStatus.DANGER),
        (0, HealthStatus.DANGER),
    ])
    def test_thresholds(self, score, expected):
        assert health_status_for(score) == expected

    def test_no_journal_penalty(self, db_session: Session, contract: Contract):
        health = compute_contract_health(db_session, contract, today=date(2025, 9, 5))

        assert health["score"] == 80
        assert health["status"] == HealthStatus.GOOD
        assert health["reasons"] == ["Aucun journal de bord saisi"]

    def test_recent_journal_keeps_full_score(self, db_session: Session, contract: Contract):
        _add_proof(db_session, contract, datetime(2025, 9, 1, 10, tzinfo=timezone.utc))

        health = compute_contract_health(db_session, contract, today=date(2025, 9, 10))

        assert health["score"] == 100
        assert health["reasons"] == []

    def test_stale_journal(self, db_session: Session, contract: Contract):
        _add_proof(db_session, contract, datetime(2025, 9, 1, 10, tzinfo=timezone.utc))

        health = compute_contract_health(db_session, contract, today=date(2025, 9, 20))

        assert health["score"] == 80
        assert "Journal de bord inactif depuis 19 jours" in health["reasons"]

    def test_overdue_milestones(self, db_session: Session, contract: Contract, milestones):
        """J+7 et J+45 dépassés, pas de journal : 100 - 20 - 2 x 30."""
        health = compute_contract_health(db_session, contract, today=date(2025, 11, 1))

        assert health["score"] == 20
        assert health["status"] == HealthStatus.DANGER
        assert "2 jalon(s) réglementaire(s) dépassé(s)" in health["reasons"]

    def test_completed_milestone_not_counted(self, db_session: Session, contract: Contract, milestones, tenant):
        service = MonitoringService(db_session, tenant.id)
        for milestone in milestones[:2]:
            service.complete_milestone(milestone.id)

        health = compute_contract_health(db_session, contract, today=date(2025, 11, 1))

        assert health["score"] == 80

    def test_score_floored_at_zero(self, db_session: Session, contract: Contract, milestones):
        health = compute_contract_health(db_session, contract, today=date(2027, 6, 1))
        assert health["score"] == 0

    def test_unjustified_absences(self, db_session: Session, contract: Contract, tenant):
        _add_proof(db_session, contract, datetime(2025, 9, 1, 10, tzinfo=timezone.utc))
        service = MonitoringService(db_session, tenant.id)
        service.record_attendance(contract.id, date(2025, 9, 1), AttendanceStatus.PRESENT)
        service.record_attendance(contract.id, date(2025, 9, 2), AttendanceStatus.ABSENT_UNJUSTIFIED)

        health = compute_contract_health(db_session, contract, today=date(2025, 9, 3))

        assert health["score"] == 90
        assert health["reasons"] == ["Taux d'absence injustifiée élevé (50.0%)"]


class TestDailyAlerts:
    """Tests pour run_daily_alerts (J-7, J, J+5)."""

    def _notifications(self, db: Session):
        return db.execute(select(NotificationLog)).scalars().all()

    def test_reminder_seven_days_before(self, db_session: Session, milestones, apprentice):
        results = run_daily_alerts(db_session, today=date(2025, 9, 1))

        assert results == {"reminders": 1, "urgent": 0, "escalations": 0, "emails_sent": 0}
        [notification] = self._notifications(db_session)
        assert notification.type == NotificationType.EMAIL
        assert notification.recipient_id == apprentice.id

    def test_urgent_on_due_date(self, db_session: Session, milestones, apprentice):
        results = run_daily_alerts(db_session, today=date(2025, 9, 8))

        assert results["urgent"] == 1
        [notification] = self._notifications(db_session)
        assert notification.type == NotificationType.PUSH
        assert notification.title == "URGENT: Jalon Entretien de début de parcours (J+7)"

    def test_escalation_to_formateur(self, db_session: Session, milestones, formateur):
        results = run_daily_alerts(db_session, today=date(2025, 9, 13))

        assert results["escalations"] == 1
        [notification] = self._notifications(db_session)
        assert notification.type == NotificationType.ALERT
        assert notification.recipient_id == formateur.id

    def test_completed_milestones_are_skipped(self, db_session: Session, milestones, tenant):
        MonitoringService(db_session, tenant.id).complete_milestone(milestones[0].id)

        results = run_daily_alerts(db_session, today=date(2025, 9, 1))

        assert results["reminders"] == 0
        assert self._notifications(db_session) == []


class TestMonitoringService:
    """Tests pour MonitoringService (assiduité, jalons, notifications)."""

    def test_record_attendance_replaces_same_day(self, db_session: Session, contract: Contract, tenant):
        service = MonitoringService(db_session, tenant.id)
        service.record_attendance(contract.id, date(2025, 9, 1), AttendanceStatus.PRESENT)
        service.record_attendance(contract.id, date(2025, 9, 1), AttendanceStatus.ABSENT_JUSTIFIED, hours=3.5)

        [attendance] = service.list_attendance(contract.id)
        assert attendance.status == AttendanceStatus.ABSENT_JUSTIFIED
        assert attendance.hours == 3.5

    def test_complete_milestone(self, db_session: Session, milestones, tenant):
        milestone = MonitoringService(db_session, tenant.id).complete_milestone(milestones[0].id)

        assert milestone.status == MilestoneStatus.COMPLETED
        assert milestone.completed_at is not None

    def test_notifications_are_per_recipient(self, db_session: Session, milestones, tenant, apprentice, formateur):
        run_daily_alerts(db_session, today=date(2025, 9, 1))
        service = MonitoringService(db_session, tenant.id)

        [notification] = service.list_notifications(apprentice.id, unread_only=True)
        assert service.list_notifications(formateur.id) == []

        with pytest.raises(NotificationNotFoundError):
            service.mark_notification_read(notification.id, formateur.id)

        assert service.mark_notification_read(notification.id, apprentice.id).is_read is True
        assert service.list_notifications(apprentice.id, unread_only=True) == []
