"""
Tests du positionnement initial et du diagnostic (brouillon → soumis → validé).
"""

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.v1.assessments import services as assessment_services
from app.api.v1.assessments.services import (
    INITIAL_VALIDATION_CHANGE_LOG,
    AssessmentService,
    AssessmentStateError,
    CompetenceNotFoundError,
    ContractNotFoundError,
    compute_reduction_months,
)
from app.models import (
    AssessmentStatus,
    Contract,
    MappingStatus,
    NotificationLog,
    NotificationType,
    Positioning,
    TSFMapping,
    TsfStatus,
)


def _entries(referentiel, levels):
    return [
        {"competence_id": competence.id, "level_initial": level}
        for competence, level in zip(referentiel.competences, levels)
    ]


class TestReduction:
    """Tests pour compute_reduction_months."""

    @pytest.mark.parametrize("levels, expected", [
        ([], 0),
        ([1, 1, 1, 1], 0),
        ([4, 1, 1], 1),          # 33 %
        ([4, 4, 1, 1], 1),       # 50 % : pas strictement supérieur
        ([3, 3, 4, 1], 3),       # 75 %
        ([4, 4, 4, 4, 1], 3),    # 80 % : pas strictement supérieur
        ([4, 4, 4, 4, 4, 1], 6),
    ])
    def test_thresholds(self, levels, expected):
        assert compute_reduction_months(levels) == expected


class TestSavePositioning:
    """Tests pour le positionnement direct."""

    def test_save_generates_tsf(self, db_session: Session, contract: Contract, tenant, referentiel):
        service = AssessmentService(db_session, tenant.id)

        result = service.save_positioning(contract.id, _entries(referentiel, [4, 4, 4, 4, 4, 1]))

        assert result["success"] is True
        assert result["suggested_reduction_months"] == 6
        assert result["tsf_generated"] is True
        mappings = db_session.execute(
            select(TSFMapping).where(TSFMapping.contract_id == contract.id)
        ).scalars().all()
        assert sum(1 for m in mappings if m.status == MappingStatus.ACQUIS) == 5

    def test_save_replaces_previous_levels(self, db_session: Session, contract: Contract, tenant, referentiel):
        service = AssessmentService(db_session, tenant.id)
        service.save_positioning(contract.id, _entries(referentiel, [1, 1]))
        service.save_positioning(contract.id, _entries(referentiel, [4, 2]))

        levels = sorted(
            p.level_initial for p in db_session.execute(select(Positioning)).scalars().all()
        )
        assert levels == [2, 4]

    def test_tsf_failure_does_not_block_save(self, db_session: Session, contract: Contract, tenant, referentiel,
                                             monkeypatch):
        """Si la génération du TSF échoue, la sauvegarde aboutit quand même."""
        monkeypatch.setattr(
            assessment_services, "generate_tsf",
            lambda db, contract_id: {"success": False, "error": "Erreur base"},
        )
        entries = _entries(referentiel, [3])

        result = AssessmentService(db_session, tenant.id).save_positioning(contract.id, entries)

        assert result["success"] is True
        assert result["tsf_generated"] is False

    def test_unknown_competence(self, db_session: Session, contract: Contract, tenant, referentiel_factory):
        other = referentiel_factory(tenant, code_rncp="RNCP00002", nb_blocs=1)

        with pytest.raises(CompetenceNotFoundError):
            AssessmentService(db_session, tenant.id).save_positioning(contract.id, _entries(other, [3]))

    def test_other_tenant(self, db_session: Session, contract: Contract, other_tenant, referentiel):
        with pytest.raises(ContractNotFoundError):
            AssessmentService(db_session, other_tenant.id).save_positioning(contract.id, _entries(referentiel, [3]))


class TestInitialAssessmentWorkflow:
    """Tests pour le cycle de vie du diagnostic initial."""

    def test_draft_is_reused(self, db_session: Session, contract: Contract, tenant, referentiel):
        service = AssessmentService(db_session, tenant.id)

        first = service.save_draft(contract.id, _entries(referentiel, [1, 2]))
        second = service.save_draft(contract.id, _entries(referentiel, [3, 4]))

        assert first.id == second.id
        assert second.status == AssessmentStatus.DRAFT
        assert sorted(p.level_initial for p in second.positionings) == [3, 4]

    def test_submit_generates_tsf(self, db_session: Session, contract: Contract, tenant, referentiel):
        service = AssessmentService(db_session, tenant.id)
        draft = service.save_draft(contract.id, _entries(referentiel, [4, 1]))

        submitted = service.submit(draft.id)

        assert submitted.status == AssessmentStatus.SUBMITTED
        assert submitted.submitted_at is not None
        assert db_session.execute(
            select(TSFMapping).where(TSFMapping.contract_id == contract.id)
        ).scalars().first() is not None

    def test_cannot_edit_after_submit(self, db_session: Session, contract: Contract, tenant, referentiel):
        service = AssessmentService(db_session, tenant.id)
        draft = service.save_draft(contract.id, _entries(referentiel, [4]))
        service.submit(draft.id)

        with pytest.raises(AssessmentStateError):
            service.save_draft(contract.id, _entries(referentiel, [1]))
        with pytest.raises(AssessmentStateError):
            service.submit(draft.id)

    def test_validate_locks_contract(
            self, db_session: Session, contract: Contract, tenant, referentiel, formateur, apprentice,
    ):
        service = AssessmentService(db_session, tenant.id)
        draft = service.save_draft(contract.id, _entries(referentiel, [4, 1]))
        service.submit(draft.id)

        validated = service.validate(draft.id, formateur.id)

        assert validated.status == AssessmentStatus.VALIDATED
        assert validated.validated_by == formateur.id
        assert contract.is_locked is True
        assert contract.tsf_status == TsfStatus.VALIDATED
        assert contract.change_log == INITIAL_VALIDATION_CHANGE_LOG

        acquired = db_session.execute(
            select(TSFMapping).where(
                TSFMapping.contract_id == contract.id,
                TSFMapping.competence_id == referentiel.competences[0].id,
            )
        ).scalar_one()
        assert acquired.status == MappingStatus.ACQUIS
        assert acquired.flag_cfa is False and acquired.flag_entreprise is False

        [notification] = db_session.execute(select(NotificationLog)).scalars().all()
        assert notification.recipient_id == apprentice.id
        assert notification.type == NotificationType.PUSH

    def test_validate_requires_submitted(self, db_session: Session, contract: Contract, tenant, referentiel, formateur):
        service = AssessmentService(db_session, tenant.id)
        draft = service.save_draft(contract.id, _entries(referentiel, [4]))

        with pytest.raises(AssessmentStateError):
            service.validate(draft.id, formateur.id)
