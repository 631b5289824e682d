"""
Tests du service TSF (Tableau Stratégique de Formation).

================================================================================
STRUCTURE DU FICHIER
================================================================================

    Classe                      | Description
    ----------------------------|------------------------------------------------
    TestGenerateTsf             | Découpage semestriel, répartition des blocs,
                                | compétences acquises au positionnement
    TestInitializeJourney       | Semestre / trimestre / mois, versionnement
    TestMappings                | Affectation manuelle, verrouillage
    TestIndicators              | Validation / annulation, progression

================================================================================
"""

from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.v1.tsf.services import (
    POST_LOCK_CHANGE_LOG,
    ContractLockedError,
    ContractNotFoundError,
    IndicateurNotFoundError,
    ReferentielMissingError,
    TSFService,
    compute_contract_progress,
    generate_tsf,
)
from app.models import (
    Contract,
    EvaluationIndicateur,
    MappingStatus,
    PeriodType,
    Period,
    Positioning,
    TSFMapping,
    TsfStatus,
)


def _periods(db: Session, contract: Contract):
    return db.execute(
        select(Period).where(Period.contract_id == contract.id).order_by(Period.order_index)
    ).scalars().all()


def _mappings(db: Session, contract: Contract):
    return db.execute(
        select(TSFMapping).where(TSFMapping.contract_id == contract.id)
    ).scalars().all()


# =============================================================================
# GÉNÉRATION SEMESTRIELLE
# =============================================================================

class TestGenerateTsf:
    """Tests pour generate_tsf."""

    def test_creates_one_period_per_semester(self, db_session: Session, contract: Contract):
        result = generate_tsf(db_session, contract.id)

        assert result == {"success": True, "error": None}
        periods = _periods(db_session, contract)
        assert [p.label for p in periods] == [
            "Période 1 (Semestre)",
            "Période 2 (Semestre)",
            "Période 3 (Semestre)",
            "Période 4 (Semestre)",
        ]
        assert [p.order_index for p in periods] == [1, 2, 3, 4]
        assert periods[0].start_date == date(2025, 9, 1)
        assert periods[0].end_date == date(2026, 3, 1)
        assert periods[-1].end_date == date(2027, 9, 1)

    def test_short_contract_gets_one_period(self, db_session: Session, contract: Contract):
        contract.end_date = date(2025, 11, 1)
        db_session.commit()

        generate_tsf(db_session, contract.id)

        assert len(_periods(db_session, contract)) == 1

    def test_blocs_spread_over_periods(self, db_session: Session, contract: Contract, referentiel):
        """3 blocs sur 4 périodes : floor(k / 3 * 4) → périodes 1, 2, 3."""
        generate_tsf(db_session, contract.id)

        periods = _periods(db_session, contract)
        period_by_id = {p.id: p.order_index for p in periods}
        for bloc in referentiel.blocs:
            competence_ids = {c.id for c in bloc.competences}
            assigned = {
                period_by_id[m.period_id]
                for m in _mappings(db_session, contract)
                if m.competence_id in competence_ids
            }
            assert assigned == {bloc.order_index + 1}

    def test_one_mapping_per_competence(self, db_session: Session, contract: Contract, referentiel):
        generate_tsf(db_session, contract.id)

        mappings = _mappings(db_session, contract)
        assert len(mappings) == len(referentiel.competences) == 6
        assert all(m.status == MappingStatus.PENDING for m in mappings)
        assert all(m.flag_cfa and m.flag_entreprise for m in mappings)

    def test_positioned_competences_are_acquired(
            self, db_session: Session, contract: Contract, referentiel, tenant, apprentice,
    ):
        mastered, weak = referentiel.competences[0], referentiel.competences[1]
        db_session.add_all([
            Positioning(tenant_id=tenant.id, apprentice_id=apprentice.id, competence_id=mastered.id, level_initial=4),
            Positioning(tenant_id=tenant.id, apprentice_id=apprentice.id, competence_id=weak.id, level_initial=2),
        ])
        db_session.commit()

        generate_tsf(db_session, contract.id)

        by_competence = {m.competence_id: m for m in _mappings(db_session, contract)}
        assert by_competence[mastered.id].status == MappingStatus.ACQUIS
        assert by_competence[mastered.id].flag_cfa is False
        assert by_competence[weak.id].status == MappingStatus.PENDING

    def test_regeneration_replaces_previous_tsf(self, db_session: Session, contract: Contract):
        generate_tsf(db_session, contract.id)
        generate_tsf(db_session, contract.id)

        assert len(_periods(db_session, contract)) == 4
        assert len(_mappings(db_session, contract)) == 6

    def test_missing_contract(self, db_session: Session):
        result = generate_tsf(db_session, 9999)
        assert result["success"] is False
        assert result["error"]

    def test_without_referentiel_creates_periods_only(self, db_session: Session, contract: Contract):
        contract.referentiel_id = None
        contract.start_date = date(2025, 1, 1)
        contract.end_date = date(2026, 1, 1)
        db_session.commit()

        result = generate_tsf(db_session, contract.id)

        assert result == {"success": True, "error": None}
        periods = _periods(db_session, contract)
        assert [p.label for p in periods] == ["Période 1 (Semestre)", "Période 2 (Semestre)"]
        assert periods[-1].end_date == date(2026, 1, 1)
        assert _mappings(db_session, contract) == []


# =============================================================================
# INITIALISATION DU PARCOURS
# =============================================================================

class TestInitializeJourney:
    """Tests pour TSFService.initialize_journey."""

    def test_semester(self, db_session: Session, contract: Contract, tenant):
        result = TSFService(db_session, tenant.id).initialize_journey(contract.id, PeriodType.SEMESTER)

        assert result == {"num_periods": 4, "version_id": "v1"}
        periods = _periods(db_session, contract)
        assert periods[0].label == "Semestre 1"
        assert periods[0].order_index == 0
        assert contract.tsf_status == TsfStatus.DRAFT

    @pytest.mark.parametrize("period_type, expected, label", [
        (PeriodType.TRIMESTER, 8, "Trimestre 1"),
        (PeriodType.MONTH, 24, "Mois 1"),
    ])
    def test_other_granularities(self, db_session: Session, contract: Contract, tenant, period_type, expected, label):
        result = TSFService(db_session, tenant.id).initialize_journey(contract.id, period_type)

        assert result["num_periods"] == expected
        assert _periods(db_session, contract)[0].label == label
        assert contract.period_type == period_type

    def test_locked_contract_gets_new_version(self, db_session: Session, contract: Contract, tenant):
        contract.is_locked = True
        contract.tsf_status = TsfStatus.VALIDATED
        db_session.commit()

        result = TSFService(db_session, tenant.id).initialize_journey(contract.id, PeriodType.SEMESTER)

        assert result["version_id"] == "v2"
        assert contract.is_locked is False
        assert contract.tsf_status == TsfStatus.VALIDATED
        assert contract.change_log == POST_LOCK_CHANGE_LOG

    def test_other_tenant_cannot_initialize(self, db_session: Session, contract: Contract, other_tenant):
        with pytest.raises(ContractNotFoundError):
            TSFService(db_session, other_tenant.id).initialize_journey(contract.id, PeriodType.SEMESTER)

    def test_requires_referentiel(self, db_session: Session, contract: Contract, tenant):
        contract.referentiel_id = None
        db_session.commit()

        with pytest.raises(ReferentielMissingError):
            TSFService(db_session, tenant.id).initialize_journey(contract.id, PeriodType.SEMESTER)


# =============================================================================
# AFFECTATIONS
# =============================================================================

class TestMappings:
    """Tests pour upsert_mapping et validate_mapping."""

    def test_upsert_sets_planned_status(self, db_session: Session, contract: Contract, tenant, referentiel):
        service = TSFService(db_session, tenant.id)
        service.initialize_journey(contract.id, PeriodType.SEMESTER)
        period = _periods(db_session, contract)[3]
        competence = referentiel.competences[0]

        mapping = service.upsert_mapping(contract.id, competence.id, period.id, True, False)

        assert mapping.status == MappingStatus.PLANIFIE
        assert mapping.flag_cfa is True
        assert mapping.flag_entreprise is False

        again = service.upsert_mapping(contract.id, competence.id, period.id, False, True)
        assert again.id == mapping.id
        assert again.flag_entreprise is True

    def test_upsert_refused_when_locked(self, db_session: Session, contract: Contract, tenant, referentiel):
        service = TSFService(db_session, tenant.id)
        service.initialize_journey(contract.id, PeriodType.SEMESTER)
        period = _periods(db_session, contract)[0]
        contract.is_locked = True
        db_session.commit()

        with pytest.raises(ContractLockedError):
            service.upsert_mapping(contract.id, referentiel.competences[0].id, period.id, True, True)

    def test_validate_mapping(self, db_session: Session, contract: Contract, tenant):
        service = TSFService(db_session, tenant.id)
        service.initialize_journey(contract.id, PeriodType.SEMESTER)
        mapping = _mappings(db_session, contract)[0]

        updated = service.validate_mapping(mapping.id, "ACQUIS")

        assert updated.status == MappingStatus.ACQUIS
        assert updated.is_acquired


# =============================================================================
# INDICATEURS ET PROGRESSION
# =============================================================================

class TestIndicators:
    """Tests pour toggle_indicator, la progression globale et par bloc."""

    def test_toggle_acquis_then_pending(self, db_session: Session, contract: Contract, tenant, referentiel, formateur):
        service = TSFService(db_session, tenant.id)
        indicateur = referentiel.competences[0].indicateurs[0]

        evaluation = service.toggle_indicator(contract.id, indicateur.id, "ACQUIS", formateur.id)

        assert evaluation.validator_id == formateur.id
        assert evaluation.checked_at is not None
        assert compute_contract_progress(db_session, contract) == 8  # 1 / 12

        assert service.toggle_indicator(contract.id, indicateur.id, "PENDING", formateur.id) is None
        assert db_session.execute(select(EvaluationIndicateur)).scalars().all() == []
        assert compute_contract_progress(db_session, contract) == 0

    def test_toggle_is_idempotent(self, db_session: Session, contract: Contract, tenant, referentiel, formateur):
        service = TSFService(db_session, tenant.id)
        indicateur = referentiel.competences[0].indicateurs[0]

        service.toggle_indicator(contract.id, indicateur.id, "ACQUIS", formateur.id)
        service.toggle_indicator(contract.id, indicateur.id, "ACQUIS", formateur.id)

        assert len(db_session.execute(select(EvaluationIndicateur)).scalars().all()) == 1

    def test_indicator_outside_referentiel(
            self, db_session: Session, contract: Contract, tenant, formateur, referentiel_factory,
    ):
        foreign = referentiel_factory(tenant, code_rncp="RNCP00001", nb_blocs=1)
        indicateur = foreign.competences[0].indicateurs[0]

        with pytest.raises(IndicateurNotFoundError):
            TSFService(db_session, tenant.id).toggle_indicator(contract.id, indicateur.id, "ACQUIS", formateur.id)

    def test_progress_by_bloc(self, db_session: Session, contract: Contract, tenant, referentiel, formateur):
        service = TSFService(db_session, tenant.id)
        first_bloc = referentiel.blocs[0]
        for competence in first_bloc.competences:
            for indicateur in competence.indicateurs:
                service.toggle_indicator(contract.id, indicateur.id, "ACQUIS", formateur.id)

        progress = service.get_progress_by_bloc(contract.id)

        assert [p["percentage"] for p in progress] == [100, 0, 0]
        assert progress[0]["acquired"] == progress[0]["total"] == 4
        assert compute_contract_progress(db_session, contract) == 33

    def test_tree_reflects_evaluations(self, db_session: Session, contract: Contract, tenant, referentiel, formateur):
        service = TSFService(db_session, tenant.id)
        service.initialize_journey(contract.id, PeriodType.SEMESTER)
        indicateur = referentiel.competences[0].indicateurs[0]
        service.toggle_indicator(contract.id, indicateur.id, "ACQUIS", formateur.id)

        tree = service.get_tree(contract.id)

        assert len(tree["periods"]) == 4
        assert len(tree["blocs"]) == 3
        first = tree["blocs"][0]["competences"][0]
        statuses = {i["id"]: i["status"] for i in first["indicateurs"]}
        assert statuses[indicateur.id] == "ACQUIS"
        assert tree["progress"] == 8
