"""
Tests du service de gestion des contrats d'apprentissage.
"""

from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.v1.contracts.services import (
    ContractNotFoundError,
    ContractService,
    DuplicateExternalIdError,
    InvalidContractDatesError,
    ParticipantNotFoundError,
    ReferentielNotFoundError,
)
from app.models import (
    Contract,
    Milestone,
    NotificationLog,
    NotificationType,
    Period,
    TsfStatus,
    UserRole,
)


def _payload(apprentice, **overrides):
    data = {
        "apprentice_id": apprentice.id,
        "start_date": date(2025, 9, 1),
        "end_date": date(2027, 9, 1),
    }
    data.update(overrides)
    return data


class TestCreateContract:
    """Tests pour ContractService.create_contract."""

    def test_create_with_referentiel_initializes_journey(
            self, db_session: Session, tenant, apprentice, formateur, tutor, referentiel,
    ):
        service = ContractService(db_session, tenant.id)

        contract = service.create_contract(_payload(
            apprentice,
            referentiel_id=referentiel.id,
            formateur_id=formateur.id,
            tutor_id=tutor.id,
        ))

        assert contract.tenant_id == tenant.id
        assert contract.tsf_status == TsfStatus.DRAFT
        periods = db_session.execute(
            select(Period).where(Period.contract_id == contract.id)
        ).scalars().all()
        milestones = db_session.execute(
            select(Milestone).where(Milestone.contract_id == contract.id)
        ).scalars().all()
        assert len(periods) == 4
        assert len(milestones) == 5
        assert db_session.execute(select(NotificationLog)).scalars().all() == []

    def test_company_defaults_to_apprentice_company(self, db_session: Session, tenant, user_factory):
        apprentice = user_factory(
            "alt@cfa-test.fr", UserRole.APPRENTICE, tenant, company_name="Boulangerie Dupont",
        )

        contract = ContractService(db_session, tenant.id).create_contract(_payload(apprentice))

        assert contract.company_name == "Boulangerie Dupont"

    def test_missing_referentiel_alerts_admins(self, db_session: Session, tenant, apprentice, admin):
        contract = ContractService(db_session, tenant.id).create_contract(_payload(apprentice))

        assert contract.referentiel_id is None
        [alert] = db_session.execute(select(NotificationLog)).scalars().all()
        assert alert.type == NotificationType.ALERT
        assert alert.recipient_id == admin.id
        assert alert.title == "ACTION REQUISE: Référentiel Manquant"
        assert "David Leroy" in alert.content
        assert db_session.execute(select(Period)).scalars().all() == []

    def test_apprentice_from_other_tenant(self, db_session: Session, tenant, other_apprentice):
        with pytest.raises(ParticipantNotFoundError):
            ContractService(db_session, tenant.id).create_contract(_payload(other_apprentice))

    def test_participant_with_wrong_role(self, db_session: Session, tenant, apprentice, tutor):
        service = ContractService(db_session, tenant.id)

        with pytest.raises(ParticipantNotFoundError):
            service.create_contract(_payload(tutor))
        with pytest.raises(ParticipantNotFoundError):
            service.create_contract(_payload(apprentice, formateur_id=tutor.id))

    @pytest.mark.parametrize("owner", ["global", "other"])
    def test_referentiel_must_belong_to_tenant(
            self, db_session: Session, tenant, other_tenant, apprentice, referentiel_factory, owner,
    ):
        foreign = referentiel_factory(None if owner == "global" else other_tenant, code_rncp="RNCP99999")

        with pytest.raises(ReferentielNotFoundError):
            ContractService(db_session, tenant.id).create_contract(
                _payload(apprentice, referentiel_id=foreign.id)
            )

    def test_duplicate_external_id(self, db_session: Session, tenant, apprentice):
        service = ContractService(db_session, tenant.id)
        service.create_contract(_payload(apprentice, external_id="ERP-001"))

        with pytest.raises(DuplicateExternalIdError):
            service.create_contract(_payload(apprentice, external_id="ERP-001"))


class TestListContracts:
    """Tests pour ContractService.list_contracts."""

    def test_pagination_and_filters(self, db_session: Session, tenant, apprentice, formateur, contract):
        service = ContractService(db_session, tenant.id)
        service.create_contract(_payload(apprentice, external_id="ERP-002"))

        items, total = service.list_contracts(page=1, size=1)
        assert total == 2
        assert len(items) == 1

        items, total = service.list_contracts(page=1, size=20, formateur_id=formateur.id)
        assert [c.id for c in items] == [contract.id]

    def test_party_filter(self, db_session: Session, tenant, contract, tutor, admin):
        service = ContractService(db_session, tenant.id)

        _, total_tutor = service.list_contracts(page=1, size=20, party_user_id=tutor.id)
        _, total_admin = service.list_contracts(page=1, size=20, party_user_id=admin.id)

        assert total_tutor == 1
        assert total_admin == 0

    def test_tenant_isolation(self, db_session: Session, other_tenant, contract):
        items, total = ContractService(db_session, other_tenant.id).list_contracts(page=1, size=20)

        assert items == []
        assert total == 0


class TestUpdateAndLock:
    """Tests pour update_contract, delete_contract et lock_contract."""

    def test_update_rejects_inverted_dates(self, db_session: Session, tenant, contract: Contract):
        with pytest.raises(InvalidContractDatesError):
            ContractService(db_session, tenant.id).update_contract(
                contract.id, {"end_date": date(2025, 8, 1)}
            )

    def test_update_company(self, db_session: Session, tenant, contract: Contract):
        updated = ContractService(db_session, tenant.id).update_contract(
            contract.id, {"company_name": "Nouvelle Entreprise"}
        )
        assert updated.company_name == "Nouvelle Entreprise"

    def test_lock_contract(self, db_session: Session, tenant, contract: Contract):
        locked = ContractService(db_session, tenant.id).lock_contract(contract.id, "sig-tuteur")

        assert locked.is_locked is True
        assert locked.tsf_status == TsfStatus.VALIDATED
        assert locked.tutor_signature == "sig-tuteur"
        assert locked.locked_at is not None

    def test_delete_contract(self, db_session: Session, tenant, contract: Contract):
        service = ContractService(db_session, tenant.id)
        service.delete_contract(contract.id)

        with pytest.raises(ContractNotFoundError):
            service.get_contract(contract.id)

    def test_other_tenant_cannot_lock(self, db_session: Session, other_tenant, contract: Contract):
        with pytest.raises(ContractNotFoundError):
            ContractService(db_session, other_tenant.id).lock_contract(contract.id, "sig")
