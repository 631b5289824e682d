"""
Tests des opérations de l'API externe (synchronisation CRM, export BI, preuve mobile).
"""

from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.v1.external.services import (
    ApprenticeNotFoundError,
    ExternalService,
    InvalidExportTypeError,
    InvalidSyncDataError,
    SyncConflictError,
)
from app.api.v1.proofs.services import CompetenceNotFoundError
from app.models import Contract, Milestone, Period, ProofStatus, ProofType, User, UserRole


def _sync_data(**overrides):
    data = {
        "email": "nouvel.apprenti@cfa-test.fr",
        "first_name": "Inès",
        "last_name": "Moreau",
        "external_id": "CRM-001",
        "contract": {
            "external_id": "CTR-001",
            "start_date": date(2025, 9, 1),
            "end_date": date(2027, 9, 1),
            "rncp_code": "RNCP35475",
            "company_name": "Garage Central",
        },
    }
    data.update(overrides)
    return data


class TestSyncApprentice:

    def test_creates_apprentice_and_contract(self, db_session: Session, tenant, referentiel):
        result = ExternalService(db_session, tenant.id).sync_apprentice(_sync_data())

        user = db_session.get(User, result["user_id"])
        assert user.role == UserRole.APPRENTICE
        assert user.tenant_id == tenant.id
        assert user.full_name == "Inès Moreau"

        contract = db_session.get(Contract, result["contract_id"])
        assert contract.referentiel_id == referentiel.id
        assert contract.company_name == "Garage Central"
        assert result["tsf_generated"] is True
        assert len(db_session.execute(
            select(Period).where(Period.contract_id == contract.id)
        ).scalars().all()) == 4
        assert db_session.execute(
            select(Milestone).where(Milestone.contract_id == contract.id)
        ).scalars().first() is not None

    def test_sync_is_an_upsert(self, db_session: Session, tenant, referentiel):
        service = ExternalService(db_session, tenant.id)
        first = service.sync_apprentice(_sync_data())

        data = _sync_data(last_name="Moreau-Blanc")
        data["contract"]["end_date"] = date(2027, 6, 30)
        second = service.sync_apprentice(data)

        assert second["user_id"] == first["user_id"]
        assert second["contract_id"] == first["contract_id"]
        assert db_session.get(User, first["user_id"]).last_name == "Moreau-Blanc"
        assert db_session.get(Contract, first["contract_id"]).end_date == date(2027, 6, 30)

    def test_prefers_tenant_referentiel_over_global(self, db_session: Session, tenant, referentiel, referentiel_factory):
        referentiel_factory(None, code_rncp="RNCP35475")

        result = ExternalService(db_session, tenant.id).sync_apprentice(_sync_data())

        assert db_session.get(Contract, result["contract_id"]).referentiel_id == referentiel.id

    def test_unknown_rncp_skips_tsf(self, db_session: Session, tenant):
        data = _sync_data()
        data["contract"]["rncp_code"] = "RNCP00000"

        result = ExternalService(db_session, tenant.id).sync_apprentice(data)

        assert result["contract_id"] is not None
        assert result["tsf_generated"] is False

    def test_without_contract(self, db_session: Session, tenant):
        result = ExternalService(db_session, tenant.id).sync_apprentice(_sync_data(contract=None))
        assert result["contract_id"] is None

    def test_user_of_other_tenant(self, db_session: Session, tenant, other_apprentice):
        with pytest.raises(SyncConflictError):
            ExternalService(db_session, tenant.id).sync_apprentice(
                _sync_data(email=other_apprentice.email, external_id=None)
            )

    def test_invalid_dates_roll_back(self, db_session: Session, tenant):
        data = _sync_data()
        data["contract"]["end_date"] = date(2025, 1, 1)

        with pytest.raises(InvalidSyncDataError):
            ExternalService(db_session, tenant.id).sync_apprentice(data)

        assert db_session.execute(
            select(User).where(User.email == "nouvel.apprenti@cfa-test.fr")
        ).scalar_one_or_none() is None


class TestExport:

    def test_export_apprentices(self, db_session: Session, tenant, contract, apprentice):
        [row] = ExternalService(db_session, tenant.id).export("apprentices")

        assert row["email"] == apprentice.email
        assert row["proof_count"] == 0

    def test_export_contracts(self, db_session: Session, tenant, contract):
        [row] = ExternalService(db_session, tenant.id).export("contracts")

        assert row["id"] == contract.id
        assert row["rncp"] == "RNCP35475"
        assert row["health_status"] in ("GOOD", "WARNING", "DANGER")

    def test_pagination(self, db_session: Session, tenant, contract):
        assert ExternalService(db_session, tenant.id).export("contracts", limit=10, offset=1) == []

    def test_unknown_type(self, db_session: Session, tenant):
        with pytest.raises(InvalidExportTypeError):
            ExternalService(db_session, tenant.id).export("factures")


class TestMobileProof:

    def test_submit(self, db_session: Session, tenant, apprentice, referentiel):
        competence = referentiel.competences[0]

        proof = ExternalService(db_session, tenant.id).submit_mobile_proof(
            apprentice.email, competence.id, b"\x89PNG", "photo.png", "image/png", comment="Atelier",
        )

        assert proof.type == ProofType.IMG
        assert proof.status == ProofStatus.PENDING
        assert proof.url.startswith("/uploads/proofs/")
        assert proof.url.endswith(".png")
        assert apprentice.last_activity_at is not None

    def test_unknown_apprentice(self, db_session: Session, tenant, other_apprentice, referentiel):
        with pytest.raises(ApprenticeNotFoundError):
            ExternalService(db_session, tenant.id).submit_mobile_proof(
                other_apprentice.email, referentiel.competences[0].id, b"x", "a.pdf", "application/pdf",
            )

    def test_unknown_competence(self, db_session: Session, tenant, apprentice):
        with pytest.raises(CompetenceNotFoundError):
            ExternalService(db_session, tenant.id).submit_mobile_proof(
                apprentice.email, 9999, b"x", "a.pdf", "application/pdf",
            )
