"""
Tests de l'archivage annuel des contrats terminés.
"""

from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.v1.archiving.services import ArchivingService, archive_cutoff, archive_storage_url
from app.api.v1.monitoring.services import sync_milestones
from app.api.v1.tsf.services import TSFService
from app.models import (
    ArchiveVault,
    AuditLog,
    Contract,
    Milestone,
    PeriodType,
    TSFMapping,
    UserRole,
)

AFTER_RETENTION = date(2028, 4, 1)
BEFORE_RETENTION = date(2028, 2, 1)


class TestCutoff:

    def test_six_months_before_today(self):
        assert archive_cutoff(date(2028, 4, 1)) == date(2027, 10, 1)

    def test_storage_url(self):
        assert archive_storage_url(12) == "https://storage.alternance360.fr/archives/12.pdf"


class TestArchivingRun:

    def test_recent_contract_is_kept(self, db_session: Session, tenant, admin, contract: Contract):
        service = ArchivingService(db_session, tenant.id)

        assert service.count_candidates(BEFORE_RETENTION) == 0
        results = service.run(admin.id, today=BEFORE_RETENTION)

        assert results == {"processed": 0, "archived": 0, "errors": 0, "failures": []}

    def test_archives_and_deletes(self, db_session: Session, tenant, admin, contract: Contract, formateur, referentiel):
        tsf = TSFService(db_session, tenant.id)
        tsf.initialize_journey(contract.id, PeriodType.SEMESTER)
        tsf.toggle_indicator(contract.id, referentiel.competences[0].indicateurs[0].id, "ACQUIS", formateur.id)
        sync_milestones(db_session, contract)
        db_session.commit()
        contract_id = contract.id

        service = ArchivingService(db_session, tenant.id)
        assert service.count_candidates(AFTER_RETENTION) == 1

        results = service.run(admin.id, today=AFTER_RETENTION)

        assert results["archived"] == 1
        assert results["errors"] == 0
        assert db_session.get(Contract, contract_id) is None
        assert db_session.execute(select(TSFMapping)).scalars().all() == []
        assert db_session.execute(select(Milestone)).scalars().all() == []

        [vault] = service.list_vault()
        assert vault.original_contract_id == contract_id
        assert vault.apprentice_name == "David Leroy"
        assert vault.purge_date == date(2033, 4, 1)
        assert vault.snapshot["contract"]["company_name"] == "Entreprise SA"
        assert len(vault.snapshot["mappings"]) == 6
        assert vault.snapshot["evaluations"][0]["status"] == "ACQUIS"
        assert vault.snapshot["archived_by"] == admin.id

        [entry] = db_session.execute(
            select(AuditLog).where(AuditLog.action == "ARCHIVE_CONTRACT")
        ).scalars().all()
        assert entry.entity_id == str(contract_id)
        assert entry.details["vault_id"] == vault.id

    def test_other_tenant_untouched(self, db_session: Session, other_tenant, admin, contract: Contract):
        results = ArchivingService(db_session, other_tenant.id).run(admin.id, today=AFTER_RETENTION)

        assert results["processed"] == 0
        assert db_session.get(Contract, contract.id) is not None
        assert db_session.execute(select(ArchiveVault)).scalars().all() == []

    def test_failure_is_recorded_and_run_continues(
            self, db_session: Session, tenant, admin, contract: Contract, referentiel, user_factory, monkeypatch):
        second_apprentice = user_factory("lucie.martin@cfa-test.fr", UserRole.APPRENTICE, tenant)
        second = Contract(
            tenant_id=tenant.id,
            apprentice_id=second_apprentice.id,
            referentiel_id=referentiel.id,
            start_date=date(2025, 9, 1),
            end_date=date(2027, 6, 30),
        )
        db_session.add(second)
        db_session.commit()
        failing_id, second_id = contract.id, second.id

        archive_contract = ArchivingService._archive_contract

        def failing_archive(self, candidate, actor_id, today):
            if candidate.id == failing_id:
                raise RuntimeError("stockage indisponible")
            return archive_contract(self, candidate, actor_id, today)

        monkeypatch.setattr(ArchivingService, "_archive_contract", failing_archive)

        results = ArchivingService(db_session, tenant.id).run(admin.id, today=AFTER_RETENTION)

        assert results["processed"] == 2
        assert results["archived"] == 1
        assert results["errors"] == 1
        assert results["failures"] == [{"contract_id": failing_id, "error": "stockage indisponible"}]
        assert db_session.get(Contract, failing_id) is not None
        assert db_session.get(Contract, second_id) is None
        [vault] = db_session.execute(select(ArchiveVault)).scalars().all()
        assert vault.original_contract_id == second_id
