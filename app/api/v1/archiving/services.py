"""
Services d'archivage annuel des contrats terminés.

Un contrat terminé depuis plus de ARCHIVE_RETENTION_MONTHS mois est figé
dans le coffre (ArchiveVault) puis supprimé des tables actives.
Chaque contrat est traité dans sa propre transaction : un échec est
journalisé et n'interrompt pas le lot.
"""
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from app.api.v1.audit.services import log_audit_event
from app.core.config import settings
from app.core.dates import add_months, today_utc
from app.models.assessment.assessment import EvaluationIndicateur, InitialAssessment
from app.models.audit.audit_log import AuditAction
from app.models.contract.contract import Contract
from app.models.livret.livret import HistoricalReport, Livret
from app.models.livret.magic_token import MagicToken
from app.models.monitoring.remediation import RemediationPlan
from app.models.platform.archive_vault import ArchiveVault

logger = logging.getLogger(__name__)

# Tables rattachées au contrat hors relations ORM en cascade
DEPENDENT_MODELS = (
    EvaluationIndicateur,
    InitialAssessment,
    Livret,
    HistoricalReport,
    MagicToken,
    RemediationPlan,
)


def archive_cutoff(today: Optional[date] = None) -> date:
    """Date de fin en deçà de laquelle un contrat est archivable."""
    return add_months(today or today_utc(), -settings.ARCHIVE_RETENTION_MONTHS)


def archive_storage_url(contract_id: int) -> str:
    """URL du document maître dans le stockage froid (simulé)."""
    return f"{settings.ARCHIVE_STORAGE_URL.rstrip('/')}/{contract_id}.pdf"


def _iso(value):
    return value.isoformat() if value is not None else None


def contract_snapshot(db: Session, contract: Contract, archived_by: Optional[int]) -> Dict[str, Any]:
    """Instantané JSON complet d'un contrat avant suppression."""
    evaluations = db.execute(
        select(EvaluationIndicateur).where(EvaluationIndicateur.contract_id == contract.id)
    ).scalars().all()

    return {
        "contract": {
            "id": contract.id,
            "apprentice_id": contract.apprentice_id,
            "tutor_id": contract.tutor_id,
            "formateur_id": contract.formateur_id,
            "referentiel_id": contract.referentiel_id,
            "referentiel": contract.referentiel.title if contract.referentiel else None,
            "start_date": _iso(contract.start_date),
            "end_date": _iso(contract.end_date),
            "company_name": contract.company_name,
            "tsf_status": contract.tsf_status.value,
            "version_id": contract.version_id,
        },
        "apprentice": {
            "email": contract.apprentice.email,
            "first_name": contract.apprentice.first_name,
            "last_name": contract.apprentice.last_name,
        },
        "mappings": [
            {
                "competence_id": m.competence_id,
                "period_id": m.period_id,
                "status": m.status.value,
            }
            for m in contract.mappings
        ],
        "evaluations": [
            {
                "indicateur_id": e.indicateur_id,
                "status": e.status.value,
                "is_signed": e.is_signed,
                "signed_at": _iso(e.signed_at),
            }
            for e in evaluations
        ],
        "archived_by": archived_by,
        "archived_at": datetime.now(timezone.utc).isoformat(),
    }


class ArchivingService:
    """Archivage des contrats d'un tenant."""

    def __init__(self, db: Session, tenant_id: int):
        self.db = db
        self.tenant_id = tenant_id

    def _candidates_query(self, today: Optional[date] = None):
        return select(Contract).where(
            Contract.tenant_id == self.tenant_id,
            Contract.end_date < archive_cutoff(today),
        )

    def count_candidates(self, today: Optional[date] = None) -> int:
        return self.db.execute(
            select(func.count()).select_from(self._candidates_query(today).subquery())
        ).scalar() or 0

    def list_vault(self) -> List[ArchiveVault]:
        return list(self.db.execute(
            select(ArchiveVault)
            .where(ArchiveVault.tenant_id == self.tenant_id)
            .order_by(ArchiveVault.archived_at.desc(), ArchiveVault.id.desc())
        ).scalars().all())

    def _archive_contract(self, contract: Contract, actor_id: Optional[int], today: date) -> ArchiveVault:
        apprentice = contract.apprentice
        vault = ArchiveVault(
            tenant_id=self.tenant_id,
            original_contract_id=contract.id,
            apprentice_name=f"{apprentice.first_name or ''} {apprentice.last_name or ''}".strip()
            or apprentice.email,
            snapshot=contract_snapshot(self.db, contract, actor_id),
            storage_url=archive_storage_url(contract.id),
            purge_date=add_months(today, settings.ARCHIVE_PURGE_YEARS * 12),
        )
        self.db.add(vault)
        self.db.flush()

        contract_id = contract.id
        for model in DEPENDENT_MODELS:
            self.db.execute(delete(model).where(model.contract_id == contract_id))
        self.db.delete(contract)

        log_audit_event(
            self.db,
            AuditAction.ARCHIVE_CONTRACT,
            tenant_id=self.tenant_id,
            user_id=actor_id,
            entity_type="contract",
            entity_id=contract_id,
            details={"vault_id": vault.id, "reason": "Annual Policy"},
        )
        return vault

    def run(self, actor_id: Optional[int], today: Optional[date] = None) -> Dict[str, Any]:
        """
        Archive tous les contrats candidats.

        Returns:
            {"processed": int, "archived": int, "errors": int, "failures": [...]}
        """
        today = today or today_utc()
        contracts = self.db.execute(
            self._candidates_query(today).order_by(Contract.id)
        ).scalars().all()

        results: Dict[str, Any] = {"processed": 0, "archived": 0, "errors": 0, "failures": []}

        for contract in contracts:
            contract_id = contract.id
            try:
                self._archive_contract(contract, actor_id, today)
                self.db.commit()
                results["archived"] += 1
            except Exception as e:
                self.db.rollback()
                logger.error(f"❌ Échec de l'archivage du contrat {contract_id}: {e}")
                results["errors"] += 1
                results["failures"].append({"contract_id": contract_id, "error": str(e)})
            results["processed"] += 1

        logger.info(
            f"📦 Archivage tenant {self.tenant_id} : "
            f"{results['archived']}/{results['processed']} contrats archivés"
        )
        return results
