"""
Services métier pour le positionnement initial de l'apprenti.

Contient :
- compute_reduction_months : réduction de parcours suggérée
- AssessmentService : positionnement direct, diagnostic initial
  (brouillon → soumis → validé) et pont vers le TSF

Version multi-tenant : toutes les requêtes filtrent par tenant_id.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.orm import Session, selectinload

from app.api.v1.tsf.services import generate_tsf
from app.models.assessment.assessment import ACQUIRED_LEVEL, InitialAssessment, Positioning
from app.models.contract.contract import Contract
from app.models.contract.tsf_mapping import TSFMapping
from app.models.enums import AssessmentStatus, MappingStatus, NotificationType, TsfStatus
from app.models.monitoring.notification import NotificationLog
from app.models.referentiel.referentiel import BlocCompetence, Competence

logger = logging.getLogger(__name__)

INITIAL_VALIDATION_CHANGE_LOG = "Validation du diagnostic initial (J+7)"


# =============================================================================
# EXCEPTIONS
# =============================================================================

class ContractNotFoundError(Exception):
    """Contrat non trouvé."""
    pass


class AssessmentNotFoundError(Exception):
    """Diagnostic non trouvé."""
    pass


class AssessmentStateError(Exception):
    """Transition de statut impossible pour ce diagnostic."""
    pass


class CompetenceNotFoundError(Exception):
    """Compétence absente du référentiel du contrat."""
    pass


# =============================================================================
# RÉDUCTION DE PARCOURS
# =============================================================================

def compute_reduction_months(levels: List[int]) -> int:
    """
    Réduction de durée suggérée selon la part de compétences acquises (niveau ≥ 3).

    > 80 % → 6 mois, > 50 % → 3 mois, > 30 % → 1 mois, sinon aucune.
    """
    if not levels:
        return 0
    ratio = sum(1 for level in levels if level >= ACQUIRED_LEVEL) / len(levels)
    if ratio > 0.8:
        return 6
    if ratio > 0.5:
        return 3
    if ratio > 0.3:
        return 1
    return 0


# =============================================================================
# ASSESSMENT SERVICE
# =============================================================================

class AssessmentService:
    """Positionnement et diagnostic initial des apprentis d'un tenant."""

    def __init__(self, db: Session, tenant_id: int):
        self.db = db
        self.tenant_id = tenant_id

    def get_contract(self, contract_id: int) -> Contract:
        contract = self.db.execute(
            select(Contract).where(
                Contract.id == contract_id,
                Contract.tenant_id == self.tenant_id,
            )
        ).scalar_one_or_none()
        if not contract:
            raise ContractNotFoundError(f"Contrat {contract_id} non trouvé")
        return contract

    def get_assessment(self, assessment_id: int) -> InitialAssessment:
        assessment = self.db.execute(
            select(InitialAssessment)
            .options(selectinload(InitialAssessment.positionings))
            .where(
                InitialAssessment.id == assessment_id,
                InitialAssessment.tenant_id == self.tenant_id,
            )
        ).scalar_one_or_none()
        if not assessment:
            raise AssessmentNotFoundError(f"Diagnostic {assessment_id} non trouvé")
        return assessment

    def list_contract_assessments(self, contract_id: int) -> List[InitialAssessment]:
        self.get_contract(contract_id)
        return list(self.db.execute(
            select(InitialAssessment)
            .options(selectinload(InitialAssessment.positionings))
            .where(InitialAssessment.contract_id == contract_id)
            .order_by(InitialAssessment.id)
        ).scalars().all())

    def _check_competences(self, contract: Contract, competence_ids: List[int]) -> None:
        if not competence_ids or contract.referentiel_id is None:
            return
        known = set(self.db.execute(
            select(Competence.id)
            .join(BlocCompetence, Competence.bloc_id == BlocCompetence.id)
            .where(
                BlocCompetence.referentiel_id == contract.referentiel_id,
                Competence.id.in_(competence_ids),
            )
        ).scalars().all())
        missing = set(competence_ids) - known
        if missing:
            raise CompetenceNotFoundError(
                f"Compétence(s) hors référentiel : {sorted(missing)}"
            )

    def _replace_positionings(
            self,
            apprentice_id: int,
            entries: List[Dict[str, Any]],
            assessment_id: Optional[int] = None,
    ) -> None:
        competence_ids = [e["competence_id"] for e in entries]
        stmt = delete(Positioning).where(Positioning.competence_id.in_(competence_ids))
        if assessment_id is not None:
            stmt = stmt.where(Positioning.assessment_id == assessment_id)
        else:
            stmt = stmt.where(Positioning.apprentice_id == apprentice_id)
        self.db.execute(stmt)

        for entry in entries:
            self.db.add(Positioning(
                tenant_id=self.tenant_id,
                apprentice_id=apprentice_id,
                competence_id=entry["competence_id"],
                assessment_id=assessment_id,
                level_initial=entry["level_initial"],
                comment=entry.get("comment"),
            ))

    # =========================================================================
    # POSITIONNEMENT DIRECT
    # =========================================================================

    def save_positioning(self, contract_id: int, entries: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Remplace les positionnements de l'apprenti sur les compétences données,
        calcule la réduction suggérée et régénère le TSF.

        L'échec de la régénération du TSF est journalisé sans interrompre la sauvegarde.
        """
        contract = self.get_contract(contract_id)
        self._check_competences(contract, [e["competence_id"] for e in entries])

        self._replace_positionings(contract.apprentice_id, entries)
        self.db.commit()

        reduction = compute_reduction_months([e["level_initial"] for e in entries])

        tsf_result = generate_tsf(self.db, contract.id)
        if not tsf_result["success"]:
            logger.warning(
                f"⚠️ Génération automatique du TSF échouée (contrat {contract.id}) : "
                f"{tsf_result['error']}"
            )

        return {
            "success": True,
            "message": "Positionnement sauvegardé et plan de formation généré.",
            "suggested_reduction_months": reduction,
            "tsf_generated": tsf_result["success"],
        }

    # =========================================================================
    # DIAGNOSTIC INITIAL
    # =========================================================================

    def save_draft(self, contract_id: int, entries: List[Dict[str, Any]]) -> InitialAssessment:
        """Crée le diagnostic du contrat si besoin et remplace ses positionnements."""
        contract = self.get_contract(contract_id)
        self._check_competences(contract, [e["competence_id"] for e in entries])

        assessment = self.db.execute(
            select(InitialAssessment)
            .where(InitialAssessment.contract_id == contract.id)
            .order_by(InitialAssessment.id.desc())
            .limit(1)
        ).scalar_one_or_none()

        if assessment is None:
            assessment = InitialAssessment(
                tenant_id=self.tenant_id,
                contract_id=contract.id,
                apprentice_id=contract.apprentice_id,
                status=AssessmentStatus.DRAFT,
            )
            self.db.add(assessment)
            self.db.flush()
        elif assessment.status != AssessmentStatus.DRAFT:
            raise AssessmentStateError("Le diagnostic a déjà été soumis")

        self._replace_positionings(contract.apprentice_id, entries, assessment_id=assessment.id)
        self.db.commit()
        self.db.expire(assessment)
        return self.get_assessment(assessment.id)

    def submit(self, assessment_id: int) -> InitialAssessment:
        """Soumet un brouillon et régénère le TSF du contrat."""
        assessment = self.get_assessment(assessment_id)
        if assessment.status != AssessmentStatus.DRAFT:
            raise AssessmentStateError("Seul un brouillon peut être soumis")

        assessment.status = AssessmentStatus.SUBMITTED
        assessment.submitted_at = datetime.now(timezone.utc)
        self.db.commit()

        tsf_result = generate_tsf(self.db, assessment.contract_id)
        if not tsf_result["success"]:
            logger.warning(
                f"⚠️ Génération automatique du TSF échouée (contrat {assessment.contract_id}) : "
                f"{tsf_result['error']}"
            )
        return self.get_assessment(assessment_id)

    def validate(self, assessment_id: int, validator_id: int) -> InitialAssessment:
        """
        Valide un diagnostic soumis.

        - Compétences acquises (≥ 3) : affectations ACQUIS, sans formation CFA/entreprise
        - Contrat : TSF validé et verrouillé
        - Notification PUSH à l'apprenti
        """
        assessment = self.get_assessment(assessment_id)
        if assessment.status != AssessmentStatus.SUBMITTED:
            raise AssessmentStateError("Seul un diagnostic soumis peut être validé")

        now = datetime.now(timezone.utc)
        assessment.status = AssessmentStatus.VALIDATED
        assessment.validated_at = now
        assessment.validated_by = validator_id

        acquired = assessment.acquired_competence_ids
        if acquired:
            self.db.execute(
                update(TSFMapping)
                .where(
                    TSFMapping.contract_id == assessment.contract_id,
                    TSFMapping.competence_id.in_(sorted(acquired)),
                )
                .values(status=MappingStatus.ACQUIS, flag_cfa=False, flag_entreprise=False)
            )

        contract = assessment.contract
        contract.tsf_status = TsfStatus.VALIDATED
        contract.is_locked = True
        contract.locked_at = now
        contract.change_log = INITIAL_VALIDATION_CHANGE_LOG

        apprentice = contract.apprentice
        self.db.add(NotificationLog(
            tenant_id=self.tenant_id,
            recipient_id=contract.apprentice_id,
            type=NotificationType.PUSH,
            title="Ton parcours personnalisé est prêt ! 🚀",
            content=(
                f"Félicitations {apprentice.first_name or apprentice.display_name}, ton diagnostic "
                "a été validé. Découvre tes objectifs pour le premier semestre dans ton tableau de bord."
            ),
        ))

        self.db.commit()
        logger.info(f"✅ Diagnostic {assessment_id} validé, TSF du contrat {contract.id} verrouillé")
        return self.get_assessment(assessment_id)
