"""
Services de pilotage (gouvernance) pour l'encadrement d'un CFA.

Contient :
- inactivity_status_for : feu tricolore d'inactivité
- SupervisionService : inactivité des apprentis, santé des contrats,
  avancement du parcours, KPIs de gouvernance, export CSV des dossiers
  non conformes

Un formateur ne voit que les contrats dont il est référent.
"""
import csv
import io
import logging
import math
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.api.v1.monitoring.services import compute_contract_health
from app.core.dates import today_utc
from app.models.assessment.assessment import InitialAssessment
from app.models.contract.contract import Contract
from app.models.enums import (
    AssessmentStatus,
    HealthStatus,
    LivretStatus,
    MilestoneStatus,
    TsfStatus,
    UserRole,
)
from app.models.livret.livret import Livret
from app.models.mixins import as_utc
from app.models.monitoring.milestone import PROBATION_REVIEW, START_INTERVIEW, Milestone
from app.models.proof.proof import Proof
from app.models.user.user import User

logger = logging.getLogger(__name__)

INACTIVITY_DANGER_DAYS = 7
INACTIVITY_WARNING_DAYS = 3
NEVER_ACTIVE = -1

WORKFLOW_STEPS = ("positioning", "tsf", "j7", "j45", "livret")

CSV_HEADER = ["Apprenti", "Score de Sante", "Status", "Anomalies"]


def inactivity_status_for(days_inactive: int) -> HealthStatus:
    """-1 (jamais actif) et plus de 7 jours : DANGER ; 3 jours et plus : WARNING."""
    if days_inactive == NEVER_ACTIVE or days_inactive > INACTIVITY_DANGER_DAYS:
        return HealthStatus.DANGER
    if days_inactive >= INACTIVITY_WARNING_DAYS:
        return HealthStatus.WARNING
    return HealthStatus.GOOD


class SupervisionService:
    """Tableaux de bord de l'encadrement (admin, formateur)."""

    def __init__(self, db: Session, tenant_id: int, viewer: User):
        self.db = db
        self.tenant_id = tenant_id
        self.viewer = viewer

    def _contracts_query(
            self,
            referentiel_id: Optional[int] = None,
            formateur_id: Optional[int] = None,
    ):
        query = select(Contract).where(Contract.tenant_id == self.tenant_id)
        if self.viewer.role == UserRole.FORMATEUR:
            query = query.where(Contract.formateur_id == self.viewer.id)
        if referentiel_id:
            query = query.where(Contract.referentiel_id == referentiel_id)
        if formateur_id:
            query = query.where(Contract.formateur_id == formateur_id)
        return query

    def _contracts(self, referentiel_id: Optional[int] = None, formateur_id: Optional[int] = None) -> List[Contract]:
        return list(self.db.execute(
            self._contracts_query(referentiel_id, formateur_id).order_by(Contract.id)
        ).scalars().all())

    # =========================================================================
    # INACTIVITÉ
    # =========================================================================

    def apprentice_inactivity(self, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """
        Jours depuis la dernière activité (preuve ou action connectée).

        Trié du plus inactif au plus actif ; « jamais actif » en tête.
        """
        now = now or datetime.now(timezone.utc)

        query = select(User).where(
            User.tenant_id == self.tenant_id,
            User.role == UserRole.APPRENTICE,
        )
        if self.viewer.role == UserRole.FORMATEUR:
            query = query.where(User.id.in_(
                select(Contract.apprentice_id).where(Contract.formateur_id == self.viewer.id)
            ))
        apprentices = self.db.execute(query).scalars().all()

        last_proofs = dict(self.db.execute(
            select(Proof.apprentice_id, func.max(Proof.created_at))
            .where(Proof.tenant_id == self.tenant_id)
            .group_by(Proof.apprentice_id)
        ).all())

        stats = []
        for apprentice in apprentices:
            candidates = [
                as_utc(d) for d in (last_proofs.get(apprentice.id), apprentice.last_activity_at) if d
            ]
            last_activity = max(candidates) if candidates else None
            if last_activity is None:
                days = NEVER_ACTIVE
            else:
                days = math.ceil(abs((now - last_activity).total_seconds()) / 86400)
            stats.append({
                "user_id": apprentice.id,
                "full_name": apprentice.full_name or "Sans nom",
                "email": apprentice.email,
                "last_activity_date": last_activity,
                "days_inactive": days,
                "status": inactivity_status_for(days),
            })

        stats.sort(key=lambda s: math.inf if s["days_inactive"] == NEVER_ACTIVE else s["days_inactive"], reverse=True)
        return stats

    # =========================================================================
    # SANTÉ DES CONTRATS
    # =========================================================================

    def contracts_health_overview(
            self,
            referentiel_id: Optional[int] = None,
            formateur_id: Optional[int] = None,
            today: Optional[date] = None,
    ) -> List[Dict[str, Any]]:
        """Score de santé par contrat, les plus à risque d'abord."""
        overview = []
        for contract in self._contracts(referentiel_id, formateur_id):
            health = compute_contract_health(self.db, contract, today=today)
            overview.append({
                "contract_id": contract.id,
                "apprentice_name": contract.apprentice.full_name or "Inconnu",
                "health_score": health["score"],
                "health_status": health["status"],
                "reasons": health["reasons"],
            })
        overview.sort(key=lambda o: o["health_score"])
        return overview

    # =========================================================================
    # PARCOURS
    # =========================================================================

    def workflow(self) -> List[Dict[str, Any]]:
        """
        Étapes du parcours par contrat :
        positionnement validé, TSF validé, entretien J+7, bilan J+45, livret signé.
        """
        contracts = self._contracts()
        contract_ids = [c.id for c in contracts]
        if not contract_ids:
            return []

        validated_assessments = set(self.db.execute(
            select(InitialAssessment.contract_id).where(
                InitialAssessment.contract_id.in_(contract_ids),
                InitialAssessment.status == AssessmentStatus.VALIDATED,
            )
        ).scalars().all())
        completed_milestones = set(self.db.execute(
            select(Milestone.contract_id, Milestone.type).where(
                Milestone.contract_id.in_(contract_ids),
                Milestone.status == MilestoneStatus.COMPLETED,
                Milestone.type.in_([START_INTERVIEW, PROBATION_REVIEW]),
            )
        ).all())
        signed_livrets = set(self.db.execute(
            select(Livret.contract_id).where(
                Livret.contract_id.in_(contract_ids),
                Livret.status == LivretStatus.FULLY_SIGNED,
            )
        ).scalars().all())

        rows = []
        for contract in contracts:
            done = {
                "positioning": contract.id in validated_assessments,
                "tsf": contract.tsf_status == TsfStatus.VALIDATED,
                "j7": (contract.id, START_INTERVIEW) in completed_milestones,
                "j45": (contract.id, PROBATION_REVIEW) in completed_milestones,
                "livret": contract.id in signed_livrets,
            }
            blocked_at = next(
                (index for index, step in enumerate(WORKFLOW_STEPS, start=1) if not done[step]),
                None,
            )
            rows.append({
                "contract_id": contract.id,
                "apprentice_name": contract.apprentice.full_name or "Inconnu",
                "steps": {step: "DONE" if done[step] else "PENDING" for step in WORKFLOW_STEPS},
                "blocked_at": blocked_at,
            })
        return rows

    # =========================================================================
    # KPIs
    # =========================================================================

    def governance_kpis(
            self,
            referentiel_id: Optional[int] = None,
            formateur_id: Optional[int] = None,
            today: Optional[date] = None,
    ) -> Dict[str, Any]:
        today = today or today_utc()
        contracts = self._contracts(referentiel_id, formateur_id)
        contract_ids = [c.id for c in contracts]

        active_apprentices = len({c.apprentice_id for c in contracts})

        assessed = set()
        validated = set()
        j45_alerts = 0
        if contract_ids:
            for contract_id, assessment_status in self.db.execute(
                select(InitialAssessment.contract_id, InitialAssessment.status)
                .where(InitialAssessment.contract_id.in_(contract_ids))
            ).all():
                assessed.add(contract_id)
                if assessment_status == AssessmentStatus.VALIDATED:
                    validated.add(contract_id)

            j45_alerts = self.db.execute(
                select(func.count(Milestone.id)).where(
                    Milestone.contract_id.in_(contract_ids),
                    Milestone.type == PROBATION_REVIEW,
                    Milestone.status == MilestoneStatus.PENDING,
                    Milestone.due_date < today,
                )
            ).scalar() or 0

        scores = [compute_contract_health(self.db, c, today=today)["score"] for c in contracts]

        return {
            "active_apprentices": active_apprentices,
            "j7_completion_rate": round(len(validated) / active_apprentices * 100) if active_apprentices else 0,
            "j45_alerts": j45_alerts,
            "global_risk_score": round(sum(scores) / len(scores)) if scores else 100,
            "funnel": {
                "contracts": len(contracts),
                "assessments": len(assessed),
                "tsfs": sum(1 for c in contracts if c.tsf_status == TsfStatus.VALIDATED),
            },
        }

    # =========================================================================
    # EXPORT
    # =========================================================================

    def export_non_compliant_csv(
            self,
            referentiel_id: Optional[int] = None,
            formateur_id: Optional[int] = None,
    ) -> str:
        """CSV (séparateur ;) des contrats dont la santé n'est pas GOOD."""
        buffer = io.StringIO()
        writer = csv.writer(buffer, delimiter=";", lineterminator="\n")
        writer.writerow(CSV_HEADER)
        for row in self.contracts_health_overview(referentiel_id, formateur_id):
            if row["health_status"] == HealthStatus.GOOD:
                continue
            writer.writerow([
                row["apprentice_name"],
                f"{row['health_score']}%",
                row["health_status"].value,
                ", ".join(row["reasons"]),
            ])
        logger.info(f"📤 Export des dossiers non conformes du tenant {self.tenant_id}")
        return buffer.getvalue()
