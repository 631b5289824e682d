"""
Services métier pour les plans de remédiation.

Un plan regroupe des actions correctives sur un contrat en difficulté.
Les actions sont stockées en JSON et réécrites en bloc à chaque changement.
"""
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.api.v1.monitoring.services import compute_contract_health
from app.models.contract.contract import Contract
from app.models.enums import HealthStatus, RemediationStatus
from app.models.monitoring.remediation import RemediationPlan

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class RemediationPlanNotFoundError(Exception):
    """Plan de remédiation non trouvé."""
    pass


class ContractNotFoundError(Exception):
    """Contrat non trouvé."""
    pass


class InvalidActionIndexError(Exception):
    """Index d'action hors limites."""
    pass


class PlanResolvedError(Exception):
    """Le plan est déjà clôturé."""
    pass


# =============================================================================
# REMEDIATION SERVICE
# =============================================================================

class RemediationService:
    """Plans de remédiation des contrats d'un tenant."""

    def __init__(self, db: Session, tenant_id: int):
        self.db = db
        self.tenant_id = tenant_id

    def _base_query(self):
        return select(RemediationPlan).where(RemediationPlan.tenant_id == self.tenant_id)

    def get_plan(self, plan_id: int) -> RemediationPlan:
        plan = self.db.execute(
            self._base_query().where(RemediationPlan.id == plan_id)
        ).scalar_one_or_none()
        if not plan:
            raise RemediationPlanNotFoundError(f"Plan de remédiation {plan_id} non trouvé")
        return plan

    def list_plans(self, plan_status: Optional[RemediationStatus] = None) -> List[RemediationPlan]:
        query = self._base_query()
        if plan_status:
            query = query.where(RemediationPlan.status == plan_status)
        return list(self.db.execute(
            query.order_by(RemediationPlan.created_at.desc(), RemediationPlan.id.desc())
        ).scalars().all())

    def create_plan(
            self,
            contract_id: int,
            title: str,
            description: Optional[str],
            created_by: int,
    ) -> RemediationPlan:
        contract = self.db.execute(
            select(Contract).where(
                Contract.id == contract_id,
                Contract.tenant_id == self.tenant_id,
            )
        ).scalar_one_or_none()
        if not contract:
            raise ContractNotFoundError(f"Contrat {contract_id} non trouvé")

        plan = RemediationPlan(
            tenant_id=self.tenant_id,
            contract_id=contract_id,
            title=title,
            description=description,
            status=RemediationStatus.DRAFT,
            actions=[],
            created_by=created_by,
        )
        self.db.add(plan)
        self.db.commit()
        self.db.refresh(plan)
        logger.info(f"🩹 Plan de remédiation {plan.id} créé pour le contrat {contract_id}")
        return plan

    def _editable(self, plan_id: int) -> RemediationPlan:
        plan = self.get_plan(plan_id)
        if plan.status == RemediationStatus.RESOLVED:
            raise PlanResolvedError("Ce plan de remédiation est clôturé")
        return plan

    def add_action(self, plan_id: int, description: str, due_date: Optional[date] = None) -> RemediationPlan:
        """Ajoute une action ; le plan passe en cours."""
        plan = self._editable(plan_id)
        actions = list(plan.actions or [])
        actions.append({
            "description": description,
            "due_date": due_date.isoformat() if due_date else None,
            "completed": False,
            "completed_at": None,
        })
        plan.actions = actions
        plan.status = RemediationStatus.IN_PROGRESS
        self.db.commit()
        self.db.refresh(plan)
        return plan

    def complete_action(self, plan_id: int, action_index: int) -> RemediationPlan:
        plan = self._editable(plan_id)
        actions = [dict(action) for action in plan.actions or []]
        if action_index < 0 or action_index >= len(actions):
            raise InvalidActionIndexError(f"Action {action_index} inexistante")
        actions[action_index]["completed"] = True
        actions[action_index]["completed_at"] = datetime.now(timezone.utc).isoformat()
        plan.actions = actions
        self.db.commit()
        self.db.refresh(plan)
        return plan

    def resolve(self, plan_id: int) -> RemediationPlan:
        plan = self.get_plan(plan_id)
        plan.status = RemediationStatus.RESOLVED
        plan.resolved_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(plan)
        logger.info(f"✅ Plan de remédiation {plan_id} résolu")
        return plan

    def contracts_needing_remediation(self, today: Optional[date] = None) -> List[Dict[str, Any]]:
        """Contrats dont la santé n'est pas GOOD, avec l'existence d'un plan actif."""
        contracts = self.db.execute(
            select(Contract)
            .where(Contract.tenant_id == self.tenant_id)
            .order_by(Contract.id)
        ).scalars().all()

        active_plan_contracts = set(self.db.execute(
            select(RemediationPlan.contract_id).where(
                RemediationPlan.tenant_id == self.tenant_id,
                RemediationPlan.status != RemediationStatus.RESOLVED,
            )
        ).scalars().all())

        results = []
        for contract in contracts:
            health = compute_contract_health(self.db, contract, today=today)
            if health["status"] == HealthStatus.GOOD:
                continue
            results.append({
                "contract_id": contract.id,
                "apprentice_name": contract.apprentice.full_name or "Inconnu",
                "health_score": health["score"],
                "health_status": health["status"],
                "reasons": health["reasons"],
                "has_active_plan": contract.id in active_plan_contracts,
            })
        return results
