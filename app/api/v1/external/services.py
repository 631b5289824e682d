"""
Services de l'API externe (intégrations CRM, BI, application mobile).

Contient :
- ExternalService.sync_apprentice : upsert d'un apprenti et de son contrat
- ExternalService.export : extraction paginée pour les outils de BI
- ExternalService.submit_mobile_proof : dépôt de preuve depuis le mobile

Le tenant est celui de la clé d'API utilisée.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from app.api.v1.monitoring.services import compute_contract_health, sync_milestones
from app.api.v1.proofs.services import ProofService
from app.api.v1.tsf.services import generate_tsf
from app.models.contract.contract import Contract
from app.models.enums import UserRole
from app.models.proof.proof import Proof
from app.models.referentiel.referentiel import Referentiel
from app.models.user.user import User

logger = logging.getLogger(__name__)

EXPORT_TYPES = ("apprentices", "contracts", "proofs")


# =============================================================================
# EXCEPTIONS
# =============================================================================

class SyncConflictError(Exception):
    """L'apprenti ou le contrat appartient à un autre tenant."""
    pass


class InvalidSyncDataError(Exception):
    """Données de synchronisation incohérentes."""
    pass


class InvalidExportTypeError(Exception):
    """Type d'export inconnu."""
    pass


class ApprenticeNotFoundError(Exception):
    """Apprenti introuvable dans ce tenant."""
    pass


# =============================================================================
# EXTERNAL SERVICE
# =============================================================================

class ExternalService:
    """Opérations accessibles par clé d'API."""

    def __init__(self, db: Session, tenant_id: int):
        self.db = db
        self.tenant_id = tenant_id

    # =========================================================================
    # SYNCHRONISATION CRM
    # =========================================================================

    def _find_referentiel(self, rncp_code: str) -> Optional[Referentiel]:
        """Référentiel du tenant en priorité, sinon référentiel global."""
        candidates = self.db.execute(
            select(Referentiel).where(
                Referentiel.code_rncp == rncp_code,
                or_(Referentiel.tenant_id == self.tenant_id, Referentiel.is_global.is_(True)),
            )
        ).scalars().all()
        for referentiel in candidates:
            if referentiel.tenant_id == self.tenant_id:
                return referentiel
        return candidates[0] if candidates else None

    def _upsert_apprentice(self, data: Dict[str, Any]) -> User:
        if data.get("external_id"):
            user = self.db.execute(
                select(User).where(User.external_id == data["external_id"])
            ).scalar_one_or_none()
        else:
            user = None
        if user is None:
            user = self.db.execute(
                select(User).where(User.email == data["email"])
            ).scalar_one_or_none()

        if user is not None and user.tenant_id != self.tenant_id:
            raise SyncConflictError(f"L'utilisateur {data['email']} appartient à un autre CFA")

        if user is None:
            user = User(
                tenant_id=self.tenant_id,
                email=data["email"],
                role=UserRole.APPRENTICE,
                is_active=True,
            )
            self.db.add(user)

        if data.get("first_name") is not None:
            user.first_name = data["first_name"]
        if data.get("last_name") is not None:
            user.last_name = data["last_name"]
        if data.get("external_id"):
            user.external_id = data["external_id"]
        user.refresh_full_name()
        self.db.flush()
        return user

    def _upsert_contract(self, apprentice: User, data: Dict[str, Any]) -> Contract:
        if data["end_date"] <= data["start_date"]:
            raise InvalidSyncDataError("La date de fin doit suivre la date de début")

        referentiel = self._find_referentiel(data["rncp_code"]) if data.get("rncp_code") else None

        contract = None
        if data.get("external_id"):
            contract = self.db.execute(
                select(Contract).where(Contract.external_id == data["external_id"])
            ).scalar_one_or_none()
            if contract is not None and contract.tenant_id != self.tenant_id:
                raise SyncConflictError(f"Le contrat {data['external_id']} appartient à un autre CFA")

        if contract is None:
            contract = Contract(
                tenant_id=self.tenant_id,
                external_id=data.get("external_id"),
                apprentice_id=apprentice.id,
                start_date=data["start_date"],
                end_date=data["end_date"],
            )
            self.db.add(contract)

        contract.apprentice_id = apprentice.id
        contract.start_date = data["start_date"]
        contract.end_date = data["end_date"]
        if referentiel is not None:
            contract.referentiel_id = referentiel.id
        if data.get("company_name"):
            contract.company_name = data["company_name"]
        self.db.flush()
        sync_milestones(self.db, contract)
        return contract

    def sync_apprentice(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Upsert de l'apprenti (par external_id, sinon e-mail) puis du contrat
        (par external_id). Le TSF est généré quand le code RNCP est reconnu.

        Returns:
            {"user_id": int, "contract_id": Optional[int], "tsf_generated": bool}
        """
        try:
            apprentice = self._upsert_apprentice(data)
            contract = None
            if data.get("contract"):
                contract = self._upsert_contract(apprentice, data["contract"])
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        tsf_generated = False
        if contract is not None and contract.referentiel_id is not None:
            result = generate_tsf(self.db, contract.id)
            tsf_generated = result["success"]
            if not tsf_generated:
                logger.error(f"❌ TSF non généré après synchronisation : {result['error']}")

        logger.info(f"🔗 Apprenti {apprentice.email} synchronisé (tenant {self.tenant_id})")
        return {
            "user_id": apprentice.id,
            "contract_id": contract.id if contract else None,
            "tsf_generated": tsf_generated,
        }

    # =========================================================================
    # EXPORT BI
    # =========================================================================

    def export(self, export_type: str, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
        if export_type not in EXPORT_TYPES:
            raise InvalidExportTypeError(
                "Type d'export invalide. Types supportés : apprentices, contracts, proofs"
            )
        return getattr(self, f"_export_{export_type}")(limit, offset)

    def _export_apprentices(self, limit: int, offset: int) -> List[Dict[str, Any]]:
        proof_count = (
            select(func.count(Proof.id))
            .where(Proof.apprentice_id == User.id)
            .correlate(User)
            .scalar_subquery()
        )
        rows = self.db.execute(
            select(User, proof_count)
            .where(User.tenant_id == self.tenant_id, User.role == UserRole.APPRENTICE)
            .order_by(User.id)
            .offset(offset)
            .limit(limit)
        ).all()
        return [
            {
                "id": user.id,
                "full_name": user.full_name,
                "email": user.email,
                "external_id": user.external_id,
                "created_at": user.created_at,
                "proof_count": count,
            }
            for user, count in rows
        ]

    def _export_contracts(self, limit: int, offset: int) -> List[Dict[str, Any]]:
        contracts = self.db.execute(
            select(Contract)
            .options(selectinload(Contract.apprentice), selectinload(Contract.referentiel))
            .where(Contract.tenant_id == self.tenant_id)
            .order_by(Contract.id)
            .offset(offset)
            .limit(limit)
        ).scalars().all()

        rows = []
        for contract in contracts:
            health = compute_contract_health(self.db, contract)
            rows.append({
                "id": contract.id,
                "apprentice": contract.apprentice.full_name,
                "email": contract.apprentice.email,
                "start_date": contract.start_date,
                "end_date": contract.end_date,
                "rncp": contract.referentiel.code_rncp if contract.referentiel else None,
                "health_score": health["score"],
                "health_status": health["status"].value,
            })
        return rows

    def _export_proofs(self, limit: int, offset: int) -> List[Dict[str, Any]]:
        proofs = self.db.execute(
            select(Proof)
            .options(selectinload(Proof.apprentice), selectinload(Proof.competence))
            .where(Proof.tenant_id == self.tenant_id)
            .order_by(Proof.id)
            .offset(offset)
            .limit(limit)
        ).scalars().all()
        return [
            {
                "id": proof.id,
                "title": proof.title,
                "type": proof.type.value,
                "status": proof.status.value,
                "url": proof.url,
                "apprentice_email": proof.apprentice.email,
                "competence": proof.competence.description if proof.competence else None,
                "created_at": proof.created_at,
            }
            for proof in proofs
        ]

    # =========================================================================
    # APPLICATION MOBILE
    # =========================================================================

    def submit_mobile_proof(
            self,
            apprentice_email: str,
            competence_id: int,
            content: bytes,
            filename: str,
            content_type: str,
            comment: Optional[str] = None,
    ) -> Proof:
        """
        Raises:
            ApprenticeNotFoundError: Apprenti absent de ce tenant
            CompetenceNotFoundError: Compétence inconnue
        """
        apprentice = self.db.execute(
            select(User).where(
                User.email == apprentice_email,
                User.tenant_id == self.tenant_id,
                User.role == UserRole.APPRENTICE,
            )
        ).scalar_one_or_none()
        if not apprentice:
            raise ApprenticeNotFoundError("Apprenti introuvable pour ce CFA")

        return ProofService(self.db, self.tenant_id).upload_proof(
            apprentice,
            content=content,
            filename=filename,
            content_type=content_type,
            competence_id=competence_id,
            description=comment,
        )
