"""
Services métier pour le module Contracts.

Contient :
- ContractService : CRUD des contrats d'un tenant, verrouillage du TSF,
  déclencheurs à la création (alerte référentiel manquant, jalons, parcours)

Version multi-tenant : toutes les requêtes filtrent par tenant_id.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.api.v1.monitoring.services import sync_milestones
from app.api.v1.tsf.services import ReferentielMissingError, TSFService
from app.models.contract.contract import Contract
from app.models.enums import NotificationType, PeriodType, TsfStatus, UserRole
from app.models.monitoring.notification import NotificationLog
from app.models.referentiel.referentiel import Referentiel
from app.models.user.user import TUTOR_ROLES, User

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class ContractNotFoundError(Exception):
    """Contrat non trouvé."""
    pass


class ReferentielNotFoundError(Exception):
    """Référentiel non trouvé ou non accessible au tenant."""
    pass


class ParticipantNotFoundError(Exception):
    """Apprenti, tuteur ou formateur non trouvé dans le tenant."""
    pass


class DuplicateExternalIdError(Exception):
    """Identifiant externe déjà utilisé."""
    pass


class InvalidContractDatesError(Exception):
    """Date de fin antérieure ou égale à la date de début."""
    pass


# =============================================================================
# CONTRACT SERVICE
# =============================================================================

class ContractService:
    """
    Service de gestion des contrats d'apprentissage.

    Version multi-tenant : toutes les requêtes filtrent par tenant_id.
    """

    def __init__(self, db: Session, tenant_id: int):
        self.db = db
        self.tenant_id = tenant_id

    def _base_query(self):
        """Query de base filtrée par tenant_id."""
        return select(Contract).where(Contract.tenant_id == self.tenant_id)

    # =========================================================================
    # LECTURE
    # =========================================================================

    def get_contract(self, contract_id: int) -> Contract:
        contract = self.db.execute(
            self._base_query().where(Contract.id == contract_id)
        ).scalar_one_or_none()
        if not contract:
            raise ContractNotFoundError(f"Contrat {contract_id} non trouvé")
        return contract

    def list_contracts(
            self,
            page: int = 1,
            size: int = 20,
            apprentice_id: Optional[int] = None,
            formateur_id: Optional[int] = None,
            referentiel_id: Optional[int] = None,
            party_user_id: Optional[int] = None,
    ) -> Tuple[List[Contract], int]:
        """
        Liste paginée des contrats.

        Args:
            party_user_id: Restreint aux contrats où l'utilisateur est apprenti ou tuteur
        """
        query = self._base_query()
        if apprentice_id:
            query = query.where(Contract.apprentice_id == apprentice_id)
        if formateur_id:
            query = query.where(Contract.formateur_id == formateur_id)
        if referentiel_id:
            query = query.where(Contract.referentiel_id == referentiel_id)
        if party_user_id:
            query = query.where(or_(
                Contract.apprentice_id == party_user_id,
                Contract.tutor_id == party_user_id,
            ))

        total = self.db.execute(
            select(func.count()).select_from(query.subquery())
        ).scalar()

        items = self.db.execute(
            query.order_by(Contract.start_date.desc(), Contract.id.desc())
            .offset((page - 1) * size)
            .limit(size)
        ).scalars().all()

        return list(items), total

    # =========================================================================
    # VÉRIFICATIONS D'APPARTENANCE
    # =========================================================================

    def _tenant_user(self, user_id: int, roles: Tuple[UserRole, ...], label: str) -> User:
        user = self.db.execute(
            select(User).where(
                User.id == user_id,
                User.tenant_id == self.tenant_id,
                User.role.in_(roles),
            )
        ).scalar_one_or_none()
        if not user:
            raise ParticipantNotFoundError(f"{label} {user_id} non trouvé dans ce CFA")
        return user

    def _check_referentiel(self, referentiel_id: int) -> Referentiel:
        referentiel = self.db.execute(
            select(Referentiel).where(
                Referentiel.id == referentiel_id,
                Referentiel.tenant_id == self.tenant_id,
            )
        ).scalar_one_or_none()
        if not referentiel:
            raise ReferentielNotFoundError(f"Référentiel {referentiel_id} non trouvé")
        return referentiel

    def _check_external_id(self, external_id: Optional[str]) -> None:
        if not external_id:
            return
        exists = self.db.execute(
            select(Contract.id).where(Contract.external_id == external_id)
        ).scalar_one_or_none()
        if exists:
            raise DuplicateExternalIdError(f"Identifiant externe {external_id} déjà utilisé")

    # =========================================================================
    # CRÉATION
    # =========================================================================

    def create_contract(self, data: Dict[str, Any]) -> Contract:
        """
        Crée un contrat et déclenche :
        - une ALERT aux administrateurs si aucun référentiel n'est lié
        - la synchronisation des jalons réglementaires
        - l'initialisation du parcours semestriel (échec journalisé)

        Raises:
            ParticipantNotFoundError, ReferentielNotFoundError, DuplicateExternalIdError
        """
        apprentice = self._tenant_user(data["apprentice_id"], (UserRole.APPRENTICE,), "Apprenti")
        if data.get("formateur_id"):
            self._tenant_user(data["formateur_id"], (UserRole.FORMATEUR, UserRole.ADMIN), "Formateur")
        if data.get("tutor_id"):
            self._tenant_user(data["tutor_id"], TUTOR_ROLES, "Tuteur")
        if data.get("referentiel_id"):
            self._check_referentiel(data["referentiel_id"])
        self._check_external_id(data.get("external_id"))

        contract = Contract(
            tenant_id=self.tenant_id,
            apprentice_id=apprentice.id,
            tutor_id=data.get("tutor_id"),
            formateur_id=data.get("formateur_id"),
            referentiel_id=data.get("referentiel_id"),
            start_date=data["start_date"],
            end_date=data["end_date"],
            company_name=data.get("company_name") or apprentice.company_name,
            external_id=data.get("external_id"),
        )
        self.db.add(contract)
        self.db.flush()

        if contract.referentiel_id is None:
            self._alert_missing_referentiel(apprentice)

        sync_milestones(self.db, contract)
        self.db.commit()
        self.db.refresh(contract)
        logger.info(f"✅ Contrat {contract.id} créé pour l'apprenti {apprentice.id}")

        if contract.referentiel_id is not None:
            try:
                TSFService(self.db, self.tenant_id).initialize_journey(contract.id, PeriodType.SEMESTER)
            except ReferentielMissingError as e:
                self.db.rollback()
                logger.error(f"❌ Initialisation du parcours impossible (contrat {contract.id}) : {e}")
            self.db.refresh(contract)

        return contract

    def _alert_missing_referentiel(self, apprentice: User) -> None:
        managers = self.db.execute(
            select(User).where(
                User.tenant_id == self.tenant_id,
                User.role == UserRole.ADMIN,
            )
        ).scalars().all()
        for manager in managers:
            self.db.add(NotificationLog(
                tenant_id=self.tenant_id,
                recipient_id=manager.id,
                type=NotificationType.ALERT,
                title="ACTION REQUISE: Référentiel Manquant",
                content=(
                    f"Le contrat de l'apprenti {apprentice.display_name} a été créé sans "
                    "référentiel RNCP lié. Veuillez l'assigner pour activer le TSF."
                ),
            ))
        logger.warning(f"⚠️ Contrat sans référentiel : {len(managers)} administrateur(s) alerté(s)")

    # =========================================================================
    # MISE À JOUR / SUPPRESSION
    # =========================================================================

    def update_contract(self, contract_id: int, data: Dict[str, Any]) -> Contract:
        contract = self.get_contract(contract_id)

        if data.get("referentiel_id"):
            self._check_referentiel(data["referentiel_id"])
        if data.get("formateur_id"):
            self._tenant_user(data["formateur_id"], (UserRole.FORMATEUR, UserRole.ADMIN), "Formateur")
        if data.get("tutor_id"):
            self._tenant_user(data["tutor_id"], TUTOR_ROLES, "Tuteur")

        start = data.get("start_date") or contract.start_date
        end = data.get("end_date") or contract.end_date
        if end <= start:
            raise InvalidContractDatesError(
                "La date de fin doit être postérieure à la date de début"
            )

        for field, value in data.items():
            setattr(contract, field, value)

        self.db.commit()
        self.db.refresh(contract)
        return contract

    def delete_contract(self, contract_id: int) -> None:
        contract = self.get_contract(contract_id)
        self.db.delete(contract)
        self.db.commit()
        logger.info(f"🗑️ Contrat {contract_id} supprimé")

    # =========================================================================
    # VERROUILLAGE
    # =========================================================================

    def lock_contract(self, contract_id: int, signature: str) -> Contract:
        """Verrouille le TSF avec la signature du tuteur."""
        contract = self.get_contract(contract_id)
        now = datetime.now(timezone.utc)
        contract.is_locked = True
        contract.locked_at = now
        contract.tutor_signature = signature
        contract.signed_at = now
        contract.tsf_status = TsfStatus.VALIDATED
        self.db.commit()
        self.db.refresh(contract)
        logger.info(f"🔒 TSF du contrat {contract_id} verrouillé")
        return contract

    def initialize_journey(self, contract_id: int, period_type: PeriodType) -> Dict[str, Any]:
        self.get_contract(contract_id)
        return TSFService(self.db, self.tenant_id).initialize_journey(contract_id, period_type)
