"""
Services métier pour les preuves et le journal de bord.

Contient :
- ProofService : dépôt de preuves (fichier), entrées de journal,
  validation par l'encadrement, commentaires

Version multi-tenant : toutes les requêtes filtrent par tenant_id.
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from app.core.integrations.storage import proof_type_from_mime, save_upload
from app.models.contract.contract import Contract
from app.models.enums import ProofStatus, ProofType, UserRole
from app.models.proof.proof import Proof, ProofComment
from app.models.referentiel.referentiel import Competence
from app.models.user.user import User

logger = logging.getLogger(__name__)

JOURNAL_FIELDS = (
    "description",
    "reflexion_appris",
    "reflexion_difficultes",
    "outils",
    "competences",
    "date",
)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class ProofNotFoundError(Exception):
    """Preuve non trouvée."""
    pass


class CompetenceNotFoundError(Exception):
    """Compétence non trouvée."""
    pass


class ProofAccessError(Exception):
    """L'utilisateur n'a pas accès à cette preuve."""
    pass


# =============================================================================
# PROOF SERVICE
# =============================================================================

class ProofService:
    """Preuves et journal de bord des apprentis d'un tenant."""

    def __init__(self, db: Session, tenant_id: int):
        self.db = db
        self.tenant_id = tenant_id

    def _base_query(self):
        return select(Proof).where(Proof.tenant_id == self.tenant_id)

    def _check_competence(self, competence_id: Optional[int]) -> None:
        if competence_id is not None and self.db.get(Competence, competence_id) is None:
            raise CompetenceNotFoundError(f"Compétence {competence_id} non trouvée")

    def _touch_activity(self, apprentice: User) -> None:
        apprentice.last_activity_at = datetime.now(timezone.utc)

    # =========================================================================
    # LECTURE ET CONTRÔLE D'ACCÈS
    # =========================================================================

    def get_proof(self, proof_id: int) -> Proof:
        proof = self.db.execute(
            self._base_query().where(Proof.id == proof_id)
        ).scalar_one_or_none()
        if not proof:
            raise ProofNotFoundError(f"Preuve {proof_id} non trouvée")
        return proof

    def _tutored_apprentice_ids(self, tutor_id: int) -> List[int]:
        return list(self.db.execute(
            select(Contract.apprentice_id).where(
                Contract.tenant_id == self.tenant_id,
                Contract.tutor_id == tutor_id,
            )
        ).scalars().all())

    def check_access(self, user: User, proof: Proof) -> None:
        """
        L'encadrement voit tout le tenant, l'apprenti ses propres preuves,
        le tuteur celles de ses apprentis.
        """
        if user.is_staff or proof.apprentice_id == user.id:
            return
        if user.is_tutor and proof.apprentice_id in self._tutored_apprentice_ids(user.id):
            return
        raise ProofAccessError("Accès refusé à cette preuve")

    def list_proofs(
            self,
            user: User,
            page: int = 1,
            size: int = 20,
            proof_status: Optional[ProofStatus] = None,
            apprentice_id: Optional[int] = None,
            journal_only: bool = False,
    ) -> Tuple[List[Proof], int]:
        query = self._base_query()

        if user.role == UserRole.APPRENTICE:
            query = query.where(Proof.apprentice_id == user.id)
        elif user.is_tutor:
            query = query.where(Proof.apprentice_id.in_(self._tutored_apprentice_ids(user.id)))

        if apprentice_id:
            query = query.where(Proof.apprentice_id == apprentice_id)
        if proof_status:
            query = query.where(Proof.status == proof_status)
        if journal_only:
            query = query.where(Proof.type == ProofType.JOURNAL)

        total = self.db.execute(
            select(func.count()).select_from(query.subquery())
        ).scalar()

        items = self.db.execute(
            query.order_by(Proof.created_at.desc(), Proof.id.desc())
            .offset((page - 1) * size)
            .limit(size)
        ).scalars().all()

        return list(items), total

    # =========================================================================
    # DÉPÔT
    # =========================================================================

    def upload_proof(
            self,
            apprentice: User,
            content: bytes,
            filename: str,
            content_type: str,
            title: Optional[str] = None,
            competence_id: Optional[int] = None,
            description: Optional[str] = None,
    ) -> Proof:
        """Stocke le fichier et crée une preuve en attente de validation."""
        self._check_competence(competence_id)

        url = save_upload(content, filename, folder="proofs")
        proof = Proof(
            tenant_id=self.tenant_id,
            apprentice_id=apprentice.id,
            competence_id=competence_id,
            title=title or filename,
            description=description,
            url=url,
            type=proof_type_from_mime(content_type),
            status=ProofStatus.PENDING,
        )
        self.db.add(proof)
        self._touch_activity(apprentice)
        self.db.commit()
        self.db.refresh(proof)
        logger.info(f"📎 Preuve {proof.id} déposée par l'apprenti {apprentice.id}")
        return proof

    def create_journal_entry(
            self,
            apprentice: User,
            data: Dict[str, Any],
            attachment: Optional[Tuple[bytes, str, str]] = None,
    ) -> Proof:
        """
        Crée une entrée de journal de bord.

        Les champs riches sont conservés en JSON dans la description ;
        la première compétence citée devient la compétence principale.

        Args:
            attachment: (contenu, nom de fichier, type MIME) optionnel
        """
        competences = data.get("competences") or []
        primary_competence_id = competences[0] if competences else None
        self._check_competence(primary_competence_id)

        url = None
        if attachment is not None:
            content, filename, _content_type = attachment
            url = save_upload(content, filename, folder="journal")

        payload = {field: data.get(field) for field in JOURNAL_FIELDS}
        if payload["date"] is not None:
            payload["date"] = payload["date"].isoformat()

        proof = Proof(
            tenant_id=self.tenant_id,
            apprentice_id=apprentice.id,
            competence_id=primary_competence_id,
            title=data["titre"],
            description=json.dumps(payload, ensure_ascii=False),
            url=url,
            type=ProofType.JOURNAL,
            status=ProofStatus.PENDING,
        )
        self.db.add(proof)
        self._touch_activity(apprentice)
        self.db.commit()
        self.db.refresh(proof)
        logger.info(f"📓 Entrée de journal {proof.id} créée par l'apprenti {apprentice.id}")
        return proof

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def validate_proof(
            self,
            proof_id: int,
            proof_status: ProofStatus,
            feedback: Optional[str],
            validator_id: int,
    ) -> Proof:
        proof = self.get_proof(proof_id)
        proof.status = proof_status
        proof.feedback = feedback
        proof.validated_by = validator_id
        proof.validated_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(proof)
        logger.info(f"✅ Preuve {proof_id} : {proof_status.value}")
        return proof

    # =========================================================================
    # COMMENTAIRES
    # =========================================================================

    def add_comment(self, proof: Proof, author_id: int, content: str) -> ProofComment:
        comment = ProofComment(proof_id=proof.id, author_id=author_id, content=content)
        self.db.add(comment)
        self.db.commit()
        self.db.refresh(comment)
        return comment

    def list_comments(self, proof: Proof) -> List[ProofComment]:
        return list(self.db.execute(
            select(ProofComment)
            .options(selectinload(ProofComment.author))
            .where(ProofComment.proof_id == proof.id)
            .order_by(ProofComment.created_at, ProofComment.id)
        ).scalars().all())
