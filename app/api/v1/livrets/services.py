"""
Services métier pour le livret d'apprentissage.

Contient :
- consolidate_livret_data : données consolidées du livret (blocs, journal, jalons)
- generate_progress_report : bilan par bloc avec empreinte de vérification
- LivretService : création du livret, signature tripartite, invitation du
  tuteur par lien magique, signature groupée d'une promotion
- verify_magic_token / sign_with_magic_token : accès tuteur sans mot de passe

Version multi-tenant : toutes les requêtes filtrent par tenant_id.
"""
import hashlib
import json
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from app.api.v1.audit.services import log_audit_event
from app.api.v1.tsf.services import compute_contract_progress
from app.core.config import settings
from app.core.integrations.email import send_email
from app.core.security.hashing import generate_token, sha256_hex
from app.models.assessment.assessment import EvaluationIndicateur
from app.models.audit.audit_log import AuditAction
from app.models.contract.contract import Contract
from app.models.contract.tsf_mapping import TSFMapping
from app.models.enums import (
    EvaluationStatus,
    LivretStatus,
    MappingStatus,
    ReportType,
    SignerRole,
    UserRole,
)
from app.models.livret.livret import HistoricalReport, Livret
from app.models.livret.magic_token import MagicToken
from app.models.mixins import as_utc
from app.models.monitoring.milestone import Milestone
from app.models.proof.proof import Proof
from app.models.referentiel.referentiel import BlocCompetence, Competence
from app.models.tenants.tenant import Tenant
from app.models.user.user import User

logger = logging.getLogger(__name__)

JOURNAL_ENTRIES_LIMIT = 20


# =============================================================================
# EXCEPTIONS
# =============================================================================

class ContractNotFoundError(Exception):
    """Contrat non trouvé."""
    pass


class LivretNotFoundError(Exception):
    """Livret non trouvé."""
    pass


class ReferentielMissingError(Exception):
    """Contrat sans référentiel : pas de livret ni de bilan possible."""
    pass


class SignatureForbiddenError(Exception):
    """Le signataire n'est pas habilité pour ce rôle."""
    pass


class AlreadySignedError(Exception):
    """Ce signataire a déjà signé le livret."""
    pass


class InvalidMagicTokenError(Exception):
    """Lien magique inconnu ou expiré."""
    pass


class TutorEmailConflictError(Exception):
    """L'email du tuteur appartient à un autre CFA ou à un autre rôle."""
    pass


# =============================================================================
# CONSOLIDATION
# =============================================================================

def _load_blocs(db: Session, referentiel_id: int) -> List[BlocCompetence]:
    return list(db.execute(
        select(BlocCompetence)
        .options(selectinload(BlocCompetence.competences).selectinload(Competence.indicateurs))
        .where(BlocCompetence.referentiel_id == referentiel_id)
        .order_by(BlocCompetence.order_index, BlocCompetence.id)
    ).scalars().all())


def consolidate_livret_data(db: Session, contract: Contract) -> Dict[str, Any]:
    """
    Rassemble les données du livret d'un contrat.

    - blocs et statut des compétences (depuis les affectations du TSF)
    - 20 dernières entrées du journal de bord
    - jalons réglementaires
    - statistiques de progression

    Les dates sont sérialisées en ISO 8601 (le résultat est figé tel quel
    dans le livret).
    """
    if contract.referentiel_id is None:
        raise ReferentielMissingError("Contrat sans référentiel associé")

    tenant = db.get(Tenant, contract.tenant_id)
    apprentice = contract.apprentice

    status_by_competence = {
        m.competence_id: m.status
        for m in db.execute(
            select(TSFMapping).where(TSFMapping.contract_id == contract.id)
        ).scalars().all()
    }

    blocs = []
    for bloc in _load_blocs(db, contract.referentiel_id):
        competences = [
            {
                "id": c.id,
                "description": c.description,
                "status": status_by_competence.get(c.id, MappingStatus.PENDING).value,
            }
            for c in bloc.competences
        ]
        validated = sum(1 for c in competences if c["status"] == MappingStatus.ACQUIS.value)
        blocs.append({
            "id": bloc.id,
            "title": bloc.title,
            "competences": competences,
            "validated_count": validated,
            "total_count": len(competences),
        })

    proofs = db.execute(
        select(Proof)
        .where(Proof.apprentice_id == contract.apprentice_id)
        .order_by(Proof.created_at.desc(), Proof.id.desc())
        .limit(JOURNAL_ENTRIES_LIMIT)
    ).scalars().all()

    milestones = db.execute(
        select(Milestone)
        .where(Milestone.contract_id == contract.id)
        .order_by(Milestone.due_date)
    ).scalars().all()

    total_competences = sum(b["total_count"] for b in blocs)
    validated_competences = sum(b["validated_count"] for b in blocs)

    return {
        "document_id": uuid.uuid4().hex[:8].upper(),
        "generated_at": datetime.now(timezone.utc).isoformat(),
        "contract": {
            "id": contract.id,
            "start_date": contract.start_date.isoformat(),
            "end_date": contract.end_date.isoformat(),
        },
        "apprentice": {
            "full_name": apprentice.full_name or "Apprenti",
            "email": apprentice.email,
        },
        "tenant": {
            "name": tenant.name,
            "logo_url": tenant.logo_url,
            "primary_color": tenant.primary_color,
        },
        "blocs": blocs,
        "journal_entries": [
            {
                "id": p.id,
                "title": p.title,
                "created_at": as_utc(p.created_at).isoformat(),
                "type": p.type.value,
            }
            for p in proofs
        ],
        "milestones": [
            {
                "id": m.id,
                "title": m.title,
                "due_date": m.due_date.isoformat(),
                "status": m.status.value,
                "completed_at": as_utc(m.completed_at).isoformat() if m.completed_at else None,
            }
            for m in milestones
        ],
        "stats": {
            "total_competences": total_competences,
            "validated_competences": validated_competences,
            "progress_percent": (
                round(validated_competences / total_competences * 100) if total_competences else 0
            ),
            "blocs_validated": sum(
                1 for b in blocs if b["total_count"] > 0 and b["validated_count"] == b["total_count"]
            ),
            "total_blocs": len(blocs),
        },
    }


# =============================================================================
# BILAN DE PROGRESSION
# =============================================================================

def _verification_hash(contract_id: int, day: str, blocks: List[Dict[str, Any]]) -> str:
    """12 premiers caractères (majuscules) du SHA-256 des données clés du bilan."""
    payload = json.dumps(
        {
            "contractId": contract_id,
            "date": day,
            "stats": [
                {"id": b["id"], "p": b["percent"], "s": b["last_signed_at"]}
                for b in blocks
            ],
        },
        separators=(",", ":"),
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()[:12].upper()


def generate_progress_report(db: Session, contract: Contract) -> Dict[str, Any]:
    """
    Bilan par bloc : indicateurs acquis, statut, dernière signature,
    dernier commentaire, moyenne globale et empreinte de vérification.
    """
    if contract.referentiel_id is None:
        raise ReferentielMissingError("Contrat sans référentiel associé")

    evaluations = {
        e.indicateur_id: e
        for e in db.execute(
            select(EvaluationIndicateur).where(EvaluationIndicateur.contract_id == contract.id)
        ).scalars().all()
    }

    blocks = []
    global_total = 0
    global_acquired = 0

    for bloc in _load_blocs(db, contract.referentiel_id):
        indicateur_ids = [i.id for c in bloc.competences for i in c.indicateurs]
        bloc_evaluations = [evaluations[i] for i in indicateur_ids if i in evaluations]
        total = len(indicateur_ids)
        acquired = sum(1 for e in bloc_evaluations if e.status == EvaluationStatus.ACQUIS)

        signed_times = [
            as_utc(e.signed_at or e.checked_at)
            for e in bloc_evaluations
            if e.signed_at or e.checked_at
        ]
        last_signed_at = max(signed_times).isoformat() if signed_times else None

        commented = sorted(
            (e for e in bloc_evaluations if e.comment and e.comment.strip()),
            key=lambda e: as_utc(e.updated_at or e.created_at),
            reverse=True,
        )
        latest_comment = commented[0].comment if commented else None

        percent = round(acquired / total * 100) if total else 0
        block_status = "NOT_STARTED"
        if acquired > 0:
            block_status = "IN_PROGRESS"
        if percent == 100:
            block_status = "VALIDATED"

        global_total += total
        global_acquired += acquired
        blocks.append({
            "id": bloc.id,
            "title": bloc.title,
            "total_indicators": total,
            "acquired_indicators": acquired,
            "percent": percent,
            "status": block_status,
            "last_signed_at": last_signed_at,
            "latest_comment": latest_comment,
        })

    now = datetime.now(timezone.utc)
    apprentice = contract.apprentice
    return {
        "generated_at": now.isoformat(),
        "apprentice_name": " ".join(
            p for p in (apprentice.first_name, apprentice.last_name) if p
        ) or apprentice.display_name,
        "contract_id": contract.id,
        "referentiel_title": contract.referentiel.title if contract.referentiel else "Référentiel",
        "blocks": blocks,
        "global_average": round(global_acquired / global_total * 100) if global_total else 0,
        "verification_hash": _verification_hash(contract.id, now.date().isoformat(), blocks),
    }


# =============================================================================
# LIENS MAGIQUES
# =============================================================================

def _find_magic_token(db: Session, token: str) -> MagicToken:
    magic = db.execute(
        select(MagicToken).where(MagicToken.token_hash == sha256_hex(token))
    ).scalar_one_or_none()
    if magic is None or magic.is_expired():
        raise InvalidMagicTokenError("Lien invalide ou expiré")
    return magic


def verify_magic_token(db: Session, token: str) -> Dict[str, Any]:
    """Vérifie un lien magique et retourne le contexte tuteur / contrat."""
    magic = _find_magic_token(db, token)
    contract = magic.contract
    return {
        "tutor": magic.user,
        "contract": contract,
        "apprentice": contract.apprentice if contract else None,
        "expires_at": magic.expires_at,
    }


def sign_with_magic_token(
        db: Session,
        livret_id: int,
        token: str,
        signature_data: str,
) -> Tuple[Livret, bool]:
    """Signature du tuteur via lien magique (sans session)."""
    magic = _find_magic_token(db, token)
    service = LivretService(db, magic.tenant_id)
    livret, finalized = service.sign(livret_id, SignerRole.TUTOR, magic.user, signature_data)
    magic.used_at = datetime.now(timezone.utc)
    db.commit()
    return livret, finalized


# =============================================================================
# LIVRET SERVICE
# =============================================================================

class LivretService:
    """
    Service du livret d'apprentissage.

    Version multi-tenant : toutes les requêtes filtrent par tenant_id.
    """

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

    def get_livret(self, livret_id: int, for_update: bool = False) -> Livret:
        query = select(Livret).where(
            Livret.id == livret_id,
            Livret.tenant_id == self.tenant_id,
        )
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        livret = self.db.execute(query).scalar_one_or_none()
        if not livret:
            raise LivretNotFoundError(f"Livret {livret_id} non trouvé")
        return livret

    def list_contract_livrets(self, contract_id: int) -> List[Livret]:
        self.get_contract(contract_id)
        return list(self.db.execute(
            select(Livret)
            .where(Livret.contract_id == contract_id)
            .order_by(Livret.created_at.desc(), Livret.id.desc())
        ).scalars().all())

    # =========================================================================
    # CRÉATION
    # =========================================================================

    def create_livret(self, contract_id: int) -> Livret:
        """Fige les données consolidées dans un nouveau livret (brouillon)."""
        contract = self.get_contract(contract_id)
        data = consolidate_livret_data(self.db, contract)

        livret = Livret(
            tenant_id=self.tenant_id,
            contract_id=contract.id,
            document_id=data["document_id"],
            file_path=f"/{settings.LIVRET_DIR}/{data['document_id']}.pdf",
            status=LivretStatus.DRAFT,
            snapshot=data,
        )
        self.db.add(livret)
        self.db.commit()
        self.db.refresh(livret)
        logger.info(f"📘 Livret {livret.document_id} créé pour le contrat {contract.id}")
        return livret

    # =========================================================================
    # SIGNATURE TRIPARTITE
    # =========================================================================

    def _check_signer(self, livret: Livret, role: SignerRole, signer: User) -> None:
        contract = livret.contract
        if role == SignerRole.APPRENTICE and signer.id != contract.apprentice_id:
            raise SignatureForbiddenError("Seul l'apprenti du contrat peut signer ici")
        if role == SignerRole.TUTOR and signer.id != contract.tutor_id:
            raise SignatureForbiddenError("Seul le tuteur désigné peut signer ici")
        if role == SignerRole.CFA and (
            signer.role not in (UserRole.ADMIN, UserRole.FORMATEUR)
            or signer.tenant_id != livret.tenant_id
        ):
            raise SignatureForbiddenError("Signature réservée à l'encadrement du CFA")

    def sign(
            self,
            livret_id: int,
            role: SignerRole,
            signer: User,
            signature_data: str,
    ) -> Tuple[Livret, bool]:
        """
        Enregistre une signature et finalise le livret si les trois sont réunies.

        Returns:
            (livret, finalized) : finalized vaut True si le livret vient
            de passer FULLY_SIGNED (le webhook LIVRET_SIGNED est alors à émettre)

        Raises:
            LivretNotFoundError, SignatureForbiddenError, AlreadySignedError
        """
        livret = self.get_livret(livret_id, for_update=True)
        self._check_signer(livret, role, signer)

        if livret.signed_at_for(role) is not None:
            raise AlreadySignedError("Ce signataire a déjà signé le livret")

        now = datetime.now(timezone.utc)
        livret.apply_signature(role, signature_data, now)
        if role == SignerRole.CFA:
            livret.cfa_signer_id = signer.id
        self.db.commit()
        logger.info(f"✍️ Livret {livret.id} signé ({role.value})")

        # Relecture après écriture : une signature concurrente a pu être enregistrée
        self.db.refresh(livret)
        finalized = False
        if livret.is_fully_signed_by_all:
            result = self.db.execute(
                update(Livret)
                .where(Livret.id == livret.id, Livret.status != LivretStatus.FULLY_SIGNED)
                .values(status=LivretStatus.FULLY_SIGNED, signed_at=now)
            )
            finalized = result.rowcount == 1
        else:
            self.db.execute(
                update(Livret)
                .where(Livret.id == livret.id, Livret.status == LivretStatus.DRAFT)
                .values(status=LivretStatus.PARTIALLY_SIGNED)
            )
        self.db.commit()
        self.db.refresh(livret)

        if finalized:
            logger.info(f"✅ Livret {livret.id} finalisé (signature tripartite)")
        return livret, finalized

    def webhook_payload(self, livret: Livret) -> Dict[str, Any]:
        """Données de l'événement LIVRET_SIGNED."""
        apprentice = livret.contract.apprentice
        return {
            "livretId": livret.id,
            "apprenticeEmail": apprentice.email if apprentice else None,
            "downloadUrl": f"{settings.APP_BASE_URL}{livret.file_path or ''}",
            "tripartite": True,
            "signedAt": as_utc(livret.signed_at).isoformat() if livret.signed_at else None,
        }

    def get_tenant(self) -> Optional[Tenant]:
        return self.db.get(Tenant, self.tenant_id)

    def signature_status(self, livret_id: int) -> Dict[str, Any]:
        livret = self.get_livret(livret_id)
        contract = livret.contract
        return {
            "livret_id": livret.id,
            "status": livret.status,
            "apprentice": {
                "name": contract.apprentice.full_name or "Apprenti",
                "signed_at": livret.apprentice_signed_at,
            },
            "tutor": {
                "name": (contract.tutor.full_name if contract.tutor else None) or "Tuteur Entreprise",
                "signed_at": livret.tutor_signed_at,
            },
            "cfa": {
                "name": "CFA",
                "signed_at": livret.cfa_signed_at,
            },
            "is_fully_signed": livret.is_fully_signed_by_all,
        }

    # =========================================================================
    # INVITATION DU TUTEUR
    # =========================================================================

    def invite_tutor(
            self,
            contract_id: int,
            tutor_email: str,
            tutor_name: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Invite le tuteur entreprise par lien magique.

        - Crée un compte tuteur externe (tutor_ext) si l'email est inconnu
        - Rattache le tuteur au contrat
        - Génère un jeton valable MAGIC_TOKEN_VALIDITY_DAYS jours (seul son SHA-256 est stocké)
        - Envoie le lien par email
        """
        contract = self.get_contract(contract_id)
        email = tutor_email.lower()

        tutor = self.db.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if tutor is None:
            tutor = User(
                tenant_id=self.tenant_id,
                email=email,
                full_name=tutor_name or email.split("@")[0],
                role=UserRole.TUTOR_EXT,
                company_name=contract.company_name,
            )
            self.db.add(tutor)
            self.db.flush()
        elif tutor.tenant_id != self.tenant_id or not tutor.is_tutor:
            raise TutorEmailConflictError("Cet email est déjà utilisé par un autre compte")

        contract.tutor_id = tutor.id

        token = generate_token(32)
        expires_at = datetime.now(timezone.utc) + timedelta(days=settings.MAGIC_TOKEN_VALIDITY_DAYS)
        self.db.add(MagicToken(
            tenant_id=self.tenant_id,
            user_id=tutor.id,
            contract_id=contract.id,
            token_hash=sha256_hex(token),
            expires_at=expires_at,
        ))
        self.db.commit()

        magic_link = f"{settings.APP_BASE_URL}/tutor/access/{token}"
        sent = send_email(
            self.db,
            email,
            "Accès à votre Livret d'Apprentissage - Alternance 360",
            (
                '<div style="font-family: sans-serif; max-width: 600px; margin: 0 auto;">'
                "<h2>Bonjour,</h2>"
                "<p>Vous avez été invité à valider le livret d'apprentissage en tant que tuteur entreprise.</p>"
                f'<p><a href="{magic_link}">Accéder au Livret</a></p>'
                f"<p>Ce lien est unique et expirera dans {settings.MAGIC_TOKEN_VALIDITY_DAYS} jours.</p>"
                "</div>"
            ),
        )
        logger.info(f"📧 Invitation tuteur envoyée pour le contrat {contract.id} (email remis : {sent})")
        return {
            "success": True,
            "tutor_id": tutor.id,
            "expires_at": expires_at,
            "email_sent": sent,
        }

    # =========================================================================
    # SIGNATURE GROUPÉE (PROMOTION)
    # =========================================================================

    def _promotion_contracts(self, referentiel_id: int) -> List[Contract]:
        return list(self.db.execute(
            select(Contract).where(
                Contract.tenant_id == self.tenant_id,
                Contract.referentiel_id == referentiel_id,
            ).order_by(Contract.id)
        ).scalars().all())

    def promotion_apprentices(self, referentiel_id: int) -> List[Dict[str, Any]]:
        """Contrats rattachés à un référentiel (une « promotion ») avec leur progression."""
        return [
            {
                "id": c.apprentice_id,
                "first_name": c.apprentice.first_name or "",
                "last_name": c.apprentice.last_name or "",
                "email": c.apprentice.email,
                "contract_id": c.id,
                "tsf_status": c.tsf_status.value,
                "progress": compute_contract_progress(self.db, c),
            }
            for c in self._promotion_contracts(referentiel_id)
        ]

    def sign_promotion(
            self,
            referentiel_id: int,
            apprentice_ids: List[int],
            signer: User,
            ip_address: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Signature groupée, tout ou rien :
        - indicateurs ACQUIS non signés → signés
        - un HistoricalReport SEMESTER_REPORT par contrat
        - une entrée d'audit BATCH_SIGN_PROMOTION
        """
        contracts = [
            c for c in self._promotion_contracts(referentiel_id)
            if c.apprentice_id in set(apprentice_ids)
        ]
        contract_ids = [c.id for c in contracts]
        now = datetime.now(timezone.utc)

        try:
            signed = 0
            if contract_ids:
                result = self.db.execute(
                    update(EvaluationIndicateur)
                    .where(
                        EvaluationIndicateur.contract_id.in_(contract_ids),
                        EvaluationIndicateur.status == EvaluationStatus.ACQUIS,
                        EvaluationIndicateur.is_signed.is_(False),
                    )
                    .values(
                        is_signed=True,
                        signed_at=now,
                        comment=f"Validé lors de la signature groupée par {signer.display_name}",
                        validator_id=signer.id,
                    )
                    .execution_options(synchronize_session=False)
                )
                signed = result.rowcount or 0

            for contract in contracts:
                self.db.add(HistoricalReport(
                    tenant_id=self.tenant_id,
                    contract_id=contract.id,
                    type=ReportType.SEMESTER_REPORT,
                    data=generate_progress_report(self.db, contract),
                    signed_by=signer.id,
                ))

            log_audit_event(
                self.db,
                AuditAction.BATCH_SIGN_PROMOTION,
                tenant_id=self.tenant_id,
                user_id=signer.id,
                entity_type="referentiel",
                entity_id=referentiel_id,
                details={"count": len(contracts), "apprentice_ids": apprentice_ids},
                ip_address=ip_address,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.error(f"❌ Signature groupée échouée (référentiel {referentiel_id})")
            raise

        logger.info(
            f"✍️ Signature groupée : {len(contracts)} contrat(s), {signed} indicateur(s) signés"
        )
        return {"success": True, "count": len(contracts), "signed_indicators": signed}

    # =========================================================================
    # BILAN
    # =========================================================================

    def get_report(self, contract_id: int) -> Dict[str, Any]:
        return generate_progress_report(self.db, self.get_contract(contract_id))

    def get_consolidated(self, contract_id: int) -> Dict[str, Any]:
        return consolidate_livret_data(self.db, self.get_contract(contract_id))
