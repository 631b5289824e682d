"""
Services métier pour le module Audit (portail Qualiopi).

Contient :
- log_audit_event / log_login_attempt : écriture du journal d'audit
- AuditService : consultation du journal, sessions d'auditeur, portail
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple, Union

from sqlalchemy import select, func
from sqlalchemy.orm import Session, selectinload

from app.core.config import settings
from app.api.v1.tsf.services import compute_contract_progress
from app.core.security.hashing import generate_token
from app.models.audit.audit_log import AuditAction, AuditLog
from app.models.audit.audit_session import AuditAccessLog, AuditSession
from app.models.contract.contract import Contract
from app.models.enums import UserRole
from app.models.proof.proof import Proof
from app.models.user.user import User

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class AuditSessionNotFoundError(Exception):
    """Session d'audit non trouvée."""
    pass


class AuditSessionExpiredError(Exception):
    """Session d'audit expirée."""
    pass


# =============================================================================
# JOURNAL D'AUDIT
# =============================================================================

def log_audit_event(
    db: Session,
    action: Union[str, AuditAction],
    tenant_id: Optional[int] = None,
    user_id: Optional[int] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[Union[int, str]] = None,
    details: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
) -> AuditLog:
    """
    Ajoute une entrée au journal d'audit.

    L'entrée est ajoutée à la session courante : elle est validée
    par le commit de l'opération métier qui l'accompagne.
    """
    entry = AuditLog(
        tenant_id=tenant_id,
        user_id=user_id,
        action=action.value if isinstance(action, AuditAction) else action,
        entity_type=entity_type,
        entity_id=str(entity_id) if entity_id is not None else None,
        details=details,
        ip_address=ip_address,
    )
    db.add(entry)
    db.flush()
    return entry


def log_login_attempt(
    db: Session,
    email: str,
    success: bool,
    user: Optional[User] = None,
    ip_address: Optional[str] = None,
    reason: Optional[str] = None,
) -> AuditLog:
    """Trace une tentative de connexion (réussie ou non)."""
    details: Dict[str, Any] = {"email": email}
    if reason:
        details["reason"] = reason
    return log_audit_event(
        db,
        AuditAction.AUTH_SUCCESS if success else AuditAction.AUTH_FAILURE,
        tenant_id=user.tenant_id if user else None,
        user_id=user.id if user else None,
        entity_type="user",
        entity_id=user.id if user else None,
        details=details,
        ip_address=ip_address,
    )


# =============================================================================
# AUDIT SERVICE
# =============================================================================

class AuditService:
    """
    Service du portail d'audit.

    Version multi-tenant : toutes les requêtes filtrent par tenant_id.
    """

    def __init__(self, db: Session, tenant_id: Optional[int]):
        self.db = db
        self.tenant_id = tenant_id

    def list_logs(
            self,
            page: int = 1,
            size: int = 20,
            action: Optional[str] = None,
    ) -> Tuple[List[AuditLog], int]:
        """Journal d'audit du tenant (tous les tenants si tenant_id est None)."""
        query = select(AuditLog)
        if self.tenant_id is not None:
            query = query.where(AuditLog.tenant_id == self.tenant_id)
        if action:
            query = query.where(AuditLog.action == action.upper())

        total = self.db.execute(
            select(func.count()).select_from(query.subquery())
        ).scalar() or 0

        query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        items = self.db.execute(
            query.offset((page - 1) * size).limit(size)
        ).scalars().all()
        return list(items), total

    # =========================================================================
    # SESSIONS D'AUDIT
    # =========================================================================

    def create_session(
            self,
            apprentice_ids: List[int],
            created_by: int,
            auditor_name: Optional[str] = None,
            validity_days: Optional[int] = None,
    ) -> AuditSession:
        """
        Génère un accès auditeur limité à un échantillon d'apprentis.

        Seuls les apprentis du tenant sont retenus dans le périmètre.
        """
        scoped_ids = self.db.execute(
            select(User.id).where(
                User.tenant_id == self.tenant_id,
                User.id.in_(apprentice_ids),
                User.role == UserRole.APPRENTICE,
            )
        ).scalars().all()

        days = validity_days or settings.AUDIT_SESSION_VALIDITY_DAYS
        session = AuditSession(
            tenant_id=self.tenant_id,
            token=generate_token(32),
            scope=sorted(scoped_ids),
            auditor_name=auditor_name,
            expires_at=datetime.now(timezone.utc) + timedelta(days=days),
            created_by=created_by,
        )
        self.db.add(session)
        self.db.flush()

        log_audit_event(
            self.db,
            AuditAction.AUDIT_SESSION_CREATED,
            tenant_id=self.tenant_id,
            user_id=created_by,
            entity_type="audit_session",
            entity_id=session.id,
            details={"scope": session.scope, "auditor": auditor_name},
        )
        self.db.commit()
        self.db.refresh(session)
        logger.info(f"✅ Session d'audit créée ({len(session.scope)} apprentis)")
        return session

    def list_sessions(self) -> List[AuditSession]:
        return list(self.db.execute(
            select(AuditSession)
            .where(AuditSession.tenant_id == self.tenant_id)
            .order_by(AuditSession.created_at.desc(), AuditSession.id.desc())
        ).scalars().all())


def get_portal_data(db: Session, token: str) -> Dict[str, Any]:
    """
    Données du portail auditeur (accès public par jeton).

    Raises:
        AuditSessionNotFoundError: Jeton inconnu
        AuditSessionExpiredError: Jeton expiré
    """
    session = db.execute(
        select(AuditSession).where(AuditSession.token == token)
    ).scalar_one_or_none()

    if session is None:
        raise AuditSessionNotFoundError("Session d'audit introuvable")
    if session.is_expired():
        raise AuditSessionExpiredError("Session d'audit expirée")

    db.add(AuditAccessLog(
        audit_session_id=session.id,
        action="DASHBOARD_ACCESS",
        details=f"{len(session.scope or [])} dossiers consultés",
    ))
    db.commit()

    apprentices = db.execute(
        select(User).where(
            User.tenant_id == session.tenant_id,
            User.id.in_(session.scope or []),
        ).order_by(User.last_name, User.id)
    ).scalars().all()

    dossiers = []
    for apprentice in apprentices:
        contracts = db.execute(
            select(Contract)
            .options(selectinload(Contract.referentiel))
            .where(
                Contract.tenant_id == session.tenant_id,
                Contract.apprentice_id == apprentice.id,
            )
        ).scalars().all()
        proofs = db.execute(
            select(Proof)
            .where(Proof.tenant_id == session.tenant_id, Proof.apprentice_id == apprentice.id)
            .order_by(Proof.created_at.desc())
        ).scalars().all()

        dossiers.append({
            "apprentice_id": apprentice.id,
            "name": apprentice.display_name,
            "email": apprentice.email,
            "contracts": [
                {
                    "contract_id": c.id,
                    "referentiel": c.referentiel.title if c.referentiel else None,
                    "start_date": c.start_date,
                    "end_date": c.end_date,
                    "tsf_status": c.tsf_status.value,
                    "progress": compute_contract_progress(db, c),
                }
                for c in contracts
            ],
            "proofs": [
                {
                    "id": p.id,
                    "title": p.title,
                    "type": p.type.value,
                    "status": p.status.value,
                    "url": p.url,
                    "created_at": p.created_at,
                }
                for p in proofs
            ],
        })

    return {
        "auditor_name": session.auditor_name,
        "expires_at": session.expires_at,
        "apprentices": dossiers,
    }
