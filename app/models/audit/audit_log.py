"""
Journal d'audit du CFA.

Trace les actions sensibles (connexions, impersonation, archivage,
signatures groupées) pour la conformité Qualiopi.

IMPORTANT :
- Logs immuables (pas de UPDATE/DELETE applicatif)
- tenant_id NULL pour les actions purement plateforme
"""

from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy import ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base_class import Base
from app.models.mixins import TimestampMixin
from app.models.types import JSONBCompatible

if TYPE_CHECKING:
    from app.models.user.user import User


class AuditAction(str, Enum):
    """
    Types d'actions auditées.

    Catégories :
    - AUTH : Authentification et impersonation
    - DATA : Opérations métier groupées
    """
    # Authentification
    AUTH_SUCCESS = "AUTH_SUCCESS"
    AUTH_FAILURE = "AUTH_FAILURE"
    IMPERSONATION_START = "IMPERSONATION_START"
    IMPERSONATION_STOP = "IMPERSONATION_STOP"

    # Opérations métier
    ARCHIVE_CONTRACT = "ARCHIVE_CONTRACT"
    BATCH_SIGN_PROMOTION = "BATCH_SIGN_PROMOTION"
    AUDIT_SESSION_CREATED = "AUDIT_SESSION_CREATED"
    TENANT_PROVISIONED = "TENANT_PROVISIONED"
    CONFIG_UPDATED = "CONFIG_UPDATED"


class AuditLog(Base, TimestampMixin):
    """
    Entrée du journal d'audit.

    Example:
        log = AuditLog(
            tenant_id=3,
            user_id=12,
            action=AuditAction.ARCHIVE_CONTRACT,
            entity_type="contract",
            entity_id="57",
            details={"vault_id": 8},
        )
    """

    __tablename__ = "audit_logs"
    __table_args__ = {"comment": "Journal d'audit (immuable)"}

    id: Mapped[int] = mapped_column(primary_key=True)

    tenant_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    user_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    action: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    entity_type: Mapped[Optional[str]] = mapped_column(String(50))
    entity_id: Mapped[Optional[str]] = mapped_column(String(100))
    details: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONBCompatible)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45))

    user: Mapped[Optional["User"]] = relationship("User")

    def __repr__(self) -> str:
        return f"<AuditLog(id={self.id}, action='{self.action}')>"
