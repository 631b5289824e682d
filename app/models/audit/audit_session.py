"""
Sessions d'audit Qualiopi.

Un administrateur génère un lien temporaire donnant à un auditeur
externe un accès en lecture seule à un échantillon d'apprentis.
"""

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base_class import Base
from app.models.mixins import AuditMixin, TenantMixin, TimestampMixin, as_utc
from app.models.types import JSONList


class AuditSession(Base, TenantMixin, TimestampMixin, AuditMixin):
    """Accès temporaire d'un auditeur."""

    __tablename__ = "audit_sessions"

    id: Mapped[int] = mapped_column(primary_key=True)

    token: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    scope: Mapped[list] = mapped_column(
        JSONList,
        default=list,
        nullable=False,
        comment="IDs des apprentis visibles",
    )
    auditor_name: Mapped[Optional[str]] = mapped_column(String(255))
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    access_logs: Mapped[List["AuditAccessLog"]] = relationship(
        "AuditAccessLog",
        back_populates="session",
        cascade="all, delete-orphan",
    )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return as_utc(self.expires_at) < now


class AuditAccessLog(Base, TimestampMixin):
    """Consultation du portail par l'auditeur."""

    __tablename__ = "audit_access_logs"

    id: Mapped[int] = mapped_column(primary_key=True)

    audit_session_id: Mapped[int] = mapped_column(
        ForeignKey("audit_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    details: Mapped[Optional[str]] = mapped_column(Text)

    session: Mapped["AuditSession"] = relationship("AuditSession", back_populates="access_logs")
