"""Clés d'API des CFA (intégration CRM, application mobile, BI)."""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from app.database.base_class import Base
from app.models.mixins import AuditMixin, TenantMixin, TimestampMixin

# Préfixe visible des clés de production
API_KEY_PREFIX = "cfa_live_"


class ApiKey(Base, TenantMixin, TimestampMixin, AuditMixin):
    """
    Clé d'API d'un tenant.

    Seule l'empreinte SHA-256 est stockée. La clé en clair n'est
    restituée qu'une fois, à la création.
    """

    __tablename__ = "api_keys"

    id: Mapped[int] = mapped_column(primary_key=True)

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    key_hash: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    prefix: Mapped[str] = mapped_column(String(20), nullable=False, default=API_KEY_PREFIX)

    last_used_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    revoked_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    def __repr__(self) -> str:
        return f"<ApiKey(id={self.id}, name='{self.name}')>"

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None
