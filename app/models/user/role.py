"""
Modèle Role - Rôles personnalisés par CFA.

Un rôle personnalisé porte une liste de codes de permissions
(voir PermissionCode) attribuée aux utilisateurs qui en héritent.
"""

from typing import List, Optional

from sqlalchemy import ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database.base_class import Base
from app.models.mixins import TimestampMixin
from app.models.types import JSONList


class Role(Base, TimestampMixin):
    """
    Rôle personnalisé d'un tenant.

    Example:
        >>> role = Role(tenant_id=1, name="Responsable pédagogique",
        ...             permissions=["TSF_READ", "TSF_VALIDATE"])
    """

    __tablename__ = "roles"
    __table_args__ = (
        UniqueConstraint("tenant_id", "name", name="uq_roles_tenant_name"),
        {"comment": "Rôles personnalisés (RBAC)"},
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    tenant_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500))

    permissions: Mapped[List[str]] = mapped_column(
        JSONList,
        default=list,
        nullable=False,
        comment="Codes de permissions accordés",
    )

    def __repr__(self) -> str:
        return f"<Role(id={self.id}, name='{self.name}')>"

    def grants(self, permission: str) -> bool:
        return permission in (self.permissions or [])
