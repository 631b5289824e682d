"""
Mixins réutilisables pour les modèles SQLAlchemy.

Ce module définit des mixins qui ajoutent des colonnes communes
à plusieurs modèles (timestamps, traçabilité de l'auteur, rattachement tenant).
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, ForeignKey
from sqlalchemy.orm import Mapped, declared_attr, mapped_column


def utcnow() -> datetime:
    """Horodatage UTC courant (utilisé comme default des colonnes)."""
    return datetime.now(timezone.utc)


class TimestampMixin:
    """
    Mixin ajoutant les colonnes created_at et updated_at.

    - created_at : auto-rempli à la création
    - updated_at : auto-mis à jour à chaque modification

    Usage:
        class MyModel(Base, TimestampMixin):
            __tablename__ = "my_table"
            id: Mapped[int] = mapped_column(primary_key=True)
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        doc="Date et heure de création",
        info={"description": "Timestamp de création", "auto_generated": True}
    )

    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        default=None,
        onupdate=utcnow,
        doc="Date et heure de dernière modification",
        info={"description": "Timestamp de mise à jour", "auto_generated": True}
    )


class AuditMixin:
    """
    Mixin ajoutant la colonne created_by.

    Permet de tracer quel utilisateur a créé un enregistrement.
    """

    created_by: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        doc="ID de l'utilisateur ayant créé l'enregistrement",
        info={"description": "Référence vers le créateur"}
    )


class TenantMixin:
    """
    Mixin de rattachement à un tenant (CFA).

    Toute donnée métier porte son tenant_id : les services filtrent
    systématiquement dessus et les politiques RLS PostgreSQL s'y appuient.
    """

    @declared_attr
    def tenant_id(cls) -> Mapped[int]:
        return mapped_column(
            ForeignKey("tenants.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
            comment="Tenant (CFA) propriétaire",
        )


def as_utc(value: datetime | None) -> datetime | None:
    """
    Rend un datetime conscient du fuseau (UTC).

    SQLite restitue des datetimes naïfs même pour DateTime(timezone=True).
    """
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
