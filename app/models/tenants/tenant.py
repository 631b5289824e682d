# app/models/tenants/tenant.py
"""
Modèle Tenant - Représente un CFA client de la plateforme Alternance360.

Chaque tenant possède ses utilisateurs, contrats, référentiels importés,
son abonnement, sa charte graphique et son point d'intégration webhook.
"""

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import Boolean, DateTime, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base_class import Base
from app.models.mixins import TimestampMixin
from app.models.types import JSONBCompatible

# Imports conditionnels pour éviter les imports circulaires
if TYPE_CHECKING:
    from app.models.user.user import User
    from app.models.tenants.subscription import Subscription


class Tenant(Base, TimestampMixin):
    """
    Représente un CFA (Centre de Formation d'Apprentis) client.

    Le slug sert de sous-domaine pour la personnalisation
    (ex: cfa-btp.alternance360.fr → slug "cfa-btp").
    """

    __tablename__ = "tenants"

    # ========================
    # Clé primaire
    # ========================
    id: Mapped[int] = mapped_column(primary_key=True)

    # ========================
    # Identification
    # ========================
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Nom commercial du CFA"
    )
    slug: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
        comment="Identifiant de sous-domaine"
    )
    siret: Mapped[Optional[str]] = mapped_column(
        String(14),
        comment="Numéro SIRET"
    )
    address: Mapped[Optional[str]] = mapped_column(String(500))

    # ========================
    # Contact
    # ========================
    contact_email: Mapped[Optional[str]] = mapped_column(String(255))
    contact_phone: Mapped[Optional[str]] = mapped_column(String(20))
    website: Mapped[Optional[str]] = mapped_column(String(255))

    # ========================
    # Personnalisation (marque blanche)
    # ========================
    logo_url: Mapped[Optional[str]] = mapped_column(String(500))
    primary_color: Mapped[str] = mapped_column(
        String(7),
        default="#1e3a8a",
        nullable=False,
        comment="Couleur principale (#RRGGBB)"
    )

    # ========================
    # Intégration (webhooks sortants)
    # ========================
    webhook_url: Mapped[Optional[str]] = mapped_column(String(500))
    webhook_secret: Mapped[Optional[str]] = mapped_column(
        String(500),
        comment="Secret HMAC (chiffré AES-256-GCM)"
    )

    # ========================
    # Conformité Qualiopi
    # ========================
    qualiopi_certified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    nda_number: Mapped[Optional[str]] = mapped_column(
        String(20),
        comment="Numéro de déclaration d'activité"
    )
    uai_number: Mapped[Optional[str]] = mapped_column(
        String(20),
        comment="Code UAI de l'établissement"
    )

    # ========================
    # Statut
    # ========================
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    settings: Mapped[dict] = mapped_column(
        JSONBCompatible,
        default=dict,
        nullable=False,
        comment="Paramètres personnalisés du tenant (JSON)"
    )
    activated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # ========================
    # Relations
    # ========================
    users: Mapped[List["User"]] = relationship(
        "User",
        back_populates="tenant",
        foreign_keys="User.tenant_id",
    )

    subscriptions: Mapped[List["Subscription"]] = relationship(
        "Subscription",
        back_populates="tenant",
        cascade="all, delete-orphan",
    )

    # ========================
    # Méthodes
    # ========================
    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, slug='{self.slug}', name='{self.name}')>"

    @property
    def has_webhook(self) -> bool:
        """Vérifie si un endpoint webhook est configuré."""
        return bool(self.webhook_url)

    @property
    def active_subscription(self) -> Optional["Subscription"]:
        """Abonnement actif courant (le plus récent)."""
        active = [s for s in self.subscriptions if s.is_active]
        return max(active, key=lambda s: s.started_at) if active else None
