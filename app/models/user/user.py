"""
Modèle User - Utilisateurs de la plateforme.

Ce module définit la table `users` : apprentis, tuteurs, formateurs,
administrateurs de CFA et super-administrateurs de la plateforme.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import Boolean, DateTime, Enum, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base_class import Base
from app.models.enums import UserRole
from app.models.mixins import TimestampMixin

if TYPE_CHECKING:
    from app.models.tenants.tenant import Tenant
    from app.models.user.role import Role


# Rôles ayant accès aux écrans d'encadrement pédagogique
STAFF_ROLES = (UserRole.ADMIN, UserRole.FORMATEUR, UserRole.SUPER_ADMIN)

# Rôles tuteurs (compte complet ou invité)
TUTOR_ROLES = (UserRole.TUTOR, UserRole.TUTOR_EXT)


class User(TimestampMixin, Base):
    """
    Représente un utilisateur rattaché à un CFA.

    Les super-administrateurs n'ont pas de tenant (tenant_id NULL).

    Attributes:
        email: Email de connexion (unique)
        role: Rôle applicatif (apprentice, tutor, formateur, admin...)
        custom_role: Rôle personnalisé portant des permissions fines
        external_id: Identifiant dans le CRM du CFA (synchronisation)
        last_activity_at: Dernière action significative (dépôt de preuve, connexion)
    """

    __tablename__ = "users"
    __table_args__ = {
        "comment": "Utilisateurs (apprentis, tuteurs, formateurs, administrateurs)"
    }

    # === Colonnes ===

    id: Mapped[int] = mapped_column(primary_key=True)

    tenant_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
        doc="CFA de rattachement (NULL pour un super-admin)",
    )

    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
        info={"pii": True, "example": "lea.martin@cfa-btp.fr"}
    )

    password_hash: Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        doc="Hash bcrypt (NULL pour un tuteur invité par lien magique)",
        info={"sensitive": True}
    )

    first_name: Mapped[Optional[str]] = mapped_column(String(100), info={"pii": True})
    last_name: Mapped[Optional[str]] = mapped_column(String(100), info={"pii": True})
    full_name: Mapped[Optional[str]] = mapped_column(String(255), info={"pii": True})
    phone: Mapped[Optional[str]] = mapped_column(String(20), info={"pii": True})

    role: Mapped[UserRole] = mapped_column(
        Enum(UserRole, name="user_role_enum",
             values_callable=lambda enum: [e.value for e in enum]),
        default=UserRole.APPRENTICE,
        nullable=False,
    )

    custom_role_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("roles.id", ondelete="SET NULL"),
        nullable=True,
    )

    external_id: Mapped[Optional[str]] = mapped_column(
        String(100),
        unique=True,
        nullable=True,
        doc="Identifiant CRM externe",
    )

    company_name: Mapped[Optional[str]] = mapped_column(String(255))
    tutor_name: Mapped[Optional[str]] = mapped_column(String(255))

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    last_login: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    last_activity_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # === Relations ===

    tenant: Mapped[Optional["Tenant"]] = relationship(
        "Tenant",
        back_populates="users",
        foreign_keys=[tenant_id],
    )

    custom_role: Mapped[Optional["Role"]] = relationship("Role", lazy="joined")

    # === Méthodes ===

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email='{self.email}', role={self.role})>"

    @property
    def display_name(self) -> str:
        """Nom affiché (nom complet, sinon prénom + nom, sinon email)."""
        if self.full_name:
            return self.full_name
        parts = [p for p in (self.first_name, self.last_name) if p]
        return " ".join(parts) if parts else self.email

    @property
    def is_super_admin(self) -> bool:
        return self.role == UserRole.SUPER_ADMIN

    @property
    def is_admin(self) -> bool:
        """Administrateur de CFA ou de la plateforme."""
        return self.role in (UserRole.ADMIN, UserRole.SUPER_ADMIN)

    @property
    def is_staff(self) -> bool:
        """Encadrement pédagogique (admin, formateur, super-admin)."""
        return self.role in STAFF_ROLES

    @property
    def is_tutor(self) -> bool:
        return self.role in TUTOR_ROLES

    def has_role(self, *roles: UserRole) -> bool:
        """Vérifie si l'utilisateur possède l'un des rôles donnés."""
        return self.role in roles

    def has_permission(self, permission: str) -> bool:
        """
        Vérifie si l'utilisateur possède une permission fine.

        Voir app.core.permissions pour la matrice par défaut.
        """
        from app.core.permissions import user_has_permission
        return user_has_permission(self, permission)

    def refresh_full_name(self) -> None:
        """Recalcule full_name à partir du prénom et du nom."""
        parts = [p for p in (self.first_name, self.last_name) if p]
        if parts:
            self.full_name = " ".join(parts)
