"""
Services métier pour les utilisateurs d'un CFA.

Contient :
- UserService : liste, création, mise à jour et suppression des comptes
  du tenant, mise à jour du profil de l'utilisateur connecté

Version multi-tenant : toutes les requêtes filtrent par tenant_id.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from app.core.security.hashing import hash_password
from app.models.enums import UserRole
from app.models.user.role import Role
from app.models.user.user import User

logger = logging.getLogger(__name__)

PROFILE_FIELDS = ("first_name", "last_name", "phone", "company_name", "tutor_name")


# =============================================================================
# EXCEPTIONS
# =============================================================================

class UserNotFoundError(Exception):
    """Utilisateur non trouvé."""
    pass


class DuplicateEmailError(Exception):
    """Email déjà utilisé."""
    pass


class DuplicateExternalIdError(Exception):
    """Identifiant externe (CRM) déjà utilisé."""
    pass


class RoleNotFoundError(Exception):
    """Rôle personnalisé non trouvé dans le tenant."""
    pass


class RoleAssignmentError(Exception):
    """Rôle non attribuable par l'utilisateur courant."""
    pass


# =============================================================================
# USER SERVICE
# =============================================================================

class UserService:
    """
    Service pour la gestion des utilisateurs.

    MULTI-TENANT: Toutes les opérations sont filtrées par tenant_id.
    """

    def __init__(self, db: Session, tenant_id: int):
        self.db = db
        self.tenant_id = tenant_id

    def _base_query(self):
        """Retourne une requête de base filtrée par tenant."""
        return select(User).where(User.tenant_id == self.tenant_id)

    def get_all(
            self,
            page: int = 1,
            size: int = 20,
            role: Optional[UserRole] = None,
            search: Optional[str] = None,
            is_active: Optional[bool] = None,
    ) -> Tuple[List[User], int]:
        query = self._base_query()

        if role:
            query = query.where(User.role == role)
        if is_active is not None:
            query = query.where(User.is_active == is_active)
        if search:
            term = f"%{search}%"
            query = query.where(or_(
                User.first_name.ilike(term),
                User.last_name.ilike(term),
                User.full_name.ilike(term),
                User.email.ilike(term),
            ))

        total = self.db.execute(
            select(func.count()).select_from(query.subquery())
        ).scalar() or 0

        items = self.db.execute(
            query.order_by(User.last_name, User.first_name, User.id)
            .offset((page - 1) * size)
            .limit(size)
        ).scalars().all()
        return list(items), total

    def get_by_id(self, user_id: int) -> User:
        """
        MULTI-TENANT: Vérifie que l'utilisateur appartient au tenant courant.
        """
        user = self.db.execute(
            self._base_query().where(User.id == user_id)
        ).scalar_one_or_none()
        if not user:
            raise UserNotFoundError(f"Utilisateur {user_id} non trouvé")
        return user

    def _email_taken(self, email: str, exclude_id: Optional[int] = None) -> bool:
        query = select(User.id).where(User.email == email)
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        return self.db.execute(query).first() is not None

    def _external_id_taken(self, external_id: str, exclude_id: Optional[int] = None) -> bool:
        query = select(User.id).where(User.external_id == external_id)
        if exclude_id is not None:
            query = query.where(User.id != exclude_id)
        return self.db.execute(query).first() is not None

    def _check_custom_role(self, role_id: Optional[int]) -> None:
        if role_id is None:
            return
        exists = self.db.execute(
            select(Role.id).where(Role.id == role_id, Role.tenant_id == self.tenant_id)
        ).first()
        if exists is None:
            raise RoleNotFoundError(f"Rôle {role_id} non trouvé")

    @staticmethod
    def _check_assignable(actor: User, role: UserRole) -> None:
        """Un formateur ne crée pas d'administrateur ; personne ne crée de super-admin ici."""
        if role == UserRole.SUPER_ADMIN:
            raise RoleAssignmentError("Rôle super_admin non attribuable")
        if role == UserRole.ADMIN and not actor.is_admin:
            raise RoleAssignmentError("Seul un administrateur peut créer un administrateur")

    def create(self, data: Dict[str, Any], actor: User) -> User:
        """
        Crée un compte dans le tenant courant.

        MULTI-TENANT: Injecte automatiquement le tenant_id.
        """
        email = data["email"].lower()
        self._check_assignable(actor, data["role"])
        if self._email_taken(email):
            raise DuplicateEmailError(f"Email '{email}' déjà utilisé")
        if data.get("external_id") and self._external_id_taken(data["external_id"]):
            raise DuplicateExternalIdError(f"Identifiant externe '{data['external_id']}' déjà utilisé")
        self._check_custom_role(data.get("custom_role_id"))

        password = data.pop("password", None)
        data["email"] = email
        user = User(tenant_id=self.tenant_id, **data)
        if not user.full_name:
            user.refresh_full_name()
        if password:
            user.password_hash = hash_password(password)

        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"👤 Utilisateur {user.id} ({user.role.value}) créé dans le tenant {self.tenant_id}")
        return user

    def update(self, user_id: int, data: Dict[str, Any], actor: User) -> User:
        user = self.get_by_id(user_id)

        if "role" in data and data["role"] != user.role:
            self._check_assignable(actor, data["role"])
        if "email" in data:
            data["email"] = data["email"].lower()
            if self._email_taken(data["email"], exclude_id=user.id):
                raise DuplicateEmailError(f"Email '{data['email']}' déjà utilisé")
        if data.get("external_id") and self._external_id_taken(data["external_id"], exclude_id=user.id):
            raise DuplicateExternalIdError(f"Identifiant externe '{data['external_id']}' déjà utilisé")
        if "custom_role_id" in data:
            self._check_custom_role(data["custom_role_id"])

        password = data.pop("password", None)
        for field, value in data.items():
            setattr(user, field, value)
        if "first_name" in data or "last_name" in data:
            user.refresh_full_name()
        if password:
            user.password_hash = hash_password(password)

        self.db.commit()
        self.db.refresh(user)
        return user

    def delete(self, user_id: int, actor: User) -> None:
        """Supprime définitivement un compte du tenant (pas soi-même)."""
        user = self.get_by_id(user_id)
        if user.id == actor.id:
            raise RoleAssignmentError("Impossible de supprimer son propre compte")
        self.db.delete(user)
        self.db.commit()
        logger.info(f"🗑️ Utilisateur {user_id} supprimé du tenant {self.tenant_id}")


def update_profile(db: Session, user: User, data: Dict[str, Any]) -> User:
    """Mise à jour du profil par l'utilisateur lui-même."""
    for field in PROFILE_FIELDS:
        if field in data:
            setattr(user, field, data[field])
    if "first_name" in data or "last_name" in data:
        user.refresh_full_name()
    db.commit()
    db.refresh(user)
    return user
