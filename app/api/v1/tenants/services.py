"""
Services métier pour les CFA (tenants).

Contient :
- slugify / unique_slug : slug de sous-domaine dérivé du nom du CFA
- create_tenant_with_admin : création d'un CFA, de son administrateur
  et de l'abonnement ESSENTIAL (inscription publique, provisioning)
- resolve_branding : personnalisation résolue depuis l'hôte HTTP
- TenantSettingsService : paramètres du CFA et rôles personnalisés
"""
import logging
import re
import unicodedata
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.security.encryption import seal_secret
from app.core.security.hashing import hash_password
from app.models.enums import PermissionCode, SubscriptionPlan, SubscriptionStatus, UserRole
from app.models.tenants.subscription import Subscription
from app.models.tenants.tenant import Tenant
from app.models.user.role import Role
from app.models.user.user import User

logger = logging.getLogger(__name__)

# Premiers segments d'hôte qui désignent la plateforme elle-même
RESERVED_SUBDOMAINS = {"localhost", "www", "alternance360", "app"}


# =============================================================================
# EXCEPTIONS
# =============================================================================

class TenantNotFoundError(Exception):
    """CFA non trouvé."""
    pass


class EmailAlreadyUsedError(Exception):
    """Email déjà utilisé par un autre compte."""
    pass


class RoleNotFoundError(Exception):
    """Rôle personnalisé non trouvé."""
    pass


class RoleNameExistsError(Exception):
    """Un rôle de ce nom existe déjà dans le CFA."""
    pass


class UnknownPermissionError(Exception):
    """Code de permission inconnu."""
    pass


# =============================================================================
# SLUG
# =============================================================================

def slugify(value: str) -> str:
    """
    "CFA du Bâtiment" → "cfa-du-batiment"
    """
    normalized = unicodedata.normalize("NFKD", value).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", normalized.lower()).strip("-")
    return slug or "cfa"


def unique_slug(db: Session, name: str) -> str:
    """Slug libre : suffixe -2, -3... en cas de collision."""
    base = slugify(name)
    slug = base
    suffix = 1
    while db.execute(select(Tenant.id).where(Tenant.slug == slug)).first() is not None:
        suffix += 1
        slug = f"{base}-{suffix}"
    return slug


# =============================================================================
# CRÉATION D'UN CFA
# =============================================================================

def create_tenant_with_admin(
        db: Session,
        cfa_name: str,
        admin_email: str,
        password: str,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        plan: SubscriptionPlan = SubscriptionPlan.ESSENTIAL,
) -> Tuple[Tenant, User]:
    """
    Crée un CFA, son premier administrateur et son abonnement.

    Ne commit pas : l'appelant décide de la transaction.

    Raises:
        EmailAlreadyUsedError: Email déjà utilisé
    """
    email = admin_email.lower()
    if db.execute(select(User.id).where(User.email == email)).first() is not None:
        raise EmailAlreadyUsedError("Cet email est déjà utilisé.")

    tenant = Tenant(name=cfa_name, slug=unique_slug(db, cfa_name))
    db.add(tenant)
    db.flush()

    admin = User(
        tenant_id=tenant.id,
        email=email,
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        role=UserRole.ADMIN,
    )
    admin.refresh_full_name()
    db.add(admin)

    db.add(Subscription(
        tenant_id=tenant.id,
        plan=plan,
        status=SubscriptionStatus.ACTIVE,
    ))
    db.flush()

    logger.info(f"🏫 CFA '{tenant.name}' créé (slug {tenant.slug})")
    return tenant, admin


# =============================================================================
# BRANDING
# =============================================================================

def tenant_from_host(db: Session, host: Optional[str]) -> Optional[Tenant]:
    """
    Résout le CFA depuis le premier segment de l'hôte.

    "cfa-btp.alternance360.fr" → slug "cfa-btp" ; un segment numérique
    est accepté comme identifiant.
    """
    if not host:
        return None
    subdomain = host.split(":")[0].split(".")[0].lower()
    if not subdomain or subdomain in RESERVED_SUBDOMAINS:
        return None

    tenant = db.execute(
        select(Tenant).where(Tenant.slug == subdomain, Tenant.is_active.is_(True))
    ).scalar_one_or_none()
    if tenant is None and subdomain.isdigit():
        tenant = db.get(Tenant, int(subdomain))
    return tenant


def resolve_branding(db: Session, host: Optional[str]) -> Dict[str, Any]:
    tenant = tenant_from_host(db, host)
    return {
        "name": tenant.name if tenant else settings.DEFAULT_BRAND_NAME,
        "logo_url": tenant.logo_url if tenant else None,
        "primary_color": (tenant.primary_color if tenant else None) or settings.DEFAULT_BRAND_COLOR,
        "tenant_id": tenant.id if tenant else None,
    }


# =============================================================================
# TENANT SETTINGS SERVICE
# =============================================================================

class TenantSettingsService:
    """Paramètres et rôles personnalisés d'un CFA."""

    def __init__(self, db: Session, tenant_id: int):
        self.db = db
        self.tenant_id = tenant_id

    def get_tenant(self) -> Tenant:
        tenant = self.db.get(Tenant, self.tenant_id)
        if tenant is None:
            raise TenantNotFoundError(f"Tenant {self.tenant_id} non trouvé")
        return tenant

    def update_settings(self, data: Dict[str, Any]) -> Tenant:
        """Met à jour les paramètres ; le secret webhook est chiffré au repos."""
        tenant = self.get_tenant()
        if "webhook_secret" in data:
            data["webhook_secret"] = seal_secret(data["webhook_secret"])
        for field, value in data.items():
            setattr(tenant, field, value)
        self.db.commit()
        self.db.refresh(tenant)
        logger.info(f"⚙️ Paramètres du CFA {tenant.id} mis à jour ({', '.join(sorted(data))})")
        return tenant

    # =========================================================================
    # RÔLES PERSONNALISÉS
    # =========================================================================

    @staticmethod
    def _check_permissions(permissions: List[str]) -> List[str]:
        known = {p.value for p in PermissionCode}
        unknown = [p for p in permissions if p not in known]
        if unknown:
            raise UnknownPermissionError(f"Permissions inconnues : {', '.join(unknown)}")
        return sorted(set(permissions))

    def list_roles(self) -> List[Role]:
        return list(self.db.execute(
            select(Role).where(Role.tenant_id == self.tenant_id).order_by(Role.name)
        ).scalars().all())

    def get_role(self, role_id: int) -> Role:
        role = self.db.execute(
            select(Role).where(Role.id == role_id, Role.tenant_id == self.tenant_id)
        ).scalar_one_or_none()
        if role is None:
            raise RoleNotFoundError(f"Rôle {role_id} non trouvé")
        return role

    def create_role(self, name: str, description: Optional[str], permissions: List[str]) -> Role:
        exists = self.db.execute(
            select(Role.id).where(Role.tenant_id == self.tenant_id, Role.name == name)
        ).first()
        if exists is not None:
            raise RoleNameExistsError(f"Le rôle '{name}' existe déjà")

        role = Role(
            tenant_id=self.tenant_id,
            name=name,
            description=description,
            permissions=self._check_permissions(permissions),
        )
        self.db.add(role)
        self.db.commit()
        self.db.refresh(role)
        return role

    def update_role_permissions(self, role_id: int, permissions: List[str]) -> Role:
        role = self.get_role(role_id)
        role.permissions = self._check_permissions(permissions)
        self.db.commit()
        self.db.refresh(role)
        return role

    def delete_role(self, role_id: int) -> None:
        role = self.get_role(role_id)
        for user in self.db.execute(
            select(User).where(User.custom_role_id == role.id)
        ).scalars().all():
            user.custom_role_id = None
        self.db.delete(role)
        self.db.commit()
