"""
Services métier pour le module Platform.

Gestion au niveau plateforme (SuperAdmin) :
- LeadService : prospects et provisionnement des CFA
- PlatformTenantService : CRUD et conformité des tenants
- PlatformUserService : utilisateurs toutes instances confondues
- PlatformConfigService : paramètres globaux (secrets chiffrés)
- GlobalReferentielService : référentiels partagés
- PlatformStatsService : statistiques globales et MRR
- get_system_health : état de la base et de l'hôte
"""
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from app.api.v1.audit.services import log_audit_event
from app.api.v1.tenants.services import create_tenant_with_admin, unique_slug
from app.core.config import settings
from app.core.integrations.email import send_email
from app.core.security.encryption import seal_secret
from app.core.security.hashing import generate_password
from app.database.session import measure_database_latency
from app.models.audit.audit_log import AuditAction
from app.models.contract.contract import Contract
from app.models.enums import ConfigGroup, LeadStatus, SubscriptionPlan, SubscriptionStatus, UserRole
from app.models.platform.lead import Lead
from app.models.platform.platform_config import PlatformConfig
from app.models.referentiel.referentiel import Referentiel
from app.models.tenants.subscription import PLAN_MONTHLY_PRICES, Subscription
from app.models.tenants.tenant import Tenant
from app.models.user.user import User

logger = logging.getLogger(__name__)

SECRET_MASK = "********"

TENANT_FIELDS = (
    "name",
    "siret",
    "address",
    "contact_email",
    "contact_phone",
    "website",
    "logo_url",
    "primary_color",
    "qualiopi_certified",
    "nda_number",
    "uai_number",
    "is_active",
)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class LeadNotFoundError(Exception):
    """Prospect non trouvé."""
    pass


class LeadAlreadyProcessedError(Exception):
    """Prospect déjà traité."""
    pass


class TenantNotFoundError(Exception):
    """Tenant non trouvé."""
    pass


class UserNotFoundError(Exception):
    """Utilisateur non trouvé."""
    pass


class UserEmailExistsError(Exception):
    """Email déjà utilisé."""
    pass


class SelfDeletionError(Exception):
    """Un super-admin ne peut pas supprimer son propre compte."""
    pass


class ReferentielNotFoundError(Exception):
    """Référentiel non trouvé."""
    pass


class DuplicateReferentielError(Exception):
    """Code RNCP déjà présent dans les référentiels globaux."""
    pass


def paginate(db: Session, query, page: int, size: int) -> Tuple[list, int]:
    total = db.execute(select(func.count()).select_from(query.subquery())).scalar() or 0
    items = db.execute(query.offset((page - 1) * size).limit(size)).scalars().all()
    return list(items), total


# =============================================================================
# PROSPECTS ET PROVISIONNEMENT
# =============================================================================

class LeadService:
    """Prospects du formulaire public et création de leur instance."""

    def __init__(self, db: Session):
        self.db = db

    def create_lead(self, data: Dict[str, Any]) -> Lead:
        lead = Lead(**data, status=LeadStatus.NEW)
        self.db.add(lead)
        self.db.commit()
        self.db.refresh(lead)
        logger.info(f"📨 Nouveau prospect : {lead.cfa_name}")
        return lead

    def list_leads(self, lead_status: Optional[LeadStatus] = None) -> List[Lead]:
        query = select(Lead)
        if lead_status:
            query = query.where(Lead.status == lead_status)
        return list(self.db.execute(
            query.order_by(Lead.created_at.desc(), Lead.id.desc())
        ).scalars().all())

    def _get_new_lead(self, lead_id: int) -> Lead:
        lead = self.db.get(Lead, lead_id)
        if not lead:
            raise LeadNotFoundError(f"Prospect {lead_id} non trouvé")
        if lead.status != LeadStatus.NEW:
            raise LeadAlreadyProcessedError("Prospect déjà traité")
        return lead

    def reject_lead(self, lead_id: int) -> Lead:
        lead = self._get_new_lead(lead_id)
        lead.status = LeadStatus.REJECTED
        self.db.commit()
        self.db.refresh(lead)
        return lead

    def provision(
            self,
            lead_id: int,
            actor_id: int,
            ip_address: Optional[str] = None,
    ) -> Tuple[Tenant, User, str]:
        """
        Crée l'instance du prospect : CFA, administrateur (mot de passe généré),
        abonnement ESSENTIAL. Le prospect passe PROCESSED.

        Returns:
            (tenant, administrateur, mot de passe en clair)

        Raises:
            LeadNotFoundError, LeadAlreadyProcessedError, EmailAlreadyUsedError
        """
        lead = self._get_new_lead(lead_id)
        password = generate_password()

        first_name, _, last_name = (lead.contact_name or "").partition(" ")
        try:
            tenant, admin = create_tenant_with_admin(
                self.db,
                cfa_name=lead.cfa_name,
                admin_email=lead.email,
                password=password,
                first_name=first_name or None,
                last_name=last_name or None,
                plan=SubscriptionPlan.ESSENTIAL,
            )
            tenant.contact_email = lead.email
            tenant.contact_phone = lead.phone
            tenant.activated_at = datetime.now(timezone.utc)
            lead.status = LeadStatus.PROCESSED

            log_audit_event(
                self.db,
                AuditAction.TENANT_PROVISIONED,
                tenant_id=tenant.id,
                user_id=actor_id,
                entity_type="tenant",
                entity_id=tenant.id,
                details={"lead_id": lead.id, "admin_email": admin.email},
                ip_address=ip_address,
            )
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        send_email(
            self.db,
            admin.email,
            f"Votre espace {tenant.name} est prêt",
            (
                f"<p>Bonjour,</p><p>Votre espace CFA est disponible : "
                f"{settings.APP_BASE_URL}</p><p>Identifiant : {admin.email}<br>"
                f"Mot de passe provisoire : {password}</p>"
            ),
        )
        logger.info(f"🚀 CFA '{tenant.name}' provisionné depuis le prospect {lead.id}")
        return tenant, admin, password


# =============================================================================
# TENANTS
# =============================================================================

class PlatformTenantService:
    """Tenants vus par l'équipe plateforme."""

    def __init__(self, db: Session):
        self.db = db

    def get_all(self, page: int = 1, size: int = 20, search: Optional[str] = None) -> Tuple[List[Tenant], int]:
        query = select(Tenant)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(Tenant.name.ilike(pattern), Tenant.slug.ilike(pattern)))
        return paginate(self.db, query.order_by(Tenant.name, Tenant.id), page, size)

    def get_by_id(self, tenant_id: int) -> Tenant:
        tenant = self.db.get(Tenant, tenant_id)
        if not tenant:
            raise TenantNotFoundError(f"Tenant {tenant_id} non trouvé")
        return tenant

    def counts(self, tenant_ids: List[int]) -> Dict[int, Dict[str, int]]:
        """Nombre d'utilisateurs et de contrats par tenant."""
        users = dict(self.db.execute(
            select(User.tenant_id, func.count(User.id))
            .where(User.tenant_id.in_(tenant_ids))
            .group_by(User.tenant_id)
        ).all())
        contracts = dict(self.db.execute(
            select(Contract.tenant_id, func.count(Contract.id))
            .where(Contract.tenant_id.in_(tenant_ids))
            .group_by(Contract.tenant_id)
        ).all())
        return {
            tid: {"user_count": users.get(tid, 0), "contract_count": contracts.get(tid, 0)}
            for tid in tenant_ids
        }

    def create(self, data: Dict[str, Any], actor_id: int) -> Tenant:
        """Crée un CFA avec un abonnement ESSENTIAL actif."""
        fields = {k: v for k, v in data.items() if k in TENANT_FIELDS and v is not None}
        tenant = Tenant(slug=unique_slug(self.db, data["name"]), **fields)
        self.db.add(tenant)
        self.db.flush()
        self.db.add(Subscription(
            tenant_id=tenant.id,
            plan=SubscriptionPlan.ESSENTIAL,
            status=SubscriptionStatus.ACTIVE,
        ))
        log_audit_event(
            self.db,
            "SUPER_ADMIN_CREATE_TENANT",
            tenant_id=tenant.id,
            user_id=actor_id,
            entity_type="tenant",
            entity_id=tenant.id,
            details={"name": tenant.name},
        )
        self.db.commit()
        self.db.refresh(tenant)
        logger.info(f"🏫 CFA '{tenant.name}' créé par le super-admin {actor_id}")
        return tenant

    def update(self, tenant_id: int, data: Dict[str, Any], actor_id: int) -> Tenant:
        """Mise à jour des informations légales et de conformité."""
        tenant = self.get_by_id(tenant_id)
        for field, value in data.items():
            if field in TENANT_FIELDS:
                setattr(tenant, field, value)
        log_audit_event(
            self.db,
            "SUPER_ADMIN_UPDATE_TENANT_COMPLIANCE",
            tenant_id=tenant.id,
            user_id=actor_id,
            entity_type="tenant",
            entity_id=tenant.id,
            details={"updated_fields": sorted(data.keys())},
        )
        self.db.commit()
        self.db.refresh(tenant)
        return tenant


# =============================================================================
# UTILISATEURS
# =============================================================================

class PlatformUserService:
    """Utilisateurs de toutes les instances."""

    def __init__(self, db: Session):
        self.db = db

    def get_all(
            self,
            page: int = 1,
            size: int = 20,
            search: Optional[str] = None,
            role: Optional[UserRole] = None,
            tenant_id: Optional[int] = None,
    ) -> Tuple[List[User], int]:
        query = select(User)
        if search:
            pattern = f"%{search}%"
            query = query.where(or_(User.email.ilike(pattern), User.full_name.ilike(pattern)))
        if role:
            query = query.where(User.role == role)
        if tenant_id:
            query = query.where(User.tenant_id == tenant_id)
        return paginate(self.db, query.order_by(User.created_at.desc(), User.id.desc()), page, size)

    def get_by_id(self, user_id: int) -> User:
        user = self.db.get(User, user_id)
        if not user:
            raise UserNotFoundError(f"Utilisateur {user_id} non trouvé")
        return user

    def update(self, user_id: int, data: Dict[str, Any], actor_id: int) -> User:
        user = self.get_by_id(user_id)

        if data.get("email") and data["email"].lower() != user.email:
            email = data["email"].lower()
            if self.db.execute(select(User.id).where(User.email == email)).first():
                raise UserEmailExistsError(f"L'email {email} est déjà utilisé")
            data["email"] = email
        if "tenant_id" in data and data["tenant_id"] is not None:
            if self.db.get(Tenant, data["tenant_id"]) is None:
                raise TenantNotFoundError(f"Tenant {data['tenant_id']} non trouvé")

        for field, value in data.items():
            setattr(user, field, value)
        if "first_name" in data or "last_name" in data:
            user.refresh_full_name()

        log_audit_event(
            self.db,
            "SUPER_ADMIN_UPDATE_USER",
            tenant_id=user.tenant_id,
            user_id=actor_id,
            entity_type="user",
            entity_id=user.id,
            details={"updated_fields": sorted(data.keys())},
        )
        self.db.commit()
        self.db.refresh(user)
        return user

    def delete(self, user_id: int, actor_id: int) -> None:
        if user_id == actor_id:
            raise SelfDeletionError("Impossible de supprimer votre propre compte")
        user = self.get_by_id(user_id)
        log_audit_event(
            self.db,
            "SUPER_ADMIN_DELETE_USER",
            tenant_id=user.tenant_id,
            user_id=actor_id,
            entity_type="user",
            entity_id=user.id,
            details={"email": user.email},
        )
        self.db.delete(user)
        self.db.commit()
        logger.info(f"🗑️ Utilisateur {user_id} supprimé par le super-admin {actor_id}")


# =============================================================================
# CONFIGURATION
# =============================================================================

class PlatformConfigService:
    """Paramètres globaux ; les valeurs secrètes sont chiffrées et masquées."""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def to_public(config: PlatformConfig) -> Dict[str, Any]:
        return {
            "key": config.key,
            "value": SECRET_MASK if config.is_secret and config.value else config.value,
            "group": config.group,
            "is_secret": config.is_secret,
            "updated_at": config.updated_at or config.created_at,
        }

    def list_configs(self, group: Optional[ConfigGroup] = None) -> List[PlatformConfig]:
        query = select(PlatformConfig)
        if group:
            query = query.where(PlatformConfig.group == group)
        return list(self.db.execute(
            query.order_by(PlatformConfig.group, PlatformConfig.key)
        ).scalars().all())

    def set_config(
            self,
            key: str,
            value: Optional[str],
            actor_id: int,
            group: ConfigGroup = ConfigGroup.GENERAL,
            is_secret: bool = False,
    ) -> PlatformConfig:
        config = self.db.execute(
            select(PlatformConfig).where(PlatformConfig.key == key)
        ).scalar_one_or_none()
        if config is None:
            config = PlatformConfig(key=key)
            self.db.add(config)

        config.group = group
        config.is_secret = is_secret
        config.value = seal_secret(value) if is_secret else value

        log_audit_event(
            self.db,
            AuditAction.CONFIG_UPDATED,
            user_id=actor_id,
            entity_type="platform_config",
            entity_id=key,
            details={"key": key, "group": group.value, "is_secret": is_secret},
        )
        self.db.commit()
        self.db.refresh(config)
        logger.info(f"⚙️ Paramètre plateforme '{key}' mis à jour")
        return config


# =============================================================================
# RÉFÉRENTIELS GLOBAUX
# =============================================================================

class GlobalReferentielService:
    """Référentiels partagés par toute la plateforme."""

    def __init__(self, db: Session):
        self.db = db

    def list_global(self) -> List[Referentiel]:
        return list(self.db.execute(
            select(Referentiel)
            .where(Referentiel.is_global.is_(True))
            .order_by(Referentiel.code_rncp)
        ).scalars().all())

    def create_global(self, code_rncp: str, title: str) -> Referentiel:
        exists = self.db.execute(
            select(Referentiel.id).where(
                Referentiel.is_global.is_(True),
                Referentiel.code_rncp == code_rncp,
            )
        ).first()
        if exists:
            raise DuplicateReferentielError(f"Le référentiel {code_rncp} existe déjà")

        referentiel = Referentiel(
            tenant_id=None,
            code_rncp=code_rncp,
            title=title,
            is_global=True,
            is_public=True,
        )
        self.db.add(referentiel)
        self.db.commit()
        self.db.refresh(referentiel)
        return referentiel

    def toggle_visibility(self, referentiel_id: int) -> Referentiel:
        referentiel = self.db.execute(
            select(Referentiel).where(
                Referentiel.id == referentiel_id,
                Referentiel.is_global.is_(True),
            )
        ).scalar_one_or_none()
        if not referentiel:
            raise ReferentielNotFoundError(f"Référentiel global {referentiel_id} non trouvé")
        referentiel.is_public = not referentiel.is_public
        self.db.commit()
        self.db.refresh(referentiel)
        return referentiel


# =============================================================================
# STATISTIQUES
# =============================================================================

class PlatformStatsService:
    """Statistiques globales de la plateforme."""

    def __init__(self, db: Session):
        self.db = db

    def _count(self, model, *criteria) -> int:
        return self.db.execute(select(func.count(model.id)).where(*criteria)).scalar() or 0

    def list_subscriptions(self) -> List[Subscription]:
        return list(self.db.execute(
            select(Subscription)
            .options(selectinload(Subscription.tenant))
            .order_by(Subscription.started_at.desc(), Subscription.id.desc())
        ).scalars().all())

    def monthly_recurring_revenue(self) -> int:
        """Estimation du MRR à partir des abonnements actifs."""
        rows = self.db.execute(
            select(Subscription.plan, func.count(Subscription.id))
            .where(Subscription.status == SubscriptionStatus.ACTIVE)
            .group_by(Subscription.plan)
        ).all()
        return sum(PLAN_MONTHLY_PRICES.get(plan, 0) * count for plan, count in rows)

    def get_platform_stats(self) -> Dict[str, int]:
        return {
            "tenant_count": self._count(Tenant),
            "active_tenant_count": self._count(Tenant, Tenant.is_active.is_(True)),
            "user_count": self._count(User),
            "apprentice_count": self._count(User, User.role == UserRole.APPRENTICE),
            "contract_count": self._count(Contract),
            "referentiel_count": self._count(Referentiel),
            "lead_count": self._count(Lead),
            "new_lead_count": self._count(Lead, Lead.status == LeadStatus.NEW),
            "mrr": self.monthly_recurring_revenue(),
        }


# =============================================================================
# SANTÉ SYSTÈME
# =============================================================================

LOAD_CRITICAL = 0.8
LOAD_WARNING = 0.5
MEMORY_CRITICAL = 90
MEMORY_WARNING = 70


def _normalized_load() -> Optional[float]:
    try:
        load_1min = os.getloadavg()[0]
    except (AttributeError, OSError):
        return None
    return round(load_1min / (os.cpu_count() or 1), 2)


def _memory_usage_percent() -> Optional[int]:
    try:
        total = os.sysconf("SC_PHYS_PAGES")
        available = os.sysconf("SC_AVPHYS_PAGES")
    except (AttributeError, ValueError, OSError):
        return None
    if total <= 0:
        return None
    return round((total - available) / total * 100)


def system_status(load: Optional[float], memory: Optional[int]) -> str:
    load = load or 0
    memory = memory or 0
    if load > LOAD_CRITICAL or memory > MEMORY_CRITICAL:
        return "CRITICAL"
    if load > LOAD_WARNING or memory > MEMORY_WARNING:
        return "WARNING"
    return "HEALTHY"


def get_system_health(db: Session) -> Dict[str, Any]:
    latency = measure_database_latency(db)
    load = _normalized_load()
    memory = _memory_usage_percent()
    return {
        "database": {
            "status": "OK" if latency is not None else "ERROR",
            "latency_ms": latency if latency is not None else -1,
        },
        "system": {
            "status": system_status(load, memory),
            "load": load,
            "memory_usage": memory,
        },
        "last_updated": datetime.now(timezone.utc),
    }
