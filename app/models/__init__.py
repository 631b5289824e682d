"""
Alternance360 Models - Export centralisé de tous les modèles SQLAlchemy.

Ce fichier permet d'importer tous les modèles depuis un seul endroit :
    from app.models import User, Contract, Referentiel, Livret, ...

Structure des sous-dossiers :
    tenants/        - Multi-tenant (Tenant, Subscription)
    user/           - Utilisateurs et rôles personnalisés (User, Role)
    referentiel/    - Référentiels RNCP (Referentiel, BlocCompetence, Competence, Indicateur)
    contract/       - Contrats et TSF (Contract, Period, TSFMapping)
    assessment/     - Positionnement (InitialAssessment, Positioning, EvaluationIndicateur)
    proof/          - Preuves et journal de bord (Proof, ProofComment)
    livret/         - Livret et signatures (Livret, MagicToken, HistoricalReport)
    monitoring/     - Suivi (Milestone, Attendance, NotificationLog, RemediationPlan)
    audit/          - Conformité (AuditLog, AuditSession, AuditAccessLog, ApiKey)
    support/        - Support (SupportTicket, TicketMessage)
    platform/       - Plateforme (Lead, PlatformConfig, ArchiveVault)
    catalog/        - Offres de formation (TrainingOffer)
"""

# === Enums ===
from app.models.enums import (
    UserRole,
    PermissionCode,
    SubscriptionPlan,
    SubscriptionStatus,
    LeadStatus,
    ConfigGroup,
    TsfStatus,
    PeriodType,
    MappingStatus,
    Lieu,
    EvaluationStatus,
    AssessmentStatus,
    ProofType,
    ProofStatus,
    LivretStatus,
    SignerRole,
    ReportType,
    MilestoneStatus,
    AttendanceStatus,
    NotificationType,
    HealthStatus,
    RemediationStatus,
    TicketCategory,
    TicketPriority,
    TicketStatus,
    WebhookEvent,
)

# === Mixins ===
from app.models.mixins import TimestampMixin, AuditMixin, TenantMixin

# === Tenants ===
from app.models.tenants import Tenant, Subscription, PLAN_MONTHLY_PRICES

# === Utilisateurs ===
from app.models.user import User, Role, STAFF_ROLES, TUTOR_ROLES

# === Référentiels ===
from app.models.referentiel import Referentiel, BlocCompetence, Competence, Indicateur

# === Contrats et TSF ===
from app.models.contract import Contract, Period, TSFMapping

# === Positionnement ===
from app.models.assessment import (
    ACQUIRED_LEVEL,
    InitialAssessment,
    Positioning,
    EvaluationIndicateur,
)

# === Preuves ===
from app.models.proof import Proof, ProofComment

# === Livret ===
from app.models.livret import Livret, HistoricalReport, MagicToken

# === Suivi ===
from app.models.monitoring import Milestone, Attendance, NotificationLog, RemediationPlan

# === Audit et intégrations ===
from app.models.audit import AuditLog, AuditAction, AuditSession, AuditAccessLog, ApiKey

# === Support ===
from app.models.support import SupportTicket, TicketMessage

# === Plateforme ===
from app.models.platform import Lead, PlatformConfig, ArchiveVault

# === Catalogue ===
from app.models.catalog import TrainingOffer


# === Export explicite ===
__all__ = [
    # --- Enums ---
    "UserRole", "PermissionCode",
    "SubscriptionPlan", "SubscriptionStatus", "LeadStatus", "ConfigGroup",
    "TsfStatus", "PeriodType", "MappingStatus", "Lieu", "EvaluationStatus",
    "AssessmentStatus",
    "ProofType", "ProofStatus", "LivretStatus", "SignerRole", "ReportType",
    "MilestoneStatus", "AttendanceStatus", "NotificationType", "HealthStatus",
    "RemediationStatus",
    "TicketCategory", "TicketPriority", "TicketStatus",
    "WebhookEvent",
    # --- Mixins ---
    "TimestampMixin", "AuditMixin", "TenantMixin",
    # --- Modèles ---
    "Tenant", "Subscription", "PLAN_MONTHLY_PRICES",
    "User", "Role", "STAFF_ROLES", "TUTOR_ROLES",
    "Referentiel", "BlocCompetence", "Competence", "Indicateur",
    "Contract", "Period", "TSFMapping",
    "ACQUIRED_LEVEL", "InitialAssessment", "Positioning", "EvaluationIndicateur",
    "Proof", "ProofComment",
    "Livret", "HistoricalReport", "MagicToken",
    "Milestone", "Attendance", "NotificationLog", "RemediationPlan",
    "AuditLog", "AuditAction", "AuditSession", "AuditAccessLog", "ApiKey",
    "SupportTicket", "TicketMessage",
    "Lead", "PlatformConfig", "ArchiveVault",
    "TrainingOffer",
]
