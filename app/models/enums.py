"""
Enums métier Alternance360.

Toutes les valeurs sont stockées en base via SQLEnum (PostgreSQL ENUM
nommés, CHECK constraint sous SQLite).
"""

from enum import Enum


# =============================================================================
# UTILISATEURS ET PERMISSIONS
# =============================================================================

class UserRole(str, Enum):
    """Rôles applicatifs."""
    APPRENTICE = "apprentice"      # Apprenti
    TUTOR = "tutor"                # Maître d'apprentissage (compte complet)
    TUTOR_EXT = "tutor_ext"        # Tuteur externe invité par lien magique
    FORMATEUR = "formateur"        # Formateur référent du CFA
    ADMIN = "admin"                # Administrateur du CFA
    SUPER_ADMIN = "super_admin"    # Équipe plateforme


class PermissionCode(str, Enum):
    """Permissions fines (RBAC) attribuables via un rôle personnalisé."""
    CONTRACT_READ = "CONTRACT_READ"
    CONTRACT_WRITE = "CONTRACT_WRITE"
    CONTRACT_DELETE = "CONTRACT_DELETE"
    TSF_READ = "TSF_READ"
    TSF_VALIDATE = "TSF_VALIDATE"
    TSF_UNLOCK = "TSF_UNLOCK"
    USER_READ = "USER_READ"
    USER_WRITE = "USER_WRITE"
    ROLE_MANAGE = "ROLE_MANAGE"
    AUDIT_READ = "AUDIT_READ"
    AUDIT_GENERATE = "AUDIT_GENERATE"


# =============================================================================
# ABONNEMENTS ET PLATEFORME
# =============================================================================

class SubscriptionPlan(str, Enum):
    """Formules commerciales."""
    ESSENTIAL = "ESSENTIAL"
    PREMIUM = "PREMIUM"
    ENTERPRISE = "ENTERPRISE"


class SubscriptionStatus(str, Enum):
    """Statuts d'un abonnement."""
    TRIAL = "TRIAL"
    ACTIVE = "ACTIVE"
    CANCELLED = "CANCELLED"


class LeadStatus(str, Enum):
    """Statuts d'un prospect (formulaire public)."""
    NEW = "NEW"
    PROCESSED = "PROCESSED"
    REJECTED = "REJECTED"


class ConfigGroup(str, Enum):
    """Groupes de paramètres plateforme."""
    GENERAL = "GENERAL"
    TECH = "TECH"
    BILLING = "BILLING"


# =============================================================================
# CONTRATS ET TSF
# =============================================================================

class TsfStatus(str, Enum):
    """Statut du Tableau Stratégique de Formation d'un contrat."""
    DRAFT = "DRAFT"
    VALIDATED = "VALIDATED"


class PeriodType(str, Enum):
    """Découpage du parcours (taille des périodes en mois)."""
    SEMESTER = "SEMESTER"
    TRIMESTER = "TRIMESTER"
    MONTH = "MONTH"


class MappingStatus(str, Enum):
    """Statut d'une compétence planifiée dans le TSF."""
    PENDING = "PENDING"
    PLANIFIE = "PLANIFIE"
    EN_COURS = "EN_COURS"
    ACQUIS = "ACQUIS"
    NON_ACQUIS = "NON_ACQUIS"


class Lieu(str, Enum):
    """Lieu d'acquisition d'une compétence."""
    CFA = "CFA"
    ENTREPRISE = "ENTREPRISE"
    MIXTE = "MIXTE"


class EvaluationStatus(str, Enum):
    """Statut d'évaluation d'un indicateur."""
    PENDING = "PENDING"
    ACQUIS = "ACQUIS"
    NON_ACQUIS = "NON_ACQUIS"


# =============================================================================
# POSITIONNEMENT
# =============================================================================

class AssessmentStatus(str, Enum):
    """Statuts du diagnostic initial."""
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    VALIDATED = "VALIDATED"


# =============================================================================
# PREUVES ET LIVRET
# =============================================================================

class ProofType(str, Enum):
    """Nature d'une preuve déposée."""
    IMG = "IMG"
    PDF = "PDF"
    TEXT = "TEXT"
    JOURNAL = "JOURNAL"
    SIGNATURE = "SIGNATURE"


class ProofStatus(str, Enum):
    """Statut de validation d'une preuve."""
    PENDING = "PENDING"
    VALIDATED = "VALIDATED"
    REJECTED = "REJECTED"


class LivretStatus(str, Enum):
    """Statut de signature tripartite du livret."""
    DRAFT = "DRAFT"
    PARTIALLY_SIGNED = "PARTIALLY_SIGNED"
    FULLY_SIGNED = "FULLY_SIGNED"


class SignerRole(str, Enum):
    """Signataires du livret."""
    APPRENTICE = "apprentice"
    TUTOR = "tutor"
    CFA = "cfa"


class ReportType(str, Enum):
    """Types de rapports historisés."""
    SEMESTER_REPORT = "SEMESTER_REPORT"


# =============================================================================
# SUIVI (JALONS, ASSIDUITÉ, SANTÉ)
# =============================================================================

class MilestoneStatus(str, Enum):
    """Statut d'un jalon réglementaire."""
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"


class AttendanceStatus(str, Enum):
    """Statut d'assiduité journalier."""
    PRESENT = "PRESENT"
    ABSENT_JUSTIFIED = "ABSENT_JUSTIFIED"
    ABSENT_UNJUSTIFIED = "ABSENT_UNJUSTIFIED"


class NotificationType(str, Enum):
    """Canal d'une notification."""
    EMAIL = "EMAIL"
    PUSH = "PUSH"
    ALERT = "ALERT"


class HealthStatus(str, Enum):
    """Feu tricolore du score de santé d'un contrat."""
    GOOD = "GOOD"
    WARNING = "WARNING"
    DANGER = "DANGER"


class RemediationStatus(str, Enum):
    """Statuts d'un plan de remédiation."""
    DRAFT = "DRAFT"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"


# =============================================================================
# SUPPORT
# =============================================================================

class TicketCategory(str, Enum):
    """Catégories de ticket support."""
    GENERAL = "GENERAL"
    TECH = "TECH"
    BILLING = "BILLING"
    PEDAGOGY = "PEDAGOGY"


class TicketPriority(str, Enum):
    """Priorités de ticket support."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class TicketStatus(str, Enum):
    """Statuts de ticket support."""
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    CLOSED = "CLOSED"


# =============================================================================
# WEBHOOKS
# =============================================================================

class WebhookEvent(str, Enum):
    """Événements diffusés aux systèmes tiers."""
    LIVRET_SIGNED = "LIVRET_SIGNED"
    APPRENTICE_SYNCED = "APPRENTICE_SYNCED"
