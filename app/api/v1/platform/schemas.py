"""
Schémas Pydantic pour le module Platform.
"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.models.enums import ConfigGroup, LeadStatus, SubscriptionPlan, SubscriptionStatus, UserRole


# =============================================================================
# PROSPECTS
# =============================================================================

class LeadCreate(BaseModel):
    cfa_name: str = Field(..., min_length=2, max_length=255)
    contact_name: str = Field(..., min_length=2, max_length=255)
    email: EmailStr
    phone: Optional[str] = Field(None, max_length=20)
    apprentice_count: Optional[int] = Field(None, ge=0)
    message: Optional[str] = Field(None, max_length=5000)


class LeadResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    cfa_name: str
    contact_name: str
    email: str
    phone: Optional[str] = None
    apprentice_count: Optional[int] = None
    message: Optional[str] = None
    status: LeadStatus
    created_at: datetime


class ProvisionResponse(BaseModel):
    success: bool = True
    tenant_id: int
    tenant_slug: str
    admin_email: str
    temporary_password: str


# =============================================================================
# TENANTS
# =============================================================================

class TenantCompliance(BaseModel):
    siret: Optional[str] = Field(None, pattern=r"^\d{14}$")
    address: Optional[str] = Field(None, max_length=500)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(None, max_length=20)
    website: Optional[str] = Field(None, max_length=255)
    logo_url: Optional[str] = Field(None, max_length=500)
    primary_color: Optional[str] = Field(None, pattern=r"^#[0-9a-fA-F]{6}$")
    qualiopi_certified: Optional[bool] = None
    nda_number: Optional[str] = Field(None, max_length=20)
    uai_number: Optional[str] = Field(None, max_length=20)


class PlatformTenantCreate(TenantCompliance):
    name: str = Field(..., min_length=2, max_length=255)


class PlatformTenantUpdate(TenantCompliance):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    is_active: Optional[bool] = None


class PlatformTenantResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: str
    siret: Optional[str] = None
    address: Optional[str] = None
    contact_email: Optional[str] = None
    contact_phone: Optional[str] = None
    website: Optional[str] = None
    logo_url: Optional[str] = None
    primary_color: str
    qualiopi_certified: bool
    nda_number: Optional[str] = None
    uai_number: Optional[str] = None
    is_active: bool
    created_at: datetime
    user_count: int = 0
    contract_count: int = 0


class PlatformTenantListResponse(BaseModel):
    items: List[PlatformTenantResponse]
    total: int
    page: int
    size: int
    pages: int


# =============================================================================
# UTILISATEURS
# =============================================================================

class PlatformUserUpdate(BaseModel):
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    role: Optional[UserRole] = None
    tenant_id: Optional[int] = None
    is_active: Optional[bool] = None


class PlatformUserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: Optional[int] = None
    email: str
    full_name: Optional[str] = None
    role: UserRole
    is_active: bool
    last_login: Optional[datetime] = None
    created_at: datetime


class PlatformUserListResponse(BaseModel):
    items: List[PlatformUserResponse]
    total: int
    page: int
    size: int
    pages: int


# =============================================================================
# CONFIGURATION
# =============================================================================

class ConfigUpdate(BaseModel):
    value: Optional[str] = None
    group: ConfigGroup = ConfigGroup.GENERAL
    is_secret: bool = False


class ConfigResponse(BaseModel):
    key: str
    value: Optional[str] = None
    group: ConfigGroup
    is_secret: bool
    updated_at: Optional[datetime] = None


# =============================================================================
# RÉFÉRENTIELS GLOBAUX
# =============================================================================

class GlobalReferentielCreate(BaseModel):
    code_rncp: str = Field(..., min_length=2, max_length=50)
    title: str = Field(..., min_length=2, max_length=500)

    @field_validator("code_rncp")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return v.strip().upper()


class GlobalReferentielResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code_rncp: str
    title: str
    is_global: bool
    is_public: bool
    download_count: int = 0


# =============================================================================
# ABONNEMENTS, STATISTIQUES, SANTÉ
# =============================================================================

class SubscriptionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    tenant_name: Optional[str] = None
    plan: SubscriptionPlan
    status: SubscriptionStatus
    max_apprentices: Optional[int] = None
    started_at: date
    ended_at: Optional[date] = None
    monthly_price: int


class PlatformStats(BaseModel):
    tenant_count: int
    active_tenant_count: int
    user_count: int
    apprentice_count: int
    contract_count: int
    referentiel_count: int
    lead_count: int
    new_lead_count: int
    mrr: int


class DatabaseHealth(BaseModel):
    status: str
    latency_ms: float


class HostHealth(BaseModel):
    status: str
    load: Optional[float] = None
    memory_usage: Optional[int] = None


class SystemHealth(BaseModel):
    database: DatabaseHealth
    system: HostHealth
    last_updated: datetime
