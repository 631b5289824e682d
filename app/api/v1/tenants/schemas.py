"""
Schémas Pydantic pour les paramètres du CFA, le branding et les rôles.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, computed_field


HEX_COLOR_PATTERN = r"^#[0-9a-fA-F]{6}$"


class TenantSettingsUpdate(BaseModel):
    """Champs modifiables par l'administrateur du CFA."""
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    website: Optional[str] = Field(None, max_length=255)
    logo_url: Optional[str] = Field(None, max_length=500)
    primary_color: Optional[str] = Field(None, pattern=HEX_COLOR_PATTERN)
    siret: Optional[str] = Field(None, pattern=r"^\d{14}$")
    address: Optional[str] = Field(None, max_length=500)
    contact_email: Optional[EmailStr] = None
    contact_phone: Optional[str] = Field(None, max_length=20)
    webhook_url: Optional[str] = Field(None, max_length=500)
    webhook_secret: Optional[str] = Field(None, max_length=255)


class TenantSettingsResponse(BaseModel):
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
    webhook_url: Optional[str] = None
    webhook_secret: Optional[str] = Field(None, exclude=True)
    qualiopi_certified: bool
    nda_number: Optional[str] = None
    uai_number: Optional[str] = None
    is_active: bool
    created_at: datetime

    @computed_field
    @property
    def has_webhook_secret(self) -> bool:
        return bool(self.webhook_secret)


class BrandingResponse(BaseModel):
    name: str
    logo_url: Optional[str] = None
    primary_color: str
    tenant_id: Optional[int] = None


# =============================================================================
# RÔLES
# =============================================================================

class RoleCreate(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    permissions: List[str] = []


class RolePermissionsUpdate(BaseModel):
    permissions: List[str]


class RoleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str] = None
    permissions: List[str]
