"""
Schémas Pydantic pour le journal d'audit et le portail Qualiopi.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class AuditLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: Optional[int] = None
    user_id: Optional[int] = None
    action: str
    entity_type: Optional[str] = None
    entity_id: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    ip_address: Optional[str] = None
    created_at: datetime


class AuditLogListResponse(BaseModel):
    items: List[AuditLogResponse]
    total: int
    page: int
    size: int
    pages: int


class AuditSessionCreate(BaseModel):
    apprentice_ids: List[int] = Field(..., min_length=1)
    auditor_name: Optional[str] = Field(None, max_length=255)
    validity_days: Optional[int] = Field(None, ge=1, le=30)


class AuditSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    token: str
    scope: List[int]
    auditor_name: Optional[str] = None
    expires_at: datetime
    created_at: datetime


class PortalContract(BaseModel):
    contract_id: int
    referentiel: Optional[str] = None
    start_date: date
    end_date: date
    tsf_status: str
    progress: int


class PortalProof(BaseModel):
    id: int
    title: str
    type: str
    status: str
    url: Optional[str] = None
    created_at: datetime


class PortalApprentice(BaseModel):
    apprentice_id: int
    name: str
    email: str
    contracts: List[PortalContract]
    proofs: List[PortalProof]


class PortalResponse(BaseModel):
    auditor_name: Optional[str] = None
    expires_at: datetime
    apprentices: List[PortalApprentice]
