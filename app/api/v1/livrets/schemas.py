"""
Schémas Pydantic pour le livret d'apprentissage et les signatures.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from app.models.enums import LivretStatus


class LivretResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    contract_id: int
    document_id: str
    file_path: Optional[str] = None
    status: LivretStatus
    apprentice_signed_at: Optional[datetime] = None
    tutor_signed_at: Optional[datetime] = None
    cfa_signed_at: Optional[datetime] = None
    signed_at: Optional[datetime] = None
    created_at: datetime


class LivretDetail(LivretResponse):
    snapshot: Optional[Dict[str, Any]] = None


class SignatureCreate(BaseModel):
    """Signature manuscrite (image base64 ou tracé SVG)."""
    signature_data: str = Field(..., min_length=1)


class MagicSignatureCreate(SignatureCreate):
    """Signature du tuteur avec le jeton reçu par email."""
    token: str = Field(..., min_length=16)


class SignerState(BaseModel):
    name: str
    signed_at: Optional[datetime] = None


class SignatureStatus(BaseModel):
    livret_id: int
    status: LivretStatus
    apprentice: SignerState
    tutor: SignerState
    cfa: SignerState
    is_fully_signed: bool


# =============================================================================
# TUTEUR EXTERNE
# =============================================================================

class TutorInvite(BaseModel):
    tutor_email: EmailStr
    tutor_name: Optional[str] = Field(None, max_length=255)


class TutorInviteResult(BaseModel):
    success: bool
    tutor_id: int
    expires_at: datetime
    email_sent: bool


class MagicAccess(BaseModel):
    """Contexte retourné à un tuteur arrivant par lien magique."""
    tutor_id: int
    tutor_name: Optional[str] = None
    contract_id: Optional[int] = None
    apprentice_name: Optional[str] = None
    company_name: Optional[str] = None
    expires_at: datetime


# =============================================================================
# PROMOTION
# =============================================================================

class PromotionApprentice(BaseModel):
    id: int
    first_name: str
    last_name: str
    email: str
    contract_id: int
    tsf_status: str
    progress: int


class PromotionSign(BaseModel):
    apprentice_ids: List[int] = Field(..., min_length=1)


class PromotionSignResult(BaseModel):
    success: bool
    count: int
    signed_indicators: int


# =============================================================================
# BILAN
# =============================================================================

class BlockReport(BaseModel):
    id: int
    title: str
    total_indicators: int
    acquired_indicators: int
    percent: int
    status: str
    last_signed_at: Optional[str] = None
    latest_comment: Optional[str] = None


class ProgressReport(BaseModel):
    generated_at: str
    apprentice_name: str
    contract_id: int
    referentiel_title: str
    blocks: List[BlockReport]
    global_average: int
    verification_hash: str
