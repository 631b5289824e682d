"""
Schémas Pydantic pour les offres de formation.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class OfferBase(BaseModel):
    title: str = Field(..., min_length=3, max_length=255)
    description: Optional[str] = None
    referentiel_id: Optional[int] = None
    duration_months: Optional[int] = Field(None, ge=1, le=60)
    location: Optional[str] = Field(None, max_length=255)
    is_published: bool = False


class OfferCreate(OfferBase):
    pass


class OfferUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=3, max_length=255)
    description: Optional[str] = None
    referentiel_id: Optional[int] = None
    duration_months: Optional[int] = Field(None, ge=1, le=60)
    location: Optional[str] = Field(None, max_length=255)
    is_published: Optional[bool] = None


class OfferReferentiel(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    code_rncp: str
    title: str


class OfferResponse(OfferBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    referentiel: Optional[OfferReferentiel] = None
    created_at: datetime
