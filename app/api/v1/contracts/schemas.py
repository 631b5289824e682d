"""
Schémas Pydantic pour le module Contracts.

Contient les schémas pour :
- Création / mise à jour d'un contrat d'apprentissage
- Verrouillage du TSF (signature du tuteur)
- Initialisation du parcours
"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from app.models.enums import PeriodType, TsfStatus


# =============================================================================
# CONTRATS
# =============================================================================

class ContractBase(BaseModel):
    start_date: date
    end_date: date
    company_name: Optional[str] = Field(None, max_length=255)

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError("La date de fin doit être postérieure à la date de début")
        return self


class ContractCreate(ContractBase):
    """Création d'un contrat (l'apprenti doit appartenir au CFA)."""
    apprentice_id: int
    referentiel_id: Optional[int] = None
    formateur_id: Optional[int] = None
    tutor_id: Optional[int] = None
    external_id: Optional[str] = Field(None, max_length=100)


class ContractUpdate(BaseModel):
    """Mise à jour partielle ; les dates sont revalidées côté service."""
    referentiel_id: Optional[int] = None
    formateur_id: Optional[int] = None
    tutor_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    company_name: Optional[str] = Field(None, max_length=255)


class ContractResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    apprentice_id: int
    tutor_id: Optional[int] = None
    formateur_id: Optional[int] = None
    referentiel_id: Optional[int] = None
    start_date: date
    end_date: date
    company_name: Optional[str] = None
    external_id: Optional[str] = None
    tsf_status: TsfStatus
    is_locked: bool
    locked_at: Optional[datetime] = None
    version_id: str
    period_type: PeriodType
    change_log: Optional[str] = None
    signed_at: Optional[datetime] = None
    created_at: datetime


class ContractListResponse(BaseModel):
    items: List[ContractResponse]
    total: int
    page: int
    size: int
    pages: int


# =============================================================================
# VERROUILLAGE ET PARCOURS
# =============================================================================

class ContractLock(BaseModel):
    """Signature du tuteur verrouillant le TSF."""
    signature: str = Field(..., min_length=1)


class JourneyInit(BaseModel):
    period_type: PeriodType = PeriodType.SEMESTER


class JourneyResult(BaseModel):
    num_periods: int
    version_id: str
