"""
Schémas Pydantic pour le positionnement initial.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import AssessmentStatus


class PositioningEntry(BaseModel):
    """Niveau déclaré sur une compétence (0 à 4)."""
    competence_id: int
    level_initial: int = Field(..., ge=0, le=4)
    comment: Optional[str] = Field(None, max_length=2000)


class PositioningCreate(BaseModel):
    contract_id: int
    entries: List[PositioningEntry] = Field(..., min_length=1)


class PositioningResult(BaseModel):
    success: bool
    message: str
    suggested_reduction_months: int
    tsf_generated: bool


class DraftCreate(BaseModel):
    entries: List[PositioningEntry] = Field(..., min_length=1)


class PositioningResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    competence_id: int
    level_initial: int
    comment: Optional[str] = None


class AssessmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    contract_id: int
    apprentice_id: int
    status: AssessmentStatus
    submitted_at: Optional[datetime] = None
    validated_at: Optional[datetime] = None
    validated_by: Optional[int] = None
    positionings: List[PositioningResponse] = []
