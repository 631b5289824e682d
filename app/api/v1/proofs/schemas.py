"""
Schémas Pydantic pour les preuves et le journal de bord.
"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.enums import ProofStatus, ProofType


class JournalEntryCreate(BaseModel):
    """Entrée de journal de bord (champs riches stockés en JSON)."""
    titre: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    reflexion_appris: Optional[str] = None
    reflexion_difficultes: Optional[str] = None
    outils: Optional[str] = None
    competences: List[int] = []
    date: Optional[date] = None


class ProofValidation(BaseModel):
    status: ProofStatus
    feedback: Optional[str] = Field(None, max_length=2000)

    @field_validator("status")
    @classmethod
    def final_status_only(cls, v: ProofStatus) -> ProofStatus:
        if v == ProofStatus.PENDING:
            raise ValueError("Statut attendu : VALIDATED ou REJECTED")
        return v


class ProofResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    apprentice_id: int
    competence_id: Optional[int] = None
    title: str
    description: Optional[str] = None
    url: Optional[str] = None
    type: ProofType
    status: ProofStatus
    feedback: Optional[str] = None
    validated_by: Optional[int] = None
    validated_at: Optional[datetime] = None
    created_at: datetime


class ProofListResponse(BaseModel):
    items: List[ProofResponse]
    total: int
    page: int
    size: int
    pages: int


class CommentCreate(BaseModel):
    content: str = Field(..., max_length=5000)

    @field_validator("content")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Commentaire vide")
        return v.strip()


class CommentAuthor(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: Optional[str] = None
    role: str

    @field_validator("role", mode="before")
    @classmethod
    def enum_value(cls, v):
        return getattr(v, "value", v)


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    proof_id: int
    content: str
    created_at: datetime
    author: CommentAuthor
