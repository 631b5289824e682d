"""
Schémas Pydantic pour le module TSF (Tableau Stratégique de Formation).

Contient les schémas pour :
- Génération / initialisation du parcours
- Arbre du TSF (périodes, blocs, compétences, indicateurs)
- Affectations de compétences et validations
"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# GÉNÉRATION
# =============================================================================

class TSFGenerationResult(BaseModel):
    """Résultat d'une génération de TSF."""
    success: bool
    error: Optional[str] = None


class PeriodResponse(BaseModel):
    """Période du parcours."""
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_index: int
    label: str
    start_date: date
    end_date: date


# =============================================================================
# ARBRE DU TSF
# =============================================================================

class IndicateurNode(BaseModel):
    id: int
    description: str
    status: str = "PENDING"
    checked_at: Optional[datetime] = None


class CompetenceNode(BaseModel):
    id: int
    description: str
    period_id: Optional[int] = None
    mapping_status: Optional[str] = None
    flag_cfa: bool = False
    flag_entreprise: bool = False
    indicateurs: List[IndicateurNode] = []


class BlocNode(BaseModel):
    id: int
    title: str
    order_index: int
    competences: List[CompetenceNode] = []


class TSFTree(BaseModel):
    """TSF complet d'un contrat."""
    contract_id: int
    tsf_status: str
    is_locked: bool
    version_id: str
    periods: List[PeriodResponse] = []
    blocs: List[BlocNode] = []
    progress: int = Field(..., ge=0, le=100, description="Pourcentage d'indicateurs validés")


# =============================================================================
# AFFECTATIONS ET VALIDATIONS
# =============================================================================

class MappingUpsert(BaseModel):
    """Affectation d'une compétence à une période."""
    competence_id: int
    period_id: int
    flag_cfa: bool = False
    flag_entreprise: bool = False


class MappingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    contract_id: int
    competence_id: int
    period_id: int
    status: str
    flag_cfa: bool
    flag_entreprise: bool
    lieu: str

    @field_validator("status", "lieu", mode="before")
    @classmethod
    def enum_value(cls, v):
        return v.value if hasattr(v, "value") else v


class MappingValidation(BaseModel):
    """Validation rapide d'une compétence (tuteur, formateur)."""
    status: str = Field(..., description="ACQUIS ou NON_ACQUIS")

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        valid = ["ACQUIS", "NON_ACQUIS"]
        if v.upper() not in valid:
            raise ValueError(f"Statut invalide. Valeurs acceptées: {valid}")
        return v.upper()


class IndicateurToggle(BaseModel):
    """Bascule de l'état d'un indicateur."""
    status: str = Field(..., description="ACQUIS ou PENDING")

    @field_validator("status")
    @classmethod
    def validate_status(cls, v: str) -> str:
        valid = ["ACQUIS", "PENDING"]
        if v.upper() not in valid:
            raise ValueError(f"Statut invalide. Valeurs acceptées: {valid}")
        return v.upper()


class EvaluationResponse(BaseModel):
    contract_id: int
    indicateur_id: int
    status: str
    checked_at: Optional[datetime] = None


class BlocProgress(BaseModel):
    bloc_id: int
    title: str
    percentage: int
    total: int
    acquired: int
