"""
Schémas Pydantic pour les référentiels RNCP.
"""
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReferentielCreate(BaseModel):
    code_rncp: str = Field(..., min_length=3, max_length=50)
    title: str = Field(..., min_length=3, max_length=500)
    is_public: bool = True
    blocs: List[str] = Field(default_factory=list, description="Titres des blocs à créer")


class ReferentielUpdate(BaseModel):
    code_rncp: Optional[str] = Field(None, min_length=3, max_length=50)
    title: Optional[str] = Field(None, min_length=3, max_length=500)
    is_public: Optional[bool] = None


class ReferentielResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: Optional[int] = None
    code_rncp: str
    title: str
    is_global: bool
    is_public: bool
    download_count: int
    created_at: datetime


class ReferentielListResponse(BaseModel):
    items: List[ReferentielResponse]
    total: int
    page: int
    size: int
    pages: int


# =============================================================================
# ARBRE
# =============================================================================

class IndicateurNode(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    description: str


class CompetenceNode(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    description: str
    indicateurs: List[IndicateurNode] = []


class BlocNode(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    order_index: int
    competences: List[CompetenceNode] = []


class ReferentielTree(ReferentielResponse):
    blocs: List[BlocNode] = []


# =============================================================================
# STRUCTURE D'UN BLOC
# =============================================================================

class CompetenceStructure(BaseModel):
    description: str = Field(..., min_length=3)
    indicateurs: List[str] = []


class BlocStructureUpdate(BaseModel):
    competences: List[CompetenceStructure]


# =============================================================================
# RNCP
# =============================================================================

class RncpLookupResponse(BaseModel):
    id_national: Optional[str] = None
    title: Optional[str] = None
    active: bool
    level: Optional[str] = None
    raw_blocks: Optional[Any] = None
