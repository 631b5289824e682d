"""
Schémas Pydantic pour l'archivage.
"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class ArchivingFailure(BaseModel):
    contract_id: int
    error: str


class ArchivingResult(BaseModel):
    processed: int
    archived: int
    errors: int
    failures: List[ArchivingFailure] = []


class ArchivingCandidates(BaseModel):
    count: int
    cutoff_date: date


class ArchiveVaultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    original_contract_id: int
    apprentice_name: Optional[str] = None
    storage_url: Optional[str] = None
    archived_at: datetime
    purge_date: date
