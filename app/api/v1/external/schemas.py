"""
Schémas Pydantic de l'API externe.
"""
from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, EmailStr, Field


class ContractSync(BaseModel):
    external_id: Optional[str] = Field(None, max_length=100)
    start_date: date
    end_date: date
    rncp_code: Optional[str] = Field(None, max_length=50)
    company_name: Optional[str] = None


class ApprenticeSync(BaseModel):
    email: EmailStr
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    external_id: Optional[str] = Field(None, max_length=100)
    contract: Optional[ContractSync] = None


class SyncResult(BaseModel):
    success: bool = True
    user_id: int
    contract_id: Optional[int] = None
    tsf_generated: bool = False


class ExportResponse(BaseModel):
    success: bool = True
    type: str
    count: int
    data: List[Dict[str, Any]]


class MobileProofResult(BaseModel):
    success: bool = True
    proof_id: int
    url: Optional[str] = None
