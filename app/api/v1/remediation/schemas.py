"""
Schémas Pydantic pour les plans de remédiation.
"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field

from app.models.enums import HealthStatus, RemediationStatus


class RemediationPlanCreate(BaseModel):
    contract_id: int
    title: str = Field(..., min_length=3, max_length=255)
    description: Optional[str] = None


class RemediationActionCreate(BaseModel):
    description: str = Field(..., min_length=3, max_length=1000)
    due_date: Optional[date] = None


class RemediationAction(BaseModel):
    description: str
    due_date: Optional[str] = None
    completed: bool = False
    completed_at: Optional[str] = None


class RemediationPlanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    contract_id: int
    title: str
    description: Optional[str] = None
    status: RemediationStatus
    actions: List[RemediationAction] = []
    created_by: Optional[int] = None
    created_at: datetime
    resolved_at: Optional[datetime] = None

    @computed_field
    @property
    def progress_percent(self) -> int:
        if not self.actions:
            return 0
        done = sum(1 for action in self.actions if action.completed)
        return round(done / len(self.actions) * 100)


class ContractNeedingRemediation(BaseModel):
    contract_id: int
    apprentice_name: str
    health_score: int
    health_status: HealthStatus
    reasons: List[str]
    has_active_plan: bool
