"""
Schémas Pydantic pour le pilotage.
"""
from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from app.models.enums import HealthStatus


class InactivityStat(BaseModel):
    user_id: int
    full_name: str
    email: str
    last_activity_date: Optional[datetime] = None
    days_inactive: int
    status: HealthStatus


class ContractHealthOverview(BaseModel):
    contract_id: int
    apprentice_name: str
    health_score: int
    health_status: HealthStatus
    reasons: List[str]


class WorkflowStat(BaseModel):
    contract_id: int
    apprentice_name: str
    steps: Dict[str, str]
    blocked_at: Optional[int] = None


class Funnel(BaseModel):
    contracts: int
    assessments: int
    tsfs: int


class GovernanceKPIs(BaseModel):
    active_apprentices: int
    j7_completion_rate: int
    j45_alerts: int
    global_risk_score: int
    funnel: Funnel
