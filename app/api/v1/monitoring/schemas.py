"""
Schémas Pydantic pour le suivi (jalons, assiduité, santé, notifications).
"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.models.enums import (
    AttendanceStatus,
    HealthStatus,
    MilestoneStatus,
    NotificationType,
)


class MilestoneResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    contract_id: int
    type: str
    title: str
    due_date: date
    status: MilestoneStatus
    completed_at: Optional[datetime] = None


class AttendanceCreate(BaseModel):
    """Saisie d'assiduité d'une journée."""
    date: date
    status: AttendanceStatus
    hours: float = Field(default=7.0, gt=0, le=24)
    comment: Optional[str] = Field(None, max_length=1000)


class AttendanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    contract_id: int
    date: date
    status: AttendanceStatus
    hours: float
    comment: Optional[str] = None


class HealthResponse(BaseModel):
    """Score de santé d'un contrat."""
    score: int
    status: HealthStatus
    reasons: List[str] = []


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: NotificationType
    title: str
    content: Optional[str] = None
    is_read: bool
    milestone_id: Optional[int] = None
    created_at: datetime


class DailyAlertsResult(BaseModel):
    """Bilan d'une exécution des relances quotidiennes."""
    reminders: int
    urgent: int
    escalations: int
    emails_sent: int


class CronRunResponse(BaseModel):
    success: bool = True
    timestamp: datetime
    results: DailyAlertsResult
