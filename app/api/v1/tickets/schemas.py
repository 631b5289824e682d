"""
Schémas Pydantic pour les tickets de support.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.enums import TicketCategory, TicketPriority, TicketStatus


class TicketCreate(BaseModel):
    subject: str = Field(..., min_length=5, max_length=255)
    category: TicketCategory = TicketCategory.GENERAL
    priority: TicketPriority = TicketPriority.MEDIUM
    message: str = Field(..., min_length=10, max_length=10000)


class TicketReply(BaseModel):
    content: str = Field(..., min_length=1, max_length=10000)

    @field_validator("content")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Message vide")
        return v.strip()


class TicketStatusUpdate(BaseModel):
    status: TicketStatus


class MessageAuthor(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    full_name: Optional[str] = None
    role: str

    @field_validator("role", mode="before")
    @classmethod
    def enum_value(cls, v):
        return getattr(v, "value", v)


class TicketMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ticket_id: int
    content: str
    is_staff: bool
    created_at: datetime
    author: Optional[MessageAuthor] = None


class TicketResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    author_id: int
    subject: str
    category: TicketCategory
    priority: TicketPriority
    status: TicketStatus
    created_at: datetime
    updated_at: Optional[datetime] = None


class TicketSummary(TicketResponse):
    message_count: int = 0


class TicketDetail(TicketResponse):
    messages: List[TicketMessageResponse] = []
