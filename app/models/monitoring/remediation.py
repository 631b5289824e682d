"""
Plans de remédiation des contrats en difficulté.

Les actions sont stockées en JSON :
    [{"description": "...", "due_date": "2025-03-01", "completed": false, "completed_at": null}]
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime, Enum as SQLEnum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base_class import Base
from app.models.enums import RemediationStatus
from app.models.mixins import AuditMixin, TenantMixin, TimestampMixin
from app.models.types import JSONList

if TYPE_CHECKING:
    from app.models.contract.contract import Contract


class RemediationPlan(Base, TenantMixin, TimestampMixin, AuditMixin):
    """Plan d'actions correctives pour un contrat."""

    __tablename__ = "remediation_plans"

    id: Mapped[int] = mapped_column(primary_key=True)

    contract_id: Mapped[int] = mapped_column(
        ForeignKey("contracts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[RemediationStatus] = mapped_column(
        SQLEnum(RemediationStatus, name="remediation_status_enum"),
        default=RemediationStatus.DRAFT,
        nullable=False,
    )
    actions: Mapped[list] = mapped_column(JSONList, default=list, nullable=False)
    resolved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    contract: Mapped["Contract"] = relationship("Contract")

    def __repr__(self) -> str:
        return f"<RemediationPlan(id={self.id}, status={self.status})>"

    @property
    def is_active(self) -> bool:
        return self.status != RemediationStatus.RESOLVED

    @property
    def completed_actions_count(self) -> int:
        return sum(1 for action in self.actions or [] if action.get("completed"))
