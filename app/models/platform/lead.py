"""Prospects issus du formulaire public de demande de démo."""

from typing import Optional

from sqlalchemy import Enum as SQLEnum, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.database.base_class import Base
from app.models.enums import LeadStatus
from app.models.mixins import TimestampMixin


class Lead(Base, TimestampMixin):
    """CFA prospect, converti en tenant par un super-admin."""

    __tablename__ = "leads"

    id: Mapped[int] = mapped_column(primary_key=True)

    cfa_name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    phone: Mapped[Optional[str]] = mapped_column(String(20))
    apprentice_count: Mapped[Optional[int]] = mapped_column(Integer)
    message: Mapped[Optional[str]] = mapped_column(Text)

    status: Mapped[LeadStatus] = mapped_column(
        SQLEnum(LeadStatus, name="lead_status_enum"),
        default=LeadStatus.NEW,
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Lead(id={self.id}, cfa='{self.cfa_name}', status={self.status})>"
