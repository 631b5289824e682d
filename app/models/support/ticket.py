"""Tickets de support entre les CFA et l'équipe plateforme."""

from typing import TYPE_CHECKING, List

from sqlalchemy import Boolean, Enum as SQLEnum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database.base_class import Base
from app.models.enums import TicketCategory, TicketPriority, TicketStatus
from app.models.mixins import TenantMixin, TimestampMixin

if TYPE_CHECKING:
    from app.models.user.user import User


class SupportTicket(Base, TenantMixin, TimestampMixin):
    """Demande d'assistance ouverte par un utilisateur d'un CFA."""

    __tablename__ = "support_tickets"

    id: Mapped[int] = mapped_column(primary_key=True)

    author_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[TicketCategory] = mapped_column(
        SQLEnum(TicketCategory, name="ticket_category_enum"),
        default=TicketCategory.GENERAL,
        nullable=False,
    )
    priority: Mapped[TicketPriority] = mapped_column(
        SQLEnum(TicketPriority, name="ticket_priority_enum"),
        default=TicketPriority.MEDIUM,
        nullable=False,
    )
    status: Mapped[TicketStatus] = mapped_column(
        SQLEnum(TicketStatus, name="ticket_status_enum"),
        default=TicketStatus.OPEN,
        nullable=False,
        index=True,
    )

    author: Mapped["User"] = relationship("User")
    messages: Mapped[List["TicketMessage"]] = relationship(
        "TicketMessage",
        back_populates="ticket",
        cascade="all, delete-orphan",
        order_by="TicketMessage.id",
    )

    def __repr__(self) -> str:
        return f"<SupportTicket(id={self.id}, status={self.status})>"


class TicketMessage(Base, TimestampMixin):
    """Message d'un fil de ticket."""

    __tablename__ = "ticket_messages"

    id: Mapped[int] = mapped_column(primary_key=True)

    ticket_id: Mapped[int] = mapped_column(
        ForeignKey("support_tickets.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    author_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_staff: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Réponse de l'équipe plateforme",
    )

    ticket: Mapped["SupportTicket"] = relationship("SupportTicket", back_populates="messages")
    author: Mapped["User"] = relationship("User")
