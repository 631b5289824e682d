"""
Services métier pour le support (tickets CFA ↔ équipe plateforme).

Contient :
- TicketService : création, réponses, listes par tenant et globale,
  détail avec contrôle d'accès, changement de statut
"""
import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from app.models.enums import TicketCategory, TicketPriority, TicketStatus
from app.models.support.ticket import SupportTicket, TicketMessage
from app.models.user.user import User

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================

class TicketNotFoundError(Exception):
    """Ticket non trouvé."""
    pass


class TicketAccessError(Exception):
    """L'utilisateur n'a pas accès à ce ticket."""
    pass


# =============================================================================
# TICKET SERVICE
# =============================================================================

class TicketService:
    """
    Tickets de support.

    Un utilisateur de CFA ne voit que les tickets de son tenant ;
    le super-admin voit et traite tous les tickets.
    """

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _last_update():
        return func.coalesce(SupportTicket.updated_at, SupportTicket.created_at)

    def _with_counts(self, query) -> List[Tuple[SupportTicket, int]]:
        message_count = (
            select(func.count(TicketMessage.id))
            .where(TicketMessage.ticket_id == SupportTicket.id)
            .correlate(SupportTicket)
            .scalar_subquery()
        )
        rows = self.db.execute(
            query.add_columns(message_count)
            .order_by(self._last_update().desc(), SupportTicket.id.desc())
        ).all()
        return [(ticket, count) for ticket, count in rows]

    def create_ticket(
            self,
            author: User,
            subject: str,
            message: str,
            category: TicketCategory = TicketCategory.GENERAL,
            priority: TicketPriority = TicketPriority.MEDIUM,
    ) -> SupportTicket:
        """Ouvre un ticket avec son premier message."""
        ticket = SupportTicket(
            tenant_id=author.tenant_id,
            author_id=author.id,
            subject=subject,
            category=category,
            priority=priority,
            status=TicketStatus.OPEN,
        )
        ticket.messages.append(TicketMessage(author_id=author.id, content=message, is_staff=False))
        self.db.add(ticket)
        self.db.commit()
        self.db.refresh(ticket)
        logger.info(f"🎫 Ticket {ticket.id} ouvert par l'utilisateur {author.id}")
        return ticket

    def get_ticket(self, ticket_id: int, user: User) -> SupportTicket:
        ticket = self.db.execute(
            select(SupportTicket)
            .options(selectinload(SupportTicket.messages).selectinload(TicketMessage.author))
            .where(SupportTicket.id == ticket_id)
        ).scalar_one_or_none()
        if not ticket:
            raise TicketNotFoundError(f"Ticket {ticket_id} non trouvé")
        if not user.is_super_admin and user.tenant_id != ticket.tenant_id:
            raise TicketAccessError("Accès refusé à ce ticket")
        return ticket

    def reply(self, ticket_id: int, user: User, content: str) -> TicketMessage:
        """
        Ajoute une réponse au fil.

        Une réponse de l'équipe plateforme sur un ticket OPEN le passe IN_PROGRESS.
        """
        ticket = self.get_ticket(ticket_id, user)
        message = TicketMessage(
            author_id=user.id,
            content=content,
            is_staff=user.is_super_admin,
        )
        ticket.messages.append(message)
        if user.is_super_admin and ticket.status == TicketStatus.OPEN:
            ticket.status = TicketStatus.IN_PROGRESS
        self.db.commit()
        self.db.refresh(message)
        return message

    def list_tenant_tickets(self, tenant_id: int) -> List[Tuple[SupportTicket, int]]:
        return self._with_counts(select(SupportTicket).where(SupportTicket.tenant_id == tenant_id))

    def list_all_tickets(self, ticket_status: Optional[TicketStatus] = None) -> List[Tuple[SupportTicket, int]]:
        query = select(SupportTicket)
        if ticket_status:
            query = query.where(SupportTicket.status == ticket_status)
        return self._with_counts(query)

    def update_status(self, ticket_id: int, user: User, new_status: TicketStatus) -> SupportTicket:
        ticket = self.get_ticket(ticket_id, user)
        ticket.status = new_status
        self.db.commit()
        self.db.refresh(ticket)
        logger.info(f"🎫 Ticket {ticket_id} : {new_status.value}")
        return ticket
