from app.models.support.ticket import SupportTicket, TicketMessage

__all__ = ["SupportTicket", "TicketMessage"]
