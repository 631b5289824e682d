"""
Routes FastAPI pour le support.

Endpoints pour :
- /tickets : Tickets du CFA (création, liste)
- /tickets/all : Tous les tickets (super-admin)
- /tickets/{id} : Détail, réponses, statut
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.v1.platform.super_admin_security import get_current_super_admin
from app.api.v1.tickets.schemas import (
    TicketCreate,
    TicketDetail,
    TicketMessageResponse,
    TicketReply,
    TicketResponse,
    TicketStatusUpdate,
    TicketSummary,
)
from app.api.v1.tickets.services import (
    TicketService,
    # Exceptions
    TicketAccessError,
    TicketNotFoundError,
)
from app.api.v1.users.tenant_users_security import get_current_tenant_id
from app.core.auth.user_auth import get_current_user
from app.database.session_rls import get_db, get_db_no_rls
from app.models.enums import TicketStatus
from app.models.user.user import User

router = APIRouter(prefix="/tickets", tags=["Support"])


def _summaries(rows) -> List[TicketSummary]:
    return [
        TicketSummary.model_validate(ticket).model_copy(update={"message_count": count})
        for ticket, count in rows
    ]


def _ticket_errors(e: Exception) -> HTTPException:
    if isinstance(e, TicketNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))


@router.post("", response_model=TicketResponse, status_code=status.HTTP_201_CREATED)
def create_ticket(
        data: TicketCreate,
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    return TicketService(db).create_ticket(
        current_user, data.subject, data.message, data.category, data.priority
    )


@router.get("", response_model=List[TicketSummary])
def list_tenant_tickets(
        db: Session = Depends(get_db),
        current_user: User = Depends(get_current_user),
        tenant_id: int = Depends(get_current_tenant_id),
):
    return _summaries(TicketService(db).list_tenant_tickets(tenant_id))


@router.get("/all", response_model=List[TicketSummary])
def list_all_tickets(
        ticket_status: Optional[TicketStatus] = Query(None, alias="status"),
        db: Session = Depends(get_db_no_rls),
        current_user: User = Depends(get_current_super_admin),
):
    """Tous les tickets de la plateforme (super-admin)."""
    return _summaries(TicketService(db).list_all_tickets(ticket_status))


@router.get("/{ticket_id}", response_model=TicketDetail)
def get_ticket(
        ticket_id: int,
        db: Session = Depends(get_db_no_rls),
        current_user: User = Depends(get_current_user),
):
    try:
        return TicketService(db).get_ticket(ticket_id, current_user)
    except (TicketNotFoundError, TicketAccessError) as e:
        raise _ticket_errors(e)


@router.post(
    "/{ticket_id}/messages",
    response_model=TicketMessageResponse,
    status_code=status.HTTP_201_CREATED,
)
def reply_to_ticket(
        ticket_id: int,
        data: TicketReply,
        db: Session = Depends(get_db_no_rls),
        current_user: User = Depends(get_current_user),
):
    try:
        return TicketService(db).reply(ticket_id, current_user, data.content)
    except (TicketNotFoundError, TicketAccessError) as e:
        raise _ticket_errors(e)


@router.patch("/{ticket_id}/status", response_model=TicketResponse)
def update_ticket_status(
        ticket_id: int,
        data: TicketStatusUpdate,
        db: Session = Depends(get_db_no_rls),
        current_user: User = Depends(get_current_super_admin),
):
    try:
        return TicketService(db).update_status(ticket_id, current_user, data.status)
    except (TicketNotFoundError, TicketAccessError) as e:
        raise _ticket_errors(e)
