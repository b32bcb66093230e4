"""Rutas públicas del titular: confirmación y QR rotativo"""
from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Optional

from app.core.config import settings
from shared.database.session import get_db
from shared.database.queries import get_ticket_by_confirmation_code
from shared.auth.dependencies import get_optional_user
from shared.utils.exceptions import TicketError, TicketNotValid
from shared.utils.qr_generator import render_qr_image_base64
from shared.utils.rate_limiter import limiter, RATE_LIMITS
from shared.utils.timeutils import isoformat
from services.ticket_credentials.models.credential import (
    IssueCredentialRequest,
    IssueCredentialResponse,
    ConfirmationResponse,
)
from services.ticket_credentials.services.credential_service import CredentialService
from services.ticket_validation.services.ticket_service import event_summary


router = APIRouter()


def get_credential_service() -> CredentialService:
    return CredentialService()


@router.get("/confirm/{code}", response_model=ConfirmationResponse)
@limiter.limit(RATE_LIMITS["public"])
async def get_ticket_by_confirmation_code_route(
    request: Request,
    code: str,
    db: AsyncSession = Depends(get_db)
):
    """
    Obtener ticket por código de confirmación (público)

    La vista de confirmación carga esto antes de empezar a pedir QRs.
    """
    ticket = await get_ticket_by_confirmation_code(db, code)
    if not ticket:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ticket not found")

    return {
        "ticket": {
            "id": str(ticket.id),
            "confirmation_code": ticket.confirmation_code,
            "holder_name": ticket.holder_name,
            "quantity": ticket.quantity,
            "price_per_ticket": float(ticket.price_per_ticket),
            "total_paid": float(ticket.total_paid),
            "status": ticket.status,
            "used_at": isoformat(ticket.used_at),
            "created_at": isoformat(ticket.created_at),
        },
        "gig": event_summary(ticket.event),
    }


@router.post("/{ticket_id}/qr", response_model=IssueCredentialResponse)
@limiter.limit(RATE_LIMITS["public"])
async def issue_ticket_qr(
    request: Request,
    ticket_id: str,
    body: Optional[IssueCredentialRequest] = None,
    include_image: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    current_user: Optional[Dict] = Depends(get_optional_user),
    service: CredentialService = Depends(get_credential_service)
):
    """
    Emitir un QR nuevo para el ticket (expira en QR_TTL_SECONDS)

    El cliente vuelve a llamar cada QR_REFRESH_SECONDS mientras el ticket
    siga en estado valid.
    """
    confirmation_code = body.confirmation_code if body else None
    try:
        issued = await service.issue(db, ticket_id, confirmation_code, current_user)
    except TicketNotValid as e:
        raise HTTPException(
            status_code=e.status_code,
            detail={"message": e.message, "status": e.status}
        )
    except TicketError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    qr_image = None
    if include_image:
        qr_image = f"data:image/png;base64,{render_qr_image_base64(issued['qr_payload'])}"

    return IssueCredentialResponse(
        qr_payload=issued["qr_payload"],
        expires_at=issued["expires_at"],
        status=issued["status"],
        refresh_after_seconds=settings.QR_REFRESH_SECONDS,
        qr_image=qr_image,
    )
