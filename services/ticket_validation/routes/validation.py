"""Rutas de validación de tickets (scanner)"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict
from shared.database.session import get_db
from shared.database.queries import parse_uuid, get_ticket_by_id
from shared.auth.dependencies import get_current_user, is_scanner
from shared.utils.exceptions import TicketError, AlreadyAdmitted, NotAdmittable
from shared.utils.rate_limiter import limiter, RATE_LIMITS
from shared.utils.timeutils import isoformat
from services.ticket_validation.models.ticket import (
    ScanRequest,
    ScanResponse,
    AdmitResponse,
    TicketSummary,
    EventTicketsResponse,
)
from services.ticket_validation.services.ticket_service import (
    TicketValidationService,
    ticket_summary,
    can_scan_event,
)
from services.ticket_validation.services.event_tickets_service import EventTicketsService


router = APIRouter()


def get_validation_service() -> TicketValidationService:
    return TicketValidationService()


@router.post("/scan", response_model=ScanResponse)
@limiter.limit(RATE_LIMITS["validation"])
async def scan_ticket(
    request: Request,
    body: ScanRequest,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(get_current_user),
    service: TicketValidationService = Depends(get_validation_service)
):
    """
    Verificar un QR escaneado sin consumir el ticket

    Siempre responde 200 con un resultado etiquetado (valid/outcome/message);
    el operador confirma después con POST /{ticket_id}/use.
    """
    if not await can_scan_event(db, current_user, body.event_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=(
                "Permission denied. You can only scan tickets for your own events."
                if body.event_id
                else "Permission denied. Select an event to scan tickets."
            )
        )

    result = await service.verify_and_log(
        db=db,
        raw_payload=body.qr_payload,
        event_id=body.event_id,
        inspector_id=current_user["user_id"],
        show_foreign_tickets=is_scanner(current_user)
    )
    return ScanResponse(**result)


@router.post("/{ticket_id}/use", response_model=AdmitResponse)
@limiter.limit(RATE_LIMITS["validation"])
async def admit_ticket(
    request: Request,
    ticket_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(get_current_user),
    service: TicketValidationService = Depends(get_validation_service)
):
    """
    Admitir al titular (valid -> used), solo tras confirmación del operador

    No se reintenta automáticamente: 409 si ya fue usado.
    """
    ticket_uuid = parse_uuid(ticket_id)
    if ticket_uuid is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid ticket ID format"
        )

    ticket = await get_ticket_by_id(db, ticket_uuid)
    if ticket is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Ticket not found")

    if not await can_scan_event(db, current_user, str(ticket.event_id)):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Permission denied. You can only scan tickets for your own events."
        )

    try:
        ticket = await service.admit_ticket(db, ticket_id, scanned_by=current_user["user_id"])
    except AlreadyAdmitted as e:
        raise HTTPException(
            status_code=e.status_code,
            detail={"message": e.message, "status": "used", "usedAt": isoformat(e.used_at)}
        )
    except NotAdmittable as e:
        raise HTTPException(
            status_code=e.status_code,
            detail={"message": e.message, "status": e.status}
        )
    except TicketError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)

    return AdmitResponse(success=True, ticket=TicketSummary(**ticket_summary(ticket)))


@router.get("/events/{event_id}", response_model=EventTicketsResponse)
@limiter.limit(RATE_LIMITS["stats"])
async def get_event_tickets(
    request: Request,
    event_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: Dict = Depends(get_current_user)
):
    """
    Tickets y estadísticas de un evento (host/staff)

    El scanner resincroniza aquí sus contadores locales.
    """
    if not await can_scan_event(db, current_user, event_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Permission denied")

    service = EventTicketsService()
    try:
        return await service.get_event_tickets(db, event_id)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
