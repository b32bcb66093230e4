"""Servicio de validación y admisión de tickets"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import update
from typing import Optional, Dict
import hmac
import logging

from app.core.config import settings
from shared.cache.redis_client import invalidate_event_tickets
from shared.database.models import Ticket, Event
from shared.database.queries import parse_uuid, get_ticket_by_id, get_event_by_id
from shared.auth.dependencies import is_scanner
from shared.utils.exceptions import TicketNotFound, AlreadyAdmitted, NotAdmittable
from shared.utils.qr_generator import (
    decode_credential,
    MalformedCredential,
    InvalidCredentialSignature,
)
from shared.utils.timeutils import Clock, utc_now, to_epoch_ms, isoformat, ensure_utc
from services.ticket_validation.models.ticket import ScanOutcome, ScanCategory, OUTCOME_CATEGORY

logger = logging.getLogger(__name__)

NOT_ADMITTABLE_MESSAGES = {
    "cancelled": "This ticket has been cancelled",
    "expired": "This ticket has expired",
}


def ticket_summary(ticket: Ticket) -> Dict:
    return {
        "id": str(ticket.id),
        "confirmation_code": ticket.confirmation_code,
        "holder_name": ticket.holder_name,
        "quantity": ticket.quantity,
        "status": ticket.status,
        "used_at": ensure_utc(ticket.used_at) if ticket.used_at else None,
    }


def event_summary(event: Optional[Event]) -> Optional[Dict]:
    if event is None:
        return None
    return {
        "id": str(event.id),
        "title": event.title,
        "starts_at": ensure_utc(event.starts_at) if event.starts_at else None,
        "location": event.location_text,
    }


async def can_scan_event(db: AsyncSession, user: Dict, event_id: Optional[str]) -> bool:
    """
    Staff (scanner/admin/coordinator) escanea cualquier evento;
    un host solo los eventos que creó
    """
    if is_scanner(user):
        return True

    # Sin evento seleccionado solo el staff puede escanear
    event_uuid = parse_uuid(event_id)
    if event_uuid is None:
        return False

    event = await get_event_by_id(db, event_uuid)
    if event is None:
        return False

    return event.created_by_user_id == user.get("user_id")


class TicketValidationService:
    """
    Validación en dos fases: verify (sin efectos, reintentable) y admit
    (única mutación, a lo sumo una vez por ticket)
    """

    def __init__(
        self,
        secret: Optional[str] = None,
        clock: Optional[Clock] = None,
        hard_failure_delay_ms: Optional[int] = None
    ):
        self.secret = secret or settings.QR_SECRET
        self.clock = clock or utc_now
        self.hard_failure_delay_ms = (
            settings.SCAN_HARD_FAILURE_DELAY_MS if hard_failure_delay_ms is None else hard_failure_delay_ms
        )

    def _result(
        self,
        outcome: ScanOutcome,
        message: str,
        ticket: Optional[Ticket] = None
    ) -> Dict:
        category = OUTCOME_CATEGORY[outcome]
        return {
            "valid": outcome == ScanOutcome.VALID,
            "outcome": outcome,
            "category": category,
            "message": message,
            "ticket": ticket_summary(ticket) if ticket is not None else None,
            "gig": event_summary(ticket.event) if ticket is not None else None,
            "used_at": ensure_utc(ticket.used_at) if ticket is not None and ticket.used_at else None,
            "rescan_delay_ms": self.hard_failure_delay_ms if category == ScanCategory.HARD else 0,
        }

    async def verify_ticket(
        self,
        db: AsyncSession,
        raw_payload: str,
        event_id: Optional[str] = None
    ) -> Dict:
        """
        Verificar un payload escaneado sin modificar el ticket

        Orden: estructura, firma, expiración (reloj del servidor), ticket,
        evento, estado. Cada resultado es un dict etiquetado; no se usan
        excepciones para el flujo.
        """
        try:
            credential = decode_credential(raw_payload, self.secret)
        except MalformedCredential:
            return self._result(ScanOutcome.MALFORMED_PAYLOAD, "Invalid QR code format")
        except InvalidCredentialSignature:
            return self._result(ScanOutcome.INVALID_SIGNATURE, "Invalid QR code signature")

        if credential.is_expired(to_epoch_ms(self.clock())):
            return self._result(
                ScanOutcome.CREDENTIAL_EXPIRED,
                "QR code has expired. Please refresh and rescan."
            )

        ticket_uuid = parse_uuid(credential.ticket_id)
        ticket = await get_ticket_by_id(db, ticket_uuid) if ticket_uuid else None
        if ticket is None or not hmac.compare_digest(
            ticket.confirmation_code.encode("utf-8"),
            credential.confirmation_code.encode("utf-8")
        ):
            return self._result(ScanOutcome.NOT_FOUND, "Ticket not found")

        if event_id is not None and parse_uuid(event_id) != ticket.event_id:
            return self._result(ScanOutcome.WRONG_EVENT, "This ticket is for a different event", ticket)

        if ticket.status == "used":
            return self._result(
                ScanOutcome.ALREADY_USED,
                f"This ticket has already been used. Already admitted at {isoformat(ticket.used_at)}",
                ticket
            )

        if ticket.status != "valid":
            message = NOT_ADMITTABLE_MESSAGES.get(ticket.status, f"Ticket is {ticket.status}")
            return self._result(ScanOutcome.NOT_ADMITTABLE, message, ticket)

        return self._result(ScanOutcome.VALID, "Ticket verified successfully!", ticket)

    async def verify_and_log(
        self,
        db: AsyncSession,
        raw_payload: str,
        event_id: Optional[str] = None,
        inspector_id: Optional[str] = None,
        show_foreign_tickets: bool = True
    ) -> Dict:
        """
        verify_ticket + registro de auditoría del intento de escaneo

        Con show_foreign_tickets=False un wrong_event no expone los datos del
        ticket ni del evento ajeno (hosts que no son staff).
        """
        result = await self.verify_ticket(db, raw_payload, event_id)

        ticket_id = result["ticket"]["id"] if result["ticket"] else None
        log = logger.warning if result["category"] == ScanCategory.HARD else logger.info
        log(
            f"Scan attempt outcome={result['outcome'].value} ticket={ticket_id} "
            f"event_filter={event_id} inspector={inspector_id}"
        )

        if result["outcome"] == ScanOutcome.WRONG_EVENT and not show_foreign_tickets:
            result = {**result, "ticket": None, "gig": None, "used_at": None}
        return result

    async def admit_ticket(
        self,
        db: AsyncSession,
        ticket_id: str,
        scanned_by: Optional[str] = None
    ) -> Ticket:
        """
        Marcar ticket como usado

        Check-and-set en un único UPDATE condicional: entre admits
        concurrentes del mismo ticket solo uno encuentra status='valid'.

        Raises:
            TicketNotFound, AlreadyAdmitted, NotAdmittable
        """
        ticket_uuid = parse_uuid(ticket_id)
        if ticket_uuid is None:
            raise TicketNotFound("Invalid ticket ID format")

        now = self.clock()
        stmt = (
            update(Ticket)
            .where(Ticket.id == ticket_uuid, Ticket.status == "valid")
            .values(status="used", used_at=now, scanned_by_user_id=scanned_by, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        await db.commit()

        ticket = await get_ticket_by_id(db, ticket_uuid)

        if result.rowcount != 1:
            if ticket is None:
                raise TicketNotFound()
            if ticket.status == "used":
                logger.info(f"Duplicate admit for ticket {ticket_uuid} (used at {isoformat(ticket.used_at)})")
                raise AlreadyAdmitted(ticket.used_at)
            raise NotAdmittable(ticket.status)

        logger.info(f"Ticket {ticket_uuid} admitted by {scanned_by} (quantity={ticket.quantity})")

        await invalidate_event_tickets(ticket.event_id)
        return ticket
