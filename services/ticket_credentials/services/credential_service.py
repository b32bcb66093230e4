"""Servicio emisor de credenciales QR rotativas"""
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional, Dict
from datetime import timedelta
import hmac
import logging

from app.core.config import settings
from shared.database.models import Ticket
from shared.database.queries import (
    parse_uuid,
    get_ticket_by_id,
    get_ticket_by_confirmation_code,
)
from shared.utils.exceptions import TicketNotFound, TicketNotValid
from shared.utils.qr_generator import ScanCredential, encode_credential, new_nonce
from shared.utils.timeutils import Clock, utc_now, to_epoch_ms, from_epoch_ms

logger = logging.getLogger(__name__)


class CredentialService:
    """
    Emite credenciales de escaneo firmadas y de vida corta

    No persiste nada: cada llamada firma un nonce nuevo, así que dos vistas
    abiertas del mismo ticket reciben payloads distintos, válidos hasta su
    propia expiración.
    """

    def __init__(
        self,
        secret: Optional[str] = None,
        ttl_seconds: Optional[int] = None,
        clock: Optional[Clock] = None
    ):
        self.secret = secret or settings.QR_SECRET
        self.ttl = timedelta(seconds=ttl_seconds or settings.QR_TTL_SECONDS)
        self.clock = clock or utc_now

    async def resolve_ticket(
        self,
        db: AsyncSession,
        ticket_id: str,
        confirmation_code: Optional[str],
        current_user: Optional[Dict] = None
    ) -> Ticket:
        """
        Resolver el ticket y comprobar que quien lo pide puede mostrarlo

        Busca por ID y, si el ID no es un UUID, por código de confirmación.
        El dueño autenticado no necesita el código; cualquier otro sí.
        """
        ticket = None
        ticket_uuid = parse_uuid(ticket_id)
        if ticket_uuid:
            ticket = await get_ticket_by_id(db, ticket_uuid)

        if ticket is None and confirmation_code:
            ticket = await get_ticket_by_confirmation_code(db, confirmation_code)

        if ticket is None:
            raise TicketNotFound()

        code_matches = bool(confirmation_code) and hmac.compare_digest(
            confirmation_code.strip().upper().encode("utf-8"),
            ticket.confirmation_code.encode("utf-8")
        )
        is_owner = bool(
            current_user and ticket.user_id and current_user.get("user_id") == ticket.user_id
        )
        if not code_matches and not is_owner:
            # Mismo error que "no existe" para no filtrar IDs válidos
            raise TicketNotFound()

        return ticket

    def sign(self, ticket: Ticket) -> Dict:
        """Firmar una credencial nueva para un ticket ya resuelto"""
        if ticket.status != "valid":
            raise TicketNotValid(ticket.status)

        issued_at = self.clock()
        issued_at_ms = to_epoch_ms(issued_at)
        expires_at_ms = issued_at_ms + int(self.ttl.total_seconds() * 1000)

        credential = ScanCredential(
            ticket_id=str(ticket.id),
            confirmation_code=ticket.confirmation_code,
            issued_at_ms=issued_at_ms,
            expires_at_ms=expires_at_ms,
            nonce=new_nonce(),
        )

        return {
            "qr_payload": encode_credential(credential, self.secret),
            "expires_at": from_epoch_ms(expires_at_ms),
            "status": ticket.status,
        }

    async def issue(
        self,
        db: AsyncSession,
        ticket_id: str,
        confirmation_code: Optional[str],
        current_user: Optional[Dict] = None
    ) -> Dict:
        """
        Emitir credencial para un ticket

        Returns:
            dict con qr_payload, expires_at y status

        Raises:
            TicketNotFound: el ticket no existe o el código no coincide
            TicketNotValid: el ticket no está en estado valid
        """
        ticket = await self.resolve_ticket(db, ticket_id, confirmation_code, current_user)

        try:
            issued = self.sign(ticket)
        except TicketNotValid:
            logger.info(f"QR not issued for ticket {ticket.id}: status={ticket.status}")
            raise

        logger.debug(f"QR issued for ticket {ticket.id}, expires {issued['expires_at'].isoformat()}")
        return issued
