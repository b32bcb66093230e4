"""Listado de tickets por evento con estadísticas de acceso"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from typing import Dict
import logging

from shared.cache.redis_client import get_cached_event_tickets, cache_event_tickets
from shared.database.models import Ticket
from shared.database.queries import parse_uuid, get_event_by_id
from shared.utils.timeutils import isoformat

logger = logging.getLogger(__name__)


class EventTicketsService:
    """Fuente autoritativa para los contadores del scanner"""

    async def get_event_tickets(self, db: AsyncSession, event_id: str) -> Dict:
        """
        Obtener tickets de un evento y sus estadísticas

        Los conteos suman quantity (un ticket puede cubrir varias personas).
        El resultado se cachea unos segundos y admit_ticket lo invalida.

        Raises:
            ValueError: evento inválido o inexistente
        """
        event_uuid = parse_uuid(event_id)
        if event_uuid is None:
            raise ValueError("Invalid event ID")

        cached = await get_cached_event_tickets(event_uuid)
        if cached is not None:
            logger.debug(f"Event tickets cache hit for {event_uuid}")
            return cached

        event = await get_event_by_id(db, event_uuid)
        if event is None:
            raise ValueError("Event not found")

        stmt = (
            select(Ticket)
            .where(Ticket.event_id == event_uuid)
            .order_by(Ticket.created_at.desc())
        )
        result = await db.execute(stmt)
        tickets = result.scalars().all()

        def quantity_with(status: str) -> int:
            return sum(t.quantity for t in tickets if t.status == status)

        response = {
            "gig": {
                "id": str(event.id),
                "title": event.title,
                "starts_at": isoformat(event.starts_at),
                "location": event.location_text,
            },
            "tickets": [
                {
                    "id": str(t.id),
                    "confirmation_code": t.confirmation_code,
                    "holder_name": t.holder_name,
                    "email": t.email,
                    "quantity": t.quantity,
                    "total_paid": float(t.total_paid),
                    "status": t.status,
                    "used_at": isoformat(t.used_at),
                    "created_at": isoformat(t.created_at),
                }
                for t in tickets
            ],
            "stats": {
                "total": sum(t.quantity for t in tickets),
                "valid": quantity_with("valid"),
                "used": quantity_with("used"),
                "cancelled": quantity_with("cancelled"),
                "revenue": float(sum(t.total_paid for t in tickets)),
            },
        }

        await cache_event_tickets(event_uuid, response)
        return response
