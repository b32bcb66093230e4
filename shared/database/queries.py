"""Consultas compartidas de tickets y eventos"""
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.orm import selectinload
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

from shared.database.models import Ticket, Event, TICKET_STATUSES
from shared.utils.confirmation_codes import generate_confirmation_code


def parse_uuid(value: Union[str, UUID, None]) -> Optional[UUID]:
    """UUID o None si el valor no es un UUID válido"""
    if value is None:
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        return None


async def get_ticket_by_id(db: AsyncSession, ticket_id: UUID) -> Optional[Ticket]:
    """Obtener ticket con su evento, siempre leído fresco desde la BD"""
    stmt = (
        select(Ticket)
        .options(selectinload(Ticket.event))
        .where(Ticket.id == ticket_id)
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_ticket_by_confirmation_code(db: AsyncSession, code: str) -> Optional[Ticket]:
    """Obtener ticket por código de confirmación"""
    stmt = (
        select(Ticket)
        .options(selectinload(Ticket.event))
        .where(Ticket.confirmation_code == code.strip().upper())
        .execution_options(populate_existing=True)
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def get_event_by_id(db: AsyncSession, event_id: UUID) -> Optional[Event]:
    stmt = select(Event).where(Event.id == event_id)
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def create_ticket(
    db: AsyncSession,
    event: Event,
    holder_name: str,
    email: str,
    quantity: int,
    price_per_ticket: Decimal = Decimal("0"),
    user_id: Optional[str] = None,
    status: str = "valid",
) -> Ticket:
    """
    Registrar un ticket ya pagado

    La compra ocurre fuera de este servicio; esto lo usan el seed de demo y los tests.
    """
    if quantity < 1:
        raise ValueError("Quantity must be at least 1")
    if status not in TICKET_STATUSES:
        raise ValueError(f"Unknown ticket status: {status}")

    price = Decimal(str(price_per_ticket))
    ticket = Ticket(
        event_id=event.id,
        user_id=user_id,
        email=email.lower().strip(),
        holder_name=holder_name,
        quantity=quantity,
        price_per_ticket=price,
        total_paid=price * quantity,
        status=status,
        confirmation_code=generate_confirmation_code(),
    )
    db.add(ticket)
    await db.commit()
    return await get_ticket_by_id(db, ticket.id)
