#!/usr/bin/env python3
"""Script para crear un evento y tickets de demo"""
import sys
import os
import asyncio
import argparse
from datetime import datetime, timedelta, timezone
from decimal import Decimal

# Agregar directorio raíz al path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from shared.database import connection  # noqa: E402
from shared.database.models import Event  # noqa: E402
from shared.database.queries import create_ticket  # noqa: E402

DEMO_HOLDERS = [
    ("Ada Lovelace", "ada@example.com", 2),
    ("Miles Davis", "miles@example.com", 1),
    ("Nina Simone", "nina@example.com", 4),
]


async def seed(host_user_id: str):
    await connection.init_db(create_tables=True)
    try:
        async with connection.async_session_maker() as db:
            event = Event(
                title="Demo Night: Jazz at the Loft",
                location_text="The Loft, 12 Main St",
                starts_at=datetime.now(timezone.utc) + timedelta(days=7),
                created_by_user_id=host_user_id,
            )
            db.add(event)
            await db.commit()

            print(f"Evento: {event.id} ({event.title})")
            for holder_name, email, quantity in DEMO_HOLDERS:
                ticket = await create_ticket(
                    db, event, holder_name, email, quantity, price_per_ticket=Decimal("25.00")
                )
                print(f"  {ticket.confirmation_code}  {ticket.id}  {holder_name} x{quantity}")
    finally:
        await connection.close_db()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Crear datos de demo")
    parser.add_argument("--host-user-id", default="demo-host", help="Usuario dueño del evento")
    args = parser.parse_args()

    asyncio.run(seed(args.host_user_id))
