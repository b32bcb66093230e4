"""Sesión del operador en la puerta: escanear, confirmar, admitir"""
import logging
from typing import Dict, Optional

from shared.clients.checkin_client import CheckinApiClient, CheckinApiError

logger = logging.getLogger(__name__)


class ScannerSession:
    """
    Flujo de un dispositivo scanner

    scan() solo verifica; confirm() admite el último resultado válido tras la
    confirmación visual del operador. Los contadores locales son optimistas
    y resync() los reemplaza con los del servidor.
    """

    def __init__(self, client: CheckinApiClient, event_id: Optional[str] = None):
        self.client = client
        self.event_id = event_id
        self.last_result: Optional[Dict] = None
        self.stats: Optional[Dict] = None

    async def scan(self, raw_payload: str) -> Dict:
        payload = raw_payload.strip()
        if not payload:
            raise ValueError("Nothing scanned")

        self.last_result = await self.client.scan_ticket(payload, self.event_id)
        return self.last_result

    @staticmethod
    def rescan_delay_seconds(result: Dict) -> float:
        """Cuánto esperar antes de reactivar la cámara"""
        return result.get("rescanDelayMs", 0) / 1000

    async def confirm(self) -> Dict:
        """
        Admitir el ticket del último scan válido

        Raises:
            ValueError: no hay un scan válido pendiente de confirmar
            CheckinApiError: el servidor rechazó la admisión (p.ej. 409 ya usado)
        """
        result = self.last_result
        if not result or not result.get("valid") or not result.get("ticket"):
            raise ValueError("No verified ticket to admit")

        ticket = result["ticket"]
        self.last_result = None
        try:
            admitted = await self.client.mark_ticket_used(ticket["id"])
        except CheckinApiError as e:
            logger.info(f"Admit rejected for ticket {ticket['id']}: {e.message}")
            raise

        if self.stats is not None:
            quantity = ticket.get("quantity") or 1
            self.stats["valid"] -= quantity
            self.stats["used"] += quantity

        return admitted

    async def resync(self) -> Dict:
        """Reemplazar contadores locales por los del servidor"""
        if not self.event_id:
            raise ValueError("Select an event to load stats")

        data = await self.client.get_event_tickets(self.event_id)
        self.stats = dict(data["stats"])
        return self.stats
