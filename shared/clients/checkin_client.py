"""Cliente HTTP async para la API de check-in (vista del titular y scanner)"""
from typing import Any, Dict, Optional

import httpx

from shared.utils.retry import retry_with_backoff


API_PREFIX = "/api/v1/tickets"


class CheckinApiError(Exception):
    """Respuesta no-2xx de la API"""

    def __init__(self, status_code: int, message: str, payload: Any = None):
        self.status_code = status_code
        self.message = message
        self.payload = payload
        super().__init__(f"{status_code}: {message}")


class CheckinApiClient:
    """
    Cliente para las rutas de tickets

    Las lecturas reintentan errores de transporte con backoff; admit nunca
    se reintenta (un humano debe volver a escanear).
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_retries: int = 2
    ):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self.max_retries = max_retries

    async def __aenter__(self) -> "CheckinApiClient":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()

    async def aclose(self):
        await self._client.aclose()

    @staticmethod
    def _unwrap(response: httpx.Response) -> Dict:
        if response.is_success:
            return response.json()

        try:
            detail = response.json().get("detail")
        except ValueError:
            detail = response.text

        message = detail.get("message") if isinstance(detail, dict) else detail
        raise CheckinApiError(response.status_code, message or response.reason_phrase, detail)

    async def _get_with_retry(self, path: str) -> Dict:
        async def call():
            return self._unwrap(await self._client.get(path))

        return await retry_with_backoff(
            call,
            max_retries=self.max_retries,
            exceptions=(httpx.TransportError,)
        )

    async def get_ticket_by_confirmation_code(self, code: str) -> Dict:
        return await self._get_with_retry(f"{API_PREFIX}/confirm/{code}")

    async def get_ticket_qr_code(
        self,
        ticket_id: str,
        confirmation_code: str,
        include_image: bool = False
    ) -> Dict:
        # Sin retry propio: el timer del refresher ya reintenta
        response = await self._client.post(
            f"{API_PREFIX}/{ticket_id}/qr",
            json={"confirmationCode": confirmation_code},
            params={"include_image": "true"} if include_image else None,
        )
        return self._unwrap(response)

    async def scan_ticket(self, qr_payload: str, event_id: Optional[str] = None) -> Dict:
        body = {"qrPayload": qr_payload}
        if event_id:
            body["eventId"] = event_id
        return self._unwrap(await self._client.post(f"{API_PREFIX}/scan", json=body))

    async def mark_ticket_used(self, ticket_id: str) -> Dict:
        return self._unwrap(await self._client.post(f"{API_PREFIX}/{ticket_id}/use"))

    async def get_event_tickets(self, event_id: str) -> Dict:
        return await self._get_with_retry(f"{API_PREFIX}/events/{event_id}")
