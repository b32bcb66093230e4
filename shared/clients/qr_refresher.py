"""Loop de refresco del QR rotativo para una vista de confirmación abierta"""
import asyncio
import logging
import math
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Dict, Optional

import httpx

from shared.clients.checkin_client import CheckinApiClient, CheckinApiError
from shared.utils.timeutils import Clock, utc_now, ensure_utc

logger = logging.getLogger(__name__)

# 4xx del emisor: el ticket ya no es válido o no es accesible; no seguir pidiendo
TERMINAL_STATUS_CODES = (400, 403, 404)


@dataclass(frozen=True)
class QrState:
    """Lo que la vista debe dibujar en este instante"""
    payload: Optional[str]
    expires_at: Optional[datetime]
    countdown: int
    is_live: bool
    error: Optional[str]
    stopped: bool


def _parse_expires_at(value) -> datetime:
    if isinstance(value, datetime):
        return ensure_utc(value)
    return ensure_utc(datetime.fromisoformat(str(value).replace("Z", "+00:00")))


class QrCredentialRefresher:
    """
    Una única tarea por vista: refresca la credencial cada refresh_interval
    y recalcula la cuenta regresiva cada tick_interval

    Uso:
        async with QrCredentialRefresher(fetch) as refresher:
            ...  # refresher.state()

    Si un refresco falla, el último código se sigue mostrando solo mientras
    no haya expirado; al llegar a cero se expone el error en lugar del
    código, y el timer sigue reintentando cada retry_interval hasta que un
    refresco vuelva a funcionar.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[Dict]],
        refresh_interval: float = 25.0,
        tick_interval: float = 1.0,
        retry_interval: float = 3.0,
        clock: Optional[Clock] = None,
        on_update: Optional[Callable[[QrState], None]] = None
    ):
        if refresh_interval <= 0 or tick_interval <= 0 or retry_interval <= 0:
            raise ValueError("Intervals must be positive")
        self._fetch = fetch
        self.refresh_interval = refresh_interval
        self.tick_interval = tick_interval
        # Tras un fallo se reintenta antes, sin superar el intervalo normal
        self.retry_interval = min(retry_interval, refresh_interval)
        self.clock = clock or utc_now
        self.on_update = on_update

        self._payload: Optional[str] = None
        self._expires_at: Optional[datetime] = None
        self._error: Optional[str] = None
        self._stopped = False
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def for_ticket(
        cls,
        client: CheckinApiClient,
        ticket_id: str,
        confirmation_code: str,
        **kwargs
    ) -> "QrCredentialRefresher":
        async def fetch():
            return await client.get_ticket_qr_code(ticket_id, confirmation_code)

        return cls(fetch, **kwargs)

    async def __aenter__(self) -> "QrCredentialRefresher":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        """Arrancar el loop; llamar de nuevo mientras corre no crea otro timer"""
        if self.running:
            return
        self._stopped = False
        self._task = asyncio.create_task(self._run())

    async def stop(self):
        """Cancelar el loop y esperar a que termine"""
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def state(self) -> QrState:
        now = self.clock()
        is_live = (
            self._payload is not None
            and self._expires_at is not None
            and now < self._expires_at
        )
        countdown = 0
        if self._expires_at is not None:
            countdown = max(0, math.floor((self._expires_at - now).total_seconds()))

        return QrState(
            payload=self._payload if is_live else None,
            expires_at=self._expires_at,
            countdown=countdown,
            is_live=is_live,
            # Mientras el último código siga vivo se muestra el código, no el error
            error=None if is_live else self._error,
            stopped=self._stopped,
        )

    async def refresh_now(self) -> QrState:
        """Pedir una credencial nueva; los fallos quedan en el estado"""
        try:
            result = await self._fetch()
            payload = result["qrPayload"]
            expires_at = _parse_expires_at(result["expiresAt"])
        except CheckinApiError as e:
            logger.warning(f"QR refresh rejected: {e}")
            self._error = e.message
            if e.status_code in TERMINAL_STATUS_CODES:
                self._payload = None
                self._expires_at = None
                self._stopped = True
        except httpx.HTTPError as e:
            logger.warning(f"QR refresh failed: {e}")
            self._error = "Failed to generate QR code"
        except (ValueError, KeyError, TypeError) as e:
            # 2xx con cuerpo no JSON o sin los campos esperados
            logger.warning(f"QR refresh returned an unexpected response: {e!r}")
            self._error = "Failed to generate QR code"
        else:
            self._payload = payload
            self._expires_at = expires_at
            self._error = None

        return self._emit()

    def _emit(self) -> QrState:
        state = self.state()
        if self.on_update is not None:
            self.on_update(state)
        return state

    def _next_delay(self) -> float:
        return self.retry_interval if self._error is not None else self.refresh_interval

    async def _run(self):
        loop = asyncio.get_running_loop()
        await self.refresh_now()
        next_refresh = loop.time() + self._next_delay()

        while not self._stopped:
            await asyncio.sleep(self.tick_interval)
            if loop.time() >= next_refresh:
                await self.refresh_now()
                next_refresh = loop.time() + self._next_delay()
            else:
                self._emit()
