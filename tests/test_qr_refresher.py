"""Tests del loop de refresco del QR del titular"""
import asyncio
from datetime import timedelta

import httpx
import pytest

from shared.clients.checkin_client import CheckinApiError
from shared.clients.qr_refresher import QrCredentialRefresher


class FakeIssuer:
    """Emisor en memoria; cada llamada devuelve un payload nuevo"""

    def __init__(self, clock, ttl_seconds: int = 30):
        self.clock = clock
        self.ttl = timedelta(seconds=ttl_seconds)
        self.calls = 0
        self.failure = None

    async def __call__(self):
        self.calls += 1
        if self.failure is not None:
            raise self.failure
        return {
            "qrPayload": f"payload-{self.calls}",
            "expiresAt": (self.clock() + self.ttl).isoformat().replace("+00:00", "Z"),
            "status": "valid",
        }


async def wait_until(condition, timeout: float = 1.0):
    async def poll():
        while not condition():
            await asyncio.sleep(0.005)
    await asyncio.wait_for(poll(), timeout)


class TestRefreshNow:
    @pytest.mark.asyncio
    async def test_success_shows_live_code(self, clock):
        refresher = QrCredentialRefresher(FakeIssuer(clock), clock=clock)

        state = await refresher.refresh_now()

        assert state.is_live is True
        assert state.payload == "payload-1"
        assert state.countdown == 30
        assert state.error is None

    @pytest.mark.asyncio
    async def test_countdown_follows_clock(self, clock):
        refresher = QrCredentialRefresher(FakeIssuer(clock), clock=clock)
        await refresher.refresh_now()

        clock.advance(12.5)

        assert refresher.state().countdown == 17

    @pytest.mark.asyncio
    async def test_failure_keeps_code_until_it_expires(self, clock):
        issuer = FakeIssuer(clock)
        refresher = QrCredentialRefresher(issuer, clock=clock)
        await refresher.refresh_now()

        clock.advance(25)
        issuer.failure = httpx.ConnectError("network down")
        state = await refresher.refresh_now()

        assert state.payload == "payload-1"
        assert state.error is None

        clock.advance(5)
        state = refresher.state()
        assert state.is_live is False
        assert state.payload is None
        assert state.countdown == 0
        assert state.error == "Failed to generate QR code"
        assert state.stopped is False

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self, clock):
        issuer = FakeIssuer(clock)
        issuer.failure = httpx.ConnectError("network down")
        refresher = QrCredentialRefresher(issuer, clock=clock)
        assert (await refresher.refresh_now()).error == "Failed to generate QR code"

        issuer.failure = None
        state = await refresher.refresh_now()

        assert state.is_live is True
        assert state.error is None

    @pytest.mark.asyncio
    async def test_used_ticket_stops_refreshing(self, clock):
        issuer = FakeIssuer(clock)
        refresher = QrCredentialRefresher(issuer, clock=clock)
        await refresher.refresh_now()

        issuer.failure = CheckinApiError(400, "Ticket is used", {"message": "Ticket is used", "status": "used"})
        state = await refresher.refresh_now()

        assert state.stopped is True
        assert state.payload is None
        assert state.expires_at is None
        assert state.error == "Ticket is used"

    @pytest.mark.asyncio
    async def test_server_error_is_not_terminal(self, clock):
        issuer = FakeIssuer(clock)
        issuer.failure = CheckinApiError(503, "Service unavailable")
        refresher = QrCredentialRefresher(issuer, clock=clock)

        state = await refresher.refresh_now()

        assert state.stopped is False
        assert state.error == "Service unavailable"

    @pytest.mark.asyncio
    async def test_unexpected_response_is_a_transient_failure(self, clock):
        issuer = FakeIssuer(clock)
        responses = iter([{}, {"qrPayload": "payload-x", "expiresAt": "not a date"}])

        async def fetch():
            try:
                return next(responses)
            except StopIteration:
                return await issuer()

        refresher = QrCredentialRefresher(fetch, clock=clock)

        for _ in range(2):
            state = await refresher.refresh_now()
            assert state.error == "Failed to generate QR code"
            assert state.stopped is False
            assert state.payload is None

        state = await refresher.refresh_now()
        assert state.is_live is True
        assert state.payload == "payload-1"

    @pytest.mark.asyncio
    async def test_on_update_receives_each_state(self, clock):
        seen = []
        refresher = QrCredentialRefresher(FakeIssuer(clock), clock=clock, on_update=seen.append)

        await refresher.refresh_now()
        await refresher.refresh_now()

        assert [s.payload for s in seen] == ["payload-1", "payload-2"]

    def test_intervals_must_be_positive(self, clock):
        with pytest.raises(ValueError):
            QrCredentialRefresher(FakeIssuer(clock), refresh_interval=0)


class TestRunLoop:
    @pytest.mark.asyncio
    async def test_refreshes_on_interval_and_stops_on_exit(self, clock):
        issuer = FakeIssuer(clock)

        async with QrCredentialRefresher(issuer, refresh_interval=0.03, tick_interval=0.01, clock=clock) as refresher:
            await wait_until(lambda: issuer.calls >= 3)
            assert refresher.running is True

        calls_at_exit = issuer.calls
        await asyncio.sleep(0.1)

        assert refresher.running is False
        assert issuer.calls == calls_at_exit

    @pytest.mark.asyncio
    async def test_start_twice_keeps_one_timer(self, clock):
        refresher = QrCredentialRefresher(FakeIssuer(clock), refresh_interval=10, tick_interval=10, clock=clock)

        refresher.start()
        task = refresher._task
        refresher.start()

        assert refresher._task is task
        await refresher.stop()
        assert refresher.running is False

    @pytest.mark.asyncio
    async def test_loop_ends_on_terminal_rejection(self, clock):
        issuer = FakeIssuer(clock)
        issuer.failure = CheckinApiError(404, "Ticket not found")
        refresher = QrCredentialRefresher(issuer, refresh_interval=0.02, tick_interval=0.01, clock=clock)

        refresher.start()
        await wait_until(lambda: not refresher.running)

        assert refresher.state().stopped is True
        assert issuer.calls == 1
        await refresher.stop()

    @pytest.mark.asyncio
    async def test_bad_response_does_not_end_the_loop(self, clock):
        issuer = FakeIssuer(clock)
        bad_responses = [{}]

        async def fetch():
            if bad_responses:
                return bad_responses.pop()
            return await issuer()

        async with QrCredentialRefresher(
            fetch, refresh_interval=0.02, retry_interval=0.02, tick_interval=0.01, clock=clock
        ) as refresher:
            await wait_until(lambda: issuer.calls >= 1)
            assert refresher.running is True
            assert refresher.state().payload == "payload-1"

    @pytest.mark.asyncio
    async def test_failure_retries_before_next_refresh(self, clock):
        issuer = FakeIssuer(clock)
        issuer.failure = httpx.ConnectError("network down")

        async with QrCredentialRefresher(
            issuer, refresh_interval=30, retry_interval=0.02, tick_interval=0.01, clock=clock
        ) as refresher:
            await wait_until(lambda: issuer.calls >= 2)
            issuer.failure = None
            await wait_until(lambda: refresher.state().is_live)
            calls_after_recovery = issuer.calls
            await asyncio.sleep(0.1)

            # Con el código vivo vuelve al intervalo normal
            assert issuer.calls == calls_after_recovery

    def test_retry_interval_capped_by_refresh_interval(self, clock):
        refresher = QrCredentialRefresher(FakeIssuer(clock), refresh_interval=2, retry_interval=5, clock=clock)

        assert refresher.retry_interval == 2

    @pytest.mark.asyncio
    async def test_stop_without_start(self, clock):
        refresher = QrCredentialRefresher(FakeIssuer(clock), clock=clock)

        await refresher.stop()

        assert refresher.running is False
