"""Tests for RequestGate ordering, spacing, failure isolation and shutdown."""

import asyncio
import time

import pytest

from marketdash.config import GateSettings
from marketdash.exceptions import GateClosedError, NetworkError, RateLimitedError
from marketdash.market_data.gate import RequestGate

SPACING = 0.05
TOLERANCE = 0.005


def _recording_request(log: list, name: str, duration: float = 0.0, error: Exception | None = None):
    """Build a request fn that records (name, start, end) and optionally fails."""

    async def request() -> str:
        start = time.monotonic()
        await asyncio.sleep(duration)
        log.append((name, start, time.monotonic()))
        if error is not None:
            raise error
        return name

    return request


class TestGateOrdering:
    """Requests reach the network one at a time, in submission order."""

    @pytest.mark.asyncio
    async def test_dispatch_in_submission_order(self) -> None:
        gate = RequestGate(min_spacing=0.0)
        log: list = []
        # Earlier requests take longer, so completion order would invert if
        # anything ran in parallel.
        futures = [
            gate.submit(_recording_request(log, f"r{i}", duration=0.02 * (4 - i)))
            for i in range(5)
        ]
        results = await asyncio.gather(*futures)
        await gate.close()

        assert results == ["r0", "r1", "r2", "r3", "r4"]
        assert [entry[0] for entry in log] == ["r0", "r1", "r2", "r3", "r4"]

    @pytest.mark.asyncio
    async def test_no_parallel_dispatch(self) -> None:
        gate = RequestGate(min_spacing=0.0)
        log: list = []
        futures = [gate.submit(_recording_request(log, str(i), duration=0.01)) for i in range(4)]
        await asyncio.gather(*futures)
        await gate.close()

        for previous, current in zip(log, log[1:]):
            assert current[1] >= previous[2]

    @pytest.mark.asyncio
    async def test_enqueue_from_concurrent_tasks_keeps_order(self) -> None:
        gate = RequestGate(min_spacing=0.0)
        log: list = []
        results = await asyncio.gather(
            *(gate.enqueue(_recording_request(log, f"t{i}")) for i in range(6))
        )
        await gate.close()

        assert results == [f"t{i}" for i in range(6)]
        assert gate.dispatched == 6

    @pytest.mark.asyncio
    async def test_spacing_between_dispatches(self) -> None:
        gate = RequestGate(min_spacing=SPACING)
        log: list = []
        futures = [gate.submit(_recording_request(log, str(i))) for i in range(4)]
        await asyncio.gather(*futures)
        await gate.close()

        starts = [entry[1] for entry in log]
        gaps = [b - a for a, b in zip(starts, starts[1:])]
        assert all(gap >= SPACING - TOLERANCE for gap in gaps)

    def test_from_settings_converts_milliseconds(self) -> None:
        gate = RequestGate.from_settings(GateSettings(min_spacing_ms=1200, request_timeout=3.0))
        assert gate.min_spacing == pytest.approx(1.2)

    def test_negative_spacing_rejected(self) -> None:
        with pytest.raises(ValueError):
            RequestGate(min_spacing=-1)


class TestGateFailureIsolation:
    """A failing request only fails its own caller."""

    @pytest.mark.asyncio
    async def test_failure_propagates_to_its_caller(self) -> None:
        gate = RequestGate(min_spacing=0.0)
        log: list = []
        with pytest.raises(RateLimitedError):
            await gate.enqueue(_recording_request(log, "x", error=RateLimitedError("429")))
        await gate.close()

    @pytest.mark.asyncio
    async def test_rate_limit_does_not_disturb_subsequent_requests(self) -> None:
        gate = RequestGate(min_spacing=SPACING)
        log: list = []
        futures = [
            gate.submit(_recording_request(log, "a")),
            gate.submit(_recording_request(log, "limited", error=RateLimitedError("429"))),
            gate.submit(_recording_request(log, "b")),
            gate.submit(_recording_request(log, "c")),
        ]
        results = await asyncio.gather(*futures, return_exceptions=True)
        await gate.close()

        assert results[0] == "a"
        assert isinstance(results[1], RateLimitedError)
        assert results[2:] == ["b", "c"]
        assert [entry[0] for entry in log] == ["a", "limited", "b", "c"]

        starts = [entry[1] for entry in log]
        gaps = [b - a for a, b in zip(starts, starts[1:])]
        assert all(gap >= SPACING - TOLERANCE for gap in gaps)
        # No extra delay after the rate-limited request
        assert gaps[1] < SPACING + 0.5

    @pytest.mark.asyncio
    async def test_timeout_fails_request_and_queue_continues(self) -> None:
        gate = RequestGate(min_spacing=0.0, request_timeout=0.05)
        log: list = []
        hung = gate.submit(_recording_request(log, "hung", duration=5.0))
        after = gate.submit(_recording_request(log, "after"))

        with pytest.raises(NetworkError):
            await hung
        assert await after == "after"
        await gate.close()


class TestGateCancellation:
    @pytest.mark.asyncio
    async def test_cancelled_before_dispatch_is_skipped(self) -> None:
        gate = RequestGate(min_spacing=0.0)
        log: list = []
        first = gate.submit(_recording_request(log, "first", duration=0.05))
        skipped = gate.submit(_recording_request(log, "skipped"))
        last = gate.submit(_recording_request(log, "last"))

        skipped.cancel()
        assert await first == "first"
        assert await last == "last"
        await gate.close()

        assert [entry[0] for entry in log] == ["first", "last"]
        assert gate.dispatched == 2

    @pytest.mark.asyncio
    async def test_cancelling_waiting_task_skips_request(self) -> None:
        gate = RequestGate(min_spacing=0.0)
        log: list = []
        blocker = gate.submit(_recording_request(log, "blocker", duration=0.05))
        waiter = asyncio.create_task(gate.enqueue(_recording_request(log, "dropped")))
        await asyncio.sleep(0)
        waiter.cancel()

        await blocker
        with pytest.raises(asyncio.CancelledError):
            await waiter
        await asyncio.sleep(0.01)
        await gate.close()

        assert [entry[0] for entry in log] == ["blocker"]


class TestGateClose:
    @pytest.mark.asyncio
    async def test_close_fails_pending_and_in_flight(self) -> None:
        gate = RequestGate(min_spacing=0.0)
        log: list = []
        in_flight = gate.submit(_recording_request(log, "slow", duration=5.0))
        queued = gate.submit(_recording_request(log, "queued"))
        await asyncio.sleep(0.01)

        await gate.close()

        with pytest.raises(GateClosedError):
            await in_flight
        with pytest.raises(GateClosedError):
            await queued

    @pytest.mark.asyncio
    async def test_submit_after_close_raises(self) -> None:
        gate = RequestGate(min_spacing=0.0)
        await gate.close()
        with pytest.raises(GateClosedError):
            gate.submit(_recording_request([], "late"))

    @pytest.mark.asyncio
    async def test_pending_count(self) -> None:
        gate = RequestGate(min_spacing=0.0)
        assert gate.pending == 0
        log: list = []
        futures = [gate.submit(_recording_request(log, str(i))) for i in range(3)]
        assert gate.pending == 3
        await asyncio.gather(*futures)
        assert gate.pending == 0
        await gate.close()
