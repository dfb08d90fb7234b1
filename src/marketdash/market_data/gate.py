"""Request gate -- the single serialized, rate-limited queue for upstream calls.

Every upstream request in the process goes through one RequestGate. A single
worker task drains a FIFO queue: it waits for the previous request to finish,
sleeps the minimum spacing, then dispatches the next one. Requests therefore
reach the network in exactly the order they were submitted, one at a time,
at most ``60 / min_spacing`` per minute.

A failing request (rate limit, upstream error, timeout) only fails its own
future; the worker moves on to the next entry. A caller that cancels its
future before dispatch causes the entry to be skipped without a network call.
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from marketdash.config import GateSettings
from marketdash.exceptions import GateClosedError, NetworkError, RateLimitedError
from marketdash.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

RequestFn = Callable[[], Awaitable[Any]]


class RequestGate:
    """Process-wide FIFO dispatch queue with minimum inter-request spacing.

    Args:
        min_spacing: Seconds slept before each dispatch.
        request_timeout: Seconds a dispatched request may run before it is
            failed with NetworkError. None disables the timeout.
    """

    def __init__(
        self,
        min_spacing: float = 1.1,
        request_timeout: float | None = 8.0,
    ) -> None:
        if min_spacing < 0:
            raise ValueError("min_spacing must be non-negative")
        self._min_spacing = min_spacing
        self._request_timeout = request_timeout
        self._queue: asyncio.Queue[tuple[RequestFn, asyncio.Future[Any]]] | None = None
        self._worker: asyncio.Task | None = None  # type: ignore[type-arg]
        self._closed = False
        self._dispatched = 0
        self._in_flight: asyncio.Future[Any] | None = None

    @classmethod
    def from_settings(cls, settings: GateSettings) -> "RequestGate":
        return cls(
            min_spacing=settings.min_spacing_ms / 1000,
            request_timeout=settings.request_timeout,
        )

    @property
    def min_spacing(self) -> float:
        return self._min_spacing

    @property
    def dispatched(self) -> int:
        """Number of requests handed to the network so far."""
        return self._dispatched

    @property
    def pending(self) -> int:
        """Number of requests waiting in the queue."""
        return self._queue.qsize() if self._queue is not None else 0

    def submit(self, request_fn: Callable[[], Awaitable[T]]) -> "asyncio.Future[T]":
        """Queue a request and return a future for its result.

        The queue position is fixed at call time, so the order of submit()
        calls is the order of network dispatch.
        """
        if self._closed:
            raise GateClosedError("Request gate is closed")

        future: asyncio.Future[T] = asyncio.get_running_loop().create_future()
        self._ensure_worker()
        assert self._queue is not None
        self._queue.put_nowait((request_fn, future))
        return future

    async def enqueue(self, request_fn: Callable[[], Awaitable[T]]) -> T:
        """Queue a request and wait for its result.

        Cancelling the awaiting task cancels the queued entry: if it has not
        been dispatched yet it is skipped, otherwise its result is discarded.
        """
        return await self.submit(request_fn)

    async def close(self) -> None:
        """Stop the worker and fail every request still waiting in the queue."""
        self._closed = True
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None

        abandoned = 0
        if self._in_flight is not None and not self._in_flight.done():
            self._in_flight.set_exception(GateClosedError("Request gate is closed"))
            abandoned += 1
        self._in_flight = None
        if self._queue is not None:
            while not self._queue.empty():
                _, future = self._queue.get_nowait()
                if not future.done():
                    future.set_exception(GateClosedError("Request gate is closed"))
                    abandoned += 1
        logger.info("request_gate_closed", dispatched=self._dispatched, abandoned=abandoned)

    def _ensure_worker(self) -> None:
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._worker is None or self._worker.done():
            self._worker = asyncio.create_task(self._run())
            logger.debug(
                "request_gate_started",
                min_spacing=self._min_spacing,
                request_timeout=self._request_timeout,
            )

    async def _run(self) -> None:
        """Worker loop: one request at a time, in queue order."""
        assert self._queue is not None
        while True:
            request_fn, future = await self._queue.get()
            try:
                if future.cancelled():
                    logger.debug("gate_request_skipped", reason="cancelled_before_dispatch")
                    continue

                await asyncio.sleep(self._min_spacing)

                if future.cancelled():
                    logger.debug("gate_request_skipped", reason="cancelled_before_dispatch")
                    continue

                self._in_flight = future
                await self._dispatch(request_fn, future)
                self._in_flight = None
            finally:
                self._queue.task_done()

    async def _dispatch(self, request_fn: RequestFn, future: asyncio.Future[Any]) -> None:
        self._dispatched += 1
        try:
            if self._request_timeout is None:
                result = await request_fn()
            else:
                result = await asyncio.wait_for(request_fn(), self._request_timeout)
        except asyncio.CancelledError:
            raise
        except asyncio.TimeoutError:
            self._fail(
                future,
                NetworkError(f"Request timed out after {self._request_timeout}s"),
            )
        except Exception as exc:
            self._fail(future, exc)
        else:
            if not future.done():
                future.set_result(result)

    @staticmethod
    def _fail(future: asyncio.Future[Any], exc: BaseException) -> None:
        if isinstance(exc, RateLimitedError):
            logger.debug("gate_request_rate_limited")
        else:
            logger.debug("gate_request_failed", error_type=type(exc).__name__)
        if not future.done():
            future.set_exception(exc)
