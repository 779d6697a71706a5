"""
Fixed window rate limiter for the image gateway.

Counters are anchored to the first recorded request of a window rather than
sliding, so a burst straddling a window boundary can admit up to roughly
twice the nominal rate.
"""

import asyncio
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from shared.logging import get_logger


@dataclass
class ClientWindowRecord:
    """Request bookkeeping for one client identity."""

    client_id: str
    count: int
    window_start: float


class FixedWindowRateLimiter:
    """In-process fixed window counter keyed by client identity.

    ``is_rate_limited`` never mutates state; expired records are only
    replaced by the next ``increment_counter`` or removed by ``sweep``.
    Check and increment are separate calls, so concurrent requests from one
    identity may be over-admitted slightly.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        sweep_interval_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.sweep_interval_seconds = sweep_interval_seconds
        self.logger = get_logger("image_gateway.rate_limiter")

        self._clock = clock
        self._records: Dict[str, ClientWindowRecord] = {}
        self._lock = threading.Lock()
        self._sweep_task: Optional[asyncio.Task] = None

    def _is_expired(self, record: ClientWindowRecord, now: float) -> bool:
        return now - record.window_start > self.window_seconds

    async def is_rate_limited(self, client_id: str) -> bool:
        """Return True when the client has used up its current window."""
        if not client_id:
            return False

        now = self._clock()
        with self._lock:
            record = self._records.get(client_id)
            if record is None or self._is_expired(record, now):
                return False
            return record.count >= self.max_requests

    async def increment_counter(self, client_id: str) -> None:
        """Record one successfully served request for the client."""
        if not client_id:
            return

        now = self._clock()
        with self._lock:
            record = self._records.get(client_id)
            if record is None or self._is_expired(record, now):
                self._records[client_id] = ClientWindowRecord(client_id, 1, now)
            else:
                record.count += 1

    def sweep(self) -> int:
        """Drop every record whose window has elapsed. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [
                client_id for client_id, record in self._records.items()
                if self._is_expired(record, now)
            ]
            for client_id in expired:
                del self._records[client_id]

        if expired:
            self.logger.debug("Swept expired rate limit windows", removed=len(expired))
        return len(expired)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval_seconds)
            try:
                self.sweep()
            except Exception as e:
                self.logger.error("Rate limit sweep failed", error=str(e))

    def start(self) -> None:
        """Start the periodic sweep on the running event loop."""
        if self._sweep_task is None or self._sweep_task.done():
            self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())
            self.logger.info(
                "Rate limit sweep started",
                interval_seconds=self.sweep_interval_seconds,
                window_seconds=self.window_seconds
            )

    async def stop(self) -> None:
        """Cancel the periodic sweep."""
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def get_record(self, client_id: str) -> Optional[ClientWindowRecord]:
        """Return a copy of the stored record, expired or not."""
        with self._lock:
            record = self._records.get(client_id)
            if record is None:
                return None
            return ClientWindowRecord(record.client_id, record.count, record.window_start)

    async def stats(self) -> Dict[str, Any]:
        """Aggregate statistics without exposing individual identities."""
        now = self._clock()
        with self._lock:
            live = [r for r in self._records.values() if not self._is_expired(r, now)]
            return {
                "backend": "memory",
                "tracked_clients": len(self._records),
                "active_clients": len(live),
                "limited_clients": sum(1 for r in live if r.count >= self.max_requests),
                "max_requests": self.max_requests,
                "window_seconds": self.window_seconds,
            }
