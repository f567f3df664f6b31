"""
Poller/Scheduler

A fixed-interval loop around a job callable. Each scheduler owns its state
(IDLE, TICKING, STOPPED): a tick never overlaps another tick of the same
scheduler, a failed tick is logged and the loop carries on, and stop() lets
the in-flight tick finish before the loop exits.

Only one process per scheduler name may tick against the database; that is
enforced with a lease row renewed on every tick.
"""

import asyncio
import logging
import os
import signal
import socket
import threading
from datetime import datetime, timezone
from typing import Optional, Callable, Iterable
from dataclasses import dataclass, asdict
from enum import Enum
from uuid import uuid4

logger = logging.getLogger(__name__)


class SchedulerState(Enum):
    IDLE = "idle"
    TICKING = "ticking"
    STOPPED = "stopped"


@dataclass
class SchedulerStatus:
    name: str
    state: str
    interval_seconds: float
    last_tick_at: Optional[str] = None
    last_sent: Optional[int] = None
    total_sent: int = 0
    ticks: int = 0
    failures: int = 0
    skipped: int = 0

    def as_dict(self):
        return asdict(self)


class SchedulerLease:
    """Database lease so that only one process runs a given scheduler"""

    def __init__(self, db, name: str, ttl_seconds: int = 30, holder: str = None):
        self.db = db
        self.name = name
        self.ttl_seconds = ttl_seconds
        self.holder = holder or f"{socket.gethostname()}:{os.getpid()}:{uuid4().hex[:8]}"
        self.held = False

    def acquire(self) -> bool:
        """Acquire or renew. False when another holder's lease is live."""
        acquired = self.db.acquire_lease(self.name, self.holder, self.ttl_seconds)
        if acquired and not self.held:
            logger.info("Acquired %s lease as %s", self.name, self.holder)
        elif not acquired and self.held:
            logger.warning("Lost %s lease", self.name)
        self.held = acquired
        return acquired

    def release(self):
        if not self.held:
            return
        try:
            self.db.release_lease(self.name, self.holder)
        except Exception:
            logger.exception("Failed to release %s lease", self.name)
        self.held = False


class PollingScheduler:
    def __init__(
        self,
        name: str,
        job: Callable[[], int],
        interval_seconds: float,
        lease: SchedulerLease = None
    ):
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self.name = name
        self.job = job
        self.interval_seconds = interval_seconds
        self.lease = lease
        self._state = SchedulerState.IDLE
        self._lock = threading.Lock()
        self._stop_requested = False
        self._stop_event: Optional[asyncio.Event] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._status = SchedulerStatus(name=name, state=self._state.value, interval_seconds=interval_seconds)

    @property
    def state(self) -> SchedulerState:
        return self._state

    def status(self) -> SchedulerStatus:
        self._status.state = self._state.value
        return SchedulerStatus(**asdict(self._status))

    def _begin_tick(self) -> bool:
        with self._lock:
            if self._state is not SchedulerState.IDLE:
                return False
            self._state = SchedulerState.TICKING
            return True

    def _end_tick(self):
        with self._lock:
            self._state = SchedulerState.STOPPED if self._stop_requested else SchedulerState.IDLE

    def run_once(self) -> Optional[int]:
        """Run one tick. Returns notifications sent, or None if skipped or failed."""
        if not self._begin_tick():
            self._status.skipped += 1
            logger.debug("%s tick skipped (state=%s)", self.name, self._state.value)
            return None
        started = datetime.now(timezone.utc)
        try:
            if self.lease is not None and not self.lease.acquire():
                self._status.skipped += 1
                logger.debug("%s lease held elsewhere, skipping tick", self.name)
                return None
            sent = self.job() or 0
            self._status.ticks += 1
            self._status.last_tick_at = started.isoformat()
            self._status.last_sent = sent
            self._status.total_sent += sent
            if sent > 0:
                elapsed_ms = int((datetime.now(timezone.utc) - started).total_seconds() * 1000)
                logger.info("%s sent %d notification(s) (%dms)", self.name, sent, elapsed_ms)
            return sent
        except Exception:
            self._status.failures += 1
            logger.exception("%s tick failed", self.name)
            return None
        finally:
            self._end_tick()

    def stop(self):
        """Stop ticking. An in-flight tick is allowed to finish."""
        with self._lock:
            self._stop_requested = True
            if self._state is SchedulerState.IDLE:
                self._state = SchedulerState.STOPPED
        if self._stop_event is not None and self._loop is not None:
            self._loop.call_soon_threadsafe(self._stop_event.set)

    async def run_forever(self):
        """Tick immediately, then every interval until stop() is called"""
        self._loop = asyncio.get_running_loop()
        self._stop_event = asyncio.Event()
        if self._stop_requested:
            self._stop_event.set()
        logger.info("Starting %s scheduler (every %ss)", self.name, self.interval_seconds)
        try:
            while not self._stop_event.is_set():
                await asyncio.to_thread(self.run_once)
                try:
                    await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval_seconds)
                except asyncio.TimeoutError:
                    pass
        finally:
            with self._lock:
                self._stop_requested = True
                if self._state is SchedulerState.IDLE:
                    self._state = SchedulerState.STOPPED
            if self.lease is not None:
                self.lease.release()
            logger.info("%s scheduler stopped", self.name)


def install_signal_handlers(schedulers: Iterable[PollingScheduler]):
    """Stop all schedulers on SIGINT/SIGTERM"""
    loop = asyncio.get_running_loop()
    schedulers = list(schedulers)

    def _shutdown(signame):
        logger.info("Received %s, shutting down schedulers...", signame)
        for scheduler in schedulers:
            scheduler.stop()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _shutdown, sig.name)
        except NotImplementedError:
            # Windows event loops
            signal.signal(sig, lambda *_, name=sig.name: _shutdown(name))
