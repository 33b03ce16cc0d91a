"""Batching scheduler — a deduplicating job queue flushed once per turn.

Jobs added while a flush is pending collapse into that flush: adding the same
job twice runs it once. The flush itself is deferred through a pluggable
``defer`` callable. By default it uses ``call_soon`` on the running asyncio
loop, so the flush runs after the current synchronous phase. Without a running
loop the jobs stay queued until ``flush()`` is called explicitly, or until a
later ``add()`` finds a running loop. A ``defer`` that returns False reports
that nothing was scheduled.

Hosts with a UI thread pass their own marshaling function, e.g.
``Engine(defer=app.call_from_thread)`` or ``loop.call_soon_threadsafe``.

Flush policy: drain to a fixed point. A job queued while the queue is being
flushed runs in that same flush, after the jobs that were already queued.
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Callable

logger = logging.getLogger("ripplex.scheduler")

Job = Callable[[], Any]

# Passes over the queue before a flush gives up on self-rescheduling jobs.
MAX_FLUSH_PASSES = 100


def defer_to_event_loop(flush: Callable[[], None]) -> bool:
    """Default deferral: schedule flush on the running asyncio loop, if any.

    Returns False when there is no loop, so the next add() tries again.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        logger.debug("No running event loop; jobs wait for an explicit flush()")
        return False
    loop.call_soon(flush)
    return True


class JobQueue:
    """Insertion-ordered, deduplicating set of pending jobs."""

    def __init__(self, defer: Callable[[Callable[[], None]], Any] | None = None) -> None:
        self._jobs: dict[Job, None] = {}
        self._flush_pending = False
        self._lock = threading.RLock()
        self._defer = defer if defer is not None else defer_to_event_loop

    def add(self, job: Job) -> None:
        """Queue job. Schedules a flush unless one is already pending."""
        with self._lock:
            self._jobs[job] = None
            if self._flush_pending:
                return
            self._flush_pending = True
        if self._defer(self.flush) is False:
            with self._lock:
                self._flush_pending = False

    def flush(self) -> None:
        """Run every queued job once, in insertion order, until none remain."""
        with self._lock:
            try:
                passes = 0
                while self._jobs:
                    if passes == MAX_FLUSH_PASSES:
                        logger.error(
                            "Job queue still busy after %d passes; dropping %d job(s)",
                            passes, len(self._jobs),
                        )
                        self._jobs.clear()
                        break
                    passes += 1
                    # Jobs may queue more jobs while this batch runs.
                    batch = list(self._jobs)
                    self._jobs.clear()
                    logger.debug("Flushing %d job(s), pass %d", len(batch), passes)
                    for job in batch:
                        job()
            finally:
                self._flush_pending = False
                self._jobs.clear()

    @property
    def flush_pending(self) -> bool:
        return self._flush_pending

    def __len__(self) -> int:
        return len(self._jobs)

    def __contains__(self, job: Job) -> bool:
        return job in self._jobs
