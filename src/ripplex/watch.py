"""watch() — call back with new and old values when a reactive source changes.

The source can be a getter function, a ref or computed, a reactive wrapper
(watched deeply: every reachable key is tracked) or a list/tuple of those.
The callback receives ``(new_value, old_value, on_invalidate)``.

``on_invalidate(fn)`` registers a cleanup that runs right before the next
callback invocation, and on dispose(). It is how a slow asynchronous callback
learns that its result has been superseded:

    def on_query(query, _old, on_invalidate):
        expired = False

        def invalidate():
            nonlocal expired
            expired = True

        on_invalidate(invalidate)

        async def load():
            rows = await search(query)
            if not expired:
                results.value = rows

        return load()

A callback returning an awaitable has it scheduled as a task on the running
asyncio loop. The handle keeps the task referenced until it completes.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from ripplex._tracking import resolve
from ripplex.effect import ReactiveEffect
from ripplex.reactive import ReactiveObject, ReactiveProxy, has_changed, to_raw
from ripplex.containers import ReactiveDict
from ripplex.ref import RefBase

if TYPE_CHECKING:
    from ripplex._tracking import Engine

logger = logging.getLogger("ripplex.watch")

Callback = Callable[[Any, Any, Callable[[Callable[[], None]], None]], Any]

FLUSH_MODES = ("sync", "post")


def traverse(value: Any, seen: set[int] | None = None) -> Any:
    """Read every key reachable from value, so the running effect tracks them all."""
    if seen is None:
        seen = set()
    if isinstance(value, RefBase):
        traverse(value.value, seen)
        return value
    if not isinstance(value, ReactiveProxy):
        return value
    raw_id = id(to_raw(value))
    if raw_id in seen:
        return value
    seen.add(raw_id)
    if isinstance(value, ReactiveDict):
        children = list(value.values())
    elif isinstance(value, ReactiveObject):
        children = [value[key] for key in value]
    else:
        children = list(value)
    for child in children:
        traverse(child, seen)
    return value


def _getter_for(source: Any) -> tuple[Callable[[], Any] | None, bool]:
    """(getter, deep) for a watch source; getter is None for invalid sources."""
    if isinstance(source, RefBase):
        return (lambda: source.value), False
    if isinstance(source, ReactiveProxy):
        return (lambda: traverse(source)), True
    if isinstance(source, (list, tuple)):
        parts = [_getter_for(item) for item in source]
        if any(getter is None for getter, _ in parts):
            return None, False
        getters = [getter for getter, _ in parts]
        return (lambda: [getter() for getter in getters]), any(deep for _, deep in parts)
    if callable(source):
        return source, False
    return None, False


def _changed(old: Any, new: Any, multi: bool) -> bool:
    if multi:
        # a list source yields a fresh list per run; compare its entries
        return any(has_changed(o, n) for o, n in zip(old, new))
    return has_changed(old, new)


class WatchHandle:
    """Disposable handle for a watch()."""

    __slots__ = ("_effect", "_cleanup", "_tasks", "_disposed")

    def __init__(self) -> None:
        self._effect: ReactiveEffect | None = None
        self._cleanup: Callable[[], None] | None = None
        self._tasks: set[asyncio.Future] = set()
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def tasks(self) -> set[asyncio.Future]:
        """Tasks spawned from awaitable callback results that are still running."""
        return set(self._tasks)

    def _run_cleanup(self) -> None:
        cleanup, self._cleanup = self._cleanup, None
        if cleanup is not None:
            cleanup()

    def _spawn(self, awaitable: Awaitable) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Watch callback returned an awaitable outside an event loop; dropped")
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            return
        task = asyncio.ensure_future(awaitable, loop=loop)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def dispose(self) -> None:
        """Stop watching. Runs the pending invalidation callback, if any."""
        if self._disposed:
            return
        self._disposed = True
        if self._effect is not None:
            self._effect.dispose()
        self._run_cleanup()


def watch(
    source: Any,
    callback: Callback,
    *,
    immediate: bool = False,
    flush: str = "sync",
    engine: Engine | None = None,
) -> WatchHandle:
    """Call callback(new, old, on_invalidate) whenever source changes.

    ``flush="sync"`` calls back inside the write that caused the change;
    ``flush="post"`` defers to the engine's job queue. With ``immediate=True``
    the callback also runs once at setup, with ``old`` set to None.

    Usage:
        state = reactive({"count": 0})
        seen = []

        handle = watch(lambda: state["count"], lambda new, old, _: seen.append((new, old)))
        state["count"] = 1
        # seen == [(1, 0)]

        handle.dispose()
    """
    if flush not in FLUSH_MODES:
        raise ValueError(f"flush must be one of {FLUSH_MODES}, got {flush!r}")
    engine = resolve(engine)
    handle = WatchHandle()
    getter, deep = _getter_for(source)
    multi = isinstance(source, (list, tuple))
    if getter is None:
        logger.warning("Invalid watch source of type %s; nothing is watched", type(source).__name__)
        handle._disposed = True
        return handle

    old_value: Any = None
    started = False

    def on_invalidate(fn: Callable[[], None]) -> None:
        handle._cleanup = fn

    def job() -> None:
        nonlocal old_value, started
        if handle.disposed:
            return
        new_value = runner()
        if started and not deep and not _changed(old_value, new_value, multi):
            return
        started = True
        handle._run_cleanup()
        result = callback(new_value, old_value, on_invalidate)
        old_value = new_value
        if inspect.isawaitable(result):
            handle._spawn(result)

    def scheduler(_effect: ReactiveEffect) -> None:
        if flush == "post":
            engine.queue_job(job)
        else:
            job()

    runner = ReactiveEffect(engine, getter, lazy=True, scheduler=scheduler)
    handle._effect = runner
    if immediate:
        job()
    else:
        old_value = runner()
        started = True
    return handle
