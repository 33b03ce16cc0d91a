"""Dependency tracking engine — the heart of ripplex.

An Engine owns everything that would otherwise be process-wide state: the
dependency store, the active-effect stack, the tracking pause flag, the job
queue and the wrapper identity caches. Several engines can coexist (one per
test, one per app) without sharing anything.

Wrappers call track() on reads and trigger() on writes. trigger() applies the
fan-out rules for iteration keys and sequence length, then runs or schedules
each affected effect.
"""

from __future__ import annotations

import contextvars
import weakref
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Callable, Iterable, Iterator

from ripplex._anchor import (
    ITERATE_KEY,
    KEY_ITERATE_KEY,
    LENGTH_KEY,
    DependencyStore,
    TriggerOp,
)
from ripplex.scheduler import JobQueue

if TYPE_CHECKING:
    from ripplex.effect import ReactiveEffect


class Engine:
    """Context object for one independent reactive system."""

    def __init__(self, defer: Callable[[Callable[[], None]], Any] | None = None) -> None:
        self.store = DependencyStore()
        self.jobs = JobQueue(defer)
        self._effect_stack: list[ReactiveEffect] = []
        self._should_track = True
        # (shallow, readonly, tracked) -> id(target) -> wrapper
        self._proxies: dict[tuple[bool, bool, bool], weakref.WeakValueDictionary] = {}

    # --- Active effect ---

    @property
    def active_effect(self) -> ReactiveEffect | None:
        return self._effect_stack[-1] if self._effect_stack else None

    @contextmanager
    def running(self, effect: ReactiveEffect) -> Iterator[None]:
        """Make effect the active effect for the duration of the block.

        Tracking is re-enabled inside, so an effect triggered from within an
        untracked block still records its own reads.
        """
        previous = self._should_track
        self._effect_stack.append(effect)
        self._should_track = True
        try:
            yield
        finally:
            self._effect_stack.pop()
            self._should_track = previous

    @contextmanager
    def untracked(self) -> Iterator[None]:
        """Pause dependency tracking. Nested pauses restore the outer state."""
        previous = self._should_track
        self._should_track = False
        try:
            yield
        finally:
            self._should_track = previous

    @property
    def is_tracking(self) -> bool:
        return self._should_track and bool(self._effect_stack)

    # --- Track / trigger ---

    def track(self, target: Any, key: Any) -> None:
        """Record that the active effect read target[key]."""
        if not self.is_tracking:
            return
        effect = self._effect_stack[-1]
        dep = self.store.dep(target, key)
        if effect in dep:
            return
        dep.add(effect)
        effect.deps.append(dep)

    def collect(
        self, target: Any, key: Any, op: TriggerOp, new_value: Any = None
    ) -> list[ReactiveEffect]:
        """Effects affected by a write, without running them."""
        entry = self.store.lookup(target)
        if entry is None:
            return []
        active = self.active_effect
        effects: dict[ReactiveEffect, None] = {}

        def add(key_):
            dep = entry.get(key_)
            if dep:
                for effect in dep:
                    if effect is not active:
                        effects[effect] = None

        add(key)
        if isinstance(target, list):
            if key is LENGTH_KEY:
                for dep_key in list(entry):
                    if isinstance(dep_key, int) and dep_key >= new_value:
                        add(dep_key)
            if op is TriggerOp.ADD:
                add(LENGTH_KEY)
        if isinstance(target, dict) and op in (TriggerOp.ADD, TriggerOp.DELETE):
            add(KEY_ITERATE_KEY)
        if op in (TriggerOp.ADD, TriggerOp.DELETE) or (
            op is TriggerOp.SET and isinstance(target, dict)
        ):
            add(ITERATE_KEY)
        return list(effects)

    def trigger(self, target: Any, key: Any, op: TriggerOp, new_value: Any = None) -> None:
        """Run or schedule every effect that depends on target[key]."""
        self.run_effects(self.collect(target, key, op, new_value))

    def run_effects(self, effects: Iterable[ReactiveEffect]) -> None:
        for effect in effects:
            if not effect.active:
                continue
            if effect.scheduler is not None:
                effect.scheduler(effect)
            else:
                effect()

    # --- Scheduling ---

    def queue_job(self, job: Callable[[], Any]) -> None:
        """Defer job to the next flush. Usable directly as an effect scheduler."""
        self.jobs.add(job)

    def flush(self) -> None:
        """Run every pending job now."""
        self.jobs.flush()

    # --- Wrapper identity caches ---

    def proxy_cache(
        self, shallow: bool, readonly: bool, tracked: bool
    ) -> weakref.WeakValueDictionary:
        """Weak identity cache for one wrapper variant.

        Wrappers are held weakly: once every wrapper of a target is collected,
        the next request builds a fresh one. Dependencies live on the target,
        so effects subscribed through the old wrapper still see writes made
        through the new one.
        """
        variant = (shallow, readonly, tracked)
        cache = self._proxies.get(variant)
        if cache is None:
            cache = self._proxies[variant] = weakref.WeakValueDictionary()
        return cache

    def __repr__(self) -> str:
        return (
            f"Engine(targets={len(self.store)}, "
            f"depth={len(self._effect_stack)}, pending={len(self.jobs)})"
        )


# Engine used when none is passed explicitly. Asyncio tasks inherit it from
# the context that created them; new threads start from the module default.
current_engine: contextvars.ContextVar[Engine] = contextvars.ContextVar(
    "current_engine", default=Engine()
)


def get_engine() -> Engine:
    """The default engine of the current context."""
    return current_engine.get()


def set_engine(engine: Engine) -> Engine:
    """Replace the default engine in the current context. Returns the previous one."""
    previous = current_engine.get()
    current_engine.set(engine)
    return previous


def resolve(engine: Engine | None) -> Engine:
    return engine if engine is not None else current_engine.get()
