"""Computed values — derived state with automatic dependency tracking.

A Computed wraps a getter in a lazy effect. Reading ``.value`` evaluates the
getter only when the cached result is dirty, then registers the reader as a
dependent of the computed itself. When any source of the getter changes, the
effect's scheduler just marks the cache dirty and notifies those readers.
Nothing recomputes until the next read, so chains of computeds propagate
without eager work.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar

from ripplex._anchor import TriggerOp
from ripplex._tracking import resolve
from ripplex.effect import ReactiveEffect
from ripplex.ref import RefBase

if TYPE_CHECKING:
    from ripplex._tracking import Engine

logger = logging.getLogger("ripplex.computed")

T = TypeVar("T")

_UNSET = object()


class Computed(RefBase, Generic[T]):
    """A derived value that auto-tracks dependencies and caches the result."""

    __slots__ = ("_engine", "_effect", "_value", "_dirty")

    def __init__(self, engine: Engine, getter: Callable[[], T]) -> None:
        self._engine = engine
        self._value: Any = _UNSET
        self._dirty = True
        self._effect = ReactiveEffect(engine, getter, lazy=True, scheduler=self._invalidate)

    def _invalidate(self, _effect: ReactiveEffect) -> None:
        """A source changed: drop the cache and tell our own readers."""
        if not self._dirty:
            self._dirty = True
            self._engine.trigger(self, "value", TriggerOp.SET)

    @property
    def value(self) -> T:
        """Read the computed value. Recomputes if dirty."""
        if not self._effect.active:
            return self._effect()
        if self._dirty:
            self._value = self._effect()
            self._dirty = False
        self._engine.track(self, "value")
        return self._value

    @value.setter
    def value(self, _new_value: Any) -> None:
        logger.warning("Write to computed %r ignored: computed values are read-only", self)

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def effect(self) -> ReactiveEffect[T]:
        return self._effect

    def dispose(self) -> None:
        """Disconnect from all sources. Later reads call the getter directly."""
        self._effect.dispose()
        self._dirty = True
        self._value = _UNSET

    def __repr__(self) -> str:
        name = getattr(self._effect.fn, "__name__", "getter")
        state = "dirty" if self._dirty else f"cached={self._value!r}"
        return f"Computed({name}, {state})"


def computed(getter: Callable[[], T], *, engine: Engine | None = None) -> Computed[T]:
    """Decorator/factory to create a Computed from a getter.

    Usage:
        state = reactive({"count": 1})

        @computed
        def doubled():
            return state["count"] * 2

        doubled.value  # 2
        state["count"] = 5
        doubled.value  # 10
    """
    return Computed(resolve(engine), getter)
