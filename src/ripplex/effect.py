"""Re-runnable effects driven by their reactive reads.

An effect runs its function with itself as the active effect, so every
reactive read inside registers a dependency. Before each run it is removed
from all the Deps it joined last time. Dependencies therefore always match
the most recent run: branches not taken are no longer observed.

When a dependency changes, the effect re-runs immediately, or, if it was
created with a scheduler, the scheduler receives the effect and decides when
to run it (the engine's job queue being the usual choice).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Generic, TypeVar

from ripplex._tracking import resolve

if TYPE_CHECKING:
    from ripplex._anchor import Dep
    from ripplex._tracking import Engine

T = TypeVar("T")

Scheduler = Callable[["ReactiveEffect"], None]


class ReactiveEffect(Generic[T]):
    """A callable that tracks the reactive reads of fn."""

    __slots__ = ("engine", "fn", "scheduler", "lazy", "deps", "active", "__weakref__")

    def __init__(
        self,
        engine: Engine,
        fn: Callable[[], T],
        *,
        scheduler: Scheduler | None = None,
        lazy: bool = False,
    ) -> None:
        self.engine = engine
        self.fn = fn
        self.scheduler = scheduler
        self.lazy = lazy
        self.deps: list[Dep] = []
        self.active = True

    def __call__(self) -> T:
        """Re-run fn, re-tracking its dependencies."""
        if not self.active:
            return self.fn()
        self._cleanup()
        with self.engine.running(self):
            return self.fn()

    def _cleanup(self) -> None:
        store = self.engine.store
        for dep in self.deps:
            dep.discard(self)
            store.release(dep)
        self.deps.clear()

    def dispose(self) -> None:
        """Stop reacting. Calling the effect afterwards runs fn untracked."""
        if self.active:
            self._cleanup()
            self.active = False

    def __repr__(self) -> str:
        name = getattr(self.fn, "__name__", type(self.fn).__name__)
        state = "active" if self.active else "disposed"
        return f"ReactiveEffect({name}, {state}, deps={len(self.deps)})"


def effect(
    fn: Callable[[], T],
    *,
    lazy: bool = False,
    scheduler: Scheduler | None = None,
    engine: Engine | None = None,
) -> ReactiveEffect[T]:
    """Run fn now, then re-run it whenever a reactive value it read changes.

    With ``lazy=True`` nothing runs until the returned effect is called.
    With a ``scheduler``, re-runs are handed to ``scheduler(effect)``.

    Usage:
        state = reactive({"count": 0})
        log = []

        runner = effect(lambda: log.append(state["count"]))
        # log == [0]

        state["count"] = 1
        # log == [0, 1]

        runner.dispose()
        state["count"] = 2
        # log == [0, 1]
    """
    runner = ReactiveEffect(resolve(engine), fn, scheduler=scheduler, lazy=lazy)
    if not lazy:
        runner()
    return runner
