"""Read reactive state without subscribing to it.

Reads inside ``@untracked`` functions or ``with pause_tracking()`` blocks
register no dependencies on the running effect. List mutators use the same
window internally, so an effect that appends to a list it never read does not
end up depending on that list's length.
"""

from __future__ import annotations

import functools
from contextlib import contextmanager
from typing import TYPE_CHECKING, Callable, Iterator, ParamSpec, TypeVar

from ripplex._tracking import resolve

if TYPE_CHECKING:
    from ripplex._tracking import Engine

P = ParamSpec("P")
R = TypeVar("R")


def untracked(fn: Callable[P, R]) -> Callable[P, R]:
    """Decorator: run fn with tracking paused on the default engine.

    Usage:
        @untracked
        def peek():
            return state["count"]

        effect(lambda: log.append(peek()))
        state["count"] = 1
        # the effect does not re-run
    """

    @functools.wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        with resolve(None).untracked():
            return fn(*args, **kwargs)

    return wrapper


@contextmanager
def pause_tracking(engine: Engine | None = None) -> Iterator[None]:
    """Context manager for untracked reads.

    Usage:
        with pause_tracking():
            total = state["a"] + state["b"]
    """
    with resolve(engine).untracked():
        yield
