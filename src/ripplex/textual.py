"""Textual bridge. Import explicitly; needs the ``textual`` extra installed.

The effect() and watch() variants here protect widget code. While the app is
not running, or inside ``pause(app)``, re-runs are dropped. A ``NoMatches``
raised by a widget query is swallowed. Writes made on a worker thread reach
the widgets through ``app.call_from_thread``.

The guard sits in the effect's scheduler, so a skipped re-run keeps the
effect subscribed to everything it read last time.
"""

import threading
from contextlib import contextmanager

from textual.css.query import NoMatches

from ripplex._tracking import resolve
from ripplex.effect import ReactiveEffect
from ripplex.watch import watch as _watch

# id(app) -> pause depth. Apps themselves are never modified.
_pause_depth: dict[int, int] = {}


@contextmanager
def pause(app):
    """Hold back guarded re-runs while widgets are being replaced. Nests."""
    app_id = id(app)
    _pause_depth[app_id] = _pause_depth.get(app_id, 0) + 1
    try:
        yield
    finally:
        remaining = _pause_depth.pop(app_id) - 1
        if remaining:
            _pause_depth[app_id] = remaining


def is_safe(app) -> bool:
    """True when the app is running and not inside pause(app)."""
    return bool(app.is_running) and id(app) not in _pause_depth


def _bridge(app, fn):
    """Return (direct, guarded) callables around fn.

    direct swallows NoMatches. guarded additionally drops the call while the
    app is unsafe and hops to the app thread when invoked from elsewhere.
    """
    app_thread = threading.get_ident()

    def direct(*args):
        try:
            return fn(*args)
        except NoMatches:
            return None

    def guarded(*args):
        if not is_safe(app):
            return None
        if threading.get_ident() == app_thread:
            return direct(*args)
        return app.call_from_thread(direct, *args)

    return direct, guarded


def effect(app, fn, *, engine=None):
    """ripplex.effect for code that touches widgets.

    Runs once right away to collect dependencies, then every re-run goes
    through the guard.
    """
    runner = ReactiveEffect(resolve(engine), fn, lazy=True)
    direct, guarded = _bridge(app, runner)
    runner.scheduler = lambda _runner: guarded()
    direct()
    return runner


def watch(app, source, callback, *, immediate=False, engine=None):
    """ripplex.watch whose callback only fires while the app is safe."""
    _direct, guarded = _bridge(app, callback)
    return _watch(source, guarded, immediate=immediate, engine=engine)
