"""Tests for ripplex.textual — Textual integration layer."""

import threading

import pytest
from textual.css.query import NoMatches

from ripplex import reactive, ref
from ripplex import textual as rtx


class _MockApp:
    """Minimal mock matching the Textual App interface rtx needs."""

    def __init__(self, *, is_running=True):
        self.is_running = is_running
        self._call_from_thread_log = []

    def call_from_thread(self, fn, *args):
        self._call_from_thread_log.append((fn, args))
        return fn(*args)


class TestWatch:
    def test_skips_when_not_running(self):
        app = _MockApp(is_running=False)
        count = ref(1)
        seen = []
        rtx.watch(app, count, lambda new, _old, _inv: seen.append(new))
        count.value = 2
        assert seen == []

    def test_skips_during_pause(self):
        app = _MockApp()
        count = ref(1)
        seen = []
        rtx.watch(app, count, lambda new, _old, _inv: seen.append(new))
        with rtx.pause(app):
            count.value = 2
        assert seen == []

    def test_fires_when_safe(self):
        app = _MockApp()
        count = ref(1)
        seen = []
        rtx.watch(app, count, lambda new, old, _inv: seen.append((new, old)))
        count.value = 2
        assert seen == [(2, 1)]

    def test_immediate(self):
        app = _MockApp()
        count = ref(1)
        seen = []
        rtx.watch(app, count, lambda new, _old, _inv: seen.append(new), immediate=True)
        assert seen == [1]

    def test_catches_nomatch(self):
        """NoMatches from widget queries are silently swallowed."""
        app = _MockApp()
        count = ref(1)

        def _raise_nomatch(new, old, inv):
            raise NoMatches("StatusFooter")

        # Should not raise
        handle = rtx.watch(app, count, _raise_nomatch)
        count.value = 2
        handle.dispose()

    def test_propagates_real_errors(self):
        """Non-NoMatches exceptions propagate normally."""
        app = _MockApp()
        count = ref(1)

        def _raise_value_error(new, old, inv):
            raise ValueError("boom")

        rtx.watch(app, count, _raise_value_error)
        with pytest.raises(ValueError, match="boom"):
            count.value = 2

    def test_dispose_stops_watch(self):
        app = _MockApp()
        count = ref(1)
        seen = []
        handle = rtx.watch(app, count, lambda new, _old, _inv: seen.append(new))
        count.value = 2
        assert seen == [2]
        handle.dispose()
        count.value = 3
        assert seen == [2]

    def test_thread_marshal(self):
        """Triggers from background thread use call_from_thread."""
        app = _MockApp()
        count = ref(1)
        seen = []
        rtx.watch(app, count, lambda new, _old, _inv: seen.append(new))

        def _bg():
            count.value = 2

        t = threading.Thread(target=_bg)
        t.start()
        t.join()

        assert seen == [2]
        assert len(app._call_from_thread_log) >= 1


class TestEffect:
    def test_runs_immediately(self):
        app = _MockApp()
        state = reactive({"n": 1})
        log = []
        rtx.effect(app, lambda: log.append(state["n"]))
        assert log == [1]

    def test_skips_during_pause_but_stays_subscribed(self):
        app = _MockApp()
        state = reactive({"n": 1})
        log = []

        runner = rtx.effect(app, lambda: log.append(state["n"]))
        with rtx.pause(app):
            state["n"] = 2
        # Skipped during pause
        assert log == [1]
        assert len(runner.deps) == 1

        state["n"] = 3
        assert log == [1, 3]

    def test_catches_nomatch(self):
        """NoMatches from widget queries are silently swallowed."""
        app = _MockApp()
        state = reactive({"n": 1})
        call_count = [0]

        def _fn():
            call_count[0] += 1
            state["n"]  # track dependency
            if call_count[0] > 1:
                raise NoMatches("Widget")

        # Initial run succeeds (call_count becomes 1)
        rtx.effect(app, _fn)
        assert call_count[0] == 1

        # Second run raises NoMatches — silently caught
        state["n"] = 2
        assert call_count[0] == 2

    def test_initial_nomatch_keeps_dependencies(self):
        app = _MockApp()
        state = reactive({"n": 1})
        runs = []

        def _fn():
            runs.append(state["n"])
            if len(runs) == 1:
                raise NoMatches("Widget")

        rtx.effect(app, _fn)
        state["n"] = 2
        assert runs == [1, 2]

    def test_propagates_real_errors(self):
        app = _MockApp()
        state = reactive({"n": 1})

        def _fn():
            if state["n"] > 1:
                raise ValueError("boom")

        rtx.effect(app, _fn)
        with pytest.raises(ValueError, match="boom"):
            state["n"] = 2

    def test_thread_marshal(self):
        app = _MockApp()
        state = reactive({"n": 1})
        log = []
        rtx.effect(app, lambda: log.append(state["n"]))

        t = threading.Thread(target=lambda: state.__setitem__("n", 2))
        t.start()
        t.join()

        assert log == [1, 2]
        assert len(app._call_from_thread_log) == 1

    def test_fires_when_safe(self):
        app = _MockApp()
        state = reactive({"n": 1})
        log = []
        rtx.effect(app, lambda: log.append(state["n"]))
        state["n"] = 2
        assert log == [1, 2]


class TestPause:
    def test_pause_restores_on_exception(self):
        app = _MockApp()
        assert rtx.is_safe(app)

        with pytest.raises(RuntimeError):
            with rtx.pause(app):
                assert not rtx.is_safe(app)
                raise RuntimeError("oops")

        # Restored despite exception
        assert rtx.is_safe(app)

    def test_pause_does_not_mutate_app(self):
        """Pause state lives in the module, not on the app."""
        app = _MockApp()
        attrs_before = set(vars(app))
        with rtx.pause(app):
            attrs_during = set(vars(app))
        attrs_after = set(vars(app))
        assert attrs_before == attrs_during, (
            f"pause() added attributes to app: {attrs_during - attrs_before}"
        )
        assert attrs_before == attrs_after

    def test_multiple_apps_independent(self):
        """Pausing one app does not affect another."""
        app_a = _MockApp()
        app_b = _MockApp()
        with rtx.pause(app_a):
            assert not rtx.is_safe(app_a)
            assert rtx.is_safe(app_b)

    def test_nested_pause(self):
        app = _MockApp()
        with rtx.pause(app):
            with rtx.pause(app):
                pass
            assert not rtx.is_safe(app)
        assert rtx.is_safe(app)
