"""Tests for the wrapper factories, record wrappers and read-only/shallow variants."""

import gc
import logging

import pytest

from ripplex import (
    ReactiveDict,
    ReactiveObject,
    effect,
    is_proxy,
    is_reactive,
    is_readonly,
    is_shallow,
    reactive,
    readonly,
    shallow_reactive,
    shallow_readonly,
    to_raw,
)


class Point:
    def __init__(self, x, y):
        self.x = x
        self.y = y

    @property
    def manhattan(self):
        return abs(self.x) + abs(self.y)

    def move(self, dx):
        self.x += dx

    @staticmethod
    def origin():
        return (0, 0)

    @classmethod
    def kind(cls):
        return cls.__name__


class TestIdentity:
    def test_same_wrapper_per_target(self):
        target = {"a": 1}
        assert reactive(target) is reactive(target)
        assert readonly(target) is readonly(target)

    def test_variants_are_distinct(self):
        target = {"a": 1}
        assert reactive(target) is not readonly(target)
        assert reactive(target) is not shallow_reactive(target)

    def test_wrapping_a_wrapper_returns_it(self):
        state = reactive({"a": 1})
        assert reactive(state) is state

    def test_readonly_of_reactive_wraps_raw(self):
        target = {"a": 1}
        view = readonly(reactive(target))
        assert is_readonly(view)
        assert to_raw(view) is target
        assert readonly(reactive(target)) is view

    def test_recreated_wrapper_reaches_existing_effects(self):
        target = {"n": 1}
        log = []
        effect(lambda: log.append(reactive(target)["n"]))
        gc.collect()
        reactive(target)["n"] = 2
        assert log == [1, 2]

    def test_nested_reads_return_same_wrapper(self):
        state = reactive({"inner": {"n": 1}})
        assert state["inner"] is state["inner"]

    def test_to_raw(self):
        target = {"a": 1}
        assert to_raw(reactive(target)) is target
        assert to_raw(target) is target
        assert reactive(target)._rx_raw() is target

    def test_flags(self):
        target = {"a": 1}
        assert is_reactive(reactive(target))
        assert not is_reactive(readonly(target))
        assert is_shallow(shallow_reactive(target))
        assert is_proxy(shallow_readonly(target))
        assert not is_proxy(target)

    def test_primitive_is_returned_unchanged(self, caplog):
        with caplog.at_level(logging.WARNING, logger="ripplex.reactive"):
            assert reactive(1) == 1
            assert reactive("text") == "text"
        assert "cannot be made reactive" in caplog.text

    def test_dispatch_by_type(self):
        assert isinstance(reactive({}), ReactiveDict)
        assert isinstance(reactive(Point(0, 0)), ReactiveObject)


class TestRecord:
    def test_attribute_tracking(self):
        p = reactive(Point(1, 2))
        log = []
        effect(lambda: log.append(p.x))
        p.x = 5
        assert log == [1, 5]
        p.y = 3
        assert log == [1, 5]

    def test_property_reads_are_tracked(self):
        p = reactive(Point(1, 2))
        log = []
        effect(lambda: log.append(p.manhattan))
        p.y = -10
        assert log == [3, 11]

    def test_methods_write_through_wrapper(self):
        p = reactive(Point(1, 2))
        log = []
        effect(lambda: log.append(p.x))
        p.move(2)
        assert log == [1, 3]
        assert to_raw(p).x == 3

    def test_static_and_class_methods(self):
        p = reactive(Point(1, 2))
        assert p.origin() == (0, 0)
        assert p.kind() == "Point"

    def test_add_and_delete_notify_enumeration(self):
        p = reactive(Point(1, 2))
        log = []
        effect(lambda: log.append(sorted(p)))
        p.z = 0
        assert log[-1] == ["x", "y", "z"]
        p.x = 100  # value change, same shape
        assert len(log) == 2
        del p.z
        assert log[-1] == ["x", "y"]
        assert len(log) == 3

    def test_delete_missing_raises(self):
        p = reactive(Point(1, 2))
        with pytest.raises(AttributeError):
            del p.missing
        with pytest.raises(KeyError):
            del p["missing"]

    def test_item_protocol(self):
        p = reactive(Point(1, 2))
        assert p["x"] == 1
        p["y"] = 7
        assert p.y == 7
        assert len(p) == 2
        with pytest.raises(KeyError):
            p["nope"]

    def test_contains_is_tracked(self):
        p = reactive(Point(1, 2))
        log = []
        effect(lambda: log.append("z" in p))
        p.z = 1
        assert log == [False, True]

    def test_nested_object_is_wrapped(self):
        outer = Point(Point(1, 1), 0)
        p = reactive(outer)
        assert isinstance(p.x, ReactiveObject)
        log = []
        effect(lambda: log.append(p.x.y))
        p.x.y = 9
        assert log == [1, 9]

    def test_equality_uses_target(self):
        point = Point(1, 2)
        assert reactive(point) == point
        assert bool(reactive(Point(0, 0)))

    def test_stores_raw_values(self):
        p = reactive(Point(1, 2))
        nested = reactive({"n": 1})
        p.x = nested
        assert to_raw(p).x is to_raw(nested)

    def test_replacing_with_equal_container_notifies(self):
        p = reactive(Point({"n": 1}, 0))
        log = []
        effect(lambda: log.append(p.x["n"]))
        p.x = {"n": 1}
        p.x["n"] = 2
        assert log == [1, 1, 2]


class TestReadonly:
    def test_write_is_ignored_with_warning(self, caplog):
        target = {"a": 1}
        view = readonly(target)
        with caplog.at_level(logging.WARNING, logger="ripplex.reactive"):
            view["a"] = 2
            del view["a"]
        assert target == {"a": 1}
        assert "readonly" in caplog.text

    def test_record_write_is_ignored(self, caplog):
        view = readonly(Point(1, 2))
        with caplog.at_level(logging.WARNING, logger="ripplex.reactive"):
            view.x = 10
        assert view.x == 1

    def test_nested_values_are_readonly(self):
        view = readonly({"inner": {"n": 1}})
        assert is_readonly(view["inner"])
        view["inner"]["n"] = 2
        assert view["inner"]["n"] == 1

    def test_reads_are_not_tracked(self):
        target = {"a": 1}
        view = readonly(target)
        log = []
        effect(lambda: log.append(view["a"]))
        reactive(target)["a"] = 2
        assert log == [1]

    def test_view_of_reactive_follows_writes(self):
        state = reactive({"a": 1, "inner": {"n": 1}})
        view = readonly(state)
        log = []
        effect(lambda: log.append((view["a"], view["inner"]["n"])))
        state["a"] = 2
        state["inner"]["n"] = 5
        assert log == [(1, 1), (2, 1), (2, 5)]
        assert is_readonly(view["inner"])


class TestShallow:
    def test_nested_values_are_not_wrapped(self):
        state = shallow_reactive({"inner": {"n": 1}})
        assert not is_proxy(state["inner"])

    def test_top_level_is_tracked(self):
        state = shallow_reactive({"inner": {"n": 1}})
        log = []
        effect(lambda: log.append(state["inner"]["n"]))
        state["inner"]["n"] = 2  # plain dict: not observed
        assert log == [1]
        state["inner"] = {"n": 3}
        assert log == [1, 3]

    def test_shallow_readonly_allows_nested_mutation(self, caplog):
        view = shallow_readonly({"inner": {"n": 1}})
        view["inner"]["n"] = 2
        assert view["inner"]["n"] == 2
        with caplog.at_level(logging.WARNING, logger="ripplex.reactive"):
            view["inner"] = {}
        assert view["inner"] == {"n": 2}
