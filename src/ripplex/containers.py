"""Reactive list, dict and set wrappers.

Reads track, writes trigger, both against the raw target, never through
another wrapper. Object-valued elements are wrapped again on the way out so
nested state stays reactive.

Lists track by index plus LENGTH_KEY. Their mutators run with tracking paused
and diff the raw list against a snapshot, so an effect is notified at most
once per call no matter how many indexes moved. Dicts and sets are mostly
observed in aggregate: enumeration tracks the reserved iteration keys rather
than every element.
"""

from __future__ import annotations

import functools
import operator
import sys
from collections.abc import MutableMapping, MutableSequence, MutableSet
from typing import Any, Callable, Iterable, Iterator

from ripplex._anchor import ITERATE_KEY, KEY_ITERATE_KEY, LENGTH_KEY, TriggerOp
from ripplex.reactive import ReactiveProxy, has_changed, to_raw


def _mutator(method: Callable) -> Callable:
    """Reject the call with a warning when the wrapper is read-only."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        if self._rx_readonly:
            self._rx_reject(method.__name__, args[0] if args else None)
            return None
        return method(self, *args, **kwargs)

    return wrapper


class ReactiveList(ReactiveProxy, MutableSequence, target_type=list):
    """An ordered sequence that tracks index and length reads."""

    __slots__ = ()

    # --- Read operations (track) ---

    def _rx_items(self) -> list:
        """Track the length and every index; return the wrapped items."""
        raw = self._rx_target
        self._rx_track(LENGTH_KEY)
        for index in range(len(raw)):
            self._rx_track(index)
        return [self._rx_wrap(item) for item in raw]

    def __getitem__(self, index):
        raw = self._rx_target
        if isinstance(index, slice):
            self._rx_track(LENGTH_KEY)
            indices = range(*index.indices(len(raw)))
            for i in indices:
                self._rx_track(i)
            return [self._rx_wrap(raw[i]) for i in indices]
        index = operator.index(index)
        if index < 0:
            self._rx_track(LENGTH_KEY)
            index += len(raw)
        if index >= 0:
            self._rx_track(index)
        if not 0 <= index < len(raw):
            raise IndexError("list index out of range")
        return self._rx_wrap(raw[index])

    def get(self, index: int, default: Any = None) -> Any:
        """seq[index], or default when out of range. Tracks the same keys."""
        try:
            return self[index]
        except IndexError:
            return default

    def __len__(self) -> int:
        self._rx_track(LENGTH_KEY)
        return len(self._rx_target)

    @property
    def length(self) -> int:
        return len(self)

    @length.setter
    def length(self, value: int) -> None:
        if self._rx_readonly:
            self._rx_reject("length", value)
            return
        value = operator.index(value)
        if value < 0:
            raise ValueError("length must be non-negative")

        def resize(raw: list) -> None:
            if value < len(raw):
                del raw[value:]
            else:
                raw.extend([None] * (value - len(raw)))

        self._rx_mutate(resize)

    def __iter__(self) -> Iterator:
        return iter(self._rx_items())

    def __contains__(self, value: Any) -> bool:
        return value in self._rx_items() or to_raw(value) in self._rx_target

    def index(self, value: Any, start: int = 0, stop: int = sys.maxsize) -> int:
        try:
            return self._rx_items().index(value, start, stop)
        except ValueError:
            return self._rx_target.index(to_raw(value), start, stop)

    def count(self, value: Any) -> int:
        return self._rx_items().count(value) or self._rx_target.count(to_raw(value))

    def __eq__(self, other: object) -> bool:
        if isinstance(other, ReactiveList):
            other = other._rx_items()
        return self._rx_items() == other

    __hash__ = None

    def __add__(self, other: Iterable) -> list:
        return self._rx_items() + list(other)

    # --- Write operations (trigger) ---

    def _rx_mutate(self, op: Callable[[list], Any]) -> Any:
        """Apply op to the raw list untracked, then notify each affected effect once."""
        raw = self._rx_target
        engine = self._rx_engine
        with engine.untracked():
            old = list(raw)
            result = op(raw)
            effects = self._rx_changes(old)
        engine.run_effects(effects)
        return result

    def _rx_changes(self, old: list) -> list:
        raw = self._rx_target
        engine = self._rx_engine
        effects: dict = {}

        def collect(key, op, value=None):
            for effect in engine.collect(raw, key, op, value):
                effects[effect] = None

        for index in range(min(len(old), len(raw))):
            if has_changed(old[index], raw[index]):
                collect(index, TriggerOp.SET, raw[index])
        for index in range(len(old), len(raw)):
            collect(index, TriggerOp.ADD, raw[index])
        if len(raw) < len(old):
            collect(LENGTH_KEY, TriggerOp.SET, len(raw))
        return list(effects)

    @_mutator
    def __setitem__(self, index, value) -> None:
        raw = self._rx_target
        if isinstance(index, slice):
            items = [to_raw(item) for item in value]
            self._rx_mutate(lambda r: r.__setitem__(index, items))
            return
        index = operator.index(index)
        if index < 0:
            index += len(raw)
        if not 0 <= index < len(raw):
            raise IndexError("list assignment index out of range")
        value = to_raw(value)
        old = raw[index]
        raw[index] = value
        if has_changed(old, value):
            self._rx_trigger(index, TriggerOp.SET, value)

    @_mutator
    def __delitem__(self, index) -> None:
        self._rx_mutate(lambda raw: raw.__delitem__(index))

    @_mutator
    def insert(self, index: int, value: Any) -> None:
        value = to_raw(value)
        self._rx_mutate(lambda raw: raw.insert(index, value))

    @_mutator
    def append(self, value: Any) -> None:
        value = to_raw(value)
        self._rx_mutate(lambda raw: raw.append(value))

    @_mutator
    def extend(self, values: Iterable) -> None:
        self._rx_mutate(lambda raw: raw.extend([to_raw(v) for v in values]))

    @_mutator
    def pop(self, index: int = -1) -> Any:
        return self._rx_wrap(self._rx_mutate(lambda raw: raw.pop(index)))

    @_mutator
    def remove(self, value: Any) -> None:
        value = to_raw(value)
        self._rx_mutate(lambda raw: raw.remove(value))

    @_mutator
    def clear(self) -> None:
        self._rx_mutate(lambda raw: raw.clear())

    @_mutator
    def reverse(self) -> None:
        self._rx_mutate(lambda raw: raw.reverse())

    @_mutator
    def sort(self, *, key: Callable | None = None, reverse: bool = False) -> None:
        self._rx_mutate(lambda raw: raw.sort(key=key, reverse=reverse))

    def __iadd__(self, values: Iterable) -> ReactiveList:
        self.extend(values)
        return self

    def __repr__(self) -> str:
        return f"ReactiveList({self._rx_target!r})"


class ReactiveDict(ReactiveProxy, MutableMapping, target_type=dict):
    """An associative collection that tracks per-key and aggregate reads."""

    __slots__ = ()

    # --- Read operations (track) ---

    def __getitem__(self, key: Any) -> Any:
        self._rx_track(key)
        raw = self._rx_target
        if key not in raw:
            raise KeyError(key)
        return self._rx_wrap(raw[key])

    def __contains__(self, key: Any) -> bool:
        self._rx_track(key)
        return key in self._rx_target

    def __iter__(self) -> Iterator:
        self._rx_track(KEY_ITERATE_KEY)
        return iter(list(self._rx_target))

    def __len__(self) -> int:
        self._rx_track(ITERATE_KEY)
        return len(self._rx_target)

    def values(self) -> Iterator:
        self._rx_track(ITERATE_KEY)
        return (self._rx_wrap(value) for value in list(self._rx_target.values()))

    def items(self) -> Iterator:
        self._rx_track(ITERATE_KEY)
        return (
            (key, self._rx_wrap(value)) for key, value in list(self._rx_target.items())
        )

    def for_each(self, callback: Callable[[Any, Any, ReactiveDict], Any]) -> None:
        """Call callback(value, key, self) for every entry."""
        self._rx_track(ITERATE_KEY)
        for key, value in list(self._rx_target.items()):
            callback(self._rx_wrap(value), key, self)

    # --- Write operations (trigger) ---

    def _rx_store(self, key: Any, value: Any) -> tuple[TriggerOp, Any] | None:
        """Write raw; return the trigger the write calls for, if any."""
        raw = self._rx_target
        value = to_raw(value)
        had = key in raw
        old = raw.get(key)
        raw[key] = value
        if not had:
            return TriggerOp.ADD, value
        if has_changed(old, value):
            return TriggerOp.SET, value
        return None

    @_mutator
    def __setitem__(self, key: Any, value: Any) -> None:
        change = self._rx_store(key, value)
        if change is not None:
            self._rx_trigger(key, *change)

    @_mutator
    def __delitem__(self, key: Any) -> None:
        raw = self._rx_target
        if key not in raw:
            raise KeyError(key)
        del raw[key]
        self._rx_trigger(key, TriggerOp.DELETE)

    @_mutator
    def update(self, *args: Any, **kwargs: Any) -> None:
        engine = self._rx_engine
        raw = self._rx_target
        effects: dict = {}
        with engine.untracked():
            for key, value in dict(*args, **kwargs).items():
                change = self._rx_store(key, value)
                if change is not None:
                    for effect in engine.collect(raw, key, *change):
                        effects[effect] = None
        engine.run_effects(list(effects))

    @_mutator
    def clear(self) -> None:
        engine = self._rx_engine
        raw = self._rx_target
        keys = list(raw)
        raw.clear()
        effects: dict = {}
        for key in keys:
            for effect in engine.collect(raw, key, TriggerOp.DELETE):
                effects[effect] = None
        engine.run_effects(list(effects))

    def __repr__(self) -> str:
        return f"ReactiveDict({self._rx_target!r})"


class ReactiveSet(ReactiveProxy, MutableSet, target_type=set):
    """A distinct-value collection observed as a whole through ITERATE_KEY."""

    __slots__ = ()

    @classmethod
    def _from_iterable(cls, iterable: Iterable) -> set:
        return set(iterable)

    # --- Read operations (track) ---

    def __contains__(self, value: Any) -> bool:
        self._rx_track(ITERATE_KEY)
        return to_raw(value) in self._rx_target

    def __iter__(self) -> Iterator:
        self._rx_track(ITERATE_KEY)
        return iter([self._rx_wrap(value) for value in self._rx_target])

    def __len__(self) -> int:
        self._rx_track(ITERATE_KEY)
        return len(self._rx_target)

    def for_each(self, callback: Callable[[Any, Any, ReactiveSet], Any]) -> None:
        """Call callback(value, value, self) for every element."""
        self._rx_track(ITERATE_KEY)
        for value in list(self._rx_target):
            wrapped = self._rx_wrap(value)
            callback(wrapped, wrapped, self)

    # --- Write operations (trigger) ---

    @_mutator
    def add(self, value: Any) -> None:
        raw = self._rx_target
        value = to_raw(value)
        if value in raw:
            return
        raw.add(value)
        self._rx_trigger(ITERATE_KEY, TriggerOp.ADD)

    @_mutator
    def discard(self, value: Any) -> None:
        raw = self._rx_target
        value = to_raw(value)
        if value not in raw:
            return
        raw.discard(value)
        self._rx_trigger(ITERATE_KEY, TriggerOp.DELETE)

    @_mutator
    def update(self, *iterables: Iterable) -> None:
        raw = self._rx_target
        with self._rx_engine.untracked():
            before = len(raw)
            for iterable in iterables:
                raw.update(to_raw(value) for value in iterable)
        if len(raw) != before:
            self._rx_trigger(ITERATE_KEY, TriggerOp.ADD)

    @_mutator
    def clear(self) -> None:
        raw = self._rx_target
        if not raw:
            return
        raw.clear()
        self._rx_trigger(ITERATE_KEY, TriggerOp.DELETE)

    def __repr__(self) -> str:
        return f"ReactiveSet({self._rx_target!r})"
