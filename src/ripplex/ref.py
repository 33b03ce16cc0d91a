"""Refs: boxes with a reactive ``.value``, and helpers that unwrap them.

A Ref boxes any single value, typically a primitive that can't be wrapped
itself. ``to_ref``/``to_refs`` make live refs onto keys of a reactive wrapper,
and ``proxy_refs`` turns a bag of refs back into something read and written
like plain values. Every ref type derives from RefBase, which is what
``is_ref`` checks.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any, Generic, Iterator, TypeVar

from ripplex._anchor import TriggerOp
from ripplex._tracking import resolve
from ripplex.reactive import create_proxy, has_changed, is_proxy, is_wrappable, to_raw

if TYPE_CHECKING:
    from ripplex._tracking import Engine

logger = logging.getLogger("ripplex.ref")

T = TypeVar("T")


class RefBase:
    """Marker base of every object exposing a reactive ``.value``."""

    __slots__ = ("__weakref__",)

    value: Any


class Ref(RefBase, Generic[T]):
    """A single reactive value. Container values are wrapped deeply on read."""

    __slots__ = ("_engine", "_raw")

    def __init__(self, engine: Engine, value: T) -> None:
        self._engine = engine
        self._raw = to_raw(value)

    @property
    def value(self) -> T:
        self._engine.track(self, "value")
        if is_wrappable(self._raw):
            return create_proxy(self._engine, self._raw)
        return self._raw

    @value.setter
    def value(self, new_value: T) -> None:
        new_value = to_raw(new_value)
        changed = has_changed(self._raw, new_value)
        self._raw = new_value
        if changed:
            self._engine.trigger(self, "value", TriggerOp.SET, new_value)

    def __repr__(self) -> str:
        return f"Ref({self._raw!r})"


class ObjectRef(RefBase):
    """A live view of ``obj[key]``; reads and writes go through obj."""

    __slots__ = ("_obj", "_key")

    def __init__(self, obj: Any, key: Any) -> None:
        self._obj = obj
        self._key = key

    @property
    def value(self) -> Any:
        return self._obj[self._key]

    @value.setter
    def value(self, new_value: Any) -> None:
        self._obj[self._key] = new_value

    def __repr__(self) -> str:
        return f"ObjectRef({self._key!r})"


def is_ref(value: Any) -> bool:
    return isinstance(value, RefBase)


def unref(value: Any) -> Any:
    """``value.value`` for refs; anything else unchanged."""
    return value.value if isinstance(value, RefBase) else value


def ref(value: T, *, engine: Engine | None = None) -> Ref[T]:
    """Box value in a reactive Ref.

    Usage:
        count = ref(0)
        effect(lambda: print(count.value))  # prints 0
        count.value += 1                     # prints 1
    """
    if isinstance(value, Ref):
        return value
    return Ref(resolve(engine), value)


def _peek(obj: Any, key: Any) -> Any:
    """Read obj[key] from the raw target, without tracking."""
    raw = to_raw(obj)
    try:
        if isinstance(raw, (Mapping, Sequence)):
            return raw[key]
        return getattr(raw, key)
    except (LookupError, AttributeError, TypeError):
        return None


def to_ref(obj: Any, key: Any) -> RefBase:
    """A ref bound to ``obj[key]``. Returns the existing ref if the key holds one."""
    current = _peek(obj, key)
    if isinstance(current, RefBase):
        return current
    return ObjectRef(obj, key)


def _keys(obj: Any) -> list:
    raw = to_raw(obj)
    if isinstance(raw, Mapping):
        return list(raw)
    if isinstance(raw, Sequence):
        return list(range(len(raw)))
    return list(getattr(raw, "__dict__", {}))


def to_refs(obj: Any) -> dict | list:
    """One ObjectRef per key of obj: a list for sequences, else a dict.

    Usage:
        state = reactive({"x": 1, "y": 2})
        refs = to_refs(state)
        refs["x"].value = 10   # writes state["x"]
    """
    if not is_proxy(obj):
        logger.warning("to_refs() expects a reactive object, got %s", type(obj).__name__)
    if isinstance(to_raw(obj), Sequence) and not isinstance(to_raw(obj), (str, bytes)):
        return [to_ref(obj, index) for index in _keys(obj)]
    return {key: to_ref(obj, key) for key in _keys(obj)}


class RefsProxy:
    """Reads unwrap refs; writes to a key holding a ref set its value.

    Mappings are exposed through both item and attribute access, other
    objects through attributes.
    """

    __slots__ = ("_target",)

    def __init__(self, target: Any) -> None:
        object.__setattr__(self, "_target", target)

    def _get(self, key: Any) -> Any:
        target = self._target
        if isinstance(target, Mapping):
            return target[key]
        try:
            return getattr(target, key)
        except AttributeError:
            raise KeyError(key) from None

    def _set(self, key: Any, value: Any) -> None:
        target = self._target
        try:
            current = self._get(key)
        except KeyError:
            current = None
        if isinstance(current, RefBase) and not isinstance(value, RefBase):
            current.value = value
        elif isinstance(target, Mapping):
            target[key] = value
        else:
            setattr(target, key, value)

    def __getitem__(self, key: Any) -> Any:
        return unref(self._get(key))

    def __setitem__(self, key: Any, value: Any) -> None:
        self._set(key, value)

    def __getattr__(self, name: str) -> Any:
        if name.startswith("__") and name.endswith("__"):
            raise AttributeError(name)
        try:
            return self[name]
        except KeyError:
            raise AttributeError(name) from None

    def __setattr__(self, name: str, value: Any) -> None:
        self._set(name, value)

    def __contains__(self, key: Any) -> bool:
        target = self._target
        if isinstance(target, Mapping):
            return key in target
        return hasattr(target, key)

    def __iter__(self) -> Iterator:
        return iter(self._target)

    def __len__(self) -> int:
        return len(self._target)

    def __repr__(self) -> str:
        return f"RefsProxy({self._target!r})"


def proxy_refs(obj: Any) -> RefsProxy:
    """Auto-unwrap the refs held in obj.

    Usage:
        state = reactive({"foo": 1})
        flat = proxy_refs(to_refs(state))
        flat.foo        # 1
        flat.foo = 2    # state["foo"] == 2
    """
    if isinstance(obj, RefsProxy):
        return obj
    return RefsProxy(obj)
