"""Reactive wrappers — state that tracks its readers.

A wrapper sits in front of a plain target (an object, list, dict or set).
Reads through the wrapper register dependencies on the engine. Writes
through it update the target and trigger the effects that read what changed.
The target itself is never touched by the engine except through those writes.
Mutating it directly bypasses tracking entirely.

Each target has at most one live wrapper per variant and engine, so
``reactive(x) is reactive(x)``. Variants: deep (nested containers are
wrapped on read) or shallow; mutable or read-only. Read-only wrappers over a
plain target do not track. All read-only wrappers reject writes with a
logged warning instead of raising.

Collection wrappers live in ripplex.containers and register themselves here
through ``target_type=`` in their class statement. Any other object with an
instance ``__dict__`` is wrapped as a record by ReactiveObject.
"""

from __future__ import annotations

import enum
import inspect
import logging
import math
import types
from typing import TYPE_CHECKING, Any, Iterator, TypeVar

from ripplex._anchor import ITERATE_KEY, TriggerOp
from ripplex._tracking import resolve

if TYPE_CHECKING:
    from ripplex._tracking import Engine

logger = logging.getLogger("ripplex.reactive")

T = TypeVar("T")

_MISSING = object()

# target type -> wrapper class, filled by ReactiveProxy subclasses.
_proxy_types: dict[type, type[ReactiveProxy]] = {}


class ReactiveProxy:
    """Base of every wrapper. Holds the target and the wrapper's variant."""

    __slots__ = (
        "_rx_target", "_rx_engine", "_rx_shallow", "_rx_readonly", "_rx_tracked", "__weakref__"
    )

    def __init_subclass__(cls, target_type: type | None = None, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if target_type is not None:
            _proxy_types[target_type] = cls

    def __init__(
        self,
        engine: Engine,
        target: Any,
        *,
        shallow: bool = False,
        readonly: bool = False,
        tracked: bool | None = None,
    ) -> None:
        object.__setattr__(self, "_rx_target", target)
        object.__setattr__(self, "_rx_engine", engine)
        object.__setattr__(self, "_rx_shallow", shallow)
        object.__setattr__(self, "_rx_readonly", readonly)
        object.__setattr__(self, "_rx_tracked", not readonly if tracked is None else tracked)

    def _rx_raw(self) -> Any:
        """The wrapped target."""
        return self._rx_target

    def _rx_track(self, key: Any) -> None:
        if self._rx_tracked:
            self._rx_engine.track(self._rx_target, key)

    def _rx_trigger(self, key: Any, op: TriggerOp, new_value: Any = None) -> None:
        self._rx_engine.trigger(self._rx_target, key, op, new_value)

    def _rx_wrap(self, value: Any) -> Any:
        """Wrap a value read from the target according to this wrapper's variant."""
        if self._rx_shallow or not is_wrappable(value):
            return value
        return create_proxy(
            self._rx_engine, value, readonly=self._rx_readonly, tracked=self._rx_tracked
        )

    def _rx_reject(self, action: str, key: Any = None) -> None:
        logger.warning(
            "%s of %r on readonly %s ignored",
            action, key, type(self._rx_target).__name__,
        )


def _own(target: Any) -> dict:
    return getattr(target, "__dict__", {})


class ReactiveObject(ReactiveProxy):
    """Record wrapper: attributes are the tracked keys.

    Functions and properties defined on the target's class are bound to the
    wrapper, so reads and writes they perform on ``self`` are tracked too.
    The item protocol mirrors attribute access: ``obj["x"]`` is ``obj.x``.
    """

    __slots__ = ()

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_rx_") or (name.startswith("__") and name.endswith("__")):
            raise AttributeError(name)
        target = self._rx_target
        attr = inspect.getattr_static(type(target), name, _MISSING)
        if isinstance(attr, property):
            return attr.__get__(self, type(target))
        if isinstance(attr, types.FunctionType) and name not in _own(target):
            return types.MethodType(attr, self)
        self._rx_track(name)
        return self._rx_wrap(getattr(target, name))

    def __setattr__(self, name: str, value: Any) -> None:
        if self._rx_readonly:
            self._rx_reject("set", name)
            return
        target = self._rx_target
        attr = inspect.getattr_static(type(target), name, _MISSING)
        if isinstance(attr, property):
            attr.__set__(self, value)
            return
        value = to_raw(value)
        own = _own(target)
        had = name in own
        old = own.get(name)
        setattr(target, name, value)
        if not had:
            self._rx_trigger(name, TriggerOp.ADD, value)
        elif has_changed(old, value):
            self._rx_trigger(name, TriggerOp.SET, value)

    def __delattr__(self, name: str) -> None:
        if self._rx_readonly:
            self._rx_reject("delete", name)
            return
        had = name in _own(self._rx_target)
        delattr(self._rx_target, name)
        if had:
            self._rx_trigger(name, TriggerOp.DELETE)

    # --- Item protocol ---

    def __getitem__(self, key: str) -> Any:
        try:
            return getattr(self, key)
        except AttributeError:
            raise KeyError(key) from None

    def __setitem__(self, key: str, value: Any) -> None:
        setattr(self, key, value)

    def __delitem__(self, key: str) -> None:
        try:
            delattr(self, key)
        except AttributeError:
            raise KeyError(key) from None

    def __contains__(self, key: str) -> bool:
        self._rx_track(key)
        return hasattr(self._rx_target, key)

    def __iter__(self) -> Iterator[str]:
        self._rx_track(ITERATE_KEY)
        return iter(list(_own(self._rx_target)))

    def __len__(self) -> int:
        self._rx_track(ITERATE_KEY)
        return len(_own(self._rx_target))

    def __bool__(self) -> bool:
        return bool(self._rx_target)

    def __eq__(self, other: object) -> bool:
        return self._rx_target == to_raw(other)

    def __hash__(self) -> int:
        return hash(self._rx_target)

    def __dir__(self) -> list[str]:
        return dir(self._rx_target)

    def __repr__(self) -> str:
        return f"ReactiveObject({self._rx_target!r})"


# --- Factory ---

_NEVER_WRAPPED = (types.ModuleType, enum.Enum)


def _proxy_class(target: Any) -> type[ReactiveProxy] | None:
    for cls in type(target).__mro__:
        proxy_cls = _proxy_types.get(cls)
        if proxy_cls is not None:
            return proxy_cls
    if (
        hasattr(target, "__dict__")
        and not callable(target)
        and not isinstance(target, _NEVER_WRAPPED)
    ):
        return ReactiveObject
    return None


def is_wrappable(value: Any) -> bool:
    """Whether value is a target (or wrapper) reactive() can return a wrapper for."""
    return isinstance(value, ReactiveProxy) or _proxy_class(value) is not None


def _is_nan(value: Any) -> bool:
    return isinstance(value, float) and math.isnan(value)


def has_changed(old: Any, new: Any) -> bool:
    """Whether a write of new over old should notify readers.

    Containers and records compare by identity, so swapping in an equal copy
    still notifies effects that hold the old one. Other values compare by
    equality, and NaN equals NaN.
    """
    if old is new:
        return False
    if is_wrappable(old) or is_wrappable(new):
        return True
    if _is_nan(old) and _is_nan(new):
        return False
    return not bool(old == new)


def create_proxy(
    engine: Engine,
    target: T,
    *,
    shallow: bool = False,
    readonly: bool = False,
    tracked: bool | None = None,
) -> T:
    """Return the cached wrapper for target, creating it if needed.

    A read-only view of a mutable wrapper keeps tracking reads, so effects
    reading through readonly(reactive(x)) follow writes made through
    reactive(x).
    """
    if isinstance(target, ReactiveProxy):
        if target._rx_readonly or not readonly:
            return target
        tracked = target._rx_tracked
        target = target._rx_raw()
    if tracked is None:
        tracked = not readonly
    proxy_cls = _proxy_class(target)
    if proxy_cls is None:
        logger.warning("Value of type %s cannot be made reactive", type(target).__name__)
        return target
    cache = engine.proxy_cache(shallow, readonly, tracked)
    proxy = cache.get(id(target))
    if proxy is not None and proxy._rx_target is target:
        return proxy
    proxy = proxy_cls(engine, target, shallow=shallow, readonly=readonly, tracked=tracked)
    cache[id(target)] = proxy
    return proxy


def reactive(target: T, *, engine: Engine | None = None) -> T:
    """Deep, mutable wrapper for target.

    Dependencies are recorded against the target, not the wrapper, so a
    wrapper that was collected and recreated still reaches the same effects.

    Usage:
        state = reactive({"user": {"name": "Ada"}})
        effect(lambda: print(state["user"]["name"]))  # prints Ada
        state["user"]["name"] = "Grace"                 # prints Grace
    """
    return create_proxy(resolve(engine), target)


def shallow_reactive(target: T, *, engine: Engine | None = None) -> T:
    """Mutable wrapper that tracks only top-level keys."""
    return create_proxy(resolve(engine), target, shallow=True)


def readonly(target: T, *, engine: Engine | None = None) -> T:
    """Deep read-only wrapper. Writes are logged and ignored."""
    return create_proxy(resolve(engine), target, readonly=True)


def shallow_readonly(target: T, *, engine: Engine | None = None) -> T:
    """Read-only at the top level only. Nested values come back unwrapped."""
    return create_proxy(resolve(engine), target, shallow=True, readonly=True)


# --- Introspection ---


def is_proxy(value: Any) -> bool:
    return isinstance(value, ReactiveProxy)


def is_reactive(value: Any) -> bool:
    return isinstance(value, ReactiveProxy) and not value._rx_readonly


def is_readonly(value: Any) -> bool:
    return isinstance(value, ReactiveProxy) and value._rx_readonly


def is_shallow(value: Any) -> bool:
    return isinstance(value, ReactiveProxy) and value._rx_shallow


def to_raw(value: T) -> T:
    """The plain target behind any wrapper; other values pass through."""
    while isinstance(value, ReactiveProxy):
        value = value._rx_raw()
    return value
