"""Data anchor — plain Python structures that hold all dependency state.

The store maps target -> key -> Dep, where a Dep is the insertion-ordered set
of effects that read that key. Entries are keyed by object identity. Targets
that support weak references are held weakly and their entry disappears with
them. Builtin containers (dict, list, set) cannot be weakly referenced, so
their entry holds them only while some effect is subscribed; the entry is
released as soon as its last Dep empties.
"""

from __future__ import annotations

import enum
import weakref
from typing import Any


class TriggerOp(enum.Enum):
    """Kind of write that caused a trigger."""

    SET = "set"
    ADD = "add"
    DELETE = "delete"


class _ReservedKey:
    """Sentinel dependency key. Never equal to any user key."""

    __slots__ = ("_name",)

    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:
        return f"<{self._name}>"


# Shape of a collection as seen by whole-collection enumeration.
ITERATE_KEY = _ReservedKey("ITERATE_KEY")
# Key-only enumeration of an associative collection.
KEY_ITERATE_KEY = _ReservedKey("KEY_ITERATE_KEY")
# Length of an ordered sequence.
LENGTH_KEY = _ReservedKey("LENGTH_KEY")


class Dep(dict):
    """Insertion-ordered set of effects subscribed to one (target, key)."""

    __slots__ = ("owner", "key")

    def __init__(self, owner: TargetDeps, key: Any) -> None:
        super().__init__()
        self.owner = owner
        self.key = key

    def add(self, effect) -> None:
        self[effect] = None

    def discard(self, effect) -> None:
        self.pop(effect, None)

    def __repr__(self) -> str:
        return f"Dep({self.key!r}, {len(self)} effect(s))"


class TargetDeps(dict):
    """key -> Dep for a single target."""

    __slots__ = ("target_id", "_ref")

    def __init__(self, target_id: int) -> None:
        super().__init__()
        self.target_id = target_id
        self._ref = None

    @property
    def target(self) -> Any:
        ref = self._ref
        if isinstance(ref, weakref.ref):
            return ref()
        return ref


class DependencyStore:
    """Weak-keyed mapping from target to its per-key Deps."""

    def __init__(self) -> None:
        self._entries: dict[int, TargetDeps] = {}

    def lookup(self, target: Any) -> TargetDeps | None:
        """Return the entry for target, or None if nothing depends on it."""
        entry = self._entries.get(id(target))
        if entry is None or entry.target is not target:
            return None
        return entry

    def dep(self, target: Any, key: Any) -> Dep:
        """Return the Dep for (target, key), creating the chain if needed."""
        entry = self.lookup(target)
        if entry is None:
            entry = TargetDeps(id(target))
            try:
                entry._ref = weakref.ref(
                    target, lambda _ref, e=entry: self._drop(e)
                )
            except TypeError:
                entry._ref = target
            self._entries[entry.target_id] = entry
        dep = entry.get(key)
        if dep is None:
            dep = entry[key] = Dep(entry, key)
        return dep

    def release(self, dep: Dep) -> None:
        """Forget an emptied Dep, and its target entry once that is empty too."""
        if dep:
            return
        entry = dep.owner
        if entry.get(dep.key) is dep:
            del entry[dep.key]
        if not entry:
            self._drop(entry)

    def _drop(self, entry: TargetDeps) -> None:
        if self._entries.get(entry.target_id) is entry:
            del self._entries[entry.target_id]

    def __contains__(self, target: Any) -> bool:
        return self.lookup(target) is not None

    def __len__(self) -> int:
        return len(self._entries)
