"""ripplex: fine-grained reactive state and effect tracking for Python."""

from importlib.metadata import version as _version

__version__ = _version("ripplex")

from ripplex._anchor import ITERATE_KEY, KEY_ITERATE_KEY, LENGTH_KEY, TriggerOp
from ripplex._tracking import Engine, get_engine, set_engine
from ripplex.scheduler import JobQueue
from ripplex.effect import ReactiveEffect, effect
from ripplex.action import untracked, pause_tracking
from ripplex.reactive import (
    ReactiveProxy,
    ReactiveObject,
    reactive,
    shallow_reactive,
    readonly,
    shallow_readonly,
    has_changed,
    is_proxy,
    is_reactive,
    is_readonly,
    is_shallow,
    to_raw,
)
from ripplex.containers import ReactiveList, ReactiveDict, ReactiveSet
from ripplex.ref import Ref, ObjectRef, RefsProxy, ref, to_ref, to_refs, proxy_refs, is_ref, unref
from ripplex.computed import Computed, computed
from ripplex.watch import watch, WatchHandle, traverse
# ripplex.textual needs textual and is imported explicitly.

__all__ = [
    "Engine",
    "get_engine",
    "set_engine",
    "has_changed",
    "JobQueue",
    "TriggerOp",
    "ITERATE_KEY",
    "KEY_ITERATE_KEY",
    "LENGTH_KEY",
    "ReactiveEffect",
    "effect",
    "untracked",
    "pause_tracking",
    "ReactiveProxy",
    "ReactiveObject",
    "ReactiveList",
    "ReactiveDict",
    "ReactiveSet",
    "reactive",
    "shallow_reactive",
    "readonly",
    "shallow_readonly",
    "is_proxy",
    "is_reactive",
    "is_readonly",
    "is_shallow",
    "to_raw",
    "Ref",
    "ObjectRef",
    "RefsProxy",
    "ref",
    "to_ref",
    "to_refs",
    "proxy_refs",
    "is_ref",
    "unref",
    "Computed",
    "computed",
    "watch",
    "WatchHandle",
    "traverse",
]
