"""Shared fixtures: every test runs against its own engine."""

import pytest

from ripplex import Engine, set_engine


@pytest.fixture(autouse=True)
def engine():
    """Install a fresh Engine as the default for the duration of one test."""
    fresh = Engine()
    previous = set_engine(fresh)
    yield fresh
    set_engine(previous)
