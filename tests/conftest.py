"""Shared fixtures for Hey India tests."""

from __future__ import annotations

import pytest

from fakes import Harness


@pytest.fixture
def harness():
    """Controller wired to fakes with short timers."""
    return Harness()
