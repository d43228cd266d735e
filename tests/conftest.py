"""Shared test fixtures and configuration.

Sets up fake environment variables before any src imports, and provides
common fixtures: a fake clock, a seeded household, a scheduler and a
temp state DB.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")
os.environ.setdefault("DATABASE_PATH", ":memory:")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

from datetime import datetime

import pytest

# Monday 2025-03-03, 06:59:00
MONDAY_MORNING = datetime(2025, 3, 3, 6, 59, 0)


@pytest.fixture
def fake_clock():
    """A FakeClock parked one minute before 07:00 on a Monday."""
    from src.ports.clock_port import FakeClock
    return FakeClock(MONDAY_MORNING)


@pytest.fixture
def household():
    """A household with two adults and one child."""
    from src.core.household import Household
    home = Household()
    home.add_person("Mom")
    home.add_person("Dad")
    home.add_person("Sam", is_adult=False)
    return home


@pytest.fixture
def scheduler(household, fake_clock):
    """A Scheduler over the seeded household, driven by the fake clock."""
    from src.core.scheduler import Scheduler
    return Scheduler(household, fake_clock)


@pytest.fixture
def state_db(tmp_path):
    """Return a StateDB instance backed by a temp file."""
    from src.data.db import StateDB
    return StateDB(db_path=str(tmp_path / "test_homesync.db"))
