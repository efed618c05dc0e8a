"""
Shared pytest fixtures for rrkit tests.

This module provides common fixtures used across all test files, including:
- An isolated RRKIT_HOME per test (config.toml, logs, database)
- Time freezing utilities
- Database fixtures
- Sample rules and anchors
"""

import pytest
from datetime import datetime
from freezegun import freeze_time

from rrkit.rrkit_env import RrkitEnvironment
from rrkit.model import DatabaseManager
from rrkit.rule import Frequency, RecurrenceRule


@pytest.fixture(autouse=True)
def rrkit_home(tmp_path, monkeypatch):
    """
    Point RRKIT_HOME at a temporary directory so config files and
    log_msg output never land in the real home directory.
    """
    home = tmp_path / "rrkit-home"
    monkeypatch.setenv("RRKIT_HOME", str(home))
    monkeypatch.delenv("XDG_CONFIG_HOME", raising=False)
    return home


@pytest.fixture
def frozen_time():
    """
    Freezes time to 2024-01-01 08:00:00 for the duration of the test.

    Usage:
        def test_something(frozen_time):
            frozen_time.tick(delta=timedelta(days=2))
    """
    with freeze_time("2024-01-01 08:00:00") as frozen:
        yield frozen


@pytest.fixture
def freeze_at():
    """
    Returns a function that freezes time to a specific datetime.

    Usage:
        def test_something(freeze_at):
            with freeze_at("2025-01-15 10:00:00"):
                ...
    """
    return freeze_time


@pytest.fixture
def test_env():
    """
    Provides an RrkitEnvironment rooted in the temporary home.
    """
    env = RrkitEnvironment()
    env.ensure(init_config=True)
    return env


@pytest.fixture
def temp_db_path(tmp_path):
    """
    Provides a temporary database path that will be cleaned up after the test.
    """
    return tmp_path / "test_rrkit.db"


@pytest.fixture
def test_db(temp_db_path, test_env):
    """
    Provides a DatabaseManager with a fresh database.
    """
    dbm = DatabaseManager(str(temp_db_path), test_env, reset=True)
    yield dbm
    dbm.close()


@pytest.fixture
def anchor():
    """A one hour event on Monday 2024-01-01 at 09:00."""
    return datetime(2024, 1, 1, 9, 0), datetime(2024, 1, 1, 10, 0)


@pytest.fixture
def sample_rules():
    """
    Provides a dictionary of rules paired with their canonical text.

    Returns:
        dict: name -> (RecurrenceRule, serialized text)
    """
    return {
        "daily": (RecurrenceRule(Frequency.DAILY), "FREQ=DAILY"),
        "every_3_days_count": (
            RecurrenceRule(Frequency.DAILY, interval=3, count=10),
            "FREQ=DAILY;INTERVAL=3;COUNT=10",
        ),
        "weekly_mo_we_until": (
            RecurrenceRule(
                Frequency.WEEKLY, by_day=["MO", "WE"], until=datetime(2024, 1, 15).date()
            ),
            "FREQ=WEEKLY;BYDAY=MO,WE;UNTIL=20240115",
        ),
        "monthly_days": (
            RecurrenceRule(Frequency.MONTHLY, interval=2, by_month_day=[1, 15]),
            "FREQ=MONTHLY;INTERVAL=2;BYMONTHDAY=1,15",
        ),
        "yearly_months": (
            RecurrenceRule(Frequency.YEARLY, by_month=[3, 9], count=4),
            "FREQ=YEARLY;BYMONTH=3,9;COUNT=4",
        ),
        "everything": (
            RecurrenceRule(
                Frequency.WEEKLY,
                interval=2,
                by_day=["SA", "SU"],
                by_month_day=[31],
                by_month=[12],
                count=3,
            ),
            "FREQ=WEEKLY;INTERVAL=2;BYDAY=SA,SU;BYMONTHDAY=31;BYMONTH=12;COUNT=3",
        ),
    }


# Helper functions


def start_dates(instances):
    """The calendar days of a list of RecurrenceInstance, as ISO strings."""
    return [i.start.date().isoformat() for i in instances]
