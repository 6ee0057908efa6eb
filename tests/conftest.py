# tests/conftest.py
from datetime import datetime, timezone

import pytest

from meetslot.core.config import get_settings


# 2024-01-15 is a Monday.
MONDAY = datetime(2024, 1, 15, tzinfo=timezone.utc)


def at(hour: int, minute: int = 0, day: datetime = MONDAY) -> datetime:
    return day.replace(hour=hour, minute=minute)


@pytest.fixture(autouse=True)
def _fresh_settings():
    """
    Settings are cached per process; make sure env changes made with
    monkeypatch in one test never leak into another.
    """
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
