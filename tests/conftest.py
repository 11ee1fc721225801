"""
Shared pytest fixtures.

Every test starts from default settings: TONGSHU_* variables are removed
from the environment and the cached settings are reloaded.
"""

import os

import pytest

from tongshu.bazi import ChartRequest, compute_chart
from tongshu.config import get_settings, reload_settings


@pytest.fixture(autouse=True)
def default_settings(monkeypatch):
    for key in list(os.environ):
        if key.startswith("TONGSHU_"):
            monkeypatch.delenv(key, raising=False)
    yield reload_settings()
    get_settings.cache_clear()


@pytest.fixture(scope="session")
def sample_chart():
    """1990-05-15, hour slot 5 (Si), male, solar input."""
    return compute_chart(ChartRequest(1990, 5, 15, 5, "m"))
