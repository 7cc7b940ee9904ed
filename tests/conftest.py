"""Pytest configuration for all tests."""

import os
import sys
from typing import List

import pytest

# Add src directory to Python path for all tests
src_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), '..', 'src'))
if src_dir not in sys.path:
    sys.path.insert(0, src_dir)


class SleepRecorder:
    """Stands in for time.sleep and remembers every requested delay."""

    def __init__(self) -> None:
        self.calls: List[float] = []

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def clean_env(monkeypatch):
    """Remove NEXUS_STAGING_* variables leaking in from the environment."""
    for key in list(os.environ):
        if key.startswith("NEXUS_STAGING_"):
            monkeypatch.delenv(key, raising=False)
    return monkeypatch
