"""Shared fixtures."""

import pytest

from lessonplanner.services.plan_store import MemoryStorage, PlanStore


@pytest.fixture
def store() -> PlanStore:
    return PlanStore(MemoryStorage())
