"""
Shared pytest fixtures for the recommender test suite.

Provides:
  - ``make_task`` / ``make_context``: factories for domain records with
    sensible defaults, anchored at a fixed ``NOW``.
  - ``config``: default BanditConfig.
  - In-memory and instrumented model repositories.
"""

import asyncio
from datetime import datetime, timedelta

import pytest

from taskweave.config import BanditConfig
from taskweave.models.entities import ContextSnapshot, Task
from taskweave.services.repositories import InMemoryModelRepository

NOW = datetime(2024, 3, 12, 10, 0, 0)


def build_task(id="t1", **overrides) -> Task:
    fields = dict(
        title=f"Task {id}",
        category="Work",
        duration=30,
        energy="Medium",
        created_at=NOW - timedelta(days=1),
    )
    fields.update(overrides)
    return Task(id=id, **fields)


def build_context(tasks=None, energy=50.0, current_time=NOW, completed=None, tags=None) -> ContextSnapshot:
    tasks = list(tasks or [])
    return ContextSnapshot(
        current_time=current_time,
        energy=energy,
        available_minutes=60,
        tasks=tasks,
        tags=list(tags or []),
        completed_tasks=list(completed or []),
        backlog_count=len(tasks),
    )


class CountingRepository(InMemoryModelRepository):
    """In-memory repository that counts calls and yields to the loop on load."""

    def __init__(self, documents=None):
        super().__init__(documents)
        self.loads = 0
        self.saves = 0

    async def load(self, user_id):
        self.loads += 1
        await asyncio.sleep(0)
        return await super().load(user_id)

    async def save(self, user_id, document):
        self.saves += 1
        await super().save(user_id, document)


class FailingRepository(InMemoryModelRepository):
    async def load(self, user_id):
        raise ConnectionError("storage offline")

    async def save(self, user_id, document):
        raise ConnectionError("storage offline")


@pytest.fixture
def make_task():
    return build_task


@pytest.fixture
def make_context():
    return build_context


@pytest.fixture
def config() -> BanditConfig:
    return BanditConfig()


@pytest.fixture
def repository() -> CountingRepository:
    return CountingRepository()
