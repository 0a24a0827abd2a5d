# tests/conftest.py

from __future__ import annotations

import pytest

from taskdeck.board import TaskBoard
from taskdeck.memory_store import MemoryTaskStore

from fakes import BASE_TIME, FakeTaskStore


@pytest.fixture()
def memory() -> MemoryTaskStore:
    return MemoryTaskStore(clock=lambda: BASE_TIME)


@pytest.fixture()
def store(memory: MemoryTaskStore) -> FakeTaskStore:
    return FakeTaskStore(memory)


@pytest.fixture()
def board(store: FakeTaskStore) -> TaskBoard:
    return TaskBoard(store, page_size=20)
