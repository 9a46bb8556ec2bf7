# tests/conftest.py
import logging

import pytest

from triggerbrew.orchestrator.agent_store import AgentStore
from triggerbrew.orchestrator.database import Database
from triggerbrew.orchestrator.event_bus import EventBus
from triggerbrew.orchestrator.task_store import TaskStore


@pytest.fixture
async def db():
    """In-memory database with the schema created."""
    database = Database(":memory:")
    await database.initialize()
    yield database
    await database.close()


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def task_store(db, event_bus):
    return TaskStore(db, event_bus)


@pytest.fixture
def agent_store(db):
    return AgentStore(db)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep host environment overrides out of config parsing."""
    for name in ("TRIGGERBREW_DB_PATH", "TRIGGERBREW_RUNNER_URL", "LOG_LEVEL", "LOG_FORMAT"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """setup_logging() replaces root handlers; put pytest's back afterwards."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
