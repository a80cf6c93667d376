"""Shared pytest fixtures for the safety store test suite.

Provides:
- settings: Settings isolated from the developer's environment
- storage: in-memory key-value medium
- persister: SnapshotPersister bound to ``storage``
- store: empty SafetyStore persisting into ``storage``
"""

import pytest

from src.config.settings import Settings
from src.store.safety_store import SafetyStore
from src.store.storage import InMemoryKeyValueStorage, SnapshotPersister


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with explicit values; STORAGE_PATH points at a temp dir."""
    return Settings(
        STORAGE_NAME="test-safety-storage",
        STORAGE_PATH=str(tmp_path / "store"),
        UNDO_LIMIT=50,
        CHANGE_ACTOR="tester",
        PERSIST_ON_MUTATION=True,
        _env_file=None,
    )


@pytest.fixture
def storage() -> InMemoryKeyValueStorage:
    return InMemoryKeyValueStorage()


@pytest.fixture
def persister(storage: InMemoryKeyValueStorage, settings: Settings) -> SnapshotPersister:
    return SnapshotPersister(storage, settings.STORAGE_NAME)


@pytest.fixture
def store(settings: Settings, persister: SnapshotPersister) -> SafetyStore:
    return SafetyStore(settings=settings, persister=persister)
