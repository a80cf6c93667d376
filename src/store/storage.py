"""Key-value storage media and the snapshot persister.

Provides one abstract medium contract, ``KeyValueStorage`` (string keys,
string values), with two implementations:

- ``InMemoryKeyValueStorage`` for tests and ephemeral sessions.
- ``FileKeyValueStorage`` writing one ``<key>.json`` file per key under a
  root directory.

``SnapshotPersister`` binds a medium to one storage name and moves
``StoreState`` snapshots in and out of it through the codec.
"""

from __future__ import annotations

import logging
import os
import re
from abc import ABC, abstractmethod
from pathlib import Path

from src.models.state import StoreState
from src.store import codec
from src.store.errors import PersistenceError

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.-]+$")


# ---------------------------------------------------------------------------
# Media
# ---------------------------------------------------------------------------


class KeyValueStorage(ABC):
    """ABC for a string key-value medium."""

    @abstractmethod
    def get_item(self, key: str) -> str | None: ...

    @abstractmethod
    def set_item(self, key: str, value: str) -> None: ...

    @abstractmethod
    def remove_item(self, key: str) -> None: ...


class InMemoryKeyValueStorage(KeyValueStorage):
    """Dict-backed medium. Contents are lost with the process."""

    def __init__(self) -> None:
        self._items: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._items)


class FileKeyValueStorage(KeyValueStorage):
    """Filesystem medium: each key is stored as ``<root>/<key>.json``.

    Writes go to a temporary sibling file first and are moved into place,
    so a reader never sees a half-written value.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._root

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            msg = f"Invalid storage key: {key!r}."
            raise ValueError(msg)
        return self._root / f"{key}.json"

    def get_item(self, key: str) -> str | None:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            msg = f"Failed to read {path}: {exc}"
            raise PersistenceError(msg) from exc

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        try:
            tmp.write_text(value, encoding="utf-8")
            os.replace(tmp, path)
        except OSError as exc:
            msg = f"Failed to write {path}: {exc}"
            raise PersistenceError(msg) from exc

    def remove_item(self, key: str) -> None:
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            msg = f"Failed to remove {path}: {exc}"
            raise PersistenceError(msg) from exc


# ---------------------------------------------------------------------------
# Persister
# ---------------------------------------------------------------------------


class SnapshotPersister:
    """Save and load the store snapshot under one storage name."""

    def __init__(self, storage: KeyValueStorage, name: str) -> None:
        if not name:
            msg = "Storage name must not be empty."
            raise ValueError(msg)
        self._storage = storage
        self._name = name

    @property
    def name(self) -> str:
        return self._name

    @property
    def storage(self) -> KeyValueStorage:
        return self._storage

    def save(self, state: StoreState) -> None:
        """Encode and write ``state``.

        Raises:
            PersistenceError: If the medium rejects the write.
        """
        text = codec.dumps(state)
        try:
            self._storage.set_item(self._name, text)
        except PersistenceError:
            raise
        except Exception as exc:
            msg = f"Storage medium failed to save {self._name!r}: {exc}"
            raise PersistenceError(msg) from exc
        logger.debug("Persisted snapshot %s (%d bytes)", self._name, len(text))

    def load(self) -> StoreState | None:
        """Read and decode the saved snapshot, or ``None`` if nothing is saved.

        Raises:
            PersistenceError: If the medium fails to read.
            SnapshotFormatError: If the saved text cannot be decoded.
        """
        try:
            text = self._storage.get_item(self._name)
        except PersistenceError:
            raise
        except Exception as exc:
            msg = f"Storage medium failed to load {self._name!r}: {exc}"
            raise PersistenceError(msg) from exc
        if text is None:
            return None
        return codec.loads(text)

    def clear(self) -> None:
        self._storage.remove_item(self._name)
