"""Persistence codec: ``StoreState`` <-> versioned JSON envelope.

Envelope shape::

    {"state": {"hazards": [[id, {...}], ...], "faultTrees": [...], ...,
               "selectedHazardId": ..., "filters": {...},
               "undoStack": [...], "redoStack": [...]},
     "version": 0}

Keyed collections (and each fault tree's ``nodes``) are written as lists of
``[id, entity]`` pairs. Keys are camelCase, datetimes ISO-8601 text.
"""

import json
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from src.models.common import ArtifactType
from src.models.state import COLLECTION_FIELDS, StoreState
from src.store.errors import SnapshotFormatError

FORMAT_VERSION = 0

_PAIRED_KEYS = tuple(
    StoreState.model_fields[attr].alias or attr for attr in COLLECTION_FIELDS.values()
)
_FAULT_TREES_KEY = StoreState.model_fields[COLLECTION_FIELDS[ArtifactType.FAULT_TREE]].alias
_NODES_KEY = "nodes"


def _to_pairs(mapping: dict[str, Any]) -> list[list[Any]]:
    return [[key, value] for key, value in mapping.items()]


def _from_pairs(pairs: Any, where: str) -> dict[str, Any]:
    if not isinstance(pairs, list):
        msg = f"{where}: expected a list of [id, entity] pairs."
        raise SnapshotFormatError(msg)
    result: dict[str, Any] = {}
    for pair in pairs:
        if not (isinstance(pair, list) and len(pair) == 2 and isinstance(pair[0], str)):
            msg = f"{where}: malformed pair {pair!r}."
            raise SnapshotFormatError(msg)
        result[pair[0]] = pair[1]
    return result


def encode_snapshot(state: StoreState) -> dict[str, Any]:
    """JSON-compatible envelope for ``state``."""
    data = state.model_dump(mode="json", by_alias=True)
    for tree in data[_FAULT_TREES_KEY].values():
        tree[_NODES_KEY] = _to_pairs(tree[_NODES_KEY])
    for key in _PAIRED_KEYS:
        data[key] = _to_pairs(data[key])
    return {"state": data, "version": FORMAT_VERSION}


def decode_snapshot(blob: Any) -> StoreState:
    """Rebuild a ``StoreState`` from an envelope produced by ``encode_snapshot``.

    Raises:
        SnapshotFormatError: On an unknown format version, a malformed
            envelope, or entities that fail validation.
    """
    if not isinstance(blob, Mapping):
        msg = "Snapshot envelope must be a JSON object."
        raise SnapshotFormatError(msg)
    version = blob.get("version")
    if version != FORMAT_VERSION:
        msg = f"Unsupported snapshot version: {version!r} (expected {FORMAT_VERSION})."
        raise SnapshotFormatError(msg)
    raw_state = blob.get("state")
    if not isinstance(raw_state, Mapping):
        msg = "Snapshot envelope has no 'state' object."
        raise SnapshotFormatError(msg)

    data = dict(raw_state)
    for key in _PAIRED_KEYS:
        if key in data:
            data[key] = _from_pairs(data[key], key)
    for tree_id, tree in data.get(_FAULT_TREES_KEY, {}).items():
        if isinstance(tree, Mapping) and _NODES_KEY in tree:
            tree = dict(tree)
            tree[_NODES_KEY] = _from_pairs(tree[_NODES_KEY], f"{_FAULT_TREES_KEY}[{tree_id}]")
            data[_FAULT_TREES_KEY][tree_id] = tree

    try:
        return StoreState.model_validate(data)
    except ValidationError as exc:
        msg = f"Snapshot does not describe a valid store state: {exc.error_count()} errors."
        raise SnapshotFormatError(msg) from exc


def dumps(state: StoreState) -> str:
    return json.dumps(encode_snapshot(state))


def loads(text: str | bytes) -> StoreState:
    """Parse JSON text and decode it.

    Raises:
        SnapshotFormatError: If the bytes cannot be decoded, or the text is not
            JSON or not a valid envelope.
    """
    try:
        blob = json.loads(text)
    except json.JSONDecodeError as exc:
        msg = f"Snapshot is not valid JSON: {exc.msg}."
        raise SnapshotFormatError(msg) from exc
    except UnicodeDecodeError as exc:
        msg = f"Snapshot bytes cannot be decoded: {exc.reason}."
        raise SnapshotFormatError(msg) from exc
    return decode_snapshot(blob)
