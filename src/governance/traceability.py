"""Traceability linker: symmetric link sets between artifact collections.

A link between two artifacts is stored on both sides. The field that holds
the ids on an entity is chosen by the *other* artifact's kind, see
``LINK_FIELDS``. Links never bump entity versions.

Functions here take a ``StoreState`` and return the collections they
changed (keyed by ``StoreState`` attribute) plus the ``EntityChange``
images needed to undo them. The caller swaps the collections in.
"""

import logging

from src.models.artifacts import Artifact
from src.models.common import ArtifactType
from src.models.state import COLLECTION_FIELDS, EntityChange, StoreState

logger = logging.getLogger(__name__)

# Artifact kind -> link-set attribute that holds ids of that kind.
LINK_FIELDS: dict[ArtifactType, str] = {
    ArtifactType.HAZARD: "linked_hazards",
    ArtifactType.FAULT_TREE: "linked_fault_trees",
    ArtifactType.GSN_NODE: "linked_gsn_nodes",
    ArtifactType.REQUIREMENT: "linked_requirements",
    ArtifactType.FMEA: "linked_fmea_items",
    ArtifactType.EVIDENCE: "linked_evidence",
}

_missing = set(ArtifactType) - LINK_FIELDS.keys()
if _missing:
    _msg = f"LINK_FIELDS is missing artifact kinds: {sorted(_missing)}"
    raise RuntimeError(_msg)
del _missing

CollectionUpdates = dict[str, dict[str, Artifact]]


def _check_kinds(source_type: ArtifactType, target_type: ArtifactType) -> None:
    if source_type == target_type:
        msg = f"Cannot link {source_type} artifacts to each other."
        raise ValueError(msg)


def _with_id(entity: Artifact, field: str, other_id: str) -> Artifact:
    current: tuple[str, ...] = getattr(entity, field)
    if other_id in current:
        return entity
    return entity.model_copy(update={field: (*current, other_id)})


def _without_id(entity: Artifact, field: str, other_id: str) -> Artifact:
    current: tuple[str, ...] = getattr(entity, field)
    if other_id not in current:
        return entity
    return entity.model_copy(update={field: tuple(i for i in current if i != other_id)})


def _record(
    state: StoreState,
    updates: CollectionUpdates,
    changes: list[EntityChange],
    kind: ArtifactType,
    old: Artifact,
    new: Artifact,
) -> None:
    if new is old:
        return
    attr = COLLECTION_FIELDS[kind]
    collection = updates.setdefault(attr, dict(getattr(state, attr)))
    collection[new.id] = new
    changes.append(
        EntityChange(
            artifact_type=kind,
            entity_id=new.id,
            before=old.model_dump(mode="json"),
            after=new.model_dump(mode="json"),
        )
    )


def _apply_both_sides(
    state: StoreState,
    source_type: ArtifactType,
    source_id: str,
    target_type: ArtifactType,
    target_id: str,
    *,
    adding: bool,
) -> tuple[CollectionUpdates, list[EntityChange]]:
    _check_kinds(source_type, target_type)
    edit = _with_id if adding else _without_id
    updates: CollectionUpdates = {}
    changes: list[EntityChange] = []

    sides = (
        (source_type, source_id, target_type, target_id),
        (target_type, target_id, source_type, source_id),
    )
    for kind, entity_id, other_kind, other_id in sides:
        entity = getattr(state, COLLECTION_FIELDS[kind]).get(entity_id)
        if entity is None:
            logger.debug("Link skipped: %s %s not found", kind, entity_id)
            continue
        _record(state, updates, changes, kind, entity, edit(entity, LINK_FIELDS[other_kind], other_id))

    return updates, changes


def link_artifacts(
    state: StoreState,
    source_type: ArtifactType,
    source_id: str,
    target_type: ArtifactType,
    target_id: str,
) -> tuple[CollectionUpdates, list[EntityChange]]:
    """Record a link on both sides; idempotent. Missing sides are skipped.

    Raises:
        ValueError: If both artifacts are of the same kind.
    """
    return _apply_both_sides(
        state, source_type, source_id, target_type, target_id, adding=True,
    )


def unlink_artifacts(
    state: StoreState,
    source_type: ArtifactType,
    source_id: str,
    target_type: ArtifactType,
    target_id: str,
) -> tuple[CollectionUpdates, list[EntityChange]]:
    """Remove a link from both sides; removing an absent link is a no-op."""
    return _apply_both_sides(
        state, source_type, source_id, target_type, target_id, adding=False,
    )


def strip_links(
    state: StoreState,
    artifact_type: ArtifactType,
    entity_id: str,
) -> tuple[CollectionUpdates, list[EntityChange]]:
    """Remove ``entity_id`` from every other artifact's link set.

    Used when an artifact is deleted so no link points at a missing id.
    """
    field = LINK_FIELDS[artifact_type]
    updates: CollectionUpdates = {}
    changes: list[EntityChange] = []
    for kind in ArtifactType:
        if kind == artifact_type:
            continue
        for entity in getattr(state, COLLECTION_FIELDS[kind]).values():
            _record(state, updates, changes, kind, entity, _without_id(entity, field, entity_id))
    return updates, changes
