"""Safety artifact store: CRUD over six collections, links, undo/redo.

The store holds exactly one ``StoreState``. Each mutation:

1. validates existence and input,
2. derives computed fields (risk score/level, RPN),
3. appends change records for auditable kinds,
4. builds a new snapshot with new collection dicts,
5. pushes one reversible ``Action`` and clears the redo log,
6. swaps the snapshot in and persists it.

A failure in steps 1-4 leaves the current snapshot untouched. Persistence
failures are logged and never roll back the in-memory change.
"""

import logging
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel

from src.config.settings import Settings, get_settings
from src.data.sample_data import build_sample_hazards
from src.engine.fault_tree import (
    CutSet,
    ImportanceMeasure,
    calculate_top_event_probability,
    importance_measures,
    minimal_cut_sets,
    validate_fault_tree,
)
from src.engine.risk import calculate_risk_score, calculate_rpn, is_valid_dal_decomposition
from src.governance.certification import validate_hazard_for_certification
from src.governance.change_history import ChangeHistoryRecorder
from src.governance.traceability import (
    LINK_FIELDS,
    CollectionUpdates,
    link_artifacts,
    strip_links,
    unlink_artifacts,
)
from src.models.artifacts import (
    ARTIFACT_MODELS,
    ARTIFACT_PREFIXES,
    FAULT_TREE_NODE_PREFIX,
    Artifact,
    Auditable,
    Evidence,
    EvidenceDraft,
    FaultTree,
    FaultTreeDraft,
    FaultTreeNode,
    FaultTreeNodeDraft,
    FMEAItem,
    FMEAItemDraft,
    GSNNode,
    GSNNodeDraft,
    Hazard,
    HazardDraft,
    Requirement,
    RequirementDraft,
)
from src.models.common import ActionType, ArtifactType, ValidationResult, new_artifact_id, utc_now
from src.models.state import (
    COLLECTION_FIELDS,
    Action,
    EntityChange,
    FilterState,
    ImportPatch,
    StoreState,
)
from src.store.command_log import CommandLog, clear_dangling_selection
from src.store.errors import ArtifactNotFoundError, PersistenceError, SnapshotFormatError
from src.store.storage import SnapshotPersister
from src.store.views import (
    HazardStats,
    LinkedArtifacts,
    TraceabilityReport,
    check_hazard_traceability,
    filter_hazards,
    get_traceability,
    hazard_stats,
)

logger = logging.getLogger(__name__)

_DRAFT_MODELS: dict[ArtifactType, type[BaseModel]] = {
    ArtifactType.HAZARD: HazardDraft,
    ArtifactType.FAULT_TREE: FaultTreeDraft,
    ArtifactType.GSN_NODE: GSNNodeDraft,
    ArtifactType.REQUIREMENT: RequirementDraft,
    ArtifactType.FMEA: FMEAItemDraft,
    ArtifactType.EVIDENCE: EvidenceDraft,
}

# kind -> (add, update, delete)
_ACTIONS: dict[ArtifactType, tuple[ActionType, ActionType, ActionType]] = {
    ArtifactType.HAZARD: (
        ActionType.ADD_HAZARD, ActionType.UPDATE_HAZARD, ActionType.DELETE_HAZARD,
    ),
    ArtifactType.FAULT_TREE: (
        ActionType.ADD_FAULT_TREE, ActionType.UPDATE_FAULT_TREE, ActionType.DELETE_FAULT_TREE,
    ),
    ArtifactType.GSN_NODE: (
        ActionType.ADD_GSN_NODE, ActionType.UPDATE_GSN_NODE, ActionType.DELETE_GSN_NODE,
    ),
    ArtifactType.REQUIREMENT: (
        ActionType.ADD_REQUIREMENT, ActionType.UPDATE_REQUIREMENT, ActionType.DELETE_REQUIREMENT,
    ),
    ArtifactType.FMEA: (
        ActionType.ADD_FMEA_ITEM, ActionType.UPDATE_FMEA_ITEM, ActionType.DELETE_FMEA_ITEM,
    ),
    ArtifactType.EVIDENCE: (
        ActionType.ADD_EVIDENCE, ActionType.UPDATE_EVIDENCE, ActionType.DELETE_EVIDENCE,
    ),
}

_KIND_LABELS: dict[ArtifactType, str] = {
    ArtifactType.HAZARD: "Hazard",
    ArtifactType.FAULT_TREE: "Fault tree",
    ArtifactType.GSN_NODE: "GSN node",
    ArtifactType.REQUIREMENT: "Requirement",
    ArtifactType.FMEA: "FMEA item",
    ArtifactType.EVIDENCE: "Evidence",
}


def _derive_hazard(draft: HazardDraft) -> dict[str, Any]:
    risk = calculate_risk_score(draft.severity, draft.likelihood)
    return {"risk_score": risk.score, "risk_level": risk.level}


def _derive_fmea(draft: FMEAItemDraft) -> dict[str, Any]:
    return {"rpn": calculate_rpn(draft.severity, draft.occurrence, draft.detection)}


_DERIVERS: dict[ArtifactType, Callable[[Any], dict[str, Any]]] = {
    ArtifactType.HAZARD: _derive_hazard,
    ArtifactType.FMEA: _derive_fmea,
}

_DERIVED_FIELDS: dict[ArtifactType, frozenset[str]] = {
    ArtifactType.HAZARD: frozenset({"risk_score", "risk_level"}),
    ArtifactType.FMEA: frozenset({"rpn"}),
}

_IMMUTABLE_FIELDS = frozenset({"id", "created_at"})
_SERVER_MANAGED_FIELDS = frozenset({"version", "updated_at", "change_history"})
_LINK_FIELD_NAMES = frozenset(LINK_FIELDS.values())


def _dump(entity: BaseModel | None) -> dict[str, Any] | None:
    return None if entity is None else entity.model_dump(mode="json")


def _ui_image(state: StoreState) -> dict[str, Any]:
    return {
        "selected_hazard_id": state.selected_hazard_id,
        "selected_fault_tree_id": state.selected_fault_tree_id,
        "filters": state.filters.model_dump(mode="json"),
    }


def _field_names(model: type[BaseModel], updates: Mapping[str, Any]) -> dict[str, Any]:
    """Normalise update keys to attribute names (camelCase aliases accepted).

    Raises:
        ValueError: On a key that is neither a field name nor an alias.
    """
    by_alias = {info.alias: name for name, info in model.model_fields.items() if info.alias}
    resolved: dict[str, Any] = {}
    for key, value in updates.items():
        name = key if key in model.model_fields else by_alias.get(key)
        if name is None:
            msg = f"Unknown field for {model.__name__}: {key!r}."
            raise ValueError(msg)
        resolved[name] = value
    return resolved


class _Mutation:
    """Accumulates entity writes against a working snapshot.

    Each write replaces the touched collection with a new dict and records
    the before/after images needed to reverse it.
    """

    def __init__(self, state: StoreState) -> None:
        self.state = state
        self.changes: list[EntityChange] = []

    def put(self, kind: ArtifactType, entity: Artifact) -> None:
        attr = COLLECTION_FIELDS[kind]
        collection = dict(getattr(self.state, attr))
        before = collection.get(entity.id)
        collection[entity.id] = entity
        self.state = self.state.model_copy(update={attr: collection})
        self.changes.append(EntityChange(
            artifact_type=kind, entity_id=entity.id, before=_dump(before), after=_dump(entity),
        ))

    def remove(self, kind: ArtifactType, entity_id: str) -> None:
        attr = COLLECTION_FIELDS[kind]
        collection = dict(getattr(self.state, attr))
        before = collection.pop(entity_id)
        self.state = self.state.model_copy(update={attr: collection})
        self.changes.append(EntityChange(
            artifact_type=kind, entity_id=entity_id, before=_dump(before), after=None,
        ))

    def merge(self, updates: CollectionUpdates, changes: list[EntityChange]) -> None:
        if updates:
            self.state = self.state.model_copy(update=updates)
        self.changes.extend(changes)

    def action(self, action_type: ActionType) -> Action:
        return Action(action_type=action_type, changes=tuple(self.changes))


class SafetyStore:
    """In-process store of safety artifacts.

    Construct once at application start (see ``src.bootstrap.create_store``)
    and pass it to collaborators. Reads return immutable values; the store
    is the only writer.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        persister: SnapshotPersister | None = None,
        state: StoreState | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._persister = persister
        self._log = CommandLog(self._settings.UNDO_LIMIT)
        self._recorder = ChangeHistoryRecorder(self._settings.CHANGE_ACTOR)
        self._state = state or StoreState()

    @classmethod
    def from_storage(
        cls,
        persister: SnapshotPersister,
        *,
        settings: Settings | None = None,
    ) -> "SafetyStore":
        """Rehydrate from the persisted snapshot, or start empty.

        An unreadable or undecodable snapshot is logged and ignored; it is
        overwritten by the next mutation.
        """
        state: StoreState | None = None
        try:
            state = persister.load()
        except (PersistenceError, SnapshotFormatError) as exc:
            logger.warning("Ignoring persisted snapshot %s: %s", persister.name, exc)
        if state is not None:
            logger.info(
                "Rehydrated snapshot %s (%d hazards, %d undo actions)",
                persister.name, len(state.hazards), len(state.undo_stack),
            )
        return cls(settings=settings, persister=persister, state=state)

    # ----- Snapshot plumbing -----

    @property
    def state(self) -> StoreState:
        return self._state

    def _persist(self) -> None:
        if self._persister is None or not self._settings.PERSIST_ON_MUTATION:
            return
        try:
            self._persister.save(self._state)
        except PersistenceError as exc:
            logger.warning("Snapshot not persisted, in-memory state kept: %s", exc)

    def _commit(self, state: StoreState, action: Action | None = None) -> None:
        if action is not None:
            state = self._log.push(state, action)
            logger.debug("%s (%d entity changes)", action.action_type, len(action.changes))
        self._state = state
        self._persist()

    def _collection(self, kind: ArtifactType) -> dict[str, Any]:
        return getattr(self._state, COLLECTION_FIELDS[kind])

    def _require(self, kind: ArtifactType, entity_id: str) -> Any:
        entity = self._collection(kind).get(entity_id)
        if entity is None:
            raise ArtifactNotFoundError(_KIND_LABELS[kind], entity_id)
        return entity

    @staticmethod
    def _fresh_id(prefix: str, taken: Mapping[str, Any]) -> str:
        entity_id = new_artifact_id(prefix)
        while entity_id in taken:
            entity_id = new_artifact_id(prefix)
        return entity_id

    # ----- Generic CRUD -----

    def _add(self, kind: ArtifactType, draft: BaseModel | Mapping[str, Any]) -> str:
        draft_model = _DRAFT_MODELS[kind]
        if not isinstance(draft, draft_model):
            draft = draft_model.model_validate(draft)

        entity_id = self._fresh_id(ARTIFACT_PREFIXES[kind], self._collection(kind))
        now = utc_now()
        data = {
            **draft.model_dump(),
            "id": entity_id,
            "version": 1,
            "created_at": now,
            "updated_at": now,
        }
        if kind in _DERIVERS:
            data.update(_DERIVERS[kind](draft))
        entity = ARTIFACT_MODELS[kind].model_validate(data)

        mutation = _Mutation(self._state)
        mutation.put(kind, entity)
        if kind == ArtifactType.REQUIREMENT and entity.parent_id is not None:
            parent = self._require(ArtifactType.REQUIREMENT, entity.parent_id)
            mutation.put(kind, parent.model_copy(
                update={"child_ids": (*parent.child_ids, entity_id)},
            ))

        self._commit(mutation.state, mutation.action(_ACTIONS[kind][0]))
        return entity_id

    def _update(self, kind: ArtifactType, entity_id: str, updates: Mapping[str, Any]) -> Any:
        existing = self._require(kind, entity_id)
        model = ARTIFACT_MODELS[kind]
        requested = _field_names(model, updates)

        immutable = sorted(_IMMUTABLE_FIELDS & requested.keys())
        if immutable:
            msg = f"Fields {immutable} of {_KIND_LABELS[kind]} {entity_id} are immutable."
            raise ValueError(msg)
        managed_links = sorted(_LINK_FIELD_NAMES & requested.keys())
        if managed_links:
            msg = f"Link sets {managed_links} are changed through link/unlink, not update."
            raise ValueError(msg)
        if kind == ArtifactType.REQUIREMENT and "child_ids" in requested:
            msg = "child_ids follows parent_id and cannot be updated directly."
            raise ValueError(msg)

        ignored = _SERVER_MANAGED_FIELDS | _DERIVED_FIELDS.get(kind, frozenset())
        effective = {k: v for k, v in requested.items() if k not in ignored}

        now = utc_now()
        data = {
            **existing.model_dump(),
            **effective,
            "version": existing.version + 1,
            "updated_at": now,
        }
        draft_model = _DRAFT_MODELS[kind]
        draft = draft_model.model_validate({name: data[name] for name in draft_model.model_fields})
        if kind in _DERIVERS:
            data.update(_DERIVERS[kind](draft))
        updated = model.model_validate(data)
        if isinstance(updated, Auditable):
            records = self._recorder.diff(existing, updated, effective.keys(), now)
            updated = self._recorder.append(updated, records)

        mutation = _Mutation(self._state)
        mutation.put(kind, updated)
        if kind == ArtifactType.REQUIREMENT and updated.parent_id != existing.parent_id:
            self._reparent(mutation, existing, updated.parent_id)

        self._commit(mutation.state, mutation.action(_ACTIONS[kind][1]))
        return updated

    def _delete(self, kind: ArtifactType, entity_id: str) -> None:
        existing = self._require(kind, entity_id)
        mutation = _Mutation(self._state)
        mutation.remove(kind, entity_id)
        mutation.merge(*strip_links(mutation.state, kind, entity_id))

        if kind == ArtifactType.GSN_NODE:
            for node in list(mutation.state.gsn_nodes.values()):
                if entity_id in node.supported_by or entity_id in node.in_context_of:
                    mutation.put(kind, node.model_copy(update={
                        "supported_by": tuple(i for i in node.supported_by if i != entity_id),
                        "in_context_of": tuple(i for i in node.in_context_of if i != entity_id),
                    }))
        elif kind == ArtifactType.REQUIREMENT:
            parent = mutation.state.requirements.get(existing.parent_id) if existing.parent_id else None
            if parent is not None:
                mutation.put(kind, parent.model_copy(update={
                    "child_ids": tuple(i for i in parent.child_ids if i != entity_id),
                }))
            for child_id in existing.child_ids:
                child = mutation.state.requirements.get(child_id)
                if child is not None:
                    mutation.put(kind, child.model_copy(update={"parent_id": None}))

        state = clear_dangling_selection(mutation.state)
        self._commit(state, mutation.action(_ACTIONS[kind][2]))

    # ----- Requirement hierarchy -----

    def _reparent(self, mutation: _Mutation, existing: Requirement, new_parent_id: str | None) -> None:
        requirements = mutation.state.requirements
        if new_parent_id is not None:
            if new_parent_id not in requirements:
                raise ArtifactNotFoundError("Requirement", new_parent_id)
            ancestor: str | None = new_parent_id
            while ancestor is not None:
                if ancestor == existing.id:
                    msg = f"Requirement {new_parent_id} is a descendant of {existing.id}; cannot re-parent."
                    raise ValueError(msg)
                parent = requirements.get(ancestor)
                ancestor = parent.parent_id if parent is not None else None

        if existing.parent_id is not None and existing.parent_id in requirements:
            old_parent = mutation.state.requirements[existing.parent_id]
            mutation.put(ArtifactType.REQUIREMENT, old_parent.model_copy(update={
                "child_ids": tuple(i for i in old_parent.child_ids if i != existing.id),
            }))
        if new_parent_id is not None:
            new_parent = mutation.state.requirements[new_parent_id]
            if existing.id not in new_parent.child_ids:
                mutation.put(ArtifactType.REQUIREMENT, new_parent.model_copy(update={
                    "child_ids": (*new_parent.child_ids, existing.id),
                }))

    # ----- Hazards -----

    @property
    def hazards(self) -> Mapping[str, Hazard]:
        return MappingProxyType(self._state.hazards)

    def add_hazard(self, draft: HazardDraft | Mapping[str, Any]) -> str:
        """Create a hazard; risk score and level derive from the matrix."""
        return self._add(ArtifactType.HAZARD, draft)

    def update_hazard(self, hazard_id: str, updates: Mapping[str, Any]) -> Hazard:
        """Apply a partial update, recording one change record per field.

        Raises:
            ArtifactNotFoundError: If the hazard does not exist.
            ValueError: On unknown or immutable fields.
        """
        return self._update(ArtifactType.HAZARD, hazard_id, updates)

    def delete_hazard(self, hazard_id: str) -> None:
        self._delete(ArtifactType.HAZARD, hazard_id)

    def get_hazard(self, hazard_id: str) -> Hazard | None:
        return self._state.hazards.get(hazard_id)

    # ----- Fault trees -----

    @property
    def fault_trees(self) -> Mapping[str, FaultTree]:
        return MappingProxyType(self._state.fault_trees)

    def add_fault_tree(self, draft: FaultTreeDraft | Mapping[str, Any]) -> str:
        return self._add(ArtifactType.FAULT_TREE, draft)

    def update_fault_tree(self, tree_id: str, updates: Mapping[str, Any]) -> FaultTree:
        return self._update(ArtifactType.FAULT_TREE, tree_id, updates)

    def delete_fault_tree(self, tree_id: str) -> None:
        self._delete(ArtifactType.FAULT_TREE, tree_id)

    def get_fault_tree(self, tree_id: str) -> FaultTree | None:
        return self._state.fault_trees.get(tree_id)

    def _replace_tree(
        self,
        tree: FaultTree,
        nodes: dict[str, FaultTreeNode],
        root_node_id: str | None,
        action_type: ActionType,
    ) -> FaultTree:
        updated = FaultTree.model_validate({
            **tree.model_dump(),
            "nodes": nodes,
            "root_node_id": root_node_id,
            "version": tree.version + 1,
            "updated_at": utc_now(),
        })
        mutation = _Mutation(self._state)
        mutation.put(ArtifactType.FAULT_TREE, updated)
        self._commit(mutation.state, mutation.action(action_type))
        return updated

    def _require_node(self, tree: FaultTree, node_id: str) -> FaultTreeNode:
        node = tree.nodes.get(node_id)
        if node is None:
            raise ArtifactNotFoundError(f"Fault tree node (tree {tree.id})", node_id)
        return node

    def add_fault_tree_node(
        self,
        tree_id: str,
        parent_id: str | None,
        draft: FaultTreeNodeDraft | Mapping[str, Any],
    ) -> str:
        """Add a node under ``parent_id``, or as the new root when ``None``.

        A replaced root stays in the tree's node map.

        Raises:
            ArtifactNotFoundError: If the tree or the parent node is unknown.
        """
        tree: FaultTree = self._require(ArtifactType.FAULT_TREE, tree_id)
        if not isinstance(draft, FaultTreeNodeDraft):
            draft = FaultTreeNodeDraft.model_validate(draft)
        if parent_id is not None:
            self._require_node(tree, parent_id)

        node_id = self._fresh_id(FAULT_TREE_NODE_PREFIX, tree.nodes)
        nodes = dict(tree.nodes)
        nodes[node_id] = FaultTreeNode(**draft.model_dump(), id=node_id)
        if parent_id is not None:
            parent = nodes[parent_id]
            nodes[parent_id] = parent.model_copy(update={"children": (*parent.children, node_id)})
        root = tree.root_node_id if parent_id is not None else node_id

        self._replace_tree(tree, nodes, root, ActionType.ADD_FAULT_TREE_NODE)
        return node_id

    def update_fault_tree_node(
        self,
        tree_id: str,
        node_id: str,
        updates: Mapping[str, Any],
    ) -> FaultTreeNode:
        tree: FaultTree = self._require(ArtifactType.FAULT_TREE, tree_id)
        node = self._require_node(tree, node_id)
        requested = _field_names(FaultTreeNode, updates)
        if "id" in requested:
            msg = f"Fault tree node {node_id} id is immutable."
            raise ValueError(msg)

        updated_node = FaultTreeNode.model_validate({**node.model_dump(), **requested})
        nodes = dict(tree.nodes)
        nodes[node_id] = updated_node
        self._replace_tree(tree, nodes, tree.root_node_id, ActionType.UPDATE_FAULT_TREE_NODE)
        return updated_node

    def delete_fault_tree_node(self, tree_id: str, node_id: str) -> None:
        """Remove a node and every reference to it; its children stay in the tree."""
        tree: FaultTree = self._require(ArtifactType.FAULT_TREE, tree_id)
        self._require_node(tree, node_id)

        nodes: dict[str, FaultTreeNode] = {}
        for other_id, other in tree.nodes.items():
            if other_id == node_id:
                continue
            if node_id in other.children:
                other = other.model_copy(
                    update={"children": tuple(c for c in other.children if c != node_id)},
                )
            nodes[other_id] = other
        root = None if tree.root_node_id == node_id else tree.root_node_id
        self._replace_tree(tree, nodes, root, ActionType.DELETE_FAULT_TREE_NODE)

    # ----- GSN -----

    @property
    def gsn_nodes(self) -> Mapping[str, GSNNode]:
        return MappingProxyType(self._state.gsn_nodes)

    def add_gsn_node(self, draft: GSNNodeDraft | Mapping[str, Any]) -> str:
        return self._add(ArtifactType.GSN_NODE, draft)

    def update_gsn_node(self, node_id: str, updates: Mapping[str, Any]) -> GSNNode:
        return self._update(ArtifactType.GSN_NODE, node_id, updates)

    def delete_gsn_node(self, node_id: str) -> None:
        """Delete a node and strip it from every ``supported_by``/``in_context_of``."""
        self._delete(ArtifactType.GSN_NODE, node_id)

    def get_gsn_node(self, node_id: str) -> GSNNode | None:
        return self._state.gsn_nodes.get(node_id)

    # ----- Requirements -----

    @property
    def requirements(self) -> Mapping[str, Requirement]:
        return MappingProxyType(self._state.requirements)

    def add_requirement(self, draft: RequirementDraft | Mapping[str, Any]) -> str:
        """Create a requirement, attaching it to ``parent_id`` when given.

        Raises:
            ArtifactNotFoundError: If the parent requirement does not exist.
        """
        return self._add(ArtifactType.REQUIREMENT, draft)

    def update_requirement(self, requirement_id: str, updates: Mapping[str, Any]) -> Requirement:
        """Apply a partial update; a new ``parent_id`` re-parents the requirement.

        Raises:
            ArtifactNotFoundError: If the requirement or new parent does not exist.
            ValueError: On unknown/immutable fields, ``child_ids``, or a
                parent that is the requirement itself or one of its descendants.
        """
        return self._update(ArtifactType.REQUIREMENT, requirement_id, updates)

    def delete_requirement(self, requirement_id: str) -> None:
        """Delete a requirement; its children are orphaned, not deleted."""
        self._delete(ArtifactType.REQUIREMENT, requirement_id)

    def get_requirement(self, requirement_id: str) -> Requirement | None:
        return self._state.requirements.get(requirement_id)

    # ----- FMEA -----

    @property
    def fmea_items(self) -> Mapping[str, FMEAItem]:
        return MappingProxyType(self._state.fmea_items)

    def add_fmea_item(self, draft: FMEAItemDraft | Mapping[str, Any]) -> str:
        return self._add(ArtifactType.FMEA, draft)

    def update_fmea_item(self, item_id: str, updates: Mapping[str, Any]) -> FMEAItem:
        """Apply a partial update; ``rpn`` is recomputed from the ratings."""
        return self._update(ArtifactType.FMEA, item_id, updates)

    def delete_fmea_item(self, item_id: str) -> None:
        self._delete(ArtifactType.FMEA, item_id)

    def get_fmea_item(self, item_id: str) -> FMEAItem | None:
        return self._state.fmea_items.get(item_id)

    # ----- Evidence -----

    @property
    def evidence(self) -> Mapping[str, Evidence]:
        return MappingProxyType(self._state.evidence)

    def add_evidence(self, draft: EvidenceDraft | Mapping[str, Any]) -> str:
        return self._add(ArtifactType.EVIDENCE, draft)

    def update_evidence(self, evidence_id: str, updates: Mapping[str, Any]) -> Evidence:
        return self._update(ArtifactType.EVIDENCE, evidence_id, updates)

    def delete_evidence(self, evidence_id: str) -> None:
        self._delete(ArtifactType.EVIDENCE, evidence_id)

    def get_evidence(self, evidence_id: str) -> Evidence | None:
        return self._state.evidence.get(evidence_id)

    # ----- Linking -----

    def link(
        self,
        source_type: ArtifactType,
        source_id: str,
        target_type: ArtifactType,
        target_id: str,
    ) -> None:
        """Link two artifacts on both sides. Missing artifacts are skipped.

        A call that changes nothing leaves the undo and redo logs untouched.

        Raises:
            ValueError: If both artifacts are of the same kind.
        """
        updates, changes = link_artifacts(self._state, source_type, source_id, target_type, target_id)
        if not changes:
            logger.debug("Link %s %s -> %s %s changed nothing", source_type, source_id, target_type, target_id)
            return
        mutation = _Mutation(self._state)
        mutation.merge(updates, changes)
        self._commit(mutation.state, mutation.action(ActionType.LINK_ARTIFACTS))

    def unlink(
        self,
        source_type: ArtifactType,
        source_id: str,
        target_type: ArtifactType,
        target_id: str,
    ) -> None:
        updates, changes = unlink_artifacts(self._state, source_type, source_id, target_type, target_id)
        if not changes:
            logger.debug("Unlink %s %s -> %s %s changed nothing", source_type, source_id, target_type, target_id)
            return
        mutation = _Mutation(self._state)
        mutation.merge(updates, changes)
        self._commit(mutation.state, mutation.action(ActionType.UNLINK_ARTIFACTS))

    # ----- Filters and selection (persisted, not undoable) -----

    def set_filters(self, partial: FilterState | Mapping[str, Any]) -> FilterState:
        """Merge the given filter fields into the active filters."""
        patch = partial if isinstance(partial, FilterState) else FilterState.model_validate(partial)
        merged = self._state.filters.model_copy(
            update={name: getattr(patch, name) for name in patch.model_fields_set},
        )
        self._commit(self._state.model_copy(update={"filters": merged}))
        return merged

    def clear_filters(self) -> None:
        self._commit(self._state.model_copy(update={"filters": FilterState()}))

    def select_hazard(self, hazard_id: str | None) -> None:
        if hazard_id is not None:
            self._require(ArtifactType.HAZARD, hazard_id)
        self._commit(self._state.model_copy(update={"selected_hazard_id": hazard_id}))

    def select_fault_tree(self, tree_id: str | None) -> None:
        if tree_id is not None:
            self._require(ArtifactType.FAULT_TREE, tree_id)
        self._commit(self._state.model_copy(update={"selected_fault_tree_id": tree_id}))

    # ----- Undo/redo -----

    def can_undo(self) -> bool:
        return self._log.can_undo(self._state)

    def can_redo(self) -> bool:
        return self._log.can_redo(self._state)

    def undo(self) -> None:
        """Reverse the most recent action; no-op when there is none."""
        if not self.can_undo():
            return
        self._commit(self._log.undo(self._state))

    def redo(self) -> None:
        """Replay the most recently undone action; no-op when there is none."""
        if not self.can_redo():
            return
        self._commit(self._log.redo(self._state))

    # ----- Bulk operations -----

    def import_data(self, partial: ImportPatch | Mapping[str, Any]) -> None:
        """Replace the given collections/selection/filters wholesale.

        Recorded as one IMPORT_DATA action holding entity-level images and
        the selection/filter state on both sides.

        Raises:
            pydantic.ValidationError: On unknown keys or invalid entities.
            ValueError: If an entity is keyed under a different id.
        """
        patch = partial if isinstance(partial, ImportPatch) else ImportPatch.model_validate(partial)
        before = self._state
        mutation = _Mutation(before)
        ui_update: dict[str, Any] = {}

        for kind, attr in COLLECTION_FIELDS.items():
            if attr not in patch.model_fields_set:
                continue
            incoming: dict[str, Any] = getattr(patch, attr) or {}
            for key, entity in incoming.items():
                if key != entity.id:
                    msg = f"{_KIND_LABELS[kind]} keyed {key!r} carries id {entity.id!r}."
                    raise ValueError(msg)
            current: dict[str, Any] = getattr(before, attr)
            for entity_id in current.keys() - incoming.keys():
                mutation.remove(kind, entity_id)
            for entity in incoming.values():
                if current.get(entity.id) != entity:
                    mutation.put(kind, entity)

        for name in ("selected_hazard_id", "selected_fault_tree_id"):
            if name in patch.model_fields_set:
                ui_update[name] = getattr(patch, name)
        if "filters" in patch.model_fields_set:
            ui_update["filters"] = patch.filters or FilterState()

        after = clear_dangling_selection(mutation.state.model_copy(update=ui_update))
        action = mutation.action(ActionType.IMPORT_DATA).model_copy(
            update={"ui_before": _ui_image(before), "ui_after": _ui_image(after)},
        )
        logger.info("Imported %s", sorted(patch.model_fields_set))
        self._commit(after, action)

    def export_data(self) -> StoreState:
        """The full current snapshot (immutable, safe to hand out)."""
        return self._state

    def clear_all(self) -> None:
        """Reset to the empty state; the undo log holds only this action."""
        before = self._state
        changes = tuple(
            EntityChange(artifact_type=kind, entity_id=entity_id, before=_dump(entity), after=None)
            for kind, attr in COLLECTION_FIELDS.items()
            for entity_id, entity in getattr(before, attr).items()
        )
        empty = StoreState()
        action = Action(
            action_type=ActionType.CLEAR_ALL,
            changes=changes,
            ui_before=_ui_image(before),
            ui_after=_ui_image(empty),
        )
        logger.info("Cleared store (%d entities)", len(changes))
        self._commit(empty.model_copy(update={"undo_stack": (action,)}))

    def load_sample_data(self) -> None:
        """Replace everything with the sample hazards; both logs are emptied."""
        logger.info("Loading sample hazards")
        self._commit(StoreState(hazards=build_sample_hazards()))

    # ----- Derived views -----

    def filtered_hazards(self) -> list[Hazard]:
        return filter_hazards(self._state.hazards.values(), self._state.filters)

    def traceability(self, artifact_type: ArtifactType, artifact_id: str) -> LinkedArtifacts:
        return get_traceability(self._state, artifact_type, artifact_id)

    def hazard_traceability_report(self, hazard_id: str) -> TraceabilityReport:
        return check_hazard_traceability(self._state, hazard_id)

    def hazard_stats(self) -> HazardStats:
        return hazard_stats(self._state.hazards)

    def top_event_probability(self, tree_id: str) -> float:
        """Top-event probability of a stored fault tree.

        Raises:
            ArtifactNotFoundError: If the tree does not exist.
            ValueError: If the tree has no root or contains a cycle.
        """
        return calculate_top_event_probability(self._require(ArtifactType.FAULT_TREE, tree_id))

    def cut_sets(self, tree_id: str) -> list[CutSet]:
        return minimal_cut_sets(self._require(ArtifactType.FAULT_TREE, tree_id))

    def importance_measures(self, tree_id: str) -> list[ImportanceMeasure]:
        """Basic-event importance of a stored fault tree, most important first.

        Raises:
            ArtifactNotFoundError: If the tree does not exist.
            ValueError: If the tree has no root, has a cycle, or uses a NOT gate.
        """
        return importance_measures(self._require(ArtifactType.FAULT_TREE, tree_id))

    def validate_fault_tree(self, tree_id: str) -> ValidationResult:
        return validate_fault_tree(self._require(ArtifactType.FAULT_TREE, tree_id))

    def validate_hazard_for_certification(self, hazard_id: str) -> ValidationResult:
        return validate_hazard_for_certification(self._require(ArtifactType.HAZARD, hazard_id))

    def dal_decomposition_valid(self, requirement_id: str) -> bool:
        """Whether a requirement's children may implement its DAL redundantly.

        Raises:
            ArtifactNotFoundError: If the requirement does not exist.
        """
        parent = self._require(ArtifactType.REQUIREMENT, requirement_id)
        child_dals = [self._state.requirements[child_id].dal for child_id in parent.child_ids]
        return is_valid_dal_decomposition(parent.dal, child_dals)
