"""Bounded undo/redo log over the immutable ``StoreState`` stacks.

Every action carries before/after entity images, so any action kind can be
reversed (apply ``before``) or replayed (apply ``after``). The log itself
holds no state; it maps one snapshot to the next.
"""

import logging
from typing import Any

from src.models.artifacts import ARTIFACT_MODELS
from src.models.state import (
    COLLECTION_FIELDS,
    Action,
    FilterState,
    StoreState,
)

logger = logging.getLogger(__name__)

DEFAULT_UNDO_LIMIT = 50


def _apply_ui(image: dict[str, Any]) -> dict[str, Any]:
    return {
        "selected_hazard_id": image.get("selected_hazard_id"),
        "selected_fault_tree_id": image.get("selected_fault_tree_id"),
        "filters": FilterState.model_validate(image.get("filters") or {}),
    }


def clear_dangling_selection(state: StoreState) -> StoreState:
    updates: dict[str, Any] = {}
    if state.selected_hazard_id is not None and state.selected_hazard_id not in state.hazards:
        updates["selected_hazard_id"] = None
    if (
        state.selected_fault_tree_id is not None
        and state.selected_fault_tree_id not in state.fault_trees
    ):
        updates["selected_fault_tree_id"] = None
    return state.model_copy(update=updates) if updates else state


def apply_action(state: StoreState, action: Action, *, reverse: bool) -> StoreState:
    """Write the action's before (``reverse``) or after images into ``state``.

    Changes are applied last-to-first when reversing so an entity touched
    more than once ends at its earliest image.
    """
    changes = reversed(action.changes) if reverse else action.changes
    collections: dict[str, dict] = {}
    for change in changes:
        attr = COLLECTION_FIELDS[change.artifact_type]
        collection = collections.setdefault(attr, dict(getattr(state, attr)))
        image = change.before if reverse else change.after
        if image is None:
            collection.pop(change.entity_id, None)
        else:
            model = ARTIFACT_MODELS[change.artifact_type]
            collection[change.entity_id] = model.model_validate(image)

    update: dict[str, Any] = dict(collections)
    ui_image = action.ui_before if reverse else action.ui_after
    if ui_image is not None:
        update.update(_apply_ui(ui_image))

    return clear_dangling_selection(state.model_copy(update=update))


class CommandLog:
    """Undo/redo stacks capped at ``limit`` actions (oldest dropped first)."""

    def __init__(self, limit: int = DEFAULT_UNDO_LIMIT) -> None:
        if limit < 1:
            msg = f"Undo limit must be at least 1 (got {limit})."
            raise ValueError(msg)
        self._limit = limit

    @property
    def limit(self) -> int:
        return self._limit

    def push(self, state: StoreState, action: Action) -> StoreState:
        """Append ``action`` and clear the redo stack."""
        undo_stack = (*state.undo_stack, action)[-self._limit:]
        return state.model_copy(update={"undo_stack": undo_stack, "redo_stack": ()})

    @staticmethod
    def can_undo(state: StoreState) -> bool:
        return bool(state.undo_stack)

    @staticmethod
    def can_redo(state: StoreState) -> bool:
        return bool(state.redo_stack)

    def undo(self, state: StoreState) -> StoreState:
        """Reverse the most recent action; no-op on an empty stack."""
        if not state.undo_stack:
            return state
        action = state.undo_stack[-1]
        restored = apply_action(state, action, reverse=True)
        logger.info("Undo %s (%d entity changes)", action.action_type, len(action.changes))
        return restored.model_copy(update={
            "undo_stack": state.undo_stack[:-1],
            "redo_stack": (*state.redo_stack, action),
        })

    def redo(self, state: StoreState) -> StoreState:
        """Replay the most recently undone action; no-op on an empty stack."""
        if not state.redo_stack:
            return state
        action = state.redo_stack[-1]
        replayed = apply_action(state, action, reverse=False)
        logger.info("Redo %s (%d entity changes)", action.action_type, len(action.changes))
        return replayed.model_copy(update={
            "undo_stack": (*state.undo_stack, action)[-self._limit:],
            "redo_stack": state.redo_stack[:-1],
        })
