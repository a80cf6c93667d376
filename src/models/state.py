"""Store state models: the snapshot value, filters, and undo/redo actions."""

from typing import Any

from pydantic import Field, model_validator

from src.models.artifacts import (
    Evidence,
    FaultTree,
    FMEAItem,
    GSNNode,
    Hazard,
    Requirement,
)
from src.models.common import (
    DAL,
    ActionType,
    ArtifactType,
    HazardStatus,
    LikelihoodLevel,
    SafetyBase,
    SeverityLevel,
    UTCTimestamp,
    utc_now,
)


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------


class DateRange(SafetyBase):
    start: UTCTimestamp
    end: UTCTimestamp

    @model_validator(mode="after")
    def _end_ge_start(self) -> "DateRange":
        if self.end < self.start:
            msg = "end must be >= start"
            raise ValueError(msg)
        return self


class FilterState(SafetyBase):
    """Active hazard filters. Empty tuples / ``None`` mean "no constraint"."""

    hazard_severity: tuple[SeverityLevel, ...] = ()
    hazard_likelihood: tuple[LikelihoodLevel, ...] = ()
    hazard_status: tuple[HazardStatus, ...] = ()
    hazard_dal: tuple[DAL, ...] = ()
    hazard_owner: str | None = None
    hazard_category: str | None = None
    search_query: str | None = None
    tags: tuple[str, ...] = ()
    date_range: DateRange | None = None


# ---------------------------------------------------------------------------
# Undo/redo actions
# ---------------------------------------------------------------------------


class EntityChange(SafetyBase):
    """Before/after images of one entity touched by an action.

    Images are JSON-mode dumps of the entity; ``None`` means the entity did
    not exist on that side of the change.
    """

    artifact_type: ArtifactType
    entity_id: str
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None


class Action(SafetyBase):
    """One entry of the undo/redo log.

    ``changes`` is enough to reverse (apply ``before``) or replay (apply
    ``after``) the mutation. ``ui_before``/``ui_after`` hold selection and
    filter state for wholesale actions (import, clear-all).
    """

    action_type: ActionType
    changes: tuple[EntityChange, ...] = ()
    ui_before: dict[str, Any] | None = None
    ui_after: dict[str, Any] | None = None
    timestamp: UTCTimestamp = Field(default_factory=utc_now)


# ---------------------------------------------------------------------------
# Snapshot
# ---------------------------------------------------------------------------


class StoreState(SafetyBase):
    """Complete store snapshot.

    Never mutated: every store operation builds a new ``StoreState`` with new
    collection dicts, so a reader holding an older snapshot never observes a
    partial update.
    """

    hazards: dict[str, Hazard] = Field(default_factory=dict)
    fault_trees: dict[str, FaultTree] = Field(default_factory=dict)
    gsn_nodes: dict[str, GSNNode] = Field(default_factory=dict)
    requirements: dict[str, Requirement] = Field(default_factory=dict)
    fmea_items: dict[str, FMEAItem] = Field(default_factory=dict)
    evidence: dict[str, Evidence] = Field(default_factory=dict)
    selected_hazard_id: str | None = None
    selected_fault_tree_id: str | None = None
    filters: FilterState = Field(default_factory=FilterState)
    undo_stack: tuple[Action, ...] = ()
    redo_stack: tuple[Action, ...] = ()


class ImportPatch(SafetyBase):
    """Fields accepted by ``import_data``; anything else is rejected."""

    model_config = {"extra": "forbid"}

    hazards: dict[str, Hazard] | None = None
    fault_trees: dict[str, FaultTree] | None = None
    gsn_nodes: dict[str, GSNNode] | None = None
    requirements: dict[str, Requirement] | None = None
    fmea_items: dict[str, FMEAItem] | None = None
    evidence: dict[str, Evidence] | None = None
    selected_hazard_id: str | None = None
    selected_fault_tree_id: str | None = None
    filters: FilterState | None = None


# Artifact tag -> StoreState collection attribute.
COLLECTION_FIELDS: dict[ArtifactType, str] = {
    ArtifactType.HAZARD: "hazards",
    ArtifactType.FAULT_TREE: "fault_trees",
    ArtifactType.GSN_NODE: "gsn_nodes",
    ArtifactType.REQUIREMENT: "requirements",
    ArtifactType.FMEA: "fmea_items",
    ArtifactType.EVIDENCE: "evidence",
}

UI_FIELDS = ("selected_hazard_id", "selected_fault_tree_id", "filters")
