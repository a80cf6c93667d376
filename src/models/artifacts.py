"""Safety artifact models: hazards, fault trees, GSN nodes, requirements, FMEA, evidence.

Each kind comes as a pair:

- ``<Kind>Draft``: caller-owned fields only, used for creation.
- ``<Kind>``: the tracked entity held by the store (id, version,
  timestamps, derived fields).

Relations between artifacts are stored as tuples of ids, never as object
references. Every kind carries one link set per *other* artifact kind.
"""

from typing import Any

from pydantic import Field, model_validator

from src.models.common import (
    DAL,
    ArtifactType,
    EvidenceStatus,
    EvidenceType,
    FaultTreeNodeType,
    FMEAActionStatus,
    GateType,
    GSNNodeStatus,
    GSNNodeType,
    HazardStatus,
    IdSet,
    LikelihoodLevel,
    RequirementStatus,
    RequirementType,
    RiskLevel,
    SafetyBase,
    SeverityLevel,
    UTCTimestamp,
    VerificationMethod,
)


# ---------------------------------------------------------------------------
# Shared pieces
# ---------------------------------------------------------------------------


class ChangeRecord(SafetyBase):
    """Immutable audit record for one field of one update.

    Values are kept in JSON-compatible form so the history reads the same
    before and after a persistence round trip.
    """

    field: str = Field(..., min_length=1)
    old_value: Any = None
    new_value: Any = None
    timestamp: UTCTimestamp
    changed_by: str = Field(..., min_length=1)


class TrackedArtifact(SafetyBase):
    """Store-assigned bookkeeping shared by every entity."""

    id: str = Field(..., min_length=1)
    version: int = Field(default=1, ge=1)
    created_at: UTCTimestamp
    updated_at: UTCTimestamp


class Auditable(SafetyBase):
    """Entities whose field-level updates are recorded."""

    change_history: tuple[ChangeRecord, ...] = ()


# ---------------------------------------------------------------------------
# Hazard
# ---------------------------------------------------------------------------


class HazardDraft(SafetyBase):
    title: str = Field(..., min_length=1, max_length=500)
    description: str = ""
    category: str | None = None
    tags: tuple[str, ...] = ()
    severity: SeverityLevel
    likelihood: LikelihoodLevel
    status: HazardStatus = HazardStatus.OPEN
    dal: DAL
    owner: str = ""
    mitigations: tuple[str, ...] = ()
    linked_requirements: IdSet = ()
    linked_fault_trees: IdSet = ()
    linked_gsn_nodes: IdSet = ()
    linked_fmea_items: IdSet = ()
    linked_evidence: IdSet = ()


class Hazard(TrackedArtifact, Auditable, HazardDraft):
    """Tracked hazard with risk fields derived from severity x likelihood."""

    risk_score: int
    risk_level: RiskLevel


# ---------------------------------------------------------------------------
# Fault tree
# ---------------------------------------------------------------------------


class FailureData(SafetyBase):
    """Reliability data of a fault-tree event.

    ``probability`` wins over ``failure_rate``/``exposure_time`` when both
    are given.
    """

    probability: float | None = Field(default=None, ge=0.0, le=1.0)
    failure_rate: float | None = Field(default=None, ge=0.0)
    exposure_time: float | None = Field(default=None, ge=0.0)
    source: str = ""


class FaultTreeNodeDraft(SafetyBase):
    label: str = Field(..., min_length=1)
    description: str = ""
    node_type: FaultTreeNodeType
    gate: GateType | None = None
    voting_threshold: int | None = Field(default=None, ge=1)
    children: IdSet = ()
    failure_data: FailureData | None = None
    transfer_ref: str | None = Field(default=None, description="Fault tree a transfer node continues in.")


class FaultTreeNode(FaultTreeNodeDraft):
    """Node of one fault tree. Nodes carry no version of their own."""

    id: str = Field(..., min_length=1)


class FaultTreeDraft(SafetyBase):
    name: str = Field(..., min_length=1, max_length=500)
    description: str = ""
    nodes: dict[str, FaultTreeNode] = Field(default_factory=dict)
    root_node_id: str | None = None
    linked_hazards: IdSet = ()
    linked_gsn_nodes: IdSet = ()
    linked_requirements: IdSet = ()
    linked_fmea_items: IdSet = ()
    linked_evidence: IdSet = ()

    @model_validator(mode="after")
    def _node_references_resolve(self) -> "FaultTreeDraft":
        for key, node in self.nodes.items():
            if key != node.id:
                msg = f"Node keyed {key!r} carries id {node.id!r}."
                raise ValueError(msg)
            missing = [c for c in node.children if c not in self.nodes]
            if missing:
                msg = f"Node {node.id} references unknown children {missing}."
                raise ValueError(msg)
        if self.root_node_id is not None and self.root_node_id not in self.nodes:
            msg = f"Root node {self.root_node_id} is not in the tree."
            raise ValueError(msg)
        return self


class FaultTree(TrackedArtifact, FaultTreeDraft):
    """Tracked fault tree. Node operations bump the tree's version."""


# ---------------------------------------------------------------------------
# GSN
# ---------------------------------------------------------------------------


class GSNNodeDraft(SafetyBase):
    node_type: GSNNodeType
    label: str = Field(..., min_length=1)
    description: str = ""
    status: GSNNodeStatus = GSNNodeStatus.NOT_STARTED
    supported_by: IdSet = ()
    in_context_of: IdSet = ()
    linked_hazards: IdSet = ()
    linked_fault_trees: IdSet = ()
    linked_requirements: IdSet = ()
    linked_fmea_items: IdSet = ()
    linked_evidence: IdSet = ()


class GSNNode(TrackedArtifact, GSNNodeDraft):
    """Tracked argument node."""


# ---------------------------------------------------------------------------
# Requirement
# ---------------------------------------------------------------------------


class RequirementDraft(SafetyBase):
    text: str = Field(..., min_length=1)
    rationale: str = ""
    requirement_type: RequirementType = RequirementType.SAFETY
    dal: DAL
    status: RequirementStatus = RequirementStatus.DRAFT
    verification_method: VerificationMethod = VerificationMethod.TEST
    parent_id: str | None = None
    linked_hazards: IdSet = ()
    linked_fault_trees: IdSet = ()
    linked_gsn_nodes: IdSet = ()
    linked_fmea_items: IdSet = ()
    linked_evidence: IdSet = ()


class Requirement(TrackedArtifact, Auditable, RequirementDraft):
    """Tracked requirement; ``parent_id``/``child_ids`` are mutual inverses."""

    child_ids: IdSet = ()

    @model_validator(mode="after")
    def _not_own_relative(self) -> "Requirement":
        if self.parent_id == self.id or self.id in self.child_ids:
            msg = f"Requirement {self.id} cannot be its own parent or child."
            raise ValueError(msg)
        return self


# ---------------------------------------------------------------------------
# FMEA
# ---------------------------------------------------------------------------


class FMEAItemDraft(SafetyBase):
    component: str = Field(..., min_length=1)
    function: str = ""
    failure_mode: str = Field(..., min_length=1)
    failure_mechanism: str = ""
    local_effect: str = ""
    system_effect: str = ""
    severity: int = Field(..., ge=1, le=10)
    occurrence: int = Field(..., ge=1, le=10)
    detection: int = Field(..., ge=1, le=10)
    current_controls: str = ""
    recommended_actions: str = ""
    action_owner: str = ""
    action_status: FMEAActionStatus = FMEAActionStatus.OPEN
    linked_hazards: IdSet = ()
    linked_fault_trees: IdSet = ()
    linked_gsn_nodes: IdSet = ()
    linked_requirements: IdSet = ()
    linked_evidence: IdSet = ()


class FMEAItem(TrackedArtifact, FMEAItemDraft):
    """Tracked FMEA row; ``rpn`` is severity x occurrence x detection."""

    rpn: int = Field(..., ge=1, le=1000)


# ---------------------------------------------------------------------------
# Evidence
# ---------------------------------------------------------------------------


class EvidenceDraft(SafetyBase):
    evidence_type: EvidenceType
    title: str = Field(..., min_length=1)
    description: str = ""
    location: str = ""
    status: EvidenceStatus = EvidenceStatus.DRAFT
    metadata: dict[str, str] = Field(default_factory=dict)
    valid_from: UTCTimestamp | None = None
    valid_until: UTCTimestamp | None = None
    linked_hazards: IdSet = ()
    linked_fault_trees: IdSet = ()
    linked_gsn_nodes: IdSet = ()
    linked_requirements: IdSet = ()
    linked_fmea_items: IdSet = ()


class Evidence(TrackedArtifact, EvidenceDraft):
    """Tracked evidence item."""


# ---------------------------------------------------------------------------
# Per-kind registries
# ---------------------------------------------------------------------------

Artifact = Hazard | FaultTree | GSNNode | Requirement | FMEAItem | Evidence

ARTIFACT_MODELS: dict[ArtifactType, type[TrackedArtifact]] = {
    ArtifactType.HAZARD: Hazard,
    ArtifactType.FAULT_TREE: FaultTree,
    ArtifactType.GSN_NODE: GSNNode,
    ArtifactType.REQUIREMENT: Requirement,
    ArtifactType.FMEA: FMEAItem,
    ArtifactType.EVIDENCE: Evidence,
}

ARTIFACT_PREFIXES: dict[ArtifactType, str] = {
    ArtifactType.HAZARD: "HAZ",
    ArtifactType.FAULT_TREE: "FT",
    ArtifactType.GSN_NODE: "GSN",
    ArtifactType.REQUIREMENT: "REQ",
    ArtifactType.FMEA: "FMEA",
    ArtifactType.EVIDENCE: "EV",
}

FAULT_TREE_NODE_PREFIX = "FTN"
