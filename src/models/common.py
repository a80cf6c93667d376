"""Shared types, enums, and base models used across the safety artifact models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field
from pydantic.alias_generators import to_camel
from uuid_extensions import uuid7


def utc_now() -> datetime:
    """Return the current UTC timestamp (timezone-aware)."""
    return datetime.now(tz=timezone.utc)


def new_artifact_id(prefix: str) -> str:
    """Generate a prefixed, time-sortable identifier, e.g. ``HAZ-0192F...``."""
    return f"{prefix}-{uuid7().hex.upper()}"


# --- Reusable annotated types ---


def as_utc(value: datetime) -> datetime:
    """Normalise to UTC. Offset-free values are read as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UTCTimestamp = Annotated[
    datetime,
    AfterValidator(as_utc),
    Field(description="UTC timezone-aware timestamp."),
]
IdSet = Annotated[
    tuple[str, ...], Field(description="Ordered identifiers with set semantics.")
]


# --- Risk classification ---


class SeverityLevel(StrEnum):
    """Failure condition severity per ARP4761A."""

    CATASTROPHIC = "Catastrophic"
    HAZARDOUS = "Hazardous"
    MAJOR = "Major"
    MINOR = "Minor"
    NO_EFFECT = "NoEffect"


class LikelihoodLevel(StrEnum):
    """Qualitative probability of a failure condition, most to least likely."""

    FREQUENT = "Frequent"
    PROBABLE = "Probable"
    REMOTE = "Remote"
    EXTREMELY_REMOTE = "ExtremelyRemote"
    EXTREMELY_IMPROBABLE = "ExtremelyImprobable"
    INCREDIBLE = "Incredible"


class RiskLevel(StrEnum):
    """Qualitative outcome of the risk matrix."""

    UNACCEPTABLE = "Unacceptable"
    UNDESIRABLE = "Undesirable"
    TOLERABLE = "Tolerable"
    ACCEPTABLE = "Acceptable"


class DAL(StrEnum):
    """Design Assurance Level (DO-178C), A is most critical."""

    A = "A"
    B = "B"
    C = "C"
    D = "D"
    E = "E"


class HazardStatus(StrEnum):
    """Hazard lifecycle status."""

    OPEN = "Open"
    UNDER_REVIEW = "Under Review"
    MITIGATED = "Mitigated"
    MONITORING = "Monitoring"
    CLOSED = "Closed"
    TRANSFERRED = "Transferred"
    ACCEPTED = "Accepted"


# --- Fault trees ---


class FaultTreeNodeType(StrEnum):
    """Event kind of a fault-tree node."""

    TOP_EVENT = "top-event"
    INTERMEDIATE = "intermediate"
    BASIC_EVENT = "basic-event"
    UNDEVELOPED = "undeveloped"
    HOUSE_EVENT = "house-event"
    TRANSFER = "transfer"


class GateType(StrEnum):
    """Logic gate combining a node's children."""

    AND = "AND"
    OR = "OR"
    XOR = "XOR"
    VOTING = "VOTING"
    INHIBIT = "INHIBIT"
    NOT = "NOT"
    PRIORITY_AND = "PRIORITY_AND"


# --- GSN ---


class GSNNodeType(StrEnum):
    """Goal Structuring Notation element kinds."""

    GOAL = "Goal"
    STRATEGY = "Strategy"
    SOLUTION = "Solution"
    CONTEXT = "Context"
    ASSUMPTION = "Assumption"
    JUSTIFICATION = "Justification"


class GSNNodeStatus(StrEnum):
    NOT_STARTED = "not-started"
    IN_PROGRESS = "in-progress"
    COMPLETE = "complete"


# --- Requirements ---


class RequirementType(StrEnum):
    SAFETY = "Safety"
    DERIVED = "Derived"
    FUNCTIONAL = "Functional"


class RequirementStatus(StrEnum):
    DRAFT = "Draft"
    APPROVED = "Approved"
    IMPLEMENTED = "Implemented"
    VERIFIED = "Verified"


class VerificationMethod(StrEnum):
    TEST = "Test"
    ANALYSIS = "Analysis"
    INSPECTION = "Inspection"
    DEMONSTRATION = "Demonstration"


# --- FMEA ---


class FMEAActionStatus(StrEnum):
    OPEN = "Open"
    IN_PROGRESS = "InProgress"
    COMPLETE = "Complete"
    DEFERRED = "Deferred"


# --- Evidence ---


class EvidenceType(StrEnum):
    TEST_RESULT = "TestResult"
    ANALYSIS_REPORT = "AnalysisReport"
    REVIEW_RECORD = "ReviewRecord"
    CODE_COVERAGE = "CodeCoverage"
    INSPECTION = "Inspection"


class EvidenceStatus(StrEnum):
    DRAFT = "draft"
    UNDER_REVIEW = "under-review"
    APPROVED = "approved"


# --- Store plumbing ---


class ArtifactType(StrEnum):
    """Tag naming one of the six artifact collections."""

    HAZARD = "hazard"
    FAULT_TREE = "fault-tree"
    GSN_NODE = "gsn-node"
    REQUIREMENT = "requirement"
    FMEA = "fmea"
    EVIDENCE = "evidence"


class ActionType(StrEnum):
    """Mutation kinds recorded on the undo/redo log."""

    ADD_HAZARD = "ADD_HAZARD"
    UPDATE_HAZARD = "UPDATE_HAZARD"
    DELETE_HAZARD = "DELETE_HAZARD"
    ADD_FAULT_TREE = "ADD_FAULT_TREE"
    UPDATE_FAULT_TREE = "UPDATE_FAULT_TREE"
    DELETE_FAULT_TREE = "DELETE_FAULT_TREE"
    ADD_FAULT_TREE_NODE = "ADD_FAULT_TREE_NODE"
    UPDATE_FAULT_TREE_NODE = "UPDATE_FAULT_TREE_NODE"
    DELETE_FAULT_TREE_NODE = "DELETE_FAULT_TREE_NODE"
    ADD_GSN_NODE = "ADD_GSN_NODE"
    UPDATE_GSN_NODE = "UPDATE_GSN_NODE"
    DELETE_GSN_NODE = "DELETE_GSN_NODE"
    ADD_REQUIREMENT = "ADD_REQUIREMENT"
    UPDATE_REQUIREMENT = "UPDATE_REQUIREMENT"
    DELETE_REQUIREMENT = "DELETE_REQUIREMENT"
    ADD_FMEA_ITEM = "ADD_FMEA_ITEM"
    UPDATE_FMEA_ITEM = "UPDATE_FMEA_ITEM"
    DELETE_FMEA_ITEM = "DELETE_FMEA_ITEM"
    ADD_EVIDENCE = "ADD_EVIDENCE"
    UPDATE_EVIDENCE = "UPDATE_EVIDENCE"
    DELETE_EVIDENCE = "DELETE_EVIDENCE"
    LINK_ARTIFACTS = "LINK_ARTIFACTS"
    UNLINK_ARTIFACTS = "UNLINK_ARTIFACTS"
    IMPORT_DATA = "IMPORT_DATA"
    CLEAR_ALL = "CLEAR_ALL"


# --- Base model ---


class SafetyBase(BaseModel):
    """Base model for all store values.

    Frozen: updates go through ``model_copy``/``model_validate`` and yield a
    new value. Attributes are snake_case; the persisted envelope uses the
    camelCase aliases.
    """

    model_config = {
        "populate_by_name": True,
        "alias_generator": to_camel,
        "frozen": True,
        "protected_namespaces": (),
    }


# --- Validation ---


@dataclass
class ValidationResult:
    """Outcome of a structural or certification check.

    Errors make the subject invalid; warnings are advisory.
    """

    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors
