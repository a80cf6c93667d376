"""Derived views: read-only projections over store collections.

Nothing here mutates state; every view is recomputed from the snapshot it
is given.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from src.governance.traceability import LINK_FIELDS
from src.models.artifacts import (
    Evidence,
    FaultTree,
    FMEAItem,
    GSNNode,
    Hazard,
    Requirement,
)
from src.models.common import ArtifactType, HazardStatus, RiskLevel, SeverityLevel
from src.models.state import COLLECTION_FIELDS, FilterState, StoreState


# ---------------------------------------------------------------------------
# Hazard filtering
# ---------------------------------------------------------------------------


def _matches(hazard: Hazard, filters: FilterState) -> bool:
    if filters.hazard_severity and hazard.severity not in filters.hazard_severity:
        return False
    if filters.hazard_likelihood and hazard.likelihood not in filters.hazard_likelihood:
        return False
    if filters.hazard_status and hazard.status not in filters.hazard_status:
        return False
    if filters.hazard_dal and hazard.dal not in filters.hazard_dal:
        return False
    if filters.hazard_owner and hazard.owner.lower() != filters.hazard_owner.lower():
        return False
    if filters.hazard_category and (hazard.category or "").lower() != filters.hazard_category.lower():
        return False
    if filters.search_query:
        searchable = " ".join([
            hazard.id,
            hazard.title,
            hazard.description,
            hazard.owner,
            hazard.category or "",
            *hazard.tags,
        ]).lower()
        if filters.search_query.lower() not in searchable:
            return False
    if filters.tags and not set(filters.tags) & set(hazard.tags):
        return False
    if filters.date_range is not None:
        if not filters.date_range.start <= hazard.updated_at <= filters.date_range.end:
            return False
    return True


def filter_hazards(hazards: Iterable[Hazard], filters: FilterState) -> list[Hazard]:
    """Hazards passing every active filter, in collection order.

    Empty sets and unset fields do not constrain. Owner and category compare
    case-insensitively; the search query is a case-insensitive substring
    over id, title, description, owner, category and tags; tags match when
    at least one is shared.
    """
    return [h for h in hazards if _matches(h, filters)]


# ---------------------------------------------------------------------------
# Linked-artifact bundles
# ---------------------------------------------------------------------------


@dataclass
class LinkedArtifacts:
    """Entities linked to one source artifact, resolved by kind."""

    hazards: list[Hazard] = field(default_factory=list)
    fault_trees: list[FaultTree] = field(default_factory=list)
    gsn_nodes: list[GSNNode] = field(default_factory=list)
    requirements: list[Requirement] = field(default_factory=list)
    fmea_items: list[FMEAItem] = field(default_factory=list)
    evidence: list[Evidence] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(len(getattr(self, attr)) for attr in COLLECTION_FIELDS.values())


def get_traceability(
    state: StoreState,
    artifact_type: ArtifactType,
    artifact_id: str,
) -> LinkedArtifacts:
    """Resolve every link set of one artifact. Unknown ids are skipped.

    An unknown source yields an empty bundle.
    """
    source = getattr(state, COLLECTION_FIELDS[artifact_type]).get(artifact_id)
    bundle = LinkedArtifacts()
    if source is None:
        return bundle
    for kind, link_field in LINK_FIELDS.items():
        if kind == artifact_type:
            continue
        attr = COLLECTION_FIELDS[kind]
        collection = getattr(state, attr)
        resolved = getattr(bundle, attr)
        for linked_id in getattr(source, link_field):
            entity = collection.get(linked_id)
            if entity is not None:
                resolved.append(entity)
    return bundle


@dataclass
class TraceabilityReport:
    """Completeness of one hazard's requirement and evidence traces."""

    complete: bool
    gaps: list[str]
    coverage: float


def check_hazard_traceability(state: StoreState, hazard_id: str) -> TraceabilityReport:
    """Check that a hazard traces to requirements and evidence both ways.

    Gaps are reported for a hazard without requirements, a mitigated or
    closed hazard without evidence, and links not mirrored on the other
    side. Coverage is the percentage of linked ids that resolve.
    """
    hazard = state.hazards.get(hazard_id)
    if hazard is None:
        return TraceabilityReport(complete=False, gaps=[f"Hazard {hazard_id} not found"], coverage=0.0)

    gaps: list[str] = []
    traced = 0

    if not hazard.linked_requirements:
        gaps.append(f"Hazard {hazard.id} has no linked requirements")
    for req_id in hazard.linked_requirements:
        req = state.requirements.get(req_id)
        if req is None:
            gaps.append(f"Hazard {hazard.id} references non-existent requirement {req_id}")
            continue
        traced += 1
        if hazard.id not in req.linked_hazards:
            gaps.append(f"Requirement {req_id} does not trace back to hazard {hazard.id}")

    if not hazard.linked_evidence and hazard.status in (HazardStatus.MITIGATED, HazardStatus.CLOSED):
        gaps.append(f"Hazard {hazard.id} has no linked evidence but is {hazard.status}")
    for ev_id in hazard.linked_evidence:
        ev = state.evidence.get(ev_id)
        if ev is None:
            gaps.append(f"Hazard {hazard.id} references non-existent evidence {ev_id}")
            continue
        traced += 1
        if hazard.id not in ev.linked_hazards:
            gaps.append(f"Evidence {ev_id} does not trace back to hazard {hazard.id}")

    expected = len(hazard.linked_requirements) + len(hazard.linked_evidence)
    coverage = traced / expected * 100 if expected else 0.0
    return TraceabilityReport(complete=not gaps, gaps=gaps, coverage=coverage)


# ---------------------------------------------------------------------------
# Statistics
# ---------------------------------------------------------------------------


@dataclass
class HazardStats:
    """Hazard counts; every enum member is present, defaulting to zero."""

    total: int = 0
    by_status: dict[HazardStatus, int] = field(
        default_factory=lambda: dict.fromkeys(HazardStatus, 0)
    )
    by_severity: dict[SeverityLevel, int] = field(
        default_factory=lambda: dict.fromkeys(SeverityLevel, 0)
    )
    by_risk_level: dict[RiskLevel, int] = field(
        default_factory=lambda: dict.fromkeys(RiskLevel, 0)
    )


def hazard_stats(hazards: Mapping[str, Hazard] | Iterable[Hazard]) -> HazardStats:
    items = hazards.values() if isinstance(hazards, Mapping) else hazards
    stats = HazardStats()
    for hazard in items:
        stats.total += 1
        stats.by_status[hazard.status] += 1
        stats.by_severity[hazard.severity] += 1
        stats.by_risk_level[hazard.risk_level] += 1
    return stats


# ---------------------------------------------------------------------------
# FMEA
# ---------------------------------------------------------------------------


def sort_fmea_by_rpn(items: Iterable[FMEAItem]) -> list[FMEAItem]:
    """FMEA items by descending RPN; ties keep their input order."""
    return sorted(items, key=lambda item: item.rpn, reverse=True)
