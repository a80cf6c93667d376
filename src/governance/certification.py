"""Certification readiness of hazard records (ARP4761A / DO-178C).

A hazard is ready when its documentation is complete and its status is
backed by mitigations, requirements and evidence. Errors block
certification; warnings flag items a reviewer should confirm.

Deterministic, no store access.
"""

from src.engine.risk import severity_to_dal
from src.models.artifacts import Hazard
from src.models.common import DAL, HazardStatus, SeverityLevel, ValidationResult

_HIGH_SEVERITY = frozenset({SeverityLevel.CATASTROPHIC, SeverityLevel.HAZARDOUS})

# Most critical first.
_DAL_ORDER = list(DAL)


def validate_hazard_for_certification(hazard: Hazard) -> ValidationResult:
    result = ValidationResult()

    if not hazard.title.strip():
        result.errors.append("Hazard title is required")
    if not hazard.description.strip():
        result.errors.append("Hazard description is required")
    if not hazard.owner.strip():
        result.errors.append("Hazard owner is required")

    if hazard.status == HazardStatus.MITIGATED and not hazard.mitigations:
        result.errors.append("Mitigated hazards must have documented mitigations")
    if hazard.severity in _HIGH_SEVERITY and not hazard.linked_requirements:
        result.errors.append("High-severity hazards must be traced to requirements")
    if hazard.status == HazardStatus.CLOSED and not hazard.linked_evidence:
        result.errors.append("Closed hazards must have supporting evidence")

    required = severity_to_dal(hazard.severity)
    if _DAL_ORDER.index(hazard.dal) > _DAL_ORDER.index(required):
        # Allowed only through a justified decomposition.
        result.warnings.append(
            f"DAL {hazard.dal} is below the DAL {required} required for {hazard.severity} severity"
        )
    return result
