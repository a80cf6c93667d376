"""Fixed demonstration hazards loaded by ``SafetyStore.load_sample_data``.

Ids are fixed (``HAZ-001`` .. ``HAZ-005``) so the set is recognisable across
sessions. Risk fields are derived from the matrix, never hard-coded.
"""

from datetime import datetime

from src.engine.risk import calculate_risk_score
from src.models.artifacts import Hazard, HazardDraft
from src.models.common import DAL, HazardStatus, LikelihoodLevel, SeverityLevel, utc_now

SAMPLE_HAZARDS: tuple[tuple[str, HazardDraft], ...] = (
    (
        "HAZ-001",
        HazardDraft(
            title="Electrical System Failure",
            description="Primary electrical system may fail under high load conditions",
            severity=SeverityLevel.CATASTROPHIC,
            likelihood=LikelihoodLevel.REMOTE,
            status=HazardStatus.MITIGATED,
            dal=DAL.A,
            owner="Electrical Team",
            mitigations=("Redundant power supply", "Automatic failover"),
        ),
    ),
    (
        "HAZ-002",
        HazardDraft(
            title="Software Watchdog Timeout",
            description="Critical software process may exceed maximum response time",
            severity=SeverityLevel.HAZARDOUS,
            likelihood=LikelihoodLevel.REMOTE,
            status=HazardStatus.MONITORING,
            dal=DAL.B,
            owner="Software Team",
        ),
    ),
    (
        "HAZ-003",
        HazardDraft(
            title="Mechanical Wear",
            description="Moving parts subject to excessive wear during extended operations",
            severity=SeverityLevel.MAJOR,
            likelihood=LikelihoodLevel.PROBABLE,
            status=HazardStatus.OPEN,
            dal=DAL.C,
            owner="Maintenance Team",
        ),
    ),
    (
        "HAZ-004",
        HazardDraft(
            title="Communication Loss",
            description="Loss of communication between primary and backup systems",
            severity=SeverityLevel.HAZARDOUS,
            likelihood=LikelihoodLevel.EXTREMELY_REMOTE,
            status=HazardStatus.MITIGATED,
            dal=DAL.B,
            owner="Systems Team",
        ),
    ),
    (
        "HAZ-005",
        HazardDraft(
            title="Environmental Exposure",
            description="Equipment exposure to extreme temperature conditions",
            severity=SeverityLevel.MAJOR,
            likelihood=LikelihoodLevel.REMOTE,
            status=HazardStatus.MONITORING,
            dal=DAL.C,
            owner="Environmental Team",
        ),
    ),
)


def build_sample_hazards(now: datetime | None = None) -> dict[str, Hazard]:
    """Materialise the sample set as tracked hazards stamped with ``now``."""
    ts = now or utc_now()
    hazards: dict[str, Hazard] = {}
    for hazard_id, draft in SAMPLE_HAZARDS:
        risk = calculate_risk_score(draft.severity, draft.likelihood)
        hazards[hazard_id] = Hazard(
            **draft.model_dump(),
            id=hazard_id,
            version=1,
            created_at=ts,
            updated_at=ts,
            risk_score=risk.score,
            risk_level=risk.level,
        )
    return hazards
