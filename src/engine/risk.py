"""Risk and RPN calculator: ARP4761A risk matrix and FMEA priority numbers.

Pure, deterministic functions. Every severity x likelihood combination has an
entry in ``RISK_MATRIX``; there is no undefined case for valid enum inputs.
"""

from dataclasses import dataclass
from enum import StrEnum

from src.models.common import DAL, LikelihoodLevel, RiskLevel, SeverityLevel


@dataclass(frozen=True)
class RiskScore:
    """Numeric score and qualitative level of one matrix cell."""

    score: int
    level: RiskLevel


_S = SeverityLevel
_L = LikelihoodLevel
_R = RiskLevel

# 5x6 matrix after ARP4761A Figure 9 (example hazard risk assessment matrix).
RISK_MATRIX: dict[SeverityLevel, dict[LikelihoodLevel, RiskScore]] = {
    _S.CATASTROPHIC: {
        _L.FREQUENT: RiskScore(30, _R.UNACCEPTABLE),
        _L.PROBABLE: RiskScore(29, _R.UNACCEPTABLE),
        _L.REMOTE: RiskScore(28, _R.UNACCEPTABLE),
        _L.EXTREMELY_REMOTE: RiskScore(27, _R.UNACCEPTABLE),
        _L.EXTREMELY_IMPROBABLE: RiskScore(20, _R.UNDESIRABLE),
        _L.INCREDIBLE: RiskScore(10, _R.TOLERABLE),
    },
    _S.HAZARDOUS: {
        _L.FREQUENT: RiskScore(26, _R.UNACCEPTABLE),
        _L.PROBABLE: RiskScore(25, _R.UNACCEPTABLE),
        _L.REMOTE: RiskScore(24, _R.UNACCEPTABLE),
        _L.EXTREMELY_REMOTE: RiskScore(19, _R.UNDESIRABLE),
        _L.EXTREMELY_IMPROBABLE: RiskScore(14, _R.TOLERABLE),
        _L.INCREDIBLE: RiskScore(8, _R.ACCEPTABLE),
    },
    _S.MAJOR: {
        _L.FREQUENT: RiskScore(23, _R.UNACCEPTABLE),
        _L.PROBABLE: RiskScore(22, _R.UNACCEPTABLE),
        _L.REMOTE: RiskScore(18, _R.UNDESIRABLE),
        _L.EXTREMELY_REMOTE: RiskScore(13, _R.TOLERABLE),
        _L.EXTREMELY_IMPROBABLE: RiskScore(7, _R.ACCEPTABLE),
        _L.INCREDIBLE: RiskScore(4, _R.ACCEPTABLE),
    },
    _S.MINOR: {
        _L.FREQUENT: RiskScore(21, _R.UNACCEPTABLE),
        _L.PROBABLE: RiskScore(17, _R.UNDESIRABLE),
        _L.REMOTE: RiskScore(12, _R.TOLERABLE),
        _L.EXTREMELY_REMOTE: RiskScore(6, _R.ACCEPTABLE),
        _L.EXTREMELY_IMPROBABLE: RiskScore(3, _R.ACCEPTABLE),
        _L.INCREDIBLE: RiskScore(2, _R.ACCEPTABLE),
    },
    _S.NO_EFFECT: {
        _L.FREQUENT: RiskScore(16, _R.TOLERABLE),
        _L.PROBABLE: RiskScore(11, _R.TOLERABLE),
        _L.REMOTE: RiskScore(5, _R.ACCEPTABLE),
        _L.EXTREMELY_REMOTE: RiskScore(1, _R.ACCEPTABLE),
        _L.EXTREMELY_IMPROBABLE: RiskScore(1, _R.ACCEPTABLE),
        _L.INCREDIBLE: RiskScore(1, _R.ACCEPTABLE),
    },
}


def calculate_risk_score(
    severity: SeverityLevel | str,
    likelihood: LikelihoodLevel | str,
) -> RiskScore:
    """Look up the matrix cell for a severity/likelihood pair.

    Raises:
        ValueError: If either value is not a known level.
    """
    return RISK_MATRIX[SeverityLevel(severity)][LikelihoodLevel(likelihood)]


def calculate_risk_level(
    severity: SeverityLevel | str,
    likelihood: LikelihoodLevel | str,
) -> RiskLevel:
    return calculate_risk_score(severity, likelihood).level


# ---------------------------------------------------------------------------
# FMEA
# ---------------------------------------------------------------------------

_RATING_MIN = 1
_RATING_MAX = 10


def _check_rating(name: str, value: int) -> None:
    if not _RATING_MIN <= value <= _RATING_MAX:
        msg = f"{name} must be between {_RATING_MIN} and {_RATING_MAX} (got {value})."
        raise ValueError(msg)


def calculate_rpn(severity: int, occurrence: int, detection: int) -> int:
    """Risk Priority Number: severity x occurrence x detection (1..1000).

    Raises:
        ValueError: If any rating is outside 1..10.
    """
    _check_rating("severity", severity)
    _check_rating("occurrence", occurrence)
    _check_rating("detection", detection)
    return severity * occurrence * detection


class ActionPriority(StrEnum):
    """AIAG-VDA action priority."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


def calculate_action_priority(
    severity: int,
    occurrence: int,
    detection: int,
) -> ActionPriority:
    """AIAG-VDA action priority, weighting severity above the RPN product.

    High: S >= 9, or S >= 5 with O >= 4 and D >= 6.
    Medium: S >= 5 with O >= 4 or D >= 6; or S < 5 with O >= 4 and D >= 6.
    Low: everything else.
    """
    _check_rating("severity", severity)
    _check_rating("occurrence", occurrence)
    _check_rating("detection", detection)

    if severity >= 9:
        return ActionPriority.HIGH
    if severity >= 5 and occurrence >= 4 and detection >= 6:
        return ActionPriority.HIGH
    if severity >= 5 and (occurrence >= 4 or detection >= 6):
        return ActionPriority.MEDIUM
    if occurrence >= 4 and detection >= 6:
        return ActionPriority.MEDIUM
    return ActionPriority.LOW


# ---------------------------------------------------------------------------
# DAL allocation
# ---------------------------------------------------------------------------

_SEVERITY_TO_DAL: dict[SeverityLevel, DAL] = {
    SeverityLevel.CATASTROPHIC: DAL.A,
    SeverityLevel.HAZARDOUS: DAL.B,
    SeverityLevel.MAJOR: DAL.C,
    SeverityLevel.MINOR: DAL.D,
    SeverityLevel.NO_EFFECT: DAL.E,
}


def severity_to_dal(severity: SeverityLevel | str) -> DAL:
    """Required DAL for a failure condition severity (DO-178C Table 3-1)."""
    return _SEVERITY_TO_DAL[SeverityLevel(severity)]


# A=5 ... E=1
_DAL_RANK: dict[DAL, int] = {DAL.A: 5, DAL.B: 4, DAL.C: 3, DAL.D: 2, DAL.E: 1}

# Minimum rank sum of the redundant items replacing one item of the key DAL.
_DECOMPOSITION_MIN_SUM: dict[DAL, int] = {DAL.A: 8, DAL.B: 6, DAL.C: 4, DAL.D: 2, DAL.E: 0}


def is_valid_dal_decomposition(
    parent_dal: DAL | str,
    child_dals: list[DAL] | list[str],
) -> bool:
    """Whether redundant items at ``child_dals`` may implement ``parent_dal``.

    At least two items are needed. No item may rank above the parent or more
    than two levels below it, and the ranks must add up to the parent's
    minimum (A: B+B or C+C+C, B: C+C or D+D+D, C: D+D).
    """
    if len(child_dals) < 2:
        return False
    parent_rank = _DAL_RANK[DAL(parent_dal)]
    child_ranks = [_DAL_RANK[DAL(d)] for d in child_dals]
    if any(rank > parent_rank or parent_rank - rank > 2 for rank in child_ranks):
        return False
    return sum(child_ranks) >= _DECOMPOSITION_MIN_SUM[DAL(parent_dal)]
