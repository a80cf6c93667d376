"""Tests for the change history recorder."""

from datetime import datetime, timezone

import pytest

from src.governance.change_history import ChangeHistoryRecorder
from src.models.artifacts import ChangeRecord, Hazard
from src.models.common import DAL, HazardStatus, LikelihoodLevel, RiskLevel, SeverityLevel

TS = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _make_hazard(**overrides: object) -> Hazard:
    defaults: dict[str, object] = {
        "id": "HAZ-1",
        "created_at": TS,
        "updated_at": TS,
        "title": "Hydraulic leak",
        "severity": SeverityLevel.MAJOR,
        "likelihood": LikelihoodLevel.REMOTE,
        "dal": DAL.C,
        "risk_score": 18,
        "risk_level": RiskLevel.UNDESIRABLE,
    }
    defaults.update(overrides)
    return Hazard(**defaults)  # type: ignore[arg-type]


class TestDiff:
    def test_one_record_per_field_in_order(self) -> None:
        recorder = ChangeHistoryRecorder("alice")
        old = _make_hazard()
        new = _make_hazard(title="Hydraulic line rupture", status=HazardStatus.MITIGATED)
        records = recorder.diff(old, new, ["title", "status"], TS)
        assert [r.field for r in records] == ["title", "status"]
        assert records[0].old_value == "Hydraulic leak"
        assert records[0].new_value == "Hydraulic line rupture"
        assert records[1].new_value == "Mitigated"
        assert all(r.changed_by == "alice" for r in records)
        assert all(r.timestamp == TS for r in records)

    def test_unchanged_value_still_recorded(self) -> None:
        recorder = ChangeHistoryRecorder()
        hazard = _make_hazard()
        records = recorder.diff(hazard, hazard, ["owner"], TS)
        assert len(records) == 1
        assert records[0].old_value == records[0].new_value == ""
        assert records[0].changed_by == "user"

    def test_bookkeeping_fields_excluded(self) -> None:
        recorder = ChangeHistoryRecorder()
        hazard = _make_hazard()
        records = recorder.diff(hazard, hazard, ["version", "updated_at", "change_history"], TS)
        assert records == ()

    def test_values_are_json_compatible(self) -> None:
        recorder = ChangeHistoryRecorder()
        old = _make_hazard()
        new = _make_hazard(mitigations=("Dual seals",))
        (record,) = recorder.diff(old, new, ["mitigations"], TS)
        assert record.old_value == []
        assert record.new_value == ["Dual seals"]

    def test_empty_actor_rejected(self) -> None:
        with pytest.raises(ValueError):
            ChangeHistoryRecorder("")


class TestAppend:
    def test_append_is_additive(self) -> None:
        first = ChangeRecord(field="title", old_value="a", new_value="b", timestamp=TS, changed_by="u")
        second = ChangeRecord(field="owner", old_value="", new_value="x", timestamp=TS, changed_by="u")
        hazard = _make_hazard()
        once = ChangeHistoryRecorder.append(hazard, [first])
        twice = ChangeHistoryRecorder.append(once, [second])
        assert twice.change_history == (first, second)
        assert hazard.change_history == ()

    def test_append_nothing_returns_same_entity(self) -> None:
        hazard = _make_hazard()
        assert ChangeHistoryRecorder.append(hazard, []) is hazard
