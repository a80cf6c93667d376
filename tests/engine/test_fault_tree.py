"""Tests for fault-tree gate probabilities, top events and cut sets."""

import math

import pytest

from src.engine.fault_tree import (
    CutSet,
    birnbaum,
    calculate_gate_probability,
    calculate_node_probabilities,
    calculate_top_event_probability,
    cut_set_probability,
    failure_rate_to_probability,
    importance_measures,
    minimal_cut_sets,
    single_point_failures,
    validate_fault_tree,
)
from src.models.artifacts import FailureData, FaultTree, FaultTreeNode
from src.models.common import FaultTreeNodeType, GateType, utc_now


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _basic(node_id: str, probability: float | None = None, **failure: float) -> FaultTreeNode:
    data = None
    if probability is not None or failure:
        data = FailureData(probability=probability, **failure)
    return FaultTreeNode(
        id=node_id,
        label=f"Event {node_id}",
        node_type=FaultTreeNodeType.BASIC_EVENT,
        failure_data=data,
    )


def _gate(
    node_id: str,
    gate: GateType | None,
    children: tuple[str, ...],
    voting_threshold: int | None = None,
) -> FaultTreeNode:
    return FaultTreeNode(
        id=node_id,
        label=f"Gate {node_id}",
        node_type=FaultTreeNodeType.INTERMEDIATE,
        gate=gate,
        children=children,
        voting_threshold=voting_threshold,
    )


def _make_tree(nodes: list[FaultTreeNode], root: str | None) -> FaultTree:
    now = utc_now()
    return FaultTree(
        id="FT-TEST",
        created_at=now,
        updated_at=now,
        name="Loss of thrust",
        nodes={n.id: n for n in nodes},
        root_node_id=root,
    )


# ===================================================================
# Gate probabilities
# ===================================================================


class TestGateProbability:
    def test_and_is_product(self) -> None:
        assert calculate_gate_probability(GateType.AND, [0.1, 0.2]) == pytest.approx(0.02)

    def test_inhibit_and_priority_and_behave_as_and(self) -> None:
        assert calculate_gate_probability(GateType.INHIBIT, [0.5, 0.5]) == pytest.approx(0.25)
        assert calculate_gate_probability(GateType.PRIORITY_AND, [0.5, 0.5]) == pytest.approx(0.25)

    def test_or_is_complement_product(self) -> None:
        assert calculate_gate_probability(GateType.OR, [0.1, 0.2]) == pytest.approx(0.28)

    def test_xor_is_exactly_one(self) -> None:
        assert calculate_gate_probability(GateType.XOR, [0.1, 0.2]) == pytest.approx(0.26)

    def test_voting_two_of_three(self) -> None:
        result = calculate_gate_probability(GateType.VOTING, [0.1, 0.1, 0.1], voting_threshold=2)
        assert result == pytest.approx(0.028)

    def test_voting_one_of_n_equals_or(self) -> None:
        probs = [0.3, 0.4]
        assert calculate_gate_probability(GateType.VOTING, probs, 1) == pytest.approx(
            calculate_gate_probability(GateType.OR, probs),
        )

    def test_voting_requires_threshold(self) -> None:
        with pytest.raises(ValueError, match="voting threshold"):
            calculate_gate_probability(GateType.VOTING, [0.1, 0.2])

    def test_voting_threshold_above_inputs_raises(self) -> None:
        with pytest.raises(ValueError, match="Invalid voting threshold"):
            calculate_gate_probability(GateType.VOTING, [0.1, 0.2], voting_threshold=3)

    def test_not_complements_single_input(self) -> None:
        assert calculate_gate_probability(GateType.NOT, [0.3]) == pytest.approx(0.7)

    def test_not_with_two_inputs_raises(self) -> None:
        with pytest.raises(ValueError, match="exactly one input"):
            calculate_gate_probability(GateType.NOT, [0.3, 0.4])

    def test_empty_inputs_raise(self) -> None:
        with pytest.raises(ValueError, match="at least one input"):
            calculate_gate_probability(GateType.OR, [])

    def test_probability_out_of_range_raises(self) -> None:
        with pytest.raises(ValueError, match="Invalid probability"):
            calculate_gate_probability(GateType.AND, [0.5, 1.5])


class TestFailureRate:
    def test_exponential_model(self) -> None:
        assert failure_rate_to_probability(1e-4, 1000) == pytest.approx(1 - math.exp(-0.1))

    def test_zero_exposure_is_zero(self) -> None:
        assert failure_rate_to_probability(1e-3, 0) == 0.0

    def test_negative_rate_raises(self) -> None:
        with pytest.raises(ValueError):
            failure_rate_to_probability(-1.0, 10)


# ===================================================================
# Top event
# ===================================================================


class TestTopEventProbability:
    def test_or_of_and(self) -> None:
        tree = _make_tree(
            [
                _gate("TOP", GateType.OR, ("A", "G1")),
                _basic("A", 0.1),
                _gate("G1", GateType.AND, ("B", "C")),
                _basic("B", 0.2),
                _basic("C", 0.5),
            ],
            root="TOP",
        )
        # G1 = 0.1, TOP = 1 - 0.9 * 0.9
        assert calculate_top_event_probability(tree) == pytest.approx(0.19)

    def test_ungated_intermediate_is_or(self) -> None:
        tree = _make_tree(
            [_gate("TOP", None, ("A", "B")), _basic("A", 0.1), _basic("B", 0.2)],
            root="TOP",
        )
        assert calculate_top_event_probability(tree) == pytest.approx(0.28)

    def test_leaf_uses_failure_rate(self) -> None:
        tree = _make_tree(
            [_basic("A", failure_rate=1e-4, exposure_time=1000)],
            root="A",
        )
        assert calculate_top_event_probability(tree) == pytest.approx(1 - math.exp(-0.1))

    def test_leaf_without_data_is_zero(self) -> None:
        tree = _make_tree([_basic("A")], root="A")
        assert calculate_top_event_probability(tree) == 0.0

    def test_node_probabilities_cover_reachable_nodes(self) -> None:
        tree = _make_tree(
            [_gate("TOP", GateType.AND, ("A", "B")), _basic("A", 0.5), _basic("B", 0.5), _basic("X", 0.9)],
            root="TOP",
        )
        probs = calculate_node_probabilities(tree)
        assert set(probs) == {"TOP", "A", "B"}

    def test_cycle_raises(self) -> None:
        tree = _make_tree(
            [_gate("TOP", GateType.OR, ("G1",)), _gate("G1", GateType.OR, ("TOP",))],
            root="TOP",
        )
        with pytest.raises(ValueError, match="cycle"):
            calculate_top_event_probability(tree)

    def test_no_root_raises(self) -> None:
        tree = _make_tree([_basic("A", 0.1)], root=None)
        with pytest.raises(ValueError, match="no root"):
            calculate_top_event_probability(tree)


# ===================================================================
# Cut sets
# ===================================================================


class TestMinimalCutSets:
    def test_absorption_removes_supersets(self) -> None:
        tree = _make_tree(
            [
                _gate("TOP", GateType.OR, ("A", "G1", "G2")),
                _gate("G1", GateType.AND, ("B", "C")),
                _gate("G2", GateType.AND, ("A", "B")),
                _basic("A", 0.1),
                _basic("B", 0.1),
                _basic("C", 0.1),
            ],
            root="TOP",
        )
        cut_sets = minimal_cut_sets(tree)
        assert cut_sets == [CutSet(("A",)), CutSet(("B", "C"))]
        assert single_point_failures(cut_sets) == ["A"]

    def test_voting_expands_combinations(self) -> None:
        tree = _make_tree(
            [
                _gate("TOP", GateType.VOTING, ("A", "B", "C"), voting_threshold=2),
                _basic("A", 0.1),
                _basic("B", 0.1),
                _basic("C", 0.1),
            ],
            root="TOP",
        )
        assert [cs.event_ids for cs in minimal_cut_sets(tree)] == [
            ("A", "B"),
            ("A", "C"),
            ("B", "C"),
        ]

    def test_order_property(self) -> None:
        assert CutSet(("A", "B", "C")).order == 3

    def test_not_gate_is_rejected(self) -> None:
        tree = _make_tree(
            [_gate("TOP", GateType.NOT, ("A",)), _basic("A", 0.1)],
            root="TOP",
        )
        with pytest.raises(ValueError, match="non-coherent"):
            minimal_cut_sets(tree)


# ===================================================================
# Importance measures
# ===================================================================


def _top(node_id: str, gate: GateType | None, children: tuple[str, ...]) -> FaultTreeNode:
    return _gate(node_id, gate, children).model_copy(update={"node_type": FaultTreeNodeType.TOP_EVENT})


def _or_of_and_tree() -> FaultTree:
    """TOP = A OR (B AND C); P(TOP) = 1 - 0.9 * 0.95 = 0.145."""
    return _make_tree(
        [
            _top("TOP", GateType.OR, ("A", "G1")),
            _basic("A", 0.1),
            _gate("G1", GateType.AND, ("B", "C")),
            _basic("B", 0.2),
            _basic("C", 0.25),
        ],
        root="TOP",
    )


class TestImportanceMeasures:
    def test_cut_set_probability_is_product(self) -> None:
        cs = CutSet(event_ids=("B", "C"))
        assert cut_set_probability(cs, {"B": 0.2, "C": 0.25}) == pytest.approx(0.05)

    def test_cut_set_probability_unknown_event_raises(self) -> None:
        with pytest.raises(ValueError, match="Unknown basic event"):
            cut_set_probability(CutSet(event_ids=("X",)), {})

    def test_measures_for_every_basic_event(self) -> None:
        measures = importance_measures(_or_of_and_tree())
        assert [m.event_id for m in measures] == ["A", "B", "C"]
        a, b, c = measures
        assert a.label == "Event A"
        assert a.base_probability == pytest.approx(0.1)
        assert a.fussell_vesely == pytest.approx(0.1 / 0.145)
        assert b.fussell_vesely == pytest.approx(0.05 / 0.145)
        assert c.fussell_vesely == b.fussell_vesely

    def test_birnbaum_is_probability_sensitivity(self) -> None:
        tree = _or_of_and_tree()
        assert birnbaum(tree, "A") == pytest.approx(0.95)
        assert birnbaum(tree, "B") == pytest.approx(0.225)
        assert birnbaum(tree, "C") == pytest.approx(0.18)

    def test_achievement_and_reduction_worth(self) -> None:
        a, b, _ = importance_measures(_or_of_and_tree())
        assert a.raw == pytest.approx(1 / 0.145)
        assert a.rrw == pytest.approx(2.9)
        assert b.rrw == pytest.approx(1.45)

    def test_zero_probability_tree(self) -> None:
        tree = _make_tree([_top("TOP", GateType.OR, ("A", "B")), _basic("A", 0.0), _basic("B", 0.0)], root="TOP")
        for measure in importance_measures(tree):
            assert measure.fussell_vesely == 0.0
            assert math.isinf(measure.raw)
            assert math.isinf(measure.rrw)

    def test_house_events_are_not_ranked(self) -> None:
        house = FaultTreeNode(id="H", label="Maintenance mode", node_type=FaultTreeNodeType.HOUSE_EVENT)
        tree = _make_tree([_top("TOP", GateType.AND, ("A", "H")), _basic("A", 0.5), house], root="TOP")
        assert [m.event_id for m in importance_measures(tree)] == ["A"]

    def test_no_root_raises(self) -> None:
        with pytest.raises(ValueError, match="no root"):
            importance_measures(_make_tree([_basic("A", 0.1)], root=None))


# ===================================================================
# Structural validation
# ===================================================================


class TestValidateFaultTree:
    def test_well_formed_tree_is_clean(self) -> None:
        result = validate_fault_tree(_or_of_and_tree())
        assert result.valid
        assert result.errors == []
        assert result.warnings == []

    def test_missing_root(self) -> None:
        result = validate_fault_tree(_make_tree([_basic("A", 0.1)], root=None))
        assert not result.valid
        assert result.errors == ["Fault tree FT-TEST has no root node"]

    def test_root_type_warning(self) -> None:
        tree = _make_tree([_gate("G", GateType.OR, ("A",)), _basic("A", 0.1)], root="G")
        result = validate_fault_tree(tree)
        assert result.valid
        assert result.warnings == ["Root node should be type 'top-event', is 'intermediate'"]

    def test_cycle_reported_with_path(self) -> None:
        tree = _make_tree(
            [_top("G1", GateType.AND, ("G2",)), _gate("G2", GateType.OR, ("G1",))],
            root="G1",
        )
        result = validate_fault_tree(tree)
        assert "Cycle detected: G1 -> G2 -> G1" in result.errors

    def test_voting_threshold_checks(self) -> None:
        tree = _make_tree(
            [
                _top("TOP", GateType.OR, ("V1", "V2")),
                _gate("V1", GateType.VOTING, ("A", "B"), voting_threshold=3),
                _gate("V2", GateType.VOTING, ("A", "B")),
                _basic("A", 0.1),
                _basic("B", 0.1),
            ],
            root="TOP",
        )
        result = validate_fault_tree(tree)
        assert "Voting gate V1 has invalid threshold 3 for 2 children" in result.errors
        assert "Voting gate V2 has no voting threshold defined" in result.errors

    def test_not_gate_needs_one_input(self) -> None:
        tree = _make_tree(
            [_top("TOP", GateType.NOT, ("A", "B")), _basic("A", 0.1), _basic("B", 0.1)],
            root="TOP",
        )
        assert validate_fault_tree(tree).errors == ["NOT gate TOP must have exactly 1 child, has 2"]

    def test_leaf_and_basic_event_types(self) -> None:
        tree = _make_tree(
            [
                _top("TOP", GateType.OR, ("G", "A", "B")),
                _gate("G", GateType.AND, ()),
                _basic("A").model_copy(update={"children": ("B",)}),
                _basic("B"),
            ],
            root="TOP",
        )
        errors = validate_fault_tree(tree).errors
        assert any(e.startswith("Node G is a leaf but has type 'intermediate'") for e in errors)
        assert "Node A has children but is marked as 'basic-event'" in errors
        assert "Basic event B has no probability or failure rate defined" in errors

    def test_failure_rate_without_exposure_warns(self) -> None:
        tree = _make_tree([_top("TOP", GateType.OR, ("A",)), _basic("A", failure_rate=1e-5)], root="TOP")
        result = validate_fault_tree(tree)
        assert result.valid
        assert result.warnings == ["Basic event A has failure rate but no exposure time"]

    def test_gateless_intermediate_warns(self) -> None:
        tree = _make_tree([_top("TOP", None, ("A",)), _basic("A", 0.1)], root="TOP")
        assert validate_fault_tree(tree).warnings == [
            "Intermediate node TOP has no gate defined (will default to OR)",
        ]

    def test_duplicate_child_reference(self) -> None:
        tree = _make_tree([_top("TOP", GateType.AND, ("A", "A")), _basic("A", 0.1)], root="TOP")
        assert validate_fault_tree(tree).errors == ["Node TOP lists the same child more than once"]

    def test_shared_and_unreachable_nodes_warn(self) -> None:
        tree = _make_tree(
            [
                _top("TOP", GateType.OR, ("G1", "G2")),
                _gate("G1", GateType.AND, ("A", "B")),
                _gate("G2", GateType.AND, ("A", "C")),
                _basic("A", 0.1),
                _basic("B", 0.1),
                _basic("C", 0.1),
                _basic("ORPHAN", 0.1),
            ],
            root="TOP",
        )
        result = validate_fault_tree(tree)
        assert result.valid
        assert result.warnings == [
            "Node A feeds several gates; its occurrences are treated as independent",
            "Node ORPHAN is not reachable from the root",
        ]

    def test_transfer_node_reference(self) -> None:
        transfer = FaultTreeNode(id="T", label="Hydraulics", node_type=FaultTreeNodeType.TRANSFER)
        tree = _make_tree([_top("TOP", GateType.OR, ("T",)), transfer], root="TOP")
        result = validate_fault_tree(tree)
        assert result.valid
        assert result.warnings == ["Transfer node T has no transfer reference"]

        linked = tree.model_copy(update={"nodes": {
            **tree.nodes, "T": transfer.model_copy(update={"transfer_ref": "FT-HYD"}),
        }})
        assert validate_fault_tree(linked).warnings == []
