"""Fault-tree analysis over a tree's node map.

Gate probabilities, bottom-up top-event probability, minimal cut sets
(MOCUS expansion with absorption), basic-event importance measures and
structural validation. Nodes reference children by id, so the
traversal resolves ids through ``FaultTree.nodes``.

Pure functions, no store access.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass
from itertools import combinations, product

from src.models.artifacts import FailureData, FaultTree, FaultTreeNode
from src.models.common import FaultTreeNodeType, GateType, ValidationResult

_LEAF_TYPES = frozenset({
    FaultTreeNodeType.BASIC_EVENT,
    FaultTreeNodeType.UNDEVELOPED,
    FaultTreeNodeType.HOUSE_EVENT,
})


# ---------------------------------------------------------------------------
# Probabilities
# ---------------------------------------------------------------------------


def failure_rate_to_probability(failure_rate: float, exposure_time: float) -> float:
    """P = 1 - exp(-lambda * t), constant failure rate assumption."""
    if failure_rate < 0:
        msg = "Failure rate must be non-negative."
        raise ValueError(msg)
    if exposure_time < 0:
        msg = "Exposure time must be non-negative."
        raise ValueError(msg)
    return 1.0 - math.exp(-failure_rate * exposure_time)


def _at_least_k(probabilities: list[float], k: int) -> float:
    # dist[i] = P(exactly i of the inputs seen so far occurred)
    dist = [1.0]
    for p in probabilities:
        nxt = [0.0] * (len(dist) + 1)
        for i, q in enumerate(dist):
            nxt[i] += q * (1.0 - p)
            nxt[i + 1] += q * p
        dist = nxt
    return sum(dist[k:])


def calculate_gate_probability(
    gate: GateType,
    probabilities: list[float],
    voting_threshold: int | None = None,
) -> float:
    """Output probability of a gate from independent input probabilities.

    Raises:
        ValueError: On empty inputs, probabilities outside [0, 1], a missing
            or out-of-range voting threshold, or a NOT gate with more than
            one input.
    """
    if not probabilities:
        msg = "Gate must have at least one input."
        raise ValueError(msg)
    for p in probabilities:
        if not 0.0 <= p <= 1.0:
            msg = f"Invalid probability: {p}. Must be between 0 and 1."
            raise ValueError(msg)

    if gate in (GateType.AND, GateType.INHIBIT, GateType.PRIORITY_AND):
        return math.prod(probabilities)

    if gate == GateType.OR:
        return 1.0 - math.prod(1.0 - p for p in probabilities)

    if gate == GateType.XOR:
        total = 0.0
        for i, p in enumerate(probabilities):
            others = probabilities[:i] + probabilities[i + 1:]
            total += p * math.prod(1.0 - q for q in others)
        return total

    if gate == GateType.VOTING:
        n = len(probabilities)
        if voting_threshold is None:
            msg = "Voting gate requires a voting threshold."
            raise ValueError(msg)
        if not 1 <= voting_threshold <= n:
            msg = f"Invalid voting threshold: {voting_threshold}. Must be between 1 and {n}."
            raise ValueError(msg)
        return _at_least_k(probabilities, voting_threshold)

    if gate == GateType.NOT:
        if len(probabilities) != 1:
            msg = "NOT gate must have exactly one input."
            raise ValueError(msg)
        return 1.0 - probabilities[0]

    msg = f"Unknown gate type: {gate}"
    raise ValueError(msg)


def _leaf_probability(node: FaultTreeNode) -> float:
    data = node.failure_data
    if data is None:
        return 0.0
    if data.probability is not None:
        return data.probability
    if data.failure_rate is not None and data.exposure_time is not None:
        return failure_rate_to_probability(data.failure_rate, data.exposure_time)
    return 0.0


def calculate_node_probabilities(tree: FaultTree) -> dict[str, float]:
    """Probability of every node reachable from the root.

    Leaves use their failure data; gated nodes combine their children;
    nodes with children but no gate are treated as OR (conservative).

    Raises:
        ValueError: If the tree has no root or contains a cycle.
    """
    if tree.root_node_id is None:
        msg = f"Fault tree {tree.id} has no root node."
        raise ValueError(msg)

    results: dict[str, float] = {}
    visiting: set[str] = set()

    def visit(node_id: str) -> float:
        if node_id in results:
            return results[node_id]
        if node_id in visiting:
            msg = f"Fault tree {tree.id} contains a cycle through {node_id}."
            raise ValueError(msg)
        visiting.add(node_id)
        node = tree.nodes[node_id]
        if node.node_type in _LEAF_TYPES or not node.children:
            prob = _leaf_probability(node)
        else:
            child_probs = [visit(c) for c in node.children]
            prob = calculate_gate_probability(
                node.gate or GateType.OR,
                child_probs,
                node.voting_threshold,
            )
        visiting.discard(node_id)
        results[node_id] = prob
        return prob

    visit(tree.root_node_id)
    return results


def calculate_top_event_probability(tree: FaultTree) -> float:
    """Probability of the root (top) event."""
    return calculate_node_probabilities(tree)[tree.root_node_id]  # type: ignore[index]


# ---------------------------------------------------------------------------
# Cut sets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CutSet:
    """A combination of basic events that together cause the top event."""

    event_ids: tuple[str, ...]

    @property
    def order(self) -> int:
        return len(self.event_ids)


def _and_combine(groups: list[list[frozenset[str]]]) -> list[frozenset[str]]:
    return [frozenset().union(*combo) for combo in product(*groups)]


def _expand(tree: FaultTree, node_id: str, path: frozenset[str]) -> list[frozenset[str]]:
    if node_id in path:
        msg = f"Fault tree {tree.id} contains a cycle through {node_id}."
        raise ValueError(msg)
    node = tree.nodes[node_id]
    if node.node_type in _LEAF_TYPES or not node.children:
        return [frozenset({node_id})]

    path = path | {node_id}
    child_sets = [_expand(tree, c, path) for c in node.children]
    gate = node.gate or GateType.OR

    if gate in (GateType.OR, GateType.XOR):
        # XOR is approximated by OR, the coherent over-estimate.
        return [s for sets in child_sets for s in sets]
    if gate in (GateType.AND, GateType.INHIBIT, GateType.PRIORITY_AND):
        return _and_combine(child_sets)
    if gate == GateType.VOTING:
        k = node.voting_threshold or len(child_sets)
        expanded: list[frozenset[str]] = []
        for chosen in combinations(child_sets, k):
            expanded.extend(_and_combine(list(chosen)))
        return expanded

    msg = f"Cut sets are undefined for non-coherent gate {gate} at node {node_id}."
    raise ValueError(msg)


def minimal_cut_sets(tree: FaultTree) -> list[CutSet]:
    """Minimal cut sets of the tree, ordered by size then event ids.

    Raises:
        ValueError: If the tree has no root, has a cycle, or uses a NOT gate.
    """
    if tree.root_node_id is None:
        msg = f"Fault tree {tree.id} has no root node."
        raise ValueError(msg)

    raw = set(_expand(tree, tree.root_node_id, frozenset()))
    minimal = [s for s in raw if not any(other < s for other in raw)]
    cut_sets = [CutSet(event_ids=tuple(sorted(s))) for s in minimal]
    return sorted(cut_sets, key=lambda cs: (cs.order, cs.event_ids))


def single_point_failures(cut_sets: list[CutSet]) -> list[str]:
    """Basic events that alone cause the top event (order-1 cut sets)."""
    return [cs.event_ids[0] for cs in cut_sets if cs.order == 1]


def cut_set_probability(cut_set: CutSet, probabilities: Mapping[str, float]) -> float:
    """Product of the event probabilities of one cut set (independent events).

    Raises:
        ValueError: If an event has no probability.
    """
    probability = 1.0
    for event_id in cut_set.event_ids:
        if event_id not in probabilities:
            msg = f"Unknown basic event: {event_id}"
            raise ValueError(msg)
        probability *= probabilities[event_id]
    return probability


# ---------------------------------------------------------------------------
# Importance measures
# ---------------------------------------------------------------------------

_RANKED_TYPES = frozenset({FaultTreeNodeType.BASIC_EVENT, FaultTreeNodeType.UNDEVELOPED})


@dataclass(frozen=True)
class ImportanceMeasure:
    """Contribution of one basic event to the top event."""

    event_id: str
    label: str
    base_probability: float
    fussell_vesely: float
    birnbaum: float
    raw: float
    rrw: float


def _top_with_event(tree: FaultTree, event_id: str, probability: float) -> float:
    node = tree.nodes[event_id]
    data = (node.failure_data or FailureData()).model_copy(update={"probability": probability})
    nodes = {**tree.nodes, event_id: node.model_copy(update={"failure_data": data})}
    return calculate_top_event_probability(tree.model_copy(update={"nodes": nodes}))


def fussell_vesely(
    event_id: str,
    cut_sets: list[CutSet],
    top_event_probability: float,
    probabilities: Mapping[str, float],
) -> float:
    """Share of the top event carried by cut sets containing the event.

    Rare-event approximation: the containing cut-set probabilities are
    summed, and the ratio is capped at 1.
    """
    if top_event_probability == 0:
        return 0.0
    total = sum(
        cut_set_probability(cs, probabilities) for cs in cut_sets if event_id in cs.event_ids
    )
    return min(total / top_event_probability, 1.0)


def birnbaum(tree: FaultTree, event_id: str) -> float:
    """P(top | event occurs) - P(top | event cannot occur)."""
    return _top_with_event(tree, event_id, 1.0) - _top_with_event(tree, event_id, 0.0)


def risk_achievement_worth(tree: FaultTree, event_id: str, top_event_probability: float) -> float:
    """Factor by which the top event grows if the event is certain."""
    if top_event_probability == 0:
        return math.inf
    return _top_with_event(tree, event_id, 1.0) / top_event_probability


def risk_reduction_worth(tree: FaultTree, event_id: str, top_event_probability: float) -> float:
    """Factor by which the top event shrinks if the event cannot occur."""
    without = _top_with_event(tree, event_id, 0.0)
    if without == 0:
        return math.inf
    return top_event_probability / without


def importance_measures(tree: FaultTree) -> list[ImportanceMeasure]:
    """Importance of every basic and undeveloped event reachable from the root.

    Sorted by Fussell-Vesely importance, most important first; ties keep
    traversal order.

    Raises:
        ValueError: If the tree has no root, has a cycle, or uses a NOT gate.
    """
    node_probabilities = calculate_node_probabilities(tree)
    top = node_probabilities[tree.root_node_id]  # type: ignore[index]
    cut_sets = minimal_cut_sets(tree)

    events = [
        node_id for node_id in node_probabilities
        if tree.nodes[node_id].node_type in _RANKED_TYPES
    ]
    measures = [
        ImportanceMeasure(
            event_id=event_id,
            label=tree.nodes[event_id].label,
            base_probability=node_probabilities[event_id],
            fussell_vesely=fussell_vesely(event_id, cut_sets, top, node_probabilities),
            birnbaum=birnbaum(tree, event_id),
            raw=risk_achievement_worth(tree, event_id, top),
            rrw=risk_reduction_worth(tree, event_id, top),
        )
        for event_id in events
    ]
    return sorted(measures, key=lambda m: m.fussell_vesely, reverse=True)


# ---------------------------------------------------------------------------
# Structural validation
# ---------------------------------------------------------------------------


def validate_fault_tree(tree: FaultTree) -> ValidationResult:
    """Check a tree's structure before analysis.

    Errors: no root, cycles, a child listed twice by one gate, leaves of a
    gated type, basic events with children or without failure data, voting
    gates without a threshold in 1..inputs, NOT gates without exactly one
    input. Warnings: a root that is not a top event, gated nodes without a
    gate (read as OR), failure rates without exposure time, transfer nodes
    without a reference, nodes feeding several gates, unreachable nodes.
    """
    result = ValidationResult()
    if tree.root_node_id is None:
        result.errors.append(f"Fault tree {tree.id} has no root node")
        return result

    root = tree.nodes[tree.root_node_id]
    if root.node_type != FaultTreeNodeType.TOP_EVENT:
        result.warnings.append(f"Root node should be type 'top-event', is '{root.node_type}'")

    checked: set[str] = set()
    shared: set[str] = set()

    def walk(node_id: str, path: list[str]) -> None:
        if node_id in path:
            result.errors.append(f"Cycle detected: {' -> '.join([*path, node_id])}")
            return
        if node_id in checked:
            if node_id not in shared:
                shared.add(node_id)
                result.warnings.append(
                    f"Node {node_id} feeds several gates; its occurrences are treated as independent"
                )
            return
        checked.add(node_id)
        node = tree.nodes[node_id]
        _check_node(node, result)
        for child_id in dict.fromkeys(node.children):
            walk(child_id, [*path, node_id])

    walk(tree.root_node_id, [])

    for node_id in tree.nodes:
        if node_id not in checked:
            result.warnings.append(f"Node {node_id} is not reachable from the root")
    return result


def _check_node(node: FaultTreeNode, result: ValidationResult) -> None:
    if node.node_type == FaultTreeNodeType.TRANSFER and not node.transfer_ref:
        result.warnings.append(f"Transfer node {node.id} has no transfer reference")

    if not node.children:
        if node.node_type not in _LEAF_TYPES and node.node_type != FaultTreeNodeType.TRANSFER:
            result.errors.append(
                f"Node {node.id} is a leaf but has type '{node.node_type}' "
                "(expected basic-event, undeveloped or house-event)"
            )
        if node.node_type in _RANKED_TYPES:
            data = node.failure_data
            if data is None or (data.probability is None and data.failure_rate is None):
                result.errors.append(f"Basic event {node.id} has no probability or failure rate defined")
            elif data.failure_rate is not None and data.exposure_time is None:
                result.warnings.append(f"Basic event {node.id} has failure rate but no exposure time")
        return

    if len(set(node.children)) != len(node.children):
        result.errors.append(f"Node {node.id} lists the same child more than once")
    if node.node_type in _RANKED_TYPES:
        result.errors.append(f"Node {node.id} has children but is marked as '{node.node_type}'")
    if node.gate is None:
        result.warnings.append(f"Intermediate node {node.id} has no gate defined (will default to OR)")
    elif node.gate == GateType.VOTING:
        n = len(set(node.children))
        if node.voting_threshold is None:
            result.errors.append(f"Voting gate {node.id} has no voting threshold defined")
        elif not 1 <= node.voting_threshold <= n:
            result.errors.append(
                f"Voting gate {node.id} has invalid threshold {node.voting_threshold} for {n} children"
            )
    elif node.gate == GateType.NOT and len(node.children) != 1:
        result.errors.append(f"NOT gate {node.id} must have exactly 1 child, has {len(node.children)}")
