"""Undo/redo through the store: every mutating operation is reversible."""

import pytest

from src.models.common import ArtifactType, HazardStatus
from src.store.safety_store import SafetyStore


def _hazard_draft(title: str = "Hydraulic fluid fire") -> dict[str, object]:
    return {"title": title, "severity": "Hazardous", "likelihood": "Remote", "dal": "B"}


def _collections(store: SafetyStore) -> tuple:
    state = store.state
    return (
        state.hazards, state.fault_trees, state.gsn_nodes,
        state.requirements, state.fmea_items, state.evidence,
    )


class TestEntityActions:
    def test_undo_add_then_redo(self, store: SafetyStore) -> None:
        hazard_id = store.add_hazard(_hazard_draft())
        created = store.get_hazard(hazard_id)

        store.undo()
        assert store.get_hazard(hazard_id) is None
        assert store.can_redo()

        store.redo()
        assert store.get_hazard(hazard_id) == created
        assert not store.can_redo()

    def test_undo_update_restores_previous_version(self, store: SafetyStore) -> None:
        hazard_id = store.add_hazard(_hazard_draft())
        previous = store.get_hazard(hazard_id)
        store.update_hazard(hazard_id, {"status": HazardStatus.CLOSED})

        store.undo()
        assert store.get_hazard(hazard_id) == previous
        assert store.get_hazard(hazard_id).change_history == ()

    def test_undo_delete_restores_links_on_both_sides(self, store: SafetyStore) -> None:
        hazard_id = store.add_hazard(_hazard_draft())
        ev_id = store.add_evidence({"evidence_type": "AnalysisReport", "title": "Zonal analysis"})
        store.link(ArtifactType.HAZARD, hazard_id, ArtifactType.EVIDENCE, ev_id)
        linked = _collections(store)

        store.delete_evidence(ev_id)
        assert store.get_hazard(hazard_id).linked_evidence == ()

        store.undo()
        assert _collections(store) == linked

    def test_undo_requirement_delete_restores_hierarchy(self, store: SafetyStore) -> None:
        parent = store.add_requirement({"text": "Parent", "dal": "B"})
        child = store.add_requirement({"text": "Child", "dal": "B", "parent_id": parent})
        grandchild = store.add_requirement({"text": "Grandchild", "dal": "B", "parent_id": child})
        before = store.state.requirements

        store.delete_requirement(child)
        store.undo()
        assert store.state.requirements == before
        assert store.get_requirement(grandchild).parent_id == child

    @pytest.mark.parametrize("kind", ["fault_tree", "gsn_node", "fmea_item", "evidence"])
    def test_every_kind_round_trips(self, store: SafetyStore, kind: str) -> None:
        drafts = {
            "fault_tree": {"name": "Loss of pitch control"},
            "gsn_node": {"node_type": "Strategy", "label": "Argue over hazards"},
            "fmea_item": {
                "component": "Actuator", "failure_mode": "Jam",
                "severity": 9, "occurrence": 2, "detection": 5,
            },
            "evidence": {"evidence_type": "ReviewRecord", "title": "Design review"},
        }
        updates = {
            "fault_tree": {"description": "Elevator path"},
            "gsn_node": {"status": "complete"},
            "fmea_item": {"occurrence": 3},
            "evidence": {"location": "docs/review.pdf"},
        }
        entity_id = getattr(store, f"add_{kind}")(drafts[kind])
        get = getattr(store, f"get_{kind}")
        created = get(entity_id)
        getattr(store, f"update_{kind}")(entity_id, updates[kind])
        updated = get(entity_id)
        getattr(store, f"delete_{kind}")(entity_id)

        store.undo()
        assert get(entity_id) == updated
        store.undo()
        assert get(entity_id) == created
        store.undo()
        assert get(entity_id) is None

        store.redo()
        store.redo()
        store.redo()
        assert get(entity_id) is None
        assert not store.can_redo()

    def test_fault_tree_node_actions(self, store: SafetyStore) -> None:
        tree_id = store.add_fault_tree({"name": "FTA"})
        top = store.add_fault_tree_node(tree_id, None, {"label": "Top", "node_type": "top-event", "gate": "OR"})
        store.add_fault_tree_node(tree_id, top, {"label": "Leaf", "node_type": "basic-event"})
        with_leaf = store.get_fault_tree(tree_id)

        store.delete_fault_tree_node(tree_id, top)
        assert store.get_fault_tree(tree_id).root_node_id is None
        store.undo()
        assert store.get_fault_tree(tree_id) == with_leaf


class TestLinkActions:
    def test_undo_link_and_unlink(self, store: SafetyStore) -> None:
        hazard_id = store.add_hazard(_hazard_draft())
        gsn_id = store.add_gsn_node({"node_type": "Goal", "label": "Fire risk acceptable"})
        unlinked = _collections(store)

        store.link(ArtifactType.GSN_NODE, gsn_id, ArtifactType.HAZARD, hazard_id)
        linked = _collections(store)
        store.unlink(ArtifactType.GSN_NODE, gsn_id, ArtifactType.HAZARD, hazard_id)

        store.undo()
        assert _collections(store) == linked
        store.undo()
        assert _collections(store) == unlinked

    def test_link_between_missing_ids_keeps_redo(self, store: SafetyStore) -> None:
        hazard_id = store.add_hazard(_hazard_draft())
        store.update_hazard(hazard_id, {"owner": "Cabin Team"})
        store.undo()
        assert store.can_redo()
        before = store.state

        store.link(ArtifactType.HAZARD, "HAZ-x", ArtifactType.EVIDENCE, "EV-x")
        assert store.can_redo()
        assert store.state is before
        assert [a.action_type for a in store.state.undo_stack] == ["ADD_HAZARD"]

        store.redo()
        assert store.get_hazard(hazard_id).owner == "Cabin Team"

    def test_repeated_link_and_absent_unlink_not_recorded(self, store: SafetyStore) -> None:
        hazard_id = store.add_hazard(_hazard_draft())
        ev_id = store.add_evidence({"evidence_type": "AnalysisReport", "title": "Zonal analysis"})
        store.link(ArtifactType.HAZARD, hazard_id, ArtifactType.EVIDENCE, ev_id)
        depth = len(store.state.undo_stack)

        store.link(ArtifactType.EVIDENCE, ev_id, ArtifactType.HAZARD, hazard_id)
        store.unlink(ArtifactType.HAZARD, hazard_id, ArtifactType.REQUIREMENT, "REQ-x")
        assert len(store.state.undo_stack) == depth


class TestBulkActions:
    def test_undo_import_restores_collections_and_selection(self, store: SafetyStore) -> None:
        store.load_sample_data()
        store.select_hazard("HAZ-003")
        store.set_filters({"search_query": "hydraulic"})
        before = store.state

        store.import_data({"hazards": {}, "filters": {"tags": ["fire"]}})
        assert store.hazards == {}
        assert store.state.selected_hazard_id is None
        assert store.state.filters.tags == ("fire",)

        store.undo()
        assert store.state.hazards == before.hazards
        assert store.state.selected_hazard_id == "HAZ-003"
        assert store.state.filters == before.filters

        store.redo()
        assert store.hazards == {}
        assert store.state.filters.tags == ("fire",)

    def test_undo_clear_all(self, store: SafetyStore) -> None:
        store.load_sample_data()
        req_id = store.add_requirement({"text": "Detect fire", "dal": "A"})
        store.select_hazard("HAZ-001")
        before = _collections(store)

        store.clear_all()
        assert len(store.state.undo_stack) == 1

        store.undo()
        assert _collections(store) == before
        assert store.get_requirement(req_id) is not None
        assert store.state.selected_hazard_id == "HAZ-001"
        assert not store.can_undo()

    def test_load_sample_data_empties_logs(self, store: SafetyStore) -> None:
        store.add_hazard(_hazard_draft())
        store.undo()
        store.load_sample_data()
        assert not store.can_undo()
        assert not store.can_redo()


class TestLogBounds:
    def test_fifty_one_mutations_keep_fifty(self, store: SafetyStore) -> None:
        ids = [store.add_hazard(_hazard_draft(f"Hazard {i}")) for i in range(51)]
        assert len(store.state.undo_stack) == 50

        for _ in range(50):
            store.undo()
        assert not store.can_undo()
        assert list(store.hazards) == [ids[0]]

    def test_new_mutation_clears_redo(self, store: SafetyStore) -> None:
        store.add_hazard(_hazard_draft())
        store.undo()
        assert store.can_redo()
        store.add_hazard(_hazard_draft("Another"))
        assert not store.can_redo()

    def test_undo_with_empty_log_is_noop(self, store: SafetyStore) -> None:
        before = store.state
        store.undo()
        store.redo()
        assert store.state is before

    def test_custom_limit(self, settings, persister) -> None:
        small = SafetyStore(settings=settings.model_copy(update={"UNDO_LIMIT": 2}), persister=persister)
        for i in range(3):
            small.add_evidence({"evidence_type": "Inspection", "title": f"E{i}"})
        assert len(small.state.undo_stack) == 2
