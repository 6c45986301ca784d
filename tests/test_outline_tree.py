"""Tests for the pure outline forest operations."""

from __future__ import annotations

import logging

import pytest

from plotweaver.editor import outline_tree
from plotweaver.editor.document_model import OutlineNode
from plotweaver.editor.outline_tree import MoveTarget


def _node(node_id: str, *children: OutlineNode, **fields) -> OutlineNode:
    return OutlineNode(id=node_id, title=node_id.upper(), children=children, **fields)


def _shape(forest) -> list:
    """Nested (id, children) structure for compact assertions."""
    return [(node.id, _shape(node.children)) if node.children else node.id for node in forest]


@pytest.fixture
def forest() -> tuple[OutlineNode, ...]:
    return (
        _node("a", _node("a1", _node("a1x")), _node("a2")),
        _node("b"),
        _node("c", _node("c1")),
    )


# =============================================================================
# Queries
# =============================================================================


class TestQueries:
    def test_iter_nodes_is_depth_first(self, forest) -> None:
        assert [node.id for node in outline_tree.iter_nodes(forest)] == ["a", "a1", "a1x", "a2", "b", "c", "c1"]

    def test_find_by_id_searches_every_depth(self, forest) -> None:
        assert outline_tree.find_by_id(forest, "a1x").title == "A1X"
        assert outline_tree.find_by_id(forest, "missing") is None

    def test_find_parent_id(self, forest) -> None:
        assert outline_tree.find_parent_id(forest, "a1x") == "a1"
        assert outline_tree.find_parent_id(forest, "b") is None

    def test_collect_ids(self, forest) -> None:
        assert outline_tree.collect_ids((forest[0],)) == {"a", "a1", "a1x", "a2"}

    def test_new_node_gets_fresh_id(self) -> None:
        first = outline_tree.new_node("One")
        second = outline_tree.new_node("One")
        assert first.id != second.id
        assert first.children == ()


# =============================================================================
# Field updates
# =============================================================================


class TestFieldUpdates:
    def test_rename_deep_node_leaves_input_untouched(self, forest) -> None:
        updated = outline_tree.rename(forest, "a1x", "Renamed")

        assert outline_tree.find_by_id(updated, "a1x").title == "Renamed"
        assert outline_tree.find_by_id(forest, "a1x").title == "A1X"
        # Untouched branches are shared, not copied.
        assert updated[1] is forest[1]

    def test_missing_id_returns_same_forest(self, forest) -> None:
        assert outline_tree.rename(forest, "nope", "X") is forest
        assert outline_tree.set_content(forest, "nope", "X") is forest
        assert outline_tree.toggle_flag(forest, "nope") is forest

    def test_set_fields_rejects_structural_fields(self, forest) -> None:
        with pytest.raises(ValueError):
            outline_tree.set_fields(forest, "a", children=())
        with pytest.raises(ValueError):
            outline_tree.set_fields(forest, "a", id="z")

    def test_double_toggle_restores_default_meaning(self, forest) -> None:
        once = outline_tree.toggle_flag(forest, "a2")
        twice = outline_tree.toggle_flag(once, "a2")

        assert outline_tree.find_by_id(forest, "a2").included_in_export is True
        assert outline_tree.find_by_id(once, "a2").included_in_export is False
        assert outline_tree.find_by_id(twice, "a2").included_in_export is True

    def test_toggle_character_association(self, forest) -> None:
        added = outline_tree.toggle_character_association(forest, "b", "c9")
        removed = outline_tree.toggle_character_association(added, "b", "c9")

        assert outline_tree.find_by_id(added, "b").character_ids == ("c9",)
        assert outline_tree.find_by_id(removed, "b").character_ids == ()

    def test_strip_character_at_every_depth(self) -> None:
        forest = (
            _node("a", _node("a1", _node("a1x", character_ids=("x", "y"))), character_ids=("x",)),
            _node("b", character_ids=("y",)),
        )
        stripped = outline_tree.strip_character(forest, "x")

        assert all("x" not in node.character_ids for node in outline_tree.iter_nodes(stripped))
        assert outline_tree.find_by_id(stripped, "a1x").character_ids == ("y",)
        assert stripped[1] is forest[1]

    def test_strip_unknown_character_returns_same_forest(self, forest) -> None:
        assert outline_tree.strip_character(forest, "ghost") is forest


# =============================================================================
# Structure
# =============================================================================


class TestStructure:
    def test_insert_then_remove_round_trips(self, forest) -> None:
        child = _node("new", _node("new-child"))
        inserted = outline_tree.insert_child(forest, "a1x", child)

        assert outline_tree.find_parent_id(inserted, "new") == "a1x"
        assert outline_tree.remove(inserted, "new") == forest

    def test_insert_root_appends(self, forest) -> None:
        assert _shape(outline_tree.insert_root(forest, _node("z")))[-1] == "z"

    def test_insert_under_missing_parent_is_noop(self, forest) -> None:
        assert outline_tree.insert_child(forest, "ghost", _node("z")) is forest

    @pytest.mark.parametrize("node_id", ["a", "a1", "a1x", "c1"])
    def test_remove_takes_whole_subtree(self, forest, node_id: str) -> None:
        doomed = outline_tree.collect_ids((outline_tree.find_by_id(forest, node_id),))
        remaining = outline_tree.collect_ids(outline_tree.remove(forest, node_id))

        assert remaining == outline_tree.collect_ids(forest) - doomed


# =============================================================================
# Move
# =============================================================================


class TestMove:
    def test_move_before_sibling(self) -> None:
        forest = (_node("a"), _node("b"))
        moved = outline_tree.move(forest, "b", MoveTarget(sibling_id="a", position="before"))
        assert _shape(moved) == ["b", "a"]

    def test_move_after_sibling_is_default(self) -> None:
        forest = (_node("a"), _node("b"), _node("c"))
        assert _shape(outline_tree.move(forest, "a", MoveTarget(sibling_id="b"))) == ["b", "a", "c"]

    def test_move_into_parent_appends_child(self, forest) -> None:
        moved = outline_tree.move(forest, "b", MoveTarget(parent_id="c"))
        assert _shape(moved) == [("a", [("a1", ["a1x"]), "a2"]), ("c", ["c1", "b"])]

    def test_move_with_no_target_promotes_to_root(self, forest) -> None:
        moved = outline_tree.move(forest, "a1x")
        assert _shape(moved)[-1] == "a1x"
        assert outline_tree.find_parent_id(moved, "a1x") is None

    def test_sibling_wins_over_parent(self, forest) -> None:
        moved = outline_tree.move(forest, "c1", MoveTarget(parent_id="a", sibling_id="b"))
        assert outline_tree.find_parent_id(moved, "c1") is None
        assert [node.id for node in moved] == ["a", "b", "c1", "c"]

    def test_moved_subtree_keeps_children(self, forest) -> None:
        moved = outline_tree.move(forest, "a1", MoveTarget(parent_id="b"))
        assert outline_tree.find_parent_id(moved, "a1x") == "a1"
        assert outline_tree.find_parent_id(moved, "a1") == "b"

    @pytest.mark.parametrize(
        "target",
        [
            MoveTarget(parent_id="a"),
            MoveTarget(parent_id="a1x"),
            MoveTarget(sibling_id="a2"),
            MoveTarget(sibling_id="a1x", position="before"),
        ],
    )
    def test_rejects_move_into_own_subtree(self, forest, target, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="plotweaver.editor.outline_tree"):
            result = outline_tree.move(forest, "a", target)

        assert result == forest
        assert "own subtree" in caplog.text

    def test_missing_target_leaves_forest_unchanged(self, forest) -> None:
        assert outline_tree.move(forest, "b", MoveTarget(parent_id="ghost")) == forest

    def test_missing_node_is_noop(self, forest) -> None:
        assert outline_tree.move(forest, "ghost", MoveTarget(parent_id="a")) == forest

    def test_invalid_position_rejected(self) -> None:
        with pytest.raises(ValueError):
            MoveTarget(sibling_id="a", position="inside")  # type: ignore[arg-type]
