"""Tests for selection tracking across document changes."""

from __future__ import annotations

from plotweaver.editor import project_ops
from plotweaver.editor.document_model import ItemKind, ItemRef, Project
from plotweaver.editor.selection import SelectionTracker, resolve_item


class TestResolveItem:
    def test_resolves_every_kind(self, sample_project: Project) -> None:
        assert resolve_item(sample_project, ItemRef(ItemKind.OUTLINE, "s1-1-1")).title == "Scene"
        assert resolve_item(sample_project, ItemRef(ItemKind.CHARACTER, "c2")).name == "Tomas"
        assert resolve_item(sample_project, ItemRef(ItemKind.NOTE, "n1")).title == "World"
        assert resolve_item(sample_project, ItemRef(ItemKind.TASK_LIST, "t1")).title == "Revisions"

    def test_kind_must_match(self, sample_project: Project) -> None:
        assert resolve_item(sample_project, ItemRef(ItemKind.NOTE, "c1")) is None


class TestSelectionTracker:
    def test_select_unknown_clears(self, sample_project: Project) -> None:
        tracker = SelectionTracker()
        tracker.select(sample_project, ItemRef(ItemKind.CHARACTER, "c1"))

        assert tracker.select(sample_project, ItemRef(ItemKind.CHARACTER, "ghost")) is None
        assert tracker.ref is None and tracker.item is None

    def test_reconcile_picks_up_fresh_object(self, sample_project: Project) -> None:
        tracker = SelectionTracker()
        tracker.select(sample_project, ItemRef(ItemKind.OUTLINE, "s1-1-1"))
        updated = project_ops.update_section(sample_project, "s1-1-1", title="Climb")

        assert tracker.reconcile(updated) is True
        assert tracker.item.title == "Climb"

    def test_reconcile_unrelated_change_reports_no_change(self, sample_project: Project) -> None:
        tracker = SelectionTracker()
        tracker.select(sample_project, ItemRef(ItemKind.NOTE, "n1"))
        updated = project_ops.update_section(sample_project, "s2", title="Act II")

        assert tracker.reconcile(updated) is False
        assert tracker.ref == ItemRef(ItemKind.NOTE, "n1")

    def test_reconcile_drops_deleted_item(self, sample_project: Project) -> None:
        tracker = SelectionTracker()
        tracker.select(sample_project, ItemRef(ItemKind.OUTLINE, "s1-1-1"))

        assert tracker.reconcile(project_ops.delete_section(sample_project, "s1")) is True
        assert tracker.ref is None

    def test_reconcile_without_selection(self, sample_project: Project) -> None:
        assert SelectionTracker().reconcile(sample_project) is False
