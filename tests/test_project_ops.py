"""Tests for Project -> Project operations."""

from __future__ import annotations

import logging

import pytest

from plotweaver.editor import outline_tree, project_ops
from plotweaver.editor.document_model import Character, Note, OutlineNode, Project, Task, TaskList
from plotweaver.editor.outline_tree import MoveTarget


# =============================================================================
# Outline
# =============================================================================


class TestOutline:
    def test_add_section_at_root_and_under_parent(self, sample_project: Project) -> None:
        root = project_ops.add_section(sample_project, OutlineNode(id="s3", title="Act Three"))
        nested = project_ops.add_section(sample_project, OutlineNode(id="x", title="X"), "s1-1-1")

        assert root.outline[-1].id == "s3"
        assert outline_tree.find_parent_id(nested.outline, "x") == "s1-1-1"

    def test_update_section(self, sample_project: Project) -> None:
        updated = project_ops.update_section(sample_project, "s1-1", title="Ch. 1", content="Draft")
        section = project_ops.find_section(updated, "s1-1")
        assert (section.title, section.content) == ("Ch. 1", "Draft")

    def test_missing_ids_return_identical_project(self, sample_project: Project) -> None:
        assert project_ops.update_section(sample_project, "ghost", title="X") is sample_project
        assert project_ops.delete_section(sample_project, "ghost") is sample_project
        assert project_ops.move_section(sample_project, "ghost") is sample_project
        assert project_ops.update_character(sample_project, "ghost", name="X") is sample_project
        assert project_ops.delete_character(sample_project, "ghost") is sample_project
        assert project_ops.delete_note(sample_project, "ghost") is sample_project
        assert project_ops.toggle_task(sample_project, "t1", "ghost") is sample_project

    def test_move_section(self, sample_project: Project) -> None:
        moved = project_ops.move_section(sample_project, "s2", MoveTarget(sibling_id="s1", position="before"))
        assert [node.id for node in moved.outline] == ["s2", "s1"]

    def test_toggle_section_export(self, sample_project: Project) -> None:
        toggled = project_ops.toggle_section_export(sample_project, "s2")
        assert project_ops.find_section(toggled, "s2").included_in_export is False

    def test_toggle_character_association(self, sample_project: Project) -> None:
        toggled = project_ops.toggle_character_association(sample_project, "s2", "c2")
        assert project_ops.find_section(toggled, "s2").character_ids == ("c1", "c2")


# =============================================================================
# Characters
# =============================================================================


class TestCharacters:
    def test_add_and_update(self, sample_project: Project) -> None:
        added = project_ops.add_character(sample_project, Character(id="c3", name="Iris"))
        updated = project_ops.update_character(added, "c3", description="Cartographer")

        assert project_ops.find_character(updated, "c3").description == "Cartographer"

    def test_update_rejects_id_change(self, sample_project: Project) -> None:
        with pytest.raises(ValueError):
            project_ops.update_character(sample_project, "c1", id="c9")

    def test_delete_cascades_through_outline(self, sample_project: Project) -> None:
        deleted = project_ops.delete_character(sample_project, "c1")

        assert project_ops.find_character(deleted, "c1") is None
        for node in outline_tree.iter_nodes(deleted.outline):
            assert "c1" not in node.character_ids
        # Other associations survive.
        assert project_ops.find_section(deleted, "s1-1").character_ids == ("c2",)

    def test_toggle_character_section_export(self, sample_project: Project) -> None:
        toggled = project_ops.toggle_character_section_export(sample_project, "c1", "appearance")
        assert project_ops.find_character(toggled, "c1").include_section("appearance") is False


# =============================================================================
# Notes and task lists
# =============================================================================


class TestNotesAndTasks:
    def test_note_lifecycle(self, sample_project: Project) -> None:
        project = project_ops.add_note(sample_project, Note(id="n2", title="Magic"))
        project = project_ops.update_note(project, "n2", content="Costs memory.")
        assert project_ops.find_note(project, "n2").content == "Costs memory."
        assert project_ops.find_note(project_ops.delete_note(project, "n2"), "n2") is None

    def test_task_list_lifecycle(self, sample_project: Project) -> None:
        project = project_ops.add_task_list(sample_project, TaskList(id="t2", title="Research"))
        project = project_ops.update_task_list(project, "t2", title="Reading")
        project = project_ops.add_task(project, "t2", Task(id="k2", text="Read about glass"))
        project = project_ops.toggle_task(project, "t2", "k2")
        project = project_ops.update_task(project, "t2", "k2", text="Read about towers")

        task = project_ops.find_task_list(project, "t2").tasks[0]
        assert (task.text, task.completed) == ("Read about towers", True)
        assert project_ops.find_task_list(project, "t2").title == "Reading"

        project = project_ops.delete_task(project, "t2", "k2")
        assert project_ops.find_task_list(project, "t2").tasks == ()
        assert project_ops.find_task_list(project_ops.delete_task_list(project, "t2"), "t2") is None

    def test_update_project_details(self, sample_project: Project) -> None:
        updated = project_ops.update_project_details(sample_project, genre="Mystery")
        assert (updated.title, updated.genre) == (sample_project.title, "Mystery")
        assert project_ops.update_project_details(sample_project) is sample_project


# =============================================================================
# Field translation
# =============================================================================


class TestFieldTranslation:
    def test_update_names_map_to_attributes(self) -> None:
        assert project_ops.remap_character_updates(
            {"characterId": "c1", "newName": "Mara Vell", "newHeightBuild": "Tall"}
        ) == {"name": "Mara Vell", "height_build": "Tall"}

    def test_create_names_map_to_attributes(self) -> None:
        assert project_ops.remap_character_fields(
            {"name": "Iris", "description": "Mapmaker", "coreMotivation": "Find home"}
        ) == {"name": "Iris", "description": "Mapmaker", "core_motivation": "Find home"}

    def test_unknown_names_dropped_with_warning(self, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="plotweaver.editor.project_ops"):
            updates = project_ops.remap_character_updates({"characterId": "c1", "newHatSize": "7"})

        assert updates == {}
        assert "newHatSize" in caplog.text

    def test_none_values_skipped(self) -> None:
        assert project_ops.remap_character_updates({"newName": None, "newAge": "40"}) == {"age": "40"}


class TestGeneratedProject:
    DRAFT = {
        "outline": [
            {
                "id": "model-1",
                "title": "Act I",
                "content": "Setup",
                "characterIds": ["ghost"],
                "children": [{"title": "Inciting Incident", "description": "The tower cracks"}],
            },
            {"title": "Act II"},
        ],
        "characters": [
            {"id": "model-c", "name": "Mara", "description": "Glazier", "heightBuild": "Tall", "age": 31},
        ],
        "notes": [{"title": "Theme", "content": "Fragility"}, "stray text"],
    }

    def test_every_record_gets_a_fresh_id(self) -> None:
        project = project_ops.project_from_generated(
            self.DRAFT, title="The Glass Tower", genre="Fantasy", description="A tower of glass"
        )

        ids = [project.id, *(node.id for node in project.outline), project.outline[0].children[0].id]
        ids += [character.id for character in project.characters] + [note.id for note in project.notes]
        assert len(set(ids)) == len(ids)
        assert "model-1" not in ids and "model-c" not in ids
        assert (project.title, project.genre, project.description) == (
            "The Glass Tower",
            "Fantasy",
            "A tower of glass",
        )

    def test_records_are_translated(self) -> None:
        project = project_ops.project_from_generated(self.DRAFT, title="T")

        act_one = project.outline[0]
        assert act_one.character_ids == ()
        assert act_one.children[0].content == "The tower cracks"
        mara = project.characters[0]
        assert (mara.name, mara.height_build, mara.age) == ("Mara", "Tall", "31")
        assert [note.title for note in project.notes] == ["Theme"]

    def test_malformed_sections_are_skipped(self, caplog) -> None:
        with caplog.at_level(logging.WARNING, logger="plotweaver.editor.project_ops"):
            project = project_ops.project_from_generated({"outline": "Act I", "characters": None}, title="T")

        assert project.outline == () and project.characters == () and project.notes == ()
        assert "expected a list" in caplog.text
