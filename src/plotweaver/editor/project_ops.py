"""``Project -> Project`` operations over outline, characters, notes and task lists.

Each function returns the identical input project when its target id does not
exist, mirroring the no-op policy of :mod:`outline_tree`.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Iterable, Mapping, Sequence, TypeVar

from . import outline_tree
from .document_model import (
    CHARACTER_PROFILE_FIELDS,
    Character,
    Note,
    OutlineNode,
    Project,
    Task,
    TaskList,
    new_id,
)
from .outline_tree import MoveTarget

LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T", Character, Note, TaskList, Task)


def _with_outline(project: Project, outline: tuple[OutlineNode, ...]) -> Project:
    if outline is project.outline:
        return project
    return replace(project, outline=outline)


def _replace_item(
    items: tuple[_T, ...], item_id: str, transform: Callable[[_T], _T]
) -> tuple[tuple[_T, ...], bool]:
    for index, item in enumerate(items):
        if item.id == item_id:
            return items[:index] + (transform(item),) + items[index + 1 :], True
    return items, False


def _drop_item(items: tuple[_T, ...], item_id: str) -> tuple[tuple[_T, ...], bool]:
    kept = tuple(item for item in items if item.id != item_id)
    return (kept, True) if len(kept) != len(items) else (items, False)


def _find(items: Iterable[_T], item_id: str) -> _T | None:
    return next((item for item in items if item.id == item_id), None)


def _reject_id_change(changes: Mapping[str, Any]) -> None:
    if "id" in changes:
        raise ValueError("Item ids are immutable")


# -----------------------------------------------------------------------------
# Project details
# -----------------------------------------------------------------------------


def update_project_details(
    project: Project,
    *,
    title: str | None = None,
    genre: str | None = None,
    description: str | None = None,
) -> Project:
    changes = {
        key: value
        for key, value in (("title", title), ("genre", genre), ("description", description))
        if value is not None
    }
    return replace(project, **changes) if changes else project


# -----------------------------------------------------------------------------
# Outline
# -----------------------------------------------------------------------------


def add_section(project: Project, node: OutlineNode, parent_id: str | None = None) -> Project:
    if parent_id is None:
        return _with_outline(project, outline_tree.insert_root(project.outline, node))
    return _with_outline(project, outline_tree.insert_child(project.outline, parent_id, node))


def update_section(project: Project, section_id: str, **changes: Any) -> Project:
    return _with_outline(project, outline_tree.set_fields(project.outline, section_id, **changes))


def delete_section(project: Project, section_id: str) -> Project:
    return _with_outline(project, outline_tree.remove(project.outline, section_id))


def move_section(project: Project, section_id: str, target: MoveTarget | None = None) -> Project:
    return _with_outline(project, outline_tree.move(project.outline, section_id, target))


def toggle_section_export(project: Project, section_id: str) -> Project:
    return _with_outline(project, outline_tree.toggle_flag(project.outline, section_id))


def toggle_character_association(project: Project, section_id: str, character_id: str) -> Project:
    return _with_outline(
        project,
        outline_tree.toggle_character_association(project.outline, section_id, character_id),
    )


def find_section(project: Project, section_id: str) -> OutlineNode | None:
    return outline_tree.find_by_id(project.outline, section_id)


# -----------------------------------------------------------------------------
# Characters
# -----------------------------------------------------------------------------


def find_character(project: Project, character_id: str) -> Character | None:
    return _find(project.characters, character_id)


def add_character(project: Project, character: Character) -> Project:
    return replace(project, characters=project.characters + (character,))


def update_character(project: Project, character_id: str, **changes: Any) -> Project:
    _reject_id_change(changes)
    if not changes:
        return project
    characters, found = _replace_item(
        project.characters, character_id, lambda character: replace(character, **changes)
    )
    return replace(project, characters=characters) if found else project


def delete_character(project: Project, character_id: str) -> Project:
    """Remove a character and strip its id from every outline association."""

    characters, found = _drop_item(project.characters, character_id)
    if not found:
        return project
    outline = outline_tree.strip_character(project.outline, character_id)
    return replace(project, characters=characters, outline=outline)


def toggle_character_section_export(project: Project, character_id: str, section: str) -> Project:
    characters, found = _replace_item(
        project.characters,
        character_id,
        lambda character: character.toggle_section_export(section),
    )
    return replace(project, characters=characters) if found else project


# -----------------------------------------------------------------------------
# Notes
# -----------------------------------------------------------------------------


def find_note(project: Project, note_id: str) -> Note | None:
    return _find(project.notes, note_id)


def add_note(project: Project, note: Note) -> Project:
    return replace(project, notes=project.notes + (note,))


def update_note(project: Project, note_id: str, **changes: Any) -> Project:
    _reject_id_change(changes)
    if not changes:
        return project
    notes, found = _replace_item(project.notes, note_id, lambda note: replace(note, **changes))
    return replace(project, notes=notes) if found else project


def delete_note(project: Project, note_id: str) -> Project:
    notes, found = _drop_item(project.notes, note_id)
    return replace(project, notes=notes) if found else project


# -----------------------------------------------------------------------------
# Task lists
# -----------------------------------------------------------------------------


def find_task_list(project: Project, list_id: str) -> TaskList | None:
    return _find(project.task_lists, list_id)


def add_task_list(project: Project, task_list: TaskList) -> Project:
    return replace(project, task_lists=project.task_lists + (task_list,))


def update_task_list(project: Project, list_id: str, *, title: str) -> Project:
    task_lists, found = _replace_item(
        project.task_lists, list_id, lambda task_list: replace(task_list, title=title)
    )
    return replace(project, task_lists=task_lists) if found else project


def delete_task_list(project: Project, list_id: str) -> Project:
    task_lists, found = _drop_item(project.task_lists, list_id)
    return replace(project, task_lists=task_lists) if found else project


def _map_tasks(
    project: Project,
    list_id: str,
    transform: Callable[[tuple[Task, ...]], tuple[tuple[Task, ...], bool]],
) -> Project:
    task_list = find_task_list(project, list_id)
    if task_list is None:
        return project
    tasks, changed = transform(task_list.tasks)
    if not changed:
        return project
    task_lists, _ = _replace_item(
        project.task_lists, list_id, lambda current: replace(current, tasks=tasks)
    )
    return replace(project, task_lists=task_lists)


def add_task(project: Project, list_id: str, task: Task) -> Project:
    return _map_tasks(project, list_id, lambda tasks: (tasks + (task,), True))


def update_task(project: Project, list_id: str, task_id: str, **changes: Any) -> Project:
    _reject_id_change(changes)
    if not changes:
        return project
    return _map_tasks(
        project,
        list_id,
        lambda tasks: _replace_item(tasks, task_id, lambda task: replace(task, **changes)),
    )


def toggle_task(project: Project, list_id: str, task_id: str) -> Project:
    return _map_tasks(
        project,
        list_id,
        lambda tasks: _replace_item(
            tasks, task_id, lambda task: replace(task, completed=not task.completed)
        ),
    )


def delete_task(project: Project, list_id: str, task_id: str) -> Project:
    return _map_tasks(project, list_id, lambda tasks: _drop_item(tasks, task_id))


# -----------------------------------------------------------------------------
# AI field translation
# -----------------------------------------------------------------------------


def _update_name(wire_name: str) -> str:
    return "new" + wire_name[0].upper() + wire_name[1:]


CHARACTER_CREATE_FIELDS: Mapping[str, str] = {
    "name": "name",
    "description": "description",
    "group": "group",
    **{spec.wire_name: spec.attribute for spec in CHARACTER_PROFILE_FIELDS},
}

CHARACTER_UPDATE_FIELDS: Mapping[str, str] = {
    _update_name(wire_name): attribute for wire_name, attribute in CHARACTER_CREATE_FIELDS.items()
}


def remap_fields(
    arguments: Mapping[str, Any],
    table: Mapping[str, str],
    *,
    ignore: Sequence[str] = (),
) -> dict[str, Any]:
    """Translate tool argument names into record attributes.

    Unknown names are dropped with a warning and ``None`` values are skipped.
    Values are passed through unchanged.
    """

    updates: dict[str, Any] = {}
    for key, value in arguments.items():
        if key in ignore:
            continue
        attribute = table.get(key)
        if attribute is None:
            LOGGER.warning("Ignoring unrecognised field %r", key)
            continue
        if value is None:
            continue
        updates[attribute] = value
    return updates


def remap_character_updates(arguments: Mapping[str, Any]) -> dict[str, Any]:
    return remap_fields(arguments, CHARACTER_UPDATE_FIELDS, ignore=("characterId",))


def remap_character_fields(arguments: Mapping[str, Any]) -> dict[str, Any]:
    return remap_fields(arguments, CHARACTER_CREATE_FIELDS)


# -----------------------------------------------------------------------------
# Generated projects
# -----------------------------------------------------------------------------


def _generated_records(payload: Mapping[str, Any], key: str) -> list[Mapping[str, Any]]:
    records = payload.get(key) or []
    if not isinstance(records, list):
        LOGGER.warning("Ignoring generated %s: expected a list, got %s", key, type(records).__name__)
        return []
    kept = [record for record in records if isinstance(record, Mapping)]
    if len(kept) != len(records):
        LOGGER.warning("Dropped %d malformed generated %s entries", len(records) - len(kept), key)
    return kept


def _generated_section(payload: Mapping[str, Any]) -> OutlineNode:
    # Ids the model invents cannot refer to anything in the new project.
    return OutlineNode(
        id=new_id(),
        title=str(payload.get("title") or ""),
        content=str(payload.get("content") or payload.get("description") or ""),
        children=tuple(
            _generated_section(child)
            for child in payload.get("children") or []
            if isinstance(child, Mapping)
        ),
    )


def project_from_generated(
    payload: Mapping[str, Any],
    *,
    title: str,
    genre: str = "",
    description: str = "",
) -> Project:
    """Build a new project from a model-drafted ``outline``/``characters``/``notes`` payload.

    Every record gets a fresh id; ids and character links present in the
    payload are discarded. Title, genre and description come from the writer,
    not from the payload.
    """

    return Project(
        id=new_id(),
        title=title,
        genre=genre,
        description=description,
        outline=tuple(_generated_section(section) for section in _generated_records(payload, "outline")),
        characters=tuple(
            Character.from_dict({**record, "id": new_id(), "exportSettings": None})
            for record in _generated_records(payload, "characters")
        ),
        notes=tuple(
            Note.from_dict({**record, "id": new_id()}) for record in _generated_records(payload, "notes")
        ),
    )


__all__ = [
    "CHARACTER_CREATE_FIELDS",
    "CHARACTER_UPDATE_FIELDS",
    "add_character",
    "add_note",
    "add_section",
    "add_task",
    "add_task_list",
    "delete_character",
    "delete_note",
    "delete_section",
    "delete_task",
    "delete_task_list",
    "find_character",
    "find_note",
    "find_section",
    "find_task_list",
    "move_section",
    "project_from_generated",
    "remap_character_fields",
    "remap_character_updates",
    "remap_fields",
    "toggle_character_association",
    "toggle_character_section_export",
    "toggle_section_export",
    "toggle_task",
    "update_character",
    "update_note",
    "update_project_details",
    "update_section",
    "update_task",
    "update_task_list",
]
