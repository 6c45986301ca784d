"""Immutable records describing a writing project.

Every record is a frozen dataclass holding tuples and read-only mappings
rather than lists and dicts, so a :class:`Project` value can be kept as an
undo snapshot and compared with ``==`` to detect no-op mutations. ``to_dict``/``from_dict`` speak the camelCase
JSON shape used by project files and backups.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, ClassVar, Iterable, Mapping


def new_id() -> str:
    """Return a fresh opaque identifier."""

    return uuid.uuid4().hex


def _camel(attribute: str) -> str:
    head, *rest = attribute.split("_")
    return head + "".join(part.capitalize() for part in rest)


def _optional_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


class ItemKind(Enum):
    """Kinds of item that can be opened in the main editing surface."""

    OUTLINE = "outline"
    CHARACTER = "character"
    NOTE = "note"
    TASK_LIST = "taskList"


# -----------------------------------------------------------------------------
# Character profile table
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ProfileField:
    """One optional narrative-profile field on :class:`Character`.

    Attributes:
        attribute: Python attribute name on the dataclass.
        label: Human-readable label used when formatting profiles.
        section: Logical profile section, used by the export-inclusion map.
    """

    attribute: str
    label: str
    section: str

    @property
    def wire_name(self) -> str:
        """camelCase name used in JSON payloads and tool arguments."""
        return _camel(self.attribute)


def _fields(section: str, *entries: tuple[str, str]) -> tuple[ProfileField, ...]:
    return tuple(ProfileField(attribute, label, section) for attribute, label in entries)


CHARACTER_PROFILE_FIELDS: tuple[ProfileField, ...] = (
    *_fields(
        "identity",
        ("aliases", "Aliases/Titles"),
        ("age", "Age"),
        ("gender", "Gender/Pronouns"),
        ("species", "Species/Race"),
        ("occupation", "Occupation/Role"),
        ("affiliations", "Affiliations"),
    ),
    *_fields(
        "appearance",
        ("height_build", "Height/Build"),
        ("face_hair_eyes", "Face/Hair/Eyes"),
        ("style_outfit", "Style/Outfit"),
        ("vocal_traits", "Vocal Traits"),
        ("health_abilities", "Health/Abilities"),
    ),
    *_fields(
        "psychology",
        ("core_motivation", "Core Motivation"),
        ("long_term_goal", "Long-term Goal"),
        ("fear_flaw", "Fear/Flaw"),
        ("moral_alignment", "Moral Alignment"),
        ("temperament", "Temperament"),
        ("emotional_triggers", "Emotional Triggers"),
    ),
    *_fields(
        "backstory",
        ("origin_story", "Origin Story"),
        ("family_mentors", "Family/Mentors"),
        ("secrets_regrets", "Secrets/Regrets"),
        ("relationships_timeline", "Relationships Timeline"),
    ),
    *_fields(
        "story_function",
        ("story_role", "Story Role"),
        ("introduction_point", "Introduction Point"),
        ("arc_summary", "Arc Summary"),
        ("conflict_contribution", "Conflict Contribution"),
        ("change_metric", "Change Metric"),
    ),
    *_fields(
        "voice",
        ("diction_slang_tone", "Diction/Slang/Tone"),
        ("gestures_habits", "Gestures/Habits"),
        ("signature_phrases", "Signature Phrases"),
        ("internal_thought_style", "Internal Thought Style"),
    ),
    *_fields(
        "world",
        ("home_environment_influence", "Home Environment Influence"),
        ("cultural_religious_background", "Cultural/Religious Background"),
        ("economic_political_status", "Economic/Political Status"),
        ("technology_magic_interaction", "Technology/Magic Interaction"),
        ("ties_to_world_events", "Ties to World Events"),
    ),
    *_fields(
        "meta",
        ("first_last_appearance", "First/Last Appearance"),
        ("actor_visual_reference", "Actor/Visual Reference"),
        ("symbolic_objects_themes", "Symbolic Objects/Themes"),
        ("evolution_notes", "Evolution Notes"),
        ("cross_links", "Cross Links"),
        ("inner_monologue_example", "Inner Monologue Example"),
        ("playlist_sound_palette", "Playlist/Sound Palette"),
        ("color_palette_motifs", "Color Palette/Motifs"),
        ("ai_game_reference", "AI/Game Reference"),
        ("development_notes", "Development Notes"),
    ),
)

PROFILE_SECTIONS: tuple[str, ...] = tuple(dict.fromkeys(spec.section for spec in CHARACTER_PROFILE_FIELDS))
PROFILE_FIELDS_BY_ATTRIBUTE: Mapping[str, ProfileField] = {
    spec.attribute: spec for spec in CHARACTER_PROFILE_FIELDS
}


# -----------------------------------------------------------------------------
# Outline
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class OutlineNode:
    """A section of the outline and its exclusively owned subsections.

    ``include_in_export`` is ``None`` until a user first toggles it; an unset
    flag reads as included.
    """

    KIND: ClassVar[ItemKind] = ItemKind.OUTLINE

    id: str
    title: str
    content: str = ""
    children: tuple["OutlineNode", ...] = ()
    character_ids: tuple[str, ...] = ()
    image_url: str | None = None
    include_in_export: bool | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.children, tuple):
            object.__setattr__(self, "children", tuple(self.children))
        if not isinstance(self.character_ids, tuple):
            object.__setattr__(self, "character_ids", tuple(self.character_ids))

    @property
    def included_in_export(self) -> bool:
        return self.include_in_export is not False

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "type": self.KIND.value,
        }
        if self.children:
            payload["children"] = [child.to_dict() for child in self.children]
        if self.character_ids:
            payload["characterIds"] = list(self.character_ids)
        if self.image_url is not None:
            payload["imageUrl"] = self.image_url
        if self.include_in_export is not None:
            payload["includeInExport"] = self.include_in_export
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "OutlineNode":
        children_payload = payload.get("children") or []
        flag = payload.get("includeInExport")
        return cls(
            id=str(payload.get("id", "")),
            title=str(payload.get("title", "")),
            content=str(payload.get("content") or ""),
            children=tuple(
                cls.from_dict(child) for child in children_payload if isinstance(child, Mapping)
            ),
            character_ids=tuple(str(item) for item in payload.get("characterIds") or []),
            image_url=_optional_str(payload.get("imageUrl")),
            include_in_export=None if flag is None else bool(flag),
        )


# -----------------------------------------------------------------------------
# Characters, notes and task lists
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class Character:
    """A cast member with a free-text description and an optional deep profile."""

    KIND: ClassVar[ItemKind] = ItemKind.CHARACTER

    id: str
    name: str
    description: str = ""
    group: str | None = None
    image_url: str | None = None
    export_sections: Mapping[str, bool] = field(default_factory=dict)
    # identity
    aliases: str | None = None
    age: str | None = None
    gender: str | None = None
    species: str | None = None
    occupation: str | None = None
    affiliations: str | None = None
    # appearance
    height_build: str | None = None
    face_hair_eyes: str | None = None
    style_outfit: str | None = None
    vocal_traits: str | None = None
    health_abilities: str | None = None
    # psychology
    core_motivation: str | None = None
    long_term_goal: str | None = None
    fear_flaw: str | None = None
    moral_alignment: str | None = None
    temperament: str | None = None
    emotional_triggers: str | None = None
    # backstory
    origin_story: str | None = None
    family_mentors: str | None = None
    secrets_regrets: str | None = None
    relationships_timeline: str | None = None
    # story function
    story_role: str | None = None
    introduction_point: str | None = None
    arc_summary: str | None = None
    conflict_contribution: str | None = None
    change_metric: str | None = None
    # voice
    diction_slang_tone: str | None = None
    gestures_habits: str | None = None
    signature_phrases: str | None = None
    internal_thought_style: str | None = None
    # world
    home_environment_influence: str | None = None
    cultural_religious_background: str | None = None
    economic_political_status: str | None = None
    technology_magic_interaction: str | None = None
    ties_to_world_events: str | None = None
    # meta
    first_last_appearance: str | None = None
    actor_visual_reference: str | None = None
    symbolic_objects_themes: str | None = None
    evolution_notes: str | None = None
    cross_links: str | None = None
    inner_monologue_example: str | None = None
    playlist_sound_palette: str | None = None
    color_palette_motifs: str | None = None
    ai_game_reference: str | None = None
    development_notes: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.export_sections, MappingProxyType):
            object.__setattr__(self, "export_sections", MappingProxyType(dict(self.export_sections)))

    def profile(self) -> dict[str, str]:
        """Return the populated profile fields keyed by attribute name."""
        values: dict[str, str] = {}
        for spec in CHARACTER_PROFILE_FIELDS:
            value = getattr(self, spec.attribute)
            if value:
                values[spec.attribute] = value
        return values

    def include_section(self, section: str) -> bool:
        return self.export_sections.get(section, True)

    def toggle_section_export(self, section: str) -> "Character":
        if section not in PROFILE_SECTIONS:
            raise ValueError(f"Unknown profile section: {section!r}")
        sections = dict(self.export_sections)
        sections[section] = not self.include_section(section)
        return replace(self, export_sections=sections)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "type": self.KIND.value,
        }
        if self.group is not None:
            payload["group"] = self.group
        if self.image_url is not None:
            payload["imageUrl"] = self.image_url
        for spec in CHARACTER_PROFILE_FIELDS:
            value = getattr(self, spec.attribute)
            if value is not None:
                payload[spec.wire_name] = value
        if self.export_sections:
            payload["exportSettings"] = dict(self.export_sections)
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Character":
        profile = {
            spec.attribute: _optional_str(payload.get(spec.wire_name))
            for spec in CHARACTER_PROFILE_FIELDS
        }
        sections = payload.get("exportSettings")
        return cls(
            id=str(payload.get("id", "")),
            name=str(payload.get("name", "")),
            description=str(payload.get("description") or ""),
            group=_optional_str(payload.get("group")),
            image_url=_optional_str(payload.get("imageUrl")),
            export_sections=(
                {str(key): bool(value) for key, value in sections.items()}
                if isinstance(sections, Mapping)
                else {}
            ),
            **profile,
        )


@dataclass(slots=True, frozen=True)
class Note:
    KIND: ClassVar[ItemKind] = ItemKind.NOTE

    id: str
    title: str
    content: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "title": self.title, "content": self.content, "type": self.KIND.value}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Note":
        return cls(
            id=str(payload.get("id", "")),
            title=str(payload.get("title", "")),
            content=str(payload.get("content") or ""),
        )


@dataclass(slots=True, frozen=True)
class Task:
    id: str
    text: str
    completed: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "text": self.text, "isCompleted": self.completed}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Task":
        return cls(
            id=str(payload.get("id", "")),
            text=str(payload.get("text", "")),
            completed=bool(payload.get("isCompleted", False)),
        )


@dataclass(slots=True, frozen=True)
class TaskList:
    KIND: ClassVar[ItemKind] = ItemKind.TASK_LIST

    id: str
    title: str
    tasks: tuple[Task, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.tasks, tuple):
            object.__setattr__(self, "tasks", tuple(self.tasks))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.KIND.value,
            "tasks": [task.to_dict() for task in self.tasks],
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "TaskList":
        return cls(
            id=str(payload.get("id", "")),
            title=str(payload.get("title", "")),
            tasks=tuple(
                Task.from_dict(item) for item in payload.get("tasks") or [] if isinstance(item, Mapping)
            ),
        )


SelectableItem = OutlineNode | Character | Note | TaskList


@dataclass(slots=True, frozen=True)
class ItemRef:
    """View reference to a selectable item, re-resolved after every change."""

    kind: ItemKind
    id: str

    @classmethod
    def of(cls, item: SelectableItem) -> "ItemRef":
        return cls(kind=item.KIND, id=item.id)


# -----------------------------------------------------------------------------
# Project
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class Project:
    """The unit of persistence, undo history and AI context.

    Attributes:
        id: Stable project identifier.
        title: Working title.
        genre: Free-text genre.
        description: Pitch or synopsis.
        outline: Top-level outline forest.
        characters: Character roster, in display order.
        notes: Free-form notes.
        task_lists: Task lists with their tasks.
        last_modified: Epoch seconds of the last successful save, stamped by
            the persistence layer.
    """

    id: str
    title: str
    genre: str = ""
    description: str = ""
    outline: tuple[OutlineNode, ...] = ()
    characters: tuple[Character, ...] = ()
    notes: tuple[Note, ...] = ()
    task_lists: tuple[TaskList, ...] = ()
    last_modified: float | None = None

    def __post_init__(self) -> None:
        for name in ("outline", "characters", "notes", "task_lists"):
            value = getattr(self, name)
            if not isinstance(value, tuple):
                object.__setattr__(self, name, tuple(value))

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "genre": self.genre,
            "description": self.description,
            "outline": [node.to_dict() for node in self.outline],
            "characters": [character.to_dict() for character in self.characters],
            "notes": [note.to_dict() for note in self.notes],
            "taskLists": [task_list.to_dict() for task_list in self.task_lists],
        }
        if self.last_modified is not None:
            payload["lastModified"] = self.last_modified
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "Project":
        project_id = str(payload.get("id", ""))
        last_modified = payload.get("lastModified")
        return cls(
            id=project_id,
            title=str(payload.get("title", "")),
            genre=str(payload.get("genre") or ""),
            description=str(payload.get("description") or ""),
            outline=_records(OutlineNode, payload.get("outline")),
            characters=_records(Character, payload.get("characters")),
            notes=_notes_from_payload(project_id, payload.get("notes")),
            task_lists=_records(TaskList, payload.get("taskLists")),
            last_modified=float(last_modified) if last_modified is not None else None,
        )


def _records(record_type: Any, items: Iterable[Any] | None) -> tuple[Any, ...]:
    return tuple(record_type.from_dict(item) for item in items or [] if isinstance(item, Mapping))


def _notes_from_payload(project_id: str, value: Any) -> tuple[Note, ...]:
    # Older project files stored notes as a single free-text string.
    if isinstance(value, str):
        if not value:
            return ()
        return (Note(id=f"{project_id}-notes", title="Notes", content=value),)
    return _records(Note, value)


__all__ = [
    "CHARACTER_PROFILE_FIELDS",
    "Character",
    "ItemKind",
    "ItemRef",
    "Note",
    "OutlineNode",
    "PROFILE_FIELDS_BY_ATTRIBUTE",
    "PROFILE_SECTIONS",
    "ProfileField",
    "Project",
    "SelectableItem",
    "Task",
    "TaskList",
    "new_id",
]
