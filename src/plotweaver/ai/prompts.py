"""Prompt templates and project context formatting for the writing assistant.

The model only ever sees the project through :func:`format_project_context`,
which lists every targetable item with its ID so tool calls can name them.
"""

from __future__ import annotations

import json
from typing import Iterable, Sequence

from ..editor.document_model import (
    CHARACTER_PROFILE_FIELDS,
    Character,
    Note,
    OutlineNode,
    Project,
    SelectableItem,
    TaskList,
)

GREETING_TEMPLATE = "Hello! How can I help you with '{title}' today?"
NO_TEXT_RESPONSE = "(No text response from AI)"
NO_INCONSISTENCIES = "No inconsistencies found."
NO_ASSOCIATED_CHARACTERS = (
    "No characters are associated with this section. Please associate one or more "
    "characters before running a consistency check."
)

CONSISTENCY_CHECK_REQUEST = (
    "Please analyze the provided scene for physical inconsistencies based on your "
    "instructions. Re-read the scene multiple times if necessary to ensure no "
    "contradictions are missed."
)

# Physical fields compared against a scene, in the order they are listed.
_CONSISTENCY_FIELDS: tuple[tuple[str, str], ...] = (
    ("Description", "description"),
    ("Health/Abilities/Limitations", "health_abilities"),
    ("Height/Build", "height_build"),
    ("Face/Hair/Eyes", "face_hair_eyes"),
    ("Style/Outfit", "style_outfit"),
)


def default_persona_prompt() -> str:
    """Voice and working rules for the assistant."""
    return """You are PlotWeaver, a creative-writing partner for novelists and screenwriters.
Help with brainstorming, outlining, character development and revision.
Be encouraging but honest, and keep answers focused on the writer's project.

## Working with the project
- The project context below lists every outline section and character with its ID.
- When the writer asks for a change to the outline or the character roster, make it with a tool call instead of describing it.
- Always target items by the IDs shown in the context, never by title.
- After using tools, briefly tell the writer what you changed.
- Never promise actions you can't complete with the available tools."""


def build_system_prompt(
    persona: str,
    project: Project,
    selected_item: SelectableItem | None = None,
) -> str:
    """Combine the persona with the current project context."""
    return f"{persona}\n\n{format_project_context(project, selected_item)}"


def greeting(project: Project) -> str:
    return GREETING_TEMPLATE.format(title=project.title)


def action_summary(tool_names: Iterable[str]) -> str:
    """The one-line transcript note written after a batch of tool calls."""
    return f"(Action taken: Executed: {', '.join(tool_names)})"


def error_reply(message: str) -> str:
    return f"Sorry, there was an error: {message}"


# -----------------------------------------------------------------------------
# Project context
# -----------------------------------------------------------------------------


def format_outline(outline: Sequence[OutlineNode], level: int = 0) -> str:
    """Render the outline as an indented list with IDs."""
    lines: list[str] = []
    indent = "  " * level
    for section in outline:
        lines.append(f"{indent}- {section.title} (ID: {section.id})\n")
        if section.children:
            lines.append(format_outline(section.children, level + 1))
    return "".join(lines)


def format_project_context(project: Project, selected_item: SelectableItem | None = None) -> str:
    """Describe the project, and the item the writer is viewing, for the model."""

    parts: list[str] = [
        "PROJECT CONTEXT:\n",
        f"Title: {project.title}\n",
        f"Genre: {project.genre}\n",
        f"Description: {project.description}\n\n",
        "CHARACTERS (with IDs for targeting):\n",
    ]
    for character in project.characters:
        parts.append(
            f"- {character.name} (ID: {character.id}) "
            f"[Group: {character.group or 'Ungrouped'}]: {character.description}\n"
        )

    parts.append("\nOUTLINE (with IDs for targeting):\n")
    parts.append(format_outline(project.outline))

    parts.append("\nPROJECT NOTES (with IDs for targeting):\n")
    for note in project.notes:
        parts.append(f"- {note.title} (ID: {note.id})\n")

    if project.task_lists:
        parts.append("\nTASK LISTS (with IDs for targeting):\n")
        for task_list in project.task_lists:
            tasks = ", ".join(
                f"{task.text} [{'x' if task.completed else ' '}]" for task in task_list.tasks
            )
            parts.append(f"- {task_list.title} (ID: {task_list.id}): {tasks}\n")

    parts.append("\n\n")

    if selected_item is not None:
        parts.append("\nCURRENTLY VIEWING:\n")
        parts.append(_format_selected(selected_item))

    return "".join(parts)


def _format_selected(item: SelectableItem) -> str:
    if isinstance(item, Character):
        profile = json.dumps(item.to_dict(), indent=2, ensure_ascii=False)
        return f"Character: {item.name} (ID: {item.id})\nFull Profile: {profile}\n"
    if isinstance(item, OutlineNode):
        return f"Outline Section: {item.title} (ID: {item.id})\nContent: {item.content}\n"
    if isinstance(item, Note):
        return f"Note: {item.title} (ID: {item.id})\nContent: {item.content}\n"
    if isinstance(item, TaskList):
        tasks = json.dumps([task.to_dict() for task in item.tasks], ensure_ascii=False)
        return f"Task List: {item.title} (ID: {item.id})\nTasks: {tasks}\n"
    raise TypeError(f"Unsupported selected item: {type(item).__name__}")


# -----------------------------------------------------------------------------
# Consistency check
# -----------------------------------------------------------------------------


def format_character_for_consistency_check(character: Character) -> str:
    lines = [f"--- CHARACTER: {character.name} ---\n"]
    for label, attribute in _CONSISTENCY_FIELDS:
        value = getattr(character, attribute)
        if value and value.strip():
            lines.append(f"{label}: {value}\n")
    lines.append("\n")
    return "".join(lines)


def consistency_check_prompt(section: OutlineNode, characters: Sequence[Character]) -> str:
    """System instruction for a continuity review of one outline section."""

    profiles = "".join(format_character_for_consistency_check(c) for c in characters)
    return f"""You are a meticulous continuity editor. Your task is to find physical contradictions in a story scene by cross-referencing it with provided character profiles.

**CRITICAL INSTRUCTIONS:**
You must perform two specific checks for every character mentioned in the scene:

1.  **ACTION vs. ABILITY CHECK:**
    - Read the scene and identify what each character *does*.
    - Compare these actions to the character's profile, specifically their 'Health/Abilities/Limitations'.
    - Flag any action that should be impossible or difficult based on their profile.

2.  **DESCRIPTION vs. ATTRIBUTE CHECK:**
    - Read the scene and identify any physical descriptions of a character.
    - Compare these descriptions to the character's profile, specifically fields like 'Face/Hair/Eyes', 'Height/Build', and 'Style/Outfit'.
    - Flag any description that directly contradicts their profile.

**GENERAL RULES:**
- **BE EXHAUSTIVE:** Find *every* contradiction. Do not stop after the first one.
- **FOCUS ON PHYSICAL FACTS:** Do not analyze motivation, psychology, or emotional consistency.
- **BE CONCISE:** Your response must be extremely brief.

**OUTPUT RULES:**
- If you find **NO** contradictions after performing both checks, your entire response MUST be the single phrase: `{NO_INCONSISTENCIES}`
- Otherwise, provide a brief, numbered list of **ALL** contradictions found. For each item, state the character and the specific contradiction.

**DO NOT** provide explanations, suggestions, or positive feedback.

Here are the character profiles:
{profiles}
Here is the scene to analyze:
SECTION TITLE: {section.title}
SCENE CONTENT:
{section.content}"""


# -----------------------------------------------------------------------------
# Project generation
# -----------------------------------------------------------------------------

PROJECT_GENERATION_INSTRUCTION = """You are an expert story structure consultant and writer. Based on the provided project pitch, generate a foundational story outline, a list of 2-3 key characters, and some initial notes.
The outline should follow a standard narrative structure (e.g., Three-Act Structure). The characters should be compelling.
**You must respond with a JSON object that contains 'characters', 'outline', and 'notes' keys.**
- 'outline' is an array of section objects, each with a 'title', a 'content' summary and an optional 'children' array of nested sections.
- 'characters' is an array of character objects using the field names listed in the request.
- 'notes' is an array of note objects, each with a 'title' and 'content'."""


def project_generation_messages(title: str, genre: str, pitch: str) -> list[dict[str, str]]:
    """Messages asking the model to draft the opening outline, cast and notes."""

    fields = ", ".join(["name", "description", *(spec.wire_name for spec in CHARACTER_PROFILE_FIELDS)])
    request = (
        f"Project Title: {title}\n"
        f"Format/Genre: {genre}\n"
        f"Elevator Pitch: {pitch}\n\n"
        "Please generate the initial characters, outline, and notes for this project in the required JSON format.\n"
        "For each character, please fill out all of the following fields, being as creative and detailed "
        f"as possible: {fields}."
    )
    return [
        {"role": "system", "content": PROJECT_GENERATION_INSTRUCTION},
        {"role": "user", "content": request},
    ]


__all__ = [
    "CONSISTENCY_CHECK_REQUEST",
    "GREETING_TEMPLATE",
    "NO_ASSOCIATED_CHARACTERS",
    "NO_INCONSISTENCIES",
    "NO_TEXT_RESPONSE",
    "PROJECT_GENERATION_INSTRUCTION",
    "action_summary",
    "build_system_prompt",
    "consistency_check_prompt",
    "default_persona_prompt",
    "error_reply",
    "format_character_for_consistency_check",
    "format_outline",
    "format_project_context",
    "greeting",
    "project_generation_messages",
]
