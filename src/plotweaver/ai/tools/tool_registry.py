"""Declarative registry for the project editing tools exposed to the model.

Each tool is described by a :class:`ToolSchema` whose JSON Schema form is
sent to the backend and used to validate incoming arguments before a handler
runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from ...editor.document_model import PROFILE_FIELDS_BY_ATTRIBUTE
from ...editor.project_ops import CHARACTER_CREATE_FIELDS, CHARACTER_UPDATE_FIELDS

LOGGER = logging.getLogger(__name__)


# -----------------------------------------------------------------------------
# Tool Schema Types
# -----------------------------------------------------------------------------


@dataclass(slots=True, frozen=True)
class ParameterSchema:
    """Schema for a single tool parameter.

    Attributes:
        name: Parameter name.
        type: JSON Schema type (string, integer, boolean, object, array).
        description: Human-readable description.
        required: Whether the parameter is required.
        default: Default value if not provided.
        enum: List of allowed values.
        min_length: Minimum string length.
        max_length: Maximum string length.
    """

    name: str
    type: str
    description: str
    required: bool = False
    default: Any = None
    enum: Sequence[Any] | None = None
    min_length: int | None = None
    max_length: int | None = None

    def to_json_schema(self) -> dict[str, Any]:
        """Convert to JSON Schema format."""
        schema: dict[str, Any] = {
            "type": self.type,
            "description": self.description,
        }
        if self.default is not None:
            schema["default"] = self.default
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.min_length is not None:
            schema["minLength"] = self.min_length
        if self.max_length is not None:
            schema["maxLength"] = self.max_length
        return schema


@dataclass(slots=True)
class ToolSchema:
    """Complete schema for a tool.

    Attributes:
        name: Tool name as the model calls it.
        description: Human-readable description shown to the model.
        parameters: List of parameters.
        writes_document: Whether a successful call changes the project.
        allow_additional: Whether names outside ``parameters`` pass validation.
            Handlers that accept free-form fields drop unknown names themselves.
    """

    name: str
    description: str
    parameters: Sequence[ParameterSchema] = field(default_factory=list)
    writes_document: bool = False
    allow_additional: bool = False

    def to_json_schema(self) -> dict[str, Any]:
        """Convert to JSON Schema format for OpenAI function calling."""
        properties: dict[str, Any] = {}
        required: list[str] = []

        for param in self.parameters:
            properties[param.name] = param.to_json_schema()
            if param.required:
                required.append(param.name)

        schema: dict[str, Any] = {
            "type": "object",
            "properties": properties,
            "additionalProperties": self.allow_additional,
        }
        if required:
            schema["required"] = required

        return schema


# -----------------------------------------------------------------------------
# Tool Registration
# -----------------------------------------------------------------------------


@dataclass(slots=True)
class ToolRegistration:
    """A registered tool with its implementation and schema."""

    schema: ToolSchema
    impl: Any

    @property
    def name(self) -> str:
        return self.schema.name


# -----------------------------------------------------------------------------
# Tool Registry
# -----------------------------------------------------------------------------


class ToolRegistry:
    """Registry for the tools a conversation can call.

    Example:
        registry = ToolRegistry()
        registry.register(AddOutlineSectionTool(session), schema=ADD_OUTLINE_SECTION_SCHEMA)
        tools = registry.to_openai_tools()
    """

    def __init__(self) -> None:
        self._tools: dict[str, ToolRegistration] = {}

    def register(self, tool: Any, *, schema: ToolSchema | None = None) -> None:
        """Register a tool, replacing any earlier registration of the same name.

        Args:
            tool: Tool implementation.
            schema: Tool schema. Defaults to ``PROJECT_TOOL_SCHEMAS[tool.name]``.

        Raises:
            KeyError: If no schema is given and none is declared for the tool.
        """
        tool_schema = schema or PROJECT_TOOL_SCHEMAS[getattr(tool, "name", "")]
        self._tools[tool_schema.name] = ToolRegistration(schema=tool_schema, impl=tool)
        LOGGER.debug("Registered tool: %s", tool_schema.name)

    def get_registration(self, name: str) -> ToolRegistration | None:
        return self._tools.get(name)

    def to_openai_tools(self) -> list[dict[str, Any]]:
        """Convert all tools to OpenAI function calling format.

        Strict mode is not requested because every parameter except the
        required ones is optional.
        """
        return [
            {
                "type": "function",
                "function": {
                    "name": reg.schema.name,
                    "description": reg.schema.description,
                    "parameters": reg.schema.to_json_schema(),
                },
            }
            for reg in self._tools.values()
        ]


# -----------------------------------------------------------------------------
# Schema Definitions
# -----------------------------------------------------------------------------

# Guidance shown to the model for each profile field when creating a character.
_PROFILE_HINTS: Mapping[str, str] = {
    "aliases": "Aliases or titles for the character. Make a creative guess if not specified.",
    "age": "The character's age, birthdate, or timeline notes. Make a reasonable guess.",
    "gender": "The character's gender and/or pronouns. Make a reasonable guess.",
    "species": "The character's species, race, or origin. Make a reasonable guess based on the project genre.",
    "occupation": "The character's occupation, social role, or rank. Make a reasonable guess.",
    "affiliations": "The character's affiliations with organizations, factions, or families. Make a reasonable guess.",
    "heightBuild": "The character's height, build, posture, and movement style. Make a creative guess.",
    "faceHairEyes": "The character's face, hair, eyes, and distinguishing features. Make a creative guess.",
    "styleOutfit": "The character's typical style, outfit, and accessories. Make a creative guess.",
    "vocalTraits": "The character's vocal traits and speech patterns. Make a creative guess.",
    "healthAbilities": "The character's health, physical limitations, or special abilities. Make a creative guess.",
    "coreMotivation": "The character's core motivation or primary desire that drives them every day. Be creative.",
    "longTermGoal": "The character's long-term goal that they think will fulfill them. Be creative.",
    "fearFlaw": "The character's primary fear, flaw, or blind spot. Be creative.",
    "moralAlignment": "The character's moral alignment, values, or boundaries. Be creative.",
    "temperament": "The character's temperament or personality type (e.g., MBTI, Enneagram, archetype). Be creative.",
    "emotionalTriggers": "The character's emotional triggers, habits, or quirks. Be creative.",
    "originStory": "The character's origin story and key formative events. Be creative.",
    "familyMentors": "The character's family, mentors, enemies, and lovers. Be creative.",
    "secretsRegrets": "The character's secrets, regrets, and turning points. Be creative.",
    "relationshipsTimeline": "A timeline of the character's major relationships. Be creative.",
    "storyRole": "The character's story role or archetype (e.g., mentor, trickster, foil). Be creative.",
    "introductionPoint": "Where the character first appears in the story. Be creative.",
    "arcSummary": "A summary of the character's arc from beginning to end. Be creative.",
    "conflictContribution": "How the character drives tension and conflict in the story. Be creative.",
    "changeMetric": "The lesson the character learns or fails to learn. Be creative.",
    "dictionSlangTone": "The character's diction, slang, and typical tone of voice. Be creative.",
    "gesturesHabits": "The character's common gestures and physical habits. Be creative.",
    "signaturePhrases": "The character's signature phrases or speech tics. Be creative.",
    "internalThoughtStyle": "The style of the character's internal thoughts (e.g., pragmatic, poetic). Be creative.",
    "homeEnvironmentInfluence": "How the character's home or environment shaped them. Be creative.",
    "culturalReligiousBackground": "The character's cultural or religious background. Be creative.",
    "economicPoliticalStatus": "The character's economic or political status in their world. Be creative.",
    "technologyMagicInteraction": "How the character interacts with technology or magic. Be creative.",
    "tiesToWorldEvents": "The character's ties to major world events. Be creative.",
    "firstLastAppearance": "The character's first and last appearance in the story (e.g., chapter or scene). Be creative.",
    "actorVisualReference": "An actor or visual reference for the character's appearance. Be creative.",
    "symbolicObjectsThemes": "Symbolic objects or themes associated with the character. Be creative.",
    "evolutionNotes": "Notes on the character's planned vs. realized arc evolution. Be creative.",
    "crossLinks": "Links to other stories or timelines the character appears in. Be creative.",
    "innerMonologueExample": "An example of the character's inner monologue. Be creative.",
    "playlistSoundPalette": "A playlist or sound palette for the character. Be creative.",
    "colorPaletteMotifs": "A color palette or symbolic motifs for the character. Be creative.",
    "aiGameReference": "AI or game reference data for the character. Be creative.",
    "developmentNotes": "Notes on how the character's concept changed over drafts. Be creative.",
}


_CREATE_DESCRIPTIONS: Mapping[str, str] = {
    "name": "The name of the new character.",
    "description": "A detailed description of the character.",
    "group": "Optional roster group such as Protagonist, Antagonist or Supporting.",
    **_PROFILE_HINTS,
}

_UPDATE_DESCRIPTIONS: Mapping[str, str] = {
    "newName": "The new name for the character.",
    "newDescription": "The new description for the character.",
    "newGroup": "The new roster group for the character.",
}


def _label(attribute: str) -> str:
    spec = PROFILE_FIELDS_BY_ATTRIBUTE.get(attribute)
    return spec.label.lower() if spec is not None else attribute


def _character_parameters(table: Mapping[str, str], *, update: bool) -> list[ParameterSchema]:
    """One string parameter per entry of a character field translation table."""
    parameters = []
    for name, attribute in table.items():
        if update:
            description = _UPDATE_DESCRIPTIONS.get(name, f"The character's new {_label(attribute)}.")
        else:
            description = _CREATE_DESCRIPTIONS.get(name, f"The character's {_label(attribute)}.")
        parameters.append(
            ParameterSchema(
                name=name,
                type="string",
                description=description,
                required=not update and attribute in ("name", "description"),
                min_length=1 if attribute == "name" else None,
            )
        )
    return parameters


ADD_OUTLINE_SECTION_SCHEMA = ToolSchema(
    name="addOutlineSection",
    description=(
        "Adds a new section to the project outline. Can be a root section or a "
        "sub-section of an existing one."
    ),
    parameters=[
        ParameterSchema(
            name="title",
            type="string",
            description="The title of the new section.",
            required=True,
        ),
        ParameterSchema(
            name="content",
            type="string",
            description="Optional content for the new section.",
        ),
        ParameterSchema(
            name="parentId",
            type="string",
            description="Optional ID of the parent section. If omitted, the section is added to the root.",
        ),
    ],
    writes_document=True,
)

UPDATE_OUTLINE_SECTION_SCHEMA = ToolSchema(
    name="updateOutlineSection",
    description=(
        "Updates an existing section in the project outline. Can update the title, "
        "content, or both."
    ),
    parameters=[
        ParameterSchema(
            name="sectionId",
            type="string",
            description="The ID of the section to update.",
            required=True,
        ),
        ParameterSchema(
            name="newTitle",
            type="string",
            description="The new title for the section.",
        ),
        ParameterSchema(
            name="newContent",
            type="string",
            description="The new content for the section.",
        ),
    ],
    writes_document=True,
)

DELETE_OUTLINE_SECTION_SCHEMA = ToolSchema(
    name="deleteOutlineSection",
    description="Deletes an existing section, and all of its sub-sections, from the project outline.",
    parameters=[
        ParameterSchema(
            name="sectionId",
            type="string",
            description="The ID of the section to delete.",
            required=True,
        ),
    ],
    writes_document=True,
)

MOVE_OUTLINE_SECTION_SCHEMA = ToolSchema(
    name="moveOutlineSection",
    description=(
        "Moves an existing section to a new position in the outline. Can be used to "
        "reorder sections or change their nesting level."
    ),
    parameters=[
        ParameterSchema(
            name="sectionId",
            type="string",
            description="The ID of the section to move.",
            required=True,
        ),
        ParameterSchema(
            name="targetParentId",
            type="string",
            description=(
                "Optional. The ID of the new parent section. If omitted and no sibling "
                "is specified, the section becomes a root item."
            ),
        ),
        ParameterSchema(
            name="targetSiblingId",
            type="string",
            description="Optional. The ID of an existing section to place the moved section next to.",
        ),
        ParameterSchema(
            name="position",
            type="string",
            description="Used with 'targetSiblingId'. Can be 'before' or 'after' (default).",
            enum=["before", "after"],
        ),
    ],
    writes_document=True,
)

ADD_CHARACTER_SCHEMA = ToolSchema(
    name="addCharacter",
    description="Adds a new character to the project, including their core identity details.",
    parameters=_character_parameters(CHARACTER_CREATE_FIELDS, update=False),
    writes_document=True,
    allow_additional=True,
)

UPDATE_CHARACTER_SCHEMA = ToolSchema(
    name="updateCharacter",
    description="Updates an existing character in the project. Only the provided fields change.",
    parameters=[
        ParameterSchema(
            name="characterId",
            type="string",
            description="The ID of the character to update.",
            required=True,
        ),
        *_character_parameters(CHARACTER_UPDATE_FIELDS, update=True),
    ],
    writes_document=True,
    allow_additional=True,
)

DELETE_CHARACTER_SCHEMA = ToolSchema(
    name="deleteCharacter",
    description="Deletes an existing character from the project.",
    parameters=[
        ParameterSchema(
            name="characterId",
            type="string",
            description="The ID of the character to delete.",
            required=True,
        ),
    ],
    writes_document=True,
)


# All schema definitions, in the order they are offered to the model
PROJECT_TOOL_SCHEMAS: dict[str, ToolSchema] = {
    # Outline
    "addOutlineSection": ADD_OUTLINE_SECTION_SCHEMA,
    "updateOutlineSection": UPDATE_OUTLINE_SECTION_SCHEMA,
    "deleteOutlineSection": DELETE_OUTLINE_SECTION_SCHEMA,
    "moveOutlineSection": MOVE_OUTLINE_SECTION_SCHEMA,
    # Characters
    "addCharacter": ADD_CHARACTER_SCHEMA,
    "updateCharacter": UPDATE_CHARACTER_SCHEMA,
    "deleteCharacter": DELETE_CHARACTER_SCHEMA,
}


__all__ = [
    # Schema types
    "ParameterSchema",
    "ToolSchema",
    "ToolRegistration",
    # Registry
    "ToolRegistry",
    # Tool schemas
    "ADD_OUTLINE_SECTION_SCHEMA",
    "UPDATE_OUTLINE_SECTION_SCHEMA",
    "DELETE_OUTLINE_SECTION_SCHEMA",
    "MOVE_OUTLINE_SECTION_SCHEMA",
    "ADD_CHARACTER_SCHEMA",
    "UPDATE_CHARACTER_SCHEMA",
    "DELETE_CHARACTER_SCHEMA",
    "PROJECT_TOOL_SCHEMAS",
]
