"""Handlers for the outline and character tools the model can call.

Each handler pre-validates the ids it is given, raising a :class:`ToolError`
subclass the dispatcher turns into a failed result, and then commits a single
``Project -> Project`` operation through the session so the change lands in
undo history.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, ClassVar, Protocol

from ...editor import outline_tree, project_ops
from ...editor.document_model import Character, OutlineNode, Project, new_id
from ...editor.outline_tree import MoveTarget
from .errors import InvalidMoveError, MissingParameterError, NotFoundError
from .tool_registry import PROJECT_TOOL_SCHEMAS, ToolRegistry

LOGGER = logging.getLogger(__name__)


class ProjectSession(Protocol):
    """The slice of the editor session a tool needs."""

    @property
    def project(self) -> Project:
        ...

    def commit(self, update_fn: Callable[[Project], Project]) -> bool:
        ...


class ProjectTool(ABC):
    """Base class for tools that edit the session's project.

    Subclasses set ``name`` and implement :meth:`execute`. Calling the tool
    with keyword arguments runs :meth:`validate` and then :meth:`execute`.

    Example:
        class RenameProjectTool(ProjectTool):
            name = "renameProject"

            def execute(self, params: dict) -> dict:
                changed = self.session.commit(
                    lambda p: project_ops.update_project_details(p, title=params["title"])
                )
                return {"message": "Renamed project.", "changed": changed}
    """

    name: ClassVar[str] = ""

    def __init__(self, session: ProjectSession) -> None:
        self.session = session

    def __call__(self, **params: Any) -> dict[str, Any]:
        self.validate(params)
        return self.execute(params)

    @abstractmethod
    def execute(self, params: dict[str, Any]) -> dict[str, Any]:
        """Apply the tool to the session.

        Returns:
            A dictionary with at least ``message`` (reported to the model) and
            ``changed`` (whether the project changed).

        Raises:
            ToolError: For expected failures such as unknown ids.
        """
        ...

    def validate(self, params: dict[str, Any]) -> None:
        """Check parameters beyond what the JSON schema expresses."""
        pass

    # ------------------------------------------------------------------
    # Lookup helpers
    # ------------------------------------------------------------------

    def require_section(self, section_id: str) -> OutlineNode:
        section = project_ops.find_section(self.session.project, section_id)
        if section is None:
            raise NotFoundError(item_type="section", item_id=section_id)
        return section

    def require_character(self, character_id: str) -> Character:
        character = project_ops.find_character(self.session.project, character_id)
        if character is None:
            raise NotFoundError(item_type="character", item_id=character_id)
        return character


# -----------------------------------------------------------------------------
# Outline tools
# -----------------------------------------------------------------------------


class AddOutlineSectionTool(ProjectTool):
    name = "addOutlineSection"

    def execute(self, params: dict[str, Any]) -> dict[str, Any]:
        parent_id = params.get("parentId")
        if parent_id:
            self.require_section(parent_id)
        else:
            parent_id = None

        node = outline_tree.new_node(params["title"], params.get("content") or "")
        self.session.commit(lambda project: project_ops.add_section(project, node, parent_id))
        return {
            "message": f"Added section '{node.title}' (ID: {node.id}).",
            "sectionId": node.id,
            "changed": True,
        }


class UpdateOutlineSectionTool(ProjectTool):
    name = "updateOutlineSection"

    def validate(self, params: dict[str, Any]) -> None:
        if params.get("newTitle") is None and params.get("newContent") is None:
            raise MissingParameterError(
                message="Provide newTitle, newContent or both.",
                parameter="newTitle",
            )

    def execute(self, params: dict[str, Any]) -> dict[str, Any]:
        section_id = params["sectionId"]
        self.require_section(section_id)

        changes: dict[str, Any] = {}
        if params.get("newTitle") is not None:
            changes["title"] = params["newTitle"]
        if params.get("newContent") is not None:
            changes["content"] = params["newContent"]

        changed = self.session.commit(
            lambda project: project_ops.update_section(project, section_id, **changes)
        )
        section = self.require_section(section_id)
        return {"message": f"Updated section '{section.title}'.", "changed": changed}


class DeleteOutlineSectionTool(ProjectTool):
    name = "deleteOutlineSection"

    def execute(self, params: dict[str, Any]) -> dict[str, Any]:
        section_id = params["sectionId"]
        section = self.require_section(section_id)
        removed = len(outline_tree.collect_ids((section,)))
        self.session.commit(lambda project: project_ops.delete_section(project, section_id))
        message = f"Deleted section '{section.title}'."
        if removed > 1:
            message = f"Deleted section '{section.title}' and {removed - 1} subsection(s)."
        return {"message": message, "changed": True}


class MoveOutlineSectionTool(ProjectTool):
    name = "moveOutlineSection"

    def execute(self, params: dict[str, Any]) -> dict[str, Any]:
        section_id = params["sectionId"]
        section = self.require_section(section_id)
        target = MoveTarget(
            parent_id=params.get("targetParentId") or None,
            sibling_id=params.get("targetSiblingId") or None,
            position=params.get("position") or "after",
        )

        subtree_ids = outline_tree.collect_ids((section,))
        for target_id in target.referenced_ids():
            if target_id in subtree_ids:
                raise InvalidMoveError(section_id=section_id, target_id=target_id)
        # A sibling wins over a parent, so only the effective target must exist.
        anchor_id = target.sibling_id or target.parent_id
        if anchor_id is not None:
            self.require_section(anchor_id)

        changed = self.session.commit(
            lambda project: project_ops.move_section(project, section_id, target)
        )
        return {"message": f"Moved section '{section.title}'.", "changed": changed}


# -----------------------------------------------------------------------------
# Character tools
# -----------------------------------------------------------------------------


class AddCharacterTool(ProjectTool):
    name = "addCharacter"

    def execute(self, params: dict[str, Any]) -> dict[str, Any]:
        fields = project_ops.remap_character_fields(params)
        character = Character(id=new_id(), **fields)
        self.session.commit(lambda project: project_ops.add_character(project, character))
        return {
            "message": f"Added character '{character.name}' (ID: {character.id}).",
            "characterId": character.id,
            "changed": True,
        }


class UpdateCharacterTool(ProjectTool):
    name = "updateCharacter"

    def execute(self, params: dict[str, Any]) -> dict[str, Any]:
        character_id = params["characterId"]
        self.require_character(character_id)

        updates = project_ops.remap_character_updates(params)
        if not updates:
            raise MissingParameterError(
                message="No recognised fields to update were provided.",
                parameter="newName",
            )

        changed = self.session.commit(
            lambda project: project_ops.update_character(project, character_id, **updates)
        )
        character = self.require_character(character_id)
        return {"message": f"Updated character '{character.name}'.", "changed": changed}


class DeleteCharacterTool(ProjectTool):
    name = "deleteCharacter"

    def execute(self, params: dict[str, Any]) -> dict[str, Any]:
        character_id = params["characterId"]
        character = self.require_character(character_id)
        self.session.commit(lambda project: project_ops.delete_character(project, character_id))
        return {"message": f"Deleted character '{character.name}'.", "changed": True}


# -----------------------------------------------------------------------------
# Wiring
# -----------------------------------------------------------------------------

PROJECT_TOOLS: tuple[type[ProjectTool], ...] = (
    AddOutlineSectionTool,
    UpdateOutlineSectionTool,
    DeleteOutlineSectionTool,
    MoveOutlineSectionTool,
    AddCharacterTool,
    UpdateCharacterTool,
    DeleteCharacterTool,
)


def register_project_tools(registry: ToolRegistry, session: ProjectSession) -> ToolRegistry:
    """Bind every project tool to ``session`` and register it."""

    for tool_cls in PROJECT_TOOLS:
        registry.register(tool_cls(session), schema=PROJECT_TOOL_SCHEMAS[tool_cls.name])
    LOGGER.debug("Registered %d project tools", len(PROJECT_TOOLS))
    return registry


__all__ = [
    "AddCharacterTool",
    "AddOutlineSectionTool",
    "DeleteCharacterTool",
    "DeleteOutlineSectionTool",
    "MoveOutlineSectionTool",
    "PROJECT_TOOLS",
    "ProjectSession",
    "ProjectTool",
    "UpdateCharacterTool",
    "UpdateOutlineSectionTool",
    "register_project_tools",
]
