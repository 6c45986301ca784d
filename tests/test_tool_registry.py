"""Tests for tool schemas and the tool registry."""

from __future__ import annotations

import pytest

from plotweaver.ai.tools.errors import ErrorCode, InvalidMoveError, NotFoundError, ToolError, UnknownToolError
from plotweaver.ai.tools.tool_registry import (
    ADD_CHARACTER_SCHEMA,
    MOVE_OUTLINE_SECTION_SCHEMA,
    PROJECT_TOOL_SCHEMAS,
    ParameterSchema,
    ToolRegistry,
    ToolSchema,
)
from plotweaver.editor.document_model import CHARACTER_PROFILE_FIELDS
from plotweaver.editor.project_ops import CHARACTER_CREATE_FIELDS, CHARACTER_UPDATE_FIELDS


def _echo(**params):
    return {"message": "ok", "changed": False}


ECHO_SCHEMA = ToolSchema(
    name="echo",
    description="Echo",
    parameters=[ParameterSchema(name="text", type="string", description="Text", required=True)],
)


class TestSchemas:
    def test_seven_project_tools_are_declared(self) -> None:
        assert list(PROJECT_TOOL_SCHEMAS) == [
            "addOutlineSection",
            "updateOutlineSection",
            "deleteOutlineSection",
            "moveOutlineSection",
            "addCharacter",
            "updateCharacter",
            "deleteCharacter",
        ]
        assert all(schema.writes_document for schema in PROJECT_TOOL_SCHEMAS.values())

    def test_move_schema(self) -> None:
        schema = MOVE_OUTLINE_SECTION_SCHEMA.to_json_schema()
        assert schema["required"] == ["sectionId"]
        assert schema["properties"]["position"]["enum"] == ["before", "after"]
        assert schema["additionalProperties"] is False

    def test_add_character_offers_every_profile_field(self) -> None:
        schema = ADD_CHARACTER_SCHEMA.to_json_schema()
        assert schema["required"] == ["name", "description"]
        assert schema["additionalProperties"] is True
        for spec in CHARACTER_PROFILE_FIELDS:
            assert spec.wire_name in schema["properties"]

    def test_character_schemas_match_translation_tables(self) -> None:
        create = ADD_CHARACTER_SCHEMA.to_json_schema()["properties"]
        update = PROJECT_TOOL_SCHEMAS["updateCharacter"].to_json_schema()["properties"]

        assert set(create) == set(CHARACTER_CREATE_FIELDS)
        assert set(update) == set(CHARACTER_UPDATE_FIELDS) | {"characterId"}
        assert update["newName"]["minLength"] == 1

    def test_update_character_uses_new_prefix(self) -> None:
        properties = PROJECT_TOOL_SCHEMAS["updateCharacter"].to_json_schema()["properties"]
        assert "newHeightBuild" in properties
        assert "heightBuild" not in properties


class TestToolRegistry:
    def test_register_and_lookup(self) -> None:
        registry = ToolRegistry()
        registry.register(_echo, schema=ECHO_SCHEMA)

        registration = registry.get_registration("echo")
        assert registration.impl is _echo
        assert registration.name == "echo"
        assert registry.get_registration("missing") is None

    def test_register_without_schema_requires_known_name(self) -> None:
        with pytest.raises(KeyError):
            ToolRegistry().register(_echo)

    def test_reregister_replaces(self) -> None:
        def _other(**params):
            return "other"

        registry = ToolRegistry()
        registry.register(_echo, schema=ECHO_SCHEMA)
        registry.register(_other, schema=ECHO_SCHEMA)

        assert registry.get_registration("echo").impl is _other
        assert [tool["function"]["name"] for tool in registry.to_openai_tools()] == ["echo"]

    def test_openai_tool_format(self, registry: ToolRegistry) -> None:
        tools = registry.to_openai_tools()

        assert len(tools) == 7
        first = tools[0]
        assert first["type"] == "function"
        assert first["function"]["name"] == "addOutlineSection"
        assert first["function"]["parameters"]["required"] == ["title"]


class TestErrors:
    def test_not_found_message(self) -> None:
        error = NotFoundError(item_type="section", item_id="s9")
        assert error.message == "Section with ID 's9' not found."
        assert error.to_dict()["item_id"] == "s9"
        assert str(error) == "[not_found] Section with ID 's9' not found."

    def test_errors_are_exceptions(self) -> None:
        with pytest.raises(ToolError) as excinfo:
            raise InvalidMoveError(section_id="a", target_id="b")
        assert excinfo.value.error_code == ErrorCode.INVALID_MOVE

    def test_unknown_tool_message(self) -> None:
        assert UnknownToolError(tool_name="fly").message == "Unknown tool 'fly'."
