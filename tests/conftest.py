"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from plotweaver.ai.orchestration.tool_dispatcher import ToolDispatcher
from plotweaver.ai.tools.project_tools import register_project_tools
from plotweaver.ai.tools.tool_registry import ToolRegistry
from plotweaver.editor.document_model import Character, Note, OutlineNode, Project, Task, TaskList
from plotweaver.workspace.events import EventBus
from plotweaver.workspace.session import EditorSession


@pytest.fixture
def sample_project() -> Project:
    """A small project with a three-level outline, two characters, a note and a task list."""
    scene = OutlineNode(id="s1-1-1", title="Scene", content="Mara climbs the tower.", character_ids=("c1",))
    chapter = OutlineNode(id="s1-1", title="Chapter One", children=(scene,), character_ids=("c2",))
    act_one = OutlineNode(id="s1", title="Act One", content="Setup", children=(chapter,))
    act_two = OutlineNode(id="s2", title="Act Two", character_ids=("c1",))
    return Project(
        id="p1",
        title="The Glass Tower",
        genre="Fantasy",
        description="A climber and a tower that should not exist.",
        outline=(act_one, act_two),
        characters=(
            Character(id="c1", name="Mara", description="A climber", health_abilities="Broken left arm"),
            Character(id="c2", name="Tomas", description="Her brother", group="Supporting"),
        ),
        notes=(Note(id="n1", title="World", content="Glass everywhere."),),
        task_lists=(TaskList(id="t1", title="Revisions", tasks=(Task(id="k1", text="Fix act two"),)),),
    )


@pytest.fixture
def event_bus() -> EventBus:
    return EventBus()


@pytest.fixture
def session(sample_project: Project, event_bus: EventBus) -> EditorSession:
    return EditorSession(sample_project, event_bus)


@pytest.fixture
def registry(session: EditorSession) -> ToolRegistry:
    return register_project_tools(ToolRegistry(), session)


@pytest.fixture
def dispatcher(registry: ToolRegistry) -> ToolDispatcher:
    return ToolDispatcher(registry=registry)
