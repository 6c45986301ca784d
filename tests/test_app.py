"""Tests for the console front end and CLI helpers."""

from __future__ import annotations

import io
import json
from dataclasses import replace
from pathlib import Path

import pytest
from helpers import ScriptedBackend, tool_call

from plotweaver import app
from plotweaver.ai.client import AIResponse
from plotweaver.ai.orchestration.tool_dispatcher import ToolDispatcher
from plotweaver.editor import project_ops
from plotweaver.editor.document_model import Project
from plotweaver.services.autosave import DebouncedAutosave
from plotweaver.services.backup import export_projects
from plotweaver.services.project_store import JsonProjectStore
from plotweaver.services.settings import Settings, SettingsStore
from plotweaver.workspace.ai_turn_manager import AITurnManager
from plotweaver.workspace.session import EditorSession


@pytest.fixture
def store(tmp_path: Path) -> JsonProjectStore:
    return JsonProjectStore(tmp_path / "projects")


@pytest.fixture
def output() -> io.StringIO:
    return io.StringIO()


def _console(session, store, dispatcher, output, backend=None) -> app.ConsoleApp:
    autosave = DebouncedAutosave(store, session.bus, delay=60)
    autosave.watch(session.project)
    turns = AITurnManager(session, backend, dispatcher) if backend is not None else None
    return app.ConsoleApp(session, store, autosave, turns, output=output)


def _lines(*lines: str):
    """A read_line replacement that ends with EOF."""
    remaining = list(lines)

    def read_line(prompt: str) -> str:
        if not remaining:
            raise EOFError
        return remaining.pop(0)

    return read_line


# =============================================================================
# ConsoleApp
# =============================================================================


class TestConsoleApp:
    @pytest.mark.asyncio
    async def test_chat_line_runs_a_turn(
        self, session: EditorSession, store, dispatcher: ToolDispatcher, output
    ) -> None:
        backend = ScriptedBackend(
            AIResponse(tool_calls=(tool_call("deleteCharacter", {"characterId": "c2"}),)),
            AIResponse(text="Tomas is gone."),
        )
        console = _console(session, store, dispatcher, output, backend)

        assert await console.handle_line("Remove Tomas") is True

        assert project_ops.find_character(session.project, "c2") is None
        text = output.getvalue()
        assert "AI: (Action taken: Executed: deleteCharacter)" in text
        assert "AI: Tomas is gone." in text

    @pytest.mark.asyncio
    async def test_chat_without_backend(self, session, store, dispatcher, output) -> None:
        console = _console(session, store, dispatcher, output)
        await console.handle_line("Hello")
        assert "No API key configured" in output.getvalue()

    @pytest.mark.asyncio
    async def test_undo_redo_commands(self, session, store, dispatcher, output) -> None:
        console = _console(session, store, dispatcher, output)
        session.commit(lambda p: project_ops.delete_note(p, "n1"))

        await console.handle_line("/undo")
        await console.handle_line("/undo")
        await console.handle_line("/redo")

        assert output.getvalue().splitlines() == ["Undone.", "Nothing to undo.", "Redone."]
        assert session.project.notes == ()

    @pytest.mark.asyncio
    async def test_select_command(self, session, store, dispatcher, output) -> None:
        console = _console(session, store, dispatcher, output)

        await console.handle_line("/select character c1")
        await console.handle_line("/select character nobody")
        await console.handle_line("/select planet x")
        await console.handle_line("/select")

        assert output.getvalue().splitlines() == [
            "[viewing character c1]",
            "[selection cleared]",
            "No character with ID 'nobody'.",
            "Unknown item kind 'planet'.",
        ]

    @pytest.mark.asyncio
    async def test_check_command(self, session, store, dispatcher, output) -> None:
        backend = ScriptedBackend(completion="1. Mara climbs with a broken arm.")
        console = _console(session, store, dispatcher, output, backend)

        await console.handle_line("/check s1-1-1")
        await console.handle_line("/check ghost")

        lines = output.getvalue().splitlines()
        assert lines[0] == "[notice] 1. Mara climbs with a broken arm."
        assert lines[1] == "Section with ID 'ghost' not found."

    @pytest.mark.asyncio
    async def test_export_and_import(self, session, store, dispatcher, output, tmp_path: Path) -> None:
        console = _console(session, store, dispatcher, output)
        session.commit(lambda p: project_ops.update_project_details(p, genre="Mystery"))
        target = tmp_path / "backup.json"

        await console.handle_line(f"/export {target}")

        exported = json.loads(target.read_text(encoding="utf-8"))
        assert [(p["id"], p["genre"]) for p in exported] == [("p1", "Mystery")]

        other = Project(id="p9", title="Imported")
        changed = Project.from_dict({**exported[0], "title": "Restored"})
        source = tmp_path / "incoming.json"
        source.write_text(export_projects([changed, other]), encoding="utf-8")

        await console.handle_line(f"/import {source}")

        assert session.project.title == "Restored"
        assert not session.can_undo
        assert {p.id for p in await store.list_projects()} == {"p1", "p9"}
        assert "Imported 2 project(s)." in output.getvalue()

    @pytest.mark.asyncio
    async def test_import_wins_over_pending_autosave(
        self, session, store, dispatcher, output, tmp_path: Path
    ) -> None:
        console = _console(session, store, dispatcher, output)
        session.commit(lambda p: replace(p, title="Local edit"))
        source = tmp_path / "incoming.json"
        source.write_text(export_projects([replace(session.project, title="Imported")]), encoding="utf-8")

        await console.handle_line(f"/import {source}")
        await console.autosave.aclose()

        assert session.project.title == "Imported"
        assert (await store.load("p1")).title == "Imported"

    @pytest.mark.asyncio
    async def test_import_rejects_bad_file(self, session, store, dispatcher, output, tmp_path: Path) -> None:
        console = _console(session, store, dispatcher, output)
        source = tmp_path / "bad.json"
        source.write_text('{"id": "x"}', encoding="utf-8")

        await console.handle_line(f"/import {source}")
        await console.handle_line(f"/import {tmp_path / 'missing.json'}")

        lines = output.getvalue().splitlines()
        assert lines[0] == "Invalid file format. The file should be an array of projects."
        assert lines[1].startswith("Could not read")

    @pytest.mark.asyncio
    async def test_unknown_command_and_quit(self, session, store, dispatcher, output) -> None:
        console = _console(session, store, dispatcher, output)

        assert await console.handle_line("/dance") is True
        assert await console.handle_line("   ") is True
        assert await console.handle_line("/quit") is False
        assert "Unknown command /dance" in output.getvalue()


# =============================================================================
# Wiring
# =============================================================================


class TestRunConsole:
    @pytest.mark.asyncio
    async def test_open_project_creates_when_missing(self, store) -> None:
        project = await app.open_project(store, "fresh")

        assert (project.id, project.title) == ("fresh", app.DEFAULT_PROJECT_TITLE)
        assert (await store.load("fresh")).id == "fresh"

    @pytest.mark.asyncio
    async def test_open_project_prefers_most_recent(self, store) -> None:
        store.directory.mkdir(parents=True)
        old = Project(id="a", title="A", last_modified=1.0)
        store.path_for("a").write_text(json.dumps(old.to_dict()), encoding="utf-8")
        await store.save(Project(id="b", title="B"))

        assert (await app.open_project(store, None)).id == "b"

    @pytest.mark.asyncio
    async def test_run_console_saves_on_exit(self, store, sample_project: Project, output) -> None:
        await store.save(sample_project)
        backend = ScriptedBackend(
            AIResponse(tool_calls=(tool_call("addOutlineSection", {"title": "Act Three"}),)),
            AIResponse(text="Added."),
        )

        await app.run_console(
            Settings(autosave_delay=60),
            project_id="p1",
            store=store,
            backend=backend,
            read_line=_lines("Add act three", "/quit"),
            output=output,
        )

        saved = await store.load("p1")
        assert [node.title for node in saved.outline] == ["Act One", "Act Two", "Act Three"]
        assert "AI: Hello! How can I help you with 'The Glass Tower' today?" in output.getvalue()

    @pytest.mark.asyncio
    async def test_create_project_uses_generated_draft(self, store) -> None:
        backend = ScriptedBackend(
            generated={
                "outline": [{"id": "x", "title": "Act One"}],
                "characters": [{"id": "x", "name": "Mara", "description": "Glazier"}],
                "notes": [{"title": "Theme", "content": "Fragility"}],
            }
        )

        project = await app.create_project(store, backend, title="Glass", genre="Fantasy", pitch="A tower")

        assert backend.generate_calls == [("Glass", "Fantasy", "A tower")]
        assert (project.title, project.genre, project.description) == ("Glass", "Fantasy", "A tower")
        assert [node.title for node in project.outline] == ["Act One"]
        assert len({project.outline[0].id, project.characters[0].id, project.notes[0].id}) == 3
        assert (await store.load(project.id)).characters[0].name == "Mara"

    @pytest.mark.asyncio
    async def test_failed_generation_starts_empty_project(self, store, output) -> None:
        backend = ScriptedBackend(generated=ValueError("AI returned an empty response."))

        await app.run_console(
            Settings(autosave_delay=60),
            new_project={"title": "Glass", "genre": "Fantasy", "pitch": "A tower"},
            store=store,
            backend=backend,
            read_line=_lines("/quit"),
            output=output,
        )

        (saved,) = await store.list_projects()
        assert (saved.title, saved.outline, saved.characters) == ("Glass", (), ())
        assert "[generation failed] AI returned an empty response." in output.getvalue()


# =============================================================================
# CLI helpers
# =============================================================================


class TestCliOverrides:
    def test_values_are_coerced_by_field_type(self) -> None:
        overrides = app._coerce_cli_overrides(
            [
                "model=gpt-test",
                "temperature=0.1",
                "history_limit=10",
                "debug_logging=yes",
                "organization=none",
                'default_headers={"X-Team": "fiction"}',
            ]
        )
        assert overrides == {
            "model": "gpt-test",
            "temperature": 0.1,
            "history_limit": 10,
            "debug_logging": True,
            "organization": None,
            "default_headers": {"X-Team": "fiction"},
        }

    @pytest.mark.parametrize("entry", ["model", "=x", "colour=blue", "history_limit=ten", "debug_logging=maybe"])
    def test_invalid_overrides(self, entry: str) -> None:
        with pytest.raises(ValueError):
            app._coerce_cli_overrides([entry])

    def test_dump_settings_redacts_key(self, tmp_path: Path) -> None:
        stream = io.StringIO()
        store = SettingsStore(tmp_path / "settings.json")

        app._dump_settings(Settings(api_key="sk-abcdef"), store, overrides={"model": "m"}, stream=stream)

        payload = json.loads(stream.getvalue())
        assert payload["settings"]["api_key"] == "sk*****ef"
        assert payload["meta"]["cli_overrides"] == ["model"]
        assert payload["meta"]["secret_backend"] == "fernet"

    def test_main_dump_settings(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
        monkeypatch.setattr(app, "configure_logging", lambda debug, force=False: None)
        monkeypatch.delenv("PLOTWEAVER_MODEL", raising=False)

        app.main(["--settings-path", str(tmp_path / "s.json"), "--set", "model=cli", "--dump-settings"])

        assert json.loads(capsys.readouterr().out)["settings"]["model"] == "cli"

    def test_main_passes_new_project(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        seen: dict = {}

        async def fake_run_console(settings, **kwargs):
            seen.update(kwargs)

        monkeypatch.setattr(app, "configure_logging", lambda debug, force=False: None)
        monkeypatch.setattr(app, "run_console", fake_run_console)

        app.main(["--settings-path", str(tmp_path / "s.json"), "--new", "Glass", "--genre", "Fantasy"])

        assert seen["new_project"] == {"title": "Glass", "genre": "Fantasy", "pitch": ""}
