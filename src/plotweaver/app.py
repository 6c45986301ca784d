"""Console entry point wiring the PlotWeaver engine to a project file and an AI backend."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Sequence, TextIO, get_args, get_origin, get_type_hints

from .ai.client import AIClient, ConversationBackend
from .ai.orchestration.tool_dispatcher import ToolDispatcher
from .ai.tools.errors import ToolError
from .ai.tools.project_tools import register_project_tools
from .ai.tools.tool_registry import ToolRegistry
from .editor import project_ops
from .editor.document_model import ItemKind, ItemRef, Project, new_id
from .services import backup
from .services.autosave import DebouncedAutosave
from .services.errors import PlotWeaverError, ProjectNotFoundError
from .services.project_store import JsonProjectStore, ProjectStore
from .services.settings import Settings, SettingsStore, redact_secret
from .utils import logging as logging_utils
from .utils.file_io import read_text, write_text
from .workspace.ai_turn_manager import AITurnManager
from .workspace.events import ChatMessageAdded, NoticePosted, SaveStatusChanged, SelectionChanged
from .workspace.session import EditorSession

_TRUE_VALUES = {"1", "true", "yes", "on", "debug"}
_FALSE_VALUES = {"0", "false", "no", "off", "disabled"}
_LOGGER = logging.getLogger(__name__)

DEFAULT_PROJECT_TITLE = "Untitled Project"
HELP_TEXT = """Commands:
  /undo                 Undo the last change
  /redo                 Redo the last undone change
  /select KIND ID       Open an item (outline, character, note, taskList); no arguments clears
  /check SECTION_ID     Run a consistency check on an outline section
  /export [PATH]        Write a backup of every saved project
  /import PATH          Import projects from a backup file
  /help                 Show this help
  /quit                 Save and exit
Any other line is sent to the assistant."""


def configure_logging(debug: bool = False, *, force: bool = False) -> None:
    """Configure file logging; the console only shows log records in debug mode."""

    level = logging.DEBUG if debug else logging.INFO
    logging_utils.setup_logging(level, console=debug, force=force)
    _LOGGER.debug("Logging configured (level=%s)", logging.getLevelName(level))


def load_settings(
    path: Optional[Path] = None,
    *,
    store: SettingsStore | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> Settings:
    """Load persisted settings or fall back to defaults."""

    active_store = store or SettingsStore(path)
    try:
        return active_store.load(overrides=overrides)
    except (OSError, ValueError) as exc:
        _LOGGER.warning("Failed to load settings from %s: %s", active_store.path, exc)
        return Settings()


# -----------------------------------------------------------------------------
# Console session
# -----------------------------------------------------------------------------


class ConsoleApp:
    """Line-oriented front end over one editor session.

    Plain lines become chat turns; lines starting with ``/`` are commands.
    """

    def __init__(
        self,
        session: EditorSession,
        store: ProjectStore,
        autosave: DebouncedAutosave,
        turn_manager: AITurnManager | None,
        *,
        output: TextIO | None = None,
    ) -> None:
        self._session = session
        self._store = store
        self._autosave = autosave
        self._turns = turn_manager
        self._out = output or sys.stdout
        self._commands: Dict[str, Callable[[list[str]], Any]] = {
            "/undo": self._cmd_undo,
            "/redo": self._cmd_redo,
            "/select": self._cmd_select,
            "/check": self._cmd_check,
            "/export": self._cmd_export,
            "/import": self._cmd_import,
            "/help": self._cmd_help,
        }
        bus = session.bus
        bus.subscribe(ChatMessageAdded, self._on_chat_message)
        bus.subscribe(NoticePosted, self._on_notice)
        bus.subscribe(SaveStatusChanged, self._on_save_status)
        bus.subscribe(SelectionChanged, self._on_selection)

    @property
    def session(self) -> EditorSession:
        return self._session

    @property
    def autosave(self) -> DebouncedAutosave:
        return self._autosave

    def write(self, text: str) -> None:
        self._out.write(f"{text}\n")
        self._out.flush()

    async def handle_line(self, line: str) -> bool:
        """Process one input line. Returns False when the user asked to quit."""
        line = line.strip()
        if not line:
            return True
        if line in {"/quit", "/exit"}:
            return False
        if line.startswith("/"):
            name, *args = line.split()
            handler = self._commands.get(name)
            if handler is None:
                self.write(f"Unknown command {name}. Type /help for a list.")
                return True
            result = handler(args)
            if asyncio.iscoroutine(result):
                await result
            return True
        if self._turns is None:
            self.write("No API key configured. Use --set api_key=... or PLOTWEAVER_API_KEY.")
            return True
        await self._turns.send_message(line)
        return True

    async def run(self, read_line: Callable[[str], str] = input) -> None:
        self.write(f"Project: {self._session.project.title} ({self._session.project.id})")
        if self._turns is not None:
            self._turns.reset_conversation(self._session.project)
        while True:
            try:
                line = await asyncio.to_thread(read_line, "> ")
            except EOFError:
                break
            if not await self.handle_line(line):
                break

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def _cmd_help(self, args: list[str]) -> None:
        self.write(HELP_TEXT)

    def _cmd_undo(self, args: list[str]) -> None:
        self.write("Undone." if self._session.undo() else "Nothing to undo.")

    def _cmd_redo(self, args: list[str]) -> None:
        self.write("Redone." if self._session.redo() else "Nothing to redo.")

    def _cmd_select(self, args: list[str]) -> None:
        if not args:
            self._session.clear_selection()
            return
        if len(args) != 2:
            self.write("Usage: /select KIND ID")
            return
        try:
            kind = ItemKind(args[0])
        except ValueError:
            self.write(f"Unknown item kind '{args[0]}'.")
            return
        if self._session.select(ItemRef(kind=kind, id=args[1])) is None:
            self.write(f"No {kind.value} with ID '{args[1]}'.")

    async def _cmd_check(self, args: list[str]) -> None:
        if len(args) != 1:
            self.write("Usage: /check SECTION_ID")
            return
        if self._turns is None:
            self.write("No API key configured.")
            return
        try:
            await self._turns.run_consistency_check(args[0])
        except ToolError as exc:
            self.write(exc.message)

    async def _cmd_export(self, args: list[str]) -> None:
        await self._autosave.flush()
        projects = await self._store.list_projects()
        target = Path(args[0]) if args else Path.cwd() / backup.export_filename()
        await asyncio.to_thread(write_text, target, backup.export_projects(projects))
        self.write(f"Exported {len(projects)} project(s) to {target}.")

    async def _cmd_import(self, args: list[str]) -> None:
        if len(args) != 1:
            self.write("Usage: /import PATH")
            return
        try:
            text = await asyncio.to_thread(read_text, args[0])
            imported = backup.import_projects(text)
        except OSError as exc:
            self.write(f"Could not read {args[0]}: {exc}")
            return
        except PlotWeaverError as exc:
            self.write(exc.message)
            return
        # Pending autosaves go first so they cannot land on top of the imported files.
        await self._autosave.flush()
        for project in imported:
            await self._store.save(project)
        current = next((p for p in imported if p.id == self._session.project.id), None)
        if current is not None:
            self._session.load(current)
            self._autosave.watch(current)
        self.write(f"Imported {len(imported)} project(s).")

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _on_chat_message(self, event: ChatMessageAdded) -> None:
        if event.role == "model":
            self.write(f"AI: {event.text}")

    def _on_notice(self, event: NoticePosted) -> None:
        self.write(f"[notice] {event.message}")

    def _on_save_status(self, event: SaveStatusChanged) -> None:
        if event.status == "error":
            self.write(f"[save failed] {event.error}")

    def _on_selection(self, event: SelectionChanged) -> None:
        if event.item_id is None:
            self.write("[selection cleared]")
        else:
            self.write(f"[viewing {event.kind} {event.item_id}]")


async def open_project(store: ProjectStore, project_id: str | None) -> Project:
    """Load ``project_id``, or the most recent project, or create a new one."""

    if project_id:
        try:
            return await store.load(project_id)
        except ProjectNotFoundError:
            _LOGGER.info("Project %s not found; creating it", project_id)
            return await store.save(Project(id=project_id, title=DEFAULT_PROJECT_TITLE))
    existing = await store.list_projects()
    if existing:
        return existing[0]
    return await store.save(Project(id=new_id(), title=DEFAULT_PROJECT_TITLE))


async def create_project(
    store: ProjectStore,
    backend: ConversationBackend | None,
    *,
    title: str,
    genre: str = "",
    pitch: str = "",
) -> Project:
    """Create and save a new project, drafted by ``backend`` when one is given.

    Errors from the backend propagate; nothing is saved in that case.
    """

    if backend is None:
        project = Project(id=new_id(), title=title, genre=genre, description=pitch)
    else:
        draft = await backend.generate_project(title, genre, pitch)
        project = project_ops.project_from_generated(draft, title=title, genre=genre, description=pitch)
        _LOGGER.info(
            "Generated project %s with %d section(s) and %d character(s)",
            project.id,
            len(project.outline),
            len(project.characters),
        )
    return await store.save(project)


async def run_console(
    settings: Settings,
    *,
    project_id: str | None = None,
    new_project: Mapping[str, str] | None = None,
    store: ProjectStore | None = None,
    backend: ConversationBackend | None = None,
    read_line: Callable[[str], str] = input,
    output: TextIO | None = None,
) -> None:
    """Build the session context and run the console loop until /quit or EOF.

    ``new_project`` holds the ``title``, ``genre`` and ``pitch`` of a project to
    create instead of opening one. If drafting it with the AI fails, an empty
    project with those details is created instead.
    """

    store = store or JsonProjectStore(settings.resolved_projects_dir())
    client: AIClient | None = None
    if backend is None and settings.api_key:
        client = AIClient(settings.client_settings())
        backend = client

    notice: str | None = None
    if new_project is not None:
        try:
            project = await create_project(store, backend, **new_project)
        except Exception as exc:
            _LOGGER.warning("AI project generation failed: %s", exc, exc_info=True)
            notice = f"[generation failed] {exc} Starting from an empty project."
            project = await create_project(store, None, **new_project)
    else:
        project = await open_project(store, project_id or settings.last_project_id)

    session = EditorSession(project, history_limit=settings.history_limit)
    registry = register_project_tools(ToolRegistry(), session)
    dispatcher = ToolDispatcher(registry=registry)
    turn_manager = (
        AITurnManager(session, backend, dispatcher, persona_prompt=settings.persona_prompt)
        if backend is not None
        else None
    )

    autosave = DebouncedAutosave(store, session.bus, delay=settings.autosave_delay)
    autosave.watch(project)
    app = ConsoleApp(session, store, autosave, turn_manager, output=output)
    if notice:
        app.write(notice)
    try:
        await app.run(read_line)
    finally:
        await autosave.aclose()
        if client is not None:
            await client.aclose()


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point invoked by the `plotweaver` console script."""

    args = _parse_cli_args(argv)
    debug = args.debug or _env_flag("PLOTWEAVER_DEBUG", default=False)
    configure_logging(debug)

    settings_path = args.settings_path or os.environ.get("PLOTWEAVER_SETTINGS_PATH")
    resolved_path = Path(settings_path).expanduser() if settings_path else None
    settings_store = SettingsStore(resolved_path)
    try:
        cli_overrides = _coerce_cli_overrides(args.overrides or [])
    except ValueError as exc:
        print(f"Invalid --set override: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc

    settings = load_settings(resolved_path, store=settings_store, overrides=cli_overrides or None)
    if args.projects_dir:
        settings = replace(settings, projects_dir=args.projects_dir)

    if args.dump_settings:
        _dump_settings(settings, settings_store, overrides=cli_overrides)
        return

    if settings.debug_logging and not debug:
        configure_logging(True, force=True)

    new_project = None
    if args.new_title:
        new_project = {"title": args.new_title, "genre": args.genre or "", "pitch": args.pitch or ""}

    try:
        asyncio.run(run_console(settings, project_id=args.project_id, new_project=new_project))
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown path
        _LOGGER.info("Shutdown requested by user.")


# -----------------------------------------------------------------------------
# CLI helpers
# -----------------------------------------------------------------------------


def _env_flag(name: str, *, default: bool = False) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in _TRUE_VALUES


def _parse_cli_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="plotweaver",
        description="Edit a PlotWeaver project from the console with an AI writing partner.",
    )
    parser.add_argument("project_id", nargs="?", metavar="PROJECT_ID", help="Project to open or create.")
    parser.add_argument(
        "--dump-settings",
        action="store_true",
        help="Print the effective settings payload (with secrets redacted) and exit.",
    )
    parser.add_argument(
        "--settings-path",
        metavar="PATH",
        help="Override the default ~/.plotweaver/settings.json path.",
    )
    parser.add_argument(
        "--set",
        dest="overrides",
        metavar="KEY=VALUE",
        action="append",
        default=[],
        help="Override persisted settings before launch (repeatable).",
    )
    parser.add_argument("--projects-dir", metavar="DIR", help="Directory holding project files.")
    parser.add_argument(
        "--new",
        dest="new_title",
        metavar="TITLE",
        help="Create a project with this title; the AI drafts its outline, cast and notes when configured.",
    )
    parser.add_argument("--genre", metavar="GENRE", help="Format or genre of the project created with --new.")
    parser.add_argument("--pitch", metavar="TEXT", help="Elevator pitch of the project created with --new.")
    parser.add_argument("--debug", action="store_true", help="Log at DEBUG level to the console too.")
    return parser.parse_args(argv)


def _coerce_cli_overrides(items: Sequence[str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if not items:
        return overrides

    fields = Settings.__dataclass_fields__  # type: ignore[attr-defined]
    type_hints = get_type_hints(Settings)
    for entry in items:
        if "=" not in entry:
            raise ValueError(f"Override '{entry}' must use KEY=VALUE syntax.")
        key, raw_value = entry.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError("Override is missing a field name.")
        if key not in fields:
            raise ValueError(f"Unknown setting '{key}'.")
        overrides[key] = _coerce_value(type_hints.get(key, fields[key].type), raw_value.strip())
    return overrides


def _coerce_value(annotation: Any, raw_value: str) -> Any:
    target = _resolve_annotation(annotation)
    optional = type(None) in get_args(annotation)
    if optional and raw_value.lower() in {"none", "null"}:
        return None
    if target is str or target is Any:
        return raw_value
    if target is bool:
        return _parse_bool(raw_value)
    if target is int:
        return int(raw_value, 10)
    if target is float:
        return float(raw_value)
    if target in (list, dict):
        try:
            value = json.loads(raw_value or ("[]" if target is list else "{}"))
        except json.JSONDecodeError as exc:
            raise ValueError(f"{target.__name__} overrides must be valid JSON") from exc
        if not isinstance(value, target):
            raise ValueError(f"Expected a JSON {target.__name__}")
        return value
    return raw_value


def _resolve_annotation(annotation: Any) -> Any:
    origin = get_origin(annotation)
    if origin is None:
        return annotation
    if origin in {list, dict}:
        return origin
    args = [arg for arg in get_args(annotation) if arg is not type(None)]
    if not args:
        return origin
    return _resolve_annotation(args[0])


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Cannot coerce '{value}' to a boolean.")


def _dump_settings(
    settings: Settings,
    store: SettingsStore,
    *,
    overrides: Mapping[str, Any],
    stream: TextIO | None = None,
) -> None:
    destination = stream or sys.stdout
    payload = asdict(settings)
    payload["api_key"] = redact_secret(settings.api_key)
    metadata = {
        "path": str(store.path),
        "secret_backend": store.vault.strategy,
        "cli_overrides": sorted(overrides.keys()),
        "environment_variables": _active_env_overrides(),
    }
    json.dump({"settings": payload, "meta": metadata}, destination, indent=2)
    destination.write("\n")


def _active_env_overrides() -> list[str]:
    return sorted(name for name in os.environ if name.startswith("PLOTWEAVER_"))


if __name__ == "__main__":  # pragma: no cover
    main()
