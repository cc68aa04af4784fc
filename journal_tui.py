#!/usr/bin/env python3
"""Journal TUI: a terminal journal that keeps one JSON file per entry."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
import uuid
from dataclasses import asdict, dataclass, field, replace
from datetime import datetime, timedelta, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Optional, Protocol

import yaml
from prompt_toolkit import Application
from prompt_toolkit.document import Document
from prompt_toolkit.filters import Condition
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout.containers import (
    ConditionalContainer, DynamicContainer, HSplit, Window,
)
from prompt_toolkit.layout.controls import FormattedTextControl
from prompt_toolkit.layout.layout import Layout
from prompt_toolkit.styles import Style as PtStyle
from prompt_toolkit.widgets import Frame, TextArea

try:
    from yaml import CSafeDumper as Dumper
    from yaml import CSafeLoader as Loader
except ImportError:
    from yaml import SafeDumper as Dumper  # type: ignore[assignment]
    from yaml import SafeLoader as Loader  # type: ignore[assignment]

logger = logging.getLogger(__name__)

# ════════════════════════════════════════════════════════════════════════
#  Data Models
# ════════════════════════════════════════════════════════════════════════

DESCRIPTION_LIMIT = 50


@dataclass
class Entry:
    """One journal record."""
    content: str
    created_at: datetime            # Set once by create_entry, never changed
    path: Optional[Path] = None     # Location handle, assigned by the first save


@dataclass(frozen=True)
class ListItem:
    """Read-only projection of an Entry for the list screen."""
    title: str
    description: str
    path: Path

    @classmethod
    def from_entry(cls, entry: Entry) -> ListItem:
        flat = " ".join(entry.content.split())
        return cls(
            title=format_timestamp(entry.created_at),
            description=truncate(flat, DESCRIPTION_LIMIT),
            path=entry.path,
        )


def format_timestamp(dt: datetime) -> str:
    """Human-readable timestamp, e.g. 'January 2, 2006 15:04:05'."""
    return f"{dt:%B} {dt.day}, {dt:%Y %H:%M:%S}"


def truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


# ════════════════════════════════════════════════════════════════════════
#  Errors
# ════════════════════════════════════════════════════════════════════════


class StoreError(Exception):
    """Base class for entry store failures."""


class NotFoundError(StoreError):
    """The entry file does not exist."""


class StoreIOError(StoreError):
    """Reading, writing or removing an entry file failed."""


class ParseError(StoreError):
    """An entry file does not hold a valid record."""


class ConfigError(Exception):
    """A configuration file could not be read or understood."""


# ════════════════════════════════════════════════════════════════════════
#  Storage
# ════════════════════════════════════════════════════════════════════════

ENTRY_SUFFIX = ".json"
_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _as_aware(dt: datetime) -> datetime:
    """Interpret naive datetimes as local time."""
    return dt if dt.tzinfo is not None else dt.astimezone()


def _unix_nanos(dt: datetime) -> int:
    return (_as_aware(dt) - _EPOCH) // timedelta(microseconds=1) * 1000


def _atomic_write_text(dst: Path, text: str) -> None:
    """Replace dst with text via a same-directory temp file and os.replace."""
    tmp_path = dst.parent / f".{dst.name}.tmp-{os.getpid()}-{uuid.uuid4().hex[:8]}"
    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, dst)
    except Exception:
        try:
            if tmp_path.exists():
                tmp_path.unlink()
        except OSError:
            pass
        raise


def _parse_record(data: str, path: Path) -> Entry:
    try:
        record = json.loads(data)
    except json.JSONDecodeError as exc:
        raise ParseError(f"{path.name} is not valid JSON: {exc.msg}") from exc
    except (ValueError, RecursionError) as exc:
        # Oversized integers and very deep nesting
        raise ParseError(f"{path.name} is not a usable JSON document: {exc}") from exc
    if not isinstance(record, dict):
        raise ParseError(f"{path.name} does not hold a JSON object")
    content = record.get("content")
    date = record.get("date")
    if not isinstance(content, str) or not isinstance(date, str):
        raise ParseError(f"{path.name} is missing its content or date")
    try:
        created_at = _as_aware(datetime.fromisoformat(date))
    except (ValueError, OverflowError, OSError) as exc:
        raise ParseError(f"{path.name} has an invalid date: {date!r}") from exc
    return Entry(content=content, created_at=created_at, path=path)


class EntryStore:
    """File-per-entry persistence under a single root directory.

    Every entry lives in ``<root>/<nanoseconds>.json``. Nothing is cached:
    each load or listing reads the files again.
    """

    def __init__(self, root: Path):
        self.root = Path(root)

    def create_entry(self, content: str) -> Entry:
        """Build an unsaved entry stamped with the current local time."""
        return Entry(content=content, created_at=datetime.now().astimezone())

    def _new_path(self, created_at: datetime) -> Path:
        nanos = _unix_nanos(created_at)
        path = self.root / f"{nanos}{ENTRY_SUFFIX}"
        while path.exists():
            nanos += 1
            path = self.root / f"{nanos}{ENTRY_SUFFIX}"
        return path

    def save_entry(self, entry: Entry) -> Entry:
        """Write the entry, assigning its path on the first save.

        The path is only set on the entry once the write has succeeded.
        """
        path = entry.path if entry.path is not None else self._new_path(entry.created_at)
        record = {
            "content": entry.content,
            "date": _as_aware(entry.created_at).isoformat(),
        }
        try:
            _atomic_write_text(path, json.dumps(record, indent=2, ensure_ascii=False))
        except OSError as exc:
            raise StoreIOError(f"could not save {path.name}: {exc.strerror or exc}") from exc
        entry.path = path
        logger.debug("Saved entry %s", path.name)
        return entry

    def load_entry(self, path: Path) -> Entry:
        path = Path(path)
        try:
            data = path.read_text(encoding="utf-8")
        except FileNotFoundError as exc:
            raise NotFoundError(f"entry {path.name} no longer exists") from exc
        except UnicodeDecodeError as exc:
            raise ParseError(f"{path.name} is not UTF-8 text") from exc
        except OSError as exc:
            raise StoreIOError(f"could not read {path.name}: {exc.strerror or exc}") from exc
        return _parse_record(data, path)

    def list_entries(self) -> list[Entry]:
        """Load every readable entry, newest first.

        Unreadable records are skipped. Entries sharing a timestamp are
        ordered by file name, descending.
        """
        try:
            candidates = list(self.root.iterdir())
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise StoreIOError(f"could not list {self.root}: {exc.strerror or exc}") from exc

        entries = []
        for p in candidates:
            if p.suffix != ENTRY_SUFFIX or p.name.startswith(".") or not p.is_file():
                continue
            try:
                entries.append(self.load_entry(p))
            except StoreError as exc:
                logger.debug("Skipping %s: %s", p.name, exc)
        return sorted(entries, key=lambda e: (e.created_at, e.path.name), reverse=True)

    def delete_entry(self, path: Path) -> None:
        path = Path(path)
        try:
            path.unlink()
        except FileNotFoundError as exc:
            raise NotFoundError(f"entry {path.name} no longer exists") from exc
        except OSError as exc:
            raise StoreIOError(f"could not delete {path.name}: {exc.strerror or exc}") from exc
        logger.debug("Deleted entry %s", path.name)


# ════════════════════════════════════════════════════════════════════════
#  Configuration
# ════════════════════════════════════════════════════════════════════════

APP_DIR_NAME = ".journal-tui"
USER_CONFIG_NAME = "config.yaml"
LOG_FILE_NAME = "journal-tui.log"
SYSTEM_CONFIG_PATH = Path("/etc/journal-tui/config.yaml")
LOCAL_CONFIG_PATH = Path("journal-tui.yaml")


@dataclass
class Config:
    entries_dir: str = "entries"
    dev_mode: bool = False


def user_app_dir() -> Optional[Path]:
    """~/.journal-tui, or None when there is no home directory."""
    try:
        return Path.home() / APP_DIR_NAME
    except RuntimeError:
        return None


def default_config() -> Config:
    app_dir = user_app_dir()
    if app_dir is None:
        return Config()
    return Config(entries_dir=str(app_dir / "entries"))


def config_paths() -> list[Path]:
    """Config files from least to most specific."""
    paths = [SYSTEM_CONFIG_PATH]
    app_dir = user_app_dir()
    if app_dir is not None:
        paths.append(app_dir / USER_CONFIG_NAME)
    paths.append(LOCAL_CONFIG_PATH)
    return paths


def _merge_config_file(config: Config, path: Path) -> None:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"error loading {path}: {exc}") from exc

    try:
        data = yaml.load(text, Loader=Loader)
    except yaml.YAMLError as exc:
        raise ConfigError(f"error parsing {path}: {exc}") from exc
    if data is None:
        return
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping of settings")

    if "entries_dir" in data:
        if not isinstance(data["entries_dir"], str):
            raise ConfigError(f"{path}: entries_dir must be a string")
        config.entries_dir = data["entries_dir"]
    if "dev_mode" in data:
        if not isinstance(data["dev_mode"], bool):
            raise ConfigError(f"{path}: dev_mode must be true or false")
        config.dev_mode = data["dev_mode"]
    logger.debug("Loaded configuration from %s", path)


def load_config(paths: Optional[list[Path]] = None) -> Config:
    """Build the configuration from the defaults and each config file.

    Later files override earlier ones field by field; missing files are
    skipped.
    """
    config = default_config()
    for path in config_paths() if paths is None else paths:
        _merge_config_file(config, Path(path))
    return config


def save_config(config: Config, path: Optional[Path] = None) -> Path:
    if path is None:
        app_dir = user_app_dir()
        if app_dir is None:
            raise ConfigError("cannot determine the home directory")
        path = app_dir / USER_CONFIG_NAME
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(
        yaml.dump(asdict(config), Dumper=Dumper, default_flow_style=False),
        encoding="utf-8",
    )
    return path


def create_default_config_file(path: Optional[Path] = None) -> bool:
    """Write the default user config unless one exists. Returns True if written."""
    if path is None:
        app_dir = user_app_dir()
        if app_dir is None:
            raise ConfigError("cannot determine the home directory")
        path = app_dir / USER_CONFIG_NAME
    if Path(path).exists():
        return False
    save_config(default_config(), path)
    return True


def ensure_entries_dir(config: Config) -> Path:
    entries_dir = Path(config.entries_dir).expanduser()
    entries_dir.mkdir(parents=True, exist_ok=True)
    return entries_dir


def setup_logging(config: Config, path: Optional[Path] = None) -> logging.Handler:
    """Send log records to a file; the terminal belongs to the UI."""
    if path is None:
        app_dir = user_app_dir()
        path = app_dir / LOG_FILE_NAME if app_dir is not None else Path(LOG_FILE_NAME)
    try:
        handler: logging.Handler = logging.FileHandler(path, encoding="utf-8")
    except OSError:
        handler = logging.NullHandler()
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(name)s: %(message)s"))
    root = logging.getLogger()
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if config.dev_mode else logging.WARNING)
    return handler


# ════════════════════════════════════════════════════════════════════════
#  Widgets
# ════════════════════════════════════════════════════════════════════════


class ListWidget(Protocol):
    def feed(self, key: str) -> bool: ...

    def selected_index(self) -> Optional[int]: ...

    def set_items(self, items: list[ListItem]) -> None: ...


class InputWidget(Protocol):
    def current_value(self) -> str: ...

    def set_value(self, text: str) -> None: ...

    def reset(self) -> None: ...


class SelectableList:
    """Navigable list of entries with a title and description per row."""

    def __init__(self, page_size: int = 5):
        self.items: list[ListItem] = []
        self.page_size = page_size
        self._index = 0
        self.control = FormattedTextControl(self._get_text, focusable=True)
        self.window = Window(
            content=self.control, style="class:select-list", wrap_lines=False,
        )

    def feed(self, key: str) -> bool:
        """Move the cursor for a navigation key. Returns False for other keys."""
        last = max(len(self.items) - 1, 0)
        moves = {
            "up": self._index - 1,
            "down": self._index + 1,
            "pageup": self._index - self.page_size,
            "pagedown": self._index + self.page_size,
            "home": 0,
            "end": last,
        }
        if key not in moves:
            return False
        self._index = min(max(moves[key], 0), last)
        return True

    def selected_index(self) -> Optional[int]:
        return self._index if self.items else None

    def set_items(self, items):
        self.items = list(items)
        if self._index >= len(self.items):
            self._index = max(0, len(self.items) - 1)

    def _get_text(self):
        result = []
        for i, item in enumerate(self.items):
            if i == self._index:
                result.append(("[SetCursorPosition]", ""))
                result.append(("class:item.title.selected", f" {item.title} \n"))
                result.append(("class:item.description.selected", f" {item.description} \n"))
            else:
                result.append(("class:item.title", f" {item.title}\n"))
                result.append(("class:item.description", f" {item.description}\n"))
            result.append(("", "\n"))
        return result

    def __pt_container__(self):
        return self.window


class EntryInput:
    """Multi-line text input for composing and editing entries."""

    def __init__(self):
        self.text_area = TextArea(
            text="",
            multiline=True,
            wrap_lines=True,
            scrollbar=False,
            style="class:editor",
            focus_on_click=True,
        )

    def current_value(self) -> str:
        return self.text_area.text

    def set_value(self, text: str) -> None:
        self.text_area.document = Document(text, len(text))

    def reset(self) -> None:
        self.text_area.buffer.reset()

    def __pt_container__(self):
        return self.text_area


# ════════════════════════════════════════════════════════════════════════
#  View State Machine
# ════════════════════════════════════════════════════════════════════════


class Mode(Enum):
    LISTING = "listing"
    COMPOSING = "composing"
    VIEWING = "viewing"
    EDITING = "editing"


class Command(Enum):
    QUIT = "quit"
    NEW = "new"
    SELECT = "select"
    NAVIGATE = "navigate"
    CANCEL = "cancel"
    CONFIRM = "confirm"
    EDIT = "edit"
    DELETE = "delete"
    BACK = "back"
    RESIZE = "resize"


_QUITTABLE = (Mode.LISTING, Mode.COMPOSING, Mode.EDITING)


@dataclass
class ViewState:
    """Process-lifetime UI state."""
    mode: Mode = Mode.LISTING
    focus: Optional[Entry] = None
    error: Optional[Exception] = None
    width: int = 80
    height: int = 24
    items: list[ListItem] = field(default_factory=list)
    pending: bool = False           # A store operation is in flight
    quit_deferred: bool = False
    exit_requested: bool = False


OnDone = Callable[[Any, Optional[StoreError]], None]
Runner = Callable[[Callable[[], Any], OnDone], None]


def guarded(operation: Callable[[], Any]) -> Callable[[], Any]:
    """Wrap operation so any failure surfaces as a StoreError."""
    def call():
        try:
            return operation()
        except StoreError:
            raise
        except Exception as exc:
            logger.exception("Unexpected failure in store operation")
            raise StoreError(f"unexpected error: {exc}") from exc
    return call


def run_inline(operation: Callable[[], Any], on_done: OnDone) -> None:
    """Run a store operation right away and hand its outcome to on_done."""
    try:
        result = guarded(operation)()
    except StoreError as exc:
        on_done(None, exc)
        return
    on_done(result, None)


class JournalMachine:
    """Interprets commands for the four screens and drives the store.

    Store calls go through ``runner``; while one is in flight every
    command except RESIZE is ignored, and QUIT waits for the result.
    """

    def __init__(self, store: EntryStore, entry_list: ListWidget,
                 entry_input: InputWidget, runner: Runner = run_inline):
        self.store = store
        self.entry_list = entry_list
        self.entry_input = entry_input
        self.runner = runner
        self.state = ViewState()

    def start(self) -> None:
        self.refresh()

    def refresh(self) -> None:
        self._submit(self.store.list_entries, self._on_listed)

    def dismiss_error(self) -> bool:
        if self.state.error is None:
            return False
        self.state.error = None
        return True

    def dispatch(self, command: Command, key: str = "",
                 size: Optional[tuple[int, int]] = None) -> None:
        state = self.state
        if command is Command.RESIZE:
            if size is not None:
                state.width, state.height = size
            return
        if self.dismiss_error():
            return
        if state.pending:
            if command is Command.QUIT and state.mode in _QUITTABLE:
                state.quit_deferred = True
            return

        if state.mode is Mode.LISTING:
            self._on_listing(command, key)
        elif state.mode is Mode.COMPOSING:
            self._on_composing(command)
        elif state.mode is Mode.VIEWING:
            self._on_viewing(command)
        elif state.mode is Mode.EDITING:
            self._on_editing(command)

    # ── Per-mode handlers ───────────────────────────────────────────

    def _on_listing(self, command, key):
        state = self.state
        if command is Command.QUIT:
            state.exit_requested = True
        elif command is Command.NEW:
            self.entry_input.reset()
            state.mode = Mode.COMPOSING
        elif command is Command.SELECT:
            index = self.entry_list.selected_index()
            if index is None or index >= len(state.items):
                return
            path = state.items[index].path
            self._submit(lambda: self.store.load_entry(path), self._on_loaded)
        elif command is Command.NAVIGATE:
            self.entry_list.feed(key)

    def _on_composing(self, command):
        state = self.state
        if command is Command.QUIT:
            state.exit_requested = True
        elif command is Command.CANCEL:
            self.entry_input.reset()
            state.mode = Mode.LISTING
        elif command is Command.CONFIRM:
            content = self.entry_input.current_value()
            if not content:
                return

            def create():
                return self.store.save_entry(self.store.create_entry(content))

            self._submit(create, self._on_created)

    def _on_viewing(self, command):
        state = self.state
        if state.focus is None:
            return
        if command is Command.BACK:
            state.focus = None
            state.mode = Mode.LISTING
        elif command is Command.DELETE:
            path = state.focus.path
            self._submit(lambda: self.store.delete_entry(path), self._on_deleted)
        elif command is Command.EDIT:
            self.entry_input.set_value(state.focus.content)
            state.mode = Mode.EDITING

    def _on_editing(self, command):
        state = self.state
        if command is Command.QUIT:
            state.exit_requested = True
        elif command is Command.CANCEL:
            self.entry_input.reset()
            state.mode = Mode.VIEWING
        elif command is Command.CONFIRM:
            content = self.entry_input.current_value()
            if not content or state.focus is None:
                return
            updated = replace(state.focus, content=content)
            self._submit(lambda: self.store.save_entry(updated), self._on_edited)

    # ── Store results ───────────────────────────────────────────────

    def _submit(self, operation, on_done):
        state = self.state
        state.pending = True

        def deliver(result, error):
            state.pending = False
            on_done(result, error)
            if state.quit_deferred and not state.pending:
                state.quit_deferred = False
                state.exit_requested = True

        self.runner(operation, deliver)

    def _on_listed(self, entries, error):
        if error is not None:
            self.state.error = error
            return
        self.state.items = [ListItem.from_entry(e) for e in entries]
        self.entry_list.set_items(self.state.items)

    def _on_loaded(self, entry, error):
        if error is not None:
            self.state.error = error
            return
        self.state.focus = entry
        self.state.mode = Mode.VIEWING

    def _on_created(self, entry, error):
        if error is not None:
            self.state.error = error
            return
        self.entry_input.reset()
        self.state.mode = Mode.LISTING
        self.refresh()

    def _on_edited(self, entry, error):
        if error is not None:
            self.state.error = error
            return
        self.state.focus = entry
        self.entry_input.reset()
        self.state.mode = Mode.VIEWING
        self.refresh()

    def _on_deleted(self, _result, error):
        if isinstance(error, NotFoundError):
            logger.warning("Entry was already gone: %s", error)
        elif error is not None:
            self.state.error = error
            return
        self.state.focus = None
        self.state.mode = Mode.LISTING
        self.refresh()


# ════════════════════════════════════════════════════════════════════════
#  Rendering
# ════════════════════════════════════════════════════════════════════════

_TITLES = {
    Mode.LISTING: "Journal",
    Mode.COMPOSING: "New Journal Entry",
    Mode.VIEWING: "Journal Entry",
    Mode.EDITING: "Edit Journal Entry",
}

_HELP = {
    Mode.LISTING: "n: new entry • enter: view entry • q: quit",
    Mode.COMPOSING: "enter: save • esc: cancel",
    Mode.VIEWING: "e: edit • d: delete • esc: back",
    Mode.EDITING: "enter: save • esc: cancel",
}

DEFAULT_STYLES = {
    "": "",
    "frame.border": "#7D56F4",
    "title": "bold #FAFAFA bg:#7D56F4",
    "date": "italic #7D56F4",
    "hint": "#626262",
    "error": "bold #FF5F87",
    "item.title": "",
    "item.description": "#777777",
    "item.title.selected": "#FFFFFF bg:#7D56F4",
    "item.description.selected": "#DADADA bg:#7D56F4",
    "editor": "",
}


@dataclass
class Theme:
    """Presentation constants handed to create_app."""
    styles: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_STYLES))

    def to_style(self) -> PtStyle:
        return PtStyle.from_dict(self.styles)


def screen_title(mode: Mode) -> str:
    return _TITLES[mode]


def help_text(mode: Mode) -> str:
    return _HELP[mode]


def list_info_text(count: int) -> str:
    if count == 0:
        return "No journal entries yet. Press 'n' to create one."
    if count == 1:
        return "You have 1 journal entry"
    return f"You have {count} journal entries"


def error_text(error: Exception) -> str:
    return f"Error: {error}"


# ════════════════════════════════════════════════════════════════════════
#  Application
# ════════════════════════════════════════════════════════════════════════


def _text_window(get_fragments, focusable=False, wrap_lines=False, height=1):
    return Window(
        FormattedTextControl(get_fragments, focusable=focusable),
        height=height,
        wrap_lines=wrap_lines,
    )


def create_app(store: EntryStore, theme: Optional[Theme] = None, **app_kwargs) -> Application:
    """Build and return the prompt_toolkit Application."""
    theme = theme or Theme()
    entry_list = SelectableList()
    entry_input = EntryInput()

    # ── Background store operations ──────────────────────────────────

    background_tasks = set()

    def run_in_background(operation, on_done):
        async def _run():
            loop = asyncio.get_running_loop()
            try:
                result = await loop.run_in_executor(None, guarded(operation))
            except StoreError as exc:
                logger.debug("Store operation failed: %s", exc)
                on_done(None, exc)
            else:
                on_done(result, None)
            refresh_view()

        task = asyncio.ensure_future(_run())
        background_tasks.add(task)
        task.add_done_callback(background_tasks.discard)

    machine = JournalMachine(store, entry_list, entry_input, runner=run_in_background)
    state = machine.state

    # ── Screens ──────────────────────────────────────────────────────

    def _title():
        return [("class:title", f" {screen_title(state.mode)} ")]

    def _help():
        return [("class:hint", help_text(state.mode))]

    def _date():
        if state.focus is None:
            return []
        return [("class:date", format_timestamp(state.focus.created_at))]

    def _content():
        return [("", state.focus.content if state.focus else "")]

    def _error():
        return [
            ("class:error", error_text(state.error) if state.error else ""),
            ("", "\n"),
            ("class:hint", "Press any key to continue"),
        ]

    has_focus = Condition(lambda: state.focus is not None)

    list_screen = HSplit([
        _text_window(_title),
        Window(height=1),
        _text_window(lambda: [("", list_info_text(len(state.items)))]),
        entry_list,
        Window(height=1),
        _text_window(_help),
    ])

    entry_window = _text_window(_content, focusable=True, wrap_lines=True, height=None)
    view_screen = HSplit([
        _text_window(_title),
        Window(height=1),
        _text_window(_date),
        Window(height=1),
        entry_window,
        Window(height=1),
        _text_window(_help),
    ])

    input_screen = HSplit([
        _text_window(_title),
        Window(height=1),
        ConditionalContainer(_text_window(_date), filter=has_focus),
        entry_input,
        Window(height=1),
        _text_window(_help),
    ])

    error_window = _text_window(_error, focusable=True, wrap_lines=True, height=None)
    error_screen = HSplit([error_window])

    def get_current_screen():
        if state.error is not None:
            return error_screen
        if state.mode is Mode.VIEWING:
            return view_screen
        if state.mode in (Mode.COMPOSING, Mode.EDITING):
            return input_screen
        return list_screen

    root = Frame(body=DynamicContainer(get_current_screen))

    def refresh_view():
        if state.exit_requested:
            if not app.is_done:
                app.exit()
            return
        if state.error is not None:
            target = error_window
        elif state.mode is Mode.VIEWING:
            target = entry_window
        elif state.mode in (Mode.COMPOSING, Mode.EDITING):
            target = entry_input.text_area
        else:
            target = entry_list.window
        app.layout.focus(target)
        app.invalidate()

    # ── Key bindings ─────────────────────────────────────────────────

    kb = KeyBindings()

    def in_mode(mode):
        return Condition(lambda: state.error is None and state.mode is mode)

    is_listing = in_mode(Mode.LISTING)
    is_composing = in_mode(Mode.COMPOSING)
    is_viewing = in_mode(Mode.VIEWING)
    is_editing = in_mode(Mode.EDITING)
    has_error = Condition(lambda: state.error is not None)

    def bind(keys, command, when, key_name="", eager=False):
        @kb.add(*keys, filter=when, eager=eager)
        def _(event):
            machine.dispatch(command, key=key_name)
            refresh_view()

    def dismiss(event):
        machine.dismiss_error()
        refresh_view()

    # First keypress after an error only dismisses it. Keys the default
    # bindings claim by name need their own entry to outrank them.
    kb.add("<any>", filter=has_error)(dismiss)
    kb.add("escape", filter=has_error, eager=True)(dismiss)
    for key in ("enter", "c-c", "up", "down", "left", "right",
                "pageup", "pagedown", "home", "end", "backspace", "tab"):
        kb.add(key, filter=has_error)(dismiss)

    # -- Listing --
    bind(["q"], Command.QUIT, is_listing)
    bind(["c-c"], Command.QUIT, is_listing)
    bind(["n"], Command.NEW, is_listing)
    bind(["enter"], Command.SELECT, is_listing)
    for key, name in (("up", "up"), ("k", "up"), ("down", "down"), ("j", "down"),
                      ("pageup", "pageup"), ("pagedown", "pagedown"),
                      ("home", "home"), ("end", "end")):
        bind([key], Command.NAVIGATE, is_listing, key_name=name)

    # -- Composing --
    bind(["c-c"], Command.QUIT, is_composing)
    bind(["escape"], Command.CANCEL, is_composing, eager=True)
    bind(["enter"], Command.CONFIRM, is_composing)

    # -- Viewing --
    bind(["escape"], Command.BACK, is_viewing, eager=True)
    bind(["q"], Command.BACK, is_viewing)
    bind(["d"], Command.DELETE, is_viewing)
    bind(["e"], Command.EDIT, is_viewing)

    # -- Editing --
    bind(["c-c"], Command.QUIT, is_editing)
    bind(["escape"], Command.CANCEL, is_editing, eager=True)
    bind(["enter"], Command.CONFIRM, is_editing)

    # ── Build Application ────────────────────────────────────────────

    layout = Layout(root, focused_element=entry_list.window)

    app = Application(
        layout=layout,
        key_bindings=kb,
        style=theme.to_style(),
        full_screen=True,
        mouse_support=False,
        **app_kwargs,
    )
    app.ttimeoutlen = 0.05

    def _on_before_render(sender):
        size = sender.output.get_size()
        if (size.columns, size.rows) != (state.width, state.height):
            machine.dispatch(Command.RESIZE, size=(size.columns, size.rows))
            entry_list.page_size = max(1, (size.rows - 10) // 3)

    app.before_render += _on_before_render
    app.pre_run_callables.append(machine.start)

    return app


# ════════════════════════════════════════════════════════════════════════
#  Entry point
# ════════════════════════════════════════════════════════════════════════


def main() -> None:
    try:
        config = load_config()
    except ConfigError as exc:
        print(f"Error loading configuration: {exc}")
        sys.exit(1)

    try:
        create_default_config_file()
    except (OSError, ConfigError) as exc:
        print(f"Warning: Could not create default config file: {exc}")

    try:
        entries_dir = ensure_entries_dir(config)
    except OSError as exc:
        print(f"Error creating entries directory: {exc}")
        sys.exit(1)

    setup_logging(config)

    print(f"Journal entries directory: {entries_dir}")
    if config.dev_mode:
        print("Running in development mode")
    else:
        print("Running in production mode")

    app = create_app(EntryStore(entries_dir))
    app.run()


if __name__ == "__main__":
    main()
