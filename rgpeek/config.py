# Settings for rgpeek and their JSON state file.
#
# Values come from, in increasing priority: dataclass defaults, the state
# file (~/.rgpeek.json or $RGPEEK_CONFIG), environment overrides for the
# external programs, and finally command line flags applied by __main__.
# The UI writes the user's toggles back to the same file on exit.
#
# Example:
#   settings = load_settings()
#   settings.show_hidden = True
#   save_settings(settings)


import json
import logging
import os
import shlex
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .schema import DRAIN_BATCH_SIZE, PREVIEW_PROGRAM, SEARCH_PROGRAM, TICK_INTERVAL

CONFIG_ENV: str = "RGPEEK_CONFIG"
SEARCH_COMMAND_ENV: str = "RGPEEK_SEARCH_COMMAND"
PREVIEW_COMMAND_ENV: str = "RGPEEK_PREVIEW_COMMAND"
DEFAULT_CONFIG_PATH: Path = Path.home() / ".rgpeek.json"
# Keys written back by the UI.
PERSISTED_KEYS = ("show_hidden", "show_preview", "globs")


def _default_editor() -> str:
    return os.environ.get("VISUAL") or os.environ.get("EDITOR") or "vi"


@dataclass
class Settings:
    search_command: List[str] = field(default_factory=lambda: list(SEARCH_PROGRAM))
    preview_command: List[str] = field(default_factory=lambda: list(PREVIEW_PROGRAM))
    editor: str = field(default_factory=_default_editor)
    batch_size: int = DRAIN_BATCH_SIZE
    tick_interval: float = TICK_INTERVAL
    show_preview: bool = True
    show_hidden: bool = False
    globs: str = ""

    # Coerce values loaded from JSON into the declared types.
    def __post_init__(self) -> None:
        if isinstance(self.search_command, str):
            self.search_command = shlex.split(self.search_command)
        if isinstance(self.preview_command, str):
            self.preview_command = shlex.split(self.preview_command)
        self.search_command = [str(part) for part in self.search_command]
        self.preview_command = [str(part) for part in self.preview_command]
        self.batch_size = max(1, int(self.batch_size))
        self.tick_interval = max(0.001, float(self.tick_interval))
        self.show_preview = bool(self.show_preview)
        self.show_hidden = bool(self.show_hidden)
        self.globs = str(self.globs)
        if not (self.search_command and self.preview_command):
            raise ValueError("search_command and preview_command must not be empty.")


# Return the state file path to use, honoring $RGPEEK_CONFIG.
def config_path(path: Optional[str] = None, environ: Mapping[str, str] = os.environ) -> Path:
    if path:
        return Path(path).expanduser()
    if environ.get(CONFIG_ENV):
        return Path(environ[CONFIG_ENV]).expanduser()
    return DEFAULT_CONFIG_PATH


# Description:
#   Load settings from the state file and the environment. A missing or
#   unreadable file silently yields the defaults; unknown keys are ignored.
#
# Parameters:
#   path (str | None): Explicit state file.
#   environ (Mapping[str, str]): Environment to read overrides from.
#
# Returns:
#   Settings: Merged settings.
#
def load_settings(path: Optional[str] = None, environ: Mapping[str, str] = os.environ) -> Settings:
    state_path = config_path(path, environ)
    data: Dict[str, Any] = {}
    if state_path.exists():
        try:
            loaded = json.loads(state_path.read_text(encoding="utf-8"))
            if isinstance(loaded, dict):
                data = loaded
        except (OSError, ValueError) as e:
            logging.warning(f"Ignoring unreadable config {str(state_path)!r}: {e}")
    known = {f.name for f in fields(Settings)}
    values = {k: v for k, v in data.items() if k in known}
    if environ.get(SEARCH_COMMAND_ENV):
        values["search_command"] = environ[SEARCH_COMMAND_ENV]
    if environ.get(PREVIEW_COMMAND_ENV):
        values["preview_command"] = environ[PREVIEW_COMMAND_ENV]
    try:
        return Settings(**values)
    except (TypeError, ValueError) as e:
        logging.warning(f"Invalid settings in {str(state_path)!r}, using defaults: {e}")
        return Settings()


# Description:
#   Write the user toggles back to the state file, keeping any other keys
#   already present. Failures are logged, never raised.
#
# Parameters:
#   settings (Settings): Current settings.
#   path (str | None): Explicit state file.
#
def save_settings(settings: Settings, path: Optional[str] = None) -> None:
    state_path = config_path(path)
    try:
        data = json.loads(state_path.read_text(encoding="utf-8")) if state_path.exists() else {}
        if not isinstance(data, dict):
            data = {}
    except (OSError, ValueError):
        data = {}
    current = asdict(settings)
    data.update({key: current[key] for key in PERSISTED_KEYS})
    try:
        state_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    except OSError as e:
        logging.warning(f"Could not save settings to {str(state_path)!r}: {e}")
