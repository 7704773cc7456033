"""
Central configuration for csproj-sync.

All paths are resolved relative to the workspace root: the current directory,
overridable with the ``CSPROJ_SYNC_WORKSPACE`` environment variable (or the
CLI's ``--workspace``).

Settings are read from ``<workspace>/.csproj-sync.json``; every key is
optional::

    {
      "projectFiles": [{"path": "App/App.csproj", "glob": "App/**"}],
      "itemType":     {"*": "Content", ".cs": "Compile"},   // or "Content"
      "includeRegex": null,
      "excludeRegex": "\\\\.g\\\\.cs$",
      "autoAdd":      "prompt",                             // on | prompt | off
      "autoRemove":   "prompt"
    }

Paths the user chose to never add are kept in
``<workspace>/.csproj-sync-ignored.json``.
"""
from __future__ import annotations

import enum
import os
import re
from dataclasses import dataclass, field
from fnmatch import fnmatch
from pathlib import Path
from typing import Dict, List, Optional, Pattern, Union

import fs

# ── Workspace layout ──────────────────────────────────────────────────────────
WORKSPACE = Path(os.path.abspath(os.environ.get("CSPROJ_SYNC_WORKSPACE", os.getcwd())))

SETTINGS_FILE = ".csproj-sync.json"
IGNORED_FILE  = ".csproj-sync-ignored.json"

# ── Project files ─────────────────────────────────────────────────────────────
PROJECT_EXTENSION = ".csproj"
PROJECT_GLOB      = f"*{PROJECT_EXTENSION}"

# ── Item types ────────────────────────────────────────────────────────────────
DEFAULT_ITEM_TYPES: Dict[str, str] = {
    "*":   "Content",
    ".cs": "Compile",
    ".ts": "TypeScriptCompile",
}
FALLBACK_ITEM_TYPE = "Content"


class AutoSetting(str, enum.Enum):
    """Values of the ``autoAdd`` / ``autoRemove`` settings."""
    ON     = "on"
    PROMPT = "prompt"
    OFF    = "off"


@dataclass
class ProjectFile:
    """A project file to use for files matching ``glob`` (workspace-relative)."""
    path: str
    glob: str


@dataclass
class Settings:
    """
    In-memory representation of ``.csproj-sync.json``.

    workspace     – absolute workspace root
    project_files – explicit file→project mapping (first matching glob wins)
    item_type     – a single item type, or ``{extension: item type}``
    include_regex – only files whose path matches are synced (None = all)
    exclude_regex – files whose path matches are never synced
    auto_add      – what to do when a new file appears
    auto_remove   – what to do when a file disappears
    """
    workspace:     Path
    project_files: List[ProjectFile]     = field(default_factory=list)
    item_type:     Union[str, Dict[str, str]] = field(
        default_factory=lambda: dict(DEFAULT_ITEM_TYPES)
    )
    include_regex: Optional[str]         = None
    exclude_regex: Optional[str]         = None
    auto_add:      AutoSetting           = AutoSetting.PROMPT
    auto_remove:   AutoSetting           = AutoSetting.PROMPT

    # ── factories ──────────────────────────────────────────────────────────

    @classmethod
    def load(cls, workspace: Optional[Path] = None) -> "Settings":
        """
        Load settings for *workspace* (default ``WORKSPACE``).
        Missing file → defaults.  Raises ``ValueError`` on malformed content.
        """
        workspace = Path(os.path.abspath(workspace or WORKSPACE))
        settings_path = workspace / SETTINGS_FILE
        data = fs.read_json(settings_path, default={})
        if not isinstance(data, dict):
            raise ValueError(f"{settings_path}: expected a JSON object")

        try:
            project_files = [
                ProjectFile(path=entry["path"], glob=entry["glob"])
                for entry in data.get("projectFiles", [])
            ]
        except (KeyError, TypeError) as exc:
            raise ValueError(
                f"{settings_path}: every 'projectFiles' entry needs 'path' and 'glob'"
            ) from exc

        item_type = data.get("itemType", dict(DEFAULT_ITEM_TYPES))
        if not isinstance(item_type, (str, dict)):
            raise ValueError(f"{settings_path}: 'itemType' must be a string or an object")

        try:
            auto_add = AutoSetting(data.get("autoAdd", AutoSetting.PROMPT.value))
            auto_remove = AutoSetting(data.get("autoRemove", AutoSetting.PROMPT.value))
        except ValueError as exc:
            raise ValueError(
                f"{settings_path}: autoAdd/autoRemove must be one of "
                f"{[s.value for s in AutoSetting]}"
            ) from exc

        settings = cls(
            workspace     = workspace,
            project_files = project_files,
            item_type     = item_type,
            include_regex = data.get("includeRegex") or None,
            exclude_regex = data.get("excludeRegex") or None,
            auto_add      = auto_add,
            auto_remove   = auto_remove,
        )
        # Fail early on bad patterns.
        for pattern in (settings.include_regex, settings.exclude_regex):
            if pattern:
                try:
                    re.compile(pattern)
                except re.error as exc:
                    raise ValueError(f"{settings_path}: invalid regex {pattern!r}: {exc}") from exc
        return settings

    # ── persistence ────────────────────────────────────────────────────────

    @property
    def path(self) -> Path:
        return self.workspace / SETTINGS_FILE

    def save(self) -> None:
        """Write the settings back to ``.csproj-sync.json``."""
        data = {
            "projectFiles": [{"path": p.path, "glob": p.glob} for p in self.project_files],
            "itemType":     self.item_type,
            "includeRegex": self.include_regex,
            "excludeRegex": self.exclude_regex,
            "autoAdd":      self.auto_add.value,
            "autoRemove":   self.auto_remove.value,
        }
        fs.write_json(self.path, data)

    # ── helpers ────────────────────────────────────────────────────────────

    def relative(self, path: Path) -> str:
        """Workspace-relative POSIX path (absolute paths outside the workspace stay absolute)."""
        path = Path(os.path.abspath(path))
        try:
            return path.relative_to(self.workspace).as_posix()
        except ValueError:
            return path.as_posix()

    def item_type_for(self, name: str) -> str:
        """Return the item type for a file name."""
        if isinstance(self.item_type, str):
            return self.item_type
        ext = os.path.splitext(name)[1]
        return self.item_type.get(ext) or self.item_type.get("*") or FALLBACK_ITEM_TYPE

    def project_file_for(self, path: Path) -> Optional[ProjectFile]:
        """Return the first ``projectFiles`` entry whose glob matches *path*."""
        rel = self.relative(path)
        for project_file in self.project_files:
            if fnmatch(rel, project_file.glob):
                return project_file
        return None


# ── Ignored paths ─────────────────────────────────────────────────────────────

def _ignored_file(workspace: Optional[Path]) -> Path:
    return Path(workspace or WORKSPACE) / IGNORED_FILE


def get_ignored_paths(workspace: Optional[Path] = None) -> List[str]:
    data = fs.read_json(_ignored_file(workspace), default=[])
    if not isinstance(data, list):
        raise ValueError(f"{_ignored_file(workspace)}: expected a JSON list")
    return [str(p) for p in data]


def set_ignored_paths(paths: List[str], workspace: Optional[Path] = None) -> None:
    fs.write_json(_ignored_file(workspace), list(paths))


def add_ignored_path(path: Path, workspace: Optional[Path] = None) -> None:
    ignored = get_ignored_paths(workspace)
    entry = os.path.abspath(path)
    if entry not in ignored:
        ignored.append(entry)
        set_ignored_paths(ignored, workspace)


def clear_ignored_paths(workspace: Optional[Path] = None) -> None:
    set_ignored_paths([], workspace)


class PathFilter:
    """Checks a path against the ignore list, ``includeRegex`` and ``excludeRegex``."""

    def __init__(self, settings: Settings, ignored: Optional[List[str]] = None) -> None:
        if ignored is None:
            ignored = get_ignored_paths(settings.workspace)
        self._ignored = set(ignored)
        self._include: Optional[Pattern[str]] = (
            re.compile(settings.include_regex) if settings.include_regex else None
        )
        self._exclude: Optional[Pattern[str]] = (
            re.compile(settings.exclude_regex) if settings.exclude_regex else None
        )

    def is_valid(self, path: Path) -> bool:
        full = os.path.abspath(path)
        name = os.path.basename(full)
        # Our own state files, manifests, and fs.write_bytes temp files.
        if name in (SETTINGS_FILE, IGNORED_FILE) or name.endswith(PROJECT_EXTENSION):
            return False
        if name.startswith(".") and f"{PROJECT_EXTENSION}~" in name:
            return False
        if full in self._ignored:
            return False
        if self._include is not None and not self._include.search(full):
            return False
        if self._exclude is not None and self._exclude.search(full):
            return False
        return True
