"""
Add / remove / status orchestration shared by the CLI and the watcher.

Every function works on a ``SyncContext`` (settings + project cache) and
saves each changed project exactly once, after the whole batch.

Public API
----------
  SyncContext.create(workspace)           → SyncContext
  add_paths(ctx, paths, is_event=False)    → int   (items added)
  remove_paths(ctx, paths, is_event=False) → int   (items removed)
  file_status(ctx, path)                   → (Status, Csproj | None)
  ask_to_add(filename, csproj, setting)    → Decision
  ask_to_remove(pending, setting)          → Decision
"""
from __future__ import annotations

import enum
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from rich.prompt import Prompt

import config as cfg
import fs
import logger as log
from cache import ProjectCache
from csproj import Csproj


class Decision(str, enum.Enum):
    YES   = "Yes"
    NO    = "No"
    NEVER = "Never"


class Status(str, enum.Enum):
    IGNORED           = "ignored"
    PROJECT_NOT_FOUND = "project not found"
    IN_PROJECT        = "in project"
    NOT_IN_PROJECT    = "not in project"


@dataclass
class SyncContext:
    """
    Runtime context passed to every action.

    settings – loaded ``.csproj-sync.json``
    cache    – the single open ``Csproj`` per manifest
    saved    – manifests written by actions, in order (the watcher drains it)
    """
    settings: cfg.Settings
    cache:    ProjectCache
    saved:    List[Path] = field(default_factory=list)

    @classmethod
    def create(cls, workspace: Optional[Path] = None) -> "SyncContext":
        settings = cfg.Settings.load(workspace)
        return cls(settings=settings, cache=ProjectCache(settings))

    def path_filter(self) -> cfg.PathFilter:
        # Rebuilt per call: the ignore list changes when the user picks "Never".
        return cfg.PathFilter(self.settings)


# ─────────────────────────────────────────────────────────────────────────────
# Prompts
# ─────────────────────────────────────────────────────────────────────────────

def ask_to_add(filename: str, csproj: Csproj, setting: cfg.AutoSetting) -> Decision:
    """Decide whether a new file is added, following the ``autoAdd`` setting."""
    if setting is cfg.AutoSetting.ON:
        return Decision.YES
    if setting is cfg.AutoSetting.OFF:
        return Decision.NO
    answer = Prompt.ask(
        f"Would you like to add {filename} to {csproj.name}?",
        choices=[d.value for d in Decision],
        default=Decision.NO.value,
        console=log.console(),
    )
    return Decision(answer)


def ask_to_remove(pending: List[Tuple[Path, Csproj]], setting: cfg.AutoSetting) -> Decision:
    """Decide whether deleted files are removed, following ``autoRemove``."""
    if setting is cfg.AutoSetting.ON:
        return Decision.YES
    if setting is cfg.AutoSetting.OFF or not pending:
        return Decision.NO
    if len(pending) > 1:
        msg = (
            f"{len(pending)} files were deleted, would you like to remove them "
            "from their project files?"
        )
    else:
        path, csproj = pending[0]
        msg = f"{path.name} was deleted, would you like to remove it from {csproj.name}?"
    answer = Prompt.ask(
        msg,
        choices=[Decision.YES.value, Decision.NO.value],
        default=Decision.NO.value,
        console=log.console(),
    )
    return Decision(answer)


# ─────────────────────────────────────────────────────────────────────────────
# Add
# ─────────────────────────────────────────────────────────────────────────────

def _add_file(
    ctx: SyncContext,
    path: Path,
    csproj: Csproj,
    *,
    is_event: bool,
    verbose: bool,
) -> bool:
    """Add one file to *csproj*.  Returns True if the project changed."""
    if csproj.has_item(path):
        if verbose:
            log.info(f"{path.name} is already in {csproj.name}.")
        return False

    decision = ask_to_add(path.name, csproj, ctx.settings.auto_add) if is_event else Decision.YES

    if decision is Decision.YES:
        csproj.add_item(ctx.settings.item_type_for(path.name), path)
        if verbose:
            log.success(f"{path.name} was added to {csproj.name}.")
        return True

    if decision is Decision.NEVER:
        cfg.add_ignored_path(path, ctx.settings.workspace)
        if verbose:
            log.info(f"{path.name} was added to the ignore list "
                     "(run 'csproj-sync ignore clear' to reset it).")
    return False


def _save_all(ctx: SyncContext, changed: Dict[Path, Csproj]) -> None:
    for csproj in changed.values():
        csproj.save()
        ctx.saved.append(csproj.path)
        log.success(f"Saved {csproj.name}")


def add_paths(ctx: SyncContext, paths: Iterable[Path], *, is_event: bool = False) -> int:
    """
    Add files (or every file under a directory) to their projects.
    Returns the number of items added.
    """
    changed: Dict[Path, Csproj] = {}
    added = 0
    for path in paths:
        path = Path(os.path.abspath(path))

        if path.is_dir():
            path_filter = ctx.path_filter()
            skipped = 0
            dir_added = 0
            for file in fs.find_files(path):
                if not path_filter.is_valid(file):
                    skipped += 1
                    continue
                csproj = ctx.cache.find_project(file)
                # Batch operation: one summary instead of a message per file.
                if csproj is not None and _add_file(ctx, file, csproj,
                                                    is_event=False, verbose=False):
                    changed[csproj.path] = csproj
                    dir_added += 1
                else:
                    skipped += 1
            log.info(f"{dir_added} files were added, {skipped} files were skipped.")
            added += dir_added
            continue

        if not path.is_file():
            log.error(f"Not a file or directory: {path}")
            continue

        if is_event and not ctx.path_filter().is_valid(path):
            log.debug(f"{path.name}: ignored by settings")
            continue

        csproj = ctx.cache.find_project(path)
        if csproj is None:
            log.warn(f"{path.name}: project not found")
            continue
        if _add_file(ctx, path, csproj, is_event=is_event, verbose=True):
            changed[csproj.path] = csproj
            added += 1

    _save_all(ctx, changed)
    return added


# ─────────────────────────────────────────────────────────────────────────────
# Remove
# ─────────────────────────────────────────────────────────────────────────────

def _is_directory(path: Path) -> bool:
    # A deleted path can no longer be stat'ed; fall back to "no extension".
    if path.exists():
        return path.is_dir()
    return path.suffix == ""


def remove_paths(ctx: SyncContext, paths: Iterable[Path], *, is_event: bool = False) -> int:
    """
    Remove files (or everything under a directory) from their projects.
    With *is_event*, the whole batch is confirmed once per ``autoRemove``.
    Returns the number of paths that were removed from a project.
    """
    pending: List[Tuple[Path, Csproj, bool]] = []    # (path, project, is_directory)
    for path in paths:
        path = Path(os.path.abspath(path))
        if path.is_dir():
            path_filter = ctx.path_filter()
            for file in fs.find_files(path):
                if not path_filter.is_valid(file):
                    continue
                csproj = ctx.cache.find_project(file)
                if csproj is not None:
                    pending.append((file, csproj, False))
            continue

        csproj = ctx.cache.find_project(path)
        if csproj is None:
            log.warn(f"{path.name}: project not found")
            continue
        # An extensionless file that is tracked is still a file.
        pending.append((path, csproj, _is_directory(path) and not csproj.has_item(path)))

    if not pending:
        return 0

    if is_event:
        decision = ask_to_remove([(p, c) for p, c, _ in pending], ctx.settings.auto_remove)
        if decision is not Decision.YES:
            return 0

    changed: Dict[Path, Csproj] = {}
    removed = 0
    for path, csproj, is_dir in pending:
        if csproj.remove_item(path, directory=is_dir):
            changed[csproj.path] = csproj
            removed += 1
            if not is_event:
                log.success(f"{path.name} was removed from {csproj.name}.")
        elif not is_event:
            log.info(f"{path.name} is not in {csproj.name}.")

    _save_all(ctx, changed)
    return removed


# ─────────────────────────────────────────────────────────────────────────────
# Status
# ─────────────────────────────────────────────────────────────────────────────

def file_status(ctx: SyncContext, path: Path) -> Tuple[Status, Optional[Csproj]]:
    """Report whether *path* is ignored, orphaned, tracked or untracked."""
    path = Path(os.path.abspath(path))
    if not ctx.path_filter().is_valid(path):
        return Status.IGNORED, None
    csproj = ctx.cache.find_project(path)
    if csproj is None:
        return Status.PROJECT_NOT_FOUND, None
    if csproj.has_item(path):
        return Status.IN_PROJECT, csproj
    return Status.NOT_IN_PROJECT, csproj
