"""
File-system watcher for csproj-sync.

Watch mode  (``csproj-sync watch``)
-----------------------------------
The watcher polls the workspace and keeps project files in sync with it:

  Created file   – offered for adding to its project (per ``autoAdd``).
  Deleted file   – queued; after the debounce window the whole batch is
                   offered for removal once (per ``autoRemove``).
  Changed/deleted
  ``*.csproj``   – dropped from the project cache so the next access
                   re-reads what the IDE (or the user) wrote.

Architecture
------------
  MainThread  – poll loop (Ctrl+C / SIGTERM stops it)

Debounce
--------
Deletions are not acted on immediately: after one is seen the watcher waits
``debounce`` seconds and re-scans, so deleting a folder with many files
produces one question instead of one per file.

Public API
----------
  scan_changes(before, after)  → Changes
  Watcher(ctx).poll_once()     → Changes
  watch(ctx, ...)              – blocking entry point called from the CLI
"""
from __future__ import annotations

import signal
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import config as cfg
import fs
import logger as log
from actions import SyncContext, add_paths, remove_paths


@dataclass
class Changes:
    """Differences between two workspace snapshots (each list sorted)."""
    created:  List[Path] = field(default_factory=list)
    deleted:  List[Path] = field(default_factory=list)
    modified: List[Path] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.created or self.deleted or self.modified)


def scan_changes(before: Dict[Path, float], after: Dict[Path, float]) -> Changes:
    """Compare two ``fs.snapshot`` results."""
    return Changes(
        created  = sorted(p for p in after if p not in before),
        deleted  = sorted(p for p in before if p not in after),
        modified = sorted(p for p in after if p in before and after[p] != before[p]),
    )


def _is_project_file(path: Path) -> bool:
    return path.suffix == cfg.PROJECT_EXTENSION


class Watcher:
    """
    Holds the last workspace snapshot and turns each new one into
    add / remove / invalidate actions.
    """

    def __init__(self, ctx: SyncContext) -> None:
        self.ctx = ctx
        self.root = ctx.settings.workspace
        self._snapshot = fs.snapshot(self.root)

    def rescan(self) -> Changes:
        current = fs.snapshot(self.root)
        changes = scan_changes(self._snapshot, current)
        self._snapshot = current
        return changes

    def _invalidate_projects(self, changes: Changes) -> None:
        for path in changes.modified + changes.deleted:
            if _is_project_file(path) and self.ctx.cache.invalidate(path):
                log.info(f"[watch] {path.name} changed on disk — reloading on next use")

    def poll_once(self, debounce: float = 0.0) -> Changes:
        """
        Take one snapshot and act on the differences.

        When files were deleted, wait *debounce* seconds and fold any further
        changes into the same cycle before asking about removal.
        """
        changes = self.rescan()
        if changes.deleted and debounce > 0:
            time.sleep(debounce)
            more = self.rescan()
            created = set(changes.created)
            # Created-then-deleted files were never tracked; re-created ones stay.
            changes.deleted  = sorted((set(changes.deleted) | set(more.deleted)) - created - set(more.created))
            changes.created  = sorted((created - set(more.deleted)) | set(more.created))
            changes.modified = sorted(set(changes.modified) | set(more.modified))

        if not changes:
            return changes

        self._invalidate_projects(changes)
        self.ctx.saved.clear()

        created = [p for p in changes.created if not _is_project_file(p)]
        if created:
            log.debug(f"[watch] created: {', '.join(p.name for p in created)}")
            add_paths(self.ctx, created, is_event=True)

        deleted = [
            p for p in changes.deleted
            if not _is_project_file(p) and self.ctx.path_filter().is_valid(p)
        ]
        if deleted:
            log.debug(f"[watch] deleted: {', '.join(p.name for p in deleted)}")
            remove_paths(self.ctx, deleted, is_event=True)

        self._absorb_saves()
        return changes

    def _absorb_saves(self) -> None:
        """
        Fold the manifests we just wrote into the baseline so they are not
        reported as modified.  Only those paths are re-read: anything else
        that appeared while a prompt was open is left for the next poll.
        """
        for path in self.ctx.saved:
            try:
                self._snapshot[path] = path.stat().st_mtime
            except FileNotFoundError:
                self._snapshot.pop(path, None)
        self.ctx.saved.clear()


def watch(
    ctx: SyncContext,
    *,
    poll_interval: float = 2.0,
    debounce: float = 1.0,
    stop_event: Optional[threading.Event] = None,
) -> bool:
    """
    Poll the workspace until Ctrl+C / SIGTERM (or *stop_event* is set).
    Returns True on a clean shutdown.
    """
    log.banner(
        "csproj-sync  [watch mode]",
        f"workspace: {ctx.settings.workspace}  |  poll: {poll_interval}s  |  "
        f"debounce: {debounce}s  |  autoAdd: {ctx.settings.auto_add.value}  |  "
        f"autoRemove: {ctx.settings.auto_remove.value}",
    )

    stop_event = stop_event or threading.Event()

    def _on_signal(signum, frame):  # noqa: ANN001
        stop_event.set()

    if threading.current_thread() is threading.main_thread():
        signal.signal(signal.SIGINT,  _on_signal)
        signal.signal(signal.SIGTERM, _on_signal)

    watcher = Watcher(ctx)
    log.section("Watching for changes  (Ctrl+C to stop)")

    try:
        while not stop_event.wait(poll_interval):
            watcher.poll_once(debounce)
    finally:
        log.info("[watch] Shutting down…")
        ctx.cache.clear()
        log.info("[watch] Done.")

    return True
