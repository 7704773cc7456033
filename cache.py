"""
Cache of open project files, one ``Csproj`` per manifest path.

Keeping a single instance per manifest is what serialises access to it:
every caller (CLI command, watcher cycle) mutates the same object and saves
it when done, so edits are never lost to a stale second copy.
"""
from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, Optional

import config as cfg
import logger as log
from csproj import Csproj


def find_nearest_project(path: Path, workspace: Path) -> Optional[Path]:
    """
    Return the first ``*.csproj`` found walking up from *path*'s directory,
    stopping at *workspace*.  Returns None if there is none.
    """
    path = Path(os.path.abspath(path))
    workspace = Path(os.path.abspath(workspace))
    directory = path if path.is_dir() else path.parent
    while True:
        candidates = sorted(directory.glob(cfg.PROJECT_GLOB))
        if candidates:
            return candidates[0]
        if directory == workspace or directory.parent == directory:
            return None
        if workspace not in directory.parents:
            return None
        directory = directory.parent


class ProjectCache:
    """Maps absolute manifest paths to their open ``Csproj``."""

    def __init__(self, settings: cfg.Settings) -> None:
        self.settings = settings
        self._projects: Dict[Path, Csproj] = {}

    def __len__(self) -> int:
        return len(self._projects)

    def __contains__(self, path: Path) -> bool:
        return Path(os.path.abspath(path)) in self._projects

    def open_project(self, path: Path) -> Csproj:
        """Return the cached project for *path*, opening it on first use."""
        key = Path(os.path.abspath(path))
        csproj = self._projects.get(key)
        if csproj is None:
            csproj = Csproj.open(key)
            self._projects[key] = csproj
            log.debug(f"Cached {csproj.name}")
        return csproj

    def project_path_for(self, path: Path) -> Optional[Path]:
        """
        Return the manifest responsible for *path*: the ``projectFiles``
        setting first, else the nearest ``*.csproj`` above it.
        """
        project_file = self.settings.project_file_for(path)
        if project_file is not None:
            return self.settings.workspace / project_file.path
        return find_nearest_project(path, self.settings.workspace)

    def find_project(self, path: Path) -> Optional[Csproj]:
        """Return the project that *path* belongs to, or None."""
        manifest = self.project_path_for(path)
        if manifest is None or not manifest.is_file():
            return None
        # A manifest never tracks itself.
        if Path(os.path.abspath(manifest)) == Path(os.path.abspath(path)):
            return None
        return self.open_project(manifest)

    def invalidate(self, path: Path, save: bool = False) -> bool:
        """
        Drop *path* from the cache (saving it first if *save*).
        Returns True if it was cached.
        """
        key = Path(os.path.abspath(path))
        csproj = self._projects.get(key)
        if csproj is not None and save:
            csproj.save()
        if self._projects.pop(key, None) is None:
            return False
        log.debug(f"Invalidated {key.name}")
        return True

    def clear(self, save: bool = False) -> None:
        for key in list(self._projects):
            self.invalidate(key, save=save)
