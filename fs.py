"""
File-system helpers: read / atomically write manifests, discover files,
and read / write small JSON state files.

Storage failures (missing file, permission denied …) are raised as the
built-in ``OSError`` subclasses and never retried here.
"""
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

import logger as log

# Directories never scanned for project files or watched for changes.
IGNORE_DIRS = {".git", ".hg", ".svn", ".vs", ".idea", ".vscode", "bin", "obj", "node_modules"}


def read_bytes(path: Path) -> bytes:
    return Path(path).read_bytes()


def write_bytes(path: Path, data: bytes) -> None:
    """
    Write *data* to *path*, fully replacing any existing content.

    The bytes are first written to a temporary file in the same directory as
    *path*, then renamed into place with ``os.replace`` so a concurrent reader
    (an IDE, a build) sees either the old or the new file, never a partial one.
    """
    path = Path(path)
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}~")
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
        if path.exists():
            os.chmod(tmp, path.stat().st_mode & 0o7777)
        os.replace(tmp, path)
    except Exception:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise
    log.debug(f"Wrote {len(data)} bytes → {path}")


def find_files(directory: Path, pattern: str = "*") -> Iterator[Path]:
    """
    Yield every file under *directory* matching *pattern*, in sorted order,
    skipping ``IGNORE_DIRS``.
    """
    directory = Path(directory)
    if not directory.is_dir():
        return
    for item in sorted(directory.rglob(pattern)):
        if not item.is_file():
            continue
        rel_parts = item.relative_to(directory).parts[:-1]
        if any(part in IGNORE_DIRS for part in rel_parts):
            continue
        yield item


def snapshot(directory: Path) -> Dict[Path, float]:
    """Return ``{path: mtime}`` for every file under *directory*."""
    result: Dict[Path, float] = {}
    for item in find_files(directory):
        try:
            result[item] = item.stat().st_mtime
        except FileNotFoundError:
            # deleted between listing and stat
            continue
    return result


def read_json(path: Path, default: Optional[Any] = None) -> Any:
    """
    Load JSON from *path*; return *default* if the file does not exist.
    Raises ``ValueError`` on malformed JSON.
    """
    path = Path(path)
    if not path.exists():
        return default
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Malformed {path}: {exc}") from exc


def write_json(path: Path, data: Any) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    write_bytes(path, (json.dumps(data, indent=2) + "\n").encode("utf-8"))
