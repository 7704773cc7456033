#!/usr/bin/env python3
"""
csproj-sync CLI
===============

Keeps MSBuild project files (``*.csproj``) in sync with the files on disk,
without reformatting the parts of the project that did not change.

Usage examples
--------------
  csproj-sync add src/Foo.cs                     # add a file to its project
  csproj-sync add src/                           # add every file under src/
  csproj-sync remove src/Old.cs                  # remove a file from its project
  csproj-sync remove src/Legacy                  # remove everything under a (deleted) directory
  csproj-sync status src/Foo.cs                  # is the file in its project?
  csproj-sync list App/App.csproj                # list the items of a project
  csproj-sync format                             # re-indent every project in the workspace
  csproj-sync format --check                     # exit 1 if any project would change
  csproj-sync ignore add src/Scratch.cs          # never offer this file again
  csproj-sync ignore list
  csproj-sync ignore clear
  csproj-sync configure --path App/App.csproj --glob "App/**"
  csproj-sync watch                              # add/remove files as they appear/disappear
  csproj-sync watch --poll-interval 1.0 --debounce 2.0
  csproj-sync --workspace ~/code/MySolution status src/Foo.cs
"""

import argparse
import os
import sys
from pathlib import Path

# ── make sure local modules are importable when run as a script ──────────────
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import actions
import config as cfg
import fs
import logger as log
import watcher as watchermod
from csproj import Csproj
from xmltree import ParseError


# ─────────────────────────────────────────────────────────────────────────────
# Sub-command implementations
# ─────────────────────────────────────────────────────────────────────────────

def _context(args: argparse.Namespace) -> actions.SyncContext:
    return actions.SyncContext.create(args.workspace)


def cmd_add(args: argparse.Namespace) -> int:
    """Add files or directories to their projects."""
    ctx = _context(args)
    added = actions.add_paths(ctx, [Path(p) for p in args.paths])
    log.debug(f"{added} item(s) added")
    return 0


def cmd_remove(args: argparse.Namespace) -> int:
    """Remove files or directories from their projects."""
    ctx = _context(args)
    removed = actions.remove_paths(ctx, [Path(p) for p in args.paths])
    log.debug(f"{removed} path(s) removed")
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Report whether each file is tracked by its project."""
    ctx = _context(args)
    exit_code = 0
    for p in args.paths:
        path = Path(p)
        status, csproj = actions.file_status(ctx, path)
        if status is actions.Status.IN_PROJECT:
            log.success(f"{path.name}: in {csproj.name}")
        elif status is actions.Status.NOT_IN_PROJECT:
            log.warn(f"{path.name}: not in {csproj.name}")
            exit_code = 1
        elif status is actions.Status.IGNORED:
            log.info(f"{path.name}: ignored by settings")
        else:
            log.warn(f"{path.name}: project not found")
            exit_code = 1
    return exit_code


def cmd_list(args: argparse.Namespace) -> int:
    """Print every item of a project as a table."""
    from rich.table import Table

    csproj = Csproj.open(args.project)
    table = Table(title=f"{csproj.name}  ({len(csproj.items())} items)", show_lines=False)
    table.add_column("Item Type", style="bold cyan", no_wrap=True)
    table.add_column("Include", overflow="fold")
    for item_type, include in csproj.items():
        table.add_row(item_type, include)
    log.console().print(table)
    return 0


def _workspace_projects(args: argparse.Namespace) -> list:
    if args.projects:
        return [Path(p) for p in args.projects]
    workspace = Path(args.workspace or cfg.WORKSPACE)
    return list(fs.find_files(workspace, cfg.PROJECT_GLOB))


def cmd_format(args: argparse.Namespace) -> int:
    """Re-indent project files (or, with --check, report which would change)."""
    projects = _workspace_projects(args)
    if not projects:
        log.warn("No project files found.")
        return 0

    changed = 0
    total = len(projects)
    for i, path in enumerate(projects, 1):
        original = fs.read_bytes(path)
        csproj = Csproj.open(path)
        formatted = csproj.serialize()
        if original.decode("utf-8-sig") == formatted:
            log.step(i, total, f"{csproj.name}  ✓ unchanged")
            continue
        changed += 1
        if args.check:
            log.step(i, total, f"{csproj.name}  would be reformatted")
        else:
            csproj.save()
            log.step(i, total, f"{csproj.name}  reformatted")

    if args.check and changed:
        log.warn(f"{changed} of {total} project file(s) would be reformatted.")
        return 1
    log.success(f"{total - changed if args.check else total} project file(s) OK.")
    return 0


def cmd_ignore(args: argparse.Namespace) -> int:
    workspace = Path(args.workspace or cfg.WORKSPACE)
    sub = args.ignore_command

    if sub == "add":
        for p in args.paths:
            cfg.add_ignored_path(Path(p), workspace)
            log.success(f"{Path(p).name} was added to the ignore list.")
        return 0

    if sub == "clear":
        cfg.clear_ignored_paths(workspace)
        log.success("Ignore list cleared.")
        return 0

    ignored = cfg.get_ignored_paths(workspace)
    if not ignored:
        log.info("The ignore list is empty.")
    for path in ignored:
        log.info(path)
    return 0


def cmd_configure(args: argparse.Namespace) -> int:
    """Map a glob of workspace files to a project file."""
    settings = cfg.Settings.load(args.workspace)
    project = Path(args.path)
    if not project.is_absolute():
        project = settings.workspace / project
    if not project.is_file():
        log.error(f"Project file not found: {project}")
        return 1

    rel = settings.relative(project)
    for existing in settings.project_files:
        if existing.path == rel and existing.glob == args.glob:
            log.info(f"{rel} is already configured for {args.glob}")
            return 0

    settings.project_files.append(cfg.ProjectFile(path=rel, glob=args.glob))
    settings.save()
    log.success(f"Files matching {args.glob} now go to {rel}  ({settings.path.name})")
    return 0


def cmd_watch(args: argparse.Namespace) -> int:
    ctx = _context(args)
    ok = watchermod.watch(ctx, poll_interval=args.poll_interval, debounce=args.debounce)
    return 0 if ok else 1


# ─────────────────────────────────────────────────────────────────────────────
# Argument parser
# ─────────────────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="csproj-sync",
        description="Keep MSBuild project files in sync with the files on disk.",
        epilog=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--workspace", "-w", metavar="DIR", default=None,
        help="Workspace root (default: $CSPROJ_SYNC_WORKSPACE or the current directory)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show debug output")

    sub = parser.add_subparsers(dest="command", metavar="<command>")
    sub.required = True

    # ── add / remove / status / list ──────────────────────────────────────────
    p_add = sub.add_parser("add", help="Add files or directories to their project")
    p_add.add_argument("paths", metavar="PATH", nargs="+")
    p_add.set_defaults(func=cmd_add)

    p_rm = sub.add_parser("remove", help="Remove files or directories from their project")
    p_rm.add_argument("paths", metavar="PATH", nargs="+")
    p_rm.set_defaults(func=cmd_remove)

    p_status = sub.add_parser("status", help="Show whether files are in their project")
    p_status.add_argument("paths", metavar="PATH", nargs="+")
    p_status.set_defaults(func=cmd_status)

    p_list = sub.add_parser("list", help="List the items of a project file")
    p_list.add_argument("project", metavar="PROJECT")
    p_list.set_defaults(func=cmd_list)

    # ── format ────────────────────────────────────────────────────────────────
    p_fmt = sub.add_parser("format", help="Re-indent project files in place")
    p_fmt.add_argument("projects", metavar="PROJECT", nargs="*",
        help="Project files (default: every *.csproj in the workspace)")
    p_fmt.add_argument("--check", action="store_true",
        help="Do not write; exit 1 if any file would be reformatted")
    p_fmt.set_defaults(func=cmd_format)

    # ── ignore ────────────────────────────────────────────────────────────────
    p_ign = sub.add_parser("ignore", help="Manage the list of never-added paths")
    ign_sub = p_ign.add_subparsers(dest="ignore_command", metavar="<ignore-command>")
    ign_sub.required = True
    p_ign_add = ign_sub.add_parser("add", help="Never offer these paths for adding")
    p_ign_add.add_argument("paths", metavar="PATH", nargs="+")
    p_ign_add.set_defaults(func=cmd_ignore)
    p_ign_clear = ign_sub.add_parser("clear", help="Clear the ignore list")
    p_ign_clear.set_defaults(func=cmd_ignore)
    p_ign_list = ign_sub.add_parser("list", help="Print the ignore list")
    p_ign_list.set_defaults(func=cmd_ignore)

    # ── configure ─────────────────────────────────────────────────────────────
    p_cfg = sub.add_parser("configure",
        help=f"Add a projectFiles entry to {cfg.SETTINGS_FILE}")
    p_cfg.add_argument("--path", required=True, metavar="PROJECT",
        help="Project file, absolute or workspace-relative")
    p_cfg.add_argument("--glob", required=True, metavar="GLOB",
        help="Workspace-relative glob of files that belong to the project")
    p_cfg.set_defaults(func=cmd_configure)

    # ── watch ─────────────────────────────────────────────────────────────────
    p_watch = sub.add_parser("watch", help="Add/remove files as they appear/disappear")
    p_watch.add_argument("--poll-interval", type=float, default=2.0, metavar="SECS",
        help="Seconds between workspace scans (default: 2.0)")
    p_watch.add_argument("--debounce", type=float, default=1.0, metavar="SECS",
        help="Seconds to wait for more deletions before asking (default: 1.0)")
    p_watch.set_defaults(func=cmd_watch)

    return parser


# ─────────────────────────────────────────────────────────────────────────────
# Entry point
# ─────────────────────────────────────────────────────────────────────────────

def run(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    log.set_verbose(args.verbose)
    try:
        return args.func(args)
    except ParseError as exc:
        log.error(str(exc))
    except OSError as exc:
        log.error(f"{exc.filename or ''}: {exc.strerror or exc}")
    except ValueError as exc:
        log.error(str(exc))
    return 1


def main() -> None:
    sys.exit(run())


if __name__ == "__main__":
    main()
