"""
MSBuild project file model.

A ``Csproj`` owns the parsed XML tree of one project file and keeps it in
sync with files on disk: items are added and removed structurally, and the
whitespace is normalised only when the project is serialized, using the
indentation detected when the file was opened.  The goal is that saving a
project after adding one file changes exactly the lines for that file.

Public API
----------
  Csproj.open(path)                 → Csproj      (ParseError / OSError)
  Csproj.add_item(item_type, path)  → None
  Csproj.has_item(path)             → bool
  Csproj.remove_item(path, directory=False) → bool
  Csproj.items()                    → list[(item_type, include)]
  Csproj.prettify()                 → None
  Csproj.serialize()                → str
  Csproj.save(to=None)              → None
"""
from __future__ import annotations

import codecs
import os
import re
from pathlib import Path
from typing import List, Optional, Tuple, Union

import fs
import logger as log
from xmltree import Node, NodeType, ParseError, parse, render
from xmlutils import Indent, detect_indent, is_whitespace, trim_after, trim_before, trim_end

PathLike = Union[str, "os.PathLike[str]"]

PROJECT_TAG    = "Project"
ITEM_GROUP_TAG = "ItemGroup"
INCLUDE_ATTR   = "Include"

# Add a space to self-closing tags: <Compile Include="..."/> → <Compile Include="..." />
RE_SELF_CLOSING_TAG = re.compile(r"(?<! )/>")

# Includes that never lie under a project sub-directory.
RE_NON_LOCAL_INCLUDE = re.compile(r"^(?:\.\.\\|\\|[A-Za-z]:)|[$@%]\(")

# Item types whose Include is not a file path.
REFERENCE_ITEMS = frozenset({
    "PackageReference", "PackageVersion", "Reference", "FrameworkReference", "COMReference",
})


class Csproj:
    """
    An MSBuild project file.

    Attributes
    ----------
    name : str
        Base name of the file (e.g. ``"App.csproj"``).
    path : Path
        Absolute path the project was opened from.
    """

    def __init__(self, path: PathLike, doc: Node, *, bom: bool = False) -> None:
        project = doc.document_element()
        if project is None or project.name != PROJECT_TAG:
            raise ParseError(f"{path}: not an MSBuild project (root element is not <{PROJECT_TAG}>)")
        self.path = Path(os.path.abspath(path))
        self.name = self.path.name
        self._doc = doc
        self._project = project
        self._bom = bom
        self._indent = detect_indent(doc)

    @classmethod
    def open(cls, path: PathLike) -> "Csproj":
        """Read and parse a project file on disk."""
        data = fs.read_bytes(Path(path))
        bom = data.startswith(codecs.BOM_UTF8)
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise ParseError(f"{path}: not UTF-8 encoded: {exc}") from exc
        try:
            doc = parse(text)
        except ParseError as exc:
            raise ParseError(f"{path}: {exc}", lineno=exc.lineno, offset=exc.offset) from exc
        csproj = cls(path, doc, bom=bom)
        log.debug(f"Opened {csproj.name} (indent={csproj.indent})")
        return csproj

    @property
    def indent(self) -> Indent:
        return self._indent

    # ── items ─────────────────────────────────────────────────────────────

    def _item_groups(self) -> List[Node]:
        # Only evaluation-time groups; those inside <Target> run at build time.
        return [c for c in self._project.element_children() if c.name == ITEM_GROUP_TAG]

    def _relative(self, path: PathLike) -> str:
        """Path relative to the project directory, with MSBuild ``\\`` separators."""
        rel = os.path.relpath(os.path.abspath(path), self.path.parent)
        rel = rel.replace(os.sep, "\\")
        if os.altsep:
            rel = rel.replace(os.altsep, "\\")
        return rel

    def add_item(self, item_type: str, path: PathLike) -> None:
        """
        Add an item referencing *path* to the project.

        The item goes into the last ``ItemGroup`` already holding an item of
        the same type, or into a new ``ItemGroup`` at the end of ``Project``.
        Duplicates are not checked; use ``has_item`` first.
        """
        groups = [
            g for g in self._item_groups()
            if any(child.name == item_type for child in g.element_children())
        ]
        if groups:
            group = groups[-1]
        else:
            group = self._project.append(Node.element(ITEM_GROUP_TAG))

        rel = self._relative(path)
        group.append(Node.element(item_type, {INCLUDE_ATTR: rel}))
        log.debug(f"{self.name}: + <{item_type} Include=\"{rel}\">")

    def has_item(self, path: PathLike) -> bool:
        """True if some ``ItemGroup`` child includes *path*."""
        rel = self._relative(path)
        return any(
            child.get(INCLUDE_ATTR) == rel
            for group in self._item_groups()
            for child in group.element_children()
        )

    def remove_item(self, path: PathLike, directory: bool = False) -> bool:
        """
        Remove every item including *path*, or, with ``directory=True``,
        every item under the directory *path*.

        Directory removal only considers file items with a plain relative
        ``Include``: references (``PackageReference`` …), includes outside
        the project directory (``..\\``, rooted paths) and MSBuild
        expressions (``$(…)``, ``@(…)``, ``%(…)``) are kept even for
        ``"."``, the project directory itself.

        Emptied ``ItemGroup`` elements are removed as well.  Returns True if
        at least one item was removed.
        """
        rel = self._relative(path)
        if directory:
            prefix = "" if rel == "." else rel + "\\"

            def matches(item: Node, include: str) -> bool:
                return (
                    item.name not in REFERENCE_ITEMS
                    and RE_NON_LOCAL_INCLUDE.search(include) is None
                    and include.startswith(prefix)
                )
        else:
            def matches(item: Node, include: str) -> bool:
                return include == rel

        items = [
            child
            for group in self._item_groups()
            for child in group.element_children()
            if child.get(INCLUDE_ATTR) is not None and matches(child, child.get(INCLUDE_ATTR))
        ]
        for item in items:
            # Take the item's indentation with it so no blank line is left.
            trim_before(item)
            item.remove()
            log.debug(f"{self.name}: - <{item.name} Include=\"{item.get(INCLUDE_ATTR)}\">")

        for group in self._item_groups():
            if not group.element_children():
                trim_before(group)
                group.remove()

        return len(items) > 0

    def items(self) -> List[Tuple[str, str]]:
        """Return ``(item_type, include)`` for every item, in document order."""
        return [
            (child.name, child.get(INCLUDE_ATTR, ""))
            for group in self._item_groups()
            for child in group.element_children()
            if INCLUDE_ATTR in child.attrs
        ]

    # ── output ────────────────────────────────────────────────────────────

    def prettify(self) -> None:
        """
        Re-indent every element according to the detected indentation.

        Each element loses the whitespace text right before it and its own
        trailing whitespace children, then gets ``newline + whitespace * depth``
        before it and, if it holds elements, the same text as its last child.
        Every child list is rebuilt in a single pass.
        """
        self._reindent(self._doc, 0)

        project = self._project
        if not project.element_children():
            project.clear()

        # Exactly one newline after the Project element.
        trim_after(project)
        project.insert_after(Node.text(self._indent.newline))

    def _reindent(self, parent: Node, depth: int) -> None:
        newline = self._indent.newline
        whitespace = self._indent.whitespace

        if parent.type is NodeType.ELEMENT:
            trim_end(parent)
        source = parent.children
        has_elements = any(c.type is NodeType.ELEMENT for c in source)

        children: List[Node] = []
        for child in source:
            if child.type is NodeType.ELEMENT:
                if children and is_whitespace(children[-1]):
                    children.pop().parent = None
                if whitespace:
                    children.append(Node.text(newline + whitespace * depth))
                self._reindent(child, depth + 1)
            children.append(child)

        if parent.type is NodeType.ELEMENT and whitespace and has_elements:
            # Closing indent, at the parent's own depth.
            children.append(Node.text(newline + whitespace * (depth - 1)))

        for child in children:
            child.parent = parent
        parent.children = children

    def serialize(self) -> str:
        """Return the project as XML text; ``prettify`` is applied first."""
        self.prettify()
        return RE_SELF_CLOSING_TAG.sub(" />", render(self._doc))

    def save(self, to: Optional[PathLike] = None) -> None:
        """Write the project to *to*, or back to the file it was opened from."""
        dest = Path(to) if to is not None else self.path
        data = self.serialize().encode("utf-8")
        if self._bom:
            data = codecs.BOM_UTF8 + data
        fs.write_bytes(dest, data)
        log.debug(f"Saved {self.name} → {dest}")

    def __repr__(self) -> str:
        return f"Csproj({self.path})"
