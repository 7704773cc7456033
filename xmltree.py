"""
Minimal, whitespace-preserving XML tree for MSBuild project files.

Why not minidom / ElementTree
-----------------------------
Both drop what we need to keep: the whitespace between the XML prolog and
the root element, and the document's ``\\r\\n`` line endings (expat
normalises them to ``\\n`` before any handler sees the text).  A project
file is hand-edited and checked in, so every byte that is not deliberately
changed must come back out unchanged.

The tree is therefore built from the raw text by a small tokenizer, after
expat has confirmed the document is well-formed.  Text nodes keep their
source text verbatim (entity references included).  Attribute values are
decoded on parse; on render an unchanged value is written back exactly as
it was read, a new or edited one is escaped.

Public API
----------
  NodeType                 – closed set of node kinds
  Node                     – ordered, mutable tree node
  parse(text)   -> Node    – DOCUMENT node; raises ParseError
  render(node)  -> str     – XML text for a node and its subtree
  ParseError               – malformed XML / not a project file
"""
from __future__ import annotations

import enum
import re
import xml.parsers.expat
from typing import Dict, Iterator, List, Optional, Tuple
from xml.sax.saxutils import escape


class ParseError(ValueError):
    """Raised when a document is not well-formed XML (or not a project)."""

    def __init__(self, message: str, *, lineno: Optional[int] = None,
                 offset: Optional[int] = None) -> None:
        super().__init__(message)
        self.lineno = lineno
        self.offset = offset


class NodeType(enum.Enum):
    DOCUMENT  = "document"
    DIRECTIVE = "directive"     # <?xml …?>, other processing instructions, <!DOCTYPE …>
    COMMENT   = "comment"
    CDATA     = "cdata"
    TEXT      = "text"
    ELEMENT   = "element"


class Node:
    """
    One node of the tree.

    ``data`` holds the verbatim markup for DIRECTIVE nodes, the inner text
    for COMMENT / CDATA nodes and the raw source text for TEXT nodes.
    ``name`` and ``attrs`` are only meaningful for ELEMENT nodes.
    """

    __slots__ = ("type", "name", "attrs", "raw_attrs", "data", "parent", "children")

    def __init__(
        self,
        type: NodeType,
        *,
        name: str = "",
        attrs: Optional[Dict[str, str]] = None,
        data: str = "",
    ) -> None:
        self.type = type
        self.name = name
        self.attrs: Dict[str, str] = dict(attrs) if attrs else {}
        # name -> (quote, source text) of attributes read from a document
        self.raw_attrs: Dict[str, Tuple[str, str]] = {}
        self.data = data
        self.parent: Optional[Node] = None
        self.children: List[Node] = []

    # ── factories ──────────────────────────────────────────────────────────

    @classmethod
    def element(cls, name: str, attrs: Optional[Dict[str, str]] = None) -> "Node":
        return cls(NodeType.ELEMENT, name=name, attrs=attrs)

    @classmethod
    def text(cls, data: str) -> "Node":
        return cls(NodeType.TEXT, data=data)

    # ── navigation ─────────────────────────────────────────────────────────

    def _index(self) -> int:
        if self.parent is None:
            raise ValueError("node is detached")
        try:
            return self.parent.children.index(self)
        except ValueError:
            raise ValueError("node is not a child of its parent") from None

    @property
    def prev(self) -> Optional["Node"]:
        if self.parent is None:
            return None
        i = self._index()
        return self.parent.children[i - 1] if i > 0 else None

    @property
    def next(self) -> Optional["Node"]:
        if self.parent is None:
            return None
        i = self._index()
        siblings = self.parent.children
        return siblings[i + 1] if i + 1 < len(siblings) else None

    def element_children(self) -> List["Node"]:
        return [c for c in self.children if c.type is NodeType.ELEMENT]

    def document_element(self) -> Optional["Node"]:
        """Return the first ELEMENT child (the root element of a document)."""
        for child in self.children:
            if child.type is NodeType.ELEMENT:
                return child
        return None

    def iter(self, name: Optional[str] = None) -> Iterator["Node"]:
        """Yield every descendant element in document order, optionally by name."""
        for child in list(self.children):
            if child.type is NodeType.ELEMENT:
                if name is None or child.name == name:
                    yield child
                yield from child.iter(name)

    def get(self, attr: str, default: Optional[str] = None) -> Optional[str]:
        return self.attrs.get(attr, default)

    # ── mutation ───────────────────────────────────────────────────────────

    def append(self, child: "Node") -> "Node":
        child.remove()
        child.parent = self
        self.children.append(child)
        return child

    def insert_before(self, new: "Node") -> "Node":
        """Insert *new* as the sibling immediately preceding this node."""
        parent = self.parent
        if parent is None:
            raise ValueError("cannot insert next to a detached node")
        new.remove()
        parent.children.insert(self._index(), new)
        new.parent = parent
        return new

    def insert_after(self, new: "Node") -> "Node":
        """Insert *new* as the sibling immediately following this node."""
        parent = self.parent
        if parent is None:
            raise ValueError("cannot insert next to a detached node")
        new.remove()
        parent.children.insert(self._index() + 1, new)
        new.parent = parent
        return new

    def remove(self) -> None:
        """Detach this node from its parent (no-op when already detached)."""
        if self.parent is None:
            return
        del self.parent.children[self._index()]
        self.parent = None

    def clear(self) -> None:
        for child in self.children:
            child.parent = None
        self.children = []

    def __repr__(self) -> str:
        if self.type is NodeType.ELEMENT:
            return f"<Node element {self.name} {self.attrs!r}>"
        return f"<Node {self.type.value} {self.data!r}>"


# ══════════════════════════════════════════════════════════════════════════════
# Parsing
# ══════════════════════════════════════════════════════════════════════════════

_TOKEN = re.compile(
    r"""
      (?P<comment><!--(?P<comment_data>.*?)-->)
    | (?P<cdata><!\[CDATA\[(?P<cdata_data>.*?)\]\]>)
    | (?P<pi><\?.*?\?>)
    | (?P<doctype><!DOCTYPE(?:[^\[>]|\[.*?\])*>)
    | (?P<end></(?P<end_name>[^\s>]+)\s*>)
    | (?P<start><(?P<start_name>[^\s/>!?]+)
        (?P<attrs>(?:\s+[^\s=/>]+\s*=\s*(?:"[^"]*"|'[^']*'))*)
        \s*(?P<empty>/)?>)
    | (?P<text>[^<]+)
    """,
    re.DOTALL | re.VERBOSE,
)

_ATTR = re.compile(r"""([^\s=]+)\s*=\s*(?:"([^"]*)"|'([^']*)')""")

_REFERENCE = re.compile(r"&(#x[0-9a-fA-F]+|#[0-9]+|amp|lt|gt|quot|apos);")

_ENTITIES = {"amp": "&", "lt": "<", "gt": ">", "quot": '"', "apos": "'"}

# Characters attribute-value normalisation would turn into spaces are kept as references.
_ATTR_ESCAPES = {'"': "&quot;", "\n": "&#10;", "\r": "&#13;", "\t": "&#9;"}


def _decode_reference(match: "re.Match[str]") -> str:
    ref = match.group(1)
    if ref.startswith("#x"):
        return chr(int(ref[2:], 16))
    if ref.startswith("#"):
        return chr(int(ref[1:]))
    return _ENTITIES[ref]


def _unescape(value: str) -> str:
    return _REFERENCE.sub(_decode_reference, value)


def _check_well_formed(text: str) -> None:
    parser = xml.parsers.expat.ParserCreate()
    try:
        parser.Parse(text, True)
    except xml.parsers.expat.ExpatError as exc:
        raise ParseError(
            f"malformed XML: {xml.parsers.expat.errors.messages[exc.code]} "
            f"(line {exc.lineno}, column {exc.offset})",
            lineno=exc.lineno,
            offset=exc.offset,
        ) from exc


def parse(text: str) -> Node:
    """
    Parse *text* into a DOCUMENT node.

    Raises ``ParseError`` if the text is not well-formed XML.
    """
    _check_well_formed(text)

    document = Node(NodeType.DOCUMENT)
    current = document
    pos = 0
    while pos < len(text):
        m = _TOKEN.match(text, pos)
        if m is None:
            # expat accepted it, so this is markup the tokenizer does not know
            raise ParseError(f"unsupported markup at offset {pos}")
        pos = m.end()

        if m.group("text") is not None:
            current.append(Node.text(m.group("text")))
        elif m.group("start") is not None:
            elem = current.append(Node.element(m.group("start_name")))
            for attr in _ATTR.finditer(m.group("attrs")):
                name, dq, sq = attr.groups()
                quote, raw = ('"', dq) if dq is not None else ("'", sq)
                elem.attrs[name] = _unescape(raw)
                elem.raw_attrs[name] = (quote, raw)
            if m.group("empty") is None:
                current = elem
        elif m.group("end") is not None:
            if current.parent is None or current.name != m.group("end_name"):
                raise ParseError(f"unexpected </{m.group('end_name')}> at offset {m.start()}")
            current = current.parent
        elif m.group("comment") is not None:
            current.append(Node(NodeType.COMMENT, data=m.group("comment_data")))
        elif m.group("cdata") is not None:
            current.append(Node(NodeType.CDATA, data=m.group("cdata_data")))
        else:
            current.append(Node(NodeType.DIRECTIVE, data=m.group(0)))

    if current is not document:
        raise ParseError(f"unclosed <{current.name}>")
    return document


# ══════════════════════════════════════════════════════════════════════════════
# Rendering
# ══════════════════════════════════════════════════════════════════════════════

def _render_attrs(node: Node) -> str:
    out = []
    for name, value in node.attrs.items():
        source = node.raw_attrs.get(name)
        if source is not None and _unescape(source[1]) == value:
            # Unchanged since parsing: write it back as it was written.
            quote, raw = source
            out.append(f" {name}={quote}{raw}{quote}")
        else:
            out.append(f' {name}="{escape(value, _ATTR_ESCAPES)}"')
    return "".join(out)


def _render(node: Node, out: List[str]) -> None:
    kind = node.type
    if kind is NodeType.ELEMENT:
        if node.children:
            out.append(f"<{node.name}{_render_attrs(node)}>")
            for child in node.children:
                _render(child, out)
            out.append(f"</{node.name}>")
        else:
            out.append(f"<{node.name}{_render_attrs(node)}/>")
    elif kind is NodeType.TEXT or kind is NodeType.DIRECTIVE:
        out.append(node.data)
    elif kind is NodeType.COMMENT:
        out.append(f"<!--{node.data}-->")
    elif kind is NodeType.CDATA:
        out.append(f"<![CDATA[{node.data}]]>")
    elif kind is NodeType.DOCUMENT:
        for child in node.children:
            _render(child, out)


def render(node: Node) -> str:
    """Return the XML text of *node* (a whole document, or any subtree)."""
    out: List[str] = []
    _render(node, out)
    return "".join(out)
