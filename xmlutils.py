"""
Tree helpers shared by the project model and its reformatter.

Public API
----------
  Indent                        – (newline, whitespace) used by a document
  NodeYield                     – (node, depth) pair yielded by get_nodes
  get_nodes(doc, root=None)     → Iterator[NodeYield]
  detect_indent(doc)            → Indent
  is_whitespace(node)           → bool
  trim_before(node)             → None
  trim_after(node)              → None
  trim_end(node)                → None
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, NamedTuple, Optional

from xmltree import Node, NodeType

# Fallback indent unit when a document shows a newline but no nesting.
DEFAULT_WHITESPACE = "  "


@dataclass(frozen=True)
class Indent:
    """
    The indentation in use by a document.

    newline    – the line break observed, usually ``"\\r\\n"`` for project
                 files; ``""`` when the document has no whitespace at all
    whitespace – the string added per nesting level
    """
    newline:    str
    whitespace: str


class NodeYield(NamedTuple):
    node:  Node
    depth: int     # 0 = direct child of the root the walk started from


def get_nodes(doc: Node, root: Optional[Node] = None) -> Iterator[NodeYield]:
    """
    Yield every node below *root* (default: *doc*) depth-first, in document
    order.

    Each node's child list is copied when the walk descends into it, so the
    caller may insert or delete siblings of nodes that were already yielded.
    """
    def inner(node: Node, depth: int) -> Iterator[NodeYield]:
        for child in list(node.children):
            yield NodeYield(child, depth)
            yield from inner(child, depth + 1)

    return inner(root if root is not None else doc, 0)


def is_whitespace(node: Node) -> bool:
    """True if *node* is a text node consisting only of whitespace."""
    return node.type is NodeType.TEXT and node.data.strip() == ""


def trim_before(node: Node) -> None:
    """Delete the preceding sibling if it is a whitespace-only text node."""
    prev = node.prev
    if prev is not None and is_whitespace(prev):
        prev.remove()


def trim_after(node: Node) -> None:
    """Delete the following sibling if it is a whitespace-only text node."""
    nxt = node.next
    if nxt is not None and is_whitespace(nxt):
        nxt.remove()


def trim_end(node: Node) -> None:
    """Delete trailing whitespace-only text children, stopping at the first other node."""
    while node.children and is_whitespace(node.children[-1]):
        node.children[-1].remove()


def detect_indent(doc: Node) -> Indent:
    """
    Infer the newline and per-level indent of *doc* from its first two
    text nodes.

    The first whitespace run (after the prolog, or after the root's opening
    tag) carries the newline; the second carries newline + one level of
    indent, so removing the newline from it leaves the indent unit.
    """
    text_nodes = (node.data for node, _ in get_nodes(doc) if node.type is NodeType.TEXT)
    first = next(text_nodes, None)
    second = next(text_nodes, None)

    if first is None or first.strip() != "":
        # Document has no whitespace.
        return Indent(newline="", whitespace="")

    if second is None or second == first or second.strip() != "":
        # No nested whitespace, or the second run is just another newline.
        return Indent(newline=first, whitespace=DEFAULT_WHITESPACE)

    return Indent(newline=first, whitespace=second.replace(first, "", 1))
