"""Shared helpers for working with the lark Tree/Token nodes the evaluator walks."""
from __future__ import annotations

from typing import List, Optional, TypeGuard

from lark import Token, Tree
from typing_extensions import TypeAlias

Node: TypeAlias = Tree | Token


def is_tree(node: object) -> TypeGuard[Tree]:
    return isinstance(node, Tree)

def is_token(node: object) -> TypeGuard[Token]:
    return isinstance(node, Token)

def tree_label(node: Node) -> Optional[str]:
    return str(node.data) if is_tree(node) else None

def token_kind(node: Node) -> Optional[str]:
    return str(node.type) if is_token(node) else None

def tree_children(node: Node) -> List[Node]:
    if not is_tree(node):
        return []

    children = getattr(node, "children", None)
    if children is None:
        return []

    return [ch for ch in children if ch is not None]

def node_span(node: Node) -> Optional[tuple[int, int]]:
    """Return (line, column) for a node when the parser recorded positions."""
    if is_token(node):
        line = getattr(node, "line", None)
        col = getattr(node, "column", None)
    else:
        meta = getattr(node, "meta", None)
        if meta is None or getattr(meta, "empty", True):
            return None
        line = getattr(meta, "line", None)
        col = getattr(meta, "column", None)

    if line is None:
        return None

    return (line, col or 0)

def child_by_label(node: Node, label: str) -> Optional[Tree]:
    for ch in tree_children(node):
        if tree_label(ch) == label:
            return ch

    return None
