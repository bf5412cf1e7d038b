"""
Template AST.

The parser turns template source into a tree of nodes; each node records
where it starts in the source for diagnostics.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Sequence, Tuple, Union


@dataclass(frozen=True)
class Location:
    """1-based line and column."""
    line: int
    column: int

    def __str__(self) -> str:
        return f"{self.line}:{self.column}"


START = Location(1, 1)


class Node:
    """Base class for template nodes."""

    location: Location


@dataclass
class Text(Node):
    text: str
    location: Location = START


@dataclass
class Expression(Node):
    """``${expr}`` or ``<%= expr %>``."""
    source: str
    location: Location = START


ParameterValue = Union[str, Expression]


@dataclass
class Tag(Node):
    """
    ``#{name k=v/}`` or ``#{name k=v}body#{/name}``.

    ``body`` is None for an empty tag.
    """
    name: str
    parameters: Dict[str, ParameterValue] = field(default_factory=dict)
    body: Optional[List[Node]] = None
    location: Location = START


@dataclass
class If(Node):
    """``<% if %>`` with its ``elif`` branches and optional ``else``."""
    branches: List[Tuple[Expression, List[Node]]] = field(default_factory=list)
    orelse: Optional[List[Node]] = None
    location: Location = START


@dataclass
class For(Node):
    targets: Tuple[str, ...]
    iterable: Expression
    body: List[Node] = field(default_factory=list)
    location: Location = START


@dataclass
class Set(Node):
    name: str
    expression: Expression
    location: Location = START


@dataclass
class Template(Node):
    """Root node."""
    children: List[Node] = field(default_factory=list)
    location: Location = START


def children_of(node: Node) -> Iterator[Node]:
    """Direct children of a node, in source order."""
    if isinstance(node, Template):
        yield from node.children
    elif isinstance(node, Tag):
        if node.body:
            yield from node.body
    elif isinstance(node, If):
        for _, body in node.branches:
            yield from body
        if node.orelse:
            yield from node.orelse
    elif isinstance(node, For):
        yield from node.body


def walk(nodes: Union[Node, Sequence[Node]]) -> Iterator[Node]:
    """Depth-first pre-order walk, in source order."""
    stack: List[Node] = [nodes] if isinstance(nodes, Node) else list(reversed(nodes))
    while stack:
        node = stack.pop()
        yield node
        stack.extend(reversed(list(children_of(node))))


def expressions_of(node: Node) -> Iterator[Expression]:
    """Expressions owned directly by a node."""
    if isinstance(node, Expression):
        yield node
    elif isinstance(node, Tag):
        for value in node.parameters.values():
            if isinstance(value, Expression):
                yield value
    elif isinstance(node, If):
        for condition, _ in node.branches:
            yield condition
    elif isinstance(node, For):
        yield node.iterable
    elif isinstance(node, Set):
        yield node.expression
