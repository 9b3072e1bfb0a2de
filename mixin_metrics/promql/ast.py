"""PromQL syntax tree.

Plain dataclasses, one per grammar production the extractor cares about.
Every expression node implements ``children()`` so that ``inspect`` can walk
the tree without knowing the concrete node types.
"""
from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum


class MatchOp(str, Enum):
    EQUAL = "="
    NOT_EQUAL = "!="
    REGEX = "=~"
    NOT_REGEX = "!~"


@dataclass(frozen=True)
class LabelMatcher:
    name: str
    op: MatchOp
    value: str

    def __str__(self) -> str:
        return f'{self.name}{self.op.value}"{self.value}"'


@dataclass(frozen=True)
class Duration:
    """A duration literal such as ``5m`` or ``1h30m``; ``ms`` is its length."""
    text: str
    ms: int

    def __str__(self) -> str:
        return self.text


@dataclass(frozen=True)
class AtModifier:
    """``@ <timestamp>`` or ``@ start()`` / ``@ end()``."""
    timestamp: float | None = None
    preprocessor: str | None = None


class Node:
    def children(self) -> list[Node]:
        return []


@dataclass
class NumberLiteral(Node):
    value: float


@dataclass
class StringLiteral(Node):
    value: str


@dataclass
class VectorSelector(Node):
    name: str = ""
    matchers: list[LabelMatcher] = field(default_factory=list)
    offset: Duration | None = None
    negative_offset: bool = False
    at: AtModifier | None = None

    @property
    def metric_name(self) -> str:
        """Series name, falling back to an ``__name__="..."`` matcher."""
        if self.name:
            return self.name
        for m in self.matchers:
            if m.name == "__name__" and m.op is MatchOp.EQUAL:
                return m.value
        return ""


@dataclass
class MatrixSelector(Node):
    vector: VectorSelector
    range: Duration

    def children(self) -> list[Node]:
        return [self.vector]


@dataclass
class SubqueryExpr(Node):
    expr: Node
    range: Duration
    step: Duration | None = None
    offset: Duration | None = None
    negative_offset: bool = False
    at: AtModifier | None = None

    def children(self) -> list[Node]:
        return [self.expr]


@dataclass
class ParenExpr(Node):
    expr: Node

    def children(self) -> list[Node]:
        return [self.expr]


@dataclass
class UnaryExpr(Node):
    op: str
    expr: Node

    def children(self) -> list[Node]:
        return [self.expr]


@dataclass
class VectorMatching:
    card: str = "one-to-one"  # one-to-one, many-to-one, one-to-many
    on: bool = False
    labels: list[str] = field(default_factory=list)
    include: list[str] = field(default_factory=list)


@dataclass
class BinaryExpr(Node):
    op: str
    lhs: Node
    rhs: Node
    return_bool: bool = False
    matching: VectorMatching | None = None

    def children(self) -> list[Node]:
        return [self.lhs, self.rhs]


@dataclass
class AggregateExpr(Node):
    op: str
    expr: Node
    param: Node | None = None
    grouping: list[str] = field(default_factory=list)
    without: bool = False

    def children(self) -> list[Node]:
        if self.param is None:
            return [self.expr]
        return [self.param, self.expr]


@dataclass
class Call(Node):
    func: str
    args: list[Node] = field(default_factory=list)

    def children(self) -> list[Node]:
        return list(self.args)


def inspect(node: Node) -> Iterator[Node]:
    """Yield ``node`` and every sub-expression below it, depth first, pre-order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children()))


__all__ = [
    "MatchOp",
    "LabelMatcher",
    "Duration",
    "AtModifier",
    "Node",
    "NumberLiteral",
    "StringLiteral",
    "VectorSelector",
    "MatrixSelector",
    "SubqueryExpr",
    "ParenExpr",
    "UnaryExpr",
    "VectorMatching",
    "BinaryExpr",
    "AggregateExpr",
    "Call",
    "inspect",
]
