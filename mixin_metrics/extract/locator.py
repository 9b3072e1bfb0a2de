"""Locate PromQL query strings inside dashboard and rule documents.

Dashboards are searched with a fixed, ordered set of path patterns over the
plain JSON value tree. A pattern is a sequence of steps, ``Key(name)`` to
descend into an object and ``Each()`` to fan out over an array; matching is a
pure function of the tree. Missing keys and nulls simply produce no matches.

Rule files are Prometheus rule documents::

    groups:
      - name: example
        rules:
          - record: job:up:sum
            expr: sum by (job) (up)
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from typing import Any

import yaml  # type: ignore[import-untyped]

from ..config.runtime_config import Mode
from ..utils.exceptions import DeserializationError, LocatorError

logger = logging.getLogger(__name__)

__all__ = [
    "QueryExpression",
    "Located",
    "Key",
    "Each",
    "PathPattern",
    "DASHBOARD_PATTERNS",
    "load_dashboard",
    "load_rules",
    "locate_dashboard_queries",
    "locate_rule_queries",
    "locate",
]


@dataclass(frozen=True)
class QueryExpression:
    """A query string plus where it came from."""
    text: str
    source: str
    origin: str

    def with_text(self, text: str) -> QueryExpression:
        return replace(self, text=text)


@dataclass
class Located:
    expressions: list[QueryExpression] = field(default_factory=list)
    errors: list[LocatorError] = field(default_factory=list)


@dataclass(frozen=True)
class Key:
    name: str


@dataclass(frozen=True)
class Each:
    pass


def _type_name(value: Any) -> str:
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    return type(value).__name__


@dataclass(frozen=True)
class PathPattern:
    name: str
    steps: tuple[Key | Each, ...]

    @property
    def expression(self) -> str:
        out = ""
        for step in self.steps:
            out += f".{step.name}" if isinstance(step, Key) else "[]"
        return out

    def match(self, tree: Any) -> tuple[list[tuple[str, str]], list[LocatorError]]:
        """Return ``(origin, string)`` pairs in node order plus per-node errors."""
        values: list[tuple[str, str]] = []
        errors: list[LocatorError] = []

        def walk(node: Any, depth: int, path: str) -> None:
            if node is None:
                return
            if depth == len(self.steps):
                if isinstance(node, str):
                    values.append((path, node))
                else:
                    errors.append(LocatorError(
                        f"{self.name}: expected string at {path}, got {_type_name(node)}",
                        origin=path,
                    ))
                return
            step = self.steps[depth]
            if isinstance(step, Key):
                if not isinstance(node, dict):
                    errors.append(LocatorError(
                        f"{self.name}: expected object at {path or '.'}, got {_type_name(node)}",
                        origin=path or ".",
                    ))
                    return
                walk(node.get(step.name), depth + 1, f"{path}.{step.name}" if path else step.name)
            else:
                if not isinstance(node, list):
                    errors.append(LocatorError(
                        f"{self.name}: expected array at {path}, got {_type_name(node)}",
                        origin=path,
                    ))
                    return
                for idx, child in enumerate(node):
                    walk(child, depth + 1, f"{path}[{idx}]")

        walk(tree, 0, "")
        return values, errors


DASHBOARD_PATTERNS: tuple[PathPattern, ...] = (
    PathPattern("template variable query", (Key("templating"), Key("list"), Each(), Key("query"))),
    PathPattern("panel target expr", (Key("panels"), Each(), Key("targets"), Each(), Key("expr"))),
    PathPattern("row panel target expr", (Key("rows"), Each(), Key("panels"), Each(), Key("targets"), Each(), Key("expr"))),
    PathPattern(
        "collapsed row panel target expr",
        (Key("panels"), Each(), Key("panels"), Each(), Key("targets"), Each(), Key("expr")),
    ),
)


def load_dashboard(raw: bytes) -> dict[str, Any]:
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise DeserializationError(f"invalid dashboard JSON: {e}") from e
    if not isinstance(data, dict):
        raise DeserializationError(f"dashboard must be a JSON object, got {_type_name(data)}")
    return data


def locate_dashboard_queries(tree: Any, source: str) -> Located:
    located = Located()
    for pattern in DASHBOARD_PATTERNS:
        values, errors = pattern.match(tree)
        located.expressions.extend(QueryExpression(text, source, origin) for origin, text in values)
        located.errors.extend(errors)
        if values:
            logger.debug("%s: %s matched %d queries", source, pattern.expression, len(values))
    return located


def load_rules(raw: bytes) -> list[dict[str, Any]]:
    """Deserialize a rule document and return its groups, shape-checked."""
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise DeserializationError(f"invalid rules YAML: {e}") from e
    if data is None:
        return []
    if not isinstance(data, dict):
        raise DeserializationError(f"rules document must be a mapping, got {_type_name(data)}")
    groups = data.get("groups")
    if groups is None:
        groups = []
    if not isinstance(groups, list):
        raise DeserializationError(f"'groups' must be a list, got {_type_name(groups)}")
    for gi, group in enumerate(groups):
        if not isinstance(group, dict):
            raise DeserializationError(f"groups[{gi}] must be a mapping, got {_type_name(group)}")
        rules = group.get("rules")
        if rules is None:
            rules = []
        if not isinstance(rules, list):
            raise DeserializationError(f"groups[{gi}].rules must be a list, got {_type_name(rules)}")
        for ri, rule in enumerate(rules):
            if not isinstance(rule, dict):
                raise DeserializationError(f"groups[{gi}].rules[{ri}] must be a mapping, got {_type_name(rule)}")
    return groups


def _rule_origin(gi: int, group: dict[str, Any], ri: int, rule: dict[str, Any]) -> str:
    origin = f"groups[{gi}]({group.get('name') or ''}).rules[{ri}]"
    if rule.get("record"):
        return f"{origin} record={rule['record']}"
    if rule.get("alert"):
        return f"{origin} alert={rule['alert']}"
    return origin


def _expr_text(expr: Any) -> str | None:
    if expr is None:
        return ""
    if isinstance(expr, str):
        return expr
    if isinstance(expr, bool):
        return "true" if expr else "false"
    if isinstance(expr, (dict, list)):
        return None
    return str(expr)


def locate_rule_queries(groups: list[dict[str, Any]], source: str) -> Located:
    located = Located()
    for gi, group in enumerate(groups):
        for ri, rule in enumerate(group.get("rules") or []):
            origin = _rule_origin(gi, group, ri, rule)
            text = _expr_text(rule.get("expr"))
            if text is None:
                located.errors.append(LocatorError(
                    f"expected string expr at {origin}, got {_type_name(rule.get('expr'))}",
                    origin=origin,
                ))
                continue
            located.expressions.append(QueryExpression(text, source, origin))
    return located


def locate(raw: bytes, source: str, mode: Mode) -> Located:
    """Deserialize ``raw`` per ``mode`` and locate its queries.

    Raises DeserializationError when the document cannot be deserialized.
    """
    if mode is Mode.RULES:
        return locate_rule_queries(load_rules(raw), source)
    return locate_dashboard_queries(load_dashboard(raw), source)
