"""Rewrite raw dashboard/rule query strings into parseable PromQL.

Steps, in order:

1. un-escape ``\\"`` and drop literal ``\\n`` sequences (to a fixed point);
2. replace Grafana time variables with fixed literals (``$__interval`` -> 5m,
   ``$resolution`` -> 5s, ...);
3. ``label_values(metric, label)`` -> ``metric``;
4. ``query_result(expr)`` -> ``expr``.

The substituted literals only need to be syntactically valid; nothing is
evaluated, the selectors are all that matter.
"""
from __future__ import annotations

import re

from ..utils.exceptions import NormalizationError
from .locator import QueryExpression

__all__ = [
    "TEMPLATE_LITERALS",
    "unescape",
    "substitute_template_vars",
    "unwrap_label_values",
    "unwrap_query_result",
    "normalize",
    "normalize_expression",
]

TEMPLATE_LITERALS: dict[str, str] = {
    "__interval": "5m",
    "__rate_interval": "5m",
    "interval": "5m",
    "__range": "5m",
    "resolution": "5s",
    "__interval_ms": "300000",
    "__range_ms": "300000",
    "__range_s": "300",
}

_TEMPLATE_VAR_RE = re.compile(r"\$(?:\{(?P<braced>[A-Za-z0-9_]+)\}|(?P<bare>[A-Za-z0-9_]+))")
_LABEL_VALUES_CALL_RE = re.compile(r"\blabel_values\s*\(")
_LABEL_VALUES_ARG_RE = re.compile(r"\blabel_values\s*\(\s*([a-zA-Z_:][a-zA-Z0-9_:]*)")
_QUERY_RESULT_RE = re.compile(r"^\s*query_result\s*\(")


def unescape(text: str) -> str:
    prev = None
    while prev != text:
        prev = text
        text = text.replace('\\"', '"').replace('\\n', '')
    return text


def _template_literal(m: re.Match[str]) -> str:
    name = m.group("braced") or m.group("bare")
    if name in TEMPLATE_LITERALS:
        return TEMPLATE_LITERALS[name]
    if name.startswith("__auto_interval_"):
        return "5m"
    return m.group(0)


def substitute_template_vars(text: str) -> str:
    return _TEMPLATE_VAR_RE.sub(_template_literal, text)


def unwrap_label_values(text: str, original: str) -> str:
    if not _LABEL_VALUES_CALL_RE.search(text):
        return text
    m = _LABEL_VALUES_ARG_RE.search(text)
    if not m:
        raise NormalizationError("label_values() call without a metric name argument", original)
    return m.group(1)


def _closing_paren(text: str, start: int) -> int | None:
    """Index of the ``)`` closing the paren opened just before ``start``."""
    depth = 1
    i = start
    n = len(text)
    while i < n:
        c = text[i]
        if c in "\"'`":
            i += 1
            while i < n and text[i] != c:
                i += 2 if text[i] == "\\" and c != "`" else 1
        elif c == "(":
            depth += 1
        elif c == ")":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return None


def unwrap_query_result(text: str, original: str) -> str:
    while True:
        m = _QUERY_RESULT_RE.match(text)
        if not m:
            return text
        end = _closing_paren(text, m.end())
        if end is None:
            raise NormalizationError("unbalanced query_result() call", original)
        if text[end + 1:].strip():
            raise NormalizationError("unexpected content after query_result() call", original)
        text = text[m.end():end].strip()


def normalize(text: str) -> str:
    """Apply all rewriting steps. ``normalize(normalize(x)) == normalize(x)``.

    Raises NormalizationError carrying the original text when a pseudo-function
    cannot be unwrapped.
    """
    out = unescape(text)
    out = substitute_template_vars(out)
    out = unwrap_label_values(out, text)
    return unwrap_query_result(out, text)


def normalize_expression(expr: QueryExpression) -> QueryExpression:
    return expr.with_text(normalize(expr.text))
