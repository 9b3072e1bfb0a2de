"""mixin-metrics exception hierarchy and the issue records carried in reports.

Exceptions communicate intent up the stack. The pipeline catches every
non-fatal one at the stage where it happens and turns it into an
``ExtractionIssue`` so the rest of the batch keeps flowing.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class MixinMetricsException(Exception):
    """Base class for all mixin-metrics exceptions."""


class ConfigError(MixinMetricsException):
    """Invalid configuration value (bad mode, worker count, log level)."""


class FatalIOError(MixinMetricsException):
    """Input could not be read at all (directory unlistable, file unopenable)."""

    def __init__(self, path: str, message: str):
        super().__init__(f"{path}: {message}")
        self.path = path
        self.message = message


class DeserializationError(MixinMetricsException):
    """Top-level document is not valid JSON/YAML or has the wrong shape."""


class LocatorError(MixinMetricsException):
    """A located field held something other than a query string."""

    def __init__(self, message: str, origin: str | None = None):
        super().__init__(message)
        self.origin = origin


class NormalizationError(MixinMetricsException):
    """A templating pseudo-function could not be rewritten into PromQL."""

    def __init__(self, message: str, text: str):
        super().__init__(message)
        self.text = text


class PromQLSyntaxError(MixinMetricsException):
    """The PromQL grammar rejected an expression."""

    def __init__(self, message: str, text: str, position: int | None = None):
        super().__init__(message)
        self.message = message
        self.text = text
        self.position = position

    @property
    def line_col(self) -> tuple[int, int] | None:
        if self.position is None:
            return None
        head = self.text[:self.position]
        line = head.count("\n") + 1
        col = self.position - (head.rfind("\n") + 1) + 1
        return line, col

    def __str__(self) -> str:
        loc = self.line_col
        if loc is None:
            return f"parse error: {self.message}"
        return f"{loc[0]}:{loc[1]}: parse error: {self.message}"


class ErrorKind(str, Enum):
    IO = "io"
    DESERIALIZATION = "deserialization"
    LOCATOR = "locator"
    NORMALIZATION = "normalization"
    SYNTAX = "syntax"


_KIND_BY_EXCEPTION: dict[type[MixinMetricsException], ErrorKind] = {
    FatalIOError: ErrorKind.IO,
    DeserializationError: ErrorKind.DESERIALIZATION,
    LocatorError: ErrorKind.LOCATOR,
    NormalizationError: ErrorKind.NORMALIZATION,
    PromQLSyntaxError: ErrorKind.SYNTAX,
}


@dataclass(frozen=True)
class ExtractionIssue:
    """One recorded failure, attributed to a file and optionally an expression.

    ``str(issue)`` is the form written to ``parse_errors`` in the JSON report;
    ``to_dict()`` keeps the structured fields.
    """
    kind: ErrorKind
    source: str
    message: str
    expression: str | None = None
    origin: str | None = None

    @classmethod
    def from_exception(
        cls,
        exc: MixinMetricsException,
        source: str,
        *,
        expression: str | None = None,
        origin: str | None = None,
    ) -> ExtractionIssue:
        kind = _KIND_BY_EXCEPTION.get(type(exc))
        if kind is None:
            for exc_type, candidate in _KIND_BY_EXCEPTION.items():
                if isinstance(exc, exc_type):
                    kind = candidate
                    break
            else:
                raise TypeError(f"no issue kind for {type(exc).__name__}")
        if origin is None:
            origin = getattr(exc, "origin", None)
        # the report already names the file; keep only the OS message
        message = exc.message if isinstance(exc, FatalIOError) else str(exc)
        return cls(kind=kind, source=source, message=message, expression=expression, origin=origin)

    def is_fatal(self, rules_mode: bool = False) -> bool:
        if self.kind is ErrorKind.IO:
            return True
        return rules_mode and self.kind is ErrorKind.DESERIALIZATION

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "source": self.source,
            "origin": self.origin,
            "expression": self.expression,
            "message": self.message,
        }

    def __str__(self) -> str:
        parts = [f"{self.kind.value} error"]
        if self.origin:
            parts.append(f"at {self.origin}")
        head = " ".join(parts)
        if self.expression is not None:
            return f"{head}: promql query={self.expression}: {self.message}"
        return f"{head}: {self.message}"


__all__ = [
    "MixinMetricsException",
    "ConfigError",
    "FatalIOError",
    "DeserializationError",
    "LocatorError",
    "NormalizationError",
    "PromQLSyntaxError",
    "ErrorKind",
    "ExtractionIssue",
]
