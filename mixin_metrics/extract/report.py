"""Report model: metric sets, per-file and per-directory reports.

Output shape (``DirectoryReport.write_json``)::

    {
      "metricsfiles": [
        {"filename": "...", "metrics": ["a", "b"], "parse_errors": ["..."]}
      ]
    }
"""
from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from ..utils.exceptions import ExtractionIssue

logger = logging.getLogger(__name__)

__all__ = [
    "METRICS_SEPARATOR",
    "MetricSet",
    "FileReport",
    "DirectoryReport",
]

METRICS_SEPARATOR = " | "


class MetricSet:
    """Distinct metric names; ``sorted()`` is the only rendering."""

    def __init__(self, names: Iterable[str] = ()):
        self._names: set[str] = set()
        self.update(names)

    def add(self, name: str) -> None:
        if name:
            self._names.add(name)

    def update(self, names: Iterable[str]) -> None:
        for name in names:
            self.add(name)

    def sorted(self) -> list[str]:
        return sorted(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __len__(self) -> int:
        return len(self._names)

    def __iter__(self) -> Iterator[str]:
        return iter(self.sorted())

    def __eq__(self, other: object) -> bool:
        if isinstance(other, MetricSet):
            return self._names == other._names
        return NotImplemented

    def __repr__(self) -> str:
        return f"MetricSet({self.sorted()!r})"


@dataclass
class FileReport:
    filename: str
    metrics: MetricSet = field(default_factory=MetricSet)
    issues: list[ExtractionIssue] = field(default_factory=list)

    @property
    def parse_errors(self) -> list[str]:
        return [str(issue) for issue in self.issues]

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "metrics": self.metrics.sorted(),
            "parse_errors": self.parse_errors,
        }


@dataclass
class DirectoryReport:
    files: list[FileReport] = field(default_factory=list)

    def all_metrics(self) -> MetricSet:
        merged = MetricSet()
        for report in self.files:
            merged.update(report.metrics)
        return merged

    def metrics_line(self) -> str:
        return METRICS_SEPARATOR.join(self.all_metrics().sorted())

    def fatal_issues(self, rules_mode: bool = False) -> list[ExtractionIssue]:
        return [
            issue
            for report in self.files
            for issue in report.issues
            if issue.is_fatal(rules_mode)
        ]

    def to_dict(self) -> dict[str, Any]:
        return {"metricsfiles": [report.to_dict() for report in self.files]}

    def write_json(self, path: str | Path) -> None:
        out = Path(path)
        with out.open('w', encoding='utf-8') as fh:
            json.dump(self.to_dict(), fh, indent=2)
            fh.write("\n")
        logger.info("Wrote %s (%d files)", out, len(self.files))
