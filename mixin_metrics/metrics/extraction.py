"""Prometheus counters describing one extraction run.

Counters live on a private CollectorRegistry (never the process default) so
repeated runs and tests do not collide. ``write_textfile`` dumps the registry
in the node-exporter textfile format.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable

from prometheus_client import CollectorRegistry, Counter, write_to_textfile  # type: ignore

from ..utils.exceptions import ExtractionIssue

logger = logging.getLogger(__name__)

__all__ = ["ExtractionMetrics"]


class ExtractionMetrics:
    def __init__(self, registry: CollectorRegistry | None = None):
        self.registry = registry if registry is not None else CollectorRegistry()
        self.files_processed = Counter(
            'mixin_metrics_files_processed_total',
            'Input files run through extraction',
            ['mode'],
            registry=self.registry,
        )
        self.expressions = Counter(
            'mixin_metrics_expressions_total',
            'Query expressions located in input files',
            ['mode'],
            registry=self.registry,
        )
        self.series_names = Counter(
            'mixin_metrics_series_names_total',
            'Distinct series names extracted, summed over files',
            ['mode'],
            registry=self.registry,
        )
        self.issues = Counter(
            'mixin_metrics_issues_total',
            'Extraction issues by kind',
            ['kind'],
            registry=self.registry,
        )

    def observe_file(self, mode: str, expressions: int, series_names: int, issues: Iterable[ExtractionIssue]) -> None:
        self.files_processed.labels(mode=mode).inc()
        self.expressions.labels(mode=mode).inc(expressions)
        self.series_names.labels(mode=mode).inc(series_names)
        for issue in issues:
            self.issues.labels(kind=issue.kind.value).inc()

    def write_textfile(self, path: str) -> None:
        write_to_textfile(path, self.registry)
        logger.debug("Wrote extraction metrics to %s", path)
