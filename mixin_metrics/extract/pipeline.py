"""Extraction pipeline: file -> queries -> normalized -> parsed -> metric names.

Responsibilities:
  * Per file: load, locate queries, then normalize/parse/extract each one,
    merging names into one MetricSet and recording every failure as an
    ExtractionIssue in encounter order.
  * Per directory: run every listed file in listing order, optionally on a
    thread pool, and collect the FileReports in that same order.

Only an unlistable directory raises; everything else ends up in the report.
"""
from __future__ import annotations

import logging
import os
from concurrent.futures import ThreadPoolExecutor, as_completed

from ..config.runtime_config import ExtractionConfig, Mode
from ..metrics.extraction import ExtractionMetrics
from ..promql.parser import parse_expr
from ..utils.exceptions import (
    DeserializationError,
    ExtractionIssue,
    FatalIOError,
    NormalizationError,
    PromQLSyntaxError,
)
from .extractor import extract_metrics
from .loader import list_directory, read_document
from .locator import QueryExpression, locate
from .normalizer import normalize_expression
from .report import DirectoryReport, FileReport, MetricSet

logger = logging.getLogger(__name__)

__all__ = [
    "process_expression",
    "extract_file",
    "extract_directory",
]


def process_expression(expr: QueryExpression, metrics: MetricSet) -> ExtractionIssue | None:
    """Normalize, parse and extract one expression into ``metrics``.

    Returns the issue that stopped it, or None on success.
    """
    try:
        normalized = normalize_expression(expr)
    except NormalizationError as e:
        logger.debug("normalization failed for %s %s: %s", expr.source, expr.origin, e)
        return ExtractionIssue.from_exception(e, expr.source, expression=expr.text, origin=expr.origin)
    try:
        tree = parse_expr(normalized.text)
    except PromQLSyntaxError as e:
        logger.debug("promql parse error for %s %s: %s query=%r", expr.source, expr.origin, e, normalized.text)
        return ExtractionIssue.from_exception(e, expr.source, expression=normalized.text, origin=expr.origin)
    extract_metrics(tree, into=metrics)
    return None


def extract_file(path: str, mode: Mode, metrics: ExtractionMetrics | None = None) -> FileReport:
    report = FileReport(filename=path)
    expressions = 0
    try:
        located = locate(read_document(path), path, mode)
    except (FatalIOError, DeserializationError) as e:
        logger.warning("%s: %s", path, e)
        report.issues.append(ExtractionIssue.from_exception(e, path))
    else:
        report.issues.extend(ExtractionIssue.from_exception(e, path) for e in located.errors)
        expressions = len(located.expressions)
        for expr in located.expressions:
            issue = process_expression(expr, report.metrics)
            if issue is not None:
                report.issues.append(issue)
    if metrics is not None:
        metrics.observe_file(mode.value, expressions, len(report.metrics), report.issues)
    logger.debug(
        "%s: %d expressions, %d metrics, %d issues",
        path, expressions, len(report.metrics), len(report.issues),
    )
    return report


def extract_directory(config: ExtractionConfig, metrics: ExtractionMetrics | None = None) -> DirectoryReport:
    """Extract every file under ``config.input_dir``.

    Raises FatalIOError when the directory cannot be listed.
    """
    names = list_directory(config.input_dir)
    paths = [os.path.join(config.input_dir, name) for name in names]

    def _one(path: str) -> FileReport:
        logger.info("Parsing: %s", os.path.basename(path))
        return extract_file(path, config.mode, metrics)

    if config.workers <= 1 or len(paths) <= 1:
        return DirectoryReport(files=[_one(p) for p in paths])

    slots: list[FileReport | None] = [None] * len(paths)
    with ThreadPoolExecutor(max_workers=min(len(paths), config.workers)) as executor:
        fut_map = {executor.submit(_one, path): i for i, path in enumerate(paths)}
        for fut in as_completed(fut_map):
            slots[fut_map[fut]] = fut.result()
    return DirectoryReport(files=[r for r in slots if r is not None])
