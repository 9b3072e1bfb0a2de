from __future__ import annotations

from ..promql.ast import Node, VectorSelector, inspect
from .report import MetricSet

__all__ = ["extract_metrics"]


def extract_metrics(node: Node, into: MetricSet | None = None) -> MetricSet:
    """Collect the series name of every vector selector below ``node``."""
    metrics = into if into is not None else MetricSet()
    for sub in inspect(node):
        if isinstance(sub, VectorSelector):
            metrics.add(sub.metric_name)
    return metrics
