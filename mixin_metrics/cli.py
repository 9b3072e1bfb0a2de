"""Extract Prometheus metric names from Grafana dashboards or rule files.

Usage:
  mixin-metrics --dir dashboards/ dash
  mixin-metrics --dir rules/ --out rules_metrics.json rules
  mixin-metrics --dir dashboards/ --print dash

Writes {"metricsfiles": [{"filename", "metrics", "parse_errors"}, ...]} to
--out, or with --print a single " | "-joined line of every distinct metric.

Exit codes:
 0 success
 1 input directory unreadable, a file could not be read, a rule file could not
   be deserialized, or the report could not be written
 2 usage error
"""
from __future__ import annotations

import argparse
import logging
import sys
from typing import Any

from .config.runtime_config import DEFAULT_OUTPUT_FILE, ExtractionConfig, Mode
from .extract.pipeline import extract_directory
from .metrics.extraction import ExtractionMetrics
from .utils.exceptions import ConfigError, FatalIOError
from .utils.logging_utils import setup_logging

logger = logging.getLogger(__name__)

__all__ = ["build_parser", "main"]


def _add_common_args(p: argparse.ArgumentParser, *, suppress_defaults: bool) -> None:
    # Options are accepted before or after the sub-command; the sub-parser
    # copies must not overwrite values given before it.
    def default(value: Any) -> Any:
        return argparse.SUPPRESS if suppress_defaults else value

    p.add_argument("--dir", default=default(None), help="Input directory path (required)")
    p.add_argument("--out", default=default(DEFAULT_OUTPUT_FILE), help=f"Metrics output file (default: {DEFAULT_OUTPUT_FILE})")
    p.add_argument(
        "--print",
        dest="print_metrics",
        action="store_true",
        default=default(False),
        help="Print all metrics as one ' | '-joined line instead of writing --out",
    )
    p.add_argument("--workers", type=int, default=default(None), help="Parallel file workers (default: 1)")
    p.add_argument("--log-level", default=default(None), help="Log level (default: INFO)")
    p.add_argument(
        "--metrics-textfile",
        default=default(None),
        help="Write extraction counters in Prometheus textfile format to this path",
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="mixin-metrics", description="Parse Prometheus metrics from JSON dashboards and YAML rules")
    _add_common_args(p, suppress_defaults=False)
    sub = p.add_subparsers(dest="command", metavar="{dash,rules}")
    sub.required = True
    for mode, help_text in ((Mode.DASHBOARDS, "Parse JSON dashboards in --dir"), (Mode.RULES, "Parse YAML rules files in --dir")):
        sp = sub.add_parser(mode.value, help=help_text)
        _add_common_args(sp, suppress_defaults=True)
    return p


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not args.dir:
        parser.error("the following arguments are required: --dir")
    try:
        config = ExtractionConfig.from_args(args)
    except ConfigError as e:
        parser.error(str(e))
    setup_logging(config.log_level)

    metrics = ExtractionMetrics()
    try:
        report = extract_directory(config, metrics)
    except FatalIOError as e:
        print(f"ERROR: cannot list input directory: {e}", file=sys.stderr)
        return 1

    if config.metrics_textfile:
        metrics.write_textfile(config.metrics_textfile)

    if config.print_metrics:
        print(report.metrics_line())
    else:
        try:
            report.write_json(config.output_file)
        except OSError as e:
            print(f"ERROR: cannot write {config.output_file}: {e}", file=sys.stderr)
            return 1

    fatal = report.fatal_issues(config.rules_mode)
    for issue in fatal:
        print(f"ERROR: {issue.source}: {issue}", file=sys.stderr)
    return 1 if fatal else 0


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
