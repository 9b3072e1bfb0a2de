"""Extraction run configuration.

A frozen snapshot of everything one extraction run needs, built once from the
parsed command line (with environment fallbacks) and passed explicitly into
``extract_directory``. Nothing downstream reads flags or environment directly.

Environment Flags:
  MIXIN_METRICS_WORKERS=N        -> default worker count when --workers is absent.
  MIXIN_METRICS_LOG_LEVEL=LEVEL  -> default log level when --log-level is absent.
"""
from __future__ import annotations

import argparse
from dataclasses import dataclass
from enum import Enum

from ..utils.env_flags import env_int, env_str
from ..utils.exceptions import ConfigError

__all__ = [
    "Mode",
    "ExtractionConfig",
    "DEFAULT_OUTPUT_FILE",
]

DEFAULT_OUTPUT_FILE = "metrics_out.json"
_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class Mode(str, Enum):
    DASHBOARDS = "dash"
    RULES = "rules"

    @classmethod
    def parse(cls, value: str | Mode) -> Mode:
        if isinstance(value, Mode):
            return value
        try:
            return cls(value)
        except ValueError:
            choices = ", ".join(m.value for m in cls)
            raise ConfigError(f"unknown mode {value!r} (expected one of: {choices})") from None


@dataclass(frozen=True)
class ExtractionConfig:
    mode: Mode
    input_dir: str
    output_file: str = DEFAULT_OUTPUT_FILE
    print_metrics: bool = False
    workers: int = 1
    log_level: str = "INFO"
    metrics_textfile: str | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.mode, Mode):
            object.__setattr__(self, "mode", Mode.parse(self.mode))
        if not self.input_dir:
            raise ConfigError("input directory is required")
        if self.workers < 1:
            raise ConfigError(f"workers must be >= 1, got {self.workers}")
        level = self.log_level.upper()
        if level not in _LOG_LEVELS:
            raise ConfigError(f"unknown log level {self.log_level!r}")
        object.__setattr__(self, "log_level", level)

    @property
    def rules_mode(self) -> bool:
        return self.mode is Mode.RULES

    @classmethod
    def from_args(cls, args: argparse.Namespace) -> ExtractionConfig:
        workers = args.workers if args.workers is not None else env_int("MIXIN_METRICS_WORKERS", 1)
        log_level = args.log_level or env_str("MIXIN_METRICS_LOG_LEVEL", "INFO")
        return cls(
            mode=Mode.parse(args.command),
            input_dir=args.dir,
            output_file=args.out,
            print_metrics=bool(args.print_metrics),
            workers=workers,
            log_level=log_level,
            metrics_textfile=args.metrics_textfile,
        )
