"""Pytest configuration for mixin-metrics.

Responsibilities:
1. Ensure project root on sys.path.
2. Fixtures writing dashboard / rule documents into a temp input directory.
3. Keep root logger handlers intact across tests that call setup_logging().
"""
import json
import logging
import sys
from pathlib import Path

import pytest
import yaml

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


@pytest.fixture()
def input_dir(tmp_path):
    d = tmp_path / "input"
    d.mkdir()
    return d


@pytest.fixture()
def write_dashboard(input_dir):
    """Write a dashboard document (dict or raw text) into the input directory."""
    def _write(name, doc):
        path = input_dir / name
        if isinstance(doc, str):
            path.write_text(doc, encoding="utf-8")
        else:
            path.write_text(json.dumps(doc), encoding="utf-8")
        return path
    return _write


@pytest.fixture()
def write_rules(input_dir):
    """Write a rule document (dict or raw YAML text) into the input directory."""
    def _write(name, doc):
        path = input_dir / name
        if isinstance(doc, str):
            path.write_text(doc, encoding="utf-8")
        else:
            path.write_text(yaml.safe_dump(doc, sort_keys=False), encoding="utf-8")
        return path
    return _write


@pytest.fixture()
def restore_root_logging():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    for h in root.handlers[:]:
        if h not in handlers:
            root.removeHandler(h)
            h.close()
    for h in handlers:
        if h not in root.handlers:
            root.addHandler(h)
    root.setLevel(level)
