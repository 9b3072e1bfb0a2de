import json
import logging

from mixin_metrics.utils.logging_utils import DEFAULT_FORMAT, JsonFormatter, setup_logging


def _console(root):
    return [h for h in root.handlers if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler)]


def test_minimal_console_by_default(monkeypatch, restore_root_logging):
    monkeypatch.delenv("MIXIN_METRICS_VERBOSE_CONSOLE", raising=False)
    monkeypatch.delenv("MIXIN_METRICS_JSON_LOGS", raising=False)
    root = setup_logging("debug")
    assert root.level == logging.DEBUG
    (console,) = _console(root)
    assert console.formatter._fmt == "%(message)s"


def test_verbose_console_flag(monkeypatch, restore_root_logging):
    monkeypatch.setenv("MIXIN_METRICS_VERBOSE_CONSOLE", "yes")
    monkeypatch.delenv("MIXIN_METRICS_JSON_LOGS", raising=False)
    (console,) = _console(setup_logging("INFO"))
    assert console.formatter._fmt == DEFAULT_FORMAT


def test_json_logs_flag(monkeypatch, restore_root_logging):
    monkeypatch.setenv("MIXIN_METRICS_JSON_LOGS", "1")
    (console,) = _console(setup_logging("INFO"))
    assert isinstance(console.formatter, JsonFormatter)
    record = logging.LogRecord("mixin_metrics.x", logging.INFO, __file__, 1, "Parsing: %s", ("a.json",), None)
    payload = json.loads(console.formatter.format(record))
    assert payload["msg"] == "Parsing: a.json"
    assert payload["level"] == "INFO"
    assert payload["logger"] == "mixin_metrics.x"


def test_reinit_does_not_duplicate_handlers(restore_root_logging):
    setup_logging("INFO")
    root = setup_logging("WARNING")
    assert len(_console(root)) == 1
    assert root.level == logging.WARNING


def test_file_handler_uses_full_format(tmp_path, restore_root_logging):
    log_file = tmp_path / "run.log"
    root = setup_logging("INFO", log_file=str(log_file))
    logging.getLogger("mixin_metrics.test").info("hello file")
    for h in root.handlers:
        h.flush()
    text = log_file.read_text(encoding="utf-8")
    assert "mixin_metrics.test - INFO - hello file" in text
