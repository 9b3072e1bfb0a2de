import json

from mixin_metrics.extract.report import DirectoryReport, FileReport, MetricSet
from mixin_metrics.utils.exceptions import (
    DeserializationError,
    ErrorKind,
    ExtractionIssue,
    FatalIOError,
    LocatorError,
    PromQLSyntaxError,
)


def test_metric_set_dedupes_and_sorts():
    ms = MetricSet(["b", "a", "b", ""])
    ms.add("c")
    ms.add("a")
    assert ms.sorted() == ["a", "b", "c"]
    assert list(ms) == ["a", "b", "c"]
    assert len(ms) == 3
    assert "b" in ms and "" not in ms
    assert ms == MetricSet(["c", "b", "a"])


def test_issue_str_with_expression_and_origin():
    exc = PromQLSyntaxError("unexpected end of input", "sum((", 5)
    issue = ExtractionIssue.from_exception(exc, "r.yml", expression="sum((", origin="groups[0](g).rules[0] record=x")
    assert issue.kind is ErrorKind.SYNTAX
    assert str(issue) == (
        "syntax error at groups[0](g).rules[0] record=x: "
        "promql query=sum((: 1:6: parse error: unexpected end of input"
    )


def test_issue_takes_origin_from_locator_error():
    issue = ExtractionIssue.from_exception(LocatorError("expected string", origin="panels[0].targets[0].expr"), "d.json")
    assert issue.kind is ErrorKind.LOCATOR
    assert issue.origin == "panels[0].targets[0].expr"
    assert str(issue) == "locator error at panels[0].targets[0].expr: expected string"


def test_io_issue_keeps_only_os_message():
    issue = ExtractionIssue.from_exception(FatalIOError("/x/a.json", "Permission denied"), "/x/a.json")
    assert issue.message == "Permission denied"
    assert str(issue) == "io error: Permission denied"
    assert issue.to_dict() == {
        "kind": "io",
        "source": "/x/a.json",
        "origin": None,
        "expression": None,
        "message": "Permission denied",
    }


def test_fatality_depends_on_kind_and_mode():
    io = ExtractionIssue(ErrorKind.IO, "a", "boom")
    deser = ExtractionIssue(ErrorKind.DESERIALIZATION, "a", "bad yaml")
    syntax = ExtractionIssue(ErrorKind.SYNTAX, "a", "bad", expression="x(")
    assert io.is_fatal() and io.is_fatal(rules_mode=True)
    assert not deser.is_fatal() and deser.is_fatal(rules_mode=True)
    assert not syntax.is_fatal(rules_mode=True)


def _report():
    good = FileReport("in/a.json", MetricSet(["up", "node_load1"]))
    bad = FileReport(
        "in/b.yml",
        MetricSet(["up"]),
        [ExtractionIssue.from_exception(DeserializationError("invalid rules YAML"), "in/b.yml")],
    )
    return DirectoryReport([good, bad])


def test_directory_report_dict_and_metrics_line():
    report = _report()
    assert report.to_dict() == {
        "metricsfiles": [
            {"filename": "in/a.json", "metrics": ["node_load1", "up"], "parse_errors": []},
            {"filename": "in/b.yml", "metrics": ["up"], "parse_errors": ["deserialization error: invalid rules YAML"]},
        ]
    }
    assert report.metrics_line() == "node_load1 | up"
    assert report.all_metrics().sorted() == ["node_load1", "up"]
    assert report.fatal_issues() == []
    assert [i.source for i in report.fatal_issues(rules_mode=True)] == ["in/b.yml"]


def test_write_json_is_indented_with_trailing_newline(tmp_path):
    out = tmp_path / "metrics_out.json"
    _report().write_json(out)
    text = out.read_text(encoding="utf-8")
    assert text.endswith("}\n")
    assert text.startswith('{\n  "metricsfiles": [\n')
    assert json.loads(text) == _report().to_dict()


def test_empty_report():
    report = DirectoryReport()
    assert report.to_dict() == {"metricsfiles": []}
    assert report.metrics_line() == ""
