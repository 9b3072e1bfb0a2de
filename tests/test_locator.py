import json

import pytest

from mixin_metrics.config.runtime_config import Mode
from mixin_metrics.extract.locator import (
    DASHBOARD_PATTERNS,
    Each,
    Key,
    PathPattern,
    load_dashboard,
    load_rules,
    locate,
    locate_dashboard_queries,
    locate_rule_queries,
)
from mixin_metrics.utils.exceptions import DeserializationError, LocatorError
from tests.doc_builders import rules_doc

DASHBOARD = {
    "templating": {"list": [{"name": "instance", "query": "label_values(up, instance)"}]},
    "panels": [
        {"type": "timeseries", "targets": [{"expr": "p0_a"}, {"expr": "p0_b"}]},
        {"type": "row", "collapsed": True, "panels": [{"targets": [{"expr": "collapsed_a"}]}]},
        {"type": "text"},
        {"type": "timeseries", "targets": [{"refId": "A"}]},
    ],
    "rows": [{"panels": [{"targets": [{"expr": "row_a"}]}]}],
}


def test_pattern_expressions():
    assert [p.expression for p in DASHBOARD_PATTERNS] == [
        ".templating.list[].query",
        ".panels[].targets[].expr",
        ".rows[].panels[].targets[].expr",
        ".panels[].panels[].targets[].expr",
    ]


def test_dashboard_queries_in_pattern_then_node_order():
    located = locate_dashboard_queries(DASHBOARD, "d.json")
    assert [e.text for e in located.expressions] == [
        "label_values(up, instance)",
        "p0_a",
        "p0_b",
        "row_a",
        "collapsed_a",
    ]
    assert located.errors == []
    assert located.expressions[2].origin == "panels[0].targets[1].expr"
    assert located.expressions[4].origin == "panels[1].panels[0].targets[0].expr"
    assert all(e.source == "d.json" for e in located.expressions)


def test_non_string_leaf_is_a_locator_error():
    doc = {"panels": [{"targets": [{"expr": 42}, {"expr": "ok"}]}]}
    located = locate_dashboard_queries(doc, "d.json")
    assert [e.text for e in located.expressions] == ["ok"]
    assert len(located.errors) == 1
    err = located.errors[0]
    assert isinstance(err, LocatorError)
    assert err.origin == "panels[0].targets[0].expr"
    assert "got number" in str(err)


def test_template_query_object_is_a_locator_error():
    doc = {"templating": {"list": [{"query": {"query": "up", "refId": "A"}}]}, "panels": [{"targets": [{"expr": "x"}]}]}
    located = locate_dashboard_queries(doc, "d.json")
    assert [e.text for e in located.expressions] == ["x"]
    assert [e.origin for e in located.errors] == ["templating.list[0].query"]


def test_wrong_container_type_only_affects_its_branch():
    doc = {"panels": "oops", "rows": [{"panels": [{"targets": [{"expr": "row_a"}]}]}]}
    located = locate_dashboard_queries(doc, "d.json")
    assert [e.text for e in located.expressions] == ["row_a"]
    # .panels[] is walked by two patterns
    assert len(located.errors) == 2


def test_missing_sections_yield_nothing():
    located = locate_dashboard_queries({"title": "empty"}, "d.json")
    assert located.expressions == [] and located.errors == []


def test_custom_pattern_match():
    pattern = PathPattern("nested", (Key("a"), Each(), Key("b")))
    values, errors = pattern.match({"a": [{"b": "x"}, {"b": None}, {"c": 1}, {"b": ["y"]}]})
    assert values == [("a[0].b", "x")]
    assert [e.origin for e in errors] == ["a[3].b"]


@pytest.mark.parametrize("raw", [b"{not json", b"[1, 2]", b"\xff\xfe\x00garbage"])
def test_load_dashboard_rejects_bad_documents(raw):
    with pytest.raises(DeserializationError):
        load_dashboard(raw)


def test_rule_queries_in_document_order():
    doc = rules_doc(
        ("first", [{"record": "job:up:sum", "expr": "sum by (job) (up)"}, {"alert": "Down", "expr": "up == 0"}]),
        ("second", [{"record": "x", "expr": "rate(y[5m])"}]),
    )
    located = locate_rule_queries(doc["groups"], "r.yml")
    assert [e.text for e in located.expressions] == ["sum by (job) (up)", "up == 0", "rate(y[5m])"]
    assert [e.origin for e in located.expressions] == [
        "groups[0](first).rules[0] record=job:up:sum",
        "groups[0](first).rules[1] alert=Down",
        "groups[1](second).rules[0] record=x",
    ]


def test_rule_expr_coercion():
    groups = rules_doc(("g", [{"record": "a", "expr": 1}, {"record": "b"}, {"record": "c", "expr": {"x": 1}}]))["groups"]
    located = locate_rule_queries(groups, "r.yml")
    assert [e.text for e in located.expressions] == ["1", ""]
    assert len(located.errors) == 1
    assert located.errors[0].origin == "groups[0](g).rules[2] record=c"


def test_load_rules_empty_document():
    assert load_rules(b"") == []
    assert load_rules(b"groups: []\n") == []


@pytest.mark.parametrize("raw", [
    b"groups: [unclosed",
    b"- just\n- a list\n",
    b"groups: notalist\n",
    b"groups:\n  - 1\n",
    b"groups:\n  - name: g\n    rules: {}\n",
    b"groups:\n  - name: g\n    rules:\n      - just a string\n",
])
def test_load_rules_rejects_bad_shapes(raw):
    with pytest.raises(DeserializationError):
        load_rules(raw)


def test_locate_dispatches_on_mode():
    dash = json.dumps({"panels": [{"targets": [{"expr": "up"}]}]}).encode()
    assert [e.text for e in locate(dash, "d.json", Mode.DASHBOARDS).expressions] == ["up"]
    rules = b"groups:\n  - name: g\n    rules:\n      - record: r\n        expr: up\n"
    assert [e.text for e in locate(rules, "r.yml", Mode.RULES).expressions] == ["up"]
