"""
Tests for the rule evaluator: isolation, determinism and failure handling.
"""

from conftest import layout_of, rule_ids
from hsstyle.diagnostics import Severity
from hsstyle.engine.evaluator import RuleEvaluationError, RuleEvaluator, evaluate, synthetic_violations
from hsstyle.engine.pipeline import check_source
from hsstyle.layout import build_layout
from hsstyle.rules import RuleMode, load_catalogue, rule_family
from hsstyle.scanner import SpanKind, scan


@rule_family("test-always-raises", RuleMode.LINE, frozenset(SpanKind))
def check_always_raises(line, doc, rule):
    """Fails on every line."""
    raise RuntimeError("boom")


def evaluate_source(source, catalogue):
    spans, _ = scan(source)
    root, _ = build_layout(spans)
    return evaluate(spans, root, catalogue)


class TestRuleIsolation:
    """Rules only see what they declare."""

    def test_failing_rule_contributes_nothing(self):
        catalogue = load_catalogue([
            {"id": "test-always-raises"},
            {"id": "no-trailing-whitespace"},
        ])
        spans, _ = scan("foo = 1 \nbar = 2\n")
        root, _ = build_layout(spans)
        evaluator = RuleEvaluator(catalogue)
        violations = evaluator.evaluate(spans, root)
        assert rule_ids(violations) == ["no-trailing-whitespace"]
        assert len(evaluator.rule_errors) == 2
        error = evaluator.rule_errors[0]
        assert isinstance(error, RuleEvaluationError)
        assert error.rule_id == "test-always-raises"
        assert isinstance(error.cause, RuntimeError)

    def test_failing_rule_logged(self, caplog):
        catalogue = load_catalogue([{"id": "test-always-raises"}])
        with caplog.at_level("WARNING"):
            result = check_source("x = 1\n", catalogue)
        assert result.violations == []
        assert len(result.rule_errors) == 1
        assert "test-always-raises" in caplog.text

    def test_string_scoped_rule_ignores_code(self):
        catalogue = load_catalogue([
            {"id": "no-trailing-whitespace", "applies_to": ["StringLiteral"]},
        ])
        assert evaluate_source("x = 1  \n", catalogue) == []

    def test_block_rule_sees_only_declared_kinds(self):
        catalogue = load_catalogue([{"id": "naming-case", "applies_to": ["Let"]}])
        source = "bad_name = let good = 1 in good\n"
        assert evaluate_source(source, catalogue) == []

    def test_empty_document(self, default_rules):
        assert evaluate_source("", default_rules) == []

    def test_no_layout_tree(self):
        catalogue = load_catalogue([{"id": "no-trailing-whitespace"}, {"id": "naming-case"}])
        spans, _ = scan("bad_name = 1 \n")
        violations = evaluate(spans, None, catalogue)
        assert rule_ids(violations) == ["no-trailing-whitespace"]


class TestDeterminism:
    """Same input, same output."""

    def test_repeated_evaluation(self, messy_source, default_rules):
        first = evaluate_source(messy_source, default_rules)
        second = evaluate_source(messy_source, default_rules)
        assert first == second

    def test_evaluator_reusable_across_documents(self, default_rules, clean_source, messy_source):
        evaluator = RuleEvaluator(default_rules)
        spans, _ = scan(messy_source)
        root, _ = build_layout(spans)
        messy = evaluator.evaluate(spans, root)
        spans, _ = scan(clean_source)
        root, _ = build_layout(spans)
        assert evaluator.evaluate(spans, root) == []
        assert messy


class TestSyntheticViolations:
    """Scan and layout errors reported as warnings."""

    def test_scan_and_layout_errors(self):
        _, scan_errors = scan("x = 1)\n{- open\n")
        _, layout_errors = layout_of("x = 1)\n{- open\n")
        violations = synthetic_violations(scan_errors, layout_errors)
        assert sorted(rule_ids(violations)) == ["unmatched-bracket", "unterminated-comment"]
        assert all(v.severity is Severity.WARNING for v in violations)

    def test_warnings_do_not_fail_the_check(self, default_rules):
        result = check_source("{- open\n", default_rules)
        assert rule_ids(result.violations) == ["unterminated-comment"]
        assert result.exit_code == 0
