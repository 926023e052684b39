"""
Tests for the diagnostic reporter.
"""

import json
import random

from hsstyle.diagnostics import Severity, Violation
from hsstyle.engine.pipeline import CheckResult
from hsstyle.engine.report import exit_code, format_summary, format_text, report, to_json


def make(rule_id, line, col, severity=Severity.ERROR, message="msg"):
    return Violation(rule_id, severity, line, col, line, col + 1, message)


VIOLATIONS = [
    make("naming-case", 3, 1),
    make("import-order", 1, 8),
    make("indent-step", 3, 1),
    make("no-trailing-whitespace", 2, 10, Severity.WARNING),
    make("import-order", 1, 8, message="same rule, same start"),
]


class TestReport:
    """Ordering and duplicate handling."""

    def test_sorted_by_line_col_rule(self):
        ordered = report(VIOLATIONS)
        assert [(v.line, v.col, v.rule_id) for v in ordered] == [
            (1, 8, "import-order"),
            (2, 10, "no-trailing-whitespace"),
            (3, 1, "indent-step"),
            (3, 1, "naming-case"),
        ]

    def test_duplicates_collapsed(self):
        ordered = report(VIOLATIONS)
        assert sum(1 for v in ordered if v.rule_id == "import-order") == 1

    def test_input_order_irrelevant(self):
        shuffled = list(VIOLATIONS)
        random.Random(7).shuffle(shuffled)
        assert report(shuffled) == report(VIOLATIONS)

    def test_idempotent(self):
        once = report(VIOLATIONS)
        assert report(once) == once

    def test_empty(self):
        assert report([]) == []


class TestExitCode:

    def test_errors_fail(self):
        assert exit_code(VIOLATIONS) == 1

    def test_warnings_pass(self):
        assert exit_code([make("x", 1, 1, Severity.WARNING)]) == 0
        assert exit_code([]) == 0


class TestFormatting:

    def test_text(self):
        text = format_text("Main.hs", report(VIOLATIONS)[:1])
        assert text == "Main.hs:1:8: error [import-order] msg"

    def test_summary(self):
        assert format_summary(2, report(VIOLATIONS)) == "Checked 2 file(s): 3 error(s), 1 warning(s)"

    def test_json(self):
        result = CheckResult(filename="Main.hs", violations=report(VIOLATIONS))
        data = json.loads(to_json([result]))
        assert data[0]["file"] == "Main.hs"
        assert data[0]["violations"][0] == {
            "rule_id": "import-order",
            "severity": "error",
            "line": 1,
            "col": 8,
            "end_line": 1,
            "end_col": 9,
            "message": "msg",
        }
