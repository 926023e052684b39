"""
Diagnostic Reporter

Orders violations, collapses duplicates and renders them for people
(text) or tools (JSON).
"""

import json
from typing import Any, Dict, Iterable, List, Sequence

from hsstyle.diagnostics import Severity, Violation


def report(violations: Iterable[Violation]) -> List[Violation]:
    """
    Sort by (line, col, rule id) and keep one violation per rule and start
    position. Input order never affects the output.
    """
    unique: Dict[tuple, Violation] = {}
    for violation in sorted(violations, key=lambda v: (v.sort_key, v.end_line, v.end_col, v.message)):
        key = (violation.rule_id, violation.line, violation.col)
        if key not in unique:
            unique[key] = violation
    return sorted(unique.values(), key=lambda v: v.sort_key)


def exit_code(violations: Iterable[Violation]) -> int:
    """0 when no Error-severity violation is present, 1 otherwise."""
    return 1 if any(v.severity is Severity.ERROR for v in violations) else 0


def count_by_severity(violations: Iterable[Violation]) -> Dict[str, int]:
    counts = {severity.value: 0 for severity in Severity}
    for violation in violations:
        counts[violation.severity.value] += 1
    return counts


def format_text(filename: str, violations: Sequence[Violation]) -> str:
    """One line per violation: file:line:col: severity [rule] message."""
    return "\n".join(f"{filename}:{violation}" for violation in violations)


def format_summary(files: int, violations: Sequence[Violation]) -> str:
    counts = count_by_severity(violations)
    return (f"Checked {files} file(s): "
            f"{counts['error']} error(s), {counts['warning']} warning(s)")


def to_json(results: Iterable[Any]) -> str:
    """Serialize check results (anything with to_dict) as a JSON document."""
    return json.dumps([result.to_dict() for result in results], indent=2, ensure_ascii=False)
