"""
Diagnostics shared by the evaluator and the reporter.

A Violation is a single rule failure with a position range and a severity.
Violations are produced once by the evaluator and never mutated afterwards.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Tuple


class Severity(Enum):
    """Violation severity levels."""
    ERROR = "error"         # Fails the check (exit code 1)
    WARNING = "warning"     # Reported, does not fail the check

    @classmethod
    def parse(cls, value: str) -> "Severity":
        """Look up a severity by its value or name (case-insensitive)."""
        if isinstance(value, Severity):
            return value
        text = str(value).strip().lower()
        for severity in cls:
            if text in (severity.value, severity.name.lower()):
                return severity
        raise ValueError(f"unknown severity {value!r}")


@dataclass(frozen=True)
class Violation:
    """A single reported rule failure."""
    rule_id: str
    severity: Severity
    line: int
    col: int
    end_line: int
    end_col: int
    message: str

    @property
    def sort_key(self) -> Tuple[int, int, str]:
        return (self.line, self.col, self.rule_id)

    @property
    def position(self) -> Tuple[int, int]:
        return (self.line, self.col)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "severity": self.severity.value,
            "line": self.line,
            "col": self.col,
            "end_line": self.end_line,
            "end_col": self.end_col,
            "message": self.message,
        }

    def __str__(self):
        return f"{self.line}:{self.col}: {self.severity.value} [{self.rule_id}] {self.message}"
