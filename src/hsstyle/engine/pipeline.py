"""
Check Pipeline

scan -> layout -> evaluate -> report for one document, and a thread pool
that checks many files at once. Documents share nothing but the read-only
catalogue; results come back in input order.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from hsstyle.diagnostics import Severity, Violation
from hsstyle.engine.evaluator import RuleEvaluationError, RuleEvaluator, synthetic_violations
from hsstyle.engine.report import exit_code, report
from hsstyle.layout.tracker import LayoutError, build_layout
from hsstyle.rules.catalogue import RuleCatalogue, default_catalogue
from hsstyle.scanner.lexer import ScanError, read_source, scan

logger = logging.getLogger(__name__)


@dataclass
class CheckResult:
    """Outcome of checking one document."""
    filename: str
    violations: List[Violation] = field(default_factory=list)
    scan_errors: List[ScanError] = field(default_factory=list)
    layout_errors: List[LayoutError] = field(default_factory=list)
    rule_errors: List[RuleEvaluationError] = field(default_factory=list)
    read_error: Optional[str] = None

    @property
    def has_errors(self) -> bool:
        return self.read_error is not None or any(
            v.severity is Severity.ERROR for v in self.violations
        )

    @property
    def exit_code(self) -> int:
        if self.read_error is not None:
            return 1
        return exit_code(self.violations)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.filename,
            "violations": [v.to_dict() for v in self.violations],
            "rule_errors": [str(e) for e in self.rule_errors],
            "read_error": self.read_error,
        }


def check_source(text: str, catalogue: Optional[RuleCatalogue] = None,
                 filename: str = "<string>") -> CheckResult:
    """Check one document held in memory."""
    if catalogue is None:
        catalogue = default_catalogue()
    spans, scan_errors = scan(text, filename)
    root, layout_errors = build_layout(spans)
    evaluator = RuleEvaluator(catalogue)
    violations = evaluator.evaluate(spans, root)
    violations.extend(synthetic_violations(scan_errors, layout_errors))
    return CheckResult(
        filename=filename,
        violations=report(violations),
        scan_errors=scan_errors,
        layout_errors=layout_errors,
        rule_errors=evaluator.rule_errors,
    )


def check_file(path: Union[str, Path], catalogue: Optional[RuleCatalogue] = None) -> CheckResult:
    """Check one file; an unreadable file is reported on the result."""
    filename = str(path)
    try:
        text = read_source(filename)
    except OSError as e:
        logger.error("cannot read %s: %s", filename, e)
        return CheckResult(filename=filename, read_error=str(e))
    logger.debug("checking %s", filename)
    return check_source(text, catalogue, filename)


def check_files(paths: Iterable[Union[str, Path]], catalogue: Optional[RuleCatalogue] = None,
                workers: int = 1) -> List[CheckResult]:
    """Check files in a thread pool. Results are in the order of paths."""
    paths = list(paths)
    if catalogue is None:
        catalogue = default_catalogue()
    if workers <= 1 or len(paths) <= 1:
        return [check_file(path, catalogue) for path in paths]

    executor = ThreadPoolExecutor(max_workers=workers)
    try:
        results = list(executor.map(lambda p: check_file(p, catalogue), paths))
    finally:
        executor.shutdown(wait=True)
    logger.info("checked %d file(s) with %d worker(s)", len(results), workers)
    return results
