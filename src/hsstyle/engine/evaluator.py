"""
Rule Evaluator

Applies a rule catalogue to one scanned and laid-out document:

1. one pass over physical lines (line rules)
2. one pass over spans (span rules)
3. one pre-order walk over layout blocks (block rules)

Within each pass rules run in catalogue order. A rule only sees the lines,
spans or blocks of the kinds it declares, and line/span violations whose
start position lies outside those kinds are dropped. A rule that raises
contributes no violations; the failure is logged and kept on the evaluator.
"""

import logging
from typing import Iterable, List, Optional

from hsstyle.diagnostics import Severity, Violation
from hsstyle.engine.document import Document
from hsstyle.layout.blocks import LayoutBlock
from hsstyle.layout.tracker import LayoutError
from hsstyle.rules.catalogue import RuleCatalogue
from hsstyle.rules.registry import RuleDefinition, RuleMode
from hsstyle.scanner.lexer import ScanError, Span

logger = logging.getLogger(__name__)


class RuleEvaluationError(Exception):
    """A rule predicate raised while checking a document."""

    def __init__(self, rule_id: str, line: int, cause: BaseException):
        super().__init__(f"rule {rule_id!r} failed at line {line}: {cause!r}")
        self.rule_id = rule_id
        self.line = line
        self.cause = cause


class RuleEvaluator:
    """
    Runs a catalogue against documents.

    Usage:
        evaluator = RuleEvaluator(catalogue)
        violations = evaluator.evaluate(spans, layout_root)
        evaluator.rule_errors  # predicates that raised
    """

    def __init__(self, catalogue: RuleCatalogue):
        self.catalogue = catalogue
        self.line_rules = catalogue.by_mode(RuleMode.LINE)
        self.span_rules = catalogue.by_mode(RuleMode.SPAN)
        self.block_rules = catalogue.by_mode(RuleMode.BLOCK)
        self.rule_errors: List[RuleEvaluationError] = []

    def _run(self, rule: RuleDefinition, subject, doc: Document, line: int) -> List[Violation]:
        try:
            return list(rule.family.check(subject, doc, rule))
        except Exception as e:
            error = RuleEvaluationError(rule.id, line, e)
            logger.warning("%s; treating as no violation", error)
            self.rule_errors.append(error)
            return []

    @staticmethod
    def _in_scope(violation: Violation, rule: RuleDefinition, doc: Document) -> bool:
        return doc.kind_at(violation.line, violation.col) in rule.applies_to

    def _line_pass(self, doc: Document) -> List[Violation]:
        found = []
        for line in doc.lines:
            kinds = line.kinds
            for rule in self.line_rules:
                if not kinds & rule.applies_to:
                    continue
                for violation in self._run(rule, line, doc, line.number):
                    if self._in_scope(violation, rule, doc):
                        found.append(violation)
        return found

    def _span_pass(self, doc: Document) -> List[Violation]:
        found = []
        for span in doc.spans:
            for rule in self.span_rules:
                if not rule.applies(span.kind):
                    continue
                for violation in self._run(rule, span, doc, span.start_line):
                    if self._in_scope(violation, rule, doc):
                        found.append(violation)
        return found

    def _block_pass(self, doc: Document) -> List[Violation]:
        found = []
        if doc.layout_root is None:
            return found
        for block in doc.layout_root.walk():
            for rule in self.block_rules:
                if rule.applies(block.kind):
                    found.extend(self._run(rule, block, doc, block.start_line))
        return found

    def evaluate(self, spans: Iterable[Span], layout_root: Optional[LayoutBlock]) -> List[Violation]:
        """All violations of the catalogue in one document, in pass order."""
        doc = Document(list(spans), layout_root)
        violations = self._line_pass(doc)
        violations.extend(self._span_pass(doc))
        violations.extend(self._block_pass(doc))
        logger.debug("evaluated %d rule(s): %d violation(s), %d rule error(s)",
                     len(self.catalogue), len(violations), len(self.rule_errors))
        return violations


def synthetic_violations(scan_errors: Iterable[ScanError],
                         layout_errors: Iterable[LayoutError]) -> List[Violation]:
    """Report recoverable scan and layout problems as Warning violations."""
    violations = []
    for error in list(scan_errors) + list(layout_errors):
        violations.append(Violation(
            rule_id=error.kind.value,
            severity=Severity.WARNING,
            line=error.line,
            col=error.column,
            end_line=error.end_line,
            end_col=error.end_column,
            message=error.message,
        ))
    return violations


def evaluate(spans: Iterable[Span], layout_root: Optional[LayoutBlock],
             catalogue: RuleCatalogue) -> List[Violation]:
    """Evaluate a catalogue against one document."""
    return RuleEvaluator(catalogue).evaluate(spans, layout_root)
