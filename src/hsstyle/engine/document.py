"""
Read-only per-document view used by the rule checks.

Splits the scanned text into physical lines, records which span kinds cover
which columns of each line, indexes code tokens by line and maps every line
to its innermost layout block. Built once per document; never mutated by the
checks.
"""

from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from hsstyle.layout.blocks import LayoutBlock
from hsstyle.scanner.lexer import COMMENT_KINDS, Span, SpanKind
from hsstyle.scanner.tokens import Token, tokenize_spans


@dataclass(frozen=True)
class Segment:
    """The part of one physical line covered by one span.

    end_col is exclusive; a segment that runs to the end of its line covers
    the newline column too.
    """
    kind: SpanKind
    start_col: int
    end_col: int

    def contains(self, col: int) -> bool:
        return self.start_col <= col < self.end_col


@dataclass
class LineView:
    """One physical line with its span segments."""
    number: int
    text: str
    segments: List[Segment] = field(default_factory=list)
    block: Optional[LayoutBlock] = None

    @property
    def kinds(self) -> frozenset:
        return frozenset(segment.kind for segment in self.segments)

    def kind_at(self, col: int) -> Optional[SpanKind]:
        for segment in self.segments:
            if segment.contains(col):
                return segment.kind
        return None

    def segments_of(self, kinds: Iterable[SpanKind]) -> List[Segment]:
        kinds = frozenset(kinds)
        return [segment for segment in self.segments if segment.kind in kinds]

    @property
    def is_blank(self) -> bool:
        """Whitespace only, and not inside a comment or literal."""
        return not self.text.strip() and all(s.kind is SpanKind.CODE for s in self.segments)

    @property
    def is_comment_only(self) -> bool:
        """Has content, and all of it sits in comments or pragmas."""
        if not self.text.strip():
            return False
        for col, ch in enumerate(self.text, start=1):
            if ch.isspace():
                continue
            kind = self.kind_at(col)
            if kind not in COMMENT_KINDS and kind is not SpanKind.PRAGMA:
                return False
        return True


class Document:
    """
    Scanned document plus its layout tree.

    Usage:
        doc = Document(spans, layout_root)
        for line in doc.lines: ...
    """

    def __init__(self, spans: List[Span], layout_root: Optional[LayoutBlock] = None):
        self.spans = list(spans)
        self.layout_root = layout_root
        self.text = "".join(span.text for span in self.spans)
        self.tokens: List[Token] = tokenize_spans(self.spans)
        self.lines: List[LineView] = self._split_lines()
        self._span_starts = [(span.start_line, span.start_col) for span in self.spans]
        self.tokens_on_line: Dict[int, List[Token]] = {}
        for token in self.tokens:
            self.tokens_on_line.setdefault(token.line, []).append(token)
        if layout_root is not None:
            self._assign_blocks(layout_root)

    def _split_lines(self) -> List[LineView]:
        raw = self.text.split("\n")
        if self.text.endswith("\n"):
            raw.pop()
        lines = [LineView(number, text.rstrip("\r")) for number, text in enumerate(raw, start=1)]
        for span in self.spans:
            for number in range(span.start_line, span.end_line + 1):
                if number > len(lines):
                    break
                start = span.start_col if number == span.start_line else 1
                if number == span.end_line:
                    end = span.end_col
                else:
                    end = len(raw[number - 1]) + 2
                if end > start:
                    lines[number - 1].segments.append(Segment(span.kind, start, end))
        return lines

    def _assign_blocks(self, root: LayoutBlock) -> None:
        # Pre-order: deeper and later blocks overwrite their ancestors
        for block in root.walk():
            last = min(block.end_line, len(self.lines))
            for number in range(max(block.start_line, 1), last + 1):
                self.lines[number - 1].block = block

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def line(self, number: int) -> Optional[LineView]:
        if 1 <= number <= len(self.lines):
            return self.lines[number - 1]
        return None

    def kind_at(self, line: int, col: int) -> Optional[SpanKind]:
        view = self.line(line)
        if view is not None:
            kind = view.kind_at(col)
            if kind is not None:
                return kind
        # Positions past the line end fall back to the span that starts there
        index = bisect_right(self._span_starts, (line, col)) - 1
        if index >= 0:
            span = self.spans[index]
            if span.contains(line, col):
                return span.kind
        return None

    def is_blank(self, line: int) -> bool:
        view = self.line(line)
        return view is not None and view.is_blank

    def first_code_token(self) -> Optional[Token]:
        return self.tokens[0] if self.tokens else None

    def innermost_block(self, line: int) -> Optional[LayoutBlock]:
        view = self.line(line)
        return view.block if view is not None else None

    def spans_within(self, block: LayoutBlock, kinds: Optional[Iterable[SpanKind]] = None) -> List[Span]:
        """Spans that start inside the block's range."""
        kinds = frozenset(kinds) if kinds is not None else None
        start = (block.start_line, block.start_column)
        end = (block.end_line, block.end_column)
        found = []
        for span in self.spans:
            if kinds is not None and span.kind not in kinds:
                continue
            if start <= (span.start_line, span.start_col) < end:
                found.append(span)
        return found

    def has_haddock_above(self, line: int) -> bool:
        """Whether a Haddock comment precedes the line (through comment/pragma lines)."""
        number = line - 1
        while number >= 1:
            view = self.lines[number - 1]
            if not view.is_comment_only:
                return False
            if SpanKind.HADDOCK_COMMENT in view.kinds:
                return True
            number -= 1
        return False
