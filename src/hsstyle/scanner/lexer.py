"""
Haskell Source Scanner

Splits raw source text into classified spans: code, line and block comments,
Haddock comments, pragmas, string and character literals.

The spans are produced in document order, never overlap, and together cover
every character of the input exactly once (whitespace belongs to the span
that encloses it). Malformed input never raises: problems are collected as
ScanError records and the scanner recovers so later stages still run.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, NamedTuple, Optional, Tuple


class SpanKind(Enum):
    """Lexical classification of a span."""
    CODE = "Code"
    LINE_COMMENT = "LineComment"        # -- to end of line
    BLOCK_COMMENT = "BlockComment"      # {- ... -}, nests
    STRING_LITERAL = "StringLiteral"    # "..." with escapes and gaps
    CHAR_LITERAL = "CharLiteral"        # 'x', '\n'
    PRAGMA = "Pragma"                   # {-# ... #-}
    HADDOCK_COMMENT = "HaddockComment"  # -- | ..., {- ^ ... -}

    @classmethod
    def lookup(cls, name: str) -> Optional["SpanKind"]:
        """Find a kind by its value ("LineComment") or name ("LINE_COMMENT")."""
        for kind in cls:
            if name in (kind.value, kind.name):
                return kind
        return None


COMMENT_KINDS = frozenset({
    SpanKind.LINE_COMMENT,
    SpanKind.BLOCK_COMMENT,
    SpanKind.HADDOCK_COMMENT,
})
LITERAL_KINDS = frozenset({SpanKind.STRING_LITERAL, SpanKind.CHAR_LITERAL})

# Characters that may form an operator. A dash run touching one of these is
# part of an operator (-->, |--), not a comment.
SYMBOL_CHARS = frozenset("!#$%&*+./<=>?@\\^|-~:")
HADDOCK_MARKERS = frozenset("|^*$")
IDENT_CHARS_EXTRA = frozenset("_'")

CHAR_LITERAL_RE = re.compile(
    r"'(?:[^'\\\n]"
    r"|\\(?:\^[@-_]|[A-Z][A-Z0-9]{1,2}|x[0-9a-fA-F]+|o[0-7]+|[0-9]+|[^\n]))'"
)


class ScanErrorKind(Enum):
    """Recoverable scanner problems. Values double as synthetic rule ids."""
    UNTERMINATED_COMMENT = "unterminated-comment"
    UNEXPECTED_COMMENT_CLOSE = "unexpected-comment-close"
    UNTERMINATED_STRING = "unterminated-string"


@dataclass(frozen=True)
class Span:
    """
    A classified, contiguous range of source text.

    Start positions are inclusive, end positions exclusive (the position just
    after the last character). Offsets index into the original text.
    """
    kind: SpanKind
    start_line: int
    start_col: int
    end_line: int
    end_col: int
    text: str
    offset: int
    end_offset: int

    @property
    def is_comment(self) -> bool:
        return self.kind in COMMENT_KINDS

    def contains(self, line: int, col: int) -> bool:
        """Whether the position (line, col) falls inside this span."""
        return (self.start_line, self.start_col) <= (line, col) < (self.end_line, self.end_col)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "start_line": self.start_line,
            "start_col": self.start_col,
            "end_line": self.end_line,
            "end_col": self.end_col,
            "text": self.text,
        }

    def __repr__(self):
        return (f"Span({self.kind.value}, L{self.start_line}:{self.start_col}"
                f"-L{self.end_line}:{self.end_col})")


@dataclass(frozen=True)
class ScanError:
    """A recoverable problem found while scanning."""
    kind: ScanErrorKind
    message: str
    line: int
    column: int
    end_line: int
    end_column: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "line": self.line,
            "column": self.column,
            "end_line": self.end_line,
            "end_column": self.end_column,
        }


class ScanResult(NamedTuple):
    """Spans plus the problems recovered from while producing them."""
    spans: List[Span]
    errors: List[ScanError]


# (offset, line, column)
_Mark = Tuple[int, int, int]


class Scanner:
    """
    Character-level scanner for Haskell source.

    Usage:
        spans, errors = Scanner(source_text).scan()
    """

    def __init__(self, source: str, filename: str = "<unknown>"):
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.column = 1
        self.length = len(source)
        self.spans: List[Span] = []
        self.errors: List[ScanError] = []
        self._code_start: Optional[_Mark] = None

    def _current(self) -> Optional[str]:
        """Get current character or None if at end."""
        if self.pos >= self.length:
            return None
        return self.source[self.pos]

    def _peek(self, offset: int = 1) -> Optional[str]:
        """Peek ahead by offset characters."""
        pos = self.pos + offset
        if pos >= self.length:
            return None
        return self.source[pos]

    def _previous(self) -> Optional[str]:
        if self.pos == 0:
            return None
        return self.source[self.pos - 1]

    def _advance(self, count: int = 1) -> None:
        """Advance count characters, tracking line and column."""
        for _ in range(count):
            if self.pos >= self.length:
                return
            ch = self.source[self.pos]
            self.pos += 1
            if ch == '\n':
                self.line += 1
                self.column = 1
            else:
                self.column += 1

    def _mark(self) -> _Mark:
        return (self.pos, self.line, self.column)

    def _emit(self, kind: SpanKind, start: _Mark) -> None:
        offset, line, column = start
        self.spans.append(Span(
            kind=kind,
            start_line=line,
            start_col=column,
            end_line=self.line,
            end_col=self.column,
            text=self.source[offset:self.pos],
            offset=offset,
            end_offset=self.pos,
        ))

    def _flush_code(self) -> None:
        if self._code_start is not None and self.pos > self._code_start[0]:
            self._emit(SpanKind.CODE, self._code_start)
        self._code_start = None

    def _error(self, kind: ScanErrorKind, message: str, start: _Mark) -> None:
        _, line, column = start
        self.errors.append(ScanError(
            kind=kind,
            message=message,
            line=line,
            column=column,
            end_line=self.line,
            end_column=self.column,
        ))

    def _starts_line_comment(self) -> bool:
        """A run of two or more dashes that is not part of an operator."""
        prev = self._previous()
        if prev is not None and prev in SYMBOL_CHARS:
            return False
        run = 0
        while self._peek(run) == '-':
            run += 1
        if run < 2:
            return False
        after = self._peek(run)
        return after is None or after not in SYMBOL_CHARS

    def _char_literal_length(self) -> int:
        """Length of the character literal starting here, 0 if there is none."""
        prev = self._previous()
        if prev is not None and (prev.isalnum() or prev in IDENT_CHARS_EXTRA):
            # foldl', x'' - a prime belongs to the identifier
            return 0
        match = CHAR_LITERAL_RE.match(self.source, self.pos)
        return len(match.group(0)) if match else 0

    def _is_haddock(self, opener_length: int) -> bool:
        """Check for a Haddock marker after the comment opener (blanks allowed)."""
        index = opener_length
        while self._peek(index) in (' ', '\t'):
            index += 1
        marker = self._peek(index)
        return marker is not None and marker in HADDOCK_MARKERS

    def _read_line_comment(self) -> None:
        start = self._mark()
        run = 0
        while self._peek(run) == '-':
            run += 1
        kind = SpanKind.HADDOCK_COMMENT if self._is_haddock(run) else SpanKind.LINE_COMMENT
        while True:
            ch = self._current()
            if ch is None or ch == '\n':
                break
            self._advance()
        self._emit(kind, start)

    def _read_block_comment(self) -> None:
        start = self._mark()
        kind = SpanKind.HADDOCK_COMMENT if self._is_haddock(2) else SpanKind.BLOCK_COMMENT
        self._advance(2)
        depth = 1
        while depth > 0:
            ch = self._current()
            if ch is None:
                self._error(
                    ScanErrorKind.UNTERMINATED_COMMENT,
                    f"block comment is not closed ({depth} level(s) still open at end of input)",
                    start,
                )
                break
            if ch == '{' and self._peek() == '-':
                depth += 1
                self._advance(2)
            elif ch == '-' and self._peek() == '}':
                depth -= 1
                self._advance(2)
            else:
                self._advance()
        self._emit(kind, start)

    def _read_pragma(self) -> None:
        start = self._mark()
        self._advance(3)
        while True:
            ch = self._current()
            if ch is None:
                self._error(
                    ScanErrorKind.UNTERMINATED_COMMENT,
                    "pragma is not closed with '#-}' before end of input",
                    start,
                )
                break
            if ch == '#' and self._peek() == '-' and self._peek(2) == '}':
                self._advance(3)
                break
            self._advance()
        self._emit(SpanKind.PRAGMA, start)

    def _read_string(self) -> None:
        """Read a string literal, honouring escapes and string gaps."""
        start = self._mark()
        self._advance()  # opening quote
        while True:
            ch = self._current()
            if ch is None or ch == '\n':
                self._error(
                    ScanErrorKind.UNTERMINATED_STRING,
                    "string literal is not closed before end of line",
                    start,
                )
                break
            if ch == '"':
                self._advance()
                break
            if ch == '\\':
                self._advance()
                esc = self._current()
                if esc is not None and esc in ' \t\r\n':
                    # String gap: backslash, whitespace (may span lines), backslash
                    while self._current() is not None and self._current() in ' \t\r\n':
                        self._advance()
                    if self._current() == '\\':
                        self._advance()
                elif esc is not None:
                    self._advance()
            else:
                self._advance()
        self._emit(SpanKind.STRING_LITERAL, start)

    def _read_char(self, length: int) -> None:
        start = self._mark()
        self._advance(length)
        self._emit(SpanKind.CHAR_LITERAL, start)

    def scan(self) -> ScanResult:
        """Scan the whole source and return spans and recovered errors."""
        while self.pos < self.length:
            ch = self._current()

            if ch == '{' and self._peek() == '-':
                self._flush_code()
                if self._peek(2) == '#':
                    self._read_pragma()
                else:
                    self._read_block_comment()
                continue

            if ch == '-' and self._starts_line_comment():
                self._flush_code()
                self._read_line_comment()
                continue

            if ch == '"':
                self._flush_code()
                self._read_string()
                continue

            if ch == "'":
                length = self._char_literal_length()
                if length:
                    self._flush_code()
                    self._read_char(length)
                    continue

            if self._code_start is None:
                self._code_start = self._mark()

            if ch == '-' and self._peek() == '}':
                # Stray close at depth 0; keep it as code and carry on
                start = self._mark()
                self._advance(2)
                self._error(
                    ScanErrorKind.UNEXPECTED_COMMENT_CLOSE,
                    "'-}' without a matching '{-'",
                    start,
                )
                continue

            self._advance()

        self._flush_code()
        return ScanResult(self.spans, self.errors)


def scan(text: str, filename: str = "<unknown>") -> ScanResult:
    """Scan source text into spans. Pure: equal input gives equal output."""
    return Scanner(text, filename).scan()


def read_source(filepath: str) -> str:
    """Read a source file. Handles encoding fallback."""
    # Try UTF-8 with BOM first, then UTF-8, then latin-1 (which always succeeds)
    for encoding in ['utf-8-sig', 'utf-8', 'latin-1']:
        try:
            with open(filepath, 'r', encoding=encoding, newline='') as f:
                source = f.read()
            break
        except UnicodeDecodeError:
            continue
    return source


def scan_file(filepath: str) -> ScanResult:
    """Scan a file into spans."""
    return scan(read_source(filepath), filepath)
