"""
Code-span tokenizer.

Breaks the Code spans produced by the scanner into tokens (identifiers,
keywords, operators, punctuation, literals) with absolute positions.
String and character literal spans become a single LITERAL token each, since
they take part in layout like any other atom. Comments and pragmas produce no
tokens.
"""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Iterable, Iterator, List, Optional

from hsstyle.scanner.lexer import LITERAL_KINDS, SYMBOL_CHARS, Span, SpanKind


class TokenType(Enum):
    """Types of tokens inside code."""
    IDENTIFIER = auto()     # foo, Data.Map, M.lookup
    KEYWORD = auto()        # where, let, do, of, import, ...
    OPERATOR = auto()       # <>, >>=, +
    RESERVED_OP = auto()    # ::, =, ->, <-, |, \, =>
    PUNCTUATION = auto()    # ( ) [ ] { } , ; `
    LITERAL = auto()        # 42, 0x1F, "text", 'c'


KEYWORDS = frozenset({
    "case", "class", "data", "default", "deriving", "do", "else", "foreign",
    "if", "import", "in", "infix", "infixl", "infixr", "instance", "let",
    "mdo", "module", "newtype", "of", "then", "type", "where",
})

RESERVED_OPS = frozenset({
    "..", ":", "::", "=", "\\", "|", "<-", "->", "@", "~", "=>",
})

PUNCTUATION_CHARS = frozenset("()[]{},;`")


@dataclass(frozen=True)
class Token:
    """A single token with its source range."""
    type: TokenType
    text: str
    line: int
    column: int
    end_line: int
    end_column: int

    @property
    def name(self) -> str:
        """Unqualified part of an identifier (lookup for M.lookup)."""
        if self.type is TokenType.IDENTIFIER and '.' in self.text:
            return self.text.rsplit('.', 1)[1]
        return self.text

    @property
    def is_qualified(self) -> bool:
        return self.type is TokenType.IDENTIFIER and '.' in self.text

    @property
    def case_class(self) -> Optional[str]:
        """'upper', 'lower' or 'operator'; None for other token types."""
        if self.type is TokenType.IDENTIFIER:
            head = self.name.lstrip('_')[:1]
            return "upper" if head.isupper() else "lower"
        if self.type in (TokenType.OPERATOR, TokenType.RESERVED_OP):
            return "operator"
        return None

    def __repr__(self):
        return f"Token({self.type.name}, {self.text!r}, L{self.line}:{self.column})"


def is_symbol_char(ch: str) -> bool:
    if ch in SYMBOL_CHARS:
        return True
    # Unicode operators such as → or ∘
    return ord(ch) > 127 and not ch.isalnum() and not ch.isspace()


def _is_ident_char(ch: Optional[str]) -> bool:
    return ch is not None and (ch.isalnum() or ch in "_'")


class CodeLexer:
    """
    Tokenizer for the text of a single Code span.

    Usage:
        tokens = list(CodeLexer(span.text, span.start_line, span.start_col).tokenize())
    """

    def __init__(self, text: str, line: int = 1, column: int = 1):
        self.text = text
        self.pos = 0
        self.line = line
        self.column = column
        self.length = len(text)

    def _current(self) -> Optional[str]:
        if self.pos >= self.length:
            return None
        return self.text[self.pos]

    def _peek(self, offset: int = 1) -> Optional[str]:
        pos = self.pos + offset
        if pos >= self.length:
            return None
        return self.text[pos]

    def _advance(self) -> Optional[str]:
        ch = self._current()
        if ch is not None:
            self.pos += 1
            if ch == '\n':
                self.line += 1
                self.column = 1
            else:
                self.column += 1
        return ch

    def _read_while(self, predicate) -> str:
        result = []
        while self._current() is not None and predicate(self._current()):
            result.append(self._advance())
        return ''.join(result)

    def _read_identifier(self) -> str:
        """Read an identifier, joining module qualifiers (Data.Map.lookup)."""
        parts = [self._read_while(_is_ident_char)]
        while parts[-1][:1].isupper() and self._current() == '.':
            nxt = self._peek()
            if nxt is None or not (nxt.isalpha() or nxt == '_'):
                break
            self._advance()
            parts.append(self._read_while(_is_ident_char))
        return '.'.join(parts)

    def _read_number(self) -> str:
        result = []
        while True:
            ch = self._current()
            if ch is None:
                break
            if ch.isalnum() or ch == '_':
                result.append(self._advance())
                if ch in 'eE' and self._current() in ('+', '-') and (self._peek() or '').isdigit():
                    result.append(self._advance())
            elif ch == '.' and (self._peek() or '').isdigit():
                result.append(self._advance())
            else:
                break
        return ''.join(result)

    def tokenize(self) -> Iterator[Token]:
        while True:
            ch = self._current()
            if ch is None:
                return
            if ch.isspace():
                self._advance()
                continue

            start_line = self.line
            start_col = self.column

            if ch.isalpha() or ch == '_':
                value = self._read_identifier()
                token_type = TokenType.KEYWORD if value in KEYWORDS else TokenType.IDENTIFIER
            elif ch.isdigit():
                value = self._read_number()
                token_type = TokenType.LITERAL
            elif ch in PUNCTUATION_CHARS:
                value = self._advance()
                token_type = TokenType.PUNCTUATION
            elif ch == "'":
                # Template Haskell name quote or promoted constructor tick
                value = self._read_while(lambda c: c == "'")
                token_type = TokenType.PUNCTUATION
            elif is_symbol_char(ch):
                value = self._read_while(is_symbol_char)
                token_type = TokenType.RESERVED_OP if value in RESERVED_OPS else TokenType.OPERATOR
            else:
                value = self._advance()
                token_type = TokenType.OPERATOR

            yield Token(token_type, value, start_line, start_col, self.line, self.column)


def tokenize_span(span: Span) -> List[Token]:
    """Tokens contributed by one span."""
    if span.kind is SpanKind.CODE:
        return list(CodeLexer(span.text, span.start_line, span.start_col).tokenize())
    if span.kind in LITERAL_KINDS:
        return [Token(TokenType.LITERAL, span.text, span.start_line, span.start_col,
                      span.end_line, span.end_col)]
    return []


def tokenize_spans(spans: Iterable[Span]) -> List[Token]:
    """All tokens of a document, in order."""
    tokens: List[Token] = []
    for span in spans:
        tokens.extend(tokenize_span(span))
    return tokens
