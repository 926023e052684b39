"""
hsstyle.scanner - Lexical scanner for Haskell source

Classifies source text into spans (code, comments, pragmas, literals) and
tokenizes the code spans.
"""

from hsstyle.scanner.lexer import (
    COMMENT_KINDS,
    LITERAL_KINDS,
    ScanError,
    ScanErrorKind,
    ScanResult,
    Scanner,
    Span,
    SpanKind,
    read_source,
    scan,
    scan_file,
)
from hsstyle.scanner.tokens import (
    KEYWORDS,
    CodeLexer,
    Token,
    TokenType,
    tokenize_span,
    tokenize_spans,
)

__all__ = [
    # Scanner
    "COMMENT_KINDS",
    "LITERAL_KINDS",
    "ScanError",
    "ScanErrorKind",
    "ScanResult",
    "Scanner",
    "Span",
    "SpanKind",
    "read_source",
    "scan",
    "scan_file",
    # Tokens
    "KEYWORDS",
    "CodeLexer",
    "Token",
    "TokenType",
    "tokenize_span",
    "tokenize_spans",
]
