"""
Tests for the hsstyle lexical scanner.
"""

import pytest
from hsstyle.scanner import ScanErrorKind, SpanKind, read_source, scan


def kinds(source):
    spans, _ = scan(source)
    return [span.kind for span in spans]


class TestSpanClassification:
    """Test how source text is split into classified spans."""

    def test_empty_source(self):
        """Empty input gives no spans and no errors."""
        spans, errors = scan("")
        assert spans == []
        assert errors == []

    def test_code_only(self):
        """Plain code is a single Code span."""
        assert kinds("main = print 1\n") == [SpanKind.CODE]

    def test_line_comment(self):
        """A line comment stops before the newline."""
        spans, _ = scan("foo -- c\nbar\n")
        assert [s.kind for s in spans] == [SpanKind.CODE, SpanKind.LINE_COMMENT, SpanKind.CODE]
        comment = spans[1]
        assert comment.text == "-- c"
        assert (comment.start_line, comment.start_col) == (1, 5)
        assert (comment.end_line, comment.end_col) == (1, 9)

    def test_long_dash_run_is_comment(self):
        """Any run of two or more dashes starts a comment."""
        assert kinds("-----------\n") == [SpanKind.LINE_COMMENT, SpanKind.CODE]

    @pytest.mark.parametrize("source", ["a --> b\n", "x |-- y\n", "x --| y\n"])
    def test_dashes_inside_operator_are_code(self, source):
        """Dash runs that belong to an operator are not comments."""
        assert kinds(source) == [SpanKind.CODE]

    def test_nested_block_comment(self):
        """Nested block comments form a single span with no errors."""
        spans, errors = scan("{- outer {- inner -} still outer -}")
        assert errors == []
        assert len(spans) == 1
        assert spans[0].kind is SpanKind.BLOCK_COMMENT

    def test_pragma(self):
        """{-# ... #-} is a pragma, not a block comment."""
        spans, _ = scan("{-# LANGUAGE LambdaCase #-}\nmodule M where\n")
        assert spans[0].kind is SpanKind.PRAGMA
        assert spans[0].text == "{-# LANGUAGE LambdaCase #-}"

    @pytest.mark.parametrize("source", ["-- | Doc\n", "-- ^ Doc\n", "-- * Section\n",
                                        "-- $named\n", "{- | Doc -}"])
    def test_haddock_comments(self, source):
        """Comments opened with a Haddock marker are HaddockComment spans."""
        assert kinds(source)[0] is SpanKind.HADDOCK_COMMENT

    def test_comment_marker_inside_string(self):
        """Comment openers inside a string literal stay in the string."""
        spans, _ = scan('x = "-- not a comment {- either"\n')
        assert [s.kind for s in spans] == [SpanKind.CODE, SpanKind.STRING_LITERAL, SpanKind.CODE]
        assert spans[1].text == '"-- not a comment {- either"'

    def test_escaped_quote_in_string(self):
        """An escaped quote does not end the string."""
        spans, errors = scan('s = "say \\"hi\\""\n')
        assert errors == []
        assert spans[1].text == '"say \\"hi\\""'

    def test_string_gap(self):
        """A string gap may span lines."""
        source = 's = "abc\\\n    \\def"\n'
        spans, errors = scan(source)
        assert errors == []
        literal = spans[1]
        assert literal.kind is SpanKind.STRING_LITERAL
        assert (literal.start_line, literal.end_line) == (1, 2)

    def test_char_literals(self):
        """Character literals, including escapes."""
        spans, _ = scan("c = 'a'\nd = '\\n'\n")
        literals = [s.text for s in spans if s.kind is SpanKind.CHAR_LITERAL]
        assert literals == ["'a'", "'\\n'"]

    def test_prime_is_not_char_literal(self):
        """A prime after an identifier belongs to the identifier."""
        assert kinds("go' = foldl' f z xs\n") == [SpanKind.CODE]

    def test_char_literal_after_primed_name(self):
        """x' = 'y' has exactly one character literal."""
        spans, _ = scan("x' = 'y'\n")
        assert [s.text for s in spans if s.kind is SpanKind.CHAR_LITERAL] == ["'y'"]

    def test_comment_inside_block_comment_is_not_separate(self):
        """A line comment opener inside a block comment does not split it."""
        spans, _ = scan("{- a -- b -}\nx = 1\n")
        assert [s.kind for s in spans] == [SpanKind.BLOCK_COMMENT, SpanKind.CODE]


class TestScanErrors:
    """Test recovery from malformed input."""

    def test_unterminated_block_comment(self):
        """An open block comment runs to end of input and is reported."""
        spans, errors = scan("x = 1\n{- never closed\ny = 2\n")
        assert spans[-1].kind is SpanKind.BLOCK_COMMENT
        assert spans[-1].text.endswith("y = 2\n")
        assert [e.kind for e in errors] == [ScanErrorKind.UNTERMINATED_COMMENT]
        assert (errors[0].line, errors[0].column) == (2, 1)

    def test_unexpected_comment_close(self):
        """A stray -} is kept as code and reported."""
        spans, errors = scan("x = 1 -}\n")
        assert [s.kind for s in spans] == [SpanKind.CODE]
        assert [e.kind for e in errors] == [ScanErrorKind.UNEXPECTED_COMMENT_CLOSE]
        assert (errors[0].line, errors[0].column) == (1, 7)

    def test_unterminated_string(self):
        """A string without a closing quote ends at the newline."""
        spans, errors = scan('s = "abc\nt = 1\n')
        assert [s.kind for s in spans] == [SpanKind.CODE, SpanKind.STRING_LITERAL, SpanKind.CODE]
        assert spans[1].text == '"abc'
        assert spans[2].text == "\nt = 1\n"
        assert [e.kind for e in errors] == [ScanErrorKind.UNTERMINATED_STRING]


class TestScannerProperties:
    """Coverage and determinism."""

    SAMPLES = [
        "",
        "main = print 1\n",
        "{-# LANGUAGE X #-}\nmodule M where\n-- | doc\nf = \"s\" -- c\n",
        "{- a {- b -} -} x = 'c'\n",
        "s = \"unterminated\n{- open",
        "x = 1 -}\r\ny = 2\r\n",
    ]

    @pytest.mark.parametrize("source", SAMPLES)
    def test_spans_cover_input(self, source):
        """Span texts concatenate back to the input, in order, without overlap."""
        spans, _ = scan(source)
        assert "".join(span.text for span in spans) == source
        offset = 0
        for span in spans:
            assert span.offset == offset
            assert span.end_offset == offset + len(span.text)
            offset = span.end_offset

    @pytest.mark.parametrize("source", SAMPLES)
    def test_scan_is_deterministic(self, source):
        """Equal input gives equal output."""
        assert scan(source) == scan(source)


class TestReadSource:
    """Test file reading with encoding fallback."""

    def test_utf8_bom_is_stripped(self, tmp_path):
        path = tmp_path / "Bom.hs"
        path.write_bytes(b"\xef\xbb\xbfmain = pure ()\n")
        assert read_source(str(path)) == "main = pure ()\n"

    def test_latin1_fallback(self, tmp_path):
        path = tmp_path / "Latin.hs"
        path.write_bytes(b"c = '\xe9'\n")
        assert read_source(str(path)) == "c = '\u00e9'\n"

    def test_line_endings_preserved(self, tmp_path):
        path = tmp_path / "Crlf.hs"
        path.write_bytes(b"x = 1\r\n")
        assert read_source(str(path)) == "x = 1\r\n"
