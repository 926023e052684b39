"""
Layout Tracker

Reconstructs block nesting from indentation. The tracker is an explicit stack
machine: each frame is an open block (implicit, closed by dedent) or an open
bracket (explicit, closed by its matching bracket). Tokens are fed in order;
the first token of every physical line is compared against the anchor column
of the innermost implicit block:

- equal to the anchor: a new sibling item starts
- greater: the line continues the current item
- less: the block is closed and the column re-evaluated against the parent

Explicit braces, brackets and semicolons override column inference for the
block they delimit. Problems never abort tracking; they are collected as
LayoutError records and the tracker attaches the line to the nearest
enclosing block.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Tuple

from hsstyle.layout.blocks import BlockKind, LayoutBlock, LayoutItem
from hsstyle.scanner.lexer import Span
from hsstyle.scanner.tokens import Token, TokenType, tokenize_spans

logger = logging.getLogger(__name__)


class LayoutErrorKind(Enum):
    """Recoverable layout problems. Values double as synthetic rule ids."""
    AMBIGUOUS_DEDENT = "ambiguous-dedent"
    UNMATCHED_BRACKET = "unmatched-bracket"


@dataclass(frozen=True)
class LayoutError:
    """A recoverable problem found while tracking layout."""
    kind: LayoutErrorKind
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


class LayoutResult(NamedTuple):
    """The layout tree plus the problems recovered from while building it."""
    root: LayoutBlock
    errors: List[LayoutError]


LAYOUT_KEYWORDS = {
    "where": BlockKind.WHERE,
    "let": BlockKind.LET,
    "do": BlockKind.DO,
    "mdo": BlockKind.DO,
    "of": BlockKind.CASE,
}

BRACKETS = {"(": ")", "[": "]", "{": "}"}

# At a block's anchor column these continue the previous item (if/then/else in do)
CONTINUATION_KEYWORDS = frozenset({"then", "else", "of"})


class _Frame:
    """An entry of the layout stack."""

    __slots__ = ("block", "closer", "explicit", "item_start", "pending_item", "pending_in")

    def __init__(self, block: Optional[LayoutBlock], closer: Optional[str] = None,
                 explicit: bool = False):
        self.block = block
        self.closer = closer
        self.explicit = explicit
        self.item_start: Optional[int] = None
        # explicit blocks start their first item at the token after the opener
        self.pending_item = explicit and block is not None
        # lets closed by dedent whose `in` has not been seen yet
        self.pending_in = 0

    @property
    def anchor(self) -> int:
        return self.block.anchor_column


class LayoutTracker:
    """
    Builds the LayoutBlock tree for one document.

    Usage:
        tracker = LayoutTracker(spans)
        root, errors = tracker.build()
    """

    def __init__(self, spans: Iterable[Span]):
        self.spans = list(spans)
        self.tokens: List[Token] = tokenize_spans(self.spans)
        text = "".join(span.text for span in self.spans)
        self.lines = text.split("\n")
        if text.endswith("\n"):
            self.lines.pop()
        self.errors: List[LayoutError] = []
        self._stack: List[_Frame] = []
        self._pending: Optional[Tuple[BlockKind, Token]] = None
        self._has_export_list = False

    # ------------------------------------------------------------------
    # Stack helpers
    # ------------------------------------------------------------------

    def _top(self) -> _Frame:
        return self._stack[-1]

    def _current_block(self) -> LayoutBlock:
        for frame in reversed(self._stack):
            if frame.block is not None:
                return frame.block
        raise RuntimeError("layout stack has no module frame")

    def _enclosing_anchor(self) -> int:
        top = self._top()
        if top.explicit:
            return 0
        return top.anchor

    def _push(self, kind: BlockKind, opener: Token, anchor: int, explicit: bool = False,
              closer: Optional[str] = None, hanging: bool = False,
              export_list: bool = False) -> _Frame:
        parent = self._current_block()
        block = LayoutBlock(
            kind=kind,
            anchor_column=anchor,
            start_line=opener.line,
            end_line=opener.end_line,
            start_column=opener.column,
            end_column=opener.end_column,
            parent=parent,
            explicit=explicit,
            hanging=hanging,
            export_list=export_list,
        )
        parent.children.append(block)
        frame = _Frame(block, closer=closer, explicit=explicit)
        self._stack.append(frame)
        return frame

    def _pop(self, end_index: int, item_end: Optional[int] = None) -> _Frame:
        """Close the top frame; tokens before end_index belong to it."""
        frame = self._stack.pop()
        self._close_item(frame, end_index if item_end is None else item_end)
        block = frame.block
        if block is not None and end_index > 0:
            last = self.tokens[end_index - 1]
            if (last.end_line, last.end_column) > (block.end_line, block.end_column):
                block.end_line = last.end_line
                block.end_column = last.end_column
        return frame

    def _start_item(self, frame: _Frame, index: int) -> None:
        self._close_item(frame, index)
        frame.item_start = index
        frame.pending_item = False
        frame.pending_in = 0

    def _close_item(self, frame: _Frame, end_index: int) -> None:
        if frame.item_start is None or frame.block is None:
            frame.item_start = None
            return
        if end_index > frame.item_start:
            tokens = self.tokens[frame.item_start:end_index]
            frame.block.items.append(LayoutItem(tokens=tokens, end_line=tokens[-1].end_line))
        frame.item_start = None

    def _error(self, kind: LayoutErrorKind, message: str, token: Token) -> None:
        logger.debug("layout problem at %d:%d: %s", token.line, token.column, message)
        self.errors.append(LayoutError(
            kind=kind,
            message=message,
            line=token.line,
            column=token.column,
            end_line=token.end_line,
            end_column=token.end_column,
        ))

    # ------------------------------------------------------------------
    # Token handling
    # ------------------------------------------------------------------

    @staticmethod
    def _starts_statement(token: Token) -> bool:
        """Whether a line starting with this token looks like a new statement."""
        if token.type in (TokenType.IDENTIFIER, TokenType.LITERAL):
            return True
        return token.type is TokenType.PUNCTUATION and token.text in ("(", "[")

    def _handle_line_start(self, index: int, token: Token) -> None:
        popped_anchor: Optional[int] = None
        while True:
            frame = self._top()
            if frame.explicit:
                return
            anchor = frame.anchor
            if token.column == anchor and token.text in CONTINUATION_KEYWORDS:
                return
            if token.column == anchor and not (token.text == "where" and len(self._stack) > 1):
                self._start_item(frame, index)
                return
            if token.column > anchor:
                if popped_anchor is not None and self._starts_statement(token):
                    self._error(
                        LayoutErrorKind.AMBIGUOUS_DEDENT,
                        f"line starts at column {token.column}, between the enclosing "
                        f"block anchors {anchor} and {popped_anchor}",
                        token,
                    )
                return
            if len(self._stack) == 1:
                self._error(
                    LayoutErrorKind.AMBIGUOUS_DEDENT,
                    f"line starts at column {token.column}, left of the module anchor {anchor}",
                    token,
                )
                self._start_item(frame, index)
                return
            popped = self._pop(index)
            popped_anchor = popped.anchor
            if popped.block.kind is BlockKind.LET:
                self._top().pending_in += 1

    def _open_pending(self, index: int, token: Token) -> str:
        """Open the block announced by a layout keyword at this token."""
        kind, keyword = self._pending
        self._pending = None
        if token.type is TokenType.PUNCTUATION and token.text == "{":
            self._push(kind, keyword, anchor=token.column, explicit=True, closer="}",
                       hanging=token.line == keyword.end_line)
            return "consumed"
        if token.line != keyword.end_line and token.column <= self._enclosing_anchor():
            # Nothing indented under the keyword: an empty block
            self._push(kind, keyword, anchor=token.column)
            self._pop(index)
            return "empty"
        frame = self._push(kind, keyword, anchor=token.column,
                           hanging=token.line == keyword.end_line)
        self._start_item(frame, index)
        return "anchored"

    def _current_item_first(self) -> Optional[Token]:
        frame = self._top()
        if frame.item_start is None:
            return None
        return self.tokens[frame.item_start]

    def _handle_keyword(self, index: int, token: Token) -> None:
        text = token.text
        if text == "in":
            self._close_let(index)
            return
        kind = LAYOUT_KEYWORDS.get(text)
        if kind is BlockKind.WHERE:
            first = self._current_item_first()
            if first is not None and first.text == "module" and len(self._stack) == 1:
                # module M (...) where: the body is the module block itself
                return
            if first is not None and first.text in ("class", "instance"):
                kind = BlockKind.INSTANCE
        if text == "case" and index > 0:
            prev = self.tokens[index - 1]
            if prev.text == "\\" and prev.end_line == token.line and prev.end_column == token.column:
                kind = BlockKind.CASE  # \case
        if kind is not None:
            self._pending = (kind, token)

    def _close_let(self, index: int) -> None:
        top = self._top()
        if top.pending_in:
            top.pending_in -= 1
            return
        for depth in range(len(self._stack) - 1, 0, -1):
            frame = self._stack[depth]
            if frame.explicit:
                return
            if frame.block.kind is BlockKind.LET:
                while len(self._stack) > depth:
                    self._pop(index)
                return

    def _is_export_list_open(self, index: int) -> bool:
        if self._has_export_list or len(self._stack) != 1 or index < 2:
            return False
        keyword, name = self.tokens[index - 2], self.tokens[index - 1]
        return (keyword.type is TokenType.KEYWORD and keyword.text == "module"
                and name.type is TokenType.IDENTIFIER)

    def _open_bracket(self, index: int, token: Token) -> None:
        text = token.text
        hanging = index > 0 and self.tokens[index - 1].end_line == token.line
        if text == "(":
            if self._is_export_list_open(index):
                self._has_export_list = True
                self._push(BlockKind.LIST, token, anchor=token.column, explicit=True,
                           closer=")", hanging=hanging, export_list=True)
            else:
                self._stack.append(_Frame(None, closer=")", explicit=True))
        elif text == "[":
            self._push(BlockKind.LIST, token, anchor=token.column, explicit=True,
                       closer="]", hanging=hanging)
        else:
            self._push(BlockKind.RECORD, token, anchor=token.column, explicit=True,
                       closer="}", hanging=hanging)

    def _close_bracket(self, index: int, token: Token) -> None:
        for depth in range(len(self._stack) - 1, 0, -1):
            if self._stack[depth].closer == token.text:
                break
        else:
            self._error(LayoutErrorKind.UNMATCHED_BRACKET,
                        f"'{token.text}' has no matching opening bracket", token)
            return
        while len(self._stack) - 1 > depth:
            self._pop(index)
        self._pop(index + 1, item_end=index)

    def _separate(self, index: int) -> None:
        """A comma ends the current item of the innermost explicit block."""
        for depth in range(len(self._stack) - 1, 0, -1):
            frame = self._stack[depth]
            if frame.explicit:
                while len(self._stack) - 1 > depth:
                    self._pop(index)
                if frame.block is not None:
                    self._close_item(frame, index)
                    frame.pending_item = True
                return

    def _semicolon(self, index: int) -> None:
        frame = self._top()
        if frame.block is not None:
            self._close_item(frame, index)
            frame.pending_item = True

    def _handle_token(self, index: int, token: Token) -> None:
        if token.type is TokenType.KEYWORD:
            self._handle_keyword(index, token)
            return
        if token.type is not TokenType.PUNCTUATION:
            return
        text = token.text
        if text in BRACKETS:
            self._open_bracket(index, token)
        elif text in BRACKETS.values():
            self._close_bracket(index, token)
        elif text == ",":
            self._separate(index)
        elif text == ";":
            self._semicolon(index)

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def _document_end(self) -> Tuple[int, int]:
        if not self.lines:
            return (1, 1)
        last = self.lines[-1].rstrip("\r")
        return (len(self.lines), len(last) + 1)

    def _is_blank(self, line: int) -> bool:
        return 1 <= line <= len(self.lines) and not self.lines[line - 1].strip()

    def _attach_import_groups(self, root: LayoutBlock) -> None:
        """Group consecutive imports not separated by blank lines."""
        groups: List[List[LayoutItem]] = []
        previous: Optional[LayoutItem] = None
        for item in root.items:
            if not item.is_import:
                previous = None
                continue
            adjacent = previous is not None and not any(
                self._is_blank(line) for line in range(previous.end_line + 1, item.line)
            )
            if adjacent:
                groups[-1].append(item)
            else:
                groups.append([item])
            previous = item
        for items in groups:
            first, last = items[0], items[-1]
            group = LayoutBlock(
                kind=BlockKind.IMPORT_GROUP,
                anchor_column=first.column,
                start_line=first.line,
                end_line=last.end_line,
                start_column=first.column,
                end_column=last.tokens[-1].end_column,
                parent=root,
                items=list(items),
            )
            # Blocks opened on the import lines belong to the group
            start = (group.start_line, group.start_column)
            end = (group.end_line, group.end_column)
            inner = [child for child in root.children
                     if start <= (child.start_line, child.start_column) <= end]
            for child in inner:
                root.children.remove(child)
                child.parent = group
                end = max(end, (child.end_line, child.end_column))
            group.children = inner
            group.end_line, group.end_column = end
            root.children.append(group)
        root.children.sort(key=lambda block: (block.start_line, block.start_column))

    def build(self) -> LayoutResult:
        tokens = self.tokens
        end_line, end_column = self._document_end()
        root = LayoutBlock(
            kind=BlockKind.MODULE,
            anchor_column=tokens[0].column if tokens else 1,
            start_line=1,
            end_line=end_line,
            start_column=1,
            end_column=end_column,
        )
        root_frame = _Frame(root)
        self._stack = [root_frame]
        if tokens:
            root_frame.item_start = 0

        prev: Optional[Token] = None
        for index, token in enumerate(tokens):
            anchored = False
            if self._pending is not None:
                outcome = self._open_pending(index, token)
                if outcome == "consumed":
                    prev = token
                    continue
                anchored = outcome == "anchored"
            if not anchored and prev is not None and token.line != prev.end_line:
                self._handle_line_start(index, token)
            top = self._top()
            if top.pending_item and token.text != top.closer:
                self._start_item(top, index)
            self._handle_token(index, token)
            prev = token

        while len(self._stack) > 1:
            self._pop(len(tokens))
        self._close_item(root_frame, len(tokens))
        self._attach_import_groups(root)
        logger.debug("layout: %d block(s), %d error(s)",
                     sum(1 for _ in root.walk()), len(self.errors))
        return LayoutResult(root, self.errors)


def build_layout(spans: Iterable[Span]) -> LayoutResult:
    """Build the layout tree for a scanned document."""
    return LayoutTracker(spans).build()
