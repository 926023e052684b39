"""
Layout tree types.

A LayoutBlock is a structural region inferred from indentation (or from
explicit brackets). Each block keeps its items: the sibling entries that
start at the block's anchor column (declarations, do statements, case
alternatives, list elements).
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

from hsstyle.scanner.tokens import Token, TokenType


class BlockKind(Enum):
    """Types of layout blocks."""
    MODULE = "Module"
    WHERE = "Where"
    DO = "Do"
    CASE = "Case"
    LET = "Let"
    RECORD = "Record"
    INSTANCE = "Instance"
    LIST = "List"
    IMPORT_GROUP = "Import-group"

    @classmethod
    def lookup(cls, name: str) -> Optional["BlockKind"]:
        """Find a kind by its value ("Import-group") or name ("IMPORT_GROUP")."""
        for kind in cls:
            if name in (kind.value, kind.name):
                return kind
        return None


# Blocks whose items are bindings (declarations, equations, methods)
BINDING_CONTEXTS = frozenset({
    BlockKind.MODULE,
    BlockKind.WHERE,
    BlockKind.LET,
    BlockKind.INSTANCE,
})

_OPENERS = {"(": ")", "[": "]", "{": "}"}


@dataclass(eq=False)
class LayoutItem:
    """One sibling entry of a block: the tokens from its start to the next item."""
    tokens: List[Token]
    end_line: int

    @property
    def first(self) -> Token:
        return self.tokens[0]

    @property
    def line(self) -> int:
        return self.tokens[0].line

    @property
    def column(self) -> int:
        return self.tokens[0].column

    @property
    def keyword(self) -> Optional[str]:
        """The leading keyword (import, data, class, ...) if any."""
        if self.first.type is TokenType.KEYWORD:
            return self.first.text
        return None

    @property
    def is_import(self) -> bool:
        return self.keyword == "import"

    def top_level_tokens(self) -> Iterator[Token]:
        """Tokens outside any bracket of this item."""
        depth = 0
        for token in self.tokens:
            if token.type is TokenType.PUNCTUATION:
                if token.text in _OPENERS:
                    depth += 1
                    continue
                if token.text in _OPENERS.values():
                    depth = max(depth - 1, 0)
                    continue
            if depth == 0:
                yield token

    @property
    def is_signature(self) -> bool:
        """True for `name :: Type` items (a :: before any = or guard)."""
        if self.keyword is not None:
            return False
        for token in self.top_level_tokens():
            if token.text == "::":
                return True
            if token.text in ("=", "|"):
                return False
        return False

    @property
    def signature_names(self) -> List[Token]:
        """Name tokens declared by a signature (foo, bar :: Int)."""
        names = []
        if not self.is_signature:
            return names
        for token in self.tokens:
            if token.text == "::":
                break
            if token.type in (TokenType.IDENTIFIER, TokenType.OPERATOR):
                names.append(token)
        return names

    @property
    def binder(self) -> Optional[str]:
        """The name this item defines, or None for non-binding items."""
        tokens = self.tokens
        first = tokens[0]
        if first.type is TokenType.IDENTIFIER and not first.is_qualified:
            if len(tokens) > 2 and tokens[1].text == "`" and tokens[2].type is TokenType.IDENTIFIER:
                return tokens[2].text
            # x <+> y = ...; `!` is a bang pattern, not an operator definition
            if len(tokens) > 1 and tokens[1].type is TokenType.OPERATOR and tokens[1].text != "!":
                return tokens[1].text
            return first.text
        if (first.text == "(" and len(tokens) > 2 and tokens[2].text == ")"
                and tokens[1].type in (TokenType.OPERATOR, TokenType.RESERVED_OP)):
            return tokens[1].text
        return None


@dataclass(eq=False)
class LayoutBlock:
    """
    A nested structural region of the document.

    Start positions are the opening keyword or bracket; end positions are
    the end of the last token inside the block. anchor_column is the column
    every sibling item of this block starts at.
    """
    kind: BlockKind
    anchor_column: int
    start_line: int
    end_line: int
    start_column: int = 1
    end_column: int = 1
    parent: Optional["LayoutBlock"] = field(default=None, repr=False)
    children: List["LayoutBlock"] = field(default_factory=list, repr=False)
    items: List[LayoutItem] = field(default_factory=list, repr=False)
    explicit: bool = False      # delimited by brackets/braces, not indentation
    hanging: bool = False       # first item on the same line as the opener
    export_list: bool = False   # the module header's export list

    @property
    def is_leaf(self) -> bool:
        return not self.children

    @property
    def depth(self) -> int:
        depth = 0
        block = self.parent
        while block is not None:
            depth += 1
            block = block.parent
        return depth

    def walk(self) -> Iterator["LayoutBlock"]:
        """Depth-first, pre-order traversal of this block and its descendants."""
        stack = [self]
        while stack:
            block = stack.pop()
            yield block
            stack.extend(reversed(block.children))

    def contains_line(self, line: int) -> bool:
        return self.start_line <= line <= self.end_line

    def innermost(self, line: int) -> Optional["LayoutBlock"]:
        """Deepest block containing the line (the last matching sibling wins)."""
        if not self.contains_line(line):
            return None
        found = self
        for child in self.children:
            inner = child.innermost(line)
            if inner is not None:
                found = inner
        return found

    def enclosing(self, kinds) -> Optional["LayoutBlock"]:
        """This block or the nearest ancestor whose kind is in kinds."""
        block = self
        while block is not None and block.kind not in kinds:
            block = block.parent
        return block

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "anchor_column": self.anchor_column,
            "start_line": self.start_line,
            "start_column": self.start_column,
            "end_line": self.end_line,
            "end_column": self.end_column,
            "explicit": self.explicit,
            "hanging": self.hanging,
            "items": [[item.line, item.column, item.end_line] for item in self.items],
            "children": [child.to_dict() for child in self.children],
        }

    def __repr__(self):
        return (f"LayoutBlock({self.kind.value}, anchor={self.anchor_column}, "
                f"L{self.start_line}-L{self.end_line})")
