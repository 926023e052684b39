"""
Style Checks

Predicates for every rule family. Each check receives its subject (a
LineView, a Span or a LayoutBlock), the read-only Document and the
RuleDefinition carrying options and severity, and yields Violations.

Checks are pure: they never mutate the document, and a check that raises is
isolated by the evaluator.
"""

import re
from typing import Iterator, List, Mapping, Optional, Set

from hsstyle.diagnostics import Violation
from hsstyle.engine.document import Document, LineView
from hsstyle.layout.blocks import BINDING_CONTEXTS, BlockKind, LayoutBlock, LayoutItem
from hsstyle.rules.registry import RuleDefinition, RuleMode, rule_family
from hsstyle.scanner.lexer import COMMENT_KINDS, LITERAL_KINDS, Span, SpanKind
from hsstyle.scanner.tokens import KEYWORDS, Token, TokenType

ALL_SPAN_KINDS = frozenset(SpanKind)


# ============================================================================
# OPTION VALIDATION
# ============================================================================

def _positive(*names: str):
    def validate(options: Mapping) -> None:
        for name in names:
            if options[name] < 1:
                raise ValueError(f"option {name!r} must be a positive integer, got {options[name]}")
    return validate


def _non_negative(*names: str):
    def validate(options: Mapping) -> None:
        for name in names:
            if options[name] < 0:
                raise ValueError(f"option {name!r} must not be negative, got {options[name]}")
    return validate


def _validate_indent_step(options: Mapping) -> None:
    _positive("k", "exception_step")(options)
    for name in options["exceptions"]:
        if BlockKind.lookup(name) is None:
            raise ValueError(f"unknown block kind {name!r} in 'exceptions'")


CASE_PATTERNS = {
    "lowerCamelCase": re.compile(r"^[a-z][a-zA-Z0-9]*$"),
    "UpperCamelCase": re.compile(r"^[A-Z][a-zA-Z0-9]*$"),
    "snake_case": re.compile(r"^[a-z][a-z0-9_]*$"),
}

CAMEL_STYLES = frozenset({"lowerCamelCase", "UpperCamelCase"})


def _validate_naming(options: Mapping) -> None:
    for name in ("value", "type"):
        if options[name] not in CASE_PATTERNS:
            known = ", ".join(sorted(CASE_PATTERNS))
            raise ValueError(f"option {name!r} must be one of {known}, got {options[name]!r}")


# ============================================================================
# LINE RULES
# ============================================================================

@rule_family("max-line-length", RuleMode.LINE, ALL_SPAN_KINDS,
             defaults={"n": 80}, validate=_positive("n"))
def check_max_line_length(line: LineView, doc: Document, rule: RuleDefinition) -> Iterator[Violation]:
    """Physical lines longer than n characters.

    The line is reported once, at the first column past n that lies in one
    of the rule's kinds, or else at the start of the last such segment.
    """
    limit = rule.option("n")
    length = len(line.text)
    if length <= limit:
        return
    segments = [s for s in line.segments_of(rule.applies_to) if s.start_col <= length]
    if not segments:
        return
    col = segments[-1].start_col
    for segment in segments:
        if segment.end_col > limit + 1:
            col = max(limit + 1, segment.start_col)
            break
    yield rule.violation(
        line.number, col,
        f"line is {length} characters long, the limit is {limit}",
        end_col=length + 1,
    )


@rule_family("no-trailing-whitespace", RuleMode.LINE, ALL_SPAN_KINDS)
def check_trailing_whitespace(line: LineView, doc: Document, rule: RuleDefinition) -> Iterator[Violation]:
    """Spaces or tabs at the end of a line."""
    stripped = line.text.rstrip(" \t")
    if len(stripped) < len(line.text):
        yield rule.violation(
            line.number, len(stripped) + 1, "trailing whitespace",
            end_col=len(line.text) + 1,
        )


@rule_family("no-tabs", RuleMode.LINE, ALL_SPAN_KINDS - LITERAL_KINDS)
def check_no_tabs(line: LineView, doc: Document, rule: RuleDefinition) -> Iterator[Violation]:
    """Tab characters (reported once per line)."""
    for segment in line.segments_of(rule.applies_to):
        index = line.text.find("\t", segment.start_col - 1, segment.end_col - 1)
        if index >= 0:
            yield rule.violation(line.number, index + 1, "tab character")
            return


LEADING_SEPARATORS = frozenset({"(", "[", "{", ","})


@rule_family("comment-spacing", RuleMode.LINE,
             [SpanKind.LINE_COMMENT, SpanKind.HADDOCK_COMMENT],
             defaults={"min_spaces": 2}, validate=_non_negative("min_spaces"))
def check_comment_spacing(line: LineView, doc: Document, rule: RuleDefinition) -> Iterator[Violation]:
    """End-of-line comments too close to the code they follow."""
    wanted = rule.option("min_spaces")
    for segment in line.segments_of(rule.applies_to):
        start = segment.start_col
        if line.text[start - 1:start + 1] != "--":
            continue
        before = line.text[:start - 1]
        code = before.rstrip()
        if not code or line.kind_at(len(code)) in COMMENT_KINDS:
            continue
        if code.strip() in LEADING_SEPARATORS:
            # ( -- * Section, or , -- ^ field
            continue
        gap = len(before) - len(code)
        if gap < wanted:
            yield rule.violation(
                line.number, start,
                f"comment follows code by {gap} space(s), expected at least {wanted}",
            )


# ============================================================================
# SPAN RULES
# ============================================================================

PRAGMA_NAME_RE = re.compile(r"\{-#\s*([A-Za-z_]+)")
PRAGMA_TARGET_RE = re.compile(
    r"\{-#\s*[A-Za-z_]+\s+"
    r"(?:CONLIKE\s+)?(?:\[\s*~?\s*\d+\s*\]\s*)?(?:CONLIKE\s+)?"
    r"(\(\s*[^)\s]+\s*\)|[^\s:]+)"
)


def pragma_name(span: Span) -> Optional[str]:
    match = PRAGMA_NAME_RE.match(span.text)
    return match.group(1).upper() if match else None


def pragma_target(span: Span) -> Optional[str]:
    """The binding a pragma such as INLINE names ({-# INLINE [1] (<+>) #-} -> <+>)."""
    match = PRAGMA_TARGET_RE.match(span.text)
    if not match:
        return None
    target = match.group(1)
    if target.startswith("("):
        target = target[1:-1].strip()
    if target.endswith("#-}"):
        target = target[:-3]
    return target or None


def _preceding_item(block: LayoutBlock, line: int, col: int) -> Optional[LayoutItem]:
    found = None
    for item in block.items:
        if (item.line, item.column) < (line, col):
            found = item
        else:
            break
    return found


def _pragma_block(doc: Document, span: Span) -> Optional[LayoutBlock]:
    """The binding block a pragma sits in, judged by its column."""
    start = (span.start_line, span.start_col)
    last = None
    for token in doc.tokens:
        if (token.line, token.column) >= start:
            break
        last = token
    if last is not None:
        block = doc.innermost_block(last.line)
        while block is not None:
            if block.kind in BINDING_CONTEXTS and block.anchor_column == span.start_col:
                return block
            block = block.parent
    block = doc.innermost_block(span.start_line)
    return block.enclosing(BINDING_CONTEXTS) if block is not None else None


@rule_family(
    "pragma-placement", RuleMode.SPAN, [SpanKind.PRAGMA],
    defaults={
        "header_pragmas": ["LANGUAGE", "OPTIONS_GHC", "OPTIONS_HADDOCK", "OPTIONS", "INCLUDE"],
        "binding_pragmas": ["INLINE", "NOINLINE", "INLINABLE", "INLINEABLE",
                            "SPECIALIZE", "SPECIALISE"],
    },
)
def check_pragma_placement(span: Span, doc: Document, rule: RuleDefinition) -> Iterator[Violation]:
    """File-header pragmas before the module; binding pragmas after their binding."""
    name = pragma_name(span)
    if name is None:
        return
    if name in rule.option("header_pragmas"):
        first = doc.first_code_token()
        if first is not None and (span.start_line, span.start_col) > (first.line, first.column):
            yield rule.violation(
                span.start_line, span.start_col,
                f"{name} pragma must come before the first line of code",
                end_line=span.end_line, end_col=span.end_col,
            )
        return
    if name not in rule.option("binding_pragmas"):
        return
    target = pragma_target(span)
    if target is None or target in KEYWORDS:
        return
    block = _pragma_block(doc, span)
    if block is None:
        return
    previous = _preceding_item(block, span.start_line, span.start_col)
    if previous is None or previous.binder != target:
        yield rule.violation(
            span.start_line, span.start_col,
            f"{name} pragma for `{target}` must directly follow its definition",
            end_line=span.end_line, end_col=span.end_col,
        )


# ============================================================================
# BLOCK RULES
# ============================================================================

def _line_indent(doc: Document, line: int, fallback: int) -> int:
    tokens = doc.tokens_on_line.get(line)
    return tokens[0].column if tokens else fallback


@rule_family(
    "indent-step", RuleMode.BLOCK,
    [BlockKind.WHERE, BlockKind.DO, BlockKind.CASE, BlockKind.LET, BlockKind.INSTANCE],
    defaults={"k": 2, "exceptions": ["Do", "Case", "Let"], "exception_step": 4},
    validate=_validate_indent_step,
)
def check_indent_step(block: LayoutBlock, doc: Document, rule: RuleDefinition) -> Iterator[Violation]:
    """Block bodies indented by exactly k columns from the line that opens them."""
    if block.explicit or block.hanging or not block.items or block.parent is None:
        return
    step = rule.option("k")
    allowed = {step}
    exceptions = {BlockKind.lookup(name) for name in rule.option("exceptions")}
    if block.kind in exceptions and block.parent.kind in BINDING_CONTEXTS:
        allowed.add(rule.option("exception_step"))
    base = _line_indent(doc, block.start_line, block.parent.anchor_column)
    delta = block.anchor_column - base
    if delta not in allowed:
        first = block.items[0].first
        expected = " or ".join(str(n) for n in sorted(allowed))
        yield rule.violation(
            first.line, first.column,
            f"{block.kind.value} block is indented by {delta} column(s), expected {expected}",
            end_col=first.end_column,
        )


def _is_declaration(item: LayoutItem) -> bool:
    return item.keyword not in ("module", "import")


def _declaration_key(item: LayoutItem) -> Optional[str]:
    if item.is_signature:
        names = item.signature_names
        return names[0].text if names else None
    if item.keyword is None:
        return item.binder
    return None


def _group_declarations(items: List[LayoutItem]) -> List[List[LayoutItem]]:
    """Signature and equations of one binding form one declaration."""
    groups: List[List[LayoutItem]] = []
    previous_key = None
    for item in items:
        key = _declaration_key(item)
        if groups and key is not None and key == previous_key:
            groups[-1].append(item)
        else:
            groups.append([item])
        previous_key = key
    return groups


@rule_family("blank-lines-between-top-level", RuleMode.BLOCK, [BlockKind.MODULE],
             defaults={"exactly": 1}, validate=_non_negative("exactly"))
def check_blank_lines(block: LayoutBlock, doc: Document, rule: RuleDefinition) -> Iterator[Violation]:
    """Exactly n blank lines between top-level declarations."""
    wanted = rule.option("exactly")
    items = [item for item in block.items if _is_declaration(item)]
    groups = _group_declarations(items)
    for index, group in enumerate(groups):
        if index > 0:
            previous = groups[index - 1][-1]
            first = group[0]
            blanks = sum(1 for n in range(previous.end_line + 1, first.line) if doc.is_blank(n))
            if blanks != wanted:
                yield rule.violation(
                    first.line, first.column,
                    f"expected {wanted} blank line(s) before this declaration, found {blanks}",
                    end_col=first.first.end_column,
                )
        for before, after in zip(group, group[1:]):
            if before.is_signature and not after.is_signature:
                if any(doc.is_blank(n) for n in range(before.end_line + 1, after.line)):
                    yield rule.violation(
                        after.line, after.column,
                        "blank line between a type signature and its definition",
                        end_col=after.first.end_column,
                    )


def import_module_token(item: LayoutItem) -> Optional[Token]:
    """The module name of an import (skipping safe, qualified and package names)."""
    for token in item.tokens[1:]:
        if token.type is TokenType.LITERAL or token.text in ("safe", "qualified"):
            continue
        if token.type is TokenType.IDENTIFIER and token.case_class == "upper":
            return token
        return None
    return None


@rule_family("import-order", RuleMode.BLOCK, [BlockKind.IMPORT_GROUP],
             defaults={"default_import": "Prelude"})
def check_import_order(block: LayoutBlock, doc: Document, rule: RuleDefinition) -> Iterator[Violation]:
    """Imports sorted alphabetically within a group, the default import last."""
    default = rule.option("default_import")
    previous: Optional[Token] = None
    default_token: Optional[Token] = None
    for item in block.items:
        token = import_module_token(item)
        if token is None:
            continue
        if token.text == default:
            default_token = token
            continue
        if default_token is not None:
            yield rule.violation(
                default_token.line, default_token.column,
                f"{default} import must be the last import of its group",
                end_col=default_token.end_column,
            )
            default_token = None
        if previous is not None and token.text < previous.text:
            yield rule.violation(
                token.line, token.column,
                f"import of {token.text} is not in alphabetical order (after {previous.text})",
                end_col=token.end_column,
            )
        previous = token


@rule_family("explicit-imports", RuleMode.BLOCK, [BlockKind.IMPORT_GROUP],
             defaults={"exempt": ["Prelude"]})
def check_explicit_imports(block: LayoutBlock, doc: Document, rule: RuleDefinition) -> Iterator[Violation]:
    """Imports are qualified or name what they import."""
    exempt = rule.option("exempt")
    for item in block.items:
        token = import_module_token(item)
        if token is None or token.text in exempt:
            continue
        if any(t.text == "qualified" for t in item.tokens):
            continue
        explicit = False
        for t in item.tokens[item.tokens.index(token) + 1:]:
            if t.text == "hiding":
                break
            if t.text == "(":
                explicit = True
                break
        if not explicit:
            yield rule.violation(
                token.line, token.column,
                f"import of {token.text} should be qualified or list what it imports",
                end_col=token.end_column,
            )


# Naming ------------------------------------------------------------------

ABBREVIATION_RE = re.compile(r"[A-Z]{2,}")


def _type_name(item: LayoutItem) -> Optional[Token]:
    """The name declared by data/newtype/type/class (after any context)."""
    head: List[Token] = []
    for token in item.top_level_tokens():
        if token is item.first:
            continue
        if token.text in ("=", "where", "|", "::", "deriving"):
            break
        head.append(token)
    for index, token in enumerate(head):
        if token.text == "=>":
            head = head[index + 1:]
            break
    for token in head:
        if token.type is TokenType.IDENTIFIER and token.case_class == "upper":
            return token
    return None


def _constructor_names(item: LayoutItem) -> List[Token]:
    tokens = list(item.top_level_tokens())
    names = []
    alternative: Optional[List[Token]] = None
    for token in tokens:
        if token.text == "deriving":
            break
        if token.text in ("=", "|"):
            if alternative:
                names.append(alternative)
            alternative = []
            continue
        if alternative is not None:
            alternative.append(token)
    if alternative:
        names.append(alternative)
    found = []
    for alt in names:
        if alt and alt[0].text == "forall":
            dots = [i for i, t in enumerate(alt) if t.text == "."]
            alt = alt[dots[0] + 1:] if dots else alt
        contexts = [i for i, t in enumerate(alt) if t.text == "=>"]
        if contexts:
            alt = alt[contexts[-1] + 1:]
        for token in alt:
            if token.type is TokenType.IDENTIFIER and token.case_class == "upper":
                found.append(token)
                break
    return found


def _record_fields(item: LayoutItem) -> List[Token]:
    tokens = item.tokens
    fields = []
    for index in range(1, len(tokens) - 1):
        token = tokens[index]
        if token.type is not TokenType.IDENTIFIER or token.case_class != "lower":
            continue
        if tokens[index - 1].text in ("{", ",") and tokens[index + 1].text in ("::", ","):
            fields.append(token)
    return fields


def _binder_token(item: LayoutItem) -> Optional[Token]:
    binder = item.binder
    if binder is None:
        return None
    for token in item.tokens:
        if token.text == binder:
            if token.type is TokenType.IDENTIFIER and token.case_class == "lower":
                return token
            return None
    return None


def binding_sites(item: LayoutItem) -> Iterator[Token]:
    """Name tokens that an item introduces, in source order."""
    keyword = item.keyword
    if item.is_signature:
        for token in item.signature_names:
            if token.type is TokenType.IDENTIFIER and token.text != "pattern":
                yield token
    elif keyword in ("data", "newtype", "type", "class"):
        name = _type_name(item)
        if name is not None:
            yield name
        if keyword in ("data", "newtype"):
            yield from _constructor_names(item)
            yield from _record_fields(item)
    elif keyword is None:
        token = _binder_token(item)
        if token is not None:
            yield token


def naming_problem(name: str, style: str, abbreviations) -> Optional[str]:
    """Describe why a name breaks the style, or None when it conforms."""
    core = name.lstrip("_").rstrip("'")
    if not core:
        return None
    if not CASE_PATTERNS[style].match(core):
        return f"`{name}` is not {style}"
    if style not in CAMEL_STYLES:
        return None
    for match in ABBREVIATION_RE.finditer(core):
        run = match.group(0)
        if match.end() < len(core) and core[match.end()].islower():
            run = run[:-1]  # HTTPServer: the S starts the next word
        if len(run) >= 2 and run not in abbreviations:
            return f"`{name}` spells the abbreviation {run} in capitals; write {run.capitalize()}"
    return None


@rule_family(
    "naming-case", RuleMode.BLOCK,
    [BlockKind.MODULE, BlockKind.WHERE, BlockKind.LET, BlockKind.INSTANCE],
    defaults={
        "value": "lowerCamelCase",
        "type": "UpperCamelCase",
        "abbreviations": ["IO", "ID", "UI", "OK", "DB", "OS"],
    },
    validate=_validate_naming,
)
def check_naming_case(block: LayoutBlock, doc: Document, rule: RuleDefinition) -> Iterator[Violation]:
    """Binding names follow the configured case styles."""
    abbreviations = rule.option("abbreviations")
    seen: Set[str] = set()
    for item in block.items:
        for token in binding_sites(item):
            name = token.name
            if name in seen:
                continue
            seen.add(name)
            style = rule.option("type") if token.case_class == "upper" else rule.option("value")
            problem = naming_problem(name, style, abbreviations)
            if problem is not None:
                yield rule.violation(token.line, token.column, problem, end_col=token.end_column)


# Export lists ---------------------------------------------------------------

def _is_section_heading(span: Span) -> bool:
    body = span.text.lstrip("-").lstrip(" \t")
    return span.text.startswith("--") and body.startswith("*")


@rule_family("export-list-structure", RuleMode.BLOCK, [BlockKind.LIST])
def check_export_list(block: LayoutBlock, doc: Document, rule: RuleDefinition) -> Iterator[Violation]:
    """Export entries and section headings line up in the module header."""
    if not block.export_list or not block.items:
        return
    column = block.items[0].column
    previous_line = block.items[0].line
    for item in block.items[1:]:
        if item.line != previous_line and item.column != column:
            yield rule.violation(
                item.line, item.column,
                f"export entry starts at column {item.column}, expected {column}",
                end_col=item.first.end_column,
            )
        previous_line = item.end_line
    for span in doc.spans_within(block, [SpanKind.HADDOCK_COMMENT]):
        if not _is_section_heading(span):
            continue
        code = [t for t in doc.tokens_on_line.get(span.start_line, [])
                if not (t.text in (",", "(") and t.column < span.start_col)]
        if code:
            yield rule.violation(
                span.start_line, span.start_col,
                "export section heading must be on its own line",
                end_col=span.end_col,
            )
        elif span.start_col != column:
            yield rule.violation(
                span.start_line, span.start_col,
                f"export section heading starts at column {span.start_col}, expected {column}",
                end_col=span.end_col,
            )


# Haddock ------------------------------------------------------------------

def exported_names(root: LayoutBlock) -> Optional[Set[str]]:
    """Names mentioned in the module's export list, None without one."""
    for child in root.children:
        if child.export_list:
            names: Set[str] = set()
            for item in child.items:
                for token in item.tokens:
                    if token.type in (TokenType.IDENTIFIER, TokenType.OPERATOR):
                        names.add(token.name)
            return names
    return None


@rule_family("haddock-top-level", RuleMode.BLOCK, [BlockKind.MODULE],
             defaults={"exported_only": True})
def check_haddock_top_level(block: LayoutBlock, doc: Document, rule: RuleDefinition) -> Iterator[Violation]:
    """Top-level type signatures carry a Haddock comment."""
    exported = exported_names(block) if rule.option("exported_only") else None
    for item in block.items:
        if not item.is_signature:
            continue
        names = [token.text for token in item.signature_names]
        if exported is not None and not any(name in exported for name in names):
            continue
        if not doc.has_haddock_above(item.line):
            label = ", ".join(names)
            yield rule.violation(
                item.line, item.column,
                f"top-level signature for `{label}` has no Haddock comment",
                end_col=item.first.end_column,
            )


