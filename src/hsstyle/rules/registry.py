"""
Rule family registry.

A rule family is a named predicate plus the defaults it ships with (mode,
the kinds it applies to by default, its options). Catalogue entries
instantiate families into RuleDefinitions; several definitions may share a
family with different options or severities.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from hsstyle.diagnostics import Severity, Violation
from hsstyle.layout.blocks import BlockKind
from hsstyle.scanner.lexer import SpanKind


class RuleMode(Enum):
    """What a rule is evaluated against."""
    LINE = "line"       # each physical line
    SPAN = "span"       # each scanned span
    BLOCK = "block"     # each layout block, pre-order

    @property
    def kind_enum(self):
        """The enum whose members are valid applies_to kinds for this mode."""
        return BlockKind if self is RuleMode.BLOCK else SpanKind


@dataclass(frozen=True)
class RuleFamily:
    """A registered predicate with its default settings."""
    name: str
    mode: RuleMode
    check: Callable
    applies_to: FrozenSet[Any]
    defaults: Mapping[str, Any]
    description: str = ""
    validate: Optional[Callable[[Mapping[str, Any]], None]] = None


_FAMILIES: Dict[str, RuleFamily] = {}


def rule_family(name: str, mode: RuleMode, applies_to: Iterable[Any],
                defaults: Optional[Dict[str, Any]] = None,
                validate: Optional[Callable[[Mapping[str, Any]], None]] = None):
    """
    Register a check function as a rule family.

    The check is called as check(subject, document, rule) and yields
    Violations. subject is a LineView, a Span or a LayoutBlock depending on
    the mode.
    """
    def decorator(func: Callable) -> Callable:
        if name in _FAMILIES:
            raise ValueError(f"rule family {name!r} is already registered")
        doc = (func.__doc__ or "").strip().splitlines()
        _FAMILIES[name] = RuleFamily(
            name=name,
            mode=mode,
            check=func,
            applies_to=frozenset(applies_to),
            defaults=MappingProxyType(dict(defaults or {})),
            description=doc[0] if doc else "",
            validate=validate,
        )
        return func
    return decorator


def get_family(name: str) -> Optional[RuleFamily]:
    return _FAMILIES.get(name)


def families() -> List[RuleFamily]:
    """All registered families, in registration order."""
    return list(_FAMILIES.values())


def freeze_option(value: Any) -> Any:
    """Lists become tuples so definitions stay immutable."""
    if isinstance(value, (list, tuple)):
        return tuple(freeze_option(v) for v in value)
    return value


@dataclass(frozen=True)
class RuleDefinition:
    """One catalogue entry: a family instantiated with options and a severity."""
    id: str
    family: RuleFamily
    severity: Severity
    applies_to: FrozenSet[Any]
    options: Mapping[str, Any]

    @property
    def mode(self) -> RuleMode:
        return self.family.mode

    def applies(self, kind) -> bool:
        return kind in self.applies_to

    def option(self, name: str) -> Any:
        return self.options[name]

    def violation(self, line: int, col: int, message: str,
                  end_line: Optional[int] = None, end_col: Optional[int] = None) -> Violation:
        """Build a Violation attributed to this rule."""
        if end_line is None:
            end_line = line
        if end_col is None:
            end_col = col + 1 if end_line == line else 1
        return Violation(
            rule_id=self.id,
            severity=self.severity,
            line=line,
            col=col,
            end_line=end_line,
            end_col=end_col,
            message=message,
        )

    def to_entry(self) -> Dict[str, Any]:
        """The catalogue entry that would load back into this definition."""
        return {
            "id": self.id,
            "family": self.family.name,
            "severity": self.severity.value,
            "applies_to": list(self.sorted_kinds()),
            "options": {k: list(v) if isinstance(v, tuple) else v for k, v in self.options.items()},
        }

    def sorted_kinds(self) -> Tuple[str, ...]:
        return tuple(sorted(kind.value for kind in self.applies_to))
