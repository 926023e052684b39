"""
Rule Catalogue

Loads the ordered table of rule definitions from declarative entries:

    rules:
      - id: max-line-length
        family: max-line-length
        severity: warning
        options:
          n: 100

Every entry is validated before any document is checked. A malformed entry
raises ConfigError; nothing is partially loaded. The resulting catalogue is
immutable and safe to share between worker threads.
"""

import logging
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import yaml

from hsstyle.diagnostics import Severity
from hsstyle.rules import checks  # noqa: F401  (registers the built-in families)
from hsstyle.rules.registry import RuleDefinition, RuleMode, freeze_option, get_family

logger = logging.getLogger(__name__)

DEFAULT_RULES_FILE = Path(__file__).parent / "default_rules.yaml"

ENTRY_KEYS = frozenset({"id", "family", "severity", "applies_to", "options"})


class ConfigError(Exception):
    """The rule catalogue or checker configuration is malformed."""


class RuleCatalogue:
    """
    Immutable, ordered collection of rule definitions.

    Iteration yields definitions in catalogue order, which is also the order
    rules run in within each evaluation pass.
    """

    def __init__(self, definitions: Sequence[RuleDefinition], source: Optional[str] = None):
        self._definitions: Tuple[RuleDefinition, ...] = tuple(definitions)
        self._by_id: Mapping[str, RuleDefinition] = MappingProxyType(
            {definition.id: definition for definition in self._definitions}
        )
        if len(self._by_id) != len(self._definitions):
            seen = set()
            for definition in self._definitions:
                if definition.id in seen:
                    raise ConfigError(f"duplicate rule id {definition.id!r}")
                seen.add(definition.id)
        self.source = source

    def __iter__(self) -> Iterator[RuleDefinition]:
        return iter(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def __contains__(self, rule_id: str) -> bool:
        return rule_id in self._by_id

    def __getitem__(self, rule_id: str) -> RuleDefinition:
        return self._by_id[rule_id]

    def get(self, rule_id: str) -> Optional[RuleDefinition]:
        return self._by_id.get(rule_id)

    @property
    def ids(self) -> List[str]:
        return [definition.id for definition in self._definitions]

    def by_mode(self, mode: RuleMode) -> List[RuleDefinition]:
        return [definition for definition in self._definitions if definition.mode is mode]

    def to_entries(self) -> List[Dict[str, Any]]:
        return [definition.to_entry() for definition in self._definitions]

    def __repr__(self):
        return f"RuleCatalogue({len(self)} rules, source={self.source!r})"


# ============================================================================
# LOADING
# ============================================================================

def _where(index: int, entry: Any) -> str:
    if isinstance(entry, dict) and isinstance(entry.get("id"), str):
        return f"rule {entry['id']!r}"
    return f"rule entry #{index + 1}"


def _check_option_type(where: str, name: str, value: Any, default: Any) -> None:
    if isinstance(default, bool):
        ok = isinstance(value, bool)
    elif isinstance(default, int):
        ok = isinstance(value, int) and not isinstance(value, bool)
    elif isinstance(default, (list, tuple)):
        ok = isinstance(value, (list, tuple)) and all(isinstance(v, str) for v in value)
    else:
        ok = isinstance(value, type(default))
    if not ok:
        expected = "list" if isinstance(default, (list, tuple)) else type(default).__name__
        raise ConfigError(f"{where}: option {name!r} must be a {expected}, got {value!r}")


def _parse_definition(index: int, entry: Any) -> RuleDefinition:
    where = _where(index, entry)
    if not isinstance(entry, dict):
        raise ConfigError(f"{where}: expected a mapping, got {type(entry).__name__}")

    unknown = set(entry) - ENTRY_KEYS
    if unknown:
        raise ConfigError(f"{where}: unknown key(s) {', '.join(sorted(map(str, unknown)))}")

    rule_id = entry.get("id")
    if not isinstance(rule_id, str) or not rule_id:
        raise ConfigError(f"{where}: 'id' must be a non-empty string")

    family_name = entry.get("family", rule_id)
    family = get_family(family_name) if isinstance(family_name, str) else None
    if family is None:
        raise ConfigError(f"{where}: unknown rule family {family_name!r}")

    try:
        severity = Severity.parse(entry.get("severity", "error"))
    except ValueError as e:
        raise ConfigError(f"{where}: {e}") from e

    applies_to = family.applies_to
    if entry.get("applies_to") is not None:
        names = entry["applies_to"]
        if isinstance(names, str):
            names = [names]
        if not isinstance(names, list) or not names:
            raise ConfigError(f"{where}: 'applies_to' must be a non-empty list of kinds")
        kind_enum = family.mode.kind_enum
        kinds = []
        for name in names:
            kind = kind_enum.lookup(name) if isinstance(name, str) else None
            if kind is None:
                raise ConfigError(
                    f"{where}: {name!r} is not a valid kind for a {family.mode.value} rule"
                )
            kinds.append(kind)
        applies_to = frozenset(kinds)

    raw_options = entry.get("options") or {}
    if not isinstance(raw_options, dict):
        raise ConfigError(f"{where}: 'options' must be a mapping")
    options: Dict[str, Any] = dict(family.defaults)
    for name, value in raw_options.items():
        if name not in family.defaults:
            raise ConfigError(f"{where}: unknown option {name!r} for family {family.name!r}")
        _check_option_type(where, name, value, family.defaults[name])
        options[name] = value
    options = {name: freeze_option(value) for name, value in options.items()}
    if family.validate is not None:
        try:
            family.validate(options)
        except ValueError as e:
            raise ConfigError(f"{where}: {e}") from e

    return RuleDefinition(
        id=rule_id,
        family=family,
        severity=severity,
        applies_to=applies_to,
        options=MappingProxyType(options),
    )


def load_catalogue(entries: Union[Sequence[Any], Mapping[str, Any]],
                   source: Optional[str] = None) -> RuleCatalogue:
    """
    Build a catalogue from entries (a list, or a mapping with a 'rules' list).

    Raises ConfigError on the first malformed entry.
    """
    if isinstance(entries, Mapping):
        entries = entries.get("rules")
    if not isinstance(entries, (list, tuple)):
        raise ConfigError("rule catalogue must be a list of rule entries")
    definitions = [_parse_definition(index, entry) for index, entry in enumerate(entries)]
    catalogue = RuleCatalogue(definitions, source=source)
    logger.debug("loaded %d rule(s) from %s", len(catalogue), source or "<entries>")
    return catalogue


def load_catalogue_file(path: Union[str, Path]) -> RuleCatalogue:
    """Load a catalogue from a YAML file."""
    path = Path(path)
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"cannot read rules file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"rules file {path} is not valid YAML: {e}") from e
    if data is None:
        raise ConfigError(f"rules file {path} is empty")
    return load_catalogue(data, source=str(path))


@lru_cache(maxsize=1)
def default_catalogue() -> RuleCatalogue:
    """The shipped catalogue, loaded once per process."""
    return load_catalogue_file(DEFAULT_RULES_FILE)
