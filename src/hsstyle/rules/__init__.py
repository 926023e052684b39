"""
hsstyle.rules - Rule families and the rule catalogue
"""

from hsstyle.rules.registry import (
    RuleDefinition,
    RuleFamily,
    RuleMode,
    families,
    get_family,
    rule_family,
)
from hsstyle.rules.catalogue import (
    ConfigError,
    RuleCatalogue,
    default_catalogue,
    load_catalogue,
    load_catalogue_file,
)

__all__ = [
    "RuleDefinition",
    "RuleFamily",
    "RuleMode",
    "families",
    "get_family",
    "rule_family",
    "ConfigError",
    "RuleCatalogue",
    "default_catalogue",
    "load_catalogue",
    "load_catalogue_file",
]
