"""
Checker Configuration

Loads configuration from a YAML file or environment variables. The rule
catalogue itself lives in its own file (rules_file); this configuration
selects it and tunes how files are collected and checked.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, List, Optional

import yaml

from hsstyle.rules.catalogue import (
    ConfigError,
    RuleCatalogue,
    default_catalogue,
    load_catalogue,
    load_catalogue_file,
)

logger = logging.getLogger(__name__)


# Default configuration file locations (checked in order)
CONFIG_SEARCH_PATHS = [
    Path(".hsstyle.yaml"),
    Path.home() / ".hsstyle" / "config.yaml",
]


DEFAULT_CONFIG = {
    "rules_file": None,             # None: the shipped default catalogue
    "workers": 4,                   # Threads used by `hsstyle check`
    "extensions": [".hs", ".hs-boot"],
    "exclude_dirs": [".git", ".stack-work", "dist-newstyle", "dist", "node_modules"],
    "max_line_length": None,        # Overrides n of every max-line-length rule
}


def _check_value(key: str, value: Any) -> Optional[str]:
    """Describe what is wrong with a configuration value, or None."""
    if key == "rules_file":
        if value is not None and not isinstance(value, str):
            return "must be a path"
    elif key == "workers":
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            return "must be a positive integer"
    elif key == "max_line_length":
        if value is not None and (isinstance(value, bool) or not isinstance(value, int) or value < 1):
            return "must be a positive integer"
    elif key in ("extensions", "exclude_dirs"):
        if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
            return "must be a list of strings"
    return None


class CheckerConfig:
    """Configuration for the style checker."""

    def __init__(self, config_path: Optional[Path] = None):
        self._config: Dict[str, Any] = dict(DEFAULT_CONFIG)
        self._config_path: Optional[Path] = None

        # Load from file if found
        self._load_config(config_path)

        # Override with environment variables
        self._apply_env_overrides()

    def _load_config(self, explicit_path: Optional[Path] = None) -> None:
        """Load configuration from YAML file."""
        if explicit_path is not None:
            explicit_path = Path(explicit_path)
            if not explicit_path.exists():
                raise ConfigError(f"config file {explicit_path} does not exist")
        search_paths = [explicit_path] if explicit_path else CONFIG_SEARCH_PATHS

        for config_path in search_paths:
            if config_path and config_path.exists():
                try:
                    with open(config_path, 'r', encoding='utf-8') as f:
                        user_config = yaml.safe_load(f) or {}
                except (OSError, yaml.YAMLError) as e:
                    if explicit_path:
                        raise ConfigError(f"failed to load config from {config_path}: {e}") from e
                    logger.warning("Failed to load config from %s: %s", config_path, e)
                    continue
                if not isinstance(user_config, dict):
                    raise ConfigError(f"config file {config_path} must contain a mapping")
                unknown = set(user_config) - set(DEFAULT_CONFIG)
                if unknown:
                    raise ConfigError(
                        f"unknown key(s) in {config_path}: {', '.join(sorted(map(str, unknown)))}"
                    )
                for key, value in user_config.items():
                    problem = _check_value(key, value)
                    if problem:
                        raise ConfigError(f"{key} in {config_path} {problem}")
                self._config.update(user_config)
                self._config_path = config_path
                return

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides."""
        env_mappings = {
            "HSSTYLE_RULES": ("rules_file", str),
            "HSSTYLE_WORKERS": ("workers", int),
            "HSSTYLE_MAX_LINE_LENGTH": ("max_line_length", int),
        }

        for env_var, (config_key, convert) in env_mappings.items():
            if env_var in os.environ:
                try:
                    self._config[config_key] = convert(os.environ[env_var])
                except ValueError as e:
                    raise ConfigError(f"{env_var} is not a valid value: {e}") from e
                problem = _check_value(config_key, self._config[config_key])
                if problem:
                    raise ConfigError(f"{env_var} {problem}")

    @property
    def config_path(self) -> Optional[Path]:
        """Path to loaded config file, or None if using defaults."""
        return self._config_path

    @property
    def rules_file(self) -> Optional[Path]:
        value = self._config.get("rules_file")
        return Path(value).expanduser() if value else None

    @property
    def workers(self) -> int:
        """Worker threads for checking files."""
        return max(1, int(self._config.get("workers") or 1))

    @property
    def extensions(self) -> List[str]:
        return list(self._config.get("extensions") or [])

    @property
    def exclude_dirs(self) -> List[str]:
        return list(self._config.get("exclude_dirs") or [])

    @property
    def max_line_length(self) -> Optional[int]:
        value = self._config.get("max_line_length")
        return int(value) if value is not None else None

    def set(self, key: str, value: Any) -> None:
        """Override a setting (used for command line flags)."""
        if key not in DEFAULT_CONFIG:
            raise ConfigError(f"unknown configuration key {key!r}")
        problem = _check_value(key, value)
        if problem:
            raise ConfigError(f"{key} {problem}")
        self._config[key] = value

    def load_catalogue(self) -> RuleCatalogue:
        """The catalogue selected by this configuration."""
        if self.rules_file is not None:
            catalogue = load_catalogue_file(self.rules_file)
        else:
            catalogue = default_catalogue()
        limit = self.max_line_length
        if limit is None:
            return catalogue
        entries = catalogue.to_entries()
        for entry in entries:
            if entry["family"] == "max-line-length":
                entry["options"]["n"] = limit
        return load_catalogue(entries, source=catalogue.source)

    def iter_source_files(self, paths: Iterable[str]) -> Iterator[Path]:
        """Expand files and directories into the source files to check."""
        excluded = set(self.exclude_dirs)
        extensions = tuple(self.extensions)
        for raw in paths:
            path = Path(raw)
            if path.is_dir():
                for candidate in sorted(path.rglob("*")):
                    if any(part in excluded for part in candidate.relative_to(path).parts[:-1]):
                        continue
                    if candidate.is_file() and candidate.name.endswith(extensions):
                        yield candidate
            else:
                yield path

    def to_dict(self) -> Dict[str, Any]:
        """Export current configuration as dict."""
        return {
            "rules_file": str(self.rules_file) if self.rules_file else None,
            "workers": self.workers,
            "extensions": self.extensions,
            "exclude_dirs": self.exclude_dirs,
            "max_line_length": self.max_line_length,
            "config_file": str(self._config_path) if self._config_path else None,
        }
