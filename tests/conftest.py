"""
Pytest configuration and shared fixtures.
"""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

# Import hsstyle modules
from hsstyle.engine.pipeline import check_source
from hsstyle.layout import build_layout
from hsstyle.rules.catalogue import default_catalogue, load_catalogue
from hsstyle.scanner import scan


# =============================================================================
# PATH FIXTURES
# =============================================================================

@pytest.fixture
def fixtures_dir():
    """Path to test fixtures directory."""
    return Path(__file__).parent / "fixtures"


@pytest.fixture
def clean_source(fixtures_dir):
    """A module that satisfies every default rule."""
    return (fixtures_dir / "clean.hs").read_text(encoding="utf-8")


@pytest.fixture
def messy_source(fixtures_dir):
    """A module with violations of most default rules."""
    return (fixtures_dir / "messy.hs").read_text(encoding="utf-8")


# =============================================================================
# CATALOGUE FIXTURES
# =============================================================================

@pytest.fixture
def default_rules():
    """The shipped rule catalogue."""
    return default_catalogue()


@pytest.fixture
def run_rules():
    """
    Check source against an ad-hoc catalogue.

    Usage:
        violations = run_rules("foo = 1 \\n", {"id": "no-trailing-whitespace"})
    """
    def run(source, *entries):
        catalogue = load_catalogue(list(entries))
        return check_source(source, catalogue).violations
    return run


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def layout_of(source: str):
    """Scan and lay out source, return (root, layout_errors)."""
    spans, _ = scan(source)
    return build_layout(spans)


def rule_ids(violations) -> list:
    """Rule ids of violations, in report order."""
    return [v.rule_id for v in violations]


def positions(violations, rule_id: str) -> list:
    """(line, col) of every violation of one rule."""
    return [(v.line, v.col) for v in violations if v.rule_id == rule_id]
