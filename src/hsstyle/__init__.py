"""
hsstyle - Style checker for Haskell source

Scans source text into classified spans, reconstructs the indentation-based
block structure and evaluates a declarative catalogue of style rules.

Usage:
    from hsstyle import check_source
    result = check_source(text)
    for violation in result.violations:
        print(violation)
"""

__version__ = "0.3.0"

from hsstyle.engine.pipeline import CheckResult, check_file, check_files, check_source

__all__ = [
    "__version__",
    "CheckResult",
    "check_file",
    "check_files",
    "check_source",
]
