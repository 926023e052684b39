"""
CLI entry point for hsstyle.

Usage:
    hsstyle check <path>...            Check files or directories
    hsstyle scan <file>                Show the spans of a file
    hsstyle layout <file>              Show the layout block tree of a file
    hsstyle rules                      List the loaded rule catalogue

Exit codes:
    0  no error-severity violations
    1  at least one error-severity violation (or an unreadable file)
    2  configuration error
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from hsstyle import __version__
from hsstyle.config import CheckerConfig
from hsstyle.engine.pipeline import check_files
from hsstyle.engine.report import format_summary, format_text, to_json
from hsstyle.layout.tracker import build_layout
from hsstyle.rules.catalogue import ConfigError
from hsstyle.scanner.lexer import scan_file

logger = logging.getLogger(__name__)


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%H:%M:%S',
        stream=sys.stderr,
    )


def _load_config(args) -> CheckerConfig:
    config = CheckerConfig(Path(args.config) if getattr(args, "config", None) else None)
    if getattr(args, "rules", None):
        config.set("rules_file", args.rules)
    if getattr(args, "jobs", None):
        config.set("workers", args.jobs)
    return config


def cmd_check(args):
    """Check files and directories against the rule catalogue."""
    config = _load_config(args)
    catalogue = config.load_catalogue()
    paths = list(config.iter_source_files(args.paths))
    if not paths:
        print("No source files found", file=sys.stderr)
        return 0

    results = check_files(paths, catalogue, workers=config.workers)

    if args.json:
        print(to_json(results))
    else:
        for result in results:
            if result.read_error:
                print(f"{result.filename}: cannot read file: {result.read_error}")
            elif result.violations:
                print(format_text(result.filename, result.violations))
        all_violations = [v for result in results for v in result.violations]
        print(format_summary(len(results), all_violations))

    return 1 if any(result.exit_code for result in results) else 0


def cmd_scan(args):
    """Show the spans and scan errors of a file."""
    spans, errors = scan_file(args.file)
    if args.json:
        print(json.dumps({
            "spans": [span.to_dict() for span in spans],
            "errors": [error.to_dict() for error in errors],
        }, indent=2, ensure_ascii=False))
        return 0
    for span in spans:
        preview = span.text if len(span.text) <= 40 else span.text[:37] + "..."
        print(f"{span.start_line}:{span.start_col}-{span.end_line}:{span.end_col} "
              f"{span.kind.value:<15} {preview!r}")
    for error in errors:
        print(f"{error.line}:{error.column}: {error.kind.value}: {error.message}")
    return 0


def _print_block(block, indent: int = 0) -> None:
    flags = []
    if block.explicit:
        flags.append("explicit")
    if block.hanging:
        flags.append("hanging")
    suffix = f" ({', '.join(flags)})" if flags else ""
    print(f"{'  ' * indent}{block.kind.value} anchor={block.anchor_column} "
          f"lines {block.start_line}-{block.end_line} items={len(block.items)}{suffix}")
    for child in block.children:
        _print_block(child, indent + 1)


def cmd_layout(args):
    """Show the layout block tree of a file."""
    spans, _ = scan_file(args.file)
    root, errors = build_layout(spans)
    if args.json:
        print(json.dumps({
            "root": root.to_dict(),
            "errors": [error.to_dict() for error in errors],
        }, indent=2))
        return 0
    _print_block(root)
    for error in errors:
        print(f"{error.line}:{error.column}: {error.kind.value}: {error.message}")
    return 0


def cmd_rules(args):
    """List the rules of the loaded catalogue."""
    config = _load_config(args)
    catalogue = config.load_catalogue()
    if args.json:
        print(json.dumps(catalogue.to_entries(), indent=2))
        return 0
    for rule in catalogue:
        options = ", ".join(f"{k}={v}" for k, v in rule.options.items())
        print(f"{rule.id:<32} {rule.severity.value:<8} {rule.mode.value:<6} {options}")
    print(f"\n{len(catalogue)} rule(s) from {catalogue.source}")
    return 0


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='hsstyle',
        description='Style checker for Haskell source',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    parser.add_argument('-v', '--verbose', action='count', default=0,
                        help='More logging (-v info, -vv debug)')

    subparsers = parser.add_subparsers(dest='command', help='Commands')

    # check
    check_p = subparsers.add_parser('check', help='Check files for style violations')
    check_p.add_argument('paths', nargs='+', help='Files or directories to check')
    check_p.add_argument('--config', help='Configuration file (YAML)')
    check_p.add_argument('--rules', help='Rule catalogue file (YAML)')
    check_p.add_argument('--json', action='store_true', help='Output JSON')
    check_p.add_argument('-j', '--jobs', type=int, help='Worker threads')
    check_p.set_defaults(func=cmd_check)

    # scan
    scan_p = subparsers.add_parser('scan', help='Show the spans of a file')
    scan_p.add_argument('file', help='Source file')
    scan_p.add_argument('--json', action='store_true', help='Output JSON')
    scan_p.set_defaults(func=cmd_scan)

    # layout
    layout_p = subparsers.add_parser('layout', help='Show the layout blocks of a file')
    layout_p.add_argument('file', help='Source file')
    layout_p.add_argument('--json', action='store_true', help='Output JSON')
    layout_p.set_defaults(func=cmd_layout)

    # rules
    rules_p = subparsers.add_parser('rules', help='List the rule catalogue')
    rules_p.add_argument('--config', help='Configuration file (YAML)')
    rules_p.add_argument('--rules', help='Rule catalogue file (YAML)')
    rules_p.add_argument('--json', action='store_true', help='Output JSON')
    rules_p.set_defaults(func=cmd_rules)

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    if not args.command:
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2
    except OSError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
