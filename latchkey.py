import argparse
import logging
import os
import sys

from hdlcheck.analyzer import Analyzer
from hdlcheck.config import AnalysisConfig
from hdlcheck.diagnostics import RULES
from hdlcheck.errors import ConfigurationError, FrontEndError
from hdlcheck.renderers import renderer_registry
from hdlcheck.strategy import strategy_for, strategy_registry

EXIT_USAGE = 2


def cmd_check(args: argparse.Namespace) -> int:
    """Check the design in FILE and print the findings.

    The front end can be selected via the ``--frontend`` option (default:
    chosen from the file suffix) and the output format via ``--format``.
    Both use registries for extensibility.
    """
    for path in args.files:
        if not os.path.isfile(path):
            print(f"Error: File not found: {path}", file=sys.stderr)
            return EXIT_USAGE

    try:
        config = AnalysisConfig.build(
            disable=args.disable,
            severity=args.severity,
            jobs=args.jobs,
            generics=args.generic,
        )
        strategy = strategy_registry.create(args.frontend or strategy_for(args.files[0]))
        design = strategy.load_design(args.files)
        analyzer = Analyzer(design, config)
        for top in args.top or ():
            if design.unit(top) is None:
                raise ConfigurationError(f"unknown top unit '{top}'")
        report = analyzer.analyze(args.top or None)
    except (ConfigurationError, FrontEndError, ImportError, OSError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_USAGE

    renderer = renderer_registry.create(args.format)
    print(renderer.render(report))
    return report.exit_status


def cmd_rules(args: argparse.Namespace) -> int:
    """List the rule ids accepted by ``--disable`` and ``--severity``."""
    for rule in RULES:
        print(rule)
    return 0


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="latchkey.py",
        description="Static discipline checks for RTL designs.",
    )

    # Global options
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Log progress to stderr (-vv for debug output).",
    )

    subparsers = parser.add_subparsers(dest="command")

    # check subcommand
    check = subparsers.add_parser(
        "check",
        help="Elaborate a design and report discipline violations.",
    )
    check.add_argument(
        "files",
        metavar="FILE",
        nargs="+",
        help="Design file(s) to check.",
    )
    check.add_argument(
        "--frontend",
        choices=strategy_registry.keys(),
        default=None,
        help="Front end (default: chosen from the file suffix).",
    )
    check.add_argument(
        "--top",
        action="append",
        metavar="UNIT",
        help="Top unit to analyze; repeatable (default: every uninstantiated unit).",
    )
    check.add_argument(
        "-g",
        "--generic",
        action="append",
        metavar="NAME=VALUE",
        help="Override a generic of the top unit(s); repeatable.",
    )
    check.add_argument(
        "--disable",
        action="append",
        metavar="RULE",
        help="Disable a rule; repeatable.",
    )
    check.add_argument(
        "--severity",
        action="append",
        metavar="RULE=LEVEL",
        help="Report RULE at LEVEL (error, warning, info); repeatable.",
    )
    check.add_argument(
        "--jobs",
        type=int,
        default=1,
        help="Number of top units analyzed concurrently (default: 1).",
    )
    check.add_argument(
        "--format",
        choices=renderer_registry.keys(),
        default="text",
        help="Output format (default: text).",
    )
    check.set_defaults(func=cmd_check)

    rules = subparsers.add_parser("rules", help="List rule ids.")
    rules.set_defaults(func=cmd_rules)

    return parser


def main(argv=None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(
            level=logging.DEBUG if args.verbose > 1 else logging.INFO,
            format="%(levelname)s %(name)s: %(message)s",
        )

    if not hasattr(args, "func"):
        parser.print_help()
        return EXIT_USAGE

    return args.func(args)


if __name__ == "__main__":
    raise SystemExit(main())
