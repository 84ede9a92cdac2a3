"""Command-line entry point for the template guardrails auditor."""

from __future__ import annotations

import argparse
import json
import sys
from typing import List

from .config import LOG_FORMATS, load_engine_config, load_logging_config
from .discovery import DEFAULT_TEMPLATE_PATTERN
from .engine import GuardrailsEngine
from .errors import DiscoveryError, RuleLoadError
from .render import RENDERERS
from .rules.loader import RuleSet
from .telemetry import setup_logging

MAX_EXIT_CODE = 255


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="guardrails",
        description="Audit CloudFormation/SAM templates for security violations.",
    )
    parser.add_argument(
        "input_path",
        nargs="?",
        help="Template file or directory of templates to audit.",
    )
    parser.add_argument(
        "--output-format",
        "-o",
        choices=sorted(RENDERERS),
        default="txt",
        help="Report format (defaults to txt).",
    )
    parser.add_argument(
        "--parameter-values-path",
        default=None,
        help="JSON file with a Parameters object applied to every template.",
    )
    parser.add_argument(
        "--template-pattern",
        default=DEFAULT_TEMPLATE_PATTERN,
        help="Regular expression matched against file names when scanning a directory.",
    )
    parser.add_argument(
        "--profile-path",
        default=None,
        help="File listing the only rule ids allowed to report, one per line.",
    )
    parser.add_argument(
        "--blacklist-path",
        default=None,
        help="YAML file with RulesToSuppress entries; always wins over the profile.",
    )
    parser.add_argument(
        "--rule-directory",
        default=None,
        help="Directory of custom *_rule.py modules to load alongside the built-in rules.",
    )
    parser.add_argument(
        "--isolate-custom-rule-exceptions",
        action="store_true",
        default=None,
        help="Report a rule that raises as a failing violation instead of aborting the template.",
    )
    parser.add_argument(
        "--no-allow-suppression",
        dest="allow_suppression",
        action="store_false",
        help="Ignore rules_to_suppress entries in resource metadata.",
    )
    parser.add_argument(
        "--print-suppression",
        action="store_true",
        help="Log every violation suppressed through resource metadata.",
    )
    parser.add_argument(
        "--fail-on-warnings",
        action="store_true",
        help="Count warnings towards the exit code.",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Audit templates on this many worker threads.",
    )
    parser.add_argument(
        "--list-rules",
        action="store_true",
        help="Print the loaded rule definitions and exit.",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (defaults to WARNING).")
    parser.add_argument("--log-format", choices=LOG_FORMATS, default=None, help="Log renderer.")
    return parser


def list_rules(rule_set: RuleSet, output_format: str) -> None:
    definitions = sorted(rule_set.rule_definitions.values(), key=lambda definition: (definition.type.value, definition.id))
    if output_format == "json":
        print(json.dumps([definition.to_dict() for definition in definitions], indent=2))
        return
    for definition in definitions:
        print(f"{definition.id:<8} {definition.type.value:<8} {definition.message}")


def main(argv: List[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    setup_logging(load_logging_config(args.log_level, args.log_format))

    if not args.list_rules and not args.input_path:
        parser.error("input_path is required unless --list-rules is given")

    try:
        config = load_engine_config(
            profile_path=args.profile_path,
            blacklist_path=args.blacklist_path,
            rule_directory=args.rule_directory,
            allow_suppression=args.allow_suppression,
            print_suppression=args.print_suppression,
            isolate_custom_rule_exceptions=args.isolate_custom_rule_exceptions,
            max_workers=args.workers,
        )
        engine = GuardrailsEngine(config)
    except (OSError, RuleLoadError) as exc:
        parser.exit(2, f"guardrails: error: {exc}\n")

    if args.list_rules:
        list_rules(engine.rule_set, args.output_format)
        return 0

    try:
        total_failures = engine.audit_aggregate_across_files_and_render_results(
            args.input_path,
            output_format=args.output_format,
            parameter_values_path=args.parameter_values_path,
            template_pattern=args.template_pattern,
            fail_on_warnings=args.fail_on_warnings,
        )
    except (OSError, DiscoveryError) as exc:
        parser.exit(2, f"guardrails: error: {exc}\n")
    return min(total_failures, MAX_EXIT_CODE)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
