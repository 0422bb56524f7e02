"""CLI entry point for skillforge."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Callable
from pathlib import Path
from typing import cast

from skillforge import __version__
from skillforge.errors import BuildError
from skillforge.rule_engine.models import Violation
from skillforge.skills.config import CONFIG_FILENAME, BuildConfig, load_build_config


def _resolve_skill(args: argparse.Namespace) -> Path:
    skill = cast(str, args.skill)
    root = cast(Path, args.skills_root)
    for candidate in (root / skill, Path(skill)):
        if candidate.is_dir():
            return candidate
    print(f"Error: skill not found: {skill} (skills root: {root})", file=sys.stderr)
    sys.exit(1)


def _load_config(args: argparse.Namespace, skill_dir: Path) -> BuildConfig:
    config_path = cast(Path | None, args.config) or skill_dir / CONFIG_FILENAME
    return load_build_config(config_path)


def _print_violations(violations: list[Violation]) -> None:
    for violation in violations:
        stream = sys.stderr if violation.is_fatal else sys.stdout
        print(f"  {violation.describe()}", file=stream)


def _finish_checks(name: str, violations: list[Violation], checked: str) -> None:
    errors = [v for v in violations if v.is_fatal]
    warnings = [v for v in violations if not v.is_fatal]
    _print_violations(violations)
    if errors:
        print(
            f"\n{name} failed: {len(errors)} error(s), {len(warnings)} warning(s)",
            file=sys.stderr,
        )
        sys.exit(1)
    suffix = f" ({len(warnings)} warning(s))" if warnings else ""
    print(f"{name} passed for {checked}{suffix}")


def _cmd_build(args: argparse.Namespace) -> None:
    from skillforge.build.compiler import build_skill

    skill_dir = _resolve_skill(args)
    path, document = build_skill(skill_dir, _load_config(args, skill_dir))
    rules, sections = len(document.rules), len(document.sections)
    print(f"Built {skill_dir.name}: {rules} rules in {sections} sections")
    print(f"Output: {path}")


def _cmd_validate(args: argparse.Namespace) -> None:
    from skillforge.rule_engine.validator import validate_skill

    skill_dir = _resolve_skill(args)
    report = validate_skill(skill_dir, _load_config(args, skill_dir))
    print(f"Validating {skill_dir.name}: {report.files_checked} rule files")
    _finish_checks("Validation", report.violations, f"{report.files_checked} rules")


def _cmd_extract_tests(args: argparse.Namespace) -> None:
    from skillforge.build.extractor import extract_skill

    skill_dir = _resolve_skill(args)
    path, cases = extract_skill(skill_dir, _load_config(args, skill_dir))
    rules = len({case.rule_id for case in cases})
    print(f"Extracted {len(cases)} test cases from {rules} rules")
    print(f"Output: {path}")


def _cmd_check_invariants(args: argparse.Namespace) -> None:
    from skillforge.rule_engine.invariants import (
        check_semantic_invariants,
        load_semantic_registry,
    )

    skill_dir = _resolve_skill(args)
    config = _load_config(args, skill_dir)
    registry = load_semantic_registry(skill_dir / config.invariants_file)
    if registry is None:
        print(f"No semantic invariant registry ({config.invariants_file}); nothing to check")
        return
    violations = check_semantic_invariants(skill_dir, registry, config)
    _finish_checks(
        "Semantic invariant checks", violations, f"{len(registry.invariants)} high-risk rules"
    )


def _cmd_check_version_claims(args: argparse.Namespace) -> None:
    from skillforge.rule_engine.claims import check_version_claims, load_claim_registry

    skill_dir = _resolve_skill(args)
    config = _load_config(args, skill_dir)
    registry = load_claim_registry(skill_dir / config.version_claims_file)
    if registry is None:
        print(f"No version-claim registry ({config.version_claims_file}); nothing to check")
        return
    violations = check_version_claims(skill_dir, registry, config)
    _finish_checks("Version-claim checks", violations, skill_dir.name)


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="skillforge",
        description="Validate, compile, and extract test cases from best-practice rule skills",
    )
    _ = parser.add_argument(
        "-V", "--version", action="version", version=f"skillforge {__version__}"
    )
    _ = parser.add_argument(
        "--skills-root",
        type=Path,
        default=Path.cwd(),
        dest="skills_root",
        help="Directory containing skill folders (default: current directory)",
    )
    _ = parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"Build config file (default: <skill>/{CONFIG_FILENAME})",
    )
    _ = parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    commands = [
        ("build", "Compile rule files into the skill's AGENTS.md"),
        ("validate", "Check rule files for structural violations"),
        ("extract-tests", "Extract LLM evaluation test cases to JSON"),
        ("check-invariants", "Check semantic invariants of high-risk rules"),
        ("check-version-claims", "Check version-sensitive claims against the registry"),
    ]
    for name, help_text in commands:
        sub = subparsers.add_parser(name, help=help_text)
        _ = sub.add_argument("skill", help="Skill directory name (or path)")

    args = parser.parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    dispatch: dict[str, Callable[[argparse.Namespace], None]] = {
        "build": _cmd_build,
        "validate": _cmd_validate,
        "extract-tests": _cmd_extract_tests,
        "check-invariants": _cmd_check_invariants,
        "check-version-claims": _cmd_check_version_claims,
    }
    command = cast(str | None, args.command)
    handler = dispatch.get(command) if command is not None else None
    if not handler:
        parser.print_help()
        sys.exit(1)
    try:
        handler(args)
    except BuildError as e:
        print(f"error {e.describe()}", file=sys.stderr)
        sys.exit(1)
