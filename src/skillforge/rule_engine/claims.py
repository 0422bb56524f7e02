"""Version-claim guards: registry-driven regex checks over raw rule text."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from pydantic import ValidationError

from skillforge.errors import BuildError, ManifestError
from skillforge.rule_engine.models import (
    PatternRule,
    VersionClaimRegistry,
    Violation,
    ViolationClass,
)
from skillforge.skills.config import BuildConfig

logger = logging.getLogger(__name__)

_FLAG_BITS: dict[str, re.RegexFlag] = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
}
# Accepted for registries written for other regex engines; no effect here.
_NOOP_FLAGS = frozenset("gu")


def load_claim_registry(path: Path) -> VersionClaimRegistry | None:
    if not path.is_file():
        return None
    try:
        return VersionClaimRegistry.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, OSError) as e:
        raise ManifestError(f"Cannot read version-claim registry: {e}", path=path)
    except ValidationError as e:
        raise ManifestError(
            f"Invalid version-claim registry: {e.error_count()} error(s)", path=path
        )


def compile_pattern(pattern: str, flags: str, scope: str) -> re.Pattern[str]:
    bits = 0
    for flag in flags:
        if flag in _NOOP_FLAGS:
            continue
        if flag not in _FLAG_BITS:
            raise ManifestError(f"Unsupported regex flag '{flag}' in {scope}")
        bits |= _FLAG_BITS[flag]
    try:
        return re.compile(pattern, bits)
    except re.error as e:
        raise ManifestError(f"Invalid regex in {scope}: /{pattern}/{flags} ({e})")


def load_rule_contents(skill_dir: Path, rules_dir: str = "rules") -> dict[str, str]:
    """Raw Markdown sources keyed `<skill>/<rules_dir>/<file>`."""
    contents: dict[str, str] = {}
    directory = skill_dir / rules_dir
    if not directory.is_dir():
        return contents
    for path in sorted(directory.glob("*.md")):
        if path.name == "README.md":
            continue
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise BuildError(f"Cannot read rule file: {e}", path=path)
        contents[f"{skill_dir.name}/{rules_dir}/{path.name}"] = text
    return contents


def check_version_claims(
    skill_dir: Path,
    registry: VersionClaimRegistry,
    config: BuildConfig | None = None,
) -> list[Violation]:
    config = config or BuildConfig()
    contents = load_rule_contents(skill_dir, config.rules_dir)
    violations = validate_version_claims(contents, registry, config)
    logger.debug(f"Checked version claims in {len(contents)} file(s)")
    return violations


def validate_version_claims(
    contents: dict[str, str],
    registry: VersionClaimRegistry,
    config: BuildConfig | None = None,
) -> list[Violation]:
    config = config or BuildConfig()
    violations: list[Violation] = []
    policy = registry.policy

    claim_re: re.Pattern[str] | None = None
    reference_re: re.Pattern[str] | None = None
    if policy.enforce_official_reference:
        claim_re = compile_pattern(policy.version_claim_pattern, "", "global.versionClaimPattern")
        reference_re = compile_pattern(
            policy.official_reference_pattern, "m", "global.officialReferencePattern"
        )

    path_rules = [
        (compile_pattern(rule.path_regex, "", f"pathRules[{i}].pathRegex"), rule, i)
        for i, rule in enumerate(registry.path_rules)
    ]

    for file, content in contents.items():
        name = file.rsplit("/", 1)[-1]
        if (
            claim_re is not None
            and reference_re is not None
            and not name.startswith("_")
            and claim_re.search(content)
            and not reference_re.search(content)
        ):
            violations.append(
                _violation(
                    file,
                    "Contains version claims but is missing an official reference line",
                    config,
                )
            )
        for path_re, rule, i in path_rules:
            if not path_re.search(file):
                continue
            violations.extend(
                _run_pattern_checks(
                    file, content, rule.requirements, rule.prohibitions, f"pathRules[{i}]", config
                )
            )

    for i, file_rule in enumerate(registry.file_rules):
        content = contents.get(file_rule.file)
        if content is None:
            violations.append(_violation(file_rule.file, "File rule target not found", config))
            continue
        violations.extend(
            _run_pattern_checks(
                file_rule.file,
                content,
                file_rule.requirements,
                file_rule.prohibitions,
                f"fileRules[{i}]",
                config,
            )
        )

    return violations


def _run_pattern_checks(
    file: str,
    content: str,
    requirements: list[PatternRule],
    prohibitions: list[PatternRule],
    scope: str,
    config: BuildConfig,
) -> list[Violation]:
    violations: list[Violation] = []
    for requirement in requirements:
        if not compile_pattern(requirement.pattern, requirement.flags, scope).search(content):
            violations.append(_violation(file, requirement.message, config))
    for prohibition in prohibitions:
        if compile_pattern(prohibition.pattern, prohibition.flags, scope).search(content):
            violations.append(_violation(file, prohibition.message, config))
    return violations


def _violation(file: str, message: str, config: BuildConfig) -> Violation:
    return Violation(
        file=file,
        rule_class=ViolationClass.VERSION_CLAIM,
        severity=config.severity_for(ViolationClass.VERSION_CLAIM),
        message=message,
    )
