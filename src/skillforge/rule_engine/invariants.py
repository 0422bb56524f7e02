"""Semantic invariants: required content for high-risk rule files."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from pydantic import ValidationError

from skillforge.errors import BuildError, ManifestError
from skillforge.rule_engine.models import (
    ExampleAssertion,
    ExampleKind,
    SemanticInvariant,
    SemanticRegistry,
    Violation,
    ViolationClass,
)
from skillforge.skills.config import BuildConfig
from skillforge.skills.models import BlockKind, CodeSample, RuleFile
from skillforge.skills.parser import parse_rule

logger = logging.getLogger(__name__)

_HEADING_RE = re.compile(r"^##\s+(.+)$", re.MULTILINE)

_KINDS_FOR: dict[ExampleKind, set[BlockKind]] = {
    ExampleKind.BAD: {BlockKind.INCORRECT},
    ExampleKind.GOOD: {BlockKind.CORRECT, BlockKind.ALTERNATIVE},
}


def load_semantic_registry(path: Path) -> SemanticRegistry | None:
    """Load the registry; None when the skill declares no invariants."""
    if not path.is_file():
        return None
    try:
        return SemanticRegistry.model_validate(json.loads(path.read_text(encoding="utf-8")))
    except (json.JSONDecodeError, OSError) as e:
        raise ManifestError(f"Cannot read semantic invariant registry: {e}", path=path)
    except ValidationError as e:
        raise ManifestError(
            f"Invalid semantic invariant registry: {e.error_count()} error(s)", path=path
        )


def check_semantic_invariants(
    skill_dir: Path,
    registry: SemanticRegistry,
    config: BuildConfig | None = None,
) -> list[Violation]:
    config = config or BuildConfig()
    violations: list[Violation] = []
    for invariant in registry.invariants:
        target = resolve_target(skill_dir, invariant.file)
        if target is None:
            violations.append(_violation(invariant.file, "Invariant target file not found", config))
            continue
        try:
            raw = target.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            violations.append(
                _violation(invariant.file, f"Cannot read invariant target: {e}", config)
            )
            continue
        try:
            rule = parse_rule(raw, path=target)
        except BuildError as e:
            violations.append(
                _violation(
                    invariant.file,
                    f"Failed to parse rule for semantic checks: {e.message}",
                    config,
                )
            )
            continue
        violations.extend(validate_invariant(invariant, raw, rule, config))
    logger.debug(f"Checked {len(registry.invariants)} semantic invariant(s)")
    return violations


def validate_invariant(
    invariant: SemanticInvariant,
    raw: str,
    rule: RuleFile,
    config: BuildConfig | None = None,
) -> list[Violation]:
    config = config or BuildConfig()
    violations: list[Violation] = []
    headings = {m.group(1).strip() for m in _HEADING_RE.finditer(raw)}

    for heading in invariant.required_headings:
        if heading not in headings:
            violations.append(
                _violation(invariant.file, f'Missing required heading: "{heading}"', config)
            )

    for phrase in invariant.required_phrases:
        if phrase not in raw:
            violations.append(
                _violation(invariant.file, f'Missing required phrase: "{phrase}"', config)
            )

    for assertion in invariant.example_assertions:
        candidates = pick_examples(rule, assertion.kind)
        if not any(_contains_all(sample, assertion) for sample in candidates):
            tokens = ", ".join(assertion.contains_all)
            violations.append(
                _violation(
                    invariant.file,
                    f"{assertion.message} (expected tokens: {tokens})",
                    config,
                )
            )

    return violations


def pick_examples(rule: RuleFile, kind: ExampleKind) -> list[CodeSample]:
    """Non-empty code samples from blocks of the requested kind."""
    wanted = _KINDS_FOR.get(kind)
    samples: list[CodeSample] = []
    for block in rule.blocks:
        if wanted is not None and block.kind not in wanted:
            continue
        samples.extend(s for s in block.code if s.code.strip())
    return samples


def resolve_target(skill_dir: Path, file: str) -> Path | None:
    """Registry paths may be relative to the skill or to the skills root."""
    for base in (skill_dir, skill_dir.parent):
        candidate = base / file
        if candidate.is_file():
            return candidate
    return None


def _contains_all(sample: CodeSample, assertion: ExampleAssertion) -> bool:
    return all(token in sample.code for token in assertion.contains_all)


def _violation(file: str, message: str, config: BuildConfig) -> Violation:
    return Violation(
        file=file,
        rule_class=ViolationClass.SEMANTIC,
        severity=config.severity_for(ViolationClass.SEMANTIC),
        message=message,
    )
