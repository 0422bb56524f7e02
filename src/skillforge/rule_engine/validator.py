"""Structural validation of rule files against the skill's section registry."""

from __future__ import annotations

import logging
from pathlib import Path

from skillforge.errors import BuildError
from skillforge.rule_engine.models import (
    ValidationReport,
    Violation,
    ViolationClass,
)
from skillforge.skills.collector import discover_rule_paths
from skillforge.skills.config import BuildConfig
from skillforge.skills.models import BlockKind, Impact, RuleFile
from skillforge.skills.parser import parse_rule_file
from skillforge.skills.sections import SectionRegistry

logger = logging.getLogger(__name__)


def validate_rule(
    rule: RuleFile,
    sections: SectionRegistry,
    config: BuildConfig | None = None,
) -> list[Violation]:
    """Return every violation for one parsed rule. Never raises for content issues."""
    config = config or BuildConfig()
    found: list[Violation] = []

    def report(
        rule_class: ViolationClass,
        message: str,
        *,
        field: str | None = None,
        line: int | None = None,
    ) -> None:
        found.append(
            Violation(
                file=rule.display_path,
                rule_class=rule_class,
                severity=config.severity_for(rule_class),
                message=message,
                field=field,
                line=line,
            )
        )

    fm = rule.frontmatter
    if not fm.title.strip():
        report(ViolationClass.TITLE, "Missing or empty title", field="title")

    impact = Impact.parse(fm.impact)
    if impact is None:
        allowed = ", ".join(i.value for i in Impact)
        report(
            ViolationClass.IMPACT,
            f"Invalid impact level {fm.impact!r}. Must be one of: {allowed}",
            field="impact",
        )

    if fm.tags is None:
        report(ViolationClass.TAGS, "Missing tags (an empty list is allowed)", field="tags")

    if not _has_example(rule, BlockKind.INCORRECT):
        report(ViolationClass.MISSING_INCORRECT, "Missing an 'Incorrect' example with code")
    if not _has_example(rule, BlockKind.CORRECT):
        report(ViolationClass.MISSING_CORRECT, "Missing a 'Correct' example with code")
    if not _has_trailing_reference(rule):
        report(ViolationClass.MISSING_REFERENCE, "Missing a trailing 'Reference:' link")

    intro = rule.blocks_of(BlockKind.INTRO)
    if not intro or not _has_explanation(intro[0].prose):
        report(
            ViolationClass.MISSING_EXPLANATION,
            "Missing explanation prose before the examples",
            line=rule.body_line,
        )

    section = sections.get(rule.section_prefix) if rule.section_prefix else None
    if section is None:
        if rule.section_prefix is None and rule.filename:
            section = sections.match_filename(Path(rule.filename).stem)
        if section is None:
            report(
                ViolationClass.UNKNOWN_SECTION,
                f"Rule does not belong to a known section (known: {', '.join(sections.prefixes)})",
            )
    if section is not None and impact is not None:
        distance = abs(impact.rank - section.impact.rank)
        if distance > config.impact_mismatch_tolerance:
            report(
                ViolationClass.IMPACT_MISMATCH,
                f"Impact {impact} differs from section '{section.prefix}' impact "
                f"{section.impact}",
                field="impact",
            )

    return found


def validate_skill(skill_dir: Path, config: BuildConfig | None = None) -> ValidationReport:
    """Validate every rule file of a skill, collecting per-file failures.

    Manifest failures still raise: without sections nothing can be checked.
    """
    config = config or BuildConfig()
    sections = SectionRegistry.load(skill_dir, config.manifest_file, config.rules_dir)
    report = ValidationReport()

    for path in discover_rule_paths(skill_dir / config.rules_dir):
        report.files_checked += 1
        try:
            rule = parse_rule_file(path)
        except BuildError as e:
            report.violations.append(
                Violation(
                    file=str(path),
                    rule_class=ViolationClass.FRONTMATTER,
                    severity=config.severity_for(ViolationClass.FRONTMATTER),
                    message=e.message,
                    field=e.field,
                    line=e.line,
                )
            )
            continue
        section = sections.match_filename(path.stem)
        if section is not None:
            rule = rule.model_copy(update={"section_prefix": section.prefix})
        violations = validate_rule(rule, sections, config)
        logger.debug(f"{path.name}: {len(violations)} violation(s)")
        report.violations.extend(violations)

    return report


def _has_example(rule: RuleFile, kind: BlockKind) -> bool:
    return any(
        sample.code.strip() for block in rule.blocks_of(kind) for sample in block.code
    )


def _has_trailing_reference(rule: RuleFile) -> bool:
    """Last REFERENCE block carries a link; only legacy appendices may follow."""
    last = None
    for i, block in enumerate(rule.blocks):
        if block.kind == BlockKind.REFERENCE:
            last = i
    if last is None or not rule.blocks[last].links:
        return False
    return all(b.kind == BlockKind.UNRECOGNIZED for b in rule.blocks[last + 1 :])


def _has_explanation(prose: str) -> bool:
    return any(
        line.strip() and not line.lstrip().startswith("#")
        for line in prose.splitlines()
    )
