"""RuleCollector: discover rule files, bind them to sections, order and number them."""

from __future__ import annotations

import logging
import re
from pathlib import Path

from skillforge.errors import UnknownSectionError
from skillforge.skills.models import CompiledRule, RuleFile
from skillforge.skills.parser import parse_rule_file
from skillforge.skills.sections import SectionRegistry

logger = logging.getLogger(__name__)

RULE_FILENAME_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)+\.md$")


def is_rule_filename(name: str) -> bool:
    """`<prefix>-<slug>.md`; names starting with `_` are reserved."""
    if name.startswith("_"):
        return False
    return bool(RULE_FILENAME_RE.match(name))


def discover_rule_paths(rules_dir: Path) -> list[Path]:
    """Candidate rule files in `rules_dir`, sorted by name."""
    if not rules_dir.is_dir():
        return []
    paths: list[Path] = []
    for path in sorted(rules_dir.iterdir()):
        if not path.is_file():
            continue
        if not is_rule_filename(path.name):
            logger.debug(f"Skipping {path.name}: not a rule file name")
            continue
        paths.append(path)
    return paths


def resolve_section_prefix(path: Path, sections: SectionRegistry) -> str:
    """Return the section prefix for a rule file, or raise UnknownSectionError."""
    section = sections.match_filename(path.stem)
    if section is None:
        raise UnknownSectionError(
            f"Filename prefix of '{path.name}' matches no section "
            f"(known: {', '.join(sections.prefixes)})",
            path=path,
        )
    return section.prefix


def load_rule(path: Path, sections: SectionRegistry) -> RuleFile:
    """Parse one rule file and bind it to its section."""
    prefix = resolve_section_prefix(path, sections)
    rule = parse_rule_file(path)
    return rule.model_copy(update={"section_prefix": prefix})


def collect_rules(rules_dir: Path, sections: SectionRegistry) -> dict[str, list[RuleFile]]:
    """Collect every rule under rules_dir, keyed by section prefix in registry order.

    Every section appears in the result, even when it has no rules. Within a
    section rules are sorted by title, ties broken by filename, so the order
    never depends on filesystem enumeration.
    """
    grouped: dict[str, list[RuleFile]] = {prefix: [] for prefix in sections.prefixes}
    for path in discover_rule_paths(rules_dir):
        rule = load_rule(path, sections)
        grouped[rule.section_prefix or ""].append(rule)
    for prefix, rules in grouped.items():
        rules.sort(key=sort_key)
        logger.debug(f"Section {prefix}: {len(rules)} rule(s)")
    return grouped


def sort_key(rule: RuleFile) -> tuple[str, str]:
    return (rule.title, rule.filename)


def assign_rule_ids(
    sections: SectionRegistry,
    rules_by_section: dict[str, list[RuleFile]],
) -> list[CompiledRule]:
    """Number rules `<sectionIndex>.<ruleIndex>`, both 1-based.

    Rules are re-sorted here so callers may pass unsorted lists; sections
    come from the registry, not from the mapping's key order.
    """
    compiled: list[CompiledRule] = []
    for section_index, section in enumerate(sections, 1):
        rules = sorted(rules_by_section.get(section.prefix, []), key=sort_key)
        for rule_index, rule in enumerate(rules, 1):
            compiled.append(
                CompiledRule(
                    id=f"{section_index}.{rule_index}",
                    section_index=section_index,
                    rule_index=rule_index,
                    rule=rule,
                )
            )
    return compiled
