"""Skills: section manifests, rule file parsing, and collection."""

from skillforge.skills.collector import (
    assign_rule_ids,
    collect_rules,
    discover_rule_paths,
    is_rule_filename,
)
from skillforge.skills.config import BuildConfig, load_build_config
from skillforge.skills.models import (
    Block,
    BlockKind,
    CodeSample,
    CompiledRule,
    Frontmatter,
    Impact,
    RuleFile,
    Section,
    SkillMetadata,
)
from skillforge.skills.parser import parse_rule, parse_rule_file
from skillforge.skills.sections import SectionRegistry, load_metadata, load_sections

__all__ = [
    "Block",
    "BlockKind",
    "BuildConfig",
    "CodeSample",
    "CompiledRule",
    "Frontmatter",
    "Impact",
    "RuleFile",
    "Section",
    "SectionRegistry",
    "SkillMetadata",
    "assign_rule_ids",
    "collect_rules",
    "discover_rule_paths",
    "is_rule_filename",
    "load_build_config",
    "load_metadata",
    "load_sections",
    "parse_rule",
    "parse_rule_file",
]
