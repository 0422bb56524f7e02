"""Tests for skills/sections.py — manifest parsing, SectionRegistry, metadata."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from skillforge.errors import ManifestConflict, ManifestError
from skillforge.skills.models import Impact, Section
from skillforge.skills.sections import (
    SectionRegistry,
    load_metadata,
    load_sections,
    parse_sections,
)
from tests.conftest import SECTIONS_MD, _write_sections


def _section(prefix: str, order: int, impact: Impact = Impact.HIGH) -> Section:
    return Section(prefix=prefix, title=prefix.title(), impact=impact, order=order)


class TestParseSections:
    def test_parses_sections_in_declared_order(self):
        sections = parse_sections(SECTIONS_MD)
        assert [s.prefix for s in sections] == ["antipattern", "fundamental", "pattern"]
        assert [s.order for s in sections] == [1, 2, 3]

    def test_strips_numbering_from_title(self):
        sections = parse_sections(SECTIONS_MD)
        assert sections[0].title == "Schema Anti-Patterns"

    def test_reads_impact_and_description(self):
        first = parse_sections(SECTIONS_MD)[0]
        assert first.impact == Impact.CRITICAL
        assert first.description.startswith("Common schema design mistakes")

    def test_description_continues_over_lines(self):
        text = (
            "## Patterns (pattern)\n\n"
            "**Impact:** MEDIUM\n"
            "**Description:** First line\n"
            "continues here.\n"
        )
        section = parse_sections(text)[0]
        assert section.description == "First line\ncontinues here."

    def test_impact_takes_first_token(self):
        text = "## Patterns (pattern)\n\n**Impact:** MEDIUM (situational)\n"
        assert parse_sections(text)[0].impact == Impact.MEDIUM

    def test_description_defaults_to_empty(self):
        text = "## Patterns (pattern)\n\n**Impact:** MEDIUM\n"
        assert parse_sections(text)[0].description == ""

    def test_headings_inside_code_fence_ignored(self):
        text = (
            "## Patterns (pattern)\n\n**Impact:** MEDIUM\n\n"
            "```markdown\n## Not A Section (fake)\n```\n"
        )
        assert [s.prefix for s in parse_sections(text)] == ["pattern"]

    def test_duplicate_prefix_raises_conflict(self):
        text = (
            "## One (pattern)\n\n**Impact:** MEDIUM\n\n"
            "## Two (pattern)\n\n**Impact:** HIGH\n"
        )
        with pytest.raises(ManifestConflict) as exc_info:
            parse_sections(text, source="rules/_sections.md")
        assert exc_info.value.line == 5
        assert exc_info.value.field == "prefix"
        assert "pattern" in exc_info.value.message

    def test_missing_prefix_raises_conflict(self):
        with pytest.raises(ManifestConflict):
            parse_sections("## Patterns\n\n**Impact:** MEDIUM\n")

    def test_malformed_prefix_raises_conflict(self):
        with pytest.raises(ManifestConflict):
            parse_sections("## Patterns (Design Pattern)\n\n**Impact:** MEDIUM\n")

    def test_invalid_impact_raises_manifest_error(self):
        with pytest.raises(ManifestError) as exc_info:
            parse_sections("## Patterns (pattern)\n\n**Impact:** LOW\n")
        assert not isinstance(exc_info.value, ManifestConflict)
        assert exc_info.value.field == "impact"

    def test_missing_impact_raises_manifest_error(self):
        with pytest.raises(ManifestError):
            parse_sections("## Patterns (pattern)\n\n**Description:** No impact.\n")

    def test_empty_manifest_raises(self):
        with pytest.raises(ManifestError):
            parse_sections("# Sections\n\nNothing declared yet.\n")


class TestLoadSections:
    def test_loads_from_rules_dir(self, tmp_path: Path):
        _write_sections(tmp_path)
        assert len(load_sections(tmp_path)) == 3

    def test_falls_back_to_skill_root(self, tmp_path: Path):
        (tmp_path / "_sections.md").write_text(SECTIONS_MD)
        assert len(load_sections(tmp_path)) == 3

    def test_missing_manifest_raises(self, tmp_path: Path):
        with pytest.raises(ManifestError) as exc_info:
            load_sections(tmp_path)
        assert "_sections.md" in exc_info.value.message

    def test_registry_load(self, tmp_path: Path):
        _write_sections(tmp_path)
        registry = SectionRegistry.load(tmp_path)
        assert registry.prefixes == ["antipattern", "fundamental", "pattern"]


class TestSectionRegistry:
    def test_sorted_by_order(self):
        registry = SectionRegistry([_section("b", 2), _section("a", 1)])
        assert registry.prefixes == ["a", "b"]
        assert len(registry) == 2

    def test_duplicate_prefix_raises(self):
        with pytest.raises(ManifestConflict):
            SectionRegistry([_section("a", 1), _section("a", 2)])

    def test_get_and_index_of(self):
        registry = SectionRegistry([_section("a", 1), _section("b", 2)])
        assert registry.get("b") is not None
        assert registry.get("zzz") is None
        assert registry.index_of("b") == 2

    def test_index_of_unknown_raises_key_error(self):
        registry = SectionRegistry([_section("a", 1)])
        with pytest.raises(KeyError):
            registry.index_of("zzz")

    def test_match_filename_prefers_longest_prefix(self):
        registry = SectionRegistry([_section("pattern", 1), _section("pattern-tree", 2)])
        match = registry.match_filename("pattern-tree-nodes")
        assert match is not None
        assert match.prefix == "pattern-tree"
        other = registry.match_filename("pattern-bucket")
        assert other is not None
        assert other.prefix == "pattern"

    def test_match_filename_requires_slug(self):
        registry = SectionRegistry([_section("pattern", 1)])
        assert registry.match_filename("pattern") is None
        assert registry.match_filename("pattern-") is None
        assert registry.match_filename("patterns-x") is None


class TestLoadMetadata:
    def test_defaults_when_absent(self, tmp_path: Path):
        meta = load_metadata(tmp_path)
        assert meta.version is None
        assert meta.references == []

    def test_loads_fields(self, tmp_path: Path):
        (tmp_path / "metadata.json").write_text(
            json.dumps(
                {
                    "version": "1.0.0",
                    "organization": "MongoDB",
                    "references": ["https://mongodb.com/docs"],
                    "unknown": "ignored",
                }
            )
        )
        meta = load_metadata(tmp_path)
        assert meta.version == "1.0.0"
        assert meta.organization == "MongoDB"
        assert meta.references == ["https://mongodb.com/docs"]

    def test_invalid_json_raises(self, tmp_path: Path):
        (tmp_path / "metadata.json").write_text("{not json")
        with pytest.raises(ManifestError):
            load_metadata(tmp_path)

    def test_invalid_shape_raises(self, tmp_path: Path):
        (tmp_path / "metadata.json").write_text(json.dumps({"references": "not-a-list"}))
        with pytest.raises(ManifestError):
            load_metadata(tmp_path)

    def test_display_title_from_skill_name(self, tmp_path: Path):
        assert load_metadata(tmp_path).display_title("mongodb-schema-design") == (
            "Mongodb Schema Design"
        )
