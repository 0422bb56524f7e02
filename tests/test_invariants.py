"""Tests for rule_engine/invariants.py — semantic invariants of high-risk rules."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from skillforge.errors import ManifestError
from skillforge.rule_engine.invariants import (
    check_semantic_invariants,
    load_semantic_registry,
    pick_examples,
    resolve_target,
    validate_invariant,
)
from skillforge.rule_engine.models import (
    ExampleKind,
    SemanticInvariant,
    SemanticRegistry,
    Severity,
    ViolationClass,
)
from skillforge.skills.parser import parse_rule
from tests.conftest import _body_with_alternative, _rule_text


def _invariant(**kwargs) -> SemanticInvariant:
    return SemanticInvariant.model_validate({"file": "rules/antipattern-bloat.md", **kwargs})


def _run(invariant: SemanticInvariant, text: str):
    return validate_invariant(invariant, text, parse_rule(text))


class TestLoadSemanticRegistry:
    def test_absent_registry_is_none(self, tmp_path: Path):
        assert load_semantic_registry(tmp_path / "semantic-invariants.json") is None

    def test_loads_camel_case_keys(self, tmp_path: Path):
        path = tmp_path / "semantic-invariants.json"
        path.write_text(
            json.dumps(
                {
                    "invariants": [
                        {
                            "file": "rules/antipattern-bloat.md",
                            "requiredHeadings": ["Avoid Bloated Documents"],
                            "requiredPhrases": ["working set"],
                            "exampleAssertions": [
                                {
                                    "kind": "bad",
                                    "containsAll": ["insertOne"],
                                    "message": "Bad example must insert",
                                }
                            ],
                        }
                    ]
                }
            )
        )
        registry = load_semantic_registry(path)
        assert registry is not None
        invariant = registry.invariants[0]
        assert invariant.required_headings == ["Avoid Bloated Documents"]
        assert invariant.example_assertions[0].kind == ExampleKind.BAD

    def test_invalid_json_raises(self, tmp_path: Path):
        path = tmp_path / "semantic-invariants.json"
        path.write_text("{")
        with pytest.raises(ManifestError):
            load_semantic_registry(path)

    def test_invalid_shape_raises(self, tmp_path: Path):
        path = tmp_path / "semantic-invariants.json"
        path.write_text(json.dumps({"invariants": [{"requiredPhrases": ["x"]}]}))
        with pytest.raises(ManifestError):
            load_semantic_registry(path)


class TestValidateInvariant:
    def test_satisfied_invariant(self):
        invariant = _invariant(
            requiredHeadings=["Avoid Bloated Documents"],
            requiredPhrases=["working set"],
            exampleAssertions=[
                {"kind": "bad", "containsAll": ["db.posts", "comments"], "message": "bad"},
                {"kind": "good", "containsAll": ["db.comments"], "message": "good"},
            ],
        )
        assert _run(invariant, _rule_text("Avoid Bloated Documents")) == []

    def test_missing_heading(self):
        violations = _run(_invariant(requiredHeadings=["Sizing"]), _rule_text("T"))
        assert [v.message for v in violations] == ['Missing required heading: "Sizing"']
        assert violations[0].rule_class == ViolationClass.SEMANTIC
        assert violations[0].severity == Severity.ERROR

    def test_phrase_matches_anywhere_in_raw_text(self):
        assert _run(_invariant(requiredPhrases=["16MB"]), _rule_text("T")) == []

    def test_missing_phrase(self):
        violations = _run(_invariant(requiredPhrases=["$slice"]), _rule_text("T"))
        assert violations[0].message == 'Missing required phrase: "$slice"'

    def test_bad_example_assertion_only_checks_incorrect(self):
        invariant = _invariant(
            exampleAssertions=[
                {"kind": "bad", "containsAll": ["db.comments"], "message": "Bad must show it"}
            ]
        )
        violations = _run(invariant, _rule_text("T"))
        assert len(violations) == 1
        assert violations[0].message == "Bad must show it (expected tokens: db.comments)"

    def test_tokens_must_share_one_sample(self):
        invariant = _invariant(
            exampleAssertions=[
                {"kind": "any", "containsAll": ["db.posts", "db.comments"], "message": "split"}
            ]
        )
        assert len(_run(invariant, _rule_text("T"))) == 1

    def test_good_examples_include_alternatives(self):
        invariant = _invariant(
            exampleAssertions=[{"kind": "good", "containsAll": ["$bucket"], "message": "alt"}]
        )
        assert _run(invariant, _rule_text("T", body=_body_with_alternative("T"))) == []


class TestPickExamples:
    def test_kinds(self):
        rule = parse_rule(_rule_text("T", body=_body_with_alternative("T")))
        bad = [s.code for s in pick_examples(rule, ExampleKind.BAD)]
        good = [s.code for s in pick_examples(rule, ExampleKind.GOOD)]
        assert bad == ["db.posts.insertOne({ comments: [] })"]
        assert good == [
            "db.comments.insertOne({ postId: 1 })",
            "db.events.aggregate([{ $bucket: {} }])",
        ]
        assert len(pick_examples(rule, ExampleKind.ANY)) == 3


class TestCheckSemanticInvariants:
    def test_resolves_relative_to_skill_or_root(self, skill_dir: Path):
        assert resolve_target(skill_dir, "rules/antipattern-bloat.md") is not None
        assert resolve_target(skill_dir, f"{skill_dir.name}/rules/antipattern-bloat.md")
        assert resolve_target(skill_dir, "rules/missing.md") is None

    def test_checks_registry_against_skill(self, skill_dir: Path):
        registry = SemanticRegistry(
            invariants=[
                _invariant(requiredPhrases=["working set"]),
                _invariant(file="rules/antipattern-arrays.md", requiredPhrases=["$slice"]),
            ]
        )
        violations = check_semantic_invariants(skill_dir, registry)
        assert [v.file for v in violations] == ["rules/antipattern-arrays.md"]

    def test_missing_target_reported(self, skill_dir: Path):
        registry = SemanticRegistry(invariants=[_invariant(file="rules/pattern-gone.md")])
        violations = check_semantic_invariants(skill_dir, registry)
        assert violations[0].message == "Invariant target file not found"

    def test_unparsable_target_reported(self, skill_dir: Path):
        (skill_dir / "rules" / "pattern-broken.md").write_text("No frontmatter.\n")
        registry = SemanticRegistry(invariants=[_invariant(file="rules/pattern-broken.md")])
        violations = check_semantic_invariants(skill_dir, registry)
        assert violations[0].message.startswith("Failed to parse rule for semantic checks")

    def test_undecodable_target_reported(self, skill_dir: Path):
        (skill_dir / "rules" / "pattern-latin1.md").write_bytes(b"---\ntitle: \xff\n---\n")
        registry = SemanticRegistry(invariants=[_invariant(file="rules/pattern-latin1.md")])
        violations = check_semantic_invariants(skill_dir, registry)
        assert len(violations) == 1
        assert violations[0].rule_class == ViolationClass.SEMANTIC
        assert violations[0].message.startswith("Cannot read invariant target")
