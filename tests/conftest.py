"""Shared fixtures for skillforge tests."""

from pathlib import Path

import pytest

SKILL_NAME = "mongodb-schema-design"

SECTIONS_MD = """# Sections

This file defines the rule categories for the skill.

---

## 1. Schema Anti-Patterns (antipattern)

**Impact:** CRITICAL
**Description:** Common schema design mistakes that cause performance problems.

## 2. Schema Fundamentals (fundamental)

**Impact:** HIGH
**Description:** Core decisions about embedding and referencing.

## 3. Design Patterns (pattern)

**Impact:** MEDIUM
**Description:** Proven patterns for recurring modeling problems.
"""

INTRO = "Keep documents small so the working set fits in RAM."

INCORRECT = """**Incorrect (unbounded growth):**

```javascript
db.posts.insertOne({ comments: [] })
```"""

CORRECT = """**Correct (separate collection):**

```javascript
db.comments.insertOne({ postId: 1 })
```"""

REFERENCE = "Reference: [Data Modeling](https://mongodb.com/docs/manual/data-modeling/)"

ALTERNATIVE = """**Alternative (bucket pattern):**

```javascript
db.events.aggregate([{ $bucket: {} }])
```"""


def _rule_body(
    title: str,
    *,
    intro: str = INTRO,
    incorrect: str | None = INCORRECT,
    correct: str | None = CORRECT,
    reference: str | None = REFERENCE,
) -> str:
    """Build a conventional rule body; pass None to drop a part."""
    parts = [f"## {title}", intro, incorrect, correct, reference]
    return "\n\n".join(p for p in parts if p) + "\n"


def _body_with_alternative(title: str) -> str:
    return _rule_body(title, correct=f"{CORRECT}\n\n{ALTERNATIVE}")


def _rule_text(
    title: str,
    impact: str = "CRITICAL",
    *,
    tags: str | None = "schema, arrays",
    impact_description: str | None = "Prevents 16MB document limit",
    body: str | None = None,
) -> str:
    """Build a full rule file: YAML frontmatter plus body."""
    lines = ["---", f"title: {title}", f"impact: {impact}"]
    if impact_description is not None:
        lines.append(f"impactDescription: {impact_description}")
    if tags is not None:
        lines.append(f"tags: {tags}")
    lines.append("---")
    lines.append("")
    lines.append(body if body is not None else _rule_body(title))
    return "\n".join(lines)


def _write_sections(skill_dir: Path, text: str = SECTIONS_MD) -> Path:
    rules = skill_dir / "rules"
    rules.mkdir(parents=True, exist_ok=True)
    path = rules / "_sections.md"
    path.write_text(text, encoding="utf-8")
    return path


def _write_rule(skill_dir: Path, filename: str, text: str) -> Path:
    rules = skill_dir / "rules"
    rules.mkdir(parents=True, exist_ok=True)
    path = rules / filename
    path.write_text(text, encoding="utf-8")
    return path


@pytest.fixture
def skill_dir(tmp_path: Path) -> Path:
    """Skill with three sections and three well-formed rules (pattern is empty)."""
    skill = tmp_path / SKILL_NAME
    _write_sections(skill)
    _write_rule(skill, "antipattern-bloat.md", _rule_text("Avoid Bloated Documents"))
    _write_rule(skill, "antipattern-arrays.md", _rule_text("Avoid Unbounded Arrays"))
    _write_rule(
        skill,
        "fundamental-embed-vs-reference.md",
        _rule_text("Embed vs Reference", "HIGH", tags="relationships"),
    )
    return skill
