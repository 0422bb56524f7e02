"""Pydantic models for skills: sections, rule files, and skill metadata."""

from __future__ import annotations

import re
from enum import StrEnum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

_SLUG_STRIP_RE = re.compile(r"[^\w\- ]")


def slugify(text: str) -> str:
    """GitHub-style heading anchor: lowercase, punctuation dropped, spaces to hyphens."""
    return _SLUG_STRIP_RE.sub("", text.strip().lower()).replace(" ", "-")


class Impact(StrEnum):
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"

    @property
    def rank(self) -> int:
        """Ordinal severity, 0 = most severe."""
        return _IMPACT_RANK[self]

    @classmethod
    def parse(cls, value: object) -> Impact | None:
        """Exact, case-sensitive lookup. Returns None for anything else."""
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None


_IMPACT_RANK: dict[Impact, int] = {
    Impact.CRITICAL: 0,
    Impact.HIGH: 1,
    Impact.MEDIUM: 2,
}


class Section(BaseModel):
    """One top-level category of rules, as declared in `_sections.md`."""

    model_config = ConfigDict(frozen=True)

    prefix: str
    title: str
    impact: Impact
    description: str = ""
    order: int


class Frontmatter(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    title: str
    impact: str  # raw; validated by the rule engine, not the parser
    impact_description: str | None = Field(default=None, alias="impactDescription")
    tags: list[str] | None = None  # None = key absent
    extra: dict[str, Any] = Field(default_factory=dict)

    def dump(self) -> str:
        """Serialize back to a `---` delimited YAML frontmatter block."""
        data: dict[str, Any] = {"title": self.title, "impact": self.impact}
        if self.impact_description is not None:
            data["impactDescription"] = self.impact_description
        if self.tags is not None:
            data["tags"] = list(self.tags)
        data.update(self.extra)
        text = yaml.safe_dump(
            data,
            sort_keys=False,
            allow_unicode=True,
            default_flow_style=None,
        )
        return f"---\n{text}---\n"


class BlockKind(StrEnum):
    INTRO = "intro"
    INCORRECT = "incorrect"
    CORRECT = "correct"
    ALTERNATIVE = "alternative"
    WHEN_NOT_TO_USE = "when-not-to-use"
    VERIFY_WITH = "verify-with"
    REFERENCE = "reference"
    UNRECOGNIZED = "unrecognized"


class CodeSample(BaseModel):
    model_config = ConfigDict(frozen=True)

    language: str = ""
    code: str


class Block(BaseModel):
    """One segment of a rule body. `kind` is the variant tag."""

    model_config = ConfigDict(frozen=True)

    kind: BlockKind
    label: str = ""
    description: str = ""
    text: str = ""
    code: list[CodeSample] = Field(default_factory=list)
    links: list[str] = Field(default_factory=list)
    line: int = 0

    @property
    def prose(self) -> str:
        """Block text with fenced code and the label line removed."""
        kept: list[str] = []
        in_fence = False
        for i, line in enumerate(self.text.splitlines()):
            stripped = line.strip()
            if stripped.startswith(("```", "~~~")):
                in_fence = not in_fence
                continue
            if in_fence or (i == 0 and self.label):
                continue
            kept.append(line)
        return "\n".join(kept).strip()


class RuleFile(BaseModel):
    """A single best-practice document, as read from disk."""

    model_config = ConfigDict(frozen=True)

    path: Path | None = None
    filename: str = ""
    frontmatter: Frontmatter
    body: str = ""
    body_line: int = 1
    blocks: list[Block] = Field(default_factory=list)
    section_prefix: str | None = None

    @property
    def title(self) -> str:
        return self.frontmatter.title

    @property
    def display_path(self) -> str:
        if self.path is not None:
            return str(self.path)
        return self.filename or "<memory>"

    def blocks_of(self, kind: BlockKind) -> list[Block]:
        return [b for b in self.blocks if b.kind == kind]

    def has_block(self, kind: BlockKind) -> bool:
        return any(b.kind == kind for b in self.blocks)


class SkillMetadata(BaseModel):
    """Optional per-skill `metadata.json` used for the compiled document header."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    title: str | None = None
    version: str | None = None
    organization: str | None = None
    date: str | None = None
    abstract: str | None = None
    references: list[str] = Field(default_factory=list)

    def display_title(self, skill: str) -> str:
        if self.title:
            return self.title
        if not skill:
            return "Best Practices"
        return " ".join(part.capitalize() for part in skill.split("-"))


class CompiledRule(BaseModel):
    """A rule with its position-derived id. Recomputed on every build."""

    model_config = ConfigDict(frozen=True)

    id: str
    section_index: int
    rule_index: int
    rule: RuleFile

    @property
    def title(self) -> str:
        return self.rule.title

    @property
    def anchor(self) -> str:
        return slugify(f"{self.id} {self.title}")
