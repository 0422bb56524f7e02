"""Pydantic models and enums for the rule engine layer."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class Severity(StrEnum):
    ERROR = "error"
    WARNING = "warning"


class ViolationClass(StrEnum):
    FRONTMATTER = "frontmatter"
    UNKNOWN_SECTION = "unknown-section"
    TITLE = "title"
    IMPACT = "impact"
    TAGS = "tags"
    MISSING_INCORRECT = "missing-incorrect"
    MISSING_CORRECT = "missing-correct"
    MISSING_REFERENCE = "missing-reference"
    MISSING_EXPLANATION = "missing-explanation"
    IMPACT_MISMATCH = "impact-mismatch"
    SEMANTIC = "semantic"
    VERSION_CLAIM = "version-claim"


class Violation(BaseModel):
    """A structural finding against one rule file."""

    model_config = ConfigDict(frozen=True)

    file: str
    rule_class: ViolationClass
    severity: Severity
    message: str
    field: str | None = None
    line: int | None = None

    @property
    def is_fatal(self) -> bool:
        return self.severity == Severity.ERROR

    def describe(self) -> str:
        where = f"{self.file}:{self.line}" if self.line else self.file
        detail = f" (field: {self.field})" if self.field else ""
        return f"{self.severity} [{self.rule_class}] {where}: {self.message}{detail}"


class ValidationReport(BaseModel):
    violations: list[Violation] = Field(default_factory=list)
    files_checked: int = 0

    @property
    def errors(self) -> list[Violation]:
        return [v for v in self.violations if v.is_fatal]

    @property
    def warnings(self) -> list[Violation]:
        return [v for v in self.violations if not v.is_fatal]

    @property
    def has_fatal(self) -> bool:
        return any(v.is_fatal for v in self.violations)


class ExampleKind(StrEnum):
    GOOD = "good"
    BAD = "bad"
    ANY = "any"


class ExampleAssertion(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    kind: ExampleKind = ExampleKind.ANY
    contains_all: list[str] = Field(default_factory=list, alias="containsAll")
    message: str


class SemanticInvariant(BaseModel):
    """Required content for one high-risk rule file."""

    model_config = ConfigDict(populate_by_name=True)

    file: str
    required_headings: list[str] = Field(default_factory=list, alias="requiredHeadings")
    required_phrases: list[str] = Field(default_factory=list, alias="requiredPhrases")
    example_assertions: list[ExampleAssertion] = Field(
        default_factory=list, alias="exampleAssertions"
    )


class SemanticRegistry(BaseModel):
    invariants: list[SemanticInvariant] = Field(default_factory=list)


class PatternRule(BaseModel):
    pattern: str
    flags: str = ""
    message: str


class PathRule(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    path_regex: str = Field(alias="pathRegex")
    requirements: list[PatternRule] = Field(default_factory=list)
    prohibitions: list[PatternRule] = Field(default_factory=list)


class FileRule(BaseModel):
    file: str
    requirements: list[PatternRule] = Field(default_factory=list)
    prohibitions: list[PatternRule] = Field(default_factory=list)


class ClaimPolicy(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    enforce_official_reference: bool = Field(
        default=False, alias="enforceOfficialReferenceForVersionClaims"
    )
    version_claim_pattern: str = Field(default="", alias="versionClaimPattern")
    official_reference_pattern: str = Field(default="", alias="officialReferencePattern")


class VersionClaimRegistry(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    policy: ClaimPolicy = Field(default_factory=ClaimPolicy, alias="global")
    path_rules: list[PathRule] = Field(default_factory=list, alias="pathRules")
    file_rules: list[FileRule] = Field(default_factory=list, alias="fileRules")
