"""Section manifest (`_sections.md`) loading and the SectionRegistry."""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterator
from pathlib import Path

from pydantic import ValidationError

from skillforge.errors import ManifestConflict, ManifestError
from skillforge.skills.models import Impact, Section, SkillMetadata

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "_sections.md"
METADATA_FILENAME = "metadata.json"

_HEADING_RE = re.compile(r"^##\s+(?P<text>.+?)\s*#*\s*$")
_PREFIX_RE = re.compile(r"\(([^()]*)\)\s*$")
_VALID_PREFIX_RE = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_NUMBERING_RE = re.compile(r"^\d+(?:\.\d+)*\.?\s+")
_FIELD_RE = re.compile(r"^\*\*(?P<label>[A-Za-z ]+):\*\*\s*(?P<value>.*)$")


class SectionRegistry:
    """Ordered, immutable view over a skill's sections."""

    def __init__(self, sections: list[Section]) -> None:
        self._sections = tuple(sorted(sections, key=lambda s: s.order))
        self._by_prefix = {s.prefix: s for s in self._sections}
        if len(self._by_prefix) != len(self._sections):
            raise ManifestConflict("Duplicate section prefixes in registry")

    @classmethod
    def load(
        cls,
        skill_path: Path,
        manifest_file: str = MANIFEST_FILENAME,
        rules_dir: str = "rules",
    ) -> SectionRegistry:
        return cls(load_sections(skill_path, manifest_file, rules_dir))

    def __iter__(self) -> Iterator[Section]:
        return iter(self._sections)

    def __len__(self) -> int:
        return len(self._sections)

    @property
    def sections(self) -> list[Section]:
        return list(self._sections)

    @property
    def prefixes(self) -> list[str]:
        return [s.prefix for s in self._sections]

    def get(self, prefix: str) -> Section | None:
        return self._by_prefix.get(prefix)

    def index_of(self, prefix: str) -> int:
        """1-based position of a section in the registry."""
        for i, section in enumerate(self._sections, 1):
            if section.prefix == prefix:
                return i
        raise KeyError(prefix)

    def match_filename(self, stem: str) -> Section | None:
        """Longest registered prefix `p` such that stem is `p-<slug>`."""
        best: Section | None = None
        for section in self._sections:
            head = f"{section.prefix}-"
            if stem.startswith(head) and len(stem) > len(head):
                if best is None or len(section.prefix) > len(best.prefix):
                    best = section
        return best


def load_sections(
    skill_path: Path,
    manifest_file: str = MANIFEST_FILENAME,
    rules_dir: str = "rules",
) -> list[Section]:
    """Load the ordered section list from `<skill>/rules/_sections.md`.

    The manifest lives beside the rule files; a copy at the skill root is
    accepted for skills that keep it there.
    """
    candidates = [skill_path / rules_dir / manifest_file, skill_path / manifest_file]
    for path in candidates:
        if path.is_file():
            try:
                text = path.read_text(encoding="utf-8")
            except OSError as e:
                raise ManifestError(f"Cannot read section manifest: {e}", path=path)
            return parse_sections(text, source=path)
    raise ManifestError(
        f"Section manifest '{manifest_file}' not found",
        path=skill_path,
    )


def parse_sections(text: str, source: Path | str | None = None) -> list[Section]:
    """Parse manifest text into sections, one per `##` heading."""
    chunks = _split_on_headings(text)
    if not chunks:
        raise ManifestError("Section manifest declares no sections", path=source)

    sections: list[Section] = []
    seen: dict[str, int] = {}
    for order, (line_no, heading, body) in enumerate(chunks, 1):
        prefix, title = _split_heading(heading, source, line_no)
        if prefix in seen:
            raise ManifestConflict(
                f"Duplicate section prefix '{prefix}' (first declared on line {seen[prefix]})",
                path=source,
                line=line_no,
                field="prefix",
            )
        seen[prefix] = line_no
        fields = _read_fields(body)

        raw_impact = fields.get("impact", "")
        tokens = raw_impact.split()
        impact = Impact.parse(tokens[0]) if tokens else None
        if impact is None:
            raise ManifestError(
                f"Section '{prefix}' has missing or invalid impact {raw_impact!r}",
                path=source,
                line=line_no,
                field="impact",
            )

        sections.append(
            Section(
                prefix=prefix,
                title=title,
                impact=impact,
                description=fields.get("description", ""),
                order=order,
            )
        )
        logger.debug(f"Section {order}: {prefix} ({impact})")
    return sections


def load_metadata(skill_path: Path, metadata_file: str = METADATA_FILENAME) -> SkillMetadata:
    """Load optional skill metadata; defaults when the file is absent."""
    path = skill_path / metadata_file
    if not path.is_file():
        return SkillMetadata()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return SkillMetadata.model_validate(data)
    except (json.JSONDecodeError, OSError) as e:
        raise ManifestError(f"Cannot read skill metadata: {e}", path=path)
    except ValidationError as e:
        raise ManifestError(f"Invalid skill metadata: {e.error_count()} error(s)", path=path)


def _split_on_headings(text: str) -> list[tuple[int, str, list[str]]]:
    chunks: list[tuple[int, str, list[str]]] = []
    in_fence = False
    for line_no, line in enumerate(text.splitlines(), 1):
        if line.strip().startswith(("```", "~~~")):
            in_fence = not in_fence
        match = None if in_fence else _HEADING_RE.match(line)
        if match:
            chunks.append((line_no, match.group("text"), []))
        elif chunks:
            chunks[-1][2].append(line)
    return chunks


def _split_heading(heading: str, source: Path | str | None, line_no: int) -> tuple[str, str]:
    match = _PREFIX_RE.search(heading)
    if not match:
        raise ManifestConflict(
            f"Section heading '{heading}' does not name a prefix in parentheses",
            path=source,
            line=line_no,
            field="prefix",
        )
    prefix = match.group(1).strip()
    if not _VALID_PREFIX_RE.match(prefix):
        raise ManifestConflict(
            f"Malformed section prefix '{prefix}'",
            path=source,
            line=line_no,
            field="prefix",
        )
    title = _NUMBERING_RE.sub("", heading[: match.start()].strip()).strip()
    return prefix, title or prefix


def _read_fields(lines: list[str]) -> dict[str, str]:
    """Read `**Label:** value` fields; values continue until the next label."""
    fields: dict[str, list[str]] = {}
    current: str | None = None
    for line in lines:
        stripped = line.strip()
        if stripped == "---":
            current = None
            continue
        match = _FIELD_RE.match(stripped)
        if match:
            current = match.group("label").strip().lower()
            fields[current] = [match.group("value").strip()]
        elif current is not None:
            fields[current].append(stripped)
    return {k: "\n".join(v).strip() for k, v in fields.items()}
