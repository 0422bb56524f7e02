"""Rule file parser: frontmatter header plus a segmented Markdown body.

Parsing is permissive. Only a missing or unreadable frontmatter (or one
without `title`/`impact`) is an error; everything else, including unknown
impact values and legacy appendix sections, is carried through for the
validator to judge.
"""

from __future__ import annotations

import logging
import re
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from skillforge.errors import BuildError, FrontmatterError
from skillforge.skills.models import Block, BlockKind, CodeSample, Frontmatter, RuleFile

logger = logging.getLogger(__name__)

REQUIRED_KEYS = ("title", "impact")

_DELIMITERS = {"---": "yaml", "+++": "toml"}
_KNOWN_KEYS = {"title", "impact", "impactDescription", "tags"}

_FENCE_RE = re.compile(r"^\s*(?P<fence>`{3,}|~{3,})\s*(?P<lang>[^\s`]*)")
_HEADING_RE = re.compile(r"^(?P<hashes>#{2,6})\s+(?P<label>.+?)\s*#*\s*$")
_BOLD_LABEL_RE = re.compile(r"^\*\*(?P<label>[^*]+?)\*\*\s*:?\s*$")
_REFERENCE_RE = re.compile(r"^\s*(?:\*\*)?references?:", re.IGNORECASE)
_LINK_RE = re.compile(r"\[[^\]]*\]\(<?(?P<url>[^)\s>]+)>?[^)]*\)|(?P<bare>https?://[^\s)>\]]+)")
_DESCRIPTION_RE = re.compile(r"\((?P<desc>.*)\)")

_LABEL_KINDS: list[tuple[re.Pattern[str], BlockKind]] = [
    (re.compile(r"^incorrect\b", re.IGNORECASE), BlockKind.INCORRECT),
    (re.compile(r"^correct\b", re.IGNORECASE), BlockKind.CORRECT),
    (re.compile(r"^alternatives?\b", re.IGNORECASE), BlockKind.ALTERNATIVE),
    (re.compile(r"^when not to use\b", re.IGNORECASE), BlockKind.WHEN_NOT_TO_USE),
    (re.compile(r"^verify with\b", re.IGNORECASE), BlockKind.VERIFY_WITH),
]


def parse_rule_file(path: Path) -> RuleFile:
    """Read a UTF-8 rule file from disk and parse it."""
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise BuildError(f"Cannot read rule file: {e}", path=path)
    return parse_rule(text, path=path)


def parse_rule(text: str, path: Path | None = None) -> RuleFile:
    """Parse rule file contents into a RuleFile (without a section binding)."""
    header, fmt, header_line, body, body_line = _split_frontmatter(text, path)
    data = _load_header(header, fmt, header_line, path)

    missing = [key for key in REQUIRED_KEYS if key not in data]
    if missing:
        raise FrontmatterError(
            f"Frontmatter is missing required key(s): {', '.join(missing)}",
            path=path,
            line=header_line,
            field=missing[0],
        )

    frontmatter = Frontmatter(
        title=_as_text(data.get("title")),
        impact=_as_text(data.get("impact")),
        impact_description=(
            _as_text(data["impactDescription"])
            if data.get("impactDescription") is not None
            else None
        ),
        tags=_parse_tags(data["tags"]) if "tags" in data else None,
        extra={k: v for k, v in data.items() if k not in _KNOWN_KEYS},
    )
    blocks = segment_body(body, start_line=body_line)
    logger.debug(f"Parsed {path or '<memory>'}: {len(blocks)} block(s)")
    return RuleFile(
        path=path,
        filename=path.name if path is not None else "",
        frontmatter=frontmatter,
        body=body,
        body_line=body_line,
        blocks=blocks,
    )


def parse_frontmatter(text: str) -> Frontmatter:
    """Parse only the frontmatter of a rule (used for round-trips)."""
    return parse_rule(text).frontmatter


def _split_frontmatter(text: str, path: Path | None) -> tuple[str, str, int, str, int]:
    """Return (header, format, header_line, body, body_line)."""
    lines = text.lstrip("\ufeff").split("\n")
    start = 0
    while start < len(lines) and not lines[start].strip():
        start += 1
    if start >= len(lines) or lines[start].strip() not in _DELIMITERS:
        raise FrontmatterError(
            "Missing frontmatter block (expected '---' or '+++' on the first line)",
            path=path,
            line=start + 1,
        )
    delimiter = lines[start].strip()
    for end in range(start + 1, len(lines)):
        if lines[end].strip() == delimiter:
            header = "\n".join(lines[start + 1 : end])
            body = "\n".join(lines[end + 1 :]).strip("\n")
            body_line = end + 2
            # Skip leading blank lines so block line numbers point at content.
            for line in lines[end + 1 :]:
                if line.strip():
                    break
                body_line += 1
            return header, _DELIMITERS[delimiter], start + 2, body, body_line
    raise FrontmatterError(
        f"Unterminated frontmatter block (no closing '{delimiter}')",
        path=path,
        line=start + 1,
    )


def _load_header(header: str, fmt: str, header_line: int, path: Path | None) -> dict[str, Any]:
    if fmt == "toml":
        try:
            data: object = tomllib.loads(header)
        except tomllib.TOMLDecodeError as e:
            raise FrontmatterError(f"Unparsable TOML frontmatter: {e}", path=path, line=header_line)
    else:
        try:
            data = yaml.safe_load(header)
        except yaml.YAMLError as e:
            line = header_line
            mark = getattr(e, "problem_mark", None)
            if mark is not None:
                line = header_line + mark.line
            raise FrontmatterError(f"Unparsable YAML frontmatter: {e}", path=path, line=line)
    if not isinstance(data, dict):
        raise FrontmatterError(
            "Frontmatter must be a key/value mapping",
            path=path,
            line=header_line,
        )
    return {str(k): v for k, v in data.items()}


def _as_text(value: object) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    return str(value)


def _parse_tags(value: object) -> list[str]:
    """Tags may be a comma-separated string or a list; repeats are dropped."""
    if value is None:
        return []
    if isinstance(value, str):
        items: list[object] = list(value.split(","))
    elif isinstance(value, (list, tuple)):
        items = list(value)
    else:
        items = [value]
    tags: list[str] = []
    for item in items:
        tag = str(item).strip()
        if tag and tag not in tags:
            tags.append(tag)
    return tags


@dataclass
class _Draft:
    kind: BlockKind
    label: str = ""
    line: int = 0
    lines: list[str] = field(default_factory=list)


def segment_body(body: str, start_line: int = 1) -> list[Block]:
    """Split a rule body into tagged blocks.

    Content before the first recognized label is INTRO. After that, an
    unknown level 2-3 heading opens an UNRECOGNIZED block so that legacy
    appendices are preserved instead of rejected.
    """
    blocks: list[Block] = []
    current = _Draft(kind=BlockKind.INTRO, line=start_line)
    seen_recognized = False
    fence: str | None = None

    for offset, line in enumerate(body.split("\n")):
        line_no = start_line + offset
        if fence is not None:
            current.lines.append(line)
            if _closes_fence(line, fence):
                fence = None
            continue
        opening = _FENCE_RE.match(line)
        if opening:
            fence = opening.group("fence")
            current.lines.append(line)
            continue

        kind, label, level = _classify_line(line)
        starts_block = kind is not None or (
            bool(label) and seen_recognized and level is not None and level <= 3
        )
        if starts_block:
            _flush(current, blocks)
            current = _Draft(kind=kind or BlockKind.UNRECOGNIZED, label=label, line=line_no)
            seen_recognized = True
        current.lines.append(line)

    _flush(current, blocks)
    return blocks


def _classify_line(line: str) -> tuple[BlockKind | None, str, int | None]:
    """Return (recognized kind, label, heading level) for a candidate label line."""
    if _REFERENCE_RE.match(line):
        return BlockKind.REFERENCE, line.strip().strip("*").split(":", 1)[0], None
    heading = _HEADING_RE.match(line)
    if heading:
        label = heading.group("label").strip()
        return _kind_for_label(label), label, len(heading.group("hashes"))
    bold = _BOLD_LABEL_RE.match(line.strip())
    if bold:
        label = bold.group("label").strip()
        return _kind_for_label(label), label, None
    return None, "", None


def _kind_for_label(label: str) -> BlockKind | None:
    for pattern, kind in _LABEL_KINDS:
        if pattern.match(label):
            return kind
    return None


def _closes_fence(line: str, fence: str) -> bool:
    stripped = line.strip()
    return bool(stripped) and set(stripped) == {fence[0]} and len(stripped) >= len(fence)


def _flush(draft: _Draft, blocks: list[Block]) -> None:
    text = "\n".join(draft.lines).strip("\n")
    if not text.strip():
        return
    label = draft.label.rstrip(":").strip()
    blocks.append(
        Block(
            kind=draft.kind,
            label=label,
            description=_description_of(label),
            text=text,
            code=_code_samples(draft.lines),
            links=_links(text) if draft.kind == BlockKind.REFERENCE else [],
            line=draft.line,
        )
    )


def _description_of(label: str) -> str:
    match = _DESCRIPTION_RE.search(label)
    if match:
        return match.group("desc").strip()
    if ":" in label:
        return label.split(":", 1)[1].strip()
    return ""


def _code_samples(lines: list[str]) -> list[CodeSample]:
    samples: list[CodeSample] = []
    fence: str | None = None
    language = ""
    collected: list[str] = []
    for line in lines:
        if fence is None:
            opening = _FENCE_RE.match(line)
            if opening:
                fence = opening.group("fence")
                language = opening.group("lang")
                collected = []
            continue
        if _closes_fence(line, fence):
            samples.append(CodeSample(language=language, code="\n".join(collected)))
            fence = None
            continue
        collected.append(line)
    if fence is not None and collected:
        samples.append(CodeSample(language=language, code="\n".join(collected)))
    return samples


def _links(text: str) -> list[str]:
    links: list[str] = []
    for match in _LINK_RE.finditer(text):
        url = match.group("url") or match.group("bare")
        if url and url not in links:
            links.append(url)
    return links
