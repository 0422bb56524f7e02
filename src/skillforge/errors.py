"""Error taxonomy for the build pipeline."""

from __future__ import annotations

from pathlib import Path


class BuildError(Exception):
    """Base for every pipeline failure that is reported to rule authors."""

    category = "build-error"

    def __init__(
        self,
        message: str,
        *,
        path: Path | str | None = None,
        line: int | None = None,
        field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.path = str(path) if path is not None else None
        self.line = line
        self.field = field

    def location(self) -> str:
        """Return `path:line` (or just `path`), empty when unknown."""
        if self.path is None:
            return ""
        if self.line is not None:
            return f"{self.path}:{self.line}"
        return self.path

    def describe(self) -> str:
        """One-line, traceback-free description for CLI output."""
        where = self.location()
        detail = f" (field: {self.field})" if self.field else ""
        prefix = f"{where}: " if where else ""
        return f"[{self.category}] {prefix}{self.message}{detail}"


class ManifestError(BuildError):
    """Raised when `_sections.md` (or skill metadata) is missing or malformed."""

    category = "manifest-error"


class ManifestConflict(ManifestError):
    """Raised on duplicate or malformed section prefixes."""

    category = "manifest-conflict"


class FrontmatterError(BuildError):
    """Raised when a rule file's frontmatter is absent, unparsable, or incomplete."""

    category = "frontmatter-error"


class UnknownSectionError(BuildError):
    """Raised when a rule filename prefix matches no registered section."""

    category = "unknown-section"
