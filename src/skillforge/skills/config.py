"""Configuration for the skill build pipeline."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from skillforge.rule_engine.models import Severity, ViolationClass

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".skillforge.json"

DEFAULT_SEVERITIES: dict[ViolationClass, Severity] = {
    ViolationClass.IMPACT_MISMATCH: Severity.WARNING,
    ViolationClass.MISSING_EXPLANATION: Severity.WARNING,
}


@dataclass
class BuildConfig:
    rules_dir: str = "rules"
    manifest_file: str = "_sections.md"
    metadata_file: str = "metadata.json"
    output_file: str = "AGENTS.md"
    test_cases_file: str = "test-cases.json"
    invariants_file: str = "semantic-invariants.json"
    version_claims_file: str = "version-claims.json"
    impact_mismatch_tolerance: int = 0
    warnings_as_errors: bool = False
    severities: dict[ViolationClass, Severity] = field(
        default_factory=lambda: dict(DEFAULT_SEVERITIES)
    )

    def severity_for(self, rule_class: ViolationClass) -> Severity:
        if self.warnings_as_errors:
            return Severity.ERROR
        return self.severities.get(rule_class, Severity.ERROR)


def load_build_config(path: Path | None = None) -> BuildConfig:
    """Load build config from the `build` object of a JSON file."""
    config = BuildConfig()
    if path and path.exists():
        try:
            text = path.read_text(encoding="utf-8")
            if text.strip():
                data = json.loads(text)
                section = data.get("build", {}) if isinstance(data, dict) else {}
                if isinstance(section, dict):
                    _apply(config, section)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Failed to load build config from {path}: {e}")
    return config


_STR_KEYS = (
    "rules_dir",
    "manifest_file",
    "metadata_file",
    "output_file",
    "test_cases_file",
    "invariants_file",
    "version_claims_file",
)


def _apply(config: BuildConfig, data: dict[str, object]) -> None:
    for key in _STR_KEYS:
        if key in data and isinstance(data[key], str) and data[key]:
            setattr(config, key, data[key])
    tolerance = data.get("impact_mismatch_tolerance")
    if isinstance(tolerance, int) and not isinstance(tolerance, bool) and tolerance >= 0:
        config.impact_mismatch_tolerance = tolerance
    if "warnings_as_errors" in data and isinstance(data["warnings_as_errors"], bool):
        config.warnings_as_errors = data["warnings_as_errors"]
    severities = data.get("severities")
    if isinstance(severities, dict):
        for raw_class, raw_severity in severities.items():
            try:
                config.severities[ViolationClass(raw_class)] = Severity(raw_severity)
            except ValueError:
                logger.warning(f"Ignoring severity override {raw_class!r}: {raw_severity!r}")
