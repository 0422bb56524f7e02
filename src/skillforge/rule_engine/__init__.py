"""Rule engine: violation models and structural checks for rule files.

Only the models are re-exported here; import the checks from their modules
(`validator`, `invariants`, `claims`), which depend on `skillforge.skills`.
"""

from skillforge.rule_engine.models import (
    Severity,
    ValidationReport,
    Violation,
    ViolationClass,
)

__all__ = [
    "Severity",
    "ValidationReport",
    "Violation",
    "ViolationClass",
]
