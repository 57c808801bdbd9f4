"""Pump history record categories and their cleanup rules.

Category names are the decoder's upper-case record types. The six that
carry import value map to buckets (lower-cased); the rest are internal
pump bookkeeping and are dropped before normalization.
"""

from __future__ import annotations

from dataclasses import dataclass

# Imported categories
BLOOD_GLUCOSE = "BLOOD_GLUCOSE"
BOLUS = "BOLUS"
CARB = "CARB"
ACTIVATE = "ACTIVATE"
DEACTIVATE = "DEACTIVATE"
DOWNLOAD = "DOWNLOAD"

IGNORED_CATEGORIES = frozenset({
    "BASAL_RATE",
    "SUGGESTED_CALC",
    "TERMINATE_BOLUS",
    "TIME_CHANGE",
    "DATE_CHANGE",
    "REMOTE_HAZARD_ALARM",
    "RESUME",
    "SUSPEND",
    "TERMINATE_BASAL",
    "END_MARKER",
    "PUMP_ALARM",
})

# Removed from every record regardless of category
COMMON_REMOVED_FIELDS = frozenset({
    "error",
    "logType",
    "logIndex",
    "secondsSincePowerUp",
    "historyLogRecordType",
    "flags",
})


@dataclass(frozen=True)
class CategoryRule:
    """Field cleanup for one category."""

    name: str  # lowercase bucket key
    removed: frozenset[str] = frozenset()
    removed_if_zero: frozenset[str] = frozenset()
    marker: bool = False  # stamps ``type`` with the category name

    @property
    def all_removed(self) -> frozenset[str]:
        return COMMON_REMOVED_FIELDS | self.removed


RULES: dict[str, CategoryRule] = {
    rule.name: rule
    for rule in (
        CategoryRule(
            "bolus",
            removed=frozenset({"calculationRecordOffset", "immediateDurationSeconds", "extended"}),
            removed_if_zero=frozenset({"extendedDurationMinutes"}),
        ),
        CategoryRule(
            "blood_glucose",
            removed=frozenset({"errorCode", "userTag1", "userTag2", "bgFlags"}),
        ),
        CategoryRule("carb", removed=frozenset({"wasPreset", "presetType"})),
        CategoryRule(
            "activate",
            removed=frozenset({"lotNumber", "serialNumber", "podVersion", "interlockVersion"}),
            marker=True,
        ),
        CategoryRule("deactivate", marker=True),
        CategoryRule("download", marker=True),
    )
}


def accept(category: str) -> bool:
    """Return False for categories with no import value."""
    return category not in IGNORED_CATEGORIES


def rule_for(category: str) -> CategoryRule:
    """Look up the cleanup rule; unknown categories get the common set only."""
    name = category.lower()
    return RULES.get(name) or CategoryRule(name)
