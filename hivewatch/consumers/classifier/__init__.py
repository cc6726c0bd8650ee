"""BedWars variant classification."""

from hivewatch.consumers.classifier.profiles import (
    DEFAULT_TABLES,
    DUOS,
    MANOR,
    MEGA,
    SOLOS,
    SQUADS,
    VARIANTS,
    ClassifierTables,
    HistoryRule,
    HistoryWeightProfile,
    SingleGameExclusion,
    StatRange,
    VariantEnvelope,
)
from hivewatch.consumers.classifier.variant_classifier import (
    VariantClassifier,
    format_percentages,
    normalize_percentages,
    uniform_percentages,
)

__all__ = [
    "DEFAULT_TABLES",
    "DUOS",
    "MANOR",
    "MEGA",
    "SOLOS",
    "SQUADS",
    "VARIANTS",
    "ClassifierTables",
    "HistoryRule",
    "HistoryWeightProfile",
    "SingleGameExclusion",
    "StatRange",
    "VariantClassifier",
    "VariantEnvelope",
    "format_percentages",
    "normalize_percentages",
    "uniform_percentages",
]
