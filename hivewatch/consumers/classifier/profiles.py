"""Tuning tables for the BedWars variant classifier.

Every threshold and multiplier the classifier uses lives here as data, one
row per variant/stat/threshold, so the scoring logic can be exercised with
substitute tables.
"""

from dataclasses import dataclass, field

SOLOS = "bed-solos"
DUOS = "bed-duos"
SQUADS = "bed-squads"
MANOR = "bed-manor"
MEGA = "bed-mega"

VARIANTS: tuple[str, ...] = (SOLOS, DUOS, SQUADS, MANOR, MEGA)

# Stats that drive the classifier, in scoring order
WEIGHTED_STATS: tuple[str, ...] = ("beds_destroyed", "kills", "final_kills", "deaths")

BASE_SCORE = 100
REALISTIC_BONUS = 15
POSSIBLE_PENALTY = 5
IMPOSSIBLE_PENALTY = 30


# =============================================================================
# SINGLE-GAME ENVELOPES
# =============================================================================


@dataclass(frozen=True)
class StatRange:
    """Realistic sub-range inside a hard possible maximum."""

    realistic_min: float
    realistic_max: float
    maximum: float

    def score(self, value: float) -> int:
        if self.realistic_min <= value <= self.realistic_max:
            return REALISTIC_BONUS
        if value <= self.maximum:
            return -POSSIBLE_PENALTY
        return -IMPOSSIBLE_PENALTY


@dataclass(frozen=True)
class VariantEnvelope:
    """Stat ranges one variant typically produces in a single game."""

    variant: str
    ranges: dict[str, StatRange]


ENVELOPES: tuple[VariantEnvelope, ...] = (
    VariantEnvelope(
        SOLOS,
        {
            "final_kills": StatRange(3, 4, 7),
            "kills": StatRange(7, 13, 20),
            "beds_destroyed": StatRange(2, 4, 7),
            "deaths": StatRange(0, 4, 7),
        },
    ),
    VariantEnvelope(
        DUOS,
        {
            "final_kills": StatRange(3, 6, 14),
            "kills": StatRange(9, 15, 25),
            "beds_destroyed": StatRange(2, 4, 7),
            "deaths": StatRange(0, 4, 7),
        },
    ),
    VariantEnvelope(
        SQUADS,
        {
            "final_kills": StatRange(0, 5, 12),
            "kills": StatRange(0, 6, 14),
            "beds_destroyed": StatRange(0, 2, 3),
            "deaths": StatRange(0, 4, 5),
        },
    ),
    VariantEnvelope(
        MANOR,
        {
            "final_kills": StatRange(1.5, 6, 15),
            "kills": StatRange(2, 9, 15),
            "beds_destroyed": StatRange(0, 2, 3),
            "deaths": StatRange(0, 2, 5),
        },
    ),
    VariantEnvelope(
        MEGA,
        {
            "final_kills": StatRange(0, 4, 12),
            "kills": StatRange(4, 12, 25),
            "beds_destroyed": StatRange(0, 1, 1),
            "deaths": StatRange(0, 2, 3),
        },
    ),
)


@dataclass(frozen=True)
class SingleGameExclusion:
    """Zero out variants when a single game's stat exceeds a threshold."""

    stat: str
    threshold: float
    excluded: tuple[str, ...]


SINGLE_GAME_EXCLUSIONS: tuple[SingleGameExclusion, ...] = (
    SingleGameExclusion("beds_destroyed", 1, (MEGA,)),
    SingleGameExclusion("beds_destroyed", 3, (SQUADS, MANOR, MEGA)),
    SingleGameExclusion("kills", 15, (SOLOS, DUOS)),
    SingleGameExclusion("final_kills", 7, (SOLOS,)),
)


@dataclass(frozen=True)
class FlawlessBedBonus:
    """Deathless games with many beds broken point to small teams."""

    min_beds: int = 3
    bonuses: dict[str, int] = field(default_factory=lambda: {SOLOS: 20, DUOS: 10})


FLAWLESS_BED_BONUS = FlawlessBedBonus()


# =============================================================================
# HISTORY ADJUSTMENTS
# =============================================================================


@dataclass(frozen=True)
class HistoryWeightProfile:
    """Multipliers chosen by where a rolling average falls.

    avg >= high_threshold uses `high`, avg >= medium_threshold uses
    `medium`, anything lower uses `low`.
    """

    stat: str
    high_threshold: float
    medium_threshold: float
    high: dict[str, float]
    medium: dict[str, float]
    low: dict[str, float]

    def factors_for(self, average: float) -> dict[str, float]:
        if average >= self.high_threshold:
            return self.high
        if average >= self.medium_threshold:
            return self.medium
        return self.low


HISTORY_WEIGHTS: tuple[HistoryWeightProfile, ...] = (
    HistoryWeightProfile(
        stat="beds_destroyed",
        high_threshold=3,
        medium_threshold=2,
        high={SOLOS: 1.4, DUOS: 1.3, SQUADS: 0.6, MANOR: 0.6, MEGA: 0},
        medium={SOLOS: 1.1, DUOS: 1.15, SQUADS: 1.02, MANOR: 1.034, MEGA: 0},
        low={SOLOS: 0.25, DUOS: 0.26, SQUADS: 1.15, MANOR: 1.20, MEGA: 1.1},
    ),
    HistoryWeightProfile(
        stat="kills",
        high_threshold=12,
        medium_threshold=7,
        high={SOLOS: 1.3, DUOS: 1.25, SQUADS: 0.7, MANOR: 0.83, MEGA: 1.1},
        medium={SOLOS: 1.1, DUOS: 1.1, SQUADS: 0.95, MANOR: 1.1, MEGA: 1.0},
        low={SOLOS: 0.7, DUOS: 0.75, SQUADS: 1.2, MANOR: 1.15, MEGA: 0.98},
    ),
    HistoryWeightProfile(
        stat="final_kills",
        high_threshold=5,
        medium_threshold=3,
        high={SOLOS: 0.95, DUOS: 1, SQUADS: 0.9, MANOR: 0.88, MEGA: 0.98},
        medium={SOLOS: 1.1, DUOS: 1, SQUADS: 0.98, MANOR: 1.15, MEGA: 0.98},
        low={SOLOS: 0.9, DUOS: 0.85, SQUADS: 1.15, MANOR: 1.1, MEGA: 1.05},
    ),
    HistoryWeightProfile(
        stat="deaths",
        high_threshold=3,
        medium_threshold=1,
        high={SOLOS: 1.2, DUOS: 1.2, SQUADS: 0.2, MANOR: 0.7, MEGA: 0.10},
        medium={SOLOS: 1.05, DUOS: 1.085, SQUADS: 1.0, MANOR: 1.0, MEGA: 0.95},
        low={SOLOS: 0.6, DUOS: 0.6, SQUADS: 1.12, MANOR: 0.9, MEGA: 1.05},
    ),
)


@dataclass(frozen=True)
class HistoryRule:
    """Applied in order once the rolling average exceeds the threshold.

    A multiplier of 0 is a hard exclusion; anything else is a soft penalty
    (the product is floored).
    """

    stat: str
    threshold: float
    variants: tuple[str, ...]
    multiplier: float = 0.0


HISTORY_RULES: tuple[HistoryRule, ...] = (
    HistoryRule("beds_destroyed", 1.0, (MEGA,)),
    HistoryRule("beds_destroyed", 3.0, (SQUADS, MANOR)),
    HistoryRule("beds_destroyed", 2.1, (SQUADS, MANOR), multiplier=0.3),
    HistoryRule("kills", 15, (SOLOS, DUOS, SQUADS)),
    HistoryRule("final_kills", 7, (SOLOS, MEGA, MANOR)),
    HistoryRule("final_kills", 5, (SQUADS,)),
    HistoryRule("final_kills", 14, (DUOS,)),
)

MIN_HISTORY_GAMES = 3
HISTORY_SIZE = 10

# Used only when every variant has been excluded by history
DEGENERATE_FALLBACK: dict[str, int] = {SOLOS: 33, DUOS: 33, SQUADS: 34}


@dataclass(frozen=True)
class ClassifierTables:
    """Everything the classifier needs, bundled for injection."""

    variants: tuple[str, ...] = VARIANTS
    envelopes: tuple[VariantEnvelope, ...] = ENVELOPES
    single_game_exclusions: tuple[SingleGameExclusion, ...] = SINGLE_GAME_EXCLUSIONS
    flawless_bonus: FlawlessBedBonus = FLAWLESS_BED_BONUS
    history_weights: tuple[HistoryWeightProfile, ...] = HISTORY_WEIGHTS
    history_rules: tuple[HistoryRule, ...] = HISTORY_RULES
    min_history_games: int = MIN_HISTORY_GAMES
    history_size: int = HISTORY_SIZE
    degenerate_fallback: dict[str, int] = field(default_factory=lambda: dict(DEGENERATE_FALLBACK))


DEFAULT_TABLES = ClassifierTables()
