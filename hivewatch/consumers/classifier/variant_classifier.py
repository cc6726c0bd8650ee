"""BedWars variant detection.

The stats API reports all BedWars modes under a single `bed` bucket. The
classifier scores a game's stat shape against each variant's typical
envelope, then, once a player has a few games on record, biases the result
with that player's rolling averages.

Output is a percentage per variant, not a verdict.
"""

import logging
import math
from collections import deque

from hivewatch.consumers.classifier.profiles import DEFAULT_TABLES, ClassifierTables
from hivewatch.core.types import VariantSample

logger = logging.getLogger(__name__)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def normalize_percentages(scores: dict[str, float]) -> dict[str, int] | None:
    """Scale non-negative scores to integer percentages summing to 100.

    Each value is rounded half-up; if rounding drifts off 100 the points are
    re-apportioned by largest remainder instead.

    Returns:
        Percentages, or None when every score is zero or negative
    """
    clipped = {variant: max(0.0, float(score)) for variant, score in scores.items()}
    total = sum(clipped.values())
    if total <= 0:
        return None

    exact = {variant: 100 * score / total for variant, score in clipped.items()}
    rounded = {variant: _round_half_up(value) for variant, value in exact.items()}
    if sum(rounded.values()) == 100:
        return rounded

    floored = {variant: math.floor(value) for variant, value in exact.items()}
    leftover = 100 - sum(floored.values())
    by_remainder = sorted(exact, key=lambda v: exact[v] - floored[v], reverse=True)
    for variant in by_remainder[:leftover]:
        floored[variant] += 1
    return floored


def uniform_percentages(variants: tuple[str, ...]) -> dict[str, int]:
    return normalize_percentages({variant: 1 for variant in variants})


def _stat(stats, name: str) -> float:
    if isinstance(stats, dict):
        return stats.get(name, 0) or 0
    return getattr(stats, name, 0) or 0


def format_percentages(percentages: dict[str, int]) -> str:
    """Render e.g. 'Bed Solos: 60% | Bed Duos: 40%' (descending, zeros dropped)."""
    ranked = sorted(
        ((variant, pct) for variant, pct in percentages.items() if pct > 0),
        key=lambda item: item[1],
        reverse=True,
    )
    return " | ".join(
        f"{' '.join(word.capitalize() for word in variant.split('-'))}: {pct}%"
        for variant, pct in ranked
    )


class VariantClassifier:
    """Scores BedWars games against variant envelopes.

    Usage:
        classifier = VariantClassifier()
        percentages = classifier.score_with_history("steve", game_stats, now)
        # {"bed-solos": 41, "bed-duos": 35, ...}

    Per-player history holds the last `history_size` classified games and is
    appended *after* scoring, so a game only influences later calls.
    """

    def __init__(self, tables: ClassifierTables = DEFAULT_TABLES):
        self._tables = tables
        self._history: dict[str, deque[VariantSample]] = {}

    @property
    def tables(self) -> ClassifierTables:
        return self._tables

    # =========================================================================
    # Single game
    # =========================================================================

    def score_single_game(self, stats) -> dict[str, int]:
        """Percentage per variant from one game's stats alone.

        Args:
            stats: StatRecord, VariantSample or dict with kills, final_kills,
                beds_destroyed and deaths

        Returns:
            Mapping variant -> percentage (sums to 100)
        """
        tables = self._tables
        scores: dict[str, float] = {variant: 100 for variant in tables.variants}

        for rule in tables.single_game_exclusions:
            if _stat(stats, rule.stat) > rule.threshold:
                for variant in rule.excluded:
                    if variant in scores:
                        scores[variant] = 0

        bonus = tables.flawless_bonus
        if _stat(stats, "deaths") == 0 and _stat(stats, "beds_destroyed") >= bonus.min_beds:
            for variant, points in bonus.bonuses.items():
                if variant in scores:
                    scores[variant] += points

        for envelope in tables.envelopes:
            if scores.get(envelope.variant, 0) == 0:
                continue
            for stat_name, stat_range in envelope.ranges.items():
                scores[envelope.variant] += stat_range.score(_stat(stats, stat_name))

        percentages = normalize_percentages(scores)
        if percentages is None:
            return uniform_percentages(tables.variants)
        return percentages

    # =========================================================================
    # History-aware
    # =========================================================================

    def score_with_history(self, player_id: str, stats, now: float) -> dict[str, int]:
        """Percentage per variant using the player's recent games as context.

        Falls back to the single-game score until `min_history_games` games
        are on record. The current game is recorded afterwards.
        """
        percentages = self.score_single_game(stats)
        history = self._history.get(player_id)

        if history is not None and len(history) >= self._tables.min_history_games:
            averages = self.history_averages(player_id)
            percentages = self._apply_history(player_id, percentages, averages)

        self.record_game(player_id, stats, now)
        return percentages

    def _apply_history(
        self,
        player_id: str,
        percentages: dict[str, int],
        averages: dict[str, float],
    ) -> dict[str, int]:
        tables = self._tables
        adjusted: dict[str, float] = dict(percentages)

        for profile in tables.history_weights:
            factors = profile.factors_for(averages.get(profile.stat, 0.0))
            for variant in adjusted:
                adjusted[variant] = math.floor(adjusted[variant] * factors.get(variant, 1.0))

        adjusted = normalize_percentages(adjusted) or {variant: 0 for variant in adjusted}

        for rule in tables.history_rules:
            if averages.get(rule.stat, 0.0) <= rule.threshold:
                continue
            for variant in rule.variants:
                if variant in adjusted:
                    adjusted[variant] = math.floor(adjusted[variant] * rule.multiplier)
            logger.debug(
                "[CLASSIFY] %s avg %s %.1f > %s, x%s for %s",
                player_id,
                rule.stat,
                averages[rule.stat],
                rule.threshold,
                rule.multiplier,
                ", ".join(rule.variants),
            )

        result = normalize_percentages(adjusted)
        if result is None:
            logger.warning("[CLASSIFY] All variants excluded for %s, using fallback", player_id)
            result = {variant: 0 for variant in tables.variants}
            result.update(tables.degenerate_fallback)

        logger.debug(
            "[CLASSIFY] %s history (%d games): %s",
            player_id,
            len(self._history.get(player_id, ())),
            format_percentages(result),
        )
        return result

    def history_averages(self, player_id: str) -> dict[str, float]:
        """Rolling mean of each weighted stat, empty dict without history."""
        history = self._history.get(player_id)
        if not history:
            return {}
        count = len(history)
        return {
            name: sum(getattr(sample, name) for sample in history) / count
            for name in ("kills", "final_kills", "beds_destroyed", "deaths")
        }

    def record_game(self, player_id: str, stats, now: float) -> None:
        history = self._history.get(player_id)
        if history is None:
            history = self._history[player_id] = deque(maxlen=self._tables.history_size)
        history.append(
            VariantSample(
                kills=int(_stat(stats, "kills")),
                final_kills=int(_stat(stats, "final_kills")),
                beds_destroyed=int(_stat(stats, "beds_destroyed")),
                deaths=int(_stat(stats, "deaths")),
                timestamp=now,
            )
        )

    def history(self, player_id: str) -> list[VariantSample]:
        return list(self._history.get(player_id, ()))

    def load_player(self, player_id: str, samples: list[VariantSample]) -> None:
        size = self._tables.history_size
        self._history[player_id] = deque(samples[-size:], maxlen=size)

    def forget(self, player_id: str) -> None:
        self._history.pop(player_id, None)
