"""Tests for winstreak tracking and milestone alerts."""

import pytest

from hivewatch.consumers.milestones import MilestoneMonitor
from hivewatch.consumers.streaks import StreakTracker
from hivewatch.core import MatchEvent, StatRecord


def _event(is_win: bool, family: str = "sg", player: str = "steve") -> MatchEvent:
    return MatchEvent(
        player_id=player,
        family=family,
        is_win=is_win,
        stats_delta=StatRecord(played=1, victories=int(is_win)),
        occurred_at=0.0,
    )


# =============================================================================
# STREAKS
# =============================================================================


class TestStreakTracker:
    """Win adds one, loss resets to zero."""

    def test_streak_trace(self):
        tracker = StreakTracker()
        trace = [tracker.apply(_event(w)) for w in (True, True, True, False, True)]
        assert trace == [1, 2, 3, 0, 1]

    def test_absent_streak_is_zero(self):
        assert StreakTracker().get("nobody", "bed") == 0

    def test_families_are_independent(self):
        tracker = StreakTracker()
        tracker.apply(_event(True, "bed"))
        tracker.apply(_event(True, "bed"))
        tracker.apply(_event(False, "sky"))

        assert tracker.get("steve", "bed") == 2
        assert tracker.get("steve", "sky") == 0

    def test_players_are_independent(self):
        tracker = StreakTracker()
        tracker.apply(_event(True, player="steve"))
        tracker.apply(_event(False, player="alex"))

        assert tracker.get("steve", "sg") == 1
        assert tracker.get("alex", "sg") == 0

    def test_manual_override(self):
        tracker = StreakTracker()
        tracker.set("steve", "sg", 41)
        assert tracker.apply(_event(True)) == 42

    def test_negative_override_rejected(self):
        with pytest.raises(ValueError):
            StreakTracker().set("steve", "sg", -1)

    def test_forget(self):
        tracker = StreakTracker()
        tracker.apply(_event(True))
        tracker.forget("steve")
        assert tracker.for_player("steve") == {}


# =============================================================================
# MILESTONES
# =============================================================================


class TestMilestoneMonitor:
    """One alert per 50-multiple per climb."""

    def _climb(self, monitor, start, end):
        return [monitor.check("steve", "sg", s) for s in range(start, end + 1)]

    def test_single_alert_at_fifty(self):
        monitor = MilestoneMonitor()
        alerts = [a for a in self._climb(monitor, 1, 99) if a is not None]

        assert len(alerts) == 1
        assert alerts[0].streak == 50
        assert alerts[0].family == "sg"

    def test_rearms_after_regression(self):
        monitor = MilestoneMonitor()
        first = [a for a in self._climb(monitor, 1, 60) if a]
        assert monitor.check("steve", "sg", 10) is None
        second = [a for a in self._climb(monitor, 11, 50) if a]

        assert len(first) == 1
        assert len(second) == 1

    def test_no_duplicate_without_regression(self):
        monitor = MilestoneMonitor()
        assert monitor.check("steve", "sg", 50) is not None
        assert monitor.check("steve", "sg", 50) is None

    def test_zero_never_alerts(self):
        assert MilestoneMonitor().check("steve", "sg", 0) is None

    def test_hundred_after_fifty(self):
        monitor = MilestoneMonitor()
        alerts = [a.streak for a in self._climb(monitor, 1, 100) if a]
        assert alerts == [50, 100]

    def test_loss_resets_last_alerted(self):
        monitor = MilestoneMonitor()
        monitor.check("steve", "sg", 50)
        monitor.check("steve", "sg", 0)
        assert monitor.last_alerted("steve", "sg") == 0

    def test_rearm(self):
        monitor = MilestoneMonitor()
        monitor.check("steve", "sg", 50)
        monitor.rearm("steve", "sg")
        assert monitor.check("steve", "sg", 50) is not None

    def test_custom_step(self):
        monitor = MilestoneMonitor(step=5)
        alerts = [a.streak for a in (monitor.check("steve", "sg", s) for s in range(1, 11)) if a]
        assert alerts == [5, 10]

    def test_alert_uses_display_name(self):
        monitor = MilestoneMonitor()

        assert monitor.check("steve", "sg", 50, display_name="Steve").player == "Steve"
        assert monitor.check("alex", "sg", 50).player == "alex"
