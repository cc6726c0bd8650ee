"""Tests for the daily K/D counters."""

from datetime import date

import pytest

from hivewatch.consumers.daily_stats import DailyStatsTracker

TODAY = date(2024, 3, 10)
TOMORROW = date(2024, 3, 11)


@pytest.fixture
def tracker():
    return DailyStatsTracker()


class TestDailyStatsTracker:
    """Counters accumulate within a day and reset across days."""

    def test_accumulates(self, tracker):
        tracker.update("steve", "bed", 4, 1, TODAY)
        counter = tracker.update("steve", "bed", 3, 2, TODAY)

        assert (counter.kills, counter.deaths) == (7, 3)
        assert counter.reset_date == TODAY

    def test_new_day_resets_before_adding(self, tracker):
        tracker.update("steve", "bed", 10, 5, TODAY)
        counter = tracker.update("steve", "bed", 2, 1, TOMORROW)

        assert (counter.kills, counter.deaths) == (2, 1)
        assert counter.reset_date == TOMORROW

    def test_families_are_separate(self, tracker):
        tracker.update("steve", "bed", 5, 0, TODAY)
        tracker.update("steve", "sky", 1, 1, TODAY)

        assert tracker.get("steve", "bed").kills == 5
        assert tracker.get("steve", "sky").kills == 1

    def test_kd_rounded(self, tracker):
        tracker.update("steve", "bed", 7, 3, TODAY)
        kd = tracker.kd("steve", "bed")

        assert kd.ratio == 2.33
        assert kd.formatted() == "2.33 (7K/3D)"

    def test_kd_without_deaths_is_kills(self, tracker):
        tracker.update("steve", "bed", 6, 0, TODAY)
        assert tracker.kd("steve", "bed").ratio == 6

    def test_kd_without_kills_is_none(self, tracker):
        tracker.update("steve", "bed", 0, 4, TODAY)
        assert tracker.kd("steve", "bed") is None

    def test_kd_unknown_is_none(self, tracker):
        assert tracker.kd("nobody", "bed") is None

    def test_reset_all(self, tracker):
        tracker.update("steve", "bed", 5, 1, TODAY)
        tracker.update("alex", "sky", 2, 2, TODAY)

        assert tracker.reset_all(TOMORROW) == 2
        assert tracker.get("steve", "bed").kills == 0
        assert tracker.get("alex", "sky").reset_date == TOMORROW
        assert tracker.kd("steve", "bed") is None

    def test_for_player_is_a_copy(self, tracker):
        tracker.update("steve", "bed", 5, 1, TODAY)
        copy = tracker.for_player("steve")
        copy["bed"].kills = 99

        assert tracker.get("steve", "bed").kills == 5
