"""Tests for queue-time forecasting and the countdown schedule."""

import pytest

from hivewatch.consumers.forecaster import QueueCountdown, QueueForecaster

T = 1_700_000_000.0


@pytest.fixture
def forecaster():
    return QueueForecaster()


# =============================================================================
# PREDICT
# =============================================================================


class TestPredict:
    """Weighted-interval ETA, suppressed outside 30s..20min."""

    def test_no_history(self, forecaster):
        assert forecaster.predict("steve", "bed", T) is None

    def test_single_match(self, forecaster):
        forecaster.record_match("steve", "bed", T)
        assert forecaster.predict("steve", "bed", T + 10) is None

    def test_two_matches_eta(self, forecaster):
        forecaster.record_match("steve", "bed", T)
        forecaster.record_match("steve", "bed", T + 100)

        # Predicted next match at T+200
        assert forecaster.predict("steve", "bed", T + 100) == 100
        assert forecaster.predict("steve", "bed", T + 110) == 90

    def test_eta_below_minimum_suppressed(self, forecaster):
        forecaster.record_match("steve", "bed", T)
        forecaster.record_match("steve", "bed", T + 100)

        assert forecaster.predict("steve", "bed", T + 170) == 30
        assert forecaster.predict("steve", "bed", T + 180) is None

    def test_eta_above_maximum_suppressed(self, forecaster):
        forecaster.record_match("steve", "bed", T)
        forecaster.record_match("steve", "bed", T + 1500)

        assert forecaster.predict("steve", "bed", T + 1500) is None

    def test_recent_gaps_weigh_more(self, forecaster):
        for offset in (0, 100, 400):
            forecaster.record_match("steve", "bed", T + offset)

        # (100*1 + 300*2) / 3 = 233.3
        assert forecaster.predict("steve", "bed", T + 400) == 233

    def test_old_matches_filtered(self, forecaster):
        forecaster.record_match("steve", "bed", T)
        forecaster.record_match("steve", "bed", T + 2000)
        forecaster.record_match("steve", "bed", T + 2100)

        # The first match is outside the 30 minute window
        assert forecaster.predict("steve", "bed", T + 2100) == 100

    def test_only_one_recent_match(self, forecaster):
        forecaster.record_match("steve", "bed", T)
        forecaster.record_match("steve", "bed", T + 1900)

        assert forecaster.predict("steve", "bed", T + 1901) is None

    def test_families_are_separate(self, forecaster):
        forecaster.record_match("steve", "bed", T)
        forecaster.record_match("steve", "sky", T + 100)

        assert forecaster.predict("steve", "bed", T + 100) is None

    def test_never_outside_bounds(self, forecaster):
        for offset in range(0, 600, 60):
            forecaster.record_match("steve", "bed", T + offset)
        for elapsed in range(0, 3000, 7):
            eta = forecaster.predict("steve", "bed", T + 540 + elapsed)
            assert eta is None or 30 <= eta <= 1200


# =============================================================================
# WINDOW
# =============================================================================


class TestWindow:
    """Capacity 10 FIFO per (player, family)."""

    def test_capacity(self, forecaster):
        for i in range(12):
            forecaster.record_match("steve", "bed", T + i)

        recent = forecaster.recent_matches("steve", "bed")
        assert len(recent) == 10
        assert recent[0] == T + 2

    def test_load_truncates(self, forecaster):
        forecaster.load_player("steve", {"bed": [T + i for i in range(15)]})
        assert len(forecaster.recent_matches("steve", "bed")) == 10

    def test_forget(self, forecaster):
        forecaster.record_match("steve", "bed", T)
        forecaster.forget("steve")
        assert forecaster.for_player("steve") == {}


# =============================================================================
# COUNTDOWN
# =============================================================================


class TestQueueCountdown:
    """14 second steps, dropped after ETA + 60s."""

    def test_ticks(self):
        assert QueueCountdown(60, T).ticks() == [46, 32, 18, 4]

    def test_ticks_short_eta(self):
        assert QueueCountdown(14, T).ticks() == []

    def test_expires_at(self):
        assert QueueCountdown(60, T).expires_at == T + 120

    def test_remaining(self):
        countdown = QueueCountdown(60, T)

        assert countdown.remaining(T) == 60
        assert countdown.remaining(T + 13) == 60
        assert countdown.remaining(T + 14) == 46
        assert countdown.remaining(T + 56) == 4
        assert countdown.remaining(T + 70) is None

    def test_is_expired(self):
        countdown = QueueCountdown(60, T)

        assert not countdown.is_expired(T + 30)
        assert countdown.is_expired(T + 70)
        assert countdown.is_expired(T + 500)
