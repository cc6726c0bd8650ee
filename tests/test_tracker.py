"""Tests for the TrackingEngine (roster plus atomic snapshot apply)."""

import threading
from datetime import UTC, date, datetime

import pytest

from hivewatch.consumers.tracker import PlayerAlreadyTrackedError, TrackingEngine
from hivewatch.core import GameNotification, StatRecord
from hivewatch.database.state_store import MemoryStateStore
from tests.conftest import make_snapshot

T = 1_700_000_000.0


@pytest.fixture
def engine():
    return TrackingEngine()


@pytest.fixture
def steve(engine):
    engine.add_player(
        "Steve",
        make_snapshot(
            bed={"played": 10, "victories": 4, "kills": 40, "beds_destroyed": 5},
            sky={"played": 3, "victories": 1},
        ),
        T,
    )
    return engine.get_player("steve")


# =============================================================================
# ROSTER
# =============================================================================


class TestRoster:
    """Add, look up and remove players."""

    def test_add_sets_zero_streaks(self, engine, steve):
        assert steve.username == "Steve"
        assert steve.key == "steve"
        assert engine.streaks.for_player("steve") == {"bed": 0, "sky": 0}

    def test_lookup_is_case_insensitive(self, engine, steve):
        assert "STEVE" in engine
        assert engine.get_player("sTeVe") is steve
        assert len(engine) == 1

    def test_duplicate_rejected(self, engine, steve):
        with pytest.raises(PlayerAlreadyTrackedError):
            engine.add_player("steve", {}, T)

    def test_remove_unknown(self, engine):
        assert engine.remove_player("nobody") is None

    def test_remove_leaves_no_state(self, engine, steve):
        engine.apply_snapshot(
            "steve",
            make_snapshot(
                bed={"played": 12, "victories": 6, "kills": 48, "deaths": 2, "beds_destroyed": 7},
                sky={"played": 3, "victories": 1},
            ),
            T + 60,
        )
        assert engine.classifier.history("steve")

        removed = engine.remove_player("Steve")

        assert removed.key == "steve"
        assert "steve" not in engine
        assert engine.streaks.for_player("steve") == {}
        assert engine.forecaster.for_player("steve") == {}
        assert engine.classifier.history("steve") == []
        assert engine.milestones.for_player("steve") == {}
        assert engine.daily_stats.for_player("steve") == {}

    def test_expired_players(self, engine):
        engine.add_player("temp", {}, T, expires_at=T + 100)
        engine.add_player("perm", {}, T)

        assert engine.expired_players(T + 50) == []
        assert [p.key for p in engine.expired_players(T + 100)] == ["temp"]

    def test_today_uses_timezone(self, engine):
        # 23:30 UTC on Jan 1st is already Jan 2nd in Berlin
        now = datetime(2024, 1, 1, 23, 30, tzinfo=UTC).timestamp()
        assert engine.today(now) == date(2024, 1, 2)


# =============================================================================
# STREAK OVERRIDE
# =============================================================================


class TestSetStreak:
    """Manual streak override."""

    def test_set_streak(self, engine, steve):
        engine.set_streak("STEVE", "sky", 12)
        assert engine.streaks.get("steve", "sky") == 12

    def test_unknown_player(self, engine):
        with pytest.raises(KeyError):
            engine.set_streak("nobody", "sky", 3)

    def test_negative_rejected(self, engine, steve):
        with pytest.raises(ValueError):
            engine.set_streak("steve", "sky", -2)

    def test_override_to_49_then_win_alerts(self, engine, steve):
        engine.set_streak("steve", "sky", 49)

        result = engine.apply_snapshot(
            "steve",
            make_snapshot(
                bed={"played": 10, "victories": 4, "kills": 40, "beds_destroyed": 5},
                sky={"played": 4, "victories": 2},
            ),
            T + 60,
        )

        assert [m.streak for m in result.milestones] == [50]
        assert result.milestones[0].player == "Steve"
        assert result.notifications[-1].player == "Steve"

    def test_lowering_rearms_milestone(self, engine, steve):
        engine.set_streak("steve", "sky", 50)
        engine.milestones.check("steve", "sky", 50)

        engine.set_streak("steve", "sky", 10)

        assert engine.milestones.last_alerted("steve", "sky") == 0


# =============================================================================
# APPLY
# =============================================================================


class TestApplySnapshot:
    """Diff, streaks, forecasts, classification and daily stats in one step."""

    def test_no_games(self, engine, steve):
        result = engine.apply_snapshot("steve", dict(steve.last_stats), T + 5)

        assert result.events == []
        assert not result.has_new_match
        assert engine.get_player("steve").last_match_at is None

    def test_unknown_player(self, engine):
        with pytest.raises(KeyError):
            engine.apply_snapshot("nobody", {}, T)

    def test_two_wins(self, engine, steve):
        new = make_snapshot(
            bed={"played": 12, "victories": 6, "kills": 48, "deaths": 0, "beds_destroyed": 9},
            sky={"played": 3, "victories": 1},
        )

        result = engine.apply_snapshot("steve", new, T + 60)

        assert len(result.notifications) == 2
        assert [n.streak for n in result.notifications] == [1, 2]
        assert all(isinstance(n, GameNotification) for n in result.records)
        player = engine.get_player("steve")
        assert player.last_match_at == T + 60
        assert player.last_win_at == T + 60
        assert player.last_stats == new

    def test_bed_games_are_classified(self, engine, steve):
        new = make_snapshot(
            bed={"played": 11, "victories": 4, "kills": 48, "deaths": 1, "beds_destroyed": 7},
            sky={"played": 3, "victories": 1},
        )

        notification = engine.apply_snapshot("steve", new, T + 60).notifications[0]

        assert not notification.is_win
        assert sum(notification.variant_percentages.values()) == 100
        assert notification.variant_summary
        assert len(engine.classifier.history("steve")) == 1

    def test_other_families_are_not_classified(self, engine, steve):
        new = make_snapshot(
            bed={"played": 10, "victories": 4, "kills": 40, "beds_destroyed": 5},
            sky={"played": 4, "victories": 2, "kills": 3},
        )

        notification = engine.apply_snapshot("steve", new, T + 60).notifications[0]

        assert notification.family == "sky"
        assert notification.family_display == "Sky Wars"
        assert notification.variant_percentages is None
        assert engine.classifier.history("steve") == []

    def test_daily_kd_only_with_kills_or_deaths(self, engine, steve):
        quiet = make_snapshot(
            bed={"played": 10, "victories": 4, "kills": 40, "beds_destroyed": 5},
            sky={"played": 4, "victories": 2},
        )
        busy = make_snapshot(
            bed={"played": 10, "victories": 4, "kills": 40, "beds_destroyed": 5},
            sky={"played": 5, "victories": 2, "kills": 6, "deaths": 3},
        )

        first = engine.apply_snapshot("steve", quiet, T + 60).notifications[0]
        second = engine.apply_snapshot("steve", busy, T + 120).notifications[0]

        assert first.daily_kd is None
        assert engine.daily_stats.get("steve", "sky").kills == 6
        assert second.daily_kd.ratio == 2

    def test_forecast_recorded_once_per_batch(self, engine, steve):
        new = make_snapshot(
            bed={"played": 13, "victories": 4, "kills": 40, "beds_destroyed": 5},
            sky={"played": 3, "victories": 1},
        )

        engine.apply_snapshot("steve", new, T + 60)

        assert engine.forecaster.recent_matches("steve", "bed") == [T + 60]

    def test_eta_attached_after_second_batch(self, engine, steve):
        first = make_snapshot(
            bed={"played": 11, "victories": 5, "kills": 40, "beds_destroyed": 5},
            sky={"played": 3, "victories": 1},
        )
        second = make_snapshot(
            bed={"played": 12, "victories": 6, "kills": 40, "beds_destroyed": 5},
            sky={"played": 3, "victories": 1},
        )

        engine.apply_snapshot("steve", first, T + 60)
        notification = engine.apply_snapshot("steve", second, T + 360).notifications[0]

        assert notification.eta_seconds == 300

    def test_failure_restores_previous_state(self, engine, steve, monkeypatch):
        before = engine.player_state("steve")

        def boom(*args, **kwargs):
            raise RuntimeError("classifier exploded")

        monkeypatch.setattr(engine.classifier, "score_with_history", boom)
        new = make_snapshot(
            bed={"played": 12, "victories": 6, "kills": 48, "beds_destroyed": 7},
            sky={"played": 3, "victories": 1},
        )

        with pytest.raises(RuntimeError):
            engine.apply_snapshot("steve", new, T + 60)

        assert engine.player_state("steve") == before
        assert engine.get_player("steve").last_stats["bed"].played == 10
        assert engine.forecaster.recent_matches("steve", "bed") == []
        assert engine.streaks.get("steve", "bed") == 0


# =============================================================================
# STATE
# =============================================================================


class TestState:
    """Export to and restore from a store."""

    def test_save_and_load(self, engine, steve):
        engine.apply_snapshot(
            "steve",
            make_snapshot(
                bed={"played": 12, "victories": 5, "kills": 50, "deaths": 3, "beds_destroyed": 8},
                sky={"played": 3, "victories": 1},
            ),
            T + 60,
        )
        store = MemoryStateStore()
        engine.save_to(store)

        restored = TrackingEngine()
        assert restored.load_from(store, T + 100) == 1
        assert restored.player_state("steve") == engine.player_state("steve")

    def test_save_drops_removed_players(self, engine, steve):
        store = MemoryStateStore()
        engine.add_player("alex", {}, T)
        engine.save_to(store)
        engine.remove_player("alex")
        engine.save_to(store)

        assert store.keys("player:") == ["player:steve"]

    def test_export_includes_schema_version(self, engine, steve):
        documents = engine.export_state()
        assert documents["meta:schema_version"] == {"version": 2}

    def test_load_replaces_roster(self, engine, steve):
        engine.load_state({}, T)
        assert len(engine) == 0
        assert engine.streaks.for_player("steve") == {}

    def test_stat_record_roundtrip_values(self, engine, steve):
        store = MemoryStateStore()
        engine.save_to(store)
        restored = TrackingEngine()
        restored.load_from(store, T)

        assert restored.get_player("steve").last_stats["bed"] == StatRecord(
            played=10, victories=4, kills=40, beds_destroyed=5
        )

    def test_concurrent_remove_is_not_undone_by_save(self, engine, steve):
        class InterleavingStore(MemoryStateStore):
            """Starts a remove + save from another thread during the first write."""

            def __init__(self):
                super().__init__()
                self.remover: threading.Thread | None = None

            def set_many(self, items):
                items = list(items)
                if self.remover is None:
                    self.remover = threading.Thread(
                        target=lambda: (engine.remove_player("steve"), engine.save_to(self))
                    )
                    self.remover.start()
                    # Give the remover every chance to run in between
                    self.remover.join(timeout=0.2)
                super().set_many(items)

        store = InterleavingStore()
        engine.save_to(store)
        store.remover.join(timeout=5)

        assert not store.remover.is_alive()
        assert "steve" not in engine
        assert store.keys("player:") == []

        restored = TrackingEngine()
        restored.load_from(store, T + 100)
        assert "steve" not in restored
