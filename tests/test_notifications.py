"""Tests for notification sinks and record rendering."""

import json
import logging

import httpx

from hivewatch.core import DailyKD, ExpiryNotice, GameNotification, MilestoneAlert, StatRecord
from hivewatch.services.notifications import (
    CompositeSink,
    LoggingSink,
    WebhookSink,
    create_notification_sink,
    describe,
)
from hivewatch.utilities.time_ago import format_time_ago

T = 1_700_000_000.0


def _game(**overrides) -> GameNotification:
    values = {
        "player": "Steve",
        "family": "bed",
        "family_display": "BedWars",
        "is_win": True,
        "stats": StatRecord(played=1, victories=1, kills=7, deaths=1, final_kills=2),
        "streak": 3,
        "occurred_at": T,
    }
    values.update(overrides)
    return GameNotification(**values)


class TestRecords:
    """Structured records and their plain-text form."""

    def test_game_to_dict(self):
        record = _game(
            variant_percentages={"bed-solos": 70, "bed-duos": 30},
            variant_summary="Bed Solos: 70% | Bed Duos: 30%",
            eta_seconds=95,
            daily_kd=DailyKD(ratio=3.5, kills=7, deaths=2),
        )

        data = record.to_dict()

        assert data["type"] == "game"
        assert data["result"] == "WIN"
        assert data["stats"]["kills"] == 7
        assert data["daily_kd"] == "3.50 (7K/2D)"
        json.dumps(data)

    def test_describe_game(self):
        text = describe(_game(is_win=False, streak=0, eta_seconds=120))

        assert text.startswith("Steve LOSS in BedWars")
        assert "FK 2" in text
        assert "next match in ~120s" in text

    def test_describe_milestone_and_expiry(self):
        assert "50 win streak" in describe(MilestoneAlert("Steve", "sky", 50, T))
        assert describe(ExpiryNotice("Alex", T)) == "Temporary tracking for Alex expired"


class TestSinks:
    """Delivery and failure isolation."""

    def test_logging_sink(self, caplog):
        with caplog.at_level(logging.INFO, logger="hivewatch.services.notifications"):
            LoggingSink().publish(_game())

        assert "[NOTIFY] Steve WIN in BedWars" in caplog.text

    def test_webhook_posts_json(self):
        received = []

        def handler(request):
            received.append(json.loads(request.content))
            return httpx.Response(204)

        sink = WebhookSink("https://hooks.example/notify", transport=httpx.MockTransport(handler))
        sink.publish(MilestoneAlert("Steve", "sky", 50, T))
        sink.close()

        assert received[0]["type"] == "milestone"
        assert received[0]["family_display"] == "Sky Wars"

    def test_composite_isolates_failures(self, sink, caplog):
        class BrokenSink:
            def publish(self, record):
                raise RuntimeError("down")

        composite = CompositeSink([BrokenSink(), sink])

        with caplog.at_level(logging.WARNING):
            composite.publish(_game())

        assert len(sink.records) == 1
        assert "BrokenSink failed" in caplog.text

    def test_factory_without_webhook(self):
        composite = create_notification_sink(None)
        assert [type(s).__name__ for s in composite.sinks] == ["LoggingSink"]

    def test_factory_with_webhook(self):
        composite = create_notification_sink("https://hooks.example/notify")
        assert [type(s).__name__ for s in composite.sinks] == ["LoggingSink", "WebhookSink"]
        composite.close()


class TestTimeAgo:
    def test_units(self):
        assert format_time_ago(0.4) == "just now"
        assert format_time_ago(40) == "40s ago"
        assert format_time_ago(12 * 60 + 5) == "12m ago"
        assert format_time_ago(5 * 3600) == "5h ago"
        assert format_time_ago(3 * 86400 + 10) == "3d ago"
        assert format_time_ago(-10) == "just now"
