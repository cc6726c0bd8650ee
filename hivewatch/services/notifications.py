"""Notification sinks.

The engine produces structured records (GameNotification, MilestoneAlert,
ExpiryNotice); sinks decide what to do with them. Sink failures are logged
and never propagate into the poll tick.
"""

import logging

import httpx

from hivewatch.core import (
    ExpiryNotice,
    GameNotification,
    MilestoneAlert,
    NotificationRecord,
    NotificationSink,
)

logger = logging.getLogger(__name__)


def describe(record: NotificationRecord) -> str:
    """One-line plain-text rendering, used for logs."""
    if isinstance(record, GameNotification):
        parts = [
            f"{record.player} {record.result} in {record.family_display}",
            f"streak {record.streak}",
            f"K {record.stats.kills} / D {record.stats.deaths}",
        ]
        if record.stats.final_kills:
            parts.append(f"FK {record.stats.final_kills}")
        if record.stats.beds_destroyed:
            parts.append(f"beds {record.stats.beds_destroyed}")
        if record.daily_kd:
            parts.append(f"daily K/D {record.daily_kd.formatted()}")
        if record.variant_summary:
            parts.append(record.variant_summary)
        if record.eta_seconds is not None:
            parts.append(f"next match in ~{record.eta_seconds}s")
        return " | ".join(parts)
    if isinstance(record, MilestoneAlert):
        return f"{record.player} is on a {record.streak} win streak in {record.family}"
    if isinstance(record, ExpiryNotice):
        return f"Temporary tracking for {record.player} expired"
    return repr(record)


class LoggingSink:
    """Writes every record to the log."""

    def __init__(self, level: int = logging.INFO):
        self._level = level

    def publish(self, record: NotificationRecord) -> None:
        logger.log(self._level, "[NOTIFY] %s", describe(record))


class WebhookSink:
    """POSTs each record as JSON to a webhook URL."""

    def __init__(
        self,
        url: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self._url = url
        self._client = httpx.Client(timeout=timeout, transport=transport)

    def publish(self, record: NotificationRecord) -> None:
        response = self._client.post(self._url, json=record.to_dict())
        response.raise_for_status()

    def close(self) -> None:
        self._client.close()


class CompositeSink:
    """Fans a record out to several sinks, isolating their failures."""

    def __init__(self, sinks: list[NotificationSink] | None = None):
        self._sinks: list[NotificationSink] = list(sinks or [])

    @property
    def sinks(self) -> list[NotificationSink]:
        return list(self._sinks)

    def add(self, sink: NotificationSink) -> None:
        self._sinks.append(sink)

    def publish(self, record: NotificationRecord) -> None:
        for sink in self._sinks:
            try:
                sink.publish(record)
            except Exception as e:
                logger.warning("[NOTIFY] %s failed: %s", type(sink).__name__, e)

    def close(self) -> None:
        for sink in self._sinks:
            close = getattr(sink, "close", None)
            if close is not None:
                close()


def create_notification_sink(webhook_url: str | None = None) -> CompositeSink:
    """Logging sink, plus a webhook sink when a URL is configured."""
    sink = CompositeSink([LoggingSink()])
    if webhook_url:
        sink.add(WebhookSink(webhook_url))
        logger.info("[NOTIFY] Webhook notifications enabled")
    return sink
