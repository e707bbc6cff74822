"""Cooldown policy and alert delivery."""

from __future__ import annotations

import asyncio
import inspect
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any

import requests

from .logger import get_logger
from .models import Alert, MonitoringTask
from .settings import MonitorSettings

logger = get_logger(__name__)

ALERT_COLOR = "#FFA500"


def cooldown_remaining_ms(task: MonitoringTask, now_ms: int) -> int:
    """Milliseconds until the task may alert again, 0 when it never alerted."""
    if task.last_alert_at_ms is None:
        return 0
    elapsed = now_ms - task.last_alert_at_ms
    return max(0, int(task.cooldown_seconds * 1000) - elapsed)


def should_alert(task: MonitoringTask, now_ms: int) -> bool:
    """True when the task never alerted or its cooldown has strictly elapsed."""
    if task.last_alert_at_ms is None:
        return True
    return now_ms - task.last_alert_at_ms > task.cooldown_seconds * 1000


class BaseAlertHandler(ABC):
    """Receives alerts emitted by the monitor.

    Handlers must not raise into the monitor loop; the monitor still guards
    each call and logs anything that escapes.
    """

    @property
    @abstractmethod
    def name(self) -> str: ...

    @abstractmethod
    async def handle(self, alert: Alert) -> None: ...


class LoggingAlertHandler(BaseAlertHandler):
    @property
    def name(self) -> str:
        return "log"

    async def handle(self, alert: Alert) -> None:
        logger.warning(
            "ALERT [%s] %s=%.4f (%s) vs %s=%.4f (%s): spread %.2f%% > %.2f%%",
            alert.task_id,
            alert.chain_a,
            alert.price_a,
            alert.sources[0],
            alert.chain_b,
            alert.price_b,
            alert.sources[1],
            alert.spread_percent,
            alert.threshold_percent,
        )


class CallbackAlertHandler(BaseAlertHandler):
    """Forwards alerts to a plain or async callable."""

    def __init__(self, callback: Callable[[Alert], Awaitable[None] | None]):
        self.callback = callback

    @property
    def name(self) -> str:
        return getattr(self.callback, "__name__", "callback")

    async def handle(self, alert: Alert) -> None:
        result = self.callback(alert)
        if inspect.isawaitable(result):
            await result


class SlackWebhookAlertHandler(BaseAlertHandler):
    """Posts alerts to a Slack incoming webhook."""

    def __init__(
        self,
        webhook_url: str,
        timeout: float = 10.0,
        display_name: Callable[[str], str] | None = None,
    ):
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._display_name = display_name or (lambda chain: chain)

    @property
    def name(self) -> str:
        return "slack"

    def format_alert(self, alert: Alert) -> dict[str, Any]:
        """Format an alert as a Slack attachment payload."""
        chain_a = self._display_name(alert.chain_a)
        chain_b = self._display_name(alert.chain_b)
        fields = [
            {"title": chain_a, "value": f"{alert.price_a:.4f} ({alert.sources[0]})", "short": True},
            {"title": chain_b, "value": f"{alert.price_b:.4f} ({alert.sources[1]})", "short": True},
            {"title": "Spread", "value": f"{alert.spread_percent:.2f}%", "short": True},
            {"title": "Threshold", "value": f"> {alert.threshold_percent:.2f}%", "short": True},
        ]
        return {
            "attachments": [
                {
                    "color": ALERT_COLOR,
                    "title": f":warning: Price spread on task {alert.task_id}: {chain_a} vs {chain_b}",
                    "fields": fields,
                    "footer": "chainspread",
                    "ts": alert.timestamp_ms // 1000,
                }
            ]
        }

    async def handle(self, alert: Alert) -> None:
        payload = self.format_alert(alert)
        try:
            response = await asyncio.to_thread(
                requests.post, self.webhook_url, json=payload, timeout=self.timeout
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error("Failed to deliver alert %s to Slack: %s", alert.task_id, e)
            return
        logger.debug("Delivered alert %s to Slack", alert.task_id)


def build_alert_handlers(
    settings: MonitorSettings, display_name: Callable[[str], str] | None = None
) -> list[BaseAlertHandler]:
    """Logging always, Slack when a webhook URL is configured."""
    handlers: list[BaseAlertHandler] = [LoggingAlertHandler()]
    webhook_url = settings.secret_value("slack_webhook_url")
    if webhook_url:
        handlers.append(
            SlackWebhookAlertHandler(
                webhook_url,
                timeout=settings.request_timeout_seconds,
                display_name=display_name,
            )
        )
    return handlers
