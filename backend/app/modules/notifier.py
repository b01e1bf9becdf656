"""Alert notification channels and fire-and-forget delivery.

Channels:
  - ChatWebhookChannel: Telegram-style bot webhook, Markdown text
  - WebhookChannel: generic JSON webhook (summary + structured alert)
  - MailerChannel: HTTP mailer service (subject + HTML body)

Each alert gets exactly one POST per enabled channel with a bounded timeout.
Delivery runs on a small thread pool so evaluation never waits on a slow
endpoint; failures become DeliveryResult(ok=False) and a log line, never an
exception and never a retry.

Usage:
    from app.modules.notifier import Notifier, load_channels
    notifier = Notifier(load_channels(settings.NOTIFY_CONFIG))
    notifier.dispatch(alert)
"""
from __future__ import annotations

import html
import logging
from abc import ABC, abstractmethod
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional

import httpx
import yaml
from pydantic import BaseModel, Field, ValidationError

from app.models.base import AlertSeverityEnum
from app.modules.alert_store import Alert

logger = logging.getLogger(__name__)

_SEVERITY_MARKERS = {
    AlertSeverityEnum.CRITICAL: "[CRITICAL]",
    AlertSeverityEnum.WARNING: "[WARNING]",
    AlertSeverityEnum.INFO: "[INFO]",
}


@dataclass(frozen=True)
class DeliveryResult:
    channel: str
    ref: str
    ok: bool
    status_code: Optional[int] = None
    error: Optional[str] = None


def format_alert_summary(alert: Alert) -> str:
    """One-line human summary: severity, type, port, vessel and the key metric."""
    return (
        f"{_SEVERITY_MARKERS[alert.severity]} {alert.alert_type.value} "
        f"{alert.port_code} | {alert.vessel_name} ({alert.vessel_ref}) | {alert.message}"
    )


class NotificationChannel(ABC):
    name: str = "channel"

    def __init__(self, url: str) -> None:
        self.url = url

    @abstractmethod
    def alert_payload(self, alert: Alert) -> dict[str, Any]:
        ...

    @abstractmethod
    def text_payload(self, subject: str, text: str) -> dict[str, Any]:
        """Payload for free-form notices such as congestion summaries."""
        ...


class ChatWebhookChannel(NotificationChannel):
    name = "chat_webhook"

    def alert_payload(self, alert: Alert) -> dict[str, Any]:
        text = "\n".join([
            f"{_SEVERITY_MARKERS[alert.severity]} *Port Alert - {alert.alert_type.value}*",
            f"Port: *{alert.port_code}* | Vessel: *{alert.vessel_name}* ({alert.vessel_ref})",
            alert.message,
            f"_{alert.created_at.isoformat()}_",
        ])
        return {"text": text, "parse_mode": "Markdown"}

    def text_payload(self, subject: str, text: str) -> dict[str, Any]:
        return {"text": text, "parse_mode": "Markdown"}


class WebhookChannel(NotificationChannel):
    name = "webhook"

    def alert_payload(self, alert: Alert) -> dict[str, Any]:
        return {"summary": format_alert_summary(alert), "alert": alert.to_dict()}

    def text_payload(self, subject: str, text: str) -> dict[str, Any]:
        return {"summary": subject, "text": text}


class MailerChannel(NotificationChannel):
    name = "email"

    def __init__(self, mailer_url: str, to: list[str]) -> None:
        super().__init__(mailer_url.rstrip("/") + "/api/send")
        self.to = to

    def alert_payload(self, alert: Alert) -> dict[str, Any]:
        subject = f"[PortWatch] {alert.severity.value} - {alert.alert_type.value} - {alert.port_code}"
        body = (
            f"<h2>{html.escape(subject)}</h2>"
            f"<p><strong>Vessel:</strong> {html.escape(alert.vessel_name)} ({html.escape(alert.vessel_ref)})</p>"
            f"<p><strong>Port:</strong> {html.escape(alert.port_code)}</p>"
            f"<p><strong>Message:</strong> {html.escape(alert.message)}</p>"
            f"<p><strong>Time:</strong> {alert.created_at.isoformat()}</p>"
        )
        return {"to": self.to, "subject": subject, "html": body}

    def text_payload(self, subject: str, text: str) -> dict[str, Any]:
        body = "".join(f"<p>{html.escape(line)}</p>" for line in text.splitlines())
        return {"to": self.to, "subject": f"[PortWatch] {subject}", "html": body}


class _ChatWebhookConfig(BaseModel):
    enabled: bool = False
    url: str = ""


class _WebhookConfig(BaseModel):
    enabled: bool = False
    url: str = ""


class _EmailConfig(BaseModel):
    enabled: bool = False
    mailer_url: str = ""
    to: list[str] = Field(default_factory=list)


class NotifyConfig(BaseModel):
    chat_webhook: _ChatWebhookConfig = Field(default_factory=_ChatWebhookConfig)
    webhook: _WebhookConfig = Field(default_factory=_WebhookConfig)
    email: _EmailConfig = Field(default_factory=_EmailConfig)


def channels_from_config(config: NotifyConfig) -> list[NotificationChannel]:
    channels: list[NotificationChannel] = []
    if config.chat_webhook.enabled and config.chat_webhook.url:
        channels.append(ChatWebhookChannel(config.chat_webhook.url))
    if config.webhook.enabled and config.webhook.url:
        channels.append(WebhookChannel(config.webhook.url))
    if config.email.enabled and config.email.mailer_url and config.email.to:
        channels.append(MailerChannel(config.email.mailer_url, config.email.to))
    return channels


def load_channels(path: str | Path) -> list[NotificationChannel]:
    """Enabled channels from notify.yaml. Missing or invalid file means no channels."""
    config_path = Path(path)
    if not config_path.exists():
        logger.info("Notification config not found at %s, notifications disabled", config_path)
        return []
    try:
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
        config = NotifyConfig.model_validate(raw)
    except (yaml.YAMLError, ValidationError) as exc:
        logger.warning("Invalid notification config %s: %s, notifications disabled", config_path, exc)
        return []
    channels = channels_from_config(config)
    logger.info("Notification channels enabled: %s", ", ".join(c.name for c in channels) or "none")
    return channels


class Notifier:
    def __init__(
        self,
        channels: list[NotificationChannel] | None = None,
        timeout_seconds: float = 5.0,
        max_workers: int = 4,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.channels = list(channels or [])
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="notify")

    def dispatch(self, alert: Alert) -> list[Future]:
        """Queue one delivery per channel and return immediately."""
        return [
            self._submit(channel, channel.alert_payload(alert), alert.alert_id)
            for channel in self.channels
        ]

    def dispatch_text(self, subject: str, text: str, ref: str) -> list[Future]:
        return [
            self._submit(channel, channel.text_payload(subject, text), ref)
            for channel in self.channels
        ]

    def deliver(self, channel: NotificationChannel, payload: dict[str, Any], ref: str) -> DeliveryResult:
        """Single bounded POST. Never raises for malformed URLs, transport or HTTP errors."""
        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self._transport) as client:
                resp = client.post(channel.url, json=payload)
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            logger.warning("Notification %s via %s failed: %s", ref, channel.name, type(exc).__name__)
            return DeliveryResult(channel=channel.name, ref=ref, ok=False, error=str(exc) or type(exc).__name__)

        if resp.status_code >= 400:
            logger.warning("Notification %s via %s rejected: HTTP %d", ref, channel.name, resp.status_code)
            return DeliveryResult(
                channel=channel.name, ref=ref, ok=False,
                status_code=resp.status_code, error=f"HTTP {resp.status_code}",
            )
        logger.debug("Notification %s delivered via %s", ref, channel.name)
        return DeliveryResult(channel=channel.name, ref=ref, ok=True, status_code=resp.status_code)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)

    def _submit(self, channel: NotificationChannel, payload: dict[str, Any], ref: str) -> Future:
        return self._executor.submit(self.deliver, channel, payload, ref)
