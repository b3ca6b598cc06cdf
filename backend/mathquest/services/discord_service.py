"""Discord webhook notifications for administrators."""

import threading
import time
from datetime import UTC, datetime

import httpx
import structlog

from mathquest.config import settings

logger = structlog.get_logger()

ALERT_COLOR = 15158332  # red
CERTIFICATE_COLOR = 3066993  # green
ALERT_COOLDOWN_SECONDS = 30.0


class _Cooldown:
    """Lets one event through per period; the rest are dropped."""

    def __init__(self, seconds: float) -> None:
        self.seconds = seconds
        self._last: float | None = None
        self._lock = threading.Lock()

    def ready(self) -> bool:
        with self._lock:
            now = time.monotonic()
            if self._last is not None and now - self._last < self.seconds:
                return False
            self._last = now
            return True

    def reset(self) -> None:
        with self._lock:
            self._last = None


# A failing dependency must not flood the alerts channel
_alert_cooldown = _Cooldown(ALERT_COOLDOWN_SECONDS)


def _truncate(value: str, limit: int) -> str:
    return value[:limit] + "..." if len(value) > limit else value


def _field(name: str, value: str, inline: bool = True) -> dict:
    return {"name": name, "value": value, "inline": inline}


def _embed(title: str, color: int, fields: list[dict]) -> dict:
    return {
        "embeds": [
            {
                "title": title,
                "color": color,
                "fields": fields,
                "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            }
        ]
    }


async def _post_webhook(url: str, payload: dict, webhook_type: str) -> bool:
    """POST to a webhook. Logs and returns False on any HTTP failure."""
    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(url, json=payload, timeout=10.0)
            response.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.error(
            "discord_webhook_error",
            webhook_type=webhook_type,
            status_code=e.response.status_code,
        )
        return False
    except httpx.RequestError as e:
        logger.error("discord_webhook_request_error", webhook_type=webhook_type, error=str(e))
        return False
    logger.info("discord_notification_sent", webhook_type=webhook_type)
    return True


async def send_certificate_request_notification(request_id: int, username: str, score: int) -> bool:
    """
    Tell the admin channel a certificate was requested.

    Returns False when the webhook is not configured or the post fails; the
    request itself is already stored either way.
    """
    webhook_url = settings.discord_admin_webhook_url
    if not webhook_url:
        logger.debug("discord_webhook_not_configured", webhook_type="certificate")
        return False

    payload = _embed(
        "New Certificate Request",
        CERTIFICATE_COLOR,
        [
            _field("Request", f"#{request_id}"),
            _field("Player", _truncate(username, 100)),
            _field("Score", str(score)),
        ],
    )
    return await _post_webhook(webhook_url, payload, "certificate")


def reset_alert_rate_limit() -> None:
    """Forget the last alert time. Used in tests."""
    _alert_cooldown.reset()


async def send_error_alert(
    error_type: str,
    message: str,
    *,
    path: str | None = None,
    correlation_id: str | None = None,
) -> bool:
    """Report an unhandled server error. Rate-limited; never raises."""
    webhook_url = settings.discord_alerts_webhook_url
    if not webhook_url:
        return False
    if not _alert_cooldown.ready():
        logger.info("discord_alert_rate_limited", error_type=error_type)
        return False

    optional = [("Path", path), ("Correlation ID", correlation_id)]
    fields = [_field("Error Type", error_type)]
    fields += [_field(name, value) for name, value in optional if value]
    if message:
        fields.append(_field("Message", _truncate(message, 500), inline=False))

    return await _post_webhook(webhook_url, _embed("Server Error Alert", ALERT_COLOR, fields), "alert")
