"""Event sinks: where warnings, errors and diff reports are delivered.

The reconciliation engine never talks to logging handlers or webhooks
directly; it receives an :class:`EventSink` at construction time and calls
:meth:`EventSink.emit` for every event worth reporting.
"""

from __future__ import annotations

import logging
import socket
import threading
from collections.abc import Iterable
from typing import Any, Protocol

from gifsync.client.errors import GifSyncError
from gifsync.client.http import GifSyncHTTP
from gifsync.model.settings import Settings

logger = logging.getLogger(__name__)

# Level of diff reports: above INFO so they reach the webhook, below WARNING.
NOTICE: int = 25
logging.addLevelName(NOTICE, "NOTICE")

_COLOR_WARNING: str = "#FF9900"
_COLOR_ERROR: str = "#FF0000"
_COLOR_NOTICE: str = "#36A64F"


class EventSink(Protocol):
    """Receiver of reportable reconciliation events."""

    def emit(self, level: int, message: str, fields: dict[str, Any] | None = None) -> None: ...


def format_fields(fields: dict[str, Any] | None) -> str:
    """Render *fields* as `` key=`value` `` pairs, in insertion order."""
    if not fields:
        return ""
    return " ".join(f"{key}=`{value}`" for key, value in fields.items())


def local_hostname() -> str:
    try:
        return socket.gethostname() or "unknown"
    except OSError:
        return "unknown"


class LogSink:
    """Forward events to a :mod:`logging` logger.

    Args:
        target: Logger to write to (default: ``gifsync.events``).
    """

    def __init__(self, target: logging.Logger | None = None) -> None:
        self._logger = target or logging.getLogger("gifsync.events")

    def emit(self, level: int, message: str, fields: dict[str, Any] | None = None) -> None:
        rendered = format_fields(fields)
        if rendered:
            self._logger.log(level, "%s %s", message, rendered)
        else:
            self._logger.log(level, "%s", message)


class SlackSink:
    """Post events to a Slack incoming webhook, fire-and-forget.

    Only events at :data:`NOTICE` or above are sent. Each post runs on its own
    daemon thread with its own :class:`GifSyncHTTP` client, closed once the
    post completes; delivery failures are logged at debug level and never
    reach the caller.

    Args:
        settings: Source of the webhook URL and optional channel, username
            and icon overrides.
        timeout_s: Per-post request timeout in seconds.
        background: Post on a daemon thread (``False`` posts inline, for tests).
    """

    def __init__(
        self,
        settings: Settings,
        timeout_s: float = 10.0,
        *,
        background: bool = True,
    ) -> None:
        self._settings = settings
        self._timeout_s = timeout_s
        self._background = background

    def emit(self, level: int, message: str, fields: dict[str, Any] | None = None) -> None:
        if level < NOTICE or not self._settings.slack_webhook_url:
            return
        payload = self.build_payload(level, message, fields)
        if self._background:
            threading.Thread(
                target=self._post, args=(payload,), name="gifsync-slack", daemon=True
            ).start()
        else:
            self._post(payload)

    def build_payload(
        self, level: int, message: str, fields: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Build the webhook JSON body for one event."""
        if level >= logging.ERROR:
            color, text = _COLOR_ERROR, f"[{local_hostname()}] [ERROR]: {message}"
        elif level >= logging.WARNING:
            color, text = _COLOR_WARNING, f"[{local_hostname()}] [WARN]: {message}"
        else:
            # Diff reports already name the host in their first line.
            color, text = _COLOR_NOTICE, message
        rendered = format_fields(fields)
        if rendered:
            text = f"{text} {rendered}"

        payload: dict[str, Any] = {"attachments": [{"color": color, "text": text}]}
        if self._settings.slack_channel:
            payload["channel"] = self._settings.slack_channel
        if self._settings.slack_username:
            payload["username"] = self._settings.slack_username
        if self._settings.slack_icon_emoji:
            payload["icon_emoji"] = self._settings.slack_icon_emoji
        return payload

    def _post(self, payload: dict[str, Any]) -> None:
        try:
            with GifSyncHTTP(timeout_s=self._timeout_s) as client:
                client.post_json(self._settings.slack_webhook_url, payload)
        except GifSyncError as exc:
            logger.debug("Failed to send notification to Slack: %s", exc)
        except Exception:  # noqa: BLE001
            logger.debug("Unexpected Slack delivery failure (ignored)", exc_info=True)


class MultiSink:
    """Fan events out to several sinks; a failing sink never affects the others."""

    def __init__(self, sinks: Iterable[EventSink]) -> None:
        self._sinks = list(sinks)

    def emit(self, level: int, message: str, fields: dict[str, Any] | None = None) -> None:
        for sink in self._sinks:
            try:
                sink.emit(level, message, fields)
            except Exception:  # noqa: BLE001
                logger.debug("Event sink %r failed (ignored)", sink, exc_info=True)


def build_sink(settings: Settings) -> EventSink:
    """Return the sink for *settings*: logging, plus Slack when a webhook is set."""
    sinks: list[EventSink] = [LogSink()]
    if settings.slack_webhook_url:
        sinks.append(SlackSink(settings))
    return MultiSink(sinks)
