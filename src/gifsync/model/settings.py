"""Daemon settings loaded from a JSON settings file."""

from __future__ import annotations

import json
import logging
import os
import pathlib
from dataclasses import dataclass, fields
from typing import Any

from gifsync.client.errors import SettingsError

logger = logging.getLogger(__name__)

DEFAULT_FETCH_INTERVAL: int = 30

# Environment variable overriding ``slack_webhook_url`` from the file.
SLACK_WEBHOOK_ENV: str = "SLACK_WEBHOOK_URL"


@dataclass
class Settings:
    """Runtime settings of the reconciler.

    Attributes:
        config_source: URL (``http://``, ``https://``) or local path of the
            tunnel document.
        physical_iface: Parent interface of the managed VLAN sub-interfaces.
        slack_webhook_url: Incoming webhook receiving diffs and warnings.
        slack_channel: Optional channel override for the webhook.
        slack_username: Optional display name for the webhook.
        slack_icon_emoji: Optional icon for the webhook.
        log_level: ``DEBUG``, ``INFO``, ``WARN`` or ``ERROR``.
        log_file: Optional file receiving a copy of the log.
        fetch_interval: Seconds between periodic passes.
        default_src_addr: Source address used when an entry has none.
        default_src_iface: Interface whose live address is used as source
            address; takes precedence over ``default_src_addr``.
    """

    config_source: str
    physical_iface: str
    slack_webhook_url: str = ""
    slack_channel: str = ""
    slack_username: str = ""
    slack_icon_emoji: str = ""
    log_level: str = ""
    log_file: str = ""
    fetch_interval: int = DEFAULT_FETCH_INTERVAL
    default_src_addr: str = ""
    default_src_iface: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """Build :class:`Settings` from a decoded settings mapping.

        Unknown keys are ignored. ``fetch_interval`` values that are missing,
        non-numeric or not positive fall back to the default of 30 seconds.

        Raises:
            SettingsError: If ``config_source`` or ``physical_iface`` is missing.
        """
        known = {f.name for f in fields(cls)}
        values: dict[str, Any] = {}
        for key, value in data.items():
            if key not in known:
                logger.debug("Ignoring unknown settings key %r", key)
                continue
            if key == "fetch_interval":
                continue
            values[key] = "" if value is None else str(value)

        if not values.get("config_source") or not values.get("physical_iface"):
            raise SettingsError("config_source or physical_iface is not specified in settings file")

        try:
            interval = int(data.get("fetch_interval") or 0)
        except (TypeError, ValueError):
            interval = 0
        values["fetch_interval"] = interval if interval > 0 else DEFAULT_FETCH_INTERVAL

        return cls(**values)


def load_settings(path: str | os.PathLike[str]) -> Settings:
    """Read and validate the JSON settings file at *path*.

    ``SLACK_WEBHOOK_URL`` in the environment overrides the file's webhook.

    Raises:
        SettingsError: If the file cannot be read or decoded, or is incomplete.
    """
    try:
        text = pathlib.Path(path).read_text(encoding="utf-8")
    except OSError as exc:
        raise SettingsError(f"failed to read settings file {str(path)!r}: {exc}") from exc
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SettingsError(f"failed to decode settings file {str(path)!r}: {exc}") from exc
    if not isinstance(data, dict):
        raise SettingsError("settings file root must be a JSON object")

    settings = Settings.from_dict(data)
    env_url = os.environ.get(SLACK_WEBHOOK_ENV, "")
    if env_url:
        settings.slack_webhook_url = env_url
    return settings
