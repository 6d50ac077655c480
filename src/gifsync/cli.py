"""``gifsync`` command-line entry point."""

from __future__ import annotations

import argparse
import json
import logging
import os
import sys

from gifsync.client.errors import GifSyncError, SettingsError
from gifsync.daemon import Daemon
from gifsync.logsetup import configure_logging
from gifsync.model.settings import load_settings
from gifsync.notify import build_sink
from gifsync.reconciler import Reconciler

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH: str = "/usr/local/etc/gifsync/settings.json"

# Overrides the settings path when -c/--config is not given.
SETTINGS_ENV: str = "GIFSYNC_CONF"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gifsync",
        description="Reconcile gif tunnels, VLANs and bridges against a tunnel document.",
    )
    parser.add_argument(
        "-c",
        "--config",
        default=None,
        help=f"path to settings.json (default: ${SETTINGS_ENV} or {DEFAULT_SETTINGS_PATH})",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--once", action="store_true", help="run a single pass and exit")
    mode.add_argument(
        "--check",
        action="store_true",
        help="print the planned changes as JSON without applying them",
    )
    return parser


def settings_path(arg: str | None) -> str:
    if arg:
        return arg
    return os.environ.get(SETTINGS_ENV) or DEFAULT_SETTINGS_PATH


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings(settings_path(args.config))
    except SettingsError as exc:
        print(f"Initial load settings failed: {exc}", file=sys.stderr)
        return 1

    configure_logging(settings.log_level, settings.log_file)
    sink = build_sink(settings)
    reconciler = Reconciler(settings, sink=sink)

    if args.check or args.once:
        try:
            result = reconciler.run_pass(check_mode=args.check)
        except GifSyncError as exc:
            logger.error("Pass failed: %s", exc)
            return 2
        if args.check:
            print(json.dumps(result.diff, indent=2))
        return 0

    logger.info("Program start: source=%s physical_iface=%s", settings.config_source,
                settings.physical_iface)
    daemon = Daemon(reconciler, float(settings.fetch_interval), sink)
    daemon.install_signal_handlers()
    try:
        return daemon.run()
    except Exception as exc:
        logger.exception("Program terminated due to unexpected error: %s", exc)
        return 2


if __name__ == "__main__":
    sys.exit(main())
