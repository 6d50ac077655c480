#!/usr/bin/env python3
"""Run one reconciliation pass in check mode, or live.

Usage (dry-run, default):
    python examples/plan_tunnels.py

Usage (live apply):
    APPLY=1 python examples/plan_tunnels.py

Reads examples/settings.json (override with GIFSYNC_CONF), which points at
examples/tunnels.json. Must run on the FreeBSD host itself, as root, for a
live apply.
"""

from __future__ import annotations

import logging
import os
import pathlib
import pprint

from gifsync.logsetup import configure_logging
from gifsync.model.settings import load_settings
from gifsync.notify import build_sink
from gifsync.reconciler import Reconciler

HERE = pathlib.Path(__file__).parent
SETTINGS = os.getenv("GIFSYNC_CONF", str(HERE / "settings.json"))
APPLY = os.getenv("APPLY", "0") == "1"

settings = load_settings(SETTINGS)
if not pathlib.Path(settings.config_source).is_absolute() and "://" not in settings.config_source:
    settings.config_source = str(HERE / settings.config_source)
configure_logging(settings.log_level or "INFO")

reconciler = Reconciler(settings, sink=build_sink(settings))
result = reconciler.run_pass(check_mode=not APPLY)

mode = "LIVE APPLY" if APPLY else "DRY-RUN (check_mode=True)"
print(f"\n=== run_pass: {mode} ===\n")
pprint.pprint(result.diff)

if result.applied is not None and result.applied.failed:
    logging.getLogger(__name__).warning("Failed interfaces: %s", result.applied.failed)
if not APPLY:
    print("\n[INFO] No changes were applied. Set APPLY=1 to converge the host.")
