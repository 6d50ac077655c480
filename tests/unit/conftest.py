"""Shared fixtures: a simulated ``ifconfig`` host and a recording event sink."""

from __future__ import annotations

import pytest

from gifsync.client.command import CommandExecutor, RetryPolicy

from fakes import FakeHost, RecordingSink

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def host() -> FakeHost:
    h = FakeHost()
    h.add_physical("em0", inet=["192.0.2.10"], inet6=["fe80::1%em0", "2001:db8::10"])
    h.add_physical("em2")
    return h


@pytest.fixture
def executor(host: FakeHost) -> CommandExecutor:
    return CommandExecutor(runner=host, policy=RetryPolicy(delay_s=0.0), sleep=lambda _s: None)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
