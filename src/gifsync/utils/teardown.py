"""Teardown workflows: destroy managed interfaces and wait until they are gone."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field

from gifsync.client import ifconfig_ops as ops
from gifsync.client.command import CommandExecutor
from gifsync.client.errors import CommandError, StateError
from gifsync.client.observed import ObservedStateProvider
from gifsync.model.state import ObservedState
from gifsync.notify import EventSink

logger = logging.getLogger(__name__)

REMOVAL_TIMEOUT_S: float = 10.0
REMOVAL_POLL_INTERVAL_S: float = 0.05


@dataclass
class TeardownResult:
    """Outcome of a teardown.

    Attributes:
        destroyed: Interfaces for which ``destroy`` succeeded.
        failed: Interfaces whose ``destroy`` failed after retries.
        remaining: Destroyed interfaces still listed when the wait timed out.
    """

    destroyed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    remaining: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed and not self.remaining


def vlan_targets(observed: ObservedState, physical_iface: str) -> list[str]:
    """Interfaces destroyed by a VLAN reset."""
    return sorted(observed.vlans_on(physical_iface))


def all_targets(observed: ObservedState, physical_iface: str) -> list[str]:
    """Interfaces destroyed by a full reset: gifs, then VLANs, then bridges."""
    return (
        sorted(observed.tunnels)
        + vlan_targets(observed, physical_iface)
        + sorted(observed.bridges)
    )


def wait_for_removal(
    provider: ObservedStateProvider,
    names: list[str],
    sink: EventSink,
    *,
    timeout_s: float = REMOVAL_TIMEOUT_S,
    interval_s: float = REMOVAL_POLL_INTERVAL_S,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> list[str]:
    """Poll the live interface list until none of *names* remain.

    Listing failures are reported and polling continues. On timeout a warning
    is emitted; the caller carries on regardless.

    Returns:
        The names still present when polling stopped (empty on success).
    """
    if not names:
        return []
    logger.debug("Waiting for removal of %s", names)
    deadline = clock() + timeout_s
    remaining = list(names)
    while True:
        try:
            present = set(provider.snapshot().interfaces)
        except StateError as exc:
            sink.emit(logging.WARNING, "Failed to check interfaces removal", {"error": exc})
        else:
            remaining = [name for name in names if name in present]
            if not remaining:
                logger.debug("All interfaces removed: %s", names)
                return []
        if clock() >= deadline:
            break
        sleep(interval_s)

    sink.emit(
        logging.WARNING,
        "Timeout waiting for interfaces removal",
        {"remaining": remaining, "timeout": f"{timeout_s}s"},
    )
    return remaining


def destroy_interfaces(
    executor: CommandExecutor,
    provider: ObservedStateProvider,
    names: list[str],
    sink: EventSink,
    *,
    timeout_s: float = REMOVAL_TIMEOUT_S,
    interval_s: float = REMOVAL_POLL_INTERVAL_S,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> TeardownResult:
    """Destroy every interface in *names*, then wait for them to disappear.

    A failing ``destroy`` is reported and the remaining interfaces are still
    destroyed.
    """
    result = TeardownResult()
    for name in names:
        try:
            ops.destroy_interface(executor, name)
        except CommandError as exc:
            sink.emit(logging.ERROR, "Failed to remove interface during reset",
                      {"interface": name, "error": exc})
            result.failed.append(name)
            continue
        result.destroyed.append(name)

    result.remaining = wait_for_removal(
        provider,
        result.destroyed,
        sink,
        timeout_s=timeout_s,
        interval_s=interval_s,
        clock=clock,
        sleep=sleep,
    )
    return result
