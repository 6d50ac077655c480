"""Observed-state provider backed by read-only ``ifconfig`` queries."""

from __future__ import annotations

import logging
from typing import Protocol

from gifsync.client.command import CommandExecutor
from gifsync.client.errors import CommandError, StateError
from gifsync.client.ifconfig_ops import IFCONFIG
from gifsync.model.state import ObservedState
from gifsync.parser.ifconfig import parse_interface_address, parse_interfaces, split_interfaces

logger = logging.getLogger(__name__)


class ObservedStateProvider(Protocol):
    """Source of live interface state consumed by the reconciler."""

    def snapshot(self) -> ObservedState: ...

    def interface_address(self, iface: str, ipv6: bool) -> str | None: ...


class IfconfigStateProvider:
    """Query ``ifconfig`` and parse its output into structured state.

    Args:
        executor: Command executor used for the read-only queries.
    """

    def __init__(self, executor: CommandExecutor) -> None:
        self._executor = executor

    def snapshot(self) -> ObservedState:
        """Return a fresh snapshot of every gif, bridge and VLAN interface.

        Raises:
            StateError: If ``ifconfig -a`` cannot be run.
        """
        try:
            result = self._executor.execute(IFCONFIG, "-a")
        except CommandError as exc:
            raise StateError(f"failed to list interfaces: {exc}") from exc
        state = parse_interfaces(result.output)
        logger.debug(
            "Observed %d gif, %d bridge, %d vlan interface(s)",
            len(state.tunnels),
            len(state.bridges),
            len(state.vlans),
        )
        return state

    def interface_address(self, iface: str, ipv6: bool) -> str | None:
        """Return the current address of *iface* in the requested family, if any."""
        try:
            result = self._executor.execute(IFCONFIG, iface)
        except CommandError as exc:
            logger.debug("Cannot query %s: %s", iface, exc)
            return None
        block = split_interfaces(result.output).get(iface, result.output)
        return parse_interface_address(block, ipv6)
