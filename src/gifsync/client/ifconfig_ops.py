"""Low-level ``ifconfig`` write operations.

Each function builds the exact argument vector for one ``ifconfig`` subcommand
and delegates to :class:`~gifsync.client.command.CommandExecutor` for dispatch.

    CREATE:      ifconfig <iface> create
    DESTROY:     ifconfig <iface> destroy
    TUNNEL:      ifconfig <gif> [inet6] tunnel <src> <dst>
    VLAN:        ifconfig <phys>.<vid> vlan <vid> vlandev <phys> up
    BRIDGE:      ifconfig <bridge> addm <member>
    MTU:         ifconfig <iface> mtu <n>
    DESCRIPTION: ifconfig <gif> description <text> | -description
    FLAGS:       ifconfig <iface> link0 | up
"""

from __future__ import annotations

import logging

from gifsync.client.command import CommandExecutor

logger = logging.getLogger(__name__)

IFCONFIG: str = "ifconfig"

# MTU applied to freshly created gif and bridge interfaces.
DEFAULT_MTU: int = 1500


def create_interface(executor: CommandExecutor, iface: str) -> None:
    """Create a cloned interface; an ``already exists`` reply counts as success."""
    logger.debug("Creating %s", iface)
    executor.execute(IFCONFIG, iface, "create")


def destroy_interface(executor: CommandExecutor, iface: str) -> None:
    """Destroy a cloned interface."""
    logger.debug("Destroying %s", iface)
    executor.execute(IFCONFIG, iface, "destroy")


def set_tunnel(executor: CommandExecutor, gif: str, src_addr: str, dst_addr: str) -> None:
    """Set the outer endpoints of a gif tunnel.

    The ``inet6`` address family keyword is added when *src_addr* is IPv6.
    """
    args = [IFCONFIG, gif]
    if ":" in src_addr:
        args.append("inet6")
    args += ["tunnel", src_addr, dst_addr]
    executor.execute(*args)


def set_link0(executor: CommandExecutor, iface: str) -> None:
    """Set the ``link0`` flag (EtherIP mode on gif, required for bridging)."""
    executor.execute(IFCONFIG, iface, "link0")


def bring_up(executor: CommandExecutor, iface: str) -> None:
    executor.execute(IFCONFIG, iface, "up")


def set_mtu(executor: CommandExecutor, iface: str, mtu: int = DEFAULT_MTU) -> None:
    executor.execute(IFCONFIG, iface, "mtu", str(mtu))


def set_description(executor: CommandExecutor, iface: str, description: str) -> None:
    executor.execute(IFCONFIG, iface, "description", description)


def clear_description(executor: CommandExecutor, iface: str) -> None:
    executor.execute(IFCONFIG, iface, "-description")


def configure_vlan(
    executor: CommandExecutor,
    vlan_iface: str,
    vlan_id: str,
    parent: str,
) -> None:
    """Tag *vlan_iface* with *vlan_id* on top of *parent* and bring it up."""
    executor.execute(IFCONFIG, vlan_iface, "vlan", vlan_id, "vlandev", parent, "up")


def add_bridge_member(executor: CommandExecutor, bridge: str, member: str) -> None:
    executor.execute(IFCONFIG, bridge, "addm", member)
