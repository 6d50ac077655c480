"""Typed model for the observed (live) interface state."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ObservedTunnel:
    """A gif interface as reported by ``ifconfig``.

    Attributes:
        name: Interface name, e.g. ``"gif1"``.
        tunnel_id: Unit number parsed from the name.
        src_addr: Outer source address, ``""`` if no tunnel is configured.
        dst_addr: Outer destination address, ``""`` if no tunnel is configured.
        is_ipv6: True when the outer addresses are IPv6.
        description: Interface description, whitespace-trimmed.
    """

    name: str
    tunnel_id: str
    src_addr: str = ""
    dst_addr: str = ""
    is_ipv6: bool = False
    description: str = ""


@dataclass
class ObservedBridge:
    """A bridge interface and its current members."""

    name: str
    tunnel_id: str
    members: list[str] = field(default_factory=list)


@dataclass
class ObservedVlan:
    """A VLAN sub-interface with its tag and parent interface."""

    name: str
    vlan_id: str
    parent: str = ""


@dataclass
class ObservedState:
    """Snapshot of every gif, bridge and VLAN interface on the host.

    Taken fresh at the start of each pass and never reused across passes.
    """

    tunnels: dict[str, ObservedTunnel] = field(default_factory=dict)
    bridges: dict[str, ObservedBridge] = field(default_factory=dict)
    vlans: dict[str, ObservedVlan] = field(default_factory=dict)
    interfaces: list[str] = field(default_factory=list)

    def vlans_on(self, physical_iface: str) -> dict[str, ObservedVlan]:
        """Return the VLAN interfaces stacked on *physical_iface*."""
        prefix = f"{physical_iface}."
        return {
            name: vlan
            for name, vlan in self.vlans.items()
            if vlan.parent == physical_iface or name.startswith(prefix)
        }
