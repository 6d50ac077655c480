"""Typed model for desired tunnels and the per-pass transition plan."""

from __future__ import annotations

from dataclasses import dataclass, field

from gifsync.model.state import ObservedBridge, ObservedTunnel

GIF_PREFIX: str = "gif"
BRIDGE_PREFIX: str = "bridge"


def gif_name(tunnel_id: str) -> str:
    return f"{GIF_PREFIX}{tunnel_id}"


def bridge_name(tunnel_id: str) -> str:
    return f"{BRIDGE_PREFIX}{tunnel_id}"


def vlan_iface_name(physical_iface: str, vlan_id: str) -> str:
    return f"{physical_iface}.{vlan_id}"


@dataclass
class TunnelSpec:
    """One logical tunnel from the desired-state document.

    Before resolution ``src_addr`` and ``dst_addr`` may be empty; after
    :func:`~gifsync.utils.spec_loader.validate_entries` both are concrete
    IP literals.

    Attributes:
        tunnel_id: Interface unit number shared by ``gif<id>`` and ``bridge<id>``.
        vlan_id: 802.1Q tag of the VLAN sub-interface.
        src_addr: Outer source address.
        dst_addr: Outer destination address.
        dst_hostname: Name resolved into ``dst_addr`` when the latter is empty.
        ip_version: Explicit ``"4"`` / ``"6"``, or ``""`` to infer.
        description: Free text set as the gif interface description.
    """

    tunnel_id: str
    vlan_id: str
    src_addr: str = ""
    dst_addr: str = ""
    dst_hostname: str = ""
    ip_version: str = ""
    description: str = ""

    @property
    def gif(self) -> str:
        return gif_name(self.tunnel_id)

    @property
    def bridge(self) -> str:
        return bridge_name(self.tunnel_id)

    @property
    def is_ipv6(self) -> bool:
        """Address family of the tunnel, taken from its source address."""
        return ":" in self.src_addr

    def vlan_iface(self, physical_iface: str) -> str:
        return vlan_iface_name(physical_iface, self.vlan_id)

    def bridge_members(self, physical_iface: str) -> list[str]:
        """Members the bridge of this tunnel must have, in creation order."""
        return [self.gif, self.vlan_iface(physical_iface)]


@dataclass
class TransitionPlan:
    """Changes needed to move the observed interfaces to the desired tunnels.

    VLAN sub-interfaces are reconciled inline by the apply engine and are
    therefore absent here.

    Attributes:
        gifs_to_add: gif name to desired spec, for tunnels that do not exist.
        gifs_to_modify: gif name to desired spec, for tunnels whose endpoints,
            address family or description differ.
        gifs_to_remove: gif name to observed tunnel, for tunnels not desired.
        bridges_to_add: bridge name to desired members, for bridges missing or
            with wrong membership.
        bridges_to_remove: bridge name to observed bridge, for bridges not desired.
    """

    gifs_to_add: dict[str, TunnelSpec] = field(default_factory=dict)
    gifs_to_modify: dict[str, TunnelSpec] = field(default_factory=dict)
    gifs_to_remove: dict[str, ObservedTunnel] = field(default_factory=dict)
    bridges_to_add: dict[str, list[str]] = field(default_factory=dict)
    bridges_to_remove: dict[str, ObservedBridge] = field(default_factory=dict)

    @property
    def empty(self) -> bool:
        return not (
            self.gifs_to_add
            or self.gifs_to_modify
            or self.gifs_to_remove
            or self.bridges_to_add
            or self.bridges_to_remove
        )

    @property
    def summary(self) -> dict[str, int]:
        return {
            "gif_add": len(self.gifs_to_add),
            "gif_modify": len(self.gifs_to_modify),
            "gif_remove": len(self.gifs_to_remove),
            "bridge_add": len(self.bridges_to_add),
            "bridge_remove": len(self.bridges_to_remove),
        }
