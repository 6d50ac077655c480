"""Parser for FreeBSD ``ifconfig`` text output."""

from __future__ import annotations

import ipaddress
import re

from gifsync.model.state import ObservedBridge, ObservedState, ObservedTunnel, ObservedVlan

# Interface header: "gif1: flags=8051<UP,POINTOPOINT,RUNNING,MULTICAST> metric 0 mtu 1280"
_HEADER_RE: re.Pattern[str] = re.compile(r"^(?P<name>[A-Za-z][\w.]*):\s+flags=")

_GIF_RE: re.Pattern[str] = re.compile(r"^gif(?P<unit>\d+)$")
_BRIDGE_RE: re.Pattern[str] = re.compile(r"^bridge(?P<unit>\d+)$")

_TUNNEL_RE: re.Pattern[str] = re.compile(
    r"^\s*tunnel\s+(?P<family>inet6?)\s+(?P<src>\S+)\s+-->\s+(?P<dst>\S+)", re.MULTILINE
)
_MEMBER_RE: re.Pattern[str] = re.compile(r"^\s*member:\s+(?P<member>\S+)", re.MULTILINE)
_VLAN_RE: re.Pattern[str] = re.compile(
    r"^\s*vlan:\s+(?P<vid>\d+)(?:.*?parent interface:\s+(?P<parent>\S+))?", re.MULTILINE
)
_DESCRIPTION_RE: re.Pattern[str] = re.compile(r"^\s*description:(?P<text>.*)$", re.MULTILINE)
_INET_RE: re.Pattern[str] = re.compile(r"^\s*(?P<family>inet6?)\s+(?P<addr>\S+)", re.MULTILINE)


def split_interfaces(text: str) -> dict[str, str]:
    """Split ``ifconfig -a`` output into per-interface blocks.

    Args:
        text: Raw ``ifconfig`` output.

    Returns:
        Mapping of interface name to the block of lines describing it
        (header line included), in output order.
    """
    blocks: dict[str, list[str]] = {}
    current: list[str] | None = None
    for line in text.splitlines():
        m = _HEADER_RE.match(line)
        if m:
            current = blocks.setdefault(m.group("name"), [])
            current.append(line)
        elif current is not None:
            current.append(line)
    return {name: "\n".join(lines) for name, lines in blocks.items()}


def parse_tunnel(name: str, block: str) -> ObservedTunnel:
    """Parse one gif interface block."""
    m = _GIF_RE.match(name)
    tunnel_id = m.group("unit") if m else name[len("gif"):]
    description = ""
    d = _DESCRIPTION_RE.search(block)
    if d:
        description = d.group("text").strip()
    t = _TUNNEL_RE.search(block)
    if t is None:
        return ObservedTunnel(name=name, tunnel_id=tunnel_id, description=description)
    return ObservedTunnel(
        name=name,
        tunnel_id=tunnel_id,
        src_addr=_strip_scope(t.group("src")),
        dst_addr=_strip_scope(t.group("dst")),
        is_ipv6=t.group("family") == "inet6",
        description=description,
    )


def parse_bridge(name: str, block: str) -> ObservedBridge:
    """Parse one bridge interface block."""
    m = _BRIDGE_RE.match(name)
    tunnel_id = m.group("unit") if m else name[len("bridge"):]
    members = [mm.group("member") for mm in _MEMBER_RE.finditer(block)]
    return ObservedBridge(name=name, tunnel_id=tunnel_id, members=members)


def parse_vlan(name: str, block: str) -> ObservedVlan | None:
    """Parse one VLAN sub-interface block, or return ``None`` if it carries no tag."""
    v = _VLAN_RE.search(block)
    if v is None:
        return None
    parent = v.group("parent") or name.rsplit(".", 1)[0]
    return ObservedVlan(name=name, vlan_id=v.group("vid"), parent=parent)


def parse_interfaces(text: str) -> ObservedState:
    """Build an :class:`~gifsync.model.state.ObservedState` from ``ifconfig -a``.

    Only gif, bridge and tagged VLAN interfaces are recorded; every other
    interface name is kept in :attr:`ObservedState.interfaces` alone.
    """
    state = ObservedState()
    for name, block in split_interfaces(text).items():
        state.interfaces.append(name)
        if _GIF_RE.match(name):
            state.tunnels[name] = parse_tunnel(name, block)
        elif _BRIDGE_RE.match(name):
            state.bridges[name] = parse_bridge(name, block)
        elif "." in name:
            vlan = parse_vlan(name, block)
            if vlan is not None:
                state.vlans[name] = vlan
    return state


def parse_interface_address(block: str, ipv6: bool) -> str | None:
    """Return the first usable address of the requested family in *block*.

    IPv6 link-local addresses are skipped since they cannot serve as a tunnel
    endpoint.
    """
    wanted = "inet6" if ipv6 else "inet"
    for m in _INET_RE.finditer(block):
        if m.group("family") != wanted:
            continue
        candidate = _strip_scope(m.group("addr").split("/", 1)[0])
        try:
            addr = ipaddress.ip_address(candidate)
        except ValueError:
            continue
        if addr.is_link_local:
            continue
        return str(addr)
    return None


def _strip_scope(addr: str) -> str:
    """Drop a ``%zone`` suffix from an IPv6 address."""
    return addr.split("%", 1)[0]
