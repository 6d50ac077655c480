"""Tunnel / bridge transition planner.

Compares the *observed* interface state against the *desired* validated
specs and produces a :class:`~gifsync.model.tunnel.TransitionPlan` describing
which gif and bridge interfaces must be added, modified or removed.
"""

from __future__ import annotations

from gifsync.model.state import ObservedBridge, ObservedState, ObservedTunnel
from gifsync.model.tunnel import TransitionPlan, TunnelSpec


def tunnel_matches(observed: ObservedTunnel, spec: TunnelSpec) -> bool:
    """Return True when *observed* already carries the configuration of *spec*.

    Endpoints and address family must be identical; descriptions are compared
    with surrounding whitespace trimmed.
    """
    return (
        observed.src_addr == spec.src_addr
        and observed.dst_addr == spec.dst_addr
        and observed.is_ipv6 == spec.is_ipv6
        and observed.description.strip() == spec.description.strip()
    )


def members_equal(current: list[str], desired: list[str]) -> bool:
    """Order-insensitive comparison of two bridge member lists."""
    return sorted(current) == sorted(desired)


def bridge_matches(observed: ObservedBridge | None, desired_members: list[str]) -> bool:
    return observed is not None and members_equal(observed.members, desired_members)


def plan_tunnel_changes(
    observed: ObservedState,
    desired: list[TunnelSpec],
    physical_iface: str,
) -> TransitionPlan:
    """Compute the transition plan from *observed* to *desired*.

    Args:
        observed: Fresh snapshot of the live interfaces.
        desired: Validated, resolved specs (unique ids, vlans and destinations).
        physical_iface: Parent interface of the VLAN sub-interfaces.

    Returns:
        A :class:`TransitionPlan`. Add and modify entries follow document
        order; remove entries are sorted by interface name.
    """
    plan = TransitionPlan()
    desired_gifs = {spec.gif: spec for spec in desired}
    desired_bridges = {spec.bridge: spec.bridge_members(physical_iface) for spec in desired}

    # --- gif: add / modify ---
    for name, spec in desired_gifs.items():
        current = observed.tunnels.get(name)
        if current is None:
            plan.gifs_to_add[name] = spec
        elif not tunnel_matches(current, spec):
            plan.gifs_to_modify[name] = spec

    # --- gif: remove ---
    for name in sorted(observed.tunnels):
        if name not in desired_gifs:
            plan.gifs_to_remove[name] = observed.tunnels[name]

    # --- bridge: add (or recreate) ---
    for name, members in desired_bridges.items():
        if not bridge_matches(observed.bridges.get(name), members):
            plan.bridges_to_add[name] = members

    # --- bridge: remove ---
    for name in sorted(observed.bridges):
        if name not in desired_bridges:
            plan.bridges_to_remove[name] = observed.bridges[name]

    return plan
