"""Renderers for transition plans."""

from __future__ import annotations

from typing import Any

from gifsync.model.tunnel import TransitionPlan, TunnelSpec


def render_plan(plan: TransitionPlan) -> dict[str, Any]:
    """Serialize *plan* to a JSON-serializable dict.

    Returns:
        A dict with keys:

        - ``"summary"``: count of each change kind.
        - ``"total_changes"``: total number of changes.
        - ``"changes"``: list of change dicts (``kind``, ``key``, ``details``).
    """
    changes: list[dict[str, Any]] = []
    for name, spec in plan.gifs_to_add.items():
        changes.append({"kind": "gif_add", "key": name, "details": _spec_details(spec)})
    for name, spec in plan.gifs_to_modify.items():
        changes.append({"kind": "gif_modify", "key": name, "details": _spec_details(spec)})
    for name, tunnel in plan.gifs_to_remove.items():
        changes.append({
            "kind": "gif_remove",
            "key": name,
            "details": {
                "tunnel_id": tunnel.tunnel_id,
                "src_addr": tunnel.src_addr,
                "dst_addr": tunnel.dst_addr,
            },
        })
    for name, members in plan.bridges_to_add.items():
        changes.append({"kind": "bridge_add", "key": name, "details": {"members": list(members)}})
    for name, bridge in plan.bridges_to_remove.items():
        changes.append({
            "kind": "bridge_remove",
            "key": name,
            "details": {"members": list(bridge.members)},
        })
    return {
        "summary": plan.summary,
        "total_changes": len(changes),
        "changes": changes,
    }


def render_report(plan: TransitionPlan, hostname: str) -> str:
    """Render *plan* as the human-readable diff report sent to the event sink.

    Returns ``""`` for an empty plan.
    """
    if plan.empty:
        return ""
    lines = [f"Configuration updated on {hostname}:"]
    if plan.gifs_to_add:
        lines.append("Added tunnels:")
        lines += [_spec_line(spec) for spec in plan.gifs_to_add.values()]
    if plan.gifs_to_modify:
        lines.append("Modified tunnels:")
        lines += [_spec_line(spec) for spec in plan.gifs_to_modify.values()]
    if plan.gifs_to_remove:
        lines.append("Removed tunnels:")
        for tunnel in plan.gifs_to_remove.values():
            lines.append(
                f"- tunnel_id=`{tunnel.tunnel_id}`, src_addr=`{tunnel.src_addr}`, "
                f"dst_addr=`{tunnel.dst_addr}`"
            )
    if plan.bridges_to_add:
        lines.append("Rebuilt bridges:")
        for name, members in plan.bridges_to_add.items():
            lines.append(f"- bridge=`{name}`, members=`{', '.join(members)}`")
    if plan.bridges_to_remove:
        lines.append("Removed bridges:")
        lines += [f"- bridge=`{name}`" for name in plan.bridges_to_remove]
    return "\n".join(lines)


def _spec_details(spec: TunnelSpec) -> dict[str, Any]:
    return {
        "tunnel_id": spec.tunnel_id,
        "src_addr": spec.src_addr,
        "dst_addr": spec.dst_addr,
        "vlan_id": spec.vlan_id,
        "description": spec.description,
    }


def _spec_line(spec: TunnelSpec) -> str:
    return (
        f"- tunnel_id=`{spec.tunnel_id}`, src_addr=`{spec.src_addr}`, "
        f"dst_addr=`{spec.dst_addr}`, vlan_id=`{spec.vlan_id}`"
        f", description=`{spec.description}`"
    )
