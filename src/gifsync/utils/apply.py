"""Apply engine: executes a transition plan through ``ifconfig``.

Apply ordering:

1. destroy gif interfaces marked for removal
2. destroy bridge interfaces marked for removal
3. per tunnel, in document order: gif, then VLAN, then bridge
4. destroy VLAN interfaces on the physical interface that no tunnel references

A failing command aborts only the work on the affected tunnel for this pass;
the next pass starts again from a fresh snapshot.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from gifsync.client import ifconfig_ops as ops
from gifsync.client.command import CommandExecutor
from gifsync.client.errors import CommandError
from gifsync.model.state import ObservedState
from gifsync.model.tunnel import TransitionPlan, TunnelSpec
from gifsync.notify import EventSink

logger = logging.getLogger(__name__)


@dataclass
class ApplyReport:
    """Outcome of one apply run.

    Attributes:
        changed: Interfaces that were created, reconfigured or destroyed.
        failed: Interfaces whose work was aborted by a command failure.
    """

    changed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


def apply_plan(
    executor: CommandExecutor,
    plan: TransitionPlan,
    specs: list[TunnelSpec],
    observed: ObservedState,
    physical_iface: str,
    sink: EventSink,
    *,
    force_reset: bool = False,
) -> ApplyReport:
    """Converge the host onto *specs* following *plan*.

    Args:
        executor: Command executor used for every mutating call.
        plan: Plan computed from *observed* and *specs*.
        specs: Validated specs, in document order.
        observed: Snapshot the plan was computed from.
        physical_iface: Parent interface of the VLAN sub-interfaces.
        sink: Receives one error event per failed step.
        force_reset: Skip every "already correct" check. VLANs and bridges
            are destroyed and recreated; a gif is created or, if it still
            exists, reconfigured in place.

    Returns:
        An :class:`ApplyReport`.
    """
    applier = _Applier(executor, plan, observed, physical_iface, sink, force_reset)
    return applier.run(specs)


class _Applier:
    def __init__(
        self,
        executor: CommandExecutor,
        plan: TransitionPlan,
        observed: ObservedState,
        physical_iface: str,
        sink: EventSink,
        force_reset: bool,
    ) -> None:
        self.executor = executor
        self.plan = plan
        self.observed = observed
        self.physical_iface = physical_iface
        self.sink = sink
        self.force = force_reset
        self.report = ApplyReport()

    def run(self, specs: list[TunnelSpec]) -> ApplyReport:
        for gif in self.plan.gifs_to_remove:
            if self._attempt("Failed to remove gif interface", gif, ops.destroy_interface, gif):
                logger.info("Removed %s", gif)
                self.report.changed.append(gif)
            else:
                self.report.failed.append(gif)

        for bridge in self.plan.bridges_to_remove:
            if self._attempt("Failed to remove bridge interface", bridge,
                             ops.destroy_interface, bridge):
                logger.info("Removed %s", bridge)
                self.report.changed.append(bridge)
            else:
                self.report.failed.append(bridge)

        referenced: set[str] = set()
        for spec in specs:
            referenced.add(spec.vlan_iface(self.physical_iface))
            self._reconcile(spec)

        for vlan in sorted(self.observed.vlans_on(self.physical_iface)):
            if vlan in referenced:
                continue
            if self._attempt("Failed to remove unused VLAN", vlan, ops.destroy_interface, vlan):
                logger.info("Removed unused %s", vlan)
                self.report.changed.append(vlan)
            else:
                self.report.failed.append(vlan)

        return self.report

    # ------------------------------------------------------------------
    # Per-tunnel reconciliation
    # ------------------------------------------------------------------

    def _reconcile(self, spec: TunnelSpec) -> None:
        stage = "gif"
        iface = spec.gif
        try:
            self._reconcile_gif(spec)
            stage, iface = "VLAN", spec.vlan_iface(self.physical_iface)
            vlan_rebuilt = self._reconcile_vlan(spec)
            stage, iface = "bridge", spec.bridge
            self._reconcile_bridge(spec, vlan_rebuilt)
        except CommandError as exc:
            self.sink.emit(
                logging.ERROR,
                f"Failed to configure {stage}",
                {"tunnel_id": spec.tunnel_id, "interface": iface, "error": exc},
            )
            self.report.failed.append(iface)

    def _reconcile_gif(self, spec: TunnelSpec) -> None:
        gif = spec.gif
        current = self.observed.tunnels.get(gif)
        description = spec.description.strip()

        if self.force or current is None or gif in self.plan.gifs_to_add:
            ops.create_interface(self.executor, gif)
            ops.set_tunnel(self.executor, gif, spec.src_addr, spec.dst_addr)
            self._attempt("Failed to set MTU on gif", gif, ops.set_mtu, gif)
            self._attempt("Failed to set link0 on gif", gif, ops.set_link0, gif)
            self._attempt("Failed to bring up gif", gif, ops.bring_up, gif)
            if description:
                self._attempt("Failed to set description on gif", gif,
                              ops.set_description, gif, description)
            logger.info("Created %s (%s -> %s)", gif, spec.src_addr, spec.dst_addr)
            self.report.changed.append(gif)
            return

        if gif not in self.plan.gifs_to_modify:
            logger.debug("%s already exists with correct config, skipping", gif)
            return

        if (
            current.src_addr != spec.src_addr
            or current.dst_addr != spec.dst_addr
            or current.is_ipv6 != spec.is_ipv6
        ):
            ops.set_tunnel(self.executor, gif, spec.src_addr, spec.dst_addr)
            self._attempt("Failed to set link0 on gif", gif, ops.set_link0, gif)
            self._attempt("Failed to bring up gif", gif, ops.bring_up, gif)
            logger.info("Updated %s tunnel (%s -> %s)", gif, spec.src_addr, spec.dst_addr)

        if description != current.description.strip():
            if description:
                if self._attempt("Failed to update description on gif", gif,
                                 ops.set_description, gif, description):
                    logger.info("Updated %s description: %r", gif, description)
            elif self._attempt("Failed to clear description on gif", gif,
                               ops.clear_description, gif):
                logger.info("Cleared %s description", gif)
        self.report.changed.append(gif)

    def _reconcile_vlan(self, spec: TunnelSpec) -> bool:
        """Ensure the VLAN sub-interface exists with the right tag.

        Returns:
            True if the interface was (re)created in this pass.
        """
        vlan_iface = spec.vlan_iface(self.physical_iface)
        current = self.observed.vlans.get(vlan_iface)
        if current is not None and current.vlan_id == spec.vlan_id and not self.force:
            logger.debug("%s already exists with correct config, skipping", vlan_iface)
            return False

        if current is not None:
            ops.destroy_interface(self.executor, vlan_iface)
        ops.create_interface(self.executor, vlan_iface)
        self._attempt("Failed to configure VLAN", vlan_iface,
                      ops.configure_vlan, vlan_iface, spec.vlan_id, self.physical_iface)
        logger.info("Created %s (vlan %s on %s)", vlan_iface, spec.vlan_id, self.physical_iface)
        self.report.changed.append(vlan_iface)
        return True

    def _reconcile_bridge(self, spec: TunnelSpec, vlan_rebuilt: bool) -> None:
        bridge = spec.bridge
        members = spec.bridge_members(self.physical_iface)
        current = self.observed.bridges.get(bridge)
        # Destroying a VLAN interface also drops it from its bridge.
        if not (self.force or vlan_rebuilt or current is None or bridge in self.plan.bridges_to_add):
            logger.debug("%s already exists with correct config, skipping", bridge)
            return

        if current is not None:
            ops.destroy_interface(self.executor, bridge)
        ops.create_interface(self.executor, bridge)
        for member in members:
            self._attempt("Failed to add member to bridge", bridge,
                          ops.add_bridge_member, bridge, member)
        if current is None or self.force:
            self._attempt("Failed to set MTU on bridge", bridge, ops.set_mtu, bridge)
        self._attempt("Failed to bring up bridge", bridge, ops.bring_up, bridge)
        logger.info("Created %s with members %s", bridge, members)
        self.report.changed.append(bridge)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _attempt(
        self,
        message: str,
        iface: str,
        op: Callable[..., None],
        *args: str,
    ) -> bool:
        """Run a non-critical step; report a failure and carry on."""
        try:
            op(self.executor, *args)
        except CommandError as exc:
            self.sink.emit(logging.ERROR, message, {"interface": iface, "error": exc})
            return False
        return True
