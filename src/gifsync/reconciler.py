"""Reconciler: one fetch, validate, diff and apply pass, plus reset workflows."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from gifsync.client.command import CommandExecutor
from gifsync.client.http import GifSyncHTTP
from gifsync.client.observed import IfconfigStateProvider, ObservedStateProvider
from gifsync.model.settings import Settings
from gifsync.model.tunnel import TransitionPlan, TunnelSpec
from gifsync.notify import NOTICE, EventSink, LogSink, local_hostname
from gifsync.utils.apply import ApplyReport, apply_plan
from gifsync.utils.render import render_plan, render_report
from gifsync.utils.resolve import AddressResolver, HostLookup, lookup_addresses
from gifsync.utils.spec_loader import load_specs
from gifsync.utils.teardown import (
    REMOVAL_TIMEOUT_S,
    TeardownResult,
    all_targets,
    destroy_interfaces,
    vlan_targets,
)
from gifsync.utils.tunnel_diff import plan_tunnel_changes

logger = logging.getLogger(__name__)


@dataclass
class PassResult:
    """Outcome of one reconciliation pass.

    Attributes:
        specs: Accepted specs, in document order.
        plan: Transition plan computed for the pass.
        diff: Rendered plan from :func:`~gifsync.utils.render.render_plan`.
        applied: Apply report, or ``None`` in check mode.
        teardown: Teardown outcome for reset passes, else ``None``.
    """

    specs: list[TunnelSpec] = field(default_factory=list)
    plan: TransitionPlan = field(default_factory=TransitionPlan)
    diff: dict[str, Any] = field(default_factory=dict)
    applied: ApplyReport | None = None
    teardown: TeardownResult | None = None

    @property
    def changed(self) -> bool:
        return not self.plan.empty


class Reconciler:
    """Converge the host's gif, VLAN and bridge interfaces onto the tunnel document.

    Owns no state between passes: every pass takes a fresh snapshot and
    fetches the document again.

    Args:
        settings: Daemon settings.
        executor: Command executor (a subprocess-backed one if omitted).
        provider: Observed-state provider (``ifconfig``-backed if omitted).
        sink: Event sink for warnings, errors and diff reports.
        lookup: Hostname lookup used for ``dst_hostname``.
        http: HTTP client used for URL sources.
        teardown_timeout_s: Upper bound on waiting for destroyed interfaces.
        sleep: Sleep function used while polling during teardown.
    """

    def __init__(
        self,
        settings: Settings,
        executor: CommandExecutor | None = None,
        provider: ObservedStateProvider | None = None,
        sink: EventSink | None = None,
        *,
        lookup: HostLookup = lookup_addresses,
        http: GifSyncHTTP | None = None,
        teardown_timeout_s: float = REMOVAL_TIMEOUT_S,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.executor = executor or CommandExecutor()
        self.provider: ObservedStateProvider = provider or IfconfigStateProvider(self.executor)
        self.sink: EventSink = sink or LogSink()
        self._lookup = lookup
        self._http = http
        self._teardown_timeout_s = teardown_timeout_s
        self._sleep = sleep

    # ------------------------------------------------------------------
    # Passes
    # ------------------------------------------------------------------

    def run_pass(self, *, force_reset: bool = False, check_mode: bool = False) -> PassResult:
        """Run one full fetch, validate, diff and apply pass.

        Args:
            force_reset: Recreate every managed interface unconditionally.
            check_mode: Compute and return the plan without touching the host.

        Returns:
            A :class:`PassResult`.

        Raises:
            StateError: If the live interface list cannot be read.
            FetchError: If the tunnel document cannot be loaded.
        """
        observed = self.provider.snapshot()
        resolver = AddressResolver(
            observed,
            self.provider,
            self.sink,
            default_src_iface=self.settings.default_src_iface,
            default_src_addr=self.settings.default_src_addr,
            lookup=self._lookup,
        )
        specs = load_specs(self.settings.config_source, resolver, self.sink, self._http)
        plan = plan_tunnel_changes(observed, specs, self.settings.physical_iface)
        result = PassResult(specs=specs, plan=plan, diff=render_plan(plan))
        if check_mode:
            return result

        report = render_report(plan, local_hostname())
        if report:
            self.sink.emit(NOTICE, report)

        result.applied = apply_plan(
            self.executor,
            plan,
            specs,
            observed,
            self.settings.physical_iface,
            self.sink,
            force_reset=force_reset,
        )
        if result.applied.failed:
            logger.info("Pass finished with failures on %s", result.applied.failed)
        return result

    def reset_vlans(self) -> PassResult:
        """Destroy every VLAN on the physical interface, then rebuild from scratch."""
        observed = self.provider.snapshot()
        teardown = self._teardown(vlan_targets(observed, self.settings.physical_iface))
        logger.info("Reset VLANs on %s", self.settings.physical_iface)
        result = self.run_pass(force_reset=True)
        result.teardown = teardown
        return result

    def reset_all(self) -> PassResult:
        """Destroy every managed gif, VLAN and bridge, then rebuild from scratch."""
        observed = self.provider.snapshot()
        teardown = self._teardown(all_targets(observed, self.settings.physical_iface))
        logger.info("Reset all interfaces (gif tunnels, VLANs and bridges)")
        result = self.run_pass(force_reset=True)
        result.teardown = teardown
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _teardown(self, names: list[str]) -> TeardownResult:
        return destroy_interfaces(
            self.executor,
            self.provider,
            names,
            self.sink,
            timeout_s=self._teardown_timeout_s,
            sleep=self._sleep,
        )
