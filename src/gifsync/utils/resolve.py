"""Address resolution policy for tunnel specs.

Turns the symbolic parts of a :class:`~gifsync.model.tunnel.TunnelSpec`
(missing source address, ``dst_hostname``) into concrete IP literals, falling
back to the live value of an already existing tunnel where that is safe.
"""

from __future__ import annotations

import logging
import socket
from collections.abc import Callable
from dataclasses import replace

from gifsync.client.errors import ResolutionError
from gifsync.client.observed import ObservedStateProvider
from gifsync.model.state import ObservedState, ObservedTunnel
from gifsync.model.tunnel import TunnelSpec
from gifsync.notify import EventSink

logger = logging.getLogger(__name__)

HostLookup = Callable[[str], list[str]]


def lookup_addresses(hostname: str) -> list[str]:
    """Return every address *hostname* resolves to, de-duplicated, in resolver order.

    Raises:
        OSError: If the name cannot be resolved (``socket.gaierror``).
    """
    infos = socket.getaddrinfo(hostname, None, proto=socket.IPPROTO_TCP)
    addrs: list[str] = []
    for info in infos:
        addr = str(info[4][0]).split("%", 1)[0]
        if addr not in addrs:
            addrs.append(addr)
    return addrs


def wants_ipv6(spec: TunnelSpec) -> bool:
    """Decide the address family of *spec*.

    An explicit ``ip_version`` wins; otherwise a colon in ``src_addr``, then
    in ``dst_addr``, selects IPv6; otherwise IPv4.
    """
    if spec.ip_version == "6":
        return True
    if spec.ip_version == "4":
        return False
    if spec.src_addr:
        return ":" in spec.src_addr
    return ":" in spec.dst_addr


class AddressResolver:
    """Resolve source and destination addresses for one reconciliation pass.

    The live address of ``default_src_iface`` is queried at most once per
    address family for the lifetime of the resolver; create a new resolver
    for every pass so address changes on that interface are picked up.

    Args:
        observed: Snapshot taken at the start of the pass.
        provider: Used to query the default source interface.
        sink: Receives fallback warnings.
        default_src_iface: Interface whose address is the preferred default source.
        default_src_addr: Static default source address.
        lookup: Hostname lookup function (defaults to :func:`lookup_addresses`).
    """

    def __init__(
        self,
        observed: ObservedState,
        provider: ObservedStateProvider,
        sink: EventSink,
        *,
        default_src_iface: str = "",
        default_src_addr: str = "",
        lookup: HostLookup = lookup_addresses,
    ) -> None:
        self._observed = observed
        self._provider = provider
        self._sink = sink
        self._default_src_iface = default_src_iface
        self._default_src_addr = default_src_addr
        self._lookup = lookup
        self._iface_addrs: dict[bool, str | None] = {}

    def resolve(self, spec: TunnelSpec) -> TunnelSpec:
        """Return a copy of *spec* with concrete ``src_addr`` and ``dst_addr``.

        Raises:
            ResolutionError: If either address cannot be determined.
        """
        ipv6 = wants_ipv6(spec)
        src = spec.src_addr or self.default_source(spec, ipv6)
        if spec.dst_addr:
            if spec.dst_hostname:
                logger.debug(
                    "tunnel %s has both dst_addr and dst_hostname; using dst_addr %s",
                    spec.tunnel_id,
                    spec.dst_addr,
                )
            dst = spec.dst_addr
        elif spec.dst_hostname:
            dst = self.resolve_hostname(spec, ipv6)
        else:
            raise ResolutionError("missing both dst_addr and dst_hostname")
        return replace(spec, src_addr=src, dst_addr=dst)

    def default_source(self, spec: TunnelSpec, ipv6: bool) -> str:
        """Pick a source address for a spec that has none.

        Raises:
            ResolutionError: If neither default is available.
        """
        if self._default_src_iface:
            addr = self._interface_address(ipv6)
            if addr:
                logger.info(
                    "Using interface address as src_addr: tunnel_id=%s interface=%s src_addr=%s",
                    spec.tunnel_id,
                    self._default_src_iface,
                    addr,
                )
                return addr
            self._sink.emit(
                logging.WARNING,
                "Failed to get interface address",
                {
                    "tunnel_id": spec.tunnel_id,
                    "interface": self._default_src_iface,
                    "ipv6": ipv6,
                },
            )
        if self._default_src_addr:
            logger.info(
                "Using default src_addr: tunnel_id=%s src_addr=%s",
                spec.tunnel_id,
                self._default_src_addr,
            )
            return self._default_src_addr
        raise ResolutionError("missing src_addr and no usable default")

    def resolve_hostname(self, spec: TunnelSpec, ipv6: bool) -> str:
        """Resolve ``spec.dst_hostname`` to one address of the wanted family.

        Raises:
            ResolutionError: If nothing suitable resolves and the tunnel does
                not exist yet.
        """
        existing = self._existing(spec)
        try:
            addrs = self._lookup(spec.dst_hostname)
        except (OSError, UnicodeError) as exc:
            return self._fallback(spec, existing, ipv6, f"lookup failed: {exc}")

        if existing is not None and existing.dst_addr in addrs:
            logger.debug(
                "Keeping existing dst_addr from resolved addresses: tunnel_id=%s dst_addr=%s",
                spec.tunnel_id,
                existing.dst_addr,
            )
            return existing.dst_addr

        for addr in addrs:
            if (":" in addr) == ipv6:
                logger.info(
                    "Resolved dst_hostname: tunnel_id=%s dst_hostname=%s dst_addr=%s",
                    spec.tunnel_id,
                    spec.dst_hostname,
                    addr,
                )
                return addr
        family = "IPv6" if ipv6 else "IPv4"
        return self._fallback(spec, existing, ipv6, f"no {family} address")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _existing(self, spec: TunnelSpec) -> ObservedTunnel | None:
        tunnel = self._observed.tunnels.get(spec.gif)
        if tunnel is None or not tunnel.dst_addr:
            return None
        return tunnel

    def _fallback(
        self,
        spec: TunnelSpec,
        existing: ObservedTunnel | None,
        ipv6: bool,
        reason: str,
    ) -> str:
        if existing is None:
            raise ResolutionError(f"cannot resolve dst_hostname {spec.dst_hostname!r}: {reason}")
        self._sink.emit(
            logging.WARNING,
            "Failed to resolve dst_hostname, using existing dst_addr",
            {
                "tunnel_id": spec.tunnel_id,
                "dst_hostname": spec.dst_hostname,
                "dst_addr": existing.dst_addr,
                "ipv6": ipv6,
                "reason": reason,
            },
        )
        return existing.dst_addr

    def _interface_address(self, ipv6: bool) -> str | None:
        if ipv6 not in self._iface_addrs:
            self._iface_addrs[ipv6] = self._provider.interface_address(
                self._default_src_iface, ipv6
            )
        return self._iface_addrs[ipv6]
