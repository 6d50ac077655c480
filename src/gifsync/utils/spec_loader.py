"""Desired-state document loader and validator.

Fetches the tunnel document from a URL or a local path, normalizes each raw
entry into a :class:`~gifsync.model.tunnel.TunnelSpec`, resolves its
addresses and drops anything malformed or duplicated. A bad entry never
aborts the batch; it is reported at error level and skipped.
"""

from __future__ import annotations

import ipaddress
import json
import logging
import pathlib
from dataclasses import replace
from typing import Any
from urllib.parse import unquote, urlparse

from gifsync.client.errors import FetchError, GifSyncError, ResolutionError, SpecError
from gifsync.client.http import GifSyncHTTP
from gifsync.model.tunnel import TunnelSpec
from gifsync.notify import EventSink
from gifsync.utils.resolve import AddressResolver, wants_ipv6

logger = logging.getLogger(__name__)

_STRING_FIELDS: tuple[str, ...] = (
    "tunnel_id",
    "vlan_id",
    "src_addr",
    "dst_addr",
    "dst_hostname",
    "ip_version",
    "description",
)

VLAN_ID_MIN: int = 1
VLAN_ID_MAX: int = 4094


def fetch_document(source: str, http: GifSyncHTTP | None = None) -> list[Any]:
    """Fetch the tunnel document and decode it into a list of raw entries.

    ``http://`` and ``https://`` sources are fetched over HTTP; ``file://``
    URLs and anything else are read as local paths.
    The body is always decoded as UTF-8, whatever charset the server declares.

    Raises:
        FetchError: If the document cannot be read, is not valid JSON, or its
            root is not an array.
    """
    scheme = urlparse(source).scheme.lower()
    if scheme in ("http", "https"):
        client = http or GifSyncHTTP()
        try:
            body = client.get(source).content.decode("utf-8")
        except GifSyncError as exc:
            raise FetchError(source, str(exc)) from exc
        except UnicodeDecodeError as exc:
            raise FetchError(source, f"document is not UTF-8: {exc}") from exc
        finally:
            if http is None:
                client.close()
    else:
        path = unquote(urlparse(source).path) if scheme == "file" else source
        try:
            body = pathlib.Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise FetchError(source, str(exc)) from exc

    try:
        data = json.loads(body)
    except json.JSONDecodeError as exc:
        raise FetchError(source, f"invalid JSON: {exc}") from exc
    if not isinstance(data, list):
        raise FetchError(source, "document root must be a JSON array")
    return data


def parse_entry(index: int, raw: Any) -> TunnelSpec:
    """Normalize one raw document entry into an unresolved :class:`TunnelSpec`.

    String fields are whitespace-stripped; ``tunnel_id`` and ``vlan_id`` may be
    integers or digit strings and are stored without leading zeros, the way
    the kernel reports them.

    Raises:
        SpecError: If the entry is structurally invalid.
    """
    if not isinstance(raw, dict):
        raise SpecError(index, "entry is not an object")

    values: dict[str, str] = {}
    for name in _STRING_FIELDS:
        value = raw.get(name)
        if value is None:
            values[name] = ""
        elif isinstance(value, str):
            values[name] = value.strip()
        elif isinstance(value, int) and not isinstance(value, bool):
            values[name] = str(value)
        else:
            raise SpecError(index, f"invalid {name}", {name: value})

    if not values["tunnel_id"]:
        raise SpecError(index, "missing tunnel_id")
    if not values["vlan_id"]:
        raise SpecError(index, "missing vlan_id", {"tunnel_id": values["tunnel_id"]})
    if not _is_number(values["tunnel_id"]):
        raise SpecError(index, "tunnel_id is not an interface unit number",
                        {"tunnel_id": values["tunnel_id"]})
    vlan_id = values["vlan_id"]
    if not _is_number(vlan_id) or not VLAN_ID_MIN <= int(vlan_id) <= VLAN_ID_MAX:
        raise SpecError(index, "vlan_id out of range",
                        {"tunnel_id": values["tunnel_id"], "vlan_id": values["vlan_id"]})
    values["tunnel_id"] = str(int(values["tunnel_id"]))
    values["vlan_id"] = str(int(values["vlan_id"]))
    if values["ip_version"] not in ("", "4", "6"):
        raise SpecError(index, "invalid ip_version",
                        {"tunnel_id": values["tunnel_id"], "ip_version": values["ip_version"]})
    if not values["dst_addr"] and not values["dst_hostname"]:
        raise SpecError(index, "missing both dst_addr and dst_hostname",
                        {"tunnel_id": values["tunnel_id"]})
    for name in ("src_addr", "dst_addr"):
        if values[name]:
            values[name] = _canonical_address(index, name, values[name], values["tunnel_id"])

    return TunnelSpec(**values)


def check_families(index: int, spec: TunnelSpec) -> None:
    """Ensure source, destination and explicit ``ip_version`` agree.

    Raises:
        SpecError: On an address family mismatch.
    """
    src_v6 = ":" in spec.src_addr
    dst_v6 = ":" in spec.dst_addr
    if src_v6 != dst_v6:
        raise SpecError(index, "src_addr and dst_addr address families differ",
                        {"tunnel_id": spec.tunnel_id, "src_addr": spec.src_addr,
                         "dst_addr": spec.dst_addr})
    if spec.ip_version and (spec.ip_version == "6") != src_v6:
        raise SpecError(index, "addresses do not match ip_version",
                        {"tunnel_id": spec.tunnel_id, "ip_version": spec.ip_version,
                         "src_addr": spec.src_addr})


def validate_entries(
    entries: list[Any],
    resolver: AddressResolver,
    sink: EventSink,
) -> list[TunnelSpec]:
    """Normalize, resolve and de-duplicate raw document entries.

    Entries are processed in document order; for each of ``tunnel_id``,
    resolved ``dst_addr`` and ``vlan_id`` the first occurrence wins and later
    duplicates are dropped.

    Args:
        entries: Raw decoded document entries.
        resolver: Address resolver for this pass.
        sink: Receives one error event per rejected entry.

    Returns:
        Accepted, fully resolved specs in document order.
    """
    accepted: list[TunnelSpec] = []
    tunnel_ids: set[str] = set()
    dst_addrs: set[str] = set()
    vlan_ids: set[str] = set()

    for index, raw in enumerate(entries):
        try:
            spec = parse_entry(index, raw)
            try:
                spec = resolver.resolve(spec)
            except ResolutionError as exc:
                raise SpecError(index, str(exc), {"tunnel_id": spec.tunnel_id,
                                                  "ipv6": wants_ipv6(spec)}) from exc
            spec = replace(spec, src_addr=_canonical_address(index, "src_addr", spec.src_addr,
                                                             spec.tunnel_id))
            check_families(index, spec)
            if spec.tunnel_id in tunnel_ids:
                raise SpecError(index, "duplicate tunnel_id", {"tunnel_id": spec.tunnel_id})
            if spec.dst_addr in dst_addrs:
                raise SpecError(index, "duplicate dst_addr",
                                {"tunnel_id": spec.tunnel_id, "dst_addr": spec.dst_addr})
            if spec.vlan_id in vlan_ids:
                raise SpecError(index, "duplicate vlan_id",
                                {"tunnel_id": spec.tunnel_id, "vlan_id": spec.vlan_id})
        except SpecError as exc:
            sink.emit(
                logging.ERROR,
                "Skipping tunnel",
                {"index": exc.index, "reason": exc.reason, **exc.fields},
            )
            continue

        accepted.append(spec)
        tunnel_ids.add(spec.tunnel_id)
        dst_addrs.add(spec.dst_addr)
        vlan_ids.add(spec.vlan_id)

    logger.debug("Accepted %d of %d tunnel entries", len(accepted), len(entries))
    return accepted


def load_specs(
    source: str,
    resolver: AddressResolver,
    sink: EventSink,
    http: GifSyncHTTP | None = None,
) -> list[TunnelSpec]:
    """Fetch the document at *source* and return its validated specs.

    Raises:
        FetchError: If the document itself cannot be loaded.
    """
    return validate_entries(fetch_document(source, http), resolver, sink)


def _canonical_address(index: int, name: str, value: str, tunnel_id: str) -> str:
    """Return *value* in the canonical text form ``ifconfig`` reports."""
    try:
        return str(ipaddress.ip_address(value))
    except ValueError as exc:
        raise SpecError(index, f"invalid {name}", {"tunnel_id": tunnel_id, name: value}) from exc


def _is_number(value: str) -> bool:
    return value.isascii() and value.isdigit()
