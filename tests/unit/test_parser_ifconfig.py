"""Unit tests for gifsync.parser.ifconfig."""

from __future__ import annotations

import pathlib

import pytest

from gifsync.parser.ifconfig import (
    parse_bridge,
    parse_interface_address,
    parse_interfaces,
    parse_tunnel,
    parse_vlan,
    split_interfaces,
)

FIXTURES = pathlib.Path(__file__).parent.parent / "fixtures"


@pytest.fixture(scope="module")
def ifconfig_text() -> str:
    return (FIXTURES / "ifconfig_a.txt").read_text(encoding="utf-8")


# ---------------------------------------------------------------------------
# split_interfaces
# ---------------------------------------------------------------------------


def test_split_keeps_output_order(ifconfig_text: str) -> None:
    blocks = split_interfaces(ifconfig_text)
    assert list(blocks) == [
        "em0", "em2", "lo0", "gif1", "gif2", "gif7", "em2.101", "em2.102", "bridge1", "bridge2",
    ]


def test_split_block_contains_header_and_body(ifconfig_text: str) -> None:
    block = split_interfaces(ifconfig_text)["gif1"]
    assert block.startswith("gif1: flags=")
    assert "tunnel inet 192.0.2.10 --> 198.51.100.1" in block
    assert "em2.101" not in block


def test_split_empty_output() -> None:
    assert split_interfaces("") == {}


# ---------------------------------------------------------------------------
# parse_interfaces
# ---------------------------------------------------------------------------


class TestParseInterfaces:
    def test_classifies_managed_interfaces(self, ifconfig_text: str) -> None:
        state = parse_interfaces(ifconfig_text)
        assert sorted(state.tunnels) == ["gif1", "gif2", "gif7"]
        assert sorted(state.bridges) == ["bridge1", "bridge2"]
        assert sorted(state.vlans) == ["em2.101", "em2.102"]

    def test_interfaces_lists_every_name(self, ifconfig_text: str) -> None:
        state = parse_interfaces(ifconfig_text)
        assert "lo0" in state.interfaces
        assert "em0" in state.interfaces
        assert len(state.interfaces) == 10

    def test_ipv4_tunnel(self, ifconfig_text: str) -> None:
        gif1 = parse_interfaces(ifconfig_text).tunnels["gif1"]
        assert gif1.tunnel_id == "1"
        assert gif1.src_addr == "192.0.2.10"
        assert gif1.dst_addr == "198.51.100.1"
        assert gif1.is_ipv6 is False
        assert gif1.description == "Branch office A"

    def test_ipv6_tunnel(self, ifconfig_text: str) -> None:
        gif2 = parse_interfaces(ifconfig_text).tunnels["gif2"]
        assert gif2.src_addr == "2001:db8:100::10"
        assert gif2.dst_addr == "2001:db8:200::1"
        assert gif2.is_ipv6 is True
        assert gif2.description == ""

    def test_gif_without_tunnel(self, ifconfig_text: str) -> None:
        gif7 = parse_interfaces(ifconfig_text).tunnels["gif7"]
        assert gif7.src_addr == ""
        assert gif7.dst_addr == ""

    def test_bridge_members(self, ifconfig_text: str) -> None:
        state = parse_interfaces(ifconfig_text)
        assert state.bridges["bridge1"].members == ["em2.101", "gif1"]
        assert state.bridges["bridge1"].tunnel_id == "1"
        assert state.bridges["bridge2"].members == []

    def test_vlan_tag_and_parent(self, ifconfig_text: str) -> None:
        vlan = parse_interfaces(ifconfig_text).vlans["em2.102"]
        assert vlan.vlan_id == "102"
        assert vlan.parent == "em2"

    def test_vlans_on_physical(self, ifconfig_text: str) -> None:
        state = parse_interfaces(ifconfig_text)
        assert sorted(state.vlans_on("em2")) == ["em2.101", "em2.102"]
        assert state.vlans_on("em0") == {}


# ---------------------------------------------------------------------------
# Single-block parsers
# ---------------------------------------------------------------------------


def test_parse_tunnel_trims_description() -> None:
    block = "gif3: flags=8051<UP> metric 0 mtu 1500\n\tdescription:   spaced out  \n"
    assert parse_tunnel("gif3", block).description == "spaced out"


def test_parse_tunnel_strips_zone() -> None:
    block = "gif4: flags=8051<UP> metric 0 mtu 1500\n\ttunnel inet6 fe80::1%em0 --> 2001:db8::2\n"
    tunnel = parse_tunnel("gif4", block)
    assert tunnel.src_addr == "fe80::1"
    assert tunnel.is_ipv6 is True


def test_parse_bridge_ignores_continuation_lines() -> None:
    block = (
        "bridge9: flags=8843<UP> metric 0 mtu 1500\n"
        "\tmember: gif9 flags=143<LEARNING>\n"
        "\t        ifmaxaddr 0 port 5 priority 128 path cost 2000000\n"
    )
    assert parse_bridge("bridge9", block).members == ["gif9"]


def test_parse_vlan_without_tag_returns_none() -> None:
    assert parse_vlan("em2.5", "em2.5: flags=8802<BROADCAST> metric 0 mtu 1500\n") is None


def test_parse_vlan_without_parent_uses_name() -> None:
    vlan = parse_vlan("em2.5", "em2.5: flags=8843<UP> metric 0 mtu 1500\n\tvlan: 5\n")
    assert vlan is not None
    assert vlan.parent == "em2"


# ---------------------------------------------------------------------------
# parse_interface_address
# ---------------------------------------------------------------------------


class TestInterfaceAddress:
    def test_ipv4(self, ifconfig_text: str) -> None:
        block = split_interfaces(ifconfig_text)["em0"]
        assert parse_interface_address(block, ipv6=False) == "192.0.2.10"

    def test_ipv6_skips_link_local(self, ifconfig_text: str) -> None:
        block = split_interfaces(ifconfig_text)["em0"]
        assert parse_interface_address(block, ipv6=True) == "2001:db8:100::10"

    def test_missing_family(self, ifconfig_text: str) -> None:
        block = split_interfaces(ifconfig_text)["em2"]
        assert parse_interface_address(block, ipv6=False) is None
        assert parse_interface_address(block, ipv6=True) is None

    def test_prefix_notation(self) -> None:
        block = "tun0: flags=8051<UP> metric 0 mtu 1500\n\tinet6 2001:db8::7/64\n"
        assert parse_interface_address(block, ipv6=True) == "2001:db8::7"
