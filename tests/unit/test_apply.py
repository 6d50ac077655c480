"""Unit tests for gifsync.utils.apply against a simulated ifconfig host."""

from __future__ import annotations

import logging

import pytest

from gifsync.client.command import CommandExecutor
from gifsync.client.observed import IfconfigStateProvider
from gifsync.model.tunnel import TunnelSpec
from gifsync.utils.apply import ApplyReport, apply_plan
from gifsync.utils.spec_loader import parse_entry
from gifsync.utils.tunnel_diff import plan_tunnel_changes

from fakes import FakeHost, RecordingSink

PHYS = "em2"

SITE_A = TunnelSpec("1", "101", src_addr="192.0.2.10", dst_addr="198.51.100.1",
                    description="Site A")
SITE_B = TunnelSpec("2", "102", src_addr="192.0.2.10", dst_addr="198.51.100.2")


def _converge(
    executor: CommandExecutor,
    sink: RecordingSink,
    specs: list[TunnelSpec],
    *,
    force_reset: bool = False,
) -> ApplyReport:
    observed = IfconfigStateProvider(executor).snapshot()
    plan = plan_tunnel_changes(observed, specs, PHYS)
    return apply_plan(executor, plan, specs, observed, PHYS, sink, force_reset=force_reset)


def _converged(host: FakeHost) -> None:
    host.add_gif("1", "192.0.2.10", "198.51.100.1", description="Site A")
    host.add_vlan(PHYS, "101")
    host.add_bridge("1", ["gif1", "em2.101"])


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


class TestCreate:
    def test_fresh_tunnel_command_sequence(
        self, host: FakeHost, executor: CommandExecutor, sink: RecordingSink
    ) -> None:
        report = _converge(executor, sink, [SITE_A])
        assert host.mutations == [
            ("ifconfig", "gif1", "create"),
            ("ifconfig", "gif1", "tunnel", "192.0.2.10", "198.51.100.1"),
            ("ifconfig", "gif1", "mtu", "1500"),
            ("ifconfig", "gif1", "link0"),
            ("ifconfig", "gif1", "up"),
            ("ifconfig", "gif1", "description", "Site A"),
            ("ifconfig", "em2.101", "create"),
            ("ifconfig", "em2.101", "vlan", "101", "vlandev", "em2", "up"),
            ("ifconfig", "bridge1", "create"),
            ("ifconfig", "bridge1", "addm", "gif1"),
            ("ifconfig", "bridge1", "addm", "em2.101"),
            ("ifconfig", "bridge1", "mtu", "1500"),
            ("ifconfig", "bridge1", "up"),
        ]
        assert report.changed == ["gif1", "em2.101", "bridge1"]
        assert report.failed == []
        assert sink.events == []

    def test_ipv6_tunnel(self, host: FakeHost, executor: CommandExecutor, sink) -> None:
        spec = TunnelSpec("6", "106", src_addr="2001:db8::10", dst_addr="2001:db8:200::1")
        _converge(executor, sink, [spec])
        assert ("ifconfig", "gif6", "inet6", "tunnel", "2001:db8::10", "2001:db8:200::1") in (
            host.mutations
        )
        assert host.ifaces["gif6"].tunnel == ("2001:db8::10", "2001:db8:200::1")

    def test_no_description_command_when_empty(
        self, host: FakeHost, executor: CommandExecutor, sink: RecordingSink
    ) -> None:
        _converge(executor, sink, [SITE_B])
        assert not any("description" in call for call in host.mutations)

    def test_second_pass_issues_no_mutations(
        self, host: FakeHost, executor: CommandExecutor, sink: RecordingSink
    ) -> None:
        _converge(executor, sink, [SITE_A, SITE_B])
        host.calls.clear()
        report = _converge(executor, sink, [SITE_A, SITE_B])
        assert host.mutations == []
        assert report.changed == []

    def test_zero_padded_ids_match_converged_host(
        self, host: FakeHost, executor: CommandExecutor, sink: RecordingSink
    ) -> None:
        _converged(host)
        spec = parse_entry(0, {"tunnel_id": "01", "vlan_id": "0101", "src_addr": "192.0.2.10",
                               "dst_addr": "198.51.100.1", "description": "Site A"})
        report = _converge(executor, sink, [spec])
        assert host.mutations == []
        assert report.changed == []

    def test_resulting_host_state(
        self, host: FakeHost, executor: CommandExecutor, sink: RecordingSink
    ) -> None:
        _converge(executor, sink, [SITE_A])
        gif = host.ifaces["gif1"]
        assert gif.up and gif.link0
        assert gif.description == "Site A"
        assert host.ifaces["em2.101"].vlan == "101"
        assert sorted(host.ifaces["bridge1"].members) == ["em2.101", "gif1"]


# ---------------------------------------------------------------------------
# Modification
# ---------------------------------------------------------------------------


class TestModify:
    def test_endpoint_change_reconfigures_in_place(
        self, host: FakeHost, executor: CommandExecutor, sink: RecordingSink
    ) -> None:
        _converged(host)
        moved = TunnelSpec("1", "101", src_addr="192.0.2.10", dst_addr="198.51.100.99",
                           description="Site A")
        _converge(executor, sink, [moved])
        assert host.mutations == [
            ("ifconfig", "gif1", "tunnel", "192.0.2.10", "198.51.100.99"),
            ("ifconfig", "gif1", "link0"),
            ("ifconfig", "gif1", "up"),
        ]

    def test_description_only_change(
        self, host: FakeHost, executor: CommandExecutor, sink: RecordingSink
    ) -> None:
        _converged(host)
        renamed = TunnelSpec("1", "101", src_addr="192.0.2.10", dst_addr="198.51.100.1",
                             description="Site A (backup)")
        _converge(executor, sink, [renamed])
        assert host.mutations == [("ifconfig", "gif1", "description", "Site A (backup)")]

    def test_emptied_description_is_cleared(
        self, host: FakeHost, executor: CommandExecutor, sink: RecordingSink
    ) -> None:
        _converged(host)
        bare = TunnelSpec("1", "101", src_addr="192.0.2.10", dst_addr="198.51.100.1")
        _converge(executor, sink, [bare])
        assert host.mutations == [("ifconfig", "gif1", "-description")]
        host.calls.clear()
        _converge(executor, sink, [bare])
        assert host.mutations == []

    def test_wrong_vlan_tag_rebuilds_vlan_and_bridge(
        self, host: FakeHost, executor: CommandExecutor, sink: RecordingSink
    ) -> None:
        host.add_gif("1", "192.0.2.10", "198.51.100.1", description="Site A")
        host.add_vlan(PHYS, "101", tag="5")
        host.add_bridge("1", ["gif1", "em2.101"])
        _converge(executor, sink, [SITE_A])
        assert host.mutations == [
            ("ifconfig", "em2.101", "destroy"),
            ("ifconfig", "em2.101", "create"),
            ("ifconfig", "em2.101", "vlan", "101", "vlandev", "em2", "up"),
            ("ifconfig", "bridge1", "destroy"),
            ("ifconfig", "bridge1", "create"),
            ("ifconfig", "bridge1", "addm", "gif1"),
            ("ifconfig", "bridge1", "addm", "em2.101"),
            ("ifconfig", "bridge1", "up"),
        ]
        assert sorted(host.ifaces["bridge1"].members) == ["em2.101", "gif1"]

    def test_missing_bridge_member_rebuilds_bridge(
        self, host: FakeHost, executor: CommandExecutor, sink: RecordingSink
    ) -> None:
        host.add_gif("1", "192.0.2.10", "198.51.100.1", description="Site A")
        host.add_vlan(PHYS, "101")
        host.add_bridge("1", ["gif1"])
        _converge(executor, sink, [SITE_A])
        assert host.mutations[0] == ("ifconfig", "bridge1", "destroy")
        assert ("ifconfig", "bridge1", "mtu", "1500") not in host.mutations
        assert sorted(host.ifaces["bridge1"].members) == ["em2.101", "gif1"]


# ---------------------------------------------------------------------------
# Removal
# ---------------------------------------------------------------------------


class TestRemove:
    def test_removal_ordering(
        self, host: FakeHost, executor: CommandExecutor, sink: RecordingSink
    ) -> None:
        host.add_gif("9", "192.0.2.10", "198.51.100.9")
        host.add_vlan(PHYS, "109")
        host.add_bridge("9", ["gif9", "em2.109"])
        report = _converge(executor, sink, [SITE_B])
        mutations = host.mutations
        assert mutations[0] == ("ifconfig", "gif9", "destroy")
        assert mutations[1] == ("ifconfig", "bridge9", "destroy")
        assert mutations[2] == ("ifconfig", "gif2", "create")
        assert mutations[-1] == ("ifconfig", "em2.109", "destroy")
        assert {"gif9", "bridge9", "em2.109"} <= set(report.changed)
        assert not {"gif9", "bridge9", "em2.109"} & set(host.ifaces)

    def test_vlans_on_other_interfaces_untouched(
        self, host: FakeHost, executor: CommandExecutor, sink: RecordingSink
    ) -> None:
        host.add_vlan("em0", "300")
        _converge(executor, sink, [])
        assert host.mutations == []
        assert "em0.300" in host.ifaces

    def test_empty_document_removes_everything_managed(
        self, host: FakeHost, executor: CommandExecutor, sink: RecordingSink
    ) -> None:
        _converged(host)
        _converge(executor, sink, [])
        assert sorted(host.ifaces) == ["em0", "em2"]


# ---------------------------------------------------------------------------
# Forced rebuild
# ---------------------------------------------------------------------------


def test_force_reset_recreates_converged_tunnel(
    host: FakeHost, executor: CommandExecutor, sink: RecordingSink
) -> None:
    _converged(host)
    report = _converge(executor, sink, [SITE_A], force_reset=True)
    mutations = host.mutations
    assert mutations[0] == ("ifconfig", "gif1", "create")
    assert ("ifconfig", "gif1", "destroy") not in mutations
    assert ("ifconfig", "gif1", "tunnel", "192.0.2.10", "198.51.100.1") in mutations
    assert ("ifconfig", "em2.101", "destroy") in mutations
    assert ("ifconfig", "bridge1", "destroy") in mutations
    assert ("ifconfig", "bridge1", "mtu", "1500") in mutations
    assert report.changed == ["gif1", "em2.101", "bridge1"]
    assert report.failed == []
    assert sorted(host.ifaces["bridge1"].members) == ["em2.101", "gif1"]


# ---------------------------------------------------------------------------
# Failure handling
# ---------------------------------------------------------------------------


class TestFailures:
    def test_failed_tunnel_does_not_block_others(
        self, host: FakeHost, executor: CommandExecutor, sink: RecordingSink
    ) -> None:
        host.fail("gif1", "tunnel", "192.0.2.10", "198.51.100.1")
        report = _converge(executor, sink, [SITE_A, SITE_B])
        assert report.failed == ["gif1"]
        assert "em2.101" not in host.ifaces
        assert "bridge1" not in host.ifaces
        assert sorted(host.ifaces["bridge2"].members) == ["em2.102", "gif2"]
        errors = sink.at(logging.ERROR)
        assert [e.message for e in errors] == ["Failed to configure gif"]
        assert errors[0].fields["tunnel_id"] == "1"

    def test_command_retried_before_giving_up(
        self, host: FakeHost, executor: CommandExecutor, sink: RecordingSink
    ) -> None:
        host.fail("gif1", "tunnel", "192.0.2.10", "198.51.100.1")
        _converge(executor, sink, [SITE_A])
        tunnel_calls = [c for c in host.calls if c[2:3] == ("tunnel",)]
        assert len(tunnel_calls) == 3

    def test_transient_failure_recovers(
        self, host: FakeHost, executor: CommandExecutor, sink: RecordingSink
    ) -> None:
        host.fail("bridge1", "create", times=2)
        report = _converge(executor, sink, [SITE_A])
        assert report.failed == []
        assert "bridge1" in host.ifaces

    def test_best_effort_step_failure_is_reported(
        self, host: FakeHost, executor: CommandExecutor, sink: RecordingSink
    ) -> None:
        host.fail("gif1", "mtu", "1500")
        report = _converge(executor, sink, [SITE_A])
        assert report.failed == []
        assert "bridge1" in host.ifaces
        assert [e.message for e in sink.at(logging.ERROR)] == ["Failed to set MTU on gif"]

    def test_bridge_failure_reported_with_stage(
        self, host: FakeHost, executor: CommandExecutor, sink: RecordingSink
    ) -> None:
        host.fail("bridge1", "create")
        report = _converge(executor, sink, [SITE_A])
        assert report.failed == ["bridge1"]
        errors = sink.at(logging.ERROR)
        assert errors[0].message == "Failed to configure bridge"
        assert errors[0].fields["interface"] == "bridge1"

    @pytest.mark.parametrize("iface", ["gif9", "bridge9"])
    def test_removal_failure_reported(
        self, iface: str, host: FakeHost, executor: CommandExecutor, sink: RecordingSink
    ) -> None:
        host.add_gif("9", "192.0.2.10", "198.51.100.9")
        host.add_bridge("9", ["gif9"])
        host.fail(iface, "destroy")
        report = _converge(executor, sink, [])
        assert report.failed == [iface]
        assert iface in host.ifaces
