"""
Firewall Rule Tests
===================
"""

import subprocess
from unittest.mock import call, patch

import pytest

from conftest import completed
from gateway.exceptions import FirewallError
from gateway.firewall import (
    apply_gateway_rules, build_ruleset, flush_gateway_rules, gateway_rules, persist_rules
)
from gateway.interfaces import InterfaceBinding

EXPECTED_RULESET = """\
*nat
-F
-A POSTROUTING -o tun0 -j MASQUERADE
COMMIT
*filter
-F
-A FORWARD -i eth0 -o tun0 -m state --state NEW,ESTABLISHED,RELATED -j ACCEPT
-A FORWARD -i tun0 -o eth0 -m state --state ESTABLISHED,RELATED -j ACCEPT
COMMIT
"""


class TestRuleset:

    def test_rule_shape(self, tun0_eth0):
        rules = gateway_rules(tun0_eth0)
        assert len(rules["nat"]) == 1
        assert len(rules["filter"]) == 2

    def test_ruleset_payload(self, tun0_eth0):
        assert build_ruleset(tun0_eth0) == EXPECTED_RULESET

    def test_ruleset_follows_binding(self):
        ruleset = build_ruleset(InterfaceBinding("tun1", "enp2s0"))
        assert "-A POSTROUTING -o tun1 -j MASQUERADE" in ruleset
        assert "-i enp2s0 -o tun1" in ruleset
        assert "-i tun1 -o enp2s0" in ruleset
        assert "tun0" not in ruleset

    @pytest.mark.parametrize("binding", [InterfaceBinding("tun0", None), InterfaceBinding(None, "eth0")])
    def test_incomplete_binding_rejected(self, binding):
        with pytest.raises(FirewallError):
            build_ruleset(binding)


class TestApply:

    def test_single_restore_transaction(self, tun0_eth0):
        with patch("gateway.firewall.run_command", return_value=completed()) as run:
            apply_gateway_rules(tun0_eth0)

        run.assert_called_once_with(["iptables-restore", "--noflush"], input=EXPECTED_RULESET, capture_output=True)

    def test_restore_failure_raises_firewall_error(self, tun0_eth0):
        error = subprocess.CalledProcessError(2, ["iptables-restore"])
        with patch("gateway.firewall.run_command", side_effect=error):
            with pytest.raises(FirewallError) as excinfo:
                apply_gateway_rules(tun0_eth0)

        assert excinfo.value.__cause__ is error

    def test_incomplete_binding_never_calls_iptables(self):
        with patch("gateway.firewall.run_command") as run:
            with pytest.raises(FirewallError):
                apply_gateway_rules(InterfaceBinding("tun0", ""))

        run.assert_not_called()


class TestFlushAndPersist:

    def test_flush_both_tables(self):
        with patch("gateway.firewall.run_command", return_value=completed()) as run:
            flush_gateway_rules()

        assert run.call_args_list == [
            call(["iptables", "-t", "nat", "-F"]),
            call(["iptables", "-t", "filter", "-F"]),
        ]

    def test_persist_installs_then_saves(self):
        with patch("gateway.firewall.run_command", return_value=completed()) as run:
            persist_rules()

        commands = [c.args[0] for c in run.call_args_list]
        assert commands[0] == ["apt-get", "update"]
        assert "iptables-persistent" in commands[1]
        assert "DEBIAN_FRONTEND=noninteractive" in commands[1]
        assert commands[2] == ["netfilter-persistent", "save"]

    def test_persist_failure(self):
        with patch("gateway.firewall.run_command", side_effect=FileNotFoundError("apt-get")):
            with pytest.raises(FirewallError):
                persist_rules()
