#!/usr/bin/env python3

"""
Gateway firewall rules.

The NAT and filter tables are replaced in one iptables-restore transaction
per table, so forwarding never runs against a half-written ruleset. Chain
policies are left alone, matching a plain `iptables -F`.
"""

import subprocess
from typing import Dict, List

from .exceptions import FirewallError
from .logger import log_message
from .utils import run_command

FORWARD_STATES = "NEW,ESTABLISHED,RELATED"
RETURN_STATES = "ESTABLISHED,RELATED"

GATEWAY_TABLES = ("nat", "filter")


def gateway_rules(binding) -> Dict[str, List[List[str]]]:
    """Returns the rules for a binding, keyed by table, in install order."""
    tunnel, lan = binding.tunnel, binding.egress
    return {
        "nat": [
            ["-A", "POSTROUTING", "-o", tunnel, "-j", "MASQUERADE"],
        ],
        "filter": [
            ["-A", "FORWARD", "-i", lan, "-o", tunnel,
             "-m", "state", "--state", FORWARD_STATES, "-j", "ACCEPT"],
            ["-A", "FORWARD", "-i", tunnel, "-o", lan,
             "-m", "state", "--state", RETURN_STATES, "-j", "ACCEPT"],
        ],
    }


def build_ruleset(binding) -> str:
    """Builds the iptables-restore payload that flushes and repopulates both tables."""
    if not binding.is_complete:
        raise FirewallError(f"Cannot build gateway rules for incomplete interface binding {binding}")

    lines = []
    for table, rules in gateway_rules(binding).items():
        lines.append(f"*{table}")
        lines.append("-F")
        lines.extend(" ".join(rule) for rule in rules)
        lines.append("COMMIT")
    return "\n".join(lines) + "\n"


def apply_gateway_rules(binding):
    """Atomically replaces the NAT and filter rules with the gateway rules for `binding`."""
    ruleset = build_ruleset(binding)
    log_message(3, f"Installing NAT rules for tunnel {binding.tunnel} and LAN {binding.egress}.")
    log_message(4, f"iptables-restore payload:\n{ruleset}")
    try:
        run_command(["iptables-restore", "--noflush"], input=ruleset, capture_output=True)
    except (subprocess.CalledProcessError, OSError) as e:
        raise FirewallError(f"Failed to apply gateway rules for {binding}: {e}") from e
    log_message(2, f"Gateway rules installed for {binding}.")


def flush_gateway_rules():
    """Flushes every chain of the NAT and filter tables."""
    log_message(3, "Flushing NAT and filter tables...")
    try:
        for table in GATEWAY_TABLES:
            run_command(["iptables", "-t", table, "-F"])
    except (subprocess.CalledProcessError, OSError) as e:
        raise FirewallError(f"Failed to flush gateway rules: {e}") from e
    log_message(2, "NAT and filter tables flushed.")


def persist_rules():
    """Installs iptables-persistent and saves the live ruleset for the next boot."""
    log_message(3, "Ensuring iptables-persistent is installed...")
    try:
        run_command(["apt-get", "update"], capture_output=True)
        run_command(["env", "DEBIAN_FRONTEND=noninteractive",
                     "apt-get", "install", "-y", "iptables-persistent"], capture_output=True)
        log_message(3, "Saving iptables rules...")
        run_command(["netfilter-persistent", "save"], capture_output=True)
    except (subprocess.CalledProcessError, OSError) as e:
        raise FirewallError(f"Failed to persist iptables rules: {e}") from e
    log_message(2, "iptables rules saved.")
