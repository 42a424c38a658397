#!/usr/bin/env python3

"""
Interface-Change Watchdog

The PIA client can come back from a reconnect with a differently named tunnel
interface. NAT and forwarding rules that still reference the old name either
break routing or let LAN traffic leave outside the tunnel, so this module
polls the live interface binding and rewrites the rules whenever the tunnel
name changes.

State is held in an explicit WatchdogState value that poll_once() takes and
returns; nothing is kept in module globals.
"""

import subprocess
import time
from dataclasses import dataclass, replace
from typing import Callable, Optional

from .exceptions import GatewayError
from .firewall import apply_gateway_rules
from .interfaces import InterfaceBinding, InterfaceProbe
from .logger import log_message
from .system import reset_resolver


@dataclass(frozen=True)
class WatchdogState:
    """Tunnel name last written to the firewall and the current run of missed polls."""
    last_applied: Optional[str] = None
    missed_polls: int = 0


def needs_reapply(last_applied: Optional[str], binding: InterfaceBinding) -> bool:
    """True when the binding is complete and its tunnel differs from the applied one."""
    return binding.is_complete and binding.tunnel != last_applied


class InterfaceWatchdog:
    """
    Polls an interface probe and keeps the gateway rules bound to the current tunnel.

    Args:
        probe: Callable returning the live InterfaceBinding
        apply_rules: Callable replacing the firewall rules for a binding
        reset_dns: Callable resetting the resolver to the fallback nameserver
        interval: Seconds between polls
        missed_poll_warning: Consecutive incomplete polls before a warning is logged
        sleep: Blocking sleep used between polls
    """

    def __init__(self, probe: Callable[[], InterfaceBinding],
                 apply_rules: Callable[[InterfaceBinding], None] = apply_gateway_rules,
                 reset_dns: Callable[[], None] = reset_resolver,
                 interval: float = 5.0,
                 missed_poll_warning: int = 12,
                 sleep: Callable[[float], None] = time.sleep):
        self.probe = probe
        self.apply_rules = apply_rules
        self.reset_dns = reset_dns
        self.interval = interval
        self.missed_poll_warning = missed_poll_warning
        self.sleep = sleep
        self._running = False

    @classmethod
    def from_config(cls, config, interval: Optional[float] = None):
        """Builds a watchdog wired to the real netlink probe, iptables and resolv.conf."""
        network, paths, services = config.network, config.paths, config.services
        return cls(
            probe=InterfaceProbe.from_config(network),
            reset_dns=lambda: reset_resolver(paths.resolv_conf, network.fallback_dns),
            interval=interval or services.poll_interval,
            missed_poll_warning=services.missed_poll_warning,
        )

    def poll_once(self, state: WatchdogState) -> WatchdogState:
        """Runs one detection cycle and returns the state for the next one."""
        binding = self.probe()

        if not binding.is_complete:
            missed = state.missed_polls + 1
            if missed == self.missed_poll_warning:
                log_message(1, f"Warning: No usable interface binding ({binding}) for {missed} consecutive polls. Still waiting for the VPN tunnel.")
            else:
                log_message(5, f"Incomplete interface binding {binding}. Waiting for next poll.")
            return replace(state, missed_polls=missed)

        if state.missed_polls >= self.missed_poll_warning:
            log_message(3, f"Interface binding {binding} detected again after {state.missed_polls} missed polls.")

        if not needs_reapply(state.last_applied, binding):
            return replace(state, missed_polls=0)

        log_message(0, f"Tunnel interface changed: {state.last_applied or '<none>'} -> {binding.tunnel}. Reapplying NAT rules via {binding.egress}.")
        try:
            self.apply_rules(binding)
            self.reset_dns()
        except (GatewayError, subprocess.SubprocessError, OSError) as e:
            # last_applied stays put so the next poll retries
            log_message(1, f"Failed to reapply gateway rules for {binding}: {e}")
            return replace(state, missed_polls=0)

        log_message(2, f"Gateway rules now bound to {binding}.")
        return WatchdogState(last_applied=binding.tunnel, missed_polls=0)

    def run(self, state: Optional[WatchdogState] = None) -> WatchdogState:
        """Polls until stop() is called. Returns the final state."""
        state = state or WatchdogState()
        self._running = True
        log_message(0, f"Interface watchdog started (interval {self.interval}s).")

        while self._running:
            state = self.poll_once(state)
            if not self._running:
                break
            self.sleep(self.interval)

        log_message(0, "Interface watchdog stopped.")
        return state

    def stop(self):
        self._running = False
