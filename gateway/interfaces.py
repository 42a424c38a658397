#!/usr/bin/env python3

"""
Interface detection through netlink.

Reads links and IPv4 routes from the kernel with pyroute2 instead of parsing
`ip route` output, and reduces them to the (tunnel, egress) pair the firewall
rules are written against.
"""

import re
import socket
from dataclasses import dataclass
from typing import Dict, Optional

from pyroute2 import IPRoute
from pyroute2.netlink import NetlinkError

from .logger import log_message

RTPROT_KERNEL = 2
RT_TABLE_MAIN = 254


@dataclass(frozen=True)
class InterfaceBinding:
    """The tunnel interface and the egress (LAN) interface NAT is built on."""
    tunnel: Optional[str] = None
    egress: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return bool(self.tunnel) and bool(self.egress)

    def __str__(self):
        return f"{self.tunnel or '<none>'}/{self.egress or '<none>'}"


def _link_names(ipr) -> Dict[int, str]:
    """Maps interface index to interface name."""
    return {link['index']: link.get_attr('IFLA_IFNAME') for link in ipr.get_links()}


def _route_table(route) -> int:
    # Tables above 255 only appear in the RTA_TABLE attribute
    return route.get_attr('RTA_TABLE') or route['table']


def find_tunnel_interface(ipr, pattern) -> Optional[str]:
    """Returns the first interface, in index order, whose name matches `pattern`."""
    matcher = re.compile(pattern)
    names = _link_names(ipr)
    for index in sorted(names):
        name = names[index]
        if name and matcher.match(name):
            return name
    return None


def find_egress_interface(ipr, exclude=None) -> Optional[str]:
    """
    Returns the interface carrying the main-table default route.

    Routes through `exclude` (the tunnel) are skipped. When no default route
    qualifies, the interface of the first kernel-installed subnet route is used.
    """
    names = _link_names(ipr)
    routes = [
        route for route in ipr.get_routes(family=socket.AF_INET)
        if _route_table(route) == RT_TABLE_MAIN
    ]

    def candidates(predicate):
        for route in routes:
            name = names.get(route.get_attr('RTA_OIF'))
            if name and name != exclude and predicate(route):
                yield name

    for name in candidates(lambda route: route['dst_len'] == 0):
        return name
    for name in candidates(lambda route: route['proto'] == RTPROT_KERNEL):
        return name
    return None


def detect_binding(tunnel_pattern, lan_interface=None) -> InterfaceBinding:
    """Queries the kernel for the current tunnel and egress interfaces."""
    with IPRoute() as ipr:
        tunnel = find_tunnel_interface(ipr, tunnel_pattern)
        egress = lan_interface or find_egress_interface(ipr, exclude=tunnel)
    return InterfaceBinding(tunnel=tunnel, egress=egress)


class InterfaceProbe:
    """Callable returning the live InterfaceBinding, never raising on netlink errors."""

    def __init__(self, tunnel_pattern=r"tun\d+$", lan_interface=None):
        self.tunnel_pattern = tunnel_pattern
        self.lan_interface = lan_interface

    @classmethod
    def from_config(cls, network_config):
        return cls(network_config.tunnel_pattern, network_config.lan_interface)

    def __call__(self) -> InterfaceBinding:
        try:
            binding = detect_binding(self.tunnel_pattern, self.lan_interface)
        except (NetlinkError, OSError) as e:
            log_message(1, f"Failed to query network interfaces: {e}")
            return InterfaceBinding()
        log_message(5, f"Detected interface binding: {binding}")
        return binding
