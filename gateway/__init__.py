"""
PIA VPN Gateway

Turns a Linux host into a NAT gateway that routes LAN traffic through the
Private Internet Access VPN client and keeps the firewall bound to the VPN's
tunnel interface across reconnects. It breaks down into:

- logger: Logging setup and configuration
- config: Dataclass configuration with JSON file and environment overrides
- utils: Command execution and root-owned file writes
- interfaces: Netlink-based tunnel and LAN interface detection
- firewall: iptables NAT/forwarding rules and their persistence
- system: IP forwarding, resolver and connectivity checks
- piactl: Wrapper around the PIA command line client
- installer: PIA client download and installation
- units: Boot-time systemd units
- bootstrap: The one-shot setup sequence
- watchdog: The interface-change watchdog loop
- teardown: Removal of units and rules
- cli: The pia-gateway command
"""

from .logger import setup_logging, log_message
from .exceptions import (
    GatewayError, ConnectivityError, InstallerError, PiaError,
    InterfaceDetectionError, FirewallError
)
from .config import (
    Config, get_config, reset_config,
    get_network_config, get_path_config, get_service_config,
    get_security_config, get_logging_config,
    NetworkConfig, PathConfig, ServiceConfig, SecurityConfig, LoggingConfig
)
from .interfaces import InterfaceBinding, InterfaceProbe, detect_binding
from .firewall import (
    build_ruleset, apply_gateway_rules, flush_gateway_rules, persist_rules
)
from .system import enable_ip_forwarding, reset_resolver, check_internet, check_dns
from .piactl import PiaClient
from .installer import ensure_pia_installed
from .units import install_units, remove_units
from .bootstrap import run_setup
from .watchdog import InterfaceWatchdog, WatchdogState, needs_reapply
from .teardown import teardown

__all__ = [
    # Logger functions
    'setup_logging',
    'log_message',

    # Exceptions
    'GatewayError',
    'ConnectivityError',
    'InstallerError',
    'PiaError',
    'InterfaceDetectionError',
    'FirewallError',

    # Configuration management
    'Config',
    'get_config',
    'reset_config',
    'get_network_config',
    'get_path_config',
    'get_service_config',
    'get_security_config',
    'get_logging_config',
    'NetworkConfig',
    'PathConfig',
    'ServiceConfig',
    'SecurityConfig',
    'LoggingConfig',

    # Interface detection
    'InterfaceBinding',
    'InterfaceProbe',
    'detect_binding',

    # Firewall
    'build_ruleset',
    'apply_gateway_rules',
    'flush_gateway_rules',
    'persist_rules',

    # Host configuration
    'enable_ip_forwarding',
    'reset_resolver',
    'check_internet',
    'check_dns',

    # VPN client
    'PiaClient',
    'ensure_pia_installed',

    # systemd
    'install_units',
    'remove_units',

    # Setup, watchdog and teardown
    'run_setup',
    'InterfaceWatchdog',
    'WatchdogState',
    'needs_reapply',
    'teardown',
]

__version__ = "1.0.0"
__description__ = "NAT gateway routing LAN traffic through the PIA VPN"
