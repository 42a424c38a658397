#!/usr/bin/env python3

"""
Gateway setup sequence.

Every step is idempotent and every precondition is fatal: the first failure
raises a GatewayError and nothing after it runs. The same sequence runs
interactively on first install and non-interactively from the one-shot
systemd unit at boot.
"""

import getpass
import os
import shutil
import sys
import tempfile
from pathlib import Path
from typing import Optional

from pyroute2.netlink import NetlinkError

from .config import Config, get_config
from .exceptions import ConnectivityError, GatewayError, InterfaceDetectionError
from .firewall import apply_gateway_rules, persist_rules
from .installer import ensure_pia_installed
from .interfaces import InterfaceBinding, detect_binding
from .logger import log_message
from .piactl import PiaClient
from .system import check_dns, check_internet, enable_ip_forwarding, reset_resolver
from .units import install_units
from .utils import command_exists


def check_required_commands(config: Config):
    missing = [cmd for cmd in config.get_required_commands() if not command_exists(cmd)]
    if missing:
        raise GatewayError(f"Required commands not found in PATH: {', '.join(missing)}")
    log_message(5, "All required commands found.")


def resolve_executable(configured: str) -> str:
    """Returns the command line the systemd units should invoke."""
    if Path(configured).is_file() and os.access(configured, os.X_OK):
        return configured
    installed = shutil.which("pia-gateway")
    if installed:
        return installed
    return f"{sys.executable} -m gateway"


def prompt_credentials_file(permissions: int = 0o600) -> Path:
    """Prompts for PIA credentials and writes them to a private temporary file."""
    print("PIA VPN Login")
    print("Username should start with 'p' (e.g. p1234567)")
    username = input("PIA Username: ").strip()
    password = getpass.getpass("PIA Password: ")

    fd, path = tempfile.mkstemp(prefix="pia-login-")
    os.fchmod(fd, permissions)
    with os.fdopen(fd, "w") as f:
        f.write(f"{username}\n{password}\n")
    return Path(path)


def ensure_connected(client: PiaClient, config: Config, credentials_file: Optional[Path] = None):
    """Logs in and connects unless the client already reports 'Connected'."""
    if client.is_connected():
        log_message(2, "Already connected to PIA. Continuing with setup...")
        return

    temporary = None
    if credentials_file is None and sys.stdin.isatty():
        temporary = credentials_file = prompt_credentials_file(
            config.security.credentials_file_permissions)

    try:
        if credentials_file is not None:
            client.login(credentials_file)
        else:
            log_message(3, "No credentials supplied. Relying on the stored PIA login.")
    finally:
        if temporary is not None:
            temporary.unlink(missing_ok=True)

    client.connect()
    client.wait_until_connected(
        poll_interval=config.services.connect_poll_interval,
        timeout=config.services.connect_timeout,
    )


def detect_interfaces(config: Config) -> InterfaceBinding:
    network = config.network
    try:
        binding = detect_binding(network.tunnel_pattern, network.lan_interface)
    except (NetlinkError, OSError) as e:
        raise InterfaceDetectionError(f"Failed to query network interfaces: {e}") from e
    if not binding.is_complete:
        raise InterfaceDetectionError(f"Could not detect VPN or LAN interface (found {binding}).")
    log_message(0, f"VPN interface: {binding.tunnel}")
    log_message(0, f"LAN interface: {binding.egress}")
    return binding


def run_setup(config: Optional[Config] = None, credentials_file: Optional[Path] = None,
              register_units: bool = True, persist: bool = True,
              client: Optional[PiaClient] = None) -> InterfaceBinding:
    """
    Configures the host as a NAT gateway routing LAN traffic through PIA.

    Args:
        config: Configuration to use, defaults to the global configuration
        credentials_file: File with the PIA username and password on separate lines
        register_units: Install and enable the boot-time systemd units
        persist: Save the ruleset with iptables-persistent
        client: piactl wrapper, built from the configuration when omitted

    Returns:
        The interface binding the firewall rules were installed for

    Raises:
        GatewayError: On the first failing step
    """
    config = config or get_config()
    network, paths, services = config.network, config.paths, config.services
    client = client or PiaClient(services.piactl_binary)

    log_message(0, "Starting PIA VPN Gateway Setup...")
    check_required_commands(config)

    log_message(3, "Checking internet connectivity...")
    if not check_internet(network.connectivity_host):
        raise ConnectivityError("No internet connection detected. Please connect and try again.")

    log_message(3, "Checking DNS resolution...")
    if not check_dns(network.dns_probe_host):
        log_message(1, "Warning: DNS resolution failed. Temporarily setting fallback DNS...")
        reset_resolver(paths.resolv_conf, network.fallback_dns)

    ensure_pia_installed(client, services.installer_url, paths.download_dir)
    ensure_connected(client, config, credentials_file)

    binding = detect_interfaces(config)
    enable_ip_forwarding(paths.sysctl_conf)
    apply_gateway_rules(binding)

    if persist:
        persist_rules()

    if register_units:
        install_units(
            resolve_executable(services.executable),
            systemd_dir=paths.systemd_dir,
            setup_unit=services.setup_unit,
            watchdog_unit=services.watchdog_unit,
        )

    log_message(0, "All done! Traffic from the LAN is now routed through the PIA VPN.")
    return binding
