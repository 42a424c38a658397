#!/usr/bin/env python3

import re
import socket
import subprocess
from pathlib import Path

from .exceptions import GatewayError
from .logger import log_message
from .utils import run_command, write_system_file

IP_FORWARD_KEY = "net.ipv4.ip_forward"
IP_FORWARD_SETTING = f"{IP_FORWARD_KEY}=1"

# Matches commented-out and differently spaced variants of the setting
IP_FORWARD_LINE = re.compile(r"^[ \t#]*net\.ipv4\.ip_forward[ \t]*=.*$", re.MULTILINE)


def persisted_sysctl(content):
    """Returns `content` with the IP forwarding setting enabled exactly as written."""
    updated, count = IP_FORWARD_LINE.subn(IP_FORWARD_SETTING, content)
    if count == 0:
        if updated and not updated.endswith("\n"):
            updated += "\n"
        updated += IP_FORWARD_SETTING + "\n"
    return updated


def enable_ip_forwarding(sysctl_conf=Path("/etc/sysctl.conf")):
    """Enables IPv4 forwarding now and in sysctl.conf for subsequent boots."""
    log_message(3, "Enabling IP forwarding...")
    try:
        run_command(["sysctl", "-w", IP_FORWARD_SETTING], capture_output=True)
    except (subprocess.CalledProcessError, OSError) as e:
        raise GatewayError(f"Failed to enable IP forwarding: {e}") from e

    sysctl_conf = Path(sysctl_conf)
    try:
        current = sysctl_conf.read_text()
    except FileNotFoundError:
        current = ""

    updated = persisted_sysctl(current)
    if updated == current:
        log_message(5, f"{sysctl_conf} already enables IP forwarding.")
    else:
        try:
            write_system_file(sysctl_conf, updated)
        except (subprocess.CalledProcessError, OSError) as e:
            raise GatewayError(f"Failed to persist IP forwarding in {sysctl_conf}: {e}") from e
        log_message(3, f"Persisted {IP_FORWARD_SETTING} in {sysctl_conf}.")
    log_message(2, "IP forwarding enabled.")


def reset_resolver(resolv_conf=Path("/etc/resolv.conf"), nameserver="1.1.1.1"):
    """Replaces the resolver configuration with a single nameserver."""
    log_message(3, f"Resetting {resolv_conf} to nameserver {nameserver}.")
    try:
        write_system_file(resolv_conf, f"nameserver {nameserver}\n")
    except (subprocess.CalledProcessError, OSError) as e:
        raise GatewayError(f"Failed to reset {resolv_conf}: {e}") from e


def check_internet(host="1.1.1.1"):
    """Returns True when `host` answers a single ping."""
    result = run_command(["ping", "-c", "1", "-W", "3", host], check=False, capture_output=True, sudo=False)
    return result.returncode == 0


def check_dns(hostname):
    """Returns True when `hostname` resolves."""
    try:
        socket.getaddrinfo(hostname, None)
    except (socket.gaierror, UnicodeError) as e:
        log_message(5, f"DNS lookup for {hostname} failed: {e}")
        return False
    return True
