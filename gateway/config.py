#!/usr/bin/env python3

"""
Configuration Management Module for the PIA VPN Gateway

This module provides centralized configuration management with:
- Single source of truth for interface detection, file locations and timings
- Configuration file loading (JSON) with environment variable overrides
- Validation and type checking of every section at construction time

Precedence, lowest to highest: built-in defaults, JSON configuration file,
PIA_GATEWAY_* environment variables.
"""

import os
import re
import json
import ipaddress
from pathlib import Path
from typing import Dict, Any, Optional, Union
from dataclasses import dataclass, field

from .logger import log_message, DEFAULT_LOG_FILE, DEFAULT_FORMAT, DEFAULT_DATE_FORMAT

PIA_INSTALLER_URL = "https://www.privateinternetaccess.com/installer/x/download_installer_linux"


@dataclass
class NetworkConfig:
    """Interface detection and resolver configuration."""
    # Regular expression matched from the start of each interface name; tunl0 (ipip) must not match
    tunnel_pattern: str = r"tun\d+$"
    # Pins the LAN/egress interface instead of detecting it from the routing table
    lan_interface: Optional[str] = None

    fallback_dns: str = "1.1.1.1"
    connectivity_host: str = "1.1.1.1"
    dns_probe_host: str = "www.privateinternetaccess.com"

    def __post_init__(self):
        """Validate network configuration after initialization."""
        self._validate_interfaces()
        self._validate_ip_addresses()

    def _validate_interfaces(self):
        """Validate the tunnel pattern and the optional LAN interface name."""
        if not isinstance(self.tunnel_pattern, str) or not self.tunnel_pattern.strip():
            raise ValueError(f"Invalid tunnel interface pattern: {self.tunnel_pattern!r}")
        try:
            re.compile(self.tunnel_pattern)
        except re.error as e:
            raise ValueError(f"Invalid tunnel interface pattern {self.tunnel_pattern!r}: {e}")

        if self.lan_interface is not None:
            if not isinstance(self.lan_interface, str) or not self.lan_interface.strip():
                raise ValueError(f"Invalid LAN interface name: {self.lan_interface!r}")

        if not self.dns_probe_host or not isinstance(self.dns_probe_host, str):
            raise ValueError(f"Invalid DNS probe host: {self.dns_probe_host!r}")

    def _validate_ip_addresses(self):
        """Validate IP address formats."""
        try:
            ipaddress.IPv4Address(self.fallback_dns)
            ipaddress.IPv4Address(self.connectivity_host)
        except ipaddress.AddressValueError as e:
            raise ValueError(f"Invalid IP address in network config: {e}")


@dataclass
class PathConfig:
    """File system paths touched by the gateway."""
    resolv_conf: Path = field(default_factory=lambda: Path("/etc/resolv.conf"))
    sysctl_conf: Path = field(default_factory=lambda: Path("/etc/sysctl.conf"))
    systemd_dir: Path = field(default_factory=lambda: Path("/etc/systemd/system"))
    log_file: Path = field(default_factory=lambda: DEFAULT_LOG_FILE)
    download_dir: Path = field(default_factory=lambda: Path("/tmp"))

    def __post_init__(self):
        """Coerce strings from configuration files into paths and validate them."""
        for name in ("resolv_conf", "sysctl_conf", "systemd_dir", "log_file", "download_dir"):
            value = getattr(self, name)
            if not isinstance(value, Path):
                value = Path(value)
                setattr(self, name, value)
            if not value.is_absolute():
                raise ValueError(f"Path '{name}' must be absolute: {value}")


@dataclass
class ServiceConfig:
    """VPN client, systemd and timing configuration."""
    piactl_binary: str = "piactl"
    installer_url: str = PIA_INSTALLER_URL

    # Command the systemd units invoke
    executable: str = "/usr/local/bin/pia-gateway"
    setup_unit: str = "pia-gateway.service"
    watchdog_unit: str = "pia-gateway-watchdog.service"

    poll_interval: float = 5.0  # seconds
    connect_poll_interval: float = 2.0  # seconds
    connect_timeout: float = 0  # seconds, 0 waits forever
    missed_poll_warning: int = 12  # consecutive polls without a tunnel

    def __post_init__(self):
        """Validate service configuration."""
        self._validate_units()
        self._validate_timeouts()

    def _validate_units(self):
        """Validate unit names look like systemd service units."""
        for unit in (self.setup_unit, self.watchdog_unit):
            if not isinstance(unit, str) or not unit.endswith(".service"):
                raise ValueError(f"Invalid systemd unit name: {unit!r}")
        if self.setup_unit == self.watchdog_unit:
            raise ValueError("Setup and watchdog units must have different names")

    def _validate_timeouts(self):
        """Validate intervals are positive."""
        for interval in (self.poll_interval, self.connect_poll_interval):
            if interval <= 0:
                raise ValueError(f"Invalid polling interval: {interval}")
        if self.connect_timeout < 0:
            raise ValueError(f"Invalid connect timeout: {self.connect_timeout}")
        if self.missed_poll_warning < 1:
            raise ValueError(f"Invalid missed poll warning threshold: {self.missed_poll_warning}")


@dataclass
class SecurityConfig:
    """Security-related configuration settings."""
    require_sudo: bool = True
    credentials_file_permissions: int = 0o600

    def __post_init__(self):
        """Validate security configuration."""
        if not isinstance(self.credentials_file_permissions, int):
            raise ValueError("credentials_file_permissions must be an integer (octal)")


@dataclass
class LoggingConfig:
    """Logging configuration settings."""
    default_verbosity: int = 3
    log_to_file: bool = True
    log_format: str = DEFAULT_FORMAT
    log_date_format: str = DEFAULT_DATE_FORMAT

    def __post_init__(self):
        """Validate logging configuration."""
        if not (0 <= self.default_verbosity <= 5):
            raise ValueError(f"Invalid default verbosity: {self.default_verbosity}")


class Config:
    """
    Main configuration class that aggregates all configuration sections.

    Provides a single point of access for all configuration settings with
    validation and environment variable support.
    """

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        """
        Initialize configuration.

        Args:
            config_file: Optional path to a JSON configuration file
        """
        self.config_file = Path(config_file) if config_file else None
        self._load_configuration(self.config_file)

    def _load_configuration(self, config_file: Optional[Path] = None):
        """Load configuration from file and environment, falling back to defaults."""
        config_data = {}

        if config_file:
            config_data = self._load_config_file(config_file)

        # Environment overrides are merged per key, not per section
        for section, values in self._load_environment_config().items():
            config_data.setdefault(section, {}).update(values)

        self.network = NetworkConfig(**config_data.get('network', {}))
        self.paths = PathConfig(**config_data.get('paths', {}))
        self.services = ServiceConfig(**config_data.get('services', {}))
        self.security = SecurityConfig(**config_data.get('security', {}))
        self.logging = LoggingConfig(**config_data.get('logging', {}))

    def _load_config_file(self, config_file: Path) -> Dict[str, Any]:
        """Load configuration from JSON file."""
        if not config_file.exists():
            log_message(1, f"Configuration file not found: {config_file}. Using defaults.")
            return {}

        try:
            with open(config_file, 'r') as f:
                config_data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"Invalid JSON in configuration file {config_file}: {e}")

        if not isinstance(config_data, dict):
            raise ValueError(f"Configuration file {config_file} must contain a JSON object")

        log_message(5, f"Loaded configuration from: {config_file}")
        return config_data

    def _load_environment_config(self) -> Dict[str, Dict[str, Any]]:
        """Load configuration overrides from environment variables."""
        env_config = {}

        if os.getenv('PIA_GATEWAY_TUNNEL_PATTERN'):
            env_config.setdefault('network', {})['tunnel_pattern'] = os.getenv('PIA_GATEWAY_TUNNEL_PATTERN')

        if os.getenv('PIA_GATEWAY_LAN_INTERFACE'):
            env_config.setdefault('network', {})['lan_interface'] = os.getenv('PIA_GATEWAY_LAN_INTERFACE')

        if os.getenv('PIA_GATEWAY_FALLBACK_DNS'):
            env_config.setdefault('network', {})['fallback_dns'] = os.getenv('PIA_GATEWAY_FALLBACK_DNS')

        if os.getenv('PIA_GATEWAY_POLL_INTERVAL'):
            try:
                interval = float(os.getenv('PIA_GATEWAY_POLL_INTERVAL'))
                env_config.setdefault('services', {})['poll_interval'] = interval
            except ValueError:
                log_message(1, "Invalid PIA_GATEWAY_POLL_INTERVAL environment variable. Ignoring it.")

        if os.getenv('PIA_GATEWAY_LOG_FILE'):
            env_config.setdefault('paths', {})['log_file'] = os.getenv('PIA_GATEWAY_LOG_FILE')

        if os.getenv('PIA_GATEWAY_DEBUG') in ['1', 'true', 'True', 'TRUE']:
            env_config.setdefault('logging', {})['default_verbosity'] = 5

        return env_config

    def get_required_commands(self) -> list:
        """Get list of system commands required for operation."""
        return [
            'iptables', 'iptables-restore', 'sysctl',
            'ping', 'tee', 'systemctl',
        ]


# Global configuration instance
_config_instance: Optional[Config] = None


def get_config(config_file: Optional[Union[str, Path]] = None) -> Config:
    """
    Get the global configuration instance.

    Args:
        config_file: Optional path to configuration file, used on first call only

    Returns:
        Configuration instance
    """
    global _config_instance

    if _config_instance is None:
        _config_instance = Config(config_file)

    return _config_instance


def reset_config():
    """Reset the global configuration instance (primarily for testing)."""
    global _config_instance
    _config_instance = None


# Convenience functions for accessing configuration sections
def get_network_config() -> NetworkConfig:
    """Get network configuration."""
    return get_config().network


def get_path_config() -> PathConfig:
    """Get path configuration."""
    return get_config().paths


def get_service_config() -> ServiceConfig:
    """Get service configuration."""
    return get_config().services


def get_security_config() -> SecurityConfig:
    """Get security configuration."""
    return get_config().security


def get_logging_config() -> LoggingConfig:
    """Get logging configuration."""
    return get_config().logging
