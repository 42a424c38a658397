#!/usr/bin/env python3

from typing import Optional

from .config import Config, get_config
from .exceptions import GatewayError
from .firewall import flush_gateway_rules
from .logger import log_message
from .units import remove_units


def teardown(config: Optional[Config] = None) -> bool:
    """
    Undoes the gateway setup: removes the systemd units, then flushes the rules.

    Each step is attempted even when an earlier one fails. IP forwarding and
    the persisted ruleset are left in place; the next `netfilter-persistent
    save` overwrites the latter.

    Returns:
        True if every step succeeded
    """
    config = config or get_config()
    paths, services = config.paths, config.services
    success = True

    log_message(0, "Tearing down PIA VPN gateway...")

    try:
        if not remove_units(paths.systemd_dir, services.setup_unit, services.watchdog_unit):
            success = False
    except OSError as e:
        log_message(1, f"Warning: Failed to remove systemd units: {e}")
        success = False

    try:
        flush_gateway_rules()
    except GatewayError as e:
        log_message(1, f"Warning: {e}")
        success = False

    if success:
        log_message(2, "Gateway teardown completed.")
    else:
        log_message(1, "Gateway teardown completed with errors. Manual cleanup may be required.")
    return success
