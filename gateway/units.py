#!/usr/bin/env python3

"""
Boot-time systemd units.

Two fixed units are installed: a one-shot unit that reruns the setup sequence
once the network is online, and a long-running unit for the interface
watchdog that systemd restarts whenever it exits.
"""

import subprocess
from pathlib import Path
from typing import List

from .exceptions import GatewayError
from .logger import log_message
from .utils import run_command, write_system_file

SETUP_UNIT_TEMPLATE = """\
[Unit]
Description=PIA VPN Gateway Auto Setup
After=network-online.target
Wants=network-online.target

[Service]
Type=oneshot
ExecStart={executable} setup
RemainAfterExit=true

[Install]
WantedBy=multi-user.target
"""

WATCHDOG_UNIT_TEMPLATE = """\
[Unit]
Description=PIA VPN Gateway Interface Watchdog
After=network-online.target {setup_unit}
Wants=network-online.target

[Service]
Type=simple
ExecStart={executable} watch
Restart=always
RestartSec=5

[Install]
WantedBy=multi-user.target
"""


def render_setup_unit(executable):
    return SETUP_UNIT_TEMPLATE.format(executable=executable)


def render_watchdog_unit(executable, setup_unit="pia-gateway.service"):
    return WATCHDOG_UNIT_TEMPLATE.format(executable=executable, setup_unit=setup_unit)


def install_units(executable, systemd_dir=Path("/etc/systemd/system"),
                  setup_unit="pia-gateway.service",
                  watchdog_unit="pia-gateway-watchdog.service") -> List[Path]:
    """Writes and enables both units. Returns the unit file paths."""
    systemd_dir = Path(systemd_dir)
    units = {
        setup_unit: render_setup_unit(executable),
        watchdog_unit: render_watchdog_unit(executable, setup_unit),
    }

    log_message(3, "Creating systemd services to restore the VPN gateway on boot...")
    written = []
    try:
        for name, content in units.items():
            path = systemd_dir / name
            write_system_file(path, content)
            written.append(path)
            log_message(4, f"Wrote unit {path}")

        run_command(["systemctl", "daemon-reload"])
        for name in units:
            run_command(["systemctl", "enable", name], capture_output=True)
            log_message(2, f"Enabled {name}.")
    except (subprocess.CalledProcessError, OSError) as e:
        raise GatewayError(f"Failed to install systemd units: {e}") from e

    return written


def remove_units(systemd_dir=Path("/etc/systemd/system"),
                 setup_unit="pia-gateway.service",
                 watchdog_unit="pia-gateway-watchdog.service") -> bool:
    """Disables and deletes both units. Returns False if any step failed."""
    systemd_dir = Path(systemd_dir)
    success = True

    # Watchdog first so it cannot reapply rules during teardown
    for name in (watchdog_unit, setup_unit):
        path = systemd_dir / name
        if not path.exists():
            log_message(5, f"Unit {path} not found. Skipping.")
            continue
        result = run_command(["systemctl", "disable", "--now", name], check=False, capture_output=True)
        if result.returncode != 0:
            log_message(1, f"Warning: Failed to disable {name}: {result.stderr.strip()}")
            success = False
        try:
            run_command(["rm", "-f", str(path)])
            log_message(3, f"Removed unit {path}.")
        except (subprocess.CalledProcessError, OSError) as e:
            log_message(1, f"Warning: Failed to remove {path}: {e}")
            success = False

    run_command(["systemctl", "daemon-reload"], check=False)
    return success
