#!/usr/bin/env python3

import argparse
import os
import signal
import subprocess
import sys
from pathlib import Path

from .bootstrap import run_setup
from .config import get_config
from .exceptions import GatewayError
from .interfaces import InterfaceProbe
from .logger import log_message, setup_logging
from .piactl import PiaClient
from .teardown import teardown
from .utils import run_command
from .watchdog import InterfaceWatchdog

PRIVILEGED_COMMANDS = ("setup", "watch", "teardown")


def build_parser():
    parser = argparse.ArgumentParser(
        prog="pia-gateway",
        description="Route LAN traffic through the PIA VPN and keep the NAT rules bound to its tunnel."
    )
    parser.add_argument(
        "-v", "--verbosity",
        type=int,
        default=None,
        choices=range(6), # 0 to 5
        help="Set verbosity level (0=STATUS, 1=ERROR, 2=SUCCESS, 3=INFO, 4=VARIABLES, 5=DEBUG). Default is 3.",
        metavar="LEVEL"
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="JSON configuration file."
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    setup_parser = subparsers.add_parser("setup", help="Configure this host as a PIA NAT gateway.")
    setup_parser.add_argument(
        "--credentials",
        type=Path,
        default=None,
        help="File with the PIA username and password on separate lines."
    )
    setup_parser.add_argument("--no-units", action="store_true", help="Do not install the systemd units.")
    setup_parser.add_argument("--no-persist", action="store_true", help="Do not save rules with iptables-persistent.")

    watch_parser = subparsers.add_parser("watch", help="Reapply NAT rules whenever the tunnel interface changes.")
    watch_parser.add_argument(
        "--interval",
        type=float,
        default=None,
        help="Seconds between interface polls. Defaults to the configured poll interval."
    )

    subparsers.add_parser("status", help="Show the VPN state and the detected interfaces.")
    subparsers.add_parser("teardown", help="Remove the systemd units and flush the gateway rules.")
    return parser


def has_privileges():
    """Root, or passwordless sudo."""
    if os.geteuid() == 0:
        return True
    try:
        run_command("sudo -nv", check=True, capture_output=True, sudo=False) # Non-interactive validation
        return True
    except (subprocess.CalledProcessError, OSError):
        return False


def cmd_setup(config, args):
    run_setup(
        config,
        credentials_file=args.credentials,
        register_units=not args.no_units,
        persist=not args.no_persist,
    )
    return 0


def cmd_watch(config, args):
    watchdog = InterfaceWatchdog.from_config(config, interval=args.interval)

    def signal_handler(signum, frame):
        log_message(0, f"Received signal {signum}. Stopping watchdog...")
        watchdog.stop()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    watchdog.run()
    return 0


def cmd_status(config, args):
    client = PiaClient(config.services.piactl_binary)
    if client.is_installed():
        state = client.connection_state()
    else:
        state = "not installed"
    binding = InterfaceProbe.from_config(config.network)()

    print(f"VPN state:         {state}")
    print(f"Tunnel interface:  {binding.tunnel or '-'}")
    print(f"LAN interface:     {binding.egress or '-'}")
    return 0


def cmd_teardown(config, args):
    return 0 if teardown(config) else 1


COMMANDS = {
    "setup": cmd_setup,
    "watch": cmd_watch,
    "status": cmd_status,
    "teardown": cmd_teardown,
}


def main(argv=None):
    """Entry point for the pia-gateway console script."""
    args = build_parser().parse_args(argv)

    try:
        config = get_config(args.config)
    except (ValueError, TypeError) as e:
        print(f"Invalid configuration: {e}", file=sys.stderr)
        return 1

    verbosity = args.verbosity if args.verbosity is not None else config.logging.default_verbosity
    setup_logging(
        verbosity,
        log_file=config.paths.log_file if config.logging.log_to_file else None,
        log_format=config.logging.log_format,
        date_format=config.logging.log_date_format,
    )

    if args.command in PRIVILEGED_COMMANDS and config.security.require_sudo and not has_privileges():
        log_message(1, "This command requires root privileges or passwordless sudo access to manage firewall rules, sysctl and systemd units.")
        return 1

    try:
        return COMMANDS[args.command](config, args)
    except GatewayError as e:
        log_message(1, str(e))
        return 1
    except KeyboardInterrupt:
        log_message(0, "Interrupted.")
        return 1


if __name__ == "__main__":
    sys.exit(main())
