#!/usr/bin/env python3

"""
Thin wrapper around the PIA desktop client's command line tool.

Only the three subcommands the gateway needs are exposed:
`get connectionstate`, `login <file>` and `connect`.
"""

import subprocess
import time
from pathlib import Path
from typing import Union

from .exceptions import PiaError
from .logger import log_message
from .utils import command_exists, run_command

CONNECTED_STATE = "Connected"


class PiaClient:
    """Drives `piactl` as the invoking user (the PIA daemon does the privileged work)."""

    def __init__(self, binary: str = "piactl"):
        self.binary = binary

    def _run(self, *args, check=True):
        return run_command([self.binary, *args], check=check, capture_output=True, sudo=False)

    def is_installed(self) -> bool:
        return command_exists(self.binary)

    def connection_state(self) -> str:
        """Returns the client's connection state, e.g. 'Connected' or 'Disconnected'."""
        try:
            result = self._run("get", "connectionstate")
        except (subprocess.CalledProcessError, OSError) as e:
            raise PiaError(f"Failed to query PIA connection state: {e}") from e
        state = result.stdout.strip()
        log_message(4, f"PIA connection state: {state}")
        return state

    def is_connected(self) -> bool:
        return self.connection_state() == CONNECTED_STATE

    def login(self, credentials_file: Union[str, Path]):
        """
        Logs in with a file holding the username and password on separate lines.

        piactl also exits non-zero when the account is already logged in, so a
        failure here is logged and the subsequent connect decides the outcome.
        """
        log_message(3, "Logging in to PIA...")
        try:
            result = self._run("login", str(credentials_file), check=False)
        except OSError as e:
            raise PiaError(f"Failed to run piactl login: {e}") from e
        if result.returncode != 0:
            log_message(3, "piactl login returned non-zero. Assuming the account is already logged in.")
        else:
            log_message(2, "Logged in to PIA.")

    def connect(self):
        log_message(3, "Connecting to VPN...")
        try:
            self._run("connect")
        except (subprocess.CalledProcessError, OSError) as e:
            raise PiaError(f"piactl connect failed: {e}") from e

    def wait_until_connected(self, poll_interval: float = 2.0, timeout: float = 0):
        """
        Blocks until the client reports 'Connected'.

        Args:
            poll_interval: Seconds between state checks
            timeout: Seconds to wait before giving up; 0 waits forever

        Raises:
            PiaError: If the timeout elapses first
        """
        log_message(3, "Waiting for VPN to connect...")
        deadline = time.monotonic() + timeout if timeout else None
        while not self.is_connected():
            if deadline is not None and time.monotonic() >= deadline:
                raise PiaError(f"VPN did not connect within {timeout} seconds")
            time.sleep(poll_interval)
        log_message(2, "VPN connected.")
