#!/usr/bin/env python3

import os
import shutil
import subprocess
from pathlib import Path

from .logger import log_message

# Output longer than this is truncated in debug logs
MAX_LOGGED_OUTPUT = 200


def _log_output(label, output):
    output = output.strip() if output else ""
    if not output:
        return
    if len(output) > MAX_LOGGED_OUTPUT:
        log_message(5, f"{label}: [TRUNCATED - {len(output)} chars] {output[:100]}...")
    else:
        log_message(5, f"{label}: {output}")


def run_command(command, check=True, capture_output=False, text=True, timeout=None, sudo=True, input=None, env=None, cwd=None):
    """Runs a command, prefixing sudo when requested and not already root."""
    full_command = []
    if sudo and os.geteuid() != 0:
        full_command.append("sudo")

    if isinstance(command, (list, tuple)):
        full_command.extend(str(part) for part in command)
    else:
        full_command.extend(command.split())

    cmd_str = ' '.join(full_command)
    log_message(5, f"Running command: {cmd_str}")

    try:
        result = subprocess.run(
            full_command,
            check=check,
            capture_output=capture_output,
            text=text,
            timeout=timeout,
            input=input,
            env=env,
            cwd=cwd
        )
        if capture_output:
            _log_output("Command output", result.stdout)
            _log_output("Command error ", result.stderr)
        return result
    except subprocess.CalledProcessError as e:
        log_message(1, f"Command failed: {cmd_str}")
        log_message(1, f"Error: {e}")
        log_message(1, f"Stderr: {e.stderr.strip() if e.stderr else 'N/A'}")
        raise # Re-raise the exception if check=True
    except subprocess.TimeoutExpired:
        log_message(1, f"Command timed out: {cmd_str}")
        raise
    except OSError as e:
        log_message(1, f"Failed to run command '{cmd_str}'. Error: {e}")
        raise


def command_exists(name):
    """Returns True when an executable named `name` is on PATH."""
    return shutil.which(name) is not None


def write_system_file(path, content):
    """Replaces a root-owned file with `content` by piping it through tee."""
    path = Path(path)
    log_message(5, f"Writing {len(content)} bytes to {path}")
    # tee echoes its input; capture it so it stays out of the console
    run_command(["tee", str(path)], input=content, capture_output=True)
