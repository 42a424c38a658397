#!/usr/bin/env python3

"""
PIA client installation.

Downloads the vendor's Linux `.run` installer and runs it unattended when
`piactl` is not already on PATH.
"""

import re
import subprocess
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .config import PIA_INSTALLER_URL
from .exceptions import InstallerError
from .logger import log_message
from .utils import run_command

# Retry configuration
MAX_RETRIES = 3
BACKOFF_FACTOR = 1.0
RETRY_STATUS_CODES = [500, 502, 503, 504]

CONNECT_TIMEOUT = 10
READ_TIMEOUT = 60
CHUNK_SIZE = 64 * 1024

DEFAULT_INSTALLER_NAME = "pia-linux-installer.run"
FILENAME_PATTERN = re.compile(r'filename\*?=(?:UTF-8\'\')?"?([^";]+)"?', re.IGNORECASE)


def build_session() -> requests.Session:
    """Creates a session that retries transient server errors with backoff."""
    session = requests.Session()
    retry_strategy = Retry(
        total=MAX_RETRIES,
        backoff_factor=BACKOFF_FACTOR,
        status_forcelist=RETRY_STATUS_CODES,
        allowed_methods=["HEAD", "GET"],
        raise_on_status=False
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return session


def installer_filename(response) -> str:
    """Picks the file name from Content-Disposition, else from the final URL."""
    match = FILENAME_PATTERN.search(response.headers.get("content-disposition", ""))
    if match:
        name = Path(match.group(1).strip()).name
    else:
        name = Path(urlparse(response.url).path).name
    return name or DEFAULT_INSTALLER_NAME


def download_installer(url: str = PIA_INSTALLER_URL, download_dir: Path = Path("/tmp"),
                       session: Optional[requests.Session] = None) -> Path:
    """
    Streams the installer to `download_dir`.

    Returns:
        Path to the executable installer

    Raises:
        InstallerError: On HTTP failures, when the download is not a .run installer,
            or when it cannot be written to `download_dir`
    """
    session = session or build_session()
    log_message(3, f"Downloading PIA installer from {url}...")
    try:
        with session.get(url, stream=True, allow_redirects=True,
                         timeout=(CONNECT_TIMEOUT, READ_TIMEOUT)) as response:
            response.raise_for_status()
            target = Path(download_dir) / installer_filename(response)
            if target.suffix != ".run":
                raise InstallerError(f"Downloaded file {target.name} is not a PIA .run installer")
            with open(target, "wb") as f:
                for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                    if chunk:
                        f.write(chunk)
            target.chmod(0o755)
    except requests.exceptions.RequestException as e:
        raise InstallerError(f"Failed to download PIA installer from {url}: {e}") from e
    except OSError as e:
        raise InstallerError(f"Failed to save PIA installer to {download_dir}: {e}") from e

    log_message(2, f"Downloaded PIA installer to {target}.")
    return target


def ensure_pia_installed(client, url: str = PIA_INSTALLER_URL, download_dir: Path = Path("/tmp"),
                         session: Optional[requests.Session] = None) -> bool:
    """
    Installs the PIA client unless `client` is already installed.

    Returns:
        True if an installation was performed, False if PIA was already present
    """
    log_message(3, "Checking for PIA VPN client...")
    if client.is_installed():
        log_message(2, "PIA is already installed.")
        return False

    log_message(3, "PIA not found. Downloading and installing...")
    installer = download_installer(url, download_dir, session=session)
    try:
        # The vendor installer refuses to run as root and elevates by itself
        run_command([str(installer), "--quiet"], sudo=False)
    except (subprocess.CalledProcessError, OSError) as e:
        raise InstallerError(f"PIA installer {installer.name} failed: {e}") from e
    finally:
        installer.unlink(missing_ok=True)

    if not client.is_installed():
        raise InstallerError("Failed to install PIA: piactl is still not on PATH.")

    log_message(2, "PIA installed.")
    return True
