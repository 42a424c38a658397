"""
Gateway Test Fixtures
=====================

Shared pytest fixtures: fake netlink handles, a recording firewall and
isolation of the global configuration and logger between tests.
"""

import subprocess
import sys
from pathlib import Path

import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from gateway import config as gateway_config
from gateway import logger as gateway_logger
from gateway.interfaces import InterfaceBinding


class FakeMessage(dict):
    """Stands in for a pyroute2 netlink message: dict fields plus NLA attributes."""

    def __init__(self, attrs=None, **fields):
        super().__init__(**fields)
        self.attrs = attrs or {}

    def get_attr(self, name):
        return self.attrs.get(name)


class FakeIPRoute:
    """Minimal IPRoute replacement serving canned links and routes."""

    def __init__(self, links=(), routes=()):
        self.links = list(links)
        self.routes = list(routes)
        self.closed = False

    def get_links(self):
        return list(self.links)

    def get_routes(self, family=None, **kwargs):
        return list(self.routes)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.closed = True
        return False


def make_link(index, name):
    return FakeMessage({'IFLA_IFNAME': name}, index=index)


def make_route(oif, dst_len=0, proto=3, table=254):
    return FakeMessage({'RTA_OIF': oif, 'RTA_TABLE': table}, dst_len=dst_len, proto=proto, table=table)


def completed(stdout="", stderr="", returncode=0, args=None):
    return subprocess.CompletedProcess(args or [], returncode, stdout=stdout, stderr=stderr)


class RecordingFirewall:
    """Records every rule application instead of calling iptables."""

    def __init__(self, fail_times=0):
        self.applied = []
        self.fail_times = fail_times

    def __call__(self, binding):
        if self.fail_times:
            self.fail_times -= 1
            raise subprocess.CalledProcessError(1, ["iptables-restore", "--noflush"])
        self.applied.append(binding)


class ScriptedProbe:
    """Returns one binding per poll from a fixed script."""

    def __init__(self, bindings):
        self.bindings = list(bindings)
        self.calls = 0

    def __call__(self):
        binding = self.bindings[min(self.calls, len(self.bindings) - 1)]
        self.calls += 1
        return binding


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch):
    """Clears gateway environment overrides and global state around each test."""
    for name in ("PIA_GATEWAY_TUNNEL_PATTERN", "PIA_GATEWAY_LAN_INTERFACE",
                 "PIA_GATEWAY_FALLBACK_DNS", "PIA_GATEWAY_POLL_INTERVAL",
                 "PIA_GATEWAY_LOG_FILE", "PIA_GATEWAY_DEBUG"):
        monkeypatch.delenv(name, raising=False)
    gateway_config.reset_config()
    yield
    gateway_config.reset_config()
    for handler in list(gateway_logger.logger.handlers):
        gateway_logger.logger.removeHandler(handler)
        handler.close()
    gateway_logger._configured = False


@pytest.fixture
def home_gateway_netlink():
    """lo, eth0 with the default route, and tun0 carrying the PIA split routes."""
    return FakeIPRoute(
        links=[make_link(1, "lo"), make_link(2, "eth0"), make_link(5, "tun0")],
        routes=[
            make_route(5, dst_len=1),
            make_route(2, dst_len=0),
            make_route(2, dst_len=24, proto=2),
        ],
    )


@pytest.fixture
def recording_firewall():
    return RecordingFirewall()


@pytest.fixture
def tun0_eth0():
    return InterfaceBinding("tun0", "eth0")
