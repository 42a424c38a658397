"""
Configuration Tests
===================
"""

import json
from pathlib import Path

import pytest

from gateway.config import (
    Config, NetworkConfig, PathConfig, ServiceConfig,
    get_config, get_network_config, reset_config
)


class TestDefaults:

    def test_reference_behaviour(self):
        config = Config()

        assert config.network.tunnel_pattern == r"tun\d+$"
        assert config.network.fallback_dns == "1.1.1.1"
        assert config.services.poll_interval == 5.0
        assert config.services.connect_poll_interval == 2.0
        assert config.services.connect_timeout == 0
        assert config.paths.resolv_conf == Path("/etc/resolv.conf")
        assert config.paths.sysctl_conf == Path("/etc/sysctl.conf")

    def test_required_commands(self):
        commands = Config().get_required_commands()
        assert "iptables-restore" in commands
        assert "sysctl" in commands
        assert "ip" not in commands


class TestValidation:

    def test_invalid_fallback_dns(self):
        with pytest.raises(ValueError):
            NetworkConfig(fallback_dns="not-an-ip")

    def test_invalid_tunnel_pattern(self):
        with pytest.raises(ValueError):
            NetworkConfig(tunnel_pattern="tun(")

    def test_blank_lan_interface(self):
        with pytest.raises(ValueError):
            NetworkConfig(lan_interface=" ")

    def test_relative_path(self):
        with pytest.raises(ValueError):
            PathConfig(resolv_conf="resolv.conf")

    def test_strings_become_paths(self):
        assert PathConfig(log_file="/tmp/gw.log").log_file == Path("/tmp/gw.log")

    @pytest.mark.parametrize("kwargs", [
        {"poll_interval": 0},
        {"connect_poll_interval": -1},
        {"connect_timeout": -5},
        {"missed_poll_warning": 0},
        {"setup_unit": "pia-gateway"},
        {"watchdog_unit": "pia-gateway.service"},
    ])
    def test_invalid_service_values(self, kwargs):
        with pytest.raises(ValueError):
            ServiceConfig(**kwargs)


class TestSources:

    def test_config_file(self, tmp_path):
        config_file = tmp_path / "gateway.json"
        config_file.write_text(json.dumps({
            "network": {"tunnel_pattern": "wgpia", "lan_interface": "eth1"},
            "services": {"poll_interval": 10},
        }))

        config = Config(config_file)

        assert config.network.tunnel_pattern == "wgpia"
        assert config.network.lan_interface == "eth1"
        assert config.services.poll_interval == 10

    def test_missing_file_uses_defaults(self, tmp_path):
        assert Config(tmp_path / "missing.json").network.tunnel_pattern == r"tun\d+$"

    def test_invalid_json(self, tmp_path):
        config_file = tmp_path / "gateway.json"
        config_file.write_text("{not json")
        with pytest.raises(ValueError):
            Config(config_file)

    def test_environment_overrides_file_per_key(self, tmp_path, monkeypatch):
        config_file = tmp_path / "gateway.json"
        config_file.write_text(json.dumps({"network": {"tunnel_pattern": "wgpia", "fallback_dns": "9.9.9.9"}}))
        monkeypatch.setenv("PIA_GATEWAY_TUNNEL_PATTERN", "tun")
        monkeypatch.setenv("PIA_GATEWAY_POLL_INTERVAL", "2.5")
        monkeypatch.setenv("PIA_GATEWAY_DEBUG", "1")

        config = Config(config_file)

        assert config.network.tunnel_pattern == "tun"
        assert config.network.fallback_dns == "9.9.9.9"
        assert config.services.poll_interval == 2.5
        assert config.logging.default_verbosity == 5

    def test_invalid_poll_interval_env_is_ignored(self, monkeypatch):
        monkeypatch.setenv("PIA_GATEWAY_POLL_INTERVAL", "soon")
        assert Config().services.poll_interval == 5.0


class TestGlobalInstance:

    def test_singleton_until_reset(self):
        first = get_config()
        assert get_config() is first
        assert get_network_config() is first.network

        reset_config()
        assert get_config() is not first
