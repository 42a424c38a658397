"""
systemd Unit Tests
==================
"""

from unittest.mock import call, patch

from conftest import completed
from gateway.units import install_units, remove_units, render_setup_unit, render_watchdog_unit


class TestRender:

    def test_setup_unit_is_oneshot_after_network(self):
        unit = render_setup_unit("/usr/local/bin/pia-gateway")

        assert "Type=oneshot" in unit
        assert "RemainAfterExit=true" in unit
        assert "After=network-online.target" in unit
        assert "Wants=network-online.target" in unit
        assert "ExecStart=/usr/local/bin/pia-gateway setup" in unit
        assert "WantedBy=multi-user.target" in unit

    def test_watchdog_unit_restarts_always(self):
        unit = render_watchdog_unit("/usr/local/bin/pia-gateway", "pia-gateway.service")

        assert "ExecStart=/usr/local/bin/pia-gateway watch" in unit
        assert "Restart=always" in unit
        assert "After=network-online.target pia-gateway.service" in unit
        assert "WantedBy=multi-user.target" in unit


class TestInstall:

    def test_writes_reloads_and_enables(self, tmp_path):
        with patch("gateway.units.write_system_file") as write, \
                patch("gateway.units.run_command", return_value=completed()) as run:
            paths = install_units("/usr/local/bin/pia-gateway", systemd_dir=tmp_path)

        assert paths == [tmp_path / "pia-gateway.service", tmp_path / "pia-gateway-watchdog.service"]
        assert [c.args[0] for c in write.call_args_list] == paths
        assert run.call_args_list == [
            call(["systemctl", "daemon-reload"]),
            call(["systemctl", "enable", "pia-gateway.service"], capture_output=True),
            call(["systemctl", "enable", "pia-gateway-watchdog.service"], capture_output=True),
        ]


class TestRemove:

    def test_disables_watchdog_first(self, tmp_path):
        (tmp_path / "pia-gateway.service").write_text("")
        (tmp_path / "pia-gateway-watchdog.service").write_text("")

        with patch("gateway.units.run_command", return_value=completed()) as run:
            assert remove_units(tmp_path)

        commands = [c.args[0] for c in run.call_args_list]
        assert commands[0] == ["systemctl", "disable", "--now", "pia-gateway-watchdog.service"]
        assert ["systemctl", "disable", "--now", "pia-gateway.service"] in commands
        assert commands[-1] == ["systemctl", "daemon-reload"]

    def test_missing_units_are_skipped(self, tmp_path):
        with patch("gateway.units.run_command", return_value=completed()) as run:
            assert remove_units(tmp_path)

        assert [c.args[0] for c in run.call_args_list] == [["systemctl", "daemon-reload"]]

    def test_disable_failure_is_reported(self, tmp_path):
        (tmp_path / "pia-gateway.service").write_text("")

        with patch("gateway.units.run_command", return_value=completed(returncode=1, stderr="failed")):
            assert not remove_units(tmp_path)
