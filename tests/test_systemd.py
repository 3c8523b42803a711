"""
Unit tests for worldbankbot/local/host/systemd.py - SystemdInstaller
"""

import pytest

from worldbankbot.local.host import SystemdInstaller
from worldbankbot.local.supervisor import RestartPolicy, ServiceDescriptor


@pytest.fixture
def installer(tmp_path):
    return SystemdInstaller(
        ServiceDescriptor(
            name="WorldBankBot",
            display_name="WorldBankBot",
            description="WorldBank Twitter Bot",
            run_as="root",
        ),
        RestartPolicy(max_immediate_restarts=1),
        unit_dir=tmp_path / "units",
        python_executable="/opt/venv/bin/python",
        working_dir=tmp_path,
        stop_timeout=30,
        restart_sec=60,
    )


class TestRender:
    """Tests for the generated unit file."""

    def test_unit_name(self, installer):
        assert installer.unit_name == "worldbankbot.service"

    def test_service_metadata(self, installer):
        unit = installer.render()
        assert "Description=WorldBankBot - WorldBank Twitter Bot" in unit
        assert "SyslogIdentifier=WorldBankBot" in unit
        assert "User=root" in unit

    def test_recovery_policy(self, installer):
        unit = installer.render()
        assert "Restart=on-failure" in unit
        assert "RestartSec=60" in unit
        assert "restarts the bot 1 time(s)" in unit

    def test_exec_and_stop_timeout(self, installer):
        unit = installer.render()
        assert "ExecStart=/opt/venv/bin/python -m worldbankbot.main run" in unit
        assert "TimeoutStopSec=45" in unit


class TestInstall:
    """Tests for install and uninstall."""

    def test_install_writes_unit(self, installer):
        path = installer.install(reload=False)
        assert path == installer.unit_path
        assert path.read_text() == installer.render()

    def test_uninstall_removes_unit(self, installer):
        installer.install(reload=False)
        assert installer.uninstall(reload=False) is True
        assert not installer.unit_path.exists()

    def test_uninstall_when_not_installed(self, installer):
        assert installer.uninstall(reload=False) is False

    def test_missing_systemctl_is_skipped(self, installer, monkeypatch):
        from worldbankbot.local.host import systemd

        monkeypatch.setattr(systemd.shutil, "which", lambda name: None)
        path = installer.install(reload=True)
        assert path.exists()
