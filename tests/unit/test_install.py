"""Unit tests for the install session service."""

from pathlib import Path

import pytest
import structlog
from tenacity import wait_none

from apkset.core.config import AdbConfig
from apkset.core.exceptions import DeviceCommandError, InvalidInputError, ProtocolError, ToolNotFoundError
from apkset.services.install import Device, InstallSessionService, find_adb, parse_session_id


class FakeDevice(Device):
    """Device recording every command and answering like the package manager."""

    def __init__(self, fail_on=None, push_failures=0, abandon_fails=False):
        self.commands = []
        self.pushed = []
        self.removed = []
        self.fail_on = fail_on
        self.push_failures = push_failures
        self.abandon_fails = abandon_fails
        self._next_session = 100
        self.bound_serials = []

    @property
    def serial(self):
        return "emulator-5554"

    async def shell(self, command, timeout):
        self.commands.append(command)
        self.bound_serials.append(structlog.contextvars.get_contextvars().get("serial"))
        if self.fail_on and command.startswith(self.fail_on):
            return ["Failure [INSTALL_FAILED_INVALID_APK]"]
        if command.startswith("pm install-abandon") and self.abandon_fails:
            raise DeviceCommandError(message="device offline", operation="adb")
        if command.startswith("pm install-create"):
            self._next_session += 1
            return [f"Success: created install session [{self._next_session}]"]
        if command.startswith("rm "):
            self.removed.append(command.split()[-1])
            return []
        return ["Success"]

    async def push(self, local_path, timeout):
        if self.push_failures:
            self.push_failures -= 1
            raise DeviceCommandError(message="connection reset", operation="adb", retryable=True)
        remote = f"/data/local/tmp/{local_path.name}"
        self.pushed.append(remote)
        return remote


def pm_commands(device):
    return [c for c in device.commands if c.startswith("pm ")]


def service_for(device, **config):
    return InstallSessionService(device, AdbConfig(**config), retry_wait=wait_none())


APKS = [Path("out/base-master.apk"), Path("out/base-arm64_v8a.apk")]


def test_parse_session_id():
    """Test parsing the session id out of pm output."""
    assert parse_session_id(["Success: created install session [1234]"]) == 1234

    with pytest.raises(ProtocolError):
        parse_session_id(["Success"])


@pytest.mark.asyncio
class TestInstallSessionService:
    """Tests for single-package installs."""

    async def test_install(self):
        """Test the command sequence of a single-package session."""
        device = FakeDevice()

        result = await service_for(device).install(APKS, "com.example.app")

        assert result.success
        assert result.data.session_id == 101
        assert pm_commands(device) == [
            "pm install-create -r",
            "pm install-write 101 com.example.app_0 /data/local/tmp/base-master.apk",
            "pm install-write 101 com.example.app_1 /data/local/tmp/base-arm64_v8a.apk",
            "pm install-commit 101",
        ]
        assert device.removed == device.pushed

    async def test_install_flags(self):
        """Test that downgrade, test-only and rollback flags reach pm."""
        device = FakeDevice()

        await service_for(device, enable_rollback=True).install(
            APKS, "com.example.app", allow_downgrade=True, allow_test_only=True
        )

        assert pm_commands(device)[0] == "pm install-create -r -d -t --enable-rollback"

    async def test_write_failure_abandons_session(self):
        """Test that a failed write abandons the session and propagates the error."""
        device = FakeDevice(fail_on="pm install-write")

        with pytest.raises(ProtocolError) as exc_info:
            await service_for(device).install(APKS, "com.example.app")

        assert "INSTALL_FAILED_INVALID_APK" in exc_info.value.message
        assert pm_commands(device)[-1] == "pm install-abandon 101"
        assert "pm install-commit 101" not in device.commands
        assert device.removed == device.pushed

    async def test_abandon_failure_keeps_original_error(self):
        """Test that a failing abandon does not mask the original error."""
        device = FakeDevice(fail_on="pm install-commit", abandon_fails=True)

        with pytest.raises(ProtocolError):
            await service_for(device).install(APKS, "com.example.app")

        assert pm_commands(device)[-1] == "pm install-abandon 101"

    async def test_push_retried(self):
        """Test that transient push failures are retried."""
        device = FakeDevice(push_failures=2)

        result = await service_for(device, push_retries=3).install(APKS, "com.example.app")

        assert result.success
        assert len(device.pushed) == 2

    async def test_push_retries_exhausted(self):
        """Test that the session is abandoned once push retries are exhausted."""
        device = FakeDevice(push_failures=5)

        with pytest.raises(DeviceCommandError):
            await service_for(device, push_retries=2).install(APKS, "com.example.app")

        assert pm_commands(device)[-1] == "pm install-abandon 101"

    async def test_no_apks(self):
        """Test that an empty install is rejected before any command runs."""
        device = FakeDevice()

        with pytest.raises(InvalidInputError):
            await service_for(device).install([], "com.example.app")

        assert device.commands == []

    async def test_duplicate_apks_rejected(self):
        """Test that an artifact listed twice is rejected before any command runs."""
        device = FakeDevice()

        with pytest.raises(InvalidInputError, match="more than once"):
            await service_for(device).install([APKS[0], APKS[0]], "com.example.app")

        assert device.commands == []

    async def test_serial_bound_to_log_context(self):
        """Test that the device serial tags log entries only while the session runs."""
        device = FakeDevice()

        await service_for(device).install(APKS, "com.example.app")

        assert set(device.bound_serials) == {"emulator-5554"}
        assert "serial" not in structlog.contextvars.get_contextvars()


@pytest.mark.asyncio
class TestMultiPackageInstall:
    """Tests for staged multi-package installs."""

    APKS_BY_PACKAGE = {
        "com.example.b": [Path("b/base.apk")],
        "com.example.a": [Path("a/base.apk"), Path("a/config.apk")],
        "com.android.media": [Path("media/module.apex")],
    }

    async def test_multi_package_flow(self):
        """Test parent and child sessions, created in package name order and committed."""
        device = FakeDevice()

        result = await service_for(device, enable_rollback=True).install_multi_package(
            self.APKS_BY_PACKAGE
        )

        assert result.data.packages == ["com.android.media", "com.example.a", "com.example.b"]
        assert result.data.child_session_ids == [102, 103, 104]
        assert pm_commands(device) == [
            "pm install-create --multi-package --staged --enable-rollback",
            "pm install-create --staged --enable-rollback --apex",
            "pm install-write 102 com.android.media_0 /data/local/tmp/module.apex",
            "pm install-create --staged --enable-rollback",
            "pm install-write 103 com.example.a_0 /data/local/tmp/base.apk",
            "pm install-write 103 com.example.a_1 /data/local/tmp/config.apk",
            "pm install-create --staged --enable-rollback",
            "pm install-write 104 com.example.b_0 /data/local/tmp/base.apk",
            "pm install-add-session 101 102 103 104",
            "pm install-commit 101",
        ]
        assert result.data.committed

    async def test_no_commit(self):
        """Test that the parent session is abandoned when no commit is requested."""
        device = FakeDevice()

        result = await service_for(device).install_multi_package(self.APKS_BY_PACKAGE, no_commit=True)

        assert not result.data.committed
        assert pm_commands(device)[-1] == "pm install-abandon 101"
        assert "pm install-commit 101" not in device.commands

    async def test_child_failure_abandons_sessions(self):
        """Test that a failed attach abandons children and parent."""
        device = FakeDevice(fail_on="pm install-add-session")

        with pytest.raises(ProtocolError):
            await service_for(device).install_multi_package(self.APKS_BY_PACKAGE)

        assert pm_commands(device)[-4:] == [
            "pm install-abandon 102",
            "pm install-abandon 103",
            "pm install-abandon 104",
            "pm install-abandon 101",
        ]


class TestFindAdb:
    """Tests for locating the adb binary."""

    def test_configured_path(self, temp_dir):
        """Test that a configured adb path is used when it exists."""
        adb = temp_dir / "adb"
        adb.write_text("")

        assert find_adb(AdbConfig(adb_path=adb)) == adb

    def test_configured_path_missing(self, temp_dir):
        """Test that a configured but missing adb path is reported."""
        with pytest.raises(ToolNotFoundError):
            find_adb(AdbConfig(adb_path=temp_dir / "nope"))

    def test_not_found(self, monkeypatch):
        """Test the error when adb is nowhere to be found."""
        monkeypatch.delenv("ANDROID_HOME", raising=False)
        monkeypatch.delenv("ANDROID_SDK_ROOT", raising=False)
        monkeypatch.setattr("apkset.services.install.device.shutil.which", lambda name: None)

        with pytest.raises(ToolNotFoundError) as exc_info:
            find_adb(AdbConfig())

        assert exc_info.value.tool_name == "adb"
