"""
Device transport.

A Device runs shell commands and transfers files. AdbDevice drives a real
device through the ``adb`` binary with one subprocess per round trip.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from abc import ABC, abstractmethod
from pathlib import Path

from ...core.config import AdbConfig
from ...core.exceptions import DeviceCommandError, ToolNotFoundError
from ...core.logging import get_logger

logger = get_logger(__name__)

REMOTE_TEMP_DIR = "/data/local/tmp"


class Device(ABC):
    """Abstract device an install session talks to."""

    @property
    @abstractmethod
    def serial(self) -> str:
        ...

    @abstractmethod
    async def shell(self, command: str, timeout: float) -> list[str]:
        """Run a shell command and return its output lines.

        Raises:
            DeviceCommandError: If the round trip fails or times out.
        """
        ...

    @abstractmethod
    async def push(self, local_path: Path, timeout: float) -> str:
        """Copy a file to the device temp directory and return its remote path."""
        ...

    async def remove(self, remote_path: str, timeout: float) -> None:
        await self.shell(f"rm -f {remote_path}", timeout)


def find_adb(config: AdbConfig) -> Path:
    """Locate the adb binary.

    Looks at the configured path, then ``$ANDROID_HOME/platform-tools``, then PATH.

    Raises:
        ToolNotFoundError: If adb cannot be found.
    """
    if config.adb_path is not None:
        if config.adb_path.exists():
            return config.adb_path
        raise ToolNotFoundError(
            message="Configured adb binary does not exist",
            tool_name="adb",
            expected_path=str(config.adb_path),
        )

    sdk_root = os.environ.get("ANDROID_HOME") or os.environ.get("ANDROID_SDK_ROOT")
    if sdk_root:
        for name in ("adb", "adb.exe"):
            candidate = Path(sdk_root) / "platform-tools" / name
            if candidate.exists():
                return candidate

    adb = shutil.which("adb")
    if adb:
        return Path(adb)
    raise ToolNotFoundError(
        message="adb not found",
        tool_name="adb",
        expected_path="$ANDROID_HOME/platform-tools/adb",
        install_hint="Install the Android SDK platform-tools or set APKSET_ADB_PATH",
    )


class AdbDevice(Device):
    """Device reached through the adb command-line client."""

    def __init__(self, config: AdbConfig, serial: str | None = None) -> None:
        self.config = config
        self.adb_path = find_adb(config)
        self._serial = serial or config.serial or ""

    @property
    def serial(self) -> str:
        return self._serial

    async def _adb(self, *args: str, timeout: float) -> str:
        """Run an adb command."""
        cmd = [str(self.adb_path)]
        if self._serial:
            cmd.extend(["-s", self._serial])
        cmd.extend(args)
        cmd_str = " ".join(cmd)
        logger.debug("Running adb command", command=cmd_str)

        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError as e:
            proc.kill()
            await proc.wait()
            raise DeviceCommandError(
                message=f"adb command timed out after {timeout}s",
                operation="adb",
                command=cmd_str,
                serial=self._serial,
                retryable=True,
                cause=e,
            )

        stdout_str = stdout.decode(errors="replace")
        if proc.returncode != 0:
            stderr_str = stderr.decode(errors="replace")
            logger.warning("adb command failed", command=cmd_str, stderr=stderr_str[:500])
            raise DeviceCommandError(
                message=f"adb command failed: {stderr_str.strip() or stdout_str.strip()}",
                operation="adb",
                command=cmd_str,
                serial=self._serial,
                retryable=True,
            )

        if len(stdout_str) < 500:
            logger.debug("adb command completed", output=stdout_str)
        else:
            logger.debug("adb command completed", output_len=len(stdout_str))
        return stdout_str

    async def shell(self, command: str, timeout: float) -> list[str]:
        output = await self._adb("shell", command, timeout=timeout)
        return output.splitlines()

    async def push(self, local_path: Path, timeout: float) -> str:
        remote_path = f"{REMOTE_TEMP_DIR}/{local_path.name}"
        await self._adb("push", str(local_path), remote_path, timeout=timeout)
        return remote_path
