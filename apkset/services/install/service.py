"""
Install Session Service.

Drives package manager install sessions on a device: every artifact is pushed
to the device temp directory, written into a session in resolver order and
the session is committed. Commands run strictly one after another. Any failure
abandons the open session before the error reaches the caller.
"""

from __future__ import annotations

import re
import time
from collections import Counter
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from pydantic import BaseModel, Field
from tenacity import (
    AsyncRetrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from ...core.config import AdbConfig
from ...core.exceptions import ApkSetError, DeviceCommandError, InvalidInputError, ProtocolError
from ...core.logging import bind_context, clear_context, get_logger
from ...core.types import ServiceResult
from .device import Device

logger = get_logger(__name__)

SUCCESS_PREFIX = "Success"
APEX_EXTENSION = ".apex"

_SESSION_ID = re.compile(r"\[(\d+)\]")


class InstallOutput(BaseModel):
    """Output from an install session."""

    session_id: int
    committed: bool
    packages: list[str] = Field(default_factory=list)
    child_session_ids: list[int] = Field(default_factory=list)


def _is_retryable(error: BaseException) -> bool:
    return isinstance(error, DeviceCommandError) and error.retryable


def parse_session_id(output: list[str], command: str = "") -> int:
    """Parse the id out of ``Success: created install session [N]``.

    Raises:
        ProtocolError: If the output names no session.
    """
    for line in output:
        match = _SESSION_ID.search(line)
        if match:
            return int(match.group(1))
    raise ProtocolError(
        message="Failed to parse the install session id",
        operation="parse_session_id",
        command=command,
        output=output,
    )


class InstallSessionService:
    """Service installing resolved artifacts through package manager sessions."""

    def __init__(
        self,
        device: Device,
        config: AdbConfig | None = None,
        retry_wait: wait_base | None = None,
    ) -> None:
        """Initialize the install service.

        Args:
            device: Device the sessions are opened on.
            config: adb transport configuration.
            retry_wait: Wait strategy between push attempts.
        """
        self.device = device
        self.config = config or AdbConfig()
        self.retry_wait = retry_wait or wait_exponential(multiplier=1, min=1, max=10)

    async def _execute(self, command: str) -> list[str]:
        """Run a pm command and check that it reports success."""
        output = await self.device.shell(command, self.config.command_timeout_seconds)
        if not any(line.startswith(SUCCESS_PREFIX) for line in output):
            raise ProtocolError(
                message=f"Command '{command}' did not succeed: {' '.join(output)}",
                operation="pm",
                command=command,
                serial=self.device.serial,
                output=output,
            )
        return output

    async def _push(self, local_path: Path) -> str:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.config.push_retries),
            wait=self.retry_wait,
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.warning(
                        "Retrying push",
                        path=local_path.name,
                        attempt=attempt.retry_state.attempt_number,
                    )
                return await self.device.push(local_path, self.config.command_timeout_seconds)
        raise AssertionError("unreachable")

    async def _remove(self, remote_path: str) -> None:
        try:
            await self.device.remove(remote_path, self.config.command_timeout_seconds)
        except ApkSetError as e:
            logger.warning("Failed to remove pushed file", remote_path=remote_path, error=str(e))

    async def _abandon(self, session_id: int) -> None:
        try:
            await self._execute(f"pm install-abandon {session_id}")
            logger.info("Install session abandoned", session_id=session_id)
        except ApkSetError as e:
            logger.error("Failed to abandon install session", session_id=session_id, error=str(e))

    def _create_flags(self, apks: list[Path], staged: bool) -> str:
        flags = ""
        if staged:
            flags += " --staged"
        if self.config.enable_rollback:
            flags += " --enable-rollback"
        if any(apk.name.lower().endswith(APEX_EXTENSION) for apk in apks):
            flags += " --apex"
        return flags

    async def _write_apks(self, session_id: int, package_name: str, apks: list[Path]) -> None:
        for index, apk in enumerate(apks):
            logger.info("Writing artifact", session_id=session_id, file=apk.name)
            remote_path = await self._push(apk)
            try:
                await self._execute(
                    f"pm install-write {session_id} {package_name}_{index} {remote_path}"
                )
            finally:
                await self._remove(remote_path)

    @contextmanager
    def _device_context(self) -> Iterator[None]:
        bind_context(serial=self.device.serial)
        try:
            yield
        finally:
            clear_context("serial")

    @staticmethod
    def _check_apks(apks: list[Path]) -> None:
        if not apks:
            raise InvalidInputError(message="No APKs to install.", field_name="apks")
        duplicates = sorted(str(path) for path, count in Counter(apks).items() if count > 1)
        if duplicates:
            raise InvalidInputError(
                message=f"APKs listed more than once: {duplicates}",
                field_name="apks",
            )

    async def install(
        self,
        apks: list[Path],
        package_name: str,
        allow_downgrade: bool = False,
        allow_test_only: bool = False,
    ) -> ServiceResult[InstallOutput]:
        """Install the artifacts of one package in a single session.

        Args:
            apks: Artifact files in resolver order.
            package_name: Package the artifacts belong to.
            allow_downgrade: Pass ``-d`` to the package manager.
            allow_test_only: Pass ``-t`` to the package manager.

        Returns:
            ServiceResult containing the committed session.

        Raises:
            InvalidInputError: If no artifacts are given or one is listed twice.
            DeviceCommandError: If a device round trip fails.
        """
        self._check_apks(apks)

        start_time = time.perf_counter()
        create = "pm install-create -r"
        if allow_downgrade:
            create += " -d"
        if allow_test_only:
            create += " -t"
        create += self._create_flags(apks, self.config.staged)

        with self._device_context():
            session_id = parse_session_id(await self._execute(create), create)
            logger.info("Install session created", session_id=session_id, package=package_name)

            try:
                await self._write_apks(session_id, package_name, apks)
                await self._execute(f"pm install-commit {session_id}")
            except Exception:
                await self._abandon(session_id)
                raise

            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info("Install committed", session_id=session_id, duration_ms=duration_ms)

        return ServiceResult.ok(
            InstallOutput(session_id=session_id, committed=True, packages=[package_name]),
            duration_ms=duration_ms,
        )

    async def install_multi_package(
        self,
        apks_by_package: dict[str, list[Path]],
        no_commit: bool = False,
    ) -> ServiceResult[InstallOutput]:
        """Install several packages atomically in one staged multi-package session.

        Each package gets its own child session, created in package name order
        and attached to the parent before the parent is committed.

        Args:
            apks_by_package: Artifact files per package name.
            no_commit: Abandon the parent session instead of committing it.

        Returns:
            ServiceResult containing the parent and child sessions.
        """
        if not apks_by_package:
            raise InvalidInputError(message="No packages to install.", field_name="apks")
        for apks in apks_by_package.values():
            self._check_apks(apks)

        start_time = time.perf_counter()
        create = "pm install-create --multi-package --staged"
        if self.config.enable_rollback:
            create += " --enable-rollback"

        with self._device_context():
            parent_id = parse_session_id(await self._execute(create), create)
            logger.info("Multi-package session created", session_id=parent_id)

            packages = sorted(apks_by_package)
            child_ids: list[int] = []
            try:
                for package_name in packages:
                    apks = apks_by_package[package_name]
                    logger.info("Installing package", package=package_name)
                    child_create = "pm install-create" + self._create_flags(apks, staged=True)
                    child_id = parse_session_id(await self._execute(child_create), child_create)
                    child_ids.append(child_id)
                    await self._write_apks(child_id, package_name, apks)

                await self._execute(
                    f"pm install-add-session {parent_id} {' '.join(str(i) for i in child_ids)}"
                )
            except Exception:
                for child_id in child_ids:
                    await self._abandon(child_id)
                await self._abandon(parent_id)
                raise

            if no_commit:
                logger.info("Abandoning install session due to 'no commit' requested")
                await self._execute(f"pm install-abandon {parent_id}")
            else:
                try:
                    await self._execute(f"pm install-commit {parent_id}")
                except Exception:
                    await self._abandon(parent_id)
                    raise

            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.info(
                "Install finished",
                session_id=parent_id,
                committed=not no_commit,
                duration_ms=duration_ms,
            )

        return ServiceResult.ok(
            InstallOutput(
                session_id=parent_id,
                committed=not no_commit,
                packages=packages,
                child_session_ids=child_ids,
            ),
            duration_ms=duration_ms,
        )
