"""
Device Spec Service.

Loads JSON device specs (as produced by device analysis or written by hand)
into DeviceProfile objects, rejecting malformed descriptors, and writes the
specs read from connected devices.
"""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import ValidationError

from ...core.exceptions import InvalidInputError
from ...core.logging import get_logger
from ...models.device import DeviceProfile, check_device_profile

logger = get_logger(__name__)

JSON_EXTENSION = ".json"


class DeviceSpecLoader:
    """Loader for device spec files.

    A full spec requires SDK version, screen density, ABIs and locales. A
    partial spec only requires the SDK version; it is accepted for APEX-only
    APK Sets where density and locales are irrelevant.
    """

    def load(self, spec_path: Path, partial: bool = False) -> DeviceProfile:
        """Load a device spec file.

        Args:
            spec_path: Path to the ``.json`` device spec.
            partial: Accept a partial spec.

        Returns:
            The validated device profile.

        Raises:
            InvalidInputError: If the file is not a readable, valid JSON device spec.
        """
        if spec_path.suffix.lower() != JSON_EXTENSION:
            raise InvalidInputError(
                message="Expected .json extension for the device spec file.",
                field_name="device_spec",
            )
        try:
            text = spec_path.read_text(encoding="utf-8")
        except OSError as e:
            raise InvalidInputError(
                message=f"Error while reading the device spec file '{spec_path}'.",
                field_name="device_spec",
                cause=e,
            )
        device = self.parse(text, partial=partial)
        logger.debug("Device spec loaded", path=str(spec_path), sdk=device.sdk_version)
        return device

    def parse(self, text: str, partial: bool = False) -> DeviceProfile:
        """Parse and validate device spec JSON.

        Args:
            text: JSON document.
            partial: Accept a partial spec.

        Returns:
            The validated device profile.

        Raises:
            InvalidInputError: If the document is malformed.
        """
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise InvalidInputError(
                message=f"Device spec is not valid JSON: {e}", field_name="device_spec", cause=e
            )
        if not isinstance(data, dict):
            raise InvalidInputError(
                message="Device spec must be a JSON object.", field_name="device_spec"
            )
        data.setdefault("sdkVersion", 0)

        try:
            device = DeviceProfile.model_validate(data)
        except ValidationError as e:
            first = e.errors()[0]
            raise InvalidInputError(
                message=f"Device spec field has an invalid value: {first['msg']}",
                field_name=".".join(str(part) for part in first["loc"]),
                cause=e,
            )

        check_device_profile(device, partial=partial)
        return device

    @staticmethod
    def dump(device: DeviceProfile) -> str:
        """Render a device profile as device spec JSON."""
        data = device.model_dump(mode="json", by_alias=True, exclude_none=True)
        supported = data.pop("sdkRuntimeSupported", None)
        if supported is not None:
            data["sdkRuntime"] = {"supported": supported}
        return json.dumps(data, indent=2)

    @staticmethod
    def check_output(spec_path: Path, overwrite: bool = False) -> None:
        """Check that a device spec may be written to a path.

        Raises:
            InvalidInputError: If the path is not a ``.json`` file or already
                exists and ``overwrite`` is not set.
        """
        if spec_path.suffix.lower() != JSON_EXTENSION:
            raise InvalidInputError(
                message="Expected .json extension for the device spec file.",
                field_name="output",
            )
        if spec_path.exists() and not overwrite:
            raise InvalidInputError(
                message=f"File '{spec_path}' already exists; pass --overwrite to replace it.",
                field_name="output",
            )

    def save(self, device: DeviceProfile, spec_path: Path, overwrite: bool = False) -> Path:
        """Write a device spec file.

        Raises:
            InvalidInputError: If the path is rejected or cannot be written.
        """
        self.check_output(spec_path, overwrite)
        try:
            spec_path.parent.mkdir(parents=True, exist_ok=True)
            spec_path.write_text(self.dump(device) + "\n", encoding="utf-8")
        except OSError as e:
            raise InvalidInputError(
                message=f"Error while writing the device spec file '{spec_path}'.",
                field_name="output",
                cause=e,
            )
        logger.info("Device spec written", path=str(spec_path), sdk=device.sdk_version)
        return spec_path
