"""
Device descriptor model.

A DeviceProfile is supplied per request as plain data and never mutated. Field
names follow the JSON device spec (``sdkVersion``, ``supportedAbis``, ...).
"""

from __future__ import annotations

from typing import Any

from pydantic import Field, model_validator

from ..core.exceptions import InvalidInputError
from .targeting import CatalogModel

# Device ABI names, ordered from least to most preferred architecture.
ARCHITECTURE_ORDERING: tuple[str, ...] = (
    "armeabi",
    "armeabi-v7a",
    "arm64-v8a",
    "x86",
    "x86_64",
    "mips",
    "mips64",
    "riscv64",
)

# Texture compression formats, ordered from least to most preferred.
TEXTURE_COMPRESSION_FORMAT_ORDERING: tuple[str, ...] = (
    "PALETTED",
    "ETC1_RGB8",
    "ETC2",
    "3DC",
    "ATC",
    "LATC",
    "DXT1",
    "S3TC",
    "PVRTC",
    "ASTC",
)

GL_EXTENSION_TO_TEXTURE_FORMAT: dict[str, str] = {
    "GL_KHR_texture_compression_astc_ldr": "ASTC",
    "GL_AMD_compressed_ATC_texture": "ATC",
    "GL_EXT_texture_compression_dxt1": "DXT1",
    "GL_OES_compressed_ETC1_RGB8_texture": "ETC1_RGB8",
    "GL_EXT_texture_compression_latc": "LATC",
    "GL_OES_compressed_paletted_texture": "PALETTED",
    "GL_IMG_texture_compression_pvrtc": "PVRTC",
    "GL_EXT_texture_compression_s3tc": "S3TC",
    "GL_AMD_compressed_3DC_texture": "3DC",
}

# OpenGL ES 3.0 mandates ETC2 support.
ETC2_MIN_GL_ES_VERSION = 0x30000


class DeviceProfile(CatalogModel):
    """Hardware and software configuration of the target device."""

    sdk_version: int = Field(description="Android API level of the device")
    supported_abis: list[str] = Field(
        default_factory=list, description="ABIs in order of device preference"
    )
    screen_density: int = Field(default=0, description="Screen density in dpi; 0 if unknown")
    supported_locales: list[str] = Field(default_factory=list, description="BCP-47 locales")
    device_features: list[str] = Field(default_factory=list)
    gl_extensions: list[str] = Field(default_factory=list)
    gl_es_version: int = Field(
        default=0, description="OpenGL ES version, e.g. 0x30002; 0 if unknown"
    )
    device_tier: int | None = Field(default=None)
    country_set: str | None = Field(default=None)
    sdk_runtime_supported: bool | None = Field(default=None)

    @model_validator(mode="before")
    @classmethod
    def _lift_sdk_runtime(cls, data: Any) -> Any:
        # Device spec files nest the flag as {"sdkRuntime": {"supported": true}}.
        if isinstance(data, dict) and isinstance(data.get("sdkRuntime"), dict):
            data = dict(data)
            data["sdkRuntimeSupported"] = data.pop("sdkRuntime").get("supported", False)
        return data

    @property
    def languages(self) -> list[str]:
        """Language codes of the supported locales, most preferred first, without duplicates."""
        languages: list[str] = []
        for locale in self.supported_locales:
            language = locale.replace("_", "-").split("-")[0].lower()
            if language and language not in languages:
                languages.append(language)
        return languages

    @property
    def texture_compression_formats(self) -> list[str]:
        """Texture compression formats supported by the GPU, most preferred first."""
        formats = {
            GL_EXTENSION_TO_TEXTURE_FORMAT[ext]
            for ext in self.gl_extensions
            if ext in GL_EXTENSION_TO_TEXTURE_FORMAT
        }
        if self.gl_es_version >= ETC2_MIN_GL_ES_VERSION:
            formats.add("ETC2")
        return sorted(formats, key=TEXTURE_COMPRESSION_FORMAT_ORDERING.index, reverse=True)

    def supports_sdk_runtime(self, min_sdk: int) -> bool:
        """Declared SDK runtime support, derived from the SDK version when unspecified."""
        if self.sdk_runtime_supported is not None:
            return self.sdk_runtime_supported
        return self.sdk_version >= min_sdk


def check_device_profile(device: DeviceProfile, partial: bool = False) -> None:
    """Validate a device descriptor.

    Args:
        device: Descriptor to check.
        partial: Allow unknown density and empty ABI/locale lists.

    Raises:
        InvalidInputError: If the descriptor is malformed.
    """
    if device.sdk_version < 1:
        raise InvalidInputError(
            message=(
                f"Device spec SDK version ({device.sdk_version}) should be set to a "
                "strictly positive number."
            ),
            field_name="sdkVersion",
        )
    if device.screen_density < 0 or (not partial and device.screen_density == 0):
        raise InvalidInputError(
            message=(
                f"Device spec screen density ({device.screen_density}) should be set to a "
                "strictly positive number."
            ),
            field_name="screenDensity",
        )
    if not partial and not device.supported_abis:
        raise InvalidInputError(
            message="Device spec supported ABI list is empty.", field_name="supportedAbis"
        )
    if not partial and not device.supported_locales:
        raise InvalidInputError(
            message="Device spec supported locales list is empty.", field_name="supportedLocales"
        )
    unknown = [abi for abi in device.supported_abis if abi not in ARCHITECTURE_ORDERING]
    if unknown:
        raise InvalidInputError(
            message=f"Unrecognized ABI '{unknown[0]}' in device spec.",
            field_name="supportedAbis",
        )
