"""
Device Analysis Service.

Builds a DeviceProfile for a connected device out of shell round trips:
system properties, the activity manager configuration, the package manager
feature list and the SurfaceFlinger GL state.
"""

from __future__ import annotations

import re
import time

from ...core.config import AdbConfig, ResolverConfig
from ...core.exceptions import ProtocolError
from ...core.logging import bind_context, clear_context, get_logger
from ...core.types import ServiceResult
from ...models.device import DeviceProfile, check_device_profile
from ..install.device import Device

logger = get_logger(__name__)

SDK_PROPERTY = "ro.build.version.sdk"
CODENAME_PROPERTY = "ro.build.version.codename"
DENSITY_PROPERTIES = ("ro.sf.lcd_density", "qemu.sf.lcd_density")
ABI_LIST_PROPERTY = "ro.product.cpu.abilist"
ABI_PROPERTY = "ro.product.cpu.abi"
GL_ES_VERSION_PROPERTY = "ro.opengles.version"
# API 23+
LOCALE_PROPERTY_SYS = "persist.sys.locale"
LOCALE_PROPERTY_PRODUCT = "ro.product.locale"
# Older releases
LEGACY_LANGUAGE_PROPERTY = "ro.product.locale.language"
LEGACY_REGION_PROPERTY = "ro.product.locale.region"

ANDROID_M_API_VERSION = 23
RELEASE_CODENAME = "REL"
DEFAULT_LOCALE = "en-US"
DENSITY_OUTPUT_PREFIX = "Physical density:"
FEATURE_PREFIX = "feature:"
GLES_PREFIX = "GLES:"

_PROPERTY_LINE = re.compile(r"^\[(?P<key>[^\]]+)\]: \[(?P<value>.*)\]$")
# "car" is a UI mode qualifier, not a language.
_LANGUAGE_PART = re.compile(r"(?!car)[A-Za-z]{2,3}")
_REGION_CONTINUATION = re.compile(r"r[A-Z]{2}($|,.+)")
_LANGUAGE_REGION = re.compile(r"(?P<language>[A-Za-z]{2,3})(-r(?P<region>[A-Za-z]{2}))?")
_BCP47_PREFIX = "b+"


def parse_properties(lines: list[str]) -> dict[str, str]:
    """Parse ``getprop`` output lines of the form ``[key]: [value]``."""
    properties: dict[str, str] = {}
    for line in lines:
        match = _PROPERTY_LINE.match(line.strip())
        if match:
            properties[match.group("key")] = match.group("value")
    return properties


def parse_features(lines: list[str]) -> list[str]:
    """Parse ``pm list features`` output."""
    return [
        line.strip()[len(FEATURE_PREFIX):]
        for line in lines
        if line.strip().startswith(FEATURE_PREFIX)
    ]


def parse_gl_extensions(lines: list[str]) -> list[str]:
    """Parse ``dumpsys SurfaceFlinger``: extensions follow the ``GLES:`` line."""
    for i, line in enumerate(lines):
        if line.strip().startswith(GLES_PREFIX) and i + 1 < len(lines):
            return lines[i + 1].split()
    return []


def _bcp47_region(subtags: list[str]) -> str | None:
    if len(subtags) == 4:
        return subtags[2]
    # Scripts and variants are longer than three characters.
    return next((s for s in subtags[1:3] if len(s) in (2, 3)), None)


def _parse_locale(tag: str) -> str | None:
    if tag.startswith(_BCP47_PREFIX):
        subtags = tag[len(_BCP47_PREFIX):].split("+")
        region = _bcp47_region(subtags)
        return f"{subtags[0]}-{region}" if region else subtags[0]
    match = _LANGUAGE_REGION.fullmatch(tag)
    if match is None:
        return None
    region = match.group("region")
    return f"{match.group('language')}-{region}" if region else match.group("language")


def parse_config_locales(config: str) -> list[str]:
    """Extract locales from a resource configuration string.

    ``mcc310-mnc260-en-rUS,fr-rFR-ldltr-...`` yields ``["en-US", "fr-FR"]``. The
    qualifier separator doubles as the language/region separator, so region
    parts are collected from the remainder of the string.
    """
    parts = config.split("-")
    for i, part in enumerate(parts):
        if "," in part or _LANGUAGE_PART.fullmatch(part) or part.startswith(_BCP47_PREFIX):
            segment = [part] + [
                p for p in parts[i + 1:] if _REGION_CONTINUATION.fullmatch(p) or "," in p
            ]
            tags = "-".join(segment).split(",")
            return [locale for tag in tags if (locale := _parse_locale(tag))]
    return []


def parse_activity_manager_config(lines: list[str]) -> tuple[list[str], list[str]]:
    """Parse ``am get-config`` output into (ABIs, locales)."""
    abis: list[str] = []
    locales: list[str] = []
    for line in lines:
        line = line.strip()
        if line.startswith("abi:"):
            abis = _split_list(line[len("abi:"):])
        elif line.startswith("config:"):
            locales = parse_config_locales(line[len("config:"):].strip())
    return abis, locales


def _split_list(value: str | None) -> list[str]:
    return [item.strip() for item in (value or "").split(",") if item.strip()]


def _to_int(value: str | None) -> int:
    return int(value) if value and value.strip().isdigit() else 0


class DeviceAnalyzer:
    """Service reading the device spec of a connected device."""

    def __init__(
        self,
        device: Device,
        config: AdbConfig | None = None,
        resolver_config: ResolverConfig | None = None,
    ) -> None:
        """Initialize the analyzer.

        Args:
            device: Device to analyze.
            config: adb transport configuration.
            resolver_config: Source of the SDK runtime threshold.
        """
        self.device = device
        self.config = config or AdbConfig()
        self.resolver_config = resolver_config or ResolverConfig()

    async def _shell(self, command: str) -> list[str]:
        return await self.device.shell(command, self.config.command_timeout_seconds)

    def _error(self, message: str, command: str, output: list[str]) -> ProtocolError:
        return ProtocolError(
            message=message,
            operation="get_device_spec",
            command=command,
            serial=self.device.serial,
            output=output,
        )

    async def _density(self, properties: dict[str, str]) -> int:
        for name in DENSITY_PROPERTIES:
            density = _to_int(properties.get(name))
            if density > 0:
                return density
        output = await self._shell("wm density")
        for line in output:
            if line.strip().startswith(DENSITY_OUTPUT_PREFIX):
                density = _to_int(line.strip()[len(DENSITY_OUTPUT_PREFIX):])
                if density > 0:
                    return density
        raise self._error(
            "Error retrieving device density. Please try again.", "wm density", output
        )

    @staticmethod
    def _locale_from_properties(properties: dict[str, str], api_level: int) -> str | None:
        if api_level < ANDROID_M_API_VERSION:
            language = properties.get(LEGACY_LANGUAGE_PROPERTY)
            region = properties.get(LEGACY_REGION_PROPERTY)
            return f"{language}-{region}" if language and region else None
        return properties.get(LOCALE_PROPERTY_SYS) or properties.get(LOCALE_PROPERTY_PRODUCT)

    async def get_device_spec(self) -> ServiceResult[DeviceProfile]:
        """Read the device spec of the device.

        Returns:
            ServiceResult containing the device profile, with a warning when
            the locale could not be detected.

        Raises:
            DeviceCommandError: If a shell round trip fails.
            ProtocolError: If the SDK version, density or ABIs cannot be read.
        """
        start_time = time.perf_counter()
        bind_context(serial=self.device.serial)
        try:
            device, warnings = await self._analyze()
        finally:
            clear_context("serial")

        duration_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            "Device analyzed",
            sdk=device.sdk_version,
            density=device.screen_density,
            abis=device.supported_abis,
            duration_ms=duration_ms,
        )
        if warnings:
            return ServiceResult.with_warnings(device, warnings, duration_ms=duration_ms)
        return ServiceResult.ok(device, duration_ms=duration_ms)

    async def _analyze(self) -> tuple[DeviceProfile, list[str]]:
        output = await self._shell("getprop")
        properties = parse_properties(output)

        api_level = _to_int(properties.get(SDK_PROPERTY))
        if api_level <= 1:
            raise self._error(
                "Error retrieving device SDK version. Please try again.", "getprop", output
            )
        # Preview builds report the API level of the last release; match them one level up.
        codename = properties.get(CODENAME_PROPERTY) or RELEASE_CODENAME
        sdk_version = api_level if codename == RELEASE_CODENAME else api_level + 1

        density = await self._density(properties)
        features = parse_features(await self._shell("pm list features"))
        gl_extensions = parse_gl_extensions(await self._shell("dumpsys SurfaceFlinger"))
        abis, locales = parse_activity_manager_config(await self._shell("am get-config"))

        warnings: list[str] = []
        if not locales:
            locale = self._locale_from_properties(properties, api_level)
            if locale is None:
                warnings.append(f"Can't detect device locale, will use '{DEFAULT_LOCALE}'.")
                logger.warning("Device locale not detected", fallback=DEFAULT_LOCALE)
                locale = DEFAULT_LOCALE
            locales = [locale]
        if not abis:
            abis = _split_list(properties.get(ABI_LIST_PROPERTY)) or _split_list(
                properties.get(ABI_PROPERTY)
            )
        if not abis:
            raise self._error("Error retrieving device ABIs. Please try again.", "getprop", output)

        device = DeviceProfile(
            sdk_version=sdk_version,
            supported_abis=abis,
            screen_density=density,
            supported_locales=locales,
            device_features=features,
            gl_extensions=gl_extensions,
            gl_es_version=_to_int(properties.get(GL_ES_VERSION_PROPERTY)),
            sdk_runtime_supported=sdk_version >= self.resolver_config.sdk_runtime_min_sdk,
        )
        check_device_profile(device)
        return device, warnings
