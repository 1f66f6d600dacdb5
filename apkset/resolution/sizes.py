"""
Download size estimation.

Dimensions a device leaves unspecified are expanded to every value the APK Set
targets along them. Each combination is resolved like a real device and the
sizes of its artifacts are summed. Totals are grouped by the requested
dimensions, so every group reports a minimum and a maximum.
"""

from __future__ import annotations

import itertools
from collections.abc import Callable, Collection, Sequence
from typing import Any

from pydantic import Field

from ..core.config import ResolverConfig
from ..core.exceptions import IncompatibleDeviceError
from ..core.logging import get_logger
from ..models.catalog import Catalog
from ..models.device import (
    ARCHITECTURE_ORDERING,
    ETC2_MIN_GL_ES_VERSION,
    GL_EXTENSION_TO_TEXTURE_FORMAT,
    DeviceProfile,
)
from ..models.targeting import CatalogModel, Dimension
from .assembler import ApkSetAssembler

logger = get_logger(__name__)

_GL_EXTENSION_BY_FORMAT = {fmt: ext for ext, fmt in GL_EXTENSION_TO_TEXTURE_FORMAT.items()}


class ConfigurationSize(CatalogModel):
    """Download size range of one device configuration."""

    configuration: dict[Dimension, str] = Field(
        default_factory=dict, description="Value of each requested dimension"
    )
    min_bytes: int
    max_bytes: int


def _is_unspecified(dimension: Dimension, device: DeviceProfile) -> bool:
    if dimension == Dimension.SDK_VERSION:
        return device.sdk_version <= 0
    if dimension == Dimension.ABI:
        return not device.supported_abis
    if dimension == Dimension.SCREEN_DENSITY:
        return device.screen_density <= 0
    if dimension == Dimension.LANGUAGE:
        return not device.supported_locales
    if dimension == Dimension.TEXTURE_COMPRESSION_FORMAT:
        return not device.texture_compression_formats
    if dimension == Dimension.DEVICE_TIER:
        return device.device_tier is None
    return device.country_set is None


def _abi_preference(abis: Collection[str]) -> list[str]:
    """Order an ABI set the way a device lists it, most preferred first."""
    rank = {abi: i for i, abi in enumerate(ARCHITECTURE_ORDERING)}
    return sorted(abis, key=lambda abi: rank.get(abi, -1), reverse=True)


def _device_fields(dimension: Dimension, value: Any) -> dict[str, Any]:
    """Device fields making a device report ``value`` along ``dimension``."""
    if dimension == Dimension.SDK_VERSION:
        return {"sdk_version": value}
    if dimension == Dimension.ABI:
        return {"supported_abis": _abi_preference(value)}
    if dimension == Dimension.SCREEN_DENSITY:
        return {"screen_density": value}
    if dimension == Dimension.LANGUAGE:
        return {"supported_locales": [value]}
    if dimension == Dimension.TEXTURE_COMPRESSION_FORMAT:
        if value == "ETC2":
            return {"gl_es_version": ETC2_MIN_GL_ES_VERSION}
        return {"gl_extensions": [_GL_EXTENSION_BY_FORMAT[value]]}
    if dimension == Dimension.DEVICE_TIER:
        return {"device_tier": value}
    return {"country_set": value}


def _expressible(dimension: Dimension, value: Any) -> bool:
    if dimension == Dimension.TEXTURE_COMPRESSION_FORMAT:
        return value == "ETC2" or value in _GL_EXTENSION_BY_FORMAT
    return True


def _render_value(dimension: Dimension, value: Any) -> str:
    if dimension == Dimension.ABI:
        return ",".join(_abi_preference(value))
    return str(value)


def _render_device(dimension: Dimension, device: DeviceProfile) -> str:
    if dimension == Dimension.SDK_VERSION:
        return str(device.sdk_version)
    if dimension == Dimension.ABI:
        return ",".join(device.supported_abis)
    if dimension == Dimension.SCREEN_DENSITY:
        return str(device.screen_density)
    if dimension == Dimension.LANGUAGE:
        return ",".join(device.languages)
    if dimension == Dimension.TEXTURE_COMPRESSION_FORMAT:
        return ",".join(device.texture_compression_formats)
    if dimension == Dimension.DEVICE_TIER:
        return str(device.device_tier)
    return str(device.country_set)


class SizeCalculator:
    """Computes download sizes of an APK Set over device configurations."""

    def __init__(
        self,
        catalog: Catalog,
        size_of: Callable[[str], int],
        config: ResolverConfig | None = None,
    ) -> None:
        """Initialize the calculator.

        Args:
            catalog: Validated catalog of the APK Set.
            size_of: Size in bytes of an artifact, by catalog path.
            config: Resolver configuration; defaults apply when omitted.
        """
        self.catalog = catalog
        self.size_of = size_of
        self.assembler = ApkSetAssembler(catalog, config, validate=False)

    def targeted_values(self, dimension: Dimension) -> list[Any]:
        """Distinct values the APK Set targets along a dimension, in catalog order."""
        values: list[Any] = []
        if dimension == Dimension.SDK_VERSION:
            values.extend(v.targeting.sdk_floor for v in self.catalog.variants)
        if dimension == Dimension.ABI:
            values.extend(
                v.targeting.abi.value
                for v in self.catalog.variants
                if v.targeting.abi is not None and v.targeting.abi.value
            )
        for split in self.catalog.all_splits():
            targeting = split.targeting.for_dimension(dimension)
            if targeting is not None and targeting.value is not None:
                values.append(targeting.value)

        distinct: list[Any] = []
        for value in values:
            if value not in distinct and _expressible(dimension, value):
                distinct.append(value)
        return distinct

    def compute(
        self,
        device: DeviceProfile,
        dimensions: Sequence[Dimension] = (),
        modules: Collection[str] | None = None,
        instant: bool = False,
    ) -> list[ConfigurationSize]:
        """Compute the download size range per configuration.

        Args:
            device: Device descriptor; unspecified dimensions are expanded.
            dimensions: Dimensions to group the totals by.
            modules: Requested module names, as for resolution.
            instant: Size instant APKs instead of installable ones.

        Returns:
            One entry per configuration of the requested dimensions, in the
            order configurations were first met.

        Raises:
            InvalidInputError: On a malformed device or module request.
            IncompatibleDeviceError: If no configuration can be served.
        """
        grouped = [d for d in Dimension if d in dimensions]
        expanded = {
            d: values
            for d in Dimension
            if _is_unspecified(d, device) and (values := self.targeted_values(d))
        }
        logger.debug(
            "Computing sizes",
            dimensions=[d.value for d in grouped],
            expanded={d.value: len(v) for d, v in expanded.items()},
        )

        ranges: dict[tuple[str, ...], tuple[int, int]] = {}
        last_error: IncompatibleDeviceError | None = None
        for combination in itertools.product(*expanded.values()):
            chosen = dict(zip(expanded, combination))
            fields: dict[str, Any] = {}
            for dimension, value in chosen.items():
                fields.update(_device_fields(dimension, value))
            candidate = device.model_copy(update=fields)
            try:
                result = self.assembler.resolve(candidate, modules=modules, instant=instant)
            except IncompatibleDeviceError as e:
                last_error = e
                continue

            total = sum(self.size_of(path) for path in result.paths)
            key = tuple(
                _render_value(d, chosen[d]) if d in chosen else _render_device(d, device)
                for d in grouped
            )
            low, high = ranges.get(key, (total, total))
            ranges[key] = (min(low, total), max(high, total))

        if not ranges and last_error is not None:
            raise last_error
        return [
            ConfigurationSize(
                configuration=dict(zip(grouped, key)), min_bytes=low, max_bytes=high
            )
            for key, (low, high) in ranges.items()
        ]
