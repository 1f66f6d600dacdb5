"""
Variant selection.

Picks the single variant serving the device: eligible variants have an SDK
floor at or below the device SDK, an SDK-runtime requirement the device meets
and, for standalone/APEX variants, a required ABI set the device supports.
The highest SDK floor wins.
"""

from __future__ import annotations

from ..core.config import ResolverConfig
from ..core.exceptions import IncompatibleDeviceError
from ..core.logging import get_logger
from ..matching.dimensions import MatchContext, format_values, match
from ..models.catalog import Catalog, Variant
from ..models.targeting import Dimension

logger = get_logger(__name__)


def _render(values: list[str]) -> str:
    return "[" + ", ".join(values) + "]"


class VariantSelector:
    """Chooses the best coarse-grained variant for a device."""

    def __init__(self, catalog: Catalog, config: ResolverConfig | None = None) -> None:
        self.catalog = catalog
        self.config = config or ResolverConfig()

    def select(self, ctx: MatchContext) -> Variant:
        """Select the variant for a device.

        Args:
            ctx: Device under resolution.

        Returns:
            The eligible variant with the highest SDK floor.

        Raises:
            IncompatibleDeviceError: If no variant is eligible, naming the dimension.
        """
        device = ctx.device
        variants = self.catalog.variants

        eligible = [v for v in variants if v.targeting.sdk_floor <= device.sdk_version]
        if not eligible:
            floors = sorted({v.targeting.sdk_floor for v in variants})
            raise IncompatibleDeviceError(
                message=(
                    f"SDK version ({device.sdk_version}) of the device is not supported. "
                    f"Device SDK versions: [{device.sdk_version}], app SDK versions: "
                    f"{_render([str(f) for f in floors])}."
                ),
                dimensions=[Dimension.SDK_VERSION.value],
            )

        runtime_supported = device.supports_sdk_runtime(self.config.sdk_runtime_min_sdk)
        eligible = [v for v in eligible if runtime_supported or not v.targeting.requires_sdk_runtime]
        if not eligible:
            raise IncompatibleDeviceError(
                message="Every variant matching the device SDK requires SDK runtime support.",
                dimensions=["SDK_RUNTIME"],
            )

        if device.supported_abis:
            abi_variants = eligible
            eligible = [v for v in eligible if match(Dimension.ABI, v.targeting.abi, ctx)]
            if not eligible:
                app_abis: list[frozenset[str] | None] = []
                for v in abi_variants:
                    if v.targeting.abi is not None:
                        app_abis.extend(v.targeting.abi.sibling_values())
                raise IncompatibleDeviceError(
                    message=(
                        "No set of ABI architectures that the app supports is contained in the "
                        "ABI architecture set of the device. "
                        f"Device ABIs: {_render(list(device.supported_abis))}, "
                        f"app ABIs: {_render(format_values(Dimension.ABI, app_abis))}."
                    ),
                    dimensions=[Dimension.ABI.value],
                )

        # Highest floor; at equal floor prefer SDK-runtime variants, then the most
        # specific ABI set, then the lowest variant number.
        chosen = max(
            eligible,
            key=lambda v: (
                v.targeting.sdk_floor,
                v.targeting.requires_sdk_runtime,
                len(v.targeting.abi.value or ()) if v.targeting.abi is not None else 0,
                -v.variant_number,
            ),
        )
        logger.debug(
            "Variant selected",
            variant=chosen.variant_number,
            sdk_floor=chosen.targeting.sdk_floor,
            requires_sdk_runtime=chosen.targeting.requires_sdk_runtime,
        )
        return chosen
