"""
APK Set assembly.

Orchestrates resolution in a single pass: select the variant, compute the
module closure, resolve each module's splits, then resolve the independent
asset module slices with the same dimension machinery. Identical inputs always
produce an identical, ordered artifact list.
"""

from __future__ import annotations

import uuid
from collections.abc import Collection

from ..core.config import ResolverConfig
from ..core.exceptions import IncompatibleDeviceError
from ..core.logging import bind_context, clear_context, get_logger
from ..matching.dimensions import MatchContext
from ..models.catalog import Catalog, DeliveryType
from ..models.device import DeviceProfile, check_device_profile
from ..models.result import (
    ExtractionMetadata,
    ResolutionResult,
    ResolvedArtifact,
    ResolvedModule,
    resolve_local_testing_path,
)
from .modules import ModuleDependencyResolver
from .splits import SplitResolver
from .validation import CatalogValidator
from .variants import VariantSelector

logger = get_logger(__name__)


class ApkSetAssembler:
    """Resolves the artifacts of an APK Set for devices.

    The assembler holds no per-request state; one instance may serve concurrent
    requests against the same catalog.
    """

    def __init__(
        self, catalog: Catalog, config: ResolverConfig | None = None, validate: bool = True
    ) -> None:
        """Initialize the assembler.

        Args:
            catalog: Catalog of the APK Set.
            config: Resolver configuration; defaults apply when omitted.
            validate: Check the catalog invariants up front.

        Raises:
            MalformedCatalogError: If validation is requested and fails.
        """
        self.catalog = catalog
        self.config = config or ResolverConfig()
        if validate:
            CatalogValidator(self.config).validate(catalog)

    def resolve(
        self,
        device: DeviceProfile,
        modules: Collection[str] | None = None,
        instant: bool = False,
        include_install_time_asset_modules: bool | None = None,
    ) -> ResolutionResult:
        """Resolve the artifacts to deliver to a device.

        Args:
            device: Device descriptor.
            modules: Requested module names; ``_ALL_`` requests every module.
                None delivers only the modules installed by default.
            instant: Resolve instant APKs instead of installable ones.
            include_install_time_asset_modules: Override the configured default.

        Returns:
            The ordered resolution result.

        Raises:
            InvalidInputError: On a malformed device or module request.
            IncompatibleDeviceError: If the device cannot be served.
            MalformedCatalogError: If the catalog turns out to be defective.
        """
        bind_context(request_id=uuid.uuid4().hex[:12])
        try:
            return self._resolve(device, modules, instant, include_install_time_asset_modules)
        finally:
            clear_context("request_id")

    def _resolve(
        self,
        device: DeviceProfile,
        modules: Collection[str] | None,
        instant: bool,
        include_install_time_asset_modules: bool | None,
    ) -> ResolutionResult:
        check_device_profile(device, partial=True)
        ctx = MatchContext.create(device, self.catalog, self.config)

        variant = VariantSelector(self.catalog, self.config).select(ctx)
        dependency_resolver = ModuleDependencyResolver(self.catalog, variant, instant=instant)
        requested = dependency_resolver.expand_request(modules)
        module_sets = dependency_resolver.resolve(ctx, requested)

        split_resolver = SplitResolver(ctx)
        resolved = [
            split_resolver.resolve(m.name, m.delivery_type, m.splits_for(instant))
            for m in module_sets
        ]

        if include_install_time_asset_modules is None:
            include_install_time_asset_modules = self.config.include_install_time_asset_modules
        asset_modules: list[ResolvedModule] = []
        if not instant:
            for asset in self.catalog.asset_slice_sets:
                wanted = requested is not None and asset.name in requested
                if asset.delivery_type == DeliveryType.INSTALL_TIME:
                    wanted = wanted or include_install_time_asset_modules
                if wanted:
                    asset_modules.append(
                        split_resolver.resolve(asset.name, asset.delivery_type, asset.slices)
                    )

        artifacts = [
            ResolvedArtifact(
                path=split.path,
                module_name=module.name,
                delivery_type=module.delivery_type,
                is_master=split.is_master_split,
            )
            for module in [*resolved, *asset_modules]
            for split in module.splits
        ]
        if not artifacts:
            raise IncompatibleDeviceError(message="No compatible APKs found for the device.")

        logger.info(
            "APK Set resolved",
            package=self.catalog.package_name,
            variant=variant.variant_number,
            modules=len(resolved),
            asset_modules=len(asset_modules),
            artifacts=len(artifacts),
        )
        return ResolutionResult(
            variant_number=variant.variant_number,
            modules=resolved,
            asset_modules=asset_modules,
            artifacts=artifacts,
        )

    def local_testing_dir(self) -> str | None:
        """On-device local testing directory, when the APK Set enables local testing."""
        info = self.catalog.local_testing
        if not info.enabled:
            return None
        return resolve_local_testing_path(info.local_testing_path, self.catalog.package_name)

    def metadata(self, result: ResolutionResult) -> ExtractionMetadata:
        """Structured audit record of a resolution result."""
        return ExtractionMetadata.from_result(result, self.local_testing_dir())
