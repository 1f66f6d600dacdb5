"""
APK Set catalog models.

The catalog mirrors the table of contents of an APK Set: variants owning
per-module split sets, independent asset slice sets and per-dimension
defaults. It is built once per request and never mutated.
"""

from __future__ import annotations

from enum import Enum

from pydantic import Field

from .device import DeviceProfile
from .targeting import ApkTargeting, CatalogModel, DefaultTargetingValue, Dimension, VariantTargeting


class DeliveryType(str, Enum):
    """How a module reaches the device."""

    INSTALL_TIME = "INSTALL_TIME"
    ON_DEMAND = "ON_DEMAND"
    FAST_FOLLOW = "FAST_FOLLOW"
    FUSED = "FUSED"


class SplitArtifact(CatalogModel):
    """A single APK inside an APK Set."""

    path: str = Field(description="Path of the artifact inside the APK Set")
    targeting: ApkTargeting = Field(default_factory=ApkTargeting)
    is_master_split: bool = Field(default=False)
    size_bytes: int | None = Field(
        default=None, ge=0, description="Download size of the artifact, when the APK Set records it"
    )


class ModuleConditions(CatalogModel):
    """Device conditions of a conditional install-time module."""

    device_features: list[str] = Field(default_factory=list)
    min_sdk_version: int | None = Field(default=None)

    def satisfied_by(self, device: DeviceProfile) -> bool:
        """Check whether the device fulfils every condition."""
        if self.min_sdk_version is not None and device.sdk_version < self.min_sdk_version:
            return False
        return all(feature in device.device_features for feature in self.device_features)


class ModuleSplitSet(CatalogModel):
    """The split APKs of one module within a variant."""

    name: str
    delivery_type: DeliveryType = Field(default=DeliveryType.INSTALL_TIME)
    dependencies: list[str] = Field(default_factory=list)
    splits: list[SplitArtifact] = Field(default_factory=list)
    instant_splits: list[SplitArtifact] = Field(default_factory=list)
    conditions: ModuleConditions | None = Field(default=None)

    @property
    def master_split(self) -> SplitArtifact | None:
        """Get the master split of the regular APKs."""
        return next((s for s in self.splits if s.is_master_split), None)

    @property
    def is_always_installed(self) -> bool:
        return self.delivery_type != DeliveryType.ON_DEMAND

    @property
    def supports_instant(self) -> bool:
        return bool(self.instant_splits)

    def splits_for(self, instant: bool) -> list[SplitArtifact]:
        return self.instant_splits if instant else self.splits


class Variant(CatalogModel):
    """A build output targeted at a device class along coarse dimensions."""

    variant_number: int = Field(default=0)
    targeting: VariantTargeting = Field(default_factory=VariantTargeting)
    modules: list[ModuleSplitSet] = Field(default_factory=list)

    def module(self, name: str) -> ModuleSplitSet | None:
        return next((m for m in self.modules if m.name == name), None)


class AssetSliceSet(CatalogModel):
    """Slices of an asset module, shared by every variant."""

    name: str
    delivery_type: DeliveryType = Field(default=DeliveryType.INSTALL_TIME)
    slices: list[SplitArtifact] = Field(default_factory=list)


class LocalTestingInfo(CatalogModel):
    """Local testing mode of the APK Set."""

    enabled: bool = Field(default=False)
    local_testing_path: str = Field(default="")


class Catalog(CatalogModel):
    """Targeting catalog of an APK Set."""

    package_name: str = Field(default="")
    schema_version: str = Field(default="1.0", description="Version of the table of contents")
    variants: list[Variant] = Field(default_factory=list)
    asset_slice_sets: list[AssetSliceSet] = Field(default_factory=list)
    default_targeting_values: list[DefaultTargetingValue] = Field(default_factory=list)
    local_testing: LocalTestingInfo = Field(default_factory=LocalTestingInfo)

    @property
    def schema_major_version(self) -> int:
        major = self.schema_version.split(".")[0]
        return int(major) if major.isdigit() else 0

    def default_for(self, dimension: Dimension) -> str | None:
        """Get the configured default for a dimension, ignoring empty values."""
        for default in self.default_targeting_values:
            if default.dimension == dimension and default.value:
                return default.value
        return None

    def asset_slice_set(self, name: str) -> AssetSliceSet | None:
        return next((a for a in self.asset_slice_sets if a.name == name), None)

    def all_splits(self) -> list[SplitArtifact]:
        """Every artifact of the APK Set: module splits of all variants, then asset slices."""
        splits: list[SplitArtifact] = []
        for variant in self.variants:
            for module in variant.modules:
                splits.extend(module.splits)
                splits.extend(module.instant_splits)
        for asset in self.asset_slice_sets:
            splits.extend(asset.slices)
        return splits
