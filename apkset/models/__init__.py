"""Data models for apkset."""

from .catalog import (
    AssetSliceSet,
    Catalog,
    DeliveryType,
    LocalTestingInfo,
    ModuleConditions,
    ModuleSplitSet,
    SplitArtifact,
    Variant,
)
from .device import DeviceProfile, check_device_profile
from .result import (
    ExtractedApk,
    ExtractionMetadata,
    ResolutionResult,
    ResolvedArtifact,
    ResolvedModule,
    resolve_local_testing_path,
)
from .targeting import (
    AbiSet,
    ApkTargeting,
    DefaultTargetingValue,
    Dimension,
    TargetingValue,
    VariantTargeting,
)

__all__ = [
    "AssetSliceSet",
    "Catalog",
    "DeliveryType",
    "LocalTestingInfo",
    "ModuleConditions",
    "ModuleSplitSet",
    "SplitArtifact",
    "Variant",
    "DeviceProfile",
    "check_device_profile",
    "ExtractedApk",
    "ExtractionMetadata",
    "ResolutionResult",
    "ResolvedArtifact",
    "ResolvedModule",
    "resolve_local_testing_path",
    "AbiSet",
    "ApkTargeting",
    "DefaultTargetingValue",
    "Dimension",
    "TargetingValue",
    "VariantTargeting",
]
