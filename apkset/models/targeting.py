"""
Targeting data models.

A targeting predicate along one dimension is a ``TargetingValue``: the value a
variant or split serves plus the values served by its siblings. Together they
form a closed partition of the dimension inside one sibling group; a sibling
with no value and a non-empty alternatives list is the rest-of-world fallback.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


class CatalogModel(BaseModel):
    """Immutable model accepting both snake_case and camelCase keys."""

    model_config = {"frozen": True, "alias_generator": to_camel, "populate_by_name": True}


class Dimension(str, Enum):
    """Targeting dimensions, in the order configuration splits are emitted."""

    SDK_VERSION = "SDK_VERSION"
    ABI = "ABI"
    SCREEN_DENSITY = "SCREEN_DENSITY"
    LANGUAGE = "LANGUAGE"
    TEXTURE_COMPRESSION_FORMAT = "TEXTURE_COMPRESSION_FORMAT"
    DEVICE_TIER = "DEVICE_TIER"
    COUNTRY_SET = "COUNTRY_SET"


class TargetingValue(CatalogModel, Generic[T]):
    """A value and its sibling alternatives along one dimension."""

    value: T | None = Field(default=None, description="Value served; None for the fallback sibling")
    alternatives: list[T] = Field(default_factory=list, description="Values served by siblings")

    @property
    def is_fallback(self) -> bool:
        """Whether this is the rest-of-world sibling of its group."""
        return self.value is None and bool(self.alternatives)

    @property
    def is_empty(self) -> bool:
        """Whether nothing is targeted at all."""
        return self.value is None and not self.alternatives

    def sibling_values(self) -> list[T | None]:
        """Reconstruct every value of the sibling group, fallback included as None."""
        values: list[T | None] = [self.value]
        values.extend(self.alternatives)
        return values


AbiSet = frozenset[str]


_FIELD_BY_DIMENSION = {
    Dimension.SDK_VERSION: "sdk_version",
    Dimension.ABI: "abi",
    Dimension.SCREEN_DENSITY: "screen_density",
    Dimension.LANGUAGE: "language",
    Dimension.TEXTURE_COMPRESSION_FORMAT: "texture_compression_format",
    Dimension.DEVICE_TIER: "device_tier",
    Dimension.COUNTRY_SET: "country_set",
}


class ApkTargeting(CatalogModel):
    """Per-dimension predicates attached to one split artifact."""

    sdk_version: TargetingValue[int] | None = None
    abi: TargetingValue[AbiSet] | None = None
    screen_density: TargetingValue[int] | None = None
    language: TargetingValue[str] | None = None
    texture_compression_format: TargetingValue[str] | None = None
    device_tier: TargetingValue[int] | None = None
    country_set: TargetingValue[str] | None = None

    def for_dimension(self, dimension: Dimension) -> TargetingValue[Any] | None:
        """Get the predicate along a dimension, or None when it is not targeted."""
        targeting = getattr(self, _FIELD_BY_DIMENSION[dimension])
        if targeting is None or targeting.is_empty:
            return None
        return targeting

    @property
    def dimensions(self) -> list[Dimension]:
        """Dimensions this targeting constrains, in emission order."""
        return [d for d in Dimension if self.for_dimension(d) is not None]

    @property
    def is_default(self) -> bool:
        """Whether no dimension is targeted (master split targeting)."""
        return not self.dimensions


class VariantTargeting(CatalogModel):
    """Coarse targeting of a variant, decided before any split is considered."""

    sdk_version: TargetingValue[int] = Field(default_factory=lambda: TargetingValue[int](value=1))
    requires_sdk_runtime: bool = Field(default=False)
    abi: TargetingValue[AbiSet] | None = Field(
        default=None, description="Required ABI set of standalone/APEX variants"
    )

    @property
    def sdk_floor(self) -> int:
        """Minimum SDK served by the variant."""
        return self.sdk_version.value if self.sdk_version.value is not None else 1


class DefaultTargetingValue(CatalogModel):
    """Fallback applied when the device omits a value for a dimension."""

    dimension: Dimension
    value: str = ""
