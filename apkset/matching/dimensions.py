"""
Per-dimension matching strategies.

Every targeting dimension has one stateless strategy, registered in
``MATCHERS`` and dispatched by ``Dimension``. A strategy picks, among the values
of a sibling group, the one serving the device best; ``None`` in such a group
stands for the rest-of-world fallback. Strategies never raise: a group nothing
serves yields ``NoMatch`` and the caller decides whether that is fatal.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, TypeVar

from ..core.config import ResolverConfig
from ..models.catalog import Catalog
from ..models.device import ARCHITECTURE_ORDERING, DeviceProfile
from ..models.targeting import Dimension, TargetingValue
from .density import select_best_density

C = TypeVar("C")

# Tier served to devices declaring none when the catalog configures no default.
IMPLICIT_DEVICE_TIER = 0


@dataclass(frozen=True)
class MatchContext:
    """Device under resolution plus the catalog's per-dimension defaults."""

    device: DeviceProfile
    defaults: Mapping[Dimension, str] = field(default_factory=dict)
    default_screen_density: int = 160

    @classmethod
    def create(
        cls, device: DeviceProfile, catalog: Catalog, config: ResolverConfig | None = None
    ) -> MatchContext:
        config = config or ResolverConfig()
        defaults = {d: v for d in Dimension if (v := catalog.default_for(d)) is not None}
        return cls(
            device=device, defaults=defaults, default_screen_density=config.default_screen_density
        )

    def default_for(self, dimension: Dimension) -> str | None:
        return self.defaults.get(dimension)


@dataclass(frozen=True)
class NoMatch:
    """Outcome of a sibling group that serves nothing to the device."""

    dimension: Dimension
    device_values: tuple[str, ...]
    app_values: tuple[str, ...]

    def describe(self) -> str:
        strategy = MATCHERS[self.dimension]
        return (
            f"The app doesn't support {strategy.description} of the device. "
            f"Device {strategy.noun}: {_render(self.device_values)}, "
            f"app {strategy.noun}: {_render(self.app_values)}."
        )


@dataclass(frozen=True)
class DimensionStrategy:
    """Matching strategy of one dimension."""

    dimension: Dimension
    pick: Callable[[Sequence[Any], MatchContext], int | None]
    device_values: Callable[[MatchContext], list[str]]
    description: str
    noun: str
    required: bool = True


def _render(values: Sequence[str]) -> str:
    return "[" + ", ".join(values) + "]"


def _fallback_index(values: Sequence[Any]) -> int | None:
    return next((i for i, v in enumerate(values) if v is None), None)


# SDK version


def _pick_sdk(values: Sequence[int | None], ctx: MatchContext) -> int | None:
    sdk = ctx.device.sdk_version
    eligible = [(i, 1 if v is None else v, v is not None) for i, v in enumerate(values)]
    eligible = [entry for entry in eligible if entry[1] <= sdk]
    if not eligible:
        return None
    # Closest floor from below; at equal floor an explicit entry beats the fallback.
    return max(eligible, key=lambda entry: (entry[1], entry[2]))[0]


def _device_sdk(ctx: MatchContext) -> list[str]:
    return [str(ctx.device.sdk_version)]


# ABI


def _pick_abi(values: Sequence[frozenset[str] | None], ctx: MatchContext) -> int | None:
    preference = {abi: rank for rank, abi in enumerate(ctx.device.supported_abis)}
    satisfied = []
    for i, required in enumerate(values):
        required = required or frozenset()
        if all(abi in preference for abi in required):
            ranks = sorted(preference[abi] for abi in required)
            # Largest satisfied set first, then the set leaning on preferred ABIs.
            satisfied.append((i, (len(required), tuple(-rank for rank in ranks))))
    if not satisfied:
        return None
    return max(satisfied, key=lambda entry: entry[1])[0]


def _device_abis(ctx: MatchContext) -> list[str]:
    return list(ctx.device.supported_abis)


def _sorted_abis(abis: frozenset[str]) -> list[str]:
    known = {abi: i for i, abi in enumerate(ARCHITECTURE_ORDERING)}
    return sorted(abis, key=lambda abi: (known.get(abi, len(known)), abi))


# Screen density


def _desired_density(ctx: MatchContext) -> int:
    if ctx.device.screen_density > 0:
        return ctx.device.screen_density
    default = ctx.default_for(Dimension.SCREEN_DENSITY)
    if default is not None and default.isdigit():
        return int(default)
    return ctx.default_screen_density


def _pick_density(values: Sequence[int | None], ctx: MatchContext) -> int | None:
    explicit = [v for v in values if v is not None]
    if not explicit:
        return _fallback_index(values)
    return values.index(select_best_density(explicit, _desired_density(ctx)))


def _device_density(ctx: MatchContext) -> list[str]:
    return [str(_desired_density(ctx))]


# Single-value dimensions: language, texture compression format, device tier, country set


def _preferred_values(dimension: Dimension, ctx: MatchContext) -> list[Any]:
    """Device values for a dimension, most preferred first, after applying defaults."""
    device = ctx.device
    if dimension == Dimension.LANGUAGE:
        declared: list[Any] = device.languages
    elif dimension == Dimension.TEXTURE_COMPRESSION_FORMAT:
        declared = device.texture_compression_formats
    elif dimension == Dimension.DEVICE_TIER:
        declared = [device.device_tier] if device.device_tier is not None else []
    else:
        declared = [device.country_set] if device.country_set else []
    if declared:
        return declared

    default = ctx.default_for(dimension)
    if dimension == Dimension.DEVICE_TIER:
        # Non-numeric defaults are rejected by catalog validation; ignore them here.
        return [int(default) if default is not None and default.isdigit() else IMPLICIT_DEVICE_TIER]
    return [default] if default is not None else []


def _normalize(dimension: Dimension, value: Any) -> Any:
    if not isinstance(value, str):
        return value
    if dimension == Dimension.LANGUAGE:
        return value.lower()
    if dimension == Dimension.TEXTURE_COMPRESSION_FORMAT:
        return value.upper()
    return value


def _exact_picker(dimension: Dimension) -> Callable[[Sequence[Any], MatchContext], int | None]:
    def pick(values: Sequence[Any], ctx: MatchContext) -> int | None:
        normalized = [_normalize(dimension, v) for v in values]
        for preferred in _preferred_values(dimension, ctx):
            preferred = _normalize(dimension, preferred)
            if preferred in normalized:
                return normalized.index(preferred)
        return _fallback_index(values)

    return pick


def _exact_device_values(dimension: Dimension) -> Callable[[MatchContext], list[str]]:
    def device_values(ctx: MatchContext) -> list[str]:
        return [str(v) for v in _preferred_values(dimension, ctx)]

    return device_values


MATCHERS: dict[Dimension, DimensionStrategy] = {
    Dimension.SDK_VERSION: DimensionStrategy(
        Dimension.SDK_VERSION, _pick_sdk, _device_sdk, "SDK versions", "SDK versions"
    ),
    Dimension.ABI: DimensionStrategy(
        Dimension.ABI, _pick_abi, _device_abis, "ABI architectures", "ABIs"
    ),
    Dimension.SCREEN_DENSITY: DimensionStrategy(
        Dimension.SCREEN_DENSITY, _pick_density, _device_density, "screen densities", "densities"
    ),
    Dimension.LANGUAGE: DimensionStrategy(
        Dimension.LANGUAGE,
        _exact_picker(Dimension.LANGUAGE),
        _exact_device_values(Dimension.LANGUAGE),
        "languages",
        "languages",
        required=False,
    ),
    Dimension.TEXTURE_COMPRESSION_FORMAT: DimensionStrategy(
        Dimension.TEXTURE_COMPRESSION_FORMAT,
        _exact_picker(Dimension.TEXTURE_COMPRESSION_FORMAT),
        _exact_device_values(Dimension.TEXTURE_COMPRESSION_FORMAT),
        "texture compression formats",
        "formats",
    ),
    Dimension.DEVICE_TIER: DimensionStrategy(
        Dimension.DEVICE_TIER,
        _exact_picker(Dimension.DEVICE_TIER),
        _exact_device_values(Dimension.DEVICE_TIER),
        "device tiers",
        "device tiers",
    ),
    Dimension.COUNTRY_SET: DimensionStrategy(
        Dimension.COUNTRY_SET,
        _exact_picker(Dimension.COUNTRY_SET),
        _exact_device_values(Dimension.COUNTRY_SET),
        "country sets",
        "country sets",
    ),
}


def format_values(dimension: Dimension, values: Sequence[Any]) -> list[str]:
    """Render targeting values for messages, without duplicates and without the fallback."""
    if dimension == Dimension.ABI:
        return _sorted_abis(frozenset(abi for value in values if value is not None for abi in value))
    rendered: list[str] = []
    for value in values:
        if value is not None and str(value) not in rendered:
            rendered.append(str(value))
    return rendered


def match(dimension: Dimension, targeting: TargetingValue[Any] | None, ctx: MatchContext) -> bool:
    """Check whether a targeting is the best of its sibling group for the device.

    The group is reconstructed from the targeting's own value and its alternatives,
    so the check needs no knowledge of the sibling artifacts themselves.
    """
    if targeting is None or targeting.is_empty:
        return True
    return MATCHERS[dimension].pick(targeting.sibling_values(), ctx) == 0


def select_best(
    dimension: Dimension,
    candidates: Sequence[C],
    ctx: MatchContext,
    targeting_of: Callable[[C], TargetingValue[Any] | None],
) -> C | NoMatch:
    """Select the candidate serving the device best along a dimension.

    Args:
        dimension: Dimension the candidates vary along.
        candidates: Siblings of one group, in catalog order.
        ctx: Device and defaults.
        targeting_of: Extracts a candidate's targeting along the dimension.

    Returns:
        The winning candidate, or NoMatch naming device and app values.
    """
    strategy = MATCHERS[dimension]
    targetings = [targeting_of(c) for c in candidates]
    values = [t.value if t is not None else None for t in targetings]
    index = strategy.pick(values, ctx) if candidates else None
    if index is not None:
        return candidates[index]

    app_values: list[Any] = []
    for t in targetings:
        if t is not None:
            app_values.extend(t.sibling_values())
    return NoMatch(
        dimension=dimension,
        device_values=tuple(strategy.device_values(ctx)),
        app_values=tuple(format_values(dimension, app_values)),
    )
