"""
Catalog validation.

Structural invariants are checked once, when a catalog is loaded, so that a
defective APK Set surfaces as a MalformedCatalogError instead of a puzzling
matching result later on.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Sequence

from ..core.config import ResolverConfig
from ..core.exceptions import MalformedCatalogError
from ..core.types import BASE_MODULE
from ..models.catalog import Catalog, ModuleSplitSet, SplitArtifact, Variant
from ..models.targeting import Dimension
from .graph import ModuleGraph
from .splits import group_by_dimension

# Dimensions whose catalog defaults must parse as integers.
NUMERIC_DIMENSIONS = frozenset({Dimension.SCREEN_DENSITY, Dimension.DEVICE_TIER})


class CatalogValidator:
    """Checks the invariants of a catalog."""

    def __init__(self, config: ResolverConfig | None = None) -> None:
        self.config = config or ResolverConfig()

    def validate(self, catalog: Catalog) -> None:
        """Validate a catalog.

        Raises:
            MalformedCatalogError: On the first violated invariant.
        """
        if catalog.schema_major_version > self.config.max_schema_major_version:
            raise MalformedCatalogError(
                message=(
                    f"Catalog schema version {catalog.schema_version} is not supported; "
                    f"the highest supported major version is {self.config.max_schema_major_version}."
                ),
                defect="unsupported-schema",
            )
        if not catalog.variants:
            raise MalformedCatalogError(message="Catalog declares no variants.", defect="no-variants")

        self._check_defaults(catalog)
        for variant in catalog.variants:
            self._check_variant(variant)
        for asset in catalog.asset_slice_sets:
            self._check_split_set(f"asset module '{asset.name}'", asset.slices)

    def _check_defaults(self, catalog: Catalog) -> None:
        for default in catalog.default_targeting_values:
            if default.dimension not in NUMERIC_DIMENSIONS or not default.value:
                continue
            if not default.value.isdigit():
                raise MalformedCatalogError(
                    message=(
                        f"Default value '{default.value}' for {default.dimension.value} "
                        "is not a non-negative integer."
                    ),
                    defect="invalid-default",
                )

    def _check_variant(self, variant: Variant) -> None:
        owner = f"variant {variant.variant_number}"
        duplicates = sorted(n for n, c in Counter(m.name for m in variant.modules).items() if c > 1)
        if duplicates:
            raise MalformedCatalogError(
                message=f"{owner} declares modules more than once: {duplicates}",
                defect="duplicate-module",
            )
        base = variant.module(BASE_MODULE)
        if base is None:
            raise MalformedCatalogError(message=f"{owner} has no base module.", defect="missing-base")
        if base.dependencies:
            raise MalformedCatalogError(
                message=f"The base module of {owner} cannot declare dependencies.",
                defect="base-dependencies",
            )

        graph = ModuleGraph.build(variant.modules)
        cycle = graph.find_cycle()
        if cycle:
            raise MalformedCatalogError(
                message=f"Cyclic module dependency in {owner}: {' -> '.join(cycle)}",
                defect="dependency-cycle",
            )

        for module in variant.modules:
            self._check_module(module)

    def _check_module(self, module: ModuleSplitSet) -> None:
        self._check_split_set(f"module '{module.name}'", module.splits)
        if module.instant_splits:
            self._check_split_set(f"instant APKs of module '{module.name}'", module.instant_splits)

    def _check_split_set(self, owner: str, splits: Sequence[SplitArtifact]) -> None:
        masters = [s for s in splits if s.is_master_split]
        if len(masters) != 1:
            raise MalformedCatalogError(
                message=f"The {owner} has {len(masters)} master splits; expected exactly one.",
                defect="missing-master",
            )
        if not masters[0].targeting.is_default:
            raise MalformedCatalogError(
                message=f"The master split '{masters[0].path}' of the {owner} is targeted.",
                defect="targeted-master",
            )
        for split in splits:
            if not split.is_master_split and len(split.targeting.dimensions) != 1:
                raise MalformedCatalogError(
                    message=(
                        f"Split '{split.path}' of the {owner} must target exactly one dimension, "
                        f"found {[d.value for d in split.targeting.dimensions]}."
                    ),
                    defect="split-dimensions",
                )
        for dimension, group in group_by_dimension(splits).items():
            self._check_partition(owner, dimension, group)

    def _check_partition(
        self, owner: str, dimension: Dimension, group: Sequence[SplitArtifact]
    ) -> None:
        targetings = [s.targeting.for_dimension(dimension) for s in group]
        explicit = [t.value for t in targetings if t is not None and t.value is not None]
        fallbacks = [s.path for s, t in zip(group, targetings) if t is not None and t.is_fallback]

        if len(set(explicit)) != len(explicit):
            raise MalformedCatalogError(
                message=f"Siblings along {dimension.value} of the {owner} share a value.",
                defect="non-partitioning-targeting",
            )
        if len(fallbacks) > 1:
            raise MalformedCatalogError(
                message=(
                    f"The {owner} has several fallback splits along {dimension.value}: {fallbacks}"
                ),
                defect="non-partitioning-targeting",
            )

        expected = set(explicit)
        for split, targeting in zip(group, targetings):
            if targeting is None:
                continue
            covered = set(targeting.alternatives)
            if targeting.value is not None:
                covered.add(targeting.value)
            if covered != expected:
                raise MalformedCatalogError(
                    message=(
                        f"Split '{split.path}' of the {owner}: value and alternatives along "
                        f"{dimension.value} do not partition the sibling values."
                    ),
                    defect="non-partitioning-targeting",
                )
