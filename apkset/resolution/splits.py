"""
Split resolution.

Within a module, configuration splits are grouped by the dimension they
target and each group contributes at most one winner. The master split is
always delivered. A required dimension whose group serves nothing fails the
whole module; partial modules are never shipped.
"""

from __future__ import annotations

from collections.abc import Sequence

from ..core.exceptions import IncompatibleDeviceError, InvalidInputError, MalformedCatalogError
from ..core.logging import get_logger
from ..matching.dimensions import MATCHERS, MatchContext, NoMatch, select_best
from ..models.catalog import DeliveryType, SplitArtifact
from ..models.result import ResolvedModule
from ..models.targeting import Dimension

logger = get_logger(__name__)


def group_by_dimension(splits: Sequence[SplitArtifact]) -> dict[Dimension, list[SplitArtifact]]:
    """Group configuration splits by their single targeted dimension, in emission order."""
    groups: dict[Dimension, list[SplitArtifact]] = {}
    for split in splits:
        if split.is_master_split:
            continue
        for dimension in split.targeting.dimensions:
            groups.setdefault(dimension, []).append(split)
    return {d: groups[d] for d in Dimension if d in groups}


class SplitResolver:
    """Resolves the splits of modules for one device."""

    def __init__(self, ctx: MatchContext) -> None:
        self.ctx = ctx

    def resolve(
        self, module_name: str, delivery_type: DeliveryType, splits: Sequence[SplitArtifact]
    ) -> ResolvedModule:
        """Select the master split and the per-dimension winners of a module.

        Args:
            module_name: Module (or asset module) the splits belong to.
            delivery_type: Delivery type reported for the module.
            splits: All splits of the module.

        Returns:
            The resolved module.

        Raises:
            MalformedCatalogError: If the module has no master split.
            InvalidInputError: If the module has ABI splits but the device lists no ABIs.
            IncompatibleDeviceError: If a required dimension has no split for the device.
        """
        master = next((s for s in splits if s.is_master_split), None)
        if master is None:
            raise MalformedCatalogError(
                message=f"Module '{module_name}' has no master split.", defect="missing-master"
            )

        groups = group_by_dimension(splits)
        if Dimension.ABI in groups and not self.ctx.device.supported_abis:
            raise InvalidInputError(
                message=(
                    f"The module '{module_name}' has ABI splits but the device spec lists "
                    "no supported ABIs."
                ),
                field_name="supportedAbis",
            )

        winners: list[SplitArtifact] = []
        failures: list[NoMatch] = []
        for dimension, group in groups.items():
            outcome = select_best(
                dimension, group, self.ctx, lambda s, d=dimension: s.targeting.for_dimension(d)
            )
            if isinstance(outcome, NoMatch):
                if MATCHERS[dimension].required:
                    failures.append(outcome)
                continue
            winners.append(outcome)

        if failures:
            dimensions = [f.dimension.value for f in failures]
            details = " ".join(f.describe() for f in failures)
            raise IncompatibleDeviceError(
                message=(
                    f"Missing APKs for [{', '.join(dimensions)}] dimensions in the module "
                    f"'{module_name}' for the provided device. {details}"
                ),
                dimensions=dimensions,
                module_name=module_name,
            )

        logger.debug(
            "Module splits resolved",
            module=module_name,
            splits=[s.path for s in winners],
        )
        return ResolvedModule(
            name=module_name, delivery_type=delivery_type, master=master, config_splits=winners
        )
