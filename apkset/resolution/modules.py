"""
Module dependency resolution.

Computes which modules of the chosen variant must be delivered: the base
module, every module that is not on-demand (conditional modules only when the
device meets their conditions) and the transitive dependencies of explicitly
requested modules.
"""

from __future__ import annotations

from collections.abc import Collection

from ..core.exceptions import IncompatibleDeviceError, InvalidInputError
from ..core.logging import get_logger
from ..core.types import ALL_MODULES, BASE_MODULE
from ..matching.dimensions import MatchContext
from ..models.catalog import Catalog, ModuleSplitSet, Variant
from .graph import ModuleGraph

logger = get_logger(__name__)


class ModuleDependencyResolver:
    """Resolves the required module set of one variant."""

    def __init__(self, catalog: Catalog, variant: Variant, instant: bool = False) -> None:
        """Initialize the resolver.

        Args:
            catalog: Catalog the variant belongs to; asset module names count as known.
            variant: Variant chosen for the device.
            instant: Restrict the eligible modules to those shipping instant APKs.
        """
        self.catalog = catalog
        self.variant = variant
        self.instant = instant
        self.graph = ModuleGraph.build(variant.modules)

    def known_module_names(self) -> list[str]:
        names: list[str] = []
        for variant in self.catalog.variants:
            names.extend(m.name for m in variant.modules if m.name not in names)
        names.extend(a.name for a in self.catalog.asset_slice_sets if a.name not in names)
        return names

    def expand_request(self, requested: Collection[str] | None) -> frozenset[str] | None:
        """Validate requested module names and expand the all-modules sentinel.

        Args:
            requested: Requested module names, or None when nothing was requested.

        Returns:
            The requested names, or None when nothing was requested.

        Raises:
            InvalidInputError: If the request is empty or names unknown modules.
        """
        if requested is None:
            return None
        if not requested:
            raise InvalidInputError(
                message="The set of modules cannot be empty.", field_name="modules"
            )
        if ALL_MODULES in requested:
            names = [m.name for m in self.variant.modules]
            names.extend(a.name for a in self.catalog.asset_slice_sets)
            return frozenset(names)

        known = set(self.known_module_names())
        unknown = sorted(set(requested) - known)
        if unknown:
            raise InvalidInputError(
                message=(
                    "The APK Set archive does not contain the following modules: "
                    f"[{', '.join(unknown)}]"
                ),
                field_name="modules",
                context={"unknown_modules": unknown},
            )
        return frozenset(requested)

    def _is_root(self, module: ModuleSplitSet, ctx: MatchContext, requested: frozenset[str]) -> bool:
        if module.name == BASE_MODULE or module.name in requested:
            return True
        if not module.is_always_installed:
            return False
        return module.conditions is None or module.conditions.satisfied_by(ctx.device)

    def resolve(
        self, ctx: MatchContext, requested: frozenset[str] | None = None
    ) -> list[ModuleSplitSet]:
        """Compute the required modules in dependency order, base first.

        Args:
            ctx: Device under resolution.
            requested: Expanded request from ``expand_request``.

        Returns:
            Modules to deliver; every module follows the modules it depends on.

        Raises:
            IncompatibleDeviceError: In instant mode, when a selected module depends
                on a module without instant APKs.
        """
        requested = requested or frozenset()
        modules = self.variant.modules
        roots = [i for i, m in enumerate(modules) if self._is_root(m, ctx, requested)]
        if self.instant:
            roots = [i for i in roots if modules[i].supports_instant]

        selected = self.graph.closure(roots)
        if self.instant:
            missing = sorted(modules[i].name for i in selected if not modules[i].supports_instant)
            if missing:
                raise IncompatibleDeviceError(
                    message=(
                        "No compatible instant APKs for the device: modules "
                        f"[{', '.join(missing)}] have no instant APKs."
                    ),
                    module_name=missing[0],
                )

        order = self.graph.dependency_order(selected)
        base = self.graph.index_of(BASE_MODULE)
        if base in selected:
            order.remove(base)
            order.insert(0, base)

        resolved = [modules[i] for i in order]
        logger.debug(
            "Module closure computed",
            variant=self.variant.variant_number,
            instant=self.instant,
            modules=[m.name for m in resolved],
        )
        return resolved
