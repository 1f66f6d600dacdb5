"""Device-targeting resolution engine."""

from .assembler import ApkSetAssembler
from .graph import ModuleGraph
from .modules import ModuleDependencyResolver
from .sizes import ConfigurationSize, SizeCalculator
from .splits import SplitResolver, group_by_dimension
from .validation import CatalogValidator
from .variants import VariantSelector

__all__ = [
    "ApkSetAssembler",
    "ModuleGraph",
    "ModuleDependencyResolver",
    "ConfigurationSize",
    "SizeCalculator",
    "SplitResolver",
    "group_by_dimension",
    "CatalogValidator",
    "VariantSelector",
]
