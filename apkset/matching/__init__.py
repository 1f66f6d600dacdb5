"""Dimension matchers for device targeting."""

from .density import compare_densities, select_best_density
from .dimensions import (
    MATCHERS,
    DimensionStrategy,
    MatchContext,
    NoMatch,
    format_values,
    match,
    select_best,
)

__all__ = [
    "compare_densities",
    "select_best_density",
    "MATCHERS",
    "DimensionStrategy",
    "MatchContext",
    "NoMatch",
    "format_values",
    "match",
    "select_best",
]
