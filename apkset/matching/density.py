"""
Screen density selection.

Follows the Android framework resource matching rule: an exact density always
wins, a larger density beats a smaller one when the device is above both, and
between the two scaling down is considered twice as good as scaling up.
"""

from __future__ import annotations

from collections.abc import Iterable
from functools import cmp_to_key

MDPI = 160


def _compare_ordered(lower: int, higher: int, desired: int) -> int:
    """Return 1 if ``lower`` serves ``desired`` better than ``higher``, else -1."""
    if desired >= higher:
        return -1
    if desired <= lower:
        return 1
    if ((2 * lower) - desired) * higher > desired * desired:
        return 1
    return -1


def compare_densities(a: int, b: int, desired: int) -> int:
    """Compare two dpi values for a device; the better match is the greater one."""
    if a == b:
        return 0
    if a > b:
        return -_compare_ordered(b, a, desired)
    return _compare_ordered(a, b, desired)


def select_best_density(densities: Iterable[int], desired: int) -> int:
    """Select the density best serving a device of the desired dpi.

    Args:
        densities: Candidate densities; must not be empty.
        desired: Device density in dpi. Non-positive values are treated as MDPI.

    Returns:
        The best candidate; the first one wins among equals.
    """
    desired = desired if desired > 0 else MDPI
    return max(densities, key=cmp_to_key(lambda a, b: compare_densities(a, b, desired)))
