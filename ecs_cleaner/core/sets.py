"""Set helpers shared by the inventory resolver and the retirement filter."""

from collections.abc import Iterable


def remove_a_from_b(a: Iterable[str], b: Iterable[str]) -> list[str]:
    """
    Return the items of ``b`` that do not appear in ``a``.

    Every surviving item appears exactly once, in the order of its first
    occurrence in ``b``. Items of ``a`` that are not in ``b`` are ignored, and an
    item present in ``a`` is removed from the result entirely no matter how many
    times it occurs in ``b``.

    Args:
        a: Items to remove
        b: Items to keep unless listed in ``a``

    Returns:
        De-duplicated, order-preserving difference ``b - a``
    """
    excluded = set(a)
    return [item for item in dict.fromkeys(b) if item not in excluded]
