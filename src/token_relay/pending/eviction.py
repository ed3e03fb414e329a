"""Age-based eviction policy for pending requests.

Pure functions over entry ages, kept apart from the store's mapping so the
policy can be reasoned about (and tested) on plain numbers.
"""

from typing import Iterable


def mean_age(ages: Iterable[float]) -> float:
    """
    Mean of the given ages in seconds.

    Returns 0.0 for an empty collection.
    """
    total = 0.0
    count = 0
    for age in ages:
        total += age
        count += 1
    if count == 0:
        return 0.0
    return total / count


def is_stale(age: float, threshold: float, inclusive: bool = False) -> bool:
    """
    Decide whether an entry of the given age should be evicted.

    The fixed-lifetime pass evicts strictly older entries. The mean-age pass
    is inclusive, so the oldest entry always qualifies and every pass makes
    progress even when all entries share one timestamp.
    """
    if inclusive:
        return age >= threshold
    return age > threshold


def mean_age_threshold(ages: Iterable[float]) -> float:
    """
    Cutoff for the capacity-driven eviction pass.

    The mean of the ages, clamped to the oldest age. Float summation can put
    the mean a hair above every age when all ages are equal, and the clamp
    keeps the oldest entry eligible in that case.
    """
    ages = list(ages)
    if not ages:
        return 0.0
    return min(mean_age(ages), max(ages))
