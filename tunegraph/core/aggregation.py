"""
Aggregation of per-file estimates into a single batch target.
"""

import math
from collections import Counter
from enum import Enum
from typing import Optional, Sequence

import numpy as np

from tunegraph.utils.errors import InvalidInputError


class AggregationPolicy(str, Enum):
    """How a batch target is derived from per-file estimates."""

    AVERAGE = "average"
    MODE = "mode"
    MIN = "min"
    MAX = "max"
    CUSTOM = "custom"
    NEAREST_SCALE_NOTE = "nearest_scale_note"


def aggregate(
    values: Sequence[float],
    policy: AggregationPolicy,
    custom_value: Optional[float] = None
) -> Optional[float]:
    """
    Reduce estimates to one target value.

    Args:
        values: Estimates of the detected files
        policy: Aggregation policy
        custom_value: Target used by the CUSTOM policy

    Returns:
        Optional[float]: Target, or None when there is nothing to aggregate

    Raises:
        InvalidInputError: For CUSTOM without a value, or a policy that does
        not reduce numbers
    """
    policy = AggregationPolicy(policy)

    if policy is AggregationPolicy.CUSTOM:
        if custom_value is None or not np.isfinite(custom_value):
            raise InvalidInputError("Custom policy requires a finite custom value", parameter="custom_value")
        return float(custom_value)

    if not values:
        return None

    if policy is AggregationPolicy.AVERAGE:
        return float(np.mean(values))
    if policy is AggregationPolicy.MIN:
        return float(min(values))
    if policy is AggregationPolicy.MAX:
        return float(max(values))
    if policy is AggregationPolicy.MODE:
        return float(mode_of(round_half_up(v) for v in values))

    raise InvalidInputError(f"Policy {policy.value!r} does not apply to numeric estimates", parameter="policy")


def round_half_up(value: float) -> int:
    """Round halves up (100.5 -> 101); round() would give 100."""
    return int(math.floor(value + 0.5))


def mode_of(items) -> int:
    """Most frequent item; ties go to the smallest."""
    counts = Counter(items)
    best_count = max(counts.values())
    return min(item for item, count in counts.items() if count == best_count)
