"""Shared arithmetic for the weighted 0-100 scorers."""

from typing import Dict, Mapping, Optional


def weighted_average(
    sub_scores: Mapping[str, Optional[float]],
    weights: Mapping[str, float],
) -> Optional[float]:
    """
    Weighted mean of the present sub-scores.

    Absent sub-scores (None) are dropped and the remaining weights are
    rescaled to sum to 1, so a missing sensor neither zeroes nor inflates
    the result.

    Returns:
        The aggregate, or None when no sub-score is present
    """
    present = {k: v for k, v in sub_scores.items() if v is not None and weights.get(k, 0) > 0}
    total_weight = sum(weights[k] for k in present)
    if total_weight <= 0:
        return None
    # Rounded so float error cannot push a whole score below the next integer
    return round(sum(present[k] * weights[k] for k in present) / total_weight, 6)


def present_only(sub_scores: Mapping[str, Optional[int]]) -> Dict[str, int]:
    return {k: v for k, v in sub_scores.items() if v is not None}


def floor_at(value: float, floor: float) -> int:
    """Truncate toward zero then apply a lower bound, capped at 100."""
    return min(100, max(int(floor), int(value)))
