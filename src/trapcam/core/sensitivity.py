"""
Mapping between the operator-facing trigger sensitivity and the daemon threshold.

The daemon triggers when more than ``threshold`` pixels change between two
frames. Sensitivity 0 corresponds to a tenth of the frame, sensitivity 10 to a
single pixel, and the mapping is linear in between so that two-decimal
sensitivities survive a round trip on any realistic frame size.
"""

from __future__ import annotations

MIN_SENSITIVITY = 0.01
MAX_SENSITIVITY = 10.0
MAX_CHANGED_FRACTION = 0.1


def to_threshold(sensitivity: float, height: int, width: int) -> int:
    """Return the changed-pixel threshold for ``sensitivity`` on a ``width`` x ``height`` frame."""
    budget = height * width * MAX_CHANGED_FRACTION
    threshold = round(budget * (MAX_SENSITIVITY - sensitivity) / MAX_SENSITIVITY)
    return max(1, threshold)


def to_sensitivity(threshold: int, height: int, width: int) -> float:
    """Inverse of :func:`to_threshold`, rounded to two decimals and clamped to [0, 10]."""
    budget = height * width * MAX_CHANGED_FRACTION
    if budget <= 0:
        return 0.0
    sensitivity = MAX_SENSITIVITY * (1 - threshold / budget)
    return round(min(MAX_SENSITIVITY, max(0.0, sensitivity)), 2)


__all__ = [
    "MAX_CHANGED_FRACTION",
    "MAX_SENSITIVITY",
    "MIN_SENSITIVITY",
    "to_sensitivity",
    "to_threshold",
]
