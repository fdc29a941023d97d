"""Acceptance test for measured edge separations."""
from __future__ import annotations

import enum

from shared.models import AcceptanceWindow


class Classification(enum.Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


def classify(interval: float, window: AcceptanceWindow) -> Classification:
    """Accept ``interval`` iff it lies strictly inside ``window``.

    Both bounds are exclusive: a separation equal to either limit is rejected.
    NaN is never accepted.
    """
    if window.min_separation < interval < window.max_separation:
        return Classification.ACCEPTED
    return Classification.REJECTED


def acceptance_ratio(accepted: int, attempts: int) -> float:
    """Fraction of coincident pulses classified as decays (diagnostic only)."""
    if attempts <= 0:
        return 0.0
    return accepted / attempts


__all__ = ["Classification", "classify", "acceptance_ratio"]
