"""Rolling behavioral baseline for a single user."""
from __future__ import annotations

from typing import Sequence, Tuple

import numpy as np

from .schemas import UserProfile

HISTORY_CAPACITY = 50
DEFAULT_SEED_HISTORY: Tuple[float, ...] = (45, 60, 55, 12, 40, 50, 48)


def calculate_stats(history: Sequence[float]) -> Tuple[float, float]:
    """Return (mean, sample standard deviation) of ``history``.

    The standard deviation is Bessel-corrected for more than one value and 0
    for a single value. An empty history yields (0.0, 0.0).
    """
    values = np.asarray(history, dtype=float)
    if values.size == 0:
        return 0.0, 0.0
    mean = float(values.mean())
    std_dev = float(values.std(ddof=1)) if values.size > 1 else 0.0
    return mean, std_dev


def update_profile(
    profile: UserProfile, new_amount: float, capacity: int = HISTORY_CAPACITY
) -> UserProfile:
    """Append ``new_amount`` and rebuild the baseline from the retained window."""
    history = [*profile.history, float(new_amount)][-capacity:]
    mean, std_dev = calculate_stats(history)
    return UserProfile(history=history, mean=mean, std_dev=std_dev)


def default_profile() -> UserProfile:
    return UserProfile.from_history(list(DEFAULT_SEED_HISTORY))
