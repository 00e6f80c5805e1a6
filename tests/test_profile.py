import numpy as np
import pytest

from fraudwatch.profile import HISTORY_CAPACITY, calculate_stats, default_profile, update_profile
from fraudwatch.schemas import UserProfile


def test_calculate_stats_uses_sample_standard_deviation():
    mean, std_dev = calculate_stats([10, 20, 30])
    assert mean == pytest.approx(20.0)
    assert std_dev == pytest.approx(10.0)


def test_single_value_has_zero_spread():
    assert calculate_stats([42]) == (42.0, 0.0)


def test_update_from_empty_history_starts_window():
    profile = update_profile(UserProfile(history=[], mean=0.0, std_dev=0.0), 7)
    assert profile.history == [7.0]
    assert profile.mean == 7.0
    assert profile.std_dev == 0.0


@pytest.mark.parametrize("length", [1, 2, 10, 49, 50, 60])
def test_window_length_is_capped(length):
    history = [float(v) for v in range(length)]
    updated = update_profile(UserProfile.from_history(history), 500.0)

    assert len(updated.history) == min(length + 1, HISTORY_CAPACITY)
    assert updated.history[-1] == 500.0
    assert updated.mean == pytest.approx(np.mean(updated.history))
    expected_std = np.std(updated.history, ddof=1) if len(updated.history) > 1 else 0.0
    assert updated.std_dev == pytest.approx(expected_std)


def test_oldest_amount_is_evicted_first():
    profile = UserProfile.from_history([float(v) for v in range(HISTORY_CAPACITY)])
    updated = update_profile(profile, 100.0)
    assert updated.history[0] == 1.0
    assert 0.0 not in updated.history


def test_update_does_not_mutate_input():
    profile = default_profile()
    before = list(profile.history)
    update_profile(profile, 1000.0)
    assert profile.history == before


def test_default_profile_matches_seed_history():
    profile = default_profile()
    assert profile.history == [45, 60, 55, 12, 40, 50, 48]
    assert profile.mean == pytest.approx(np.mean(profile.history))
    assert profile.std_dev == pytest.approx(np.std(profile.history, ddof=1))
